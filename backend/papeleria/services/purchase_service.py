# Overview: Service-layer operations for supplier purchases; receives goods into stock.

"""
Purchase Service

Registering a purchase receives its goods. Header, detail lines and the
stock increments commit as one unit of work; an unknown product or supplier
rolls the whole purchase back.

Removing a purchase is a soft-delete that takes its units back out of stock,
which is refused once those units have been sold.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import update

from papeleria.extensions import db
from papeleria.errors import CommerceError, ResourceNotFound
from papeleria.models import Purchase, PurchaseDetail
from papeleria.models.purchases import PURCHASE_STATUS_RECEIVED
from papeleria.time_utils import utcnow
from papeleria.validation import parse_purchase_lines
from papeleria.services.concurrency import run_in_transaction
from papeleria.services.directory_service import require_supplier, require_user
from papeleria.services.stock_service import decrement_stock, increment_stock


def create_purchase(
    *,
    supplier_id: int,
    user_id: int,
    details,
    invoice_number: str | None = None,
    purchase_date: datetime | None = None,
    notes: str | None = None,
) -> dict:
    """
    Record a supplier purchase and increment stock for every detail line.

    Args:
        supplier_id: Supplier invoicing the goods
        user_id: User registering the purchase
        details: Non-empty list of lines (dicts or PurchaseLineInput)
        invoice_number: Supplier invoice number (optional)
        purchase_date: Business date of the purchase (defaults to now)

    Returns:
        Hydrated purchase: {"purchase", "details"}

    Raises:
        ValidationError, ResourceNotFound, StockNotTracked
    """
    lines = parse_purchase_lines(details)

    def _op(session):
        total = sum(line.subtotal_cents for line in lines)

        require_supplier(supplier_id)
        require_user(user_id)

        now = utcnow()
        purchase = Purchase(
            supplier_id=supplier_id,
            user_id=user_id,
            invoice_number=invoice_number,
            total_cents=total,
            status=PURCHASE_STATUS_RECEIVED,
            purchase_date=purchase_date or now,
            notes=notes,
            created_at=now,
        )
        session.add(purchase)
        session.flush()  # Get purchase ID

        for line in lines:
            # Raises ResourceNotFound / StockNotTracked before the detail is written
            increment_stock(session, line.product_id, line.quantity)
            session.add(PurchaseDetail(
                purchase_id=purchase.id,
                product_id=line.product_id,
                quantity=line.quantity,
                unit_cost_cents=line.unit_cost_cents,
                subtotal_cents=line.subtotal_cents,
            ))

        session.flush()
        return purchase.id

    try:
        purchase_id = run_in_transaction(_op)
    except CommerceError as exc:
        current_app.logger.warning("Purchase rejected for supplier %s: %s", supplier_id, exc)
        raise

    current_app.logger.info(
        "Purchase %s recorded (supplier=%s, user=%s, lines=%d)",
        purchase_id, supplier_id, user_id, len(lines),
    )
    return get_purchase(purchase_id)


def remove_purchase(purchase_id: int) -> dict:
    """
    Soft-delete a purchase and take its goods back out of stock.

    Every detail line is decremented in the same unit of work. If some of
    the received units have already been sold the removal fails with
    InsufficientStock and nothing changes.

    Raises:
        ResourceNotFound: purchase does not exist or was already removed
        InsufficientStock: received units are no longer on hand
    """
    def _op(session):
        result = session.execute(
            update(Purchase)
            .where(Purchase.id == purchase_id, Purchase.deleted_at.is_(None))
            .values(deleted_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ResourceNotFound("Purchase", purchase_id)

        for detail in get_purchase_details(purchase_id):
            decrement_stock(session, detail.product_id, detail.quantity)

    try:
        run_in_transaction(_op)
    except CommerceError as exc:
        current_app.logger.warning("Purchase %s removal rejected: %s", purchase_id, exc)
        raise

    current_app.logger.info("Purchase %s removed", purchase_id)
    return db.session.get(Purchase, purchase_id).to_dict()


def get_purchase_details(purchase_id: int) -> list[PurchaseDetail]:
    return db.session.query(PurchaseDetail).filter_by(purchase_id=purchase_id).order_by(PurchaseDetail.id).all()


def _hydrate(purchase: Purchase) -> dict:
    return {
        "purchase": purchase.to_dict(),
        "details": [detail.to_dict() for detail in get_purchase_details(purchase.id)],
    }


def get_purchase(purchase_id: int) -> dict:
    purchase = db.session.get(Purchase, purchase_id)
    if purchase is None or purchase.deleted_at is not None:
        raise ResourceNotFound("Purchase", purchase_id)
    return _hydrate(purchase)


def list_purchases(supplier_id: int | None = None) -> list[dict]:
    """Purchases, most recent purchase_date first."""
    query = db.session.query(Purchase).filter(Purchase.deleted_at.is_(None))
    if supplier_id is not None:
        query = query.filter(Purchase.supplier_id == supplier_id)
    return [_hydrate(p) for p in query.order_by(Purchase.purchase_date.desc(), Purchase.id.desc()).all()]
