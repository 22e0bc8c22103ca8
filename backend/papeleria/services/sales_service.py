"""
Sales Service - atomic point-of-sale transactions

A sale is written once, complete: header, items, payments and the stock
decrements of its product lines commit together or not at all.

RULES:
- total = sum(quantity * unit_price) over the lines
- sum(payments) must cover the total (InsufficientPayment otherwise)
- PHYSICAL product lines decrement stock through stock_service; service
  lines and SERVICE-type products never touch stock
- a sale attributed to a cash register requires that register to be OPEN
- removal is a soft-delete (CANCELLED + deleted_at) that restores stock;
  it is refused once the sale's register has been closed
"""

from __future__ import annotations

from datetime import date as date_type

from flask import current_app
from sqlalchemy import select, update

from papeleria.extensions import db
from papeleria.errors import (
    CommerceError,
    InsufficientPayment,
    RegisterNotOpen,
    ResourceNotFound,
    ValidationError,
)
from papeleria.models import CashRegister, Product, Sale, SaleItem, SalePayment
from papeleria.models.registers import REGISTER_STATUS_OPEN
from papeleria.models.sales import (
    ITEM_TYPE_PRODUCT,
    ITEM_TYPE_SERVICE,
    SALE_STATUS_CANCELLED,
    SALE_STATUS_COMPLETED,
)
from papeleria.time_utils import local_day_bounds, utcnow
from papeleria.validation import optional_cents, parse_payments, parse_sale_lines
from papeleria.services.concurrency import run_in_transaction
from papeleria.services.directory_service import require_customer, require_product, require_service, require_user
from papeleria.services.stock_service import decrement_stock, increment_stock


def _claim_open_register(session, cash_register_id: int) -> None:
    """
    Guarded UPDATE that succeeds only while the register is OPEN.

    Bumping version_id takes the register's write lock (row lock on
    PostgreSQL, database lock on SQLite) before anything else is written, so
    a concurrent close either commits first and this update matches zero
    rows, or waits until the sale has committed and then counts its cash.
    """
    result = session.execute(
        update(CashRegister)
        .where(
            CashRegister.id == cash_register_id,
            CashRegister.status == REGISTER_STATUS_OPEN,
            CashRegister.deleted_at.is_(None),
        )
        .values(version_id=CashRegister.version_id + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return

    row = session.execute(
        select(CashRegister.status, CashRegister.deleted_at).where(CashRegister.id == cash_register_id)
    ).first()
    if row is None or row.deleted_at is not None:
        raise ResourceNotFound("CashRegister", cash_register_id)
    raise RegisterNotOpen(
        f"Cash register {cash_register_id} is closed",
        details={"cash_register_id": cash_register_id, "status": row.status},
    )


def create_sale(
    *,
    user_id: int,
    items,
    payments,
    cash_register_id: int | None = None,
    customer_id: int | None = None,
    invoice_number: str | None = None,
    tax_amount_cents: int | None = 0,
    discount_cents: int | None = 0,
    notes: str | None = None,
) -> dict:
    """
    Record a complete sale as one unit of work.

    Args:
        user_id: Cashier recording the sale
        items: Non-empty list of lines (dicts or SaleLineInput)
        payments: Non-empty list of tenders (dicts or PaymentInput)
        cash_register_id: Open register the sale is attributed to (optional)
        customer_id: Customer (optional)
        invoice_number: Printed invoice number (optional)
        tax_amount_cents: Tax contained in the total (informational)
        discount_cents: Discount already applied to line prices (informational)

    Returns:
        Hydrated sale: {"sale", "items", "payments", "total_paid_cents", "change_cents"}

    Raises:
        ValidationError, ResourceNotFound, RegisterNotOpen,
        InsufficientPayment, InsufficientStock
    """
    lines = parse_sale_lines(items)
    tenders = parse_payments(payments)
    tax_cents = optional_cents(tax_amount_cents, "tax_amount_cents")
    discount = optional_cents(discount_cents, "discount_cents")

    def _op(session):
        total = sum(line.subtotal_cents for line in lines)
        total_paid = sum(tender.amount_cents for tender in tenders)

        if total_paid < total:
            raise InsufficientPayment(
                f"Payments ({total_paid}) do not cover the sale total ({total})",
                details={"total_cents": total, "total_paid_cents": total_paid},
            )
        if tax_cents > total:
            raise ValidationError("tax_amount_cents cannot exceed the sale total")
        if discount > total:
            raise ValidationError("discount_cents cannot exceed the sale total")

        require_user(user_id)
        if customer_id is not None:
            require_customer(customer_id)
        if cash_register_id is not None:
            _claim_open_register(session, cash_register_id)

        now = utcnow()
        sale = Sale(
            user_id=user_id,
            customer_id=customer_id,
            cash_register_id=cash_register_id,
            invoice_number=invoice_number,
            total_cents=total,
            tax_amount_cents=tax_cents,
            discount_cents=discount,
            status=SALE_STATUS_COMPLETED,
            notes=notes,
            created_at=now,
        )
        session.add(sale)
        session.flush()  # Get sale ID

        for line in lines:
            if line.item_type == ITEM_TYPE_PRODUCT:
                product = require_product(line.item_id)
                if product.tracks_stock:
                    decrement_stock(session, product.id, line.quantity)
                item = SaleItem(
                    sale_id=sale.id,
                    item_type=ITEM_TYPE_PRODUCT,
                    product_id=product.id,
                    name=product.name,
                    quantity=line.quantity,
                    unit_price_cents=line.unit_price_cents,
                    subtotal_cents=line.subtotal_cents,
                )
            else:
                service = require_service(line.item_id)
                item = SaleItem(
                    sale_id=sale.id,
                    item_type=ITEM_TYPE_SERVICE,
                    service_id=service.id,
                    name=service.name,
                    quantity=line.quantity,
                    unit_price_cents=line.unit_price_cents,
                    subtotal_cents=line.subtotal_cents,
                )
            session.add(item)

        for tender in tenders:
            session.add(SalePayment(
                sale_id=sale.id,
                payment_method=tender.method,
                amount_cents=tender.amount_cents,
                voucher_number=tender.voucher_number,
                reference_number=tender.reference_number,
                created_at=now,
            ))

        session.flush()
        return sale.id

    try:
        sale_id = run_in_transaction(_op)
    except CommerceError as exc:
        current_app.logger.warning("Sale rejected for user %s: %s", user_id, exc)
        raise

    current_app.logger.info(
        "Sale %s recorded (user=%s, register=%s, lines=%d)",
        sale_id, user_id, cash_register_id, len(lines),
    )
    return get_sale(sale_id)


def remove_sale(sale_id: int) -> dict:
    """
    Soft-delete a sale and put its goods back on the shelf.

    The sale is marked CANCELLED with deleted_at set, so every ledger read
    (dashboard, reports, expected cash) stops counting it. Stock of its
    PHYSICAL product lines is restored in the same unit of work.

    A sale attributed to a register can only be removed while that register
    is OPEN: a closed session's expected cash is frozen and must keep
    matching the sales it was computed from.

    Raises:
        ResourceNotFound: sale does not exist or was already removed
        RegisterNotOpen: the sale's register is closed
    """
    def _op(session):
        sale = session.get(Sale, sale_id)
        if sale is None or sale.deleted_at is not None:
            raise ResourceNotFound("Sale", sale_id)

        if sale.cash_register_id is not None:
            _claim_open_register(session, sale.cash_register_id)

        result = session.execute(
            update(Sale)
            .where(Sale.id == sale_id, Sale.deleted_at.is_(None))
            .values(status=SALE_STATUS_CANCELLED, deleted_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # Removed concurrently
            raise ResourceNotFound("Sale", sale_id)

        for item in get_sale_items(sale_id):
            if item.item_type != ITEM_TYPE_PRODUCT:
                continue
            product = session.get(Product, item.product_id)
            if product is not None and product.tracks_stock:
                increment_stock(session, item.product_id, item.quantity)

        return sale.cash_register_id

    try:
        cash_register_id = run_in_transaction(_op)
    except CommerceError as exc:
        current_app.logger.warning("Sale %s removal rejected: %s", sale_id, exc)
        raise

    current_app.logger.info("Sale %s removed (register=%s)", sale_id, cash_register_id)
    return db.session.get(Sale, sale_id).to_dict()


def get_sale_items(sale_id: int) -> list[SaleItem]:
    return db.session.query(SaleItem).filter_by(sale_id=sale_id).order_by(SaleItem.id).all()


def get_sale_payments(sale_id: int) -> list[SalePayment]:
    return db.session.query(SalePayment).filter_by(sale_id=sale_id).order_by(SalePayment.id).all()


def _hydrate(sale: Sale) -> dict:
    items = get_sale_items(sale.id)
    payments = get_sale_payments(sale.id)
    total_paid = sum(p.amount_cents for p in payments)
    return {
        "sale": sale.to_dict(),
        "items": [item.to_dict() for item in items],
        "payments": [payment.to_dict() for payment in payments],
        "total_paid_cents": total_paid,
        "change_cents": total_paid - sale.total_cents,
    }


def get_sale(sale_id: int) -> dict:
    """Sale with its items and payments."""
    sale = db.session.get(Sale, sale_id)
    if sale is None or sale.deleted_at is not None:
        raise ResourceNotFound("Sale", sale_id)
    return _hydrate(sale)


def list_sales(
    day: date_type | None = None,
    *,
    cash_register_id: int | None = None,
) -> list[dict]:
    """
    Sales newest first, optionally restricted to one local calendar day
    (REPORT_TIMEZONE) and/or one cash register.
    """
    query = db.session.query(Sale).filter(Sale.deleted_at.is_(None))

    if day is not None:
        start, end = local_day_bounds(day, current_app.config["REPORT_TIMEZONE"])
        query = query.filter(Sale.created_at >= start, Sale.created_at < end)
    if cash_register_id is not None:
        query = query.filter(Sale.cash_register_id == cash_register_id)

    return [_hydrate(sale) for sale in query.order_by(Sale.created_at.desc(), Sale.id.desc()).all()]
