"""
Cash Register Session Service

WHY: Cashier accountability. Each session has an opening float, receives the
cash tendered on the sales attributed to it, and is closed with a counted
float and a reconciliation difference.

DESIGN PRINCIPLES:
- One OPEN session per user at a time (unique partial index + check)
- Sessions are immutable once closed; only soft-deletion follows
- expected = opening + cash payments on the register's sales; computed from
  the same sale_payments rows the sales service writes
- difference = closing - expected
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from papeleria.extensions import db
from papeleria.errors import (
    CannotDeleteOpenSession,
    ResourceNotFound,
    SessionAlreadyClosed,
    SessionAlreadyOpen,
)
from papeleria.models import CashRegister, Sale, SalePayment
from papeleria.models.registers import REGISTER_STATUS_CLOSED, REGISTER_STATUS_OPEN
from papeleria.models.sales import PAYMENT_CASH, SALE_STATUS_COMPLETED
from papeleria.time_utils import utcnow
from papeleria.validation import require_cents
from papeleria.services.concurrency import run_in_transaction
from papeleria.services.directory_service import require_user


# =============================================================================
# SESSION LIFECYCLE
# =============================================================================

def _current_row(session, register_id: int):
    # Fresh read that bypasses the identity map
    return session.execute(
        select(
            CashRegister.id,
            CashRegister.status,
            CashRegister.opening_amount_cents,
            CashRegister.deleted_at,
        ).where(CashRegister.id == register_id)
    ).first()


def open_register(user_id: int, opening_amount_cents: int, notes: str | None = None) -> CashRegister:
    """
    Open a cash register session for a user.

    Args:
        user_id: Cashier opening the session
        opening_amount_cents: Starting float in the drawer (in cents)
        notes: Optional opening notes

    Raises:
        ResourceNotFound: user does not exist
        SessionAlreadyOpen: the user already has an OPEN session
    """
    opening = require_cents(opening_amount_cents, "opening_amount_cents")

    def _op(session):
        require_user(user_id)

        existing_open = session.query(CashRegister).filter_by(
            user_id=user_id,
            status=REGISTER_STATUS_OPEN,
        ).first()
        if existing_open:
            raise SessionAlreadyOpen(
                "User already has an open cash register. Close it before opening a new one.",
                details={"user_id": user_id, "cash_register_id": existing_open.id},
            )

        register = CashRegister(
            user_id=user_id,
            status=REGISTER_STATUS_OPEN,
            opening_amount_cents=opening,
            opened_at=utcnow(),
            notes=notes,
        )
        session.add(register)
        session.flush()
        return register

    try:
        register = run_in_transaction(_op)
    except IntegrityError as exc:
        # Only a concurrent open for the same user (unique partial index) is
        # a SessionAlreadyOpen; any other violation propagates as is.
        winner = get_user_open_register(user_id)
        if winner is None:
            raise
        raise SessionAlreadyOpen(
            "User already has an open cash register. Close it before opening a new one.",
            details={"user_id": user_id, "cash_register_id": winner.id},
        ) from exc

    current_app.logger.info(
        "Cash register %s opened (user=%s, opening=%s)", register.id, user_id, opening
    )
    return register


def close_register(register_id: int, closing_amount_cents: int, notes: str | None = None) -> CashRegister:
    """
    Close a session and freeze its reconciliation figures.

    IMMUTABLE: Once closed, the session cannot be reopened or modified.

    The OPEN -> CLOSED transition is a guarded UPDATE issued before the cash
    is summed, so the sum is read while this transaction holds the
    register's write lock. A sale on the register either committed before
    the close (and is counted) or fails with RegisterNotOpen.

    Returns:
        Closed register with expected_amount_cents and difference_cents set

    Raises:
        ResourceNotFound: register does not exist
        SessionAlreadyClosed: register is already CLOSED
    """
    closing = require_cents(closing_amount_cents, "closing_amount_cents")

    def _op(session):
        result = session.execute(
            update(CashRegister)
            .where(
                CashRegister.id == register_id,
                CashRegister.status == REGISTER_STATUS_OPEN,
                CashRegister.deleted_at.is_(None),
            )
            .values(
                status=REGISTER_STATUS_CLOSED,
                closed_at=utcnow(),
                closing_amount_cents=closing,
                version_id=CashRegister.version_id + 1,
            )
            .execution_options(synchronize_session=False)
        )
        row = _current_row(session, register_id)
        if result.rowcount != 1:
            if row is None or row.deleted_at is not None:
                raise ResourceNotFound("CashRegister", register_id)
            raise SessionAlreadyClosed(
                "Cash register is already closed",
                details={"cash_register_id": register_id},
            )

        expected = row.opening_amount_cents + cash_payments_total(register_id)
        values = {
            "expected_amount_cents": expected,
            "difference_cents": closing - expected,
        }
        if notes:
            values["notes"] = notes
        session.execute(
            update(CashRegister)
            .where(CashRegister.id == register_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    run_in_transaction(_op)
    register = db.session.get(CashRegister, register_id)

    current_app.logger.info(
        "Cash register %s closed (expected=%s, closing=%s, difference=%s)",
        register.id, register.expected_amount_cents, closing, register.difference_cents,
    )
    return register


def remove_register(register_id: int) -> CashRegister:
    """
    Soft-delete a CLOSED session.

    Raises:
        ResourceNotFound: register does not exist
        CannotDeleteOpenSession: register is still OPEN
    """
    def _op(session):
        result = session.execute(
            update(CashRegister)
            .where(
                CashRegister.id == register_id,
                CashRegister.status == REGISTER_STATUS_CLOSED,
                CashRegister.deleted_at.is_(None),
            )
            .values(deleted_at=utcnow(), version_id=CashRegister.version_id + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return

        row = _current_row(session, register_id)
        if row is None or row.deleted_at is not None:
            raise ResourceNotFound("CashRegister", register_id)
        raise CannotDeleteOpenSession(
            "Cannot delete an open cash register. Close it first.",
            details={"cash_register_id": register_id},
        )

    run_in_transaction(_op)
    current_app.logger.info("Cash register %s removed", register_id)
    return db.session.get(CashRegister, register_id)


# =============================================================================
# QUERIES
# =============================================================================

def get_register(register_id: int) -> CashRegister:
    register = db.session.get(CashRegister, register_id)
    if register is None or register.deleted_at is not None:
        raise ResourceNotFound("CashRegister", register_id)
    return register


def list_registers(status: str | None = None) -> list[CashRegister]:
    """All non-deleted sessions, most recently opened first."""
    query = db.session.query(CashRegister).filter(CashRegister.deleted_at.is_(None))
    if status:
        query = query.filter(CashRegister.status == status.upper())
    return query.order_by(CashRegister.opened_at.desc(), CashRegister.id.desc()).all()


def list_open_registers() -> list[CashRegister]:
    return list_registers(REGISTER_STATUS_OPEN)


def get_user_open_register(user_id: int) -> CashRegister | None:
    """The user's OPEN session, if any."""
    return db.session.query(CashRegister).filter_by(
        user_id=user_id,
        status=REGISTER_STATUS_OPEN,
    ).first()


def cash_payments_total(register_id: int) -> int:
    """Sum of CASH payments on the completed, non-deleted sales of a register."""
    total = db.session.query(
        func.coalesce(func.sum(SalePayment.amount_cents), 0)
    ).join(
        Sale, Sale.id == SalePayment.sale_id
    ).filter(
        Sale.cash_register_id == register_id,
        Sale.status == SALE_STATUS_COMPLETED,
        Sale.deleted_at.is_(None),
        SalePayment.payment_method == PAYMENT_CASH,
    ).scalar()
    return int(total or 0)


def compute_expected_amount(register: CashRegister) -> int:
    """
    Expected drawer cash: frozen value once CLOSED, live figure while OPEN.
    """
    if register.status == REGISTER_STATUS_CLOSED and register.expected_amount_cents is not None:
        return register.expected_amount_cents
    return register.opening_amount_cents + cash_payments_total(register.id)


def register_to_dict(register: CashRegister) -> dict:
    """Serialized session with expected amount filled in for OPEN sessions."""
    data = register.to_dict()
    data["expected_amount_cents"] = compute_expected_amount(register)
    if register.is_open:
        data["difference_cents"] = None
    return data
