from __future__ import annotations

from ..extensions import db
from papeleria.time_utils import to_utc_z

REGISTER_STATUS_OPEN = "OPEN"
REGISTER_STATUS_CLOSED = "CLOSED"


class CashRegister(db.Model):
    """
    One cashier's cash-drawer session.

    LIFECYCLE:
    - OPEN: created by open_register with the starting float
    - CLOSED: closing count recorded, expected amount and difference frozen

    At most one OPEN row per user, enforced by the partial unique index
    below and by the existence check in register_service.open_register.
    Closed rows are never modified again; they may only be soft-deleted.
    """
    __tablename__ = "cash_registers"
    __table_args__ = (
        db.Index(
            "uq_cash_registers_user_open",
            "user_id",
            unique=True,
            sqlite_where=db.text("status = 'OPEN'"),
            postgresql_where=db.text("status = 'OPEN'"),
        ),
        db.Index("ix_cash_registers_status_opened", "status", "opened_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=REGISTER_STATUS_OPEN, index=True)

    # Cash tracking (all amounts in cents)
    opening_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    closing_amount_cents = db.Column(db.Integer, nullable=True)  # Set when closing

    # Frozen at close: opening + cash payments, and closing - expected
    expected_amount_cents = db.Column(db.Integer, nullable=True)
    difference_cents = db.Column(db.Integer, nullable=True)

    opened_at = db.Column(db.DateTime, nullable=False, index=True)
    closed_at = db.Column(db.DateTime, nullable=True)

    notes = db.Column(db.Text, nullable=True)
    deleted_at = db.Column(db.DateTime, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status == REGISTER_STATUS_OPEN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "status": self.status,
            "opening_amount_cents": self.opening_amount_cents,
            "closing_amount_cents": self.closing_amount_cents,
            "expected_amount_cents": self.expected_amount_cents,
            "difference_cents": self.difference_cents,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "notes": self.notes,
            "version_id": self.version_id,
        }
