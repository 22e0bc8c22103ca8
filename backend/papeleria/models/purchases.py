from __future__ import annotations

from ..extensions import db
from papeleria.time_utils import to_utc_z

PURCHASE_STATUS_RECEIVED = "RECEIVED"


class Purchase(db.Model):
    """
    Supplier purchase. Registering a purchase receives its goods: stock is
    incremented in the same unit of work that writes the header and details.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_date", "purchase_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    invoice_number = db.Column(db.String(64), nullable=True)
    total_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=PURCHASE_STATUS_RECEIVED)

    purchase_date = db.Column(db.DateTime, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False)
    deleted_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "user_id": self.user_id,
            "invoice_number": self.invoice_number,
            "total_cents": self.total_cents,
            "status": self.status,
            "purchase_date": to_utc_z(self.purchase_date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "deleted_at": to_utc_z(self.deleted_at),
        }


class PurchaseDetail(db.Model):
    __tablename__ = "purchase_details"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_purchase_details_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(
        db.Integer, db.ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_cost_cents": self.unit_cost_cents,
            "subtotal_cents": self.subtotal_cents,
        }
