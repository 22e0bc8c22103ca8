from __future__ import annotations

from ..extensions import db
from papeleria.time_utils import to_utc_z

SALE_STATUS_COMPLETED = "COMPLETED"
SALE_STATUS_CANCELLED = "CANCELLED"

ITEM_TYPE_PRODUCT = "product"
ITEM_TYPE_SERVICE = "service"

ITEM_TYPES = (ITEM_TYPE_PRODUCT, ITEM_TYPE_SERVICE)

# Payment methods accepted at the counter
PAYMENT_CASH = "CASH"
PAYMENT_TRANSFER = "TRANSFER"
PAYMENT_CARD = "CARD"
PAYMENT_NEQUI = "NEQUI"
PAYMENT_DAVIPLATA = "DAVIPLATA"

PAYMENT_METHODS = (
    PAYMENT_CASH,
    PAYMENT_TRANSFER,
    PAYMENT_CARD,
    PAYMENT_NEQUI,
    PAYMENT_DAVIPLATA,
)


class Sale(db.Model):
    """
    Sale header.

    total_cents is always the sum of the item subtotals. tax_amount_cents and
    discount_cents are informational components already contained in the
    line prices; they are never added to or subtracted from the total.

    Items and payments are written only by sales_service.create_sale, in the
    same unit of work as the header.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_status_created", "status", "created_at"),
        db.Index("ix_sales_register_status", "cash_register_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    cash_register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=True, index=True)

    invoice_number = db.Column(db.String(64), nullable=True)

    # All amounts in cents
    total_cents = db.Column(db.Integer, nullable=False)
    tax_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_COMPLETED, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, index=True)
    deleted_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "customer_id": self.customer_id,
            "cash_register_id": self.cash_register_id,
            "invoice_number": self.invoice_number,
            "total_cents": self.total_cents,
            "tax_amount_cents": self.tax_amount_cents,
            "discount_cents": self.discount_cents,
            "status": self.status,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "deleted_at": to_utc_z(self.deleted_at),
        }


class SaleItem(db.Model):
    """One sold line; references exactly one of product_id / service_id."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint(
            "(product_id IS NOT NULL AND service_id IS NULL) OR "
            "(product_id IS NULL AND service_id IS NOT NULL)",
            name="ck_sale_items_one_reference",
        ),
        db.CheckConstraint("quantity >= 1", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)

    item_type = db.Column(db.String(16), nullable=False, default=ITEM_TYPE_PRODUCT)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=True, index=True)

    # Snapshot of the catalog name at sale time
    name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    @property
    def item_id(self) -> int:
        return self.product_id if self.item_type == ITEM_TYPE_PRODUCT else self.service_id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "item_type": self.item_type,
            "product_id": self.product_id,
            "service_id": self.service_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
        }


class SalePayment(db.Model):
    """
    Tender applied to a sale. Split payments are several rows on one sale.

    voucher_number carries card/datafono vouchers; reference_number carries
    bank transfer and wallet (Nequi/Daviplata) references.
    """
    __tablename__ = "sale_payments"
    __table_args__ = (
        db.Index("ix_sale_payments_method", "payment_method"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)

    payment_method = db.Column(db.String(16), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)

    voucher_number = db.Column(db.String(128), nullable=True)
    reference_number = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "payment_method": self.payment_method,
            "amount_cents": self.amount_cents,
            "voucher_number": self.voucher_number,
            "reference_number": self.reference_number,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
