from __future__ import annotations

from ..extensions import db
from papeleria.time_utils import to_utc_z, utcnow

PRODUCT_TYPE_PHYSICAL = "PHYSICAL"
PRODUCT_TYPE_SERVICE = "SERVICE"

PRODUCT_TYPES = (PRODUCT_TYPE_PHYSICAL, PRODUCT_TYPE_SERVICE)


class Product(db.Model):
    """
    Catalog product.

    STOCK: ``stock`` is the on-hand quantity of a PHYSICAL product. It is only
    mutated through services.stock_service (single guarded UPDATE statements)
    and is never negative. SERVICE-type products carry stock=0 forever.

    Products are never destroyed; they are deactivated (is_active=False) or
    soft-deleted (deleted_at set).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_type_active", "type", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    sku = db.Column(db.String(64), nullable=True)
    barcode = db.Column(db.String(64), nullable=True, unique=True)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False)
    cost_cents = db.Column(db.Integer, nullable=True)

    stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=10)

    type = db.Column(db.String(16), nullable=False, default=PRODUCT_TYPE_PHYSICAL)

    # Categories are managed by the catalog system; only the reference and a
    # name snapshot are kept here
    category_id = db.Column(db.Integer, nullable=True, index=True)
    category_name = db.Column(db.String(128), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    deleted_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def tracks_stock(self) -> bool:
        return self.type == PRODUCT_TYPE_PHYSICAL

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock} type={self.type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "sku": self.sku,
            "barcode": self.barcode,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "stock": self.stock,
            "min_stock": self.min_stock,
            "type": self.type,
            "category_id": self.category_id,
            "category_name": self.category_name,
            "is_active": self.is_active,
            "is_low_stock": self.tracks_stock and self.stock <= self.min_stock,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Service(db.Model):
    """Priced action without stock (photocopies, printing, lamination)."""
    __tablename__ = "services"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price_cents = db.Column(db.Integer, nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    deleted_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
