# Overview: Service-layer operations for product stock; the only write path to Product.stock.

"""
Product stock

Invariants:
- PHYSICAL stock is never negative (also a CHECK constraint on products.stock).
- SERVICE-type products never have stock mutated.
- stock == initial stock + sum(purchase increments) - sum(sale decrements).

Concurrency:
Sales decrement and purchases increment the same column. Both go through a
single UPDATE statement whose guard (``stock >= :qty``) is evaluated by the
database while it holds the row (PostgreSQL) or database (SQLite) write lock.
Two concurrent sales can therefore never both pass the check against the same
pre-decrement value; the loser updates zero rows and gets InsufficientStock.
There is no read-then-write in application code.
"""

from __future__ import annotations

from sqlalchemy import select, update

from papeleria.extensions import db
from papeleria.errors import InsufficientStock, ResourceNotFound, StockNotTracked, ValidationError
from papeleria.models import Product
from papeleria.models.catalog import PRODUCT_TYPE_PHYSICAL


def _check_quantity(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("quantity must be an integer >= 1")


def _current_row(session, product_id: int):
    # Fresh read that bypasses the identity map
    return session.execute(
        select(Product.id, Product.name, Product.type, Product.stock).where(Product.id == product_id)
    ).first()


def decrement_stock(session, product_id: int, quantity: int) -> None:
    """
    Atomically remove ``quantity`` units from a PHYSICAL product.

    Raises:
        ResourceNotFound: product does not exist
        StockNotTracked: product is SERVICE-type
        InsufficientStock: fewer than ``quantity`` units on hand
    """
    _check_quantity(quantity)

    result = session.execute(
        update(Product)
        .where(
            Product.id == product_id,
            Product.type == PRODUCT_TYPE_PHYSICAL,
            Product.stock >= quantity,
        )
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return

    row = _current_row(session, product_id)
    if row is None:
        raise ResourceNotFound("Product", product_id)
    if row.type != PRODUCT_TYPE_PHYSICAL:
        raise StockNotTracked(
            f"Product {row.name} is a service and has no stock",
            details={"product_id": product_id},
        )
    raise InsufficientStock(
        f"Insufficient stock for {row.name}. Available: {row.stock}, requested: {quantity}",
        details={
            "product_id": product_id,
            "name": row.name,
            "available": row.stock,
            "requested": quantity,
        },
    )


def increment_stock(session, product_id: int, quantity: int) -> None:
    """
    Atomically add ``quantity`` units to a PHYSICAL product. No upper bound.

    Raises:
        ResourceNotFound: product does not exist
        StockNotTracked: product is SERVICE-type
    """
    _check_quantity(quantity)

    result = session.execute(
        update(Product)
        .where(
            Product.id == product_id,
            Product.type == PRODUCT_TYPE_PHYSICAL,
        )
        .values(stock=Product.stock + quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return

    row = _current_row(session, product_id)
    if row is None:
        raise ResourceNotFound("Product", product_id)
    raise StockNotTracked(
        f"Product {row.name} is a service and has no stock",
        details={"product_id": product_id},
    )


def get_stock(product_id: int) -> int:
    """Committed on-hand quantity for a product."""
    row = _current_row(db.session, product_id)
    if row is None:
        raise ResourceNotFound("Product", product_id)
    return int(row.stock)


def is_low_stock(product: Product) -> bool:
    return product.type == PRODUCT_TYPE_PHYSICAL and product.stock <= product.min_stock


def low_stock_query():
    return db.session.query(Product).filter(
        Product.type == PRODUCT_TYPE_PHYSICAL,
        Product.is_active.is_(True),
        Product.deleted_at.is_(None),
        Product.stock <= Product.min_stock,
    )


def low_stock_products() -> list[Product]:
    """Active PHYSICAL products at or below their minimum stock, scarcest first."""
    return low_stock_query().order_by(Product.stock.asc(), Product.name.asc()).all()


def count_low_stock_products() -> int:
    return low_stock_query().count()
