# Overview: Existence lookups for the collaborator records (users, customers, suppliers, catalog).

"""
Directory lookups

Users, customers, suppliers and the catalog are maintained elsewhere. The
commerce services only need to know that a referenced row exists and has
not been soft-deleted; these helpers raise ResourceNotFound otherwise.
"""

from __future__ import annotations

from flask import current_app

from papeleria.extensions import db
from papeleria.errors import ResourceNotFound, ValidationError
from papeleria.models import User, Customer, Supplier, Product, Service
from papeleria.models.catalog import PRODUCT_TYPE_PHYSICAL, PRODUCT_TYPE_SERVICE, PRODUCT_TYPES


def _require(model, ident: int, resource_type: str, *, require_active: bool = True):
    row = db.session.get(model, ident)
    if row is None or row.deleted_at is not None:
        raise ResourceNotFound(resource_type, ident)
    if require_active and not row.is_active:
        raise ResourceNotFound(resource_type, ident)
    return row


def require_user(user_id: int) -> User:
    return _require(User, user_id, "User")


def require_customer(customer_id: int) -> Customer:
    return _require(Customer, customer_id, "Customer")


def require_supplier(supplier_id: int) -> Supplier:
    return _require(Supplier, supplier_id, "Supplier")


def require_product(product_id: int, *, require_active: bool = True) -> Product:
    return _require(Product, product_id, "Product", require_active=require_active)


def require_service(service_id: int) -> Service:
    return _require(Service, service_id, "Service")


def create_user(username: str, first_name: str | None = None, last_name: str | None = None) -> User:
    user = User(username=username, first_name=first_name, last_name=last_name)
    db.session.add(user)
    db.session.commit()
    return user


def create_customer(first_name: str, last_name: str | None = None, document_number: str | None = None) -> Customer:
    customer = Customer(first_name=first_name, last_name=last_name, document_number=document_number)
    db.session.add(customer)
    db.session.commit()
    return customer


def create_supplier(name: str, tax_id: str | None = None) -> Supplier:
    supplier = Supplier(name=name, tax_id=tax_id)
    db.session.add(supplier)
    db.session.commit()
    return supplier


def create_product(
    name: str,
    price_cents: int,
    *,
    stock: int = 0,
    min_stock: int | None = None,
    cost_cents: int | None = None,
    product_type: str = PRODUCT_TYPE_PHYSICAL,
    sku: str | None = None,
    category_id: int | None = None,
    category_name: str | None = None,
) -> Product:
    """
    Register a catalog product with its initial stock.

    SERVICE-type products never carry stock.
    """
    if product_type not in PRODUCT_TYPES:
        raise ValidationError(f"type must be one of {list(PRODUCT_TYPES)}")
    if stock < 0:
        raise ValidationError("stock must be >= 0")
    if product_type == PRODUCT_TYPE_SERVICE:
        stock = 0
    if min_stock is None:
        min_stock = current_app.config.get("DEFAULT_MIN_STOCK", 10)

    product = Product(
        name=name,
        sku=sku,
        price_cents=price_cents,
        cost_cents=cost_cents,
        stock=stock,
        min_stock=min_stock,
        category_id=category_id,
        category_name=category_name,
        type=product_type,
    )
    db.session.add(product)
    db.session.commit()
    return product


def create_service(name: str, price_cents: int, description: str | None = None) -> Service:
    service = Service(name=name, price_cents=price_cents, description=description)
    db.session.add(service)
    db.session.commit()
    return service
