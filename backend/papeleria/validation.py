from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from papeleria.errors import ValidationError
from papeleria.models.sales import ITEM_TYPE_PRODUCT, ITEM_TYPES, PAYMENT_METHODS
from papeleria.time_utils import parse_iso_datetime


# Maximum amount: 9,999,999,999.99 (999,999,999,999 cents)
# This prevents database overflow issues and nonsensical amounts
MAX_AMOUNT_CENTS = 999_999_999_999


@dataclass(frozen=True)
class SaleLineInput:
    item_type: str
    item_id: int
    quantity: int
    unit_price_cents: int

    @property
    def subtotal_cents(self) -> int:
        return self.quantity * self.unit_price_cents


@dataclass(frozen=True)
class PaymentInput:
    method: str
    amount_cents: int
    voucher_number: str | None = None
    reference_number: str | None = None


@dataclass(frozen=True)
class PurchaseLineInput:
    product_id: int
    quantity: int
    unit_cost_cents: int

    @property
    def subtotal_cents(self) -> int:
        return self.quantity * self.unit_cost_cents


def _coerce_int(value: Any, field: str) -> int:
    # Strict: reject bools, floats and scientific notation
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def require_id(value: Any, field: str) -> int:
    if value is None:
        raise ValidationError(f"{field} is required")
    ident = _coerce_int(value, field)
    if ident < 1:
        raise ValidationError(f"{field} must be a positive identifier")
    return ident


def optional_id(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    return require_id(value, field)


def require_cents(value: Any, field: str) -> int:
    """Non-negative amount in cents."""
    if value is None:
        raise ValidationError(f"{field} is required")
    cents = _coerce_int(value, field)
    if cents < 0:
        raise ValidationError(f"{field} must be >= 0")
    if cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS}")
    return cents


def optional_cents(value: Any, field: str) -> int:
    if value is None:
        return 0
    return require_cents(value, field)


def require_quantity(value: Any, field: str = "quantity") -> int:
    if value is None:
        raise ValidationError(f"{field} is required")
    qty = _coerce_int(value, field)
    if qty < 1:
        raise ValidationError(f"{field} must be >= 1")
    return qty


def optional_text(value: Any, field: str, max_length: int = 128) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def optional_datetime(value: Any, field: str) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 datetime")
    raise ValidationError(f"{field} must be an ISO-8601 datetime")


def _require_list(value: Any, field: str) -> list:
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{field} must be a list")
    if not value:
        raise ValidationError(f"{field} must not be empty")
    return list(value)


def parse_sale_line(raw: Any, index: int) -> SaleLineInput:
    if isinstance(raw, SaleLineInput):
        raw = {
            "item_type": raw.item_type,
            "product_id" if raw.item_type == ITEM_TYPE_PRODUCT else "service_id": raw.item_id,
            "quantity": raw.quantity,
            "unit_price_cents": raw.unit_price_cents,
        }
    if not isinstance(raw, dict):
        raise ValidationError(f"items[{index}] must be an object")

    item_type = (raw.get("item_type") or ITEM_TYPE_PRODUCT).lower()
    if item_type not in ITEM_TYPES:
        raise ValidationError(f"items[{index}].item_type must be one of {list(ITEM_TYPES)}")

    product_id = raw.get("product_id")
    service_id = raw.get("service_id")
    if item_type == ITEM_TYPE_PRODUCT:
        if service_id is not None:
            raise ValidationError(f"items[{index}] is a product line and cannot carry service_id")
        item_id = require_id(product_id, f"items[{index}].product_id")
    else:
        if product_id is not None:
            raise ValidationError(f"items[{index}] is a service line and cannot carry product_id")
        item_id = require_id(service_id, f"items[{index}].service_id")

    return SaleLineInput(
        item_type=item_type,
        item_id=item_id,
        quantity=require_quantity(raw.get("quantity"), f"items[{index}].quantity"),
        unit_price_cents=require_cents(raw.get("unit_price_cents"), f"items[{index}].unit_price_cents"),
    )


def parse_payment(raw: Any, index: int) -> PaymentInput:
    if isinstance(raw, PaymentInput):
        raw = {
            "method": raw.method,
            "amount_cents": raw.amount_cents,
            "voucher_number": raw.voucher_number,
            "reference_number": raw.reference_number,
        }
    if not isinstance(raw, dict):
        raise ValidationError(f"payments[{index}] must be an object")

    method = str(raw.get("method") or "").strip().upper()
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"payments[{index}].method must be one of {list(PAYMENT_METHODS)}")

    return PaymentInput(
        method=method,
        amount_cents=require_cents(raw.get("amount_cents"), f"payments[{index}].amount_cents"),
        voucher_number=optional_text(raw.get("voucher_number"), f"payments[{index}].voucher_number"),
        reference_number=optional_text(raw.get("reference_number"), f"payments[{index}].reference_number"),
    )


def parse_purchase_line(raw: Any, index: int) -> PurchaseLineInput:
    if isinstance(raw, PurchaseLineInput):
        return PurchaseLineInput(
            product_id=require_id(raw.product_id, f"details[{index}].product_id"),
            quantity=require_quantity(raw.quantity, f"details[{index}].quantity"),
            unit_cost_cents=require_cents(raw.unit_cost_cents, f"details[{index}].unit_cost_cents"),
        )
    if not isinstance(raw, dict):
        raise ValidationError(f"details[{index}] must be an object")

    return PurchaseLineInput(
        product_id=require_id(raw.get("product_id"), f"details[{index}].product_id"),
        quantity=require_quantity(raw.get("quantity"), f"details[{index}].quantity"),
        unit_cost_cents=require_cents(raw.get("unit_cost_cents"), f"details[{index}].unit_cost_cents"),
    )


def parse_sale_lines(items: Iterable[Any]) -> list[SaleLineInput]:
    return [parse_sale_line(raw, i) for i, raw in enumerate(_require_list(items, "items"))]


def parse_payments(payments: Iterable[Any]) -> list[PaymentInput]:
    return [parse_payment(raw, i) for i, raw in enumerate(_require_list(payments, "payments"))]


def parse_purchase_lines(details: Iterable[Any]) -> list[PurchaseLineInput]:
    return [parse_purchase_line(raw, i) for i, raw in enumerate(_require_list(details, "details"))]


def parse_sale_request(payload: Any) -> dict:
    """
    Validate a CreateSale JSON body into keyword arguments for
    sales_service.create_sale.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    return {
        "user_id": require_id(payload.get("user_id"), "user_id"),
        "customer_id": optional_id(payload.get("customer_id"), "customer_id"),
        "cash_register_id": optional_id(payload.get("cash_register_id"), "cash_register_id"),
        "invoice_number": optional_text(payload.get("invoice_number"), "invoice_number", 64),
        "tax_amount_cents": optional_cents(payload.get("tax_amount_cents"), "tax_amount_cents"),
        "discount_cents": optional_cents(payload.get("discount_cents"), "discount_cents"),
        "notes": optional_text(payload.get("notes"), "notes", 1000),
        "items": parse_sale_lines(payload.get("items")),
        "payments": parse_payments(payload.get("payments")),
    }


def parse_purchase_request(payload: Any) -> dict:
    """
    Validate a CreatePurchase JSON body into keyword arguments for
    purchase_service.create_purchase.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    return {
        "supplier_id": require_id(payload.get("supplier_id"), "supplier_id"),
        "user_id": require_id(payload.get("user_id"), "user_id"),
        "invoice_number": optional_text(payload.get("invoice_number"), "invoice_number", 64),
        "purchase_date": optional_datetime(payload.get("purchase_date"), "purchase_date"),
        "notes": optional_text(payload.get("notes"), "notes", 1000),
        "details": parse_purchase_lines(payload.get("details")),
    }
