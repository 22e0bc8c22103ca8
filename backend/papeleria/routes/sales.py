# Overview: Flask API routes for sales; parses input and returns JSON responses.

"""Sales API routes"""

from datetime import date

from flask import Blueprint, request, jsonify, current_app

from papeleria.errors import CommerceError, ValidationError
from papeleria.routes import commerce_error_response, json_body, positive_int_arg
from papeleria.services import sales_service
from papeleria.validation import parse_sale_request


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/")
@sales_bp.post("")
def create_sale_route():
    """
    Record a complete sale: items, payments and stock movement in one call.

    Request body:
    {
        "user_id": 1,
        "cash_register_id": 3,                (optional)
        "customer_id": 7,                     (optional)
        "invoice_number": "F-0001",           (optional)
        "tax_amount_cents": 0,                (optional)
        "discount_cents": 0,                  (optional)
        "items": [
            {"item_type": "product", "product_id": 5, "quantity": 2, "unit_price_cents": 1500},
            {"item_type": "service", "service_id": 1, "quantity": 1, "unit_price_cents": 500}
        ],
        "payments": [
            {"method": "CASH", "amount_cents": 2000},
            {"method": "CARD", "amount_cents": 1500, "voucher_number": "V-123"}
        ]
    }
    """
    try:
        kwargs = parse_sale_request(json_body())
        sale = sales_service.create_sale(**kwargs)
        return jsonify(sale), 201

    except CommerceError as exc:
        return commerce_error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/")
@sales_bp.get("")
def list_sales_route():
    """
    List sales newest first.

    Query params: date=YYYY-MM-DD (local day), cash_register_id
    """
    raw_day = request.args.get("date")
    day = None
    if raw_day:
        try:
            day = date.fromisoformat(raw_day)
        except ValueError:
            return commerce_error_response(ValidationError("date must be YYYY-MM-DD"))

    try:
        sales = sales_service.list_sales(day, cash_register_id=positive_int_arg("cash_register_id"))
        return jsonify({"sales": sales}), 200
    except CommerceError as exc:
        return commerce_error_response(exc)


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        return jsonify(sales_service.get_sale(sale_id)), 200
    except CommerceError as exc:
        return commerce_error_response(exc)


@sales_bp.delete("/<int:sale_id>")
def delete_sale_route(sale_id: int):
    """
    Remove a sale: it leaves every report and its product units return to stock.
    Refused once the sale's cash register has been closed.
    """
    try:
        sale = sales_service.remove_sale(sale_id)
        return jsonify({"sale": sale}), 200

    except CommerceError as exc:
        return commerce_error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500
