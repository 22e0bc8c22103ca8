# Overview: Flask API routes for supplier purchases; parses input and returns JSON responses.

from flask import Blueprint, jsonify, current_app

from papeleria.errors import CommerceError
from papeleria.routes import commerce_error_response, json_body, positive_int_arg
from papeleria.services import purchase_service
from papeleria.validation import parse_purchase_request


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("/")
@purchases_bp.post("")
def create_purchase_route():
    """
    Receive a supplier purchase and increment stock.

    Request body:
    {
        "supplier_id": 1,
        "user_id": 1,
        "invoice_number": "PROV-778",          (optional)
        "purchase_date": "2025-01-15T10:00Z",  (optional)
        "details": [
            {"product_id": 5, "quantity": 24, "unit_cost_cents": 800}
        ]
    }
    """
    try:
        kwargs = parse_purchase_request(json_body())
        purchase = purchase_service.create_purchase(**kwargs)
        return jsonify(purchase), 201

    except CommerceError as exc:
        return commerce_error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to create purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("/")
@purchases_bp.get("")
def list_purchases_route():
    try:
        purchases = purchase_service.list_purchases(supplier_id=positive_int_arg("supplier_id"))
        return jsonify({"purchases": purchases}), 200
    except CommerceError as exc:
        return commerce_error_response(exc)


@purchases_bp.get("/<int:purchase_id>")
def get_purchase_route(purchase_id: int):
    try:
        return jsonify(purchase_service.get_purchase(purchase_id)), 200
    except CommerceError as exc:
        return commerce_error_response(exc)


@purchases_bp.delete("/<int:purchase_id>")
def delete_purchase_route(purchase_id: int):
    """Remove a purchase and take its units back out of stock."""
    try:
        purchase = purchase_service.remove_purchase(purchase_id)
        return jsonify({"purchase": purchase}), 200

    except CommerceError as exc:
        return commerce_error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to delete purchase")
        return jsonify({"error": "Internal server error"}), 500
