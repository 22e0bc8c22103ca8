# Overview: Flask API routes for cash register sessions; parses input and returns JSON responses.

"""
Cash Register API Routes

Shift lifecycle: open -> close (immutable once closed) -> optional removal.
The acting user is taken from the request body; authentication is handled
outside this service.
"""

from flask import Blueprint, request, jsonify, current_app

from papeleria.errors import CommerceError
from papeleria.routes import commerce_error_response, json_body, positive_int_arg
from papeleria.services import register_service
from papeleria.services.register_service import register_to_dict
from papeleria.validation import optional_text, require_cents, require_id


registers_bp = Blueprint("cash_registers", __name__, url_prefix="/api/cash-registers")


@registers_bp.post("/open")
def open_register_route():
    """
    Open a cash register session.

    Request body:
    {
        "user_id": 1,
        "opening_amount_cents": 10000,
        "notes": "Morning shift"  (optional)
    }
    """
    try:
        data = json_body()
        register = register_service.open_register(
            user_id=require_id(data.get("user_id"), "user_id"),
            opening_amount_cents=require_cents(data.get("opening_amount_cents"), "opening_amount_cents"),
            notes=optional_text(data.get("notes"), "notes", 1000),
        )
        return jsonify({"cash_register": register_to_dict(register)}), 201

    except CommerceError as exc:
        return commerce_error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to open cash register")
        return jsonify({"error": "Internal server error"}), 500


@registers_bp.post("/<int:register_id>/close")
def close_register_route(register_id: int):
    """
    Close a session with the counted cash.

    Request body:
    {
        "closing_amount_cents": 25000,
        "notes": "End of shift"  (optional)
    }
    """
    try:
        data = json_body()
        register = register_service.close_register(
            register_id,
            closing_amount_cents=require_cents(data.get("closing_amount_cents"), "closing_amount_cents"),
            notes=optional_text(data.get("notes"), "notes", 1000),
        )
        return jsonify({"cash_register": register_to_dict(register)}), 200

    except CommerceError as exc:
        return commerce_error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to close cash register")
        return jsonify({"error": "Internal server error"}), 500


@registers_bp.get("/")
@registers_bp.get("")
def list_registers_route():
    status = request.args.get("status")
    registers = register_service.list_registers(status)
    return jsonify({"cash_registers": [register_to_dict(r) for r in registers]}), 200


@registers_bp.get("/open")
def list_open_registers_route():
    """
    Open sessions. With ?user_id= returns that user's open session (or null).
    """
    try:
        user_id = positive_int_arg("user_id")
    except CommerceError as exc:
        return commerce_error_response(exc)

    if user_id is not None:
        register = register_service.get_user_open_register(user_id)
        return jsonify({"cash_register": register_to_dict(register) if register else None}), 200

    registers = register_service.list_open_registers()
    return jsonify({"cash_registers": [register_to_dict(r) for r in registers]}), 200


@registers_bp.get("/<int:register_id>")
def get_register_route(register_id: int):
    try:
        register = register_service.get_register(register_id)
        return jsonify({"cash_register": register_to_dict(register)}), 200
    except CommerceError as exc:
        return commerce_error_response(exc)


@registers_bp.delete("/<int:register_id>")
def delete_register_route(register_id: int):
    try:
        register = register_service.remove_register(register_id)
        return jsonify({"cash_register": register.to_dict()}), 200

    except CommerceError as exc:
        return commerce_error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to delete cash register")
        return jsonify({"error": "Internal server error"}), 500
