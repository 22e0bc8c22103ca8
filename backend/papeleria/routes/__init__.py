# Overview: Shared helpers for the JSON blueprints.

from __future__ import annotations

from flask import jsonify, request

from papeleria.errors import CommerceError, ValidationError


def commerce_error_response(exc: CommerceError):
    """Translate a business error into its JSON body and status code."""
    return jsonify(exc.to_dict()), exc.status_code


def json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


def positive_int_arg(name: str, default: int | None = None) -> int | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")
    if value < 1:
        raise ValidationError(f"{name} must be >= 1")
    return value
