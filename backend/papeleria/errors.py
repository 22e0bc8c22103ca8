# Overview: Typed business errors raised by the commerce services.

"""
Error taxonomy for the commerce engine.

Services raise these; the unit of work rolls back and re-raises; route
handlers translate them to JSON bodies with ``status_code``.

    CommerceError
    ├── ValidationError          400  malformed input
    ├── ResourceNotFound         404  referenced entity absent
    ├── ConflictError            409  duplicate unique state
    │   └── SessionAlreadyOpen
    ├── InsufficientStock        409
    ├── InsufficientPayment      400
    └── InvalidState             409
        ├── SessionAlreadyClosed
        ├── CannotDeleteOpenSession
        ├── RegisterNotOpen
        └── StockNotTracked
"""

from __future__ import annotations


class CommerceError(Exception):
    """Base class for commerce rule violations."""
    code = "COMMERCE_ERROR"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }


class ValidationError(CommerceError):
    """400-level input problem."""
    code = "VALIDATION_ERROR"


class ResourceNotFound(CommerceError):
    code = "RESOURCE_NOT_FOUND"
    status_code = 404

    def __init__(self, resource_type: str, identifier=None):
        if identifier is None:
            message = f"{resource_type} not found"
        else:
            message = f"{resource_type} {identifier} not found"
        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
        )
        self.resource_type = resource_type
        self.identifier = identifier


class ConflictError(CommerceError):
    """409-level business rule conflict (e.g., two open registers for one user)."""
    code = "CONFLICT"
    status_code = 409


class SessionAlreadyOpen(ConflictError):
    code = "SESSION_ALREADY_OPEN"


class InsufficientStock(CommerceError):
    code = "INSUFFICIENT_STOCK"
    status_code = 409


class InsufficientPayment(CommerceError):
    code = "INSUFFICIENT_PAYMENT"


class InvalidState(CommerceError):
    code = "INVALID_STATE"
    status_code = 409


class SessionAlreadyClosed(InvalidState):
    code = "SESSION_ALREADY_CLOSED"


class CannotDeleteOpenSession(InvalidState):
    code = "CANNOT_DELETE_OPEN_SESSION"


class RegisterNotOpen(InvalidState):
    code = "REGISTER_NOT_OPEN"


class StockNotTracked(InvalidState):
    """Stock mutation attempted on a SERVICE-type product."""
    code = "STOCK_NOT_TRACKED"
