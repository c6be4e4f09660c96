# Overview: Domain error taxonomy shared by the services, and its HTTP mapping.

"""
Domain errors.

Services raise these from inside their transaction; the transaction helper
rolls back and re-raises them unchanged. Routes turn them into JSON responses
with domain_error_response(). The status codes live here and nowhere else.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for failures the caller can act on."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(DomainError):
    """Referenced product, sale, debt, expense or user does not exist."""
    status_code = 404


class InsufficientStockError(DomainError):
    """Requested quantity exceeds the product's on-hand quantity."""
    status_code = 409


class InvalidAmountError(DomainError):
    """Amount is not positive, or would overpay a debt."""
    status_code = 400


class InvalidStateError(DomainError):
    """Operation not permitted in the entity's current state."""
    status_code = 409


class ConstraintError(DomainError):
    """The store would reject the write (e.g. deleting a product that has sales)."""
    status_code = 409


def domain_error_response(exc: DomainError) -> tuple[dict, int]:
    body = {"error": exc.message}
    if exc.details:
        body["details"] = exc.details
    return body, exc.status_code
