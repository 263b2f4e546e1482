# Overview: Domain error taxonomy shared by services and routes.

"""
Domain errors.

Services raise these; routes translate them into JSON responses with
`to_dict()` and `status_code`. Anything that is not a DomainError is an
unexpected failure and becomes a logged 500.

    ValidationError           400  malformed or missing input
    ConflictError             400  a state rule was violated
    InsufficientBalanceError  400  investor cannot cover the requested amount
    AuthorizationError        403  caller may not act on the record
    NotFoundError             404  record missing or outside the caller's scope
"""

from __future__ import annotations


class DomainError(Exception):
    status_code = 400
    error_type = "domain_error"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message, "error_type": self.error_type}
        body.update(self.details)
        return body


class ValidationError(DomainError, ValueError):
    """400-level input problem."""
    error_type = "validation_error"


class ConflictError(DomainError, ValueError):
    """Business state conflict (plot already assigned, request not pending...)."""
    error_type = "conflict"


class InsufficientBalanceError(DomainError):
    error_type = "insufficient_balance"

    def __init__(self, investor_name: str, available_cents: int, requested_cents: int):
        super().__init__(
            f"Insufficient balance for investor {investor_name}. "
            f"Available: {available_cents}, Requested: {requested_cents}",
            investor_name=investor_name,
            available_cents=available_cents,
            requested_cents=requested_cents,
        )
        self.investor_name = investor_name
        self.available_cents = available_cents
        self.requested_cents = requested_cents


class AuthorizationError(DomainError):
    status_code = 403
    error_type = "forbidden"


class NotFoundError(DomainError):
    status_code = 404
    error_type = "not_found"
