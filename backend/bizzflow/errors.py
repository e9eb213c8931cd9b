# Overview: Domain error taxonomy shared by services and routes.

"""
Error taxonomy for the purchasing core.

Services raise these; routes turn them into JSON responses with
error_response(). Anything that is not a DomainError (for example a
SQLAlchemyError from a lost database connection) is treated by the routes
as a generic internal error.

    NotFoundError      -> 404
    ValidationError    -> 400 (with per-field messages)
    ConflictError      -> 409
    InvalidStateError  -> 400
"""

from __future__ import annotations

from flask import jsonify


class DomainError(Exception):
    """Base class for expected business-rule failures."""

    status_code = 400

    def __init__(self, message: str, *, errors: list[dict] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class NotFoundError(DomainError):
    """Referenced entity id does not resolve."""

    status_code = 404


class ValidationError(DomainError):
    """Malformed or out-of-range input."""

    status_code = 400

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors=[{"field": field, "message": message}])


class ConflictError(DomainError):
    """Uniqueness violation (email, PAN, VAT, order number)."""

    status_code = 409


class InvalidStateError(DomainError):
    """Operation attempted from a status that disallows it."""

    status_code = 400


def error_response(exc: DomainError):
    """Build the (response, status) pair for a domain error."""
    return jsonify(exc.to_dict()), exc.status_code
