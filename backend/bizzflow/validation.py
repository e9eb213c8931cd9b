from __future__ import annotations

import re
from typing import Any, Iterable

from .errors import ValidationError


# Maximum money value: 99,999,999,999.99 (9,999,999,999,999 cents)
# This prevents database overflow issues and nonsensical amounts
MAX_AMOUNT_CENTS = 9_999_999_999_999

# Per-line quantity ceiling; keeps quantity inside a 32-bit INTEGER column
MAX_QUANTITY = 1_000_000_000

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class FieldErrors:
    """
    Collects per-field validation messages so a request can report every
    problem at once instead of failing on the first one.

    Usage:
        errors = FieldErrors()
        name = errors.required_str(data, "name")
        ...
        errors.raise_if_any()
    """

    def __init__(self) -> None:
        self.items: list[dict] = []

    def add(self, field: str, message: str) -> None:
        self.items.append({"field": field, "message": message})

    def __bool__(self) -> bool:
        return bool(self.items)

    def raise_if_any(self, message: str = "Validation error") -> None:
        if self.items:
            raise ValidationError(message, errors=list(self.items))

    def required_str(self, data: dict, field: str, *, label: str | None = None) -> str | None:
        value = normalize_str(data.get(field))
        if not value:
            self.add(field, f"{label or field} is required")
            return None
        return value

    def capture(self, func, *args, **kwargs):
        """Run a coercion helper, recording its ValidationError instead of raising."""
        try:
            return func(*args, **kwargs)
        except ValidationError as exc:
            self.items.extend(exc.errors or [{"field": None, "message": exc.message}])
            return None

    def choice(self, value: Any, field: str, allowed: Iterable[str]) -> str | None:
        allowed = tuple(allowed)
        if value not in allowed:
            self.add(field, f"{field} must be one of: {', '.join(allowed)}")
            return None
        return value


def normalize_str(value: Any) -> str | None:
    """Trim strings; empty strings become None."""
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion.

    Rejects booleans, floats with a fractional part, decimals in strings
    and scientific notation.
    """
    if isinstance(value, bool):
        raise ValidationError.for_field(field, f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError.for_field(field, f"{field} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError.for_field(field, f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError.for_field(
                field, f"{field} must be a plain integer (scientific notation not allowed)"
            )
        if "." in stripped:
            raise ValidationError.for_field(field, f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError.for_field(field, f"{field} must be an integer")
    raise ValidationError.for_field(field, f"{field} must be an integer")


def coerce_cents(value: Any, field: str, *, minimum: int = 0) -> int:
    """Coerce a money amount expressed in integer cents and range-check it."""
    cents = coerce_int(value, field)
    if cents < minimum:
        raise ValidationError.for_field(field, f"{field} must be at least {minimum}")
    if cents > MAX_AMOUNT_CENTS:
        raise ValidationError.for_field(field, f"{field} exceeds the maximum allowed amount")
    return cents


def is_valid_email(value: str | None) -> bool:
    return bool(value) and bool(EMAIL_RE.match(value))


def parse_pagination(args, *, default_limit: int = 100, max_limit: int = 500) -> tuple[int, int]:
    """Read and clamp limit/offset query parameters."""
    limit = args.get("limit", default_limit, type=int)
    offset = args.get("offset", 0, type=int)
    if limit is None or limit < 1:
        limit = 1
    if limit > max_limit:
        limit = max_limit
    if offset is None or offset < 0:
        offset = 0
    return limit, offset


def parse_bool_arg(args, name: str, default: bool = False) -> bool:
    raw = args.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}
