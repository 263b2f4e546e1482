# Overview: Strict coercion helpers for JSON request payloads.

from __future__ import annotations

from datetime import date
from typing import Any

from .errors import ValidationError
from .time_utils import parse_iso_date


# Maximum amount: 9,999,999,999.99 (999,999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999_999


def coerce_int(value: Any, field: str, *, required: bool = True) -> int | None:
    """
    Coerce a JSON value to int.

    Rejects bools, floats, decimals and scientific notation so that money
    never silently loses precision.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return None

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def coerce_cents(value: Any, field: str, *, required: bool = True, allow_zero: bool = False) -> int | None:
    cents = coerce_int(value, field, required=required)
    if cents is None:
        return None
    if cents < 0 or (cents == 0 and not allow_zero):
        raise ValidationError(f"{field} must be {'non-negative' if allow_zero else 'positive'}")
    if cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} exceeds maximum allowed amount")
    return cents


def coerce_id_list(value: Any, field: str) -> list[int]:
    """Coerce a list of ids; None -> []. Duplicates are rejected."""
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{field} must be a list of ids")
    ids = [coerce_int(v, field) for v in value]
    if len(set(ids)) != len(ids):
        raise ValidationError(f"{field} contains duplicate ids")
    return ids


def coerce_str(value: Any, field: str, *, required: bool = False, max_length: int | None = None) -> str | None:
    if value is None:
        if required:
            raise ValidationError(f"{field} is required")
        return None
    s = str(value).strip()
    if not s:
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if max_length is not None and len(s) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return s


def coerce_date(value: Any, field: str, *, required: bool = True) -> date | None:
    if isinstance(value, date):
        return value
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO-8601 date")
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date")
