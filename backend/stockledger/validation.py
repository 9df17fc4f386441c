# Overview: Request payload validation driven by SQLAlchemy column metadata.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

# Range of a 32-bit INTEGER column (Postgres int4)
MIN_INT_VALUE = -(2**31)
MAX_INT_VALUE = 2**31 - 1


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    What a route lets clients send for one model:
    - writable_fields: the allow-list; anything else is rejected
    - required_on_create: must be present and non-blank when partial=False
    - raw_fields: passed through untouched for the service layer to check
      (the ledger validates quantity, type and date itself)
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    raw_fields: set[str] = field(default_factory=set)


def _as_int(key: str, value: Any) -> int:
    """Plain integers only: no bools, floats, decimals or exponents."""
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        number = value
    elif isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    elif isinstance(value, str):
        text = value.strip()
        digits = text[1:] if text[:1] in "+-" else text
        if not digits or not (digits.isascii() and digits.isdigit()):
            raise ValidationError(f"{key} must be a plain integer")
        number = int(text)
    else:
        raise ValidationError(f"{key} must be an integer")

    if not MIN_INT_VALUE <= number <= MAX_INT_VALUE:
        raise ValidationError(f"{key} is out of range")
    return number


def _as_text(col, value: Any) -> str:
    text = str(value).strip()
    if not col.nullable and text == "":
        raise ValidationError(f"{col.key} cannot be blank")
    length = getattr(col.type, "length", None)
    if length and len(text) > length:
        raise ValidationError(f"{col.key} exceeds max length {length}")
    return text


def _coerce(col, value: Any):
    if isinstance(col.type, Integer):
        return _as_int(col.key, value)
    if isinstance(col.type, (String, Text)):
        return _as_text(col, value)
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Check a JSON body against the policy and the model's columns and
    return a cleaned patch dict.

    partial=False is create semantics (required fields enforced);
    partial=True validates only the keys that were sent.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}

    patch: dict = {}
    for key, raw in payload.items():
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        if key not in columns:
            raise ValidationError(f"Unknown field: {key}")

        if key in policy.raw_fields:
            patch[key] = raw
            continue

        col = columns[key]
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
            continue

        patch[key] = _coerce(col, raw)

    return patch


def enforce_rules_item(patch: dict) -> None:
    """
    Catalog rules that are not captured by SQLAlchemy metadata alone.
    """
    for key in ("unit_price_cents", "sale_price_cents"):
        price = patch.get(key)
        if price is None:
            continue
        if price < 0:
            raise ValidationError(f"{key} must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")

    if patch.get("reorder_point") is not None and patch["reorder_point"] < 0:
        raise ValidationError("reorder_point must be >= 0")
