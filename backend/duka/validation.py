from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text

from duka.money import MAX_AMOUNT, quantize, to_decimal


class ValidationError(ValueError):
    """400-level input problem."""


# Legacy and alternate field names seen from older clients, mapped to the one
# name each operation understands.
FIELD_ALIASES = {
    "mpesa_code": "payment_reference",
    "reference": "payment_reference",
    "stock": "stock_quantity",
    "min_stock": "low_stock_threshold",
    "paid_amount": "amount_paid",
    "remaining_amount": "balance",
}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


def to_snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub(r"_\1", key).lower()


def normalize_keys(payload: Any) -> dict:
    """
    Collapse camelCase / legacy field names into snake_case canonical names.

    If both spellings of a field are sent, the canonical (snake_case) one wins.
    """
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    normalized: dict = {}
    explicit: set[str] = set()
    for raw_key, value in payload.items():
        key = to_snake_case(str(raw_key))
        key = FIELD_ALIASES.get(key, key)
        is_canonical = raw_key == key
        if key in normalized and key in explicit and not is_canonical:
            continue
        normalized[key] = value
        if is_canonical:
            explicit.add(key)
    return normalized


# =============================================================================
# SCALAR COERCION
# =============================================================================

_PLAIN_INT = re.compile(r"^[+-]?\d+$")


def parse_int(field: str, value: Any) -> int:
    """Whole numbers only: 3, "3" and 3.0 pass; 2.5, "1e3", "2.0" and booleans do not."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and _PLAIN_INT.match(value.strip()):
        return int(value.strip())
    raise ValidationError(f"{field} must be an integer")


def parse_money(field: str, value: Any) -> Decimal:
    try:
        amount = to_decimal(value)
    except ValueError:
        raise ValidationError(f"{field} must be a number")
    amount = quantize(amount)
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT}")
    return amount


def parse_text(field: str, value: Any, *, max_length: int | None = None) -> str | None:
    """Strip a text field; blank becomes None."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def require_text(field: str, value: Any, *, max_length: int | None = None) -> str:
    text = parse_text(field, value, max_length=max_length)
    if text is None:
        raise ValidationError(f"{field} is required")
    return text


# =============================================================================
# MODEL-DRIVEN PATCH VALIDATION
# =============================================================================

@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which columns a route lets clients write.

    writable_fields is the allowlist; anything else in the body is refused.
    required_on_create only applies when partial=False.
    """
    writable_fields: frozenset[str] | set[str]
    required_on_create: frozenset[str] | set[str] = frozenset()


def _coerce_value(col, value: Any):
    """Turn a JSON value into what the column stores, by column type."""
    coltype = col.type
    if isinstance(coltype, Integer):
        return parse_int(col.key, value)
    if isinstance(coltype, Numeric):
        return parse_money(col.key, value)
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in _TRUE_STRINGS | _FALSE_STRINGS:
            return value.strip().lower() in _TRUE_STRINGS
        raise ValidationError(f"{col.key} must be true or false")
    if isinstance(coltype, (String, Text)):
        text = str(value).strip()
        if isinstance(coltype, String) and coltype.length and len(text) > coltype.length:
            raise ValidationError(f"{col.key} exceeds max length {coltype.length}")
        return text
    return value


_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off"})


def validate_payload(
    *,
    model,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Check a create/update body against the model's columns and the policy.

    Returns a patch holding only writable columns, each coerced to its column
    type. partial=True is update semantics: only the keys sent are checked.
    """
    payload = normalize_keys(payload)

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    patch: dict = {}
    for key, raw in payload.items():
        if key not in policy.writable_fields or key not in columns:
            raise ValidationError(f"Field not allowed: {key}")
        col = columns[key]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
            continue

        value = _coerce_value(col, raw)
        if value == "" and not col.nullable:
            raise ValidationError(f"{key} cannot be blank")
        patch[key] = value

    return patch


def enforce_rules_product(patch: dict) -> None:
    """Product rules the column types alone do not express."""
    for field in ("price", "cost_price", "stock_quantity", "low_stock_threshold"):
        if patch.get(field) is not None and patch[field] < 0:
            raise ValidationError(f"{field} must be >= 0")


def enforce_rules_expense(patch: dict) -> None:
    if "amount" in patch and (patch["amount"] is None or patch["amount"] <= 0):
        raise ValidationError("amount must be > 0")
