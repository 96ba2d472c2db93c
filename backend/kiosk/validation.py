from __future__ import annotations
from datetime import datetime
import math

from dataclasses import dataclass
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .time_utils import parse_iso_datetime


# Upper bound for any single price or purchase price (single currency, whole units)
MAX_PRICE = 9_999_999


class ValidationError(ValueError):
    """400-level input problem."""


class InvalidArgument(ValidationError):
    """A pure computation was called outside its domain (negative stock, markup <= 0, ...)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - aliases: camelCase keys the kiosk UI sends, mapped to column keys
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    aliases: dict[str, str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_number(key: str, value: Any) -> float:
    """Accept int/float or a numeric string; reject bools, NaN and infinities."""
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be a number")
        try:
            number = float(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be a number")
    else:
        raise ValidationError(f"{key} must be a number")
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{key} must be a finite number")
    return number


def coerce_int(key: str, value: Any) -> int:
    """Strict integer: rejects floats, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Float):
        return coerce_number(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, JSON):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValidationError(f"{col.key} must be a list of strings")
        return list(value)

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    This is the single place where optional values from the wire are
    normalised; services and models never re-default them.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    aliases = policy.aliases or {}
    payload = {aliases.get(k, k): v for k, v in payload.items()}

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) is None)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "" and k in required:
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_price(key: str, value, *, allow_zero: bool) -> None:
    if value is None:
        return
    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError(f"{key} must be greater than 0" if not allow_zero else f"{key} must be >= 0")
    if value > MAX_PRICE:
        raise ValidationError(f"{key} cannot exceed {MAX_PRICE:,}")


def enforce_rules_product(patch: dict, *, has_variants: bool) -> None:
    """
    Product form rules:
    - name must be provided
    - without variants: price > 0 and stock >= 0
    - purchase_price never negative
    """
    if "name" in patch and not (patch["name"] or "").strip():
        raise ValidationError("Product name must be provided")

    if not has_variants:
        if "price" in patch:
            _check_price("price", patch["price"], allow_zero=False)
        if "stock" in patch and patch["stock"] is not None and patch["stock"] < 0:
            raise ValidationError("stock must be a non-negative integer")

    if "purchase_price" in patch:
        _check_price("purchase_price", patch["purchase_price"], allow_zero=True)


def enforce_rules_variant(patch: dict) -> None:
    """Every variant needs a name, a price > 0 and stock >= 0."""
    if not (patch.get("name") or "").strip():
        raise ValidationError("All variants must have a name")
    _check_price("variant price", patch.get("price") or 0, allow_zero=False)
    if (patch.get("stock") or 0) < 0:
        raise ValidationError("Variant stock must be a non-negative integer")
    if "purchase_price" in patch:
        _check_price("variant purchase_price", patch["purchase_price"], allow_zero=True)


def enforce_rules_customer(patch: dict) -> None:
    from .models import CUSTOMER_ROLES

    if "name" in patch and not (patch["name"] or "").strip():
        raise ValidationError("Customer name must be provided")
    if "role" in patch and patch["role"] not in CUSTOMER_ROLES:
        raise ValidationError(f"role must be one of {', '.join(CUSTOMER_ROLES)}")
    if patch.get("email") == "":
        patch["email"] = None
