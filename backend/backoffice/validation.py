# Overview: Payload validation against model metadata plus small domain rule checks.

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .time_utils import parse_iso_datetime


# Largest accepted money amount: NT$9,999,999.99
MAX_PRICE_CENTS = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (duplicate code, read-only row)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    return {c.key: c for c in model.__mapper__.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Strict integers: no floats, no scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or "e" in stripped.lower() or "." in stripped:
                raise ValidationError(f"{col.key} must be a plain integer")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Float):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a number")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{col.key} must be a number")
        if not math.isfinite(number):
            raise ValidationError(f"{col.key} must be a finite number")
        return number

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

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
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
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
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_cents(patch: dict, field: str) -> None:
    if field in patch and patch[field] is not None:
        value = patch[field]
        if value < 0:
            raise ValidationError(f"{field} must be >= 0")
        if value > MAX_PRICE_CENTS:
            raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS}")


def enforce_rules_product(patch: dict) -> None:
    """Business rules for products not captured by column metadata."""
    if "alcohol_percentage" in patch:
        abv = patch["alcohol_percentage"]
        if abv < 0 or abv > 100:
            raise ValidationError("alcohol_percentage must be between 0 and 100")
    if "volume_ml" in patch and patch["volume_ml"] <= 0:
        raise ValidationError("volume_ml must be > 0")


def enforce_rules_variant(patch: dict) -> None:
    for field in ("cost_price_cents", "investor_price_cents", "actual_price_cents"):
        _check_cents(patch, field)
    for field in ("available_stock", "reserved_stock"):
        if field in patch and patch[field] < 0:
            raise ValidationError(f"{field} must be >= 0")


def enforce_rules_sale_item(patch: dict, partial: bool = False) -> None:
    if not partial or "quantity" in patch:
        if patch.get("quantity") is None or patch["quantity"] <= 0:
            raise ValidationError("quantity must be > 0")
    _check_cents(patch, "unit_price_cents")
    _check_cents(patch, "actual_unit_price_cents")


def enforce_rules_cashflow(patch: dict) -> None:
    if "type" in patch and patch["type"] not in ("INCOME", "EXPENSE"):
        raise ValidationError("type must be INCOME or EXPENSE")
    if "funding_source" in patch and patch["funding_source"] not in ("INVESTOR", "PERSONAL"):
        raise ValidationError("funding_source must be INVESTOR or PERSONAL")
    if "amount_cents" in patch:
        if patch["amount_cents"] <= 0:
            raise ValidationError("amount_cents must be > 0")
        _check_cents(patch, "amount_cents")
