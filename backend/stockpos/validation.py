from __future__ import annotations
from datetime import datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError, EmptyCartError
from .money import MAX_PRICE_CENTS, to_cents
from .models import PAYMENT_METHODS
from .time_utils import parse_iso_datetime

# Decimal aliases accepted from the POS front-end, mapped to cents columns.
MONEY_ALIASES = {"price": "price_cents", "cost_price": "cost_price_cents"}

NON_NEGATIVE_PRODUCT_FIELDS = ("price_cents", "cost_price_cents", "stock_quantity", "min_stock_level")

# Upper bound for stock counts, thresholds, stock deltas and cart quantities.
MAX_STOCK_QUANTITY = 1_000_000_000
STOCK_FIELDS = ("stock_quantity", "min_stock_level")

# Ids beyond a signed 64-bit INTEGER can never match a row.
MAX_ID = 2**63 - 1

MAX_CART_LINES = 500


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class Cart:
    lines: tuple[CartLine, ...]
    payment_method: str


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    # Reject floats explicitly
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
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

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def _apply_money_aliases(payload: dict) -> dict:
    """Translate decimal "price"/"cost_price" into their cents columns."""
    out = dict(payload)
    for alias, column in MONEY_ALIASES.items():
        if alias not in out:
            continue
        raw = out.pop(alias)
        if column in out:
            raise ValidationError(f"Send either {alias} or {column}, not both")
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            out[column] = None
            continue
        try:
            out[column] = to_cents(raw)
        except ValueError:
            raise ValidationError(f"{alias} must be a decimal number")
    return out


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

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    payload = _apply_money_aliases(payload)

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for field in NON_NEGATIVE_PRODUCT_FIELDS:
        if field in patch and patch[field] is not None and patch[field] < 0:
            raise ValidationError(f"{field} must be >= 0")

    for field in ("price_cents", "cost_price_cents"):
        if field in patch and patch[field] is not None and patch[field] > MAX_PRICE_CENTS:
            raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS}")

    for field in STOCK_FIELDS:
        if field in patch and patch[field] is not None and patch[field] > MAX_STOCK_QUANTITY:
            raise ValidationError(f"{field} cannot exceed {MAX_STOCK_QUANTITY}")


def validate_stock_delta(delta) -> None:
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("delta must be an integer")
    if abs(delta) > MAX_STOCK_QUANTITY:
        raise ValidationError(f"delta must be between -{MAX_STOCK_QUANTITY} and {MAX_STOCK_QUANTITY}")


def parse_cart(payload: Any) -> Cart:
    """
    Shape-check a checkout request body.

    Accepts {items: [{productId|product_id, quantity}], paymentMethod|payment_method}.
    Duplicate product ids are merged, keeping the first position.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    items = payload.get("items")
    if items is None:
        raise EmptyCartError()
    if not isinstance(items, list):
        raise ValidationError("items must be a list")
    if not items:
        raise EmptyCartError()
    if len(items) > MAX_CART_LINES:
        raise ValidationError(f"Cart cannot exceed {MAX_CART_LINES} lines")

    payment_method = payload.get("paymentMethod", payload.get("payment_method"))
    payment_method = validate_payment_method(payment_method)

    merged: dict[int, int] = {}
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        raw_product_id = item.get("productId", item.get("product_id"))
        if raw_product_id is None:
            raise ValidationError(f"items[{index}].productId is required")
        if "quantity" not in item:
            raise ValidationError(f"items[{index}].quantity is required")
        product_id = coerce_int(f"items[{index}].productId", raw_product_id)
        quantity = coerce_int(f"items[{index}].quantity", item["quantity"])
        if quantity <= 0:
            raise ValidationError(f"items[{index}].quantity must be > 0")
        if quantity > MAX_STOCK_QUANTITY:
            raise ValidationError(f"items[{index}].quantity cannot exceed {MAX_STOCK_QUANTITY}")
        if not 0 < product_id <= MAX_ID:
            raise ValidationError(f"items[{index}].productId is out of range")
        merged[product_id] = merged.get(product_id, 0) + quantity

    return Cart(
        lines=tuple(CartLine(product_id=pid, quantity=qty) for pid, qty in merged.items()),
        payment_method=payment_method,
    )


def validate_payment_method(value: Any, *, required: bool = True) -> str | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError("paymentMethod is required")
        return None
    if not isinstance(value, str) or value.strip() not in PAYMENT_METHODS:
        raise ValidationError(f"paymentMethod must be one of: {', '.join(PAYMENT_METHODS)}")
    return value.strip()
