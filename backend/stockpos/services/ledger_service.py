# Overview: Sale ledger; append-only storage of committed sales and their line items.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Sale, SaleLineItem, PAYMENT_METHODS, SALE_STATUSES
from ..time_utils import utcnow
from .audit_service import append_audit_event
from .catalog_service import paginate
from .document_service import next_document_number
"""
Sale Ledger Invariants

- A sale and its line items are written as one unit; nothing is visible
  until the surrounding transaction commits.
- total_cents == sum(line_total_cents), checked here at append time.
- line_total_cents == quantity * unit_price_cents for every line.
- No updates or deletes of committed sales are exposed.
- Windows are half-open: start <= created_at < end.
"""


@dataclass(frozen=True)
class SaleHeader:
    payment_method: str
    total_cents: int
    user_id: str | None = None
    status: str = "completed"
    created_at: datetime | None = None


@dataclass(frozen=True)
class LineDraft:
    product_id: int
    product_name: str | None
    quantity: int
    unit_price_cents: int
    line_total_cents: int


def _reconcile(header: SaleHeader, lines: list[LineDraft]) -> None:
    if not lines:
        raise ValidationError("A sale needs at least one line item")
    if header.payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"Unknown payment method: {header.payment_method}")
    if header.status not in SALE_STATUSES:
        raise ValidationError(f"Unknown sale status: {header.status}")

    for line in lines:
        if line.quantity <= 0:
            raise ValidationError("Line quantity must be > 0", details={"product_id": line.product_id})
        if line.unit_price_cents < 0:
            raise ValidationError("Line unit price must be >= 0", details={"product_id": line.product_id})
        if line.line_total_cents != line.quantity * line.unit_price_cents:
            raise ValidationError(
                "Line total does not match quantity x unit price",
                details={"product_id": line.product_id},
            )

    lines_total = sum(line.line_total_cents for line in lines)
    if header.total_cents != lines_total:
        raise ValidationError(
            "Sale total does not match its line items",
            details={"total_cents": header.total_cents, "lines_total_cents": lines_total},
        )


def append_sale(header: SaleHeader, lines: list[LineDraft], *, commit: bool = True) -> Sale:
    """
    Create a sale and its line items as a single unit.

    commit=False flushes only, so the checkout engine can commit the sale
    together with its stock decrements.
    """
    _reconcile(header, lines)

    created_at = header.created_at or utcnow()
    sale = Sale(
        document_number=next_document_number(document_type="SALE", prefix="S"),
        total_cents=header.total_cents,
        payment_method=header.payment_method,
        status=header.status,
        user_id=header.user_id,
        created_at=created_at,
    )
    db.session.add(sale)
    db.session.flush()

    for draft in lines:
        sale.lines.append(
            SaleLineItem(
                product_id=draft.product_id,
                product_name=draft.product_name,
                quantity=draft.quantity,
                unit_price_cents=draft.unit_price_cents,
                line_total_cents=draft.line_total_cents,
                created_at=created_at,
            )
        )
    db.session.flush()

    append_audit_event(
        event_type="sale.completed",
        entity_type="sale",
        entity_id=sale.id,
        actor_id=header.user_id,
        occurred_at=created_at,
        note=f"Sale {sale.document_number} total_cents={sale.total_cents} lines={len(lines)}",
    )

    if commit:
        db.session.commit()
    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.query(Sale).filter(Sale.id == sale_id).first()
    if sale is None:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    return sale


def _filtered_query(start: datetime | None, end: datetime | None, payment_method: str | None):
    query = db.session.query(Sale)
    if start is not None:
        query = query.filter(Sale.created_at >= start)
    if end is not None:
        query = query.filter(Sale.created_at < end)
    if payment_method:
        query = query.filter(Sale.payment_method == payment_method)
    return query


def list_sales(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    payment_method: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Sales in [start, end), newest first, with nested line items.

    The returned dict carries the filtered total so history screens do not
    have to sum a single page client-side.
    """
    if start is not None and end is not None and end < start:
        raise ValidationError("end must not be before start")

    query = _filtered_query(start, end, payment_method).order_by(Sale.created_at.desc(), Sale.id.desc())

    total_cents = int(
        _filtered_query(start, end, payment_method)
        .with_entities(func.coalesce(func.sum(Sale.total_cents), 0))
        .scalar()
        or 0
    )

    if page is None:
        sales = query.all()
        result = {"items": [s.to_dict() for s in sales], "count": len(sales)}
    else:
        result = paginate(query, page=page, per_page=per_page, serialize=lambda s: s.to_dict())

    result["total_cents"] = total_cents
    return result


def iter_sales_in_window(start: datetime | None, end: datetime | None) -> list[Sale]:
    """Sales in [start, end) oldest first; scan order for aggregation."""
    return (
        _filtered_query(start, end, None)
        .order_by(Sale.created_at.asc(), Sale.id.asc())
        .all()
    )
