# Overview: Read-only aggregation over the sale ledger and catalog.

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func

from ..errors import ValidationError
from ..extensions import db
from ..models import Product, Sale, SaleLineItem
from ..money import cents_to_str
from ..time_utils import start_of_day, to_utc_z, utcnow
from .catalog_service import low_stock_products
from .ledger_service import iter_sales_in_window
"""
Aggregation semantics

- Windows are half-open [start, end), UTC.
- Catalog figures (total_products, low_stock_count) are snapshots of the
  active catalog, independent of the window.
- Daily series leave gaps: days without sales are not emitted.
- Top products: descending quantity; ties keep first-encountered order,
  scanning sales oldest first.
- Nothing here writes. Results may lag a concurrent checkout.
"""

PERIOD_DAYS = {"today": 0, "7d": 7, "30d": 30}


class ReportError(ValidationError):
    """Raised when report parameters are invalid."""


def _check_window(start: datetime | None, end: datetime | None) -> None:
    if start is not None and end is not None and end < start:
        raise ReportError("end must not be before start")


def _window_filter(query, start, end):
    if start is not None:
        query = query.filter(Sale.created_at >= start)
    if end is not None:
        query = query.filter(Sale.created_at < end)
    return query


def resolve_period(period: str, now: datetime | None = None) -> tuple[datetime, datetime]:
    """
    Map a dashboard period to a window.

    today -> [start of today, start of tomorrow)
    7d    -> [start of the day 7 days ago, start of tomorrow)
    30d   -> [start of the day 30 days ago, start of tomorrow)
    """
    if period not in PERIOD_DAYS:
        raise ReportError(f"period must be one of: {', '.join(PERIOD_DAYS)}")
    now = now or utcnow()
    today = start_of_day(now)
    return today - timedelta(days=PERIOD_DAYS[period]), today + timedelta(days=1)


def catalog_snapshot() -> dict:
    active = db.session.query(Product).filter(Product.is_active.is_(True))
    total_products = active.count()
    low_stock_count = active.filter(Product.stock_quantity <= Product.min_stock_level).count()
    return {"total_products": total_products, "low_stock_count": low_stock_count}


def period_summary(start: datetime | None, end: datetime | None) -> dict:
    _check_window(start, end)

    row = _window_filter(
        db.session.query(
            func.count(Sale.id).label("sales_count"),
            func.coalesce(func.sum(Sale.total_cents), 0).label("sales_total_cents"),
        ),
        start,
        end,
    ).one()

    sales_total_cents = int(row.sales_total_cents or 0)
    summary = {
        "start": to_utc_z(start),
        "end": to_utc_z(end),
        "sales_count": int(row.sales_count or 0),
        "sales_total_cents": sales_total_cents,
        "sales_total": cents_to_str(sales_total_cents),
    }
    summary.update(catalog_snapshot())
    return summary


def daily_revenue_series(start: datetime | None, end: datetime | None) -> list[dict]:
    _check_window(start, end)

    totals: dict = {}
    for sale in iter_sales_in_window(start, end):
        day = sale.created_at.date()
        totals[day] = totals.get(day, 0) + sale.total_cents

    return [
        {"date": day.isoformat(), "total_cents": cents, "total": cents_to_str(cents)}
        for day, cents in sorted(totals.items())
    ]


def top_products_by_quantity(start: datetime | None, end: datetime | None, limit: int = 5) -> list[dict]:
    _check_window(start, end)
    if limit < 0:
        raise ReportError("limit must be >= 0")

    query = _window_filter(
        db.session.query(SaleLineItem).join(Sale, SaleLineItem.sale_id == Sale.id),
        start,
        end,
    ).order_by(Sale.created_at.asc(), Sale.id.asc(), SaleLineItem.id.asc())

    # dicts keep insertion order, which is the first-encountered order
    quantities: dict[int, int] = {}
    names: dict[int, str] = {}
    for line in query.all():
        quantities[line.product_id] = quantities.get(line.product_id, 0) + line.quantity
        names.setdefault(line.product_id, line.display_name)

    ranked = sorted(quantities.items(), key=lambda item: item[1], reverse=True)  # stable
    return [
        {"product_id": product_id, "product_name": names[product_id], "total_quantity": qty}
        for product_id, qty in ranked[:limit]
    ]


def dashboard(period: str = "7d", *, now: datetime | None = None, top_limit: int = 5, recent_limit: int = 5) -> dict:
    """Everything the overview screen shows for one period."""
    now = now or utcnow()
    start, end = resolve_period(period, now)
    today_start, today_end = resolve_period("today", now)

    summary = period_summary(start, end)
    today = period_summary(today_start, today_end)

    recent = (
        _window_filter(db.session.query(Sale), start, end)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(recent_limit)
        .all()
    )

    alerts = []
    if summary["low_stock_count"] > 0:
        alerts.append(f"{summary['low_stock_count']} products at or below minimum stock")
    if period == "today" and today["sales_count"] == 0:
        alerts.append("No sales recorded today yet")

    return {
        "period": period,
        "summary": summary,
        "today": {
            "sales_count": today["sales_count"],
            "sales_total_cents": today["sales_total_cents"],
            "sales_total": today["sales_total"],
        },
        "daily_revenue": daily_revenue_series(start, end),
        "top_products": top_products_by_quantity(start, end, top_limit),
        "recent_sales": [sale.to_dict() for sale in recent],
        "low_stock": [p.to_dict() for p in low_stock_products()],
        "alerts": alerts,
    }
