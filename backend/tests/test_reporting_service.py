from datetime import datetime

import pytest

from stockpos.services import reporting_service
from stockpos.services.ledger_service import LineDraft, SaleHeader, append_sale


def _sale(product, quantity, created_at, payment_method="money"):
    total = product.price_cents * quantity
    return append_sale(
        SaleHeader(payment_method=payment_method, total_cents=total, created_at=created_at),
        [LineDraft(product.id, product.name, quantity, product.price_cents, total)],
    )


def test_resolve_period_windows():
    now = datetime(2026, 3, 10, 15, 30)
    assert reporting_service.resolve_period("today", now) == (datetime(2026, 3, 10), datetime(2026, 3, 11))
    assert reporting_service.resolve_period("7d", now) == (datetime(2026, 3, 3), datetime(2026, 3, 11))
    assert reporting_service.resolve_period("30d", now) == (datetime(2026, 2, 8), datetime(2026, 3, 11))


def test_resolve_period_rejects_unknown():
    with pytest.raises(reporting_service.ReportError):
        reporting_service.resolve_period("90d")


def test_period_summary_totals(db_session, make_product):
    ten = make_product(name="Ten", price_cents=1000, stock_quantity=10)
    fifteen = make_product(name="Fifteen", price_cents=1500, stock_quantity=10)
    _sale(ten, 1, datetime(2026, 3, 2, 9))
    _sale(fifteen, 1, datetime(2026, 3, 2, 18))

    summary = reporting_service.period_summary(datetime(2026, 3, 1), datetime(2026, 3, 3))

    assert summary["sales_count"] == 2
    assert summary["sales_total_cents"] == 2500
    assert summary["sales_total"] == "25.00"
    assert summary["total_products"] == 2


def test_period_summary_end_is_exclusive(db_session, make_product):
    p = make_product(price_cents=1000)
    _sale(p, 1, datetime(2026, 3, 3, 0, 0))

    summary = reporting_service.period_summary(datetime(2026, 3, 1), datetime(2026, 3, 3))
    assert summary["sales_count"] == 0
    assert summary["sales_total"] == "0.00"


def test_period_summary_rejects_inverted_window(db_session):
    with pytest.raises(reporting_service.ReportError):
        reporting_service.period_summary(datetime(2026, 3, 3), datetime(2026, 3, 1))


def test_low_stock_count_ignores_inactive(db_session, make_product):
    from stockpos.services import catalog_service

    make_product(name="Low", stock_quantity=1)
    gone = make_product(name="Gone", stock_quantity=0)
    make_product(name="Plenty", stock_quantity=50)
    catalog_service.delete_product(product_id=gone.id)

    snapshot = reporting_service.catalog_snapshot()
    assert snapshot == {"total_products": 2, "low_stock_count": 1}


def test_daily_revenue_series_leaves_gaps(db_session, make_product):
    p = make_product(price_cents=1000, stock_quantity=50)
    _sale(p, 1, datetime(2026, 3, 1, 10))
    _sale(p, 2, datetime(2026, 3, 1, 23, 59))
    _sale(p, 1, datetime(2026, 3, 3, 8))

    series = reporting_service.daily_revenue_series(datetime(2026, 3, 1), datetime(2026, 3, 4))

    assert series == [
        {"date": "2026-03-01", "total_cents": 3000, "total": "30.00"},
        {"date": "2026-03-03", "total_cents": 1000, "total": "10.00"},
    ]


def test_top_products_ranks_by_quantity_with_stable_ties(db_session, make_product):
    a = make_product(name="A", price_cents=100, stock_quantity=50)
    b = make_product(name="B", price_cents=100, stock_quantity=50)
    c = make_product(name="C", price_cents=100, stock_quantity=50)

    _sale(b, 2, datetime(2026, 3, 1, 9))
    _sale(a, 2, datetime(2026, 3, 1, 10))
    _sale(c, 5, datetime(2026, 3, 2, 9))

    top = reporting_service.top_products_by_quantity(datetime(2026, 3, 1), datetime(2026, 3, 3), limit=5)
    assert [(t["product_name"], t["total_quantity"]) for t in top] == [("C", 5), ("B", 2), ("A", 2)]

    assert len(reporting_service.top_products_by_quantity(datetime(2026, 3, 1), datetime(2026, 3, 3), limit=1)) == 1


def test_dashboard_shape(db_session, make_product):
    now = datetime(2026, 3, 10, 15)
    p = make_product(name="Cafe", price_cents=1000, stock_quantity=3)
    _sale(p, 1, datetime(2026, 3, 10, 9))
    _sale(p, 1, datetime(2026, 3, 5, 9))

    report = reporting_service.dashboard("7d", now=now)

    assert report["period"] == "7d"
    assert report["summary"]["sales_count"] == 2
    assert report["today"]["sales_count"] == 1
    assert [d["date"] for d in report["daily_revenue"]] == ["2026-03-05", "2026-03-10"]
    assert report["top_products"][0]["product_name"] == "Cafe"
    assert len(report["recent_sales"]) == 2
    assert [p["name"] for p in report["low_stock"]] == ["Cafe"]
    assert report["alerts"]
