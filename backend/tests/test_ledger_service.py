from datetime import datetime

import pytest

from stockpos.errors import NotFoundError, ValidationError
from stockpos.extensions import db
from stockpos.models import Sale, SaleLineItem
from stockpos.services import ledger_service
from stockpos.services.ledger_service import LineDraft, SaleHeader, append_sale


def _line(product_id, quantity, unit_price_cents, name="Item"):
    return LineDraft(
        product_id=product_id,
        product_name=name,
        quantity=quantity,
        unit_price_cents=unit_price_cents,
        line_total_cents=quantity * unit_price_cents,
    )


def test_append_sale_writes_header_and_lines(db_session, make_product):
    p = make_product(price_cents=1550)
    sale = append_sale(SaleHeader(payment_method="pix", total_cents=3100, user_id="u1"), [_line(p.id, 2, 1550)])

    assert sale.document_number == "S-000001"
    assert sale.total_cents == sum(line.line_total_cents for line in sale.lines)
    data = sale.to_dict()
    assert data["total_amount"] == "31.00"
    assert data["items"][0]["unit_price"] == "15.50"
    assert data["items"][0]["total_price"] == "31.00"


def test_document_numbers_increase(db_session):
    first = append_sale(SaleHeader(payment_method="money", total_cents=100), [_line(1, 1, 100)])
    second = append_sale(SaleHeader(payment_method="money", total_cents=100), [_line(1, 1, 100)])
    assert (first.document_number, second.document_number) == ("S-000001", "S-000002")


def test_append_sale_rejects_mismatched_total(db_session):
    with pytest.raises(ValidationError):
        append_sale(SaleHeader(payment_method="money", total_cents=999), [_line(1, 2, 100)])
    assert db.session.query(Sale).count() == 0


def test_append_sale_rejects_mismatched_line_total(db_session):
    bad = LineDraft(product_id=1, product_name="x", quantity=2, unit_price_cents=100, line_total_cents=150)
    with pytest.raises(ValidationError):
        append_sale(SaleHeader(payment_method="money", total_cents=150), [bad])


def test_append_sale_requires_lines(db_session):
    with pytest.raises(ValidationError):
        append_sale(SaleHeader(payment_method="money", total_cents=0), [])


def test_get_sale_not_found(db_session):
    with pytest.raises(NotFoundError):
        ledger_service.get_sale(42)


def test_line_for_removed_product_renders_placeholder(db_session):
    sale = append_sale(SaleHeader(payment_method="money", total_cents=500), [_line(9999, 1, 500, name=None)])
    item = ledger_service.get_sale(sale.id).to_dict()["items"][0]
    assert item["product_name"] == "Removed product"
    assert item["product_removed"] is True


def test_list_sales_window_is_half_open_and_newest_first(db_session):
    for day, cents in ((1, 1000), (2, 1500), (3, 700)):
        append_sale(
            SaleHeader(payment_method="money", total_cents=cents, created_at=datetime(2026, 3, day, 12)),
            [_line(1, 1, cents)],
        )

    result = ledger_service.list_sales(start=datetime(2026, 3, 1), end=datetime(2026, 3, 3, 12))
    assert [s["total_cents"] for s in result["items"]] == [1500, 1000]
    assert result["total_cents"] == 2500


def test_list_sales_filters_payment_method(db_session):
    append_sale(SaleHeader(payment_method="money", total_cents=100), [_line(1, 1, 100)])
    append_sale(SaleHeader(payment_method="credit_card", total_cents=200), [_line(1, 1, 200)])

    result = ledger_service.list_sales(payment_method="credit_card")
    assert result["count"] == 1
    assert result["items"][0]["payment_method"] == "credit_card"


def test_list_sales_rejects_inverted_window(db_session):
    with pytest.raises(ValidationError):
        ledger_service.list_sales(start=datetime(2026, 3, 2), end=datetime(2026, 3, 1))


def test_lines_are_written_with_the_sale(db_session):
    sale = append_sale(
        SaleHeader(payment_method="money", total_cents=350),
        [_line(1, 1, 100), _line(2, 5, 50)],
    )
    assert db.session.query(SaleLineItem).filter_by(sale_id=sale.id).count() == 2
