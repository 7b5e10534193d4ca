import pytest

from stockpos.errors import InsufficientStockError, NotFoundError, ReferencedError, ValidationError
from stockpos.extensions import db
from stockpos.models import Product
from stockpos.services import catalog_service
from stockpos.services.audit_service import list_audit_events
from stockpos.services.ledger_service import LineDraft, SaleHeader, append_sale


def _sell(product, quantity=1):
    return append_sale(
        SaleHeader(payment_method="money", total_cents=product.price_cents * quantity),
        [LineDraft(product.id, product.name, quantity, product.price_cents, product.price_cents * quantity)],
    )


def test_create_product_stamps_owner_and_defaults(db_session, make_product):
    p = make_product(name="Arroz 5kg", price_cents=2790, stock_quantity=40)

    assert p.id is not None
    assert p.owner_id == "test-user"
    assert p.is_active is True
    assert p.min_stock_level == 5
    assert p.to_dict()["price"] == "27.90"

    events = list_audit_events(entity_type="product", entity_id=p.id)
    assert [e.event_type for e in events] == ["product.created"]


def test_update_product_keeps_id_and_owner(db_session, make_product):
    p = make_product()
    updated = catalog_service.update_product(
        product_id=p.id, patch={"name": "Cafe Torrado 500g", "price_cents": 1690}, actor_id="someone-else"
    )
    assert updated.id == p.id
    assert updated.owner_id == "test-user"
    assert updated.name == "Cafe Torrado 500g"
    assert updated.price_cents == 1690


def test_update_product_stock_goes_through_adjustment(db_session, make_product):
    p = make_product(stock_quantity=10)
    catalog_service.update_product(product_id=p.id, patch={"stock_quantity": 3})

    db.session.expire_all()
    assert db.session.get(Product, p.id).stock_quantity == 3
    types = [e.event_type for e in list_audit_events(entity_type="product", entity_id=p.id)]
    assert "stock.adjusted" in types


def test_update_missing_product(db_session):
    with pytest.raises(NotFoundError):
        catalog_service.update_product(product_id=999, patch={"name": "x"})


def test_adjust_stock_applies_delta(db_session, make_product):
    p = make_product(stock_quantity=10)
    catalog_service.adjust_stock(p.id, -4)
    catalog_service.adjust_stock(p.id, 6)

    db.session.expire_all()
    assert db.session.get(Product, p.id).stock_quantity == 12


def test_adjust_stock_never_goes_negative(db_session, make_product):
    p = make_product(stock_quantity=2)
    with pytest.raises(InsufficientStockError) as exc:
        catalog_service.adjust_stock(p.id, -3)
    db.session.rollback()

    assert exc.value.details == {"product_id": p.id, "requested": 3, "available": 2, "shortfall": 1}
    assert db.session.get(Product, p.id).stock_quantity == 2


def test_adjust_stock_rejects_non_integer_delta(db_session, make_product):
    p = make_product()
    with pytest.raises(ValidationError):
        catalog_service.adjust_stock(p.id, 1.5)


def test_adjust_stock_missing_product(db_session):
    with pytest.raises(NotFoundError):
        catalog_service.adjust_stock(12345, 1)
    db.session.rollback()


def test_list_products_filters(db_session, make_product):
    make_product(name="Banana", stock_quantity=0, category="Frutas")
    make_product(name="abacaxi", stock_quantity=3, category="Frutas")
    gone = make_product(name="Cenoura", stock_quantity=5)
    catalog_service.delete_product(product_id=gone.id)

    names = [p["name"] for p in catalog_service.list_products()["items"]]
    assert names == ["Banana", "abacaxi"]

    in_stock = catalog_service.list_products(only_in_stock=True)
    assert [p["name"] for p in in_stock["items"]] == ["abacaxi"]

    searched = catalog_service.list_products(search="FRUT")
    assert searched["count"] == 2

    everything = catalog_service.list_products(include_inactive=True)
    assert everything["count"] == 3


def test_list_products_paginates(db_session, make_product):
    for i in range(5):
        make_product(name=f"Item {i}")
    page = catalog_service.list_products(page=2, per_page=2)
    assert [p["name"] for p in page["items"]] == ["Item 2", "Item 3"]
    assert page["pagination"]["total"] == 5
    assert page["pagination"]["total_pages"] == 3
    assert page["pagination"]["has_next"] is True


def test_soft_delete_is_default(db_session, make_product):
    p = make_product()
    assert catalog_service.delete_product(product_id=p.id) == "soft"
    assert catalog_service.get_product(p.id).is_active is False


def test_hard_delete_unreferenced_product(db_session, make_product):
    p = make_product()
    assert catalog_service.delete_product(product_id=p.id, hard=True) == "hard"
    with pytest.raises(NotFoundError):
        catalog_service.get_product(p.id)


def test_hard_delete_refused_when_referenced(db_session, make_product):
    p = make_product()
    _sell(p)

    with pytest.raises(ReferencedError):
        catalog_service.delete_product(product_id=p.id, hard=True)

    assert catalog_service.get_product(p.id).is_active is True


def test_low_stock_products(db_session, make_product):
    make_product(name="Leite", stock_quantity=4)
    make_product(name="Cafe", stock_quantity=5)
    make_product(name="Arroz", stock_quantity=40)
    make_product(name="Sabao", stock_quantity=1, min_stock_level=0)

    assert [p.name for p in catalog_service.low_stock_products()] == ["Cafe", "Leite"]
