import pytest

from stockpos.errors import EmptyCartError, ValidationError
from stockpos.models import Product
from stockpos.time_utils import parse_window_bound
from stockpos.validation import (
    MAX_STOCK_QUANTITY,
    ModelValidationPolicy,
    coerce_int,
    enforce_rules_product,
    parse_cart,
    validate_payload,
    validate_stock_delta,
)
from datetime import datetime


POLICY = ModelValidationPolicy(
    writable_fields={"name", "price_cents", "cost_price_cents", "stock_quantity", "min_stock_level"},
    required_on_create={"name", "price_cents"},
)


def test_parse_cart_accepts_camel_and_snake_case():
    cart = parse_cart({
        "items": [{"productId": 1, "quantity": 2}, {"product_id": "2", "quantity": "3"}],
        "payment_method": "pix",
    })
    assert cart.payment_method == "pix"
    assert [(l.product_id, l.quantity) for l in cart.lines] == [(1, 2), (2, 3)]


def test_parse_cart_merges_duplicate_products_in_first_position():
    cart = parse_cart({
        "items": [
            {"productId": 7, "quantity": 1},
            {"productId": 3, "quantity": 1},
            {"productId": 7, "quantity": 4},
        ],
        "paymentMethod": "money",
    })
    assert [(l.product_id, l.quantity) for l in cart.lines] == [(7, 5), (3, 1)]


@pytest.mark.parametrize("payload", [{"paymentMethod": "money"}, {"items": [], "paymentMethod": "money"}])
def test_parse_cart_empty(payload):
    with pytest.raises(EmptyCartError):
        parse_cart(payload)


@pytest.mark.parametrize("quantity", [0, -1, 1.5, "abc"])
def test_parse_cart_rejects_bad_quantity(quantity):
    with pytest.raises(ValidationError):
        parse_cart({"items": [{"productId": 1, "quantity": quantity}], "paymentMethod": "money"})


def test_parse_cart_rejects_unknown_payment_method():
    with pytest.raises(ValidationError) as exc:
        parse_cart({"items": [{"productId": 1, "quantity": 1}], "paymentMethod": "cheque"})
    assert "paymentMethod" in str(exc.value)


def test_coerce_int_rejects_bool_and_scientific_notation():
    with pytest.raises(ValidationError):
        coerce_int("delta", True)
    with pytest.raises(ValidationError):
        coerce_int("delta", "1e3")
    assert coerce_int("delta", " -4 ") == -4


def test_validate_payload_maps_decimal_price_to_cents(app):
    patch = validate_payload(
        model=Product,
        payload={"name": "  Cafe  ", "price": "15.50", "stock_quantity": "10"},
        policy=POLICY,
        partial=False,
    )
    assert patch == {"name": "Cafe", "price_cents": 1550, "stock_quantity": 10}


def test_validate_payload_missing_required(app):
    with pytest.raises(ValidationError) as exc:
        validate_payload(model=Product, payload={"name": "Cafe"}, policy=POLICY, partial=False)
    assert "price_cents" in str(exc.value)


def test_validate_payload_rejects_non_writable_field(app):
    with pytest.raises(ValidationError):
        validate_payload(model=Product, payload={"owner_id": "x"}, policy=POLICY, partial=True)


def test_enforce_rules_product_rejects_negatives():
    with pytest.raises(ValidationError):
        enforce_rules_product({"stock_quantity": -1})
    with pytest.raises(ValidationError):
        enforce_rules_product({"price_cents": -100})
    enforce_rules_product({"price_cents": 0, "stock_quantity": 0})


def test_date_only_end_bound_includes_whole_day():
    assert parse_window_bound("2026-03-01") == datetime(2026, 3, 1)
    assert parse_window_bound("2026-03-01", is_end=True) == datetime(2026, 3, 2)
    assert parse_window_bound("2026-03-01T10:00:00Z", is_end=True) == datetime(2026, 3, 1, 10)


def test_to_cents_rejects_amounts_beyond_decimal_precision():
    from stockpos.money import to_cents

    with pytest.raises(ValueError):
        to_cents("1e30")
    with pytest.raises(ValueError):
        to_cents("NaN")
    assert to_cents("15.505") == 1551


def test_enforce_rules_product_bounds_stock_fields():
    with pytest.raises(ValidationError):
        enforce_rules_product({"stock_quantity": MAX_STOCK_QUANTITY + 1})
    with pytest.raises(ValidationError):
        enforce_rules_product({"min_stock_level": MAX_STOCK_QUANTITY + 1})
    enforce_rules_product({"stock_quantity": MAX_STOCK_QUANTITY})


def test_validate_stock_delta_bounds():
    validate_stock_delta(-MAX_STOCK_QUANTITY)
    with pytest.raises(ValidationError):
        validate_stock_delta(10**20)
    with pytest.raises(ValidationError):
        validate_stock_delta(True)


def test_parse_cart_rejects_out_of_range_values():
    with pytest.raises(ValidationError):
        parse_cart({"items": [{"productId": 1, "quantity": MAX_STOCK_QUANTITY + 1}], "paymentMethod": "money"})
    with pytest.raises(ValidationError):
        parse_cart({"items": [{"productId": 2**63, "quantity": 1}], "paymentMethod": "money"})
