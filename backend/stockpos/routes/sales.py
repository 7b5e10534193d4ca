# Overview: Flask API routes for checkout and sale history; parses input and returns JSON responses.

# backend/stockpos/routes/sales.py
"""Checkout and sales history routes"""

from flask import Blueprint, request, jsonify

from ..errors import ValidationError
from ..identity import require_auth, current_user_id
from ..money import cents_to_str
from ..services import checkout_service, ledger_service
from ..time_utils import parse_window_bound
from ..validation import parse_cart, validate_payment_method


sales_bp = Blueprint("sales", __name__, url_prefix="/api")


def _window_from_args() -> tuple:
    try:
        start = parse_window_bound(request.args.get("start"))
        end = parse_window_bound(request.args.get("end"), is_end=True)
    except ValueError:
        raise ValidationError("start and end must be ISO-8601 dates or datetimes")
    return start, end


@sales_bp.post("/checkout")
@require_auth
def checkout_route():
    """
    Check out a cart.

    Body: {items: [{productId, quantity}], paymentMethod}
    Returns 201 {sale} on success; nothing is applied on any error.
    """
    cart = parse_cart(request.get_json(silent=True))

    sale = checkout_service.checkout(cart, actor_id=current_user_id())
    return jsonify({"sale": sale.to_dict()}), 201


@sales_bp.get("/sales")
@require_auth
def list_sales_route():
    """
    Sales history, newest first, with nested line items.

    Query params:
    - start, end: ISO-8601 date or datetime; window is [start, end),
      a date-only end includes that whole day
    - paymentMethod: money | pix | credit_card | debit_card
    - page, per_page: optional pagination
    """
    start, end = _window_from_args()
    payment_method = validate_payment_method(
        request.args.get("paymentMethod", request.args.get("payment_method")),
        required=False,
    )

    result = ledger_service.list_sales(
        start=start,
        end=end,
        payment_method=payment_method,
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    result["total_amount"] = cents_to_str(result["total_cents"])
    return jsonify(result), 200


@sales_bp.get("/sales/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    sale = ledger_service.get_sale(sale_id)
    return jsonify({"sale": sale.to_dict()}), 200
