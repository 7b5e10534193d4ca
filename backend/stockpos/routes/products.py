# Overview: Flask API routes for catalog operations; parses input and returns JSON responses.

# backend/stockpos/routes/products.py
"""
Product management routes.

All routes require an authenticated caller; the caller id is stamped as
owner on create and recorded as actor on every write.
"""
from flask import Blueprint, request
from ..services import catalog_service
from ..models import Product
from ..validation import ModelValidationPolicy, validate_payload, coerce_int
from ..identity import require_auth, current_user_id
from . import query_flag

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "description",
        "price_cents",
        "cost_price_cents",
        "stock_quantity",
        "min_stock_level",
        "category",
        "barcode",
        "unit",
        "is_active",
    },
    required_on_create={"name", "price_cents"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    List products ordered by name.

    Query params:
    - search: str (optional) - substring of name, category or barcode
    - inStock: bool (optional) - only products with stock > 0
    - includeInactive: bool (optional) - include soft-deleted products
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    return catalog_service.list_products(
        search=request.args.get("search"),
        only_in_stock=query_flag("inStock", "in_stock"),
        include_inactive=query_flag("includeInactive", "include_inactive"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@products_bp.get("/low-stock")
@require_auth
def low_stock():
    products = catalog_service.low_stock_products()
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/<int:product_id>")
@require_auth
def get_product(product_id: int):
    return catalog_service.get_product(product_id).to_dict()


@products_bp.post("")
@require_auth
def create_product_route():
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    created = catalog_service.upsert_product(patch, actor_id=current_user_id())
    return created.to_dict(), 201


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    updated = catalog_service.upsert_product(patch, product_id=product_id, actor_id=current_user_id())
    return updated.to_dict(), 200


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    """
    Remove a product.

    Soft-delete by default. ?hard=true deletes the row and is refused
    with 409 when sales reference the product.
    """
    mode = catalog_service.delete_product(
        product_id=product_id,
        hard=query_flag("hard"),
        actor_id=current_user_id(),
    )
    return {"ok": True, "mode": mode}, 200


@products_bp.post("/<int:product_id>/adjust-stock")
@require_auth
def adjust_stock_route(product_id: int):
    """Restock or correct stock through the atomic adjustment path."""
    payload = request.get_json(silent=True) or {}
    if "delta" not in payload:
        return {"error": "delta is required", "code": "validation_error", "details": {}}, 400
    delta = coerce_int("delta", payload["delta"])
    product = catalog_service.adjust_stock_with_retry(product_id, delta, actor_id=current_user_id())
    return product.to_dict(), 200
