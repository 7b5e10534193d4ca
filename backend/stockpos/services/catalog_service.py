# backend/stockpos/services/catalog_service.py
"""
Catalog Service

Owns product records and the one sanctioned stock mutation path,
adjust_stock(). Checkout enlists adjust_stock(commit=False) in its own
transaction; every other caller lets it commit.
"""
from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import or_, update

from ..errors import InsufficientStockError, NotFoundError, ReferencedError, ValidationError
from ..extensions import db
from ..models import Product, SaleLineItem
from ..validation import enforce_rules_product, validate_stock_delta
from .audit_service import append_audit_event
from .concurrency import begin_immediate, lock_for_update, run_with_retry

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {
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
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS or k == "stock_quantity":
            continue
        setattr(p, k, v)


def get_product(product_id: int) -> Product:
    p = db.session.query(Product).filter(Product.id == product_id).first()
    if p is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return p


def _search_filter(term: str):
    like = f"%{term.lower()}%"
    return or_(
        db.func.lower(Product.name).like(like),
        db.func.lower(db.func.coalesce(Product.category, "")).like(like),
        db.func.lower(db.func.coalesce(Product.barcode, "")).like(like),
    )


def list_products(
    *,
    search: str | None = None,
    only_in_stock: bool = False,
    include_inactive: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing ordered by name, with optional pagination.

    Args:
        search: case-insensitive substring of name, category or barcode
        only_in_stock: hide products with stock_quantity == 0
        include_inactive: include soft-deleted products
        page: Page number (1-indexed). If None, returns all items.
        per_page: Items per page (default 20, max 100)

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product)
    if not include_inactive:
        base_query = base_query.filter(Product.is_active.is_(True))
    if only_in_stock:
        base_query = base_query.filter(Product.stock_quantity > 0)
    if search and search.strip():
        base_query = base_query.filter(_search_filter(search.strip()))

    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    # If no pagination requested, return all items
    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    return paginate(base_query, page=page, per_page=per_page, serialize=lambda p: p.to_dict())


def paginate(query, *, page: int, per_page: int | None, serialize) -> dict:
    per_page = min(per_page or 20, 100)  # Default 20, max 100
    per_page = max(per_page, 1)
    page = max(page, 1)  # Ensure page >= 1

    total = query.order_by(None).count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [serialize(row) for row in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def create_product(*, patch: dict, actor_id: str | None = None) -> Product:
    """Create product from a validated patch dict."""
    enforce_rules_product(patch)
    if not patch.get("name"):
        raise ValidationError("name is required")

    p = Product(owner_id=actor_id)
    apply_product_patch(p, patch)
    # Initial stock is set directly; there is nothing to race with yet.
    p.stock_quantity = patch.get("stock_quantity") or 0
    if patch.get("min_stock_level") is None:
        p.min_stock_level = current_app.config.get("LOW_STOCK_DEFAULT", 5)

    db.session.add(p)
    db.session.flush()  # ensure p.id exists before audit append

    append_audit_event(
        event_type="product.created",
        entity_type="product",
        entity_id=p.id,
        actor_id=actor_id,
        note=f"Created product name={p.name} stock={p.stock_quantity}",
    )

    db.session.commit()
    logger.info("Product %s created by %s", p.id, actor_id)
    return p


def update_product(*, product_id: int, patch: dict, actor_id: str | None = None) -> Product:
    """
    Update a product, preserving id and owner.

    A stock_quantity in the patch is turned into a delta against the value
    read under lock and applied through adjust_stock(), never written blindly.
    """
    enforce_rules_product(patch)

    def _op():
        begin_immediate()
        p = lock_for_update(db.session.query(Product).filter(Product.id == product_id)).first()
        if p is None:
            raise NotFoundError("Product not found", details={"product_id": product_id})

        apply_product_patch(p, patch)
        db.session.flush()

        if patch.get("stock_quantity") is not None:
            delta = patch["stock_quantity"] - p.stock_quantity
            if delta:
                adjust_stock(product_id, delta, actor_id=actor_id, commit=False, note="Stock set by catalog edit")

        append_audit_event(
            event_type="product.updated",
            entity_type="product",
            entity_id=p.id,
            actor_id=actor_id,
            note=f"Updated fields: {', '.join(sorted(patch.keys()))}",
        )
        db.session.commit()
        return p

    return run_with_retry(_op)


def upsert_product(data: dict, *, product_id: int | None = None, actor_id: str | None = None) -> Product:
    """Create when product_id is None, otherwise update in place."""
    if product_id is None:
        return create_product(patch=data, actor_id=actor_id)
    return update_product(product_id=product_id, patch=data, actor_id=actor_id)


def is_referenced(product_id: int) -> bool:
    return (
        db.session.query(SaleLineItem.id)
        .filter(SaleLineItem.product_id == product_id)
        .first()
        is not None
    )


def delete_product(*, product_id: int, hard: bool = False, actor_id: str | None = None) -> str:
    """
    Remove a product from the catalog.

    Default is a soft-delete: the row stays so sale history keeps resolving
    it. hard=True deletes the row, and is refused with ReferencedError when
    any sale line item points at the product.

    Returns "soft" or "hard".
    """
    return run_with_retry(lambda: _delete_product(product_id, hard=hard, actor_id=actor_id))


def _delete_product(product_id: int, *, hard: bool, actor_id: str | None) -> str:
    if hard:
        # Serialize with checkouts so no new line item can appear mid-check.
        begin_immediate()
    p = get_product(product_id)

    if hard:
        if is_referenced(product_id):
            raise ReferencedError(
                "Product is referenced by existing sales; deactivate it instead",
                details={"product_id": product_id},
            )
        db.session.delete(p)
        append_audit_event(
            event_type="product.deleted",
            entity_type="product",
            entity_id=product_id,
            actor_id=actor_id,
            note=f"Hard-deleted product name={p.name}",
        )
        db.session.commit()
        return "hard"

    # Soft-delete only: preserve IDs and historical references.
    if p.is_active:
        p.is_active = False
        append_audit_event(
            event_type="product.deactivated",
            entity_type="product",
            entity_id=p.id,
            actor_id=actor_id,
            note=f"Soft-deleted (is_active=false) product name={p.name}",
        )
    db.session.commit()
    return "soft"


def adjust_stock(
    product_id: int,
    delta: int,
    *,
    actor_id: str | None = None,
    commit: bool = True,
    note: str | None = None,
) -> Product:
    """
    Atomically apply stock_quantity += delta.

    Single conditional UPDATE; the database checks the result is not
    negative, so two concurrent callers can never both take the last unit.
    Zero affected rows means the product is missing or stock is short.

    commit=False leaves the change inside the caller's transaction.
    """
    validate_stock_delta(delta)

    stmt = (
        update(Product)
        .where(Product.id == product_id, Product.stock_quantity + delta >= 0)
        .values(
            stock_quantity=Product.stock_quantity + delta,
            version_id=Product.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)

    product = (
        db.session.query(Product)
        .populate_existing()
        .filter(Product.id == product_id)
        .first()
    )
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})

    if not result.rowcount:
        raise InsufficientStockError(
            product_id=product_id,
            requested=-delta,
            available=product.stock_quantity,
        )

    if delta:
        append_audit_event(
            event_type="stock.adjusted",
            entity_type="product",
            entity_id=product_id,
            actor_id=actor_id,
            note=note or f"delta={delta:+d} stock={product.stock_quantity}",
        )

    if commit:
        db.session.commit()
    return product


def adjust_stock_with_retry(product_id: int, delta: int, *, actor_id: str | None = None) -> Product:
    """Standalone stock correction (restock, shrinkage) with its own transaction."""
    return run_with_retry(lambda: adjust_stock(product_id, delta, actor_id=actor_id, note=f"Manual adjustment {delta:+d}"))


def low_stock_products() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(
            Product.is_active.is_(True),
            Product.stock_quantity <= Product.min_stock_level,
        )
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
