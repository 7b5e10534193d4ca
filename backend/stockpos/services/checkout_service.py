"""
Checkout Service - cart in, committed sale out

WHY: The POS front-end used to insert the sale, then insert each line and
overwrite each product's stock with independent calls. A failure halfway
left stock decremented without a sale, or a sale without its decrements.
Here the whole checkout is one database transaction:

    BEGIN (IMMEDIATE on SQLite, FOR UPDATE row locks elsewhere)
      read products -> validate every line -> price every line
      adjust_stock(-qty) per line -> append_sale
    COMMIT

Any exception rolls back everything written since BEGIN.
"""

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import (
    CheckoutError,
    EmptyCartError,
    InsufficientStockError,
    NotFoundError,
    StockPosError,
    TransactionError,
    ValidationError,
)
from ..extensions import db
from ..models import Product, Sale
from ..validation import Cart, CartLine, validate_payment_method
from .catalog_service import adjust_stock
from .concurrency import begin_immediate, lock_for_update, run_with_retry
from .ledger_service import LineDraft, SaleHeader, append_sale

logger = logging.getLogger(__name__)


def _load_products_locked(product_ids: list[int]) -> dict[int, Product]:
    # Lock rows in id order so two carts never wait on each other in a cycle.
    query = (
        db.session.query(Product)
        .populate_existing()
        .filter(Product.id.in_(product_ids))
        .order_by(Product.id.asc())
    )
    return {p.id: p for p in lock_for_update(query).all()}


def _validate_stock(lines: tuple[CartLine, ...], products: dict[int, Product]) -> None:
    """Read-only pass; raises before anything is written."""
    for line in lines:
        product = products.get(line.product_id)
        if product is None:
            raise NotFoundError("Product not found", details={"product_id": line.product_id})
        if not product.is_active:
            raise ValidationError("Product is no longer sold", details={"product_id": line.product_id})
        if line.quantity > product.stock_quantity:
            raise InsufficientStockError(
                product_id=product.id,
                requested=line.quantity,
                available=product.stock_quantity,
                message=f"Insufficient stock for {product.name}",
            )


def _price_lines(lines: tuple[CartLine, ...], products: dict[int, Product]) -> list[LineDraft]:
    # Prices come from the rows just read, never from the client's cart.
    drafts = []
    for line in lines:
        product = products[line.product_id]
        drafts.append(
            LineDraft(
                product_id=product.id,
                product_name=product.name,
                quantity=line.quantity,
                unit_price_cents=product.price_cents,
                line_total_cents=line.quantity * product.price_cents,
            )
        )
    return drafts


def _checkout_once(cart: Cart, actor_id: str | None) -> Sale:
    begin_immediate()

    products = _load_products_locked(sorted({line.product_id for line in cart.lines}))
    _validate_stock(cart.lines, products)
    drafts = _price_lines(cart.lines, products)

    for draft in drafts:
        adjust_stock(
            draft.product_id,
            -draft.quantity,
            actor_id=actor_id,
            commit=False,
            note=f"Checkout -{draft.quantity}",
        )

    sale = append_sale(
        SaleHeader(
            payment_method=cart.payment_method,
            total_cents=sum(d.line_total_cents for d in drafts),
            user_id=actor_id,
        ),
        drafts,
        commit=False,
    )
    db.session.commit()
    return sale


def checkout(cart: Cart, *, actor_id: str | None = None) -> Sale:
    """
    Convert a cart into a committed Sale, applying stock effects exactly once.

    Raises:
        EmptyCartError: no lines
        ValidationError: bad payment method, inactive product
        NotFoundError: unknown product id
        InsufficientStockError: a line asks for more than is on hand
        TransactionError: the commit kept failing on locks; nothing applied
        CheckoutError: any other failure; nothing applied, cause chained
    """
    if not cart.lines:
        raise EmptyCartError()
    validate_payment_method(cart.payment_method)

    attempts = current_app.config.get("CHECKOUT_RETRY_ATTEMPTS", 3)
    backoff = current_app.config.get("CHECKOUT_RETRY_BACKOFF", 0.1)

    try:
        sale = run_with_retry(lambda: _checkout_once(cart, actor_id), attempts=attempts, backoff_base=backoff)
    except StockPosError as exc:
        logger.info("Checkout rejected: %s %s", exc.code, exc.details)
        raise
    except (OperationalError, StaleDataError) as exc:
        logger.warning("Checkout rolled back after %s attempts: %s", attempts, exc)
        raise TransactionError(
            "Checkout could not be committed; nothing was applied, retry the whole cart",
        ) from exc
    except SQLAlchemyError as exc:
        logger.exception("Checkout rolled back on database error")
        raise CheckoutError("Checkout failed; nothing was applied") from exc
    except Exception as exc:
        db.session.rollback()
        logger.exception("Checkout rolled back on unexpected error")
        raise CheckoutError("Checkout failed; nothing was applied") from exc

    logger.info(
        "Sale %s committed: %s lines, total_cents=%s, payment=%s",
        sale.document_number,
        len(sale.lines),
        sale.total_cents,
        sale.payment_method,
    )
    return sale
