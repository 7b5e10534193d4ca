# Overview: Domain error taxonomy shared by services and the HTTP layer.

from __future__ import annotations


class StockPosError(Exception):
    """Base for every error the engine raises on purpose."""

    status_code = 500
    code = "error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


class ValidationError(StockPosError, ValueError):
    """400-level input problem."""

    status_code = 400
    code = "validation_error"


class EmptyCartError(ValidationError):
    code = "empty_cart"

    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class Unauthenticated(StockPosError):
    status_code = 401
    code = "unauthenticated"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class NotFoundError(StockPosError):
    status_code = 404
    code = "not_found"


class ConflictError(StockPosError):
    """409-level business rule conflict."""

    status_code = 409
    code = "conflict"


class InsufficientStockError(ConflictError):
    code = "insufficient_stock"

    def __init__(self, product_id: int, requested: int, available: int, message: str | None = None):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        self.shortfall = max(requested - available, 0)
        super().__init__(
            message or f"Insufficient stock for product {product_id}",
            details={
                "product_id": product_id,
                "requested": requested,
                "available": available,
                "shortfall": self.shortfall,
            },
        )


class ReferencedError(ConflictError):
    code = "referenced"


class CheckoutError(StockPosError):
    """Checkout failed and was rolled back; the cause is chained."""

    code = "checkout_failed"


class TransactionError(CheckoutError):
    """The atomic commit could not be completed. Safe to retry."""

    status_code = 503
    code = "transaction_failed"
