from __future__ import annotations

from ..extensions import db
from ..money import cents_to_str
from ..time_utils import to_utc_z

# money = cash, pix = instant transfer
PAYMENT_METHODS = ("money", "pix", "credit_card", "debit_card")

# VOIDED is reserved; no current flow produces it.
SALE_STATUSES = ("completed", "voided")

REMOVED_PRODUCT_NAME = "Removed product"


class Sale(db.Model):
    """
    Committed sale header.

    Immutable once committed, apart from future status transitions.
    total_cents is reconciled against the lines at commit time.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("total_cents >= 0", name="ck_sales_total_nonnegative"),
        db.Index("ix_sales_created_payment", "created_at", "payment_method"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable document number (e.g., "S-000123")
    document_number = db.Column(db.String(64), nullable=False, unique=True)

    total_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(16), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="completed", index=True)

    user_id = db.Column(db.String(64), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    lines = db.relationship(
        "SaleLineItem",
        back_populates="sale",
        order_by="SaleLineItem.id",
        lazy="selectin",
    )

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "document_number": self.document_number,
            "total_cents": self.total_cents,
            "total_amount": cents_to_str(self.total_cents),
            "payment_method": self.payment_method,
            "status": self.status,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["items"] = [line.to_dict() for line in self.lines]
        return data


class SaleLineItem(db.Model):
    """Individual line item on a committed sale. Never mutated."""
    __tablename__ = "sale_line_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    # Reference, not ownership. No FK cascade: the pointer survives removal.
    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", back_populates="lines")
    product = db.relationship(
        "Product",
        primaryjoin="foreign(SaleLineItem.product_id) == Product.id",
        viewonly=True,
        lazy="joined",
    )

    @property
    def display_name(self) -> str:
        if self.product is not None:
            return self.product.name
        return self.product_name or REMOVED_PRODUCT_NAME

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.display_name,
            "product_removed": self.product is None or not self.product.is_active,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "unit_price": cents_to_str(self.unit_price_cents),
            "line_total_cents": self.line_total_cents,
            "total_price": cents_to_str(self.line_total_cents),
            "created_at": to_utc_z(self.created_at),
        }
