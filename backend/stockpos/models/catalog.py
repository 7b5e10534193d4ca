from __future__ import annotations

from ..extensions import db
from ..money import cents_to_str
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data.

    STOCK DESIGN DECISION:
    Product.stock_quantity is a mutable counter, but it is only ever changed
    through catalog_service.adjust_stock(), a single conditional UPDATE.
    Never read-modify-write it from application code.

    DELETION:
    Products referenced by sale line items are soft-deleted (is_active=False)
    so historical sales keep resolving the row.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_nonnegative"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_nonnegative"),
        db.CheckConstraint("cost_price_cents >= 0", name="ck_products_cost_nonnegative"),
        db.CheckConstraint("min_stock_level >= 0", name="ck_products_min_stock_nonnegative"),
        db.Index("ix_products_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock_level = db.Column(db.Integer, nullable=False, default=5)

    category = db.Column(db.String(120), nullable=True, index=True)
    barcode = db.Column(db.String(64), nullable=True, index=True)
    unit = db.Column(db.String(16), nullable=False, default="UN")

    # Opaque identity from the upstream auth provider
    owner_id = db.Column(db.String(64), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return (self.stock_quantity or 0) <= (self.min_stock_level or 0)

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "price": cents_to_str(self.price_cents),
            "cost_price_cents": self.cost_price_cents,
            "cost_price": cents_to_str(self.cost_price_cents),
            "stock_quantity": self.stock_quantity,
            "min_stock_level": self.min_stock_level,
            "is_low_stock": self.is_low_stock,
            "category": self.category,
            "barcode": self.barcode,
            "unit": self.unit,
            "owner_id": self.owner_id,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
