from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ._ids import new_id


class Category(db.Model):
    """Product grouping shown as a tab on the kiosk."""
    __tablename__ = "categories"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    title = db.Column(db.String(128), nullable=False)
    # Icon name resolved by the kiosk UI
    icon = db.Column(db.String(64), nullable=False, default="")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "icon": self.icon,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Product master data.

    STOCK & COST:
    - stock is the mutable on-hand count for products without variants.
    - purchase_price is the weighted-average purchase cost, blended on every
      restock (see stock_service.reprice).
    - Products WITH variants keep stock=0 and purchase_price=0 on the product
      row; the variants carry their own stock, cost and price.

    CONCURRENCY: version_id is the optimistic-lock column, so two checkouts
    updating the same row cannot both win silently.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category", "category_id"),
    )

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    price = db.Column(db.Float, nullable=False, default=0.0)
    image = db.Column(db.String(1024), nullable=False, default="")
    stock = db.Column(db.Integer, nullable=False, default=0)
    purchase_price = db.Column(db.Float, nullable=True)

    category_id = db.Column(db.String(32), db.ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    related_product_ids = db.Column(db.JSON, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    variants = db.relationship(
        "ProductVariant",
        backref="product",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ProductVariant.name",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def has_variants(self) -> bool:
        return bool(self.variants)

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price or 0.0,
            "image": self.image or "",
            "stock": self.stock or 0,
            "purchase_price": self.purchase_price,
            "variants": [v.to_dict() for v in self.variants] or None,
            "related_product_ids": list(self.related_product_ids or []) or None,
            "category_id": self.category_id,
            "category": self.category.to_dict() if self.category else None,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductVariant(db.Model):
    """Sellable variant of a product (size, flavour, ...) with its own stock and cost."""
    __tablename__ = "product_variants"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    product_id = db.Column(
        db.String(32),
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(255), nullable=False)
    price = db.Column(db.Float, nullable=False, default=0.0)
    stock = db.Column(db.Integer, nullable=False, default=0)
    purchase_price = db.Column(db.Float, nullable=False, default=0.0)
    image = db.Column(db.String(1024), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<ProductVariant id={self.id} name={self.name!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
            "price": self.price or 0.0,
            "stock": self.stock or 0,
            "purchase_price": self.purchase_price,
            "image": self.image,
        }
