# Overview: Product catalog (alcohol products and their priced, stocked variants).

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data.

    MULTI-TENANT: Products are scoped to organizations via org_id.
    product_code is unique within an organization.

    category holds the alcohol classification used by the import tax
    calculator (whisky, wine, beer, ...). It defaults to the keyword
    classification of the product name when not supplied.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("org_id", "product_code", name="uq_products_org_code"),
        db.Index("ix_products_org_active", "org_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    product_code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(32), nullable=False, default="default")

    alcohol_percentage = db.Column(db.Float, nullable=False, default=40.0)
    volume_ml = db.Column(db.Integer, nullable=False, default=750)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    organization = db.relationship("Organization", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.product_code!r} name={self.name!r}>"

    def to_dict(self, include_variants: bool = False, show_actual_prices: bool = True) -> dict:
        data = {
            "id": self.id,
            "org_id": self.org_id,
            "product_code": self.product_code,
            "name": self.name,
            "category": self.category,
            "alcohol_percentage": self.alcohol_percentage,
            "volume_ml": self.volume_ml,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_variants:
            data["variants"] = [
                v.to_dict(show_actual_prices=show_actual_prices)
                for v in sorted(self.variants, key=lambda v: v.id)
            ]
        return data


class ProductVariant(db.Model):
    """
    Sellable variant of a product (edition, packaging, condition).

    PRICING:
    - cost_price_cents: landed cost to the importer
    - investor_price_cents: price settled with the investor per unit
    - actual_price_cents: price actually charged to customers (sensitive)

    STOCK: available_stock counts free units; reserved_stock counts units held
    by confirmed but not yet shipped sales.
    """
    __tablename__ = "product_variants"
    __table_args__ = (
        db.UniqueConstraint("product_id", "variant_code", name="uq_product_variants_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    variant_code = db.Column(db.String(64), nullable=False)
    description = db.Column(db.String(255), nullable=True)

    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    investor_price_cents = db.Column(db.Integer, nullable=False, default=0)
    actual_price_cents = db.Column(db.Integer, nullable=False, default=0)

    available_stock = db.Column(db.Integer, nullable=False, default=0)
    reserved_stock = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("variants", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, show_actual_prices: bool = True) -> dict:
        data = {
            "id": self.id,
            "product_id": self.product_id,
            "variant_code": self.variant_code,
            "description": self.description,
            "investor_price_cents": self.investor_price_cents,
            "available_stock": self.available_stock,
            "reserved_stock": self.reserved_stock,
            "version_id": self.version_id,
        }
        if show_actual_prices:
            data["cost_price_cents"] = self.cost_price_cents
            data["actual_price_cents"] = self.actual_price_cents
        return data
