# Overview: Sale order documents and their line items.

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


SALE_STATUSES = ("DRAFT", "PREORDER", "CONFIRMED", "SHIPPED", "DELIVERED", "PAID", "CANCELLED")
FUNDING_SOURCES = ("COMPANY", "PERSONAL")


class Sale(db.Model):
    """
    Sale order document.

    WHY: Sales have a lifecycle (DRAFT/PREORDER -> CONFIRMED -> SHIPPED ->
    DELIVERED -> PAID, or CANCELLED). Every write that changes status or
    prices re-derives the sale's cashflow rows in the same transaction.

    FUNDING:
    - COMPANY: stock bought with investor capital; investors may see the sale
    - PERSONAL: stock bought with the operator's own capital; hidden from investors

    Stored totals are denormalized from items for listing:
    total_amount_cents (investor prices), actual_amount_cents, commission_cents.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("org_id", "sale_number", name="uq_sales_org_number"),
        db.Index("ix_sales_org_status_created", "org_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    # Human-readable number, e.g. "SA20250301001"
    sale_number = db.Column(db.String(32), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default="DRAFT", index=True)
    funding_source = db.Column(db.String(16), nullable=False, default="COMPANY", index=True)

    payment_terms = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    is_preorder = db.Column(db.Boolean, nullable=False, default=False)
    expected_arrival_date = db.Column(db.DateTime(timezone=True), nullable=True)

    # All amounts in cents
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    actual_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    commission_cents = db.Column(db.Integer, nullable=False, default=0)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    shipped_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    cancelled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    creator = db.relationship("User", foreign_keys=[created_by_user_id])
    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, show_actual_prices: bool = True, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "org_id": self.org_id,
            "sale_number": self.sale_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "status": self.status,
            "funding_source": self.funding_source,
            "payment_terms": self.payment_terms,
            "notes": self.notes,
            "is_preorder": self.is_preorder,
            "expected_arrival_date": to_utc_z(self.expected_arrival_date),
            "total_amount_cents": self.total_amount_cents,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "confirmed_at": to_utc_z(self.confirmed_at),
            "shipped_at": to_utc_z(self.shipped_at),
            "delivered_at": to_utc_z(self.delivered_at),
            "paid_at": to_utc_z(self.paid_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "cancel_reason": self.cancel_reason,
            "version_id": self.version_id,
        }
        if show_actual_prices:
            data["actual_amount_cents"] = self.actual_amount_cents
            data["commission_cents"] = self.commission_cents
        if include_items:
            data["items"] = [i.to_dict(show_actual_prices=show_actual_prices) for i in self.items]
        return data


class SaleItem(db.Model):
    """
    Line item on a sale.

    unit_price_cents is the investor price per unit. actual_unit_price_cents
    is what the customer is really charged; NULL means "same as unit price".
    """
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    actual_unit_price_cents = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")
    variant = db.relationship("ProductVariant")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def effective_unit_price_cents(self) -> int:
        if self.actual_unit_price_cents is None:
            return self.unit_price_cents
        return self.actual_unit_price_cents

    def to_dict(self, show_actual_prices: bool = True) -> dict:
        data = {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "variant_id": self.variant_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.unit_price_cents * self.quantity,
        }
        if show_actual_prices:
            data["actual_unit_price_cents"] = self.actual_unit_price_cents
            data["actual_total_price_cents"] = self.effective_unit_price_cents * self.quantity
        return data
