# Overview: Customer master data with pricing tier.

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


CUSTOMER_TIERS = ("VIP", "PREMIUM", "REGULAR", "NEW")


class Customer(db.Model):
    """
    Customer master data.

    MULTI-TENANT: Customers are scoped to organizations via org_id.

    tier drives the discount applied by the price suggestion
    (VIP, PREMIUM, REGULAR, NEW).
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_org_active", "org_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    tier = db.Column(db.String(16), nullable=False, default="REGULAR")

    contact_person = db.Column(db.String(128), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    organization = db.relationship("Organization", backref=db.backref("customers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "tier": self.tier,
            "contact_person": self.contact_person,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "notes": self.notes,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
