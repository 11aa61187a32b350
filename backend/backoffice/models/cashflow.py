# Overview: Cashflow ledger rows (manual entries and rows derived from sales).

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


CASHFLOW_TYPES = ("INCOME", "EXPENSE")
CASHFLOW_FUNDING_SOURCES = ("INVESTOR", "PERSONAL")

SOURCE_MANUAL = "MANUAL"
SOURCE_SALE_SYNC = "SALE_SYNC"


class CashFlowRecord(db.Model):
    """
    Single income or expense entry.

    DERIVED ROWS: rows with source SALE_SYNC are owned by the sale whose
    reference key ("sale:<id>") they carry. They are rebuilt whenever the sale
    changes and must not be edited by hand.

    amount_cents is always non-negative; direction is carried by type.
    """
    __tablename__ = "cashflow_records"
    __table_args__ = (
        db.Index("ix_cashflow_org_date", "org_id", "transaction_date"),
        db.Index("ix_cashflow_org_reference", "org_id", "reference"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False, index=True)  # INCOME, EXPENSE
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=False, index=True)
    funding_source = db.Column(db.String(16), nullable=False, index=True)  # INVESTOR, PERSONAL

    transaction_date = db.Column(db.DateTime(timezone=True), nullable=False)
    reference = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    source = db.Column(db.String(16), nullable=False, default=SOURCE_MANUAL)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    creator = db.relationship("User", foreign_keys=[created_by_user_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "type": self.type,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "category": self.category,
            "funding_source": self.funding_source,
            "transaction_date": to_utc_z(self.transaction_date),
            "reference": self.reference,
            "notes": self.notes,
            "source": self.source,
            "created_by_user_id": self.created_by_user_id,
            "created_by": self.creator.username if self.creator else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
