# Overview: Per-organization stored exchange rates used by the import calculator.

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class ExchangeRate(db.Model):
    """
    Stored rate to TWD for one currency in one organization.

    Takes precedence over the built-in reference rates, but a declaration
    rate supplied with a calculation still wins over it.
    """
    __tablename__ = "exchange_rates"
    __table_args__ = (
        db.UniqueConstraint("org_id", "currency", name="uq_exchange_rates_org_currency"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    currency = db.Column(db.String(3), nullable=False)
    rate_to_twd = db.Column(db.Float, nullable=False)

    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "currency": self.currency,
            "rate_to_twd": self.rate_to_twd,
            "updated_by_user_id": self.updated_by_user_id,
            "updated_at": to_utc_z(self.updated_at),
        }
