# Overview: Currency conversion to and from TWD using declaration, stored or reference rates.

"""
Currency Conversion

WHY: Import invoices arrive in JPY/USD/EUR/GBP; every tax and cost figure is
computed in TWD. The rate actually used is the customs declaration rate
typed in by the operator, falling back to the organization's stored rate and
finally to a built-in reference table.

RATE PRECEDENCE: custom (declaration) > stored (per-org table) > default.

No live rate fetching, no caching.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal

from ..extensions import db
from ..models import ExchangeRate
from ..time_utils import to_utc_z, utcnow


SUPPORTED_CURRENCIES = ("JPY", "USD", "EUR", "GBP", "TWD")

# Reference rates to TWD, not live quotes
DEFAULT_EXCHANGE_RATES = {
    "JPY": 0.2,
    "USD": 31.5,
    "EUR": 34.2,
    "GBP": 39.8,
    "TWD": 1.0,
}
DEFAULT_RATES_UPDATED_AT = "2025-01-01T00:00:00Z"

CURRENCY_SYMBOLS = {
    "JPY": "¥",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "TWD": "NT$",
}


class CalculationError(ValueError):
    """Invalid calculator input (400). errors lists every problem found."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or [message]


@dataclass(frozen=True)
class ConversionResult:
    amount: float
    from_currency: str
    to_currency: str
    exchange_rate: float
    converted_amount: float
    rounded_amount: int
    rate_source: str
    converted_at: str
    rate_updated_at: str | None

    def to_dict(self) -> dict:
        return asdict(self)


def round_half_up(value: float, places: int = 0):
    """
    Round half away from zero on the decimal representation of value.

    Built-in round() uses banker's rounding, which would turn 2.5 into 2.
    Returns an int when places is 0.
    """
    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP)
    if places == 0:
        return int(rounded)
    return float(rounded)


def is_valid_currency(currency) -> bool:
    return isinstance(currency, str) and currency in SUPPORTED_CURRENCIES


def _require_currency(currency) -> str:
    if not is_valid_currency(currency):
        raise CalculationError(f"Unsupported currency: {currency}")
    return currency


def is_finite_number(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _require_positive(name: str, value) -> float:
    if not is_finite_number(value) or value <= 0:
        raise CalculationError(f"{name} must be a number greater than 0")
    return float(value)


def get_default_exchange_rate(from_currency: str, to_currency: str = "TWD") -> float:
    """Reference rate from -> to, crossing through TWD when neither side is TWD."""
    _require_currency(from_currency)
    _require_currency(to_currency)

    if from_currency == to_currency:
        return 1.0
    if to_currency == "TWD":
        return DEFAULT_EXCHANGE_RATES[from_currency]
    return DEFAULT_EXCHANGE_RATES[from_currency] * (1 / DEFAULT_EXCHANGE_RATES[to_currency])


def _rate_to_twd(currency: str, stored_rates: dict | None) -> tuple[float, str]:
    if currency == "TWD":
        return 1.0, "default"
    if stored_rates and currency in stored_rates:
        return float(stored_rates[currency]), "stored"
    return DEFAULT_EXCHANGE_RATES[currency], "default"


def resolve_exchange_rate(
    from_currency: str,
    to_currency: str = "TWD",
    custom_rate: float | None = None,
    stored_rates: dict | None = None,
) -> tuple[float, str]:
    """
    Pick the rate for a conversion. Returns (rate, source) where source is
    "custom", "stored" or "default".

    A custom rate is the declaration rate from -> to and is used as is.
    """
    _require_currency(from_currency)
    _require_currency(to_currency)

    if custom_rate is not None:
        return _require_positive("custom exchange rate", custom_rate), "custom"

    if from_currency == to_currency:
        return 1.0, "default"

    from_rate, from_source = _rate_to_twd(from_currency, stored_rates)
    to_rate, to_source = _rate_to_twd(to_currency, stored_rates)
    source = "stored" if "stored" in (from_source, to_source) else "default"
    return from_rate / to_rate, source


def convert_currency(
    amount: float,
    from_currency: str,
    to_currency: str = "TWD",
    custom_rate: float | None = None,
    stored_rates: dict | None = None,
) -> ConversionResult:
    """Convert amount and report the rate used and where it came from."""
    amount = _require_positive("amount", amount)
    rate, source = resolve_exchange_rate(
        from_currency,
        to_currency,
        custom_rate=custom_rate,
        stored_rates=stored_rates,
    )

    converted = amount * rate
    now = to_utc_z(utcnow())

    return ConversionResult(
        amount=amount,
        from_currency=from_currency,
        to_currency=to_currency,
        exchange_rate=rate,
        converted_amount=converted,
        rounded_amount=round_half_up(converted),
        rate_source=source,
        converted_at=now,
        rate_updated_at=DEFAULT_RATES_UPDATED_AT if source == "default" else None,
    )


def to_twd(
    amount: float,
    currency: str,
    custom_rate: float | None = None,
    stored_rates: dict | None = None,
):
    """Whole-dollar TWD amount. TWD input is returned unchanged."""
    _require_currency(currency)
    if currency == "TWD":
        return amount
    return convert_currency(
        amount, currency, "TWD", custom_rate=custom_rate, stored_rates=stored_rates
    ).rounded_amount


def from_twd(twd_amount: float, currency: str, rate_to_twd: float | None = None):
    """
    Back-convert a TWD amount to currency, kept to 2 decimals.

    rate_to_twd is the rate originally used for the forward conversion; the
    reference rate is used when it is omitted.
    """
    _require_currency(currency)
    if currency == "TWD":
        return twd_amount
    if rate_to_twd is None:
        rate_to_twd = DEFAULT_EXCHANGE_RATES[currency]
    rate_to_twd = _require_positive("exchange rate", rate_to_twd)
    return round_half_up(twd_amount / rate_to_twd, 2)


def convert_to_many(
    amount: float,
    from_currency: str,
    targets: list[str],
    stored_rates: dict | None = None,
) -> dict[str, int]:
    return {
        target: convert_currency(
            amount, from_currency, target, stored_rates=stored_rates
        ).rounded_amount
        for target in targets
    }


def format_currency_amount(amount: float, currency: str, show_symbol: bool = True) -> str:
    """Thousands-separated amount with at most 3 decimals, e.g. "¥ 80,000"."""
    _require_currency(currency)

    if float(amount).is_integer():
        formatted = f"{int(amount):,}"
    else:
        formatted = f"{amount:,.3f}".rstrip("0").rstrip(".")

    return f"{CURRENCY_SYMBOLS[currency]} {formatted}" if show_symbol else formatted


def get_all_exchange_rates(stored_rates: dict | None = None) -> list[dict]:
    """Effective rate to TWD for every supported currency, with its source."""
    rates = []
    for currency in SUPPORTED_CURRENCIES:
        rate, source = _rate_to_twd(currency, stored_rates)
        rates.append({
            "pair": f"{currency}/TWD",
            "currency": currency,
            "rate_to_twd": rate,
            "source": source,
        })
    return rates


# -- Stored rates (per organization) --


def get_stored_rates(org_id: int) -> dict[str, float]:
    rows = db.session.query(ExchangeRate).filter_by(org_id=org_id).all()
    return {row.currency: row.rate_to_twd for row in rows}


def set_stored_rate(
    org_id: int,
    currency: str,
    rate_to_twd: float,
    user_id: int | None = None,
) -> ExchangeRate:
    """Create or replace the organization's stored rate for currency."""
    _require_currency(currency)
    if currency == "TWD":
        raise CalculationError("TWD rate is fixed at 1.0")
    rate_to_twd = _require_positive("rate_to_twd", rate_to_twd)

    row = db.session.query(ExchangeRate).filter_by(org_id=org_id, currency=currency).first()
    if row is None:
        row = ExchangeRate(org_id=org_id, currency=currency)
        db.session.add(row)

    row.rate_to_twd = rate_to_twd
    row.updated_by_user_id = user_id
    row.updated_at = utcnow()

    db.session.commit()
    return row


def delete_stored_rate(org_id: int, currency: str) -> bool:
    """Drop a stored rate so the reference rate applies again."""
    deleted = db.session.query(ExchangeRate).filter_by(org_id=org_id, currency=currency).delete()
    db.session.commit()
    return bool(deleted)
