# Overview: Complete landed cost: currency conversion + import taxes + back-conversion.

from __future__ import annotations

from dataclasses import asdict, dataclass, replace

from . import currency_service, tax_service
from .currency_service import CalculationError, is_finite_number, round_half_up
from .tax_service import DEFAULT_ALCOHOL_PERCENTAGE, DEFAULT_MARKUP_RATE, DEFAULT_VOLUME_ML


TIER_ORDER = ("NEW", "REGULAR", "PREMIUM", "VIP")


@dataclass(frozen=True)
class CostInput:
    amount: float
    currency: str
    product_type: str = "default"
    quantity: int = 1
    customer_tier: str = "REGULAR"
    include_shipping: bool = True
    include_tax: bool = True
    custom_exchange_rate: float | None = None
    alcohol_percentage: float = DEFAULT_ALCOHOL_PERCENTAGE
    volume_ml: float = DEFAULT_VOLUME_ML
    markup_rate: float = DEFAULT_MARKUP_RATE


@dataclass(frozen=True)
class CurrencySummary:
    original_amount: float
    original_currency: str
    exchange_rate: float
    rate_source: str
    twd_amount: float


@dataclass(frozen=True)
class FinalPricing:
    total_cost_twd: float
    suggested_price_twd: float
    final_price_twd: float
    total_cost_original: float
    suggested_price_original: float
    final_price_original: float


@dataclass(frozen=True)
class ProfitSummary:
    gross_profit_twd: float
    profit_margin: float
    roi: float
    markup_rate: float


@dataclass(frozen=True)
class CostBreakdown:
    base_amount_twd: float
    import_duty: float
    alcohol_tax: float
    business_tax: float
    trade_promotion: float
    shipping_fee: float
    insurance_fee: float
    processing_fee: float
    total_taxes: float
    customer_discount: float


@dataclass(frozen=True)
class CompleteCostResult:
    input: CostInput
    currency: CurrencySummary
    taxes: tax_service.TaxBreakdown
    final_pricing: FinalPricing
    profit_analysis: ProfitSummary
    breakdown: CostBreakdown

    def to_dict(self) -> dict:
        return asdict(self)


def validate_cost_input(cost_input: CostInput) -> None:
    """Raise CalculationError listing every invalid field."""
    errors = []

    if not is_finite_number(cost_input.amount) or cost_input.amount <= 0:
        errors.append("amount must be a number greater than 0")

    if not cost_input.currency:
        errors.append("currency is required")
    elif not currency_service.is_valid_currency(cost_input.currency):
        errors.append(f"Unsupported currency: {cost_input.currency}")

    if not is_finite_number(cost_input.quantity) or cost_input.quantity <= 0:
        errors.append("quantity must be greater than 0")

    rate = cost_input.custom_exchange_rate
    if rate is not None and (not is_finite_number(rate) or rate <= 0):
        errors.append("custom_exchange_rate must be greater than 0")

    if errors:
        raise CalculationError("Invalid cost calculation input", errors)


def _back_convert(twd_amount: float, currency: str, rate: float) -> float:
    if currency == "TWD":
        return twd_amount
    return round_half_up(twd_amount / rate, 2)


def calculate_complete_cost(cost_input: CostInput, stored_rates: dict | None = None) -> CompleteCostResult:
    """
    Convert the purchase amount to whole TWD, run the tax pipeline on it and
    express the resulting prices in the purchase currency as well.
    """
    validate_cost_input(cost_input)

    conversion = currency_service.convert_currency(
        cost_input.amount,
        cost_input.currency,
        "TWD",
        custom_rate=cost_input.custom_exchange_rate,
        stored_rates=stored_rates,
    )
    twd_amount = conversion.rounded_amount
    rate = conversion.exchange_rate

    taxes = tax_service.calculate_taxes(tax_service.TaxInput(
        base_amount=twd_amount,
        product_type=cost_input.product_type,
        quantity=cost_input.quantity,
        customer_tier=cost_input.customer_tier,
        include_shipping=cost_input.include_shipping,
        include_tax=cost_input.include_tax,
        alcohol_percentage=cost_input.alcohol_percentage,
        volume_ml=cost_input.volume_ml,
        markup_rate=cost_input.markup_rate,
    ))
    pricing = taxes.pricing
    costs = taxes.costs

    if pricing.total_cost > 0:
        markup_rate = pricing.suggested_markup / pricing.total_cost * 100
    else:
        markup_rate = 0.0

    return CompleteCostResult(
        input=cost_input,
        currency=CurrencySummary(
            original_amount=cost_input.amount,
            original_currency=cost_input.currency,
            exchange_rate=rate,
            rate_source=conversion.rate_source,
            twd_amount=twd_amount,
        ),
        taxes=taxes,
        final_pricing=FinalPricing(
            total_cost_twd=pricing.total_cost,
            suggested_price_twd=pricing.suggested_price,
            final_price_twd=pricing.final_price,
            total_cost_original=_back_convert(pricing.total_cost, cost_input.currency, rate),
            suggested_price_original=_back_convert(pricing.suggested_price, cost_input.currency, rate),
            final_price_original=_back_convert(pricing.final_price, cost_input.currency, rate),
        ),
        profit_analysis=ProfitSummary(
            gross_profit_twd=taxes.analysis.gross_profit,
            profit_margin=taxes.analysis.profit_margin,
            roi=taxes.analysis.roi,
            markup_rate=markup_rate,
        ),
        breakdown=CostBreakdown(
            base_amount_twd=twd_amount,
            import_duty=costs.import_duty,
            alcohol_tax=costs.alcohol_tax,
            business_tax=costs.business_tax,
            trade_promotion=costs.trade_promotion,
            shipping_fee=costs.shipping_fee,
            insurance_fee=costs.insurance_fee,
            processing_fee=costs.processing_fee,
            total_taxes=costs.total_taxes,
            customer_discount=pricing.customer_discount,
        ),
    )


def calculate_tier_pricing(cost_input: CostInput, stored_rates: dict | None = None) -> dict[str, float]:
    """Final TWD price for every customer tier."""
    return {
        tier: calculate_complete_cost(
            replace(cost_input, customer_tier=tier), stored_rates
        ).final_pricing.final_price_twd
        for tier in TIER_ORDER
    }


def calculate_quantity_breakdown(
    cost_input: CostInput,
    quantities: list[int],
    stored_rates: dict | None = None,
) -> list[dict]:
    """
    Unit and total cost per order quantity, with the unit-cost saving (%)
    against buying a single unit.
    """
    if not quantities:
        raise CalculationError("quantities must not be empty")

    base_cost = calculate_complete_cost(
        replace(cost_input, quantity=1), stored_rates
    ).final_pricing.total_cost_twd

    rows = []
    for qty in quantities:
        total_cost = calculate_complete_cost(
            replace(cost_input, quantity=qty), stored_rates
        ).final_pricing.total_cost_twd
        unit_cost = total_cost / qty
        rows.append({
            "quantity": qty,
            "unit_cost": round_half_up(unit_cost),
            "total_cost": round_half_up(total_cost),
            "savings": round_half_up((base_cost - unit_cost) / base_cost * 100, 2),
        })
    return rows


def quick_import_cost(amount: float, currency: str, product_type: str = "default") -> float:
    """Landed TWD cost with default options."""
    return calculate_complete_cost(
        CostInput(amount=amount, currency=currency, product_type=product_type)
    ).final_pricing.total_cost_twd


def quick_suggested_price(
    amount: float,
    currency: str,
    product_type: str = "default",
    customer_tier: str = "REGULAR",
) -> float:
    return calculate_complete_cost(
        CostInput(amount=amount, currency=currency, product_type=product_type, customer_tier=customer_tier)
    ).final_pricing.final_price_twd


def estimate_variant_landed_cost(
    variant,
    amount: float,
    currency: str,
    quantity: int = 1,
    customer_tier: str = "REGULAR",
    custom_exchange_rate: float | None = None,
    markup_rate: float = DEFAULT_MARKUP_RATE,
    stored_rates: dict | None = None,
) -> CompleteCostResult:
    """Complete cost of buying a catalog variant, using its product's category, ABV and volume."""
    product = variant.product
    return calculate_complete_cost(
        CostInput(
            amount=amount,
            currency=normalize_code(currency),
            product_type=product.category,
            quantity=quantity,
            customer_tier=normalize_code(customer_tier),
            custom_exchange_rate=custom_exchange_rate,
            alcohol_percentage=product.alcohol_percentage,
            volume_ml=product.volume_ml,
            markup_rate=markup_rate,
        ),
        stored_rates,
    )


def normalize_code(value):
    """Strip and upper-case a currency or tier code. Non-strings pass through for validation to report."""
    if isinstance(value, str):
        return value.strip().upper()
    return value


def parse_flag(value, default: bool = True):
    """
    Read an include_* switch from a JSON body. Booleans are taken as-is and
    "true"/"false" style strings are parsed; anything else passes through so
    validate_tax_input rejects it.
    """
    if value is None:
        return default
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes"):
            return True
        if lowered in ("0", "false", "no"):
            return False
    return value


def cost_input_from_payload(data: dict, default_markup_rate: float = DEFAULT_MARKUP_RATE) -> CostInput:
    """
    Build a CostInput from a JSON body. Missing optional fields take their
    defaults; a custom_exchange_rate of 0 or null means "no custom rate".
    Values are passed through unchecked so validate_cost_input reports them.
    """
    return CostInput(
        amount=data.get("amount"),
        currency=normalize_code(data.get("currency")),
        product_type=data.get("product_type") or "default",
        quantity=data.get("quantity", 1),
        customer_tier=normalize_code(data.get("customer_tier") or "REGULAR"),
        include_shipping=parse_flag(data.get("include_shipping")),
        include_tax=parse_flag(data.get("include_tax")),
        custom_exchange_rate=data.get("custom_exchange_rate") or None,
        alcohol_percentage=data.get("alcohol_percentage", DEFAULT_ALCOHOL_PERCENTAGE),
        volume_ml=data.get("volume_ml", DEFAULT_VOLUME_ML),
        markup_rate=data.get("markup_rate", default_markup_rate),
    )
