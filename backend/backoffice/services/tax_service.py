# Overview: Taiwan alcohol import tax, fee and price suggestion calculator (pure functions, TWD).

"""
Import Tax Calculator

All amounts are TWD floats. Nothing here touches the database, so the
functions run without an application context.

PIPELINE (calculate_taxes):
1. import duty      = dutiable value x category duty rate (0% for all alcohol)
2. alcohol tax      = per-litre tax x litres x quantity (by category and ABV)
3. trade promotion  = 0.04% of dutiable value, waived below NT$100
4. business tax     = 5% of (dutiable value + duty + alcohol tax)
5. shipping         = 5% of base + NT$100 per unit, capped at NT$10,000
6. insurance        = 0.2% of base
7. processing fee   = NT$500 flat, always charged
8. price suggestion = (base + all of the above) x (1 + markup), less tier discount
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

from .currency_service import CalculationError, is_finite_number


BUSINESS_TAX_RATE = 0.05
TRADE_PROMOTION_RATE = 0.0004
TRADE_PROMOTION_MINIMUM = 100
PROCESSING_FEE = 500
INSURANCE_RATE = 0.002
SHIPPING_RATE = 0.05
SHIPPING_PER_UNIT = 100
SHIPPING_MAX = 10000
DEFAULT_MARKUP_RATE = 0.3

DEFAULT_ALCOHOL_PERCENTAGE = 40.0
DEFAULT_VOLUME_ML = 750

TAX_TYPE_FIXED = "FIXED"
TAX_TYPE_PER_DEGREE = "PER_DEGREE"
TAX_TYPE_CONDITIONAL = "CONDITIONAL"


@dataclass(frozen=True)
class AlcoholTaxRule:
    """
    FIXED: rate per litre.
    PER_DEGREE: rate per degree of ABV per litre.
    CONDITIONAL: rate_high per litre above threshold ABV, else PER_DEGREE at rate.
    """
    tax_type: str
    rate: float
    import_duty: float = 0.0
    rate_high: float | None = None
    threshold: float | None = None


_DISTILLED = AlcoholTaxRule(TAX_TYPE_PER_DEGREE, 2.5)
_BREWED = AlcoholTaxRule(TAX_TYPE_PER_DEGREE, 7)

ALCOHOL_TAX_RULES = {
    "beer": AlcoholTaxRule(TAX_TYPE_FIXED, 26),
    "whisky": _DISTILLED,
    "vodka": _DISTILLED,
    "rum": _DISTILLED,
    "gin": _DISTILLED,
    "brandy": _DISTILLED,
    "wine": _BREWED,
    "sake": _BREWED,
    "liqueur": AlcoholTaxRule(TAX_TYPE_CONDITIONAL, 7, rate_high=185, threshold=20),
    "spirits": _DISTILLED,
    "default": _BREWED,
}

# Checked in order; first match wins
_CATEGORY_KEYWORDS = (
    ("beer", ("BEER", "啤酒", "MALTS")),
    ("whisky", ("WHISKY", "WHISKEY")),
    ("vodka", ("VODKA",)),
    ("rum", ("RUM",)),
    ("gin", ("GIN",)),
    ("brandy", ("BRANDY",)),
    ("wine", ("WINE", "葡萄酒")),
    ("sake", ("SAKE", "清酒")),
    ("liqueur", ("LIQUEUR", "利口酒")),
    ("spirits", ("SPIRITS", "烈酒")),
)

CUSTOMER_DISCOUNTS = {
    "VIP": 0.15,
    "PREMIUM": 0.10,
    "REGULAR": 0.05,
    "NEW": 0.0,
}


@dataclass(frozen=True)
class TaxInput:
    base_amount: float
    product_type: str = "default"
    quantity: int = 1
    customer_tier: str = "REGULAR"
    include_shipping: bool = True
    include_tax: bool = True
    alcohol_percentage: float = DEFAULT_ALCOHOL_PERCENTAGE
    volume_ml: float = DEFAULT_VOLUME_ML
    markup_rate: float = DEFAULT_MARKUP_RATE


@dataclass(frozen=True)
class TaxCosts:
    base_price: float
    import_duty: float
    excise_tax: float
    commodity_tax: float
    alcohol_tax: float
    business_tax: float
    trade_promotion: float
    shipping_fee: float
    insurance_fee: float
    processing_fee: float
    total_taxes: float
    total_costs: float


@dataclass(frozen=True)
class PriceSuggestion:
    total_cost: float
    suggested_markup: float
    suggested_price: float
    customer_discount: float
    final_price: float


@dataclass(frozen=True)
class ProfitAnalysis:
    gross_profit: float
    profit_margin: float
    roi: float


@dataclass(frozen=True)
class TaxBreakdown:
    input: TaxInput
    costs: TaxCosts
    pricing: PriceSuggestion
    analysis: ProfitAnalysis
    category: str = field(default="default")

    def to_dict(self) -> dict:
        return asdict(self)


def classify_alcohol(name: str | None) -> str:
    """Map a product name or type to a tax category by keyword, else "default"."""
    normalized = (name or "").upper()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in normalized for keyword in keywords):
            return category
    return "default"


def get_alcohol_tax_rule(product_type: str | None) -> AlcoholTaxRule:
    return ALCOHOL_TAX_RULES[classify_alcohol(product_type)]


def calculate_shipping_fee(base_amount: float, quantity: int = 1) -> float:
    return min(base_amount * SHIPPING_RATE + quantity * SHIPPING_PER_UNIT, SHIPPING_MAX)


def calculate_alcohol_tax(
    product_type: str | None,
    alcohol_percentage: float,
    volume_ml: float,
    quantity: int,
) -> float:
    rule = get_alcohol_tax_rule(product_type)

    if rule.tax_type == TAX_TYPE_FIXED:
        per_litre = rule.rate
    elif rule.tax_type == TAX_TYPE_CONDITIONAL and alcohol_percentage > rule.threshold:
        per_litre = rule.rate_high
    else:
        per_litre = rule.rate * alcohol_percentage

    return per_litre * (volume_ml / 1000) * quantity


def _require_tier(customer_tier: str) -> None:
    if customer_tier not in CUSTOMER_DISCOUNTS:
        raise CalculationError(f"Unknown customer tier: {customer_tier}")


def calculate_customer_discount(price: float, customer_tier: str) -> float:
    _require_tier(customer_tier)
    return price * CUSTOMER_DISCOUNTS[customer_tier]


def suggest_price(
    total_cost: float,
    customer_tier: str = "REGULAR",
    markup_rate: float = DEFAULT_MARKUP_RATE,
) -> PriceSuggestion:
    """Apply the markup multiplicatively, then take off the tier discount."""
    _require_tier(customer_tier)

    suggested_markup = total_cost * markup_rate
    suggested_price = total_cost + suggested_markup
    customer_discount = calculate_customer_discount(suggested_price, customer_tier)

    return PriceSuggestion(
        total_cost=total_cost,
        suggested_markup=suggested_markup,
        suggested_price=suggested_price,
        customer_discount=customer_discount,
        final_price=suggested_price - customer_discount,
    )


def validate_tax_input(tax_input: TaxInput) -> None:
    """Raise CalculationError listing every invalid field."""
    errors = []

    if not is_finite_number(tax_input.base_amount) or tax_input.base_amount <= 0:
        errors.append("base_amount must be a number greater than 0")

    if not is_finite_number(tax_input.quantity) or tax_input.quantity <= 0:
        errors.append("quantity must be greater than 0")

    abv = tax_input.alcohol_percentage
    if not is_finite_number(abv) or abv < 0 or abv > 100:
        errors.append("alcohol_percentage must be between 0 and 100")

    if not is_finite_number(tax_input.volume_ml) or tax_input.volume_ml <= 0:
        errors.append("volume_ml must be greater than 0")

    if not is_finite_number(tax_input.markup_rate) or tax_input.markup_rate < 0:
        errors.append("markup_rate must be 0 or greater")

    if not isinstance(tax_input.product_type, str):
        errors.append("product_type must be a string")

    if not isinstance(tax_input.customer_tier, str) or tax_input.customer_tier not in CUSTOMER_DISCOUNTS:
        errors.append(f"customer_tier must be one of {', '.join(CUSTOMER_DISCOUNTS)}")

    for flag in ("include_shipping", "include_tax"):
        if not isinstance(getattr(tax_input, flag), bool):
            errors.append(f"{flag} must be true or false")

    if errors:
        raise CalculationError("Invalid tax calculation input", errors)


def calculate_taxes(tax_input: TaxInput) -> TaxBreakdown:
    validate_tax_input(tax_input)

    base = float(tax_input.base_amount)
    quantity = tax_input.quantity
    category = classify_alcohol(tax_input.product_type)
    rule = ALCOHOL_TAX_RULES[category]

    if tax_input.include_tax:
        import_duty = base * rule.import_duty
        alcohol_tax = calculate_alcohol_tax(
            category,
            tax_input.alcohol_percentage,
            tax_input.volume_ml,
            quantity,
        )
        promotion = base * TRADE_PROMOTION_RATE
        trade_promotion = promotion if promotion >= TRADE_PROMOTION_MINIMUM else 0.0
        # Promotion fee is not part of the VAT base
        business_tax = (base + import_duty + alcohol_tax) * BUSINESS_TAX_RATE
    else:
        import_duty = alcohol_tax = trade_promotion = business_tax = 0.0

    if tax_input.include_shipping:
        shipping_fee = calculate_shipping_fee(base, quantity)
        insurance_fee = base * INSURANCE_RATE
    else:
        shipping_fee = insurance_fee = 0.0

    processing_fee = PROCESSING_FEE

    total_taxes = import_duty + alcohol_tax + trade_promotion + business_tax
    total_costs = total_taxes + shipping_fee + insurance_fee + processing_fee

    pricing = suggest_price(base + total_costs, tax_input.customer_tier, tax_input.markup_rate)

    gross_profit = pricing.final_price - pricing.total_cost
    if pricing.total_cost > 0:
        profit_margin = gross_profit / pricing.final_price * 100
        roi = gross_profit / pricing.total_cost * 100
    else:
        profit_margin = roi = 0.0

    return TaxBreakdown(
        input=tax_input,
        costs=TaxCosts(
            base_price=base,
            import_duty=import_duty,
            excise_tax=0.0,
            commodity_tax=0.0,
            alcohol_tax=alcohol_tax,
            business_tax=business_tax,
            trade_promotion=trade_promotion,
            shipping_fee=shipping_fee,
            insurance_fee=insurance_fee,
            processing_fee=processing_fee,
            total_taxes=total_taxes,
            total_costs=total_costs,
        ),
        pricing=pricing,
        analysis=ProfitAnalysis(
            gross_profit=gross_profit,
            profit_margin=profit_margin,
            roi=roi,
        ),
        category=category,
    )


def calculate_taxed_price(base_amount: float, product_type: str = "default", include_fees: bool = True) -> float:
    """Total landed cost of a TWD base amount."""
    result = calculate_taxes(TaxInput(
        base_amount=base_amount,
        product_type=product_type,
        include_shipping=include_fees,
        include_tax=include_fees,
    ))
    return result.pricing.total_cost


def get_rate_tables() -> dict:
    """Constants exposed by the calculator API."""
    return {
        "business_tax_rate": BUSINESS_TAX_RATE,
        "trade_promotion_rate": TRADE_PROMOTION_RATE,
        "trade_promotion_minimum": TRADE_PROMOTION_MINIMUM,
        "processing_fee": PROCESSING_FEE,
        "insurance_rate": INSURANCE_RATE,
        "shipping_rate": SHIPPING_RATE,
        "shipping_per_unit": SHIPPING_PER_UNIT,
        "shipping_max": SHIPPING_MAX,
        "default_markup_rate": DEFAULT_MARKUP_RATE,
        "alcohol": {name: asdict(rule) for name, rule in ALCOHOL_TAX_RULES.items()},
        "customer_discounts": dict(CUSTOMER_DISCOUNTS),
    }
