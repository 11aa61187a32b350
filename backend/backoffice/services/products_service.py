"""
Products Service

MULTI-TENANT: Every product and variant operation is scoped by org_id.
product_code is unique per organization, variant_code per product.

category is the alcohol tax category. It defaults to the keyword
classification of the product name.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Product, ProductVariant, SaleItem
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_product,
    enforce_rules_variant,
    validate_payload,
)
from .tax_service import ALCOHOL_TAX_RULES, classify_alcohol
from .tenant_service import TenantAccessError, require_in_org, scoped_query


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"product_code", "name", "category", "alcohol_percentage", "volume_ml", "is_active"},
    required_on_create={"product_code", "name"},
)

VARIANT_POLICY = ModelValidationPolicy(
    writable_fields={
        "variant_code",
        "description",
        "cost_price_cents",
        "investor_price_cents",
        "actual_price_cents",
        "available_stock",
    },
    required_on_create={"variant_code"},
)


def _check_category(patch: dict) -> None:
    if "category" in patch:
        patch["category"] = patch["category"].lower()
        if patch["category"] not in ALCOHOL_TAX_RULES:
            raise ValidationError(
                f"category must be one of {', '.join(sorted(ALCOHOL_TAX_RULES))}"
            )


def list_products(
    org_id: int,
    search: str | None = None,
    category: str | None = None,
    active_only: bool = False,
    page: int = 1,
    per_page: int = 50,
) -> dict:
    query = scoped_query(Product, org_id)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(Product.name.ilike(pattern), Product.product_code.ilike(pattern)))
    if category:
        query = query.filter(Product.category == category.lower())
    if active_only:
        query = query.filter(Product.is_active.is_(True))

    page = max(page, 1)
    per_page = min(max(per_page, 1), 100)
    total = query.count()
    products = (
        query.order_by(Product.name.asc(), Product.id.asc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )

    return {
        "products": products,
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "has_next": page * per_page < total,
        },
    }


def get_product(org_id: int, product_id: int) -> Product:
    return require_in_org(Product, product_id, org_id, "Product")


def create_product(org_id: int, payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    _check_category(patch)

    existing = db.session.query(Product).filter_by(org_id=org_id, product_code=patch["product_code"]).first()
    if existing:
        raise ConflictError(f"Product code {patch['product_code']} already exists")

    patch.setdefault("category", classify_alcohol(patch["name"]))

    product = Product(org_id=org_id, **patch)
    db.session.add(product)
    db.session.commit()
    return product


def update_product(org_id: int, product_id: int, payload: dict) -> Product:
    product = get_product(org_id, product_id)

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)
    _check_category(patch)

    new_code = patch.get("product_code")
    if new_code and new_code != product.product_code:
        clash = db.session.query(Product).filter_by(org_id=org_id, product_code=new_code).first()
        if clash:
            raise ConflictError(f"Product code {new_code} already exists")

    for key, value in patch.items():
        setattr(product, key, value)

    db.session.commit()
    return product


def delete_product(org_id: int, product_id: int) -> None:
    """Delete a product and its variants. Products on any sale are kept (deactivate instead)."""
    product = get_product(org_id, product_id)

    in_use = db.session.query(SaleItem.id).filter(SaleItem.product_id == product.id).first()
    if in_use:
        raise ConflictError("Product is referenced by sales; deactivate it instead")

    for variant in list(product.variants):
        db.session.delete(variant)
    db.session.delete(product)
    db.session.commit()


def get_variant(org_id: int, product_id: int, variant_id: int) -> ProductVariant:
    product = get_product(org_id, product_id)
    variant = db.session.query(ProductVariant).filter_by(id=variant_id, product_id=product.id).first()
    if not variant:
        raise TenantAccessError("Variant not found")
    return variant


def create_variant(org_id: int, product_id: int, payload: dict) -> ProductVariant:
    product = get_product(org_id, product_id)

    patch = validate_payload(model=ProductVariant, payload=payload, policy=VARIANT_POLICY, partial=False)
    enforce_rules_variant(patch)

    existing = db.session.query(ProductVariant).filter_by(
        product_id=product.id,
        variant_code=patch["variant_code"],
    ).first()
    if existing:
        raise ConflictError(f"Variant code {patch['variant_code']} already exists for this product")

    variant = ProductVariant(org_id=org_id, product_id=product.id, **patch)
    db.session.add(variant)
    db.session.commit()
    return variant


def update_variant(org_id: int, product_id: int, variant_id: int, payload: dict) -> ProductVariant:
    variant = get_variant(org_id, product_id, variant_id)

    patch = validate_payload(model=ProductVariant, payload=payload, policy=VARIANT_POLICY, partial=True)
    enforce_rules_variant(patch)

    new_code = patch.get("variant_code")
    if new_code and new_code != variant.variant_code:
        clash = db.session.query(ProductVariant).filter_by(
            product_id=variant.product_id,
            variant_code=new_code,
        ).first()
        if clash:
            raise ConflictError(f"Variant code {new_code} already exists for this product")

    for key, value in patch.items():
        setattr(variant, key, value)

    db.session.commit()
    return variant
