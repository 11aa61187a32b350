"""
Field visibility rules for sales data.

Investors see company-funded sales at investor prices only. Actual selling
prices, cost prices and commission require VIEW_ACTUAL_PRICES; personally
funded sales require VIEW_PERSONAL_SALES.
"""

from __future__ import annotations

from dataclasses import dataclass

from .permission_service import get_user_permissions


@dataclass(frozen=True)
class Visibility:
    show_actual_prices: bool
    show_personal_sales: bool


def get_visibility(user_id: int) -> Visibility:
    permissions = get_user_permissions(user_id)
    return Visibility(
        show_actual_prices="VIEW_ACTUAL_PRICES" in permissions,
        show_personal_sales="VIEW_PERSONAL_SALES" in permissions,
    )


def mask_sales_summary(summary: dict, visibility: Visibility) -> dict:
    if visibility.show_actual_prices:
        return summary
    return {k: v for k, v in summary.items() if k not in ("actual_amount_cents", "commission_cents")}
