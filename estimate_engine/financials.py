"""
Financial cascade: category totals + percentages -> cost, sell price, tax.

Order is fixed (each step feeds the next):

    materials_base  = materials + vendor-quote
    waste           = materials_base x waste%
    sundries        = materials_base x sundries%
    raw_cost        = sum of every category (excluding the sundries line)
    base_cost       = raw_cost + waste + sundries
    office          = base_cost x office%
    total_cost      = base_cost + office
    sell_price      = total_cost / (1 - margin%)
    sales_tax       = sell_price x tax%
    final_price     = sell_price + sales_tax

Margin is defined on sell price, so margin% must stay below 100.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime

from estimate_engine import config
from estimate_engine.aggregator import category_totals, group_by_category
from estimate_engine.database import (
    CONSUMABLES_DESCRIPTION,
    CONSUMABLES_ID,
    CONSUMABLES_NAME,
    MATERIALS_BASE_CATEGORIES,
)
from estimate_engine.models import CustomerInfo, Estimate, LineItem, Measurements

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FinancialSettings:
    """Percentages as plain numbers (40 means 40%)."""

    margin_percent: float = 40.0
    waste_percent: float = 10.0
    office_percent: float = 10.0
    sales_tax_percent: float = 10.0
    sundries_percent: float = 10.0

    @classmethod
    def from_env(cls) -> "FinancialSettings":
        return cls(
            margin_percent=config.DEFAULT_MARGIN_PERCENT,
            waste_percent=config.DEFAULT_WASTE_PERCENT,
            office_percent=config.DEFAULT_OFFICE_PERCENT,
            sales_tax_percent=config.DEFAULT_SALES_TAX_PERCENT,
            sundries_percent=config.SUNDRIES_PERCENT,
        )

    def validate(self) -> None:
        """Reject settings the cascade cannot price. Raises ValueError."""
        if self.margin_percent >= 100:
            raise ValueError(
                f"Margin must be below 100% (got {self.margin_percent}%); "
                "sell price is undefined at or above 100%"
            )
        for name in ("margin_percent", "waste_percent", "office_percent",
                     "sales_tax_percent", "sundries_percent"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative (got {getattr(self, name)})")


@dataclass(frozen=True)
class Cascade:
    materials_base: float
    waste_allowance: float
    sundries_amount: float
    raw_cost: float
    base_cost: float
    office_allocation: float
    total_cost: float
    sell_price: float
    sales_tax_amount: float
    final_price: float
    gross_profit: float
    profit_margin: float


# ---------------------------------------------------------------------------
# Cascade
# ---------------------------------------------------------------------------

def compute_cascade(item_totals: dict[str, float], settings: FinancialSettings) -> Cascade:
    """Run the percentage cascade over category totals.

    `item_totals` must not include the synthesized sundries line; sundries
    enter once, through the cascade itself.
    """
    settings.validate()

    materials_base = sum(item_totals.get(cat, 0.0) for cat in MATERIALS_BASE_CATEGORIES)
    waste_allowance = materials_base * (settings.waste_percent / 100)
    sundries_amount = materials_base * (settings.sundries_percent / 100)
    raw_cost = sum(item_totals.values())
    base_cost = raw_cost + waste_allowance + sundries_amount
    office_allocation = base_cost * (settings.office_percent / 100)
    total_cost = base_cost + office_allocation
    sell_price = total_cost / (1 - settings.margin_percent / 100)
    sales_tax_amount = sell_price * (settings.sales_tax_percent / 100)
    final_price = sell_price + sales_tax_amount
    gross_profit = sell_price - total_cost
    profit_margin = (gross_profit / sell_price) * 100 if sell_price > 0 else 0.0

    return Cascade(
        materials_base=materials_base,
        waste_allowance=waste_allowance,
        sundries_amount=sundries_amount,
        raw_cost=raw_cost,
        base_cost=base_cost,
        office_allocation=office_allocation,
        total_cost=total_cost,
        sell_price=sell_price,
        sales_tax_amount=sales_tax_amount,
        final_price=final_price,
        gross_profit=gross_profit,
        profit_margin=profit_margin,
    )


def consumables_line(amount: float) -> LineItem:
    """The synthesized sundries line, quantity 1 at the sundries amount."""
    return LineItem(
        id=CONSUMABLES_ID,
        name=CONSUMABLES_NAME,
        unit="each",
        price=amount,
        category="consumables",
        base_quantity=1,
        quantity=1,
        total=amount,
        proposal_description=CONSUMABLES_DESCRIPTION,
    )


def is_consumables_line(item: LineItem) -> bool:
    return item.id == CONSUMABLES_ID


# ---------------------------------------------------------------------------
# Estimate assembly
# ---------------------------------------------------------------------------

def build_estimate(line_items: list[LineItem],
                   settings: FinancialSettings,
                   optional_items: list[LineItem] | None = None,
                   measurements: Measurements | None = None,
                   customer_info: CustomerInfo | None = None,
                   intro_letter_text: str | None = None,
                   generated_at: str | None = None) -> Estimate:
    """Aggregate line items, run the cascade and return a reconciled Estimate.

    Any sundries line already present in `line_items` is dropped and
    re-synthesized, so feeding an estimate's own items back in yields the
    same figures.
    """
    settings.validate()

    items = [i for i in line_items if not is_consumables_line(i)]
    by_category = group_by_category(items)
    cascade = compute_cascade(category_totals(by_category), settings)

    by_category["consumables"].append(consumables_line(cascade.sundries_amount))
    totals = category_totals(by_category)

    return Estimate(
        line_items=items,
        optional_items=list(optional_items or []),
        by_category=by_category,
        totals=totals,
        base_cost=cascade.base_cost,
        office_cost_percent=settings.office_percent,
        office_allocation=cascade.office_allocation,
        total_cost=cascade.total_cost,
        margin_percent=settings.margin_percent,
        waste_percent=settings.waste_percent,
        waste_allowance=cascade.waste_allowance,
        sundries_percent=settings.sundries_percent,
        sundries_amount=cascade.sundries_amount,
        sell_price=cascade.sell_price,
        sales_tax_percent=settings.sales_tax_percent,
        sales_tax_amount=cascade.sales_tax_amount,
        final_price=cascade.final_price,
        gross_profit=cascade.gross_profit,
        profit_margin=cascade.profit_margin,
        measurements=measurements or Measurements(),
        customer_info=customer_info or CustomerInfo(),
        generated_at=generated_at or datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        intro_letter_text=intro_letter_text,
    )


def recalculate_financials(estimate: Estimate, settings: FinancialSettings) -> Estimate:
    """Re-derive every total and cascade field from the estimate's line items.

    Returns a new Estimate; the input is left untouched. Running it twice
    with the same settings gives identical figures.
    """
    logger.info(
        f"Recalculating estimate: margin={settings.margin_percent}% "
        f"waste={settings.waste_percent}% office={settings.office_percent}% "
        f"tax={settings.sales_tax_percent}%"
    )
    return build_estimate(
        [replace(i) for i in estimate.line_items],
        settings,
        optional_items=[replace(i) for i in estimate.optional_items],
        measurements=estimate.measurements,
        customer_info=estimate.customer_info,
        intro_letter_text=estimate.intro_letter_text,
        generated_at=estimate.generated_at,
    )
