"""Category aggregation: partition line items into category buckets and sum them."""

from estimate_engine.database import CATEGORY_KEYS
from estimate_engine.models import LineItem


def empty_buckets() -> dict[str, list[LineItem]]:
    return {cat: [] for cat in CATEGORY_KEYS}


def group_by_category(items: list[LineItem]) -> dict[str, list[LineItem]]:
    """Partition items into the fixed category buckets, preserving input order.

    Raises ValueError on a category outside the taxonomy.
    """
    buckets = empty_buckets()
    for item in items:
        if item.category not in buckets:
            raise ValueError(f"Unknown category '{item.category}' for item '{item.name}'")
        buckets[item.category].append(item)
    return buckets


def sum_totals(items: list[LineItem]) -> float:
    return sum(item.total for item in items)


def category_totals(by_category: dict[str, list[LineItem]]) -> dict[str, float]:
    """Total per category; every taxonomy key is present, missing buckets are 0."""
    return {cat: sum_totals(by_category.get(cat, [])) for cat in CATEGORY_KEYS}
