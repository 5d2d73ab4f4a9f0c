"""Estimate consistency checks: line totals, category sums, categories and margin band."""

from estimate_engine.aggregator import sum_totals
from estimate_engine.database import CATEGORY_KEYS
from estimate_engine.models import Estimate, ValidationResult

TOLERANCE = 0.01
LOW_MARGIN_PERCENT = 25
HIGH_MARGIN_PERCENT = 60


def _approx_equal(a: float, b: float) -> bool:
    return abs(a - b) <= TOLERANCE


def validate_estimate(estimate: Estimate) -> ValidationResult:
    """
    Recompute every line and category total and compare against the stored
    values. Mismatches are reported, never corrected; the estimate is not
    modified.
    """
    errors: list[str] = []
    warnings: list[str] = []

    all_items = list(estimate.line_items) + list(estimate.optional_items or [])
    if not all_items:
        return ValidationResult(is_valid=False, errors=["No line items in estimate"])

    for item in all_items:
        expected = item.quantity * item.price
        if not _approx_equal(item.total, expected):
            errors.append(
                f'Line "{item.name}": total ${item.total:.2f} does not match quantity × price '
                f"({item.quantity:g} × ${item.price:g} = ${expected:.2f})"
            )
        if item.total < 0:
            errors.append(f'Line "{item.name}": negative total is not allowed')

    for cat in CATEGORY_KEYS:
        stored = estimate.totals.get(cat, 0.0)
        computed = sum_totals(estimate.by_category.get(cat, []))
        if not _approx_equal(stored, computed):
            errors.append(
                f'Category "{cat}" total mismatch: stored ${stored:.2f} vs sum of items ${computed:.2f}'
            )

    for item in all_items:
        if item.category not in CATEGORY_KEYS:
            errors.append(f'Invalid category "{item.category}" for item "{item.name}"')

    if estimate.margin_percent < LOW_MARGIN_PERCENT:
        warnings.append(f"Margin is low ({estimate.margin_percent:g}%). Consider increasing.")
    if estimate.margin_percent > HIGH_MARGIN_PERCENT:
        warnings.append(f"Margin is high ({estimate.margin_percent:g}%). Verify this is intentional.")

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)
