"""
Smart selection: the deterministic auto-selection rules plus an optional
LLM pass over the job description.

The rules always run and stay authoritative. The model may add catalog
ids and explicit quantities stated in the description ("3 porto
potties"); ids it invents are discarded. Vendor quote items are always
selected at their quoted quantity. When the collaborator is missing,
fails or answers with invalid JSON, the rule result is returned alone.
"""

import json
import logging
import math
from dataclasses import dataclass, field

from pydantic import BaseModel, Field, ValidationError

from estimate_engine.auto_selection import AutoSelectionContext, apply_auto_selection_rules
from estimate_engine.extraction import Extractor, extract_json
from estimate_engine.models import Measurements
from estimate_engine.quantities import TEAR_OFF_SQUARES_PER_ROLLOFF, calculate_item_quantities

logger = logging.getLogger(__name__)

SMART_SELECTION_MAX_TOKENS = 2000

QUANTITY_SYNONYMS = {
    "debris haulaway": ("debris haulaway", "landfill"),
    "landfill": ("debris haulaway", "landfill"),
    "porto": ("porto", "porto potty", "portable"),
    "porto potty": ("porto", "porto potty", "portable"),
    "portable": ("porto", "porto potty", "portable"),
}

# Selected even at zero quantity
FLAT_FEE_NAME_KEYWORDS = ("delivery", "landfill", "debris haulaway", "overnight")

# A job carries one synthetic roof system at most
SYNTHETIC_SYSTEM_KEYWORDS = ("brava", "davinci")


class SmartSelectionResponse(BaseModel):
    selected_item_ids: list[str] = Field(default_factory=list, alias="selectedItemIds")
    explicit_quantities: dict[str, float] = Field(default_factory=dict, alias="explicitQuantities")
    reasoning: str = ""
    warnings: list[str] = Field(default_factory=list)


@dataclass
class SmartSelectionResult:
    selected_item_ids: list[str]
    item_quantities: dict[str, float]
    detected_roof_type: str
    applied_rules: list[str]
    reasoning: str = ""
    warnings: list[str] = field(default_factory=list)
    used_fallback: bool = False


def build_selection_prompt(context: AutoSelectionContext, measurements: Measurements) -> str:
    items = [
        {"id": p.id, "name": p.name, "category": p.category, "unit": p.unit,
         "price": p.price, "source": "price-list"}
        for p in context.available_price_items
    ] + [
        {"id": v.id, "name": v.name, "category": v.category, "unit": v.unit,
         "price": v.price, "source": "vendor"}
        for v in context.vendor_quote_items
    ]
    m = {name: getattr(measurements, name) for name in Measurements.__dataclass_fields__}

    return f"""You are a roofing estimator assistant. Based on the job description and measurements,
select the appropriate items from the price list.

JOB DESCRIPTION:
{context.job_description}

MEASUREMENTS:
{json.dumps(m, indent=2)}

PRICE LIST:
{json.dumps(items, indent=2)}

RULES:
1. Metal roof jobs never use Brava or DaVinci products.
2. Select only ONE synthetic system (Brava OR DaVinci) and only ONE labor crew (default Hugo).
3. Pitch 8/12 and above uses High Slope / Hinged H&R variants.
4. Tear-off jobs include Debris Haulaway & Landfill and OSB (total_squares x 3 sheets).
5. OC Titanium PSU 30 on every roof; add SolarHide for non-metal roofs or GAF VersaShield for metal roofs.
6. Do not select copper flashing unless the description says "copper". Metal roofs take all
   flashing and fasteners from the vendor quote.
7. Do not select nails, caulk, sealant or plasticap unless explicitly requested; sundries cover them.
8. Do not auto-select heat tape, snow guards, snow fence or skylights.
9. Do not select items with 0 quantity except flat fees (delivery, fuel, porto potty,
   debris haulaway & landfill, overnights).

EXPLICIT QUANTITIES:
Only when a NUMBER is stated next to an item ("250 snowguards", "3 porto potties"), return it in
"explicitQuantities" keyed by a partial item name ("snowguard", "porto", "debris haulaway").
Never guess quantities.

Return ONLY JSON:
{{
  "selectedItemIds": ["id1", "id2"],
  "explicitQuantities": {{"item_name_partial": 3}},
  "reasoning": "Brief explanation",
  "warnings": ["Anything to double-check"]
}}"""


def apply_explicit_quantities(explicit: dict[str, float],
                              names: dict[str, str],
                              quantities: dict[str, float]) -> None:
    """Set quantities on every item whose name contains the key or one of its synonyms."""
    for key, value in explicit.items():
        if value is None or value <= 0:
            continue
        key = key.lower()
        terms = QUANTITY_SYNONYMS.get(key, (key,))
        for item_id, name in names.items():
            if any(t in name.lower() for t in terms):
                quantities[item_id] = value


def _is_flat_fee(name: str) -> bool:
    lowered = name.lower()
    return any(k in lowered for k in FLAT_FEE_NAME_KEYWORDS)


def _synthetic_system(name: str) -> str | None:
    lowered = name.lower()
    return next((k for k in SYNTHETIC_SYSTEM_KEYWORDS if k in lowered), None)


def drop_rule_conflicts(suggested: list[str],
                        rule_ids: list[str],
                        excluded: list[str],
                        names: dict[str, str]) -> list[str]:
    """
    Remove suggestions the rules rule out.

    Ids the rules excluded (the other underlayment or nail variant) are
    dropped, and only the first synthetic system seen, rules first, is kept.
    """
    system = next(filter(None, (_synthetic_system(names[i]) for i in rule_ids if i in names)), None)
    kept = []
    for item_id in suggested:
        if item_id in excluded:
            logger.warning(f"Smart selection dropped {item_id}: conflicts with the auto-selection rules")
            continue
        item_system = _synthetic_system(names[item_id])
        if item_system is not None:
            if system is None:
                system = item_system
            elif item_system != system:
                logger.warning(f"Smart selection dropped {item_id}: job already uses the {system} system")
                continue
        kept.append(item_id)
    return kept


def smart_select(context: AutoSelectionContext,
                 measurements: Measurements,
                 extractor: Extractor | None,
                 item_quantities: dict[str, float] | None = None,
                 is_tear_off: bool = False) -> SmartSelectionResult:
    """
    Run the rules, then layer the model's suggestions on top.

    `item_quantities` defaults to quantities derived from the measurements.
    """
    rules = apply_auto_selection_rules(context)
    vendor_ids = [v.id for v in context.vendor_quote_items]
    names = {p.id: p.name for p in context.available_price_items}
    names.update({v.id: v.name for v in context.vendor_quote_items})

    if item_quantities is None:
        item_quantities = calculate_item_quantities(context.available_price_items, measurements, is_tear_off)
    quantities = dict(item_quantities)
    quantities.update(rules.item_quantities)
    for v in context.vendor_quote_items:
        quantities.setdefault(v.id, v.quantity)

    def fallback(reason: str) -> SmartSelectionResult:
        logger.warning(f"Smart selection falling back to rules only: {reason}")
        return SmartSelectionResult(
            selected_item_ids=list(dict.fromkeys(rules.auto_selected_item_ids + vendor_ids)),
            item_quantities=quantities,
            detected_roof_type=rules.detected_roof_type,
            applied_rules=rules.applied_rules,
            used_fallback=True,
        )

    if extractor is None:
        return fallback("no extraction service configured")

    try:
        raw = extractor(build_selection_prompt(context, measurements), None, SMART_SELECTION_MAX_TOKENS)
        response = SmartSelectionResponse.model_validate(json.loads(extract_json(raw)))
    except (json.JSONDecodeError, ValidationError) as e:
        return fallback(f"invalid response ({type(e).__name__})")
    except Exception as e:
        return fallback(f"{type(e).__name__}: {e}")

    unknown = [i for i in response.selected_item_ids if i not in names]
    if unknown:
        logger.warning(f"Smart selection ignored {len(unknown)} unknown id(s): {unknown}")
    suggested = [i for i in response.selected_item_ids if i in names]
    suggested = drop_rule_conflicts(suggested, rules.auto_selected_item_ids, rules.excluded_item_ids, names)

    apply_explicit_quantities(response.explicit_quantities, names, quantities)

    merged = list(dict.fromkeys(rules.auto_selected_item_ids + suggested + vendor_ids))
    selected = [
        i for i in merged
        if i in vendor_ids or _is_flat_fee(names[i]) or quantities.get(i, 0) > 0
    ]

    warnings = list(response.warnings)
    if is_tear_off:
        debris_qty = math.ceil(measurements.total_squares / TEAR_OFF_SQUARES_PER_ROLLOFF)
        warnings.append(
            f"Debris haulaway quantity calculated as {debris_qty} based on "
            f"{measurements.total_squares:g} squares tear-off"
        )

    logger.info(f"Smart selection: {len(selected)} item(s) ({len(suggested)} suggested by model)")
    return SmartSelectionResult(
        selected_item_ids=selected,
        item_quantities=quantities,
        detected_roof_type=rules.detected_roof_type,
        applied_rules=rules.applied_rules,
        reasoning=response.reasoning,
        warnings=warnings,
    )
