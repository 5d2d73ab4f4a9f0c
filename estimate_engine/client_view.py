"""
Client-facing view of an estimate.

Internal costs are scaled by one effective multiplier so the client lines
add up to the final price (tax included):

    multiplier = final_price / sum(category totals)    (1 when the sum is 0)

Materials, accessories, vendor quote and consumables are shown together as
"Materials", sorted by total, largest first.
"""

from dataclasses import dataclass, field

from estimate_engine.descriptions import proposal_description_for
from estimate_engine.models import Estimate

MATERIAL_SECTION_CATEGORIES = ("materials", "accessories", "vendor-quote", "consumables")

SECTION_LABELS = {
    "materials": "Materials",
    "labor": "Labor",
    "equipment": "Equipment & Fees",
}


@dataclass
class ClientLine:
    name: str
    description: str
    total: float
    client_price: float


@dataclass
class ClientSection:
    key: str
    label: str
    lines: list[ClientLine] = field(default_factory=list)
    subtotal: float = 0.0


def effective_multiplier(estimate: Estimate) -> float:
    raw_total = sum(estimate.totals.values())
    return estimate.final_price / raw_total if raw_total > 0 else 1.0


def _client_price(total: float, multiplier: float) -> float:
    return round(total * multiplier, 2)


def build_client_sections(estimate: Estimate,
                          extra_equipment: list[tuple[str, float]] | None = None) -> list[ClientSection]:
    """Materials, labor and equipment sections with client prices rounded to cents."""
    multiplier = effective_multiplier(estimate)

    materials = [
        (item.name, proposal_description_for(item), item.total)
        for cat in MATERIAL_SECTION_CATEGORIES
        for item in estimate.by_category.get(cat, [])
    ]
    materials.sort(key=lambda line: line[2], reverse=True)
    labor = [(item.name, proposal_description_for(item), item.total)
             for item in estimate.by_category.get("labor", [])]
    equipment = [(item.name, proposal_description_for(item), item.total)
                 for item in estimate.by_category.get("equipment", [])]
    equipment += [(name, name, total) for name, total in extra_equipment or []]

    sections = []
    for key, lines in (("materials", materials), ("labor", labor), ("equipment", equipment)):
        section = ClientSection(key=key, label=SECTION_LABELS[key])
        for name, description, total in lines:
            section.lines.append(ClientLine(
                name=name, description=description, total=total,
                client_price=_client_price(total, multiplier),
            ))
        section.subtotal = _client_price(sum(line[2] for line in lines), multiplier)
        sections.append(section)
    return sections


def format_currency(value: float) -> str:
    return f"${value:,.2f}"


def render_client_text(estimate: Estimate,
                       extra_equipment: list[tuple[str, float]] | None = None) -> str:
    """Plain-text client estimate: one block per non-empty section, then TOTAL."""
    text = "ROOFING ESTIMATE\n"
    text += f"{estimate.customer_info.name or 'Customer'}\n"
    text += f"{estimate.customer_info.address or 'Address'}\n"
    text += f"{estimate.generated_at}\n\n"

    for section in build_client_sections(estimate, extra_equipment):
        if not section.lines:
            continue
        text += f"{section.label.upper()}\n"
        for line in section.lines:
            text += f"{line.description}\t{format_currency(line.client_price)}\n"
        text += f"{section.label} Subtotal\t{format_currency(section.subtotal)}\n\n"

    text += "─" * 40 + "\n"
    text += f"TOTAL\t{format_currency(estimate.final_price)}\n"
    return text
