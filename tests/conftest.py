import pytest

from estimate_engine.database import default_price_items
from estimate_engine.financials import FinancialSettings, build_estimate
from estimate_engine.models import CustomerInfo, LineItem, Measurements


def make_item(item_id, name, total, category="materials", quantity=1.0, unit="each",
              is_optional=False, proposal_description=None):
    price = total / quantity if quantity else 0.0
    return LineItem(
        id=item_id,
        name=name,
        unit=unit,
        price=price,
        category=category,
        base_quantity=quantity,
        quantity=quantity,
        total=total,
        is_optional=is_optional,
        proposal_description=proposal_description,
    )


@pytest.fixture
def catalog():
    return default_price_items()


@pytest.fixture
def cascade_items():
    """materials 15000, labor 10000, equipment 2500, accessories 500"""
    return [
        make_item("m1", "Brava Field Tile", 12000.0, quantity=277.46),
        make_item("m2", "OC Titanium PSU 30", 3000.0, quantity=20),
        make_item("l1", "Hugo (standard)", 10000.0, category="labor", quantity=20, unit="sq"),
        make_item("e1", "Porto Potty", 600.0, category="equipment"),
        make_item("e2", "Brava Delivery", 1900.0, category="equipment"),
        make_item("a1", "4in1 Pipe Jack", 500.0, category="accessories", quantity=25),
    ]


@pytest.fixture
def sample_estimate(cascade_items):
    return build_estimate(
        cascade_items,
        FinancialSettings(),
        measurements=Measurements(total_squares=20, predominant_pitch="6/12", eave_length=120),
        customer_info=CustomerInfo(name="412 Aspen Way", address="412 Aspen Way, Aspen, CO 81611"),
        generated_at="2024-05-01 09:00:00",
    )
