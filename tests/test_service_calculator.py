import pytest
import sys
import os

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from proposal_engine.engine.models import ServiceLine
from proposal_engine.engine.normalize import fixed_price_for
from proposal_engine.engine.service_calculator import compute_service, count_appointments

from conftest import massage, mindfulness


def test_massage_line_costs():
    """4 hours x $135 x 2 pros + $25 early arrival."""
    result = compute_service(ServiceLine.from_dict(massage()))

    assert result.total_appointments == 24
    assert result.service_cost == 1105
    assert result.original_price == 1105
    assert result.pro_revenue == 425
    assert result.warnings == []


def test_line_discount_keeps_original_price():
    result = compute_service(ServiceLine.from_dict(massage(discountPercent=10)))

    assert result.service_cost == pytest.approx(994.5)
    assert result.original_price == 1105
    # Payout is not affected by the client discount
    assert result.pro_revenue == 425


def test_retouching_is_a_flat_fee():
    line = ServiceLine.from_dict({
        'serviceType': 'headshot', 'totalHours': 5, 'numPros': 1, 'proHourly': 400,
        'hourlyRate': 600, 'retouchingCost': 40, 'appTime': 12,
    })
    result = compute_service(line)

    assert result.total_appointments == 25
    assert result.service_cost == 3040
    assert result.pro_revenue == 2000


@pytest.mark.parametrize("discount, expected", [(150, 0), (-20, 1105), ('10', 994.5)])
def test_discount_is_clamped(discount, expected):
    result = compute_service(ServiceLine.from_dict(massage(discountPercent=discount)))
    assert result.service_cost == pytest.approx(expected)


def test_negative_hours_and_pros_cost_nothing():
    result = compute_service(ServiceLine.from_dict(massage(totalHours=-4, numPros=-2)))

    assert result.total_appointments == 0
    assert result.service_cost == 25
    assert result.pro_revenue == 25


def test_missing_fields_default_to_zero():
    result = compute_service(ServiceLine.from_dict({'serviceType': 'massage'}))

    assert result.total_appointments == 0
    assert result.service_cost == 0
    assert result.pro_revenue == 0


def test_numeric_strings_are_parsed():
    result = compute_service(ServiceLine.from_dict(massage(hourlyRate='$135', totalHours='4')))
    assert result.service_cost == 1105


def test_unknown_kind_contributes_nothing():
    result = compute_service(ServiceLine.from_dict(massage(serviceType='yoga')))

    assert result.service_cost == 0
    assert result.pro_revenue == 0
    assert result.total_appointments == 0
    assert len(result.warnings) == 1
    assert 'yoga' in result.warnings[0]


@pytest.mark.parametrize("class_length, price", [(30, 1250), (45, 1375), (60, 1500)])
def test_mindfulness_fixed_pricing(class_length, price):
    """Price depends only on class length, never on hours or rate."""
    line = ServiceLine.from_dict(mindfulness(class_length, totalHours=10, hourlyRate=999, numPros=3))
    result = compute_service(line)

    assert line.fixed_price == price
    assert result.original_price == price
    assert result.service_cost == price
    assert result.pro_revenue == pytest.approx(price * 0.3)


def test_mindfulness_unknown_length_snaps_to_default():
    line = ServiceLine.from_dict(mindfulness(50))
    assert line.class_length == 45
    assert compute_service(line).service_cost == fixed_price_for(45) == 1375


def test_mindfulness_appointments():
    assert compute_service(ServiceLine.from_dict(mindfulness())).total_appointments == 'unlimited'
    assert compute_service(ServiceLine.from_dict(mindfulness(participants=25))).total_appointments == 25


def test_mindfulness_discount_applies_to_fixed_price():
    result = compute_service(ServiceLine.from_dict(mindfulness(30, discountPercent=20)))
    assert result.service_cost == 1000
    assert result.original_price == 1250


@pytest.mark.parametrize("hours, app_time, pros, expected", [
    (4, 20, 2, 24),
    (1, 25, 1, 2),
    (0.5, 15, 3, 6),
    (4, 0, 2, 0),
    (0, 20, 2, 0),
])
def test_count_appointments(hours, app_time, pros, expected):
    assert count_appointments(hours, app_time, pros) == expected
