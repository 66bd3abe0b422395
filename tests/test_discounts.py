import pytest
import sys
import os

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from proposal_engine.engine.aggregator import recalculate
from proposal_engine.engine.discounts import (
    apply_line_recurring,
    apply_proposal_recurring,
    display_date_total,
    recurring_discount_percent,
    resolve_auto_recurring,
    scheduled_occurrences,
)
from proposal_engine.engine.models import ProposalTree, ServiceLine

from conftest import massage, proposal


@pytest.mark.parametrize("occurrences, percent", [
    (0, 0),
    (3, 0),
    (4, 15),
    (8, 15),
    (9, 20),
    (52, 20),
    (None, 0),
    ('garbage', 0),
])
def test_recurring_tier_boundaries(occurrences, percent):
    assert recurring_discount_percent(occurrences) == percent


def test_line_recurring_reduces_discounted_cost():
    line = ServiceLine.from_dict(massage(
        isRecurring=True, recurringFrequency={'type': 'monthly', 'occurrences': 4},
    ))
    cost, percent, savings = apply_line_recurring(line, 1000)

    assert percent == 15
    assert cost == pytest.approx(850)
    assert savings == pytest.approx(150)


def test_line_recurring_needs_the_flag():
    line = ServiceLine.from_dict(massage(
        isRecurring=False, recurringFrequency={'type': 'monthly', 'occurrences': 12},
    ))
    assert apply_line_recurring(line, 1105) == (1105, 0, 0)


def test_unscheduled_dates_are_not_occurrences():
    assert scheduled_occurrences(['2026-01-01', '2026-02-01', 'TBD']) == 2
    assert scheduled_occurrences(['TBD']) == 0


def test_auto_recurring_resolution():
    dates = [f"2026-0{m}-01" for m in range(1, 7)]
    tree = ProposalTree(is_auto_recurring=True)

    assert resolve_auto_recurring(tree, dates) == 15
    assert resolve_auto_recurring(tree, dates[:3] + ['TBD']) == 0
    assert resolve_auto_recurring(ProposalTree(is_auto_recurring=False), dates) == 0


def test_proposal_recurring_savings():
    assert apply_proposal_recurring(1000, 15) == (850, 150)
    assert apply_proposal_recurring(1000, 0) == (1000, 0)


def test_date_total_struck_through_when_auto_recurring():
    dates = {f"2026-0{m}-01": [massage()] for m in range(1, 5)}
    tree = recalculate(ProposalTree.from_dict(proposal({'HQ': dates}, isAutoRecurring=True)))
    block = tree.locations['HQ']['2026-01-01']

    shown = display_date_total(block, tree)
    assert shown.struck_through
    assert shown.original == 1105
    assert shown.total == pytest.approx(939.25)


def test_date_total_plain_without_auto_recurring(simple_tree):
    tree = recalculate(simple_tree)
    shown = display_date_total(tree.locations['HQ']['2026-02-18'], tree)

    assert not shown.struck_through
    assert shown.total == shown.original == 1105
