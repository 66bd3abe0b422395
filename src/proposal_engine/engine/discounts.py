"""
Discount Resolver - recurring discount tiers at line and proposal scope.

Line discounts are consumed by the calculator. Recurring discounts are an
extra multiplicative reduction on top of the already-discounted figure and
their savings are reported separately; the two never add together.
"""
from dataclasses import dataclass
from typing import Any, Optional

from ..config.settings import get_settings
from .models import DateBlock, ProposalTree, ServiceLine
from .normalize import clamp_percent, non_negative


@dataclass
class DateTotalDisplay:
    """What a date block shows as its price."""
    total: float
    original: float
    struck_through: bool


def recurring_discount_percent(occurrences: Any) -> int:
    """
    Tier a recurrence count: 9+ → 20%, 4-8 → 15%, fewer → 0%.
    """
    count = non_negative(occurrences)
    for minimum, percent in get_settings().recurring_tiers:
        if count >= minimum:
            return percent
    return 0


def line_recurring_percent(line: ServiceLine) -> int:
    if not line.is_recurring or line.recurring_frequency is None:
        return 0
    return recurring_discount_percent(line.recurring_frequency.occurrences)


def apply_line_recurring(line: ServiceLine, cost: float) -> tuple[float, int, float]:
    """
    Apply the line's own recurring tier to an already-discounted cost.

    Returns (discounted_cost, percent, savings).
    """
    percent = line_recurring_percent(line)
    if percent <= 0:
        return cost, 0, 0
    discounted = round(cost * (1 - percent / 100), 2)
    return discounted, percent, round(cost - discounted, 2)


def scheduled_occurrences(event_dates: list[str], unscheduled_key: Optional[str] = None) -> int:
    """Distinct scheduled dates; the unscheduled sentinel is not an occurrence."""
    sentinel = unscheduled_key or get_settings().unscheduled_key
    return len({d for d in event_dates if d != sentinel})


def resolve_auto_recurring(tree: ProposalTree, event_dates: Optional[list[str]] = None) -> int:
    """Proposal-scoped recurring discount, tiered on the number of event dates."""
    if not tree.is_auto_recurring:
        return 0
    dates = event_dates if event_dates is not None else tree.event_dates
    return recurring_discount_percent(scheduled_occurrences(dates))


def apply_proposal_recurring(subtotal: float, percent: Any) -> tuple[float, float]:
    """Returns (discounted_subtotal, savings)."""
    percent = clamp_percent(percent)
    if percent <= 0:
        return subtotal, 0
    total = round(subtotal * (1 - percent / 100), 2)
    return total, round(subtotal - total, 2)


def display_date_total(block: DateBlock, tree: ProposalTree) -> DateTotalDisplay:
    """
    Per-date price as shown to the client.

    With auto-recurring on, the discounted figure is shown next to the
    struck-through pre-discount total.
    """
    original = block.total_cost
    if tree.is_auto_recurring and tree.auto_recurring_discount > 0:
        total, _ = apply_proposal_recurring(original, tree.auto_recurring_discount)
        return DateTotalDisplay(total=total, original=original, struck_through=True)
    return DateTotalDisplay(total=original, original=original, struck_through=False)
