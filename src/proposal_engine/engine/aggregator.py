"""
Proposal Aggregator - recomputes every derived total in a proposal tree.

Resolution order:
1. Cost each service line (selected pricing option, or the calculator)
2. Layer line-scoped recurring discounts
3. Roll lines up into their date blocks
4. Rebuild the sorted event date list
5. Subtotal dates and custom line items
6. Apply the proposal-scoped recurring discount
7. Add gratuity, then payout, profit and margin

The input tree is never modified; a new tree is returned. Running it twice
gives the same tree as running it once.
"""
import datetime
import logging
from dataclasses import replace
from typing import Iterable

from ..config.settings import get_settings
from .discounts import apply_line_recurring, apply_proposal_recurring, resolve_auto_recurring
from .models import DateBlock, ProposalTree, ServiceLine, Summary, UNLIMITED
from .normalize import fixed_price_for, non_negative, snap_class_length, to_number
from .pricing_options import price_option
from .service_calculator import compute_service, money

logger = logging.getLogger(__name__)


def date_sort_key(date_key: str) -> tuple:
    """
    Chronological order for date keys.

    Real ISO dates first, malformed keys next (lexically), the unscheduled
    sentinel always last.
    """
    if date_key == get_settings().unscheduled_key:
        return (2, '')
    try:
        return (0, datetime.date.fromisoformat(date_key[:10]).isoformat() + date_key[10:])
    except ValueError:
        return (1, date_key)


def sort_date_keys(keys: Iterable[str]) -> list[str]:
    return sorted(set(keys), key=date_sort_key)


def cost_line(line: ServiceLine) -> ServiceLine:
    """Return the line with every derived field recomputed."""
    if line.is_mindfulness:
        class_length = snap_class_length(line.class_length)
        line = replace(line, class_length=class_length, fixed_price=fixed_price_for(class_length))

    if line.has_options:
        options = [price_option(line, option) for option in line.pricing_options]
        selected = line.selected_option if line.selected_option < len(options) else 0
        chosen = options[selected]
        line = replace(
            line,
            pricing_options=options,
            selected_option=selected,
            total_appointments=chosen.total_appointments,
            service_cost=chosen.service_cost,
            original_price=chosen.original_price,
            pro_revenue=chosen.pro_revenue,
            discount_percent=chosen.discount_percent,
        )
    else:
        result = compute_service(line)
        for warning in result.warnings:
            logger.warning(warning)
        line = replace(
            line,
            total_appointments=result.total_appointments,
            service_cost=result.service_cost,
            original_price=result.original_price,
            pro_revenue=result.pro_revenue,
        )

    cost, percent, savings = apply_line_recurring(line, line.service_cost)
    return replace(line, service_cost=cost, recurring_discount=percent, recurring_savings=savings)


def total_date_block(block: DateBlock) -> DateBlock:
    """Cost every line on a date and refresh the cached totals."""
    services = [cost_line(line) for line in block.services or []]
    total_cost = money(sum(line.service_cost for line in services))

    if any(line.total_appointments == UNLIMITED for line in services):
        total_appointments = UNLIMITED
    else:
        total_appointments = sum(int(line.total_appointments) for line in services)

    return DateBlock(services=services, total_cost=total_cost, total_appointments=total_appointments)


def recalculate(tree: ProposalTree) -> ProposalTree:
    """
    Recompute every derived total in the proposal.

    Never raises: malformed branches degrade to zero totals.
    """
    settings = get_settings()
    locations = {}
    location_totals = {}
    date_costs = 0.0
    total_appointments = 0
    total_pro_revenue = 0.0

    for location, dates in tree.locations.items():
        blocks = {}
        for date_key in sort_date_keys(dates):
            block = dates[date_key]
            if block is None:
                logger.debug("Empty date block at %s / %s treated as no services", location, date_key)
                block = DateBlock()
            blocks[date_key] = total_date_block(block)
        locations[location] = blocks

        location_cost = money(sum(block.total_cost for block in blocks.values()))
        location_appointments = sum(
            block.total_appointments for block in blocks.values()
            if block.total_appointments != UNLIMITED
        )
        location_totals[location] = {
            'totalCost': location_cost,
            'totalAppointments': location_appointments,
        }
        date_costs += location_cost
        total_appointments += location_appointments
        total_pro_revenue += sum(
            line.pro_revenue for block in blocks.values() for line in block.services
        )

    event_dates = sort_date_keys(date for dates in locations.values() for date in dates)

    custom_total = money(sum(to_number(item.amount) for item in tree.custom_line_items))
    subtotal_before_discount = money(date_costs + custom_total)

    auto_discount = resolve_auto_recurring(tree, event_dates)
    subtotal, savings = apply_proposal_recurring(subtotal_before_discount, auto_discount)

    gratuity_amount = 0
    gratuity_value = non_negative(tree.gratuity_value)
    if tree.gratuity_type == 'percentage' and gratuity_value:
        gratuity_amount = money(subtotal * gratuity_value / 100)
    elif tree.gratuity_type == 'dollar' and gratuity_value:
        gratuity_amount = money(gratuity_value)

    total_event_cost = subtotal + gratuity_amount
    total_pro_revenue = money(total_pro_revenue)
    net_profit = total_event_cost - total_pro_revenue
    profit_margin = round(net_profit / total_event_cost * 100, 2) if total_event_cost else 0

    summary = Summary(
        total_appointments=total_appointments,
        total_event_cost=total_event_cost,
        total_pro_revenue=total_pro_revenue,
        net_profit=net_profit,
        profit_margin=profit_margin,
        subtotal_before_gratuity=subtotal,
        gratuity_amount=gratuity_amount,
        subtotal_before_discount=subtotal_before_discount,
        auto_recurring_savings=savings,
        custom_line_items_total=custom_total,
        location_totals=location_totals,
    )

    return replace(
        tree,
        locations=locations,
        event_dates=event_dates,
        summary=summary,
        auto_recurring_discount=auto_discount,
        custom_line_items=list(tree.custom_line_items),
    )
