"""
Pricing Option Generator - alternate staffing/price configurations for a line.

Options are generated from the line's base parameters and costed through the
service calculator. Once generated, each option owns its hours, rate, staffing
and discount; selecting one copies its totals onto the line without touching
the line's own parameters.
"""
import math
from dataclasses import dataclass, replace
from typing import Any, Optional

from ..config.settings import get_settings
from .models import OPTION_PARAM_FIELDS, PricingOption, ServiceLine
from .normalize import clamp_percent, non_negative, to_number
from .service_calculator import compute_service, count_appointments

# Base line fields an editor may change directly
EDITABLE_LINE_FIELDS = (
    'totalHours', 'numPros', 'proHourly', 'hourlyRate', 'appTime',
    'earlyArrival', 'retouchingCost', 'discountPercent', 'classLength',
    'participants',
)


@dataclass
class StaffingAlternative:
    """A (pros, hours) combination that reaches a target appointment count."""
    num_pros: int
    total_hours: float
    actual_appointments: int
    estimated_cost: float
    exact_match: bool
    note: Optional[str] = None


def _option_param(key: str, value: Any):
    if key == 'discountPercent':
        return clamp_percent(value)
    if key == 'hourlyRate':
        return to_number(value)
    return non_negative(value)


def price_option(line: ServiceLine, option: PricingOption) -> PricingOption:
    """Recompute an option's derived fields from its own parameters."""
    variant = replace(
        line,
        total_hours=option.total_hours,
        hourly_rate=option.hourly_rate,
        num_pros=option.num_pros,
        discount_percent=option.discount_percent,
        pricing_options=None,
    )
    result = compute_service(variant)
    return replace(
        option,
        total_appointments=result.total_appointments,
        service_cost=result.service_cost,
        original_price=result.original_price,
        pro_revenue=result.pro_revenue,
    )


def generate_options(line: ServiceLine) -> list[PricingOption]:
    """
    Build the fixed set of options for a line.

    Hour-based lines get the current staffing plus longer bookings (one
    option per configured hour multiplier); mindfulness lines get a single
    option since fixed pricing does not scale with hours.
    """
    multipliers = get_settings().option_hour_multipliers
    if line.is_mindfulness:
        multipliers = multipliers[:1]

    options = []
    for position, multiplier in enumerate(multipliers):
        option = PricingOption(
            name=f"Option {position + 1}",
            total_hours=round(line.total_hours * multiplier, 2),
            hourly_rate=line.hourly_rate,
            num_pros=line.num_pros,
            discount_percent=line.discount_percent,
        )
        options.append(price_option(line, option))
    return options


def select_option(line: ServiceLine, index: int) -> ServiceLine:
    """
    Make one option the active one.

    Copies the option's totals and discount onto the line; the line's own
    hours, staffing and rate stay as they are.
    """
    options = line.pricing_options or []
    if not 0 <= index < len(options):
        raise IndexError(f"Option {index} is out of range ({len(options)} options available)")
    option = options[index]
    return replace(
        line,
        selected_option=index,
        total_appointments=option.total_appointments,
        service_cost=option.service_cost,
        original_price=option.original_price,
        pro_revenue=option.pro_revenue,
        discount_percent=option.discount_percent,
    )


def attach_options(line: ServiceLine) -> ServiceLine:
    """Return a copy of the line carrying freshly generated options, the first selected."""
    with_options = replace(line, pricing_options=generate_options(line), selected_option=0)
    return select_option(with_options, 0)


def remove_options(line: ServiceLine) -> ServiceLine:
    return replace(line, pricing_options=None, selected_option=0)


def edit_option(line: ServiceLine, index: int, **changes) -> ServiceLine:
    """Edit an option's own parameters; edited fields survive regeneration."""
    options = list(line.pricing_options or [])
    if not 0 <= index < len(options):
        raise IndexError(f"Option {index} is out of range ({len(options)} options available)")

    unknown = set(changes) - set(OPTION_PARAM_FIELDS)
    if unknown:
        raise ValueError(
            f"Cannot edit {', '.join(sorted(unknown))} on a pricing option. "
            f"Editable: {', '.join(OPTION_PARAM_FIELDS)}"
        )

    option = options[index]
    params = {OPTION_PARAM_FIELDS[key]: _option_param(key, value) for key, value in changes.items()}
    overrides = tuple(sorted(set(option.overrides) | set(changes)))
    options[index] = price_option(line, replace(option, overrides=overrides, **params))

    updated = replace(line, pricing_options=options)
    if index == line.selected_option:
        updated = select_option(updated, index)
    return updated


def regenerate_options(line: ServiceLine) -> ServiceLine:
    """
    Rebuild every option from the line's current base values.

    Parameters an option had overridden keep their option-local values.
    Options without a discount override keep the discount they inherited,
    not the selected option's discount mirrored onto the line.
    """
    if line.pricing_options is None:
        return line

    inherited = [
        option.discount_percent for option in line.pricing_options
        if 'discountPercent' not in option.overrides
    ]
    base_discount = inherited[0] if inherited else line.discount_percent
    fresh = generate_options(replace(line, discount_percent=base_discount))
    options = []
    for position, existing in enumerate(line.pricing_options):
        base = fresh[position] if position < len(fresh) else existing
        kept = {
            OPTION_PARAM_FIELDS[key]: getattr(existing, OPTION_PARAM_FIELDS[key])
            for key in existing.overrides
        }
        option = replace(base, name=existing.name, overrides=existing.overrides, **kept)
        options.append(price_option(line, option))

    updated = replace(line, pricing_options=options)
    if not options:
        return updated
    selected = line.selected_option if line.selected_option < len(options) else 0
    return select_option(updated, selected)


def edit_line(line: ServiceLine, **changes) -> ServiceLine:
    """
    Apply base-parameter edits to a line.

    On a line with options, a discount edit lands on the selected option
    only; every other edit updates the line and regenerates its options.
    """
    unknown = set(changes) - set(EDITABLE_LINE_FIELDS)
    if unknown:
        raise ValueError(
            f"Cannot edit {', '.join(sorted(unknown))} on a service line. "
            f"Editable: {', '.join(EDITABLE_LINE_FIELDS)}"
        )

    discount = changes.pop('discountPercent', None) if line.has_options else None

    updated = line
    if changes:
        data = line.to_dict()
        data.update(changes)
        updated = ServiceLine.from_dict(data)
        if updated.has_options:
            updated = regenerate_options(updated)

    if discount is not None:
        updated = edit_option(updated, updated.selected_option, discountPercent=discount)
    return updated


def staffing_alternatives(line: ServiceLine, target_appointments: Any) -> list[StaffingAlternative]:
    """
    Staffing combinations that reach a target appointment count.

    Hours land on the configured increment, never exceed a working day,
    exact matches come first and fewer pros win ties.
    """
    settings = get_settings()
    target = int(non_negative(target_appointments))
    app_time = to_number(line.app_time)
    if line.is_mindfulness or line.kind is None or target <= 0 or app_time <= 0:
        return []

    per_pro_hour = 60 / app_time
    increment = settings.hour_increment
    alternatives = []
    for num_pros in range(1, settings.max_pros + 1):
        exact_hours = target / (num_pros * per_pro_hour)
        if exact_hours > settings.max_hours_per_day or exact_hours < increment:
            continue
        hours = math.ceil(exact_hours / increment - 1e-9) * increment
        if hours > settings.max_hours_per_day:
            continue

        actual = count_appointments(hours, app_time, num_pros)
        variant = replace(line, total_hours=hours, num_pros=num_pros, pricing_options=None)
        alternative = StaffingAlternative(
            num_pros=num_pros,
            total_hours=hours,
            actual_appointments=actual,
            estimated_cost=compute_service(variant).service_cost,
            exact_match=actual == target,
        )
        gap = actual - target
        if gap > 0:
            alternative.note = f"{gap} extra appointment{'s' if gap != 1 else ''} (buffer)"
        elif gap < 0:
            alternative.note = f"{-gap} fewer appointment{'s' if gap != -1 else ''} than target"
        alternatives.append(alternative)

    alternatives.sort(key=lambda a: (not a.exact_match, a.num_pros))

    seen = set()
    unique = []
    for alternative in alternatives:
        key = (alternative.actual_appointments, alternative.estimated_cost)
        if key in seen:
            continue
        seen.add(key)
        unique.append(alternative)
    return unique[:settings.max_staffing_alternatives]
