"""
Change Display Formatter - turns change records into display-ready text.

Field labels come from the last named path segment; values are formatted as
percentages or currency when the field name says so, and missing values get
an explicit marker instead of blank text.
"""
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from ..engine.lens import parse_path
from .models import ChangeRecord, ChangeType

NO_PREVIOUS_VALUE = 'No previous value'
REMOVED = 'Removed'

# Dollar figures whose names would otherwise match a percent pattern
CURRENCY_FIELDS = frozenset({'subtotalbeforediscount', 'subtotalbeforegratuity'})

# Checked before the currency patterns: "recurringDiscount" is a percent
PERCENT_PATTERNS = ('percent', 'discount', 'margin')
CURRENCY_PATTERNS = (
    'price', 'cost', 'revenue', 'profit', 'hourly', 'rate', 'amount', 'savings', 'arrival',
)

FIELD_LABELS = {
    'clientName': 'Client Name',
    'clientEmail': 'Client Email',
    'eventDates': 'Event Dates',
    'locations': 'Locations',
    'services': 'Services',
    'totalAppointments': 'Total Appointments',
    'totalEventCost': 'Total Event Cost',
    'totalProRevenue': 'Professional Revenue',
    'proRevenue': 'Professional Revenue',
    'proHourly': 'Professional Hourly Rate',
    'numPros': 'Number of Professionals',
    'appTime': 'Appointment Time',
    'netProfit': 'Net Profit',
    'profitMargin': 'Profit Margin',
    'customLineItems': 'Custom Line Items',
    'gratuityType': 'Gratuity Type',
    'gratuityValue': 'Gratuity',
    'isAutoRecurring': 'Automatic Recurring Discount',
}

# Labels for positions inside known lists, keyed by the list's field name
INDEX_LABELS = {
    'services': 'Service',
    'pricingOptions': 'Option',
    'customLineItems': 'Line Item',
    'eventDates': 'Date',
    'locations': 'Location',
}

SERVICE_DISPLAY_NAMES = {
    'hair-makeup': 'Hair + Makeup',
    'headshot-hair-makeup': 'Hair + Makeup for Headshots',
    'headshot': 'Headshot',
    'headshots': 'Headshot',
    'mindfulness': 'Mindfulness',
    'mindfulness-soles': 'Mindfulness: Soles of the Feet',
    'mindfulness-movement': 'Mindfulness: Mindful Movement',
    'mindfulness-pro': 'Mindfulness: Professional',
    'mindfulness-cle': 'Mindfulness: CLE',
    'mindfulness-pro-reactivity': 'Mindfulness: Reactivity',
}

ACTION_LABELS = {
    ChangeType.ADD: 'Added',
    ChangeType.REMOVE: 'Removed',
    ChangeType.UPDATE: 'Updated',
}


@dataclass
class ChangeDisplay:
    """Display text for one change record."""
    field_name: str
    change_type: ChangeType
    old_value_display: str
    new_value_display: str
    context: Optional[str] = None

    @property
    def action(self) -> str:
        return ACTION_LABELS[self.change_type]

    def to_dict(self) -> dict:
        return {
            'fieldName': self.field_name,
            'changeType': self.change_type.value,
            'oldValueDisplay': self.old_value_display,
            'newValueDisplay': self.new_value_display,
            'context': self.context,
        }


def service_display_name(service_type: str) -> str:
    if not service_type:
        return ''
    key = str(service_type).lower()
    return SERVICE_DISPLAY_NAMES.get(key, key[:1].upper() + key[1:])


def humanize(name: str) -> str:
    """discountPercent -> Discount Percent"""
    if name in FIELD_LABELS:
        return FIELD_LABELS[name]
    words = re.sub(r'([a-z0-9])([A-Z])', r'\1 \2', str(name)).replace('_', ' ').split()
    return ' '.join(word[:1].upper() + word[1:] for word in words)


def _index_label(container: Any, index: int) -> str:
    return f"{INDEX_LABELS.get(container, 'Item')} {index + 1}"


def field_label(path: tuple) -> str:
    """Label for the last segment of a path; positions name their list."""
    if not path:
        return 'Proposal'
    last = path[-1]
    if isinstance(last, int) and not isinstance(last, bool):
        container = path[-2] if len(path) > 1 else None
        return _index_label(container, last)
    return humanize(last)


def _number(value: float) -> str:
    return f"{value:,.2f}".rstrip('0').rstrip('.') if value != int(value) else f"{int(value):,}"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def format_service(service: dict) -> str:
    """Massage (2 pros, 4 hours, $135/hr)"""
    details = []
    if _is_number(service.get('numPros')) and service['numPros']:
        details.append(f"{_number(service['numPros'])} pros")
    if _is_number(service.get('totalHours')) and service['totalHours']:
        details.append(f"{_number(service['totalHours'])} hours")
    if _is_number(service.get('hourlyRate')) and service['hourlyRate']:
        details.append(f"${_number(service['hourlyRate'])}/hr")
    name = service_display_name(service.get('serviceType'))
    return f"{name} ({', '.join(details)})" if details else name


def format_value(value: Any, field_name: Optional[str] = None) -> str:
    """Render a value for display, using the field name to pick a unit."""
    key = str(field_name or '').lower()
    if isinstance(value, bool):
        return 'Yes' if value else 'No'
    if _is_number(value):
        if key in CURRENCY_FIELDS:
            return f"${value:,.2f}"
        if any(pattern in key for pattern in PERCENT_PATTERNS):
            return f"{_number(value)}%"
        if any(pattern in key for pattern in CURRENCY_PATTERNS):
            return f"${value:,.2f}"
        return _number(value)
    if isinstance(value, list):
        return ', '.join(format_value(item, field_name) for item in value)
    if isinstance(value, dict):
        if value.get('serviceType'):
            return format_service(value)
        return 'Updated details'
    return str(value)


def _named_field(path: tuple) -> Optional[str]:
    for segment in reversed(path):
        if isinstance(segment, str):
            return segment
    return None


def change_context(path: tuple) -> Optional[str]:
    """
    Where in the proposal a change sits, e.g. "HQ · 2026-02-18 · Service 1".

    Returns None for changes outside the location/date/service tree.
    """
    path = tuple(path)
    parsed = parse_path(path)
    if parsed is None:
        if len(path) >= 3 and path[0] == 'services':
            return f"{path[1]} · {path[2]}"
        return None

    ref, rest = parsed
    parts = [ref.location, ref.date, _index_label('services', ref.index)]
    # Nested positions such as a pricing option
    for position in range(1, len(rest)):
        segment = rest[position]
        if isinstance(segment, int) and not isinstance(segment, bool) and position < len(rest) - 1:
            parts.append(_index_label(rest[position - 1], segment))
    return ' · '.join(str(part) for part in parts)


def describe(record: ChangeRecord) -> ChangeDisplay:
    """
    Display summary for a change record.

    Args:
        record: The change to describe

    Returns:
        ChangeDisplay with label, change kind, before/after text and context
    """
    path = tuple(record.field_path)
    unit_field = _named_field(path)
    old_display = NO_PREVIOUS_VALUE if record.old_value is None else format_value(record.old_value, unit_field)
    new_display = REMOVED if record.new_value is None else format_value(record.new_value, unit_field)
    return ChangeDisplay(
        field_name=field_label(path),
        change_type=ChangeType(record.change_type),
        old_value_display=old_display,
        new_value_display=new_display,
        context=change_context(path),
    )


def group_changes(records: Iterable[ChangeRecord]) -> dict[Optional[str], list[ChangeDisplay]]:
    """Described changes grouped by context, groups in first-seen order."""
    groups: dict[Optional[str], list[ChangeDisplay]] = {}
    for record in records:
        display = describe(record)
        groups.setdefault(display.context, []).append(display)
    return groups


__all__ = [
    'ChangeDisplay',
    'describe',
    'group_changes',
    'format_value',
    'field_label',
    'change_context',
    'service_display_name',
]
