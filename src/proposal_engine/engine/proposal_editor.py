"""
Proposal Editor - applies discrete edit operations to a proposal tree.

Each operation is a dict with an "op" key. Operations run against copies of
the tree; once they have all been applied the aggregator recomputes every
total. Invalid operations raise ProposalEditError naming what is available.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

from .aggregator import recalculate
from .catalog import HEADSHOT_TIERS, MINDFULNESS_TYPES, get_catalog
from .lens import ServiceLineRef
from .models import CustomLineItem, DateBlock, ProposalTree, RecurringFrequency, ServiceKind, ServiceLine
from .normalize import normalize_date_key, non_negative, to_number
from .pricing_options import (
    EDITABLE_LINE_FIELDS,
    attach_options,
    edit_line,
    edit_option,
    remove_options,
    select_option,
)

logger = logging.getLogger(__name__)

# User-friendly names accepted for service fields
FIELD_ALIASES = {
    'appointmentTime': 'appTime',
    'appointmentLength': 'appTime',
    'proRate': 'proHourly',
    'rate': 'hourlyRate',
    'discount': 'discountPercent',
    'hours': 'totalHours',
    'pros': 'numPros',
    'professionals': 'numPros',
}

# Descriptive fields stored on the line as-is
PASSTHROUGH_FIELDS = ('massageType',)


class ProposalEditError(ValueError):
    """An edit operation could not be applied."""


@dataclass
class EditResult:
    """Outcome of applying a batch of operations."""
    tree: ProposalTree
    changes_summary: list[dict] = field(default_factory=list)


def _require(op: dict, *keys: str):
    missing = [k for k in keys if op.get(k) is None]
    if missing:
        raise ProposalEditError(f"{op['op']} requires {', '.join(repr(k) for k in missing)}")


def _index(op: dict, key: str) -> int:
    try:
        return int(op[key])
    except (TypeError, ValueError):
        raise ProposalEditError(f"{key} must be an integer, got {op[key]!r}")


def _service_ref(tree: ProposalTree, op: dict) -> tuple[ServiceLineRef, ServiceLine]:
    _require(op, 'location', 'serviceIndex')
    index = _index(op, 'serviceIndex')
    ref = ServiceLineRef(str(op['location']), normalize_date_key(op.get('date')), index)
    try:
        return ref, ref.get(tree)
    except KeyError as e:
        raise ProposalEditError(e.args[0])
    except IndexError as e:
        raise ProposalEditError(str(e))


def _put_block(tree: ProposalTree, location: str, date: str, block: Optional[DateBlock]) -> ProposalTree:
    """Replace (or drop, when block is None) one date block."""
    locations = dict(tree.locations)
    dates = dict(locations.get(location, {}))
    if block is None:
        dates.pop(date, None)
    else:
        dates[date] = block
    locations[location] = dates
    return replace(tree, locations=locations)


def _drop_empty(tree: ProposalTree, location: str, date: str) -> ProposalTree:
    """Remove a date with no services, and its location if that empties too."""
    dates = tree.locations.get(location, {})
    if date in dates and not dates[date].services:
        tree = _put_block(tree, location, date, None)
        if not tree.locations[location]:
            locations = dict(tree.locations)
            del locations[location]
            tree = replace(tree, locations=locations)
    return tree


def handle_add_service(tree: ProposalTree, op: dict) -> tuple[ProposalTree, str]:
    service = op.get('service')
    if not isinstance(service, dict) or not service.get('serviceType'):
        raise ProposalEditError('add_service requires a "service" object with "serviceType"')
    location = op.get('location') or service.get('locationName') or service.get('location')
    if not location:
        raise ProposalEditError('add_service requires "location"')
    date = normalize_date_key(op.get('date') or service.get('date'))

    data = get_catalog().apply_defaults(service)
    data.pop('locationName', None)
    data.update({'location': location, 'date': date})
    line = ServiceLine.from_dict(data)

    block = tree.locations.get(location, {}).get(date) or DateBlock()
    tree = _put_block(tree, location, date, replace(block, services=block.services + [line]))
    return tree, f"Added {line.service_type} at {location} on {date}"


def handle_remove_service(tree: ProposalTree, op: dict) -> tuple[ProposalTree, str]:
    ref, line = _service_ref(tree, op)
    block = tree.locations[ref.location][ref.date]
    services = [s for i, s in enumerate(block.services) if i != ref.index]
    tree = _put_block(tree, ref.location, ref.date, replace(block, services=services))
    tree = _drop_empty(tree, ref.location, ref.date)
    return tree, f"Removed {line.service_type} from {ref.location} on {ref.date}"


def handle_update_service(tree: ProposalTree, op: dict) -> tuple[ProposalTree, str]:
    updates = op.get('updates')
    if not isinstance(updates, dict):
        raise ProposalEditError('update_service requires an "updates" object')
    ref, line = _service_ref(tree, op)

    changes = {}
    extra = dict(line.extra)
    applied = []
    for key, value in updates.items():
        key = FIELD_ALIASES.get(key, key)
        if key == 'headshotTier' and line.kind is ServiceKind.HEADSHOT:
            tier = HEADSHOT_TIERS.get(value)
            if tier:
                changes.update(tier)
                extra['headshotTier'] = value
                applied.append(f"headshotTier → {value}")
        elif key == 'mindfulnessType' and line.is_mindfulness:
            preset = MINDFULNESS_TYPES.get(value)
            if preset:
                changes.update(preset)
                extra['mindfulnessType'] = value
                applied.append(f"mindfulnessType → {value}")
        elif key in PASSTHROUGH_FIELDS:
            extra[key] = value
            applied.append(f"{key} → {value}")
        elif key in EDITABLE_LINE_FIELDS:
            changes[key] = value
            applied.append(f"{key} → {value}")

    if not applied:
        raise ProposalEditError(
            f"update_service found no editable fields in {', '.join(updates)}. "
            f"Editable: {', '.join(EDITABLE_LINE_FIELDS + PASSTHROUGH_FIELDS)}"
        )

    updated = edit_line(replace(line, extra=extra), **changes) if changes else replace(line, extra=extra)
    tree = ref.put(tree, updated)
    return tree, f"Updated {line.service_type} at {ref.location} on {ref.date}: {', '.join(applied)}"


def handle_set_discount(tree: ProposalTree, op: dict) -> tuple[ProposalTree, str]:
    _require(op, 'discountPercent')
    ref, line = _service_ref(tree, op)
    tree = ref.put(tree, edit_line(line, discountPercent=op['discountPercent']))
    return tree, f"Set {op['discountPercent']}% discount on {line.service_type} at {ref.location}"


def handle_set_gratuity(tree: ProposalTree, op: dict) -> tuple[ProposalTree, str]:
    if op.get('type') not in ('percentage', 'dollar'):
        raise ProposalEditError('set_gratuity requires "type" (percentage or dollar)')
    _require(op, 'value')
    value = non_negative(op['value'])
    tree = replace(tree, gratuity_type=op['type'], gratuity_value=value)
    shown = f"{value}%" if op['type'] == 'percentage' else f"${value}"
    return tree, f"Set gratuity to {shown}"


def handle_remove_gratuity(tree: ProposalTree, op: dict) -> tuple[ProposalTree, str]:
    return replace(tree, gratuity_type=None, gratuity_value=None), 'Removed gratuity'


def handle_set_recurring(tree: ProposalTree, op: dict) -> tuple[ProposalTree, str]:
    frequency = op.get('frequency')
    if not isinstance(frequency, dict) or not frequency.get('type') or not frequency.get('occurrences'):
        raise ProposalEditError('set_recurring requires "frequency" with "type" and "occurrences"')
    ref, line = _service_ref(tree, op)
    recurring = RecurringFrequency.from_dict(frequency)
    tree = ref.put(tree, replace(line, is_recurring=True, recurring_frequency=recurring))
    return tree, (
        f"Set {line.service_type} as recurring {recurring.type} ({recurring.occurrences} events)"
    )


def handle_remove_recurring(tree: ProposalTree, op: dict) -> tuple[ProposalTree, str]:
    ref, line = _service_ref(tree, op)
    updated = replace(line, is_recurring=False, recurring_frequency=None, recurring_discount=0, recurring_savings=0)
    return ref.put(tree, updated), f"Removed recurring from {line.service_type} at {ref.location}"


def handle_set_auto_recurring(tree: ProposalTree, op: dict) -> tuple[ProposalTree, str]:
    enabled = bool(op.get('enabled', True))
    tree = replace(tree, is_auto_recurring=enabled)
    return tree, f"{'Enabled' if enabled else 'Disabled'} automatic recurring discount"


def handle_add_pricing_options(tree: ProposalTree, op: dict) -> tuple[ProposalTree, str]:
    ref, line = _service_ref(tree, op)
    updated = attach_options(line)
    tree = ref.put(tree, updated)
    return tree, (
        f"Added {len(updated.pricing_options)} pricing options to {line.service_type} at {ref.location}"
    )


def handle_remove_pricing_options(tree: ProposalTree, op: dict) -> tuple[ProposalTree, str]:
    ref, line = _service_ref(tree, op)
    return ref.put(tree, remove_options(line)), (
        f"Removed pricing options from {line.service_type} at {ref.location}"
    )


def handle_select_pricing_option(tree: ProposalTree, op: dict) -> tuple[ProposalTree, str]:
    _require(op, 'optionIndex')
    ref, line = _service_ref(tree, op)
    try:
        updated = select_option(line, _index(op, 'optionIndex'))
    except IndexError as e:
        raise ProposalEditError(str(e))
    option = updated.pricing_options[updated.selected_option]
    return ref.put(tree, updated), f"Selected {option.name} for {line.service_type} at {ref.location}"


def handle_update_pricing_option(tree: ProposalTree, op: dict) -> tuple[ProposalTree, str]:
    _require(op, 'optionIndex', 'updates')
    ref, line = _service_ref(tree, op)
    if not isinstance(op['updates'], dict):
        raise ProposalEditError('update_pricing_option requires an "updates" object')
    index = _index(op, 'optionIndex')
    updates = {FIELD_ALIASES.get(k, k): v for k, v in op['updates'].items()}
    try:
        updated = edit_option(line, index, **updates)
    except (IndexError, ValueError) as e:
        raise ProposalEditError(str(e))
    return ref.put(tree, updated), (
        f"Updated option {index + 1} of {line.service_type} at {ref.location}: "
        f"{', '.join(updates)}"
    )


def handle_add_location(tree: ProposalTree, op: dict) -> tuple[ProposalTree, str]:
    _require(op, 'location')
    location = str(op['location'])
    locations = dict(tree.locations)
    locations.setdefault(location, {})
    extra = dict(tree.extra)
    if op.get('officeAddress'):
        offices = dict(extra.get('officeLocations') or {})
        offices[location] = op['officeAddress']
        extra['officeLocations'] = offices
    return replace(tree, locations=locations, extra=extra), f"Added location: {location}"


def handle_remove_location(tree: ProposalTree, op: dict) -> tuple[ProposalTree, str]:
    _require(op, 'location')
    location = str(op['location'])
    if location not in tree.locations:
        raise ProposalEditError(f"Location \"{location}\" not found in proposal")
    removed = sum(len(block.services) for block in tree.locations[location].values())
    locations = {k: v for k, v in tree.locations.items() if k != location}
    return replace(tree, locations=locations), (
        f"Removed location \"{location}\" ({removed} service{'s' if removed != 1 else ''} removed)"
    )


def handle_rename_location(tree: ProposalTree, op: dict) -> tuple[ProposalTree, str]:
    old_name = op.get('oldName') or op.get('location')
    new_name = op.get('newName')
    if not old_name or not new_name:
        raise ProposalEditError('rename_location requires "oldName" (or "location") and "newName"')
    if old_name not in tree.locations:
        raise ProposalEditError(
            f"Location \"{old_name}\" not found in proposal. Available: {', '.join(tree.locations)}"
        )
    if new_name in tree.locations:
        raise ProposalEditError(f"Location \"{new_name}\" already exists in proposal")

    locations = {}
    for name, dates in tree.locations.items():
        if name != old_name:
            locations[name] = dates
            continue
        locations[new_name] = {
            date: replace(block, services=[
                replace(line, extra={**line.extra, 'location': new_name}) if 'location' in line.extra else line
                for line in block.services
            ])
            for date, block in dates.items()
        }
    return replace(tree, locations=locations), f"Renamed location \"{old_name}\" to \"{new_name}\""


def handle_change_date(tree: ProposalTree, op: dict) -> tuple[ProposalTree, str]:
    location = op.get('location')
    old_date = op.get('oldDate') or op.get('date')
    new_date = op.get('newDate')
    if not location or not old_date or not new_date:
        raise ProposalEditError('change_date requires "location", "oldDate" (or "date"), and "newDate"')
    old_date, new_date = normalize_date_key(old_date), normalize_date_key(new_date)
    if location not in tree.locations:
        raise ProposalEditError(
            f"Location \"{location}\" not found in proposal. Available: {', '.join(tree.locations)}"
        )
    dates = tree.locations[location]
    if old_date not in dates:
        raise ProposalEditError(
            f"Date \"{old_date}\" not found at location \"{location}\". Available: {', '.join(dates)}"
        )

    moving = [
        replace(line, extra={**line.extra, 'date': new_date}) if 'date' in line.extra else line
        for line in dates[old_date].services
    ]
    target = dates.get(new_date) if new_date != old_date else None
    merged = (target.services if target else []) + moving
    tree = _put_block(tree, location, old_date, None)
    tree = _put_block(tree, location, new_date, DateBlock(services=merged))
    return tree, f"Changed date from {old_date} to {new_date} at {location}"


def handle_add_line_item(tree: ProposalTree, op: dict) -> tuple[ProposalTree, str]:
    item = op.get('item')
    if not isinstance(item, dict) or not item.get('name'):
        raise ProposalEditError('add_line_item requires an "item" object with "name" and "amount"')
    line_item = CustomLineItem.from_dict(item)
    tree = replace(tree, custom_line_items=tree.custom_line_items + [line_item])
    return tree, f"Added line item \"{line_item.name}\" (${to_number(line_item.amount):,.2f})"


def handle_remove_line_item(tree: ProposalTree, op: dict) -> tuple[ProposalTree, str]:
    _require(op, 'itemIndex')
    index = _index(op, 'itemIndex')
    if not 0 <= index < len(tree.custom_line_items):
        raise ProposalEditError(
            f"itemIndex {index} is out of bounds ({len(tree.custom_line_items)} line item(s))"
        )
    removed = tree.custom_line_items[index]
    items = [item for i, item in enumerate(tree.custom_line_items) if i != index]
    return replace(tree, custom_line_items=items), f"Removed line item \"{removed.name}\""


def handle_update_client_info(tree: ProposalTree, op: dict) -> tuple[ProposalTree, str]:
    updates = []
    if op.get('clientName') is not None:
        tree = replace(tree, client_name=str(op['clientName']).strip())
        updates.append(f"name → {op['clientName']}")
    if op.get('clientEmail') is not None:
        tree = replace(tree, client_email=op['clientEmail'])
        updates.append(f"email → {op['clientEmail']}")
    if not updates:
        raise ProposalEditError('update_client_info requires "clientName" or "clientEmail"')
    return tree, f"Updated client info: {', '.join(updates)}"


OPERATION_HANDLERS: dict[str, Callable[[ProposalTree, dict], tuple[ProposalTree, str]]] = {
    'add_service': handle_add_service,
    'remove_service': handle_remove_service,
    'update_service': handle_update_service,
    'set_discount': handle_set_discount,
    'set_gratuity': handle_set_gratuity,
    'remove_gratuity': handle_remove_gratuity,
    'set_recurring': handle_set_recurring,
    'remove_recurring': handle_remove_recurring,
    'set_auto_recurring': handle_set_auto_recurring,
    'add_pricing_options': handle_add_pricing_options,
    'remove_pricing_options': handle_remove_pricing_options,
    'select_pricing_option': handle_select_pricing_option,
    'update_pricing_option': handle_update_pricing_option,
    'add_location': handle_add_location,
    'remove_location': handle_remove_location,
    'rename_location': handle_rename_location,
    'change_date': handle_change_date,
    'add_line_item': handle_add_line_item,
    'remove_line_item': handle_remove_line_item,
    'update_client_info': handle_update_client_info,
}


def apply_operations(tree: ProposalTree | dict, operations: list[dict]) -> EditResult:
    """
    Apply operations in order, then recalculate every total.

    Args:
        tree: The current proposal (a tree or its persisted dict)
        operations: List of {"op": name, ...} dicts

    Returns:
        EditResult with the recalculated tree and one summary entry per op
    """
    if not isinstance(operations, list) or not operations:
        raise ProposalEditError('At least one operation is required')
    if isinstance(tree, dict):
        tree = ProposalTree.from_dict(tree)

    changes_summary = []
    for operation in operations:
        if not isinstance(operation, dict) or not operation.get('op'):
            raise ProposalEditError('Each operation must have an "op" field')
        handler = OPERATION_HANDLERS.get(operation['op'])
        if handler is None:
            raise ProposalEditError(
                f"Unknown operation: \"{operation['op']}\". "
                f"Valid operations: {', '.join(OPERATION_HANDLERS)}"
            )
        tree, description = handler(tree, operation)
        logger.info("%s: %s", operation['op'], description)
        changes_summary.append({'op': operation['op'], 'description': description})

    return EditResult(tree=recalculate(tree), changes_summary=changes_summary)


__all__ = ['ProposalEditError', 'EditResult', 'OPERATION_HANDLERS', 'apply_operations']
