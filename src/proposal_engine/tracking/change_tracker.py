"""
Change Tracker - structural diff between two proposal snapshots.

Both snapshots are walked in lock-step in their persisted dict shape. Every
leaf that differs becomes one ChangeRecord whose field_path is the full key
chain from the root, e.g. ("services", "HQ", "2026-02-18", "services", 0,
"discountPercent"). Lists are compared position by position, so reordering
services shows up as per-index updates rather than moves.

Diffing never modifies either input.
"""
import copy
import logging
from collections.abc import Mapping
from dataclasses import replace
from typing import Any, Iterable, Optional

from ..engine.models import ProposalTree
from .models import ChangeRecord, ChangeSet, ChangeSource, ChangeType, ReviewStatus, utc_now

logger = logging.getLogger(__name__)


class ProposalShapeError(TypeError):
    """A value handed to the tracker is not a proposal tree."""


def as_mapping(value: Any, role: str = 'value') -> Mapping:
    """Persisted dict shape of a tree, validating the shape."""
    if isinstance(value, ProposalTree):
        return value.to_dict()
    if not isinstance(value, Mapping):
        raise ProposalShapeError(f"Cannot diff {role}: expected a proposal tree, got {type(value).__name__}")
    services = value.get('services', {})
    if not isinstance(services, Mapping):
        raise ProposalShapeError(
            f"Cannot diff {role}: \"services\" must be a mapping, got {type(services).__name__}"
        )
    return value


def same_value(a: Any, b: Any) -> bool:
    """Deep equality where True and 1 are different values."""
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        return a.keys() == b.keys() and all(same_value(a[k], b[k]) for k in a)
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(same_value(x, y) for x, y in zip(a, b))
    if isinstance(a, (Mapping, list)) or isinstance(b, (Mapping, list)):
        return False
    return a == b


def _walk(before: Any, after: Any, path: tuple, changes: list, timestamp: str):
    def emit(change_type: ChangeType, old: Any, new: Any, at: tuple):
        changes.append(ChangeRecord(
            field_path=at,
            change_type=change_type,
            old_value=copy.deepcopy(old),
            new_value=copy.deepcopy(new),
            timestamp=timestamp,
        ))

    if isinstance(before, Mapping) and isinstance(after, Mapping):
        for key in before:
            if key in after:
                _walk(before[key], after[key], path + (key,), changes, timestamp)
            else:
                emit(ChangeType.REMOVE, before[key], None, path + (key,))
        for key in after:
            if key not in before:
                emit(ChangeType.ADD, None, after[key], path + (key,))
    elif isinstance(before, list) and isinstance(after, list):
        for index in range(max(len(before), len(after))):
            if index >= len(after):
                emit(ChangeType.REMOVE, before[index], None, path + (index,))
            elif index >= len(before):
                emit(ChangeType.ADD, None, after[index], path + (index,))
            else:
                _walk(before[index], after[index], path + (index,), changes, timestamp)
    elif not same_value(before, after):
        emit(ChangeType.UPDATE, before, after, path)


def diff(before: ProposalTree | Mapping, after: ProposalTree | Mapping) -> list[ChangeRecord]:
    """
    Field-level changes turning `before` into `after`.

    Args:
        before: The persisted "original" snapshot
        after: The current snapshot

    Returns:
        ChangeRecords in traversal order, all stamped with one timestamp

    Raises:
        ProposalShapeError: If either side is not a proposal tree
    """
    before = as_mapping(before, 'before')
    after = as_mapping(after, 'after')
    changes: list[ChangeRecord] = []
    _walk(before, after, (), changes, utc_now())
    return changes


def _parent(root: Any, path: tuple) -> Optional[Any]:
    node = root
    for segment in path[:-1]:
        if isinstance(node, dict):
            node = node.setdefault(segment, {})
        elif isinstance(node, list) and isinstance(segment, int) and 0 <= segment < len(node):
            node = node[segment]
        else:
            return None
    return node


def _set(root: Any, record: ChangeRecord) -> bool:
    parent = _parent(root, record.field_path)
    key = record.field_path[-1]
    value = copy.deepcopy(record.new_value)
    if isinstance(parent, dict):
        parent[key] = value
        return True
    if isinstance(parent, list) and isinstance(key, int):
        if key == len(parent):
            parent.append(value)
            return True
        if 0 <= key < len(parent):
            parent[key] = value
            return True
    return False


def _delete(root: Any, record: ChangeRecord) -> bool:
    parent = _parent(root, record.field_path)
    key = record.field_path[-1]
    if isinstance(parent, dict) and key in parent:
        del parent[key]
        return True
    if isinstance(parent, list) and isinstance(key, int) and 0 <= key < len(parent):
        del parent[key]
        return True
    return False


def apply_changes(
    tree: ProposalTree | Mapping,
    records: Iterable[ChangeRecord],
    only_approved: bool = False,
) -> ProposalTree | dict:
    """
    Re-apply change records onto a copy of a tree.

    Adds and updates run in record order, removes in reverse order so list
    positions stay valid. Applying diff(a, b) onto a reproduces b.

    Args:
        tree: Tree the records were computed against
        records: Change records (typically from diff)
        only_approved: Skip records whose review status is not approved

    Returns:
        A new tree of the same kind as the input (ProposalTree or dict)
    """
    data = copy.deepcopy(dict(as_mapping(tree, 'tree')))
    records = [
        record for record in records
        if not only_approved or record.status == ReviewStatus.APPROVED
    ]

    for record in records:
        if not record.field_path:
            continue
        if record.change_type != ChangeType.REMOVE and not _set(data, record):
            logger.warning("Skipped change at %s: parent no longer exists", record.dotted_path)
    for record in reversed(records):
        if record.field_path and record.change_type == ChangeType.REMOVE and not _delete(data, record):
            logger.warning("Skipped removal at %s: field no longer exists", record.dotted_path)

    return ProposalTree.from_dict(data) if isinstance(tree, ProposalTree) else data


def collapse_changes(records: Iterable[ChangeRecord]) -> list[ChangeRecord]:
    """
    One record per field path across several diffs.

    Keeps the first old value and the last new value; paths whose value ends
    up where it started are dropped.
    """
    spans: dict[tuple, list[ChangeRecord]] = {}
    for record in records:
        span = spans.setdefault(tuple(record.field_path), [record, record])
        span[1] = record

    collapsed = []
    for first, last in spans.values():
        existed = first.change_type != ChangeType.ADD
        exists = last.change_type != ChangeType.REMOVE
        if existed and exists:
            if same_value(first.old_value, last.new_value):
                continue
            change_type = ChangeType.UPDATE
        elif existed:
            change_type = ChangeType.REMOVE
        elif exists:
            change_type = ChangeType.ADD
        else:
            continue
        collapsed.append(replace(
            first,
            change_type=change_type,
            new_value=last.new_value if exists else None,
            old_value=first.old_value if existed else None,
            timestamp=last.timestamp,
        ))
    return collapsed


def track_edit_history(
    original: ProposalTree | Mapping,
    client_edited: Optional[ProposalTree | Mapping],
    final: ProposalTree | Mapping,
    client: Optional[str] = None,
    staff: Optional[str] = None,
    proposal_id: Optional[str] = None,
) -> list[ChangeSet]:
    """
    Attribute changes to the client and to staff.

    Runs one diff original → client_edited and one client_edited → final so
    no single diff mixes authors. Sets with no changes are omitted; when the
    client never edited, everything is attributed to staff.
    """
    change_sets = []
    staff_base = original
    if client_edited is not None:
        client_changes = diff(original, client_edited)
        if client_changes:
            change_sets.append(ChangeSet(
                changes=client_changes,
                change_source=ChangeSource.CLIENT,
                actor=client,
                proposal_id=proposal_id,
            ))
        staff_base = client_edited

    staff_changes = diff(staff_base, final)
    if staff_changes:
        change_sets.append(ChangeSet(
            changes=staff_changes,
            change_source=ChangeSource.STAFF,
            actor=staff,
            proposal_id=proposal_id,
        ))

    logger.debug(
        "Edit history: %s",
        ', '.join(f"{s.change_source.value}={len(s.changes)}" for s in change_sets) or 'no changes',
    )
    return change_sets


__all__ = [
    'ProposalShapeError',
    'diff',
    'apply_changes',
    'collapse_changes',
    'track_edit_history',
    'same_value',
]
