"""Tracking subpackage - field-level change history between proposal snapshots."""
from .change_display import ChangeDisplay, describe, group_changes
from .change_tracker import ProposalShapeError, apply_changes, collapse_changes, diff, track_edit_history
from .models import ChangeRecord, ChangeSet, ChangeSource, ChangeType, ReviewStatus

__all__ = [
    'ChangeDisplay',
    'describe',
    'group_changes',
    'ProposalShapeError',
    'apply_changes',
    'collapse_changes',
    'diff',
    'track_edit_history',
    'ChangeRecord',
    'ChangeSet',
    'ChangeSource',
    'ChangeType',
    'ReviewStatus',
]
