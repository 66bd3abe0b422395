"""
Data models for change tracking.

A ChangeRecord is one field-level difference between two proposal snapshots;
a ChangeSet groups the records one author produced together with their
review state.
"""
import datetime
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ChangeType(str, Enum):
    ADD = 'add'
    REMOVE = 'remove'
    UPDATE = 'update'


class ChangeSource(str, Enum):
    CLIENT = 'client'
    STAFF = 'staff'


class ReviewStatus(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'


def utc_now() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class ChangeRecord:
    """One field-level difference, addressed by its full key chain from the root."""
    field_path: tuple
    change_type: ChangeType
    old_value: Any = None
    new_value: Any = None
    timestamp: str = field(default_factory=utc_now)
    id: str = field(default_factory=new_id)
    status: ReviewStatus = ReviewStatus.PENDING
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[str] = None
    admin_comment: Optional[str] = None

    @property
    def dotted_path(self) -> str:
        """Dotted form of the path, e.g. services.HQ.TBD.services.0.totalHours"""
        return '.'.join(str(segment) for segment in self.field_path)

    def review(self, status: ReviewStatus, reviewer: Optional[str] = None, comment: Optional[str] = None):
        self.status = ReviewStatus(status)
        self.reviewed_by = reviewer
        self.reviewed_at = utc_now()
        if comment is not None:
            self.admin_comment = comment

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'fieldPath': list(self.field_path),
            'field': self.dotted_path,
            'changeType': self.change_type.value,
            'oldValue': self.old_value,
            'newValue': self.new_value,
            'timestamp': self.timestamp,
            'status': self.status.value,
            'reviewedBy': self.reviewed_by,
            'reviewedAt': self.reviewed_at,
            'adminComment': self.admin_comment,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ChangeRecord':
        path = data.get('fieldPath')
        if path is None:
            path = str(data.get('field') or '').split('.')
        return cls(
            field_path=tuple(path),
            change_type=ChangeType(data.get('changeType', 'update')),
            old_value=data.get('oldValue'),
            new_value=data.get('newValue'),
            timestamp=data.get('timestamp') or utc_now(),
            id=data.get('id') or new_id(),
            status=ReviewStatus(data.get('status') or 'pending'),
            reviewed_by=data.get('reviewedBy'),
            reviewed_at=data.get('reviewedAt'),
            admin_comment=data.get('adminComment'),
        )


@dataclass
class ChangeSet:
    """Changes submitted together by one author, with provenance and review state."""
    changes: list[ChangeRecord]
    change_source: ChangeSource
    actor: Optional[str] = None
    proposal_id: Optional[str] = None
    comment: Optional[str] = None
    submitted_at: str = field(default_factory=utc_now)
    id: str = field(default_factory=new_id)
    status: ReviewStatus = ReviewStatus.PENDING
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[str] = None

    def approve(self, reviewer: Optional[str] = None, comment: Optional[str] = None):
        """Approve the set and every change in it."""
        self._review(ReviewStatus.APPROVED, reviewer, comment)

    def reject(self, reviewer: Optional[str] = None, comment: Optional[str] = None):
        """Reject the set and every change in it."""
        self._review(ReviewStatus.REJECTED, reviewer, comment)

    def _review(self, status: ReviewStatus, reviewer: Optional[str], comment: Optional[str]):
        for change in self.changes:
            change.review(status, reviewer, comment)
        self.status = status
        self.reviewed_by = reviewer
        self.reviewed_at = utc_now()

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'proposalId': self.proposal_id,
            'changeSource': self.change_source.value,
            'actor': self.actor,
            'comment': self.comment,
            'submittedAt': self.submitted_at,
            'status': self.status.value,
            'reviewedBy': self.reviewed_by,
            'reviewedAt': self.reviewed_at,
            'changes': [change.to_dict() for change in self.changes],
        }


__all__ = ['ChangeType', 'ChangeSource', 'ReviewStatus', 'ChangeRecord', 'ChangeSet']
