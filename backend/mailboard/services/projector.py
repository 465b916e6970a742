"""Groups emails into column buckets for display."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional

from ..schemas.kanban import KanbanColumn
from ..utils.timeutil import utcnow


class SortOrder(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"


@dataclass
class BoardFilters:
    """Display-only filters, combined with AND, plus one global sort."""

    unread_only: bool = False
    has_attachments: bool = False
    sort: SortOrder = SortOrder.NEWEST

    def matches(self, email: Any) -> bool:
        if self.unread_only and email.is_read:
            return False
        if self.has_attachments and not email.attachments:
            return False
        return True


@dataclass
class ColumnBucket:
    column: KanbanColumn
    emails: list = field(default_factory=list)
    # Size before filtering
    total: int = 0

    @property
    def count(self) -> int:
        return len(self.emails)


@dataclass
class BoardProjection:
    buckets: list[ColumnBucket]
    # Emails whose status matches no column; never displayed
    orphaned: list = field(default_factory=list)
    generated_at: datetime = field(default_factory=utcnow)

    def bucket(self, status: str) -> Optional[ColumnBucket]:
        return next((b for b in self.buckets if b.column.status == status), None)


def group_by_status(
    columns: Iterable[KanbanColumn], emails: Iterable[Any]
) -> tuple[dict[str, list], list]:
    """Split emails into per-status lists; unknown statuses go to the orphan list."""
    grouped = {c.status: [] for c in columns}
    orphaned = []
    for email in emails:
        if email.status in grouped:
            grouped[email.status].append(email)
        else:
            orphaned.append(email)
    return grouped, orphaned


def apply_filters(emails: Iterable[Any], filters: BoardFilters) -> list:
    """Filter and sort a copy of ``emails``."""
    filtered = [e for e in emails if filters.matches(e)]
    filtered.sort(
        key=lambda e: e.timestamp,
        reverse=filters.sort == SortOrder.NEWEST,
    )
    return filtered


def is_snooze_expired(email: Any, now: Optional[datetime] = None) -> bool:
    """True once a snoozed email's deadline has passed."""
    if email.snooze_until is None:
        return False
    return email.snooze_until <= (now or utcnow())


def project_board(
    columns: list[KanbanColumn],
    emails: Iterable[Any],
    filters: Optional[BoardFilters] = None,
) -> BoardProjection:
    """Build one bucket per column, in column order, empty columns included."""
    filters = filters or BoardFilters()
    ordered = sorted(columns, key=lambda c: c.order)
    grouped, orphaned = group_by_status(ordered, emails)

    buckets = [
        ColumnBucket(
            column=column,
            emails=apply_filters(grouped[column.status], filters),
            total=len(grouped[column.status]),
        )
        for column in ordered
    ]
    return BoardProjection(buckets=buckets, orphaned=orphaned)
