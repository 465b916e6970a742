"""Builders for test data."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from mailboard.models.email import Email
from mailboard.schemas.kanban import KanbanColumn
from mailboard.services.column import DEFAULT_COLUMNS

OWNER = "alice"
BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


def make_email(email_id: str, status: str, **kwargs: Any) -> Email:
    """Build an Email row with sensible defaults."""
    offset = kwargs.pop("minutes", 0)
    values = {
        "id": email_id,
        "owner_id": OWNER,
        "status": status,
        "subject": f"Subject {email_id}",
        "sender": "bob@example.com",
        "is_read": False,
        "timestamp": BASE_TIME + timedelta(minutes=offset),
        "attachments": [],
        "snooze_until": None,
    }
    values.update(kwargs)
    return Email(**values)


def default_columns() -> list[KanbanColumn]:
    return [KanbanColumn.model_validate(c) for c in DEFAULT_COLUMNS]


def column(column_id: str, title: str, status: str = "", **kwargs: Any) -> KanbanColumn:
    values = {
        "id": column_id,
        "status": status,
        "title": title,
        "color": "bg-blue-500",
        "icon": "Inbox",
    }
    values.update(kwargs)
    return KanbanColumn(**values)
