"""Slug and status derivation for Kanban columns."""

import re
import uuid
from typing import Iterable, Optional

from ..schemas.kanban import KanbanColumn


DEFAULT_STATUS_BASE = "column"
PLACEHOLDER_STATUS_PREFIX = "new-status-"


def generate_slug(text: Optional[str]) -> str:
    """
    Generate a URL-safe slug from a column title or provider label.

    "Sent Mail" -> "sent-mail", "INBOX" -> "inbox". Returns an empty string
    when nothing survives; callers fall back to a default base.
    """
    if not text:
        return ""
    slug = text.lower().strip()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def generate_column_id() -> str:
    """Mint an opaque column id."""
    return f"col-{uuid.uuid4().hex}"


def is_placeholder_status(status: Optional[str]) -> bool:
    """True for statuses that still have to be finalized on save."""
    return not status or status.startswith(PLACEHOLDER_STATUS_PREFIX)


def resolve_unique_status(
    base: str,
    columns: Iterable[KanbanColumn],
    exclude_id: Optional[str] = None,
) -> str:
    """Return ``base``, or ``base-N`` with the lowest free N, unused by other columns."""
    base = base or DEFAULT_STATUS_BASE
    taken = {c.status for c in columns if c.id != exclude_id}

    status = base
    counter = 1
    while status in taken:
        status = f"{base}-{counter}"
        counter += 1
    return status


def derive_status(column: KanbanColumn, columns: Iterable[KanbanColumn]) -> str:
    """Derive a unique status, preferring the provider label over the title."""
    if column.provider_label:
        base = generate_slug(column.provider_label)
    else:
        base = generate_slug(column.title)
    return resolve_unique_status(base, columns, exclude_id=column.id)
