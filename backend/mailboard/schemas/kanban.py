"""Kanban column schemas."""

from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ColumnColor(str, Enum):
    BLUE = "bg-blue-500"
    YELLOW = "bg-yellow-500"
    GREEN = "bg-green-500"
    PURPLE = "bg-purple-500"
    RED = "bg-red-500"
    PINK = "bg-pink-500"
    INDIGO = "bg-indigo-500"
    ORANGE = "bg-orange-500"
    TEAL = "bg-teal-500"
    GRAY = "bg-gray-500"


class ColumnIcon(str, Enum):
    INBOX = "Inbox"
    CLOCK = "Clock"
    CHECK_CIRCLE = "CheckCircle"
    STAR = "Star"
    ARCHIVE = "Archive"
    MAIL = "Mail"
    SEND = "Send"
    ALERT_CIRCLE = "AlertCircle"
    ZAP = "Zap"
    TARGET = "Target"
    FLAG = "Flag"


class ProviderLabel(str, Enum):
    """Mailbox labels a column may claim."""
    INBOX = "INBOX"
    STARRED = "STARRED"
    SENT = "SENT"
    DRAFT = "DRAFT"
    IMPORTANT = "IMPORTANT"
    TRASH = "TRASH"
    SPAM = "SPAM"


_PROVIDER_LABEL_ALIASES = AliasChoices("providerLabel", "gmailLabel", "provider_label")


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class KanbanColumn(BaseModel):
    """
    One workflow stage of a board.

    Required fields default to empty strings so that missing values are
    reported by the column service as a rejected save rather than by
    request parsing.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    status: str = ""
    title: str = ""
    color: str = ""
    icon: str = ""
    provider_label: Optional[str] = Field(
        default=None,
        validation_alias=_PROVIDER_LABEL_ALIASES,
        serialization_alias="providerLabel",
    )
    order: int = 0

    @field_validator("provider_label")
    @classmethod
    def normalize_label(cls, value: Optional[str]) -> Optional[str]:
        return _blank_to_none(value)


class ColumnPatch(BaseModel):
    """Partial column update. ``id`` is accepted but ignored."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    status: Optional[str] = None
    title: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    provider_label: Optional[str] = Field(
        default=None,
        validation_alias=_PROVIDER_LABEL_ALIASES,
        serialization_alias="providerLabel",
    )
    order: Optional[int] = None

    @field_validator("provider_label")
    @classmethod
    def normalize_label(cls, value: Optional[str]) -> Optional[str]:
        return _blank_to_none(value)
