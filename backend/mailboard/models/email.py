"""Email model (the status-relevant subset of the mirrored mailbox)."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String, Text, Boolean, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base
from ..utils.timeutil import utcnow


class Email(Base):
    """An email card on the board."""

    __tablename__ = "emails"
    __table_args__ = (
        Index("ix_emails_owner_status", "owner_id", "status"),
    )

    # Provider message id
    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sender: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Workflow position; equals some column's status (orphans are tolerated)
    status: Mapped[str] = mapped_column(String(100), default="inbox", nullable=False)
    snooze_until: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    attachments: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )
