"""Kanban configuration model, one row per owner."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, JSON
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base
from ..utils.timeutil import utcnow


class KanbanConfig(Base):
    """Column configuration of one owner's board."""

    __tablename__ = "kanban_configs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    # Ordered list of column dicts (id, status, title, color, icon, provider_label, order)
    columns: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    # Ids of deleted columns; an id is never handed out twice
    retired_column_ids: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )
