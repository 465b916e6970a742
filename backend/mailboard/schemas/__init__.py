"""Pydantic schemas shared by services and routers."""

from .kanban import (
    ColumnColor,
    ColumnIcon,
    ColumnPatch,
    KanbanColumn,
    ProviderLabel,
)

__all__ = [
    "ColumnColor",
    "ColumnIcon",
    "ColumnPatch",
    "KanbanColumn",
    "ProviderLabel",
]
