"""Database models for Mailboard."""

from .database import Base, get_db, init_db
from .board import KanbanConfig
from .email import Email

__all__ = [
    "Base",
    "get_db",
    "init_db",
    "KanbanConfig",
    "Email",
]
