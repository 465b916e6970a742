"""Services for Mailboard."""

from .auth import AuthService, get_auth_service
from .board import BoardController, LocalBoardBackend
from .column import ColumnService
from .email import EmailService
from .migration import StatusMigrationExecutor, plan_status_migrations
from .projector import BoardFilters, project_board
from .slug import generate_slug, resolve_unique_status
from .transition import TransitionEngine

__all__ = [
    "AuthService",
    "get_auth_service",
    "BoardController",
    "LocalBoardBackend",
    "ColumnService",
    "EmailService",
    "StatusMigrationExecutor",
    "plan_status_migrations",
    "BoardFilters",
    "project_board",
    "generate_slug",
    "resolve_unique_status",
    "TransitionEngine",
]
