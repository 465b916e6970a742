"""API routers for Mailboard."""

from .auth import router as auth_router
from .kanban import router as kanban_router
from .emails import router as emails_router

__all__ = [
    "auth_router",
    "kanban_router",
    "emails_router",
]
