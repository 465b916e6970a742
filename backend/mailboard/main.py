"""Main FastAPI application for Mailboard."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import load_config
from .exceptions import BoardError
from .models.database import init_db, close_db
from .utils.logging import setup_logging
from .routers import auth_router, kanban_router, emails_router
from .services.auth import get_auth_service

logger = logging.getLogger(__name__)

# Background tasks
_session_cleanup_task: asyncio.Task | None = None


async def session_cleanup_task():
    """Background task evicting expired login sessions."""
    logger.info("Session cleanup task started")

    while True:
        try:
            await asyncio.sleep(300)

            evicted = get_auth_service().evict_expired()
            if evicted > 0:
                logger.info(f"Evicted {evicted} expired sessions")

        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error(f"Session cleanup error: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global _session_cleanup_task

    # Startup
    config = load_config()
    setup_logging()
    logger.info("Starting Mailboard...")

    await init_db()
    logger.info("Database initialized")

    logger.info(f"Server: {config.server.host}:{config.server.port}")
    logger.info(f"Users configured: {len(config.users)}")
    logger.info(
        f"Board: snooze column '{config.board.snooze_column_id}', "
        f"orphan policy '{config.board.orphan_policy}'"
    )

    _session_cleanup_task = asyncio.create_task(session_cleanup_task())

    yield

    # Shutdown
    logger.info("Shutting down Mailboard...")

    if _session_cleanup_task:
        _session_cleanup_task.cancel()
        try:
            await _session_cleanup_task
        except asyncio.CancelledError:
            pass

    await close_db()


app = FastAPI(
    title="Mailboard",
    description="Personal email dashboard with a configurable Kanban workflow",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware (for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register API routers
app.include_router(auth_router)
app.include_router(kanban_router)
app.include_router(emails_router)


@app.exception_handler(BoardError)
async def board_error_handler(request: Request, exc: BoardError):
    """Report service errors as a failed request with a message."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message},
    )


# Health check endpoint
@app.get("/api/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy", "service": "mailboard"}


if __name__ == "__main__":
    import uvicorn

    config = load_config()
    uvicorn.run(
        "mailboard.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.debug,
    )
