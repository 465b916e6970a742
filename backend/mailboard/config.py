"""Configuration loader for Mailboard."""

import os
from pathlib import Path
from typing import Optional
import yaml
from pydantic import BaseModel


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False


class DatabaseConfig(BaseModel):
    path: str = "/app/data/mailboard.db"


class SessionConfig(BaseModel):
    timeout_minutes: int = 60
    secret_key: str = "change-me-in-production"
    secure_cookie: bool = False


class LoggingConfig(BaseModel):
    level: str = "info"


class UserConfig(BaseModel):
    username: str
    email: str
    password_hash: str


class BoardConfig(BaseModel):
    """Kanban board behaviour."""
    # Id of the column that acts as the snooze column; ids survive renames
    snooze_column_id: str = "col-snoozed"
    # Fallback for boards whose snooze column predates column ids
    snooze_status: str = "snoozed"
    default_snooze_hours: int = 1
    max_snooze_hours: int = 24 * 365
    # Fixed wall-clock interval for board refreshes
    refresh_interval_seconds: float = 60
    # What happens to emails whose column is deleted: "keep" or "reassign"
    orphan_policy: str = "keep"


class Config(BaseModel):
    server: ServerConfig = ServerConfig()
    database: DatabaseConfig = DatabaseConfig()
    session: SessionConfig = SessionConfig()
    logging: LoggingConfig = LoggingConfig()
    users: list[UserConfig] = []
    board: BoardConfig = BoardConfig()


_config: Optional[Config] = None


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from YAML file and environment variables."""
    global _config

    if _config is not None:
        return _config

    # Determine config path
    if config_path is None:
        config_path = os.environ.get("MAILBOARD_CONFIG", "/app/config.yml")

    config_data = {}

    # Load from file if exists
    if Path(config_path).exists():
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}

    # Create config object
    config = Config(**config_data)

    # Override with environment variables
    if os.environ.get("MAILBOARD_SESSION_SECRET"):
        config.session.secret_key = os.environ["MAILBOARD_SESSION_SECRET"]

    if os.environ.get("MAILBOARD_DB_PATH"):
        config.database.path = os.environ["MAILBOARD_DB_PATH"]

    if os.environ.get("MAILBOARD_LOG_LEVEL"):
        config.logging.level = os.environ["MAILBOARD_LOG_LEVEL"]

    if os.environ.get("MAILBOARD_ORPHAN_POLICY"):
        config.board.orphan_policy = os.environ["MAILBOARD_ORPHAN_POLICY"].lower()

    _config = config
    return config


def get_config() -> Config:
    """Get the loaded configuration."""
    global _config
    if _config is None:
        return load_config()
    return _config


def reset_config() -> None:
    """Forget the cached configuration so the next call reloads it."""
    global _config
    _config = None
