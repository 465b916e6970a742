"""Exceptions raised by the board services."""

from dataclasses import dataclass
from typing import Optional


class BoardError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BoardError):
    """Malformed column payload; nothing was persisted."""

    status_code = 400


class NotFoundError(BoardError):
    """The targeted column, configuration or email does not exist."""

    status_code = 404


@dataclass
class MigrationOutcome:
    """Result of one bulk status rewrite."""

    old_status: str
    new_status: str
    matched: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class MigrationPartialFailure(Exception):
    """
    One or more bulk status rewrites failed while others succeeded.

    Never propagated to API callers as an error: the column edit is still
    committed and the failure is reported as a warning.
    """

    def __init__(self, outcomes: list[MigrationOutcome]):
        self.outcomes = outcomes
        failed = [o for o in outcomes if not o.ok]
        super().__init__(
            f"{len(failed)} of {len(outcomes)} status migrations failed: "
            + ", ".join(f"{o.old_status} -> {o.new_status}" for o in failed)
        )

    @property
    def failed(self) -> list[MigrationOutcome]:
        return [o for o in self.outcomes if not o.ok]


@dataclass
class TransitionConflict:
    """The client's last-known status no longer matched the stored one."""

    email_id: str
    expected_status: str
    actual_status: str

    def describe(self) -> str:
        return (
            f"Email {self.email_id} was in '{self.actual_status}', "
            f"not '{self.expected_status}'"
        )
