"""Email status transitions: drag-and-drop moves and snoozing."""

import logging
import math
from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, Optional

from ..config import BoardConfig
from ..exceptions import NotFoundError, TransitionConflict, ValidationError
from ..models.email import Email
from ..schemas.kanban import KanbanColumn
from ..utils.timeutil import utcnow
from .email import EmailService

logger = logging.getLogger(__name__)


def find_snooze_column(
    columns: Iterable[KanbanColumn],
    column_id: str = "col-snoozed",
    fallback_status: Optional[str] = "snoozed",
) -> Optional[KanbanColumn]:
    """
    Locate the snooze column by id, so that renaming it keeps it the snooze
    column. Boards upgraded from legacy records minted new ids; for those the
    column carrying ``fallback_status`` is used.
    """
    columns = list(columns)
    by_id = next((c for c in columns if c.id == column_id), None)
    if by_id is not None:
        return by_id
    if fallback_status:
        return next((c for c in columns if c.status == fallback_status), None)
    return None


def validate_snooze_hours(hours: float, max_hours: float) -> float:
    if not math.isfinite(hours) or hours <= 0:
        raise ValidationError("Snooze duration must be a positive number of hours")
    if hours > max_hours:
        raise ValidationError(f"Snooze duration cannot exceed {max_hours:g} hours")
    return hours


@dataclass
class TransitionResult:
    """Authoritative email state after a transition."""

    email: Email
    previous_status: str
    changed: bool
    conflict: Optional[TransitionConflict] = None


class TransitionEngine:
    """
    State machine for an email's status.

    The status is always some column's status; the designated snooze column
    additionally carries a ``snooze_until`` deadline. Statuses with no column
    (orphans) are tolerated and can be moved out of like any other.
    """

    def __init__(
        self,
        emails: EmailService,
        columns: list[KanbanColumn],
        snooze_column_id: str = "col-snoozed",
        default_snooze_hours: int = 1,
        snooze_status: Optional[str] = "snoozed",
        max_snooze_hours: int = 24 * 365,
    ):
        self.emails = emails
        self.columns = {c.status: c for c in columns}
        self.snooze_column = find_snooze_column(columns, snooze_column_id, snooze_status)
        self.default_snooze_hours = default_snooze_hours
        self.max_snooze_hours = max_snooze_hours

    @classmethod
    def from_config(
        cls, emails: EmailService, columns: list[KanbanColumn], board: BoardConfig
    ) -> "TransitionEngine":
        return cls(
            emails,
            columns,
            snooze_column_id=board.snooze_column_id,
            default_snooze_hours=board.default_snooze_hours,
            snooze_status=board.snooze_status,
            max_snooze_hours=board.max_snooze_hours,
        )

    @property
    def snooze_status(self) -> Optional[str]:
        """Current status of the snooze column, if the board has one."""
        return self.snooze_column.status if self.snooze_column else None

    async def _load(self, owner_id: str, email_id: str) -> Email:
        email = await self.emails.get_email(owner_id, email_id)
        if email is None:
            raise NotFoundError("Email not found")
        return email

    def _check_expected(
        self, email: Email, expected_status: Optional[str]
    ) -> Optional[TransitionConflict]:
        if expected_status is None or expected_status == email.status:
            return None
        conflict = TransitionConflict(
            email_id=email.id,
            expected_status=expected_status,
            actual_status=email.status,
        )
        logger.info(f"Transition conflict, applying to current state: {conflict.describe()}")
        return conflict

    async def drop(
        self,
        owner_id: str,
        email_id: str,
        target_status: str,
        expected_status: Optional[str] = None,
    ) -> TransitionResult:
        """Move an email onto the column with ``target_status``."""
        if target_status not in self.columns:
            raise NotFoundError(f"No column with status '{target_status}'")

        email = await self._load(owner_id, email_id)
        conflict = self._check_expected(email, expected_status)
        previous_status = email.status

        if previous_status == target_status:
            return TransitionResult(email, previous_status, changed=False, conflict=conflict)

        if target_status == self.snooze_status:
            until = utcnow() + timedelta(hours=self.default_snooze_hours)
            email = await self.emails.snooze(owner_id, email_id, until, status=target_status)
        else:
            email = await self.emails.update_status(owner_id, email_id, target_status)

        logger.debug(f"Moved email {email_id}: '{previous_status}' -> '{target_status}'")
        return TransitionResult(email, previous_status, changed=True, conflict=conflict)

    async def snooze(
        self,
        owner_id: str,
        email_id: str,
        hours: Optional[float] = None,
        expected_status: Optional[str] = None,
    ) -> TransitionResult:
        """
        Snooze an email for ``hours`` (default snooze length if omitted).

        An email already in the snooze column only gets a new deadline.
        """
        if hours is None:
            hours = self.default_snooze_hours
        validate_snooze_hours(hours, self.max_snooze_hours)
        if self.snooze_column is None:
            raise NotFoundError("No snooze column is configured")

        email = await self._load(owner_id, email_id)
        conflict = self._check_expected(email, expected_status)
        previous_status = email.status

        until = utcnow() + timedelta(hours=hours)
        if previous_status == self.snooze_status:
            email = await self.emails.snooze(owner_id, email_id, until)
        else:
            email = await self.emails.snooze(
                owner_id, email_id, until, status=self.snooze_status
            )

        logger.debug(f"Snoozed email {email_id} until {until.isoformat()}")
        return TransitionResult(email, previous_status, changed=True, conflict=conflict)
