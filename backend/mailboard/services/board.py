"""Board controller: keeps a projected board reconciled with the store."""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import BoardConfig, get_config
from ..exceptions import NotFoundError
from ..schemas.kanban import KanbanColumn
from ..utils.timeutil import utcnow
from .column import ColumnService
from .email import EmailService
from .projector import BoardFilters, BoardProjection, project_board
from .transition import TransitionEngine, find_snooze_column, validate_snooze_hours

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailCard:
    """Client-side copy of the status-relevant email fields."""

    id: str
    status: str
    timestamp: datetime
    snooze_until: Optional[datetime] = None
    is_read: bool = False
    attachments: list = field(default_factory=list)
    subject: Optional[str] = None
    sender: Optional[str] = None

    @classmethod
    def from_email(cls, email: Any) -> "EmailCard":
        return cls(
            id=email.id,
            status=email.status,
            timestamp=email.timestamp,
            snooze_until=email.snooze_until,
            is_read=email.is_read,
            attachments=list(email.attachments or []),
            subject=email.subject,
            sender=email.sender,
        )


class BoardBackend:
    """Authoritative operations the controller reconciles against."""

    async def load_columns(self) -> list[KanbanColumn]:
        raise NotImplementedError

    async def load_emails(self, statuses: list[str]) -> list[Any]:
        raise NotImplementedError

    async def move(
        self, email_id: str, target_status: str, expected_status: Optional[str]
    ) -> Any:
        raise NotImplementedError

    async def snooze(
        self, email_id: str, hours: float, expected_status: Optional[str]
    ) -> Any:
        raise NotImplementedError


class LocalBoardBackend(BoardBackend):
    """Backend running the services directly, one session per call."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        owner_id: str,
        board: Optional[BoardConfig] = None,
    ):
        self.session_factory = session_factory
        self.owner_id = owner_id
        self.board = board or get_config().board

    async def load_columns(self) -> list[KanbanColumn]:
        async with self.session_factory() as db:
            columns = await ColumnService(db).get_columns(self.owner_id)
            # Seeding or legacy upgrades may have written
            await db.commit()
        return columns

    async def load_emails(self, statuses: list[str]) -> list[Any]:
        async with self.session_factory() as db:
            service = EmailService(db)
            emails = []
            for status in statuses:
                emails.extend(await service.fetch_by_status(self.owner_id, status))
        return emails

    async def _engine(self, db: AsyncSession) -> TransitionEngine:
        columns = await ColumnService(db).get_columns(self.owner_id)
        return TransitionEngine.from_config(EmailService(db), columns, self.board)

    async def move(
        self, email_id: str, target_status: str, expected_status: Optional[str]
    ) -> Any:
        async with self.session_factory() as db:
            engine = await self._engine(db)
            result = await engine.drop(self.owner_id, email_id, target_status, expected_status)
            await db.commit()
        return result.email

    async def snooze(
        self, email_id: str, hours: float, expected_status: Optional[str]
    ) -> Any:
        async with self.session_factory() as db:
            engine = await self._engine(db)
            result = await engine.snooze(self.owner_id, email_id, hours, expected_status)
            await db.commit()
        return result.email


class BoardController:
    """
    Holds one owner's board and reconciles local changes with the backend.

    Moves and snoozes are applied locally first, then sent to the backend.
    On success the authoritative email replaces the local guess; on failure
    the email reverts to its last server state and the error propagates.
    Refreshes are numbered so a refresh that finishes after a newer one
    started is discarded.
    """

    def __init__(
        self,
        backend: BoardBackend,
        filters: Optional[BoardFilters] = None,
        board: Optional[BoardConfig] = None,
    ):
        self.backend = backend
        self.filters = filters or BoardFilters()
        self.board = board or get_config().board

        self.columns: list[KanbanColumn] = []
        self.emails: dict[str, EmailCard] = {}
        self._server_emails: dict[str, EmailCard] = {}
        self._generation = 0
        self._pending_refreshes: set[asyncio.Task] = set()

    @property
    def projection(self) -> BoardProjection:
        return project_board(self.columns, self.emails.values(), self.filters)

    @property
    def snooze_status(self) -> Optional[str]:
        """Current status of the snooze column in the loaded columns."""
        column = find_snooze_column(
            self.columns, self.board.snooze_column_id, self.board.snooze_status
        )
        return column.status if column else None

    async def reload(self) -> bool:
        """
        Re-fetch columns and emails and re-project them.

        Filters are kept. Returns False when the results were discarded
        because a newer reload started meanwhile.
        """
        self._generation += 1
        generation = self._generation

        columns = await self.backend.load_columns()
        emails = await self.backend.load_emails([c.status for c in columns])

        if generation != self._generation:
            logger.debug(f"Discarding stale board refresh {generation}")
            return False

        self.columns = columns
        self._server_emails = {e.id: EmailCard.from_email(e) for e in emails}
        self.emails = dict(self._server_emails)
        return True

    def _get_card(self, email_id: str) -> EmailCard:
        card = self.emails.get(email_id)
        if card is None:
            raise NotFoundError("Email not found")
        return card

    def _revert(self, email_id: str, fallback: EmailCard) -> None:
        self.emails[email_id] = self._server_emails.get(email_id, fallback)

    def _accept(self, email: Any) -> EmailCard:
        card = EmailCard.from_email(email)
        self.emails[card.id] = card
        self._server_emails[card.id] = card
        return card

    async def move(self, email_id: str, target_status: str) -> EmailCard:
        """Drag-and-drop an email onto the column with ``target_status``."""
        card = self._get_card(email_id)
        if card.status == target_status:
            return card

        snooze_until = None
        if target_status == self.snooze_status:
            snooze_until = utcnow() + timedelta(hours=self.board.default_snooze_hours)
        self.emails[email_id] = replace(card, status=target_status, snooze_until=snooze_until)

        try:
            email = await self.backend.move(email_id, target_status, card.status)
        except Exception as e:
            logger.warning(f"Move of email {email_id} failed, reverting: {e}")
            self._revert(email_id, card)
            raise

        return self._accept(email)

    async def snooze(self, email_id: str, hours: float) -> EmailCard:
        """Snooze an email; an already snoozed email only gets a new deadline."""
        validate_snooze_hours(hours, self.board.max_snooze_hours)
        snooze_status = self.snooze_status
        if snooze_status is None:
            raise NotFoundError("No snooze column is configured")

        card = self._get_card(email_id)
        self.emails[email_id] = replace(
            card,
            status=snooze_status,
            snooze_until=utcnow() + timedelta(hours=hours),
        )

        try:
            email = await self.backend.snooze(email_id, hours, card.status)
        except Exception as e:
            logger.warning(f"Snooze of email {email_id} failed, reverting: {e}")
            self._revert(email_id, card)
            raise

        return self._accept(email)

    async def _refresh_once(self) -> None:
        try:
            await self.reload()
        except Exception as e:
            logger.error(f"Board refresh error: {e}")

    async def run_refresh_loop(self, interval_seconds: Optional[float] = None) -> None:
        """
        Reload on a fixed interval until cancelled. Overlapping reloads are
        allowed. The interval defaults to ``board.refresh_interval_seconds``.
        """
        if interval_seconds is None:
            interval_seconds = self.board.refresh_interval_seconds
        logger.info("Board refresh loop started")

        while True:
            try:
                await asyncio.sleep(interval_seconds)
                task = asyncio.create_task(self._refresh_once())
                self._pending_refreshes.add(task)
                task.add_done_callback(self._pending_refreshes.discard)
            except asyncio.CancelledError:
                for task in list(self._pending_refreshes):
                    task.cancel()
                break
