"""Email store used by the board for status reads and rewrites."""

from datetime import datetime
from typing import Optional

from sqlalchemy import select, update, and_
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.email import Email
from ..utils.timeutil import utcnow


class EmailService:
    """Service for reading and rewriting email workflow state."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def savepoint(self):
        """Savepoint grouping several rewrites into one unit."""
        return self.db.begin_nested()

    async def list_emails(self, owner_id: str) -> list[Email]:
        """Get all emails of an owner."""
        result = await self.db.execute(
            select(Email).where(Email.owner_id == owner_id)
        )
        return list(result.scalars().all())

    async def fetch_by_status(self, owner_id: str, status: str) -> list[Email]:
        """Get emails with the given status, newest first."""
        result = await self.db.execute(
            select(Email)
            .where(and_(Email.owner_id == owner_id, Email.status == status))
            .order_by(Email.timestamp.desc())
        )
        return list(result.scalars().all())

    async def get_email(self, owner_id: str, email_id: str) -> Optional[Email]:
        """Get a single email by ID."""
        result = await self.db.execute(
            select(Email).where(and_(Email.owner_id == owner_id, Email.id == email_id))
        )
        return result.scalar_one_or_none()

    async def update_status(
        self, owner_id: str, email_id: str, status: str
    ) -> Optional[Email]:
        """Move an email to a status and clear any snooze."""
        email = await self.get_email(owner_id, email_id)
        if email is None:
            return None

        email.status = status
        email.snooze_until = None
        email.updated_at = utcnow()
        await self.db.flush()
        return email

    async def snooze(
        self,
        owner_id: str,
        email_id: str,
        until: datetime,
        status: Optional[str] = None,
    ) -> Optional[Email]:
        """Set the snooze deadline, optionally moving the email as well."""
        email = await self.get_email(owner_id, email_id)
        if email is None:
            return None

        email.snooze_until = until
        if status is not None:
            email.status = status
        email.updated_at = utcnow()
        await self.db.flush()
        return email

    async def bulk_rewrite_status(
        self, owner_id: str, old_status: str, new_status: str
    ) -> int:
        """
        Rewrite every email of the owner in ``old_status``.

        Runs in its own savepoint so a failure leaves earlier rewrites of the
        same session intact. Returns the matched count.
        """
        async with self.db.begin_nested():
            result = await self.db.execute(
                update(Email)
                .where(and_(Email.owner_id == owner_id, Email.status == old_status))
                .values(status=new_status, updated_at=utcnow())
                .execution_options(synchronize_session="evaluate")
            )
        return result.rowcount or 0
