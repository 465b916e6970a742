"""Column service for managing per-owner Kanban columns."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_config
from ..exceptions import MigrationPartialFailure, NotFoundError, ValidationError
from ..models.board import KanbanConfig
from ..schemas.kanban import ColumnColor, ColumnIcon, ColumnPatch, KanbanColumn, ProviderLabel
from ..utils.timeutil import utcnow
from .email import EmailService
from .migration import (
    StatusMigrationExecutor,
    plan_status_migrations,
    snapshot_statuses,
    summarize_outcomes,
)
from .slug import derive_status, generate_column_id, is_placeholder_status

logger = logging.getLogger(__name__)


# Seeded on first access
DEFAULT_COLUMNS = [
    {"id": "col-inbox", "status": "inbox", "title": "Inbox", "color": "bg-blue-500",
     "icon": "Inbox", "provider_label": ProviderLabel.INBOX.value, "order": 0},
    {"id": "col-todo", "status": "todo", "title": "To Do", "color": "bg-yellow-500",
     "icon": "Clock", "provider_label": ProviderLabel.STARRED.value, "order": 1},
    {"id": "col-done", "status": "done", "title": "Done", "color": "bg-green-500",
     "icon": "CheckCircle", "provider_label": None, "order": 2},
    {"id": "col-snoozed", "status": "snoozed", "title": "Snoozed", "color": "bg-purple-500",
     "icon": "Clock", "provider_label": None, "order": 3},
]

ORPHAN_POLICIES = ("keep", "reassign")

_COLORS = {c.value for c in ColumnColor}
_ICONS = {i.value for i in ColumnIcon}


@dataclass
class ConfigUpdate:
    """Outcome of a column save."""

    columns: list[KanbanColumn]
    # old status -> number of emails rewritten
    migrated: dict[str, int] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


class ColumnService:
    """Service for managing an owner's Kanban columns."""

    def __init__(
        self,
        db: AsyncSession,
        emails: Optional[EmailService] = None,
        orphan_policy: Optional[str] = None,
    ):
        self.db = db
        self.emails = emails or EmailService(db)
        self.orphan_policy = orphan_policy or get_config().board.orphan_policy
        if self.orphan_policy not in ORPHAN_POLICIES:
            raise ValueError(f"Unknown orphan policy: {self.orphan_policy}")

    async def _get_config_row(self, owner_id: str) -> Optional[KanbanConfig]:
        result = await self.db.execute(
            select(KanbanConfig).where(KanbanConfig.owner_id == owner_id)
        )
        return result.scalar_one_or_none()

    async def _ensure_config_row(self, owner_id: str) -> KanbanConfig:
        """Get the owner's configuration, seeding the defaults if none exists."""
        row = await self._get_config_row(owner_id)
        if row is not None:
            return row

        # A single upsert keyed by owner: concurrent first reads seed one set
        await self.db.execute(
            sqlite_insert(KanbanConfig)
            .values(
                owner_id=owner_id,
                columns=[dict(c) for c in DEFAULT_COLUMNS],
                retired_column_ids=[],
            )
            .on_conflict_do_nothing(index_elements=["owner_id"])
        )
        row = await self._get_config_row(owner_id)
        logger.info(f"Seeded default Kanban columns for {owner_id}")
        return row

    async def _load_columns(self, row: KanbanConfig) -> list[KanbanColumn]:
        """Parse stored columns, upgrading legacy records that lack a status."""
        columns = []
        upgraded = 0
        for raw in row.columns or []:
            data = dict(raw)
            if not data.get("status"):
                # Legacy records used the id as the status value
                data["status"] = data.get("id") or generate_column_id()
                data["id"] = generate_column_id()
                upgraded += 1
            columns.append(KanbanColumn.model_validate(data))

        columns.sort(key=lambda c: c.order)

        if upgraded:
            row.columns = [c.model_dump() for c in columns]
            await self.db.flush()
            logger.info(f"Upgraded {upgraded} legacy columns for {row.owner_id}")

        return columns

    async def get_columns(self, owner_id: str) -> list[KanbanColumn]:
        """Get all columns ordered by position, seeding defaults on first access."""
        row = await self._ensure_config_row(owner_id)
        return await self._load_columns(row)

    def _validate(self, columns: list[KanbanColumn]) -> None:
        if not columns:
            raise ValidationError("At least one column is required")

        seen_ids = set()
        seen_labels = {}
        for column in columns:
            if not (column.id and (column.title or "").strip() and column.color and column.icon):
                raise ValidationError("Each column must have id, title, color, and icon")
            if column.color not in _COLORS:
                raise ValidationError(f"Unknown column color: {column.color}")
            if column.icon not in _ICONS:
                raise ValidationError(f"Unknown column icon: {column.icon}")
            if column.id in seen_ids:
                raise ValidationError(f"Duplicate column id: {column.id}")
            seen_ids.add(column.id)

            if column.provider_label:
                if column.provider_label in seen_labels:
                    raise ValidationError(
                        f"Provider label '{column.provider_label}' is already used by "
                        f"column '{seen_labels[column.provider_label]}'. Each label can "
                        f"only be mapped to one column."
                    )
                seen_labels[column.provider_label] = column.title

    def _retire(
        self, row: KanbanConfig, previous: list[KanbanColumn], kept: list[KanbanColumn]
    ) -> None:
        """Record ids of columns that are going away."""
        kept_ids = {c.id for c in kept}
        retired = list(row.retired_column_ids or [])
        retired.extend(c.id for c in previous if c.id not in kept_ids and c.id not in retired)
        # In-place changes to a JSON column are not tracked
        row.retired_column_ids = retired

    @staticmethod
    def _check_not_retired(
        row: KanbanConfig, previous: list[KanbanColumn], columns: list[KanbanColumn]
    ) -> None:
        retired = set(row.retired_column_ids or [])
        existing = {c.id for c in previous}
        for column in columns:
            if column.id in retired and column.id not in existing:
                raise ValidationError(f"Column id '{column.id}' belonged to a deleted column")

    def _prepare(
        self, columns: list[KanbanColumn], previous: list[KanbanColumn]
    ) -> list[KanbanColumn]:
        """Validate, finalize statuses and normalize order. Never persists."""
        self._validate(columns)

        prepared = [
            c.model_copy(update={"title": c.title.strip(), "order": i})
            for i, c in enumerate(columns)
        ]
        previous_by_id = {c.id: c for c in previous}

        for column in prepared:
            prior = previous_by_id.get(column.id)
            relabelled = prior is not None and (
                prior.title != column.title
                or prior.provider_label != column.provider_label
            )
            if relabelled or is_placeholder_status(column.status):
                column.status = derive_status(column, prepared)

        statuses = set()
        for column in prepared:
            if column.status in statuses:
                raise ValidationError(f"Duplicate column status: {column.status}")
            statuses.add(column.status)

        return prepared

    async def replace_columns(
        self,
        owner_id: str,
        columns: Optional[list[KanbanColumn]],
        status_migrations: Optional[dict[str, str]] = None,
    ) -> ConfigUpdate:
        """
        Replace the owner's whole column array.

        Renamed statuses are migrated on the owner's emails before the new
        array is committed. Failed migrations are reported as warnings and do
        not prevent the save.
        """
        if columns is None:
            raise ValidationError("Invalid columns data")

        row = await self._ensure_config_row(owner_id)
        previous = await self._load_columns(row)
        prepared = self._prepare(list(columns), previous)
        self._check_not_retired(row, previous, prepared)

        update = ConfigUpdate(columns=prepared)
        plan = plan_status_migrations(
            snapshot_statuses(previous), prepared, status_migrations
        )
        if plan:
            executor = StatusMigrationExecutor(self.emails)
            try:
                outcomes = await executor.apply(owner_id, plan)
            except MigrationPartialFailure as e:
                logger.warning(f"Saving columns for {owner_id} despite failed migrations: {e}")
                outcomes = e.outcomes
                update.warnings.append(str(e))
            update.migrated = summarize_outcomes(outcomes)

        self._retire(row, previous, prepared)
        row.columns = [c.model_dump() for c in prepared]
        row.updated_at = utcnow()
        await self.db.flush()
        return update

    async def add_column(self, owner_id: str, column: KanbanColumn) -> ConfigUpdate:
        """Append a column; its status is finalized if it is still a placeholder."""
        current = await self.get_columns(owner_id)
        if column.id and any(c.id == column.id for c in current):
            raise ValidationError("Column with this ID already exists")
        if not column.id:
            column = column.model_copy(update={"id": generate_column_id()})

        return await self.replace_columns(owner_id, current + [column])

    async def patch_column(
        self, owner_id: str, column_id: str, updates: ColumnPatch
    ) -> ConfigUpdate:
        """Merge fields into one column. ``id`` changes are ignored."""
        row = await self._get_config_row(owner_id)
        if row is None:
            raise NotFoundError("Kanban configuration not found")

        columns = await self._load_columns(row)
        index = next((i for i, c in enumerate(columns) if c.id == column_id), None)
        if index is None:
            raise NotFoundError("Column not found")

        changes = updates.model_dump(exclude_unset=True)
        changes.pop("id", None)
        if changes.get("status") is None:
            changes.pop("status", None)
        new_order = changes.pop("order", None)

        merged = columns.pop(index).model_copy(update=changes)
        if new_order is None:
            columns.insert(index, merged)
        else:
            columns.insert(max(0, min(new_order, len(columns))), merged)

        return await self.replace_columns(owner_id, columns)

    async def remove_column(self, owner_id: str, column_id: str) -> ConfigUpdate:
        """
        Delete a column.

        Emails keep the removed status unless the orphan policy is
        "reassign", in which case they move to the first remaining column.
        """
        row = await self._get_config_row(owner_id)
        if row is None:
            raise NotFoundError("Kanban configuration not found")

        columns = await self._load_columns(row)
        target = next((c for c in columns if c.id == column_id), None)
        if target is None:
            raise NotFoundError("Column not found")

        if len(columns) <= 1:
            raise ValidationError("Cannot delete the last column")

        remaining = [
            c.model_copy(update={"order": i})
            for i, c in enumerate(c for c in columns if c.id != column_id)
        ]
        update = ConfigUpdate(columns=remaining)

        if self.orphan_policy == "reassign":
            fallback = remaining[0]
            try:
                update.migrated[target.status] = await self.emails.bulk_rewrite_status(
                    owner_id, target.status, fallback.status
                )
            except Exception as e:
                logger.error(
                    f"Reassigning '{target.status}' emails to '{fallback.status}' failed: {e}"
                )
                update.warnings.append(
                    f"Emails in '{target.status}' could not be reassigned: {e}"
                )

        self._retire(row, columns, remaining)
        row.columns = [c.model_dump() for c in remaining]
        row.updated_at = utcnow()
        await self.db.flush()
        return update
