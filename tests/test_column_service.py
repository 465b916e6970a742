"""Tests for the column service."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from factories import OWNER, column, default_columns, make_email
from mailboard.exceptions import NotFoundError, ValidationError
from mailboard.models.board import KanbanConfig
from mailboard.models.email import Email
from mailboard.schemas.kanban import ColumnPatch
from mailboard.services.column import ColumnService


async def statuses_by_id(db: AsyncSession) -> dict[str, str]:
    result = await db.execute(select(Email.id, Email.status).order_by(Email.id))
    return dict(result.all())


class TestGetColumns:
    """Tests for seeding and reading columns."""

    @pytest.mark.asyncio
    async def test_seeds_default_columns(self, db: AsyncSession) -> None:
        columns = await ColumnService(db).get_columns(OWNER)

        assert [c.status for c in columns] == ["inbox", "todo", "done", "snoozed"]
        assert [c.provider_label for c in columns] == ["INBOX", "STARRED", None, None]
        assert [c.order for c in columns] == [0, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_seeding_is_idempotent(self, db: AsyncSession) -> None:
        service = ColumnService(db)
        await service.get_columns(OWNER)
        await service.get_columns(OWNER)
        await ColumnService(db).get_columns("bob")

        count = await db.scalar(select(func.count()).select_from(KanbanConfig))
        assert count == 2

    @pytest.mark.asyncio
    async def test_legacy_columns_are_upgraded_once(self, db: AsyncSession) -> None:
        db.add(KanbanConfig(owner_id=OWNER, columns=[
            {"id": "inbox", "title": "Inbox", "color": "bg-blue-500", "icon": "Inbox", "order": 0},
            {"id": "done", "title": "Done", "color": "bg-green-500", "icon": "CheckCircle", "order": 1},
        ]))
        await db.flush()
        service = ColumnService(db)

        first = await service.get_columns(OWNER)
        second = await service.get_columns(OWNER)

        assert [c.status for c in first] == ["inbox", "done"]
        assert all(c.id.startswith("col-") for c in first)
        assert [c.id for c in second] == [c.id for c in first]


class TestReplaceColumns:
    """Tests for replace_columns."""

    @pytest.mark.asyncio
    async def test_unchanged_save_leaves_emails_alone(self, db: AsyncSession) -> None:
        db.add_all([make_email("e1", "inbox"), make_email("e2", "done")])
        service = ColumnService(db)
        columns = await service.get_columns(OWNER)

        update = await service.replace_columns(OWNER, columns)

        assert update.migrated == {}
        assert update.warnings == []
        assert await statuses_by_id(db) == {"e1": "inbox", "e2": "done"}

    @pytest.mark.asyncio
    async def test_rename_migrates_emails(self, db: AsyncSession) -> None:
        service = ColumnService(db)
        await service.replace_columns(OWNER, [
            column("col-a", "Inbox", provider_label="INBOX"),
            column("col-b", "Sent Mail"),
        ])
        db.add_all([
            make_email("e1", "sent-mail"),
            make_email("e2", "sent-mail"),
            make_email("e3", "inbox"),
        ])

        columns = await service.get_columns(OWNER)
        assert columns[1].status == "sent-mail"
        columns[1] = columns[1].model_copy(update={"title": "Archived"})
        update = await service.replace_columns(OWNER, columns)

        assert update.columns[1].status == "archived"
        assert update.migrated == {"sent-mail": 2}
        assert await statuses_by_id(db) == {"e1": "archived", "e2": "archived", "e3": "inbox"}

    @pytest.mark.asyncio
    async def test_status_stable_across_unrelated_edits(self, db: AsyncSession) -> None:
        service = ColumnService(db)
        columns = await service.get_columns(OWNER)
        columns[2] = columns[2].model_copy(update={"color": "bg-red-500", "icon": "Flag"})
        columns.reverse()

        update = await service.replace_columns(OWNER, columns)

        assert [c.status for c in update.columns] == ["snoozed", "done", "todo", "inbox"]
        assert [c.order for c in update.columns] == [0, 1, 2, 3]
        assert update.migrated == {}

    @pytest.mark.asyncio
    async def test_placeholder_status_is_finalized(self, db: AsyncSession) -> None:
        service = ColumnService(db)
        columns = await service.get_columns(OWNER)
        columns.append(column("col-new", "Done", "new-status-1700000000"))

        update = await service.replace_columns(OWNER, columns)

        assert update.columns[-1].status == "done-1"

    @pytest.mark.asyncio
    async def test_missing_required_field_rejected(self, db: AsyncSession) -> None:
        service = ColumnService(db)
        columns = await service.get_columns(OWNER)
        columns[0] = columns[0].model_copy(update={"icon": ""})

        with pytest.raises(ValidationError, match="id, title, color, and icon"):
            await service.replace_columns(OWNER, columns)

    @pytest.mark.asyncio
    async def test_duplicate_provider_label_rejected_without_persisting(
        self, db: AsyncSession
    ) -> None:
        service = ColumnService(db)
        columns = await service.get_columns(OWNER)
        columns[2] = columns[2].model_copy(update={"provider_label": "INBOX"})

        with pytest.raises(ValidationError, match="INBOX"):
            await service.replace_columns(OWNER, columns)

        stored = await service.get_columns(OWNER)
        assert [c.provider_label for c in stored] == ["INBOX", "STARRED", None, None]

    @pytest.mark.asyncio
    async def test_duplicate_status_rejected(self, db: AsyncSession) -> None:
        service = ColumnService(db)
        columns = await service.get_columns(OWNER)
        columns[3] = columns[3].model_copy(update={"status": "done"})

        with pytest.raises(ValidationError, match="Duplicate column status"):
            await service.replace_columns(OWNER, columns)

    @pytest.mark.asyncio
    async def test_unknown_icon_rejected(self, db: AsyncSession) -> None:
        service = ColumnService(db)
        columns = await service.get_columns(OWNER)
        columns[0] = columns[0].model_copy(update={"icon": "Rocket"})

        with pytest.raises(ValidationError, match="icon"):
            await service.replace_columns(OWNER, columns)

    @pytest.mark.asyncio
    async def test_missing_columns_rejected(self, db: AsyncSession) -> None:
        with pytest.raises(ValidationError):
            await ColumnService(db).replace_columns(OWNER, None)
        with pytest.raises(ValidationError, match="At least one column"):
            await ColumnService(db).replace_columns(OWNER, [])

    @pytest.mark.asyncio
    async def test_requested_migrations_applied(self, db: AsyncSession) -> None:
        db.add(make_email("e1", "finished"))
        service = ColumnService(db)
        columns = await service.get_columns(OWNER)

        update = await service.replace_columns(
            OWNER, columns, status_migrations={"finished": "done"}
        )

        assert update.migrated == {"finished": 1}
        assert await statuses_by_id(db) == {"e1": "done"}

    @pytest.mark.asyncio
    async def test_failed_migration_still_saves_columns(self, db: AsyncSession) -> None:
        class BrokenEmails:
            async def bulk_rewrite_status(self, owner_id, old_status, new_status):
                raise RuntimeError("disk full")

        service = ColumnService(db, emails=BrokenEmails())
        columns = await service.get_columns(OWNER)
        columns[2] = columns[2].model_copy(update={"title": "Finished"})

        update = await service.replace_columns(OWNER, columns)

        assert update.migrated == {}
        assert len(update.warnings) == 1
        assert "done -> finished" in update.warnings[0]
        stored = await service.get_columns(OWNER)
        assert stored[2].status == "finished"


class TestAddColumn:
    """Tests for add_column."""

    @pytest.mark.asyncio
    async def test_appends_with_derived_status(self, db: AsyncSession) -> None:
        update = await ColumnService(db).add_column(
            OWNER, column("col-x", "Waiting On", "new-status-1")
        )

        added = update.columns[-1]
        assert added.status == "waiting-on"
        assert added.order == 4

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(self, db: AsyncSession) -> None:
        with pytest.raises(ValidationError, match="already exists"):
            await ColumnService(db).add_column(OWNER, column("col-inbox", "Other"))

    @pytest.mark.asyncio
    async def test_deleted_id_not_reused(self, db: AsyncSession) -> None:
        service = ColumnService(db)
        await service.get_columns(OWNER)
        await service.remove_column(OWNER, "col-done")

        with pytest.raises(ValidationError, match="deleted column"):
            await service.add_column(OWNER, column("col-done", "Done Again"))

        stored = await service.get_columns(OWNER)
        assert [c.id for c in stored] == ["col-inbox", "col-todo", "col-snoozed"]

    @pytest.mark.asyncio
    async def test_deleted_id_not_reintroduced_by_replace(self, db: AsyncSession) -> None:
        service = ColumnService(db)
        columns = await service.get_columns(OWNER)
        await service.replace_columns(OWNER, columns[:3])

        with pytest.raises(ValidationError, match="deleted column"):
            await service.replace_columns(OWNER, columns)

    @pytest.mark.asyncio
    async def test_missing_id_is_generated(self, db: AsyncSession) -> None:
        service = ColumnService(db)
        await service.get_columns(OWNER)

        update = await service.add_column(OWNER, column("", "Waiting On"))

        added = update.columns[-1]
        assert added.id
        assert added.id not in {"col-inbox", "col-todo", "col-done", "col-snoozed"}
        assert added.status == "waiting-on"


class TestPatchColumn:
    """Tests for patch_column."""

    @pytest.mark.asyncio
    async def test_title_change_rederives_and_migrates(self, db: AsyncSession) -> None:
        db.add(make_email("e1", "done"))
        service = ColumnService(db)
        await service.get_columns(OWNER)

        update = await service.patch_column(
            OWNER, "col-done", ColumnPatch(title="Finished", id="hijack")
        )

        patched = next(c for c in update.columns if c.id == "col-done")
        assert patched.status == "finished"
        assert not any(c.id == "hijack" for c in update.columns)
        assert await statuses_by_id(db) == {"e1": "finished"}

    @pytest.mark.asyncio
    async def test_label_change_uses_label_slug(self, db: AsyncSession) -> None:
        service = ColumnService(db)
        await service.get_columns(OWNER)

        update = await service.patch_column(
            OWNER, "col-done", ColumnPatch.model_validate({"providerLabel": "IMPORTANT"})
        )

        assert update.columns[2].status == "important"

    @pytest.mark.asyncio
    async def test_label_already_claimed_rejected(self, db: AsyncSession) -> None:
        service = ColumnService(db)
        await service.get_columns(OWNER)

        with pytest.raises(ValidationError):
            await service.patch_column(
                OWNER, "col-done", ColumnPatch(provider_label="STARRED")
            )

    @pytest.mark.asyncio
    async def test_order_moves_column(self, db: AsyncSession) -> None:
        service = ColumnService(db)
        await service.get_columns(OWNER)

        update = await service.patch_column(OWNER, "col-snoozed", ColumnPatch(order=0))

        assert [c.id for c in update.columns] == [
            "col-snoozed", "col-inbox", "col-todo", "col-done",
        ]
        assert update.columns[0].status == "snoozed"

    @pytest.mark.asyncio
    async def test_unknown_column(self, db: AsyncSession) -> None:
        service = ColumnService(db)
        await service.get_columns(OWNER)

        with pytest.raises(NotFoundError):
            await service.patch_column(OWNER, "col-missing", ColumnPatch(title="x"))

    @pytest.mark.asyncio
    async def test_missing_configuration(self, db: AsyncSession) -> None:
        with pytest.raises(NotFoundError):
            await ColumnService(db).patch_column(OWNER, "col-done", ColumnPatch(title="x"))


class TestRemoveColumn:
    """Tests for remove_column."""

    @pytest.mark.asyncio
    async def test_keeps_orphaned_emails_by_default(self, db: AsyncSession) -> None:
        db.add(make_email("e1", "done"))
        service = ColumnService(db)
        await service.get_columns(OWNER)

        update = await service.remove_column(OWNER, "col-done")

        assert [c.status for c in update.columns] == ["inbox", "todo", "snoozed"]
        assert [c.order for c in update.columns] == [0, 1, 2]
        assert await statuses_by_id(db) == {"e1": "done"}

    @pytest.mark.asyncio
    async def test_reassign_policy_moves_orphans(self, db: AsyncSession) -> None:
        db.add(make_email("e1", "done"))
        service = ColumnService(db, orphan_policy="reassign")
        await service.get_columns(OWNER)

        update = await service.remove_column(OWNER, "col-done")

        assert update.migrated == {"done": 1}
        assert await statuses_by_id(db) == {"e1": "inbox"}

    @pytest.mark.asyncio
    async def test_last_column_cannot_be_deleted(self, db: AsyncSession) -> None:
        service = ColumnService(db)
        await service.replace_columns(OWNER, [column("col-only", "Only")])

        with pytest.raises(ValidationError, match="last column"):
            await service.remove_column(OWNER, "col-only")

        assert len(await service.get_columns(OWNER)) == 1

    @pytest.mark.asyncio
    async def test_unknown_column(self, db: AsyncSession) -> None:
        service = ColumnService(db)
        await service.get_columns(OWNER)

        with pytest.raises(NotFoundError):
            await service.remove_column(OWNER, "col-missing")

    def test_unknown_orphan_policy(self) -> None:
        with pytest.raises(ValueError):
            ColumnService(db=None, orphan_policy="delete")


def test_default_columns_are_valid() -> None:
    columns = default_columns()
    assert len({c.status for c in columns}) == len(columns)
