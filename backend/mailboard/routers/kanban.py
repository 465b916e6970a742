"""Kanban configuration API routes."""

from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.database import get_db
from ..schemas.kanban import ColumnPatch, KanbanColumn
from ..services.auth import Session
from ..services.column import ColumnService, ConfigUpdate
from .auth import get_current_session


router = APIRouter(prefix="/api/kanban", tags=["kanban"])


class KanbanConfigData(BaseModel):
    columns: list[KanbanColumn]


class KanbanConfigResponse(BaseModel):
    success: bool = True
    data: KanbanConfigData
    message: Optional[str] = None
    # old status -> number of emails moved to the new status
    migrations: dict[str, int] = {}
    warnings: list[str] = []


class UpdateConfigRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    columns: Optional[list[KanbanColumn]] = None
    status_migrations: Optional[dict[str, str]] = Field(
        default=None, alias="statusMigrations"
    )


def update_to_response(update: ConfigUpdate, message: str) -> KanbanConfigResponse:
    """Convert a ConfigUpdate to KanbanConfigResponse."""
    return KanbanConfigResponse(
        data=KanbanConfigData(columns=update.columns),
        message=message,
        migrations=update.migrated,
        warnings=update.warnings,
    )


@router.get("/config", response_model=KanbanConfigResponse)
async def get_kanban_config(
    db: AsyncSession = Depends(get_db),
    session: Session = Depends(get_current_session),
):
    """Get the user's Kanban configuration, creating the defaults on first use."""
    column_service = ColumnService(db)
    columns = await column_service.get_columns(session.owner_id)
    return KanbanConfigResponse(data=KanbanConfigData(columns=columns))


@router.put("/config", response_model=KanbanConfigResponse)
async def update_kanban_config(
    request: UpdateConfigRequest,
    db: AsyncSession = Depends(get_db),
    session: Session = Depends(get_current_session),
):
    """Replace the column set, migrating email statuses of renamed columns."""
    column_service = ColumnService(db)
    update = await column_service.replace_columns(
        session.owner_id,
        request.columns,
        status_migrations=request.status_migrations,
    )
    return update_to_response(update, "Kanban configuration updated successfully")


@router.post("/config/columns", response_model=KanbanConfigResponse)
async def add_kanban_column(
    column: KanbanColumn,
    db: AsyncSession = Depends(get_db),
    session: Session = Depends(get_current_session),
):
    """Add a column to the end of the board."""
    column_service = ColumnService(db)
    update = await column_service.add_column(session.owner_id, column)
    return update_to_response(update, "Column added successfully")


@router.delete("/config/columns/{column_id}", response_model=KanbanConfigResponse)
async def delete_kanban_column(
    column_id: str,
    db: AsyncSession = Depends(get_db),
    session: Session = Depends(get_current_session),
):
    """Delete a column. Its emails keep their status unless configured otherwise."""
    column_service = ColumnService(db)
    update = await column_service.remove_column(session.owner_id, column_id)
    return update_to_response(update, "Column removed successfully")


@router.patch("/config/columns/{column_id}", response_model=KanbanConfigResponse)
async def patch_kanban_column(
    column_id: str,
    request: ColumnPatch,
    db: AsyncSession = Depends(get_db),
    session: Session = Depends(get_current_session),
):
    """Update fields of a single column. The id cannot be changed."""
    column_service = ColumnService(db)
    update = await column_service.patch_column(session.owner_id, column_id, request)
    return update_to_response(update, "Column updated successfully")
