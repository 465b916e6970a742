"""Email board API routes: status buckets, drag-and-drop and snooze."""

from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_config
from ..models.database import get_db
from ..schemas.kanban import KanbanColumn
from ..services.auth import Session
from ..services.column import ColumnService
from ..services.email import EmailService
from ..services.projector import BoardFilters, SortOrder, is_snooze_expired, project_board
from ..services.transition import TransitionEngine, TransitionResult
from ..utils.timeutil import utcnow
from .auth import get_current_session


router = APIRouter(prefix="/api/emails", tags=["emails"])


class EmailSchema(BaseModel):
    id: str
    subject: Optional[str] = None
    sender: Optional[str] = None
    status: str
    snooze_until: Optional[str] = None
    snooze_expired: bool = False
    is_read: bool
    timestamp: str
    attachments: list = []


class ColumnBucketSchema(BaseModel):
    column: KanbanColumn
    emails: list[EmailSchema]
    count: int
    total: int


class BoardData(BaseModel):
    columns: list[ColumnBucketSchema]
    orphaned: int


class BoardResponse(BaseModel):
    success: bool = True
    data: BoardData


class TransitionResponse(BaseModel):
    success: bool = True
    data: EmailSchema
    changed: bool
    # Set when the email had moved since the client last saw it
    conflict: Optional[str] = None


class MoveEmailRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str
    expected_status: Optional[str] = Field(default=None, alias="expectedStatus")


class SnoozeEmailRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    hours: Optional[float] = None
    expected_status: Optional[str] = Field(default=None, alias="expectedStatus")


def email_to_schema(email, now=None) -> EmailSchema:
    """Convert an Email model to EmailSchema."""
    return EmailSchema(
        id=email.id,
        subject=email.subject,
        sender=email.sender,
        status=email.status,
        snooze_until=email.snooze_until.isoformat() if email.snooze_until else None,
        snooze_expired=is_snooze_expired(email, now),
        is_read=email.is_read,
        timestamp=email.timestamp.isoformat(),
        attachments=list(email.attachments or []),
    )


def result_to_response(result: TransitionResult) -> TransitionResponse:
    return TransitionResponse(
        data=email_to_schema(result.email),
        changed=result.changed,
        conflict=result.conflict.describe() if result.conflict else None,
    )


async def get_transition_engine(
    db: AsyncSession, session: Session
) -> TransitionEngine:
    columns = await ColumnService(db).get_columns(session.owner_id)
    return TransitionEngine.from_config(EmailService(db), columns, get_config().board)


@router.get("/board", response_model=BoardResponse)
async def get_board(
    unread_only: bool = False,
    has_attachments: bool = False,
    sort: SortOrder = SortOrder.NEWEST,
    db: AsyncSession = Depends(get_db),
    session: Session = Depends(get_current_session),
):
    """Get the board: one bucket per column with filtered and total counts."""
    columns = await ColumnService(db).get_columns(session.owner_id)
    emails = await EmailService(db).list_emails(session.owner_id)

    filters = BoardFilters(
        unread_only=unread_only, has_attachments=has_attachments, sort=sort
    )
    projection = project_board(columns, emails, filters)
    now = utcnow()

    return BoardResponse(
        data=BoardData(
            columns=[
                ColumnBucketSchema(
                    column=bucket.column,
                    emails=[email_to_schema(e, now) for e in bucket.emails],
                    count=bucket.count,
                    total=bucket.total,
                )
                for bucket in projection.buckets
            ],
            orphaned=len(projection.orphaned),
        )
    )


@router.get("/status/{status}", response_model=list[EmailSchema])
async def get_emails_by_status(
    status: str,
    db: AsyncSession = Depends(get_db),
    session: Session = Depends(get_current_session),
):
    """Get emails with a given status, newest first."""
    emails = await EmailService(db).fetch_by_status(session.owner_id, status)
    now = utcnow()
    return [email_to_schema(e, now) for e in emails]


@router.patch("/{email_id}/status", response_model=TransitionResponse)
async def move_email(
    email_id: str,
    request: MoveEmailRequest,
    db: AsyncSession = Depends(get_db),
    session: Session = Depends(get_current_session),
):
    """Move an email to another column (drag-and-drop)."""
    engine = await get_transition_engine(db, session)
    result = await engine.drop(
        session.owner_id, email_id, request.status, request.expected_status
    )
    return result_to_response(result)


@router.post("/{email_id}/snooze", response_model=TransitionResponse)
async def snooze_email(
    email_id: str,
    request: SnoozeEmailRequest,
    db: AsyncSession = Depends(get_db),
    session: Session = Depends(get_current_session),
):
    """Snooze an email for a number of hours."""
    engine = await get_transition_engine(db, session)
    result = await engine.snooze(
        session.owner_id, email_id, request.hours, request.expected_status
    )
    return result_to_response(result)
