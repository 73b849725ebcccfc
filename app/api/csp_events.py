"""
CSP event endpoints - sourcing negotiations that produce or renew tariffs.
"""

import logging
import uuid
from datetime import date, datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import select

from app.api.deps import CurrentUser, DbSession
from app.models.csp_event import CSPEvent

logger = logging.getLogger(__name__)

router = APIRouter()

CspStage = Literal["planning", "invites_sent", "optimization", "awarded", "implementation", "closed"]


# Schemas
class CSPEventCreate(BaseModel):
    title: str
    description: Optional[str] = None
    customer_id: Optional[uuid.UUID] = None
    stage: CspStage = "planning"
    due_date: Optional[date] = None


class CSPEventUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    stage: Optional[CspStage] = None
    due_date: Optional[date] = None


class CSPEventResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: Optional[str]
    customer_id: Optional[uuid.UUID]
    stage: str
    due_date: Optional[date]
    created_by: Optional[uuid.UUID]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CSPEventListResponse(BaseModel):
    items: List[CSPEventResponse]
    total: int


async def _get_event_or_404(db, event_id: uuid.UUID) -> CSPEvent:
    event = await db.get(CSPEvent, event_id)
    if not event:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="CSP event not found",
        )
    return event


# Endpoints
@router.get("", response_model=CSPEventListResponse)
async def list_csp_events(
    db: DbSession,
    user: CurrentUser,
    customer_id: Optional[uuid.UUID] = None,
    stage: Optional[CspStage] = None,
):
    query = select(CSPEvent).order_by(CSPEvent.created_at.desc())
    if customer_id:
        query = query.where(CSPEvent.customer_id == customer_id)
    if stage:
        query = query.where(CSPEvent.stage == stage)

    events = (await db.execute(query)).scalars().all()
    return CSPEventListResponse(
        items=[CSPEventResponse.model_validate(e) for e in events],
        total=len(events),
    )


@router.post("", response_model=CSPEventResponse, status_code=status.HTTP_201_CREATED)
async def create_csp_event(
    data: CSPEventCreate,
    db: DbSession,
    user: CurrentUser,
):
    event = CSPEvent(**data.model_dump(), created_by=user.id)
    db.add(event)
    await db.commit()
    await db.refresh(event)

    logger.info("CSP event created: id=%s stage=%s", event.id, event.stage)
    return CSPEventResponse.model_validate(event)


@router.get("/{event_id}", response_model=CSPEventResponse)
async def get_csp_event(
    event_id: uuid.UUID,
    db: DbSession,
    user: CurrentUser,
):
    return CSPEventResponse.model_validate(await _get_event_or_404(db, event_id))


@router.patch("/{event_id}", response_model=CSPEventResponse)
async def update_csp_event(
    event_id: uuid.UUID,
    data: CSPEventUpdate,
    db: DbSession,
    user: CurrentUser,
):
    event = await _get_event_or_404(db, event_id)

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(event, field, value)

    await db.commit()
    await db.refresh(event)
    return CSPEventResponse.model_validate(event)
