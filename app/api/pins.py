"""
Pin endpoints - per-user pinned customers and tariff families.
"""

import logging
import uuid
from typing import List, Literal, Optional

from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import delete, select

from app.api.deps import CurrentUser, DbSession
from app.models.user_pin import UserPin

logger = logging.getLogger(__name__)

router = APIRouter()

PinType = Literal["customer", "tariff_family"]


# Schemas
class PinRequest(BaseModel):
    pin_type: PinType
    ref_id: str


class PinResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    pin_type: str
    ref_id: str

    class Config:
        from_attributes = True


class PinListResponse(BaseModel):
    items: List[PinResponse]
    total: int


async def load_pinned_refs(db, user_id: uuid.UUID, pin_type: str) -> set:
    result = await db.execute(
        select(UserPin.ref_id).where(UserPin.user_id == user_id, UserPin.pin_type == pin_type)
    )
    return set(result.scalars().all())


# Endpoints
@router.get("", response_model=PinListResponse)
async def list_pins(
    db: DbSession,
    user: CurrentUser,
    pin_type: Optional[PinType] = None,
):
    query = select(UserPin).where(UserPin.user_id == user.id)
    if pin_type:
        query = query.where(UserPin.pin_type == pin_type)

    pins = (await db.execute(query)).scalars().all()
    return PinListResponse(
        items=[PinResponse.model_validate(p) for p in pins],
        total=len(pins),
    )


@router.post("", response_model=PinResponse, status_code=status.HTTP_201_CREATED)
async def pin(
    data: PinRequest,
    response: Response,
    db: DbSession,
    user: CurrentUser,
):
    """Pin a customer or family. Pinning twice returns the existing pin with 200."""
    result = await db.execute(
        select(UserPin).where(
            UserPin.user_id == user.id,
            UserPin.pin_type == data.pin_type,
            UserPin.ref_id == data.ref_id,
        )
    )
    existing = result.scalar_one_or_none()
    if existing:
        response.status_code = status.HTTP_200_OK
        return PinResponse.model_validate(existing)

    user_pin = UserPin(user_id=user.id, pin_type=data.pin_type, ref_id=data.ref_id)
    db.add(user_pin)
    await db.commit()
    await db.refresh(user_pin)

    logger.info("Pinned %s %s for user %s", data.pin_type, data.ref_id, user.id)
    return PinResponse.model_validate(user_pin)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def unpin(
    data: PinRequest,
    db: DbSession,
    user: CurrentUser,
):
    await db.execute(
        delete(UserPin).where(
            UserPin.user_id == user.id,
            UserPin.pin_type == data.pin_type,
            UserPin.ref_id == data.ref_id,
        )
    )
    await db.commit()

    logger.info("Unpinned %s %s for user %s", data.pin_type, data.ref_id, user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
