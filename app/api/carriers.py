"""
Carrier endpoints - reference collection for tariffs.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import select

from app.api.deps import CurrentUser, DbSession
from app.models.carrier import Carrier

logger = logging.getLogger(__name__)

router = APIRouter()


# Schemas
class CarrierCreate(BaseModel):
    name: str
    scac_code: Optional[str] = None
    service_type: Optional[str] = None
    status: str = "active"


class CarrierUpdate(BaseModel):
    name: Optional[str] = None
    scac_code: Optional[str] = None
    service_type: Optional[str] = None
    status: Optional[str] = None


class CarrierResponse(BaseModel):
    id: uuid.UUID
    name: str
    scac_code: Optional[str]
    service_type: Optional[str]
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CarrierListResponse(BaseModel):
    items: List[CarrierResponse]
    total: int


async def _get_carrier_or_404(db, carrier_id: uuid.UUID) -> Carrier:
    carrier = await db.get(Carrier, carrier_id)
    if not carrier:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Carrier not found",
        )
    return carrier


# Endpoints
@router.get("", response_model=CarrierListResponse)
async def list_carriers(
    db: DbSession,
    user: CurrentUser,
    status: Optional[str] = None,
):
    query = select(Carrier).order_by(Carrier.name)
    if status:
        query = query.where(Carrier.status == status)

    carriers = (await db.execute(query)).scalars().all()
    return CarrierListResponse(
        items=[CarrierResponse.model_validate(c) for c in carriers],
        total=len(carriers),
    )


@router.post("", response_model=CarrierResponse, status_code=status.HTTP_201_CREATED)
async def create_carrier(
    data: CarrierCreate,
    db: DbSession,
    user: CurrentUser,
):
    carrier = Carrier(**data.model_dump())
    db.add(carrier)
    await db.commit()
    await db.refresh(carrier)

    logger.info("Carrier created: id=%s scac=%s", carrier.id, carrier.scac_code)
    return CarrierResponse.model_validate(carrier)


@router.get("/{carrier_id}", response_model=CarrierResponse)
async def get_carrier(
    carrier_id: uuid.UUID,
    db: DbSession,
    user: CurrentUser,
):
    return CarrierResponse.model_validate(await _get_carrier_or_404(db, carrier_id))


@router.patch("/{carrier_id}", response_model=CarrierResponse)
async def update_carrier(
    carrier_id: uuid.UUID,
    data: CarrierUpdate,
    db: DbSession,
    user: CurrentUser,
):
    carrier = await _get_carrier_or_404(db, carrier_id)

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(carrier, field, value)

    await db.commit()
    await db.refresh(carrier)
    return CarrierResponse.model_validate(carrier)
