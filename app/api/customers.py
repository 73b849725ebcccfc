"""
Customer endpoints - reference collection for tariffs and CSP events.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import select

from app.api.deps import CurrentUser, DbSession
from app.models.customer import Customer

logger = logging.getLogger(__name__)

router = APIRouter()


# Schemas
class CustomerCreate(BaseModel):
    name: str
    segment: Optional[str] = None
    status: str = "active"
    owner_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    segment: Optional[str] = None
    status: Optional[str] = None
    owner_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None


class CustomerResponse(BaseModel):
    id: uuid.UUID
    name: str
    segment: Optional[str]
    status: str
    owner_id: Optional[uuid.UUID]
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CustomerListResponse(BaseModel):
    items: List[CustomerResponse]
    total: int


async def _get_customer_or_404(db, customer_id: uuid.UUID) -> Customer:
    customer = await db.get(Customer, customer_id)
    if not customer:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Customer not found",
        )
    return customer


# Endpoints
@router.get("", response_model=CustomerListResponse)
async def list_customers(
    db: DbSession,
    user: CurrentUser,
    status: Optional[str] = None,
):
    """List customers, A-Z."""
    query = select(Customer).order_by(Customer.name)
    if status:
        query = query.where(Customer.status == status)

    customers = (await db.execute(query)).scalars().all()
    return CustomerListResponse(
        items=[CustomerResponse.model_validate(c) for c in customers],
        total=len(customers),
    )


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(
    data: CustomerCreate,
    db: DbSession,
    user: CurrentUser,
):
    customer = Customer(**data.model_dump())
    db.add(customer)
    await db.commit()
    await db.refresh(customer)

    logger.info("Customer created: id=%s name=%s", customer.id, customer.name)
    return CustomerResponse.model_validate(customer)


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(
    customer_id: uuid.UUID,
    db: DbSession,
    user: CurrentUser,
):
    return CustomerResponse.model_validate(await _get_customer_or_404(db, customer_id))


@router.patch("/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: uuid.UUID,
    data: CustomerUpdate,
    db: DbSession,
    user: CurrentUser,
):
    customer = await _get_customer_or_404(db, customer_id)

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(customer, field, value)

    await db.commit()
    await db.refresh(customer)
    return CustomerResponse.model_validate(customer)
