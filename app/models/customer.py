"""
Customer model - a shipper account managed by the brokerage.
"""

import uuid
from typing import Optional

from sqlalchemy import String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import RecordBase


class Customer(RecordBase):
    """A shipper account. Tariffs reference customers by id."""

    __tablename__ = "customers"

    # Identity
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    segment: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Ownership
    owner_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    # Status
    status: Mapped[str] = mapped_column(String(50), default="active")

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, name='{self.name}')>"
