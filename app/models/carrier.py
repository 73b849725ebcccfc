"""
Carrier model - a freight carrier tariffs can be negotiated with.
"""

from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import RecordBase


class Carrier(RecordBase):
    """A freight carrier, identified in the industry by its SCAC code."""

    __tablename__ = "carriers"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    scac_code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    service_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)  # LTL, Home Delivery, ...
    status: Mapped[str] = mapped_column(String(50), default="active")

    def __repr__(self) -> str:
        return f"<Carrier(id={self.id}, name='{self.name}', scac='{self.scac_code}')>"
