"""
User pin model - per-user pinned customers and tariff families.
"""

import uuid

from sqlalchemy import String, UniqueConstraint, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import RecordBase

PIN_TYPES = ("customer", "tariff_family")


class UserPin(RecordBase):
    """A (user, pin_type, ref_id) triple. ref_id is a customer id or a family key."""

    __tablename__ = "user_pins"
    __table_args__ = (
        UniqueConstraint("user_id", "pin_type", "ref_id", name="uq_user_pins_triple"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    pin_type: Mapped[str] = mapped_column(SQLEnum(*PIN_TYPES, name="pin_type_enum"), nullable=False)
    ref_id: Mapped[str] = mapped_column(String(100), nullable=False)

    def __repr__(self) -> str:
        return f"<UserPin(user_id={self.user_id}, type='{self.pin_type}', ref='{self.ref_id}')>"
