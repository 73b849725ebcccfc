"""
Tariff activity model - audit trail for tariff and family changes.
"""

import uuid
from typing import Optional

from sqlalchemy import ForeignKey, JSON, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import RecordBase


class TariffActivity(RecordBase):
    """
    One audit entry. Family-wide events (renewal linkage) carry the family id
    so every version's timeline shows them.
    """

    __tablename__ = "tariff_activities"

    tariff_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("tariffs.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    tariff_family_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)

    # tariff_created, tariff_updated, status_changed, tariff_superseded, renewal_csp_created,
    # tariff_deleted
    activity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(String(1000), nullable=False)
    metadata_json: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)

    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    def __repr__(self) -> str:
        return f"<TariffActivity(id={self.id}, type='{self.activity_type}', tariff_id={self.tariff_id})>"
