"""
CSP event model - a carrier sourcing program negotiation.
A CSP event can produce tariffs (csp_event_id) or renew a tariff family
(renewal_csp_event_id).
"""

import uuid
from datetime import date
from typing import Optional

from sqlalchemy import Date, ForeignKey, String, Text, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import RecordBase

CSP_STAGES = (
    "planning",
    "invites_sent",
    "optimization",
    "awarded",
    "implementation",
    "closed",
)


class CSPEvent(RecordBase):
    """A sourcing negotiation for one customer."""

    __tablename__ = "csp_events"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    stage: Mapped[str] = mapped_column(
        SQLEnum(*CSP_STAGES, name="csp_stage_enum"),
        default="planning",
    )
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    def __repr__(self) -> str:
        return f"<CSPEvent(id={self.id}, title='{self.title}', stage='{self.stage}')>"
