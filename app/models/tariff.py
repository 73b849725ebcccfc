"""
Tariff model - one version of a pricing agreement with one or more carriers.
Versions of the same agreement share a tariff_family_id across renewals.
"""

import uuid
from datetime import date
from typing import Optional, List

from sqlalchemy import Boolean, Date, ForeignKey, JSON, String, Text, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import RecordBase

TARIFF_STATUSES = ("proposed", "active", "expired", "superseded")

OWNERSHIP_TYPES = (
    "customer_direct",
    "rocket_csp",
    "customer_csp",
    "rocket_blanket",
    "priority1_blanket",
)

BLANKET_OWNERSHIP_TYPES = ("rocket_blanket", "priority1_blanket")


class Tariff(RecordBase):
    """
    A pricing agreement version.
    Status changes, renewals and edits are recorded in tariff_activities.
    """

    __tablename__ = "tariffs"

    # Family / versioning (family id is immutable once set)
    tariff_family_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)
    tariff_reference_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    version: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    status: Mapped[str] = mapped_column(
        SQLEnum(*TARIFF_STATUSES, name="tariff_status_enum"),
        default="proposed",
        nullable=False,
    )
    ownership_type: Mapped[str] = mapped_column(
        SQLEnum(*OWNERSHIP_TYPES, name="tariff_ownership_enum"),
        default="rocket_csp",
        nullable=False,
    )
    mode: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)  # Service type: LTL, Home Delivery

    # Parties
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    customer_ids: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True, default=list)  # Blanket pool
    carrier_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("carriers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    carrier_ids: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True, default=list)
    is_blanket_tariff: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Validity period
    effective_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # CSP linkage
    csp_event_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("csp_events.id", ondelete="SET NULL"),
        nullable=True,
    )
    renewal_csp_event_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("csp_events.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Carrier portal credentials (opaque)
    credential_username: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    credential_password: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    portal_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    shipper_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Audit
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    updated_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    updated_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<Tariff(id={self.id}, family={self.tariff_family_id}, version='{self.version}', status='{self.status}')>"

    @property
    def family_key(self) -> str:
        return str(self.tariff_family_id or self.id)
