"""
Tariff activity service.

Writes audit entries for tariffs and tariff families. Entries are flushed,
never committed: they share the caller's transaction so an activity row
exists only if the change it describes was persisted.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.tariff_activity import TariffActivity

logger = logging.getLogger(__name__)


async def record_activity(
    db: AsyncSession,
    activity_type: str,
    description: str,
    tariff_id: Optional[uuid.UUID] = None,
    tariff_family_id: Optional[uuid.UUID] = None,
    user_id: Optional[uuid.UUID] = None,
    metadata: Optional[dict] = None,
) -> TariffActivity:
    """
    Add an activity entry to the current transaction.

    Args:
        db: Async SQLAlchemy session.
        activity_type: e.g. "tariff_created", "status_changed", "renewal_csp_created".
        description: Human readable summary shown in the timeline.
        tariff_id: Tariff the entry belongs to, if any.
        tariff_family_id: Family the entry belongs to, for family-wide events.
        user_id: Author of the change.
        metadata: Optional JSON metadata (old/new status, csp_event_id, ...).

    Returns:
        The TariffActivity instance (already flushed with an id).
    """
    activity = TariffActivity(
        tariff_id=tariff_id,
        tariff_family_id=tariff_family_id,
        activity_type=activity_type,
        description=description,
        metadata_json=metadata,
        created_by=user_id,
    )
    db.add(activity)
    await db.flush()

    logger.info(
        "Tariff activity recorded: type=%s tariff_id=%s family_id=%s",
        activity_type,
        tariff_id,
        tariff_family_id,
    )
    return activity


async def list_activities(
    db: AsyncSession,
    tariff_id: uuid.UUID,
    tariff_family_id: Optional[uuid.UUID] = None,
    limit: int = 100,
) -> List[TariffActivity]:
    """Timeline for a tariff: its own entries plus family-wide ones, newest first."""
    condition = TariffActivity.tariff_id == tariff_id
    if tariff_family_id is not None:
        condition = or_(condition, TariffActivity.tariff_family_id == tariff_family_id)

    result = await db.execute(
        select(TariffActivity)
        .where(condition)
        .order_by(TariffActivity.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
