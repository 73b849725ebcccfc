"""
Tariff lifecycle rules - validation, save warnings, activation and renewals.

Rules applied before a tariff is written:
- Required fields are checked first; nothing is written on failure.
- expiry_date defaults to effective_date + 12 months.
- Saving a second active version in a family, or changing the ownership
  type of an existing tariff, produces warnings. Saves still go through
  (warn-but-allow); `supersede_active=True` moves the other active
  versions to superseded in the same transaction.

Renewal linkage (new CSP event + renewal_csp_event_id on every version of
the family + activity entry) is a single transaction: it commits as a whole
or rolls back as a whole.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from dateutil.relativedelta import relativedelta
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.csp_event import CSPEvent
from app.models.tariff import BLANKET_OWNERSHIP_TYPES, OWNERSHIP_TYPES, TARIFF_STATUSES, Tariff
from app.services.errors import NotFoundError, RenewalLinkError, TariffValidationError
from app.services.tariff_activity import record_activity
from app.services.tariff_records import carrier_ids_of, ensure_list, get_field, parse_date

logger = logging.getLogger(__name__)

DEFAULT_TERM_MONTHS = 12
DATE_PROXIMITY_DAYS = 30

ACTIVE_CONFLICT = "active_conflict"
OWNERSHIP_CHANGE = "ownership_change"

# Similarity type -> severity, most severe first
SIMILARITY_SEVERITY = {
    "direct_duplicate": "high",
    "blanket_customer_coverage": "medium",
    "rocket_blanket_coverage": "medium",
    "priority_1_blanket_coverage": "medium",
    "date_proximity": "low",
}


@dataclass
class SaveWarning:
    code: str
    message: str
    related_tariff_ids: List[str] = field(default_factory=list)


@dataclass
class SimilarTariff:
    tariff: Any
    similarity_type: str
    severity: str


def default_expiry_date(effective_date: date, months: int = DEFAULT_TERM_MONTHS) -> date:
    """Same day N months later; month-end dates clamp (2024-02-29 -> 2025-02-28)."""
    return effective_date + relativedelta(months=months)


def validate_tariff_payload(data: Dict[str, Any], is_update: bool = False) -> None:
    """
    Raise TariffValidationError listing every missing field.
    `data` is the merged record (original values overlaid with the changes).
    """
    missing = []
    if not is_update and not data.get("version"):
        missing.append("Tariff Version")
    if not carrier_ids_of(data):
        missing.append("Carrier(s)")
    if not data.get("effective_date"):
        missing.append("Effective Date")
    if not _is_blanket(data) and not data.get("customer_id"):
        missing.append("Customer")
    if is_update and not (data.get("updated_reason") or "").strip():
        missing.append("Update Reason")

    if missing:
        raise TariffValidationError(f"Please fill all required fields: {', '.join(missing)}.")

    if data.get("status") and data["status"] not in TARIFF_STATUSES:
        raise TariffValidationError(f"Unknown tariff status: {data['status']}")
    if data.get("ownership_type") and data["ownership_type"] not in OWNERSHIP_TYPES:
        raise TariffValidationError(f"Unknown ownership type: {data['ownership_type']}")

    effective = parse_date(data.get("effective_date"))
    expiry = parse_date(data.get("expiry_date"))
    if effective and expiry and expiry < effective:
        raise TariffValidationError("Expiry date cannot be before the effective date.")


def _is_blanket(data: Dict[str, Any]) -> bool:
    return bool(data.get("is_blanket_tariff")) or data.get("ownership_type") in BLANKET_OWNERSHIP_TYPES


def collect_save_warnings(
    data: Dict[str, Any],
    original: Optional[Any] = None,
    family_members: Sequence[Any] = (),
) -> List[SaveWarning]:
    """Advisory checks for a tariff about to be saved."""
    warnings = []
    own_id = str(get_field(original, "id")) if original is not None else None

    if data.get("status") == "active":
        others = [
            str(get_field(t, "id")) for t in family_members
            if get_field(t, "status") == "active" and str(get_field(t, "id")) != own_id
        ]
        if others:
            warnings.append(SaveWarning(
                code=ACTIVE_CONFLICT,
                message=(
                    f"This family already has {len(others)} active version(s). "
                    "Saving will leave more than one active tariff until the other "
                    "version is superseded."
                ),
                related_tariff_ids=others,
            ))

    if original is not None:
        old_type = get_field(original, "ownership_type")
        new_type = data.get("ownership_type")
        if new_type and old_type and new_type != old_type:
            warnings.append(SaveWarning(
                code=OWNERSHIP_CHANGE,
                message=(
                    f"Changing ownership from {old_type} to {new_type} starts a new "
                    "tariff family. The existing family id is kept on this record."
                ),
            ))

    return warnings


def prepare_tariff_fields(
    changes: Dict[str, Any],
    original: Optional[Any] = None,
    default_term_months: int = DEFAULT_TERM_MONTHS,
) -> Dict[str, Any]:
    """
    Merge changes over the original record and normalise them:
    default expiry date, blanket flag, carrier list containing carrier_id.
    Returns the merged field dict (not yet validated).
    """
    merged: Dict[str, Any] = {}
    if original is not None:
        for column in Tariff.__table__.columns.keys():
            merged[column] = get_field(original, column)
    merged.update(changes)

    for date_field in ("effective_date", "expiry_date"):
        if date_field in merged:
            merged[date_field] = parse_date(merged[date_field])

    if merged.get("effective_date") and not merged.get("expiry_date"):
        merged["expiry_date"] = default_expiry_date(merged["effective_date"], default_term_months)

    blanket_type = merged.get("ownership_type") in BLANKET_OWNERSHIP_TYPES
    if original is not None and "ownership_type" in changes:
        # The flag follows the ownership type once it changes
        merged["is_blanket_tariff"] = blanket_type
    elif blanket_type:
        merged["is_blanket_tariff"] = True

    if original is not None:
        # A carrier change replaces the stored carrier list instead of extending it
        if "carrier_id" in changes and "carrier_ids" not in changes:
            merged["carrier_ids"] = [changes["carrier_id"]] if changes["carrier_id"] else []
        elif "carrier_ids" in changes and "carrier_id" not in changes:
            merged["carrier_id"] = None

    carrier_ids = carrier_ids_of(merged)
    merged["carrier_ids"] = carrier_ids
    if not merged.get("carrier_id") and carrier_ids:
        merged["carrier_id"] = carrier_ids[0]
    merged["customer_ids"] = [str(cid) for cid in ensure_list(merged.get("customer_ids"))]

    return merged


async def get_family_members(db: AsyncSession, family_id: Optional[uuid.UUID]) -> List[Tariff]:
    if family_id is None:
        return []
    result = await db.execute(select(Tariff).where(Tariff.tariff_family_id == family_id))
    return list(result.scalars().all())


def _coerce_uuid(value: Any) -> Optional[uuid.UUID]:
    if value in (None, ""):
        return None
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


_UUID_FIELDS = (
    "tariff_family_id",
    "customer_id",
    "carrier_id",
    "csp_event_id",
    "renewal_csp_event_id",
    "created_by",
    "updated_by",
)


def _column_values(merged: Dict[str, Any]) -> Dict[str, Any]:
    columns = set(Tariff.__table__.columns.keys()) - {"id", "created_at", "updated_at"}
    values = {k: v for k, v in merged.items() if k in columns}
    for key in _UUID_FIELDS:
        if key in values:
            try:
                values[key] = _coerce_uuid(values[key])
            except ValueError:
                raise TariffValidationError(f"Invalid identifier for {key}: {values[key]}")
    return values


async def _supersede(
    db: AsyncSession,
    tariffs: Sequence[Tariff],
    replaced_by: Tariff,
    user_id: Optional[uuid.UUID],
) -> None:
    for other in tariffs:
        other.status = "superseded"
        other.updated_by = user_id
        other.updated_reason = f"Superseded by version {replaced_by.version or replaced_by.id}"
        await record_activity(
            db,
            activity_type="tariff_superseded",
            description=f"Version {other.version or other.id} superseded by {replaced_by.version or replaced_by.id}",
            tariff_id=other.id,
            tariff_family_id=other.tariff_family_id,
            user_id=user_id,
            metadata={"superseded_by": str(replaced_by.id)},
        )
        logger.info("Tariff %s superseded by %s", other.id, replaced_by.id)


async def create_tariff(
    db: AsyncSession,
    changes: Dict[str, Any],
    user_id: Optional[uuid.UUID] = None,
    supersede_active: bool = False,
    default_term_months: int = DEFAULT_TERM_MONTHS,
) -> Tuple[Tariff, List[SaveWarning]]:
    """
    Create a tariff version. A tariff with no family id starts its own family
    keyed by its id. Commits on success.
    """
    merged = prepare_tariff_fields(changes, None, default_term_months)
    merged["status"] = merged.get("status") or "proposed"
    merged["ownership_type"] = merged.get("ownership_type") or "rocket_csp"
    validate_tariff_payload(merged, is_update=False)

    values = _column_values(merged)
    family_id = values.get("tariff_family_id")
    members = await get_family_members(db, family_id)
    warnings = collect_save_warnings(merged, None, members)

    tariff_id = uuid.uuid4()
    tariff = Tariff(
        id=tariff_id,
        **{**values, "tariff_family_id": family_id or tariff_id, "created_by": user_id, "updated_by": user_id},
    )
    db.add(tariff)
    await db.flush()

    await record_activity(
        db,
        activity_type="tariff_created",
        description=f"Tariff version {tariff.version} created ({tariff.status})",
        tariff_id=tariff.id,
        tariff_family_id=tariff.tariff_family_id,
        user_id=user_id,
    )

    conflicts = [t for t in members if t.status == "active"] if tariff.status == "active" else []
    if supersede_active and conflicts:
        await _supersede(db, conflicts, tariff, user_id)
    elif warnings:
        for warning in warnings:
            logger.warning("Tariff %s saved with warning %s: %s", tariff.id, warning.code, warning.message)

    await db.commit()
    await db.refresh(tariff)
    logger.info("Tariff created: id=%s family=%s status=%s", tariff.id, tariff.tariff_family_id, tariff.status)
    return tariff, warnings


async def update_tariff(
    db: AsyncSession,
    tariff: Tariff,
    changes: Dict[str, Any],
    user_id: Optional[uuid.UUID] = None,
    supersede_active: bool = False,
    default_term_months: int = DEFAULT_TERM_MONTHS,
) -> Tuple[Tariff, List[SaveWarning]]:
    """
    Update a tariff version. An update reason is required. The family id is
    never rewritten, including on an ownership change. Commits on success.
    """
    changes = {k: v for k, v in changes.items() if k != "tariff_family_id"}
    # The reason belongs to this change, not to a previous one
    changes.setdefault("updated_reason", None)
    merged = prepare_tariff_fields(changes, tariff, default_term_months)
    validate_tariff_payload(merged, is_update=True)

    members = await get_family_members(db, tariff.tariff_family_id)
    warnings = collect_save_warnings(merged, tariff, members)

    old_status = tariff.status
    values = _column_values(merged)
    values.pop("tariff_family_id", None)
    values.pop("created_by", None)
    for key, value in values.items():
        setattr(tariff, key, value)
    tariff.updated_by = user_id

    if old_status != tariff.status:
        await record_activity(
            db,
            activity_type="status_changed",
            description=f"Status changed from {old_status} to {tariff.status}: {tariff.updated_reason}",
            tariff_id=tariff.id,
            tariff_family_id=tariff.tariff_family_id,
            user_id=user_id,
            metadata={"old_status": old_status, "new_status": tariff.status},
        )
    else:
        await record_activity(
            db,
            activity_type="tariff_updated",
            description=f"Tariff updated: {tariff.updated_reason}",
            tariff_id=tariff.id,
            tariff_family_id=tariff.tariff_family_id,
            user_id=user_id,
            metadata={"fields": sorted(changes.keys())},
        )

    conflicts = [t for t in members if t.status == "active" and t.id != tariff.id] if tariff.status == "active" else []
    if supersede_active and conflicts:
        await _supersede(db, conflicts, tariff, user_id)
    for warning in warnings:
        logger.warning("Tariff %s saved with warning %s: %s", tariff.id, warning.code, warning.message)

    await db.commit()
    await db.refresh(tariff)
    logger.info("Tariff updated: id=%s status=%s", tariff.id, tariff.status)
    return tariff, warnings


async def activate_tariff(
    db: AsyncSession,
    tariff: Tariff,
    user_id: Optional[uuid.UUID] = None,
    supersede_active: bool = False,
    reason: Optional[str] = None,
) -> Tuple[Tariff, List[SaveWarning]]:
    """Move a version to active, optionally superseding the family's current active version."""
    return await update_tariff(
        db,
        tariff,
        {"status": "active", "updated_reason": reason or "Activated"},
        user_id=user_id,
        supersede_active=supersede_active,
    )


async def delete_tariff(db: AsyncSession, tariff: Tariff, user_id: Optional[uuid.UUID] = None) -> None:
    """
    Delete a tariff version. The deletion is recorded against the family;
    earlier entries keep their family id once tariff_id is nulled.
    """
    tariff_id = tariff.id
    family_id = tariff.tariff_family_id or tariff.id
    await record_activity(
        db,
        activity_type="tariff_deleted",
        description=f"Tariff version {tariff.version or tariff_id} deleted",
        tariff_family_id=family_id,
        user_id=user_id,
        metadata={"tariff_id": str(tariff_id), "version": tariff.version, "status": tariff.status},
    )
    await db.delete(tariff)
    await db.commit()
    logger.info("Tariff deleted: id=%s family=%s", tariff_id, family_id)


async def create_renewal_csp_event(
    db: AsyncSession,
    family_id: uuid.UUID,
    title: str,
    user_id: Optional[uuid.UUID] = None,
    due_date: Optional[date] = None,
    description: Optional[str] = None,
) -> Tuple[CSPEvent, List[Tariff]]:
    """
    Create a renewal CSP event and link it to every version of the family.

    Event creation, the family-wide renewal_csp_event_id update and the
    activity entry commit together. Any failure rolls all three back and
    raises RenewalLinkError.
    """
    members = await get_family_members(db, family_id)
    if not members:
        # Singleton family without a stored family id
        legacy = await db.get(Tariff, family_id)
        members = [legacy] if legacy is not None else []
    if not members:
        raise NotFoundError("Tariff family not found")

    anchor = members[0]
    try:
        event = CSPEvent(
            title=title,
            description=description,
            customer_id=anchor.customer_id,
            stage="planning",
            due_date=due_date,
            created_by=user_id,
        )
        db.add(event)
        await db.flush()

        for tariff in members:
            tariff.renewal_csp_event_id = event.id
            tariff.updated_by = user_id

        await record_activity(
            db,
            activity_type="renewal_csp_created",
            description=f"Renewal CSP event \"{title}\" created for {len(members)} version(s)",
            tariff_id=anchor.id,
            tariff_family_id=anchor.tariff_family_id or anchor.id,
            user_id=user_id,
            metadata={"csp_event_id": str(event.id), "tariff_ids": [str(t.id) for t in members]},
        )

        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.warning("Renewal linkage failed for family %s: %s", family_id, e)
        raise RenewalLinkError(f"Failed to link renewal CSP event: {e}") from e

    await db.refresh(event)
    logger.info("Renewal CSP event %s linked to family %s (%d tariffs)", event.id, family_id, len(members))
    return event, members


def _shares_carrier(a: Any, b: Any) -> bool:
    return bool(set(carrier_ids_of(a)) & set(carrier_ids_of(b)))


def _covers_customer(blanket: Any, customer_id: Any) -> bool:
    pool = {str(c) for c in ensure_list(get_field(blanket, "customer_ids"))}
    return str(customer_id) in pool


def find_similar_tariffs(
    candidate: Dict[str, Any],
    existing: Sequence[Any],
    proximity_days: int = DATE_PROXIMITY_DAYS,
) -> List[SimilarTariff]:
    """
    Active tariffs that may duplicate a tariff about to be created.

    - direct_duplicate: same customer, carrier and ownership type
    - *_blanket_coverage: an active blanket already covers the customer/carrier
    - date_proximity: same customer and carrier, effective dates close together
    Each existing tariff is reported once, under its most severe match.
    """
    customer_id = candidate.get("customer_id")
    ownership = candidate.get("ownership_type")
    effective = parse_date(candidate.get("effective_date"))
    own_id = str(candidate.get("id")) if candidate.get("id") else None
    matches = []

    for tariff in existing:
        if get_field(tariff, "status") != "active" or str(get_field(tariff, "id")) == own_id:
            continue
        if not _shares_carrier(candidate, tariff):
            continue

        same_customer = customer_id and str(get_field(tariff, "customer_id")) == str(customer_id)
        similarity = None

        if same_customer and get_field(tariff, "ownership_type") == ownership:
            similarity = "direct_duplicate"
        elif customer_id and get_field(tariff, "is_blanket_tariff") and _covers_customer(tariff, customer_id):
            blanket_type = get_field(tariff, "ownership_type")
            if blanket_type == "rocket_blanket":
                similarity = "rocket_blanket_coverage"
            elif blanket_type == "priority1_blanket":
                similarity = "priority_1_blanket_coverage"
            else:
                similarity = "blanket_customer_coverage"
        elif same_customer and effective:
            other_effective = parse_date(get_field(tariff, "effective_date"))
            if other_effective and abs(other_effective - effective) <= timedelta(days=proximity_days):
                similarity = "date_proximity"

        if similarity:
            matches.append(SimilarTariff(tariff, similarity, SIMILARITY_SEVERITY[similarity]))

    order = list(SIMILARITY_SEVERITY)
    return sorted(matches, key=lambda m: order.index(m.similarity_type))


async def load_duplicate_candidates(db: AsyncSession, candidate: Dict[str, Any]) -> List[Tariff]:
    """Active tariffs sharing the candidate's customer, or blankets (filtered in Python)."""
    conditions = [Tariff.is_blanket_tariff.is_(True)]
    customer_id = _coerce_uuid(candidate.get("customer_id"))
    if customer_id is not None:
        conditions.append(Tariff.customer_id == customer_id)

    result = await db.execute(
        select(Tariff).where(Tariff.status == "active", or_(*conditions))
    )
    return list(result.scalars().all())
