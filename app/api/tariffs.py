"""
Tariff endpoints - versions, families, lifecycle actions and CSV export.
"""

import uuid
from datetime import date, datetime
from typing import Any, List, Literal, Optional

from fastapi import APIRouter, HTTPException, Query, Response, status
from pydantic import BaseModel, field_validator
from sqlalchemy import select

from app.api.deps import CurrentUser, DbSession, Today
from app.api.pins import load_pinned_refs
from app.config import get_settings
from app.models.carrier import Carrier
from app.models.csp_event import CSPEvent
from app.models.customer import Customer
from app.models.tariff import Tariff
from app.services import tariff_lifecycle
from app.services.tariff_activity import list_activities
from app.services.tariff_comparison import assess_risk_level, compare_tariff_to_alternatives
from app.services.tariff_export import export_tariffs_csv
from app.services.tariff_families import (
    computed_status,
    filter_tariffs,
    group_by_family,
    is_blanket_scope,
)
from app.services.tariff_records import carrier_ids_of, days_until_expiry

router = APIRouter()
settings = get_settings()

TariffStatus = Literal["proposed", "active", "expired", "superseded"]
OwnershipType = Literal["customer_direct", "rocket_csp", "customer_csp", "rocket_blanket", "priority1_blanket"]
StatusFilter = Literal["all", "active", "proposed", "expiring", "expired", "superseded"]
SortColumn = Literal["expiry_date", "effective_date", "version", "status"]
SortDirection = Literal["asc", "desc"]
GroupSort = Literal["name", "expiry", "recent"]


# Schemas
class TariffCreate(BaseModel):
    tariff_family_id: Optional[uuid.UUID] = None
    tariff_reference_id: Optional[str] = None
    version: Optional[str] = None
    status: TariffStatus = "proposed"
    ownership_type: OwnershipType = "rocket_csp"
    mode: Optional[str] = None
    customer_id: Optional[uuid.UUID] = None
    customer_ids: List[uuid.UUID] = []
    carrier_id: Optional[uuid.UUID] = None
    carrier_ids: List[uuid.UUID] = []
    is_blanket_tariff: bool = False
    effective_date: Optional[date] = None
    expiry_date: Optional[date] = None
    csp_event_id: Optional[uuid.UUID] = None
    credential_username: Optional[str] = None
    credential_password: Optional[str] = None
    portal_url: Optional[str] = None
    shipper_number: Optional[str] = None
    notes: Optional[str] = None


class TariffUpdate(BaseModel):
    tariff_reference_id: Optional[str] = None
    version: Optional[str] = None
    status: Optional[TariffStatus] = None
    ownership_type: Optional[OwnershipType] = None
    mode: Optional[str] = None
    customer_id: Optional[uuid.UUID] = None
    customer_ids: Optional[List[uuid.UUID]] = None
    carrier_id: Optional[uuid.UUID] = None
    carrier_ids: Optional[List[uuid.UUID]] = None
    is_blanket_tariff: Optional[bool] = None
    effective_date: Optional[date] = None
    expiry_date: Optional[date] = None
    csp_event_id: Optional[uuid.UUID] = None
    credential_username: Optional[str] = None
    credential_password: Optional[str] = None
    portal_url: Optional[str] = None
    shipper_number: Optional[str] = None
    notes: Optional[str] = None
    updated_reason: Optional[str] = None


class RiskResponse(BaseModel):
    level: str
    message: str


class TariffResponse(BaseModel):
    id: uuid.UUID
    tariff_family_id: Optional[uuid.UUID]
    tariff_reference_id: Optional[str]
    version: Optional[str]
    status: str
    ownership_type: str
    mode: Optional[str]
    customer_id: Optional[uuid.UUID]
    customer_ids: List[str] = []
    carrier_id: Optional[uuid.UUID]
    carrier_ids: List[str] = []
    is_blanket_tariff: bool
    effective_date: Optional[date]
    expiry_date: Optional[date]
    csp_event_id: Optional[uuid.UUID]
    renewal_csp_event_id: Optional[uuid.UUID]
    credential_username: Optional[str]
    credential_password: Optional[str]
    portal_url: Optional[str]
    shipper_number: Optional[str]
    notes: Optional[str]
    created_by: Optional[uuid.UUID]
    updated_by: Optional[uuid.UUID]
    updated_reason: Optional[str]
    created_at: datetime
    updated_at: datetime

    # Computed for the reference date
    computed_status: Optional[str] = None
    days_until_expiry: Optional[int] = None
    risk: Optional[RiskResponse] = None

    class Config:
        from_attributes = True

    @field_validator("customer_ids", "carrier_ids", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return [str(item) for item in v] if v else []


class TariffListResponse(BaseModel):
    items: List[TariffResponse]
    total: int


class WarningResponse(BaseModel):
    code: str
    message: str
    related_tariff_ids: List[str] = []


class TariffSaveResponse(BaseModel):
    tariff: TariffResponse
    warnings: List[WarningResponse] = []


class FamilyResponse(BaseModel):
    key: str
    has_live_versions: bool
    is_archived: bool
    is_pinned: bool
    active_version_id: Optional[uuid.UUID]
    proposed_version_id: Optional[uuid.UUID]
    expiring_version_id: Optional[uuid.UUID]
    versions: List[TariffResponse]


class FamilyGroupResponse(BaseModel):
    key: str
    name: str
    is_pinned: bool
    live_count: int
    archived_count: int
    families: List[FamilyResponse]


class FamilyGroupsResponse(BaseModel):
    items: List[FamilyGroupResponse]
    total: int
    total_versions: int


class SimilarTariffResponse(BaseModel):
    similarity_type: str
    severity: str
    tariff: TariffResponse


class DuplicateCheckResponse(BaseModel):
    items: List[SimilarTariffResponse]
    has_high_severity: bool


class RenewalCspCreate(BaseModel):
    title: str
    due_date: Optional[date] = None
    description: Optional[str] = None


class RenewalCspResponse(BaseModel):
    csp_event_id: uuid.UUID
    title: str
    stage: str
    linked_tariff_ids: List[uuid.UUID]


class ActivityResponse(BaseModel):
    id: uuid.UUID
    tariff_id: Optional[uuid.UUID]
    tariff_family_id: Optional[uuid.UUID]
    activity_type: str
    description: str
    metadata_json: Optional[dict]
    created_by: Optional[uuid.UUID]
    created_at: datetime

    class Config:
        from_attributes = True


# Helpers
def to_response(tariff: Tariff, today: date) -> TariffResponse:
    response = TariffResponse.model_validate(tariff)
    risk = assess_risk_level(tariff, today)
    response.computed_status = computed_status(tariff, today)
    response.days_until_expiry = days_until_expiry(tariff, today)
    response.risk = RiskResponse(level=risk.level, message=risk.message)
    return response


def _id_of(tariff: Optional[Any]) -> Optional[uuid.UUID]:
    return tariff.id if tariff is not None else None


async def _get_tariff_or_404(db, tariff_id: uuid.UUID) -> Tariff:
    tariff = await db.get(Tariff, tariff_id)
    if not tariff:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tariff not found",
        )
    return tariff


async def _load_references(db):
    customers = (await db.execute(select(Customer))).scalars().all()
    carriers = (await db.execute(select(Carrier))).scalars().all()
    csp_events = (await db.execute(select(CSPEvent))).scalars().all()
    return customers, carriers, csp_events


async def _query_tariffs(
    db,
    ownership_type: Optional[str] = None,
    customer_id: Optional[uuid.UUID] = None,
    carrier_id: Optional[uuid.UUID] = None,
) -> List[Tariff]:
    query = select(Tariff).order_by(Tariff.effective_date.desc())
    if ownership_type:
        query = query.where(Tariff.ownership_type == ownership_type)

    tariffs = list((await db.execute(query)).scalars().all())
    # customer_ids and carrier_ids are JSON lists, matched in Python
    if customer_id:
        # Blankets reach a customer through their customer pool
        tariffs = [
            t for t in tariffs
            if t.customer_id == customer_id or str(customer_id) in [str(c) for c in (t.customer_ids or [])]
        ]
    if carrier_id:
        tariffs = [t for t in tariffs if str(carrier_id) in carrier_ids_of(t)]
    return tariffs


def _save_response(tariff: Tariff, warnings, today: date) -> TariffSaveResponse:
    return TariffSaveResponse(
        tariff=to_response(tariff, today),
        warnings=[
            WarningResponse(code=w.code, message=w.message, related_tariff_ids=w.related_tariff_ids)
            for w in warnings
        ],
    )


def _changes(data: BaseModel, exclude_unset: bool = False) -> dict:
    changes = data.model_dump(exclude_unset=exclude_unset)
    for key in ("customer_ids", "carrier_ids"):
        if changes.get(key) is not None:
            changes[key] = [str(v) for v in changes[key]]
    return changes


# Endpoints
@router.get("", response_model=TariffListResponse)
async def list_tariffs(
    db: DbSession,
    user: CurrentUser,
    today: Today,
    status_filter: Optional[StatusFilter] = None,
    ownership_type: Optional[OwnershipType] = None,
    customer_id: Optional[uuid.UUID] = None,
    carrier_id: Optional[uuid.UUID] = None,
    search: Optional[str] = None,
):
    """
    Flat tariff list, newest effective date first.
    Without a status filter every status is returned.
    """
    tariffs = await _query_tariffs(db, ownership_type, customer_id, carrier_id)
    customers, carriers, csp_events = await _load_references(db)

    tariffs = filter_tariffs(tariffs, today, status_filter, search, customers, carriers, csp_events)
    return TariffListResponse(
        items=[to_response(t, today) for t in tariffs],
        total=len(tariffs),
    )


@router.get("/families", response_model=FamilyGroupsResponse)
async def list_tariff_families(
    db: DbSession,
    user: CurrentUser,
    today: Today,
    scope_type: OwnershipType = Query(..., description="Ownership type the page is scoped to"),
    customer_id: Optional[uuid.UUID] = None,
    status_filter: Optional[StatusFilter] = None,
    search: Optional[str] = None,
    sort_column: SortColumn = "expiry_date",
    sort_direction: SortDirection = "asc",
    group_sort: GroupSort = "expiry",
):
    """
    Tariffs of one ownership scope grouped customer -> family -> versions
    (carrier -> family -> versions for blanket scopes).
    """
    tariffs = await _query_tariffs(db, scope_type, customer_id)
    customers, carriers, csp_events = await _load_references(db)
    tariffs = filter_tariffs(tariffs, today, status_filter, search, customers, carriers, csp_events)

    pinned_families = await load_pinned_refs(db, user.id, "tariff_family")
    pinned_groups = set() if is_blanket_scope(scope_type) else await load_pinned_refs(db, user.id, "customer")

    groups = group_by_family(
        tariffs,
        scope_type,
        today,
        customers=customers,
        carriers=carriers,
        sort_column=sort_column,
        sort_direction=sort_direction,
        group_sort=group_sort,
        pinned_family_keys=pinned_families,
        pinned_group_keys=pinned_groups,
    )

    items = []
    for group in groups:
        families = [
            FamilyResponse(
                key=family.key,
                has_live_versions=family.has_live_versions,
                is_archived=family.is_archived,
                is_pinned=family.is_pinned,
                active_version_id=_id_of(family.active_version),
                proposed_version_id=_id_of(family.proposed_version),
                expiring_version_id=_id_of(family.expiring_version),
                versions=[to_response(v, today) for v in family.versions],
            )
            for family in group.families.values()
        ]
        items.append(FamilyGroupResponse(
            key=group.key,
            name=group.name,
            is_pinned=group.is_pinned,
            live_count=len(group.live_families),
            archived_count=len(group.archived_families),
            families=families,
        ))

    return FamilyGroupsResponse(items=items, total=len(items), total_versions=len(tariffs))


@router.get("/export")
async def export_tariffs(
    db: DbSession,
    user: CurrentUser,
    today: Today,
    status_filter: Optional[StatusFilter] = None,
    ownership_type: Optional[OwnershipType] = None,
    customer_id: Optional[uuid.UUID] = None,
    search: Optional[str] = None,
):
    """CSV download, one row per tariff version."""
    tariffs = await _query_tariffs(db, ownership_type, customer_id)
    customers, carriers, csp_events = await _load_references(db)
    tariffs = filter_tariffs(tariffs, today, status_filter, search, customers, carriers, csp_events)

    content = export_tariffs_csv(tariffs, customers, carriers, csp_events)
    filename = f"tariffs_{today.isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/check-duplicates", response_model=DuplicateCheckResponse)
async def check_duplicates(
    data: TariffCreate,
    db: DbSession,
    user: CurrentUser,
    today: Today,
):
    """Active tariffs that look like duplicates of a tariff about to be created."""
    candidate = _changes(data)
    existing = await tariff_lifecycle.load_duplicate_candidates(db, candidate)
    similar = tariff_lifecycle.find_similar_tariffs(
        candidate,
        existing,
        proximity_days=settings.date_proximity_days,
    )

    return DuplicateCheckResponse(
        items=[
            SimilarTariffResponse(
                similarity_type=s.similarity_type,
                severity=s.severity,
                tariff=to_response(s.tariff, today),
            )
            for s in similar
        ],
        has_high_severity=any(s.severity == "high" for s in similar),
    )


@router.post("", response_model=TariffSaveResponse, status_code=status.HTTP_201_CREATED)
async def create_tariff(
    data: TariffCreate,
    db: DbSession,
    user: CurrentUser,
    today: Today,
    supersede_active: bool = False,
):
    """
    Create a tariff version. Without a family id the tariff starts a new family.
    Warnings (second active version) are returned, not enforced, unless
    supersede_active is set.
    """
    tariff, warnings = await tariff_lifecycle.create_tariff(
        db,
        _changes(data),
        user_id=user.id,
        supersede_active=supersede_active,
        default_term_months=settings.default_tariff_term_months,
    )
    return _save_response(tariff, warnings, today)


@router.post("/families/{family_id}/renewal-csp", response_model=RenewalCspResponse, status_code=status.HTTP_201_CREATED)
async def create_renewal_csp(
    family_id: uuid.UUID,
    data: RenewalCspCreate,
    db: DbSession,
    user: CurrentUser,
):
    """Create a renewal CSP event and link it to every version of the family."""
    event, members = await tariff_lifecycle.create_renewal_csp_event(
        db,
        family_id,
        title=data.title,
        user_id=user.id,
        due_date=data.due_date,
        description=data.description,
    )
    return RenewalCspResponse(
        csp_event_id=event.id,
        title=event.title,
        stage=event.stage,
        linked_tariff_ids=[t.id for t in members],
    )


@router.get("/{tariff_id}", response_model=TariffResponse)
async def get_tariff(
    tariff_id: uuid.UUID,
    db: DbSession,
    user: CurrentUser,
    today: Today,
):
    return to_response(await _get_tariff_or_404(db, tariff_id), today)


@router.patch("/{tariff_id}", response_model=TariffSaveResponse)
async def update_tariff(
    tariff_id: uuid.UUID,
    data: TariffUpdate,
    db: DbSession,
    user: CurrentUser,
    today: Today,
    supersede_active: bool = False,
):
    """Update a tariff version. updated_reason is required."""
    tariff = await _get_tariff_or_404(db, tariff_id)
    tariff, warnings = await tariff_lifecycle.update_tariff(
        db,
        tariff,
        _changes(data, exclude_unset=True),
        user_id=user.id,
        supersede_active=supersede_active,
        default_term_months=settings.default_tariff_term_months,
    )
    return _save_response(tariff, warnings, today)


@router.post("/{tariff_id}/activate", response_model=TariffSaveResponse)
async def activate_tariff(
    tariff_id: uuid.UUID,
    db: DbSession,
    user: CurrentUser,
    today: Today,
    supersede_active: bool = False,
    reason: Optional[str] = None,
):
    """Activate a version, optionally superseding the family's current active version."""
    tariff = await _get_tariff_or_404(db, tariff_id)
    tariff, warnings = await tariff_lifecycle.activate_tariff(
        db,
        tariff,
        user_id=user.id,
        supersede_active=supersede_active,
        reason=reason,
    )
    return _save_response(tariff, warnings, today)


@router.delete("/{tariff_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tariff(
    tariff_id: uuid.UUID,
    db: DbSession,
    user: CurrentUser,
):
    tariff = await _get_tariff_or_404(db, tariff_id)
    await tariff_lifecycle.delete_tariff(db, tariff, user_id=user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{tariff_id}/risk", response_model=RiskResponse)
async def get_tariff_risk(
    tariff_id: uuid.UUID,
    db: DbSession,
    user: CurrentUser,
    today: Today,
):
    risk = assess_risk_level(await _get_tariff_or_404(db, tariff_id), today)
    return RiskResponse(level=risk.level, message=risk.message)


@router.get("/{tariff_id}/activities", response_model=List[ActivityResponse])
async def get_tariff_activities(
    tariff_id: uuid.UUID,
    db: DbSession,
    user: CurrentUser,
    limit: int = Query(100, ge=1, le=500),
):
    """Timeline of the tariff, including family-wide entries."""
    tariff = await _get_tariff_or_404(db, tariff_id)
    activities = await list_activities(db, tariff.id, tariff.tariff_family_id, limit)
    return [ActivityResponse.model_validate(a) for a in activities]


@router.get("/{tariff_id}/alternatives")
async def get_tariff_alternatives(
    tariff_id: uuid.UUID,
    db: DbSession,
    user: CurrentUser,
):
    """Active tariffs of other ownership types covering the same customer and carrier."""
    tariff = await _get_tariff_or_404(db, tariff_id)
    carriers = set(carrier_ids_of(tariff))

    candidates = await tariff_lifecycle.load_duplicate_candidates(
        db, {"customer_id": tariff.customer_id}
    )
    alternatives = [
        t for t in candidates
        if t.id != tariff.id
        and t.ownership_type != tariff.ownership_type
        and carriers & set(carrier_ids_of(t))
    ]
    return compare_tariff_to_alternatives(tariff, alternatives)
