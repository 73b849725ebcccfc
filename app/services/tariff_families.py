"""
Tariff family grouping - turns a flat tariff list into
customer (or carrier) -> family -> versions.

A family is every version sharing a tariff_family_id; a tariff without a
family id forms a singleton family keyed by its own id. Blanket scopes
group by carrier, every other scope by customer.

Every function here is pure and takes `today` explicitly. Grouping never
drops a tariff: rows without a customer or carrier land in an "unknown"
group.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from app.models.tariff import BLANKET_OWNERSHIP_TYPES
from app.services.tariff_records import (
    carrier_ids_of,
    days_until_expiry,
    ensure_list,
    get_field,
    index_by_id,
    parse_date,
)

EXPIRING_WINDOW_DAYS = 90

STATUS_FILTERS = ("all", "active", "proposed", "expiring", "expired", "superseded")
SORT_COLUMNS = ("expiry_date", "effective_date", "version", "status")
SORT_DIRECTIONS = ("asc", "desc")
GROUP_SORTS = ("name", "expiry", "recent")

UNKNOWN_GROUP_KEY = "unknown"
CUSTOMER_SEARCH_PREFIX = "customer:"

# Computed status rank used when sorting by status
STATUS_RANK = {
    "active": 1,
    "expiring": 2,
    "proposed": 3,
    "expired": 4,
    "superseded": 5,
}


@dataclass
class TariffFamily:
    key: str
    versions: List[Any]
    has_live_versions: bool
    is_archived: bool
    is_pinned: bool = False
    active_version: Optional[Any] = None
    proposed_version: Optional[Any] = None
    expiring_version: Optional[Any] = None


@dataclass
class TariffGroup:
    key: str
    name: str
    is_pinned: bool = False
    families: Dict[str, TariffFamily] = field(default_factory=dict)

    @property
    def live_families(self) -> List[TariffFamily]:
        return [f for f in self.families.values() if not f.is_archived]

    @property
    def archived_families(self) -> List[TariffFamily]:
        return [f for f in self.families.values() if f.is_archived]

    @property
    def versions(self) -> List[Any]:
        return [v for f in self.families.values() for v in f.versions]


def is_blanket_scope(scope_type: Optional[str]) -> bool:
    return scope_type in BLANKET_OWNERSHIP_TYPES


def is_expiring(tariff: Any, today: date, window: int = EXPIRING_WINDOW_DAYS) -> bool:
    days = days_until_expiry(tariff, today)
    return days is not None and 0 < days <= window


def is_past_expiry(tariff: Any, today: date) -> bool:
    """True once the expiry date is today or earlier."""
    days = days_until_expiry(tariff, today)
    return days is not None and days <= 0


def computed_status(tariff: Any, today: date) -> str:
    """Status as displayed: stored status refined by the expiry date."""
    status = get_field(tariff, "status")
    if status == "superseded":
        return "superseded"
    if status == "expired" or is_past_expiry(tariff, today):
        return "expired"
    if status == "active":
        return "expiring" if is_expiring(tariff, today) else "active"
    return status or "unknown"


def status_rank(tariff: Any, today: date) -> int:
    return STATUS_RANK.get(computed_status(tariff, today), len(STATUS_RANK) + 1)


def matches_status_filter(tariff: Any, status_filter: Optional[str], today: date) -> bool:
    """
    Tab predicates:
      all        - active or proposed, or expiring within 90 days
      active     - active and not past expiry
      proposed   - proposed
      expiring   - expiring within 90 days
      expired    - stored as expired, or past expiry
      superseded - superseded
    """
    status = get_field(tariff, "status")

    if status_filter in (None, "", "all"):
        return status in ("active", "proposed") or is_expiring(tariff, today)
    if status_filter == "active":
        return status == "active" and not is_past_expiry(tariff, today)
    if status_filter == "proposed":
        return status == "proposed"
    if status_filter == "expiring":
        return is_expiring(tariff, today)
    if status_filter == "expired":
        return status == "expired" or is_past_expiry(tariff, today)
    if status_filter == "superseded":
        return status == "superseded"
    return False


def _names(ids: Iterable[Any], index: dict) -> List[str]:
    names = []
    for record_id in ids:
        name = get_field(index.get(str(record_id)), "name")
        if name:
            names.append(name)
    return names


def customer_names(tariff: Any, customers_by_id: dict) -> List[str]:
    ids = []
    if get_field(tariff, "customer_id"):
        ids.append(get_field(tariff, "customer_id"))
    ids.extend(ensure_list(get_field(tariff, "customer_ids")))
    return _names(ids, customers_by_id)


def matches_search(
    tariff: Any,
    term: Optional[str],
    customers_by_id: dict,
    carriers_by_id: dict,
    csp_events_by_id: Optional[dict] = None,
) -> bool:
    """Case-insensitive substring search. `customer:acme` only looks at customer names."""
    term = (term or "").strip().lower()
    if not term:
        return True

    customer_text = " ".join(customer_names(tariff, customers_by_id)).lower()

    if term.startswith(CUSTOMER_SEARCH_PREFIX):
        term = term[len(CUSTOMER_SEARCH_PREFIX):].strip()
        return not term or term in customer_text

    carrier_text = " ".join(_names(carrier_ids_of(tariff), carriers_by_id)).lower()
    csp_event = (csp_events_by_id or {}).get(str(get_field(tariff, "csp_event_id")))

    haystacks = [
        customer_text,
        carrier_text,
        str(get_field(tariff, "version", "")).lower(),
        str(get_field(tariff, "tariff_reference_id", "")).lower(),
        str(get_field(tariff, "tariff_family_id", "")).lower(),
        str(get_field(csp_event, "title", "")).lower(),
    ]
    return any(term in text for text in haystacks if text)


def filter_tariffs(
    tariffs: Sequence[Any],
    today: date,
    status_filter: Optional[str] = None,
    search: Optional[str] = None,
    customers: Sequence[Any] = (),
    carriers: Sequence[Any] = (),
    csp_events: Sequence[Any] = (),
) -> List[Any]:
    """Apply the status tab and the search box. A None status filter keeps every status."""
    customers_by_id = index_by_id(customers)
    carriers_by_id = index_by_id(carriers)
    csp_events_by_id = index_by_id(csp_events)

    return [
        t for t in ensure_list(tariffs)
        if (status_filter is None or matches_status_filter(t, status_filter, today))
        and matches_search(t, search, customers_by_id, carriers_by_id, csp_events_by_id)
    ]


def _natural_key(value: str) -> tuple:
    """'v10' sorts after 'v9'."""
    return tuple(
        (0, int(part), "") if part.isdigit() else (1, 0, part)
        for part in re.split(r"(\d+)", value.lower())
        if part
    )


def _version_sort_value(tariff: Any, column: str, today: date) -> Any:
    if column in ("expiry_date", "effective_date"):
        return parse_date(get_field(tariff, column))
    if column == "version":
        version = get_field(tariff, "version")
        return _natural_key(str(version)) if version not in (None, "") else None
    if column == "status":
        return status_rank(tariff, today)
    raise ValueError(f"Unknown sort column: {column}")


def sort_versions(
    versions: Sequence[Any],
    today: date,
    column: str = "expiry_date",
    direction: str = "asc",
) -> List[Any]:
    """
    Stable sort of family versions. Missing values always go last, so
    sorting an already-sorted list by the same column is a no-op.
    """
    keyed = [(v, _version_sort_value(v, column, today)) for v in versions]
    present = [pair for pair in keyed if pair[1] is not None]
    missing = [pair[0] for pair in keyed if pair[1] is None]

    present.sort(key=lambda pair: pair[1], reverse=(direction == "desc"))
    return [pair[0] for pair in present] + missing


def family_has_live_versions(versions: Iterable[Any], today: date) -> bool:
    return any(
        get_field(v, "status") in ("active", "proposed") or is_expiring(v, today)
        for v in versions
    )


def build_family(
    key: str,
    versions: Sequence[Any],
    today: date,
    is_pinned: bool = False,
) -> TariffFamily:
    """Annotate an already sorted version list."""
    versions = list(versions)
    live = family_has_live_versions(versions, today)

    return TariffFamily(
        key=key,
        versions=versions,
        has_live_versions=live,
        is_archived=not live,
        is_pinned=is_pinned,
        active_version=next((v for v in versions if get_field(v, "status") == "active"), None),
        proposed_version=next((v for v in versions if get_field(v, "status") == "proposed"), None),
        expiring_version=next((v for v in versions if is_expiring(v, today)), None),
    )


def group_key_for(tariff: Any, scope_type: Optional[str]) -> str:
    if is_blanket_scope(scope_type):
        carrier_ids = carrier_ids_of(tariff)
        return carrier_ids[0] if carrier_ids else UNKNOWN_GROUP_KEY
    customer_id = get_field(tariff, "customer_id")
    return str(customer_id) if customer_id else UNKNOWN_GROUP_KEY


def family_key_for(tariff: Any) -> str:
    return str(get_field(tariff, "tariff_family_id") or get_field(tariff, "id"))


def _group_name(key: str, scope_type: Optional[str], customers_by_id: dict, carriers_by_id: dict) -> str:
    blanket = is_blanket_scope(scope_type)
    index = carriers_by_id if blanket else customers_by_id
    name = get_field(index.get(key), "name")
    if name:
        return name
    return "Unknown Carrier" if blanket else "Unknown Customer"


def _earliest_expiry(group: TariffGroup) -> Optional[date]:
    dates = [d for d in (parse_date(get_field(v, "expiry_date")) for v in group.versions) if d]
    return min(dates) if dates else None


def _latest_update(group: TariffGroup) -> Optional[datetime]:
    stamps = [get_field(v, "updated_at") for v in group.versions]
    stamps = [s for s in stamps if isinstance(s, datetime)]
    return max(stamps) if stamps else None


def sort_groups(groups: List[TariffGroup], group_sort: str = "expiry") -> List[TariffGroup]:
    """Pinned groups first, then by name, earliest expiry, or most recent update."""
    if group_sort == "name":
        ordered = sorted(groups, key=lambda g: g.name.lower())
    elif group_sort == "recent":
        with_stamp = [g for g in groups if _latest_update(g) is not None]
        without = [g for g in groups if _latest_update(g) is None]
        ordered = sorted(with_stamp, key=_latest_update, reverse=True) + without
    elif group_sort == "expiry":
        with_expiry = [g for g in groups if _earliest_expiry(g) is not None]
        without = [g for g in groups if _earliest_expiry(g) is None]
        ordered = sorted(with_expiry, key=_earliest_expiry) + without
    else:
        raise ValueError(f"Unknown group sort: {group_sort}")

    return [g for g in ordered if g.is_pinned] + [g for g in ordered if not g.is_pinned]


def _order_families(
    families: List[TariffFamily],
    today: date,
    column: str,
    direction: str,
) -> List[TariffFamily]:
    """Live before archived; inside each tier pinned first, then by lead version."""
    leads = {id(f.versions[0]): f for f in families}
    by_lead = [leads[id(v)] for v in sort_versions([f.versions[0] for f in families], today, column, direction)]

    ordered = []
    for tier in (
        [f for f in by_lead if not f.is_archived],
        [f for f in by_lead if f.is_archived],
    ):
        ordered.extend(f for f in tier if f.is_pinned)
        ordered.extend(f for f in tier if not f.is_pinned)
    return ordered


def group_by_family(
    tariffs: Sequence[Any],
    scope_type: Optional[str],
    today: date,
    customers: Sequence[Any] = (),
    carriers: Sequence[Any] = (),
    sort_column: str = "expiry_date",
    sort_direction: str = "asc",
    group_sort: str = "expiry",
    pinned_family_keys: Iterable[str] = (),
    pinned_group_keys: Iterable[str] = (),
) -> List[TariffGroup]:
    """
    Partition tariffs into groups of families. Filtering (status tab, search)
    happens before this call; every tariff passed in comes back out exactly once.
    """
    if sort_column not in SORT_COLUMNS:
        raise ValueError(f"Unknown sort column: {sort_column}")
    if sort_direction not in SORT_DIRECTIONS:
        raise ValueError(f"Unknown sort direction: {sort_direction}")

    customers_by_id = index_by_id(customers)
    carriers_by_id = index_by_id(carriers)
    pinned_families = {str(k) for k in pinned_family_keys}
    pinned_groups = {str(k) for k in pinned_group_keys}

    # group key -> family key -> versions, in first-seen order
    buckets: Dict[str, Dict[str, List[Any]]] = {}
    for tariff in ensure_list(tariffs):
        group_key = group_key_for(tariff, scope_type)
        family_key = family_key_for(tariff)
        buckets.setdefault(group_key, {}).setdefault(family_key, []).append(tariff)

    groups = []
    for group_key, family_buckets in buckets.items():
        families = [
            build_family(
                family_key,
                sort_versions(versions, today, sort_column, sort_direction),
                today,
                is_pinned=family_key in pinned_families,
            )
            for family_key, versions in family_buckets.items()
        ]
        ordered = _order_families(families, today, sort_column, sort_direction)

        groups.append(TariffGroup(
            key=group_key,
            name=_group_name(group_key, scope_type, customers_by_id, carriers_by_id),
            is_pinned=group_key in pinned_groups,
            families={f.key: f for f in ordered},
        ))

    return sort_groups(groups, group_sort)
