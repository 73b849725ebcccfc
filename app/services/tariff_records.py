"""
Field access helpers shared by the tariff engines.

The engines accept ORM rows, pydantic models or plain dicts. Missing or
malformed optional values read as None instead of raising.
"""

from datetime import date, datetime
from typing import Any, Iterable, List, Optional


def get_field(record: Any, name: str, default: Any = None) -> Any:
    """Read a field from a dict or an object."""
    if record is None:
        return default
    if isinstance(record, dict):
        value = record.get(name, default)
    else:
        value = getattr(record, name, default)
    return default if value is None else value


def parse_date(value: Any) -> Optional[date]:
    """Coerce a date, datetime or ISO string to a date. Anything else is None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def ensure_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def days_until(value: Any, today: date) -> Optional[int]:
    """Whole days from today to the given date (negative once past)."""
    target = parse_date(value)
    if target is None:
        return None
    return (target - today).days


def days_until_expiry(tariff: Any, today: date) -> Optional[int]:
    return days_until(get_field(tariff, "expiry_date"), today)


def carrier_ids_of(tariff: Any) -> List[str]:
    """All carrier ids on a tariff: carrier_ids first, then carrier_id if not listed."""
    ids = [str(cid) for cid in ensure_list(get_field(tariff, "carrier_ids")) if cid]
    single = get_field(tariff, "carrier_id")
    if single and str(single) not in ids:
        ids.append(str(single))
    return ids


def index_by_id(records: Iterable[Any]) -> dict:
    """Map str(id) -> record, skipping records without an id."""
    index = {}
    for record in ensure_list(records):
        record_id = get_field(record, "id")
        if record_id is not None:
            index[str(record_id)] = record
    return index
