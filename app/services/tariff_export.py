"""
CSV export of tariff versions - one row per version, fixed column order.
"""

import csv
import io
from datetime import date, datetime
from typing import Any, Iterable, Sequence

from app.services.tariff_records import carrier_ids_of, get_field, index_by_id

EXPORT_COLUMNS = [
    "Tariff ID",
    "Customer",
    "Carrier(s)",
    "Status",
    "Ownership",
    "Service Type",
    "Mode",
    "Effective Date",
    "Expiry Date",
    "CSP Event",
    "Created Date",
    "Updated Date",
]


def _format_date(value: Any) -> str:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, date):
        return value.isoformat()
    return str(value) if value else ""


def tariff_export_row(
    tariff: Any,
    customers_by_id: dict,
    carriers_by_id: dict,
    csp_events_by_id: dict,
) -> list:
    customer = customers_by_id.get(str(get_field(tariff, "customer_id")))
    if get_field(tariff, "is_blanket_tariff") and customer is None:
        customer_name = "Blanket Tariff"
    else:
        customer_name = get_field(customer, "name", "")

    carriers = [carriers_by_id.get(cid) for cid in carrier_ids_of(tariff)]
    carrier_names = "; ".join(get_field(c, "name") for c in carriers if get_field(c, "name"))
    # Service type comes from the (first) carrier, mode from the tariff itself
    service_type = next((get_field(c, "service_type") for c in carriers if get_field(c, "service_type")), "")
    csp_event = csp_events_by_id.get(str(get_field(tariff, "csp_event_id")))

    return [
        get_field(tariff, "tariff_reference_id") or str(get_field(tariff, "id", "")),
        customer_name,
        carrier_names,
        get_field(tariff, "status", ""),
        get_field(tariff, "ownership_type", ""),
        service_type,
        get_field(tariff, "mode", ""),
        _format_date(get_field(tariff, "effective_date")),
        _format_date(get_field(tariff, "expiry_date")),
        get_field(csp_event, "title", ""),
        _format_date(get_field(tariff, "created_at")),
        _format_date(get_field(tariff, "updated_at")),
    ]


def export_tariffs_csv(
    tariffs: Iterable[Any],
    customers: Sequence[Any] = (),
    carriers: Sequence[Any] = (),
    csp_events: Sequence[Any] = (),
) -> str:
    """Every value is double-quoted; embedded quotes are doubled."""
    customers_by_id = index_by_id(customers)
    carriers_by_id = index_by_id(carriers)
    csp_events_by_id = index_by_id(csp_events)

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    for tariff in tariffs:
        writer.writerow(tariff_export_row(tariff, customers_by_id, carriers_by_id, csp_events_by_id))
    return buffer.getvalue()
