"""
Tests for the CSV export.
"""
import csv
import io
from datetime import date, datetime

from app.services.tariff_export import EXPORT_COLUMNS, export_tariffs_csv

CUSTOMERS = [{"id": "acme", "name": "Acme \"The Best\" Corp"}]
CARRIERS = [
    {"id": "c1", "name": "Estes Express", "service_type": "LTL"},
    {"id": "c2", "name": "Old Dominion", "service_type": "LTL"},
]
CSP_EVENTS = [{"id": "csp1", "title": "Q3 LTL Bid"}]


def parse(content):
    return list(csv.reader(io.StringIO(content)))


def test_header_only_for_empty_export():
    content = export_tariffs_csv([])
    assert content == ",".join(f'"{c}"' for c in EXPORT_COLUMNS) + "\n"


def test_row_values_and_quoting():
    tariff = {
        "id": "t1",
        "tariff_reference_id": "REF-001",
        "customer_id": "acme",
        "carrier_ids": ["c1", "c2"],
        "status": "active",
        "ownership_type": "customer_direct",
        "mode": "LTL",
        "effective_date": date(2024, 1, 15),
        "expiry_date": date(2025, 1, 15),
        "csp_event_id": "csp1",
        "created_at": datetime(2024, 1, 10, 8, 30),
        "updated_at": datetime(2024, 2, 1, 17, 5),
    }

    content = export_tariffs_csv([tariff], CUSTOMERS, CARRIERS, CSP_EVENTS)
    rows = parse(content)

    assert rows[1] == [
        "REF-001",
        'Acme "The Best" Corp',
        "Estes Express; Old Dominion",
        "active",
        "customer_direct",
        "LTL",
        "LTL",
        "2024-01-15",
        "2025-01-15",
        "Q3 LTL Bid",
        "2024-01-10",
        "2024-02-01",
    ]
    # Embedded quotes are doubled inside a quoted field
    assert '"Acme ""The Best"" Corp"' in content


def test_blanket_without_customer_and_missing_references():
    tariff = {
        "id": "t2",
        "is_blanket_tariff": True,
        "customer_id": None,
        "carrier_id": "gone",
        "status": "proposed",
        "ownership_type": "rocket_blanket",
    }

    row = parse(export_tariffs_csv([tariff], CUSTOMERS, CARRIERS, CSP_EVENTS))[1]

    assert row[0] == "t2"
    assert row[1] == "Blanket Tariff"
    assert row[2] == ""
    assert row[7:] == ["", "", "", "", ""]
