"""
End-to-end API tests: HTTP request -> schema validation -> lifecycle rules
-> SQLite persistence -> HTTP response.
"""
import uuid

import pytest
import pytest_asyncio
from httpx import AsyncClient


@pytest_asyncio.fixture
async def refs(client: AsyncClient):
    """Two customers and two carriers."""
    acme = (await client.post("/customers", json={"name": "Acme Corp"})).json()
    globex = (await client.post("/customers", json={"name": "Globex"})).json()
    estes = (await client.post("/carriers", json={"name": "Estes Express", "scac_code": "EXLA"})).json()
    odfl = (await client.post("/carriers", json={"name": "Old Dominion", "scac_code": "ODFL"})).json()
    return {"acme": acme, "globex": globex, "estes": estes, "odfl": odfl}


def payload(refs, customer="acme", carrier="estes", **extra):
    data = {
        "version": "v1",
        "status": "active",
        "ownership_type": "customer_direct",
        "customer_id": refs[customer]["id"],
        "carrier_ids": [refs[carrier]["id"]],
        "effective_date": "2024-06-01",
        "expiry_date": "2025-06-01",
    }
    data.update(extra)
    return data


async def create(client, data, **params):
    response = await client.post("/tariffs", json=data, params=params)
    assert response.status_code == 201, response.text
    return response.json()


# ---------------------------------------------------------------------------
# Create / read / update
# ---------------------------------------------------------------------------

async def test_create_tariff_defaults(client, refs):
    body = await create(client, payload(refs, effective_date="2024-01-15", expiry_date=None))

    tariff = body["tariff"]
    assert body["warnings"] == []
    assert tariff["tariff_family_id"] == tariff["id"]
    assert tariff["expiry_date"] == "2025-01-15"
    assert tariff["carrier_id"] == refs["estes"]["id"]
    # Reference date is 2025-01-15: expiring today counts as expired
    assert tariff["days_until_expiry"] == 0
    assert tariff["computed_status"] == "expired"
    assert tariff["risk"] == {"level": "critical", "message": "Tariff has expired"}


async def test_create_with_missing_fields_returns_422(client, refs):
    response = await client.post("/tariffs", json={"ownership_type": "customer_direct"})

    assert response.status_code == 422
    assert response.json()["detail"] == (
        "Please fill all required fields: Tariff Version, Carrier(s), Effective Date, Customer."
    )


async def test_get_unknown_tariff_returns_404(client):
    response = await client.get(f"/tariffs/{uuid.uuid4()}")
    assert response.status_code == 404


async def test_update_requires_reason(client, refs):
    tariff = (await create(client, payload(refs)))["tariff"]

    response = await client.patch(f"/tariffs/{tariff['id']}", json={"notes": "New rates"})
    assert response.status_code == 422
    assert response.json()["detail"] == "Please fill all required fields: Update Reason."

    response = await client.patch(
        f"/tariffs/{tariff['id']}",
        json={"notes": "New rates", "updated_reason": "GRI applied"},
    )
    assert response.status_code == 200
    assert response.json()["tariff"]["notes"] == "New rates"
    assert response.json()["tariff"]["updated_reason"] == "GRI applied"


async def test_list_filters_by_status_and_search(client, refs):
    await create(client, payload(refs, version="live"))
    await create(client, payload(refs, version="old", status="expired", expiry_date="2024-12-01"))
    await create(client, payload(refs, customer="globex", version="draft", status="proposed"))

    everything = (await client.get("/tariffs")).json()
    assert everything["total"] == 3

    expired = (await client.get("/tariffs", params={"status_filter": "expired"})).json()
    assert [t["version"] for t in expired["items"]] == ["old"]

    globex = (await client.get("/tariffs", params={"search": "customer:globex"})).json()
    assert [t["version"] for t in globex["items"]] == ["draft"]


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

async def test_activate_with_supersede(client, refs):
    v1 = (await create(client, payload(refs)))["tariff"]
    v2 = (await create(client, payload(
        refs, version="v2", status="proposed", tariff_family_id=v1["tariff_family_id"],
        effective_date="2025-06-01", expiry_date="2026-06-01",
    )))["tariff"]

    response = await client.post(
        f"/tariffs/{v2['id']}/activate",
        params={"supersede_active": "true", "reason": "Renewal signed"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["tariff"]["status"] == "active"
    assert [w["code"] for w in body["warnings"]] == ["active_conflict"]
    assert body["warnings"][0]["related_tariff_ids"] == [v1["id"]]

    old = (await client.get(f"/tariffs/{v1['id']}")).json()
    assert old["status"] == "superseded"

    activities = (await client.get(f"/tariffs/{v1['id']}/activities")).json()
    assert "tariff_superseded" in [a["activity_type"] for a in activities]


async def test_second_active_without_supersede_is_allowed_with_warning(client, refs):
    v1 = (await create(client, payload(refs)))["tariff"]

    body = await create(client, payload(refs, version="v2", tariff_family_id=v1["id"]))

    assert [w["code"] for w in body["warnings"]] == ["active_conflict"]
    assert (await client.get(f"/tariffs/{v1['id']}")).json()["status"] == "active"


async def test_renewal_csp_links_family(client, refs):
    v1 = (await create(client, payload(refs)))["tariff"]
    v2 = (await create(client, payload(refs, version="v2", status="proposed", tariff_family_id=v1["id"])))["tariff"]

    response = await client.post(
        f"/tariffs/families/{v1['id']}/renewal-csp",
        json={"title": "Acme 2025 Renewal", "due_date": "2025-04-01"},
    )

    assert response.status_code == 201
    body = response.json()
    assert sorted(body["linked_tariff_ids"]) == sorted([v1["id"], v2["id"]])
    assert body["stage"] == "planning"

    for tariff_id in (v1["id"], v2["id"]):
        tariff = (await client.get(f"/tariffs/{tariff_id}")).json()
        assert tariff["renewal_csp_event_id"] == body["csp_event_id"]

    event = (await client.get(f"/csp-events/{body['csp_event_id']}")).json()
    assert event["customer_id"] == refs["acme"]["id"]


async def test_renewal_csp_unknown_family_returns_404(client):
    response = await client.post(f"/tariffs/families/{uuid.uuid4()}/renewal-csp", json={"title": "Renewal"})
    assert response.status_code == 404
    assert response.json()["detail"] == "Tariff family not found"


async def test_delete_tariff(client, refs):
    tariff = (await create(client, payload(refs)))["tariff"]

    assert (await client.delete(f"/tariffs/{tariff['id']}")).status_code == 204
    assert (await client.get(f"/tariffs/{tariff['id']}")).status_code == 404

    # The deletion stays visible on the rest of the family
    v2 = (await create(client, payload(refs, version="v2", tariff_family_id=tariff["tariff_family_id"])))["tariff"]
    activities = (await client.get(f"/tariffs/{v2['id']}/activities")).json()
    assert "tariff_deleted" in [a["activity_type"] for a in activities]


async def test_check_duplicates(client, refs):
    await create(client, payload(refs))

    response = await client.post("/tariffs/check-duplicates", json=payload(refs, version="v9"))

    body = response.json()
    assert body["has_high_severity"] is True
    assert body["items"][0]["similarity_type"] == "direct_duplicate"


# ---------------------------------------------------------------------------
# Families and pins
# ---------------------------------------------------------------------------

async def test_families_grouped_by_customer_with_pins(client, refs):
    acme_v1 = (await create(client, payload(refs, status="superseded", expiry_date="2024-12-31")))["tariff"]
    await create(client, payload(refs, version="v2", tariff_family_id=acme_v1["id"]))
    globex = (await create(client, payload(refs, customer="globex", carrier="odfl")))["tariff"]

    response = await client.post("/pins", json={"pin_type": "customer", "ref_id": refs["globex"]["id"]})
    assert response.status_code == 201
    # Pinning twice returns the same pin
    again = await client.post("/pins", json={"pin_type": "customer", "ref_id": refs["globex"]["id"]})
    assert again.status_code == 200
    assert again.json()["id"] == response.json()["id"]

    body = (await client.get("/tariffs/families", params={"scope_type": "customer_direct"})).json()

    assert body["total"] == 2
    assert body["total_versions"] == 3
    assert [g["name"] for g in body["items"]] == ["Globex", "Acme Corp"]
    assert body["items"][0]["is_pinned"] is True
    assert body["items"][0]["families"][0]["key"] == globex["id"]

    acme_family = body["items"][1]["families"][0]
    assert acme_family["key"] == acme_v1["id"]
    assert [v["version"] for v in acme_family["versions"]] == ["v1", "v2"]

    unpin = await client.request(
        "DELETE", "/pins", json={"pin_type": "customer", "ref_id": refs["globex"]["id"]}
    )
    assert unpin.status_code == 204
    assert (await client.get("/pins")).json()["total"] == 0


async def test_families_require_scope(client):
    response = await client.get("/tariffs/families")
    assert response.status_code == 422


async def test_blanket_families_grouped_by_carrier(client, refs):
    await create(client, payload(
        refs, ownership_type="rocket_blanket", customer_id=None,
        customer_ids=[refs["acme"]["id"], refs["globex"]["id"]],
    ))

    body = (await client.get("/tariffs/families", params={"scope_type": "rocket_blanket"})).json()

    assert [g["name"] for g in body["items"]] == ["Estes Express"]
    version = body["items"][0]["families"][0]["versions"][0]
    assert version["is_blanket_tariff"] is True
    assert sorted(version["customer_ids"]) == sorted([refs["acme"]["id"], refs["globex"]["id"]])


async def test_blanket_families_filtered_by_pool_customer(client, refs):
    await create(client, payload(
        refs, ownership_type="rocket_blanket", customer_id=None, customer_ids=[refs["acme"]["id"]],
    ))

    acme = (await client.get(
        "/tariffs/families", params={"scope_type": "rocket_blanket", "customer_id": refs["acme"]["id"]}
    )).json()
    globex = (await client.get(
        "/tariffs/families", params={"scope_type": "rocket_blanket", "customer_id": refs["globex"]["id"]}
    )).json()

    assert acme["total_versions"] == 1
    assert globex["total_versions"] == 0

    export = await client.get(
        "/tariffs/export", params={"ownership_type": "rocket_blanket", "customer_id": refs["acme"]["id"]}
    )
    assert len(export.text.strip().splitlines()) == 2


# ---------------------------------------------------------------------------
# Export and insights
# ---------------------------------------------------------------------------

async def test_export_csv(client, refs):
    await create(client, payload(refs, tariff_reference_id="REF-42"))

    response = await client.get("/tariffs/export")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert 'filename="tariffs_2025-01-15.csv"' in response.headers["content-disposition"]
    lines = response.text.strip().split("\n")
    assert lines[0].startswith('"Tariff ID","Customer","Carrier(s)"')
    assert lines[1].startswith('"REF-42","Acme Corp","Estes Express"')


async def test_customer_insights(client, refs):
    await create(client, payload(refs, expiry_date="2025-02-04"))  # 20 days out
    await create(client, payload(refs, version="x", carrier="odfl", expiry_date="2025-01-01"))

    response = await client.get(f"/insights/customers/{refs['acme']['id']}")

    assert response.status_code == 200
    body = response.json()
    assert [b["carrier_scac"] for b in body["carrier_blockers"]] == ["EXLA"]
    assert body["expiration_opportunities"][0]["priority"] == "high"
    assert body["metrics"]["active"] == 1
    assert body["metrics"]["expired"] == 1
    assert body["insights"][-1]["type"] == "recommended_targets"
    assert [c["scac_code"] for c in body["insights"][-1]["data"]] == ["ODFL"]


async def test_insights_for_unknown_customer(client):
    response = await client.get(f"/insights/customers/{uuid.uuid4()}")
    assert response.status_code == 404


@pytest.mark.parametrize("path", ["/tariffs", "/customers", "/pins"])
async def test_requests_without_token_are_rejected(client, path):
    from app.api.deps import get_current_user
    from app.main import app

    app.dependency_overrides.pop(get_current_user)

    response = await client.get(path)

    assert response.status_code == 401
