from datetime import timedelta

from app.core.clock import utcnow
from app.services import cache_keys
from tests.helpers import allocation_payload, drain_events, parcel_payload, vessel_payload

API = "/api/v1/parcels"


def _create(client, **overrides):
    response = client.post(f"{API}/", json=parcel_payload(**overrides))
    assert response.status_code == 201, response.text
    return response.json()


def test_create_parcel_publishes_notification(client, broadcaster):
    response = client.post(f"{API}/", json=parcel_payload(parcel_name="PARCEL-NEW"), headers={"X-User-Name": "trader"})
    assert response.status_code == 201
    parcel = response.json()
    assert parcel["status"] == "Planned"
    assert parcel["quantity_bbls"] == 600000

    events = drain_events(broadcaster)
    assert len(events) == 1
    assert events[0]["event"] == "NewParcelCreated"
    assert events[0]["data"]["parcelId"] == parcel["id"]
    assert events[0]["data"]["crudeGrade"] == "Brent Crude"
    assert events[0]["data"]["quantity"] == 600000
    assert events[0]["data"]["userName"] == "trader"


def test_anonymous_user_when_header_missing(client, broadcaster):
    _create(client)
    assert drain_events(broadcaster)[0]["data"]["userName"] == "Anonymous"


def test_laycan_end_must_follow_start(client):
    start = utcnow() + timedelta(days=5)
    payload = parcel_payload(laycan_start=start.isoformat(), laycan_end=start.isoformat())
    assert client.post(f"{API}/", json=payload).status_code == 422

    payload = parcel_payload(
        laycan_start=start.isoformat(), laycan_end=(start - timedelta(days=1)).isoformat()
    )
    assert client.post(f"{API}/", json=payload).status_code == 422


def test_ports_must_differ(client):
    payload = parcel_payload(loading_port="Singapore", discharge_port="singapore ")
    assert client.post(f"{API}/", json=payload).status_code == 422


def test_quantity_bounds(client):
    assert client.post(f"{API}/", json=parcel_payload(quantity_bbls=-1)).status_code == 422
    assert client.post(f"{API}/", json=parcel_payload(quantity_bbls=1000000000)).status_code == 422
    assert client.post(f"{API}/", json=parcel_payload(status="Lost")).status_code == 422


def test_timezone_aware_laycan_stored_as_utc(client):
    payload = parcel_payload(
        laycan_start="2030-01-10T12:00:00+02:00",
        laycan_end="2030-01-15T12:00:00+02:00",
    )
    parcel = client.post(f"{API}/", json=payload).json()
    assert parcel["laycan_start"] == "2030-01-10T10:00:00"


def test_status_change_publishes_event_only_when_changed(client, broadcaster):
    parcel = _create(client)
    drain_events(broadcaster)

    # Same status: no notification
    response = client.put(f"{API}/{parcel['id']}", json=parcel_payload(quantity_bbls=700000))
    assert response.status_code == 200
    assert response.json()["quantity_bbls"] == 700000
    assert drain_events(broadcaster) == []

    response = client.put(f"{API}/{parcel['id']}", json=parcel_payload(status="Nominated"))
    assert response.status_code == 200
    events = drain_events(broadcaster)
    assert [e["event"] for e in events] == ["ParcelStatusChanged"]
    assert events[0]["data"]["oldStatus"] == "Planned"
    assert events[0]["data"]["newStatus"] == "Nominated"


def test_status_lists_are_invalidated_for_old_and_new_status(client, cache):
    parcel = _create(client)

    assert len(client.get(f"{API}/all", params={"status": "Planned"}).json()) == 1
    assert client.get(f"{API}/all", params={"status": "Confirmed"}).json() == []

    client.put(f"{API}/{parcel['id']}", json=parcel_payload(status="Confirmed"))

    assert cache.get(cache_keys.parcels_by_status("Planned")) is None
    assert client.get(f"{API}/all", params={"status": "Planned"}).json() == []
    assert len(client.get(f"{API}/all", params={"status": "Confirmed"}).json()) == 1


def test_paged_listing_with_grade_filter(client):
    _create(client, parcel_name="P-1", crude_grade="Arab Light", quantity_bbls=500000)
    _create(client, parcel_name="P-2", crude_grade="Arab Heavy", quantity_bbls=900000)
    _create(client, parcel_name="P-3", crude_grade="Murban", quantity_bbls=700000)

    page = client.get(f"{API}/", params={"crude_grade": "arab", "sort_by": "quantity_bbls", "sort_order": "desc"})
    body = page.json()
    assert body["total_count"] == 2
    assert [p["parcel_name"] for p in body["items"]] == ["P-2", "P-1"]


def test_delete_parcel_cascades_allocations(client, broadcaster):
    vessel = client.post("/api/v1/vessels/", json=vessel_payload()).json()
    parcel = _create(client)
    allocation = client.post(
        "/api/v1/voyage-allocations/", json=allocation_payload(parcel["id"], vessel["id"])
    ).json()
    assert client.get(f"/api/v1/vessels/{vessel['id']}").json()["voyage_allocation_count"] == 1
    assert client.get("/api/v1/vessels/all?status=Available").json()[0]["voyage_allocation_count"] == 1
    assert client.get("/api/v1/vessels/all?vessel_type=VLCC").json()[0]["voyage_allocation_count"] == 1
    drain_events(broadcaster)

    assert client.delete(f"{API}/{parcel['id']}").status_code == 204

    assert client.get(f"{API}/{parcel['id']}").status_code == 404
    assert client.get(f"/api/v1/voyage-allocations/{allocation['id']}").status_code == 404
    assert client.get(f"/api/v1/vessels/{vessel['id']}").json()["voyage_allocation_count"] == 0
    assert client.get("/api/v1/vessels/all?status=Available").json()[0]["voyage_allocation_count"] == 0
    assert client.get("/api/v1/vessels/all?vessel_type=VLCC").json()[0]["voyage_allocation_count"] == 0

    events = drain_events(broadcaster)
    assert events[0]["event"] == "ParcelDeleted"
    assert events[0]["data"]["parcelName"] == parcel["parcel_name"]


def test_missing_parcel_returns_404(client):
    assert client.get(f"{API}/12345").status_code == 404
    assert client.put(f"{API}/12345", json=parcel_payload()).status_code == 404
    assert client.delete(f"{API}/12345").status_code == 404
