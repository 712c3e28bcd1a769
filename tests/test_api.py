import httpx
import pytest

from app.config import Settings
from app.main import app
from app.services.analysis_service import create_analysis_service
from app.services.zip_index_service import ZipCodeIndex
from tests.helpers import census_handler

ZIP_RECORDS = [
    {"zip": "68001", "lat": 40.0, "lng": -100.0, "city": "North Platte", "state_id": "NE", "county_name": "Lincoln"},
    {"zip": "68002", "lat": 40.05, "lng": -100.05, "city": "Maxwell", "state_id": "NE", "county_name": "Lincoln"},
    {"zip": "54001", "lat": 45.0, "lng": -90.0, "city": "Medford", "state_id": "WI", "county_name": "Taylor"},
    {"zip": "00601", "lat": 18.1, "lng": -66.7, "city": "Adjuntas", "state_id": "PR"},
]


@pytest.fixture
async def service(sqlite_engine):
    settings = Settings(
        ring_inner_miles=5,
        ring_middle_miles=10,
        ring_outer_miles=20,
        navigation_cooldown_ms=0,
        load_data_on_startup=False,
    )
    index = ZipCodeIndex()
    index.load_records(ZIP_RECORDS)

    service = create_analysis_service(
        settings,
        engine=sqlite_engine,
        transport=httpx.MockTransport(census_handler(higher_ed=1500, high_income=1500)),
        zip_index=index,
    )
    await service.startup()
    return service


@pytest.fixture
async def client(service):
    app.state.analysis_service = service
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    del app.state.analysis_service


@pytest.fixture
async def loaded_client(client, service):
    await service.load_data()
    return client


async def test_health(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["data_loaded"] is False


async def test_endpoints_wait_for_data(client):
    response = await client.get("/api/markers/navigate", params={"direction": "n", "lat": 40, "lng": -100})
    assert response.status_code == 503

    response = await client.get("/api/markers")
    assert response.status_code == 200
    assert response.json()["loaded"] is False


async def test_reload_builds_markers(client):
    response = await client.post("/api/markers/reload")
    assert response.status_code == 200

    body = response.json()
    assert body["loaded"] == 3
    assert body["missing"] == 0
    assert body["counts"]["both"] == 3

    markers = (await client.get("/api/markers")).json()["markers"]
    assert {m["zip"] for m in markers} == {"68001", "68002", "54001"}


async def test_marker_type_filter(loaded_client):
    response = await loaded_client.get("/api/markers", params={"marker_type": "education"})
    assert response.json()["markers"] == []


async def test_navigate(loaded_client):
    response = await loaded_client.get(
        "/api/markers/navigate", params={"direction": "ArrowUp", "lat": 40.0, "lng": -100.0}
    )
    body = response.json()
    assert body["found"] is True
    assert body["marker"]["zip"] == "68002"


async def test_navigate_rejects_unknown_direction(loaded_client):
    response = await loaded_client.get(
        "/api/markers/navigate", params={"direction": "up-left", "lat": 40.0, "lng": -100.0}
    )
    assert response.status_code == 422


async def test_hotspots(loaded_client):
    response = await loaded_client.get("/api/hotspots")
    body = response.json()

    assert body["count"] == 2
    assert body["cached"] is False
    assert body["hotspots"][0]["rank"] == 1
    assert body["hotspots"][0]["member_count"] == 2
    assert set(body["hotspots"][0]["zips"]) == {"68001", "68002"}

    again = await loaded_client.get("/api/hotspots")
    assert again.json()["cached"] is True


async def test_ring_lifecycle(loaded_client):
    response = await loaded_client.post(
        "/api/rings", json={"center": {"lat": 40.0, "lng": -100.0}, "drawn_radius_meters": 500}
    )
    assert response.status_code == 201
    ring = response.json()
    assert ring["radii"] == {"inner": 5, "middle": 10, "outer": 20}
    assert ring["stats"]["inner"]["total_markers"] == 2
    assert ring["label"] == "Lincoln, NE"

    listing = (await loaded_client.get("/api/rings")).json()
    assert listing["count"] == 1

    summary = (await loaded_client.get("/api/rings/summary")).json()
    assert summary["total_markers"] == 2

    assert (await loaded_client.delete(f"/api/rings/{ring['id']}")).json() == {"removed": True}
    assert (await loaded_client.delete(f"/api/rings/{ring['id']}")).json() == {"removed": False}
    assert (await loaded_client.get(f"/api/rings/{ring['id']}")).status_code == 404


async def test_small_ring_is_rejected(loaded_client):
    response = await loaded_client.post(
        "/api/rings", json={"center": {"lat": 40.0, "lng": -100.0}, "drawn_radius_meters": 50}
    )
    assert response.status_code == 422
    assert response.json()["detail"] == "Ring too small, try again"


async def test_draw_gesture(loaded_client):
    start = {"point": {"lat": 40.0, "lng": -100.0}}
    end = {"point": {"lat": 40.02, "lng": -100.0}}

    state = (await loaded_client.post("/api/rings/draw/begin", json=start)).json()
    assert state["state"] == "dragging"

    state = (await loaded_client.post("/api/rings/draw/update", json=end)).json()
    assert state["radius_meters"] > 2000

    committed = (await loaded_client.post("/api/rings/draw/commit", json=end)).json()
    assert committed["created"] is True
    assert committed["ring"]["stats"]["inner"]["total_markers"] == 2

    response = await loaded_client.post("/api/rings/draw/commit", json=end)
    assert response.status_code == 409


async def test_circle_summary(loaded_client):
    response = await loaded_client.post(
        "/api/rings/circle", json={"center": {"lat": 40.0, "lng": -100.0}, "radius_meters": 10000}
    )
    body = response.json()
    assert body["total_markers"] == 2
    assert body["radius_km"] == 10


async def test_cache_endpoints(loaded_client):
    stats = (await loaded_client.get("/api/cache/stats")).json()
    assert stats["total_durable"] == 3
    assert stats["durable_available"] is True

    assert (await loaded_client.post("/api/cache/sweep")).json() == {"removed": 0}
    assert (await loaded_client.delete("/api/cache")).json() == {"cleared": True}


async def test_layer_visibility(loaded_client):
    assert (await loaded_client.get("/api/layers")).json()["both"] is True

    response = await loaded_client.put("/api/layers", json={"both": False})
    assert response.json()["both"] is False

    navigate = await loaded_client.get(
        "/api/markers/navigate", params={"direction": "n", "lat": 40.0, "lng": -100.0}
    )
    assert navigate.json()["found"] is False
