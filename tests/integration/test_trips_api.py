import mongomock
import pytest
from httpx import ASGITransport, AsyncClient

from tripplanner.core.repository import MongoDBRepo, RepositoryUnavailable, get_repo

TRIP_ID = "6f1c2d3e-4b5a-4c7d-8e9f-0a1b2c3d4e5f"
ALICE = {"X-User-Id": "user-alice"}
BOB = {"X-User-Id": "user-bob"}

TRIP = {
    "id": TRIP_ID,
    "name": "Kansai in spring",
    "itinerary": {"days": [{"id": "d1", "city_id": "kyoto", "activities": [{"kind": "note", "id": "n1", "notes": "JR pass"}]}]},
    "builder_data": {"cities": ["kyoto"]},
}


def client_for(app):
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_trips_require_user_header(app):
    async with client_for(app) as ac:
        response = await ac.get("/trips")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_trip_lifecycle(app):
    async with client_for(app) as ac:
        created = await ac.post("/trips", json=TRIP, headers=ALICE)
        assert created.status_code == 201
        assert created.json()["trip"]["user_id"] == "user-alice"

        duplicate = await ac.post("/trips", json=TRIP, headers=ALICE)
        assert duplicate.status_code == 409

        listed = await ac.get("/trips", headers=ALICE)
        assert [trip["id"] for trip in listed.json()["trips"]] == [TRIP_ID]
        assert (await ac.get("/trips", headers=BOB)).json() == {"trips": []}
        assert (await ac.get(f"/trips/{TRIP_ID}", headers=BOB)).status_code == 404

        patched = await ac.patch(f"/trips/{TRIP_ID}", json={"name": "Kansai + Nara"}, headers=ALICE)
        assert patched.status_code == 200
        assert patched.json()["trip"]["name"] == "Kansai + Nara"
        assert patched.json()["trip"]["builder_data"] == {"cities": ["kyoto"]}

        deleted = await ac.delete(f"/trips/{TRIP_ID}", headers=ALICE)
        assert deleted.status_code == 204
        assert (await ac.get(f"/trips/{TRIP_ID}", headers=ALICE)).status_code == 404
        assert (await ac.delete(f"/trips/{TRIP_ID}", headers=ALICE)).status_code == 404


@pytest.mark.asyncio
async def test_share_links(app):
    async with client_for(app) as ac:
        await ac.post("/trips", json=TRIP, headers=ALICE)

        status = await ac.get(f"/trips/{TRIP_ID}/share", headers=ALICE)
        assert status.json() == {"share": None}

        first = await ac.post(f"/trips/{TRIP_ID}/share", headers=ALICE)
        assert first.status_code == 201
        token = first.json()["share"]["share_token"]
        assert first.json()["share"]["share_url"].endswith(f"/shared/{token}")

        again = await ac.post(f"/trips/{TRIP_ID}/share", headers=ALICE)
        assert again.status_code == 200
        assert again.json()["share"]["share_token"] == token

        assert (await ac.post(f"/trips/{TRIP_ID}/share", headers=BOB)).status_code == 404

        shared = await ac.get(f"/shared/{token}")
        assert shared.status_code == 200
        assert shared.json()["trip"]["name"] == "Kansai in spring"
        assert "user_id" not in shared.json()["trip"]
        assert shared.json()["view_count"] == 1
        assert (await ac.get(f"/shared/{token}")).json()["view_count"] == 2

        toggled = await ac.patch(f"/trips/{TRIP_ID}/share", json={"is_active": False}, headers=ALICE)
        assert toggled.json()["share"]["is_active"] is False
        assert (await ac.get(f"/shared/{token}")).status_code == 404


@pytest.mark.asyncio
async def test_share_toggle_without_share_is_404(app):
    async with client_for(app) as ac:
        await ac.post("/trips", json=TRIP, headers=ALICE)
        response = await ac.patch(f"/trips/{TRIP_ID}/share", json={"is_active": True}, headers=ALICE)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_locations(app):
    async with client_for(app) as ac:
        kyoto = await ac.get("/locations", params={"city": "Kyoto"})
        single = await ac.get("/locations/sensoji")
        missing = await ac.get("/locations/nowhere")
        too_many = await ac.get("/locations", params={"limit": 500})

    assert kyoto.status_code == 200
    assert kyoto.json()["total"] == 2
    assert {loc["id"] for loc in kyoto.json()["locations"]} == {"kiyomizu", "fushimi"}
    assert single.json()["name"] == "Senso-ji"
    assert missing.status_code == 404
    assert too_many.status_code == 422


@pytest.mark.asyncio
async def test_database_unavailable_is_503(app):
    def unavailable():
        raise RepositoryUnavailable("MONGODB_URI is not set")

    app.dependency_overrides[get_repo] = unavailable
    async with client_for(app) as ac:
        response = await ac.get("/locations")
    assert response.status_code == 503
    assert response.json()["detail"] == "Database is not available"


@pytest.mark.asyncio
async def test_trip_id_must_be_uuid(app):
    async with client_for(app) as ac:
        response = await ac.post("/trips", json={**TRIP, "id": "not-a-uuid"}, headers=ALICE)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_deleted_trip_id_cannot_be_reused_to_hijack_share(app):
    repo = MongoDBRepo(client=mongomock.MongoClient())
    app.dependency_overrides[get_repo] = lambda: repo

    async with client_for(app) as ac:
        assert (await ac.post("/trips", json=TRIP, headers=ALICE)).status_code == 201
        token = (await ac.post(f"/trips/{TRIP_ID}/share", headers=ALICE)).json()["share"]["share_token"]
        assert (await ac.delete(f"/trips/{TRIP_ID}", headers=ALICE)).status_code == 204

        hijack = await ac.post("/trips", json={**TRIP, "name": "Bob's trip"}, headers=BOB)
        assert hijack.status_code == 409

        toggled = await ac.patch(f"/trips/{TRIP_ID}/share", json={"is_active": True}, headers=ALICE)
        assert toggled.status_code == 404
        assert (await ac.get(f"/shared/{token}")).status_code == 404
