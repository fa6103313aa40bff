import secrets
import uuid
from datetime import datetime, timezone

import pytest

from tripplanner.api.dependencies import get_chat_assistant
from tripplanner.core.repository import get_repo
from tripplanner.core.routing_service import RoutingResult, get_routing_service, to_itinerary_mode
from tripplanner.core.weather_service import WeatherService, get_weather_service
from tripplanner.main import create_app


class FakeRouting:
    """Routing stand-in with fixed per-mode durations (minutes)."""

    def __init__(self, minutes=None, fail=False):
        self.minutes = minutes or {"walk": 8, "transit": 15}
        self.fail = fail
        self.calls = []

    def request_route(self, origin, destination, mode="walk", departure_time=None, timezone=None, allow_estimate=True):
        self.calls.append(mode)
        if self.fail:
            raise RuntimeError("routing backend down")
        return self._result(origin, destination, mode, self.minutes.get(mode, 20), "google")

    def estimate_route(self, origin, destination, mode):
        return self._result(origin, destination, mode, 12, "estimate")

    def _result(self, origin, destination, mode, minutes, provider):
        return RoutingResult(
            mode=to_itinerary_mode(mode),
            duration_seconds=minutes * 60,
            distance_meters=1000,
            geometry=[origin, destination],
            provider=provider,
        )


class FakeRepo:
    """In-memory stand-in for MongoDBRepo."""

    def __init__(self, locations=None, guidance=None):
        self.locations = {loc["id"]: dict(loc) for loc in (locations or [])}
        self.guidance = list(guidance or [])
        self.trips = {}
        self.shares = []
        self.updates = []

    # Locations
    def _matches(self, location, filters):
        for key, value in (filters or {}).items():
            if isinstance(value, dict):
                continue
            if location.get(key) != value:
                return False
        return True

    def find_locations(self, filters=None, offset=0, limit=None, projection=None, sort=None):
        matched = [dict(loc) for loc in sorted(self.locations.values(), key=lambda l: l["id"]) if self._matches(loc, filters)]
        matched = matched[offset:]
        return matched[:limit] if limit else matched

    def iter_locations(self, filters=None, page_size=1000, projection=None):
        yield from self.find_locations(filters)

    def get_location(self, location_id):
        location = self.locations.get(location_id)
        return dict(location) if location else None

    def update_location(self, location_id, fields):
        self.updates.append((location_id, fields))
        if location_id not in self.locations:
            return False
        self.locations[location_id].update(fields)
        return True

    def count_locations(self, filters=None):
        return len(self.find_locations(filters))

    # Trips
    def list_trips(self, user_id):
        return [dict(t) for t in self.trips.values() if t["user_id"] == user_id and t["deleted_at"] is None]

    def get_trip(self, trip_id, user_id=None):
        trip = self.trips.get(trip_id)
        if not trip or trip["deleted_at"] is not None:
            return None
        if user_id is not None and trip["user_id"] != user_id:
            return None
        return dict(trip)

    def trip_exists(self, trip_id):
        return trip_id in self.trips

    def save_trip(self, user_id, trip):
        now = datetime.now(timezone.utc)
        doc = {
            "id": str(trip.id or uuid.uuid4()),
            "user_id": user_id,
            "name": trip.name,
            "itinerary": trip.itinerary.model_dump(mode="json"),
            "builder_data": trip.builder_data,
            "created_at": now,
            "updated_at": now,
            "deleted_at": None,
        }
        self.trips[doc["id"]] = doc
        return dict(doc)

    def update_trip(self, trip_id, user_id, update):
        trip = self.get_trip(trip_id, user_id)
        if not trip:
            return None
        stored = self.trips[trip_id]
        if update.name is not None:
            stored["name"] = update.name
        if update.itinerary is not None:
            stored["itinerary"] = update.itinerary.model_dump(mode="json")
        if update.builder_data is not None:
            stored["builder_data"] = update.builder_data
        stored["updated_at"] = datetime.now(timezone.utc)
        return dict(stored)

    def delete_trip(self, trip_id, user_id):
        if not self.get_trip(trip_id, user_id):
            return False
        self.trips[trip_id]["deleted_at"] = datetime.now(timezone.utc)
        for share in self.shares:
            if share["trip_id"] == trip_id:
                share["is_active"] = False
        return True

    # Shares
    def get_share(self, trip_id, user_id):
        shares = [s for s in self.shares if s["trip_id"] == trip_id and s["user_id"] == user_id]
        return dict(shares[-1]) if shares else None

    def create_share(self, trip_id, user_id):
        for share in self.shares:
            if share["trip_id"] == trip_id and share["user_id"] == user_id and share["is_active"]:
                return dict(share), False
        share = {
            "id": str(uuid.uuid4()),
            "trip_id": trip_id,
            "user_id": user_id,
            "share_token": secrets.token_urlsafe(16),
            "is_active": True,
            "view_count": 0,
            "created_at": datetime.now(timezone.utc),
        }
        self.shares.append(share)
        return dict(share), True

    def set_share_active(self, trip_id, user_id, is_active):
        share = self.get_share(trip_id, user_id)
        if not share:
            return None
        for stored in self.shares:
            if stored["id"] == share["id"]:
                stored["is_active"] = is_active
                return dict(stored)
        return None

    def get_shared_trip(self, share_token):
        for share in self.shares:
            if share["share_token"] == share_token and share["is_active"]:
                share["view_count"] += 1
                trip = self.get_trip(share["trip_id"], share["user_id"])
                if not trip:
                    return None
                return {"trip": trip, "share": dict(share)}
        return None

    # Guidance
    def list_guidance(self):
        return sorted(self.guidance, key=lambda g: -g.get("priority", 5))


class FakeAssistant:
    def __init__(self, chunks=None):
        self.chunks = chunks or ["Hello", " there"]
        self.received = None

    def stream_reply(self, messages, itinerary=None):
        self.received = (messages, itinerary)
        yield from self.chunks


class FakePlaces:
    def __init__(self, english=None, enrichment=None):
        self.english = english or {}
        self.enrichment = enrichment or {}
        self.calls = []

    def get_english_details(self, place_id):
        self.calls.append(place_id)
        return self.english.get(place_id)

    def get_enrichment_data(self, place_id):
        self.calls.append(place_id)
        return self.enrichment.get(place_id)


@pytest.fixture
def fake_routing():
    return FakeRouting()


@pytest.fixture
def failing_routing():
    return FakeRouting(fail=True)


@pytest.fixture
def fake_repo():
    return FakeRepo(
        locations=[
            {"id": "kiyomizu", "name": "Kiyomizu-dera", "city": "Kyoto", "region": "Kansai", "category": "temple"},
            {"id": "fushimi", "name": "Fushimi Inari Taisha", "city": "Kyoto", "region": "Kansai", "category": "shrine"},
            {"id": "sensoji", "name": "Senso-ji", "city": "Tokyo", "region": "Kanto", "category": "temple"},
        ]
    )


@pytest.fixture
def make_routing():
    return FakeRouting


@pytest.fixture
def make_repo():
    return FakeRepo


@pytest.fixture
def make_places():
    return FakePlaces


@pytest.fixture
def fake_assistant():
    return FakeAssistant()


@pytest.fixture
def app(fake_repo, fake_routing, fake_assistant):
    application = create_app()
    application.dependency_overrides[get_repo] = lambda: fake_repo
    application.dependency_overrides[get_routing_service] = lambda: fake_routing
    application.dependency_overrides[get_weather_service] = lambda: WeatherService(api_key=None)
    application.dependency_overrides[get_chat_assistant] = lambda: fake_assistant
    return application
