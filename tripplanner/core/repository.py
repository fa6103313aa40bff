from __future__ import annotations

import logging
import secrets
import uuid
from collections.abc import Iterator
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import ValidationError
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from tripplanner.core.schemas import Location, TravelGuidance, TripCreate, TripUpdate
from tripplanner.core.settings import get_settings

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000


class RepositoryUnavailable(Exception):
    """Raised when the database is not configured or cannot be reached."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _clean(doc: dict | None) -> dict | None:
    if doc:
        doc.pop("_id", None)  # Remove MongoDB ObjectId
    return doc


class MongoDBRepo:
    def __init__(
        self,
        mongodb_uri: str | None = None,
        database_name: str | None = None,
        client: MongoClient | None = None,
    ):
        settings = get_settings()
        mongodb_uri = mongodb_uri or settings.mongodb_uri
        database_name = database_name or settings.database_name

        if client is None:
            if not mongodb_uri:
                raise RepositoryUnavailable("MONGODB_URI environment variable is required")
            client = MongoClient(
                mongodb_uri,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000,
                socketTimeoutMS=20000,
                retryWrites=True,
                retryReads=True,
            )

        self.client = client
        self.db = self.client[database_name]

        # Collections
        self.locations_collection = self.db.locations
        self.trips_collection = self.db.trips
        self.shares_collection = self.db.trip_shares
        self.guidance_collection = self.db.travel_guidance

        try:
            self.client.admin.command("ping")
            logger.info(f"MongoDB connection successful ({database_name})")
            try:
                self.locations_collection.create_index("id", unique=True)
                self.trips_collection.create_index("id", unique=True)
                self.trips_collection.create_index([("user_id", ASCENDING), ("updated_at", DESCENDING)])
                self.shares_collection.create_index("share_token", unique=True)
                self.shares_collection.create_index([("trip_id", ASCENDING), ("user_id", ASCENDING)])
            except Exception as index_error:
                logger.warning(f"Index creation failed (might already exist): {index_error}")
        except Exception as e:
            logger.warning(f"MongoDB connection failed: {str(e)[:200]}")

    # Locations
    def find_locations(
        self,
        filters: dict[str, Any] | None = None,
        offset: int = 0,
        limit: int | None = None,
        projection: list[str] | None = None,
        sort: list[tuple[str, int]] | None = None,
    ) -> list[dict]:
        """Range query over locations; results are ordered by id unless a sort is given."""
        fields = {field: 1 for field in projection} if projection else {}
        fields["_id"] = 0
        cursor = self.locations_collection.find(filters or {}, fields)
        cursor = cursor.sort(sort or [("id", ASCENDING)]).skip(offset)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def iter_locations(
        self,
        filters: dict[str, Any] | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        projection: list[str] | None = None,
    ) -> Iterator[dict]:
        """Page through every matching location."""
        offset = 0
        while True:
            page = self.find_locations(filters, offset=offset, limit=page_size, projection=projection)
            yield from page
            if len(page) < page_size:
                break
            offset += page_size

    def get_location(self, location_id: str) -> dict | None:
        return _clean(self.locations_collection.find_one({"id": location_id}))

    def update_location(self, location_id: str, fields: dict[str, Any]) -> bool:
        result = self.locations_collection.update_one({"id": location_id}, {"$set": fields})
        return result.matched_count > 0

    def count_locations(self, filters: dict[str, Any] | None = None) -> int:
        return self.locations_collection.count_documents(filters or {})

    # Trips
    def list_trips(self, user_id: str) -> list[dict]:
        trips = self.trips_collection.find({"user_id": user_id, "deleted_at": None}).sort(
            "updated_at", DESCENDING
        )
        return [_clean(trip) for trip in trips]

    def get_trip(self, trip_id: str, user_id: str | None = None) -> dict | None:
        query: dict[str, Any] = {"id": trip_id, "deleted_at": None}
        if user_id is not None:
            query["user_id"] = user_id
        return _clean(self.trips_collection.find_one(query))

    def trip_exists(self, trip_id: str) -> bool:
        """True when the id is held by any trip, deleted ones included."""
        return self.trips_collection.find_one({"id": trip_id}, {"_id": 1}) is not None

    def save_trip(self, user_id: str, trip: TripCreate) -> dict:
        now = _utcnow()
        trip_doc = {
            "id": str(trip.id or uuid.uuid4()),
            "user_id": user_id,
            "name": trip.name,
            "itinerary": trip.itinerary.model_dump(mode="json"),
            "builder_data": trip.builder_data,
            "created_at": now,
            "updated_at": now,
            "deleted_at": None,
        }
        self.trips_collection.insert_one(trip_doc)
        return _clean(trip_doc)

    def update_trip(self, trip_id: str, user_id: str, update: TripUpdate) -> dict | None:
        fields: dict[str, Any] = {"updated_at": _utcnow()}
        if update.name is not None:
            fields["name"] = update.name
        if update.itinerary is not None:
            fields["itinerary"] = update.itinerary.model_dump(mode="json")
        if update.builder_data is not None:
            fields["builder_data"] = update.builder_data

        trip_doc = self.trips_collection.find_one_and_update(
            {"id": trip_id, "user_id": user_id, "deleted_at": None},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )
        return _clean(trip_doc)

    def delete_trip(self, trip_id: str, user_id: str) -> bool:
        """Soft delete; deactivates any share links for the trip."""
        result = self.trips_collection.update_one(
            {"id": trip_id, "user_id": user_id, "deleted_at": None},
            {"$set": {"deleted_at": _utcnow()}},
        )
        if result.modified_count > 0:
            self.shares_collection.update_many(
                {"trip_id": trip_id}, {"$set": {"is_active": False, "updated_at": _utcnow()}}
            )
            return True
        return False

    # Shares
    def get_share(self, trip_id: str, user_id: str) -> dict | None:
        share = self.shares_collection.find_one(
            {"trip_id": trip_id, "user_id": user_id}, sort=[("created_at", DESCENDING)]
        )
        return _clean(share)

    def create_share(self, trip_id: str, user_id: str) -> tuple[dict, bool]:
        """
        Create a share link for a trip.

        Idempotent: an existing active share is returned as-is.

        Returns:
            (share document, whether a new share was created)
        """
        existing = self.shares_collection.find_one(
            {"trip_id": trip_id, "user_id": user_id, "is_active": True}
        )
        if existing:
            return _clean(existing), False

        now = _utcnow()
        share_doc = {
            "id": str(uuid.uuid4()),
            "trip_id": trip_id,
            "user_id": user_id,
            # 128 bits of entropy, URL-safe
            "share_token": secrets.token_urlsafe(16),
            "is_active": True,
            "view_count": 0,
            "created_at": now,
            "updated_at": now,
        }
        self.shares_collection.insert_one(share_doc)
        return _clean(share_doc), True

    def set_share_active(self, trip_id: str, user_id: str, is_active: bool) -> dict | None:
        share = self.get_share(trip_id, user_id)
        if not share:
            return None
        updated = self.shares_collection.find_one_and_update(
            {"id": share["id"]},
            {"$set": {"is_active": is_active, "updated_at": _utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return _clean(updated)

    def get_shared_trip(self, share_token: str) -> dict | None:
        """
        Resolve an active share token to its trip, counting the view.

        Returns:
            {"trip": ..., "share": ...} or None for unknown/inactive tokens
        """
        share = self.shares_collection.find_one_and_update(
            {"share_token": share_token, "is_active": True},
            {"$inc": {"view_count": 1}},
            return_document=ReturnDocument.AFTER,
        )
        if not share:
            return None
        trip = self.get_trip(share["trip_id"], share["user_id"])
        if not trip:
            return None
        return {"trip": trip, "share": _clean(share)}

    # Guidance
    def list_guidance(self) -> list[dict]:
        """Published travel guidance, highest priority first."""
        docs = self.guidance_collection.find({"status": "published"}, {"_id": 0}).sort("priority", DESCENDING)
        return list(docs)


def make_location_lookup(repo: MongoDBRepo) -> Callable[[str], Location | None]:
    """
    Cached location lookup used by the planner and suggestion detectors.

    Store errors and malformed records are logged and treated as a missing
    location, so callers can keep going without the store.
    """
    cache: dict[str, Location | None] = {}

    def lookup(location_id: str) -> Location | None:
        if location_id not in cache:
            try:
                doc = repo.get_location(location_id)
                cache[location_id] = Location.model_validate(doc) if doc else None
            except PyMongoError as e:
                logger.warning(f"Location store error looking up {location_id}: {str(e)[:200]}")
                cache[location_id] = None
            except ValidationError as e:
                logger.warning(f"Malformed location record {location_id}: {e.error_count()} errors")
                cache[location_id] = None
        return cache[location_id]

    return lookup


def make_guidance_fetcher(repo: MongoDBRepo) -> Callable[[], list[TravelGuidance]]:
    """Loads published guidance once; store errors yield no guidance."""
    cache: list[list[TravelGuidance]] = []

    def fetch() -> list[TravelGuidance]:
        if not cache:
            guidance: list[TravelGuidance] = []
            try:
                docs = repo.list_guidance()
            except PyMongoError as e:
                logger.warning(f"Location store error loading travel guidance: {str(e)[:200]}")
                docs = []
            for doc in docs:
                try:
                    guidance.append(TravelGuidance.model_validate(doc))
                except ValidationError:
                    logger.warning(f"Skipping malformed guidance record {doc.get('id')}")
            cache.append(guidance)
        return cache[0]

    return fetch


_repo: MongoDBRepo | None = None


def get_repo() -> MongoDBRepo:
    global _repo
    if _repo is None:
        _repo = MongoDBRepo()
    return _repo
