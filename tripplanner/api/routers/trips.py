import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pymongo.errors import DuplicateKeyError

from tripplanner.api.dependencies import get_current_user_id
from tripplanner.core.repository import MongoDBRepo, get_repo
from tripplanner.core.schemas import ShareToggleRequest, Trip, TripCreate, TripUpdate
from tripplanner.core.settings import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/trips", tags=["trips"])
shared_router = APIRouter(prefix="/shared", tags=["shared"])


def _share_payload(share: dict) -> dict:
    site_url = get_settings().site_url.rstrip("/")
    return {
        "id": share["id"],
        "share_token": share["share_token"],
        "share_url": f"{site_url}/shared/{share['share_token']}",
        "is_active": share["is_active"],
        "view_count": share.get("view_count", 0),
        "created_at": share["created_at"],
    }


def _require_trip(repo: MongoDBRepo, trip_id: str, user_id: str) -> dict:
    trip = repo.get_trip(trip_id, user_id)
    if not trip:
        raise HTTPException(status_code=404, detail="Trip not found")
    return trip


@router.get("")
def list_trips(
    user_id: str = Depends(get_current_user_id),
    repo: MongoDBRepo = Depends(get_repo),
) -> dict[str, list[Trip]]:
    return {"trips": [Trip.model_validate(trip) for trip in repo.list_trips(user_id)]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_trip(
    payload: TripCreate,
    user_id: str = Depends(get_current_user_id),
    repo: MongoDBRepo = Depends(get_repo),
) -> dict[str, Trip]:
    if payload.id and repo.trip_exists(str(payload.id)):
        raise HTTPException(status_code=409, detail="Trip already exists")
    try:
        trip = repo.save_trip(user_id, payload)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Trip already exists")
    logger.info(f"Created trip {trip['id']} for user {user_id}")
    return {"trip": Trip.model_validate(trip)}


@router.get("/{trip_id}")
def get_trip(
    trip_id: str,
    user_id: str = Depends(get_current_user_id),
    repo: MongoDBRepo = Depends(get_repo),
) -> dict[str, Trip]:
    return {"trip": Trip.model_validate(_require_trip(repo, trip_id, user_id))}


@router.patch("/{trip_id}")
def update_trip(
    trip_id: str,
    payload: TripUpdate,
    user_id: str = Depends(get_current_user_id),
    repo: MongoDBRepo = Depends(get_repo),
) -> dict[str, Trip]:
    trip = repo.update_trip(trip_id, user_id, payload)
    if not trip:
        raise HTTPException(status_code=404, detail="Trip not found")
    return {"trip": Trip.model_validate(trip)}


@router.delete("/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_trip(
    trip_id: str,
    user_id: str = Depends(get_current_user_id),
    repo: MongoDBRepo = Depends(get_repo),
) -> Response:
    if not repo.delete_trip(trip_id, user_id):
        raise HTTPException(status_code=404, detail="Trip not found")
    logger.info(f"Deleted trip {trip_id} for user {user_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{trip_id}/share")
def get_share_status(
    trip_id: str,
    user_id: str = Depends(get_current_user_id),
    repo: MongoDBRepo = Depends(get_repo),
) -> dict:
    """Share status for a trip; share is null when the trip was never shared."""
    share = repo.get_share(trip_id, user_id)
    return {"share": _share_payload(share) if share else None}


@router.post("/{trip_id}/share")
def create_share(
    trip_id: str,
    response: Response,
    user_id: str = Depends(get_current_user_id),
    repo: MongoDBRepo = Depends(get_repo),
) -> dict:
    """Create a share link. Idempotent: an active share is returned with 200."""
    _require_trip(repo, trip_id, user_id)
    share, created = repo.create_share(trip_id, user_id)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return {"share": _share_payload(share)}


@router.patch("/{trip_id}/share")
def toggle_share(
    trip_id: str,
    payload: ShareToggleRequest,
    user_id: str = Depends(get_current_user_id),
    repo: MongoDBRepo = Depends(get_repo),
) -> dict:
    """Activate or deactivate an existing share link."""
    _require_trip(repo, trip_id, user_id)
    share = repo.set_share_active(trip_id, user_id, payload.is_active)
    if not share:
        raise HTTPException(status_code=404, detail="Share not found")
    return {"share": _share_payload(share)}


@shared_router.get("/{share_token}")
def get_shared_trip(share_token: str, repo: MongoDBRepo = Depends(get_repo)) -> dict:
    """Public read-only view of a shared trip."""
    result = repo.get_shared_trip(share_token)
    if not result:
        raise HTTPException(status_code=404, detail="Shared trip not found")

    trip = result["trip"]
    return {
        "trip": {
            "id": trip["id"],
            "name": trip["name"],
            "itinerary": trip.get("itinerary", {}),
            "created_at": trip["created_at"],
            "updated_at": trip.get("updated_at"),
        },
        "view_count": result["share"].get("view_count", 0),
    }
