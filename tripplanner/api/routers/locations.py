from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from tripplanner.core.repository import MongoDBRepo, get_repo

router = APIRouter(prefix="/locations", tags=["locations"])


@router.get("")
def list_locations(
    city: Optional[str] = Query(None),
    region: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    repo: MongoDBRepo = Depends(get_repo),
) -> dict:
    """Browse locations with optional city/region/category filters."""
    filters = {}
    if city:
        filters["city"] = city
    if region:
        filters["region"] = region
    if category:
        filters["category"] = category

    return {
        "locations": repo.find_locations(filters, offset=offset, limit=limit),
        "total": repo.count_locations(filters),
        "offset": offset,
        "limit": limit,
    }


@router.get("/{location_id}")
def get_location(location_id: str, repo: MongoDBRepo = Depends(get_repo)) -> dict:
    location = repo.get_location(location_id)
    if not location:
        raise HTTPException(status_code=404, detail="Location not found")
    return location
