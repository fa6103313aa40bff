from typing import Callable, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from tripplanner.api.dependencies import get_location_lookup
from tripplanner.core.conflict_detection import detect_itinerary_conflicts
from tripplanner.core.itinerary_planner import PlannerOptions, plan_itinerary, reorder_day
from tripplanner.core.routing_service import RoutingService, get_routing_service
from tripplanner.core.schemas import (
    DayEntryPoint,
    Itinerary,
    ItineraryConflictsResult,
    ItineraryDay,
    Location,
    TimeOfDay,
)

router = APIRouter(prefix="/itinerary", tags=["itinerary"])


class PlanRequest(BaseModel):
    itinerary: Itinerary
    day_entry_points: dict[str, DayEntryPoint] = Field(default_factory=dict)
    options: Optional[PlannerOptions] = None


class ReorderRequest(BaseModel):
    day: ItineraryDay
    activity_id: str
    target_time_of_day: Optional[TimeOfDay] = None
    over_activity_id: Optional[str] = None
    target_index: Optional[int] = Field(None, ge=0)


class ConflictsRequest(BaseModel):
    itinerary: Itinerary


@router.post("/plan")
def plan(
    payload: PlanRequest,
    routing: RoutingService = Depends(get_routing_service),
    location_lookup: Optional[Callable[[str], Optional[Location]]] = Depends(get_location_lookup),
) -> dict:
    """Compute travel segments and schedules for every day of an itinerary."""
    planned = plan_itinerary(
        payload.itinerary,
        routing,
        location_lookup=location_lookup,
        options=payload.options,
        day_entry_points=payload.day_entry_points,
    )
    return {"itinerary": planned}


@router.post("/reorder")
def reorder(
    payload: ReorderRequest,
    routing: RoutingService = Depends(get_routing_service),
    location_lookup: Optional[Callable[[str], Optional[Location]]] = Depends(get_location_lookup),
) -> dict:
    """Move an activity and refresh the travel legs around it."""
    try:
        day = reorder_day(
            payload.day,
            payload.activity_id,
            routing,
            target_time_of_day=payload.target_time_of_day,
            over_activity_id=payload.over_activity_id,
            target_index=payload.target_index,
            location_lookup=location_lookup,
        )
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"day": day}


@router.post("/conflicts", response_model=ItineraryConflictsResult)
def conflicts(payload: ConflictsRequest) -> ItineraryConflictsResult:
    return detect_itinerary_conflicts(payload.itinerary)
