import logging

from fastapi import APIRouter, Depends, HTTPException

from tripplanner.core.routing_service import RoutingError, RoutingService, get_routing_service
from tripplanner.core.schemas import EstimateResponse, RouteResponse, RoutingRequest
from tripplanner.core.time_utils import format_minutes, parse_time_to_minutes

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/routing", tags=["routing"])

SUPPORTED_MODES = ("driving", "walking", "transit", "cycling")


def _validate_mode(mode: str) -> None:
    if mode not in SUPPORTED_MODES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid mode '{mode}'. Must be one of: {', '.join(SUPPORTED_MODES)}",
        )


@router.post("/route", response_model=RouteResponse)
def get_route(
    payload: RoutingRequest,
    routing: RoutingService = Depends(get_routing_service),
) -> RouteResponse:
    """Route between two points with path and turn-by-turn instructions."""
    _validate_mode(payload.mode)

    try:
        result = routing.request_route(
            payload.origin,
            payload.destination,
            payload.mode,
            payload.departure_time,
            payload.timezone,
        )
    except RoutingError as e:
        logger.error(f"Routing failed: {e}")
        raise HTTPException(status_code=502, detail="Failed to compute route")

    duration_minutes = max(1, round(result.duration_seconds / 60))
    departure_minutes = parse_time_to_minutes(payload.departure_time)

    return RouteResponse(
        mode=result.mode,
        duration_minutes=duration_minutes,
        distance_meters=result.distance_meters,
        path=result.geometry,
        instructions=result.instructions() or None,
        departure_time=format_minutes(departure_minutes) if departure_minutes is not None else None,
        arrival_time=(
            format_minutes(departure_minutes + duration_minutes)
            if departure_minutes is not None
            else None
        ),
        is_estimated=result.is_estimated,
    )


@router.post("/estimate", response_model=EstimateResponse)
def get_estimate(
    payload: RoutingRequest,
    routing: RoutingService = Depends(get_routing_service),
) -> EstimateResponse:
    """Travel time and distance only."""
    _validate_mode(payload.mode)

    try:
        result = routing.request_route(
            payload.origin,
            payload.destination,
            payload.mode,
            payload.departure_time,
            payload.timezone,
        )
    except RoutingError as e:
        logger.error(f"Routing estimate failed: {e}")
        raise HTTPException(status_code=502, detail="Failed to estimate travel time")

    return EstimateResponse(
        mode=result.mode,
        duration_minutes=max(1, round(result.duration_seconds / 60)),
        distance_meters=result.distance_meters,
        is_estimated=result.is_estimated,
    )
