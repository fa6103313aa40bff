from datetime import date
from typing import Callable, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from tripplanner.api.dependencies import get_guidance_fetcher, get_location_lookup
from tripplanner.core.gap_detection import (
    detect_gaps,
    detect_guidance_gaps,
    detect_reservation_needs,
    filter_dismissed,
    season_for_month,
)
from tripplanner.core.schemas import (
    DetectedGap,
    GapDetectionOptions,
    Itinerary,
    Location,
    Season,
    TravelGuidance,
    WeatherForecast,
)
from tripplanner.core.weather_service import WeatherService, get_weather_service

router = APIRouter(tags=["smart-prompts"])


class GapsRequest(BaseModel):
    itinerary: Itinerary
    options: GapDetectionOptions = Field(default_factory=GapDetectionOptions)
    dismissed_ids: list[str] = Field(default_factory=list)
    forecasts: Optional[dict[str, WeatherForecast]] = Field(
        None, description="Forecasts keyed by day id"
    )
    include_reservations: bool = True
    include_guidance: bool = True
    season: Optional[Season] = Field(None, description="Trip season; defaults to the current one")


@router.post("/smart-prompts/gaps")
def gaps(
    payload: GapsRequest,
    location_lookup: Optional[Callable[[str], Optional[Location]]] = Depends(get_location_lookup),
    fetch_guidance: Optional[Callable[[], list[TravelGuidance]]] = Depends(get_guidance_fetcher),
) -> dict[str, list[DetectedGap]]:
    """Smart suggestions for an itinerary, without the ones the user dismissed."""
    detected: list[DetectedGap] = []
    if payload.include_reservations and location_lookup is not None:
        detected.extend(detect_reservation_needs(payload.itinerary, location_lookup))
    detected.extend(detect_gaps(payload.itinerary, payload.options, payload.forecasts))
    if payload.include_guidance and fetch_guidance is not None:
        season = payload.season or season_for_month(date.today().month)
        for day_index, day in enumerate(payload.itinerary.days):
            detected.extend(detect_guidance_gaps(day, day_index, fetch_guidance, season=season))
    return {"gaps": filter_dismissed(detected, payload.dismissed_ids)}


@router.get("/weather/forecast")
def weather_forecast(
    city_id: str = Query(..., min_length=1),
    start_date: str = Query(..., pattern=r"^\d{4}-\d{2}-\d{2}$"),
    end_date: str = Query(..., pattern=r"^\d{4}-\d{2}-\d{2}$"),
    weather: WeatherService = Depends(get_weather_service),
) -> dict[str, WeatherForecast]:
    """Daily forecasts keyed by ISO date."""
    try:
        return weather.fetch_forecast(city_id, start_date, end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid date range: {e}")
