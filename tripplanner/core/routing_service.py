"""
Routing estimates between two coordinates.

Uses the Google Directions API when a key is configured and falls back to a
distance-based heuristic otherwise (or when the API call fails).
"""

import logging
import re
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

import requests
from pydantic import BaseModel, Field

from tripplanner.core.geo_utils import haversine_distance
from tripplanner.core.schemas import Coordinates
from tripplanner.core.settings import get_settings
from tripplanner.core.travel_time_utils import estimate_travel_time

logger = logging.getLogger(__name__)

DIRECTIONS_URL = "https://maps.googleapis.com/maps/api/directions/json"

# Itinerary travel modes (and public API mode names) -> Google "mode" parameter
MODE_PARAM_MAP = {
    "walk": "walking",
    "walking": "walking",
    "bicycle": "bicycling",
    "cycling": "bicycling",
    "car": "driving",
    "taxi": "driving",
    "driving": "driving",
    "transit": "transit",
    "train": "transit",
    "subway": "transit",
    "tram": "transit",
    "bus": "transit",
    "ferry": "transit",
}

TRANSIT_MODE_MAP = {
    "train": "rail",
    "subway": "subway",
    "tram": "tram",
    "bus": "bus",
}

# Google / API mode names -> itinerary travel modes
ITINERARY_MODE_MAP = {
    "walking": "walk",
    "bicycling": "bicycle",
    "cycling": "bicycle",
    "driving": "car",
}

ESTIMATE_MODE_MAP = {
    "walking": "walking",
    "bicycling": "cycling",
    "driving": "driving",
    "transit": "transit",
}


class RoutingError(Exception):
    """Raised when a route cannot be computed and estimates are not allowed."""


class RoutingLegStep(BaseModel):
    instruction: str | None = None
    mode: str | None = None
    distance_meters: float | None = None
    duration_seconds: float | None = None
    geometry: list[Coordinates] | None = None


class RoutingLeg(BaseModel):
    distance_meters: float = 0
    duration_seconds: float = 0
    steps: list[RoutingLegStep] = Field(default_factory=list)
    geometry: list[Coordinates] | None = None


class RoutingResult(BaseModel):
    mode: str
    duration_seconds: float
    distance_meters: float
    geometry: list[Coordinates] | None = None
    legs: list[RoutingLeg] = Field(default_factory=list)
    provider: str = "google"
    warnings: list[str] = Field(default_factory=list)

    @property
    def is_estimated(self) -> bool:
        return self.provider == "estimate"

    def instructions(self) -> list[str]:
        return [step.instruction for leg in self.legs for step in leg.steps if step.instruction]


def to_itinerary_mode(mode: str) -> str:
    """Map an API or Google mode name onto the itinerary's travel modes."""
    return ITINERARY_MODE_MAP.get(mode, mode)


def decode_polyline(encoded: str | None) -> list[Coordinates] | None:
    """Decode a Google encoded polyline into coordinates."""
    if not encoded:
        return None

    index = 0
    lat = 0
    lng = 0
    coordinates: list[Coordinates] = []

    while index < len(encoded):
        deltas = []
        for _ in range(2):
            result = 0
            shift = 0
            while True:
                b = ord(encoded[index]) - 63
                index += 1
                result |= (b & 0x1F) << shift
                shift += 5
                if b < 0x20:
                    break
            deltas.append(~(result >> 1) if result & 1 else result >> 1)

        lat += deltas[0]
        lng += deltas[1]
        coordinates.append(Coordinates(lat=lat / 1e5, lng=lng / 1e5))

    return coordinates or None


def strip_html(html: str | None) -> str | None:
    if not html:
        return None
    return re.sub(r"\s+", " ", re.sub(r"<[^>]+>", " ", html)).strip()


def map_transit_vehicle(details: dict[str, Any] | None) -> str:
    line = (details or {}).get("line") or {}
    vehicle_type = ((line.get("vehicle") or {}).get("type") or "").upper()
    if vehicle_type in ("HEAVY_RAIL", "RAIL", "COMMUTER_TRAIN", "HIGH_SPEED_TRAIN", "LONG_DISTANCE_TRAIN"):
        return "train"
    if vehicle_type in ("SUBWAY", "METRO_RAIL"):
        return "subway"
    if vehicle_type in ("TRAM", "MONORAIL", "LIGHT_RAIL"):
        return "tram"
    if vehicle_type in ("BUS", "INTERCITY_BUS", "TROLLEYBUS"):
        return "bus"
    if vehicle_type == "FERRY":
        return "ferry"
    return "transit"


def resolve_departure_timestamp(departure_time: str | None, timezone: str | None) -> int | None:
    """Convert "HH:MM" (today, in the given timezone) or an ISO timestamp to unix seconds."""
    if not departure_time:
        return None
    try:
        if "T" in departure_time:
            return int(datetime.fromisoformat(departure_time.replace("Z", "+00:00")).timestamp())
        hours, minutes = (int(part) for part in departure_time.split(":", 1))
        tz = ZoneInfo(timezone) if timezone else None
        now = datetime.now(tz)
        return int(now.replace(hour=hours, minute=minutes, second=0, microsecond=0).timestamp())
    except (ValueError, KeyError) as e:
        logger.debug(f"Could not parse departure time '{departure_time}': {e}")
        return None


class RoutingService:
    """Service for computing travel routes between two points."""

    def __init__(self, api_key: str | None = None, timeout: float = 10):
        self.api_key = api_key
        self.timeout = timeout

    def request_route(
        self,
        origin: Coordinates,
        destination: Coordinates,
        mode: str = "walk",
        departure_time: str | None = None,
        timezone: str | None = None,
        allow_estimate: bool = True,
    ) -> RoutingResult:
        """
        Request a route between two points.

        Args:
            origin: Start coordinates
            destination: End coordinates
            mode: Itinerary travel mode ("walk", "train", ...) or API mode name
            departure_time: "HH:MM" or ISO timestamp, used for transit schedules
            timezone: IANA timezone for "HH:MM" departure times
            allow_estimate: Return a heuristic estimate instead of raising on failure

        Returns:
            RoutingResult; provider is "estimate" for heuristic results
        """
        if mode not in MODE_PARAM_MAP:
            raise RoutingError(f"Unsupported travel mode: {mode}")

        if not self.api_key:
            if not allow_estimate:
                raise RoutingError("Routing API key is not configured")
            return self.estimate_route(origin, destination, mode)

        try:
            return self._request_google_route(origin, destination, mode, departure_time, timezone)
        except (requests.exceptions.RequestException, RoutingError, KeyError, ValueError) as e:
            if not allow_estimate:
                raise RoutingError(str(e)) from e
            logger.warning(f"Routing request failed ({mode}), using estimate: {e}")
            return self.estimate_route(origin, destination, mode)

    def estimate_route(self, origin: Coordinates, destination: Coordinates, mode: str) -> RoutingResult:
        """Heuristic route from straight-line distance."""
        distance_km = haversine_distance(origin.lat, origin.lng, destination.lat, destination.lng)
        google_mode = MODE_PARAM_MAP.get(mode, "transit")
        minutes = estimate_travel_time(distance_km, ESTIMATE_MODE_MAP[google_mode])
        return RoutingResult(
            mode=to_itinerary_mode(mode),
            duration_seconds=minutes * 60,
            distance_meters=round(distance_km * 1000),
            geometry=[origin, destination],
            legs=[
                RoutingLeg(
                    distance_meters=round(distance_km * 1000),
                    duration_seconds=minutes * 60,
                )
            ],
            provider="estimate",
        )

    def _request_google_route(
        self,
        origin: Coordinates,
        destination: Coordinates,
        mode: str,
        departure_time: str | None,
        timezone: str | None,
    ) -> RoutingResult:
        google_mode = MODE_PARAM_MAP[mode]
        params: dict[str, Any] = {
            "origin": f"{origin.lat},{origin.lng}",
            "destination": f"{destination.lat},{destination.lng}",
            "mode": google_mode,
            "key": self.api_key,
        }
        if google_mode == "transit":
            if mode in TRANSIT_MODE_MAP:
                params["transit_mode"] = TRANSIT_MODE_MAP[mode]
            timestamp = resolve_departure_timestamp(departure_time, timezone)
            if timestamp:
                params["departure_time"] = timestamp

        response = requests.get(DIRECTIONS_URL, params=params, timeout=self.timeout)
        response.raise_for_status()
        data = response.json()

        status = data.get("status")
        if status != "OK" or not data.get("routes"):
            raise RoutingError(f"Directions API returned {status}: {data.get('error_message', '')}")

        route = data["routes"][0]
        legs: list[RoutingLeg] = []
        result_mode = to_itinerary_mode(mode)
        transit_mode_found = False

        for leg in route.get("legs", []):
            steps = []
            for step in leg.get("steps", []):
                step_mode = (step.get("travel_mode") or "").lower()
                if step_mode == "transit":
                    step_mode = map_transit_vehicle(step.get("transit_details"))
                    if not transit_mode_found:
                        result_mode = step_mode
                        transit_mode_found = True
                steps.append(
                    RoutingLegStep(
                        instruction=strip_html(step.get("html_instructions")),
                        mode=to_itinerary_mode(step_mode) if step_mode else None,
                        distance_meters=(step.get("distance") or {}).get("value"),
                        duration_seconds=(step.get("duration") or {}).get("value"),
                        geometry=decode_polyline((step.get("polyline") or {}).get("points")),
                    )
                )
            legs.append(
                RoutingLeg(
                    distance_meters=leg["distance"]["value"],
                    duration_seconds=leg["duration"]["value"],
                    steps=steps,
                )
            )

        return RoutingResult(
            mode=result_mode,
            duration_seconds=sum(leg.duration_seconds for leg in legs),
            distance_meters=sum(leg.distance_meters for leg in legs),
            geometry=decode_polyline((route.get("overview_polyline") or {}).get("points")),
            legs=legs,
            provider="google",
            warnings=route.get("warnings", []),
        )


def get_routing_service() -> RoutingService:
    settings = get_settings()
    return RoutingService(api_key=settings.google_maps_api_key or None)
