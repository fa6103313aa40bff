import uuid
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

TimeOfDay = Literal["morning", "afternoon", "evening"]
MealType = Literal["breakfast", "lunch", "dinner", "snack"]
TravelMode = Literal[
    "walk",
    "transit",
    "train",
    "subway",
    "bus",
    "tram",
    "ferry",
    "car",
    "taxi",
    "bicycle",
]


class Coordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


# =============================================================================
# Itinerary Schemas
# =============================================================================


class TravelSegment(BaseModel):
    """Transit leg between two consecutive place activities."""

    mode: TravelMode = "walk"
    duration_minutes: int = Field(0, ge=0)
    distance_meters: float | None = None
    departure_time: str | None = Field(None, description="HH:MM")
    arrival_time: str | None = Field(None, description="HH:MM")
    instructions: list[str] | None = None
    path: list[Coordinates] | None = None
    is_estimated: bool = False


class OperatingWindow(BaseModel):
    opens_at: str
    closes_at: str
    note: str | None = None
    status: Literal["within", "outside", "unknown"] = "unknown"


class ActivitySchedule(BaseModel):
    arrival_time: str | None = None
    departure_time: str | None = None
    arrival_buffer_minutes: int | None = None
    departure_buffer_minutes: int | None = None
    status: Literal["scheduled", "tentative", "out-of-hours"] = "tentative"
    operating_window: OperatingWindow | None = None


class PlaceActivity(BaseModel):
    kind: Literal["place"] = "place"
    id: str
    title: str
    location_id: str | None = None
    time_of_day: TimeOfDay = "morning"
    duration_min: int | None = None
    neighborhood: str | None = None
    tags: list[str] = Field(default_factory=list)
    meal_type: MealType | None = None
    notes: str | None = None
    coordinates: Coordinates | None = None
    schedule: ActivitySchedule | None = None
    operating_window: OperatingWindow | None = None
    travel_from_previous: TravelSegment | None = None
    travel_to_next: TravelSegment | None = None
    availability_status: str | None = Field(
        None, description="e.g. 'open', 'requires_reservation', 'closed'"
    )


class NoteActivity(BaseModel):
    kind: Literal["note"] = "note"
    id: str
    title: str = "Note"
    notes: str | None = None
    time_of_day: TimeOfDay = "morning"
    start_time: str | None = None
    end_time: str | None = None


Activity = Annotated[Union[PlaceActivity, NoteActivity], Field(discriminator="kind")]


class DayBounds(BaseModel):
    start_time: str | None = None
    end_time: str | None = None


class CityTransition(BaseModel):
    from_city_id: str
    to_city_id: str
    mode: TravelMode = "train"
    duration_minutes: int
    departure_time: str | None = None
    arrival_time: str | None = None
    notes: str | None = None


class ItineraryDay(BaseModel):
    id: str
    date_label: str | None = Field(None, description="Display date, e.g. 'Friday, March 15'")
    city_id: str | None = None
    timezone: str | None = None
    weekday: str | None = Field(None, description="Lowercase weekday, e.g. 'monday'")
    bounds: DayBounds | None = None
    activities: list[Activity] = Field(default_factory=list)
    city_transition: CityTransition | None = None

    def place_activities(self) -> list[PlaceActivity]:
        return [a for a in self.activities if isinstance(a, PlaceActivity)]


class Itinerary(BaseModel):
    days: list[ItineraryDay] = Field(default_factory=list)
    timezone: str | None = None


class DayEntryPoint(BaseModel):
    start_point: Coordinates | None = None
    end_point: Coordinates | None = None


# =============================================================================
# Location Schemas
# =============================================================================


class OperatingPeriod(BaseModel):
    day: str = Field(..., description="Lowercase weekday")
    open: str
    close: str
    is_overnight: bool = False


class OperatingHours(BaseModel):
    periods: list[OperatingPeriod] = Field(default_factory=list)
    notes: str | None = None


class Location(BaseModel):
    """Location record as stored in the backend; this app only reads it."""

    id: str
    name: str
    city: str | None = None
    region: str | None = None
    category: str | None = None
    coordinates: Coordinates | None = None
    rating: float | None = None
    place_id: str | None = None
    short_description: str | None = None
    reservation_info: str | None = Field(None, description="'required' or 'recommended'")
    operating_hours: OperatingHours | None = None
    recommended_visit_minutes: int | None = None
    estimated_duration: str | None = Field(None, description="Free text, e.g. '1-2 hours'")
    google_primary_type: str | None = None
    price_level: int | None = None


# =============================================================================
# Smart Suggestion & Conflict Schemas
# =============================================================================

GapType = Literal[
    "meal",
    "transport",
    "experience",
    "long_gap",
    "early_end",
    "late_start",
    "category_imbalance",
    "weather_swap",
    "guidance",
    "reservation_alert",
]


class DetectedGap(BaseModel):
    id: str
    type: GapType
    day_index: int
    day_id: str
    title: str
    description: str
    icon: str
    action: dict[str, Any] = Field(
        default_factory=dict, description="Action payload; 'type' names the handler"
    )


class GapDetectionOptions(BaseModel):
    include_meals: bool = True
    include_transport: bool = False
    include_experiences: bool = True
    include_long_gaps: bool = True
    include_timing_gaps: bool = True
    include_category_balance: bool = True
    max_gaps_per_day: int = Field(4, ge=1)


Season = Literal["spring", "summer", "fall", "winter"]


class TravelGuidance(BaseModel):
    """Etiquette and practical tip from the travel_guidance collection."""

    id: str
    title: str
    summary: str
    guidance_type: str
    priority: int = 5
    categories: list[str] = Field(default_factory=list)
    cities: list[str] = Field(default_factory=list)
    regions: list[str] = Field(default_factory=list)
    seasons: list[Season] = Field(default_factory=list)
    location_ids: list[str] = Field(default_factory=list)
    is_universal: bool = False


ConflictType = Literal[
    "closed_during_visit",
    "insufficient_travel_time",
    "overlapping_activities",
    "reservation_recommended",
]
ConflictSeverity = Literal["error", "warning", "info"]


class ItineraryConflict(BaseModel):
    id: str
    type: ConflictType
    severity: ConflictSeverity
    activity_id: str
    activity_title: str
    day_id: str
    day_index: int
    title: str
    message: str
    icon: str
    details: dict[str, Any] | None = None


class ConflictSummary(BaseModel):
    total: int = 0
    errors: int = 0
    warnings: int = 0
    info: int = 0


class ItineraryConflictsResult(BaseModel):
    conflicts: list[ItineraryConflict] = Field(default_factory=list)
    by_day: dict[str, list[ItineraryConflict]] = Field(default_factory=dict)
    summary: ConflictSummary = Field(default_factory=ConflictSummary)


class WeatherForecast(BaseModel):
    date: str = Field(..., description="ISO date (yyyy-mm-dd)")
    condition: str = "clear"
    description: str = "Clear sky"
    min_temp: float | None = None
    max_temp: float | None = None
    precipitation_mm: float = 0.0
    humidity: float | None = None
    is_estimated: bool = False


# =============================================================================
# Routing Schemas
# =============================================================================


class RoutingRequest(BaseModel):
    origin: Coordinates
    destination: Coordinates
    mode: str
    departure_time: str | None = Field(None, description="HH:MM or ISO timestamp")
    timezone: str | None = None


class RouteResponse(BaseModel):
    mode: str
    duration_minutes: int
    distance_meters: float
    path: list[Coordinates] | None = None
    instructions: list[str] | None = None
    arrival_time: str | None = None
    departure_time: str | None = None
    is_estimated: bool = False


class EstimateResponse(BaseModel):
    mode: str
    duration_minutes: int
    distance_meters: float
    is_estimated: bool = False


# =============================================================================
# Trip & Share Schemas
# =============================================================================


class TripCreate(BaseModel):
    id: uuid.UUID | None = Field(None, description="Optional client-generated UUID")
    name: str = Field("Untitled itinerary", min_length=1, max_length=500)
    itinerary: Itinerary = Field(default_factory=Itinerary)
    builder_data: dict[str, Any] = Field(default_factory=dict)


class TripUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=500)
    itinerary: Itinerary | None = None
    builder_data: dict[str, Any] | None = None


class Trip(BaseModel):
    id: str
    user_id: str
    name: str
    itinerary: Itinerary = Field(default_factory=Itinerary)
    builder_data: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime | None = None


class TripShare(BaseModel):
    id: str
    trip_id: str
    user_id: str
    share_token: str
    is_active: bool = True
    view_count: int = 0
    created_at: datetime
    updated_at: datetime | None = None


class ShareToggleRequest(BaseModel):
    is_active: bool


# =============================================================================
# Chat Schemas
# =============================================================================


class ChatMessage(BaseModel):
    role: str = Field(pattern="^(system|user|assistant)$")
    content: str


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(..., min_length=1)
    itinerary: Itinerary | None = None
