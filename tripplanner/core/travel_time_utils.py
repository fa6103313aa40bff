"""
Utilities for estimating travel and visit durations.
"""

from typing import Literal

EstimateMode = Literal["auto", "walking", "transit", "driving", "cycling"]


def estimate_travel_time(distance_km: float, mode: EstimateMode = "auto") -> int:
    """
    Estimate travel time in minutes based on distance.

    Args:
        distance_km: Distance in kilometers
        mode: Transportation mode
            - "auto": automatically choose based on distance
            - "walking": ~5 km/h + 5 min buffer
            - "transit": ~25 km/h + 10 min wait/buffer
            - "driving": ~40 km/h + 5 min parking/buffer
            - "cycling": ~15 km/h + 2 min buffer

    Returns:
        Travel time in minutes
    """
    if mode == "auto":
        # Auto-select mode based on distance
        if distance_km < 2.0:
            mode = "walking"
        elif distance_km < 10.0:
            mode = "transit"
        else:
            mode = "driving"

    if mode == "walking":
        # Walking: ~5 km/h = ~12 min/km
        return int(distance_km * 12) + 5
    elif mode == "transit":
        # Public transit: ~25 km/h = ~2.4 min/km + 10 min wait
        return int(distance_km * 2.4) + 10
    elif mode == "driving":
        # Driving: ~40 km/h = ~1.5 min/km + 5 min parking
        return int(distance_km * 1.5) + 5
    elif mode == "cycling":
        # Cycling: ~15 km/h = 4 min/km
        return int(distance_km * 4) + 2
    else:
        # Fallback
        return int(distance_km * 5) + 10


# Default visit durations by location category (in minutes)
CATEGORY_DURATIONS = {
    "temple": 60,
    "shrine": 45,
    "museum": 120,
    "landmark": 60,
    "culture": 90,
    "restaurant": 75,
    "food": 60,
    "bar": 90,
    "cafe": 45,
    "park": 75,
    "garden": 60,
    "nature": 120,
    "viewpoint": 45,
    "market": 60,
    "shopping": 90,
    "entertainment": 120,
    "wellness": 120,
    "onsen": 90,
}

DEFAULT_VISIT_MINUTES = 90


def estimate_activity_duration(category: str | None) -> int:
    """Default visit length for a location category."""
    if not category:
        return DEFAULT_VISIT_MINUTES
    return CATEGORY_DURATIONS.get(category.lower(), DEFAULT_VISIT_MINUTES)


# Typical door-to-door rail times between itinerary cities (in minutes)
CITY_TRAVEL_MINUTES = {
    ("kyoto", "osaka"): 30,
    ("kyoto", "nara"): 45,
    ("osaka", "nara"): 40,
    ("tokyo", "yokohama"): 30,
    ("kyoto", "tokyo"): 140,
    ("osaka", "tokyo"): 155,
    ("nara", "tokyo"): 190,
    ("kyoto", "yokohama"): 130,
    ("osaka", "yokohama"): 145,
    ("nara", "yokohama"): 180,
}


def city_travel_minutes(from_city: str, to_city: str) -> int | None:
    """Inter-city travel time; None when the pair is unknown."""
    if from_city == to_city:
        return 0
    a, b = from_city.lower(), to_city.lower()
    return CITY_TRAVEL_MINUTES.get((a, b)) or CITY_TRAVEL_MINUTES.get((b, a))
