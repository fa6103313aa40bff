"""
Geographic utilities for distance calculations and region lookups.
"""

import math
from typing import Any

R_EARTH_KM = 6371


# Japan's nine travel regions: center point and bounding box
REGIONS: dict[str, dict[str, Any]] = {
    "hokkaido": {
        "name": "Hokkaido",
        "center": {"lat": 43.0642, "lng": 141.3469},
        "bounds": {"north": 45.5, "south": 41.4, "east": 145.9, "west": 139.3},
    },
    "tohoku": {
        "name": "Tohoku",
        "center": {"lat": 39.7036, "lng": 140.1023},
        "bounds": {"north": 41.5, "south": 37.0, "east": 142.1, "west": 139.0},
    },
    "kanto": {
        "name": "Kanto",
        "center": {"lat": 35.6762, "lng": 139.6503},
        "bounds": {"north": 37.0, "south": 34.5, "east": 140.9, "west": 138.2},
    },
    "chubu": {
        "name": "Chubu",
        "center": {"lat": 35.9, "lng": 137.5},
        "bounds": {"north": 37.5, "south": 34.5, "east": 139.2, "west": 135.8},
    },
    "kansai": {
        "name": "Kansai",
        "center": {"lat": 34.6937, "lng": 135.5023},
        "bounds": {"north": 36.0, "south": 33.4, "east": 136.8, "west": 134.0},
    },
    "chugoku": {
        "name": "Chugoku",
        "center": {"lat": 34.6657, "lng": 133.0},
        "bounds": {"north": 36.0, "south": 33.5, "east": 134.5, "west": 130.8},
    },
    "shikoku": {
        "name": "Shikoku",
        "center": {"lat": 33.8416, "lng": 133.5383},
        "bounds": {"north": 34.5, "south": 32.7, "east": 134.8, "west": 132.0},
    },
    "kyushu": {
        "name": "Kyushu",
        "center": {"lat": 33.0, "lng": 131.0},
        "bounds": {"north": 34.3, "south": 31.0, "east": 132.1, "west": 129.5},
    },
    "okinawa": {
        "name": "Okinawa",
        "center": {"lat": 26.2124, "lng": 127.6809},
        "bounds": {"north": 27.5, "south": 24.0, "east": 131.5, "west": 122.9},
    },
}

REGION_NAME_TO_ID: dict[str, str] = {data["name"]: region_id for region_id, data in REGIONS.items()}


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Args:
        lat1, lng1: Coordinates of point 1
        lat2, lng2: Coordinates of point 2

    Returns:
        Distance in kilometers
    """
    # Convert to radians
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    # Haversine formula
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return R_EARTH_KM * c


def is_within_bounds(lat: float, lng: float, bounds: dict[str, float]) -> bool:
    """Check whether a point falls inside a north/south/east/west box (edges inclusive)."""
    return (
        bounds["south"] <= lat <= bounds["north"] and bounds["west"] <= lng <= bounds["east"]
    )


def find_closest_region(lat: float, lng: float) -> tuple[str, float]:
    """
    Find the region whose center is nearest to the given point.

    Returns:
        (region display name, distance in km)
    """
    closest_name = ""
    closest_distance = float("inf")

    for data in REGIONS.values():
        center = data["center"]
        distance = haversine_distance(lat, lng, center["lat"], center["lng"])
        if distance < closest_distance:
            closest_name = data["name"]
            closest_distance = distance

    return closest_name, closest_distance


def distance_to_region(lat: float, lng: float, region_name: str) -> float:
    """Distance in km to a region's center; infinity for unknown region names."""
    region_id = REGION_NAME_TO_ID.get(region_name)
    if not region_id:
        return float("inf")
    center = REGIONS[region_id]["center"]
    return haversine_distance(lat, lng, center["lat"], center["lng"])


def region_for_coordinates(lat: float, lng: float) -> str | None:
    """Return the display name of the first region whose bounding box contains the point."""
    for data in REGIONS.values():
        if is_within_bounds(lat, lng, data["bounds"]):
            return data["name"]
    return None


def coordinate_key(lat: float, lng: float) -> str:
    """Key used to group cities sharing the same location (4 decimal places)."""
    return f"{lat:.4f},{lng:.4f}"
