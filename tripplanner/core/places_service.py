"""
Google Places API (New) integration for enriching stored locations.
"""

import logging
from typing import Any

import requests

from tripplanner.core.settings import get_settings

logger = logging.getLogger(__name__)

PLACES_API_BASE = "https://places.googleapis.com/v1"

# Fields fetched when enriching a location record
ENRICHMENT_FIELD_MASK = ",".join(
    [
        "id",
        "primaryType",
        "types",
        "businessStatus",
        "priceLevel",
        "accessibilityOptions",
        "servesVegetarianFood",
        "servesBeer",
        "servesWine",
        "dineIn",
        "takeout",
        "delivery",
        "servesBreakfast",
        "servesBrunch",
        "servesLunch",
        "servesDinner",
    ]
)

NAME_FIELD_MASK = "displayName,formattedAddress,addressComponents"


class PlacesService:
    """Service for interacting with the Google Places API."""

    def __init__(self, api_key: str | None = None, timeout: float = 10):
        api_key = api_key or get_settings().google_maps_api_key
        if not api_key:
            raise ValueError("GOOGLE_MAPS_API_KEY not found in environment variables")
        self.api_key = api_key
        self.timeout = timeout

    def get_place_details(
        self, place_id: str, field_mask: str, language_code: str | None = None
    ) -> dict[str, Any] | None:
        """
        Fetch place details for a Google place id.

        Args:
            place_id: Google Place ID
            field_mask: Comma-separated Places API field mask
            language_code: Optional response language (e.g. "en")

        Returns:
            The place payload, or None if the request fails
        """
        headers = {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": field_mask,
        }
        params = {"languageCode": language_code} if language_code else None

        try:
            response = requests.get(
                f"{PLACES_API_BASE}/places/{place_id}",
                headers=headers,
                params=params,
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()
        except requests.exceptions.HTTPError as e:
            logger.warning(f"Places API error for {place_id}: {e.response.status_code if e.response is not None else e}")
            return None
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"Error fetching place {place_id}: {e}")
            return None

    def get_enrichment_data(self, place_id: str) -> dict[str, Any] | None:
        return self.get_place_details(place_id, ENRICHMENT_FIELD_MASK)

    def get_english_details(self, place_id: str) -> dict[str, Any] | None:
        """Display name and address components in English."""
        return self.get_place_details(place_id, NAME_FIELD_MASK, language_code="en")
