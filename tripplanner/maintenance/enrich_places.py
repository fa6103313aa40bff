"""
Enrich stored locations with Google Places data.

Fetches primary type and types, business status, price level and the
accessibility/dietary/service/meal options for every location with a place
id, and re-derives the location's category from Google's types.

Usage:
    python -m tripplanner.maintenance.enrich_places --dry-run --limit 10
    python -m tripplanner.maintenance.enrich_places --skip-enriched
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from tripplanner.core.places_service import PlacesService
from tripplanner.core.repository import MongoDBRepo
from tripplanner.maintenance.cli import (
    build_parser,
    configure_logging,
    pause,
    print_banner,
    print_summary,
)

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 50
CLOSED_STATUSES = {"CLOSED_TEMPORARILY", "CLOSED_PERMANENTLY"}

GOOGLE_TYPE_TO_CATEGORY = {
    # Religious
    "buddhist_temple": "temple",
    "hindu_temple": "shrine",
    "shinto_shrine": "shrine",
    "place_of_worship": "shrine",
    "church": "shrine",
    "mosque": "shrine",
    "synagogue": "shrine",
    # Culture and landmarks
    "museum": "museum",
    "art_gallery": "museum",
    "castle": "landmark",
    "cultural_landmark": "landmark",
    "tourist_attraction": "landmark",
    "historical_landmark": "landmark",
    "monument": "landmark",
    "landmark": "landmark",
    "cultural_center": "culture",
    # Food and drink
    "restaurant": "restaurant",
    "cafe": "restaurant",
    "coffee_shop": "restaurant",
    "bar": "bar",
    "pub": "bar",
    "wine_bar": "bar",
    "cocktail_bar": "bar",
    "bakery": "restaurant",
    "ramen_restaurant": "restaurant",
    "sushi_restaurant": "restaurant",
    "japanese_restaurant": "restaurant",
    "fast_food_restaurant": "restaurant",
    "meal_takeaway": "restaurant",
    "meal_delivery": "restaurant",
    "ice_cream_shop": "restaurant",
    "food": "food",
    "food_court": "food",
    # Nature
    "park": "park",
    "national_park": "nature",
    "state_park": "nature",
    "zoo": "nature",
    "aquarium": "nature",
    "botanical_garden": "nature",
    "garden": "park",
    "beach": "nature",
    "campground": "nature",
    "natural_feature": "nature",
    "hiking_area": "nature",
    # Shopping
    "shopping_mall": "shopping",
    "market": "market",
    "grocery_store": "market",
    "supermarket": "market",
    "convenience_store": "shopping",
    "store": "shopping",
    "clothing_store": "shopping",
    "department_store": "shopping",
    "electronics_store": "shopping",
    "bookstore": "shopping",
    "gift_shop": "shopping",
    "souvenir_store": "shopping",
    # Entertainment and sports
    "movie_theater": "entertainment",
    "performing_arts_theater": "entertainment",
    "amusement_park": "entertainment",
    "theme_park": "entertainment",
    "bowling_alley": "entertainment",
    "night_club": "bar",
    "stadium": "landmark",
    "sports_complex": "entertainment",
    "gym": "entertainment",
    "spa": "wellness",
    # Transport
    "train_station": "landmark",
    "transit_station": "landmark",
    "airport": "landmark",
    "bus_station": "landmark",
    # Viewpoints
    "observation_deck": "viewpoint",
    "scenic_viewpoint": "viewpoint",
    "lookout": "viewpoint",
    # Other
    "hotel": "accommodation",
    "lodging": "accommodation",
    "hot_spring": "wellness",
    "onsen": "wellness",
}

PRICE_LEVELS = {
    "PRICE_LEVEL_FREE": 0,
    "PRICE_LEVEL_INEXPENSIVE": 1,
    "PRICE_LEVEL_MODERATE": 2,
    "PRICE_LEVEL_EXPENSIVE": 3,
    "PRICE_LEVEL_VERY_EXPENSIVE": 4,
}


class EnrichmentResult(BaseModel):
    id: str
    name: str
    success: bool
    old_category: str | None = None
    new_category: str | None = None
    google_primary_type: str | None = None
    business_status: str | None = None
    price_level: int | None = None
    has_accessibility: bool = False
    has_vegetarian: bool = False
    error: str | None = None


class EnrichmentLog(BaseModel):
    timestamp: str
    total_processed: int = 0
    successful: int = 0
    failed: int = 0
    category_updates: int = 0
    results: list[EnrichmentResult] = Field(default_factory=list)


def parse_price_level(price_level: str | None) -> int | None:
    if not price_level:
        return None
    return PRICE_LEVELS.get(price_level)


def derive_category(data: dict[str, Any], current_category: str) -> str:
    """Map Google's primary type, then its other types, onto our categories."""
    primary = data.get("primaryType")
    if primary and primary in GOOGLE_TYPE_TO_CATEGORY:
        return GOOGLE_TYPE_TO_CATEGORY[primary]
    for place_type in data.get("types") or []:
        if place_type in GOOGLE_TYPE_TO_CATEGORY:
            return GOOGLE_TYPE_TO_CATEGORY[place_type]
    return current_category


def _option_group(data: dict[str, Any], keys: list[str]) -> dict[str, Any] | None:
    if not any(key in data for key in keys):
        return None
    return {key: data.get(key) for key in keys}


def build_update(data: dict[str, Any], current_category: str) -> dict[str, Any]:
    """Location fields to set from a Places enrichment payload."""
    accessibility = data.get("accessibilityOptions") or None
    update: dict[str, Any] = {
        "google_primary_type": data.get("primaryType"),
        "google_types": data.get("types"),
        "business_status": data.get("businessStatus"),
        "price_level": parse_price_level(data.get("priceLevel")),
        "accessibility_options": accessibility,
        "dietary_options": _option_group(data, ["servesVegetarianFood"]),
        "service_options": _option_group(data, ["dineIn", "takeout", "delivery"]),
        "meal_options": _option_group(
            data, ["servesBreakfast", "servesBrunch", "servesLunch", "servesDinner"]
        ),
    }
    new_category = derive_category(data, current_category)
    if new_category != current_category:
        update["category"] = new_category
    return update


def enrich_location(
    location: dict, places: PlacesService, repo: MongoDBRepo, dry_run: bool
) -> EnrichmentResult:
    base = {"id": location["id"], "name": location.get("name", "")}
    if not location.get("place_id"):
        return EnrichmentResult(**base, success=False, error="No place_id")

    data = places.get_enrichment_data(location["place_id"])
    if not data:
        return EnrichmentResult(**base, success=False, error="API call failed")

    current_category = location.get("category") or ""
    update = build_update(data, current_category)

    if not dry_run:
        try:
            if not repo.update_location(location["id"], update):
                return EnrichmentResult(**base, success=False, error="Location not found")
        except Exception as e:
            logger.error(f"Error updating {location['id']}: {e}")
            return EnrichmentResult(**base, success=False, error=str(e))

    new_category = update.get("category")
    if new_category:
        print(f"  [CAT] {base['name']}: {current_category} -> {new_category} (primaryType: {data.get('primaryType')})")

    return EnrichmentResult(
        **base,
        success=True,
        old_category=current_category if new_category else None,
        new_category=new_category,
        google_primary_type=data.get("primaryType"),
        business_status=data.get("businessStatus"),
        price_level=update["price_level"],
        has_accessibility=any((data.get("accessibilityOptions") or {}).values()),
        has_vegetarian=bool(data.get("servesVegetarianFood")),
    )


def main(
    argv: list[str] | None = None,
    repo: MongoDBRepo | None = None,
    places: PlacesService | None = None,
) -> int:
    parser = build_parser("Enrich locations with Google Places data", skip_enriched=True, delay_ms=200)
    parser.add_argument("--log-file", type=Path, default=None, help="Where to write the JSON results log")
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    print_banner("Google Places Enrichment", dry_run=args.dry_run)

    try:
        repo = repo or MongoDBRepo()
        places = places or PlacesService()
    except Exception as e:
        logger.error(f"Setup failed: {e}")
        return 1

    filters: dict[str, Any] = {"place_id": {"$ne": None}}
    if args.skip_enriched:
        filters["google_primary_type"] = None
    locations = list(
        repo.iter_locations(filters, projection=["id", "name", "category", "place_id", "google_primary_type"])
    )
    if args.limit:
        locations = locations[: args.limit]

    if not locations:
        print("No locations to enrich.")
        return 0
    print(f"Found {len(locations)} locations to enrich\n")

    log = EnrichmentLog(timestamp=datetime.now(timezone.utc).isoformat())
    for index, location in enumerate(locations):
        if index == 0 or (index + 1) % PROGRESS_EVERY == 0:
            print(f"Progress: {index + 1}/{len(locations)} ({round((index + 1) / len(locations) * 100)}%)")
        if index > 0:
            pause(args.delay_ms)

        result = enrich_location(location, places, repo, args.dry_run)
        log.results.append(result)
        if result.success:
            log.successful += 1
            if result.new_category:
                log.category_updates += 1
        else:
            log.failed += 1
    log.total_processed = len(log.results)

    log_path = args.log_file or Path(f"enrichment-log-{log.timestamp[:10]}.json")
    log_path.write_text(json.dumps(log.model_dump(), indent=2), encoding="utf-8")

    print_summary(
        {
            "Total processed": log.total_processed,
            "Successful": log.successful,
            "Failed": log.failed,
            "Category updates": log.category_updates,
            "With price level": sum(1 for r in log.results if r.price_level is not None),
            "With accessibility": sum(1 for r in log.results if r.has_accessibility),
            "Vegetarian friendly": sum(1 for r in log.results if r.has_vegetarian),
            "Closed locations": sum(1 for r in log.results if r.business_status in CLOSED_STATUSES),
        }
    )
    print(f"\nLog written to: {log_path}")
    return 1 if log.failed else 0


if __name__ == "__main__":
    sys.exit(main())
