"""
Normalize location names and cities that contain Japanese characters.

Locations with a Google place id get their English display name (when it
resembles the original) and an English city from the address components.
Everything else falls back to stripping the Japanese characters.

Usage:
    python -m tripplanner.maintenance.normalize_japanese_names --dry-run
"""

import logging
import re
import sys

from pydantic import BaseModel

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

# Japanese punctuation, hiragana, katakana, kanji and full-width forms
JAPANESE_PATTERN = re.compile("[\u3000-\u303f\u3040-\u309f\u30a0-\u30ff\u4e00-\u9faf\uff00-\uffef]")
ASCII_LETTER = re.compile(r"[a-zA-Z]")


class NameUpdate(BaseModel):
    id: str
    old_name: str
    new_name: str
    old_city: str | None = None
    new_city: str | None = None


def has_japanese(text: str | None) -> bool:
    return bool(text) and bool(JAPANESE_PATTERN.search(text))


def strip_japanese(text: str | None) -> str | None:
    """Remove Japanese characters; None unless an ASCII letter survives."""
    if not text:
        return None
    stripped = re.sub(r"\s+", " ", JAPANESE_PATTERN.sub("", text)).strip()
    if not stripped or not ASCII_LETTER.search(stripped):
        return None
    return stripped


def _significant_words(text: str) -> list[str]:
    cleaned = re.sub(r"[^a-z0-9\s]", "", text.lower())
    return [word for word in cleaned.split() if len(word) > 2]


def are_names_similar(original: str, google_name: str) -> bool:
    """True when a significant word of one name appears inside a word of the other."""
    original_words = _significant_words(strip_japanese(original) or original)
    google_words = _significant_words(google_name)
    return any(
        word in google_word or google_word in word
        for word in original_words
        for google_word in google_words
    )


def extract_city_from_address(details: dict) -> str | None:
    for component in details.get("addressComponents") or []:
        types = component.get("types") or []
        if "locality" in types or "administrative_area_level_2" in types:
            long_text = component.get("longText")
            if long_text and not has_japanese(long_text):
                return long_text
    return None


def choose_name(name: str, details: dict | None) -> str:
    stripped = strip_japanese(name)
    google_name = ((details or {}).get("displayName") or {}).get("text")

    if google_name and not has_japanese(google_name):
        if are_names_similar(name, google_name):
            return google_name
        # Google's name is unrelated; prefer the stripped original when there is one
        return stripped or google_name
    return stripped or name


def choose_city(city: str | None, details: dict | None) -> str | None:
    if not has_japanese(city):
        return city
    if details:
        english_city = extract_city_from_address(details)
        if english_city:
            return english_city
    return strip_japanese(city) or city


def normalize_location(location: dict, places: PlacesService | None) -> NameUpdate | None:
    """Work out the English name/city for one location; None when nothing changes."""
    name = location["name"]
    city = location.get("city")

    details = None
    if location.get("place_id") and places is not None:
        details = places.get_english_details(location["place_id"])

    new_name = choose_name(name, details)
    new_city = choose_city(city, details)

    if new_name == name and new_city == city:
        return None
    return NameUpdate(id=location["id"], old_name=name, new_name=new_name, old_city=city, new_city=new_city)


def find_locations_with_japanese(repo: MongoDBRepo) -> list[dict]:
    return [
        location
        for location in repo.iter_locations(projection=["id", "name", "city", "place_id"])
        if has_japanese(location.get("name")) or has_japanese(location.get("city"))
    ]


def main(
    argv: list[str] | None = None,
    repo: MongoDBRepo | None = None,
    places: PlacesService | None = None,
) -> int:
    parser = build_parser("Normalize Japanese location names", delay_ms=100)
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    print_banner("Normalize Japanese Names", dry_run=args.dry_run)

    try:
        repo = repo or MongoDBRepo()
    except Exception as e:
        logger.error(f"Could not connect to the location store: {e}")
        return 1
    if places is None:
        try:
            places = PlacesService()
        except ValueError as e:
            logger.warning(f"{e}; falling back to stripping Japanese characters")

    locations = find_locations_with_japanese(repo)
    if args.limit:
        locations = locations[: args.limit]
    print(f"Found {len(locations)} locations with Japanese characters\n")

    updates: list[NameUpdate] = []
    for index, location in enumerate(locations, 1):
        print(f"[{index}/{len(locations)}] Processing: {location['name']}")
        update = normalize_location(location, places)
        if location.get("place_id") and places is not None:
            pause(args.delay_ms)
        if update is None:
            print("    (keeping original, no English found)")
            continue
        print(f'    Name: "{update.old_name}" -> "{update.new_name}"')
        if update.new_city != update.old_city:
            print(f'    City: "{update.old_city}" -> "{update.new_city}"')
        updates.append(update)

    print(f"\n{len(updates)} locations to update\n")

    updated = 0
    failed = 0
    if not args.dry_run:
        for update in updates:
            try:
                if repo.update_location(update.id, {"name": update.new_name, "city": update.new_city}):
                    updated += 1
                else:
                    failed += 1
                    logger.warning(f"Location {update.id} no longer exists")
            except Exception as e:
                failed += 1
                logger.error(f"Error updating {update.id}: {e}")

    print_summary(
        {
            "Locations with Japanese": len(locations),
            "Updates identified": len(updates),
            "Updated": updated if not args.dry_run else "skipped (dry run)",
            "Failed": failed,
        }
    )
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
