"""
Restore city values that an earlier city consolidation pass overwrote.

The consolidation mapped ward names onto their parent city, which also caught
unrelated cities sharing the ward's name, e.g. Miyakojima (Okinawa) became
"Osaka" and Kanazawa (Chubu) became "Yokohama". Affected locations still carry
the pre-consolidation value in ``city_original``.

Usage:
    python -m tripplanner.maintenance.rollback_city_corruption --dry-run
    python -m tripplanner.maintenance.rollback_city_corruption --migration-log rollback.js
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel

from tripplanner.core.geo_utils import region_for_coordinates
from tripplanner.core.repository import MongoDBRepo
from tripplanner.maintenance.cli import build_parser, configure_logging, print_banner, print_summary

logger = logging.getLogger(__name__)

# Consolidation target city -> regions the city really belongs to
CORRUPTION_PATTERNS: dict[str, list[str]] = {
    "Osaka": ["Kansai"],
    "Yokohama": ["Kanto"],
    "Nagoya": ["Chubu"],
    "Sapporo": ["Hokkaido"],
}

PREVIEW_SIZE = 5


class CorruptedLocation(BaseModel):
    id: str
    name: str
    current_city: str
    original_city: str
    region: str
    coordinates_region: str | None = None


def detect_corruption(location: dict) -> CorruptedLocation | None:
    city = location.get("city")
    original = location.get("city_original")
    if not original or city == original:
        return None

    expected_regions = CORRUPTION_PATTERNS.get(city)
    if not expected_regions or location.get("region") in expected_regions:
        return None

    coordinates = location.get("coordinates") or {}
    if coordinates.get("lat") is None or coordinates.get("lng") is None:
        return None
    coordinates_region = region_for_coordinates(coordinates["lat"], coordinates["lng"])
    if not coordinates_region or coordinates_region == expected_regions[0]:
        return None

    return CorruptedLocation(
        id=location["id"],
        name=location.get("name", ""),
        current_city=city,
        original_city=original,
        region=location.get("region") or "",
        coordinates_region=coordinates_region,
    )


def find_corrupted_locations(repo: MongoDBRepo) -> list[CorruptedLocation]:
    corrupted = []
    projection = ["id", "name", "city", "city_original", "region", "coordinates"]
    for location in repo.iter_locations(
        filters={"city": {"$in": list(CORRUPTION_PATTERNS)}, "city_original": {"$ne": None}},
        projection=projection,
    ):
        result = detect_corruption(location)
        if result is not None:
            corrupted.append(result)
    return corrupted


def group_by_transformation(locations: list[CorruptedLocation]) -> dict[str, list[CorruptedLocation]]:
    groups: dict[str, list[CorruptedLocation]] = {}
    for location in locations:
        key = f'"{location.current_city}" -> "{location.original_city}" ({location.region})'
        groups.setdefault(key, []).append(location)
    return groups


def build_migration_log(locations: list[CorruptedLocation], generated_at: datetime | None = None) -> str:
    """Render the rollback as a mongosh script, one updateMany per restored city."""
    generated_at = generated_at or datetime.now(timezone.utc)
    lines = [
        "// Migration: rollback city consolidation corruption",
        f"// Generated: {generated_at.isoformat()}",
        f"// Total locations: {len(locations)}",
        "",
    ]

    by_original: dict[str, list[CorruptedLocation]] = {}
    for location in locations:
        by_original.setdefault(location.original_city, []).append(location)

    for original_city, group in by_original.items():
        lines.append(f'// Restore {len(group)} locations: "{group[0].current_city}" -> "{original_city}"')
        ids = json.dumps([location.id for location in group])
        lines.append(
            f"db.locations.updateMany({{id: {{$in: {ids}}}}}, {{$set: {{city: {json.dumps(original_city)}}}}});"
        )
        lines.append("")
    return "\n".join(lines)


def print_plan(locations: list[CorruptedLocation]) -> None:
    print(f"\nLOCATIONS TO ROLLBACK: {len(locations)}\n")
    for transformation, group in group_by_transformation(locations).items():
        print(f"{transformation}: {len(group)} locations")
        for location in group[:PREVIEW_SIZE]:
            print(f"  - {location.name}")
        if len(group) > PREVIEW_SIZE:
            print(f"  ... and {len(group) - PREVIEW_SIZE} more")
        print()


def rollback(repo: MongoDBRepo, locations: list[CorruptedLocation]) -> tuple[int, int]:
    """Apply the rollback. Returns (rolled_back, failed)."""
    rolled_back = 0
    failed = 0
    for location in locations:
        try:
            if repo.update_location(location.id, {"city": location.original_city}):
                rolled_back += 1
            else:
                failed += 1
                logger.warning(f"Location {location.id} no longer exists")
        except Exception as e:
            failed += 1
            logger.error(f'Error rolling back "{location.name}": {e}')
    return rolled_back, failed


def main(argv: list[str] | None = None, repo: MongoDBRepo | None = None) -> int:
    parser = build_parser("Roll back city consolidation corruption", limit=False)
    parser.add_argument("--migration-log", type=Path, default=None, help="Write the rollback as a mongosh script")
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    print_banner("City Corruption Rollback", dry_run=args.dry_run)

    try:
        repo = repo or MongoDBRepo()
    except Exception as e:
        logger.error(f"Could not connect to the location store: {e}")
        return 1

    print("Scanning for corrupted locations...")
    corrupted = find_corrupted_locations(repo)
    if not corrupted:
        print("\nNo corrupted locations found!")
        return 0

    print_plan(corrupted)

    if args.migration_log:
        args.migration_log.write_text(build_migration_log(corrupted), encoding="utf-8")
        print(f"Migration log written to {args.migration_log}\n")

    rolled_back, failed = (0, 0) if args.dry_run else rollback(repo, corrupted)

    print_summary(
        {
            "Corrupted locations found": len(corrupted),
            "Locations rolled back": rolled_back if not args.dry_run else "skipped (dry run)",
            "Failed": failed,
        }
    )
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
