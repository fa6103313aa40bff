"""
Validate city coordinates and region assignments in the city metadata file.

Checks for:
1. Coordinates outside the assigned region's bounding box
2. Coordinates much closer to a different region's center
3. Duplicate coordinates (several cities sharing one location)
4. Unknown region names

Cities with known administrative quirks (e.g. Niigata, officially Chubu but
bordering Tohoku) are reported as LOW and never escalated.

Usage:
    python -m tripplanner.maintenance.validate_city_coordinates data/city_metadata.json
"""

import json
import logging
import sys
from pathlib import Path

from pydantic import BaseModel, Field

from tripplanner.core.geo_utils import (
    REGION_NAME_TO_ID,
    REGIONS,
    coordinate_key,
    distance_to_region,
    find_closest_region,
    is_within_bounds,
)
from tripplanner.maintenance.cli import build_parser, configure_logging, print_summary

logger = logging.getLogger(__name__)

DEFAULT_METADATA_PATH = "data/city_metadata.json"
CRITICAL_DISTANCE_KM = 150
CRITICAL_DISTANCE_RATIO = 2

ADMINISTRATIVE_QUIRKS = {
    "Niigata": "Niigata is administratively in Chubu but geographically borders Tohoku",
    "Sado": "Sado Island is administratively in Chubu (Niigata) but isolated",
    "Joetsu": "Joetsu is administratively in Chubu (Niigata) but near Tohoku",
    "Nagaoka": "Nagaoka is administratively in Chubu (Niigata) but near Tohoku border",
    "Shibata": "Shibata is administratively in Chubu (Niigata) but near Tohoku border",
    "Sanjo": "Sanjo is administratively in Chubu (Niigata) but near Kanto border",
    "Tsubame": "Tsubame is administratively in Chubu (Niigata) but near Kanto border",
    "Agano": "Agano is administratively in Chubu (Niigata) but near Tohoku border",
    "Gosen": "Gosen is administratively in Chubu (Niigata) but near Kanto border",
    "Iwafune": "Iwafune is administratively in Chubu (Niigata) but near Tohoku border",
    "Mie": "Mie is administratively in Kansai but near Chubu border",
    "Ise": "Ise is administratively in Kansai (Mie) but near Chubu border",
    "Toba": "Toba is administratively in Kansai (Mie) but near Chubu border",
    "Oki": "Oki Islands are administratively in Chugoku (Shimane) but north of main region",
    "Oshima": "Amami Oshima is administratively in Kyushu (Kagoshima) but geographically near Okinawa",
    "Yoron": "Yoron Island is administratively in Kyushu (Kagoshima) but geographically near Okinawa",
    "Amami": "Amami is administratively in Kyushu (Kagoshima) but geographically near Okinawa",
    "Tokunoshima": "Tokunoshima is administratively in Kyushu (Kagoshima) but geographically near Okinawa",
    "Atami": "Atami is administratively in Chubu (Shizuoka) but on the Kanto border",
    "Ito": "Ito is administratively in Chubu (Shizuoka) but on the Kanto border",
    "Izu": "Izu is administratively in Chubu (Shizuoka) but on the Kanto border",
    "Oi": "Oi is administratively in Chubu (Fukui) but near Kansai border",
    "Hinoemata": "Hinoemata is administratively in Tohoku (Fukushima) but near Kanto border",
    "Oma": "Oma is administratively in Tohoku (Aomori) but near Hokkaido",
}


class CoordinateIssue(BaseModel):
    city: str
    region: str
    lat: float | None = None
    lng: float | None = None
    message: str
    suggested_region: str | None = None
    distance_to_assigned: int | None = None
    distance_to_closest: int | None = None


class DuplicateCoordinates(BaseModel):
    coordinate_key: str
    cities: list[str]


class ValidationReport(BaseModel):
    total_cities: int = 0
    critical: list[CoordinateIssue] = Field(default_factory=list)
    medium: list[CoordinateIssue] = Field(default_factory=list)
    low: list[CoordinateIssue] = Field(default_factory=list)
    duplicates: list[DuplicateCoordinates] = Field(default_factory=list)

    @property
    def has_critical(self) -> bool:
        return bool(self.critical)


def classify_city(city: str, region: str, lat: float, lng: float) -> tuple[str, CoordinateIssue] | None:
    """
    Classify one city's coordinates.

    Returns:
        ("critical" | "medium" | "low", issue), or None when the city looks fine
    """
    if region not in REGION_NAME_TO_ID:
        return "critical", CoordinateIssue(
            city=city, region=region, lat=lat, lng=lng, message=f'Unknown region "{region}"'
        )

    distance_to_assigned = distance_to_region(lat, lng, region)

    if city in ADMINISTRATIVE_QUIRKS:
        return "low", CoordinateIssue(
            city=city,
            region=region,
            lat=lat,
            lng=lng,
            message=ADMINISTRATIVE_QUIRKS[city],
            distance_to_assigned=round(distance_to_assigned),
        )

    bounds = REGIONS[REGION_NAME_TO_ID[region]]["bounds"]
    closest_region, closest_distance = find_closest_region(lat, lng)

    if distance_to_assigned > CRITICAL_DISTANCE_KM and closest_region != region:
        if closest_distance == 0 or distance_to_assigned / closest_distance > CRITICAL_DISTANCE_RATIO:
            return "critical", CoordinateIssue(
                city=city,
                region=region,
                lat=lat,
                lng=lng,
                message=(
                    f"Coordinates are {round(distance_to_assigned)}km from {region} center, "
                    f"but only {round(closest_distance)}km from {closest_region}"
                ),
                suggested_region=closest_region,
                distance_to_assigned=round(distance_to_assigned),
                distance_to_closest=round(closest_distance),
            )

    if not is_within_bounds(lat, lng, bounds) and closest_region != region:
        return "medium", CoordinateIssue(
            city=city,
            region=region,
            lat=lat,
            lng=lng,
            message=(
                f"Coords outside {region} bounds. Distance to {region}: "
                f"{round(distance_to_assigned)}km, to {closest_region}: {round(closest_distance)}km"
            ),
            suggested_region=closest_region,
            distance_to_assigned=round(distance_to_assigned),
            distance_to_closest=round(closest_distance),
        )

    return None


def validate_metadata(metadata: dict[str, dict]) -> ValidationReport:
    """Validate every city in ``{city: {"region": ..., "coordinates": {"lat", "lng"}}}``."""
    report = ValidationReport(total_cities=len(metadata))
    by_coordinates: dict[str, list[str]] = {}

    for city, meta in metadata.items():
        region = meta.get("region") or ""
        coordinates = meta.get("coordinates") or {}
        lat, lng = coordinates.get("lat"), coordinates.get("lng")
        if lat is None or lng is None:
            report.critical.append(
                CoordinateIssue(city=city, region=region, message="Missing coordinates")
            )
            continue

        by_coordinates.setdefault(coordinate_key(lat, lng), []).append(city)

        result = classify_city(city, region, lat, lng)
        if result is None:
            continue
        severity, issue = result
        getattr(report, severity).append(issue)

    report.duplicates = [
        DuplicateCoordinates(coordinate_key=key, cities=cities)
        for key, cities in by_coordinates.items()
        if len(cities) > 1
    ]
    return report


def _print_issues(title: str, issues: list[CoordinateIssue], show_suggestion: bool = False) -> None:
    print("=" * 60)
    print(title)
    print("=" * 60)
    if not issues:
        print("  None found!\n")
        return
    for issue in issues:
        print(f"\n  {issue.city} in {issue.region}:")
        if issue.lat is not None:
            print(f"    Coords: ({issue.lat}, {issue.lng})")
        print(f"    {issue.message}")
        if show_suggestion and issue.suggested_region:
            print(f"    Suggested: Move to {issue.suggested_region} or update coordinates")
    print()


def print_report(report: ValidationReport) -> None:
    print("=== City Coordinate Validation Report ===\n")
    print(f"Total cities: {report.total_cities}\n")

    _print_issues("CRITICAL ISSUES (Wrong coordinates - needs fix):", report.critical, show_suggestion=True)

    print("=" * 60)
    print("DUPLICATE COORDINATES (Multiple cities with same location):")
    print("=" * 60)
    if not report.duplicates:
        print("  None found!\n")
    else:
        for duplicate in report.duplicates:
            print(f"\n  ({duplicate.coordinate_key}): {', '.join(duplicate.cities)}")
        print()

    _print_issues("MEDIUM ISSUES (Outside region bounds):", report.medium, show_suggestion=True)
    _print_issues("LOW ISSUES (Known administrative quirks):", report.low)

    print_summary(
        {
            "Critical issues": len(report.critical),
            "Duplicate coordinate groups": len(report.duplicates),
            "Medium issues": len(report.medium),
            "Low issues": len(report.low),
        }
    )


def load_metadata(path: Path) -> dict[str, dict]:
    data = json.loads(path.read_text(encoding="utf-8"))
    return data.get("metadata", {})


def main(argv: list[str] | None = None) -> int:
    parser = build_parser(
        "Validate city coordinates and region assignments",
        dry_run=False,
        limit=False,
    )
    parser.add_argument("path", nargs="?", default=DEFAULT_METADATA_PATH, help="City metadata JSON file")
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        metadata = load_metadata(Path(args.path))
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Could not read city metadata from {args.path}: {e}")
        return 1

    report = validate_metadata(metadata)
    print_report(report)

    if report.has_critical:
        print("\nCritical issues found. Fix the coordinates above before deploying.")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
