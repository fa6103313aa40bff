from tripplanner.maintenance.rollback_city_corruption import (
    build_migration_log,
    detect_corruption,
    find_corrupted_locations,
    group_by_transformation,
    main,
)

MIYAKOJIMA = {
    "id": "loc-1",
    "name": "Yonaha Maehama Beach",
    "city": "Osaka",
    "city_original": "Miyakojima",
    "region": "Okinawa",
    "coordinates": {"lat": 24.7333, "lng": 125.2642},
}
KANAZAWA = {
    "id": "loc-2",
    "name": "Kenroku-en",
    "city": "Yokohama",
    "city_original": "Kanazawa",
    "region": "Chubu",
    "coordinates": {"lat": 36.5621, "lng": 136.6625},
}
REAL_OSAKA = {
    "id": "loc-3",
    "name": "Osaka Castle",
    "city": "Osaka",
    "city_original": "Chuo",
    "region": "Kansai",
    "coordinates": {"lat": 34.6873, "lng": 135.5262},
}


def test_detect_corruption():
    corrupted = detect_corruption(MIYAKOJIMA)
    assert corrupted.original_city == "Miyakojima"
    assert corrupted.coordinates_region == "Okinawa"


def test_consolidated_location_in_expected_region_is_kept():
    assert detect_corruption(REAL_OSAKA) is None


def test_unchanged_or_missing_original_is_skipped():
    assert detect_corruption({**MIYAKOJIMA, "city_original": None}) is None
    assert detect_corruption({**MIYAKOJIMA, "city": "Miyakojima"}) is None


def test_non_target_city_is_skipped():
    assert detect_corruption({**MIYAKOJIMA, "city": "Naha"}) is None


def test_coordinates_inside_expected_region_are_skipped():
    assert detect_corruption({**MIYAKOJIMA, "coordinates": {"lat": 34.69, "lng": 135.5}}) is None
    assert detect_corruption({**MIYAKOJIMA, "coordinates": None}) is None


def test_group_and_migration_log(make_repo):
    corrupted = find_corrupted_locations(make_repo(locations=[MIYAKOJIMA, KANAZAWA, REAL_OSAKA]))
    assert [loc.id for loc in corrupted] == ["loc-1", "loc-2"]

    groups = group_by_transformation(corrupted)
    assert '"Osaka" -> "Miyakojima" (Okinawa)' in groups

    log = build_migration_log(corrupted)
    assert 'db.locations.updateMany({id: {$in: ["loc-1"]}}, {$set: {city: "Miyakojima"}});' in log
    assert "Total locations: 2" in log


def test_rollback_is_idempotent(make_repo, tmp_path):
    repo = make_repo(locations=[MIYAKOJIMA, KANAZAWA, REAL_OSAKA])
    log_path = tmp_path / "rollback.js"

    assert main(["--dry-run"], repo=repo) == 0
    assert repo.updates == []

    assert main(["--migration-log", str(log_path)], repo=repo) == 0
    assert repo.locations["loc-1"]["city"] == "Miyakojima"
    assert repo.locations["loc-2"]["city"] == "Kanazawa"
    assert repo.locations["loc-3"]["city"] == "Osaka"
    assert log_path.exists()

    assert find_corrupted_locations(repo) == []
    assert main([], repo=repo) == 0
    assert len(repo.updates) == 2
