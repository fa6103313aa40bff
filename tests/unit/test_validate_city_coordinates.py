import json

from tripplanner.maintenance.validate_city_coordinates import classify_city, main, validate_metadata


def test_administrative_quirk_is_low():
    severity, issue = classify_city("Niigata", "Chubu", 37.9, 139.0)
    assert severity == "low"
    assert "Chubu" in issue.message


def test_unknown_region_is_critical():
    severity, issue = classify_city("Lost City", "Atlantis", 35.0, 135.0)
    assert severity == "critical"
    assert "Atlantis" in issue.message


def test_far_from_assigned_region_is_critical():
    severity, issue = classify_city("Sapporo", "Kyushu", 43.06, 141.35)
    assert severity == "critical"
    assert issue.suggested_region == "Hokkaido"


def test_outside_bounds_near_border_is_medium():
    severity, issue = classify_city("Bizen", "Kansai", 34.6, 133.95)
    assert severity == "medium"
    assert issue.suggested_region != "Kansai"


def test_correct_city_has_no_issue():
    assert classify_city("Kyoto", "Kansai", 35.0116, 135.7681) is None


def test_validate_metadata_collects_duplicates_and_missing_coordinates():
    report = validate_metadata(
        {
            "Kyoto": {"region": "Kansai", "coordinates": {"lat": 35.0116, "lng": 135.7681}},
            "Uji": {"region": "Kansai", "coordinates": {"lat": 35.0116, "lng": 135.7681}},
            "Nowhere": {"region": "Kansai"},
        }
    )

    assert report.total_cities == 3
    assert [issue.city for issue in report.critical] == ["Nowhere"]
    assert report.duplicates[0].cities == ["Kyoto", "Uji"]
    assert report.has_critical


def test_main_exit_codes(tmp_path, capsys):
    good = tmp_path / "good.json"
    good.write_text(
        json.dumps({"metadata": {"Kyoto": {"region": "Kansai", "coordinates": {"lat": 35.0116, "lng": 135.7681}}}})
    )
    bad = tmp_path / "bad.json"
    bad.write_text(
        json.dumps({"metadata": {"Sapporo": {"region": "Kyushu", "coordinates": {"lat": 43.06, "lng": 141.35}}}})
    )

    assert main([str(good)]) == 0
    assert main([str(bad)]) == 1
    assert main([str(tmp_path / "missing.json")]) == 1
    assert "CRITICAL ISSUES" in capsys.readouterr().out
