from tripplanner.core.conflict_detection import (
    detect_closed_conflict,
    detect_itinerary_conflicts,
    detect_overlapping_activities,
    detect_reservation_needed,
    detect_travel_time_conflicts,
    get_activity_conflicts,
    get_day_conflict_summary,
    has_activity_conflicts,
    is_outside_operating_hours,
)
from tripplanner.core.schemas import (
    ActivitySchedule,
    Itinerary,
    ItineraryDay,
    OperatingWindow,
    PlaceActivity,
    TravelSegment,
)


def scheduled(activity_id, arrival, departure, travel=None, window=None, **kwargs):
    return PlaceActivity(
        id=activity_id,
        title=activity_id.title(),
        schedule=ActivitySchedule(
            arrival_time=arrival,
            departure_time=departure,
            operating_window=window,
        ),
        travel_from_previous=TravelSegment(mode="walk", duration_minutes=travel) if travel else None,
        **kwargs,
    )


def test_outside_hours_regular_window():
    assert is_outside_operating_hours(480, 540, 540, 1020) == (True, "before_open")
    assert is_outside_operating_hours(960, 1080, 540, 1020) == (True, "after_close")
    assert is_outside_operating_hours(600, 660, 540, 1020) == (False, None)


def test_outside_hours_overnight_window():
    # 18:00-02:00
    assert is_outside_operating_hours(60, 90, 1080, 120) == (False, None)
    assert is_outside_operating_hours(1140, 1200, 1080, 120) == (False, None)
    assert is_outside_operating_hours(600, 660, 1080, 120) == (True, "before_open")


def test_closed_conflict_before_opening():
    activity = scheduled("garden", "08:00", "09:00", window=OperatingWindow(opens_at="09:00", closes_at="17:00"))
    conflict = detect_closed_conflict(activity, 0, "d1")

    assert conflict.id == "closed-garden"
    assert conflict.severity == "error"
    assert conflict.title == "Outside Operating Hours"
    assert "opens at 09:00" in conflict.message


def test_closed_conflict_needs_window():
    assert detect_closed_conflict(scheduled("garden", "08:00", "09:00"), 0, "d1") is None


def test_travel_time_warning_when_gap_too_short():
    activities = [scheduled("a", "09:00", "10:00"), scheduled("b", "10:05", "11:00", travel=15)]
    conflicts = detect_travel_time_conflicts(activities, 0, "d1")

    assert len(conflicts) == 1
    conflict = conflicts[0]
    assert conflict.id == "travel-b"
    assert conflict.severity == "warning"
    assert "Leave by 09:45" in conflict.message
    assert conflict.details["related_activity_id"] == "a"


def test_travel_time_error_when_schedule_overlaps():
    activities = [scheduled("a", "09:00", "10:30"), scheduled("b", "10:00", "11:00", travel=10)]
    conflict = detect_travel_time_conflicts(activities, 0, "d1")[0]

    assert conflict.severity == "error"
    assert "overlaps by 30 min" in conflict.message
    assert "10:45" in conflict.message


def test_overlapping_activities():
    activities = [scheduled("a", "09:00", "10:30"), scheduled("b", "10:00", "11:00")]
    conflicts = detect_overlapping_activities(activities, 2, "d3")

    assert [c.id for c in conflicts] == ["overlap-b"]
    assert conflicts[0].details["overlap_minutes"] == 30
    assert conflicts[0].day_index == 2


def test_reservation_for_fine_dining():
    activity = scheduled("kitcho", "18:00", "20:00", tags=["Kaiseki"])
    conflict = detect_reservation_needed(activity, 0, "d1")
    assert conflict.severity == "info"
    assert conflict.title == "Reservation Recommended"


def test_reservation_for_dinner_restaurant():
    activity = scheduled("izakaya", "18:00", "20:00", tags=["restaurant"], meal_type="dinner")
    assert detect_reservation_needed(activity, 0, "d1").title == "Consider Reserving"


def test_no_reservation_for_lunch_restaurant():
    activity = scheduled("noodles", "12:00", "13:00", tags=["restaurant"], meal_type="lunch")
    assert detect_reservation_needed(activity, 0, "d1") is None


def test_detect_itinerary_conflicts_groups_by_day():
    itinerary = Itinerary(
        days=[
            ItineraryDay(
                id="d1",
                activities=[scheduled("a", "09:00", "10:30"), scheduled("b", "10:00", "11:00")],
            ),
            ItineraryDay(id="d2", activities=[scheduled("c", "09:00", "10:00")]),
        ]
    )
    result = detect_itinerary_conflicts(itinerary)

    assert list(result.by_day) == ["d1"]
    assert result.summary.total == 1
    assert result.summary.errors == 1
    assert has_activity_conflicts(result, "b")
    assert not has_activity_conflicts(result, "c")
    assert len(get_activity_conflicts(result, "b")) == 1
    assert get_day_conflict_summary(result, "d2").total == 0
