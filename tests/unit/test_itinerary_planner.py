import pytest

from tripplanner.core.itinerary_planner import (
    PlannerOptions,
    changed_leg_ids,
    create_city_transition,
    determine_visit_duration,
    evaluate_operating_window,
    move_activity,
    parse_estimated_duration,
    plan_itinerary,
    plan_itinerary_day,
    reorder_day,
)
from tripplanner.core.schemas import (
    Coordinates,
    DayBounds,
    DayEntryPoint,
    Itinerary,
    ItineraryDay,
    Location,
    NoteActivity,
    OperatingHours,
    OperatingPeriod,
    PlaceActivity,
    TravelSegment,
)


def place(activity_id, time_of_day="morning", lat=35.0, lng=135.7, **kwargs):
    return PlaceActivity(
        id=activity_id,
        title=activity_id.title(),
        time_of_day=time_of_day,
        coordinates=Coordinates(lat=lat, lng=lng),
        **kwargs,
    )


def make_day(*activities, **kwargs):
    kwargs.setdefault("bounds", DayBounds(start_time="09:00", end_time="21:00"))
    return ItineraryDay(id="day-1", activities=list(activities), **kwargs)


def test_parse_estimated_duration():
    assert parse_estimated_duration("1.5 hours") == 90
    assert parse_estimated_duration("45 min") == 45
    assert parse_estimated_duration("1 hour 30 min") == 90
    assert parse_estimated_duration("a while") is None


def test_visit_duration_precedence():
    options = PlannerOptions()
    location = Location(id="loc", name="Loc", category="museum", recommended_visit_minutes=50)

    assert determine_visit_duration(place("a", duration_min=30), location, options) == 30
    assert determine_visit_duration(place("a"), location, options) == 50
    assert determine_visit_duration(place("a"), Location(id="loc", name="Loc", category="museum"), options) == 120
    assert determine_visit_duration(place("a"), None, options) == 90


def test_operating_window_early_arrival_waits_for_opening():
    period = OperatingPeriod(day="monday", open="10:00", close="17:00")
    result = evaluate_operating_window(period, 9 * 60, 60)

    assert result["arrival"] == 600
    assert result["departure"] == 660
    assert result["arrival_buffer"] == 60
    assert result["status"] == "scheduled"
    assert result["window"].status == "within"


def test_operating_window_visit_past_closing_is_cut_short():
    period = OperatingPeriod(day="monday", open="10:00", close="17:00")
    result = evaluate_operating_window(period, 16 * 60 + 30, 60)

    assert result["departure"] == 17 * 60
    assert result["departure_buffer"] == 30
    assert result["status"] == "out-of-hours"


def test_operating_window_without_hours_is_tentative():
    result = evaluate_operating_window(None, 600, 45)
    assert result["status"] == "tentative"
    assert result["departure"] == 645


def test_plan_day_schedules_sequentially(fake_routing):
    day = make_day(place("a", duration_min=60), place("b", duration_min=60, lat=35.01))
    planned = plan_itinerary_day(day, fake_routing)

    first, second = planned.activities
    assert first.travel_from_previous is None
    assert first.schedule.arrival_time == "09:00"
    assert first.schedule.departure_time == "10:00"

    assert second.travel_from_previous.mode == "walk"
    assert second.travel_from_previous.departure_time == "10:10"
    assert second.travel_from_previous.arrival_time == "10:18"
    assert second.schedule.arrival_time == "10:18"
    assert first.travel_to_next == second.travel_from_previous
    assert second.travel_to_next is None


def test_plan_day_prefers_transit_for_long_walks(make_routing):
    routing = make_routing(minutes={"walk": 25, "transit": 15})
    day = make_day(place("a", duration_min=60), place("b", duration_min=60, lat=35.05))
    planned = plan_itinerary_day(day, routing)

    segment = planned.activities[1].travel_from_previous
    assert segment.mode == "transit"
    assert segment.duration_minutes == 15
    assert routing.calls == ["walk", "transit"]


def test_plan_day_keeps_explicit_mode(make_routing):
    routing = make_routing(minutes={"taxi": 6})
    second = place("b", duration_min=30, lat=35.02, travel_from_previous=TravelSegment(mode="taxi"))
    day = make_day(place("a", duration_min=30), second)

    planned = plan_itinerary_day(day, routing)
    assert routing.calls == ["taxi"]
    assert planned.activities[1].travel_from_previous.mode == "taxi"


def test_plan_day_falls_back_to_estimate(failing_routing):
    day = make_day(place("a", duration_min=30), place("b", duration_min=30, lat=35.02))
    planned = plan_itinerary_day(day, failing_routing)

    segment = planned.activities[1].travel_from_previous
    assert segment.is_estimated
    assert segment.duration_minutes == 12


def test_plan_day_uses_start_point_and_operating_hours(fake_routing):
    location = Location(
        id="museum",
        name="Kyoto National Museum",
        operating_hours=OperatingHours(periods=[OperatingPeriod(day="monday", open="09:30", close="17:00")]),
        short_description="Art and artifacts",
    )
    activity = place("museum", location_id="museum", duration_min=60)
    day = make_day(activity, weekday="monday")

    planned = plan_itinerary_day(
        day,
        fake_routing,
        location_lookup=lambda location_id: location if location_id == "museum" else None,
        start_point=Coordinates(lat=34.98, lng=135.75),
    )
    planned_activity = planned.activities[0]

    # 09:00 + 8 min walk from the hotel, then waits for opening
    assert planned_activity.travel_from_previous.duration_minutes == 8
    assert planned_activity.schedule.arrival_time == "09:30"
    assert planned_activity.schedule.arrival_buffer_minutes == 22
    assert planned_activity.schedule.status == "scheduled"
    assert planned_activity.operating_window.opens_at == "09:30"
    assert planned_activity.notes == "Art and artifacts"


def test_plan_day_fills_note_times(fake_routing):
    note = NoteActivity(id="note-1", notes="Pick up JR pass")
    day = make_day(note, place("a", duration_min=30))
    planned = plan_itinerary_day(day, fake_routing)

    assert planned.activities[0].start_time == "09:00"
    assert planned.activities[0].end_time == "09:15"


def test_plan_day_flags_overrun_past_day_end(fake_routing):
    day = make_day(place("a", duration_min=120), bounds=DayBounds(start_time="09:00", end_time="10:00"))
    planned = plan_itinerary_day(day, fake_routing)

    schedule = planned.activities[0].schedule
    assert schedule.status == "out-of-hours"
    assert schedule.departure_time == "10:00"


def test_plan_day_arrivals_never_go_backwards(fake_routing):
    day = make_day(*[place(f"p{i}", duration_min=45, lat=35.0 + i * 0.01) for i in range(5)])
    planned = plan_itinerary_day(day, fake_routing)

    arrivals = [a.schedule.arrival_time for a in planned.activities]
    assert arrivals == sorted(arrivals)


def test_plan_itinerary_adds_city_transition(fake_routing):
    itinerary = Itinerary(
        days=[
            ItineraryDay(id="d1", city_id="kyoto", activities=[place("a", duration_min=30)]),
            ItineraryDay(id="d2", city_id="osaka", activities=[place("b", duration_min=30)]),
        ]
    )
    planned = plan_itinerary(
        itinerary,
        fake_routing,
        day_entry_points={"d2": DayEntryPoint(start_point=Coordinates(lat=34.7, lng=135.5))},
    )

    transition = planned.days[1].city_transition
    assert transition.from_city_id == "kyoto"
    assert transition.to_city_id == "osaka"
    assert transition.duration_minutes == 30
    assert transition.departure_time == "21:00"
    assert transition.arrival_time == "21:30"
    assert planned.days[0].city_transition is None
    assert planned.days[1].activities[0].travel_from_previous is not None


def test_create_city_transition_unknown_pair():
    previous = ItineraryDay(id="d1", city_id="kyoto")
    current = ItineraryDay(id="d2", city_id="sapporo")
    assert create_city_transition(previous, current) is None


def three_section_day():
    return make_day(
        place("a", "morning"),
        place("b", "morning", lat=35.01),
        place("c", "afternoon", lat=35.02),
    )


def test_move_activity_between_sections():
    moved = move_activity(three_section_day(), "c", over_activity_id="a")
    assert [a.id for a in moved.activities] == ["c", "a", "b"]
    assert moved.activities[0].time_of_day == "morning"


def test_move_activity_within_section():
    moved = move_activity(three_section_day(), "a", over_activity_id="b")
    assert [a.id for a in moved.activities] == ["b", "a", "c"]


def test_move_activity_to_end_of_section():
    moved = move_activity(three_section_day(), "a", target_time_of_day="evening")
    assert [a.id for a in moved.activities] == ["b", "c", "a"]
    assert moved.activities[-1].time_of_day == "evening"


def test_move_activity_unknown_id():
    with pytest.raises(ValueError):
        move_activity(three_section_day(), "missing")


def test_changed_leg_ids():
    before = three_section_day()
    after = move_activity(before, "c", over_activity_id="a")
    assert changed_leg_ids(before, after) == ["c", "a"]


def test_reorder_day_refreshes_touched_legs(fake_routing):
    planned = plan_itinerary_day(three_section_day(), fake_routing)
    fake_routing.calls.clear()

    reordered = reorder_day(planned, "c", fake_routing, over_activity_id="a")

    first, second, third = reordered.activities
    assert [first.id, second.id, third.id] == ["c", "a", "b"]
    assert first.travel_from_previous is None
    assert second.travel_from_previous is not None
    assert first.travel_to_next == second.travel_from_previous
    assert third.travel_to_next is None
    # only the leg into "a" needed routing
    assert fake_routing.calls == ["walk"]


def test_reorder_day_survives_routing_failure(fake_routing, failing_routing):
    planned = plan_itinerary_day(three_section_day(), fake_routing)
    reordered = reorder_day(planned, "c", failing_routing, over_activity_id="a")
    assert reordered.activities[1].travel_from_previous.is_estimated
