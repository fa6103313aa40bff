"""
Day planning: travel segments, arrival/departure times and reordering.
"""

import logging
import re
from typing import Callable

from pydantic import BaseModel

from tripplanner.core.routing_service import RoutingResult, RoutingService, to_itinerary_mode
from tripplanner.core.schemas import (
    ActivitySchedule,
    CityTransition,
    Coordinates,
    DayBounds,
    DayEntryPoint,
    Itinerary,
    ItineraryDay,
    Location,
    NoteActivity,
    OperatingPeriod,
    OperatingWindow,
    PlaceActivity,
    TravelSegment,
)
from tripplanner.core.time_utils import MINUTES_IN_DAY, format_minutes, parse_time_to_minutes
from tripplanner.core.travel_time_utils import city_travel_minutes, estimate_activity_duration

logger = logging.getLogger(__name__)

LocationLookup = Callable[[str], Location | None]

DEFAULT_TIMEZONE = "Asia/Tokyo"
SECTION_ORDER = ("morning", "afternoon", "evening")


class PlannerOptions(BaseModel):
    default_day_start: str = "09:00"
    default_day_end: str = "21:00"
    default_visit_minutes: int = 90
    transition_buffer_minutes: int = 10
    # Walks longer than this are replaced by the transit route
    walk_threshold_minutes: int = 10


def _lookup_location(activity: PlaceActivity, location_lookup: LocationLookup | None) -> Location | None:
    if not location_lookup or not activity.location_id:
        return None
    try:
        return location_lookup(activity.location_id)
    except Exception as e:
        logger.warning(f"Location lookup failed for {activity.location_id}: {e}")
        return None


def _coordinates_for(activity: PlaceActivity, location: Location | None) -> Coordinates | None:
    if activity.coordinates:
        return activity.coordinates
    if location and location.coordinates:
        return location.coordinates
    return None


def parse_estimated_duration(text: str | None) -> int | None:
    """Parse free text such as "1.5 hours" or "45 min" into minutes."""
    if not text:
        return None
    hours_match = re.search(r"([\d.]+)\s*(hour|hr)", text, re.IGNORECASE)
    minutes_match = re.search(r"(\d+)\s*min", text, re.IGNORECASE)
    total = 0.0
    if hours_match:
        try:
            total += float(hours_match.group(1)) * 60
        except ValueError:
            pass
    if minutes_match:
        total += int(minutes_match.group(1))
    if total == 0:
        return None
    return round(total)


def determine_visit_duration(
    activity: PlaceActivity, location: Location | None, options: PlannerOptions
) -> int:
    if activity.duration_min:
        return activity.duration_min
    if location and location.recommended_visit_minutes:
        return location.recommended_visit_minutes
    parsed = parse_estimated_duration(
        (location.estimated_duration if location else None) or activity.notes
    )
    if parsed:
        return parsed
    if location and location.category:
        return estimate_activity_duration(location.category)
    return options.default_visit_minutes


def _operating_period(location: Location | None, weekday: str | None) -> OperatingPeriod | None:
    if not location or not location.operating_hours or not weekday:
        return None
    for period in location.operating_hours.periods:
        if period.day == weekday.lower():
            return period
    return None


def evaluate_operating_window(
    period: OperatingPeriod | None, arrival_minutes: int, duration_minutes: int
) -> dict:
    """
    Fit a visit into a venue's opening period.

    Early arrivals wait until opening; visits running past closing are cut
    short and flagged out-of-hours.
    """
    if period is None:
        return {
            "arrival": arrival_minutes,
            "departure": arrival_minutes + duration_minutes,
            "arrival_buffer": None,
            "departure_buffer": None,
            "status": "tentative",
            "window": None,
        }

    open_minutes = parse_time_to_minutes(period.open) or 0
    close_minutes = parse_time_to_minutes(period.close)
    if close_minutes is None:
        close_minutes = MINUTES_IN_DAY
    if period.is_overnight:
        close_minutes += MINUTES_IN_DAY

    arrival = arrival_minutes
    departure = arrival_minutes + duration_minutes
    arrival_buffer = None
    departure_buffer = None
    status = "scheduled"
    window_status = "within"

    if arrival < open_minutes:
        arrival_buffer = open_minutes - arrival
        arrival = open_minutes
        departure = arrival + duration_minutes

    if arrival > close_minutes:
        status = "out-of-hours"
        window_status = "outside"
    elif departure > close_minutes:
        departure_buffer = departure - close_minutes
        departure = close_minutes
        status = "out-of-hours"
        window_status = "outside"

    return {
        "arrival": arrival,
        "departure": departure,
        "arrival_buffer": arrival_buffer,
        "departure_buffer": departure_buffer,
        "status": status,
        "window": OperatingWindow(
            opens_at=period.open, closes_at=period.close, status=window_status
        ),
    }


def build_travel_segment(route: RoutingResult, departure_minutes: int) -> TravelSegment:
    duration_minutes = max(1, round(route.duration_seconds / 60))
    path = route.geometry
    if not path:
        path = [point for leg in route.legs for point in (leg.geometry or [])] or None
    instructions = route.instructions()
    return TravelSegment(
        mode=to_itinerary_mode(route.mode),
        duration_minutes=duration_minutes,
        distance_meters=route.distance_meters,
        departure_time=format_minutes(departure_minutes),
        arrival_time=format_minutes(departure_minutes + duration_minutes),
        instructions=instructions or None,
        path=path,
        is_estimated=route.is_estimated,
    )


def route_leg(
    routing: RoutingService,
    origin: Coordinates,
    destination: Coordinates,
    activity: PlaceActivity,
    departure_time: str,
    timezone: str,
    options: PlannerOptions,
) -> RoutingResult:
    """
    Pick the route for one leg.

    An explicit non-walk mode on the activity is kept. Otherwise walking is
    used unless it takes longer than the walk threshold, in which case the
    transit route wins. Any routing failure degrades to the heuristic
    estimate.
    """
    explicit_mode = activity.travel_from_previous.mode if activity.travel_from_previous else None

    try:
        if explicit_mode and explicit_mode != "walk":
            return routing.request_route(origin, destination, explicit_mode, departure_time, timezone)

        walk_route = routing.request_route(origin, destination, "walk", departure_time, timezone)
        walk_minutes = round(walk_route.duration_seconds / 60)
        if walk_minutes <= options.walk_threshold_minutes:
            return walk_route

        try:
            return routing.request_route(origin, destination, "transit", departure_time, timezone)
        except Exception as e:
            logger.warning(f"No transit route for {walk_minutes} min walk, keeping walk: {e}")
            return walk_route
    except Exception as e:
        logger.warning(f"Routing failed for '{activity.title}', using estimate: {e}")
        return routing.estimate_route(origin, destination, explicit_mode or "walk")


def create_city_transition(previous_day: ItineraryDay, current_day: ItineraryDay) -> CityTransition | None:
    if not previous_day.city_id or not current_day.city_id:
        return None
    travel_minutes = city_travel_minutes(previous_day.city_id, current_day.city_id)
    if travel_minutes is None:
        return None

    departure_time = (previous_day.bounds.end_time if previous_day.bounds else None) or "21:00"
    departure_minutes = parse_time_to_minutes(departure_time) or 0
    return CityTransition(
        from_city_id=previous_day.city_id,
        to_city_id=current_day.city_id,
        mode="train",
        duration_minutes=travel_minutes,
        departure_time=departure_time,
        arrival_time=format_minutes(departure_minutes + travel_minutes),
        notes=f"Traveling from {previous_day.city_id} to {current_day.city_id}",
    )


def plan_itinerary_day(
    day: ItineraryDay,
    routing: RoutingService,
    location_lookup: LocationLookup | None = None,
    options: PlannerOptions | None = None,
    timezone: str | None = None,
    start_point: Coordinates | None = None,
) -> ItineraryDay:
    """
    Compute travel segments and arrival/departure times for one day.

    Activities keep their order; the schedule is laid out from the day's
    start time with a transition buffer after each visit.
    """
    options = options or PlannerOptions()
    day_timezone = day.timezone or timezone or DEFAULT_TIMEZONE

    start_minutes = parse_time_to_minutes(day.bounds.start_time if day.bounds else None)
    if start_minutes is None:
        start_minutes = parse_time_to_minutes(options.default_day_start) or 9 * 60
    end_minutes = parse_time_to_minutes(day.bounds.end_time if day.bounds else None)
    if end_minutes is None:
        end_minutes = parse_time_to_minutes(options.default_day_end) or 21 * 60

    cursor = start_minutes
    last_place: PlaceActivity | None = None
    last_coordinates = start_point
    planned = []

    for original in day.activities:
        if isinstance(original, NoteActivity):
            planned.append(
                original.model_copy(
                    update={
                        "start_time": original.start_time or format_minutes(cursor),
                        "end_time": original.end_time
                        or format_minutes(cursor + (15 if original.notes else 5)),
                    }
                )
            )
            continue

        activity = original.model_copy(deep=True)
        activity.travel_to_next = None
        location = _lookup_location(activity, location_lookup)
        coordinates = _coordinates_for(activity, location)

        if last_coordinates and coordinates:
            route = route_leg(
                routing,
                last_coordinates,
                coordinates,
                activity,
                format_minutes(cursor),
                day_timezone,
                options,
            )
            segment = build_travel_segment(route, cursor)
            if last_place is not None:
                last_place.travel_to_next = segment
            activity.travel_from_previous = segment
            cursor += segment.duration_minutes
        else:
            activity.travel_from_previous = None

        visit_minutes = determine_visit_duration(activity, location, options)
        evaluation = evaluate_operating_window(
            _operating_period(location, day.weekday), cursor, visit_minutes
        )

        window = evaluation["window"]
        if window is not None and location and location.operating_hours:
            window.note = location.operating_hours.notes

        activity.duration_min = visit_minutes
        activity.schedule = ActivitySchedule(
            arrival_time=format_minutes(evaluation["arrival"]),
            departure_time=format_minutes(evaluation["departure"]),
            arrival_buffer_minutes=evaluation["arrival_buffer"],
            departure_buffer_minutes=evaluation["departure_buffer"],
            status=evaluation["status"],
            operating_window=window,
        )
        if window is not None:
            activity.operating_window = window

        cursor = evaluation["departure"] + options.transition_buffer_minutes
        if not activity.notes and location and location.short_description:
            activity.notes = location.short_description

        planned.append(activity)
        last_place = activity
        last_coordinates = coordinates

    if cursor > end_minutes and last_place is not None and last_place.schedule:
        last_place.schedule.status = "out-of-hours"
        last_place.schedule.departure_time = format_minutes(end_minutes)

    bounds = (day.bounds or DayBounds()).model_copy(
        update={
            "start_time": format_minutes(start_minutes),
            "end_time": format_minutes(end_minutes),
        }
    )
    return day.model_copy(
        update={"timezone": day_timezone, "bounds": bounds, "activities": planned}
    )


def plan_itinerary(
    itinerary: Itinerary,
    routing: RoutingService,
    location_lookup: LocationLookup | None = None,
    options: PlannerOptions | None = None,
    day_entry_points: dict[str, DayEntryPoint] | None = None,
) -> Itinerary:
    """Plan every day and add city transitions between days in different cities."""
    options = options or PlannerOptions()
    planned_days: list[ItineraryDay] = []

    for day in itinerary.days:
        entry_point = (day_entry_points or {}).get(day.id)
        planned_day = plan_itinerary_day(
            day,
            routing,
            location_lookup,
            options,
            timezone=itinerary.timezone,
            start_point=entry_point.start_point if entry_point else None,
        )

        previous_day = planned_days[-1] if planned_days else None
        if (
            previous_day
            and previous_day.city_id
            and planned_day.city_id
            and previous_day.city_id != planned_day.city_id
        ):
            transition = create_city_transition(previous_day, planned_day)
            if transition:
                planned_day.city_transition = transition

        planned_days.append(planned_day)

    return itinerary.model_copy(update={"days": planned_days})


# =============================================================================
# Reordering
# =============================================================================


def move_activity(
    day: ItineraryDay,
    activity_id: str,
    target_time_of_day: str | None = None,
    over_activity_id: str | None = None,
    target_index: int | None = None,
) -> ItineraryDay:
    """
    Move an activity within or between the morning/afternoon/evening sections.

    The drop position is either the activity it was dropped onto
    (over_activity_id) or an index inside the target section; without
    either the activity goes to the end of the section.

    Raises:
        ValueError: if the activity (or target section) does not exist
    """
    sections: dict[str, list] = {name: [] for name in SECTION_ORDER}
    for activity in day.activities:
        sections[activity.time_of_day].append(activity)

    moving = next((a for a in day.activities if a.id == activity_id), None)
    if moving is None:
        raise ValueError(f"Activity {activity_id} not found in day {day.id}")

    over = None
    if over_activity_id:
        over = next((a for a in day.activities if a.id == over_activity_id), None)

    source = moving.time_of_day
    target = target_time_of_day or (over.time_of_day if over else source)
    if target not in sections:
        raise ValueError(f"Unknown section: {target}")

    initial_target = list(sections[target])
    sections[source] = [a for a in sections[source] if a.id != activity_id]
    target_list = sections[target]

    if over is not None and over.id != activity_id:
        reference = initial_target if source == target else target_list
        over_index = next((i for i, a in enumerate(reference) if a.id == over.id), len(target_list))
    elif target_index is not None:
        over_index = max(0, target_index)
    else:
        over_index = len(target_list)

    target_list.insert(
        min(over_index, len(target_list)), moving.model_copy(update={"time_of_day": target})
    )

    activities = [a for name in SECTION_ORDER for a in sections[name]]
    return day.model_copy(update={"activities": activities})


def changed_leg_ids(before: ItineraryDay, after: ItineraryDay) -> list[str]:
    """Ids of place activities whose preceding place changed between two orderings."""
    def predecessors(day: ItineraryDay) -> dict[str, str | None]:
        places = day.place_activities()
        return {a.id: (places[i - 1].id if i > 0 else None) for i, a in enumerate(places)}

    old = predecessors(before)
    new = predecessors(after)
    return [activity_id for activity_id, prev_id in new.items() if old.get(activity_id, "") != prev_id]


def recalculate_adjacent_segments(
    day: ItineraryDay,
    activity_ids: list[str],
    routing: RoutingService,
    location_lookup: LocationLookup | None = None,
    timezone: str | None = None,
) -> ItineraryDay:
    """
    Recompute the incoming travel leg of each listed place activity.

    Legs are requested one after another; a failing request falls back to
    the heuristic estimate so one bad leg never blocks the others.
    """
    updated = day.model_copy(deep=True)
    places = updated.place_activities()
    day_timezone = updated.timezone or timezone or DEFAULT_TIMEZONE
    wanted = set(activity_ids)

    for index, activity in enumerate(places):
        if activity.id not in wanted:
            continue

        if index == 0:
            activity.travel_from_previous = None
            continue

        previous = places[index - 1]
        origin = _coordinates_for(previous, _lookup_location(previous, location_lookup))
        destination = _coordinates_for(activity, _lookup_location(activity, location_lookup))
        if not origin or not destination:
            activity.travel_from_previous = None
            previous.travel_to_next = None
            continue

        departure_time = (
            previous.schedule.departure_time
            if previous.schedule and previous.schedule.departure_time
            else "09:00"
        )
        mode = activity.travel_from_previous.mode if activity.travel_from_previous else "walk"
        try:
            route = routing.request_route(origin, destination, mode, departure_time, day_timezone)
        except Exception as e:
            logger.warning(f"Travel recalculation failed for '{activity.title}': {e}")
            route = routing.estimate_route(origin, destination, mode)

        segment = build_travel_segment(route, parse_time_to_minutes(departure_time) or 0)
        activity.travel_from_previous = segment
        previous.travel_to_next = segment

    if places:
        places[-1].travel_to_next = None
    return updated


def reorder_day(
    day: ItineraryDay,
    activity_id: str,
    routing: RoutingService,
    target_time_of_day: str | None = None,
    over_activity_id: str | None = None,
    target_index: int | None = None,
    location_lookup: LocationLookup | None = None,
) -> ItineraryDay:
    """Move an activity, then refresh every travel leg the move touched."""
    moved = move_activity(day, activity_id, target_time_of_day, over_activity_id, target_index)
    affected = changed_leg_ids(day, moved)
    if not affected:
        return moved
    return recalculate_adjacent_segments(moved, affected, routing, location_lookup)
