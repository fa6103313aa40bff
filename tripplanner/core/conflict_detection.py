"""
Itinerary conflict detection.

Scans each day's place activities and reports:
- visits outside operating hours
- insufficient travel time between consecutive stops
- overlapping activities
- venues where a reservation is recommended
"""

from tripplanner.core.schemas import (
    ConflictSummary,
    Itinerary,
    ItineraryConflict,
    ItineraryConflictsResult,
    ItineraryDay,
    PlaceActivity,
)
from tripplanner.core.time_utils import format_clamped, parse_time_to_minutes

FINE_DINING_TAGS = ("fine_dining", "kaiseki", "omakase")


def is_outside_operating_hours(
    arrival_minutes: int, departure_minutes: int, opens_minutes: int, closes_minutes: int
) -> tuple[bool, str | None]:
    """
    Returns (is_outside, reason) where reason is "before_open" or "after_close".

    Windows closing before they open (e.g. 18:00-02:00) are treated as overnight.
    """
    if closes_minutes < opens_minutes:
        inside_early_morning = arrival_minutes < closes_minutes
        inside_evening = arrival_minutes >= opens_minutes
        if not inside_early_morning and not inside_evening:
            reason = "before_open" if arrival_minutes < opens_minutes else "after_close"
            return True, reason
        return False, None

    if arrival_minutes < opens_minutes:
        return True, "before_open"
    if departure_minutes > closes_minutes:
        return True, "after_close"
    return False, None


def detect_closed_conflict(
    activity: PlaceActivity, day_index: int, day_id: str
) -> ItineraryConflict | None:
    schedule = activity.schedule
    window = (schedule.operating_window if schedule else None) or activity.operating_window
    if not schedule or not schedule.arrival_time or not window:
        return None

    arrival = parse_time_to_minutes(schedule.arrival_time)
    departure = parse_time_to_minutes(schedule.departure_time)
    opens = parse_time_to_minutes(window.opens_at)
    closes = parse_time_to_minutes(window.closes_at)
    if arrival is None or departure is None or opens is None or closes is None:
        return None

    is_outside, reason = is_outside_operating_hours(arrival, departure, opens, closes)
    if not is_outside:
        return None

    if reason == "before_open":
        message = f"Scheduled arrival at {schedule.arrival_time}, but opens at {window.opens_at}"
    else:
        message = f"Closes at {window.closes_at}, but scheduled until {schedule.departure_time}"

    return ItineraryConflict(
        id=f"closed-{activity.id}",
        type="closed_during_visit",
        severity="error",
        activity_id=activity.id,
        activity_title=activity.title,
        day_id=day_id,
        day_index=day_index,
        title="Outside Operating Hours",
        message=message,
        icon="⚠️",
        details={
            "scheduled_time": schedule.arrival_time,
            "opens_at": window.opens_at,
            "closes_at": window.closes_at,
        },
    )


def detect_travel_time_conflicts(
    activities: list[PlaceActivity], day_index: int, day_id: str
) -> list[ItineraryConflict]:
    conflicts = []

    for previous, current in zip(activities, activities[1:]):
        travel_time = current.travel_from_previous.duration_minutes if current.travel_from_previous else 0
        if not travel_time:
            continue

        prev_departure = parse_time_to_minutes(previous.schedule.departure_time if previous.schedule else None)
        curr_arrival = parse_time_to_minutes(current.schedule.arrival_time if current.schedule else None)
        if prev_departure is None or curr_arrival is None:
            continue

        gap_minutes = curr_arrival - prev_departure
        if gap_minutes >= travel_time:
            continue

        if gap_minutes < 0:
            suggested_arrival = format_clamped(prev_departure + travel_time + 5)
            message = (
                f"Schedule overlaps by {abs(gap_minutes)} min. "
                f"Remove one activity or shift arrival to {suggested_arrival}."
            )
        else:
            suggested_departure = format_clamped(prev_departure - (travel_time - gap_minutes + 5))
            message = (
                f"Only {gap_minutes} min gap but travel takes ~{travel_time} min. "
                f"Leave by {suggested_departure} or switch to a faster mode."
            )

        conflicts.append(
            ItineraryConflict(
                id=f"travel-{current.id}",
                type="insufficient_travel_time",
                severity="error" if gap_minutes < 0 else "warning",
                activity_id=current.id,
                activity_title=current.title,
                day_id=day_id,
                day_index=day_index,
                title="Travel Time Issue",
                message=message,
                icon="🚃",
                details={
                    "travel_time": travel_time,
                    "gap_minutes": gap_minutes,
                    "required_gap": travel_time,
                    "related_activity_id": previous.id,
                    "related_activity_title": previous.title,
                },
            )
        )

    return conflicts


def detect_overlapping_activities(
    activities: list[PlaceActivity], day_index: int, day_id: str
) -> list[ItineraryConflict]:
    conflicts = []

    for previous, current in zip(activities, activities[1:]):
        prev_departure = parse_time_to_minutes(previous.schedule.departure_time if previous.schedule else None)
        curr_arrival = parse_time_to_minutes(current.schedule.arrival_time if current.schedule else None)
        if prev_departure is None or curr_arrival is None:
            continue

        if prev_departure > curr_arrival:
            overlap_minutes = prev_departure - curr_arrival
            conflicts.append(
                ItineraryConflict(
                    id=f"overlap-{current.id}",
                    type="overlapping_activities",
                    severity="error",
                    activity_id=current.id,
                    activity_title=current.title,
                    day_id=day_id,
                    day_index=day_index,
                    title="Schedule Overlap",
                    message=f"Overlaps with {previous.title} by {overlap_minutes} min",
                    icon="⚠️",
                    details={
                        "overlap_minutes": overlap_minutes,
                        "related_activity_id": previous.id,
                        "related_activity_title": previous.title,
                    },
                )
            )

    return conflicts


def detect_reservation_needed(
    activity: PlaceActivity, day_index: int, day_id: str
) -> ItineraryConflict | None:
    tags = [tag.lower() for tag in activity.tags]
    is_restaurant = any("restaurant" in tag or "dining" in tag for tag in tags)
    is_fine_dining = any(marker in tag for tag in tags for marker in FINE_DINING_TAGS)

    if activity.availability_status == "requires_reservation" or is_fine_dining:
        title = "Reservation Recommended"
        if is_fine_dining:
            message = "Fine dining venue - advance reservation strongly recommended"
        else:
            message = "This venue typically requires reservations"
    elif is_restaurant and activity.meal_type == "dinner":
        title = "Consider Reserving"
        message = "Popular dinner spot - reservations may be helpful"
    else:
        return None

    return ItineraryConflict(
        id=f"reservation-{activity.id}",
        type="reservation_recommended",
        severity="info",
        activity_id=activity.id,
        activity_title=activity.title,
        day_id=day_id,
        day_index=day_index,
        title=title,
        message=message,
        icon="📞",
    )


def detect_day_conflicts(day: ItineraryDay, day_index: int) -> list[ItineraryConflict]:
    conflicts: list[ItineraryConflict] = []
    places = day.place_activities()

    for activity in places:
        closed = detect_closed_conflict(activity, day_index, day.id)
        if closed:
            conflicts.append(closed)
        reservation = detect_reservation_needed(activity, day_index, day.id)
        if reservation:
            conflicts.append(reservation)

    conflicts.extend(detect_travel_time_conflicts(places, day_index, day.id))
    conflicts.extend(detect_overlapping_activities(places, day_index, day.id))
    return conflicts


def summarize(conflicts: list[ItineraryConflict]) -> ConflictSummary:
    return ConflictSummary(
        total=len(conflicts),
        errors=sum(1 for c in conflicts if c.severity == "error"),
        warnings=sum(1 for c in conflicts if c.severity == "warning"),
        info=sum(1 for c in conflicts if c.severity == "info"),
    )


def detect_itinerary_conflicts(itinerary: Itinerary) -> ItineraryConflictsResult:
    """Detect all conflicts in an itinerary, grouped by day id."""
    conflicts: list[ItineraryConflict] = []
    by_day: dict[str, list[ItineraryConflict]] = {}

    for day_index, day in enumerate(itinerary.days):
        day_conflicts = detect_day_conflicts(day, day_index)
        conflicts.extend(day_conflicts)
        if day_conflicts:
            by_day[day.id] = day_conflicts

    return ItineraryConflictsResult(conflicts=conflicts, by_day=by_day, summary=summarize(conflicts))


def get_day_conflicts(result: ItineraryConflictsResult, day_id: str) -> list[ItineraryConflict]:
    return result.by_day.get(day_id, [])


def get_activity_conflicts(result: ItineraryConflictsResult, activity_id: str) -> list[ItineraryConflict]:
    return [c for c in result.conflicts if c.activity_id == activity_id]


def has_activity_conflicts(result: ItineraryConflictsResult, activity_id: str) -> bool:
    return any(c.activity_id == activity_id for c in result.conflicts)


def get_day_conflict_summary(result: ItineraryConflictsResult, day_id: str) -> ConflictSummary:
    return summarize(get_day_conflicts(result, day_id))
