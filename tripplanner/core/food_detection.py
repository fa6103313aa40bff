"""
Food activity detection and meal type inference for smart suggestions.
"""

from tripplanner.core.schemas import PlaceActivity
from tripplanner.core.time_utils import parse_time_to_minutes

FOOD_TAGS = {
    "dining",
    "restaurant",
    "food",
    "cafe",
    "bakery",
    "ramen",
    "sushi",
    "izakaya",
    "coffee",
    "tea",
    "dessert",
    "sweets",
    "bar",
    "pub",
    "brewery",
    "steak",
    "yakiniku",
    "tempura",
    "udon",
    "soba",
    "curry",
    "kaiseki",
    "wagyu",
    "okonomiyaki",
    "takoyaki",
    "tonkatsu",
    "gyudon",
    "bento",
}

MEAL_TYPE_TAGS = {
    "breakfast": "breakfast",
    "brunch": "breakfast",
    "lunch": "lunch",
    "dinner": "dinner",
    "snack": "snack",
}

# Typical serving windows in minutes since midnight (inclusive)
MEAL_WINDOWS = {
    "breakfast": (6 * 60, 10 * 60 + 30),
    "lunch": (11 * 60, 14 * 60 + 30),
    "dinner": (17 * 60, 21 * 60 + 30),
}

TIME_OF_DAY_MEALS = {
    "morning": "breakfast",
    "afternoon": "lunch",
    "evening": "dinner",
}


def is_food_activity(activity: PlaceActivity) -> bool:
    if activity.meal_type:
        return True
    for tag in activity.tags:
        normalized = tag.lower()
        # Partial matches count too, e.g. "japanese-restaurant"
        if normalized in FOOD_TAGS or any(food_tag in normalized for food_tag in FOOD_TAGS):
            return True
    return False


def get_meal_type_for_time(time: str | None) -> str | None:
    """Meal whose serving window contains the given time, if any."""
    minutes = parse_time_to_minutes(time)
    if minutes is None:
        return None
    for meal_type, (start, end) in MEAL_WINDOWS.items():
        if start <= minutes <= end:
            return meal_type
    return None


def infer_meal_type_from_time(time: str | None) -> str | None:
    minutes = parse_time_to_minutes(time)
    if minutes is None:
        return None
    if minutes < 11 * 60:
        return "breakfast"
    if minutes < 16 * 60:
        return "lunch"
    return "dinner"


def infer_meal_type(activity: PlaceActivity) -> str | None:
    """
    Infer which meal a food activity covers.

    Order: explicit meal type, meal tags, arrival time (serving windows then
    broader ranges), time of day. Non-food activities return None.
    """
    if not is_food_activity(activity):
        return None

    if activity.meal_type:
        return activity.meal_type

    for tag in activity.tags:
        meal_type = MEAL_TYPE_TAGS.get(tag.lower())
        if meal_type:
            return meal_type

    arrival_time = activity.schedule.arrival_time if activity.schedule else None
    if arrival_time:
        return get_meal_type_for_time(arrival_time) or infer_meal_type_from_time(arrival_time)

    return TIME_OF_DAY_MEALS[activity.time_of_day]


def get_covered_meal_types(activities: list[PlaceActivity]) -> set[str]:
    """Meals already covered by food activities; snacks never count."""
    covered = set()
    for activity in activities:
        meal_type = infer_meal_type(activity)
        if meal_type and meal_type != "snack":
            covered.add(meal_type)
    return covered
