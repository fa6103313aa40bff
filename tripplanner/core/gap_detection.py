"""
Gap detection for smart suggestions.

Analyzes a planned itinerary to find missing meals, light days, long idle
stretches, timing issues, repetitive days and weather-sensitive plans, and
turns each finding into an actionable suggestion. Important etiquette and
practical tips from the guidance collection are surfaced alongside.
"""

from typing import Callable

from tripplanner.core.food_detection import get_covered_meal_types
from tripplanner.core.schemas import (
    DetectedGap,
    GapDetectionOptions,
    Itinerary,
    ItineraryDay,
    Location,
    Season,
    TravelGuidance,
    WeatherForecast,
)
from tripplanner.core.time_utils import format_duration_label, parse_time_to_minutes

LONG_GAP_THRESHOLD = 150
EARLY_END_THRESHOLD = 17 * 60
LATE_START_THRESHOLD = 11 * 60
IMBALANCE_THRESHOLD = 3
LONG_WALK_MINUTES = 20

GAP_PRIORITY = {
    "reservation_alert": -1,
    "meal": 0,
    "weather_swap": 0.5,
    "late_start": 1,
    "early_end": 1,
    "long_gap": 2,
    "category_imbalance": 3,
    "transport": 4,
    "experience": 5,
    "guidance": 6,
}

CATEGORY_ALTERNATIVES = {
    "temple": ["garden", "shopping", "restaurant", "museum"],
    "shrine": ["garden", "market", "restaurant", "nature"],
    "museum": ["garden", "shopping", "cafe", "nature"],
    "shopping": ["temple", "garden", "museum", "nature"],
    "restaurant": ["temple", "garden", "museum", "nature"],
    "garden": ["temple", "museum", "shopping", "cafe"],
    "nature": ["temple", "museum", "shopping", "restaurant"],
    "landmark": ["garden", "shopping", "restaurant", "museum"],
    "onsen": ["temple", "garden", "nature", "cafe"],
}

CATEGORY_LABELS = {
    "temple": "temples",
    "shrine": "shrines",
    "museum": "museums",
    "shopping": "shopping spots",
    "restaurant": "restaurants",
    "garden": "gardens",
    "nature": "nature spots",
    "landmark": "landmarks",
    "cafe": "cafes",
    "onsen": "onsen spots",
    "bar": "bars",
}

# Tag aliases resolved to a canonical activity category
CATEGORY_TAG_ALIASES = {
    "temples": "temple",
    "buddhist_temple": "temple",
    "shrines": "shrine",
    "shinto_shrine": "shrine",
    "museums": "museum",
    "art_gallery": "museum",
    "gallery": "museum",
    "shops": "shopping",
    "shopping_mall": "shopping",
    "dining": "restaurant",
    "gardens": "garden",
    "park": "nature",
    "hiking": "nature",
    "hot_spring": "onsen",
    "spa": "onsen",
    "tourist_attraction": "landmark",
    "castle": "landmark",
    "coffee": "cafe",
}

OUTDOOR_TAGS = {"park", "garden", "nature", "viewpoint", "beach", "hiking", "outdoor"}
INDOOR_ALTERNATIVES = ["museum", "shopping", "cafe", "onsen"]
BAD_WEATHER_CONDITIONS = {"rain", "drizzle", "snow", "thunderstorm"}

GUIDANCE_MIN_PRIORITY = 7
HIGH_PRIORITY_GUIDANCE_TYPES = {"etiquette", "practical", "accessibility", "food_culture", "cultural_context"}

GUIDANCE_ICONS = {
    "etiquette": "BookOpen",
    "practical": "Info",
    "environmental": "Leaf",
    "seasonal": "Calendar",
    "accessibility": "Accessibility",
    "photography": "Camera",
    "budget": "PiggyBank",
    "nightlife": "Moon",
    "family": "Users",
    "solo": "User",
    "food_culture": "UtensilsCrossed",
    "cultural_context": "BookMarked",
}

# Categories a universal tip without its own categories is limited to
GUIDANCE_TYPE_CATEGORIES = {
    "food_culture": ["restaurant", "cafe", "bar", "market"],
    "nightlife": ["bar", "entertainment", "restaurant"],
    "cultural_context": ["temple", "shrine", "culture", "landmark", "historic_site", "castle", "museum"],
    "etiquette": ["temple", "shrine", "restaurant", "onsen", "wellness", "culture"],
    "budget": ["restaurant", "shopping", "entertainment", "market", "cafe"],
    "practical": [
        "restaurant", "cafe", "bar", "market", "shopping", "temple", "shrine",
        "museum", "entertainment", "onsen", "wellness", "landmark", "park",
        "culture", "historic_site", "castle",
    ],
    "seasonal": ["nature", "park", "garden", "beach", "shrine", "temple", "viewpoint"],
    "environmental": ["nature", "park", "garden", "beach"],
    "photography": ["shrine", "temple", "viewpoint", "landmark", "garden", "nature", "castle", "park"],
    "accessibility": ["museum", "temple", "shrine", "park", "restaurant", "entertainment", "landmark"],
    "family": ["park", "entertainment", "museum", "aquarium", "zoo", "beach", "nature"],
    "solo": ["restaurant", "cafe", "bar", "onsen", "wellness", "entertainment"],
}


def resolve_activity_category(tags: list[str]) -> str | None:
    """Canonical category for an activity from its tags, if one is recognizable."""
    for tag in tags:
        normalized = tag.lower().replace("-", "_").replace(" ", "_")
        if normalized in CATEGORY_LABELS:
            return normalized
        alias = CATEGORY_TAG_ALIASES.get(normalized)
        if alias:
            return alias
    return None


def _time_label(minutes: int) -> str:
    return f"{minutes // 60}:{minutes % 60:02d}"


def detect_meal_gaps(day: ItineraryDay, day_index: int) -> list[DetectedGap]:
    gaps = []
    activities = day.place_activities()
    covered = get_covered_meal_types(activities)
    city_name = day.city_id or "the area"

    morning = [a for a in activities if a.time_of_day == "morning"]

    if morning and "breakfast" not in covered:
        first = morning[0]
        nearby = first.neighborhood or city_name
        gaps.append(
            DetectedGap(
                id=f"meal-breakfast-{day.id}",
                type="meal",
                day_index=day_index,
                day_id=day.id,
                title="Add breakfast",
                description=f"Fuel up before {first.title} with a local breakfast spot",
                icon="Coffee",
                action={
                    "type": "add_meal",
                    "meal_type": "breakfast",
                    "time_slot": "morning",
                    "context": {"nearby_area": nearby},
                },
            )
        )
        gaps.append(
            DetectedGap(
                id=f"quick-breakfast-{day.id}",
                type="meal",
                day_index=day_index,
                day_id=day.id,
                title="Quick breakfast (konbini)",
                description="Grab onigiri, sandwiches, or a hot drink from a convenience store",
                icon="ShoppingBag",
                action={
                    "type": "quick_meal",
                    "meal_type": "breakfast",
                    "time_slot": "morning",
                    "context": {"nearby_area": nearby},
                },
            )
        )

    daytime = [a for a in activities if a.time_of_day in ("morning", "afternoon")]

    if len(daytime) >= 2 and "lunch" not in covered:
        last_morning = morning[-1] if morning else None
        first_afternoon = next((a for a in activities if a.time_of_day == "afternoon"), None)

        description = f"Refuel with lunch in {city_name}"
        if last_morning:
            description = f"After visiting {last_morning.title}, you might be hungry. Add lunch nearby?"
        elif first_afternoon:
            description = f"Add lunch before heading to {first_afternoon.title}"

        context = {
            "previous_activity_name": last_morning.title if last_morning else None,
            "nearby_area": (last_morning.neighborhood if last_morning else None) or city_name,
        }
        after_id = last_morning.id if last_morning else None
        gaps.append(
            DetectedGap(
                id=f"meal-lunch-{day.id}",
                type="meal",
                day_index=day_index,
                day_id=day.id,
                title="Add lunch",
                description=description,
                icon="Utensils",
                action={
                    "type": "add_meal",
                    "meal_type": "lunch",
                    "time_slot": "afternoon",
                    "after_activity_id": after_id,
                    "context": context,
                },
            )
        )
        gaps.append(
            DetectedGap(
                id=f"quick-lunch-{day.id}",
                type="meal",
                day_index=day_index,
                day_id=day.id,
                title="Quick lunch (konbini)",
                description="Save time with bento, onigiri, or noodles from 7-Eleven, Lawson, or FamilyMart",
                icon="ShoppingBag",
                action={
                    "type": "quick_meal",
                    "meal_type": "lunch",
                    "time_slot": "afternoon",
                    "after_activity_id": after_id,
                    "context": dict(context),
                },
            )
        )

    if activities and "dinner" not in covered:
        afternoon = [a for a in activities if a.time_of_day == "afternoon"]
        context_activity = afternoon[-1] if afternoon else activities[-1]
        context = {
            "previous_activity_name": context_activity.title,
            "nearby_area": context_activity.neighborhood or city_name,
        }
        gaps.append(
            DetectedGap(
                id=f"meal-dinner-{day.id}",
                type="meal",
                day_index=day_index,
                day_id=day.id,
                title="Add dinner",
                description=f"After {context_activity.title}, find a great dinner spot in {city_name}",
                icon="UtensilsCrossed",
                action={
                    "type": "add_meal",
                    "meal_type": "dinner",
                    "time_slot": "evening",
                    "context": context,
                },
            )
        )
        gaps.append(
            DetectedGap(
                id=f"quick-dinner-{day.id}",
                type="meal",
                day_index=day_index,
                day_id=day.id,
                title="Quick dinner (konbini)",
                description="Tired? Grab a hot bento or nikuman from a konbini to eat at your hotel",
                icon="ShoppingBag",
                action={
                    "type": "quick_meal",
                    "meal_type": "dinner",
                    "time_slot": "evening",
                    "context": dict(context),
                },
            )
        )

    return gaps


def detect_transport_gaps(day: ItineraryDay, day_index: int) -> list[DetectedGap]:
    gaps = []
    activities = day.place_activities()

    for current, following in zip(activities, activities[1:]):
        segment = current.travel_to_next or following.travel_from_previous
        if segment and segment.mode == "walk" and segment.duration_minutes > LONG_WALK_MINUTES:
            gaps.append(
                DetectedGap(
                    id=f"transport-{current.id}-{following.id}",
                    type="transport",
                    day_index=day_index,
                    day_id=day.id,
                    title="Consider transit",
                    description=f"{segment.duration_minutes} min walk between stops - take the train?",
                    icon="Train",
                    action={
                        "type": "add_transport",
                        "from_activity_id": current.id,
                        "to_activity_id": following.id,
                    },
                )
            )

    return gaps


def detect_experience_gaps(day: ItineraryDay, day_index: int) -> list[DetectedGap]:
    gaps = []
    places = [a for a in day.place_activities() if not a.meal_type]

    if len(places) <= 2:
        gaps.append(
            DetectedGap(
                id=f"experience-{day.id}",
                type="experience",
                day_index=day_index,
                day_id=day.id,
                title="Add more experiences",
                description=f"Day {day_index + 1} has room for more activities",
                icon="Plus",
                action={"type": "add_experience", "time_slot": "afternoon"},
            )
        )

    has_morning = any(a.time_of_day == "morning" for a in places)
    has_afternoon = any(a.time_of_day == "afternoon" for a in places)
    has_evening = any(a.time_of_day == "evening" for a in places)

    if places and not has_morning:
        gaps.append(
            DetectedGap(
                id=f"experience-morning-{day.id}",
                type="experience",
                day_index=day_index,
                day_id=day.id,
                title="Start earlier",
                description="Add a morning activity to make the most of the day",
                icon="Sunrise",
                action={"type": "add_experience", "time_slot": "morning"},
            )
        )

    if has_afternoon and not has_evening:
        gaps.append(
            DetectedGap(
                id=f"experience-evening-{day.id}",
                type="experience",
                day_index=day_index,
                day_id=day.id,
                title="Extend your day",
                description="Add an evening activity or night views",
                icon="Moon",
                action={"type": "add_experience", "time_slot": "evening"},
            )
        )

    return gaps


def detect_long_gaps(day: ItineraryDay, day_index: int) -> list[DetectedGap]:
    gaps = []
    activities = day.place_activities()

    for current, following in zip(activities, activities[1:]):
        departure = parse_time_to_minutes(current.schedule.departure_time if current.schedule else None)
        arrival = parse_time_to_minutes(following.schedule.arrival_time if following.schedule else None)
        if departure is None or arrival is None:
            continue

        travel = following.travel_from_previous.duration_minutes if following.travel_from_previous else 0
        free_time = arrival - departure - travel
        if free_time < LONG_GAP_THRESHOLD:
            continue

        label = format_duration_label(free_time)
        gaps.append(
            DetectedGap(
                id=f"long-gap-{current.id}-{following.id}",
                type="long_gap",
                day_index=day_index,
                day_id=day.id,
                title=f"{label} free",
                description=f"You have {label} free after {current.title}. Want to add something nearby?",
                icon="Clock",
                action={
                    "type": "fill_long_gap",
                    "after_activity_id": current.id,
                    "gap_minutes": free_time,
                    "time_slot": current.time_of_day,
                    "context": {
                        "previous_activity_name": current.title,
                        "next_activity_name": following.title,
                        "nearby_area": current.neighborhood,
                    },
                },
            )
        )

    return gaps


def detect_early_end(day: ItineraryDay, day_index: int) -> list[DetectedGap]:
    activities = day.place_activities()
    if not activities:
        return []

    last = activities[-1]
    departure = parse_time_to_minutes(last.schedule.departure_time if last.schedule else None)
    if departure is None or departure >= EARLY_END_THRESHOLD:
        return []

    label = _time_label(departure)
    return [
        DetectedGap(
            id=f"early-end-{day.id}",
            type="early_end",
            day_index=day_index,
            day_id=day.id,
            title="Day ends early",
            description=f"Day {day_index + 1} ends at {label}. Extend into the evening?",
            icon="Sunset",
            action={
                "type": "extend_day",
                "direction": "evening",
                "current_end_time": label,
                "context": {"current_last_activity": last.title},
            },
        )
    ]


def detect_late_start(day: ItineraryDay, day_index: int) -> list[DetectedGap]:
    activities = day.place_activities()
    if not activities:
        return []

    first = activities[0]
    arrival = parse_time_to_minutes(first.schedule.arrival_time if first.schedule else None)
    if arrival is None or arrival < LATE_START_THRESHOLD:
        return []

    label = _time_label(arrival)
    return [
        DetectedGap(
            id=f"late-start-{day.id}",
            type="late_start",
            day_index=day_index,
            day_id=day.id,
            title="Late start",
            description=f"Day {day_index + 1} starts at {label}. Add a morning activity?",
            icon="Sunrise",
            action={
                "type": "extend_day",
                "direction": "morning",
                "context": {"current_first_activity": first.title},
            },
        )
    ]


def detect_category_imbalance(day: ItineraryDay, day_index: int) -> list[DetectedGap]:
    places = [a for a in day.place_activities() if not a.meal_type]
    if len(places) < IMBALANCE_THRESHOLD:
        return []

    counts: dict[str, int] = {}
    for activity in places:
        category = resolve_activity_category(activity.tags) or "unknown"
        counts[category] = counts.get(category, 0) + 1

    gaps = []
    for category, count in counts.items():
        if count < IMBALANCE_THRESHOLD or category == "unknown":
            continue
        label = CATEGORY_LABELS.get(category, category)
        gaps.append(
            DetectedGap(
                id=f"category-imbalance-{day.id}-{category}",
                type="category_imbalance",
                day_index=day_index,
                day_id=day.id,
                title=f"Lots of {label}",
                description=f"Day {day_index + 1} has {count} {label} activities. Mix in something different?",
                icon="Shuffle",
                action={
                    "type": "diversify_categories",
                    "dominant_category": category,
                    "suggested_categories": CATEGORY_ALTERNATIVES.get(
                        category, ["garden", "cafe", "shopping"]
                    ),
                    "time_slot": "afternoon",
                },
            )
        )

    return gaps


def detect_weather_swap(
    day: ItineraryDay, day_index: int, forecast: WeatherForecast | None
) -> list[DetectedGap]:
    """Suggest indoor alternatives for outdoor stops on wet or stormy days."""
    if not forecast or forecast.condition not in BAD_WEATHER_CONDITIONS:
        return []

    outdoor = [
        a for a in day.place_activities() if any(tag.lower() in OUTDOOR_TAGS for tag in a.tags)
    ]
    if not outdoor:
        return []

    names = ", ".join(a.title for a in outdoor[:3])
    return [
        DetectedGap(
            id=f"weather-swap-{day.id}",
            type="weather_swap",
            day_index=day_index,
            day_id=day.id,
            title=f"{forecast.description} expected",
            description=f"Day {day_index + 1} has outdoor plans ({names}). Swap for something indoors?",
            icon="CloudRain",
            action={
                "type": "swap_for_indoor",
                "activity_ids": [a.id for a in outdoor],
                "suggested_categories": INDOOR_ALTERNATIVES,
                "condition": forecast.condition,
            },
        )
    ]


def detect_weather_swaps(
    itinerary: Itinerary, forecasts: dict[str, WeatherForecast]
) -> list[DetectedGap]:
    """Weather swap suggestions for every day; forecasts are keyed by day id."""
    gaps = []
    for day_index, day in enumerate(itinerary.days):
        gaps.extend(detect_weather_swap(day, day_index, forecasts.get(day.id)))
    return gaps


def prioritize(gaps: list[DetectedGap]) -> list[DetectedGap]:
    return sorted(gaps, key=lambda gap: GAP_PRIORITY.get(gap.type, 10))


def detect_gaps(
    itinerary: Itinerary,
    options: GapDetectionOptions | None = None,
    forecasts: dict[str, WeatherForecast] | None = None,
) -> list[DetectedGap]:
    """
    Analyze an itinerary and detect all gaps.

    Each day's findings are sorted by priority and capped at
    ``options.max_gaps_per_day``.
    """
    options = options or GapDetectionOptions()
    all_gaps: list[DetectedGap] = []

    for day_index, day in enumerate(itinerary.days):
        day_gaps: list[DetectedGap] = []

        if options.include_meals:
            day_gaps.extend(detect_meal_gaps(day, day_index))
        if options.include_transport:
            day_gaps.extend(detect_transport_gaps(day, day_index))
        if options.include_experiences:
            day_gaps.extend(detect_experience_gaps(day, day_index))
        if options.include_long_gaps:
            day_gaps.extend(detect_long_gaps(day, day_index))
        if options.include_timing_gaps:
            day_gaps.extend(detect_early_end(day, day_index))
            day_gaps.extend(detect_late_start(day, day_index))
        if options.include_category_balance:
            day_gaps.extend(detect_category_imbalance(day, day_index))
        if forecasts:
            day_gaps.extend(detect_weather_swap(day, day_index, forecasts.get(day.id)))

        all_gaps.extend(prioritize(day_gaps)[: options.max_gaps_per_day])

    return all_gaps


def detect_reservation_needs(
    itinerary: Itinerary, location_lookup: Callable[[str], Location | None]
) -> list[DetectedGap]:
    """
    Single trip-level prompt listing every stop that requires or recommends
    booking ahead. Attached to the first day so it shows first.
    """
    locations = []
    for day_index, day in enumerate(itinerary.days):
        for activity in day.place_activities():
            if not activity.location_id:
                continue
            location = location_lookup(activity.location_id)
            if location and location.reservation_info:
                locations.append(
                    {
                        "name": activity.title,
                        "day_index": day_index,
                        "reservation_info": location.reservation_info,
                    }
                )

    if not locations:
        return []

    required = sum(1 for loc in locations if loc["reservation_info"] == "required")
    if required:
        plural = "s" if required > 1 else ""
        verb = "requires" if required == 1 else "require"
        description = f"{required} spot{plural} on your trip {verb} a reservation. Book before you go."
    else:
        plural = "s" if len(locations) > 1 else ""
        description = f"{len(locations)} spot{plural} recommend booking ahead."

    first_day_id = itinerary.days[0].id if itinerary.days else "day-0"
    return [
        DetectedGap(
            id="reservation-alert-trip",
            type="reservation_alert",
            day_index=0,
            day_id=first_day_id,
            title="Book ahead",
            description=description,
            icon="CalendarCheck",
            action={"type": "acknowledge_reservation", "locations": locations},
        )
    ]


def filter_dismissed(gaps: list[DetectedGap], dismissed_ids: set[str] | list[str]) -> list[DetectedGap]:
    dismissed = set(dismissed_ids)
    return [gap for gap in gaps if gap.id not in dismissed]


def season_for_month(month: int) -> Season:
    if 3 <= month <= 5:
        return "spring"
    if 6 <= month <= 8:
        return "summer"
    if 9 <= month <= 11:
        return "fall"
    return "winter"


def select_day_guidance(
    guidance: list[TravelGuidance],
    categories: list[str],
    city: str | None = None,
    region: str | None = None,
    season: Season | None = None,
) -> list[TravelGuidance]:
    """
    General tips that apply to a day, deduplicated by title.

    Location-specific tips are skipped (they belong on place cards). Tips
    scoped to cities, regions or seasons only apply when the day matches.
    Universal tips still need a category overlap when their guidance type
    has a category affinity.
    """
    day_categories = {category.lower() for category in categories}
    seen_titles: set[str] = set()
    selected = []

    for tip in guidance:
        title = tip.title.lower()
        if title in seen_titles or tip.location_ids:
            continue
        if tip.cities and (not city or city.lower() not in {c.lower() for c in tip.cities}):
            continue
        if tip.regions and (not region or region.lower() not in {r.lower() for r in tip.regions}):
            continue
        if tip.seasons and season not in tip.seasons:
            continue

        relevant = False
        if tip.is_universal:
            affinity = tip.categories or GUIDANCE_TYPE_CATEGORIES.get(tip.guidance_type, [])
            if not affinity:
                relevant = True
            elif day_categories:
                relevant = any(category.lower() in day_categories for category in affinity)
        if not relevant and tip.categories and day_categories:
            relevant = any(category.lower() in day_categories for category in tip.categories)
        if not relevant and (tip.cities or tip.regions):
            relevant = True

        if relevant:
            seen_titles.add(title)
            selected.append(tip)
    return selected


def detect_guidance_gaps(
    day: ItineraryDay,
    day_index: int,
    fetch_guidance: Callable[[], list[TravelGuidance]],
    season: Season | None = None,
    max_per_day: int = 2,
) -> list[DetectedGap]:
    """High-priority etiquette and practical tips for the day's activities."""
    categories = sorted(
        {category for category in (resolve_activity_category(a.tags) for a in day.place_activities()) if category}
    )
    tips = select_day_guidance(fetch_guidance(), categories, city=day.city_id, season=season)
    important = [
        tip
        for tip in tips
        if tip.guidance_type in HIGH_PRIORITY_GUIDANCE_TYPES and tip.priority >= GUIDANCE_MIN_PRIORITY
    ]

    return [
        DetectedGap(
            id=f"guidance-{day.id}-{tip.id}",
            type="guidance",
            day_index=day_index,
            day_id=day.id,
            title=tip.title,
            description=tip.summary,
            icon=GUIDANCE_ICONS.get(tip.guidance_type, "Info"),
            action={
                "type": "acknowledge_guidance",
                "guidance_id": tip.id,
                "guidance_type": tip.guidance_type,
            },
        )
        for tip in important[:max_per_day]
    ]
