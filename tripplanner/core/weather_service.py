"""
OpenWeatherMap forecasts for itinerary cities.
"""

import logging
from collections import Counter
from datetime import date, datetime, timedelta, timezone

import requests

from tripplanner.core.schemas import WeatherForecast
from tripplanner.core.settings import get_settings

logger = logging.getLogger(__name__)

FORECAST_URL = "https://api.openweathermap.org/data/2.5/forecast"

CITY_COORDINATES = {
    "kyoto": {"lat": 35.0116, "lng": 135.7681},
    "osaka": {"lat": 34.6937, "lng": 135.5023},
    "nara": {"lat": 34.6851, "lng": 135.8048},
    "tokyo": {"lat": 35.6762, "lng": 139.6503},
    "yokohama": {"lat": 35.4437, "lng": 139.638},
}

CONDITION_DESCRIPTIONS = {
    "clear": "Clear sky",
    "clouds": "Cloudy",
    "rain": "Rainy",
    "drizzle": "Light rain",
    "thunderstorm": "Thunderstorm",
    "snow": "Snowy",
    "mist": "Misty",
    "fog": "Foggy",
    "haze": "Hazy",
}


def map_weather_condition(code: int) -> str:
    """Map an OpenWeatherMap condition code onto a coarse condition name."""
    if 200 <= code < 300:
        return "thunderstorm"
    if 300 <= code < 400:
        return "drizzle"
    if 500 <= code < 600:
        return "rain"
    if 600 <= code < 700:
        return "snow"
    if 700 <= code < 800:
        if code in (701, 741):
            return "mist"
        if code == 721:
            return "haze"
        return "fog"
    if 801 <= code <= 804:
        return "clouds"
    return "clear"


def _date_range(start_date: str, end_date: str) -> list[str]:
    start = date.fromisoformat(start_date)
    end = date.fromisoformat(end_date)
    days = []
    current = start
    while current <= end:
        days.append(current.isoformat())
        current += timedelta(days=1)
    return days


def placeholder_forecast(start_date: str, end_date: str) -> dict[str, WeatherForecast]:
    """
    Deterministic stand-in forecast: clear skies, with rain on every fifth
    day of the year.
    """
    forecasts = {}
    for day_key in _date_range(start_date, end_date):
        day_of_year = date.fromisoformat(day_key).timetuple().tm_yday
        is_rainy = day_of_year % 5 == 0
        forecasts[day_key] = WeatherForecast(
            date=day_key,
            condition="rain" if is_rainy else "clear",
            description="Light rain" if is_rainy else "Clear sky",
            min_temp=15,
            max_temp=25,
            precipitation_mm=5.2 if is_rainy else 0.0,
            humidity=75 if is_rainy else 50,
            is_estimated=True,
        )
    return forecasts


def aggregate_forecast(items: list[dict]) -> dict[str, WeatherForecast]:
    """Group 3-hourly forecast entries by UTC date into daily forecasts."""
    by_date: dict[str, list[dict]] = {}
    for item in items:
        day_key = datetime.fromtimestamp(item["dt"], tz=timezone.utc).date().isoformat()
        weather = (item.get("weather") or [{}])[0]
        main = item.get("main") or {}
        by_date.setdefault(day_key, []).append(
            {
                "temp": main.get("temp"),
                "humidity": main.get("humidity") or 0,
                "condition": map_weather_condition(weather.get("id", 800)),
                "precipitation": (item.get("rain") or {}).get("3h")
                or (item.get("snow") or {}).get("3h")
                or 0,
            }
        )

    forecasts = {}
    for day_key, entries in by_date.items():
        temps = [e["temp"] for e in entries if e["temp"] is not None]
        conditions = [e["condition"] for e in entries]
        # Any rain in the day wins; otherwise the most common condition
        if any(c in ("rain", "drizzle") for c in conditions):
            condition = "rain"
        else:
            condition = Counter(conditions).most_common(1)[0][0]

        forecasts[day_key] = WeatherForecast(
            date=day_key,
            condition=condition,
            description=CONDITION_DESCRIPTIONS.get(condition, "Clear sky"),
            min_temp=round(min(temps)) if temps else None,
            max_temp=round(max(temps)) if temps else None,
            precipitation_mm=round(sum(e["precipitation"] for e in entries), 1),
            humidity=round(sum(e["humidity"] for e in entries) / len(entries)),
        )
    return forecasts


class WeatherService:
    def __init__(self, api_key: str | None = None, timeout: float = 10):
        self.api_key = api_key
        self.timeout = timeout

    def fetch_forecast(self, city_id: str, start_date: str, end_date: str) -> dict[str, WeatherForecast]:
        """
        Daily forecasts keyed by ISO date for the given range.

        Falls back to the placeholder forecast when no API key is configured,
        the city is unknown, or the request fails.
        """
        if not self.api_key:
            logger.warning("OpenWeatherMap API key not configured, using placeholder forecast")
            return placeholder_forecast(start_date, end_date)

        coords = CITY_COORDINATES.get(city_id.lower())
        if not coords:
            logger.warning(f"Unknown city id '{city_id}', using placeholder forecast")
            return placeholder_forecast(start_date, end_date)

        params = {
            "lat": coords["lat"],
            "lon": coords["lng"],
            "appid": self.api_key,
            "units": "metric",
        }
        try:
            response = requests.get(FORECAST_URL, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Failed to fetch weather forecast for {city_id}: {e}")
            return placeholder_forecast(start_date, end_date)

        wanted = set(_date_range(start_date, end_date))
        forecasts = aggregate_forecast(data.get("list", []))
        return {key: value for key, value in forecasts.items() if key in wanted}


def get_weather_service() -> WeatherService:
    return WeatherService(api_key=get_settings().openweather_api_key or None)
