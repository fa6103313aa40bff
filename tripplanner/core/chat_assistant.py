from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Optional

from tripplanner.core.llm_provider import LLMProvider
from tripplanner.core.schemas import ChatMessage, Itinerary, PlaceActivity
from tripplanner.core.settings import get_settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a friendly travel assistant helping someone plan a trip in Japan. "
    "Give concise, practical answers: what to see, how to get around, where to eat, "
    "and how to fit things into their schedule. When the traveler has an itinerary, "
    "ground your suggestions in it and respect opening hours and travel times."
)

FALLBACK_REPLY = "Sorry, I couldn't reach the assistant just now. Please try again in a moment."


def summarize_itinerary(itinerary: Itinerary, max_activities_per_day: int = 8) -> str:
    """Compact text outline of an itinerary for the model's context."""
    lines = []
    for index, day in enumerate(itinerary.days):
        header = f"Day {index + 1}"
        if day.date_label:
            header += f" ({day.date_label})"
        if day.city_id:
            header += f" in {day.city_id}"
        lines.append(header + ":")

        places = day.place_activities()
        if not places:
            lines.append("  - nothing planned yet")
        for activity in places[:max_activities_per_day]:
            lines.append(f"  - {_describe_activity(activity)}")
        if len(places) > max_activities_per_day:
            lines.append(f"  - ...and {len(places) - max_activities_per_day} more")
    return "\n".join(lines)


def _describe_activity(activity: PlaceActivity) -> str:
    text = activity.title
    if activity.schedule and activity.schedule.arrival_time:
        text = f"{activity.schedule.arrival_time} {text}"
    else:
        text = f"[{activity.time_of_day}] {text}"
    if activity.neighborhood:
        text += f" ({activity.neighborhood})"
    return text


class ChatAssistant:
    """Trip planning chat on top of the configured LLM."""

    def __init__(self, provider: Optional[LLMProvider] = None, model: Optional[str] = None):
        if provider is None:
            provider = LLMProvider(model=model or get_settings().aisuite_model)
        self.provider = provider

    def build_messages(
        self, messages: list[ChatMessage], itinerary: Optional[Itinerary] = None
    ) -> list[dict[str, str]]:
        system = SYSTEM_PROMPT
        if itinerary and itinerary.days:
            system += "\n\nCurrent itinerary:\n" + summarize_itinerary(itinerary)
        history = [{"role": m.role, "content": m.content} for m in messages if m.role != "system"]
        return [{"role": "system", "content": system}] + history

    def stream_reply(
        self, messages: list[ChatMessage], itinerary: Optional[Itinerary] = None
    ) -> Iterator[str]:
        """Yield the assistant's reply in chunks; provider failures yield an apology."""
        prompt = self.build_messages(messages, itinerary)
        try:
            yield from self.provider.chat_stream(prompt, temperature=0.7)
        except Exception as e:
            logger.error(f"Chat completion failed: {e}", exc_info=True)
            yield FALLBACK_REPLY
