import pytest
import requests

from tripplanner.core import places_service
from tripplanner.core.places_service import ENRICHMENT_FIELD_MASK, PlacesService


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error", response=self)

    def json(self):
        return self.payload


def test_requires_api_key(monkeypatch):
    monkeypatch.setattr(places_service, "get_settings", lambda: type("S", (), {"google_maps_api_key": ""})())
    with pytest.raises(ValueError):
        PlacesService()


def test_english_details_request(monkeypatch):
    captured = {}

    def fake_get(url, headers=None, params=None, timeout=None):
        captured.update(url=url, headers=headers, params=params)
        return FakeResponse({"displayName": {"text": "Kinkaku-ji"}})

    monkeypatch.setattr(places_service.requests, "get", fake_get)
    details = PlacesService(api_key="test-key").get_english_details("place-1")

    assert details["displayName"]["text"] == "Kinkaku-ji"
    assert captured["url"].endswith("/places/place-1")
    assert captured["headers"]["X-Goog-Api-Key"] == "test-key"
    assert "addressComponents" in captured["headers"]["X-Goog-FieldMask"]
    assert captured["params"] == {"languageCode": "en"}


def test_enrichment_uses_enrichment_mask(monkeypatch):
    masks = []

    def fake_get(url, headers=None, params=None, timeout=None):
        masks.append(headers["X-Goog-FieldMask"])
        return FakeResponse({"primaryType": "park"})

    monkeypatch.setattr(places_service.requests, "get", fake_get)
    assert PlacesService(api_key="k").get_enrichment_data("p")["primaryType"] == "park"
    assert masks == [ENRICHMENT_FIELD_MASK]


@pytest.mark.parametrize(
    "outcome",
    [FakeResponse({}, status_code=404), requests.exceptions.ConnectionError("offline")],
)
def test_failures_return_none(monkeypatch, outcome):
    def fake_get(*args, **kwargs):
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(places_service.requests, "get", fake_get)
    assert PlacesService(api_key="k").get_place_details("p", "id") is None
