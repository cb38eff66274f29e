import pytest

from emojimap.models import parse_place, parse_places_response
from emojimap.places_client import parse_payload
from emojimap.http import InvalidResponseError


def test_parse_places_missing_fields():
    response = {
        "results": [
            {"id": "p1", "emoji": "x", "location": {"latitude": 1.0, "longitude": 2.0}},
            {"id": "p2"},
            {"placeId": "p3", "location": {"lat": 3.0, "lng": 4.0}},
            {"displayName": {"text": "no-id"}, "location": {"latitude": 1.0, "longitude": 2.0}},
        ],
        "count": 4,
        "cacheHit": True,
    }

    parsed = parse_places_response(response)
    assert [p.id for p in parsed.results] == ["p1", "p3"]
    assert parsed.results[0].display_name is None
    assert parsed.results[0].rating is None
    assert parsed.results[1].location.latitude == 3.0
    assert parsed.results[1].location.longitude == 4.0
    assert parsed.count == 4
    assert parsed.cache_hit is True


def test_parse_place_optional_fields():
    place = parse_place(
        {
            "id": "p1",
            "emoji": "e",
            "location": {"latitude": 52.2, "longitude": 21.0},
            "displayName": {"text": "Burger Bar"},
            "rating": "4.5",
            "priceLevel": "PRICE_LEVEL_MODERATE",
            "userRatingCount": 120,
            "currentOpeningHours": {"openNow": False},
            "primaryTypeDisplayName": {"text": "Restaurant"},
            "photos": [{"url": "https://img/1"}, "https://img/2", {}],
        }
    )

    assert place is not None
    assert place.display_name == "Burger Bar"
    assert place.rating == 4.5
    assert place.price_level == 2
    assert place.user_rating_count == 120
    assert place.open_now is False
    assert place.primary_type_display_name == "Restaurant"
    assert place.photos == ("https://img/1", "https://img/2")


def test_parse_price_level_out_of_range_is_dropped():
    place = parse_place({"id": "p1", "location": {"lat": 1.0, "lng": 1.0}, "priceLevel": 9})
    assert place is not None
    assert place.price_level is None


def test_count_defaults_to_result_length():
    parsed = parse_places_response({"places": [{"id": "a", "location": {"lat": 1, "lng": 1}}]})
    assert parsed.count == 1
    assert parsed.cache_hit is False


def test_parse_payload_requires_results():
    with pytest.raises(InvalidResponseError):
        parse_payload({"error": "boom"})
