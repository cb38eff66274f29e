"""Core data types and the backend response mapper."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class ViewportRegion:
    center: Coordinate
    lat_delta: float
    lon_delta: float

    @property
    def average_span_degrees(self) -> float:
        return (self.lat_delta + self.lon_delta) / 2


@dataclass(frozen=True)
class Place:
    id: str
    emoji: str
    location: Coordinate
    display_name: Optional[str] = None
    rating: Optional[float] = None
    price_level: Optional[int] = None
    user_rating_count: Optional[int] = None
    open_now: Optional[bool] = None
    primary_type_display_name: Optional[str] = None
    photos: Tuple[str, ...] = ()
    reviews: Tuple[Dict[str, Any], ...] = field(default=(), compare=False)


@dataclass
class PlacesResponse:
    results: List[Place]
    count: int
    cache_hit: bool = False


# Google-style enum strings some backend revisions pass through untouched.
_PRICE_LEVEL_NAMES = {
    "PRICE_LEVEL_INEXPENSIVE": 1,
    "PRICE_LEVEL_MODERATE": 2,
    "PRICE_LEVEL_EXPENSIVE": 3,
    "PRICE_LEVEL_VERY_EXPENSIVE": 4,
}


def _text(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        return value.get("text") or value.get("value")
    if value is None:
        return None
    return str(value)


def _price_level(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, str):
        if value in _PRICE_LEVEL_NAMES:
            return _PRICE_LEVEL_NAMES[value]
        try:
            value = int(value)
        except ValueError:
            return None
    level = int(value)
    if level < 1 or level > 4:
        return None
    return level


def _photos(value: Any) -> Tuple[str, ...]:
    out: List[str] = []
    for item in value or []:
        if isinstance(item, dict):
            url = item.get("url") or item.get("uri") or item.get("name")
        else:
            url = item
        if url:
            out.append(str(url))
    return tuple(out)


# Adapter/mapper for backend place fields

def parse_place(raw: Dict[str, Any]) -> Optional[Place]:
    place_id = raw.get("id") or raw.get("placeId")
    if not place_id:
        return None
    location = raw.get("location") or raw.get("coordinate") or {}
    lat = location.get("latitude", location.get("lat"))
    lon = location.get("longitude", location.get("lng", location.get("lon")))
    if lat is None or lon is None:
        return None
    rating = raw.get("rating")
    user_rating_count = raw.get("userRatingCount")
    open_now = raw.get("openNow")
    if open_now is None:
        hours = raw.get("currentOpeningHours") or {}
        open_now = hours.get("openNow")
    return Place(
        id=str(place_id),
        emoji=str(raw.get("emoji") or ""),
        location=Coordinate(float(lat), float(lon)),
        display_name=_text(raw.get("displayName") or raw.get("name")),
        rating=float(rating) if rating is not None else None,
        price_level=_price_level(raw.get("priceLevel")),
        user_rating_count=int(user_rating_count) if user_rating_count is not None else None,
        open_now=bool(open_now) if open_now is not None else None,
        primary_type_display_name=_text(raw.get("primaryTypeDisplayName")),
        photos=_photos(raw.get("photos")),
        reviews=tuple(raw.get("reviews") or ()),
    )


def parse_places(items: Any) -> List[Place]:
    parsed: List[Place] = []
    for raw in items or []:
        if not isinstance(raw, dict):
            continue
        place = parse_place(raw)
        if place is not None:
            parsed.append(place)
    return parsed


def parse_places_response(payload: Dict[str, Any]) -> PlacesResponse:
    results = parse_places(payload.get("results") or payload.get("places"))
    count = payload.get("count")
    return PlacesResponse(
        results=results,
        count=int(count) if count is not None else len(results),
        cache_hit=bool(payload.get("cacheHit", False)),
    )


@dataclass(frozen=True)
class Review:
    author: str
    text: str
    rating: int


@dataclass(frozen=True)
class PlaceDetails:
    place_id: str
    display_name: Optional[str] = None
    rating: Optional[float] = None
    price_level: Optional[int] = None
    user_rating_count: Optional[int] = None
    open_now: Optional[bool] = None
    primary_type_display_name: Optional[str] = None
    editorial_summary: Optional[str] = None
    photos: Tuple[str, ...] = ()
    reviews: Tuple[Review, ...] = ()


def parse_review(raw: Dict[str, Any]) -> Review:
    author = raw.get("author") or raw.get("author_name") or raw.get("name") or ""
    attribution = raw.get("authorAttribution")
    if not author and isinstance(attribution, dict):
        author = attribution.get("displayName") or ""
    rating = raw.get("rating")
    try:
        rating = int(float(rating)) if rating is not None else 0
    except (TypeError, ValueError):
        rating = 0
    return Review(author=str(author), text=_text(raw.get("text")) or "", rating=rating)


def parse_place_details(place_id: str, payload: Dict[str, Any]) -> PlaceDetails:
    """Map a details payload; the body sits under ``data`` or ``placeDetails``."""
    raw = payload.get("data") or payload.get("placeDetails") or {}
    if not isinstance(raw, dict):
        raw = {}
    rating = raw.get("rating")
    user_rating_count = raw.get("userRatingCount")
    open_now = raw.get("openNow")
    return PlaceDetails(
        place_id=place_id,
        display_name=_text(raw.get("displayName") or raw.get("name")),
        rating=float(rating) if rating is not None else None,
        price_level=_price_level(raw.get("priceLevel")),
        user_rating_count=int(user_rating_count) if user_rating_count is not None else None,
        open_now=bool(open_now) if open_now is not None else None,
        primary_type_display_name=_text(raw.get("primaryTypeDisplayName")),
        editorial_summary=_text(raw.get("editorialSummary")),
        photos=_photos(raw.get("photos")),
        reviews=tuple(parse_review(r) for r in raw.get("reviews") or [] if isinstance(r, dict)),
    )


def parse_photos_response(payload: Dict[str, Any]) -> List[str]:
    return list(_photos(payload.get("data") or payload.get("photos")))
