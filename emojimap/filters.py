"""Filter state and the server/client filter split.

Server participation is needed for price level, open-now and server-side
(Google) rating thresholds. Category, favorites and the user's own ratings are
always applied on the client. Price, rating and known-closed places are
re-checked locally as well, so a provisional view stays close to the server's
answer while a filtered fetch is outstanding.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from . import config
from .categories import CategorySelection
from .models import Coordinate, Place
from .preferences import PreferenceStore

logger = logging.getLogger(__name__)


@dataclass
class FilterState:
    categories: CategorySelection = field(default_factory=CategorySelection.all)
    show_favorites_only: bool = False
    selected_price_levels: Set[int] = field(default_factory=set)
    minimum_rating: int = 0
    use_local_ratings: bool = False
    show_open_now_only: bool = False

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        bad_levels = set(self.selected_price_levels) - config.ALL_PRICE_LEVELS
        if bad_levels:
            raise ValueError(f"Price levels must be within 1-4: {sorted(bad_levels)}")
        if self.minimum_rating < 0 or self.minimum_rating > config.MAX_RATING:
            raise ValueError(f"minimum_rating must be between 0 and {config.MAX_RATING}")

    @property
    def is_all_categories_mode(self) -> bool:
        return self.categories.is_all

    @property
    def selected_category_keys(self) -> Set[int]:
        return set(self.categories.keys)


@dataclass(frozen=True)
class FilterRequest:
    location: Coordinate
    keys: Optional[Tuple[int, ...]] = None
    open_now: Optional[bool] = None
    price_levels: Optional[Tuple[int, ...]] = None
    minimum_rating: Optional[int] = None
    radius: Optional[int] = None
    bypass_cache: Optional[bool] = None
    max_result_count: Optional[int] = None

    def to_body(self) -> Dict[str, Any]:
        """Backend JSON body; unset fields are omitted."""
        body: Dict[str, Any] = {
            "location": {
                "latitude": self.location.latitude,
                "longitude": self.location.longitude,
            }
        }
        if self.keys is not None:
            body["keys"] = list(self.keys)
        if self.open_now is not None:
            body["openNow"] = self.open_now
        if self.price_levels is not None:
            body["priceLevels"] = list(self.price_levels)
        if self.minimum_rating is not None:
            body["minimumRating"] = self.minimum_rating
        if self.radius is not None:
            body["radius"] = self.radius
        if self.bypass_cache is not None:
            body["bypassCache"] = self.bypass_cache
        if self.max_result_count is not None:
            body["maxResultCount"] = self.max_result_count
        return body

    def criteria(self) -> Tuple[Any, ...]:
        # Everything but location and cache flags.
        return (self.keys, self.open_now, self.price_levels, self.minimum_rating, self.radius)


def price_filter_active(levels: Iterable[int]) -> bool:
    selected = set(levels)
    return bool(selected) and selected != config.ALL_PRICE_LEVELS


def server_rating_filter_active(state: FilterState) -> bool:
    return state.minimum_rating > 0 and not state.use_local_ratings


def needs_network_filter(state: FilterState) -> bool:
    return (
        price_filter_active(state.selected_price_levels)
        or state.show_open_now_only
        or server_rating_filter_active(state)
    )


def _meets_rating(place: Place, state: FilterState, preferences: PreferenceStore) -> bool:
    if state.use_local_ratings:
        return preferences.get_rating(place.id) >= state.minimum_rating
    if place.rating is None:
        return False
    return place.rating >= state.minimum_rating


def _meets_price(place: Place, levels: Set[int]) -> bool:
    # Unknown price level is treated as the cheapest tier.
    level = place.price_level if place.price_level is not None else 1
    return level in levels


def apply_local_filters(
    places: Iterable[Place],
    state: FilterState,
    preferences: PreferenceStore,
) -> List[Place]:
    result = list(places)
    before = len(result)

    if state.show_favorites_only:
        result = [p for p in result if preferences.is_favorite(p.id)]

    if not state.is_all_categories_mode:
        result = [p for p in result if state.categories.matches(p.emoji)]

    if state.minimum_rating > 0:
        result = [p for p in result if _meets_rating(p, state, preferences)]

    if price_filter_active(state.selected_price_levels):
        levels = set(state.selected_price_levels)
        result = [p for p in result if _meets_price(p, levels)]

    if state.show_open_now_only:
        # Unknown opening hours stay; the server decides those.
        result = [p for p in result if p.open_now is not False]

    logger.debug("Local filters kept %s of %s places", len(result), before)
    return result


def build_network_filter_request(
    state: FilterState,
    location: Coordinate,
    radius: Optional[int] = None,
) -> FilterRequest:
    keys = None if state.is_all_categories_mode else tuple(sorted(state.selected_category_keys))
    open_now = True if state.show_open_now_only else None
    price_levels = (
        tuple(sorted(state.selected_price_levels))
        if price_filter_active(state.selected_price_levels)
        else None
    )
    minimum_rating = state.minimum_rating if server_rating_filter_active(state) else None
    any_filter = any(v is not None for v in (keys, open_now, price_levels, minimum_rating))
    return FilterRequest(
        location=location,
        keys=keys,
        open_now=open_now,
        price_levels=price_levels,
        minimum_rating=minimum_rating,
        radius=radius if radius is not None else config.DEFAULT_SEARCH_RADIUS_M,
        bypass_cache=True if any_filter else None,
    )


def server_criteria(state: FilterState, radius: Optional[int] = None) -> Tuple[Any, ...]:
    """The server-side part of ``state``, comparable with ``FilterRequest.criteria()``."""
    return build_network_filter_request(state, Coordinate(0.0, 0.0), radius).criteria()
