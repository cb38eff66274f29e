"""Places backend client with caching and response parsing."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, TypeVar

from . import config
from .cache import Cache, make_request_cache_key
from .filters import FilterRequest
from .http import HttpClient, InvalidResponseError, RequestMetrics
from .models import (
    Coordinate,
    Place,
    PlaceDetails,
    PlacesResponse,
    parse_photos_response,
    parse_place_details,
    parse_places_response,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PlacesService(Protocol):
    async def fetch_nearby(self, location: Coordinate, use_cache: bool = True) -> List[Place]: ...

    async def fetch_by_categories(
        self,
        location: Coordinate,
        category_keys: Iterable[int],
        bypass_cache: bool = False,
    ) -> List[Place]: ...

    async def fetch_with_filters(self, location: Coordinate, filter_request: FilterRequest) -> PlacesResponse: ...

    async def fetch_place_details(self, place_id: str, use_cache: bool = True) -> PlaceDetails: ...

    async def fetch_place_photos(self, place_id: str, use_cache: bool = True) -> List[str]: ...

    def clear_cache(self) -> None: ...


class PlacesClient:
    def __init__(
        self,
        http_client: HttpClient,
        cache: Cache,
        radius_m: Optional[int] = None,
        url: Optional[str] = None,
        metrics: Optional[RequestMetrics] = None,
        details_url: Optional[str] = None,
        photos_url: Optional[str] = None,
    ) -> None:
        self.http = http_client
        self.cache = cache
        self.radius_m = radius_m if radius_m is not None else config.DEFAULT_SEARCH_RADIUS_M
        self.url = url or config.places_search_url()
        self.details_url = details_url or config.place_details_url()
        self.photos_url = photos_url or config.place_photos_url()
        self.metrics = metrics

    async def fetch_nearby(self, location: Coordinate, use_cache: bool = True) -> List[Place]:
        body = build_search_body(location, self.radius_m, bypass_cache=not use_cache)
        logger.info(
            "Fetching nearby places at %.5f, %.5f (radius %sm)",
            location.latitude,
            location.longitude,
            self.radius_m,
        )
        response = await self._search("nearby", body, use_cache=use_cache)
        return response.results

    async def fetch_by_categories(
        self,
        location: Coordinate,
        category_keys: Iterable[int],
        bypass_cache: bool = False,
    ) -> List[Place]:
        keys = sorted(set(category_keys))
        body = build_search_body(location, self.radius_m, keys=keys, bypass_cache=bypass_cache)
        logger.info(
            "Fetching places for categories %s at %.5f, %.5f",
            keys,
            location.latitude,
            location.longitude,
        )
        response = await self._search("categories", body, use_cache=not bypass_cache)
        return response.results

    async def fetch_with_filters(self, location: Coordinate, filter_request: FilterRequest) -> PlacesResponse:
        # Filtered queries always go to the network.
        request = replace(
            filter_request,
            location=location,
            radius=filter_request.radius if filter_request.radius is not None else self.radius_m,
            bypass_cache=True,
        )
        body = request.to_body()
        logger.info("Fetching filtered places: %s", body)
        response = await self._search("filters", body, use_cache=False)
        logger.info(
            "Received %s filtered places, cacheHit: %s", len(response.results), response.cache_hit
        )
        return response

    async def fetch_place_details(self, place_id: str, use_cache: bool = True) -> PlaceDetails:
        logger.info("Fetching details for place %s", place_id)
        return await self._get(
            "details",
            self.details_url,
            {"id": place_id},
            use_cache,
            lambda payload: parse_details_payload(place_id, payload),
        )

    async def fetch_place_photos(self, place_id: str, use_cache: bool = True) -> List[str]:
        photos = await self._get("photos", self.photos_url, {"id": place_id}, use_cache, parse_photos_payload)
        logger.info("Received %s photos for place %s", len(photos), place_id)
        return photos

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Places cache cleared")

    async def _search(self, kind: str, body: Dict[str, Any], use_cache: bool) -> PlacesResponse:
        key = make_request_cache_key(kind, self.url, body)
        if use_cache:
            cached = self.cache.get_search_cache(key)
            if cached is not None:
                if self.metrics is not None:
                    self.metrics.inc_cache_hit(kind)
                logger.debug("Using cached %s response", kind)
                return parse_payload(cached)

        if self.metrics is not None:
            self.metrics.inc_network(kind)
        payload = await asyncio.to_thread(self.http.post_json, self.url, body)
        response = parse_payload(payload)
        self.cache.set_search_cache(key, kind, payload)
        return response

    async def _get(
        self,
        kind: str,
        url: str,
        params: Dict[str, Any],
        use_cache: bool,
        parse: Callable[[Dict[str, Any]], T],
    ) -> T:
        key = make_request_cache_key(kind, url, params)
        if use_cache:
            cached = self.cache.get_search_cache(key)
            if cached is not None:
                if self.metrics is not None:
                    self.metrics.inc_cache_hit(kind)
                logger.debug("Using cached %s response", kind)
                return parse(cached)

        if self.metrics is not None:
            self.metrics.inc_network(kind)
        payload = await asyncio.to_thread(self.http.get_json, url, params)
        result = parse(payload)
        self.cache.set_search_cache(key, kind, payload)
        return result


def build_search_body(
    location: Coordinate,
    radius_m: int,
    keys: Optional[List[int]] = None,
    bypass_cache: bool = False,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "location": {"latitude": location.latitude, "longitude": location.longitude},
        "radius": int(radius_m),
        "bypassCache": bool(bypass_cache),
    }
    if keys:
        body["keys"] = list(keys)
    return body


def parse_payload(payload: Dict[str, Any]) -> PlacesResponse:
    if "results" not in payload and "places" not in payload:
        raise InvalidResponseError("missing results")
    return parse_places_response(payload)


def parse_details_payload(place_id: str, payload: Dict[str, Any]) -> PlaceDetails:
    if not isinstance(payload.get("data") or payload.get("placeDetails"), dict):
        raise InvalidResponseError("missing place details")
    return parse_place_details(place_id, payload)


def parse_photos_payload(payload: Dict[str, Any]) -> List[str]:
    if "data" not in payload and "photos" not in payload:
        raise InvalidResponseError("missing photos")
    return parse_photos_response(payload)
