"""Home screen state owner.

``HomeViewModel`` is the single owner of places, filter state and selection.
Presentation code reads its attributes and calls its actions; all of them
must run on the same asyncio event loop.
"""
from __future__ import annotations

import asyncio
import logging
import random
from typing import Iterable, List, Optional, Set

from .collection import PlaceCollection
from .coordinator import FetchCoordinator, FetchTrigger
from .filters import FilterState, needs_network_filter
from .models import Coordinate, Place, PlaceDetails, ViewportRegion
from .places_client import PlacesService
from .preferences import PreferenceStore
from .viewport import ViewportTracker

logger = logging.getLogger(__name__)


class HomeViewModel:
    def __init__(
        self,
        places_service: PlacesService,
        preferences: PreferenceStore,
        debounce_seconds: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.preferences = preferences
        self.filter_state = FilterState()
        self.collection = PlaceCollection()
        self.tracker = ViewportTracker()
        self.coordinator = FetchCoordinator(
            places_service,
            self.collection,
            self.filter_state,
            preferences,
            self.tracker,
            debounce_seconds=debounce_seconds,
        )
        self.places_service = places_service
        self.selected_place: Optional[Place] = None
        self.is_place_detail_presented = False
        self.selected_place_details: Optional[PlaceDetails] = None
        self.selected_place_photos: List[str] = []
        self.details_error: Optional[str] = None
        self.photos_error: Optional[str] = None
        self._details_task: Optional["asyncio.Task[None]"] = None
        self.last_device_location: Optional[Coordinate] = None
        self._rng = rng or random.Random()

        subscribe = getattr(preferences, "on_rating_changed", None)
        if callable(subscribe):
            subscribe(self.on_rating_changed)
        logger.debug("HomeViewModel initialized")

    # --- observable state ---

    @property
    def all_places(self) -> List[Place]:
        return self.collection.all_places

    @property
    def filtered_places(self) -> List[Place]:
        return self.collection.filtered_places

    @property
    def is_loading(self) -> bool:
        return self.coordinator.is_loading

    @property
    def error_message(self) -> Optional[str]:
        return self.coordinator.error_message

    @property
    def visible_region(self) -> Optional[ViewportRegion]:
        return self.tracker.visible_region

    @property
    def is_all_categories_mode(self) -> bool:
        return self.filter_state.is_all_categories_mode

    @property
    def selected_category_keys(self) -> Set[int]:
        return self.filter_state.selected_category_keys

    @property
    def has_network_dependent_filters(self) -> bool:
        return needs_network_filter(self.filter_state)

    def current_location(self) -> Optional[Coordinate]:
        region = self.tracker.visible_region
        if region is not None:
            return region.center
        return self.last_device_location

    # --- map and location ---

    def handle_viewport_change(self, region: ViewportRegion) -> None:
        self.tracker.on_region_change(region)
        self.coordinator.request_fetch(FetchTrigger.VIEWPORT_CHANGE, region.center, region)

    def handle_location_update(self, coordinate: Coordinate) -> None:
        """Feed a device location fix; the first one triggers an initial fetch."""
        first_fix = self.last_device_location is None
        self.last_device_location = coordinate
        if first_fix and self.tracker.last_fetched_region is None and not self.is_loading:
            logger.info("First location fix, fetching nearby places")
            self.coordinator.request_fetch(FetchTrigger.LOCATION_FIX, self.current_location())

    def refresh(self, clear_existing: bool = False) -> None:
        location = self.current_location()
        if clear_existing and location is not None:
            self.collection.clear()
            self.tracker.reset()
            self._cancel_details()
            self.selected_place = None
        self.coordinator.request_fetch(FetchTrigger.MANUAL_REFRESH, location)

    # --- categories and filters ---

    def toggle_category(self, key: int) -> None:
        self.filter_state.categories = self.filter_state.categories.toggle(key)
        logger.info(
            "Category %s toggled; selection: %s",
            key,
            "all" if self.is_all_categories_mode else sorted(self.selected_category_keys),
        )
        self._on_categories_changed()

    def toggle_all_categories(self) -> None:
        if self.is_all_categories_mode:
            return
        self.filter_state.categories = self.filter_state.categories.toggle_all()
        logger.info("Switched to all categories")
        self._on_categories_changed()

    def toggle_favorites_only(self) -> None:
        self.filter_state.show_favorites_only = not self.filter_state.show_favorites_only
        self.update_filtered_places()

    def set_filters(
        self,
        price_levels: Optional[Iterable[int]] = None,
        minimum_rating: Optional[int] = None,
        use_local_ratings: Optional[bool] = None,
        show_open_now_only: Optional[bool] = None,
    ) -> None:
        """Stage filter-sheet values; ``apply_filters`` commits them."""
        state = self.filter_state
        previous = (
            set(state.selected_price_levels),
            state.minimum_rating,
            state.use_local_ratings,
            state.show_open_now_only,
        )
        if price_levels is not None:
            state.selected_price_levels = set(price_levels)
        if minimum_rating is not None:
            state.minimum_rating = int(minimum_rating)
        if use_local_ratings is not None:
            state.use_local_ratings = bool(use_local_ratings)
        if show_open_now_only is not None:
            state.show_open_now_only = bool(show_open_now_only)
        try:
            state.validate()
        except ValueError:
            (
                state.selected_price_levels,
                state.minimum_rating,
                state.use_local_ratings,
                state.show_open_now_only,
            ) = previous
            raise

    def apply_filters(self) -> None:
        self.coordinator.request_fetch(FetchTrigger.FILTER_CHANGE, self.current_location())

    def reset_filters(self) -> None:
        state = self.filter_state
        state.selected_price_levels = set()
        state.minimum_rating = 0
        state.use_local_ratings = False
        state.show_open_now_only = False
        state.show_favorites_only = False
        self.update_filtered_places()

    def update_filtered_places(self) -> List[Place]:
        return self.coordinator.refilter()

    def on_rating_changed(self, place_id: str, rating: int) -> None:
        if self.filter_state.use_local_ratings and self.filter_state.minimum_rating > 0:
            logger.debug("Rating for %s changed to %s, refreshing filtered places", place_id, rating)
            self.update_filtered_places()

    def _on_categories_changed(self) -> None:
        self.update_filtered_places()
        location = self.current_location()
        if location is not None:
            self.coordinator.request_fetch(FetchTrigger.CATEGORY_TOGGLE, location)

    # --- selection ---

    def set_places(self, places: Iterable[Place]) -> None:
        self.collection.set_places(places)
        self.update_filtered_places()

    def select_place(self, place: Place) -> None:
        self.selected_place = place
        self.is_place_detail_presented = True
        logger.info("Selected place: %s", place.id)
        self._start_details(place)

    def dismiss_place_detail(self) -> None:
        self._cancel_details()
        self.selected_place = None
        self.is_place_detail_presented = False

    def select_random_place(self) -> Optional[Place]:
        candidates = self.filtered_places
        if not candidates:
            logger.info("No places to recommend")
            return None
        place = self._rng.choice(candidates)
        self.select_place(place)
        return place

    # --- place details ---

    def _start_details(self, place: Place) -> None:
        self._cancel_details()
        self.selected_place_details = None
        self.selected_place_photos = []
        self.details_error = None
        self.photos_error = None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; details for %s not loaded", place.id)
            return
        self._details_task = loop.create_task(self._load_details(place))

    def _cancel_details(self) -> None:
        if self._details_task is not None and not self._details_task.done():
            self._details_task.cancel()
        self._details_task = None

    async def _load_details(self, place: Place) -> None:
        token = asyncio.current_task()
        details, photos = await asyncio.gather(
            self.places_service.fetch_place_details(place.id),
            self.places_service.fetch_place_photos(place.id),
            return_exceptions=True,
        )
        if self._details_task is not token:
            logger.debug("Discarding details for %s; selection changed", place.id)
            return
        self._details_task = None

        for result in (details, photos):
            if isinstance(result, asyncio.CancelledError):
                raise result
        if isinstance(details, Exception):
            self.details_error = f"Failed to load details: {details}"
            logger.error("Error fetching place details: %s", details)
        else:
            self.selected_place_details = details
        if isinstance(photos, Exception):
            self.photos_error = f"Failed to load photos: {photos}"
            logger.error("Error fetching place photos: %s", photos)
        else:
            self.selected_place_photos = photos
            logger.info("Received %s photos for place %s", len(photos), place.id)

    # --- lifecycle ---

    async def wait_idle(self) -> None:
        await self.coordinator.wait_idle()
        task = self._details_task
        if task is not None and not task.done():
            await asyncio.gather(task, return_exceptions=True)

    def close(self) -> None:
        self.coordinator.cancel_all()
        self._cancel_details()
