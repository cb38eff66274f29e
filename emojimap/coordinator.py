"""Fetch orchestration: debounce, supersession and server/client filter dispatch.

Everything here runs on a single asyncio event loop owned by the view model.
Each network call runs as its own task tagged with a ``PendingFetch`` token;
after every await the token is checked against the live slot, so a
superseded or cancelled fetch can never touch shared state.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from . import config
from .collection import PlaceCollection
from .filters import (
    FilterRequest,
    FilterState,
    build_network_filter_request,
    needs_network_filter,
    server_criteria,
)
from .models import Coordinate, Place, ViewportRegion
from .places_client import PlacesService
from .preferences import PreferenceStore
from .viewport import ViewportTracker

logger = logging.getLogger(__name__)

MISSING_LOCATION_MESSAGE = "Unable to determine your location"


class FetchTrigger(enum.Enum):
    VIEWPORT_CHANGE = "viewport_change"
    CATEGORY_TOGGLE = "category_toggle"
    MANUAL_REFRESH = "manual_refresh"
    FILTER_CHANGE = "filter_change"
    LOCATION_FIX = "location_fix"


@dataclass
class PendingFetch:
    kind: str
    cycle: int
    location: Coordinate
    task: Optional["asyncio.Task[None]"] = field(default=None, repr=False)
    cancelled: bool = False
    criteria: Optional[Tuple[Any, ...]] = None

    def cancel(self) -> None:
        self.cancelled = True
        if self.task is not None and not self.task.done():
            self.task.cancel()

    @property
    def in_flight(self) -> bool:
        return not self.cancelled and self.task is not None and not self.task.done()


class FetchCoordinator:
    def __init__(
        self,
        client: PlacesService,
        collection: PlaceCollection,
        filter_state: FilterState,
        preferences: PreferenceStore,
        tracker: ViewportTracker,
        debounce_seconds: Optional[float] = None,
    ) -> None:
        self.client = client
        self.collection = collection
        self.filter_state = filter_state
        self.preferences = preferences
        self.tracker = tracker
        self.debounce_seconds = (
            config.REGION_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        )
        self.error_message: Optional[str] = None
        self._cycle = 0
        self._debounce: Optional[PendingFetch] = None
        self._primary: Optional[PendingFetch] = None
        self._filtered: Optional[PendingFetch] = None
        self._last_filtered: Optional[PendingFetch] = None

    @property
    def is_loading(self) -> bool:
        return self._primary is not None or self._filtered is not None

    @property
    def has_pending_debounce(self) -> bool:
        return self._debounce is not None and self._debounce.in_flight

    def request_fetch(
        self,
        trigger: FetchTrigger,
        location: Optional[Coordinate],
        region: Optional[ViewportRegion] = None,
    ) -> None:
        """Act on a fetch trigger. Must be called from the owning event loop."""
        if location is None:
            self.error_message = MISSING_LOCATION_MESSAGE
            logger.error("Fetch (%s) failed: no location available", trigger.value)
            return

        if trigger is FetchTrigger.VIEWPORT_CHANGE:
            self._schedule_debounced(location, region)
        elif trigger is FetchTrigger.FILTER_CHANGE:
            self._cycle += 1
            if needs_network_filter(self.filter_state):
                self._start_filtered(location, self._cycle)
            else:
                if self._filtered is not None:
                    self._filtered.cancel()
                    self._filtered = None
                self.refilter()
        else:
            self._start_primary(location, trigger, region)

    def refilter(self) -> List[Place]:
        if not needs_network_filter(self.filter_state):
            return self.collection.rebuild(self.filter_state, self.preferences)
        return self.collection.rebuild(
            self.filter_state,
            self.preferences,
            network_filtered=True,
            server_criteria=server_criteria(self.filter_state),
        )

    def cancel_all(self) -> None:
        for slot in (self._debounce, self._primary, self._filtered):
            if slot is not None:
                slot.cancel()
        self._debounce = None
        self._primary = None
        self._filtered = None
        self._last_filtered = None

    async def wait_idle(self) -> None:
        """Wait until no debounce timer or fetch is outstanding."""
        while True:
            tasks = [
                slot.task
                for slot in (self._debounce, self._primary, self._filtered)
                if slot is not None and slot.task is not None and not slot.task.done()
            ]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    # --- debounce ---

    def _schedule_debounced(self, location: Coordinate, region: Optional[ViewportRegion]) -> None:
        if self._debounce is not None:
            self._debounce.cancel()
        pending = PendingFetch("debounce", self._cycle, location)
        pending.task = asyncio.get_running_loop().create_task(self._debounce_then_fetch(pending, region))
        self._debounce = pending

    async def _debounce_then_fetch(self, pending: PendingFetch, region: Optional[ViewportRegion]) -> None:
        await asyncio.sleep(self.debounce_seconds)
        if pending.cancelled or self._debounce is not pending:
            return
        self._debounce = None
        if region is not None and not self.tracker.should_fetch(region):
            logger.debug("Region change below threshold; keeping current places")
            return
        self._start_primary(pending.location, FetchTrigger.VIEWPORT_CHANGE, region)

    # --- primary fetch ---

    def _start_primary(
        self,
        location: Coordinate,
        trigger: FetchTrigger,
        region: Optional[ViewportRegion],
    ) -> None:
        if self._primary is not None:
            logger.debug("Cancelling superseded primary fetch (cycle %s)", self._primary.cycle)
            self._primary.cancel()
        self._cycle += 1
        self.error_message = None
        self.tracker.mark_fetched(region or self.tracker.visible_region)
        pending = PendingFetch("primary", self._cycle, location)
        pending.task = asyncio.get_running_loop().create_task(self._run_primary(pending, trigger))
        self._primary = pending

    async def _run_primary(self, pending: PendingFetch, trigger: FetchTrigger) -> None:
        location = pending.location
        bypass = self.tracker.is_super_zoomed_in or trigger is FetchTrigger.MANUAL_REFRESH
        selection = self.filter_state.categories
        try:
            if selection.is_all:
                places = await self.client.fetch_nearby(location, use_cache=not bypass)
            else:
                places = await self.client.fetch_by_categories(
                    location, sorted(selection.keys), bypass_cache=bypass
                )
        except asyncio.CancelledError:
            if self._primary is pending:
                self._primary = None
            raise
        except Exception as exc:
            if not self._is_current_primary(pending):
                return
            self._primary = None
            self._fail(exc)
            return

        if not self._is_current_primary(pending):
            logger.debug("Discarding result of superseded primary fetch (cycle %s)", pending.cycle)
            return
        self._primary = None
        merged = self.collection.merge(places)
        logger.info(
            "Fetched %s places (%s new, %s total)", len(places), merged, len(self.collection.all_places)
        )
        if needs_network_filter(self.filter_state):
            self._start_filtered(location, pending.cycle)
        else:
            self.refilter()

    # --- filtered fetch ---

    def _start_filtered(self, location: Coordinate, cycle: int) -> None:
        request = build_network_filter_request(self.filter_state, location)
        criteria = request.criteria()
        current = self._filtered
        if current is not None and current.in_flight and current.cycle == cycle:
            logger.debug("Filtered fetch already in flight for cycle %s", cycle)
            return
        last = self._last_filtered
        if (
            last is not None
            and not last.cancelled
            and last.location == location
            and last.criteria == criteria
            and (last.in_flight or last.cycle >= cycle)
        ):
            # Issued at or after this cycle, so it already covers it.
            logger.debug("Filtered fetch with the same criteria already issued (cycle %s)", last.cycle)
            if not last.in_flight:
                self.refilter()
            return
        if current is not None:
            current.cancel()
        self.error_message = None
        pending = PendingFetch("filtered", cycle, location, criteria=criteria)
        pending.task = asyncio.get_running_loop().create_task(self._run_filtered(pending, request))
        self._filtered = pending
        self._last_filtered = pending

    async def _run_filtered(self, pending: PendingFetch, request: FilterRequest) -> None:
        location = pending.location
        try:
            response = await self.client.fetch_with_filters(location, request)
        except asyncio.CancelledError:
            if self._filtered is pending:
                self._filtered = None
            raise
        except Exception as exc:
            if not self._is_current_filtered(pending):
                return
            self._filtered = None
            self._fail(exc)
            return

        if not self._is_current_filtered(pending):
            logger.debug("Discarding result of superseded filtered fetch (cycle %s)", pending.cycle)
            return
        self._filtered = None
        merged = self.collection.merge_filtered(response.results, pending.criteria)
        logger.info(
            "Filtered fetch returned %s places (%s new, cacheHit: %s)",
            len(response.results),
            merged,
            response.cache_hit,
        )
        self.refilter()

    # --- helpers ---

    def _is_current_primary(self, pending: PendingFetch) -> bool:
        return not pending.cancelled and self._primary is pending

    def _is_current_filtered(self, pending: PendingFetch) -> bool:
        return not pending.cancelled and self._filtered is pending

    def _fail(self, exc: Exception) -> None:
        self.error_message = f"Failed to load places: {exc}"
        logger.error("Error fetching places: %s", exc)
