"""Accumulating, id-deduplicated place collections."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .filters import FilterState, apply_local_filters
from .models import Place
from .preferences import PreferenceStore

logger = logging.getLogger(__name__)


def merge_places(existing: List[Place], incoming: Iterable[Place]) -> int:
    """Append incoming places whose id is new; first seen wins, order is kept."""
    lookup: Dict[str, Place] = {p.id: p for p in existing}
    merged = 0
    for place in incoming:
        if place.id in lookup:
            continue
        lookup[place.id] = place
        existing.append(place)
        merged += 1
    return merged


class PlaceCollection:
    def __init__(self) -> None:
        self.all_places: List[Place] = []
        self.filtered_places: List[Place] = []
        self.server_filtered_places: List[Place] = []
        self._server_criteria: Optional[Tuple[Any, ...]] = None

    def merge(self, new_places: Iterable[Place]) -> int:
        merged = merge_places(self.all_places, new_places)
        logger.debug("Merged %s new places (%s total)", merged, len(self.all_places))
        return merged

    def merge_filtered(self, new_places: Iterable[Place], criteria: Optional[Tuple[Any, ...]] = None) -> int:
        """Merge results of a server-filtered fetch.

        Results gathered under different server criteria are dropped first.
        Every merged place also lands in ``all_places`` so the filtered view
        stays a subset of it.
        """
        new_places = list(new_places)
        if criteria is not None and criteria != self._server_criteria:
            self.server_filtered_places = []
            self._server_criteria = criteria
        self.merge(new_places)
        merged = merge_places(self.server_filtered_places, new_places)
        logger.debug(
            "Merged %s server-filtered places (%s total)", merged, len(self.server_filtered_places)
        )
        return merged

    def rebuild(
        self,
        state: FilterState,
        preferences: PreferenceStore,
        network_filtered: bool = False,
        server_criteria: Optional[Tuple[Any, ...]] = None,
    ) -> List[Place]:
        """Recompute ``filtered_places``.

        Server-filtered results are only used while they match
        ``server_criteria``. Otherwise everything fetched so far goes through
        the local filters until the server answers for the new criteria.
        """
        source = self.all_places
        if network_filtered:
            if server_criteria is None or server_criteria == self._server_criteria:
                source = self.server_filtered_places
            else:
                logger.debug("Server-filtered places are stale; filtering all places locally")
        self.filtered_places = apply_local_filters(source, state, preferences)
        return self.filtered_places

    def set_places(self, places: Iterable[Place]) -> None:
        self.clear()
        self.merge(places)

    def clear(self) -> None:
        self.all_places = []
        self.filtered_places = []
        self.server_filtered_places = []
        self._server_criteria = None

    def __len__(self) -> int:
        return len(self.all_places)
