"""User favorites and ratings.

The filter pipeline only needs the read side (``PreferenceStore``). The
concrete stores below add the write side and optional JSON persistence.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Set

from . import config
from .reporting import atomic_write_text

logger = logging.getLogger(__name__)

RatingListener = Callable[[str, int], None]


class PreferenceStore(Protocol):
    def is_favorite(self, place_id: str) -> bool: ...

    def get_rating(self, place_id: str) -> int: ...


class UserPreferences:
    def __init__(self) -> None:
        self.favorite_place_ids: Set[str] = set()
        self.ratings: Dict[str, int] = {}
        self._rating_listeners: List[RatingListener] = []

    def is_favorite(self, place_id: str) -> bool:
        return place_id in self.favorite_place_ids

    def get_rating(self, place_id: str) -> int:
        return self.ratings.get(place_id, 0)

    def add_favorite(self, place_id: str) -> None:
        self.favorite_place_ids.add(place_id)
        self._changed()

    def remove_favorite(self, place_id: str) -> None:
        self.favorite_place_ids.discard(place_id)
        self._changed()

    def toggle_favorite(self, place_id: str) -> bool:
        """Flip membership and return the new state."""
        if place_id in self.favorite_place_ids:
            self.remove_favorite(place_id)
            return False
        self.add_favorite(place_id)
        return True

    def set_rating(self, place_id: str, rating: int) -> None:
        rating = int(rating)
        if rating < 0 or rating > config.MAX_RATING:
            raise ValueError(f"Rating must be between 0 and {config.MAX_RATING}: {rating}")
        if rating == 0:
            self.ratings.pop(place_id, None)
        else:
            self.ratings[place_id] = rating
        self._changed()
        for listener in list(self._rating_listeners):
            listener(place_id, rating)

    def on_rating_changed(self, listener: RatingListener) -> None:
        self._rating_listeners.append(listener)

    def _changed(self) -> None:
        pass


class JsonPreferenceStore(UserPreferences):
    """UserPreferences persisted to a JSON file after every change."""

    def __init__(self, path: Optional[str] = None) -> None:
        super().__init__()
        self.path = Path(path or config.PREFERENCES_PATH)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except ValueError:
            logger.warning("Ignoring unreadable preferences file %s", self.path)
            return
        self.favorite_place_ids = {str(p) for p in data.get("favorites", [])}
        ratings = data.get("ratings", {})
        self.ratings = {
            str(place_id): int(rating)
            for place_id, rating in ratings.items()
            if 0 < int(rating) <= config.MAX_RATING
        }
        logger.debug(
            "Loaded %s favorites and %s ratings from %s",
            len(self.favorite_place_ids),
            len(self.ratings),
            self.path,
        )

    def _changed(self) -> None:
        payload = {
            "favorites": sorted(self.favorite_place_ids),
            "ratings": dict(sorted(self.ratings.items())),
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_text(str(self.path), json.dumps(payload, ensure_ascii=False, indent=2))
