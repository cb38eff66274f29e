"""Emoji category mapping and category selection."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional, Set

logger = logging.getLogger(__name__)

VARIATION_SELECTOR = "\ufe0f"

KEY_TO_EMOJI: Dict[int, str] = {
    1: "\U0001F355",  # pizza
    2: "\U0001F37A",  # beer
    3: "\U0001F363",  # sushi
    4: "\u2615\ufe0f",  # coffee
    5: "\U0001F354",  # burger
    6: "\U0001F32E",  # taco
    7: "\U0001F35C",  # ramen
    8: "\U0001F957",  # salad
    9: "\U0001F366",  # soft ice cream
    10: "\U0001F377",  # wine
    11: "\U0001F372",  # pot of food
    12: "\U0001F96A",  # sandwich
    13: "\U0001F35D",  # spaghetti
    14: "\U0001F969",  # cut of meat
    15: "\U0001F357",  # poultry leg
    16: "\U0001F364",  # fried shrimp
    17: "\U0001F35B",  # curry rice
    18: "\U0001F958",  # shallow pan of food
    19: "\U0001F371",  # bento
    20: "\U0001F95F",  # dumpling
    21: "\U0001F9C6",  # falafel
    22: "\U0001F950",  # croissant
    23: "\U0001F368",  # ice cream
    24: "\U0001F379",  # tropical drink
    25: "\U0001F37D\ufe0f",  # fork and knife with plate
}


def normalize_emoji(emoji: str) -> str:
    """Strip variation selectors so a glyph with and without U+FE0F compare equal."""
    return emoji.replace(VARIATION_SELECTOR, "")


EMOJI_TO_KEY: Dict[str, int] = {normalize_emoji(e): k for k, e in KEY_TO_EMOJI.items()}


def key_for_emoji(emoji: str) -> Optional[int]:
    return EMOJI_TO_KEY.get(normalize_emoji(emoji))


def category_keys_in(emoji_string: str) -> Set[int]:
    """All category keys whose glyph appears in a (possibly compound) emoji string."""
    keys: Set[int] = set()
    for ch in normalize_emoji(emoji_string):
        key = key_for_emoji(ch)
        if key is not None:
            keys.add(key)
    return keys


def place_matches_categories(place_emoji: str, keys: Iterable[int]) -> bool:
    selected = set(keys)
    if not selected:
        return False
    normalized = normalize_emoji(place_emoji)
    for key in selected:
        glyph = KEY_TO_EMOJI.get(key)
        if glyph and normalize_emoji(glyph) in normalized:
            return True
    return bool(category_keys_in(normalized) & selected)


@dataclass(frozen=True)
class CategorySelection:
    """Either every category (``keys`` empty) or a specific non-empty key set.

    Emptying a specific selection reverts to all-categories mode, so the two
    states never disagree.
    """

    keys: FrozenSet[int] = frozenset()

    @classmethod
    def all(cls) -> "CategorySelection":
        return cls()

    @classmethod
    def specific(cls, keys: Iterable[int]) -> "CategorySelection":
        return cls(frozenset(keys))

    @property
    def is_all(self) -> bool:
        return not self.keys

    def toggle(self, key: int) -> "CategorySelection":
        if key not in KEY_TO_EMOJI:
            raise ValueError(f"Unknown category key: {key}")
        if key in self.keys:
            remaining = self.keys - {key}
            if not remaining:
                logger.debug("Last category %s removed, reverting to all categories", key)
            return CategorySelection(remaining)
        return CategorySelection(self.keys | {key})

    def toggle_all(self) -> "CategorySelection":
        # No-op in all mode; otherwise drops every specific key.
        return CategorySelection.all()

    def matches(self, place_emoji: str) -> bool:
        if self.is_all:
            return True
        return place_matches_categories(place_emoji, self.keys)
