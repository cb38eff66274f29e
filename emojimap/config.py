"""Project configuration.

Loads client overrides from emojimap_config.json when available, falling back
to sensible defaults. Keep API request shapes and engine thresholds
centralized here.
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

_REPO_ROOT = Path(__file__).resolve().parent.parent

# --- Backend ---

_DEFAULT_BACKEND_URL = "https://emoji-map-next.vercel.app"
BACKEND_URL = _DEFAULT_BACKEND_URL
PLACES_SEARCH_PATH = "api/places/search"
PLACE_DETAILS_PATH = "api/places/details"
PLACE_PHOTOS_PATH = "api/places/photos"

# --- Places request shape ---

DEFAULT_SEARCH_RADIUS_M = 5000
MAX_SEARCH_RADIUS_M = 50000
MIN_SEARCH_RADIUS_M = 1000
LOCATION_KEY_PRECISION = 3

# --- Cache ---

CACHE_EXPIRATION_SECONDS = 3600
CACHE_DB_PATH = ":memory:"

# --- Viewport heuristics ---

METERS_PER_DEGREE = 111000.0
SIGNIFICANT_PAN_FRACTION = 0.25
ZOOM_RATIO_MIN = 0.5
ZOOM_RATIO_MAX = 2.0
SUPER_ZOOM_SPAN_THRESHOLD = 0.005

# --- Fetch coordination ---

REGION_DEBOUNCE_SECONDS = 1.0

# --- Filters ---

ALL_PRICE_LEVELS = frozenset({1, 2, 3, 4})
MAX_RATING = 5

# --- HTTP ---

HTTP_TIMEOUT_SECONDS = 30
HTTP_RETRY_MAX = 1
HTTP_BACKOFF_BASE = 0.5
HTTP_BACKOFF_MAX = 8.0

# --- Preferences and outputs ---

PREFERENCES_PATH = "preferences.json"
OUTPUT_DIR = "out"


def backend_url() -> str:
    """Backend base URL; BACKEND_URL in the environment wins over config."""
    custom = (os.environ.get("BACKEND_URL") or "").strip()
    if custom:
        return custom.rstrip("/")
    return BACKEND_URL.rstrip("/")


def places_search_url() -> str:
    return f"{backend_url()}/{PLACES_SEARCH_PATH}"


def place_details_url() -> str:
    return f"{backend_url()}/{PLACE_DETAILS_PATH}"


def place_photos_url() -> str:
    return f"{backend_url()}/{PLACE_PHOTOS_PATH}"


def load_client_config(path: Optional[str] = None) -> bool:
    """Load client configuration from a JSON file.

    Updates module-level globals with values from the config file.
    Returns True if config was loaded, False if file not found.
    """
    if path is None:
        path = str(_REPO_ROOT / "emojimap_config.json")

    config_path = Path(path)
    if not config_path.exists():
        return False

    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    globals_ref = globals()

    url = data.get("backend_url")
    if url:
        globals_ref["BACKEND_URL"] = str(url)

    radius = data.get("search_radius_m")
    if radius is not None:
        radius = int(radius)
        if radius < MIN_SEARCH_RADIUS_M or radius > MAX_SEARCH_RADIUS_M:
            raise ValueError(
                f"search_radius_m must be between {MIN_SEARCH_RADIUS_M} and {MAX_SEARCH_RADIUS_M}"
            )
        globals_ref["DEFAULT_SEARCH_RADIUS_M"] = radius

    ttl = data.get("cache_expiration_seconds")
    if ttl is not None:
        globals_ref["CACHE_EXPIRATION_SECONDS"] = int(ttl)

    cache_path = data.get("cache_db_path")
    if cache_path:
        globals_ref["CACHE_DB_PATH"] = str(cache_path)

    debounce = data.get("region_debounce_seconds")
    if debounce is not None:
        globals_ref["REGION_DEBOUNCE_SECONDS"] = float(debounce)

    http = data.get("http", {})
    if "timeout_seconds" in http:
        globals_ref["HTTP_TIMEOUT_SECONDS"] = int(http["timeout_seconds"])
    if "retry_max" in http:
        globals_ref["HTTP_RETRY_MAX"] = max(1, int(http["retry_max"]))

    prefs = data.get("preferences_path")
    if prefs:
        globals_ref["PREFERENCES_PATH"] = str(prefs)

    return True
