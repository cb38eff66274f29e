"""Geospatial helpers."""
from __future__ import annotations

import math

from . import config

EARTH_RADIUS_M = 6371000.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def degrees_to_meters(delta_degrees: float) -> float:
    # Flat conversion; longitude is not scaled by latitude.
    return delta_degrees * config.METERS_PER_DEGREE


def average_span_meters(lat_delta: float, lon_delta: float) -> float:
    return (degrees_to_meters(lat_delta) + degrees_to_meters(lon_delta)) / 2
