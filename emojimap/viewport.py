"""Viewport change heuristics: when does a map move warrant a new fetch."""
from __future__ import annotations

import logging
from typing import Optional

from . import config
from .geo import average_span_meters, haversine_m
from .models import ViewportRegion

logger = logging.getLogger(__name__)


class ViewportTracker:
    def __init__(self) -> None:
        self.visible_region: Optional[ViewportRegion] = None
        self.last_fetched_region: Optional[ViewportRegion] = None
        self.is_super_zoomed_in = False

    def on_region_change(self, region: ViewportRegion) -> bool:
        """Record the visible region and report whether it warrants a fetch."""
        self.visible_region = region
        was_super_zoomed = self.is_super_zoomed_in
        self.is_super_zoomed_in = region.average_span_degrees < config.SUPER_ZOOM_SPAN_THRESHOLD
        if self.is_super_zoomed_in != was_super_zoomed:
            logger.debug("Super zoomed in: %s", self.is_super_zoomed_in)
        return self.should_fetch(region)

    def should_fetch(self, region: ViewportRegion) -> bool:
        last = self.last_fetched_region
        if last is None:
            return True

        center_delta = haversine_m(
            region.center.latitude,
            region.center.longitude,
            last.center.latitude,
            last.center.longitude,
        )
        current_span = average_span_meters(region.lat_delta, region.lon_delta)
        significant_move = center_delta > current_span * config.SIGNIFICANT_PAN_FRACTION

        last_span = average_span_meters(last.lat_delta, last.lon_delta)
        if last_span <= 0:
            significant_zoom = current_span > 0
        else:
            zoom_ratio = current_span / last_span
            significant_zoom = zoom_ratio < config.ZOOM_RATIO_MIN or zoom_ratio > config.ZOOM_RATIO_MAX

        if significant_move or significant_zoom:
            logger.debug(
                "Region change is significant (moved %.0fm of %.0fm span, zoom=%s)",
                center_delta,
                current_span,
                significant_zoom,
            )
        return significant_move or significant_zoom

    def mark_fetched(self, region: Optional[ViewportRegion]) -> None:
        if region is not None:
            self.last_fetched_region = region

    def reset(self) -> None:
        self.last_fetched_region = None
