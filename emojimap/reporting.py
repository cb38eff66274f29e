"""Output reporting helpers."""
from __future__ import annotations

import csv
import json
import os
import tempfile
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, TextIO

from .http import REQUEST_KINDS
from .models import Place


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def _fsync_dir(path: str) -> None:
    try:
        dir_fd = os.open(path, os.O_DIRECTORY)
    except OSError:
        return
    try:
        os.fsync(dir_fd)
    except OSError:
        pass
    finally:
        os.close(dir_fd)


@contextmanager
def atomic_writer(
    path: str,
    mode: str = "w",
    encoding: str = "utf-8",
    newline: Optional[str] = None,
) -> Iterator[TextIO]:
    dir_path = os.path.dirname(path) or "."
    base = os.path.basename(path)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{base}.", suffix=".tmp", dir=dir_path)
    try:
        with os.fdopen(fd, mode, encoding=encoding, newline=newline) as f:
            yield f
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
        _fsync_dir(dir_path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def atomic_write_text(path: str, text: str) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        f.write(text)


PLACE_FIELDNAMES = [
    "id",
    "emoji",
    "display_name",
    "lat",
    "lon",
    "rating",
    "user_rating_count",
    "price_level",
    "open_now",
    "primary_type_display_name",
    "photos",
]


def place_row(place: Place) -> Dict[str, Any]:
    return {
        "id": place.id,
        "emoji": place.emoji,
        "display_name": place.display_name,
        "lat": place.location.latitude,
        "lon": place.location.longitude,
        "rating": place.rating,
        "user_rating_count": place.user_rating_count,
        "price_level": place.price_level,
        "open_now": place.open_now,
        "primary_type_display_name": place.primary_type_display_name,
        "photos": list(place.photos),
    }


def write_places_csv(path: str, places: Iterable[Place]) -> None:
    rows = [place_row(p) for p in places]
    with atomic_writer(path, mode="w", encoding="utf-8", newline="") as f:
        if not rows:
            f.write("")
            return
        writer = csv.DictWriter(f, fieldnames=PLACE_FIELDNAMES)
        writer.writeheader()
        for row in rows:
            row["photos"] = json.dumps(row["photos"], ensure_ascii=False)
            writer.writerow(row)


def write_places_json(path: str, places: Iterable[Place]) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        json.dump([place_row(p) for p in places], f, ensure_ascii=False, indent=2)


def format_place(place: Place) -> str:
    name = place.display_name or place.id
    parts = [f"{place.emoji} {name}".strip()]
    if place.rating is not None:
        parts.append(f"rating={place.rating:.1f}")
    if place.price_level is not None:
        parts.append("$" * place.price_level)
    if place.open_now is not None:
        parts.append("open" if place.open_now else "closed")
    return " | ".join(parts)


def render_summary(summary: Dict[str, Any]) -> List[str]:
    lines: List[str] = []
    lines.append(f"All places: {summary.get('all_places', 0)}")
    lines.append(f"Filtered places: {summary.get('filtered_places', 0)}")
    categories = summary.get("categories") or []
    lines.append("Categories: ALL" if not categories else f"Categories: {', '.join(str(k) for k in categories)}")
    lines.append(f"Network filters: {'ON' if summary.get('network_filters') else 'OFF'}")
    lines.append("Request stats:")
    for kind in REQUEST_KINDS:
        lines.append(
            f"- {kind}: network={summary.get(f'network_{kind}', 0)}, "
            f"cache_hits={summary.get(f'cache_hits_{kind}', 0)}"
        )
    error = summary.get("error_message")
    if error:
        lines.append(f"Error: {error}")
    return lines
