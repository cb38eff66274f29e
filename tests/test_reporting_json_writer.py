import csv
import json

from emojimap.models import Coordinate, Place
from emojimap.reporting import format_place, render_summary, write_places_csv, write_places_json


def sample_places():
    return [
        Place(
            id="a",
            emoji="e",
            location=Coordinate(52.2, 21.0),
            display_name="Alpha",
            rating=4.3,
            price_level=2,
            open_now=True,
            photos=("https://img/1",),
        ),
        Place(id="b", emoji="f", location=Coordinate(52.3, 21.1)),
    ]


def test_write_places_json(tmp_path):
    path = tmp_path / "places.json"
    write_places_json(str(path), sample_places())

    data = json.loads(path.read_text(encoding="utf-8"))
    assert [row["id"] for row in data] == ["a", "b"]
    assert data[0]["photos"] == ["https://img/1"]
    assert data[1]["rating"] is None


def test_write_places_csv(tmp_path):
    path = tmp_path / "places.csv"
    write_places_csv(str(path), sample_places())

    with path.open(encoding="utf-8", newline="") as f:
        rows = list(csv.DictReader(f))
    assert [row["id"] for row in rows] == ["a", "b"]
    assert json.loads(rows[0]["photos"]) == ["https://img/1"]


def test_write_places_csv_empty(tmp_path):
    path = tmp_path / "places.csv"
    write_places_csv(str(path), [])
    assert path.read_text(encoding="utf-8") == ""


def test_format_place():
    alpha, beta = sample_places()
    assert format_place(alpha) == "e Alpha | rating=4.3 | $$ | open"
    assert format_place(beta) == "f b"


def test_render_summary():
    lines = render_summary(
        {
            "all_places": 5,
            "filtered_places": 2,
            "categories": [5],
            "network_filters": True,
            "network_nearby": 1,
            "cache_hits_nearby": 2,
            "error_message": "Failed to load places: boom",
        }
    )
    assert lines[0] == "All places: 5"
    assert "Categories: 5" in lines
    assert "Network filters: ON" in lines
    assert "- nearby: network=1, cache_hits=2" in lines
    assert lines[-1] == "Error: Failed to load places: boom"
