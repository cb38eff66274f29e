from emojimap.collection import PlaceCollection, merge_places
from emojimap.filters import FilterState
from emojimap.models import Coordinate, Place
from emojimap.preferences import UserPreferences

LOC = Coordinate(1.0, 1.0)


def make_place(place_id, name=None):
    return Place(id=place_id, emoji="e", location=LOC, display_name=name)


def test_merge_skips_existing_ids_first_seen_wins():
    existing = [make_place("a", "first")]
    merged = merge_places(existing, [make_place("a", "second"), make_place("b")])

    assert merged == 1
    assert [p.id for p in existing] == ["a", "b"]
    assert existing[0].display_name == "first"


def test_merge_dedups_within_batch():
    existing = []
    merged = merge_places(existing, [make_place("a"), make_place("a"), make_place("b")])
    assert merged == 2
    assert [p.id for p in existing] == ["a", "b"]


def test_merge_is_idempotent():
    batch = [make_place("a"), make_place("b"), make_place("c")]
    collection = PlaceCollection()

    assert collection.merge(batch) == 3
    snapshot = list(collection.all_places)
    assert collection.merge(batch) == 0
    assert collection.all_places == snapshot


def test_clear_resets_everything():
    collection = PlaceCollection()
    collection.merge([make_place("a")])
    collection.merge_filtered([make_place("b")], ("x",))
    collection.rebuild(FilterState(), UserPreferences())

    collection.clear()

    assert collection.all_places == []
    assert collection.filtered_places == []
    assert collection.server_filtered_places == []
    assert len(collection) == 0


def test_merge_filtered_resets_on_new_criteria():
    collection = PlaceCollection()
    collection.merge_filtered([make_place("a")], ("open",))
    collection.merge_filtered([make_place("b")], ("open",))
    assert [p.id for p in collection.server_filtered_places] == ["a", "b"]

    collection.merge_filtered([make_place("c")], ("cheap",))
    assert [p.id for p in collection.server_filtered_places] == ["c"]
    assert [p.id for p in collection.all_places] == ["a", "b", "c"]


def test_rebuild_uses_server_results_when_network_filtered():
    collection = PlaceCollection()
    collection.merge([make_place("a"), make_place("b")])
    collection.merge_filtered([make_place("b")], ("open",))

    assert [p.id for p in collection.rebuild(FilterState(), UserPreferences())] == ["a", "b"]
    filtered = collection.rebuild(FilterState(), UserPreferences(), network_filtered=True)
    assert [p.id for p in filtered] == ["b"]


def test_set_places_replaces_collection():
    collection = PlaceCollection()
    collection.merge([make_place("a")])
    collection.set_places([make_place("b"), make_place("b")])
    assert [p.id for p in collection.all_places] == ["b"]


def test_rebuild_ignores_server_results_for_other_criteria():
    collection = PlaceCollection()
    opened = Place(id="open", emoji="e", location=LOC, open_now=True)
    closed = Place(id="closed", emoji="e", location=LOC, open_now=False)
    collection.merge_filtered([opened, closed], ("cheap",))
    state = FilterState(show_open_now_only=True)

    current = collection.rebuild(state, UserPreferences(), network_filtered=True, server_criteria=("cheap",))
    assert [p.id for p in current] == ["open"]

    collection.merge([make_place("other")])
    stale = collection.rebuild(state, UserPreferences(), network_filtered=True, server_criteria=("open",))
    assert [p.id for p in stale] == ["open", "other"]
