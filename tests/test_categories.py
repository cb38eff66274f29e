import pytest

from emojimap.categories import (
    KEY_TO_EMOJI,
    CategorySelection,
    category_keys_in,
    key_for_emoji,
    place_matches_categories,
)

BURGER = KEY_TO_EMOJI[5]
COFFEE = KEY_TO_EMOJI[4]
PIZZA = KEY_TO_EMOJI[1]


def test_toggle_sequence_reverts_to_all():
    selection = CategorySelection.all()
    assert selection.is_all

    selection = selection.toggle(5)
    assert not selection.is_all
    assert selection.keys == frozenset({5})

    selection = selection.toggle(5)
    assert selection.is_all
    assert selection.keys == frozenset()


def test_toggle_adds_and_removes_keys():
    selection = CategorySelection.all().toggle(1).toggle(5)
    assert selection.keys == frozenset({1, 5})
    selection = selection.toggle(1)
    assert selection.keys == frozenset({5})


def test_toggle_all_returns_all_mode():
    assert CategorySelection.specific({1, 2}).toggle_all().is_all
    assert CategorySelection.all().toggle_all().is_all


def test_toggle_unknown_key_raises():
    with pytest.raises(ValueError):
        CategorySelection.all().toggle(999)


def test_variation_selector_is_ignored():
    assert key_for_emoji(COFFEE) == 4
    assert key_for_emoji(COFFEE.replace("\ufe0f", "")) == 4


def test_compound_emoji_matches_any_glyph():
    compound = BURGER + COFFEE
    assert category_keys_in(compound) == {4, 5}
    assert place_matches_categories(compound, {4})
    assert place_matches_categories(compound, {5, 1})
    assert not place_matches_categories(compound, {1})
    assert not place_matches_categories(compound, set())


def test_all_mode_matches_everything():
    assert CategorySelection.all().matches(PIZZA)
    assert CategorySelection.all().matches("")
    assert not CategorySelection.specific({5}).matches(PIZZA)
