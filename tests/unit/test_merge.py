from __future__ import annotations

import pytest

from translated_tags.merge import (
    collect_options,
    merge_missing,
    missing_value_ids,
    rows_by_item,
    unresolved_item_ids,
)

pytestmark = pytest.mark.translated_tags


def test_rows_by_item_keeps_first_duplicate() -> None:
    rows = [
        {"item": 7, "id": 3, "name": "Red"},
        {"item": 7, "id": 3, "name": "Rot"},
        {"item": 8, "id": 1, "name": "Green"},
    ]
    assert rows_by_item(rows, "item", "id") == {
        7: {3: {"id": 3, "name": "Red"}},
        8: {1: {"id": 1, "name": "Green"}},
    }


def test_merge_missing_never_overwrites() -> None:
    target = {7: {3: "Red"}, 10: {}}
    merge_missing(target, {7: {3: "Rot", 5: "Blau"}, 9: {1: "Grün"}})
    assert target == {7: {3: "Red", 5: "Blau"}, 10: {}, 9: {1: "Grün"}}


def test_unresolved_item_ids() -> None:
    resolved = {7: {3: "Red"}, 8: {1: "Green"}}
    assert unresolved_item_ids(resolved, {7: 2, 8: 1, 9: 1}) == [7, 9]


def test_collect_options_keeps_present_aliases() -> None:
    options = {"red": "Red"}
    retrieved = collect_options(
        [{"id": 3, "alias": "red", "name": "Rot"}, {"id": 5, "alias": "blau", "name": "Blau"}],
        options,
        "id",
        "alias",
        "name",
    )
    assert retrieved == {3: "red", 5: "blau"}
    assert options == {"red": "Red", "blau": "Blau"}


def test_missing_value_ids_keeps_order() -> None:
    assert missing_value_ids([9, 3, 5, 1], {3, 1}) == [9, 5]
