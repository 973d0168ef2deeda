"""Aggregation and merge helpers for the two-language resolution passes.

Every merge here is first-write-wins: a slot that already holds a value is
never replaced by a later pass.
"""

from collections.abc import Collection, Hashable, Iterable, Mapping
from typing import Any

ItemData = dict[Hashable, dict[Hashable, dict[str, Any]]]


def rows_by_item(rows: Iterable[Mapping[str, Any]], item_key: str, tag_key: str) -> ItemData:
    """Group joined rows into ``{item_id: {tag_id: row}}``.

    ``item_key`` is removed from the stored row. Only the first row of a
    duplicated ``(item, tag)`` pair is kept.
    """
    result: ItemData = {}
    for row in rows:
        data = dict(row)
        item_id = data.pop(item_key)
        result.setdefault(item_id, {}).setdefault(data[tag_key], data)
    return result


def merge_missing(target: ItemData, source: Mapping[Hashable, Mapping[Hashable, Any]]) -> ItemData:
    """Copy every ``(item, tag)`` slot of source that is still empty in target."""
    for item_id, tags in source.items():
        slots = target.setdefault(item_id, {})
        for tag_id, row in tags.items():
            if tag_id not in slots:
                slots[tag_id] = row
    return target


def unresolved_item_ids(
    resolved: Mapping[Hashable, Mapping[Hashable, Any]],
    tag_counts: Mapping[Hashable, int],
) -> list:
    """Items with fewer resolved tags than related tags, in tag_counts order."""
    return [
        item_id
        for item_id, count in tag_counts.items()
        if len(resolved.get(item_id, {})) < count
    ]


def collect_options(
    rows: Iterable[Mapping[str, Any]],
    options: dict,
    id_key: str,
    alias_key: str,
    value_key: str,
) -> dict:
    """Add ``alias -> value`` of every row to options, keeping present aliases.

    Returns ``id -> alias`` of all rows seen, so the caller can tell which
    values are still missing.
    """
    retrieved: dict = {}
    for row in rows:
        retrieved.setdefault(row[id_key], row[alias_key])
        options.setdefault(row[alias_key], row[value_key])
    return retrieved


def missing_value_ids(value_ids: Iterable, retrieved: Collection) -> list:
    return [value_id for value_id in value_ids if value_id not in retrieved]
