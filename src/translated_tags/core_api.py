from __future__ import annotations

from collections.abc import Callable, Iterable

import polars as pl
from sqlalchemy.orm import Session

from translated_tags.db.repository import AttributeReader
from translated_tags.models import (
    ConfigurationCheckResult,
    FilterOptionsRequest,
    FilterOptionsResult,
    ItemDataRequest,
    ItemDataResult,
    ItemSearchRequest,
    ItemSearchResult,
    LanguageContext,
)
from translated_tags.services.attribute_types import create_attribute
from translated_tags.services.translated_tags import TranslatedTags
from translated_tags.utils.messages import ErrorMessages

ITEM_FRAME_SCHEMA = {
    "item_id": pl.Int64,
    "tag_id": pl.String,
    "alias": pl.String,
    "value": pl.String,
    "language": pl.String,
}


def load_attribute(
    att_id: int,
    languages: LanguageContext,
    session_factory: Callable[[], Session] | None = None,
) -> TranslatedTags:
    settings = AttributeReader(session_factory).get_attribute_settings(att_id)
    if settings is None:
        raise ValueError(ErrorMessages.ATTRIBUTE_NOT_FOUND.format(att_id=att_id))
    return create_attribute(settings, languages, session_factory)


def get_filter_options(attribute: TranslatedTags, request: FilterOptionsRequest) -> FilterOptionsResult:
    counter: dict | None = {} if request.with_counts else None
    options = attribute.get_filter_options(request.item_ids, request.used_only, counter)
    return FilterOptionsResult(options=options, counts=counter)


def get_item_data(attribute: TranslatedTags, request: ItemDataRequest) -> ItemDataResult:
    if request.language is None:
        items = attribute.get_data_for(request.item_ids)
    else:
        items = attribute.get_translated_data_for(request.item_ids, request.language)
    return ItemDataResult(items=items)


def item_data_frame(attribute: TranslatedTags, data: ItemDataResult) -> pl.DataFrame:
    """Flatten resolved item data to one row per item and tag."""
    alias_column = attribute.get_alias_column()
    value_column = attribute.get_value_column()
    language_column = attribute.get_language_column()
    rows = [
        {
            "item_id": item_id,
            "tag_id": str(tag_id),
            "alias": None if row.get(alias_column) is None else str(row.get(alias_column)),
            "value": None if row.get(value_column) is None else str(row.get(value_column)),
            "language": row.get(language_column),
        }
        for item_id, tags in data.items.items()
        for tag_id, row in tags.items()
    ]
    return pl.DataFrame(rows, schema=ITEM_FRAME_SCHEMA)


def search_items(attribute: TranslatedTags, request: ItemSearchRequest) -> ItemSearchResult:
    if request.languages is None:
        item_ids = attribute.search_for(request.pattern)
    else:
        item_ids = attribute.search_for_in_languages(request.pattern, request.languages)
    return ItemSearchResult(item_ids=item_ids)


def get_tag_counts(attribute: TranslatedTags, item_ids: Iterable[int]) -> dict[int, int]:
    return attribute.get_tag_count(item_ids)


def check_attribute(attribute: TranslatedTags) -> ConfigurationCheckResult:
    problems = attribute.configuration_problems()
    return ConfigurationCheckResult(
        attribute_id=attribute.id,
        configured=not problems,
        problems=problems,
    )
