"""translated-tags package exports."""

from .core_api import (
    check_attribute,
    get_filter_options,
    get_item_data,
    get_tag_counts,
    item_data_frame,
    load_attribute,
    search_items,
)
from .models import AttributeSettings, LanguageContext
from .services.attribute_types import AttributeTypeFactory, create_attribute
from .services.translated_tags import TranslatedTags

__all__ = [
    "AttributeSettings",
    "AttributeTypeFactory",
    "LanguageContext",
    "TranslatedTags",
    "check_attribute",
    "create_attribute",
    "get_filter_options",
    "get_item_data",
    "get_tag_counts",
    "item_data_frame",
    "load_attribute",
    "search_items",
]
