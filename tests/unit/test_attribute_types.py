from __future__ import annotations

import pytest

from translated_tags.models import AttributeSettings, LanguageContext
from translated_tags.services.attribute_types import (
    AttributeTypeFactory,
    create_attribute,
    get_factory,
)
from translated_tags.services.translated_tags import TranslatedTags

pytestmark = pytest.mark.translated_tags


def test_factory_metadata() -> None:
    factory = get_factory("translatedtags")
    assert isinstance(factory, AttributeTypeFactory)
    assert factory.type_class is TranslatedTags


def test_create_instance_from_mapping(session_factory, languages: LanguageContext) -> None:
    attribute = AttributeTypeFactory().create_instance(
        {"id": 4, "tag_table": "tl_colors", "tag_column": "name", "tag_langcolumn": "language"},
        languages,
        session_factory,
    )
    assert isinstance(attribute, TranslatedTags)
    assert attribute.id == 4
    assert attribute.get_value_column() == "name"
    assert attribute.languages == languages


def test_create_attribute_from_settings(session_factory, settings: AttributeSettings, languages) -> None:
    attribute = create_attribute(settings, languages, session_factory)
    assert attribute.settings is settings
    assert attribute.is_properly_configured()


def test_unknown_type(session_factory, settings: AttributeSettings, languages) -> None:
    with pytest.raises(ValueError, match="Unknown attribute type: tags"):
        create_attribute(settings.model_copy(update={"type": "tags"}), languages, session_factory)
