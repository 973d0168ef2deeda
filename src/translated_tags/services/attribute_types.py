from collections.abc import Callable, Mapping
from typing import Any

from sqlalchemy.orm import Session

from translated_tags.models import AttributeSettings, LanguageContext
from translated_tags.services.translated_tags import TranslatedTags
from translated_tags.utils.messages import ErrorMessages


class AttributeTypeFactory:
    """Create translated tag attributes from persisted settings."""

    type_name = "translatedtags"
    type_class = TranslatedTags

    def create_instance(
        self,
        information: Mapping[str, Any] | AttributeSettings,
        languages: LanguageContext,
        session_factory: Callable[[], Session] | None = None,
    ) -> TranslatedTags:
        if isinstance(information, AttributeSettings):
            settings = information
        else:
            settings = AttributeSettings.model_validate(dict(information))
        return self.type_class(settings, languages, session_factory=session_factory)


_FACTORIES: dict[str, AttributeTypeFactory] = {
    AttributeTypeFactory.type_name: AttributeTypeFactory(),
}


def get_factory(type_name: str) -> AttributeTypeFactory:
    try:
        return _FACTORIES[type_name]
    except KeyError:
        raise ValueError(ErrorMessages.UNKNOWN_ATTRIBUTE_TYPE.format(type_name=type_name)) from None


def create_attribute(
    settings: Mapping[str, Any] | AttributeSettings,
    languages: LanguageContext,
    session_factory: Callable[[], Session] | None = None,
) -> TranslatedTags:
    """Build the attribute matching ``settings.type``."""
    if isinstance(settings, AttributeSettings):
        type_name = settings.type
    else:
        type_name = settings.get("type") or AttributeTypeFactory.type_name
    return get_factory(type_name).create_instance(settings, languages, session_factory)
