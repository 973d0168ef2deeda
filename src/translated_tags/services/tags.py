import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from sqlalchemy import inspect
from sqlalchemy.engine import Inspector
from sqlalchemy.orm import Session

from translated_tags.db.query_utils import WherePredicate
from translated_tags.db.repository import TagRelationRepository
from translated_tags.models import AttributeSettings, ValueId


class TagsAttribute:
    """Multi-value attribute referencing rows of an external tag table.

    The references live in the shared relation table. This class owns the
    settings accessors, the configuration check and the write path. It is
    language agnostic.
    """

    def __init__(
        self,
        settings: AttributeSettings,
        session_factory: Callable[[], Session] | None = None,
        relations: TagRelationRepository | None = None,
    ):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.settings = settings
        if session_factory is not None:
            self.session_factory = session_factory
        else:
            from translated_tags.db.runtime import get_session_factory

            self.session_factory = get_session_factory()
        self.relations = relations or TagRelationRepository(self.session_factory)

    @property
    def id(self) -> int:
        return self.settings.id

    def get(self, name: str) -> Any:
        return self.settings.get(name)

    def get_attribute_setting_names(self) -> list[str]:
        return ["tag_table", "tag_column", "tag_id", "tag_alias", "tag_sorting", "tag_where"]

    def get_tag_source(self) -> str | None:
        return self.get("tag_table")

    def get_id_column(self) -> str:
        return self.get("tag_id") or "id"

    def get_value_column(self) -> str | None:
        return self.get("tag_column")

    def get_alias_column(self) -> str:
        return self.get("tag_alias") or self.get_id_column()

    def get_sorting_column(self) -> str:
        return self.get("tag_sorting") or self.get_id_column()

    def get_where_column(self) -> str | None:
        return self.get("tag_where")

    def get_where_predicate(self) -> WherePredicate | None:
        return WherePredicate.from_setting(self.get_where_column())

    def _required_columns(self) -> dict[str, str | None]:
        return {
            "tag_id": self.get_id_column(),
            "tag_column": self.get_value_column(),
            "tag_alias": self.get_alias_column(),
            "tag_sorting": self.get_sorting_column(),
        }

    def _schema_problems(self, inspector: Inspector) -> list[str]:
        table = self.get_tag_source()
        if not inspector.has_table(table):
            return [f"tag table {table} does not exist"]

        problems = []
        columns = {column["name"] for column in inspector.get_columns(table)}
        for setting, column in self._required_columns().items():
            if column not in columns:
                problems.append(f"{setting}: column {column} does not exist on {table}")
        return problems

    def configuration_problems(self) -> list[str]:
        """Every reason why the attribute cannot resolve values (empty if none)."""
        problems = []
        if not self.get_tag_source():
            problems.append("tag_table is not set")
        for setting, column in self._required_columns().items():
            if not column:
                problems.append(f"{setting} is not set")
        try:
            self.get_where_predicate()
        except ValueError as e:
            problems.append(str(e))
        if problems:
            return problems

        with self.session_factory() as session:
            return self._schema_problems(inspect(session.connection()))

    def check_configuration(self) -> bool:
        return not self.configuration_problems()

    def is_properly_configured(self) -> bool:
        return self.check_configuration()

    def get_tag_count(self, item_ids: Iterable[int]) -> dict[int, int]:
        """Number of distinct tags related to each item, regardless of language."""
        if not (self.get_tag_source() and self.get_id_column()):
            return {}
        return self.relations.tag_counts(self.id, item_ids)

    def set_data_for(self, values: Mapping[int, Iterable[ValueId]]) -> None:
        """Replace the tags of each given item.

        Args:
            values: item id -> value ids in display order. A mapping of
                value id -> row (as returned by get_data_for) works as well.
        """
        self.relations.replace_values(
            self.id, {item_id: list(value_ids) for item_id, value_ids in values.items()}
        )

    def unset_data_for(self, item_ids: Iterable[int]) -> None:
        deleted = self.relations.delete_items(self.id, item_ids)
        self.logger.debug("Attribute %s: %d relation rows removed", self.id, deleted)
