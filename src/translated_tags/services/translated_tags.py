from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from sqlalchemy.engine import Inspector
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from translated_tags.db.query_utils import (
    SORT_SOURCE_ID_COLUMN,
    SourceColumns,
    TagSourceTables,
    TranslatedTagQueryBuilder,
    normalize_search_keyword,
)
from translated_tags.db.repository import TagRelationRepository
from translated_tags.merge import (
    ItemData,
    collect_options,
    merge_missing,
    missing_value_ids,
    rows_by_item,
    unresolved_item_ids,
)
from translated_tags.models import AttributeSettings, LanguageContext, ValueId
from translated_tags.services.tags import TagsAttribute
from translated_tags.utils.messages import WarningMessages


class TranslatedTags(TagsAttribute):
    """Tag attribute whose tag table holds one row per tag and language.

    Rows sharing an id are translations of the same tag. Values are resolved
    in the active language first; tags missing there are looked up in the
    fallback language. Relations are shared by all languages.
    """

    def __init__(
        self,
        settings: AttributeSettings,
        languages: LanguageContext,
        session_factory: Callable[[], Session] | None = None,
        relations: TagRelationRepository | None = None,
    ):
        super().__init__(settings, session_factory=session_factory, relations=relations)
        self.languages = languages

    def get_language_column(self) -> str | None:
        return self.get("tag_langcolumn")

    def get_sort_source_table(self) -> str | None:
        return self.get("tag_srctable")

    def get_sort_source_column(self, prefix: str | None = None) -> str | None:
        """Sort column of the sort-source table, as ``<prefix>.<column>`` if a prefix is given."""
        column = self.get("tag_srcsorting")
        if not column:
            return None
        if prefix is not None:
            return f"{prefix}.{column}"
        return column

    def get_attribute_setting_names(self) -> list[str]:
        return super().get_attribute_setting_names() + ["tag_langcolumn", "tag_srctable", "tag_srcsorting"]

    def _schema_problems(self, inspector: Inspector) -> list[str]:
        problems = super()._schema_problems(inspector)

        sort_table = self.get_sort_source_table()
        if sort_table is not None:
            if not inspector.has_table(sort_table):
                problems.append(f"sort table {sort_table} does not exist")
            else:
                sort_columns = {column["name"] for column in inspector.get_columns(sort_table)}
                for column in (SORT_SOURCE_ID_COLUMN, self.get_sort_source_column()):
                    if column is not None and column not in sort_columns:
                        problems.append(f"tag_srcsorting: column {column} does not exist on {sort_table}")

        language_column = self.get_language_column()
        table = self.get_tag_source()
        if language_column is None:
            problems.append("tag_langcolumn is not set")
        elif inspector.has_table(table):
            columns = {column["name"] for column in inspector.get_columns(table)}
            if language_column not in columns:
                problems.append(f"tag_langcolumn: column {language_column} does not exist on {table}")
        return problems

    def _ensure_configured(self, operation: str) -> bool:
        if self.is_properly_configured():
            return True
        self.logger.warning(WarningMessages.SKIPPED_MISCONFIGURED, self.id, operation)
        return False

    def _source_columns(self) -> SourceColumns:
        return SourceColumns(
            id=self.get_id_column(),
            value=self.get_value_column(),
            alias=self.get_alias_column(),
            sorting=self.get_sorting_column(),
            language=self.get_language_column(),
            sort_source=self.get_sort_source_column() if self.get_sort_source_table() else None,
        )

    def _item_id_label(self) -> str:
        return f"{self.settings.model_table or 'item'}_id"

    @contextmanager
    def _query_session(self) -> Iterator[tuple[Session, TranslatedTagQueryBuilder]]:
        with self.session_factory() as session:
            tables = TagSourceTables.reflect(
                session.connection(),
                self.get_tag_source(),
                self.get_sort_source_table(),
            )
            builder = TranslatedTagQueryBuilder(
                self.id,
                self._source_columns(),
                tables,
                self.get_where_predicate(),
            )
            yield session, builder

    def select_value_ids(
        self,
        item_ids: Iterable[int] | None = None,
        used_only: bool = False,
        with_counts: bool = False,
    ) -> tuple[list[ValueId], dict[ValueId, int] | None]:
        """Ids of the tags that apply, in display order.

        The result does not consider whether a value exists in the active or
        fallback language.

        Args:
            item_ids: Limit to tags related to these items. None means no limit.
            used_only: Without item_ids, only return tags related to any item.
            with_counts: Also return relation counts keyed by id and by alias.

        Returns:
            (value ids, counts or None)
        """
        empty_counts = {} if with_counts else None
        if item_ids is not None:
            item_ids = list(item_ids)
            if not item_ids:
                return [], empty_counts
        if not self._ensure_configured("select_value_ids"):
            return [], empty_counts
        return self._select_value_ids(item_ids, used_only, with_counts)

    def _select_value_ids(
        self,
        item_ids: list[int] | None,
        used_only: bool,
        with_counts: bool,
    ) -> tuple[list[ValueId], dict[ValueId, int] | None]:
        rows = self._value_id_rows(item_ids, used_only)
        value_ids = [row.value_id for row in rows]
        if not with_counts:
            return value_ids, None

        amounts = self._value_counts(value_ids)
        counts: dict[ValueId, int] = {}
        for row in rows:
            counts[row.value_id] = amounts[row.value_id]
            counts[row.alias] = amounts[row.value_id]
        return value_ids, counts

    def _value_id_rows(self, item_ids: list[int] | None, used_only: bool) -> list:
        with self._query_session() as (session, builder):
            return session.execute(builder.value_ids(item_ids, used_only)).all()

    def _value_counts(self, value_ids: list[ValueId]) -> dict[ValueId, int]:
        amounts = self.relations.value_counts(self.id, value_ids)
        return {value_id: amounts.get(value_id, 0) for value_id in value_ids}

    def fetch_values(self, value_ids: Iterable[ValueId], language: str) -> Iterator[dict[str, Any]]:
        """Lazily yield the tag rows of the given ids in one language.

        The database session stays open until the iterator is exhausted or closed.
        """
        value_ids = list(value_ids)
        if not value_ids or not self._ensure_configured("fetch_values"):
            return iter(())
        return self._fetch_values(value_ids, language)

    def _fetch_values(self, value_ids: list[ValueId], language: str) -> Iterator[dict[str, Any]]:
        with self._query_session() as (session, builder):
            result = session.execute(builder.values(value_ids, language))
            for row in result.mappings():
                yield dict(row)

    def get_filter_options(
        self,
        item_ids: Iterable[int] | None = None,
        used_only: bool = False,
        counter: dict[ValueId, int] | None = None,
    ) -> dict[ValueId, Any]:
        """Display values of the applicable tags keyed by alias.

        Args:
            item_ids: Limit to tags of these items. None means no limit.
            used_only: Without item_ids, only tags in use.
            counter: If given, filled with relation counts keyed by id and by the
                alias each option is returned under.
        """
        if item_ids is not None:
            item_ids = list(item_ids)
            if not item_ids:
                return {}
        if not self._ensure_configured("get_filter_options"):
            return {}

        value_ids = [row.value_id for row in self._value_id_rows(item_ids, used_only)]
        if not value_ids:
            return {}

        id_column = self.get_id_column()
        alias_column = self.get_alias_column()
        value_column = self.get_value_column()
        active = self.languages.active_language
        fallback = self.languages.fallback_language

        options: dict[ValueId, Any] = {}
        retrieved = collect_options(
            self._fetch_values(value_ids, active), options, id_column, alias_column, value_column
        )
        missing = missing_value_ids(value_ids, retrieved)
        if missing and self.languages.needs_fallback:
            self.logger.debug(
                "Attribute %s: %d of %d options missing in %s, trying %s",
                self.id,
                len(missing),
                len(value_ids),
                active,
                fallback,
            )
            retrieved.update(
                collect_options(
                    self._fetch_values(missing, fallback), options, id_column, alias_column, value_column
                )
            )

        if counter is not None:
            amounts = self._value_counts(value_ids)
            # alias keys follow the aliases used in options
            alias_counts: dict[ValueId, int] = {}
            for value_id, alias in retrieved.items():
                alias_counts.setdefault(alias, amounts[value_id])
            counter.update(amounts)
            counter.update(alias_counts)

        return options

    def get_translated_data_for(self, item_ids: Iterable[int], language: str) -> ItemData:
        """Tag rows of the items in exactly one language: ``{item_id: {tag_id: row}}``."""
        item_ids = list(item_ids)
        if not item_ids or not self._ensure_configured("get_translated_data_for"):
            return {}
        return self._translated_data_for(item_ids, language)

    def _translated_data_for(self, item_ids: list[int], language: str) -> ItemData:
        label = self._item_id_label()
        with self._query_session() as (session, builder):
            result = session.execute(builder.translated_data(item_ids, language, label))
            return rows_by_item(result.mappings(), label, self.get_id_column())

    def get_data_for(self, item_ids: Iterable[int]) -> ItemData:
        """Tag rows of the items, active language first, fallback language for the gaps.

        Every requested item is present in the result, items without tags map
        to an empty dict.
        """
        item_ids = list(dict.fromkeys(item_ids))
        if not item_ids or not self._ensure_configured("get_data_for"):
            return {}

        active = self.languages.active_language
        fallback = self.languages.fallback_language

        result: ItemData = {item_id: {} for item_id in item_ids}
        merge_missing(result, self._translated_data_for(item_ids, active))

        # Items with fewer rows than relations need the fallback language.
        pending = unresolved_item_ids(result, self.get_tag_count(item_ids))
        if pending and self.languages.needs_fallback:
            self.logger.debug(
                "Attribute %s: %d items incomplete in %s, trying %s",
                self.id,
                len(pending),
                active,
                fallback,
            )
            merge_missing(result, self._translated_data_for(pending, fallback))

        return result

    def search_for(self, pattern: str) -> list[int]:
        """Items tagged with a value matching pattern in the active language."""
        return self.search_for_in_languages(pattern, [self.languages.active_language])

    def search_for_in_languages(
        self,
        pattern: str,
        languages: Iterable[str] | None = None,
        *,
        partial: bool = True,
    ) -> list[int]:
        """Items tagged with a value whose value or alias column matches pattern.

        Args:
            pattern: Search pattern, ``*`` and ``?`` are wildcards.
            languages: Restrict the matching tag rows to these languages.
                Empty or None searches all languages.
            partial: Match pattern as a substring.
        """
        if not self._ensure_configured("search_for_in_languages"):
            return []

        keyword, use_like = normalize_search_keyword(pattern, partial)
        with self._query_session() as (session, builder):
            stmt = builder.search_item_ids(keyword, use_like, languages)
            return list(session.execute(stmt).scalars())

    def resolve_by_language(
        self,
        return_column: str,
        search_column: str,
        language: str,
        search_value: Any,
    ) -> Any | None:
        """Look up a tag row by one column and return another one.

        All language siblings are considered, the row in ``language`` wins,
        otherwise the first row found. Store errors are logged and reported as
        no match.
        """
        table = self.get_tag_source()
        try:
            if not self._ensure_configured("resolve_by_language"):
                return None
            with self._query_session() as (session, builder):
                for column in (return_column, search_column):
                    if column not in builder.tables.source.c:
                        self.logger.warning(WarningMessages.UNKNOWN_COLUMN, self.id, column, table)
                        return None
                rows = session.execute(builder.rows_matching(search_column, search_value)).mappings().all()
        except SQLAlchemyError as e:
            self.logger.error(
                "Attribute %s: lookup of %s=%r on %s failed: %s",
                self.id,
                search_column,
                search_value,
                table,
                e,
            )
            return None

        if not rows:
            return None

        language_column = self.get_language_column()
        chosen = next((row for row in rows if row[language_column] == language), rows[0])
        return chosen[return_column]

    def alias_for_id(self, value_id: ValueId, language: str | None = None) -> Any | None:
        return self.resolve_by_language(
            self.get_alias_column(),
            self.get_id_column(),
            language or self.languages.active_language,
            value_id,
        )

    def id_for_alias(self, alias: Any, language: str | None = None) -> Any | None:
        return self.resolve_by_language(
            self.get_id_column(),
            self.get_alias_column(),
            language or self.languages.active_language,
            alias,
        )

    def to_aliases(self, value_ids: Iterable[ValueId], language: str | None = None) -> list:
        """Aliases of the given ids, unknown ids are skipped."""
        aliases = []
        for value_id in value_ids:
            alias = self.alias_for_id(value_id, language)
            if alias is not None:
                aliases.append(alias)
        return aliases

    def from_aliases(self, aliases: Iterable[Any], language: str | None = None) -> list:
        """Ids of the given aliases, unknown aliases are skipped."""
        value_ids = []
        for alias in aliases:
            value_id = self.id_for_alias(alias, language)
            if value_id is not None:
                value_ids.append(value_id)
        return value_ids

    def set_translated_data_for(self, values: Mapping[int, Iterable[ValueId]], language: str) -> None:
        """Store tags for the items. Relations are shared, so every language changes."""
        self.logger.debug("Attribute %s: writing %s data affects all languages", self.id, language)
        self.set_data_for(values)

    def unset_value_for(self, item_ids: Iterable[int], language: str) -> None:
        """Remove the tags of the items. Relations are shared, so every language is cleared."""
        self.logger.debug("Attribute %s: removing %s data affects all languages", self.id, language)
        self.unset_data_for(item_ids)
