from collections.abc import Collection, Iterable
from dataclasses import dataclass

from sqlalchemy import MetaData, Table, and_, func, or_, select, text
from sqlalchemy.sql import Select
from sqlalchemy.sql.elements import TextClause

from translated_tags.db.schema import TagRelation
from translated_tags.utils.messages import ErrorMessages

SOURCE_ALIAS = "source"
SORT_ALIAS = "sort"
RELATION_ALIAS = "rel"
SORT_SOURCE_ID_COLUMN = "id"


def normalize_search_keyword(keyword: str, partial: bool) -> tuple[str, bool]:
    """Normalize a search keyword for SQL LIKE conditions.

    ``*`` and ``?`` are translated to ``%`` and ``_``. Any wildcard (or
    ``partial``) turns the keyword into a substring match.
    """
    has_wildcard = "*" in keyword or "?" in keyword or "%" in keyword or partial
    if "*" in keyword:
        keyword = keyword.replace("*", "%")
    if "?" in keyword:
        keyword = keyword.replace("?", "_")

    if has_wildcard:
        if not keyword.startswith("%"):
            keyword = "%" + keyword
        if not keyword.endswith("%"):
            keyword = keyword + "%"

    return keyword, has_wildcard


def _has_statement_separator(expression: str) -> bool:
    """True if ``;`` appears outside of quoted literals and identifiers."""
    quote = None
    for char in expression:
        if quote is not None:
            if char == quote:
                quote = None
        elif char in ("'", '"', "`"):
            quote = char
        elif char == ";":
            return True
    return False


@dataclass(frozen=True)
class WherePredicate:
    """Boolean SQL fragment taken verbatim from the attribute settings.

    The fragment is never parsed, it is wrapped in parentheses and ANDed into
    the source queries. It may reference the tag table as ``source`` and the
    sort table as ``sort``. A ``;`` outside of quotes is rejected. Only trusted
    configuration may be used to build it.
    """

    expression: str

    def __post_init__(self) -> None:
        if not self.expression.strip():
            raise ValueError(ErrorMessages.INVALID_PREDICATE.format(reason="empty expression"))
        if _has_statement_separator(self.expression):
            raise ValueError(
                ErrorMessages.INVALID_PREDICATE.format(reason="statement separators are not allowed")
            )

    @classmethod
    def from_setting(cls, value: str | None) -> "WherePredicate | None":
        if value is None or not value.strip():
            return None
        return cls(value)

    def clause(self) -> TextClause:
        # text() would read ":name" as a bind parameter
        return text("(" + self.expression.replace(":", "\\:") + ")")


@dataclass(frozen=True)
class SourceColumns:
    """Resolved column names of a tag source table."""

    id: str
    value: str
    alias: str
    sorting: str
    language: str
    sort_source: str | None = None


@dataclass(frozen=True)
class TagSourceTables:
    """Aliased tables taking part in the attribute queries."""

    source: object
    relation: object
    sort: object | None = None

    @classmethod
    def reflect(cls, connection, source_table: str, sort_table: str | None = None) -> "TagSourceTables":
        metadata = MetaData()
        source = Table(source_table, metadata, autoload_with=connection).alias(SOURCE_ALIAS)
        sort = None
        if sort_table:
            sort = Table(sort_table, metadata, autoload_with=connection).alias(SORT_ALIAS)
        relation = TagRelation.__table__.alias(RELATION_ALIAS)
        return cls(source=source, relation=relation, sort=sort)


class TranslatedTagQueryBuilder:
    """Build the statements of one translated tag attribute."""

    def __init__(
        self,
        att_id: int,
        columns: SourceColumns,
        tables: TagSourceTables,
        predicate: WherePredicate | None = None,
    ) -> None:
        self.att_id = att_id
        self.columns = columns
        self.tables = tables
        self.predicate = predicate

    @property
    def id_column(self):
        return self.tables.source.c[self.columns.id]

    @property
    def value_column(self):
        return self.tables.source.c[self.columns.value]

    @property
    def alias_column(self):
        return self.tables.source.c[self.columns.alias]

    @property
    def sorting_column(self):
        return self.tables.source.c[self.columns.sorting]

    @property
    def language_column(self):
        return self.tables.source.c[self.columns.language]

    def _sort_source_column(self):
        if self.tables.sort is None or not self.columns.sort_source:
            return None
        return self.tables.sort.c[self.columns.sort_source]

    def _join_sort_source(self, from_clause):
        if self.tables.sort is None:
            return from_clause
        return from_clause.join(
            self.tables.sort,
            self.id_column == self.tables.sort.c[SORT_SOURCE_ID_COLUMN],
        )

    def _apply_predicate(self, stmt: Select) -> Select:
        if self.predicate is None:
            return stmt
        return stmt.where(self.predicate.clause())

    def _ordering(self, grouped: bool) -> list:
        order = []
        sort_source = self._sort_source_column()
        if sort_source is not None:
            order.append(func.min(sort_source) if grouped else sort_source)
        order.append(func.min(self.sorting_column) if grouped else self.sorting_column)
        order.append(self.id_column)
        return order

    def value_ids(self, item_ids: Collection | None, used_only: bool) -> Select:
        """Distinct value ids (with a representative alias), in display order.

        item_ids given: values related to those items.
        used_only: values related to any item of the attribute.
        otherwise: the whole vocabulary.
        """
        source = self.tables.source
        rel = self.tables.relation
        from_clause = source
        conditions = []

        if item_ids is not None:
            from_clause = source.outerjoin(
                rel,
                and_(rel.c.att_id == self.att_id, rel.c.value_id == self.id_column),
            )
            conditions.append(rel.c.item_id.in_(list(item_ids)))
        elif used_only:
            from_clause = source.join(rel, rel.c.value_id == self.id_column)
            conditions.append(rel.c.att_id == self.att_id)

        stmt = select(
            self.id_column.label("value_id"),
            func.min(self.alias_column).label("alias"),
        ).select_from(self._join_sort_source(from_clause))
        if conditions:
            stmt = stmt.where(*conditions)
        stmt = self._apply_predicate(stmt)
        return stmt.group_by(self.id_column).order_by(*self._ordering(grouped=True))

    def values(self, value_ids: Iterable, language: str) -> Select:
        """All source columns of the given ids in one language."""
        source = self.tables.source
        stmt = (
            select(source)
            .select_from(self._join_sort_source(source))
            .where(self.id_column.in_(list(value_ids)), self.language_column == language)
        )
        stmt = self._apply_predicate(stmt)
        return stmt.order_by(*self._ordering(grouped=False))

    def translated_data(self, item_ids: Iterable, language: str, item_label: str) -> Select:
        """Source rows in one language joined with the relation rows of the items."""
        source = self.tables.source
        rel = self.tables.relation
        from_clause = source.outerjoin(
            rel,
            and_(
                rel.c.att_id == self.att_id,
                rel.c.value_id == self.id_column,
                self.language_column == language,
            ),
        )
        stmt = (
            select(source, rel.c.item_id.label(item_label))
            .select_from(self._join_sort_source(from_clause))
            .where(rel.c.item_id.in_(list(item_ids)))
        )
        stmt = self._apply_predicate(stmt)
        return stmt.order_by(*self._ordering(grouped=False))

    def search_item_ids(self, keyword: str, use_like: bool, languages: Iterable[str] | None) -> Select:
        """Distinct item ids related to a tag whose value or alias matches."""
        rel = self.tables.relation

        def matches(column):
            return column.like(keyword) if use_like else column == keyword

        matching_values = select(self.id_column).where(
            or_(matches(self.value_column), matches(self.alias_column))
        )
        languages = list(languages or [])
        if languages:
            matching_values = matching_values.where(self.language_column.in_(languages))

        return (
            select(rel.c.item_id)
            .where(rel.c.att_id == self.att_id, rel.c.value_id.in_(matching_values.distinct()))
            .distinct()
            .order_by(rel.c.item_id)
        )

    def rows_matching(self, search_column: str, search_value) -> Select:
        """All language siblings whose search_column equals search_value."""
        source = self.tables.source
        stmt = (
            select(source)
            .select_from(self._join_sort_source(source))
            .where(source.c[search_column] == search_value)
        )
        stmt = self._apply_predicate(stmt)
        return stmt.order_by(self.sorting_column, self.id_column)
