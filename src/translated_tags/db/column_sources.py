"""Column enumeration for the tag/sort source pickers.

A table that holds the items of a registered model has attribute columns
next to its plain columns. Those are reported in their own group.
"""

from collections.abc import Callable
from logging import getLogger
from typing import Protocol

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from translated_tags.db.repository import AttributeReader, get_default_session_factory
from translated_tags.db.schema import Base

logger = getLogger(__name__)

SQL_GROUP = "sql"
ATTRIBUTE_GROUP = "attribute"


class ColumnSource(Protocol):
    table: str

    def columns(self) -> dict[str, list[str]]: ...


class SchemaColumnSource:
    """Columns of a plain database table."""

    def __init__(self, table: str, session_factory: Callable[[], Session] | None = None):
        self.table = table
        self.session_factory = session_factory or get_default_session_factory()

    def _schema_columns(self) -> list[str]:
        with self.session_factory() as session:
            inspector = inspect(session.connection())
            if not inspector.has_table(self.table):
                logger.warning("Table %s does not exist", self.table)
                return []
            return [column["name"] for column in inspector.get_columns(self.table)]

    def columns(self) -> dict[str, list[str]]:
        return {SQL_GROUP: self._schema_columns()}


class AttributeColumnSource(SchemaColumnSource):
    """Columns of a model table, with the attribute columns in their own group."""

    def __init__(
        self,
        table: str,
        session_factory: Callable[[], Session] | None = None,
        reader: AttributeReader | None = None,
    ):
        super().__init__(table, session_factory)
        self.reader = reader or AttributeReader(self.session_factory)

    def columns(self) -> dict[str, list[str]]:
        attribute_columns = [attribute.col_name for attribute in self.reader.list_attributes(self.table)]
        excluded = set(attribute_columns)
        return {
            SQL_GROUP: [column for column in self._schema_columns() if column not in excluded],
            ATTRIBUTE_GROUP: attribute_columns,
        }


def column_source_for(
    table: str, session_factory: Callable[[], Session] | None = None
) -> ColumnSource:
    session_factory = session_factory or get_default_session_factory()
    reader = AttributeReader(session_factory)
    if reader.is_model_table(table):
        return AttributeColumnSource(table, session_factory, reader)
    return SchemaColumnSource(table, session_factory)


def list_source_tables(session_factory: Callable[[], Session] | None = None) -> list[str]:
    """Tables that can serve as tag or sort source. Internal tables are left out."""
    session_factory = session_factory or get_default_session_factory()
    internal = set(Base.metadata.tables)
    with session_factory() as session:
        names = inspect(session.connection()).get_table_names()
    return sorted(name for name in names if name not in internal)
