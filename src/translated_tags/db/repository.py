from collections.abc import Callable, Iterable, Mapping
from logging import getLogger

import polars as pl
from sqlalchemy import distinct, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from translated_tags.db.schema import Attribute, AttributeSetting, TagRelation
from translated_tags.models import AttributeSettings, ValueId
from translated_tags.utils.messages import ErrorMessages

TAG_SETTING_NAMES = [name for name in AttributeSettings.model_fields if name.startswith("tag_")]

RELATION_SCHEMA = {
    "id": pl.Int64,
    "item_id": pl.Int64,
    "value_id": pl.Int64,
    "value_sorting": pl.Int64,
}
PAIR_KEYS = ["item_id", "value_id"]


def get_default_session_factory() -> Callable[[], Session]:
    from translated_tags.db.runtime import get_session_factory

    return get_session_factory()


class TagRelationRepository:
    """Access to the item <-> tag relation table."""

    def __init__(self, session_factory: Callable[[], Session] | None = None):
        self.logger = getLogger(__name__)
        self.session_factory = session_factory or get_default_session_factory()

    def tag_counts(self, att_id: int, item_ids: Iterable[int]) -> dict[int, int]:
        """Number of distinct values related to each item."""
        item_ids = list(item_ids)
        if not item_ids:
            return {}

        with self.session_factory() as session:
            rows = (
                session.query(TagRelation.item_id, func.count(distinct(TagRelation.value_id)))
                .filter(TagRelation.att_id == att_id, TagRelation.item_id.in_(item_ids))
                .group_by(TagRelation.item_id)
                .all()
            )
            return {item_id: int(count) for item_id, count in rows}

    def value_counts(self, att_id: int, value_ids: Iterable[ValueId]) -> dict[ValueId, int]:
        """Number of relation rows referencing each value."""
        value_ids = list(value_ids)
        if not value_ids:
            return {}

        with self.session_factory() as session:
            rows = (
                session.query(TagRelation.value_id, func.count(TagRelation.value_id))
                .filter(TagRelation.att_id == att_id, TagRelation.value_id.in_(value_ids))
                .group_by(TagRelation.value_id)
                .all()
            )
            return {value_id: int(count) for value_id, count in rows}

    def list_value_ids(self, att_id: int, item_ids: Iterable[int]) -> dict[int, list[int]]:
        """Related value ids per item, in their stored order."""
        item_ids = list(item_ids)
        if not item_ids:
            return {}

        with self.session_factory() as session:
            rows = (
                session.query(TagRelation.item_id, TagRelation.value_id)
                .filter(TagRelation.att_id == att_id, TagRelation.item_id.in_(item_ids))
                .order_by(TagRelation.item_id, TagRelation.value_sorting, TagRelation.id)
                .all()
            )

        result: dict[int, list[int]] = {}
        for item_id, value_id in rows:
            values = result.setdefault(item_id, [])
            if value_id not in values:
                values.append(value_id)
        return result

    def _load_relations(self, session: Session, att_id: int, item_ids: list[int]) -> pl.DataFrame:
        rows = (
            session.query(
                TagRelation.id,
                TagRelation.item_id,
                TagRelation.value_id,
                TagRelation.value_sorting,
            )
            .filter(TagRelation.att_id == att_id, TagRelation.item_id.in_(item_ids))
            .all()
        )
        return pl.DataFrame(
            [
                {
                    "id": row.id,
                    "item_id": row.item_id,
                    "value_id": row.value_id,
                    "value_sorting": row.value_sorting,
                }
                for row in rows
            ],
            schema=RELATION_SCHEMA,
        )

    def replace_values(self, att_id: int, values: Mapping[int, Iterable[int]]) -> None:
        """Make the relation rows of each given item match the given value ids.

        The position of a value id becomes its ``value_sorting``. Repeated value
        ids of one item are stored once.
        """
        item_ids = list(values)
        if not item_ids:
            return

        desired = pl.DataFrame(
            [
                {"item_id": item_id, "value_id": value_id, "value_sorting": position}
                for item_id, value_ids in values.items()
                for position, value_id in enumerate(dict.fromkeys(value_ids))
            ],
            schema={key: RELATION_SCHEMA[key] for key in ("item_id", "value_id", "value_sorting")},
        )

        with self.session_factory() as session:
            try:
                existing = self._load_relations(session, att_id, item_ids)
                stale = existing.join(desired, on=PAIR_KEYS, how="anti")
                new = desired.join(existing, on=PAIR_KEYS, how="anti")
                resorted = existing.join(desired, on=PAIR_KEYS, how="inner", suffix="_new").filter(
                    pl.col("value_sorting") != pl.col("value_sorting_new")
                )

                if not stale.is_empty():
                    session.query(TagRelation).filter(TagRelation.id.in_(stale["id"].to_list())).delete(
                        synchronize_session=False
                    )
                if not new.is_empty():
                    records = [{"att_id": att_id, **row} for row in new.to_dicts()]
                    session.bulk_insert_mappings(TagRelation.__mapper__, records)  # type: ignore[arg-type]
                for relation_id, value_sorting in resorted.select(["id", "value_sorting_new"]).iter_rows():
                    session.query(TagRelation).filter(TagRelation.id == relation_id).update(
                        {TagRelation.value_sorting: value_sorting}, synchronize_session=False
                    )
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                msg = ErrorMessages.DB_OPERATION_FAILED.format(error_msg=str(e))
                self.logger.error(msg)
                raise ValueError(msg) from e

        self.logger.debug(
            "Relations of attribute %s replaced: -%d +%d ~%d",
            att_id,
            stale.height,
            new.height,
            resorted.height,
        )

    def delete_items(self, att_id: int, item_ids: Iterable[int]) -> int:
        """Delete every relation row of the given items. Returns the number of rows removed."""
        item_ids = list(item_ids)
        if not item_ids:
            return 0

        with self.session_factory() as session:
            try:
                deleted = (
                    session.query(TagRelation)
                    .filter(TagRelation.att_id == att_id, TagRelation.item_id.in_(item_ids))
                    .delete(synchronize_session=False)
                )
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                msg = ErrorMessages.DB_OPERATION_FAILED.format(error_msg=str(e))
                self.logger.error(msg)
                raise ValueError(msg) from e
        return deleted


class AttributeReader:
    """Read-only access to persisted attribute configuration."""

    def __init__(self, session_factory: Callable[[], Session] | None = None):
        self.logger = getLogger(__name__)
        self.session_factory = session_factory or get_default_session_factory()

    def get_attribute_settings(self, att_id: int) -> AttributeSettings | None:
        with self.session_factory() as session:
            attribute = session.get(Attribute, att_id)
            if attribute is None:
                return None
            settings = {
                setting.key: setting.value
                for setting in attribute.settings
                if setting.key in TAG_SETTING_NAMES
            }
            return AttributeSettings(
                id=attribute.id,
                model_table=attribute.model_table,
                col_name=attribute.col_name,
                type=attribute.type,
                **settings,
            )

    def list_attributes(self, model_table: str | None = None) -> list[Attribute]:
        with self.session_factory() as session:
            query = session.query(Attribute)
            if model_table is not None:
                query = query.filter(Attribute.model_table == model_table)
            return query.order_by(Attribute.id).all()

    def list_model_tables(self) -> list[str]:
        with self.session_factory() as session:
            rows = session.query(Attribute.model_table).distinct().all()
            return sorted(row[0] for row in rows)

    def is_model_table(self, table_name: str) -> bool:
        with self.session_factory() as session:
            return (
                session.query(Attribute.id).filter(Attribute.model_table == table_name).first()
                is not None
            )


class AttributeRepository:
    """Write access to persisted attribute configuration."""

    def __init__(self, session_factory: Callable[[], Session] | None = None):
        self.logger = getLogger(__name__)
        self.session_factory = session_factory or get_default_session_factory()

    def save_attribute(self, settings: AttributeSettings) -> int:
        """Create or update an attribute and all of its tag settings."""
        with self.session_factory() as session:
            try:
                attribute = session.get(Attribute, settings.id)
                if attribute is None:
                    attribute = Attribute(id=settings.id)
                    session.add(attribute)
                attribute.model_table = settings.model_table
                attribute.col_name = settings.col_name
                attribute.type = settings.type

                stored = {setting.key: setting for setting in attribute.settings}
                for name in TAG_SETTING_NAMES:
                    value = settings.get(name)
                    if name in stored:
                        stored[name].value = value
                    else:
                        attribute.settings.append(AttributeSetting(key=name, value=value))
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                msg = ErrorMessages.DB_OPERATION_FAILED.format(error_msg=str(e))
                self.logger.error(msg)
                raise ValueError(msg) from e

        self.logger.info("Saved attribute %s (%s.%s)", settings.id, settings.model_table, settings.col_name)
        return settings.id

    def delete_attribute(self, att_id: int) -> None:
        with self.session_factory() as session:
            attribute = session.get(Attribute, att_id)
            if attribute is None:
                msg = ErrorMessages.ATTRIBUTE_NOT_FOUND.format(att_id=att_id)
                self.logger.error(msg)
                raise ValueError(msg)
            session.query(TagRelation).filter(TagRelation.att_id == att_id).delete(synchronize_session=False)
            session.delete(attribute)
            session.commit()
