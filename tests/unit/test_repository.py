from __future__ import annotations

from collections.abc import Callable

import pytest
from sqlalchemy.orm import Session

from translated_tags.db.repository import AttributeReader, AttributeRepository, TagRelationRepository
from translated_tags.db.schema import AttributeSetting, TagRelation
from translated_tags.models import AttributeSettings

pytestmark = pytest.mark.translated_tags


def _relation_rows(session_factory: Callable[[], Session], item_id: int) -> list[tuple[int, int]]:
    with session_factory() as session:
        rows = (
            session.query(TagRelation.value_id, TagRelation.value_sorting)
            .filter(TagRelation.att_id == 1, TagRelation.item_id == item_id)
            .order_by(TagRelation.value_sorting)
            .all()
        )
        return [tuple(row) for row in rows]


class TestTagRelationRepository:
    def test_tag_counts_are_distinct(self, session_factory: Callable[[], Session]) -> None:
        repo = TagRelationRepository(session_factory)
        assert repo.tag_counts(1, [7, 8, 10]) == {7: 2, 8: 1}

    def test_tag_counts_scoped_to_attribute(self, session_factory: Callable[[], Session]) -> None:
        repo = TagRelationRepository(session_factory)
        assert repo.tag_counts(2, [7]) == {}
        assert repo.tag_counts(1, []) == {}

    def test_value_counts_count_every_row(self, session_factory: Callable[[], Session]) -> None:
        repo = TagRelationRepository(session_factory)
        assert repo.value_counts(1, [3, 5, 11]) == {3: 3, 5: 1}

    def test_list_value_ids(self, session_factory: Callable[[], Session]) -> None:
        repo = TagRelationRepository(session_factory)
        assert repo.list_value_ids(1, [7, 9]) == {7: [3, 5], 9: [3, 9]}

    def test_replace_values_inserts(self, session_factory: Callable[[], Session]) -> None:
        repo = TagRelationRepository(session_factory)
        repo.replace_values(1, {10: [9, 1, 9]})
        assert _relation_rows(session_factory, 10) == [(9, 0), (1, 1)]

    def test_replace_values_diffs_existing_rows(self, session_factory: Callable[[], Session]) -> None:
        repo = TagRelationRepository(session_factory)
        repo.replace_values(1, {9: [1, 3]})
        assert _relation_rows(session_factory, 9) == [(1, 0), (3, 1)]

    def test_replace_values_leaves_other_items(self, session_factory: Callable[[], Session]) -> None:
        repo = TagRelationRepository(session_factory)
        repo.replace_values(1, {8: []})
        assert _relation_rows(session_factory, 8) == []
        assert repo.tag_counts(1, [7, 9]) == {7: 2, 9: 2}

    def test_delete_items(self, session_factory: Callable[[], Session]) -> None:
        repo = TagRelationRepository(session_factory)
        assert repo.delete_items(1, [7]) == 3
        assert repo.delete_items(1, []) == 0
        assert repo.tag_counts(1, [7]) == {}


class TestAttributeRepository:
    def test_save_and_read(self, session_factory: Callable[[], Session], settings: AttributeSettings) -> None:
        AttributeRepository(session_factory).save_attribute(settings)

        assert AttributeReader(session_factory).get_attribute_settings(1) == settings

    def test_save_updates_settings(
        self, session_factory: Callable[[], Session], settings: AttributeSettings
    ) -> None:
        repo = AttributeRepository(session_factory)
        repo.save_attribute(settings)
        repo.save_attribute(settings.model_copy(update={"tag_where": "source.published = 1"}))

        stored = AttributeReader(session_factory).get_attribute_settings(1)
        assert stored is not None
        assert stored.tag_where == "source.published = 1"
        with session_factory() as session:
            assert session.query(AttributeSetting).filter(AttributeSetting.att_id == 1).count() == 9

    def test_unknown_attribute(self, session_factory: Callable[[], Session]) -> None:
        assert AttributeReader(session_factory).get_attribute_settings(42) is None

    def test_model_tables(self, session_factory: Callable[[], Session], settings: AttributeSettings) -> None:
        repo = AttributeRepository(session_factory)
        repo.save_attribute(settings)
        repo.save_attribute(settings.model_copy(update={"id": 2, "model_table": "mm_hats"}))

        reader = AttributeReader(session_factory)
        assert reader.list_model_tables() == ["mm_hats", "mm_shirts"]
        assert reader.is_model_table("mm_shirts")
        assert not reader.is_model_table("tl_colors")
        assert [attribute.id for attribute in reader.list_attributes("mm_hats")] == [2]

    def test_delete_attribute_removes_relations(
        self, session_factory: Callable[[], Session], settings: AttributeSettings
    ) -> None:
        repo = AttributeRepository(session_factory)
        repo.save_attribute(settings)
        repo.delete_attribute(1)

        assert AttributeReader(session_factory).get_attribute_settings(1) is None
        assert TagRelationRepository(session_factory).tag_counts(1, [7]) == {}

    def test_delete_missing_attribute(self, session_factory: Callable[[], Session]) -> None:
        with pytest.raises(ValueError, match="Attribute not found"):
            AttributeRepository(session_factory).delete_attribute(42)
