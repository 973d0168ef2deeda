"""pytest configuration for translated-tags tests"""

from __future__ import annotations

from collections.abc import Callable, Generator

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from translated_tags.db.schema import Base, TagRelation
from translated_tags.models import AttributeSettings, LanguageContext

ATTRIBUTE_ID = 1

# (pk, id, name, alias, language, sorting, published)
COLOR_ROWS = [
    (1, 1, "Green", "green", "en", 30, 1),
    (2, 1, "Grün", "gruen", "de", 30, 1),
    (3, 3, "Red", "red", "en", 10, 1),
    (4, 3, "Rot", "rot", "de", 10, 1),
    (5, 5, "Blau", "blau", "de", 20, 1),
    (6, 9, "Black", "black", "en", 40, 0),
    (7, 9, "Schwarz", "schwarz", "de", 40, 0),
    (8, 11, "White", "white", "en", 50, 1),
]

# (id, rank); value 11 has no rank
COLOR_ORDER_ROWS = [(1, 1), (3, 3), (5, 2), (9, 4)]

# (item_id, value_id); item 7 references value 3 twice
RELATION_ROWS = [(7, 3), (7, 3), (7, 5), (8, 1), (9, 3), (9, 9)]


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers"""
    config.addinivalue_line("markers", "translated_tags: translated-tags specific tests")


def seed_database(session_factory: Callable[[], Session]) -> None:
    """Create and fill the color tag tables and the relation rows of attribute 1."""
    with session_factory() as session:
        session.execute(
            text(
                "CREATE TABLE tl_colors ("
                "pk INTEGER PRIMARY KEY, id INTEGER NOT NULL, name TEXT, alias TEXT, "
                "language TEXT, sorting INTEGER, published INTEGER)"
            )
        )
        session.execute(text("CREATE TABLE tl_color_order (id INTEGER PRIMARY KEY, rank INTEGER)"))
        session.execute(
            text(
                "INSERT INTO tl_colors (pk, id, name, alias, language, sorting, published) "
                "VALUES (:pk, :id, :name, :alias, :language, :sorting, :published)"
            ),
            [
                dict(zip(("pk", "id", "name", "alias", "language", "sorting", "published"), row))
                for row in COLOR_ROWS
            ],
        )
        session.execute(
            text("INSERT INTO tl_color_order (id, rank) VALUES (:id, :rank)"),
            [{"id": value_id, "rank": rank} for value_id, rank in COLOR_ORDER_ROWS],
        )
        session.add_all(
            TagRelation(att_id=ATTRIBUTE_ID, item_id=item_id, value_id=value_id, value_sorting=position)
            for position, (item_id, value_id) in enumerate(RELATION_ROWS)
        )
        session.commit()


@pytest.fixture()
def session_factory() -> Callable[[], Session]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    seed_database(factory)
    return factory


@pytest.fixture()
def settings() -> AttributeSettings:
    return AttributeSettings(
        id=ATTRIBUTE_ID,
        model_table="mm_shirts",
        col_name="colors",
        tag_table="tl_colors",
        tag_column="name",
        tag_id="id",
        tag_alias="alias",
        tag_sorting="sorting",
        tag_langcolumn="language",
    )


@pytest.fixture()
def languages() -> LanguageContext:
    return LanguageContext(active_language="en", fallback_language="de")


@pytest.fixture()
def reset_runtime() -> Generator[None, None, None]:
    from translated_tags.db import runtime

    runtime.close_all()
    yield
    runtime.close_all()


@pytest.fixture()
def db_file(tmp_path, settings: AttributeSettings):
    """SQLite file with the seeded tables and attribute 1 persisted."""
    from translated_tags.db.repository import AttributeRepository

    path = tmp_path / "tags.sqlite"
    engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    seed_database(factory)
    AttributeRepository(factory).save_attribute(settings)
    engine.dispose()
    return path
