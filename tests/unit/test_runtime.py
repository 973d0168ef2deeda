from __future__ import annotations

import pytest
from sqlalchemy import inspect

from translated_tags.db import runtime

pytestmark = [pytest.mark.translated_tags, pytest.mark.usefixtures("reset_runtime")]


def test_session_factory_requires_init() -> None:
    with pytest.raises(RuntimeError, match="init_engine"):
        runtime.get_session_factory()


def test_database_path_from_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv(runtime.DATABASE_ENV_VAR, str(tmp_path / "env.sqlite"))
    assert runtime.get_database_path() == tmp_path / "env.sqlite"


def test_database_path_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(runtime.DATABASE_ENV_VAR, raising=False)
    with pytest.raises(RuntimeError, match="Database path is not set"):
        runtime.get_database_path()


def test_explicit_path_wins(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv(runtime.DATABASE_ENV_VAR, str(tmp_path / "env.sqlite"))
    runtime.set_database_path(tmp_path / "explicit.sqlite")
    assert runtime.get_database_path() == tmp_path / "explicit.sqlite"


def test_init_engine_missing_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        runtime.init_engine(tmp_path / "missing.sqlite")


def test_init_engine_creates_schema(tmp_path) -> None:
    path = tmp_path / "data" / "tags.sqlite"
    runtime.init_engine(path, create_schema=True)

    assert path.exists()
    assert {"ATTRIBUTES", "ATTRIBUTE_SETTINGS", "TAG_RELATION"} <= set(
        inspect(runtime.get_engine()).get_table_names()
    )
    with runtime.get_session_factory()() as session:
        assert session.connection() is not None
