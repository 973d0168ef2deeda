import logging
import os
from pathlib import Path

from sqlalchemy import StaticPool, create_engine, event
from sqlalchemy.orm import sessionmaker

from translated_tags.db.schema import Base

logger = logging.getLogger(__name__)

DATABASE_ENV_VAR = "TRANSLATED_TAGS_DB"

# Global state
_db_path: Path | None = None
_engine = None
_SessionLocal = None


def set_database_path(path: Path) -> None:
    """Set the global database path."""
    global _db_path
    _db_path = Path(path)


def get_database_path() -> Path:
    """Return the configured database path, falling back to TRANSLATED_TAGS_DB."""
    if _db_path is not None:
        return _db_path
    env_path = os.environ.get(DATABASE_ENV_VAR)
    if env_path:
        return Path(env_path)
    raise RuntimeError(
        f"Database path is not set. Call set_database_path() or set {DATABASE_ENV_VAR} first."
    )


def enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _create_engine(db_path: Path):
    engine = create_engine(
        f"sqlite:///{db_path.absolute()}",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    event.listen(engine, "connect", enable_foreign_keys)
    return engine


def init_engine(path: Path | None = None, *, create_schema: bool = False) -> None:
    """Initialise the global engine and session factory.

    Args:
        path: Database file. Defaults to get_database_path().
        create_schema: Create the attribute/relation tables when missing.
            The database file may be created in that case.
    """
    global _engine, _SessionLocal

    db_path = Path(path) if path is not None else get_database_path()
    if not create_schema and not db_path.exists():
        raise FileNotFoundError(f"Database file not found: {db_path}")

    _engine = _create_engine(db_path)
    if create_schema:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        Base.metadata.create_all(_engine)
        logger.info("Schema ensured: %s", db_path)
    _SessionLocal = sessionmaker(bind=_engine, autoflush=False, autocommit=False)
    logger.debug("Engine initialised: %s", db_path)


def get_engine():
    """Return the global engine."""
    if _engine is None:
        raise RuntimeError("Engine is not initialised. Call init_engine() first.")
    return _engine


def get_session_factory():
    """Return the global session factory."""
    if _SessionLocal is None:
        raise RuntimeError("Session is not initialised. Call init_engine() first.")
    return _SessionLocal


def close_all() -> None:
    """Dispose the active engine and reset the session factory."""
    global _engine, _SessionLocal, _db_path

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionLocal = None
    _db_path = None
