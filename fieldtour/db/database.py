"""
Database configuration and connection handling.

Engines and session factories are built explicitly and handed to the
repositories that need them; nothing connects on import.
"""

import logging
from typing import Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fieldtour.config import config
from fieldtour.db.models import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_engine(database_url: str = None, echo: bool = None) -> Engine:
    """Create an engine for ``database_url`` (defaults to config.DATABASE_URL)."""
    database_url = database_url or config.DATABASE_URL
    engine_kwargs = {
        "echo": config.SQLALCHEMY_ECHO if echo is None else echo,
        "pool_pre_ping": True,
    }

    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url == "sqlite://":
            # one shared connection, otherwise every session sees an empty db
            engine_kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **engine_kwargs)
    if is_sqlite:
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    logger.info(f"Database engine ready: {database_url.split('@')[-1]}")
    return engine


def create_session_factory(engine: Engine, create_schema: bool = True) -> sessionmaker:
    if create_schema:
        create_tables(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def is_database_available(engine: Optional[Engine]) -> bool:
    if not config.USE_DATABASE or engine is None:
        return False
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False


def create_tables(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")


def drop_tables(engine: Engine) -> None:
    Base.metadata.drop_all(bind=engine)
    logger.info("Database tables dropped")
