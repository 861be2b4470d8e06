"""Database connection and session management.

This module builds the SQLAlchemy engine and session factory from the
application settings. The factory is stored on ``app.state`` so that every
request gets its own session from the shared, bounded connection pool.
"""

import logging
from pathlib import Path
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from config import Settings
from models.base import Base
# Import models to ensure they are registered with Base.metadata
import models  # noqa: F401

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(settings: Settings) -> Engine:
    """Create the engine for the configured database URL.

    Args:
        settings: Application settings.

    Returns:
        SQLAlchemy Engine.
    """
    url = settings.database_url
    if url.startswith("sqlite"):
        if ":///" in url and not url.endswith(":memory:"):
            # Ensure the directory for the database file exists
            Path(url.split(":///", 1)[1]).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(url, connect_args={"check_same_thread": False})
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    else:
        engine = create_engine(
            url,
            pool_size=settings.db_pool_size,
            max_overflow=0,
            pool_pre_ping=True,
        )
    logger.info("Database engine created for %s", engine.url.render_as_string(hide_password=True))
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create tables if they do not exist."""
    Base.metadata.create_all(bind=engine)


def get_db(request: Request) -> Iterator[Session]:
    """Dependency for getting a database session."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
