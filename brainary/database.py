"""
Brainary — Database Engine
Engine, session factory and schema creation. SQLite for development and tests,
PostgreSQL in production.
"""

import logging

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from sqlalchemy.pool import StaticPool

from brainary.config import DATABASE_URL, RESET_DATABASE

logger = logging.getLogger(__name__)


# ─── Engine Setup ────────────────────────────────────────────────────────────

_is_sqlite = DATABASE_URL.startswith("sqlite")


def _engine_options() -> dict:
    if _is_sqlite:
        # One connection shared across threads; an in-memory DB lives only on it
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {"pool_size": 10, "max_overflow": 20, "pool_pre_ping": True}


engine = create_engine(DATABASE_URL, echo=False, **_engine_options())

if _is_sqlite:
    @event.listens_for(engine, "connect")
    def _sqlite_on_connect(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# ─── Session Factory ─────────────────────────────────────────────────────────

SessionLocal = sessionmaker(bind=engine, autoflush=False)


# ─── Base Class ──────────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    """Declarative base for brainary.models."""


# ─── Dependency ──────────────────────────────────────────────────────────────

def get_db():
    """Request-scoped session, closed when the response is sent."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _drop_schema() -> None:
    if _is_sqlite:
        Base.metadata.drop_all(bind=engine)
        return
    with engine.begin() as conn:
        conn.execute(text("DROP SCHEMA public CASCADE"))
        conn.execute(text("CREATE SCHEMA public"))
        conn.execute(text("GRANT ALL ON SCHEMA public TO PUBLIC"))


def init_db():
    """Create missing tables at startup, after an optional full reset."""
    import brainary.models  # noqa: F401  registers the tables on Base.metadata

    if RESET_DATABASE:
        logger.warning("RESET_DATABASE is set: all students, progress and reports will be removed")
        _drop_schema()

    Base.metadata.create_all(bind=engine)
    logger.info(f"Schema ready: {', '.join(sorted(Base.metadata.tables))}")
