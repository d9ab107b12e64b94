"""
Database Configuration and Session Management

The engine and session factory live on a Database object that the
application lifespan creates and disposes. Nothing in the package holds a
module-level engine or an "is connected" flag; request handlers get their
session through the get_db dependency.
"""
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool
import logging

logger = logging.getLogger(__name__)

# Base class for all models
Base = declarative_base()


class Database:
    """
    Owns the SQLAlchemy engine and session factory for one process.

    PostgreSQL gets a QueuePool sized from settings. In-memory SQLite (tests)
    gets a StaticPool so every session sees the same database.
    """

    def __init__(self, url: str, pool_size: int = 20, max_overflow: int = 40, echo: bool = False):
        self.url = url

        if url.startswith("sqlite"):
            engine_kwargs = {"connect_args": {"check_same_thread": False}}
            if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs = {
                "poolclass": QueuePool,
                "pool_size": pool_size,
                "max_overflow": max_overflow,
                "pool_pre_ping": True,  # Verify connections before using
            }

        self.engine = create_engine(url, echo=echo, **engine_kwargs)
        event.listen(self.engine, "connect", self._on_connect)

        # expire_on_commit=False lets services return ORM rows after commit
        self.session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings) -> "Database":
        return cls(
            settings.DATABASE_URL,
            pool_size=settings.DATABASE_POOL_SIZE,
            max_overflow=settings.DATABASE_MAX_OVERFLOW,
            echo=settings.DEBUG,
        )

    def _on_connect(self, dbapi_connection, connection_record):
        """Set connection-level configuration on new connections."""
        cursor = dbapi_connection.cursor()
        if self.url.startswith("postgresql"):
            cursor.execute("SET TIME ZONE 'UTC'")
        else:
            # SQLite ignores foreign keys unless asked
            cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        logger.debug("New database connection established")

    def session(self) -> Session:
        return self.session_factory()

    def create_all(self) -> None:
        """
        Create all tables.

        Development and tests only; deployed databases are migrated.
        """
        # Import models so every table is registered on Base.metadata
        from tenantgate import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(request: Request) -> Iterator[Session]:
    """
    Dependency function that provides a database session.

    The session is closed after the request completes.
    """
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
