"""
Database engine and per-request sessions.
"""
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, Session

from database.models import Base
from core.logger import logger


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Owns the engine and hands out sessions for the media ledger and accounts."""

    def __init__(self, database_url: str, pool_size: int = 10, max_overflow: int = 20):
        """
        Args:
            database_url: PostgreSQL in production; SQLite for development and tests
            pool_size: Pooled connections (ignored for SQLite)
            max_overflow: Extra connections above pool_size (ignored for SQLite)
        """
        url = make_url(database_url)
        self.is_sqlite = url.get_backend_name() == "sqlite"

        engine_kwargs = {"pool_pre_ping": True}
        if self.is_sqlite:
            # Sync routes and dependencies run in Starlette's threadpool
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            engine_kwargs["pool_size"] = pool_size
            engine_kwargs["max_overflow"] = max_overflow

        self.engine = create_engine(url, **engine_kwargs)
        if self.is_sqlite:
            # media.user_id -> users.id is only enforced by SQLite when asked
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        logger.info(f"Database engine initialized: {url.render_as_string(hide_password=True)}")

    def create_tables(self):
        """Create missing tables from the models (development only; production uses alembic)."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables created")

    def ping(self) -> None:
        """Round-trip a trivial query; raises SQLAlchemyError when the database is unreachable."""
        with self.engine.connect() as connection:
            connection.execute(text("SELECT 1"))

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """
        Session scoped to one unit of work: committed on success, rolled back
        on any exception.

        Usage:
            with db.get_session() as session:
                ...
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
