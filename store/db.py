# store/db.py
# ==============================
# SQLite database wrapper: engine, session factory, schema creation
# and the transaction boundary used by the services
# ==============================

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.settings import get_database_path
from store.models import Base

logger = logging.getLogger(__name__)


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    SQLite database handle.

    Use session_scope() for a unit of work: it commits when the block
    exits normally and rolls back on any exception.
    """

    def __init__(self, url: Optional[str] = None, echo: bool = False) -> None:
        """
        Create the engine and session factory.

        Args:
            url: SQLAlchemy URL. Defaults to sqlite:///<DATABASE_PATH>.
                 "sqlite://" gives a shared in-memory database.
            echo: Log emitted SQL.
        """
        self.url = url or f"sqlite:///{get_database_path()}"
        kwargs = {}
        if self.url in ("sqlite://", "sqlite:///:memory:"):
            kwargs = {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
        self.engine = create_engine(self.url, echo=echo, **kwargs)
        event.listen(self.engine, "connect", _enable_foreign_keys)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    @classmethod
    def in_memory(cls) -> "Database":
        db = cls("sqlite://")
        db.migrate()
        return db

    def migrate(self) -> None:
        """Create tables and indexes if they do not exist yet."""
        Base.metadata.create_all(self.engine)
        logger.debug("Database schema ready at %s", self.url)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Transactional scope around a series of operations.

        Yields:
            Session: committed on success, rolled back on error, always closed
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()
