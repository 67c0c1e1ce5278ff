"""
SQLAlchemy database backend for the key-value port
"""

import json
from pathlib import Path
from typing import Any, List, Optional
from contextlib import contextmanager
import logging

from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker, scoped_session
from sqlalchemy.pool import StaticPool
from sqlalchemy.exc import SQLAlchemyError, IntegrityError, OperationalError

from .constants import DEFAULT_DB_FILENAME
from .db_models import Base, KeyValueModel
from .storage import KeyValueStore, StorageError

logger = logging.getLogger(__name__)


class SQLKeyValueStore(KeyValueStore):
    """SQLAlchemy-based key-value store"""

    def __init__(self, db_path: str = "~/.ctn", db_filename: Optional[str] = None, echo: bool = False):
        """
        Initialize database connection

        Args:
            db_path: Directory that will contain the SQLite file, or a full
                SQLAlchemy URL (anything containing "://")
            db_filename: SQLite file name inside db_path
            echo: If True, log all SQL statements
        """
        if "://" in db_path:
            # Full URL - use as-is
            self.db_dir = None
            self.db_path = db_path
            connection_string = db_path
        else:
            self.db_dir = Path(db_path).expanduser()
            self.db_path = self.db_dir / (db_filename or DEFAULT_DB_FILENAME)

            try:
                self.db_dir.mkdir(parents=True, exist_ok=True)
            except (PermissionError, OSError) as e:
                raise StorageError(f"Cannot create database directory: {e}") from e

            connection_string = f"sqlite:///{self.db_path}"

        if connection_string.startswith("sqlite"):
            # StaticPool keeps one connection, which also makes sqlite:// in-memory URLs usable
            self.engine = create_engine(
                connection_string,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool
            )
        else:
            self.engine = create_engine(connection_string, echo=echo)

        self.Session = scoped_session(sessionmaker(bind=self.engine))

        self._init_schema()

    def _init_schema(self):
        """Initialize database schema"""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Cannot initialize schema at {self.db_path}: {e}") from e
        logger.info(f"Key-value schema initialized at {self.db_path}")

    @contextmanager
    def session_scope(self):
        """Provide a transactional scope for database operations"""
        session = self.Session()
        try:
            yield session
            session.commit()
        except IntegrityError as e:
            session.rollback()
            logger.error(f"Database integrity error: {e}")
            raise
        except OperationalError as e:
            session.rollback()
            logger.error(f"Database operational error: {e}")
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error: {e}")
            raise
        finally:
            session.close()

    async def get(self, key: str) -> Optional[Any]:
        try:
            with self.session_scope() as session:
                entry = session.get(KeyValueModel, key)
                return entry.value if entry is not None else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read {key!r}: {e}") from e

    async def set(self, key: str, value: Any) -> None:
        try:
            json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value for {key!r} is not JSON-serializable: {e}") from e

        try:
            with self.session_scope() as session:
                entry = session.get(KeyValueModel, key)
                if entry is None:
                    session.add(KeyValueModel(key=key, value=value))
                else:
                    entry.value = value
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to write {key!r}: {e}") from e
        logger.debug(f"Stored {key}")

    async def remove(self, key: str) -> None:
        try:
            with self.session_scope() as session:
                entry = session.get(KeyValueModel, key)
                if entry is not None:
                    session.delete(entry)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to remove {key!r}: {e}") from e

    async def keys(self, prefix: str = "") -> List[str]:
        try:
            with self.session_scope() as session:
                stmt = select(KeyValueModel.key).order_by(KeyValueModel.key)
                if prefix:
                    stmt = stmt.where(KeyValueModel.key.startswith(prefix, autoescape=True))
                return list(session.scalars(stmt))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list keys: {e}") from e

    def close(self):
        """Close database connection"""
        self.Session.remove()
        self.engine.dispose()
