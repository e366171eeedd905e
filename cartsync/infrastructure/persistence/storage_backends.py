"""
Durable key-value storage backends for the add-on ledger
"""

import logging
import os
import re
import tempfile
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Generator, Optional

from sqlalchemy import DateTime, String, Text, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Mapped, Session, declarative_base, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import func

from cartsync.domain.repositories.key_value_storage import KeyValueStorage
from cartsync.infrastructure.configuration.config import Settings
from cartsync.infrastructure.utilities.exceptions import PersistenceUnavailableError

logger = logging.getLogger(__name__)

Base = declarative_base()


def _check_quota(key: str, value: str, quota_bytes: Optional[int]) -> None:
    if quota_bytes is None:
        return
    size = len(value.encode("utf-8"))
    if size > quota_bytes:
        raise PersistenceUnavailableError(
            f"Storage quota exceeded for {key}: {size} > {quota_bytes} bytes", "write"
        )


class MemoryStorage(KeyValueStorage):
    """Process-local storage for tests and server-side rendering"""

    def __init__(self, quota_bytes: Optional[int] = None):
        self._data: Dict[str, str] = {}
        self._quota_bytes = quota_bytes

    def read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def write(self, key: str, value: str) -> None:
        _check_quota(key, value, self._quota_bytes)
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage(KeyValueStorage):
    """One JSON document per key in a directory, replaced atomically on write"""

    def __init__(self, directory: str, quota_bytes: Optional[int] = None):
        self._directory = Path(directory)
        self._quota_bytes = quota_bytes

    def _path_for(self, key: str) -> Path:
        safe_name = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self._directory / f"{safe_name}.json"

    def read(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceUnavailableError(f"Cannot read {path}: {e}", "read") from e

    def write(self, key: str, value: str) -> None:
        _check_quota(key, value, self._quota_bytes)
        path = self._path_for(key)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._directory, prefix=f".{path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(value)
                os.replace(tmp_name, path)
            except OSError:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceUnavailableError(f"Cannot write {path}: {e}", "write") from e

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceUnavailableError(f"Cannot delete {path}: {e}", "delete") from e


class LedgerStorageRecord(Base):
    """Key/value row holding a serialized ledger"""
    __tablename__ = "ledger_storage"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=True,
    )


class SQLAlchemyStorage(KeyValueStorage):
    """Key/value storage in a relational table"""

    def __init__(self, database_url: str):
        self._database_url = database_url
        self._session_factory: Optional[sessionmaker] = None
        self._engine = None

    def _get_session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            try:
                self._engine = self._create_engine()
                Base.metadata.create_all(self._engine)
            except (SQLAlchemyError, OSError) as e:
                self._engine = None
                raise PersistenceUnavailableError(
                    f"Cannot open ledger database: {e}", "connect"
                ) from e
            self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._session_factory

    def _create_engine(self):
        engine_kwargs = {}
        if self._database_url.startswith("sqlite"):
            database_path = self._database_url.split("///", 1)[-1]
            if "///" in self._database_url and database_path and database_path != ":memory:":
                Path(database_path).parent.mkdir(parents=True, exist_ok=True)
            engine_kwargs.update({
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            })
        return create_engine(self._database_url, **engine_kwargs)

    @contextmanager
    def managed_session(self, operation: str) -> Generator[Session, None, None]:
        """
        Session scope that commits on success and rolls back on failure.

        Raises:
            PersistenceUnavailableError: If a database-related error occurs.
        """
        session = self._get_session_factory()()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            logger.error("💥 LEDGER DATABASE ERROR during %s: %s", operation, e)
            session.rollback()
            raise PersistenceUnavailableError(f"Ledger {operation} failed: {e}", operation) from e
        finally:
            session.close()

    def read(self, key: str) -> Optional[str]:
        with self.managed_session("read") as session:
            record = session.get(LedgerStorageRecord, key)
            return record.value if record is not None else None

    def write(self, key: str, value: str) -> None:
        with self.managed_session("write") as session:
            record = session.get(LedgerStorageRecord, key)
            if record is None:
                session.add(LedgerStorageRecord(key=key, value=value))
            else:
                record.value = value

    def delete(self, key: str) -> None:
        with self.managed_session("delete") as session:
            record = session.get(LedgerStorageRecord, key)
            if record is not None:
                session.delete(record)

    def dispose(self) -> None:
        """Release pooled connections"""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None


def create_storage(settings: Settings) -> KeyValueStorage:
    """Build the storage backend named by ``ledger_storage_backend``"""
    backend = settings.ledger_storage_backend
    if backend == "memory":
        return MemoryStorage(quota_bytes=settings.ledger_storage_quota_bytes)
    if backend == "sqlite":
        return SQLAlchemyStorage(settings.ledger_database_url)
    if backend == "file":
        return JsonFileStorage(
            settings.ledger_storage_dir, quota_bytes=settings.ledger_storage_quota_bytes
        )
    raise ValueError(f"Unknown ledger storage backend: {backend}")
