"""
Stores for the userinfo/token entries written after a successful login.
The plugin only needs save(entries); MemoryStore and SQLStore are ready-made backends.
"""
import json
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol

from sqlalchemy import DateTime, String, Text, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool


class Store(Protocol):
    def save(self, entries: list[tuple[str, Any]]) -> Any: ...


class MemoryStore:
    """Dict-backed store; lab and test use."""

    def __init__(self):
        self._data: dict[str, Any] = {}

    def save(self, entries: Iterable[tuple[str, Any]]) -> None:
        for key, value in entries:
            self._data[key] = value

    def get(self, key: str) -> Any:
        return self._data.get(key)

    def __len__(self) -> int:
        return len(self._data)

    def keys(self) -> list[str]:
        return list(self._data)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class StoredEntry(Base):
    __tablename__ = "oidc_entries"

    key: Mapped[str] = mapped_column(String(2048), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)  # JSON
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)


def _make_engine(database_url: str):
    # SQLite: in-memory needs StaticPool so all connections share the same DB (for tests)
    if database_url.startswith("sqlite:///:memory:"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    connect_args = {"check_same_thread": False} if "sqlite" in database_url else {}
    return create_engine(database_url, connect_args=connect_args)


class SQLStore:
    """Key/value table via SQLAlchemy. Values are stored as JSON text."""

    def __init__(self, database_url: str):
        self.engine = _make_engine(database_url)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        Base.metadata.create_all(bind=self.engine)

    def save(self, entries: Iterable[tuple[str, Any]]) -> None:
        """Upsert all entries in one transaction."""
        db = self.SessionLocal()
        try:
            for key, value in entries:
                db.merge(StoredEntry(key=key, value=json.dumps(value)))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def get(self, key: str) -> Any:
        db = self.SessionLocal()
        try:
            row = db.get(StoredEntry, key)
            return json.loads(row.value) if row is not None else None
        finally:
            db.close()

    def count(self) -> int:
        db = self.SessionLocal()
        try:
            return db.query(StoredEntry).count()
        finally:
            db.close()
