"""SQLAlchemy implementation of the storage abstraction.

All logical tables share one physical ``records`` table keyed by
``(table_name, record_id)``.  Payloads are stored as JSON; the
autoincrement ``position`` column preserves insertion order, and the
``(table_name, unique_key)`` UNIQUE constraint is what enforces fields
declared through :meth:`SqlBackend.ensure_unique` (e.g. document hashes).

Any SQLAlchemy URL works; SQLite is the default deployment target.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    delete,
    select,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from kg_weaver.errors import DuplicateRecordError, StorageError
from kg_weaver.storage.base import Record, StorageBackend

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for the backend's ORM models."""


class RecordRow(Base):
    """One stored record of any logical table."""

    __tablename__ = "records"
    __table_args__ = (
        UniqueConstraint("table_name", "record_id", name="uq_records_table_id"),
        UniqueConstraint("table_name", "unique_key", name="uq_records_table_unique_key"),
    )

    position: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    table_name: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    record_id: Mapped[str] = mapped_column(String(255), nullable=False)
    unique_key: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def to_record(self) -> Record:
        return {**self.payload, "id": self.record_id}


def _is_in_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


class SqlBackend(StorageBackend):
    """Relational storage backend.

    Parameters
    ----------
    url:
        SQLAlchemy database URL, e.g. ``"sqlite:///kg_weaver.db"``.
    echo:
        Log emitted SQL (debugging aid).
    """

    def __init__(self, url: str = "sqlite:///kg_weaver.db", *, echo: bool = False) -> None:
        kwargs: dict[str, Any] = {"echo": echo}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if _is_in_memory_sqlite(url):
                kwargs["poolclass"] = StaticPool
        self._engine = create_engine(url, **kwargs)
        Base.metadata.create_all(self._engine)
        self._sessions = sessionmaker(bind=self._engine, expire_on_commit=False)
        self._unique: dict[str, str] = {}

    # -- helpers --------------------------------------------------------------

    def _unique_key(self, table: str, data: Record) -> str | None:
        field = self._unique.get(table)
        if field is None or data.get(field) is None:
            return None
        return str(data[field])

    @staticmethod
    def _row(session: Session, table: str, record_id: str) -> RecordRow | None:
        stmt = select(RecordRow).where(
            RecordRow.table_name == table, RecordRow.record_id == record_id
        )
        return session.execute(stmt).scalar_one_or_none()

    def _write(self, table: str, key: str, fn) -> Record | None:  # noqa: ANN001
        """Run *fn(session)* in a transaction, mapping constraint violations.

        *key* names the written value in error messages: the unique-field
        value when the table has one, otherwise the record id.
        """
        try:
            with self._sessions.begin() as session:
                return fn(session)
        except IntegrityError as exc:
            raise DuplicateRecordError(table, self._unique.get(table, "id"), key) from exc
        except SQLAlchemyError as exc:
            raise StorageError(f"{table}: write of {key!r} failed: {exc}") from exc

    def _read(self, fn):  # noqa: ANN001, ANN202
        try:
            with self._sessions() as session:
                return fn(session)
        except SQLAlchemyError as exc:
            raise StorageError(f"read failed: {exc}") from exc

    # -- StorageBackend overrides ---------------------------------------------

    def create(self, table: str, data: Record, record_id: str | None = None) -> Record:
        record_id = record_id or uuid4().hex
        payload = {k: v for k, v in data.items() if k != "id"}

        def _insert(session: Session) -> Record:
            if self._row(session, table, record_id) is not None:
                raise DuplicateRecordError(table, "id", record_id)
            row = RecordRow(
                table_name=table,
                record_id=record_id,
                unique_key=self._unique_key(table, payload),
                payload=payload,
            )
            session.add(row)
            session.flush()
            return row.to_record()

        return self._write(table, self._unique_key(table, payload) or record_id, _insert)  # type: ignore[return-value]

    def replace(self, table: str, record_id: str, data: Record) -> Record:
        payload = {k: v for k, v in data.items() if k != "id"}

        def _upsert(session: Session) -> Record:
            row = self._row(session, table, record_id)
            if row is None:
                row = RecordRow(table_name=table, record_id=record_id, payload=payload)
                session.add(row)
            else:
                row.payload = payload
            row.unique_key = self._unique_key(table, payload)
            session.flush()
            return row.to_record()

        return self._write(table, self._unique_key(table, payload) or record_id, _upsert)  # type: ignore[return-value]

    def select(self, table: str, record_id: str) -> Record | None:
        def _get(session: Session) -> Record | None:
            row = self._row(session, table, record_id)
            return row.to_record() if row is not None else None

        return self._read(_get)

    def select_all(self, table: str) -> list[Record]:
        stmt = select(RecordRow).where(RecordRow.table_name == table).order_by(RecordRow.position)
        return self._read(lambda s: [row.to_record() for row in s.execute(stmt).scalars()])

    def select_many(self, table: str, ids: list[str]) -> list[Record]:
        if not ids:
            return []
        stmt = (
            select(RecordRow)
            .where(RecordRow.table_name == table, RecordRow.record_id.in_(list(dict.fromkeys(ids))))
            .order_by(RecordRow.position)
        )
        return self._read(lambda s: [row.to_record() for row in s.execute(stmt).scalars()])

    def find(self, table: str, field: str, value: Any) -> list[Record]:
        if self._unique.get(table) == field and value is not None:
            stmt = select(RecordRow).where(
                RecordRow.table_name == table, RecordRow.unique_key == str(value)
            )
            return self._read(lambda s: [row.to_record() for row in s.execute(stmt).scalars()])
        # JSON path predicates are dialect specific; filter client-side.
        return [r for r in self.select_all(table) if r.get(field) == value]

    def merge(self, table: str, record_id: str, partial: Record) -> Record | None:
        def _merge(session: Session) -> Record | None:
            row = self._row(session, table, record_id)
            if row is None:
                return None
            payload = {**row.payload, **{k: v for k, v in partial.items() if k != "id"}}
            row.payload = payload
            row.unique_key = self._unique_key(table, payload)
            session.flush()
            return row.to_record()

        return self._write(table, record_id, _merge)

    def delete(self, table: str, record_id: str) -> Record | None:
        def _delete(session: Session) -> Record | None:
            row = self._row(session, table, record_id)
            if row is None:
                return None
            record = row.to_record()
            session.delete(row)
            return record

        return self._write(table, record_id, _delete)

    def delete_many(self, table: str, ids: list[str]) -> int:
        if not ids:
            return 0
        stmt = delete(RecordRow).where(
            RecordRow.table_name == table, RecordRow.record_id.in_(list(dict.fromkeys(ids)))
        )
        try:
            with self._sessions.begin() as session:
                return session.execute(stmt).rowcount or 0
        except SQLAlchemyError as exc:
            raise StorageError(f"{table}: bulk delete failed: {exc}") from exc

    def ensure_unique(self, table: str, field: str) -> None:
        current = self._unique.get(table)
        if current == field:
            return
        if current is not None:
            raise StorageError(
                f"{table}: already unique on {current!r}; SqlBackend supports one unique field per table"
            )
        self._unique[table] = field
        stmt = select(RecordRow).where(
            RecordRow.table_name == table, RecordRow.unique_key.is_(None)
        )

        def _backfill(session: Session) -> None:
            for row in session.execute(stmt).scalars():
                row.unique_key = self._unique_key(table, row.payload)

        self._write(table, "*", _backfill)
        logger.debug("Declared %s.%s unique", table, field)

    def close(self) -> None:
        self._engine.dispose()
