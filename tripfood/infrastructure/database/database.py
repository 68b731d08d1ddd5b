"""Async engine setup and the SQL-backed record store."""

from collections.abc import Iterable, Mapping
from typing import Any, Final

from opentelemetry import trace
from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlmodel import SQLModel, col, select

from ...config import Settings
from ...logging_config import get_logger
from .models import StoredRecord
from .store import Record

logger: Final = get_logger(__name__)
tracer: Final = trace.get_tracer(__name__)


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Create an async engine for the configured database."""
    async_url = settings.async_database_url
    engine_kwargs: dict[str, int | bool] = {"echo": False}

    if async_url.startswith("postgresql"):
        engine_kwargs.update(
            pool_size=10,
            max_overflow=20,
            pool_recycle=3600,  # Recycle connections every hour
            pool_pre_ping=True,
        )

    return create_async_engine(async_url, **engine_kwargs)


async def init_async_db(engine: AsyncEngine) -> None:
    """Initialize database tables using async engine."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


class SQLRecordStore:
    """Record store persisting every collection in one JSON-payload table."""

    def __init__(self, engine: AsyncEngine):
        self._engine = engine

    def _session(self) -> AsyncSession:
        return AsyncSession(self._engine, expire_on_commit=False)

    async def get(self, collection: str, record_id: str) -> Record | None:
        with tracer.start_as_current_span("record_store.get") as span:
            span.set_attribute("record.collection", collection)
            async with self._session() as session:
                row = await session.get(StoredRecord, (collection, record_id))
                return row.to_record() if row is not None else None

    async def put(self, collection: str, record: Mapping[str, Any]) -> None:
        await self.put_many(collection, [record])

    async def put_many(
        self, collection: str, records: Iterable[Mapping[str, Any]]
    ) -> None:
        with tracer.start_as_current_span("record_store.put") as span:
            span.set_attribute("record.collection", collection)
            async with self._session() as session:
                written = 0
                for record in records:
                    await session.merge(
                        StoredRecord.from_record(collection, dict(record))
                    )
                    written += 1
                await session.commit()
            span.set_attribute("record.count", written)

    async def delete(self, collection: str, record_id: str) -> bool:
        return await self.delete_many(collection, [record_id]) > 0

    async def delete_many(self, collection: str, record_ids: Iterable[str]) -> int:
        ids = list(record_ids)
        if not ids:
            return 0
        with tracer.start_as_current_span("record_store.delete") as span:
            span.set_attribute("record.collection", collection)
            async with self._session() as session:
                result = await session.execute(
                    delete(StoredRecord).where(
                        col(StoredRecord.collection) == collection,
                        col(StoredRecord.id).in_(ids),
                    )
                )
                await session.commit()
            deleted = result.rowcount or 0
            span.set_attribute("record.count", deleted)
            logger.debug("Deleted records", collection=collection, count=deleted)
            return deleted

    async def all(self, collection: str) -> list[Record]:
        with tracer.start_as_current_span("record_store.all") as span:
            span.set_attribute("record.collection", collection)
            async with self._session() as session:
                result = await session.execute(
                    select(StoredRecord).where(
                        col(StoredRecord.collection) == collection
                    )
                )
                return [row.to_record() for row in result.scalars().all()]

    async def query(self, collection: str, index: str, value: str) -> list[Record]:
        with tracer.start_as_current_span("record_store.query") as span:
            span.set_attribute("record.collection", collection)
            span.set_attribute("record.index", index)
            async with self._session() as session:
                result = await session.execute(
                    select(StoredRecord).where(
                        col(StoredRecord.collection) == collection,
                        col(StoredRecord.data)[index].as_string() == value,
                    )
                )
                return [row.to_record() for row in result.scalars().all()]

    async def count(self, collection: str) -> int:
        with tracer.start_as_current_span("record_store.count"):
            async with self._session() as session:
                result = await session.execute(
                    select(func.count())
                    .select_from(StoredRecord)
                    .where(col(StoredRecord.collection) == collection)
                )
                return result.scalar_one()
