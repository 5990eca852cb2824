"""
Result Cache

Persistent URL -> latest completed ScanResult store with time-based expiry,
backed by a single ``scans`` table through SQLAlchemy's async engine.

The engine is created lazily (creating the table if absent) and dropped on any
database error, so the next call reconnects instead of retrying inline.
"""
import asyncio
import contextlib
import json
import logging
from typing import Callable, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select, text
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from webscan.features.scan.exceptions import StorageError
from webscan.features.scan.models.scan_record import ScanRecord
from webscan.features.scan.schemas.scan import ScanResult, ScanStatus
from webscan.platform.db.base import Base
from webscan.platform.db.session import build_engine, build_session_factory
from webscan.platform.utils.clock import now_ms
from webscan.platform.utils.retry import RetryExhaustedError, retry_async

logger = logging.getLogger(__name__)

DB_ERRORS = (SQLAlchemyError, OSError)


class ResultCache:
    def __init__(
        self,
        database_url: str,
        expiration_seconds: int = 172800,
        clock: Callable[[], int] = now_ms,
        engine_factory: Callable[[str], AsyncEngine] = build_engine,
    ):
        self.database_url = database_url
        self.expiration_seconds = expiration_seconds
        self._clock = clock
        self._engine_factory = engine_factory
        self._engine: Optional[AsyncEngine] = None
        self._session_factory = None
        self._connect_lock = asyncio.Lock()
        self._keepalive_task: Optional[asyncio.Task] = None

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    async def _connect(self):
        if self._session_factory is not None:
            return self._session_factory

        async with self._connect_lock:
            if self._session_factory is None:
                engine = self._engine_factory(self.database_url)
                try:
                    async with engine.begin() as conn:
                        await conn.run_sync(Base.metadata.create_all)
                except Exception:
                    await engine.dispose()
                    raise
                self._engine = engine
                self._session_factory = build_session_factory(engine)
                logger.info("Connected to result cache database")
        return self._session_factory

    async def invalidate(self) -> None:
        """Drop the engine; the next call reconnects."""
        engine = self._engine
        self._engine = None
        self._session_factory = None
        if engine is not None:
            try:
                await engine.dispose()
            except Exception as e:
                logger.warning(f"Error disposing result cache engine: {e}")

    async def initialize(self, max_attempts: int = 10, delay_seconds: float = 2.0) -> None:
        """Connect and create the schema, retrying while the database comes up."""

        async def connect_once(attempt: int):
            try:
                await self._connect()
            except DB_ERRORS as e:
                raise StorageError(f"Database connection attempt {attempt} failed: {e}") from e

        try:
            await retry_async(
                connect_once,
                max_attempts=max_attempts,
                delay_seconds=delay_seconds,
                retry_on=(StorageError,),
            )
        except RetryExhaustedError as e:
            raise StorageError(
                f"Failed to connect to the result cache after {e.attempts} attempts"
            ) from e.last_error

    async def get(self, url: str) -> Optional[ScanResult]:
        """Return the cached result for ``url`` while ``now < expires_at``, else None."""
        try:
            session_factory = await self._connect()
            async with session_factory() as session:
                row = (
                    await session.execute(
                        select(ScanRecord.result, ScanRecord.expires_at).where(
                            ScanRecord.url == url,
                            ScanRecord.status == ScanStatus.completed.value,
                        )
                    )
                ).first()
        except DB_ERRORS as e:
            await self.invalidate()
            raise StorageError(f"Failed to read cached result for {url}: {e}") from e

        if row is None:
            return None

        document, expires_at = row
        if self._clock() >= expires_at:
            logger.info(f"Cached result for {url} expired at {expires_at}")
            return None

        try:
            if isinstance(document, str):
                document = json.loads(document)
            result = ScanResult.model_validate(document)
        except (ValueError, PydanticValidationError) as e:
            logger.warning(f"Ignoring unreadable cached result for {url}: {e}")
            return None

        logger.info(f"Returning cached result for {url} (expires at {expires_at})")
        return result

    async def put(self, url: str, result: ScanResult) -> None:
        """Upsert the result for ``url`` with a fresh expiry, in one statement."""
        timestamp = self._clock()
        expires_at = timestamp + self.expiration_seconds * 1000
        values = {
            "url": url,
            "status": result.status.value,
            "result": result.to_document(),
            "timestamp": timestamp,
            "expires_at": expires_at,
        }

        try:
            session_factory = await self._connect()
            async with session_factory() as session:
                statement = self._upsert_statement(session.bind.dialect.name, values)
                await session.execute(statement)
                await session.commit()
        except DB_ERRORS as e:
            await self.invalidate()
            raise StorageError(f"Failed to save result for {url}: {e}") from e

        logger.info(f"Saved result for {url} with expiration at {expires_at}")

    @staticmethod
    def _upsert_statement(dialect: str, values: dict):
        updates = {key: values[key] for key in ("status", "result", "timestamp", "expires_at")}
        updates["updated_at"] = func.now()

        if dialect in ("mysql", "mariadb"):
            return mysql_insert(ScanRecord).values(**values).on_duplicate_key_update(**updates)
        if dialect == "postgresql":
            insert = postgresql_insert
        elif dialect == "sqlite":
            insert = sqlite_insert
        else:
            raise StorageError(f"Unsupported database dialect for upsert: {dialect}")

        return insert(ScanRecord).values(**values).on_conflict_do_update(
            index_elements=[ScanRecord.url],
            set_=updates,
        )

    async def ping(self) -> bool:
        """Liveness probe; a failure invalidates the engine."""
        try:
            session_factory = await self._connect()
            async with session_factory() as session:
                await session.execute(text("SELECT 1"))
            return True
        except DB_ERRORS as e:
            logger.warning(f"Result cache liveness probe failed: {e}")
            await self.invalidate()
            return False

    def start_keepalive(self, interval_seconds: float) -> None:
        if self._keepalive_task is None or self._keepalive_task.done():
            self._keepalive_task = asyncio.create_task(self._keepalive(interval_seconds))

    async def _keepalive(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            await self.ping()

    async def stop_keepalive(self) -> None:
        task = self._keepalive_task
        self._keepalive_task = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def close(self) -> None:
        await self.stop_keepalive()
        await self.invalidate()
