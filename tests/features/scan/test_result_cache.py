import asyncio

import pytest
from sqlalchemy import func, select
from sqlalchemy.dialects.mysql.dml import Insert as MySQLInsert
from sqlalchemy.dialects.postgresql.dml import Insert as PostgreSQLInsert
from sqlalchemy.dialects.sqlite.dml import Insert as SQLiteInsert

from webscan.features.scan.exceptions import StorageError
from webscan.features.scan.models.scan_record import ScanRecord
from webscan.features.scan.services.cache.result_cache import ResultCache

NOW = 1_700_000_000_000
DAY_MS = 24 * 60 * 60 * 1000


class FakeClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def cache(tmp_path, clock):
    cache = ResultCache(f"sqlite+aiosqlite:///{tmp_path / 'cache.db'}", clock=clock)
    yield cache
    await cache.close()


async def count_rows(cache, url):
    session_factory = await cache._connect()
    async with session_factory() as session:
        return (
            await session.execute(select(func.count()).select_from(ScanRecord).where(ScanRecord.url == url))
        ).scalar_one()


@pytest.mark.asyncio
async def test_get_miss_returns_none(cache):
    assert await cache.get("https://example.com") is None


@pytest.mark.asyncio
async def test_put_then_get_within_window(cache, scan_result):
    await cache.put("https://example.com", scan_result)

    cached = await cache.get("https://example.com")

    assert cached is not None
    assert cached.to_document() == scan_result.to_document()


@pytest.mark.asyncio
async def test_lookup_is_exact_url_match(cache, scan_result):
    await cache.put("https://example.com", scan_result)

    assert await cache.get("https://example.com/") is None
    assert await cache.get("http://example.com") is None


@pytest.mark.asyncio
async def test_expired_row_is_a_miss_but_remains(cache, clock, scan_result):
    await cache.put("https://example.com", scan_result)

    clock.now = NOW + 2 * DAY_MS - 1
    assert await cache.get("https://example.com") is not None

    clock.now = NOW + 2 * DAY_MS
    assert await cache.get("https://example.com") is None
    assert await count_rows(cache, "https://example.com") == 1


@pytest.mark.asyncio
async def test_put_upserts_single_row_with_fresh_expiry(cache, clock, scan_result):
    await cache.put("https://example.com", scan_result)
    clock.now = NOW + 3 * DAY_MS
    assert await cache.get("https://example.com") is None

    await cache.put("https://example.com", scan_result)

    assert await cache.get("https://example.com") is not None
    assert await count_rows(cache, "https://example.com") == 1


@pytest.mark.asyncio
async def test_custom_expiration(tmp_path, clock, scan_result):
    cache = ResultCache(f"sqlite+aiosqlite:///{tmp_path / 'short.db'}", expiration_seconds=60, clock=clock)
    try:
        await cache.put("https://example.com", scan_result)
        clock.now = NOW + 60_000
        assert await cache.get("https://example.com") is None
    finally:
        await cache.close()


@pytest.mark.asyncio
async def test_unreadable_document_is_a_miss(cache, clock):
    session_factory = await cache._connect()
    async with session_factory() as session:
        session.add(
            ScanRecord(
                url="https://broken.example",
                status="completed",
                result={"unexpected": True},
                timestamp=NOW,
                expires_at=NOW + DAY_MS,
            )
        )
        await session.commit()

    assert await cache.get("https://broken.example") is None


@pytest.mark.asyncio
async def test_corrupt_json_document_is_a_miss(cache):
    session_factory = await cache._connect()
    async with session_factory() as session:
        session.add(
            ScanRecord(
                url="https://corrupt.example",
                status="completed",
                result="{\"url\": \"https://corrupt.example\", ",
                timestamp=NOW,
                expires_at=NOW + DAY_MS,
            )
        )
        await session.commit()

    assert await cache.get("https://corrupt.example") is None


@pytest.mark.asyncio
async def test_database_error_raises_storage_error_and_drops_engine(tmp_path, scan_result):
    missing_dir = tmp_path / "does-not-exist" / "cache.db"
    cache = ResultCache(f"sqlite+aiosqlite:///{missing_dir}")

    with pytest.raises(StorageError):
        await cache.get("https://example.com")
    assert cache.is_connected is False

    with pytest.raises(StorageError):
        await cache.put("https://example.com", scan_result)


@pytest.mark.asyncio
async def test_initialize_retries_then_fails():
    calls = []

    def failing_engine_factory(url):
        calls.append(url)
        raise OSError("database is starting up")

    cache = ResultCache("sqlite+aiosqlite:///unused.db", engine_factory=failing_engine_factory)

    with pytest.raises(StorageError):
        await cache.initialize(max_attempts=3, delay_seconds=0)
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_initialize_and_ping(cache):
    await cache.initialize(max_attempts=1, delay_seconds=0)

    assert cache.is_connected is True
    assert await cache.ping() is True


@pytest.mark.asyncio
async def test_keepalive_can_be_started_and_stopped(cache):
    cache.start_keepalive(0.01)
    await asyncio.sleep(0.05)

    assert cache.is_connected is True
    await cache.stop_keepalive()
    assert cache._keepalive_task is None


@pytest.mark.parametrize(
    "dialect, statement_type",
    [
        ("sqlite", SQLiteInsert),
        ("postgresql", PostgreSQLInsert),
        ("mysql", MySQLInsert),
        ("mariadb", MySQLInsert),
    ],
)
def test_upsert_statement_per_dialect(dialect, statement_type):
    values = {"url": "u", "status": "completed", "result": {}, "timestamp": 1, "expires_at": 2}

    assert isinstance(ResultCache._upsert_statement(dialect, values), statement_type)


def test_upsert_statement_rejects_unknown_dialect():
    with pytest.raises(StorageError):
        ResultCache._upsert_statement("oracle", {"url": "u", "status": "s", "result": {}, "timestamp": 1, "expires_at": 2})
