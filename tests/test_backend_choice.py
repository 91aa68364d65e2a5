import pytest

from assisads.infra.sql import make_async_engine, normalize_async_url
from assisads.model.store import probe_backend


def test_normalize_async_url():
    assert normalize_async_url("sqlite:///./a.db") == \
        "sqlite+aiosqlite:///./a.db"
    assert normalize_async_url("postgres://u@h/db") == \
        "postgresql+asyncpg://u@h/db"
    assert normalize_async_url("postgresql://u@h/db") == \
        "postgresql+asyncpg://u@h/db"


async def test_sql_wins_when_reachable(tmp_path, r):
    engine, _, _ = make_async_engine(f"sqlite:///{tmp_path / 'p.db'}")
    try:
        assert await probe_backend("auto", engine=engine, r=r) == "pg"
        assert await probe_backend("pg", engine=engine) == "pg"
    finally:
        await engine.dispose()


async def test_redis_when_no_database(r):
    assert await probe_backend("auto", r=r) == "redis"
    assert await probe_backend("redis", r=r) == "redis"


async def test_offline_when_nothing_configured():
    assert await probe_backend("auto") == "local"
    assert await probe_backend("pg") == "local"
    assert await probe_backend("local") == "local"


async def test_unknown_backend():
    with pytest.raises(ValueError):
        await probe_backend("mongo")


async def test_unreachable_database_falls_through(tmp_path, r):
    engine, _, _ = make_async_engine(
        f"sqlite:///{tmp_path / 'missing' / 'dir' / 'p.db'}"
    )
    try:
        assert await probe_backend("auto", engine=engine, r=r) == "redis"
        assert await probe_backend("pg", engine=engine) == "local"
    finally:
        await engine.dispose()
