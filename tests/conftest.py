"""
Shared fixtures.

The service module reads its configuration from the environment at import
time, so the API database and backend choice are pinned here, before any
test module imports `assisads`.
"""
import os
import tempfile

_TMP = tempfile.mkdtemp(prefix="assisads-tests-")
API_DB_PATH = os.path.join(_TMP, "api.db")

os.environ["DATABASE_URL"] = f"sqlite:///{API_DB_PATH}"
os.environ["STORE_BACKEND"] = "pg"
os.environ["SESSION_SECRET"] = "test-secret"
for _k in ("SUPABASE_URL", "SUPABASE_KEY", "REDIS_URL", "EMAIL_SERVICE_ID",
           "EMAIL_TEMPLATE_ID", "EMAIL_PUBLIC_KEY"):
    os.environ.pop(_k, None)

import fakeredis  # noqa: E402
import pytest  # noqa: E402

from assisads.infra.sql import make_async_engine  # noqa: E402
from assisads.model.db import Base  # noqa: E402
from assisads.model.entities import CartLine, Order  # noqa: E402
from assisads.model.store import new_stores  # noqa: E402


@pytest.fixture
async def sql_db(tmp_path):
    """(SessionAsync, gated) on a fresh SQLite file."""
    engine, SessionAsync, gated = make_async_engine(
        f"sqlite:///{tmp_path / 'store.db'}"
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield SessionAsync, gated
    await engine.dispose()


@pytest.fixture
async def sql_stores(sql_db):
    SessionAsync, gated = sql_db
    async with SessionAsync() as session:
        yield new_stores("pg", db=session, gated=gated)


@pytest.fixture
def fb_line():
    def make(quantity=1, price=70.00):
        return CartLine(
            id="p1", name="Perfil Facebook Aquecido", type="facebook",
            price=price, quantity=quantity,
        )
    return make


@pytest.fixture
def proxy_line():
    def make(quantity=1, price=15.00):
        return CartLine(
            id="p2", name="Proxy Residencial", type="proxy",
            price=price, quantity=quantity,
        )
    return make


@pytest.fixture
async def r():
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def make_order(fb_line):
    def make(order_id="PED-0000011A2B", email="buyer@example.com",
             created_at=1_760_000_000.0, credentials=("acc-1",),
             quantity=1):
        line = fb_line(quantity=quantity)
        return Order(
            id=order_id,
            user_email=email,
            created_at=created_at,
            items=[line],
            total=line.subtotal,
            credentials=list(credentials),
        )
    return make
