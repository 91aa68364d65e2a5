# model/store/__init__.py
import os
import logging
from dataclasses import dataclass
from typing import Optional, Callable, AsyncContextManager

from sqlalchemy.ext.asyncio import AsyncSession, AsyncEngine
import redis.asyncio as redis
from redis.exceptions import RedisError

from ...infra.sql import ping
from .base import InventoryStore, OrderLedger
from ._postgres import SqlInventoryStore, SqlOrderLedger
from ._redis import RedisInventoryStore, RedisOrderLedger
from ._local import LocalInventoryStore, LocalOrderLedger

Gated = Callable[[], AsyncContextManager[None]]

logger = logging.getLogger(__name__)

# 'pg' | 'redis' | 'local' | 'auto' (checked at startup)
BACKEND = os.getenv("STORE_BACKEND", "auto").lower()
BACKENDS = ("pg", "redis", "local")


@dataclass
class Stores:
    inventory: InventoryStore
    ledger: OrderLedger
    backend: str


def local_stores() -> Stores:
    return Stores(
        inventory=LocalInventoryStore(),
        ledger=LocalOrderLedger(),
        backend="local",
    )


# Factory keeps server.py simple and constructor-agnostic:
def new_stores(backend: str, *,
               db: Optional[AsyncSession] = None,
               r: Optional[redis.Redis] = None,
               gated: Gated = None) -> Stores:
    if backend == "pg":
        if db is None:
            raise RuntimeError("Stores(pg) requires db=AsyncSession")
        if gated is None:
            raise RuntimeError("Stores(pg) requires gated=Gated")
        return Stores(
            inventory=SqlInventoryStore(db=db, gated=gated),
            ledger=SqlOrderLedger(db=db, gated=gated),
            backend="pg",
        )
    elif backend == "redis":
        if r is None:
            raise RuntimeError("Stores(redis) requires r=redis.Redis")
        return Stores(
            inventory=RedisInventoryStore(r),
            ledger=RedisOrderLedger(r),
            backend="redis",
        )
    elif backend == "local":
        raise RuntimeError(
            "local stores are process-wide; use local_stores() once"
        )
    raise ValueError(f"unknown store backend: {backend!r}")


async def probe_backend(
    requested: str,
    *,
    engine: Optional[AsyncEngine] = None,
    r: Optional[redis.Redis] = None,
) -> str:
    """
    Pick the store backend at startup.

    An explicit 'pg' / 'redis' / 'local' wins when its collaborator is
    configured; 'auto' takes the first reachable of SQL, then Redis. When
    nothing is reachable (or configured) the storefront runs on the offline
    local store.
    """
    if requested not in BACKENDS + ("auto",):
        raise ValueError(f"unknown store backend: {requested!r}")
    if requested == "local":
        return "local"

    if requested in ("pg", "auto") and engine is not None:
        if await ping(engine):
            return "pg"
        if requested == "pg":
            logger.warning("STORE_BACKEND=pg but the database is down")

    if requested in ("redis", "auto") and r is not None:
        try:
            await r.ping()
            return "redis"
        except (RedisError, OSError) as e:
            logger.warning("redis unreachable: %s", e)

    logger.warning("no reachable store backend, running in offline mode")
    return "local"


__all__ = [
    "InventoryStore", "OrderLedger", "Stores", "new_stores", "local_stores",
    "probe_backend", "BACKEND", "BACKENDS",
]
