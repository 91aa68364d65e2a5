# model/store/_redis.py
from __future__ import annotations
import json
from typing import Optional, List

import redis.asyncio as redis
from redis.exceptions import RedisError

from ...errors import InsufficientStock, LedgerWriteFailure
from ..entities import InventoryUnit, Order
from .base import InventoryStore, OrderLedger, check_quantity


# ---- keys
UNIT_PREFIX = "stock:unit:"


def k_unit(unit_id: int | str) -> str: return f"{UNIT_PREFIX}{unit_id}"
def k_unsold(product_type: str) -> str: return f"stock:unsold:{product_type}"
def k_order(order_id: str) -> str: return f"order:{order_id}"
def k_buyer(email: str) -> str: return f"idx:orders:buyer:{email}"


STOCK_SEQ = "stock:seq"


# ---- scripts (run atomically on the server)

# KEYS: unsold zset
# ARGV: qty, buyer email, order id, unit key prefix
# -> count of unsold units when short, else [id, content, id, content, ...]
LUA_CLAIM = r"""
local qty = tonumber(ARGV[1])
local ids = redis.call('ZRANGE', KEYS[1], 0, qty - 1)
if #ids < qty then
  return #ids
end
local out = {}
for _, id in ipairs(ids) do
  local k = ARGV[4] .. id
  redis.call('ZREM', KEYS[1], id)
  redis.call('HSET', k, 'is_sold', '1',
             'sold_to_email', ARGV[2], 'order_id', ARGV[3])
  table.insert(out, id)
  table.insert(out, redis.call('HGET', k, 'content') or '')
end
return out
"""

# KEYS: order, buyer index
# ARGV: order json, created_at, order id
# index first: a failing ZADD leaves no unindexed order behind
LUA_APPEND = r"""
if redis.call('EXISTS', KEYS[1]) == 1 then
  return 0
end
redis.call('ZADD', KEYS[2], ARGV[2], ARGV[3])
redis.call('SET', KEYS[1], ARGV[1])
return 1
"""


class RedisInventoryStore(InventoryStore):
    """
    Unsold unit ids live in one sorted set per product type, scored by id.
    A claim is one server-side script: take the lowest `quantity` ids, or
    report how many there are, and mark the taken units sold. Nothing else
    runs in between, so concurrent buyers never see the same unit.
    """

    def __init__(self, r: redis.Redis) -> None:
        self.r = r
        self._claim = r.register_script(LUA_CLAIM)

    async def claim(
        self, product_type: str, quantity: int,
        buyer_email: str, order_id: str,
    ) -> List[InventoryUnit]:
        check_quantity(quantity)
        res = await self._claim(
            keys=[k_unsold(product_type)],
            args=[quantity, buyer_email, order_id, UNIT_PREFIX],
        )
        if isinstance(res, int):
            raise InsufficientStock(product_type, quantity, available=res)

        return [
            InventoryUnit(
                id=int(res[i]), type=product_type, content=res[i + 1],
                is_sold=True, sold_to_email=buyer_email, order_id=order_id,
            )
            for i in range(0, len(res), 2)
        ]

    async def available(self, product_type: str) -> Optional[int]:
        return int(await self.r.zcard(k_unsold(product_type)))

    async def stock(
        self, product_type: str, contents: List[str]
    ) -> List[int]:
        ids: List[int] = []
        for c in contents:
            unit_id = int(await self.r.incr(STOCK_SEQ))
            pipe = self.r.pipeline(transaction=True)
            pipe.hset(k_unit(unit_id), mapping={
                "id": str(unit_id),
                "type": product_type,
                "content": c,
                "is_sold": "0",
            })
            pipe.zadd(k_unsold(product_type), {str(unit_id): unit_id})
            await pipe.execute()
            ids.append(unit_id)
        return ids


class RedisOrderLedger(OrderLedger):
    def __init__(self, r: redis.Redis) -> None:
        self.r = r
        self._append = r.register_script(LUA_APPEND)

    async def append(self, order: Order) -> None:
        try:
            # an order id is written once
            ok = await self._append(
                keys=[k_order(order.id), k_buyer(order.user_email)],
                args=[
                    json.dumps(order.to_dict()),
                    repr(float(order.created_at)),
                    order.id,
                ],
            )
        except RedisError as e:
            raise LedgerWriteFailure(order.id, str(e), order.credentials)
        if not ok:
            raise LedgerWriteFailure(
                order.id, "duplicate order id", order.credentials
            )

    async def list_by_buyer(self, email: str) -> List[Order]:
        order_ids = await self.r.zrevrange(k_buyer(email), 0, -1)
        if not order_ids:
            return []
        pipe = self.r.pipeline()
        for oid in order_ids:
            pipe.get(k_order(oid))
        raw = await pipe.execute()
        return [Order.from_dict(json.loads(v)) for v in raw if v]

    async def get(self, order_id: str, email: str) -> Optional[Order]:
        v = await self.r.get(k_order(order_id))
        if not v:
            return None
        order = Order.from_dict(json.loads(v))
        return order if order.user_email == email else None
