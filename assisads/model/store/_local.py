# model/store/_local.py
"""
Offline (demo) inventory + ledger.

Single process, nothing durable: lets the storefront run end to end with no
database, or for buyers whose session had to be issued locally because the
identity provider was rate-limited. Claims hand out placeholder credentials
from a fixed pool, cycled by a running index, so they never run short.
"""
from __future__ import annotations
from typing import Dict, List, Optional

from ...errors import LedgerWriteFailure
from ..entities import InventoryUnit, Order
from .base import InventoryStore, OrderLedger, check_quantity

PLACEHOLDER_CREDENTIALS = [
    "MOCK ACCOUNT | Login: demo_user | Pass: 123 | 2FA: ABC",
    "MOCK ACCOUNT | Login: demo_ads | Pass: 123 | 2FA: XYZ",
]


class LocalInventoryStore(InventoryStore):
    def __init__(self, pool: Optional[List[str]] = None) -> None:
        self.pool = list(pool or PLACEHOLDER_CREDENTIALS)
        self.units: List[InventoryUnit] = []

    async def claim(
        self, product_type: str, quantity: int,
        buyer_email: str, order_id: str,
    ) -> List[InventoryUnit]:
        check_quantity(quantity)
        # no await between reading the index and recording the units
        claimed = []
        for _ in range(quantity):
            idx = len(self.units)
            unit = InventoryUnit(
                id=idx + 1,
                type=product_type,
                content=self.pool[idx % len(self.pool)],
                is_sold=True,
                sold_to_email=buyer_email,
                order_id=order_id,
            )
            self.units.append(unit)
            claimed.append(unit)
        return claimed

    async def available(self, product_type: str) -> Optional[int]:
        return None

    async def stock(
        self, product_type: str, contents: List[str]
    ) -> List[int]:
        raise NotImplementedError(
            "the offline store draws from a fixed placeholder pool"
        )


class LocalOrderLedger(OrderLedger):
    def __init__(self) -> None:
        # insertion order == creation order
        self.orders: Dict[str, Order] = {}

    async def append(self, order: Order) -> None:
        if order.id in self.orders:
            raise LedgerWriteFailure(
                order.id, "duplicate order id", order.credentials
            )
        self.orders[order.id] = order

    async def list_by_buyer(self, email: str) -> List[Order]:
        mine = [o for o in self.orders.values() if o.user_email == email]
        return list(reversed(mine))

    async def get(self, order_id: str, email: str) -> Optional[Order]:
        order = self.orders.get(order_id)
        if order is None or order.user_email != email:
            return None
        return order
