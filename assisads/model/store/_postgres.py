# model/store/_postgres.py
"""
SQL inventory + order ledger (PostgreSQL via asyncpg, SQLite via aiosqlite).

The claim is one conditional UPDATE restricted to the row set picked by its
own sub-select, re-checking `is_sold = FALSE` on the outer statement. Two
concurrent claims for the last N units therefore can never both mark the
same row: the loser either skips the locked rows (PostgreSQL) or waits for
the writer and then finds them already sold (SQLite). A short result rolls
the whole statement back, so a failed claim leaves no trace.

On PostgreSQL a short result can also mean "rows held by a claim still in
flight", which may yet roll back. A short claim is therefore only reported
once a plain count of committed unsold units confirms it; otherwise it is
retried after a short backoff.
"""

from __future__ import annotations
import asyncio
import logging
import random
from typing import List, Optional, Callable, AsyncContextManager

from sqlalchemy import text, select, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...errors import InsufficientStock, LedgerWriteFailure
from ..db import StockUnit, OrderRow
from ..entities import InventoryUnit, Order, CartLine
from .base import InventoryStore, OrderLedger, check_quantity

Gated = Callable[[], AsyncContextManager[None]]

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------------------
# Claim statement
# ------------------------------------------------------------------------------
SQL_CLAIM = r"""
UPDATE stock
SET is_sold = TRUE, sold_to_email = :email, order_id = :order_id
WHERE id IN (
    SELECT id FROM stock
    WHERE type = :type AND is_sold = FALSE
    ORDER BY id
    LIMIT :qty
    {lock}
)
  AND is_sold = FALSE
RETURNING id, content
"""

# PostgreSQL: concurrent claimers skip rows another claim already holds
PG_LOCK = "FOR UPDATE SKIP LOCKED"

# seconds between attempts while other claims hold the rows we need
RETRY_BACKOFF = (0.005, 0.025)


class SqlInventoryStore(InventoryStore):
    def __init__(self, *, db: AsyncSession, gated: Gated) -> None:
        self.db = db
        self.gated = gated

    def _claim_sql(self) -> str:
        dialect = self.db.bind.dialect.name
        return SQL_CLAIM.format(
            lock=PG_LOCK if dialect == "postgresql" else ""
        )

    async def _claim_once(
        self, product_type: str, quantity: int,
        buyer_email: str, order_id: str,
    ) -> list:
        async with self.gated():
            # raising inside begin() rolls the UPDATE back
            async with self.db.begin():
                rows = (await self.db.execute(text(self._claim_sql()), {
                    "email": buyer_email,
                    "order_id": order_id,
                    "type": product_type,
                    "qty": int(quantity),
                })).all()
                if len(rows) < quantity:
                    raise InsufficientStock(
                        product_type, quantity, available=len(rows)
                    )
        return rows

    async def claim(
        self, product_type: str, quantity: int,
        buyer_email: str, order_id: str,
    ) -> List[InventoryUnit]:
        check_quantity(quantity)
        while True:
            try:
                rows = await self._claim_once(
                    product_type, quantity, buyer_email, order_id
                )
                break
            except InsufficientStock:
                unsold = await self.available(product_type)
                if unsold < quantity:
                    raise InsufficientStock(
                        product_type, quantity, available=unsold
                    )
            logger.debug(
                "claim %s x%d for %s: rows held elsewhere, retrying",
                product_type, quantity, order_id,
            )
            await asyncio.sleep(random.uniform(*RETRY_BACKOFF))

        # RETURNING order is not guaranteed
        rows = sorted(rows, key=lambda r: r[0])
        return [
            InventoryUnit(
                id=int(r[0]), type=product_type, content=r[1], is_sold=True,
                sold_to_email=buyer_email, order_id=order_id,
            )
            for r in rows
        ]

    async def available(self, product_type: str) -> Optional[int]:
        async with self.gated():
            async with self.db.begin():
                n = (await self.db.execute(
                    select(func.count(StockUnit.id)).where(
                        StockUnit.type == product_type,
                        StockUnit.is_sold.is_(False),
                    )
                )).scalar_one()
        return int(n)

    async def stock(
        self, product_type: str, contents: List[str]
    ) -> List[int]:
        units = [
            StockUnit(type=product_type, content=c, is_sold=False)
            for c in contents
        ]
        async with self.gated():
            async with self.db.begin():
                self.db.add_all(units)
                await self.db.flush()
        return [int(u.id) for u in units]


class SqlOrderLedger(OrderLedger):
    def __init__(self, *, db: AsyncSession, gated: Gated) -> None:
        self.db = db
        self.gated = gated

    async def append(self, order: Order) -> None:
        try:
            async with self.gated():
                async with self.db.begin():
                    self.db.add(OrderRow(
                        id=order.id,
                        user_email=order.user_email,
                        total=order.total,
                        items=[i.to_dict() for i in order.items],
                        credentials=list(order.credentials),
                        status=order.status,
                        created_at=order.created_at,
                    ))
        except IntegrityError:
            raise LedgerWriteFailure(
                order.id, "duplicate order id", order.credentials
            )
        except SQLAlchemyError as e:
            raise LedgerWriteFailure(order.id, str(e), order.credentials)

    async def list_by_buyer(self, email: str) -> List[Order]:
        async with self.gated():
            async with self.db.begin():
                rows = (await self.db.execute(
                    select(OrderRow)
                    .where(OrderRow.user_email == email)
                    .order_by(OrderRow.created_at.desc())
                )).scalars().all()
        return [_to_order(r) for r in rows]

    async def get(self, order_id: str, email: str) -> Optional[Order]:
        async with self.gated():
            async with self.db.begin():
                row = (await self.db.execute(
                    select(OrderRow).where(
                        OrderRow.id == order_id,
                        OrderRow.user_email == email,
                    )
                )).scalars().first()
        return _to_order(row) if row is not None else None


def _to_order(r: OrderRow) -> Order:
    return Order(
        id=r.id,
        user_email=r.user_email,
        created_at=float(r.created_at),
        items=[CartLine.from_dict(i) for i in (r.items or [])],
        total=float(r.total),
        status=r.status,
        credentials=list(r.credentials or []),
    )
