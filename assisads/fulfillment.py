"""
Order fulfillment: turn a paid cart into delivered credentials plus one
ledger entry.

Claims run line by line in cart order against the inventory store; each
claim is all-or-nothing for its product type. A short line aborts the
order, but units already claimed for earlier lines of the same call stay
sold. A failed ledger write after successful claims leaves those units
stranded; it is logged for manual reconciliation and reported as
LedgerWriteFailure.
"""
from __future__ import annotations
import logging
from typing import List, Optional

from .errors import EmptyCart, InsufficientStock, LedgerWriteFailure
from .helpers import now_ts
from .infra.timings import timeit
from .model.entities import (
    CartLine, Order, FulfillmentResult, STATUS_COMPLETED
)
from .model.store import InventoryStore, OrderLedger

logger = logging.getLogger(__name__)


async def fulfill(
    inventory: InventoryStore,
    ledger: OrderLedger,
    order_id: str,
    buyer_email: str,
    lines: List[CartLine],
    total: float,
    created_at: Optional[float] = None,
) -> FulfillmentResult:
    if not lines:
        raise EmptyCart()

    logger.info("fulfilling order %s for %s (%d lines)",
                order_id, buyer_email, len(lines))

    credentials: List[str] = []
    unit_ids: List[int] = []
    for line in lines:
        try:
            async with timeit("inventory.claim"):
                units = await inventory.claim(
                    line.type, line.quantity, buyer_email, order_id
                )
        except InsufficientStock as e:
            if unit_ids:
                # earlier lines of this order are not released
                logger.warning(
                    "order %s aborted on %s after claiming units %s",
                    order_id, line.type, unit_ids,
                )
            else:
                logger.info("order %s aborted: %s", order_id, e.message)
            raise
        credentials.extend(u.content for u in units)
        unit_ids.extend(u.id for u in units)

    order = Order(
        id=order_id,
        user_email=buyer_email,
        created_at=created_at if created_at is not None else now_ts(),
        # snapshot, so later cart edits cannot leak into the order
        items=[CartLine.from_dict(line.to_dict()) for line in lines],
        total=total,
        status=STATUS_COMPLETED,
        credentials=credentials,
    )

    try:
        async with timeit("ledger.append"):
            await ledger.append(order)
    except LedgerWriteFailure as e:
        logger.error(
            "STRANDED INVENTORY: order %s for %s not written (%s); "
            "units %s are sold without an order row",
            order_id, buyer_email, e.reason, unit_ids,
        )
        raise

    logger.info("order %s completed with %d credentials",
                order_id, len(credentials))
    return FulfillmentResult(
        success=True, credentials=credentials, order=order
    )
