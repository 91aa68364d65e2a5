from abc import ABC, abstractmethod
from typing import List, Optional

from ..entities import InventoryUnit, Order


# ----------------------------
# Inventory Store Interface
# ----------------------------
class InventoryStore(ABC):

    # Claim exactly `quantity` unsold units of `product_type` for one buyer
    # and order, or raise InsufficientStock without touching any unit.
    @abstractmethod
    async def claim(
        self, product_type: str, quantity: int,
        buyer_email: str, order_id: str,
    ) -> List[InventoryUnit]: ...

    # unsold units of this type; None means "not bounded"
    @abstractmethod
    async def available(self, product_type: str) -> Optional[int]: ...

    # out-of-band stocking; returns the new unit ids
    @abstractmethod
    async def stock(
        self, product_type: str, contents: List[str]
    ) -> List[int]: ...


# ----------------------------
# Order Ledger Interface
# ----------------------------
class OrderLedger(ABC):

    # raises LedgerWriteFailure, including on a duplicate order id
    @abstractmethod
    async def append(self, order: Order) -> None: ...

    # newest first
    @abstractmethod
    async def list_by_buyer(self, email: str) -> List[Order]: ...

    @abstractmethod
    async def get(self, order_id: str, email: str) -> Optional[Order]: ...


def check_quantity(quantity: int) -> None:
    if quantity < 1:
        raise ValueError("quantity must be >= 1")
