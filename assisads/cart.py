from __future__ import annotations
import json
import logging
from typing import List, MutableMapping, Any

from .catalog import Product
from .model.entities import CartLine

CART_KEY = "assis_cart"

logger = logging.getLogger(__name__)


class Cart:
    """
    The buyer's cart, backed by a keyed snapshot store (in the web app: the
    signed client session). Loaded once on construction, written back on
    every mutation.
    """

    def __init__(self, storage: MutableMapping[str, Any]) -> None:
        self.storage = storage
        self.lines: List[CartLine] = self._load()

    def _load(self) -> List[CartLine]:
        raw = self.storage.get(CART_KEY)
        if not raw:
            return []
        try:
            return [CartLine.from_dict(d) for d in json.loads(raw)]
        except (ValueError, KeyError, TypeError) as e:
            # a corrupt snapshot is dropped, not fatal
            logger.warning("discarding unreadable cart snapshot: %s", e)
            return []

    def _save(self) -> None:
        self.storage[CART_KEY] = json.dumps([l.to_dict() for l in self.lines])

    def add(self, product: Product) -> CartLine:
        for line in self.lines:
            if line.id == product.id:
                line.quantity += 1
                self._save()
                return line
        line = product.snapshot(quantity=1)
        self.lines.append(line)
        self._save()
        return line

    def remove(self, product_id: str) -> bool:
        before = len(self.lines)
        self.lines = [l for l in self.lines if l.id != product_id]
        self._save()
        return len(self.lines) != before

    def clear(self) -> None:
        self.lines = []
        self.storage.pop(CART_KEY, None)

    @property
    def total(self) -> float:
        return round(sum(l.subtotal for l in self.lines), 2)

    @property
    def count(self) -> int:
        return sum(l.quantity for l in self.lines)

    def to_dict(self) -> dict:
        return {
            "items": [l.to_dict() for l in self.lines],
            "count": self.count,
            "total": self.total,
        }
