from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Optional, List, Dict, Any

STATUS_COMPLETED = "completed"
# read back from stored orders; checkout itself only writes completed.
# Both values are the ones allowed in OrderRow.status (model/db.py).
STATUS_PENDING = "pending"


@dataclass
class InventoryUnit:
    id: int
    type: str
    content: str
    is_sold: bool = False
    sold_to_email: Optional[str] = None
    order_id: Optional[str] = None


@dataclass
class CartLine:
    # product snapshot, not a live reference into the catalog
    id: str
    name: str
    type: str
    price: float
    quantity: int = 1

    @property
    def subtotal(self) -> float:
        return self.price * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CartLine":
        return cls(
            id=str(d["id"]),
            name=str(d["name"]),
            type=str(d["type"]),
            price=float(d["price"]),
            quantity=int(d.get("quantity", 1)),
        )


@dataclass
class Order:
    id: str
    user_email: str
    created_at: float
    items: List[CartLine]
    total: float
    status: str = STATUS_COMPLETED
    credentials: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_email": self.user_email,
            "created_at": self.created_at,
            "items": [i.to_dict() for i in self.items],
            "total": self.total,
            "status": self.status,
            "credentials": list(self.credentials),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Order":
        return cls(
            id=d["id"],
            user_email=d["user_email"],
            created_at=float(d["created_at"]),
            items=[CartLine.from_dict(i) for i in (d.get("items") or [])],
            total=float(d["total"]),
            status=d.get("status") or STATUS_COMPLETED,
            credentials=list(d.get("credentials") or []),
        )


@dataclass
class Identity:
    id: str
    email: str
    name: str
    avatar: Optional[str] = None
    role: str = "user"  # user | admin


@dataclass
class AuthSession:
    access_token: str
    identity: Identity
    backend: str  # supabase | local
    # issued by the local provider because the primary was rate-limited
    degraded: bool = False


@dataclass
class FulfillmentResult:
    success: bool
    credentials: List[str]
    order: Optional[Order] = None
