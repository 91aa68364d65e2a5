from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Any

from .model.entities import CartLine

PRODUCT_TYPES = ("facebook", "proxy", "tiktok", "email")

FB_LOGO = (
    "https://upload.wikimedia.org/wikipedia/commons/thumb/0/05/"
    "Facebook_Logo_%282019%29.png/1024px-Facebook_Logo_%282019%29.png"
)


@dataclass
class Product:
    id: str
    name: str
    description: str
    type: str
    price: float
    original_price: float
    features: List[str] = field(default_factory=list)
    image: str = ""
    rating: float = 5.0
    badge: Optional[str] = None

    def snapshot(self, quantity: int = 1) -> CartLine:
        return CartLine(
            id=self.id, name=self.name, type=self.type,
            price=self.price, quantity=quantity,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Real stock lives in the inventory store; see GET /api/inventory.
PRODUCTS: List[Product] = [
    Product(
        id="p1",
        name="Perfil Facebook Aquecido",
        description=(
            "Perfil com alta resistência, aquecido com atividade real e "
            "pronto para subir campanhas."
        ),
        type="facebook",
        price=70.00,
        original_price=110.00,
        features=[
            "Marketplace Ativo",
            "Identidade Confirmada",
            "Cookies + 2FA",
            "Pronto para Anunciar",
        ],
        image=FB_LOGO,
        rating=5.0,
        badge="Alta Resistência",
    ),
]

_BY_ID = {p.id: p for p in PRODUCTS}


def get_product(product_id: str) -> Optional[Product]:
    return _BY_ID.get(product_id)
