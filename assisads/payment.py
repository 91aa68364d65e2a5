from abc import ABC, abstractmethod
from typing import TypedDict
from urllib.parse import quote
import os
import time
import uuid

from .errors import InvalidPaymentReference
from .helpers import format_brl

# PIX "copia e cola" payload the buyer pays into
PIX_KEY = os.environ.get(
    "PIX_KEY",
    "00020126360014BR.GOV.BCB.PIX0114+5521982961547520400005303986540570.00"
    "5802BR5901N6001C62070503***630474CD",
)
PIX_TYPE = "COPIA E COLA"
QR_CODE_BASE = "https://api.qrserver.com/v1/create-qr-code/?size=250x250&data="

MIN_REFERENCE_LENGTH = 5


# ----------------------------
# Payment Adapter Interface
# ----------------------------
class PaymentInstructions(TypedDict):
    pix_key: str
    pix_type: str
    qr_code_url: str
    amount: float
    amount_formatted: str


class PaymentAdapter(ABC):
    @abstractmethod
    def instructions(self, total: float) -> PaymentInstructions: ...

    # the buyer's proof of payment; returns the normalized reference
    @abstractmethod
    def accept_reference(self, reference: str) -> str: ...


# ----------------------------
# Manual PIX implementation
# ----------------------------
class ManualPix(PaymentAdapter):
    """
    Payment is reconciled by hand: the buyer pays the PIX key and types the
    transaction id from their bank receipt. Nothing here checks that the
    payment actually happened.
    """

    def __init__(self, pix_key: str = PIX_KEY) -> None:
        self.pix_key = pix_key

    def instructions(self, total: float) -> PaymentInstructions:
        return {
            "pix_key": self.pix_key,
            "pix_type": PIX_TYPE,
            "qr_code_url": QR_CODE_BASE + quote(self.pix_key, safe=""),
            "amount": total,
            "amount_formatted": format_brl(total),
        }

    def accept_reference(self, reference: str) -> str:
        ref = (reference or "").strip()
        if len(ref) < MIN_REFERENCE_LENGTH:
            raise InvalidPaymentReference()
        return ref


def new_order_id() -> str:
    # PED-<last 6 digits of the ms clock><4 hex>
    ms = str(int(time.time() * 1000))[-6:]
    return f"PED-{ms}{uuid.uuid4().hex[:4].upper()}"
