"""
Failure taxonomy for the storefront.

Every error carries a plain-language `message` that routes hand to the
buyer as-is; there are no structured error codes on the wire.
"""
from __future__ import annotations
from typing import List, Optional


class StoreError(Exception):
    message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


# ----------------------------
# Fulfillment
# ----------------------------
class FulfillmentError(StoreError):
    pass


class EmptyCart(FulfillmentError):
    message = "Your cart is empty. Add items to continue."


class InsufficientStock(FulfillmentError):
    def __init__(self, product_type: str, requested: int,
                 available: int) -> None:
        self.product_type = product_type
        self.requested = requested
        self.available = available
        super().__init__(
            f"Not enough stock for {product_type}: requested {requested}, "
            f"available {available}. Try fewer items or contact support."
        )


class LedgerWriteFailure(FulfillmentError):
    """The order could not be persisted after its units were claimed."""

    def __init__(self, order_id: str, reason: str,
                 credentials: Optional[List[str]] = None) -> None:
        self.order_id = order_id
        self.reason = reason
        # units behind these credentials are sold but have no order row
        self.credentials = list(credentials or [])
        super().__init__(
            f"Your order {order_id} could not be saved. Please contact "
            f"support with this order number."
        )


# ----------------------------
# Identity
# ----------------------------
class AuthError(StoreError):
    message = "Authentication failed. Please try again."


class AuthRateLimited(AuthError):
    message = "Too many attempts. Please wait a few minutes."


class InvalidCredentials(AuthError):
    message = "Incorrect e-mail or password."


class UserAlreadyExists(AuthError):
    message = "An account with this e-mail already exists."


# ----------------------------
# Everything else
# ----------------------------
class NotificationFailure(StoreError):
    message = "The order e-mail could not be sent."


class InvalidPaymentReference(StoreError):
    message = (
        "Please enter a valid transaction ID or receipt code to confirm "
        "your payment."
    )


class NoCredentials(StoreError):
    message = "No credentials found for this order."


class StoreUnavailable(StoreError):
    """The inventory or ledger backend failed in the middle of a checkout."""

    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(
            f"We could not reach our stock right now. Please try again in a "
            f"moment. If you already paid, contact support with order "
            f"number {order_id}."
        )
