"""
Order e-mail delivery.

Best effort only: the order is already committed when this runs, so nothing
here may raise into the caller. Sinks report failure by raising
NotificationFailure; `dispatch_order_email` logs it and moves on.
"""
from abc import ABC, abstractmethod
import logging
import os
from typing import Optional

import httpx

from .errors import NotificationFailure
from .helpers import format_brl
from .model.entities import Order

EMAILJS_URL = "https://api.emailjs.com/api/v1.0/email/send"
EMAIL_SERVICE_ID = os.environ.get("EMAIL_SERVICE_ID", "")
EMAIL_TEMPLATE_ID = os.environ.get("EMAIL_TEMPLATE_ID", "")
EMAIL_PUBLIC_KEY = os.environ.get("EMAIL_PUBLIC_KEY", "")
PUBLIC_BASE_URL = os.environ.get("PUBLIC_BASE_URL", "http://localhost:8000")

CREDENTIALS_SEPARATOR = "\n\n--------------------------------\n\n"

logger = logging.getLogger(__name__)


# ----------------------------
# Notification sink interface
# ----------------------------
class NotificationSink(ABC):
    @abstractmethod
    async def send(
        self,
        buyer_email: str,
        order_id: str,
        product_summary: str,
        total_formatted: str,
        credentials_text: str,
        dashboard_link: str,
    ) -> bool: ...


class EmailJSSink(NotificationSink):
    def __init__(self, http: httpx.AsyncClient, *, service_id: str,
                 template_id: str, public_key: str,
                 url: str = EMAILJS_URL) -> None:
        self.http = http
        self.service_id = service_id
        self.template_id = template_id
        self.public_key = public_key
        self.url = url

    async def send(self, buyer_email, order_id, product_summary,
                   total_formatted, credentials_text, dashboard_link) -> bool:
        payload = {
            "service_id": self.service_id,
            "template_id": self.template_id,
            "user_id": self.public_key,
            "template_params": {
                "to_name": buyer_email.split("@")[0],
                "to_email": buyer_email,
                "order_id": order_id,
                "product": product_summary,
                "valor": total_formatted,
                "login": credentials_text,
                "link": dashboard_link,
            },
        }
        try:
            r = await self.http.post(self.url, json=payload)
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationFailure(f"EmailJS send failed: {e}")
        logger.info("order e-mail for %s sent (%s)", order_id, r.status_code)
        return True


class NullSink(NotificationSink):
    """E-mail not configured: skip sending so the sale is never blocked."""

    async def send(self, buyer_email, order_id, product_summary,
                   total_formatted, credentials_text, dashboard_link) -> bool:
        logger.warning(
            "e-mail delivery not configured, skipping order %s", order_id
        )
        return True


def new_sink(http: Optional[httpx.AsyncClient]) -> NotificationSink:
    if http is None or not (
        EMAIL_SERVICE_ID and EMAIL_TEMPLATE_ID and EMAIL_PUBLIC_KEY
    ):
        return NullSink()
    return EmailJSSink(
        http,
        service_id=EMAIL_SERVICE_ID,
        template_id=EMAIL_TEMPLATE_ID,
        public_key=EMAIL_PUBLIC_KEY,
    )


def product_summary(order: Order) -> str:
    return ", ".join(f"{i.quantity}x {i.name}" for i in order.items)


async def dispatch_order_email(
    sink: NotificationSink,
    order: Order,
    base_url: str = PUBLIC_BASE_URL,
) -> bool:
    if not order.credentials:
        return False
    try:
        return await sink.send(
            order.user_email,
            order.id,
            product_summary(order),
            format_brl(order.total),
            CREDENTIALS_SEPARATOR.join(order.credentials),
            base_url.rstrip("/") + "/dashboard",
        )
    except NotificationFailure as e:
        logger.error("order e-mail for %s failed: %s", order.id, e.message)
        return False
