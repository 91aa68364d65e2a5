import time
import re
from datetime import datetime, timezone
import hmac
from typing import Optional
from zoneinfo import ZoneInfo

# storefront dates are shown in Brasilia time
BR_TZ = ZoneInfo("America/Sao_Paulo")


# ----------------------------
# Helpers
# ----------------------------
def now_ts() -> float:
    return time.time()


def to_iso(ts: float | None) -> Optional[str]:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def to_br_date(ts: float) -> str:
    # dd/mm/YYYY, the way the storefront shows order dates
    return datetime.fromtimestamp(ts, tz=BR_TZ).strftime("%d/%m/%Y")


def format_brl(amount: float) -> str:
    return f"R$ {amount:.2f}"


def is_valid_email(email: Optional[str]) -> bool:
    if not email:
        return False
    email = email.strip()
    # simple but effective email check
    return re.match(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", email) is not None


def ct_equal(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode(), b.encode())
