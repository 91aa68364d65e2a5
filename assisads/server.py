from __future__ import annotations

import logging
import os
from dataclasses import asdict
from typing import AsyncIterator, Optional

import httpx
from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Request
from fastapi.responses import ORJSONResponse, PlainTextResponse
from starlette.middleware.sessions import SessionMiddleware

import redis.asyncio as redis
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from .cart import Cart
from .catalog import PRODUCTS, PRODUCT_TYPES, get_product
from .errors import (
    AuthError, AuthRateLimited, EmptyCart, InsufficientStock,
    InvalidCredentials, InvalidPaymentReference, LedgerWriteFailure,
    NoCredentials, StoreUnavailable, UserAlreadyExists,
)
from .fulfillment import fulfill
from .helpers import is_valid_email, to_iso, to_br_date
from .identity import IdentityProvider, new_provider
from .infra.logs import setup_logging
from .infra.sql import make_async_engine
from .infra.timings import timeit, snapshot
from .model.db import Base
from .model.entities import Identity, Order
from .model.store import (
    Stores, new_stores, local_stores, probe_backend,
    BACKEND as STORE_BACKEND,
)
from .notify import NotificationSink, new_sink, dispatch_order_email
from .payment import PaymentAdapter, ManualPix, new_order_id
from .receipt import render_receipt, receipt_filename

logger = logging.getLogger(__name__)

# ----------------------------
# Config & Constants
# ----------------------------
DATABASE_URL = os.environ.get("DATABASE_URL", "")
REDIS_URL = os.environ.get("REDIS_URL", "")
SESSION_SECRET = os.environ.get("SESSION_SECRET", "dev-secret-change-me")
MIN_PASSWORD_LENGTH = 6

# session keys (signed client cookie)
S_TOKEN = "auth_token"
S_BACKEND = "auth_backend"
S_DEGRADED = "auth_degraded"

if DATABASE_URL:
    engine, SessionAsync, gated = make_async_engine(DATABASE_URL)
else:
    engine, SessionAsync, gated = None, None, None

adapter: PaymentAdapter = ManualPix()

app = FastAPI(
    title="Assis Ads",
    default_response_class=ORJSONResponse,
)
app.add_middleware(SessionMiddleware, secret_key=SESSION_SECRET)


def get_identity() -> IdentityProvider:
    idp = getattr(app.state, "identity", None)
    if idp is None:
        raise RuntimeError("identity provider not initialized")
    return idp


def get_notifier() -> NotificationSink:
    sink = getattr(app.state, "notifier", None)
    if sink is None:
        raise RuntimeError("notification sink not initialized")
    return sink


async def stores(request: Request) -> AsyncIterator[Stores]:
    backend = app.state.store_backend
    # rate-limited sign-ins were issued locally: keep them off the live store
    if backend == "local" or request.session.get(S_DEGRADED):
        yield app.state.fallback
    elif backend == "pg":
        async with SessionAsync() as session:
            yield new_stores("pg", db=session, gated=gated)
    else:
        yield new_stores("redis", r=app.state.redis)


# ---
# startup / shutdown
# ---
@app.on_event("startup")
async def _logging_start():
    setup_logging()


@app.on_event("startup")
async def _http_client_start():
    app.state.http = httpx.AsyncClient(
        timeout=5.0,
        limits=httpx.Limits(
            max_connections=64, max_keepalive_connections=64
        ),
    )


@app.on_event("startup")
async def _redis_start():
    app.state.redis = None
    if REDIS_URL and STORE_BACKEND in ("redis", "auto"):
        app.state.redis = redis.from_url(
            REDIS_URL,
            decode_responses=True,
            max_connections=int(os.getenv("REDIS_MAX_CONN", "64")),
            socket_timeout=2.0,
            socket_connect_timeout=2.0,
            retry_on_timeout=True,
        )


@app.on_event("startup")
async def _stores_start():
    app.state.fallback = local_stores()
    backend = await probe_backend(
        STORE_BACKEND, engine=engine, r=app.state.redis
    )
    if backend == "pg":
        # Create SQL tables for stock and orders
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    app.state.store_backend = backend


@app.on_event("startup")
async def _collaborators_start():
    app.state.identity = new_provider(app.state.http)
    app.state.notifier = new_sink(app.state.http)


@app.on_event("startup")
async def _say_hello():
    logger.info("=" * 50)
    logger.info("Assis Ads is starting up...")
    logger.info("   - Store    Backend: %s", app.state.store_backend)
    logger.info("   - Identity Backend: %s", app.state.identity.name)
    logger.info("   - E-mail   Sink:    %s",
                type(app.state.notifier).__name__)
    logger.info("=" * 50)


@app.on_event("shutdown")
async def _http_client_stop():
    http = getattr(app.state, "http", None)
    if http is not None:
        await http.aclose()
        app.state.http = None


@app.on_event("shutdown")
async def _redis_stop():
    r = getattr(app.state, "redis", None)
    if r is not None:
        await r.aclose()
        app.state.redis = None


@app.on_event("shutdown")
async def _db_stop():
    if engine is not None:
        await engine.dispose()


# ----------------------------
# Helpers
# ----------------------------
async def current_identity(request: Request) -> Optional[Identity]:
    token = request.session.get(S_TOKEN)
    if not token:
        return None
    return await get_identity().current_session(
        token, backend=request.session.get(S_BACKEND)
    )


async def require_buyer(request: Request) -> Identity:
    who = await current_identity(request)
    if who is None:
        raise HTTPException(
            401, detail="You need to be signed in to complete the purchase."
        )
    return who


def order_json(o: Order) -> dict:
    return {
        "id": o.id,
        "date": to_br_date(o.created_at),
        "created_at": to_iso(o.created_at),
        "items": [i.to_dict() for i in o.items],
        "total": o.total,
        "status": o.status,
        "credentials": list(o.credentials),
    }


# ----------------------------
# Catalog & inventory
# ----------------------------
@app.get("/api/products")
async def list_products(st: Stores = Depends(stores)):
    items = []
    for p in PRODUCTS:
        async with timeit("inventory.available"):
            available = await st.inventory.available(p.type)
        items.append({**p.to_dict(), "available": available})
    return {"items": items}


@app.get("/api/inventory")
async def get_inventory(st: Stores = Depends(stores)):
    out = {}
    for t in PRODUCT_TYPES:
        available = await st.inventory.available(t)
        out[t] = {
            "available": available,
            "sold_out": available is not None and available <= 0,
        }
    return out


# ----------------------------
# Cart (persisted in the client session)
# ----------------------------
@app.get("/api/cart")
async def get_cart(request: Request):
    return Cart(request.session).to_dict()


@app.post("/api/cart")
async def add_to_cart(payload: dict, request: Request):
    product = get_product(str(payload.get("product_id") or ""))
    if product is None:
        raise HTTPException(404, detail="product not found")
    cart = Cart(request.session)
    cart.add(product)
    return cart.to_dict()


@app.delete("/api/cart/{product_id}")
async def remove_from_cart(product_id: str, request: Request):
    cart = Cart(request.session)
    cart.remove(product_id)
    return cart.to_dict()


# ----------------------------
# Auth
# ----------------------------
def _remember(request: Request, s) -> None:
    request.session[S_TOKEN] = s.access_token
    request.session[S_BACKEND] = s.backend
    request.session[S_DEGRADED] = bool(s.degraded)


def _credentials(payload: dict) -> tuple[str, str]:
    email = (payload.get("email") or "").strip()
    password = payload.get("password") or ""
    if not is_valid_email(email):
        raise HTTPException(400, detail="A valid e-mail address is required.")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            400,
            detail=f"Password must have at least {MIN_PASSWORD_LENGTH} "
                   f"characters.",
        )
    return email, password


@app.post("/api/auth/signup")
async def sign_up(payload: dict, request: Request):
    email, password = _credentials(payload)
    try:
        s = await get_identity().sign_up(email, password)
    except UserAlreadyExists as e:
        raise HTTPException(409, detail=e.message)
    except AuthRateLimited as e:
        raise HTTPException(429, detail=e.message)
    except AuthError as e:
        raise HTTPException(400, detail=e.message)

    if s is None:
        return {
            "ok": True,
            "user": None,
            "message": "Account created! If you were not signed in "
                       "automatically, sign in with your password.",
        }
    _remember(request, s)
    return {"ok": True, "user": asdict(s.identity), "degraded": s.degraded}


@app.post("/api/auth/signin")
async def sign_in(payload: dict, request: Request):
    email = (payload.get("email") or "").strip()
    password = payload.get("password") or ""
    try:
        s = await get_identity().sign_in(email, password)
    except InvalidCredentials as e:
        raise HTTPException(401, detail=e.message)
    except AuthRateLimited as e:
        raise HTTPException(429, detail=e.message)
    except AuthError as e:
        raise HTTPException(400, detail=e.message)
    _remember(request, s)
    return {"ok": True, "user": asdict(s.identity), "degraded": s.degraded}


@app.post("/api/auth/signout")
async def sign_out(request: Request):
    token = request.session.get(S_TOKEN)
    if token:
        await get_identity().sign_out(
            token, backend=request.session.get(S_BACKEND)
        )
    # drops the cart too
    request.session.clear()
    return {"ok": True}


@app.get("/api/auth/session")
async def get_session(request: Request):
    who = await current_identity(request)
    return {"user": asdict(who) if who else None}


# ----------------------------
# Checkout (manual PIX)
# ----------------------------
@app.get("/api/payment")
async def payment_instructions(request: Request):
    return adapter.instructions(Cart(request.session).total)


@app.post("/api/checkout")
async def checkout(
    payload: dict,
    request: Request,
    background_tasks: BackgroundTasks,
    who: Identity = Depends(require_buyer),
    st: Stores = Depends(stores),
):
    cart = Cart(request.session)
    if not cart.lines:
        raise HTTPException(400, detail=EmptyCart.message)
    try:
        adapter.accept_reference(str(payload.get("transaction_id") or ""))
    except InvalidPaymentReference as e:
        raise HTTPException(400, detail=e.message)

    order_id = new_order_id()
    try:
        async with timeit("checkout.fulfill"):
            result = await fulfill(
                st.inventory, st.ledger, order_id, who.email,
                cart.lines, cart.total,
            )
    except InsufficientStock as e:
        raise HTTPException(409, detail=e.message)
    except LedgerWriteFailure as e:
        raise HTTPException(500, detail=e.message)
    except (SQLAlchemyError, RedisError, OSError) as e:
        # claims made before the failure stay sold
        logger.error(
            "order %s for %s failed on the %s store: %s",
            order_id, who.email, st.backend, e,
        )
        raise HTTPException(503, detail=StoreUnavailable(order_id).message)

    cart.clear()
    background_tasks.add_task(
        dispatch_order_email, get_notifier(), result.order
    )
    return {
        "ok": True,
        "order": order_json(result.order),
        "credentials": result.credentials,
    }


# ----------------------------
# Dashboard
# ----------------------------
@app.get("/api/orders")
async def list_orders(
    who: Identity = Depends(require_buyer),
    st: Stores = Depends(stores),
):
    async with timeit("ledger.list_by_buyer"):
        orders = await st.ledger.list_by_buyer(who.email)
    return {
        "items": [order_json(o) for o in orders],
        "total_spent": round(sum(o.total for o in orders), 2),
    }


@app.get("/api/orders/{order_id}/receipt")
async def download_receipt(
    order_id: str,
    who: Identity = Depends(require_buyer),
    st: Stores = Depends(stores),
):
    order = await st.ledger.get(order_id, who.email)
    if order is None:
        raise HTTPException(404, detail="order not found")
    try:
        body = render_receipt(order)
    except NoCredentials as e:
        raise HTTPException(404, detail=e.message)
    return PlainTextResponse(
        body,
        headers={
            "Content-Disposition":
                f'attachment; filename="{receipt_filename(order)}"',
        },
    )


@app.get("/api/timings")
async def get_timings():
    return snapshot()
