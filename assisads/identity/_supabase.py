# identity/_supabase.py
"""
Supabase Auth (GoTrue) over plain HTTP.

Only the four calls the storefront needs. Rate limiting is reported as
AuthRateLimited, separately from bad credentials, so the caller can fall
back to local accounts instead of locking the buyer out.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import (
    AuthError, AuthRateLimited, InvalidCredentials, UserAlreadyExists
)
from ..model.entities import AuthSession, Identity
from .base import IdentityProvider, display_name

logger = logging.getLogger(__name__)


def _error_message(r: httpx.Response) -> str:
    try:
        body = r.json()
    except ValueError:
        return r.text or f"HTTP {r.status_code}"
    if not isinstance(body, dict):
        return str(body)
    for k in ("msg", "error_description", "message", "error"):
        if body.get(k):
            return str(body[k])
    return f"HTTP {r.status_code}"


def _is_rate_limited(r: httpx.Response, message: str) -> bool:
    m = message.lower()
    return (
        r.status_code == 429
        or "rate limit" in m
        or "security purposes" in m
    )


def _identity(user: Dict[str, Any]) -> Identity:
    meta = user.get("user_metadata") or {}
    email = user.get("email") or ""
    return Identity(
        id=str(user.get("id", "")),
        email=email,
        name=display_name(email, meta.get("full_name")),
        avatar=meta.get("avatar_url"),
        role="user",
    )


class SupabaseIdentityProvider(IdentityProvider):
    name = "supabase"

    def __init__(self, http: httpx.AsyncClient, *, url: str,
                 key: str) -> None:
        self.http = http
        self.base = url.rstrip("/") + "/auth/v1"
        self.key = key

    def _headers(self, token: Optional[str] = None) -> Dict[str, str]:
        return {
            "apikey": self.key,
            "Authorization": f"Bearer {token or self.key}",
            "content-type": "application/json",
        }

    async def _post(self, path: str, payload: Optional[dict] = None,
                    token: Optional[str] = None) -> httpx.Response:
        try:
            return await self.http.post(
                self.base + path, json=payload or {},
                headers=self._headers(token),
            )
        except httpx.HTTPError as e:
            raise AuthError(f"Authentication service unavailable: {e}")

    def _session(self, body: Dict[str, Any]) -> AuthSession:
        return AuthSession(
            access_token=body["access_token"],
            identity=_identity(body.get("user") or {}),
            backend=self.name,
        )

    async def sign_up(
        self, email: str, password: str
    ) -> Optional[AuthSession]:
        r = await self._post(
            "/signup", {"email": email, "password": password}
        )
        if r.is_success:
            body = r.json()
            # no session until the e-mail is confirmed
            if not body.get("access_token"):
                return None
            return self._session(body)

        message = _error_message(r)
        if _is_rate_limited(r, message):
            raise AuthRateLimited()
        if "already" in message.lower():
            raise UserAlreadyExists()
        raise AuthError(message)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        r = await self._post(
            "/token?grant_type=password",
            {"email": email, "password": password},
        )
        if r.is_success:
            return self._session(r.json())

        message = _error_message(r)
        if _is_rate_limited(r, message):
            raise AuthRateLimited()
        if r.status_code in (400, 401):
            raise InvalidCredentials()
        raise AuthError(message)

    async def sign_out(self, access_token: str,
                       backend: Optional[str] = None) -> None:
        try:
            r = await self.http.post(
                self.base + "/logout", headers=self._headers(access_token)
            )
        except httpx.HTTPError as e:
            logger.warning("supabase sign-out failed: %s", e)
            return
        if not r.is_success and r.status_code != 401:
            logger.warning("supabase sign-out failed: %s", _error_message(r))

    async def current_session(
        self, access_token: str, backend: Optional[str] = None
    ) -> Optional[Identity]:
        try:
            r = await self.http.get(
                self.base + "/user", headers=self._headers(access_token)
            )
        except httpx.HTTPError as e:
            logger.warning("supabase session lookup failed: %s", e)
            return None
        if not r.is_success:
            return None
        return _identity(r.json())
