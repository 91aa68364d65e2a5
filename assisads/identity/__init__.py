# identity/__init__.py
import os
import logging
from dataclasses import replace
from typing import Optional

import httpx

from ..errors import AuthRateLimited
from ..model.entities import AuthSession, Identity
from .base import IdentityProvider
from ._local import LocalIdentityProvider
from ._supabase import SupabaseIdentityProvider

SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY = os.getenv("SUPABASE_KEY", "")

logger = logging.getLogger(__name__)


class FallbackIdentityProvider(IdentityProvider):
    """
    Primary provider first; when it answers "rate limited", the same call is
    served by the local provider and the session is marked degraded so
    checkout can route it to the offline stores.
    """

    def __init__(self, primary: IdentityProvider,
                 local: Optional[LocalIdentityProvider] = None) -> None:
        self.primary = primary
        self.local = local or LocalIdentityProvider()
        self.name = primary.name

    def _provider(self, backend: str) -> IdentityProvider:
        return self.local if backend == self.local.name else self.primary

    async def sign_up(
        self, email: str, password: str
    ) -> Optional[AuthSession]:
        try:
            return await self.primary.sign_up(email, password)
        except AuthRateLimited:
            logger.warning(
                "%s rate-limited sign-up, switching to local accounts",
                self.primary.name,
            )
            s = await self.local.sign_up(email, password)
            return replace(s, degraded=True)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        try:
            return await self.primary.sign_in(email, password)
        except AuthRateLimited:
            logger.warning(
                "%s rate-limited sign-in, switching to local accounts",
                self.primary.name,
            )
            s = await self.local.sign_in(email, password)
            return replace(s, degraded=True)

    async def sign_out(self, access_token: str,
                       backend: Optional[str] = None) -> None:
        await self._provider(backend or self.primary.name).sign_out(
            access_token
        )

    async def current_session(
        self, access_token: str, backend: Optional[str] = None
    ) -> Optional[Identity]:
        return await self._provider(
            backend or self.primary.name
        ).current_session(access_token)


# Factory keeps server.py simple and constructor-agnostic:
def new_provider(http: Optional[httpx.AsyncClient] = None) -> IdentityProvider:
    if SUPABASE_URL and SUPABASE_KEY:
        if http is None:
            raise RuntimeError(
                "IdentityProvider(supabase) requires http=httpx.AsyncClient"
            )
        return FallbackIdentityProvider(
            SupabaseIdentityProvider(http, url=SUPABASE_URL, key=SUPABASE_KEY)
        )
    return LocalIdentityProvider()


__all__ = [
    "IdentityProvider", "FallbackIdentityProvider", "LocalIdentityProvider",
    "SupabaseIdentityProvider", "new_provider",
]
