from abc import ABC, abstractmethod
from typing import Optional

from ..model.entities import AuthSession, Identity


class IdentityProvider(ABC):
    name: str = ""

    # None when the account was created but no session was issued
    # (e.g. e-mail confirmation pending)
    @abstractmethod
    async def sign_up(
        self, email: str, password: str
    ) -> Optional[AuthSession]: ...

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthSession: ...

    # `backend` names the provider that issued the token; only composite
    # providers look at it
    @abstractmethod
    async def sign_out(self, access_token: str,
                       backend: Optional[str] = None) -> None: ...

    @abstractmethod
    async def current_session(
        self, access_token: str, backend: Optional[str] = None
    ) -> Optional[Identity]: ...


def display_name(email: str, full_name: Optional[str] = None) -> str:
    return full_name or (email.split("@")[0] if email else "") or "Cliente"
