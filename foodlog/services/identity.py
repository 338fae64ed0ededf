"""Identity providers — resolve the authenticated user id for a call."""

from __future__ import annotations

from typing import Optional, Protocol

from foodlog.exceptions import AuthenticationRequired


class IdentityProvider(Protocol):
    async def get_authenticated_user_id(self) -> str: ...


class HeaderIdentityProvider:
    """
    Trusts the user id forwarded in the X-User-ID header.
    Session / JWT verification is the gateway's responsibility.
    """

    def __init__(self, user_id: Optional[str]) -> None:
        self._user_id = (user_id or "").strip()

    async def get_authenticated_user_id(self) -> str:
        if not self._user_id:
            raise AuthenticationRequired("User must be authenticated to access food entries")
        return self._user_id


class StaticIdentityProvider(HeaderIdentityProvider):
    """Fixed user id for scripts and tests."""
