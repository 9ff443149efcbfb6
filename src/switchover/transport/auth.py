"""
Bearer-token lifecycle for the REST transport.

The TokenManager holds at most one live token. When the token has expired,
the first caller starts a refresh through the identity provider and every
concurrent caller awaits that same in-flight refresh; no second refresh is
started while one is pending. The in-flight task is cleared once it
settles, on success and on failure alike. A failed refresh clears the
stored token and the error reaches every waiting caller.

Example:
    >>> manager = TokenManager(provider)
    >>> manager.set_token(initial_access_token)
    >>> token = await manager.get_auth_token()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol, runtime_checkable

import jwt

logger = logging.getLogger(__name__)


@runtime_checkable
class TokenProvider(Protocol):
    """
    Identity provider interface.

    Implementations exchange their stored session for a fresh access token.
    Returning None means the provider has no session.
    """

    async def refresh_token(self) -> str | None:
        """Return a fresh access token."""
        ...


def decode_expiry(token: str) -> datetime | None:
    """
    Decode the ``exp`` claim of a JWT without verifying its signature.

    Args:
        token: Encoded JWT

    Returns:
        Expiry as an aware UTC datetime, or None when the token cannot be
        decoded or carries no usable ``exp`` claim
    """
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return None
    exp = claims.get("exp")
    if not isinstance(exp, int | float) or isinstance(exp, bool):
        return None
    try:
        return datetime.fromtimestamp(exp, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return None


@dataclass(frozen=True)
class AuthToken:
    """
    A bearer token and its decoded expiry.

    Attributes:
        value: The encoded token
        expiry: Decoded expiry, None when it could not be decoded
    """

    value: str
    expiry: datetime | None

    @classmethod
    def from_value(cls, value: str) -> AuthToken:
        return cls(value=value, expiry=decode_expiry(value))

    def is_expired(self, now: datetime | None = None, leeway: float = 0.0) -> bool:
        """
        Check expiry; an undecodable expiry counts as expired.

        Args:
            now: Reference time (defaults to the current UTC time)
            leeway: Seconds before the real expiry at which the token is
                already treated as expired

        Returns:
            True if the token should be refreshed
        """
        if self.expiry is None:
            return True
        now = now or datetime.now(UTC)
        return self.expiry - timedelta(seconds=leeway) <= now


class TokenManager:
    """
    Holds the current token and coordinates single-flight refreshes.

    Attributes:
        refresh_count: Number of refreshes actually performed against the
            provider (useful for monitoring and tests)
    """

    def __init__(
        self,
        provider: TokenProvider | None = None,
        *,
        leeway: float = 0.0,
    ) -> None:
        """
        Initialize the manager.

        Args:
            provider: Identity provider used to refresh expired tokens
            leeway: Seconds of clock skew tolerated before expiry
        """
        self._provider = provider
        self._leeway = leeway
        self._token: AuthToken | None = None
        self._refresh_task: asyncio.Task[str | None] | None = None
        self.refresh_count = 0

    @property
    def token(self) -> AuthToken | None:
        return self._token

    @property
    def refresh_in_flight(self) -> bool:
        return self._refresh_task is not None

    def set_token(self, value: str | None) -> None:
        """Store a token obtained elsewhere (e.g. at sign-in)."""
        self._token = AuthToken.from_value(value) if value else None

    def clear(self) -> None:
        self._token = None

    def is_token_expired(self, value: str) -> bool:
        return AuthToken.from_value(value).is_expired(leeway=self._leeway)

    async def get_auth_token(self) -> str | None:
        """
        Return a valid token, refreshing first if the current one expired.

        Returns:
            The token value, or None when no token is held

        Raises:
            Exception: Whatever the identity provider raised during refresh
        """
        if self._token is None:
            return None
        if self._token.is_expired(leeway=self._leeway):
            return await self.refresh_token()
        return self._token.value

    async def refresh_token(self) -> str | None:
        """
        Refresh the token, joining an in-flight refresh if one is pending.

        The shared refresh is shielded so that one cancelled caller does
        not abort the refresh for the others.

        Returns:
            The refreshed token value (None if the provider has no session)
        """
        if self._refresh_task is None:
            task = asyncio.ensure_future(self._perform_refresh())
            task.add_done_callback(self._clear_refresh_task)
            self._refresh_task = task
        return await asyncio.shield(self._refresh_task)

    def _clear_refresh_task(self, task: asyncio.Task[str | None]) -> None:
        if self._refresh_task is task:
            self._refresh_task = None

    async def _perform_refresh(self) -> str | None:
        if self._provider is None:
            self._token = None
            raise RuntimeError("Token expired and no identity provider is configured")

        self.refresh_count += 1
        try:
            value = await self._provider.refresh_token()
        except Exception as e:
            logger.error("Token refresh failed: %s", e)
            self._token = None
            raise

        self.set_token(value)
        logger.debug("Token refreshed (expires %s)", self._token.expiry if self._token else None)
        return value


__all__ = [
    "TokenProvider",
    "AuthToken",
    "TokenManager",
    "decode_expiry",
]
