"""
Authentication negotiator: obtains a Sunsynk bearer token for one cycle.

The cloud has accepted different login shapes over time, so the negotiator
walks a fixed matrix of four variants (encrypted/plain password against the
default/alternate token endpoint). Each variant gets up to eight attempts
with a fixed Fibonacci-like backoff between them:

    attempt:  1   2   3   4   5   6   7   8
    sleep:    0   1   1   2   3   5   8   13   (seconds, before the attempt)

The first attempt that returns HTTP 2xx with ``success: true`` and a non-null
``data.access_token`` wins; no further variants are tried. After 32 failed
attempts :class:`AuthExhaustedError` is raised.

CHANGELOG:
- 2026-10-13: Redact tokens in verbose response logging (STORY-109)
- 2026-10-12: Initial creation (STORY-105)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import httpx
from pydantic import SecretStr

from solarsynk.src.errors import AuthExhaustedError
from solarsynk.src.models import (
    AuthSession,
    AuthVariant,
    Credentials,
    EndpointForm,
    PasswordForm,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BACKOFF_SCHEDULE_S: tuple[int, ...] = (1, 1, 2, 3, 5, 8, 13)
"""Wait before attempt n (n >= 2) is ``BACKOFF_SCHEDULE_S[n - 2]``."""

MAX_ATTEMPTS_PER_VARIANT: int = len(BACKOFF_SCHEDULE_S) + 1

TOKEN_PATHS: dict[EndpointForm, str] = {
    EndpointForm.DEFAULT: "/oauth/token",
    EndpointForm.ALTERNATE: "/oauth/token/new",
}

AUTH_VARIANTS: tuple[AuthVariant, ...] = (
    AuthVariant(PasswordForm.ENCRYPTED, EndpointForm.DEFAULT),
    AuthVariant(PasswordForm.ENCRYPTED, EndpointForm.ALTERNATE),
    AuthVariant(PasswordForm.PLAIN, EndpointForm.DEFAULT),
    AuthVariant(PasswordForm.PLAIN, EndpointForm.ALTERNATE),
)
"""Priority order: encrypted forms strictly before plaintext forms."""

CLIENT_ID = "csp-web"
SOURCE = "sunsynk"

_REDACTED_KEYS = frozenset({"access_token", "refresh_token"})

Sleep = Callable[[float], Awaitable[Any]]


def backoff_delay(attempt: int, schedule: Sequence[float] = BACKOFF_SCHEDULE_S) -> float:
    """Seconds to wait before *attempt* (1-based) within one variant."""
    index = attempt - 2
    if index < 0 or index >= len(schedule):
        return 0
    return schedule[index]


def _redact(body: Any) -> Any:
    """Copy of a decoded JSON body with token values masked."""
    if isinstance(body, dict):
        return {
            k: ("***" if k in _REDACTED_KEYS and v else _redact(v))
            for k, v in body.items()
        }
    if isinstance(body, list):
        return [_redact(v) for v in body]
    return body


class Negotiator:
    """Bounded retry matrix over authentication variants.

    Args:
        sleep: Awaitable sleep used between attempts; injectable for tests.
        variants: Variants to try, in priority order.
        schedule: Backoff schedule in seconds. One more attempt than there
            are entries is made per variant.
    """

    def __init__(
        self,
        *,
        sleep: Sleep = asyncio.sleep,
        variants: Sequence[AuthVariant] = AUTH_VARIANTS,
        schedule: Sequence[float] = BACKOFF_SCHEDULE_S,
    ) -> None:
        self._sleep = sleep
        self._variants = tuple(variants)
        self._schedule = tuple(schedule)

    @property
    def max_attempts(self) -> int:
        """Attempts per variant."""
        return len(self._schedule) + 1

    async def negotiate(
        self,
        client: httpx.AsyncClient,
        credentials: Credentials,
    ) -> AuthSession:
        """Try every variant in order until one yields a bearer token.

        Args:
            client: HTTP client bound to the Sunsynk API base URL.
            credentials: Username plus plain and encrypted password.

        Returns:
            A fresh :class:`AuthSession` for this cycle.

        Raises:
            AuthExhaustedError: If every attempt of every variant failed.
        """
        logger.info("Getting bearer token")
        total_attempts = 0

        for variant in self._variants:
            password = credentials.password_for(variant.password_form)
            if password is None:
                logger.warning(
                    "Skipping authentication method %s: no %s password available",
                    variant.label,
                    variant.password_form.value,
                )
                continue

            logger.debug(
                "Trying authentication method: %s (Max attempts: %d)",
                variant.label,
                self.max_attempts,
            )
            for attempt in range(1, self.max_attempts + 1):
                delay = backoff_delay(attempt, self._schedule)
                if delay > 0:
                    logger.debug(
                        "Attempt %d failed. Waiting %s seconds before attempt %d...",
                        attempt - 1,
                        delay,
                        attempt,
                    )
                    await self._sleep(delay)

                total_attempts += 1
                token = await self._attempt(
                    client,
                    variant=variant,
                    username=credentials.username,
                    password=password,
                    attempt=attempt,
                )
                if token is not None:
                    logger.info("Valid token retrieved using %s", variant.label)
                    logger.info("Bearer Token length: %d", len(token))
                    return AuthSession(
                        token=SecretStr(token),
                        variant=variant,
                        attempts=total_attempts,
                    )

        logger.error("Failed to get valid token with all methods")
        raise AuthExhaustedError(total_attempts)

    async def _attempt(
        self,
        client: httpx.AsyncClient,
        *,
        variant: AuthVariant,
        username: str,
        password: str,
        attempt: int,
    ) -> str | None:
        """Perform one token request; return the token or None on any failure."""
        payload = {
            "client_id": CLIENT_ID,
            "grant_type": "password",
            "password": password,
            "source": SOURCE,
            "username": username,
        }
        try:
            response = await client.post(TOKEN_PATHS[variant.endpoint_form], json=payload)
        except httpx.HTTPError as exc:
            logger.error(
                "Token request failed (%s: %s). (Attempt %d of %d)",
                type(exc).__name__,
                exc,
                attempt,
                self.max_attempts,
            )
            return None

        if response.is_error:
            logger.error(
                "Token request failed with HTTP %d. (Attempt %d of %d)",
                response.status_code,
                attempt,
                self.max_attempts,
            )
            return None

        try:
            body = response.json()
        except ValueError:
            logger.error(
                "Token response was not JSON. (Attempt %d of %d)",
                attempt,
                self.max_attempts,
            )
            return None

        logger.debug(
            "Token request successful for %s (Attempt %d)", variant.label, attempt
        )
        logger.debug("Raw token data: %s", _redact(body))

        if not isinstance(body, dict):
            logger.error("Invalid token response shape (Attempt %d)", attempt)
            return None

        data = body.get("data")
        token = data.get("access_token") if isinstance(data, dict) else None
        if body.get("success") is True and token and token != "null":
            return str(token)

        logger.error(
            "Invalid token received: %s (Attempt %d of %d)",
            body.get("msg"),
            attempt,
            self.max_attempts,
        )
        return None
