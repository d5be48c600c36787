"""
Data models passed between the stages of one bridge cycle.

Nothing here outlives a cycle: credentials, the bearer session, the fetched
documents and the projected values are rebuilt from scratch every time the
orchestrator runs.

CHANGELOG:
- 2026-10-19: Derive AuthSession.valid from the token
- 2026-10-14: Add CycleResult and PushbackOutcome (STORY-110)
- 2026-10-12: Initial creation (STORY-103)

TODO:
- None
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, SecretStr

from solarsynk.src.errors import FetchPartialFailure

Scalar = Union[str, int, float, bool]
"""A JSON leaf value that can become a Home Assistant state."""


class PasswordForm(enum.Enum):
    """Which form of the password an authentication attempt sends."""

    ENCRYPTED = "enc"
    PLAIN = "plain"


class EndpointForm(enum.Enum):
    """Which token endpoint an authentication attempt targets."""

    DEFAULT = "default"
    ALTERNATE = "new"


@dataclass(frozen=True, slots=True)
class AuthVariant:
    """One (password form, endpoint) combination tried during authentication."""

    password_form: PasswordForm
    endpoint_form: EndpointForm

    @property
    def label(self) -> str:
        """Short identifier used in logs, e.g. ``enc-default``."""
        return f"{self.password_form.value}-{self.endpoint_form.value}"


class Credentials(BaseModel):
    """Sunsynk account credentials for one cycle.

    Attributes:
        username: Account username.
        password: Plaintext password.
        encrypted_password: Base64 RSA ciphertext of *password*, or ``None``
            when encryption has not run yet.
    """

    model_config = ConfigDict(frozen=True)

    username: str
    password: SecretStr
    encrypted_password: SecretStr | None = None

    def password_for(self, form: PasswordForm) -> str | None:
        """Return the password in the requested form, or None if unavailable."""
        if form is PasswordForm.ENCRYPTED:
            if self.encrypted_password is None:
                return None
            return self.encrypted_password.get_secret_value()
        return self.password.get_secret_value()


class AuthSession(BaseModel):
    """Bearer token obtained by the negotiator, valid for the current cycle only."""

    model_config = ConfigDict(frozen=True)

    token: SecretStr
    variant: AuthVariant
    attempts: int

    @property
    def valid(self) -> bool:
        """Whether the token can be used as a bearer credential."""
        token = self.token.get_secret_value().strip()
        return bool(token) and token != "null"

    @property
    def authorization(self) -> str:
        """Value for the ``authorization`` request header."""
        return f"Bearer {self.token.get_secret_value()}"


class SensorRecord(BaseModel):
    """A single named value destined for a Home Assistant state entity."""

    model_config = ConfigDict(frozen=True)

    key: str
    value: Scalar | None
    attributes: dict[str, str]
    friendly_name: str

    @property
    def state_text(self) -> str:
        """The value as Home Assistant state text (JSON spelling for booleans)."""
        if isinstance(self.value, bool):
            return "true" if self.value else "false"
        return "" if self.value is None else str(self.value)

    def state_payload(self) -> dict[str, Any]:
        """Body for ``POST /api/states/<entity_id>``."""
        return {
            "state": self.state_text,
            "attributes": {**self.attributes, "friendly_name": self.friendly_name},
        }


@dataclass(slots=True)
class FetchResult:
    """Outcome of one exhaustive telemetry fetch.

    Attributes:
        documents: Decoded JSON body per document key, successful fetches only.
        failed: Keys of documents whose fetch failed, in request order.
    """

    documents: dict[str, Any] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True only when every document was fetched."""
        return not self.failed

    def raise_for_failures(self) -> None:
        """Raise :class:`FetchPartialFailure` if any document is missing."""
        if self.failed:
            raise FetchPartialFailure(list(self.failed))


@dataclass(slots=True)
class DispatchReport:
    """Per-key outcome of pushing projected values to Home Assistant."""

    sent: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class PushbackOutcome(enum.Enum):
    """What the settings pushback stage did this cycle."""

    NO_HELPER = "no_helper"
    EMPTY = "empty"
    FORWARDED = "forwarded"
    FORWARD_FAILED = "forward_failed"


class CycleStatus(enum.Enum):
    """Terminal state of one orchestrator cycle."""

    OK = "ok"
    CONFIG_MISSING = "config_missing"
    ENCRYPTION_FAILED = "encryption_failed"
    AUTH_EXHAUSTED = "auth_exhausted"
    FETCH_PARTIAL = "fetch_partial"
    ERROR = "error"


@dataclass(slots=True)
class CycleResult:
    """Summary of one cycle, used for logging and the health file."""

    status: CycleStatus
    dispatch: DispatchReport | None = None
    pushback: PushbackOutcome | None = None
    failed_documents: list[str] = field(default_factory=list)

    @property
    def fetch_ok(self) -> bool:
        """Whether every telemetry document was fetched this cycle."""
        return self.status is CycleStatus.OK
