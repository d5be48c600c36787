"""
Error taxonomy for the bridge cycle.

Every error here is fatal to at most one cycle, never to the process. The
orchestrator maps each class to its recovery: a fixed 300 s wait for
configuration problems, the refresh interval for everything else.

CHANGELOG:
- 2026-10-12: Initial creation (STORY-102)

TODO:
- None
"""

from __future__ import annotations


class SolarSynkError(Exception):
    """Base class for all bridge errors."""


class ConfigMissing(SolarSynkError):
    """Required configuration is absent or invalid."""


class EncryptionError(SolarSynkError):
    """The password could not be encrypted with the server's public key."""


class KeyFetchError(EncryptionError):
    """The server's public key could not be retrieved."""


class AuthExhaustedError(SolarSynkError):
    """Every authentication variant failed on every attempt."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"No bearer token after {attempts} attempts")
        self.attempts = attempts


class FetchPartialFailure(SolarSynkError):
    """At least one telemetry document could not be fetched this cycle."""

    def __init__(self, failed: list[str]) -> None:
        super().__init__(f"Telemetry fetch failed for: {', '.join(failed)}")
        self.failed = failed


class ProjectionSkipped(SolarSynkError):
    """Projection was not run because the fetch stage did not fully succeed.

    A deliberate short-circuit rather than a fault.
    """


class DispatchWriteError(SolarSynkError):
    """A single sensor state write to Home Assistant failed."""

    def __init__(self, entity_id: str, reason: str) -> None:
        super().__init__(f"State write for {entity_id} failed: {reason}")
        self.entity_id = entity_id


class PushbackForwardError(SolarSynkError):
    """Forwarding the helper's settings payload to the inverter failed."""
