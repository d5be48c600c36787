"""
Bridge daemon main loop: Sunsynk cloud -> Home Assistant, forever.

Each cycle runs strictly in sequence on a single asyncio task:

1. Remove stale scratch files and reload configuration.
2. Encrypt the password with the server's current public key.
3. Negotiate a bearer token over the four authentication variants.
4. Fetch all eight telemetry documents (exhaustively).
5. If every fetch succeeded: project the values, dispatch them to Home
   Assistant, then run the settings pushback channel.
6. Sleep for the refresh interval and repeat.

No failure is fatal to the process. Configuration problems wait a fixed 300
seconds; every other failure skips the remaining stages of the cycle and
waits the refresh interval. Graceful shutdown on SIGTERM/SIGINT sets an
asyncio.Event that interrupts the inter-cycle sleep and cancels a running
cycle wherever it is suspended; scratch files are removed on the way out and
again at interpreter exit.

Structured JSON logging is used for all events; verbose mode switches the
root logger to DEBUG and adds raw response bodies and the full value set.

CHANGELOG:
- 2026-10-19: Cancel the running cycle on shutdown; record config failures
  in the health file
- 2026-10-15: Record cycle outcome in the health file (STORY-112)
- 2026-10-14: Run settings pushback after dispatch (STORY-110)
- 2026-10-12: Initial creation (STORY-101)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import atexit
import contextlib
import hashlib
import json
import logging
import signal
import sys
from datetime import UTC, date, datetime
from pathlib import Path

import httpx

from solarsynk.src.auth import Negotiator
from solarsynk.src.config import CONFIG_RETRY_S, BridgeSettings, load_settings
from solarsynk.src.dispatcher import dispatch
from solarsynk.src.encryptor import encrypt_password
from solarsynk.src.errors import (
    AuthExhaustedError,
    ConfigMissing,
    EncryptionError,
    FetchPartialFailure,
)
from solarsynk.src.fetcher import fetch_all, log_raw_documents
from solarsynk.src.health import HealthWriter
from solarsynk.src.models import CycleResult, CycleStatus, Credentials, Scalar
from solarsynk.src.projector import project
from solarsynk.src.pushback import push_settings
from solarsynk.src.scratch import ScratchArea

logger = logging.getLogger(__name__)

LOG_SEPARATOR = "-" * 78


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging() -> None:
    """Configure structured JSON logging for the bridge daemon.

    Sets up the root logger with a JSON-formatted handler writing to stderr.
    """

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry, ensure_ascii=False)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.INFO)
    # httpx logs every request line at INFO; keep those out of the add-on log.
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def set_verbose(verbose: bool) -> None:
    """Switch the root logger between INFO and DEBUG."""
    logging.getLogger().setLevel(logging.DEBUG if verbose else logging.INFO)


def _masked_token(value: str | None) -> str:
    """Return a short non-reversible token fingerprint for diagnostics."""
    if not value:
        return "empty"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]
    return f"len={len(value)} sha256={digest}"


# ---------------------------------------------------------------------------
# Config and result logging
# ---------------------------------------------------------------------------


def log_config_summary(settings: BridgeSettings) -> None:
    """Log a config summary, excluding secrets.

    Passwords are omitted entirely; the Home Assistant token is shown only
    as a fingerprint.
    """
    logger.info(
        "Configuration loaded: sunsynk_user=%s, sunsynk_serial=%s, "
        "ha_base_url=%s, refresh_rate_s=%s, verbose=%s, "
        "settings_helper_entity=%s, api_base_url=%s, ha_token_masked=%s",
        settings.sunsynk_user,
        settings.sunsynk_serial,
        settings.ha_base_url,
        settings.refresh_rate_s,
        settings.verbose,
        settings.settings_helper_entity,
        settings.api_base_url,
        _masked_token(settings.ha_token.get_secret_value()),
    )


def log_inverter_info(values: dict[str, Scalar | None]) -> None:
    """Log the inverter identity block extracted this cycle."""
    logger.info(LOG_SEPARATOR)
    logger.info("Inverter Information")
    for label, key in (
        ("Brand", "inverterinfo_brand"),
        ("Status", "inverterinfo_runstatus"),
        ("Max Watts", "inverterinfo_ratepower"),
        ("Plant ID", "inverterinfo_plantid"),
        ("Plant Name", "inverterinfo_plantname"),
        ("Inverter S/N", "inverterinfo_serial"),
        ("Data Valid At", "inverterinfo_updateat"),
    ):
        logger.info("%s: %s", label, values.get(key))
    logger.info(LOG_SEPARATOR)


def log_values(values: dict[str, Scalar | None]) -> None:
    """Dump every projected value at DEBUG (verbose mode)."""
    logger.debug("Values to send. If ALL values are NULL then something went wrong:")
    for key, value in values.items():
        logger.debug("%s: %s", key, value)


# ---------------------------------------------------------------------------
# HTTP clients
# ---------------------------------------------------------------------------


def cloud_client(
    settings: BridgeSettings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """HTTP client for the Sunsynk cloud API (TLS always verified)."""
    return httpx.AsyncClient(
        base_url=settings.api_base_url,
        timeout=settings.request_timeout_s,
        transport=transport,
    )


def ha_client(
    settings: BridgeSettings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """HTTP client for the Home Assistant REST API, authenticated."""
    return httpx.AsyncClient(
        base_url=settings.ha_base_url,
        headers={
            "Authorization": f"Bearer {settings.ha_token.get_secret_value()}",
            "Content-Type": "application/json",
        },
        timeout=settings.request_timeout_s,
        verify=settings.ha_verify_ssl,
        transport=transport,
    )


# ---------------------------------------------------------------------------
# Single cycle (easily testable)
# ---------------------------------------------------------------------------


async def run_cycle(
    settings: BridgeSettings,
    *,
    negotiator: Negotiator | None = None,
    scratch: ScratchArea | None = None,
    day: date | None = None,
    cloud_transport: httpx.AsyncBaseTransport | None = None,
    ha_transport: httpx.AsyncBaseTransport | None = None,
) -> CycleResult:
    """Execute one encrypt -> auth -> fetch -> project -> dispatch -> pushback cycle.

    Stage failures are converted into a :class:`CycleResult` status; they
    never propagate.

    Args:
        settings: Configuration loaded for this cycle.
        negotiator: Authentication negotiator; a default one is built if None.
        scratch: Scratch area for the encryptor; defaults to
            ``settings.scratch_dir``.
        day: Date for the day-series document; defaults to today (local).
        cloud_transport: Optional httpx transport for the cloud client.
        ha_transport: Optional httpx transport for the Home Assistant client.

    Returns:
        The cycle's :class:`CycleResult`.
    """
    negotiator = negotiator or Negotiator()
    scratch = scratch or ScratchArea(settings.scratch_dir)
    day = day or date.today()

    async with cloud_client(settings, cloud_transport) as cloud, ha_client(
        settings, ha_transport
    ) as ha:
        try:
            encrypted = await encrypt_password(
                cloud, settings.sunsynk_pass.get_secret_value(), scratch
            )
        except EncryptionError as exc:
            logger.error("Password encryption failed: %s", exc)
            return CycleResult(status=CycleStatus.ENCRYPTION_FAILED)

        credentials = Credentials(
            username=settings.sunsynk_user,
            password=settings.sunsynk_pass,
            encrypted_password=encrypted,
        )
        try:
            session = await negotiator.negotiate(cloud, credentials)
        except AuthExhaustedError as exc:
            logger.error("Failed to get bearer token (%s). Possible causes:", exc)
            logger.error("- Incorrect setup, check configuration")
            logger.error("- Network connectivity issues")
            logger.error("- Sunsynk server issues")
            logger.error("- Too frequent connection requests")
            logger.info("Script will continue to loop but no values will be updated")
            return CycleResult(status=CycleStatus.AUTH_EXHAUSTED)

        if not session.valid:
            logger.error("Bearer token from %s is not usable", session.variant.label)
            return CycleResult(status=CycleStatus.AUTH_EXHAUSTED)

        logger.info("Sunsynk Server API Token: Hidden for security reasons")

        fetched = await fetch_all(cloud, session, settings.sunsynk_serial, day)
        if settings.verbose:
            log_raw_documents(fetched)
        try:
            fetched.raise_for_failures()
        except FetchPartialFailure as exc:
            logger.error("Data processing failed: %s", exc)
            return CycleResult(
                status=CycleStatus.FETCH_PARTIAL,
                failed_documents=exc.failed,
            )

        values = project(fetched)
        log_inverter_info(values)
        if settings.verbose:
            log_values(values)

        logger.info("Sending to %s", settings.ha_base_url)
        report = await dispatch(ha, values)
        outcome = await push_settings(
            ha_client=ha,
            cloud_client=cloud,
            session=session,
            serial=settings.sunsynk_serial,
            entity_id=settings.settings_helper_entity,
        )
        logger.info("Fetch complete for inverter: %s", settings.sunsynk_serial)
        return CycleResult(status=CycleStatus.OK, dispatch=report, pushback=outcome)


# ---------------------------------------------------------------------------
# Loop runner
# ---------------------------------------------------------------------------


async def _wait(shutdown_event: asyncio.Event, seconds: float) -> None:
    """Sleep for *seconds* unless shutdown is requested first."""
    with contextlib.suppress(TimeoutError):
        await asyncio.wait_for(shutdown_event.wait(), timeout=seconds)


async def _run_cycle_until_shutdown(
    shutdown_event: asyncio.Event,
    settings: BridgeSettings,
    scratch: ScratchArea,
) -> CycleResult | None:
    """Run one cycle as a task, cancelling it if shutdown is requested first.

    Returns:
        The cycle's result, or None when the cycle was cancelled by shutdown.
    """
    cycle = asyncio.create_task(run_cycle(settings, scratch=scratch))
    stop = asyncio.create_task(shutdown_event.wait())
    try:
        await asyncio.wait({cycle, stop}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        cycle.cancel()
        raise
    finally:
        stop.cancel()

    if not cycle.done():
        logger.info("Shutdown requested, cancelling running cycle")
        cycle.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await cycle
        return None

    try:
        return cycle.result()
    except Exception:
        logger.error("Cycle error", exc_info=True)
        return CycleResult(status=CycleStatus.ERROR)


async def run_forever(shutdown_event: asyncio.Event) -> None:
    """Run cycles until shutdown_event is set.

    Configuration is reloaded at the start of every cycle, so edits to the
    add-on options take effect without a restart.
    """
    scratch = ScratchArea(BridgeSettings.model_fields["scratch_dir"].default)
    atexit.register(scratch.cleanup)
    health: HealthWriter | None = None

    try:
        while not shutdown_event.is_set():
            logger.info(LOG_SEPARATOR)
            logger.info(
                "SolarSynk cycle start: %s",
                datetime.now().strftime("%d/%m/%Y %H:%M:%S"),
            )
            scratch.cleanup()

            try:
                settings = load_settings()
            except ConfigMissing as exc:
                logger.error("Configuration loading failed: %s", exc)
                logger.info("Script will retry in %d seconds", CONFIG_RETRY_S)
                if health is not None:
                    health.record_cycle(CycleResult(status=CycleStatus.CONFIG_MISSING))
                await _wait(shutdown_event, CONFIG_RETRY_S)
                continue

            set_verbose(settings.verbose)
            log_config_summary(settings)

            if scratch.root != Path(settings.scratch_dir):
                scratch = ScratchArea(settings.scratch_dir)
                atexit.register(scratch.cleanup)
                scratch.cleanup()
            if health is None or health.path != Path(settings.health_path):
                health = HealthWriter(settings.health_path)

            result = await _run_cycle_until_shutdown(shutdown_event, settings, scratch)
            if result is None:
                break

            health.record_cycle(result)
            logger.info(
                "All Done! Waiting %d seconds to rinse and repeat",
                settings.refresh_rate_s,
            )
            await _wait(shutdown_event, settings.refresh_rate_s)
    finally:
        scratch.cleanup()
        logger.info("Shutdown complete")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def async_main() -> None:
    """Async entrypoint: configure logging, install signal handlers, loop.

    Sets up SIGTERM/SIGINT handlers to trigger graceful shutdown.
    """
    configure_logging()
    shutdown_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: _handle_signal(shutdown_event),
        )

    await run_forever(shutdown_event)


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event.

    Args:
        shutdown_event: The event to set for graceful shutdown.
    """
    logger.info("Received shutdown signal, initiating graceful shutdown")
    shutdown_event.set()


def main() -> None:
    """Synchronous entrypoint for the bridge daemon."""
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
