"""
Sensor dispatcher: publishes projected values as Home Assistant states.

For every sensor in the static catalogue whose projected value is present,
POSTs ``{"state": ..., "attributes": {..., "friendly_name": ...}}`` to
``/api/states/sensor.solarsynk_<key>``. Each write fully replaces the
entity's previous state, so repeating a dispatch is idempotent.

Writes are best-effort and independent: a failed write is logged and
counted, never retried, and never blocks the remaining keys. Values whose
key is not in the catalogue are never sent.

Operations:
- build_records(values): Catalogue-filtered, null-filtered SensorRecords.
- dispatch(client, values): Write every record; return a DispatchReport.

CHANGELOG:
- 2026-10-12: Initial creation (STORY-107)

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

import httpx

from solarsynk.src.errors import DispatchWriteError
from solarsynk.src.models import DispatchReport, Scalar, SensorRecord
from solarsynk.src.sensors import SENSORS, SensorSpec

logger = logging.getLogger(__name__)

NULL_MARKER = "null"
"""Literal the cloud API (and jq-style tooling) uses for a missing value."""

STATES_PATH = "/api/states/{entity_id}"


def is_dispatchable(value: Scalar | None) -> bool:
    """True for a value that should become a state: not absent, empty or "null"."""
    if value is None:
        return False
    if isinstance(value, str) and (not value.strip() or value == NULL_MARKER):
        return False
    return True


def build_records(
    values: Mapping[str, Scalar | None],
    sensors: Mapping[str, SensorSpec] = SENSORS,
) -> list[SensorRecord]:
    """Pair each catalogued sensor with its value, dropping non-dispatchable ones."""
    records: list[SensorRecord] = []
    for key, spec in sensors.items():
        value = values.get(key)
        if not is_dispatchable(value):
            continue
        records.append(
            SensorRecord(
                key=key,
                value=value,
                attributes=spec.attributes(),
                friendly_name=spec.friendly_name,
            )
        )
    return records


async def write_state(
    client: httpx.AsyncClient,
    entity_id: str,
    payload: dict[str, object],
) -> None:
    """POST one state to Home Assistant.

    Raises:
        DispatchWriteError: On transport failure or a non-2xx response.
    """
    try:
        response = await client.post(
            STATES_PATH.format(entity_id=entity_id), json=payload
        )
    except httpx.HTTPError as exc:
        raise DispatchWriteError(entity_id, f"{type(exc).__name__}: {exc}") from exc

    logger.debug("HA response for %s: %s", entity_id, response.text)
    if response.is_error:
        raise DispatchWriteError(entity_id, f"HTTP {response.status_code}")


async def dispatch(
    client: httpx.AsyncClient,
    values: Mapping[str, Scalar | None],
    sensors: Mapping[str, SensorSpec] = SENSORS,
) -> DispatchReport:
    """Write every dispatchable catalogued value to Home Assistant.

    Args:
        client: HTTP client bound to the Home Assistant base URL with the
            long-lived token already in its default headers.
        values: Projected values for this cycle.
        sensors: Sensor catalogue; defaults to :data:`SENSORS`.

    Returns:
        A :class:`DispatchReport` listing sent, skipped and failed keys.
    """
    logger.info("Attempting to update sensor entities")
    report = DispatchReport()
    records = build_records(values, sensors)
    sent_keys = {r.key for r in records}
    report.skipped = [key for key in sensors if key not in sent_keys]

    for record in records:
        spec = sensors[record.key]
        try:
            await write_state(client, spec.entity_id, record.state_payload())
        except DispatchWriteError as exc:
            logger.warning("%s", exc)
            report.failed.append(record.key)
            continue
        report.sent.append(record.key)

    logger.info(
        "Sensor updates completed: %d sent, %d skipped, %d failed",
        len(report.sent),
        len(report.skipped),
        len(report.failed),
    )
    return report
