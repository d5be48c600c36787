"""
Settings pushback: forwards a Home Assistant helper's value to the inverter.

Home Assistant users write a Sunsynk settings JSON document into an
``input_text`` helper. Each cycle this module reads that helper and, if it
holds a value, POSTs the value verbatim to the inverter's settings endpoint.
The helper is then reset to an empty state, whether or not the forward
succeeded, so a settings change is applied at most once.

The helper is optional: when Home Assistant reports it does not exist, the
module logs how to create it and stops.

CHANGELOG:
- 2026-10-14: Honour the configured helper entity id (STORY-111)
- 2026-10-13: Initial creation (STORY-110)

TODO:
- None
"""

from __future__ import annotations

import logging

import httpx

from solarsynk.src.dispatcher import NULL_MARKER, STATES_PATH
from solarsynk.src.errors import PushbackForwardError
from solarsynk.src.models import AuthSession, PushbackOutcome

logger = logging.getLogger(__name__)

SETTINGS_WRITE_PATH = "/api/v1/common/setting/{sn}/set"
ENTITY_NOT_FOUND = "Entity not found."


async def read_helper(
    ha_client: httpx.AsyncClient,
    entity_id: str,
) -> str | None:
    """Return the helper's raw state, or None if the entity does not exist.

    Raises:
        httpx.HTTPError: On transport failure or an unexpected error status.
    """
    response = await ha_client.get(STATES_PATH.format(entity_id=entity_id))
    body = _json_or_empty(response)
    if response.status_code == 404 or body.get("message") == ENTITY_NOT_FOUND:
        return None
    response.raise_for_status()
    state = body.get("state")
    return "" if state is None else str(state)


async def forward_settings(
    cloud_client: httpx.AsyncClient,
    session: AuthSession,
    serial: str,
    raw_settings: str,
) -> None:
    """POST *raw_settings* verbatim to the inverter settings endpoint.

    Raises:
        PushbackForwardError: On transport failure, a non-2xx status, or a
            response body reporting ``success: false``.
    """
    try:
        response = await cloud_client.post(
            SETTINGS_WRITE_PATH.format(sn=serial),
            content=raw_settings.encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "authorization": session.authorization,
            },
        )
    except httpx.HTTPError as exc:
        raise PushbackForwardError(f"Settings request failed: {exc}") from exc

    logger.info("Inverter settings response: %s", response.text)
    if response.is_error:
        raise PushbackForwardError(f"Settings request failed with HTTP {response.status_code}")
    if _json_or_empty(response).get("success") is False:
        raise PushbackForwardError("Settings request rejected by the Sunsynk API")


async def clear_helper(ha_client: httpx.AsyncClient, entity_id: str) -> None:
    """Reset the helper to an empty state so the settings are not re-applied."""
    object_id = entity_id.partition(".")[2]
    payload = {
        "attributes": {"unit_of_measurement": "", "friendly_name": object_id},
        "state": "",
    }
    try:
        response = await ha_client.post(
            STATES_PATH.format(entity_id=entity_id), json=payload
        )
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("Could not clear settings helper %s: %s", entity_id, exc)


async def push_settings(
    *,
    ha_client: httpx.AsyncClient,
    cloud_client: httpx.AsyncClient,
    session: AuthSession,
    serial: str,
    entity_id: str,
) -> PushbackOutcome:
    """Run the pushback channel once.

    Args:
        ha_client: HTTP client bound to Home Assistant.
        cloud_client: HTTP client bound to the Sunsynk API.
        session: Bearer session for this cycle.
        serial: Inverter serial number.
        entity_id: Helper entity id, e.g. ``input_text.solarsynk_inverter_settings``.

    Returns:
        The :class:`PushbackOutcome` for this cycle.
    """
    logger.info("Reading settings entity -> %s", entity_id)
    try:
        raw_settings = await read_helper(ha_client, entity_id)
    except httpx.HTTPError as exc:
        logger.warning("Could not read settings helper %s: %s", entity_id, exc)
        return PushbackOutcome.EMPTY

    if raw_settings is None:
        object_id = entity_id.partition(".")[2]
        logger.info(
            "Entity does not exist! Manually create it for this inverter using the HA GUI"
        )
        logger.info("[Settings] -> [Devices & Services] -> [Helpers] tab -> [+ CREATE HELPER]")
        logger.info("Choose [Text] and name it [%s]", object_id)
        logger.info("Settings pushback system aborted. This is optional functionality.")
        return PushbackOutcome.NO_HELPER

    if not raw_settings.strip() or raw_settings == NULL_MARKER:
        logger.info("Helper entity has no value. No inverter settings will be changed.")
        return PushbackOutcome.EMPTY

    logger.info("Updating inverter settings: %s", raw_settings)
    outcome = PushbackOutcome.FORWARDED
    try:
        await forward_settings(cloud_client, session, serial, raw_settings)
    except PushbackForwardError as exc:
        logger.error("Settings pushback failed, change discarded: %s", exc)
        outcome = PushbackOutcome.FORWARD_FAILED

    logger.info("Clearing temporary settings")
    await clear_helper(ha_client, entity_id)
    return outcome


def _json_or_empty(response: httpx.Response) -> dict[str, object]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
