"""
Telemetry fetcher: one authenticated GET per Sunsynk telemetry document.

Issues the eight realtime/settings reads for an inverter serial in a fixed
order. The fetch is exhaustive: a failed request is recorded and the
remaining documents are still requested, so one cycle always produces a
complete picture of which endpoints are healthy. Only the aggregate
:attr:`FetchResult.ok` flag gates the rest of the cycle.

A request counts as failed on a transport error, a non-2xx status, or a body
that is not JSON.

CHANGELOG:
- 2026-10-12: Initial creation (STORY-107)

TODO:
- None
"""

from __future__ import annotations

import json
import logging
from datetime import date

import httpx

from solarsynk.src.models import AuthSession, FetchResult

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Endpoint table
# ---------------------------------------------------------------------------

ENDPOINTS: dict[str, str] = {
    "pvindata": "/api/v1/inverter/{sn}/realtime/input",
    "griddata": "/api/v1/inverter/grid/{sn}/realtime?sn={sn}",
    "loaddata": "/api/v1/inverter/load/{sn}/realtime?sn={sn}",
    "batterydata": "/api/v1/inverter/battery/{sn}/realtime?sn={sn}&lan=en",
    "outputdata": "/api/v1/inverter/{sn}/realtime/output",
    "dcactemp": (
        "/api/v1/inverter/{sn}/output/day"
        "?lan=en&date={day}&column=dc_temp,igbt_temp"
    ),
    "inverterinfo": "/api/v1/inverter/{sn}",
    "settings": "/api/v1/common/setting/{sn}/read",
}
"""Document key -> URL template (``{sn}`` serial, ``{day}`` YYYY-MM-DD)."""

DOCUMENT_KEYS: tuple[str, ...] = tuple(ENDPOINTS)


def build_urls(serial: str, day: date) -> dict[str, str]:
    """Resolve every endpoint template for *serial* and *day*."""
    return {
        key: template.format(sn=serial, day=day.isoformat())
        for key, template in ENDPOINTS.items()
    }


async def fetch_document(
    client: httpx.AsyncClient,
    url: str,
    session: AuthSession,
) -> object:
    """GET one telemetry document and return its decoded JSON body.

    Raises:
        httpx.HTTPError: On transport failure or a non-2xx status.
        ValueError: If the body is not valid JSON.
    """
    response = await client.get(
        url,
        headers={
            "Content-Type": "application/json",
            "authorization": session.authorization,
        },
    )
    response.raise_for_status()
    return response.json()


async def fetch_all(
    client: httpx.AsyncClient,
    session: AuthSession,
    serial: str,
    day: date,
) -> FetchResult:
    """Fetch every telemetry document for *serial*, never stopping early.

    Args:
        client: HTTP client bound to the Sunsynk API base URL.
        session: Bearer session for this cycle.
        serial: Inverter serial number.
        day: Date for the day-series (temperature) document.

    Returns:
        A :class:`FetchResult` holding the decoded documents and the keys
        of any documents that failed.
    """
    logger.info("Fetching data for serial: %s", serial)
    result = FetchResult()

    for key, url in build_urls(serial, day).items():
        logger.debug("Fetching %s from %s", key, url)
        try:
            document = await fetch_document(client, url, session)
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Request failed for %s: %s", key, exc)
            result.failed.append(key)
            continue
        result.documents[key] = document

    if result.ok:
        logger.info("Data fetched successfully")
    else:
        logger.error("Some data requests failed: %s", ", ".join(result.failed))
    return result


def log_raw_documents(result: FetchResult) -> None:
    """Dump every fetched document at DEBUG for verbose diagnostics."""
    logger.debug("Raw data per document")
    for key, document in result.documents.items():
        logger.debug("%s: %s", key, json.dumps(document, ensure_ascii=False))
