"""
Pure projector that flattens fetched telemetry into named scalar values.

Takes the :class:`FetchResult` of one cycle and walks every fixed path in
:data:`~solarsynk.src.sensors.FIELDS`, producing ``{key: value | None}`` for
every projected key. A missing key, an out-of-range list index or a
non-container along the path yields ``None`` for that key only; the rest of
the projection is unaffected.

This is a pure function: no side effects, no I/O, no clock. It refuses to
run on a partial fetch (:class:`ProjectionSkipped`) so stale or mixed data
never reaches Home Assistant.

CHANGELOG:
- 2026-10-12: Initial creation (STORY-106)

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from solarsynk.src.errors import ProjectionSkipped
from solarsynk.src.models import FetchResult, Scalar
from solarsynk.src.sensors import (
    FIELDS,
    OVERALL_STATE_KEY,
    OVERALL_STATE_SOURCE,
    PathPart,
)

logger = logging.getLogger(__name__)


def lookup(data: Any, path: Sequence[PathPart]) -> Any:
    """Follow *path* through nested dicts and lists, or return None.

    String parts index mappings, integer parts index lists (negative
    indices count from the end).
    """
    for part in path:
        if isinstance(part, int):
            if not isinstance(data, list) or not -len(data) <= part < len(data):
                return None
            data = data[part]
        else:
            if not isinstance(data, Mapping) or part not in data:
                return None
            data = data[part]
    return data


def _as_scalar(value: Any) -> Scalar | None:
    """Keep JSON leaves; containers are not valid sensor states."""
    if isinstance(value, (str, int, float, bool)):
        return value
    return None


def project(result: FetchResult) -> dict[str, Scalar | None]:
    """Extract every known field from the fetched documents.

    Args:
        result: The outcome of the fetch stage for this cycle.

    Returns:
        Mapping of every projected key to its value, or ``None`` when the
        path is missing in the document.

    Raises:
        ProjectionSkipped: If the fetch stage did not fully succeed.
    """
    if not result.ok:
        raise ProjectionSkipped(
            f"Skipping data parsing due to failed requests: {', '.join(result.failed)}"
        )

    values: dict[str, Scalar | None] = {}
    for field in FIELDS:
        document = result.documents.get(field.document)
        values[field.key] = _as_scalar(lookup(document, field.path))

    values[OVERALL_STATE_KEY] = values.get(OVERALL_STATE_SOURCE)

    missing = sum(1 for v in values.values() if v is None)
    logger.info(
        "JSON data parsed: %d values, %d missing", len(values) - missing, missing
    )
    return values
