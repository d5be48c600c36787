"""
Shared test fixtures for the bridge test suite.

Provides:
- Environment isolation for BridgeSettings (all bridge env vars removed,
  add-on options file pointed at a non-existent path, cwd moved to tmp).
- A throwaway RSA key pair standing in for the Sunsynk server key.
- Realistic telemetry documents for all eight endpoints.
- In-memory fakes of the Sunsynk cloud and the Home Assistant REST API,
  served through ``httpx.MockTransport``.

CHANGELOG:
- 2026-10-12: Initial creation (STORY-101)

TODO:
- None
"""

from __future__ import annotations

import base64
import json
from collections.abc import Callable
from datetime import date
from pathlib import Path
from typing import Any

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from solarsynk.src.config import BridgeSettings
from solarsynk.src.fetcher import build_urls

SERIAL = "2211229999"
DAY = date(2026, 10, 18)
TOKEN = "cloud-bearer-token-123"

# All BridgeSettings environment variable names, used for cleanup.
_ALL_BRIDGE_ENV_VARS = (
    "SUNSYNK_USER",
    "SUNSYNK_PASS",
    "SUNSYNK_SERIAL",
    "HA_TOKEN",
    "HA_LONGLIVETOKEN",
    "HA_HOST",
    "HOME_ASSISTANT_IP",
    "HA_PORT",
    "HOME_ASSISTANT_PORT",
    "REFRESH_RATE_S",
    "REFRESH_RATE",
    "ENABLE_HTTPS",
    "HA_VERIFY_SSL",
    "VERBOSE",
    "ENABLE_VERBOSE_LOG",
    "SETTINGS_HELPER_ENTITY",
    "API_BASE_URL",
    "REQUEST_TIMEOUT_S",
    "SCRATCH_DIR",
    "HEALTH_PATH",
    "VERIFY_HA_SSL",
)


@pytest.fixture(autouse=True)
def _clean_bridge_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Remove all bridge env vars and isolate from .env / options files.

    Runs automatically for every test. Individual tests or fixtures then set
    only the vars they need.
    """
    for var in _ALL_BRIDGE_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("SOLARSYNK_OPTIONS_FILE", str(tmp_path / "no-options.json"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def env_vars_required_only(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set only the required environment variables (no optional ones)."""
    env = {
        "SUNSYNK_USER": "owner@example.com",
        "SUNSYNK_PASS": "hunter2",
        "SUNSYNK_SERIAL": SERIAL,
        "HA_TOKEN": "ha-long-lived-token",
        "HA_HOST": "192.168.1.20",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture()
def settings(tmp_path: Path) -> BridgeSettings:
    """A fully populated BridgeSettings built from kwargs."""
    return BridgeSettings(
        sunsynk_user="owner@example.com",
        sunsynk_pass="hunter2",
        sunsynk_serial=SERIAL,
        ha_token="ha-long-lived-token",
        ha_host="192.168.1.20",
        ha_port=8123,
        refresh_rate_s=60,
        scratch_dir=str(tmp_path / "scratch"),
        health_path=str(tmp_path / "health.json"),
    )


# ---------------------------------------------------------------------------
# Server key
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    """A 2048-bit RSA key pair standing in for the Sunsynk server key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def public_key_body(rsa_private_key: rsa.RSAPrivateKey) -> str:
    """Base64 SubjectPublicKeyInfo body, as /anonymous/publicKey returns it."""
    der = rsa_private_key.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return base64.b64encode(der).decode("ascii")


# ---------------------------------------------------------------------------
# Telemetry documents
# ---------------------------------------------------------------------------


def _vip(volt: float, current: float, power: int) -> dict[str, Any]:
    return {"volt": volt, "current": current, "power": power}


def make_documents() -> dict[str, Any]:
    """Realistic Sunsynk telemetry bodies for all eight documents."""
    return {
        "pvindata": {
            "code": 0,
            "success": True,
            "data": {
                "etoday": 18.4,
                "pvIV": [
                    {"vpv": "352.1", "ipv": "6.2", "ppv": "2183"},
                    {"vpv": "340.7", "ipv": "5.9", "ppv": "2010"},
                ],
            },
        },
        "griddata": {
            "code": 0,
            "success": True,
            "data": {
                "status": 1,
                "fac": 50.01,
                "pac": -1250,
                "qac": 12,
                "pf": 0.99,
                "etodayTo": 6.3,
                "etodayFrom": 1.2,
                "vip": [_vip(231.4, 5.4, -1250), _vip(0, 0, 0), _vip(0, 0, 0)],
            },
        },
        "loaddata": {
            "code": 0,
            "success": True,
            "data": {
                "loadFac": 50.0,
                "dailyUsed": 11.8,
                "totalPower": 845,
                "upsPowerL1": 120,
                "upsPowerL2": 0,
                "upsPowerL3": 0,
                "upsPowerTotal": 120,
                "vip": [_vip(230.9, 3.6, 845), _vip(0, 0, 0), _vip(0, 0, 0)],
            },
        },
        "batterydata": {
            "code": 0,
            "success": True,
            "data": {
                "capacity": "200",
                "chargeVolt": 57.6,
                "current": -12.3,
                "dischargeVolt": 48.0,
                "power": -640,
                "soc": "87",
                "temp": "24.5",
                "type": 1,
                "voltage": "52.1",
                "status": 1,
                "batteryVolt1": 52.1,
                "batteryCurrent1": -12.3,
                "batteryPower1": -640,
                "batterySoc1": 87,
                "batteryTemp1": 24.5,
                "batteryVolt2": None,
                "batteryStatus2": None,
                "etodayChg": "7.4",
                "etodayDischg": "3.1",
                "bmsSoc": 87,
                "bmsVolt": 52.2,
                "bmsCurrent": -12.0,
                "bmsTemp": 23.9,
            },
        },
        "outputdata": {
            "code": 0,
            "success": True,
            "data": {
                "fac": 50.0,
                "pac": 2100,
                "pInv": 2150,
                "vip": [_vip(230.0, 9.1, 2100), _vip(0, 0, 0), _vip(0, 0, 0)],
            },
        },
        "dcactemp": {
            "code": 0,
            "success": True,
            "data": {
                "infos": [
                    {
                        "label": "dc_temp",
                        "records": [
                            {"time": "2026-10-18 10:00:00", "value": "38.1"},
                            {"time": "2026-10-18 10:05:00", "value": "38.9"},
                        ],
                    },
                    {
                        "label": "igbt_temp",
                        "records": [
                            {"time": "2026-10-18 10:00:00", "value": "44.0"},
                            {"time": "2026-10-18 10:05:00", "value": "44.6"},
                        ],
                    },
                ]
            },
        },
        "inverterinfo": {
            "code": 0,
            "success": True,
            "data": {
                "sn": SERIAL,
                "brand": "Sunsynk",
                "status": 1,
                "runStatus": "Normal",
                "ratePower": 8000,
                "updateAt": "2026-10-18T10:05:12Z",
                "plant": {"id": 424242, "name": "Home"},
            },
        },
        "settings": {
            "code": 0,
            "success": True,
            "data": {
                **{f"sellTime{n}": f"{(n - 1) * 4:02d}:00" for n in range(1, 7)},
                **{f"time{n}on": n % 2 == 1 for n in range(1, 7)},
                **{f"cap{n}": str(20 + n * 5) for n in range(1, 7)},
                "batteryShutdownCap": "15",
                "peakAndVallery": "1",
                "energyMode": "0",
            },
        },
    }


@pytest.fixture()
def documents() -> dict[str, Any]:
    return make_documents()


# ---------------------------------------------------------------------------
# Sunsynk cloud fake
# ---------------------------------------------------------------------------


def _json(status: int, body: Any) -> httpx.Response:
    return httpx.Response(status, json=body)


def token_ok(token: str = TOKEN) -> httpx.Response:
    return _json(
        200,
        {
            "code": 0,
            "msg": "Success",
            "success": True,
            "data": {"access_token": token, "token_type": "bearer"},
        },
    )


def token_rejected(msg: str = "Incorrect username or password") -> httpx.Response:
    return _json(200, {"code": 102, "msg": msg, "success": False, "data": None})


class FakeCloud:
    """Routes Sunsynk API requests to canned responses and records them.

    Attributes:
        public_key: Body returned for ``data`` by /anonymous/publicKey.
        token_responder: Called per token request; returns the response.
        documents: Telemetry bodies keyed by document key.
        failing_documents: Document keys answered with HTTP 500.
        settings_status: Status code for the settings-write endpoint.
        requests: Every request received, in order.
    """

    def __init__(self, public_key: str | None, documents: dict[str, Any]) -> None:
        self.public_key = public_key
        self.token_responder: Callable[[httpx.Request], httpx.Response] = (
            lambda request: token_ok()
        )
        self.documents = documents
        self.failing_documents: set[str] = set()
        self.settings_status = 200
        self.requests: list[httpx.Request] = []
        self._paths = {
            httpx.URL(url).path: key for key, url in build_urls(SERIAL, DAY).items()
        }

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def requests_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def telemetry_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path in self._paths]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/anonymous/publicKey":
            return _json(
                200,
                {"code": 0, "msg": "Success", "success": True, "data": self.public_key},
            )
        if path in ("/oauth/token", "/oauth/token/new"):
            return self.token_responder(request)
        if path == f"/api/v1/common/setting/{SERIAL}/set":
            return _json(
                self.settings_status,
                {"code": 0, "msg": "Success", "success": self.settings_status == 200},
            )
        key = self._paths.get(path)
        if key is not None:
            if key in self.failing_documents:
                return _json(500, {"msg": "Internal Server Error"})
            return _json(200, self.documents[key])
        return _json(404, {"msg": "not found"})


@pytest.fixture()
def fake_cloud(public_key_body: str, documents: dict[str, Any]) -> FakeCloud:
    return FakeCloud(public_key_body, documents)


# ---------------------------------------------------------------------------
# Home Assistant fake
# ---------------------------------------------------------------------------


class FakeHomeAssistant:
    """Minimal in-memory ``/api/states`` implementation.

    Attributes:
        states: entity_id -> {"state": ..., "attributes": ...}.
        failing_entities: Entity ids whose writes return HTTP 500.
        writes: Entity ids written, in order (including failed writes).
    """

    def __init__(self) -> None:
        self.states: dict[str, dict[str, Any]] = {}
        self.failing_entities: set[str] = set()
        self.writes: list[str] = []
        self.requests: list[httpx.Request] = []

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        prefix = "/api/states/"
        if not request.url.path.startswith(prefix):
            return _json(404, {"message": "Not found"})
        entity_id = request.url.path[len(prefix):]

        if request.method == "GET":
            if entity_id not in self.states:
                return _json(404, {"message": "Entity not found."})
            return _json(200, {"entity_id": entity_id, **self.states[entity_id]})

        self.writes.append(entity_id)
        if entity_id in self.failing_entities:
            return _json(500, {"message": "boom"})
        body = json.loads(request.content)
        created = entity_id not in self.states
        self.states[entity_id] = {
            "state": body["state"],
            "attributes": body.get("attributes", {}),
        }
        return _json(201 if created else 200, {"entity_id": entity_id, **body})


@pytest.fixture()
def fake_ha() -> FakeHomeAssistant:
    return FakeHomeAssistant()
