"""
Unit tests for the credential encryptor.

Tests verify:
- to_pem() frames a bare key body as a 64-column PEM block.
- encrypt_with_pem() output decrypts back to the password with the matching
  private key (PKCS#1 v1.5).
- Unparseable and non-RSA keys raise EncryptionError.
- fetch_public_key() raises KeyFetchError on HTTP errors and on empty or
  "null" key bodies.
- encrypt_password() leaves no scratch files behind on success or failure.

CHANGELOG:
- 2026-10-12: Initial creation (STORY-104)

TODO:
- None
"""

from __future__ import annotations

import base64
from pathlib import Path

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from solarsynk.src.encryptor import (
    PUBLIC_KEY_PATH,
    encrypt_password,
    encrypt_with_pem,
    fetch_public_key,
    to_pem,
)
from solarsynk.src.errors import EncryptionError, KeyFetchError
from solarsynk.src.scratch import ScratchArea

BASE_URL = "https://api.sunsynk.net"


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))


def _key_response(data: object, status: int = 200) -> httpx.Response:
    return httpx.Response(
        status, json={"code": 0, "msg": "Success", "success": True, "data": data}
    )


def _decrypt(private_key: rsa.RSAPrivateKey, encoded: str) -> bytes:
    return private_key.decrypt(base64.b64decode(encoded), padding.PKCS1v15())


# ---------------------------------------------------------------------------
# PEM framing
# ---------------------------------------------------------------------------


class TestToPem:
    def test_wraps_at_64_columns(self, public_key_body: str) -> None:
        pem = to_pem(public_key_body)
        lines = pem.strip().splitlines()

        assert lines[0] == "-----BEGIN PUBLIC KEY-----"
        assert lines[-1] == "-----END PUBLIC KEY-----"
        assert all(len(line) <= 64 for line in lines[1:-1])
        assert "".join(lines[1:-1]) == public_key_body

    def test_result_loads_as_public_key(self, public_key_body: str) -> None:
        key = serialization.load_pem_public_key(to_pem(public_key_body).encode())

        assert isinstance(key, rsa.RSAPublicKey)

    def test_embedded_whitespace_ignored(self, public_key_body: str) -> None:
        spaced = public_key_body[:30] + "\n " + public_key_body[30:]

        assert to_pem(spaced) == to_pem(public_key_body)


# ---------------------------------------------------------------------------
# Encryption
# ---------------------------------------------------------------------------


class TestEncryptWithPem:
    def test_round_trips_with_private_key(
        self, rsa_private_key: rsa.RSAPrivateKey, public_key_body: str
    ) -> None:
        encoded = encrypt_with_pem(to_pem(public_key_body).encode(), b"hunter2")

        assert _decrypt(rsa_private_key, encoded) == b"hunter2"

    def test_ciphertext_is_randomised(self, public_key_body: str) -> None:
        pem = to_pem(public_key_body).encode()

        assert encrypt_with_pem(pem, b"hunter2") != encrypt_with_pem(pem, b"hunter2")

    def test_garbage_key_raises(self) -> None:
        with pytest.raises(EncryptionError, match="parsed"):
            encrypt_with_pem(to_pem("bm90IGEga2V5").encode(), b"hunter2")

    def test_non_rsa_key_raises(self) -> None:
        ec_key = ec.generate_private_key(ec.SECP256R1()).public_key()
        pem = ec_key.public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )

        with pytest.raises(EncryptionError, match="RSA"):
            encrypt_with_pem(pem, b"hunter2")


# ---------------------------------------------------------------------------
# Public key retrieval
# ---------------------------------------------------------------------------


class TestFetchPublicKey:
    @pytest.mark.asyncio
    async def test_returns_key_body(self, public_key_body: str) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _key_response(public_key_body)

        async with _client(handler) as client:
            key = await fetch_public_key(client)

        assert key == public_key_body
        assert seen[0].url.path == PUBLIC_KEY_PATH
        assert seen[0].url.params["source"] == "sunsynk"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("data", [None, "", "   ", "null"])
    async def test_empty_key_raises(self, data: object) -> None:
        async with _client(lambda request: _key_response(data)) as client:
            with pytest.raises(KeyFetchError):
                await fetch_public_key(client)

    @pytest.mark.asyncio
    async def test_http_error_raises(self) -> None:
        async with _client(lambda request: httpx.Response(503)) as client:
            with pytest.raises(KeyFetchError):
                await fetch_public_key(client)

    @pytest.mark.asyncio
    async def test_non_json_raises(self) -> None:
        async with _client(lambda request: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(KeyFetchError):
                await fetch_public_key(client)

    @pytest.mark.asyncio
    async def test_transport_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        async with _client(handler) as client:
            with pytest.raises(KeyFetchError):
                await fetch_public_key(client)

    def test_key_fetch_error_is_encryption_error(self) -> None:
        assert issubclass(KeyFetchError, EncryptionError)


# ---------------------------------------------------------------------------
# Full encrypt_password flow
# ---------------------------------------------------------------------------


class TestEncryptPassword:
    @pytest.mark.asyncio
    async def test_encrypts_and_cleans_scratch(
        self,
        tmp_path: Path,
        rsa_private_key: rsa.RSAPrivateKey,
        public_key_body: str,
    ) -> None:
        scratch = ScratchArea(tmp_path / "scratch")

        async with _client(lambda request: _key_response(public_key_body)) as client:
            encoded = await encrypt_password(client, "p@ss wörd", scratch)

        assert _decrypt(rsa_private_key, encoded) == "p@ss wörd".encode()
        assert not scratch.public_key_path.exists()
        assert not scratch.plaintext_path.exists()

    @pytest.mark.asyncio
    async def test_cleans_scratch_on_encryption_failure(self, tmp_path: Path) -> None:
        scratch = ScratchArea(tmp_path / "scratch")

        async with _client(lambda request: _key_response("bm90IGEga2V5")) as client:
            with pytest.raises(EncryptionError):
                await encrypt_password(client, "hunter2", scratch)

        assert not scratch.public_key_path.exists()
        assert not scratch.plaintext_path.exists()

    @pytest.mark.asyncio
    async def test_key_fetch_failure_writes_nothing(self, tmp_path: Path) -> None:
        scratch = ScratchArea(tmp_path / "scratch")

        async with _client(lambda request: _key_response(None)) as client:
            with pytest.raises(KeyFetchError):
                await encrypt_password(client, "hunter2", scratch)

        assert not scratch.root.exists()
