"""
Credential encryptor: RSA-encrypts the account password for token requests.

Fetches the Sunsynk server's current public key, frames it as PEM, and
encrypts the plaintext password with it (PKCS#1 v1.5, matching
``openssl pkeyutl -encrypt``). The result is base64 encoded for the
``password`` field of the token request.

The key and plaintext pass through scratch files that never outlive the
call: :meth:`ScratchArea.session` removes them on success and on failure.

CHANGELOG:
- 2026-10-12: Initial creation (STORY-104)

TODO:
- None
"""

from __future__ import annotations

import base64
import logging
import textwrap
from typing import TYPE_CHECKING

import httpx
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from solarsynk.src.errors import EncryptionError, KeyFetchError
from solarsynk.src.scratch import PLAINTEXT_FILE, PUBLIC_KEY_FILE

if TYPE_CHECKING:
    from solarsynk.src.scratch import ScratchArea

logger = logging.getLogger(__name__)

PUBLIC_KEY_PATH = "/anonymous/publicKey"
PUBLIC_KEY_PARAMS = {"source": "sunsynk"}

_PEM_HEADER = "-----BEGIN PUBLIC KEY-----"
_PEM_FOOTER = "-----END PUBLIC KEY-----"


async def fetch_public_key(client: httpx.AsyncClient) -> str:
    """Return the server's base64 public key body (without PEM framing).

    Raises:
        KeyFetchError: On transport failure, a non-2xx status, an
            undecodable body, or a ``data`` field that is absent, empty or
            the literal ``"null"``.
    """
    try:
        response = await client.get(PUBLIC_KEY_PATH, params=PUBLIC_KEY_PARAMS)
        response.raise_for_status()
        body = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        raise KeyFetchError(f"Could not fetch public key from API: {exc}") from exc

    key = body.get("data") if isinstance(body, dict) else None
    if key is None or not str(key).strip() or str(key) == "null":
        raise KeyFetchError("Could not fetch public key from API: empty key")

    logger.debug("Encryption key: %s", key)
    return str(key).strip()


def to_pem(key_body: str) -> str:
    """Wrap a bare base64 key body in PEM public-key framing, 64 chars per line."""
    lines = textwrap.wrap("".join(key_body.split()), 64)
    return "\n".join([_PEM_HEADER, *lines, _PEM_FOOTER]) + "\n"


def encrypt_with_pem(pem: bytes, plaintext: bytes) -> str:
    """Encrypt *plaintext* with the RSA public key in *pem*; return base64.

    Raises:
        EncryptionError: If the key cannot be parsed, is not RSA, or the
            ciphertext comes out empty.
    """
    try:
        public_key = serialization.load_pem_public_key(pem)
    except ValueError as exc:
        raise EncryptionError(f"Public key could not be parsed: {exc}") from exc

    if not isinstance(public_key, rsa.RSAPublicKey):
        raise EncryptionError(
            f"Expected an RSA public key, got {type(public_key).__name__}"
        )

    try:
        ciphertext = public_key.encrypt(plaintext, padding.PKCS1v15())
    except ValueError as exc:
        raise EncryptionError(f"Password encryption failed: {exc}") from exc

    encoded = base64.b64encode(ciphertext).decode("ascii")
    if not encoded:
        raise EncryptionError("Password encryption produced no output")
    return encoded


async def encrypt_password(
    client: httpx.AsyncClient,
    password: str,
    scratch: ScratchArea,
) -> str:
    """Fetch the server key and return the encrypted, base64 encoded password.

    Args:
        client: HTTP client bound to the Sunsynk API base URL.
        password: Plaintext account password.
        scratch: Scratch area for the transient key and plaintext files.

    Returns:
        The base64 RSA ciphertext of *password*.

    Raises:
        KeyFetchError: If the public key cannot be retrieved.
        EncryptionError: If encryption fails or yields an empty result.
    """
    logger.info("Encrypting password")
    key_body = await fetch_public_key(client)

    with scratch.session() as area:
        pem_path = area.write(PUBLIC_KEY_FILE, to_pem(key_body).encode("ascii"))
        plain_path = area.write(PLAINTEXT_FILE, password.encode("utf-8"))
        encrypted = encrypt_with_pem(pem_path.read_bytes(), plain_path.read_bytes())

    logger.debug("Password encrypted successfully")
    return encrypted
