"""
Ephemeral scratch files for password encryption.

The encryptor writes the server's PEM public key and the plaintext password
to two fixed-name files inside the scratch directory. They are removed on
every exit path of the encryptor (``ScratchArea.session``), at the start of
every cycle, and once more at process exit (``ScratchArea.cleanup`` is
registered with :mod:`atexit` by the orchestrator).

CHANGELOG:
- 2026-10-12: Initial creation (STORY-104)

TODO:
- None
"""

from __future__ import annotations

import contextlib
import logging
import os
from collections.abc import Iterator
from pathlib import Path

logger = logging.getLogger(__name__)

PUBLIC_KEY_FILE = "password_public_key.pem"
PLAINTEXT_FILE = "password_plaintext.txt"

SCRATCH_FILES: tuple[str, ...] = (PUBLIC_KEY_FILE, PLAINTEXT_FILE)


class ScratchArea:
    """Owner of the encryptor's scratch directory.

    Args:
        root: Directory holding the scratch files. Created on demand with
            mode 0700.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    @property
    def public_key_path(self) -> Path:
        return self.root / PUBLIC_KEY_FILE

    @property
    def plaintext_path(self) -> Path:
        return self.root / PLAINTEXT_FILE

    def write(self, name: str, data: bytes) -> Path:
        """Write *data* to the scratch file *name*, readable by owner only."""
        self.root.mkdir(mode=0o700, parents=True, exist_ok=True)
        path = self.root / name
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        return path

    def cleanup(self) -> None:
        """Remove every scratch file that exists. Safe to call repeatedly."""
        for name in SCRATCH_FILES:
            path = self.root / name
            with contextlib.suppress(FileNotFoundError):
                path.unlink()
                logger.debug("Removed scratch file %s", path)

    @contextlib.contextmanager
    def session(self) -> Iterator[ScratchArea]:
        """Scope in which scratch files may exist; always cleaned on exit."""
        try:
            yield self
        finally:
            self.cleanup()
