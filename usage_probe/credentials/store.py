"""Single-slot storage for the claude.ai session key.

The key lives as plain text in one owner-only file. Saving fully replaces
the previous key; loading validates the provider prefix.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from usage_probe.config import settings
from usage_probe.errors import InvalidCredentialFormat, NoCredential

logger = logging.getLogger(__name__)

_COOKIE_PREFIX = "sessionKey="


def normalize_session_key(raw: str) -> str:
    """Trim, drop a copied ``sessionKey=`` prefix and surrounding quotes."""
    key = raw.strip()
    if key.startswith(_COOKIE_PREFIX):
        key = key[len(_COOKIE_PREFIX):]
    return key.strip("\"'")


class CredentialStore:
    """Reads and writes the session key file."""

    def __init__(self, path: Path | str | None = None, prefix: str | None = None) -> None:
        self.path = Path(path) if path is not None else settings.session_key_path
        self.prefix = prefix if prefix is not None else settings.session_key_prefix

    def save(self, raw: str) -> None:
        """Normalize and write the key with 0600 permissions. No validation."""
        key = normalize_session_key(raw)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(key)
        # O_CREAT only applies the mode to new files
        os.chmod(self.path, 0o600)
        logger.info("Session key saved to %s", self.path)

    def load(self) -> str:
        """Return the normalized key.

        Raises NoCredential when the file is missing or unreadable,
        InvalidCredentialFormat when it is not text or the key does not start
        with the provider prefix.
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise NoCredential()
        except UnicodeDecodeError:
            logger.warning("Key file %s is not UTF-8 text", self.path)
            raise InvalidCredentialFormat()
        except OSError as e:
            logger.warning("Cannot read key file %s: %s", self.path, e)
            raise NoCredential(f"Session key file is unreadable: {e.strerror or e}")

        key = normalize_session_key(raw)
        if not key or not key.startswith(self.prefix):
            logger.warning("Invalid key format. Key starts with: %s...", key[:10])
            raise InvalidCredentialFormat()
        return key

    def exists(self) -> bool:
        """Best-effort probe: False on a missing file or any read error."""
        try:
            return self.path.is_file() and bool(self.path.read_text(encoding="utf-8").strip())
        except OSError:
            return False
