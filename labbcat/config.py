from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_TIMEOUT_SEC = 180
DEFAULT_MAX_UPLOAD_BYTES = 2 * 1024 * 1024 * 1024


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Connection settings for a LaBB-CAT client.

    Security notes:
    - The password is kept in memory only; it is never logged.

    """

    url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    language: Optional[str] = None
    timeout_sec: int = DEFAULT_TIMEOUT_SEC
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Read settings from ``LABBCAT_*`` environment variables."""

        return cls(
            url=(os.environ.get("LABBCAT_URL") or None),
            username=(os.environ.get("LABBCAT_USERNAME") or None),
            password=(os.environ.get("LABBCAT_PASSWORD") or None),
            language=(os.environ.get("LABBCAT_LANGUAGE") or None),
            timeout_sec=_env_int("LABBCAT_TIMEOUT_SEC", DEFAULT_TIMEOUT_SEC),
            max_upload_bytes=_env_int("LABBCAT_MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES),
            log_level=os.environ.get("LABBCAT_LOG_LEVEL", "WARNING").strip().upper() or "WARNING",
        )


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back to ``default``."""

    raw = os.environ.get(name, "").strip()
    if not raw:
        return int(default)
    try:
        return int(raw)
    except ValueError:
        return int(default)
