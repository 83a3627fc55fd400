"""File-backed storage for the claude.ai session key."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from .config import CREDENTIALS_FILE

logger = logging.getLogger(__name__)


class CredentialStore:
    """Holds a single secret string in a user-only readable file."""

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else CREDENTIALS_FILE

    def get(self) -> Optional[str]:
        """Return the stored session key, or None if it is not configured."""
        try:
            value = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Could not read %s: %s", self.path, e)
            return None
        return value or None

    def set(self, value: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # create with 0600 before the secret is written
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(value.strip())
        os.chmod(self.path, 0o600)

    def delete(self) -> None:
        self.path.unlink(missing_ok=True)

    @property
    def is_configured(self) -> bool:
        return self.get() is not None
