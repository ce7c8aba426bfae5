"""OAuth token holder shared by every outbound request."""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class TokenProvider:
    """Single guarded token reference; many readers, one writer at a time."""

    def __init__(self, token: str | None = None):
        self._lock = threading.Lock()
        self._token = token or None
        self._on_invalid: Callable[[], None] | None = None

    def get_token(self) -> str | None:
        with self._lock:
            return self._token

    def set_token(self, token: str | None) -> None:
        with self._lock:
            self._token = token or None
        logger.info("OAuth token %s", "updated" if token else "cleared")

    def clear(self) -> None:
        self.set_token(None)

    @property
    def has_token(self) -> bool:
        return self.get_token() is not None

    def set_on_invalid(self, callback: Callable[[], None] | None) -> None:
        """Register the hook fired when the remote rejects the token (HTTP 401)."""
        with self._lock:
            self._on_invalid = callback

    def invalidate(self) -> None:
        """Signal that the current token was rejected; the token itself is kept."""
        with self._lock:
            callback = self._on_invalid
        logger.warning("Remote API rejected the OAuth token")
        if callback is not None:
            callback()
