"""Session-scoped block detection and one-way circuit breaker.

Detection is a substring heuristic over a page's text. The source site
gives no stable structured signal for rate limiting, so a wording change
on its side silently disables detection; that is an accepted limitation.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from lastupload.config import DEFAULTS

log = logging.getLogger(__name__)

BLOCK_MARKERS: tuple[str, ...] = tuple(DEFAULTS["breaker"]["markers"])


def detect_block(text: str, markers: Iterable[str] = BLOCK_MARKERS) -> bool:
    """Check whether *text* contains any block marker."""
    if not text:
        return False
    return any(marker in text for marker in markers)


class CircuitBreaker:
    """One-way latch: once tripped it stays open for the session.

    Parameters
    ----------
    markers:
        Substrings that identify a rate-limit or anti-automation page.
    """

    def __init__(self, markers: Iterable[str] = BLOCK_MARKERS) -> None:
        self._markers = tuple(markers)
        self._blocked = False
        self._reason: str | None = None

    @property
    def is_blocked(self) -> bool:
        return self._blocked

    @property
    def reason(self) -> str | None:
        return self._reason

    def trip(self, reason: str) -> None:
        """Open the breaker. Later trips are no-ops."""
        if self._blocked:
            return
        self._blocked = True
        self._reason = reason
        log.warning("Circuit breaker tripped (%s); no further navigations this session", reason)

    def check(self, text: str, source: str = "") -> bool:
        """Detect a block marker in *text* and trip if found.

        Returns True when the page is a block page.
        """
        if detect_block(text, self._markers):
            self.trip(f"block marker on {source}" if source else "block marker")
            return True
        return False
