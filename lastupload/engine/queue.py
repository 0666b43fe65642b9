"""Single-flight resolution queue over the navigation surface.

Each submitted entity moves through::

    pending → waiting → in_flight → settling → completed
    pending → short_circuited            (breaker already open)
    pending → waiting → cached           (settled by an earlier waiter)

Only one request holds the surface at a time. Waiters are served in
arrival order by ``asyncio.Lock``. After every navigation the outcome is
cached and the inter-request delay elapses before the lock is released,
so the fetch rate stays bounded on success and failure alike.
"""

from __future__ import annotations

import asyncio
import logging

from lastupload.config import QueueSettings
from lastupload.engine.breaker import CircuitBreaker
from lastupload.engine.outcome import (
    FailureReason,
    Outcome,
    OutcomeCache,
    Provenance,
    Resolution,
)
from lastupload.engine.surface import (
    LoadFailed,
    NavigationSurface,
    TimedOut,
    navigate,
)
from lastupload.extract import extract_latest, page_text

log = logging.getLogger(__name__)


class ResolutionQueue:
    """Serialises navigation-surface use across concurrent resolutions.

    Parameters
    ----------
    surface:
        The shared navigation surface.
    cache:
        Session outcome cache; written after every completed attempt.
    breaker:
        Session circuit breaker; consulted before and after each fetch.
    settings:
        Timing, URL template, selector and block markers.
    """

    def __init__(
        self,
        surface: NavigationSurface,
        cache: OutcomeCache,
        breaker: CircuitBreaker,
        settings: QueueSettings,
    ) -> None:
        self._surface = surface
        self._cache = cache
        self._breaker = breaker
        self._settings = settings
        self._lock = asyncio.Lock()
        self._navigations = 0

    @property
    def navigations(self) -> int:
        """Number of navigations issued this session."""
        return self._navigations

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def url_for(self, entity_id: str) -> str:
        return self._settings.url_template.format(id=entity_id)

    async def submit(self, entity_id: str) -> Resolution:
        """Resolve *entity_id* through the surface and cache the outcome.

        A request that waited behind another resolution of the same id
        is answered from the cache when that one settled it.
        """
        entity_id = str(entity_id)
        log.debug("[%s] pending", entity_id)
        if self._breaker.is_blocked:
            log.debug("[%s] short_circuited", entity_id)
            return self._blocked(entity_id)

        log.debug("[%s] waiting", entity_id)
        async with self._lock:
            # Same precedence as Resolver.resolve; state may have moved while waiting
            cached = self._cache.get(entity_id)
            if cached is not None and cached.ok:
                log.debug("[%s] settled while waiting", entity_id)
                return Resolution(entity_id, cached, Provenance.CACHED)
            if self._breaker.is_blocked:
                log.debug("[%s] short_circuited", entity_id)
                return self._blocked(entity_id)
            if cached is not None and cached.terminal:
                return Resolution(entity_id, cached, Provenance.CACHED)

            try:
                outcome = await self._attempt(entity_id)
                self._cache.put(entity_id, outcome)
                log.debug("[%s] completed: %s", entity_id, outcome)
            finally:
                await asyncio.sleep(self._settings.load_interval)

        return Resolution(entity_id, outcome, Provenance.FRESH)

    @staticmethod
    def _blocked(entity_id: str) -> Resolution:
        return Resolution(entity_id, Outcome.failure(FailureReason.CIRCUIT_OPEN), Provenance.BLOCKED)

    async def _attempt(self, entity_id: str) -> Outcome:
        """Run one navigation and classify its result. Never raises Exception."""
        url = self.url_for(entity_id)
        log.info("Loading %s", url)
        self._navigations += 1
        log.debug("[%s] in_flight", entity_id)

        try:
            result = await navigate(
                self._surface,
                url,
                timeout=self._settings.navigation_timeout,
                settle_delay=self._settings.render_wait,
            )
        except Exception:
            log.exception("Loading upload page failed for %s", entity_id)
            return Outcome.failure(FailureReason.LOAD_ERROR)

        if isinstance(result, TimedOut):
            log.warning("Upload page for %s timed out (%.1fs)", entity_id, result.timeout)
            return Outcome.failure(FailureReason.NAVIGATION_TIMEOUT)
        if isinstance(result, LoadFailed):
            log.warning("Upload page for %s failed to load: %s", entity_id, result.error)
            return Outcome.failure(FailureReason.NAVIGATION_ERROR)

        # Only Settled remains
        html = result.html
        log.debug("[%s] settling done", entity_id)
        try:
            if self._breaker.check(page_text(html), source=entity_id):
                return Outcome.failure(FailureReason.RISK_BLOCKED)

            instant = extract_latest(html, self._settings.time_selector)
        except Exception:
            log.exception("Reading upload page failed for %s", entity_id)
            return Outcome.failure(FailureReason.LOAD_ERROR)

        if instant is None:
            log.info("No upload time found for %s", entity_id)
            return Outcome.failure(FailureReason.PARSE_FAILED)
        return Outcome.success(instant)
