"""Sequential resolution engine: cache → breaker → queue → surface.

Entry point: :class:`Resolver` answers ``resolve(entity_id)`` with a
:class:`Resolution` and never raises for fetch failures.
:func:`open_resolver` builds one backed by a Playwright browser for the
length of a session.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from lastupload.config import queue_settings
from lastupload.engine.breaker import CircuitBreaker
from lastupload.engine.outcome import (
    FailureReason,
    Outcome,
    OutcomeCache,
    Provenance,
    Resolution,
)
from lastupload.engine.queue import ResolutionQueue
from lastupload.engine.surface import NavigationSurface, PlaywrightSurface

log = logging.getLogger(__name__)

__all__ = [
    "FailureReason",
    "Outcome",
    "Provenance",
    "Resolution",
    "Resolver",
    "build_resolver",
    "open_resolver",
]


class Resolver:
    """Per-session facade over the cache, breaker and resolution queue.

    Callers may invoke :meth:`resolve` concurrently and in any order;
    the queue guarantees single-flight use of the surface.
    """

    def __init__(
        self,
        queue: ResolutionQueue,
        cache: OutcomeCache,
        breaker: CircuitBreaker,
    ) -> None:
        self._queue = queue
        self._cache = cache
        self._breaker = breaker

    @property
    def is_blocked(self) -> bool:
        return self._breaker.is_blocked

    def cached(self, entity_id: str) -> Outcome | None:
        """Return the cached outcome for *entity_id* without fetching."""
        return self._cache.get(str(entity_id))

    async def resolve(self, entity_id: str) -> Resolution:
        """Resolve the latest upload time of *entity_id*.

        Cached successes are returned as-is. Once the breaker is open,
        anything else is answered ``circuit_open`` without touching the
        queue. Cached terminal failures are sticky; cached retryable
        failures and unseen ids go through the queue.
        """
        entity_id = str(entity_id)
        cached = self._cache.get(entity_id)

        if cached is not None and cached.ok:
            log.debug("[%s] cached success", entity_id)
            return Resolution(entity_id, cached, Provenance.CACHED)

        if self._breaker.is_blocked:
            return Resolution(
                entity_id,
                Outcome.failure(FailureReason.CIRCUIT_OPEN),
                Provenance.BLOCKED,
            )

        if cached is not None and cached.terminal:
            return Resolution(entity_id, cached, Provenance.CACHED)

        if cached is not None:
            log.info("Retrying %s after %s", entity_id, cached.reason.value)

        return await self._queue.submit(entity_id)

    def status(self) -> dict[str, Any]:
        """Return session counters for display."""
        snapshot = self._cache.snapshot()
        return {
            "cached": len(snapshot),
            "succeeded": sum(1 for o in snapshot.values() if o.ok),
            "retryable": sum(1 for o in snapshot.values() if o.retryable),
            "blocked": self._breaker.is_blocked,
            "block_reason": self._breaker.reason,
            "navigations": self._queue.navigations,
        }


def build_resolver(config: dict[str, Any], surface: NavigationSurface) -> Resolver:
    """Wire a fresh cache, breaker and queue around *surface*."""
    settings = queue_settings(config)
    cache = OutcomeCache()
    breaker = CircuitBreaker(settings.block_markers)
    queue = ResolutionQueue(surface, cache, breaker, settings)
    return Resolver(queue, cache, breaker)


@asynccontextmanager
async def open_resolver(config: dict[str, Any]) -> AsyncIterator[Resolver]:
    """Start a browser surface and yield a resolver bound to it."""
    async with PlaywrightSurface.from_config(config) as surface:
        yield build_resolver(config, surface)
