"""Resolution outcomes, failure classification and the session cache."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class FailureReason(str, Enum):
    """Why an entity's latest upload time could not be resolved."""

    PARSE_FAILED = "parse_failed"
    NAVIGATION_TIMEOUT = "navigation_timeout"
    NAVIGATION_ERROR = "navigation_error"
    LOAD_ERROR = "load_error"
    RISK_BLOCKED = "risk_blocked"
    CIRCUIT_OPEN = "circuit_open"

    @property
    def is_retryable(self) -> bool:
        return self not in TERMINAL_REASONS


TERMINAL_REASONS = frozenset({FailureReason.RISK_BLOCKED, FailureReason.CIRCUIT_OPEN})


class Provenance(str, Enum):
    """Where a returned outcome came from."""

    FRESH = "fresh"
    CACHED = "cached"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class Outcome:
    """Exactly one of ``instant`` (success) or ``reason`` (failure)."""

    instant: datetime | None = None
    reason: FailureReason | None = None

    def __post_init__(self) -> None:
        if (self.instant is None) == (self.reason is None):
            raise ValueError("Outcome needs exactly one of instant or reason")

    @classmethod
    def success(cls, instant: datetime) -> Outcome:
        return cls(instant=instant)

    @classmethod
    def failure(cls, reason: FailureReason) -> Outcome:
        return cls(reason=FailureReason(reason))

    @property
    def ok(self) -> bool:
        return self.instant is not None

    @property
    def retryable(self) -> bool:
        return self.reason is not None and self.reason.is_retryable

    @property
    def terminal(self) -> bool:
        return self.reason is not None and not self.reason.is_retryable


@dataclass(frozen=True)
class Resolution:
    """An outcome for one entity tagged with its provenance."""

    entity_id: str
    outcome: Outcome
    provenance: Provenance

    @property
    def instant(self) -> datetime | None:
        return self.outcome.instant

    @property
    def ok(self) -> bool:
        return self.outcome.ok

    @property
    def reason(self) -> FailureReason | None:
        return self.outcome.reason


class OutcomeCache:
    """Last known outcome per entity id, kept in memory for one session."""

    def __init__(self) -> None:
        self._entries: dict[str, Outcome] = {}

    def get(self, entity_id: str) -> Outcome | None:
        return self._entries.get(str(entity_id))

    def put(self, entity_id: str, outcome: Outcome) -> None:
        self._entries[str(entity_id)] = outcome

    def snapshot(self) -> dict[str, Outcome]:
        return dict(self._entries)

    def __contains__(self, entity_id: object) -> bool:
        return str(entity_id) in self._entries

    def __len__(self) -> int:
        return len(self._entries)
