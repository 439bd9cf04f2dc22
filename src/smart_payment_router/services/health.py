"""Sliding-window health estimation for payment processors.

The :class:`HealthTracker` keeps a bounded, time-ordered window of
:class:`OutcomeEvent` per processor and derives a :class:`HealthSnapshot`
from it on every query.

Status is driven by *technical availability* (the share of attempts that
were neither errors nor timeouts).  Declines are legitimate issuer answers
and never count against a processor.  Two guards shape the reading:

* below ``min_samples`` events the status is pinned to ``healthy``;
* the most recent ``recent_sample_size`` events are scored separately and
  the worse of the two availabilities wins, so a sudden spike shows up
  before the full window has rolled over.
"""

from __future__ import annotations

import logging
import math
import time
from collections import deque
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from smart_payment_router.domain.enums import OutcomeKind, ProcessorStatus
from smart_payment_router.domain.values import HealthSnapshot, OutcomeEvent
from smart_payment_router.infrastructure.config import HealthConfig

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

# Latency at which a processor earns no latency credit in its score.
LATENCY_ZERO_CREDIT_MS = 3000.0
AVAILABILITY_WEIGHT = 70.0
LATENCY_WEIGHT = 30.0


def now_ms() -> float:
    """Wall-clock time in epoch milliseconds."""
    return time.time() * 1000.0


def round_half_up(value: float) -> int:
    """Round to the nearest integer, sending exact halves up (2.5 -> 3)."""
    return math.floor(value + 0.5)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def technical_availability(events: Sequence[OutcomeEvent]) -> float:
    """Fraction of *events* that are not errors or timeouts."""
    if not events:
        return 1.0
    failed = sum(1 for e in events if e.outcome.is_technical_failure)
    return 1.0 - failed / len(events)


def compute_score(availability: float, avg_latency_ms: float) -> int:
    """Blend availability (70 pts) and a latency curve (30 pts) into 0..100."""
    availability_score = availability * AVAILABILITY_WEIGHT
    latency_score = max(0.0, LATENCY_WEIGHT * (1.0 - avg_latency_ms / LATENCY_ZERO_CREDIT_MS))
    return round_half_up(min(100.0, availability_score + latency_score))


# ---------------------------------------------------------------------------
# Tracker
# ---------------------------------------------------------------------------

class HealthTracker:
    """Per-processor sliding-window health estimator.

    Parameters
    ----------
    processor_ids:
        Ids of the processors to track.  Events for any other id are
        ignored.
    config:
        Initial thresholds.  Defaults to :class:`HealthConfig` defaults.
    clock:
        Callable returning the current time in epoch milliseconds.
    """

    def __init__(
        self,
        processor_ids: Iterable[str],
        config: HealthConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._config = config or HealthConfig()
        self._config.validate()
        self._clock = clock or now_ms
        self._windows: dict[str, deque[OutcomeEvent]] = {
            pid: deque() for pid in processor_ids
        }

    @property
    def processor_ids(self) -> list[str]:
        return list(self._windows)

    # -- recording -----------------------------------------------------------

    def record_event(
        self,
        processor_id: str,
        outcome: OutcomeKind,
        latency_ms: float,
        timestamp: float | None = None,
    ) -> None:
        """Append an outcome to *processor_id*'s window, then prune it.

        *timestamp* defaults to now; pass it only when replaying history in
        chronological order.  Unknown processors are ignored.
        """
        window = self._windows.get(processor_id)
        if window is None:
            logger.debug("Ignoring event for unknown processor %r", processor_id)
            return
        ts = self._clock() if timestamp is None else timestamp
        window.append(OutcomeEvent(timestamp=ts, outcome=outcome, latency_ms=latency_ms))
        self.prune_window(processor_id)

    def prune_window(self, processor_id: str) -> int:
        """Drop events older than the window from the front.

        Returns the number of events removed.
        """
        window = self._windows.get(processor_id)
        if window is None:
            return 0
        cutoff = self._clock() - self._config.window_size_ms
        removed = 0
        while window and window[0].timestamp < cutoff:
            window.popleft()
            removed += 1
        return removed

    def window(self, processor_id: str) -> list[OutcomeEvent]:
        """Return a pruned copy of *processor_id*'s window (oldest first)."""
        self.prune_window(processor_id)
        return list(self._windows.get(processor_id, ()))

    # -- querying ------------------------------------------------------------

    def get_health(self, processor_id: str) -> HealthSnapshot:
        """Derive the current health snapshot for *processor_id*."""
        self.prune_window(processor_id)
        events = list(self._windows.get(processor_id, ()))
        now = self._clock()
        total = len(events)

        if total == 0:
            return HealthSnapshot.neutral(processor_id, now)

        counts = {kind: 0 for kind in OutcomeKind}
        for e in events:
            counts[e.outcome] += 1
        success_rate = counts[OutcomeKind.SUCCESS] / total
        decline_rate = counts[OutcomeKind.DECLINED] / total
        error_rate = counts[OutcomeKind.ERROR] / total
        timeout_rate = counts[OutcomeKind.TIMEOUT] / total
        avg_latency = sum(e.latency_ms for e in events) / total

        availability = 1.0 - (counts[OutcomeKind.ERROR] + counts[OutcomeKind.TIMEOUT]) / total
        cfg = self._config

        if total < cfg.min_samples:
            status = ProcessorStatus.HEALTHY
            score = compute_score(availability, avg_latency)
        else:
            effective = availability
            recent = events[-cfg.recent_sample_size:]
            if len(recent) >= cfg.recent_sample_size // 2:
                effective = min(availability, technical_availability(recent))
            status = self._status_for(effective)
            score = compute_score(effective, avg_latency)

        return HealthSnapshot(
            processor_id=processor_id,
            success_rate=success_rate,
            decline_rate=decline_rate,
            error_rate=error_rate,
            timeout_rate=timeout_rate,
            avg_latency_ms=float(round_half_up(avg_latency)),
            total_requests=total,
            status=status,
            score=score,
            last_updated=now,
        )

    def get_all_health(self, processor_ids: Iterable[str] | None = None) -> list[HealthSnapshot]:
        """Snapshot every processor in *processor_ids* order (default: tracked order)."""
        ids = self.processor_ids if processor_ids is None else processor_ids
        return [self.get_health(pid) for pid in ids]

    def _status_for(self, availability: float) -> ProcessorStatus:
        if availability >= self._config.degraded_threshold:
            return ProcessorStatus.HEALTHY
        if availability >= self._config.down_threshold:
            return ProcessorStatus.DEGRADED
        return ProcessorStatus.DOWN

    # -- configuration -------------------------------------------------------

    def get_config(self) -> HealthConfig:
        return self._config

    def update_config(self, partial: dict[str, Any] | None = None, **kwargs: Any) -> HealthConfig:
        """Merge *partial* (and/or keyword overrides) over the current config.

        Raises ``ValueError`` on unknown keys or an invalid result; the
        current config is left untouched in that case.
        """
        changes = {**(partial or {}), **kwargs}
        self._config = self._config.merged(changes)
        logger.info("Health thresholds updated: %s", changes)
        return self._config

    def reset(self) -> None:
        """Empty every window."""
        for window in self._windows.values():
            window.clear()
