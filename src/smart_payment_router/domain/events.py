"""Domain events for the smart payment router.

Every event is a frozen dataclass inheriting from ``DomainEvent``.  The
simulation engine emits events; observers (a transport layer, collectors,
tests) react.  For one completed transaction the engine publishes
``TransactionCompleted``, ``HealthUpdated`` and ``MetricsUpdated`` together,
in that order, before the next transaction's events.

All events carry a ``timestamp`` in epoch milliseconds (the unit used for
every time in the package) and a ``source_id`` identifying the originating
component.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from .enums import OverrideState
from .values import (
    AggregateMetrics,
    HealthSnapshot,
    SimulationState,
    TransactionRecord,
)


def _now_ms() -> float:
    return time.time() * 1000.0


# ---------------------------------------------------------------------------
# Base event
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events.  ``timestamp`` is epoch milliseconds."""

    timestamp: float = field(default_factory=_now_ms)
    source_id: str = ""


# ---------------------------------------------------------------------------
# Per-transaction events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TransactionCompleted(DomainEvent):
    """A routed transaction reached a terminal outcome."""

    transaction: TransactionRecord | None = None


@dataclass(frozen=True)
class HealthUpdated(DomainEvent):
    """Full set of processor health snapshots, in registry order."""

    health: tuple[HealthSnapshot, ...] = ()


@dataclass(frozen=True)
class MetricsUpdated(DomainEvent):
    """Aggregate metrics after a transaction was accounted for."""

    metrics: AggregateMetrics | None = None


# ---------------------------------------------------------------------------
# Lifecycle / operator events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SimulationStateChanged(DomainEvent):
    """The engine was started or stopped."""

    state: SimulationState = field(default_factory=SimulationState)


@dataclass(frozen=True)
class ProcessorDegraded(DomainEvent):
    """An operator switched a processor to its degraded failure profile."""

    processor_id: str = ""


@dataclass(frozen=True)
class ProcessorRestored(DomainEvent):
    """An operator switched a processor back to its normal profile."""

    processor_id: str = ""


@dataclass(frozen=True)
class OverrideChanged(DomainEvent):
    """A manual routing override was set or cleared."""

    processor_id: str = ""
    override: OverrideState | None = None


@dataclass(frozen=True)
class ThresholdsUpdated(DomainEvent):
    """Health thresholds were changed at runtime."""

    thresholds: dict[str, Any] = field(default_factory=dict)
