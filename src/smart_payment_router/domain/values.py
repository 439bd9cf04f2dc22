"""Value objects for the smart payment router.

All types here are frozen dataclasses -- immutable, compared by value.
They represent processor definitions, observed outcomes, and derived
snapshots that have no identity beyond their content.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field

from .enums import OutcomeKind, OverrideState, ProcessorStatus

# ---------------------------------------------------------------------------
# Processor
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Processor:
    """A payment processor in the routing pool.

    Created once at startup and shared read-only by every component.
    """

    id: str
    name: str
    fee_basis_points: int
    base_latency_ms: int

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("processor id must not be empty")
        if not 0 <= self.fee_basis_points <= 10_000:
            raise ValueError(
                f"fee_basis_points must be in [0, 10000], got {self.fee_basis_points}"
            )
        if self.base_latency_ms <= 0:
            raise ValueError(
                f"base_latency_ms must be positive, got {self.base_latency_ms}"
            )


# ---------------------------------------------------------------------------
# OutcomeEvent
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OutcomeEvent:
    """One observed transaction outcome inside a processor's health window."""

    timestamp: float  # epoch milliseconds
    outcome: OutcomeKind
    latency_ms: float


# ---------------------------------------------------------------------------
# HealthSnapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HealthSnapshot:
    """Point-in-time health statistics for one processor.

    Recomputed from the event window on every query.  The four rates sum to
    1 whenever ``total_requests > 0``.
    """

    processor_id: str
    success_rate: float
    decline_rate: float
    error_rate: float
    timeout_rate: float
    avg_latency_ms: float
    total_requests: int
    status: ProcessorStatus
    score: int
    last_updated: float

    @classmethod
    def neutral(cls, processor_id: str, now: float) -> HealthSnapshot:
        """Baseline reported for a processor with an empty window."""
        return cls(
            processor_id=processor_id,
            success_rate=1.0,
            decline_rate=0.0,
            error_rate=0.0,
            timeout_rate=0.0,
            avg_latency_ms=0.0,
            total_requests=0,
            status=ProcessorStatus.HEALTHY,
            score=100,
            last_updated=now,
        )

    @property
    def technical_availability(self) -> float:
        """Fraction of attempts that were neither errors nor timeouts."""
        if self.total_requests == 0:
            return 1.0
        return 1.0 - self.error_rate - self.timeout_rate


# ---------------------------------------------------------------------------
# FailureProfile
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FailureProfile:
    """Stochastic behavior preset for a simulated processor."""

    error_rate: float
    timeout_rate: float
    decline_rate: float
    latency_multiplier: float
    degraded: bool = False

    def __post_init__(self) -> None:
        for name in ("error_rate", "timeout_rate", "decline_rate"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        if self.error_rate + self.timeout_rate + self.decline_rate > 1.0:
            raise ValueError("error, timeout and decline rates must sum to <= 1")
        if self.latency_multiplier <= 0:
            raise ValueError(
                f"latency_multiplier must be positive, got {self.latency_multiplier}"
            )


NORMAL_PROFILE = FailureProfile(
    error_rate=0.007,
    timeout_rate=0.003,
    decline_rate=0.08,
    latency_multiplier=1.0,
)

DEGRADED_PROFILE = FailureProfile(
    error_rate=0.40,
    timeout_rate=0.35,
    decline_rate=0.08,
    latency_multiplier=4.0,
    degraded=True,
)


# ---------------------------------------------------------------------------
# TransactionResult / TransactionRecord
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TransactionResult:
    """What a processor answered for one transaction."""

    outcome: OutcomeKind
    latency_ms: int


@dataclass(frozen=True)
class TransactionRecord:
    """A completed, routed transaction as seen by observers."""

    processor_id: str
    amount: int  # minor currency units
    outcome: OutcomeKind
    latency_ms: int
    timestamp: float
    fee_basis_points: int
    cost_saved_basis_points: int
    cost_saved_usd: float = 0.0
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def is_success(self) -> bool:
        return self.outcome is OutcomeKind.SUCCESS


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProcessorMetrics:
    """Cumulative per-processor breakdown of routed traffic."""

    processor_id: str
    transaction_count: int = 0
    successful_transactions: int = 0
    auth_rate: float = 0.0
    volume: int = 0  # minor currency units
    fees_usd: float = 0.0
    avg_latency_ms: float = 0.0


@dataclass(frozen=True)
class AggregateMetrics:
    """Snapshot of the engine's running totals."""

    total_transactions: int = 0
    successful_transactions: int = 0
    declined_transactions: int = 0
    failed_transactions: int = 0
    auth_rate: float = 0.0
    total_cost_saved_usd: float = 0.0
    avg_latency_ms: float = 0.0
    transactions_per_second: float = 0.0
    per_processor: Mapping[str, ProcessorMetrics] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Engine / routing views
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SimulationState:
    """Whether the tick loop is running and since when."""

    running: bool = False
    start_time: float | None = None


@dataclass(frozen=True)
class RoutingEntry:
    """Read-only routing view of one processor."""

    processor_id: str
    health: HealthSnapshot
    override: OverrideState | None
    eligible: bool
    weight: int
