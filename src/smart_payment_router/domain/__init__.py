"""Domain layer for the smart payment router.

Re-exports all public domain types so that consumers can write::

    from smart_payment_router.domain import HealthSnapshot, OutcomeKind
"""

# -- Enumerations -------------------------------------------------------------
from .enums import EngineState, OutcomeKind, OverrideState, ProcessorStatus

# -- Value Objects ------------------------------------------------------------
from .values import (
    DEGRADED_PROFILE,
    NORMAL_PROFILE,
    AggregateMetrics,
    FailureProfile,
    HealthSnapshot,
    OutcomeEvent,
    Processor,
    ProcessorMetrics,
    RoutingEntry,
    SimulationState,
    TransactionRecord,
    TransactionResult,
)

# -- Domain Events ------------------------------------------------------------
from .events import (
    DomainEvent,
    HealthUpdated,
    MetricsUpdated,
    OverrideChanged,
    ProcessorDegraded,
    ProcessorRestored,
    SimulationStateChanged,
    ThresholdsUpdated,
    TransactionCompleted,
)

# -- Exceptions ---------------------------------------------------------------
from .exceptions import SmartRouterError, UnknownProcessorError

__all__ = [
    # enums
    "EngineState",
    "OutcomeKind",
    "OverrideState",
    "ProcessorStatus",
    # values
    "DEGRADED_PROFILE",
    "NORMAL_PROFILE",
    "AggregateMetrics",
    "FailureProfile",
    "HealthSnapshot",
    "OutcomeEvent",
    "Processor",
    "ProcessorMetrics",
    "RoutingEntry",
    "SimulationState",
    "TransactionRecord",
    "TransactionResult",
    # events
    "DomainEvent",
    "HealthUpdated",
    "MetricsUpdated",
    "OverrideChanged",
    "ProcessorDegraded",
    "ProcessorRestored",
    "SimulationStateChanged",
    "ThresholdsUpdated",
    "TransactionCompleted",
    # exceptions
    "SmartRouterError",
    "UnknownProcessorError",
]
