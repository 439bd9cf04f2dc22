"""Smart payment router.

Routes synthetic payment transactions across a pool of processors, tracking
each processor's health over a sliding window and steering traffic toward
the healthiest, cheapest options in real time.
"""

__version__ = "0.1.0"

from smart_payment_router.domain import OutcomeKind, OverrideState, ProcessorStatus
from smart_payment_router.infrastructure import (
    EventBus,
    HealthConfig,
    SimulationConfig,
    default_registry,
)
from smart_payment_router.services import (
    HealthTracker,
    ProcessorBehaviorModel,
    SimulationEngine,
    SmartRouter,
)

__all__ = [
    "EventBus",
    "HealthConfig",
    "HealthTracker",
    "OutcomeKind",
    "OverrideState",
    "ProcessorBehaviorModel",
    "ProcessorStatus",
    "SimulationConfig",
    "SimulationEngine",
    "SmartRouter",
    "default_registry",
]
