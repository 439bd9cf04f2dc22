"""Service layer for the smart payment router.

Re-exports the core components::

    from smart_payment_router.services import (
        HealthTracker, SmartRouter, ProcessorBehaviorModel,
        MetricsAccumulator, SimulationEngine,
    )
"""

from smart_payment_router.services.behavior import ProcessorBehaviorModel
from smart_payment_router.services.engine import EngineSnapshot, SimulationEngine
from smart_payment_router.services.health import HealthTracker, compute_score
from smart_payment_router.services.metrics import MetricsAccumulator, auth_rate_from
from smart_payment_router.services.routing import SmartRouter
from smart_payment_router.services.seeding import generate_history

__all__ = [
    "EngineSnapshot",
    "HealthTracker",
    "MetricsAccumulator",
    "ProcessorBehaviorModel",
    "SimulationEngine",
    "SmartRouter",
    "auth_rate_from",
    "compute_score",
    "generate_history",
]
