"""Infrastructure layer for the smart payment router.

Re-exports the public API surface for convenience::

    from smart_payment_router.infrastructure import (
        EventBus, EventStore,
        ProcessorRegistry, default_registry,
        HealthConfig, SimulationConfig,
    )
"""

from smart_payment_router.infrastructure.config import (
    HealthConfig,
    SimulationConfig,
    load_config_from_json,
)
from smart_payment_router.infrastructure.event_bus import (
    EventBus,
    EventStore,
)
from smart_payment_router.infrastructure.registry import (
    DEFAULT_PROCESSORS,
    ProcessorRegistry,
    default_registry,
)
from smart_payment_router.infrastructure.serialization import (
    deserialize,
    event_to_message,
    from_json,
    serialize,
    to_json,
)

__all__ = [
    # Event bus
    "EventBus",
    "EventStore",
    # Registry
    "DEFAULT_PROCESSORS",
    "ProcessorRegistry",
    "default_registry",
    # Configuration
    "HealthConfig",
    "SimulationConfig",
    "load_config_from_json",
    # Serialization
    "serialize",
    "deserialize",
    "event_to_message",
    "to_json",
    "from_json",
]
