"""Shared fixtures for the smart payment router test suite."""

from __future__ import annotations

import pytest

from smart_payment_router.domain.values import Processor
from smart_payment_router.infrastructure.config import HealthConfig, SimulationConfig
from smart_payment_router.infrastructure.event_bus import EventBus
from smart_payment_router.infrastructure.registry import ProcessorRegistry, default_registry
from smart_payment_router.services.behavior import ProcessorBehaviorModel
from smart_payment_router.services.engine import SimulationEngine
from smart_payment_router.services.health import HealthTracker
from smart_payment_router.services.routing import SmartRouter

# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: float = 1_700_000_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


async def instant_sleep(_seconds: float) -> None:
    """Async sleep replacement that returns immediately."""
    return None


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Registry fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def registry() -> ProcessorRegistry:
    """The three default processors (veloce, stripe, braintree)."""
    return default_registry()


@pytest.fixture
def twin_registry() -> ProcessorRegistry:
    """Two processors identical in fee and latency."""
    return ProcessorRegistry([
        Processor(id="a", name="A", fee_basis_points=250, base_latency_ms=100),
        Processor(id="b", name="B", fee_basis_points=250, base_latency_ms=100),
    ])


@pytest.fixture
def priced_registry() -> ProcessorRegistry:
    """Two processors identical except for fee."""
    return ProcessorRegistry([
        Processor(id="cheap", name="Cheap", fee_basis_points=100, base_latency_ms=100),
        Processor(id="pricey", name="Pricey", fee_basis_points=300, base_latency_ms=100),
    ])


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tracker(registry: ProcessorRegistry, clock: FakeClock) -> HealthTracker:
    return HealthTracker(registry.ids(), clock=clock)


@pytest.fixture
def router(tracker: HealthTracker, registry: ProcessorRegistry) -> SmartRouter:
    return SmartRouter(tracker, registry, seed=7)


@pytest.fixture
def behavior(registry: ProcessorRegistry) -> ProcessorBehaviorModel:
    return ProcessorBehaviorModel(registry, seed=11, sleep=instant_sleep)


@pytest.fixture
def event_bus() -> EventBus:
    """A fresh event bus."""
    return EventBus()


@pytest.fixture
def engine(
    registry: ProcessorRegistry, clock: FakeClock, event_bus: EventBus
) -> SimulationEngine:
    """A seeded engine on a fake clock whose transactions complete instantly."""
    return SimulationEngine(
        registry=registry,
        config=SimulationConfig(seed=1234, max_stored_transactions=200),
        health_config=HealthConfig(),
        event_bus=event_bus,
        clock=clock,
        sleep=instant_sleep,
    )
