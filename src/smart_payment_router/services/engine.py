"""Simulation engine -- drives synthetic traffic through the router.

The :class:`SimulationEngine` owns the tick loop and the cross-cutting state
that no other component tracks: the recent-transactions buffer and the
aggregate metrics.  One tick is:

1. draw an amount and ask the :class:`SmartRouter` for a processor
   (no processor means the transaction is dropped and counted nowhere);
2. await the :class:`ProcessorBehaviorModel` for an outcome;
3. record the outcome in the :class:`HealthTracker`, store the
   :class:`TransactionRecord`, update metrics;
4. publish ``TransactionCompleted``, ``HealthUpdated`` and
   ``MetricsUpdated``, in that order.

Concurrency
~~~~~~~~~~~
Everything runs on one asyncio event loop.  The tick driver spawns one task
per transaction and never waits for it, so several transactions can be in
flight while their simulated latency elapses.  Steps 3-4 form a single
synchronous block, which makes completions atomic with respect to each
other and to operator actions, and applies them in completion order.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from itertools import islice
from typing import Any

import numpy as np

from smart_payment_router.domain.enums import EngineState, OutcomeKind, OverrideState
from smart_payment_router.domain.events import (
    HealthUpdated,
    MetricsUpdated,
    OverrideChanged,
    ProcessorDegraded,
    ProcessorRestored,
    SimulationStateChanged,
    ThresholdsUpdated,
    TransactionCompleted,
)
from smart_payment_router.domain.values import (
    AggregateMetrics,
    HealthSnapshot,
    Processor,
    RoutingEntry,
    SimulationState,
    TransactionRecord,
    TransactionResult,
)
from smart_payment_router.infrastructure.config import HealthConfig, SimulationConfig
from smart_payment_router.infrastructure.event_bus import EventBus
from smart_payment_router.infrastructure.registry import ProcessorRegistry, default_registry
from smart_payment_router.infrastructure.serialization import (
    aggregate_metrics_to_dict,
    health_snapshot_to_dict,
    processor_to_dict,
    simulation_state_to_dict,
    transaction_record_to_dict,
)
from smart_payment_router.services.behavior import ProcessorBehaviorModel, Sleep
from smart_payment_router.services.health import HealthTracker, now_ms
from smart_payment_router.services.metrics import MetricsAccumulator, fee_usd
from smart_payment_router.services.routing import SmartRouter
from smart_payment_router.services.seeding import generate_history

logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 50


@dataclass(frozen=True)
class EngineSnapshot:
    """Everything an observer needs when it connects mid-run."""

    health: tuple[HealthSnapshot, ...]
    transactions: tuple[TransactionRecord, ...]
    metrics: AggregateMetrics
    simulation: SimulationState
    processors: tuple[Processor, ...]
    thresholds: HealthConfig

    def to_dict(self) -> dict[str, Any]:
        return {
            "health": [health_snapshot_to_dict(h) for h in self.health],
            "transactions": [transaction_record_to_dict(t) for t in self.transactions],
            "metrics": aggregate_metrics_to_dict(self.metrics),
            "simulation": simulation_state_to_dict(self.simulation),
            "processors": [processor_to_dict(p) for p in self.processors],
            "thresholds": self.thresholds.to_dict(),
        }


class SimulationEngine:
    """Orchestrates router, behavior model, health tracker and metrics.

    Components not supplied are built from *registry*, *config* and
    *clock*; their random generators are spawned from ``config.seed`` so a
    seeded engine is reproducible end to end.

    Parameters
    ----------
    registry:
        Processor pool.  Defaults to :func:`default_registry`.
    config:
        Tick cadence, buffer size, amount range and seeding parameters.
    health_config:
        Thresholds for a tracker built by the engine.
    tracker / router / behavior:
        Pre-built components to use instead of the defaults.
    event_bus:
        Bus that observers subscribe to.  A fresh bus is created if omitted.
    clock:
        Callable returning the current time in epoch milliseconds.
    sleep:
        Coroutine function used by a default-built behavior model.
    """

    def __init__(
        self,
        registry: ProcessorRegistry | None = None,
        config: SimulationConfig | None = None,
        health_config: HealthConfig | None = None,
        tracker: HealthTracker | None = None,
        router: SmartRouter | None = None,
        behavior: ProcessorBehaviorModel | None = None,
        event_bus: EventBus | None = None,
        clock: Callable[[], float] | None = None,
        sleep: Sleep | None = None,
        source_id: str = "simulation",
    ) -> None:
        self._config = config or SimulationConfig()
        self._config.validate()
        self._registry = registry or default_registry()
        self._clock = clock or now_ms
        self._event_bus = event_bus or EventBus()
        self._source_id = source_id

        seeds = np.random.SeedSequence(self._config.seed).spawn(3)
        self._rng = np.random.default_rng(seeds[0])
        self._tracker = tracker or HealthTracker(
            self._registry.ids(), config=health_config, clock=self._clock
        )
        self._router = router or SmartRouter(
            self._tracker, self._registry, rng=np.random.default_rng(seeds[1])
        )
        self._behavior = behavior or ProcessorBehaviorModel(
            self._registry, rng=np.random.default_rng(seeds[2]), sleep=sleep
        )

        self._transactions: deque[TransactionRecord] = deque(
            maxlen=self._config.max_stored_transactions
        )
        self._metrics = MetricsAccumulator(
            alpha=self._config.latency_ema_alpha,
            tps_window_ms=self._config.tps_window_ms,
            clock=self._clock,
        )

        self._state = EngineState.STOPPED
        self._start_time: float | None = None
        self._tick_task: asyncio.Task[None] | None = None
        self._in_flight: set[asyncio.Task[Any]] = set()
        self._cancelled: list[asyncio.Task[Any]] = []

    # -- public read-only properties ----------------------------------------

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def registry(self) -> ProcessorRegistry:
        return self._registry

    @property
    def tracker(self) -> HealthTracker:
        return self._tracker

    @property
    def router(self) -> SmartRouter:
        return self._router

    @property
    def behavior(self) -> ProcessorBehaviorModel:
        return self._behavior

    @property
    def event_bus(self) -> EventBus:
        """The bus this engine publishes to."""
        return self._event_bus

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def in_flight(self) -> int:
        """Number of transactions currently awaiting their simulated latency."""
        return len(self._in_flight)

    # -- lifecycle -----------------------------------------------------------

    def start(self) -> None:
        """Begin issuing transactions.  No-op if already running.

        Must be called from within a running asyncio event loop.
        """
        if self._state is EngineState.RUNNING:
            return
        loop = asyncio.get_running_loop()
        self._state = EngineState.RUNNING
        self._start_time = self._clock()
        self._tick_task = loop.create_task(self._tick_loop())
        logger.info(
            "Simulation started (tick every %d ms)", self._config.tick_interval_ms
        )
        self._publish_state()

    def stop(self) -> None:
        """Stop the tick loop and cancel in-flight transactions.

        No-op if already stopped.  Cancellation lands on an ``await``, never
        inside a completion, so health and metrics stay exactly as the last
        completed transaction left them.
        """
        if self._state is EngineState.STOPPED:
            return
        self._state = EngineState.STOPPED
        pending = list(self._in_flight)
        if self._tick_task is not None:
            pending.append(self._tick_task)
            self._tick_task = None
        for task in pending:
            task.cancel()
        self._in_flight.clear()
        self._cancelled = pending
        logger.info("Simulation stopped (%d tasks cancelled)", len(pending))
        self._publish_state()

    async def shutdown(self) -> None:
        """Stop and wait until every cancelled task has unwound."""
        self.stop()
        cancelled, self._cancelled = self._cancelled, []
        if cancelled:
            await asyncio.gather(*cancelled, return_exceptions=True)

    def is_running(self) -> bool:
        return self._state is EngineState.RUNNING

    def simulation_state(self) -> SimulationState:
        return SimulationState(running=self.is_running(), start_time=self._start_time)

    async def _tick_loop(self) -> None:
        interval = self._config.tick_interval_ms / 1000.0
        while self._state is EngineState.RUNNING:
            await asyncio.sleep(interval)
            self._fire_transaction()

    def _fire_transaction(self) -> None:
        task = asyncio.get_running_loop().create_task(
            self.run_transaction(self._draw_amount())
        )
        self._in_flight.add(task)
        task.add_done_callback(self._on_transaction_done)

    def _on_transaction_done(self, task: asyncio.Task[Any]) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Simulated transaction failed", exc_info=exc)

    def _draw_amount(self) -> int:
        return int(self._rng.integers(self._config.min_amount, self._config.max_amount + 1))

    # -- transactions --------------------------------------------------------

    async def run_transaction(self, amount: int | None = None) -> TransactionRecord | None:
        """Route and simulate one transaction end to end.

        Returns the completed record, or ``None`` when no processor was
        available.  A dropped transaction is not an attempt: it touches no
        counter and publishes nothing.
        """
        if amount is None:
            amount = self._draw_amount()
        processor_id = self._router.select_processor()
        if processor_id is None:
            logger.debug("No processor available; dropping transaction of %d", amount)
            return None
        result = await self._behavior.process_transaction(processor_id, amount)
        return self._complete(processor_id, amount, result)

    def _complete(
        self, processor_id: str, amount: int, result: TransactionResult
    ) -> TransactionRecord:
        self._tracker.record_event(processor_id, result.outcome, result.latency_ms)

        processor = self._registry.get(processor_id)
        saved_bps = self._registry.cost_saved_basis_points(processor_id)
        tx = TransactionRecord(
            processor_id=processor_id,
            amount=amount,
            outcome=result.outcome,
            latency_ms=result.latency_ms,
            timestamp=self._clock(),
            fee_basis_points=processor.fee_basis_points,
            cost_saved_basis_points=saved_bps,
            # fees are only charged on approved payments
            cost_saved_usd=(
                fee_usd(amount, saved_bps) if result.outcome is OutcomeKind.SUCCESS else 0.0
            ),
        )
        self._transactions.appendleft(tx)
        self._metrics.record(tx)

        ts = tx.timestamp
        self._event_bus.publish(
            TransactionCompleted(timestamp=ts, source_id=self._source_id, transaction=tx)
        )
        self._publish_health(ts)
        self._event_bus.publish(
            MetricsUpdated(timestamp=ts, source_id=self._source_id, metrics=self.get_metrics())
        )
        return tx

    # -- history -------------------------------------------------------------

    def seed_history(self, count: int | None = None, span_ms: int | None = None) -> int:
        """Pre-populate the buffer, metrics and health windows.

        Records younger than the health window are replayed into the
        tracker with their original timestamps.  Call before :meth:`start`;
        seeding a running engine is refused.  Returns the number of records
        generated.
        """
        if self.is_running():
            logger.warning("Refusing to seed history while the simulation is running")
            return 0
        count = self._config.history_count if count is None else count
        span_ms = self._config.history_span_ms if span_ms is None else span_ms
        now = self._clock()
        records = generate_history(
            self._registry,
            count=count,
            span_ms=span_ms,
            now=now,
            rng=self._rng,
            min_amount=self._config.min_amount,
            max_amount=self._config.max_amount,
        )
        cutoff = now - self._tracker.get_config().window_size_ms
        replayed = 0
        for tx in records:
            self._transactions.appendleft(tx)
            self._metrics.record(tx, track_rate=False)
            if tx.timestamp >= cutoff:
                self._tracker.record_event(
                    tx.processor_id, tx.outcome, tx.latency_ms, timestamp=tx.timestamp
                )
                replayed += 1
        if records:
            self._metrics.set_rate(len(records) / (span_ms / 1000.0))
        logger.info(
            "Seeded %d historical transactions (%d replayed into health windows)",
            len(records), replayed,
        )
        ts = now
        self._publish_health(ts)
        self._event_bus.publish(
            MetricsUpdated(timestamp=ts, source_id=self._source_id, metrics=self.get_metrics())
        )
        return len(records)

    # -- read surface --------------------------------------------------------

    def get_recent_transactions(self, limit: int = DEFAULT_RECENT_LIMIT) -> list[TransactionRecord]:
        """Most-recent-first slice of the transaction buffer."""
        if limit <= 0:
            return []
        return list(islice(self._transactions, limit))

    def get_metrics(self) -> AggregateMetrics:
        """Frozen copy of the aggregate metrics."""
        return self._metrics.snapshot()

    def get_health(self) -> list[HealthSnapshot]:
        return self._tracker.get_all_health(self._registry.ids())

    def snapshot(self) -> EngineSnapshot:
        """Consistent view of the whole engine for a newly connected observer."""
        return EngineSnapshot(
            health=tuple(self.get_health()),
            transactions=tuple(self.get_recent_transactions()),
            metrics=self.get_metrics(),
            simulation=self.simulation_state(),
            processors=tuple(self._registry.all()),
            thresholds=self._tracker.get_config(),
        )

    # -- operator controls ---------------------------------------------------

    def degrade_processor(self, processor_id: str) -> bool:
        if not self._behavior.degrade(processor_id):
            return False
        self._event_bus.publish(
            ProcessorDegraded(
                timestamp=self._clock(),
                source_id=self._source_id,
                processor_id=processor_id,
            )
        )
        return True

    def restore_processor(self, processor_id: str) -> bool:
        if not self._behavior.restore(processor_id):
            return False
        self._event_bus.publish(
            ProcessorRestored(
                timestamp=self._clock(),
                source_id=self._source_id,
                processor_id=processor_id,
            )
        )
        return True

    def is_processor_degraded(self, processor_id: str) -> bool:
        return self._behavior.is_degraded(processor_id)

    def set_override(self, processor_id: str, state: OverrideState | str) -> bool:
        if not self._router.set_override(processor_id, state):
            return False
        self._event_bus.publish(
            OverrideChanged(
                timestamp=self._clock(),
                source_id=self._source_id,
                processor_id=processor_id,
                override=self._router.get_override(processor_id),
            )
        )
        return True

    def get_override(self, processor_id: str) -> OverrideState | None:
        return self._router.get_override(processor_id)

    def get_routing_info(self) -> list[RoutingEntry]:
        return self._router.get_routing_info()

    def get_thresholds(self) -> HealthConfig:
        return self._tracker.get_config()

    def update_thresholds(self, partial: dict[str, Any]) -> HealthConfig:
        """Merge *partial* into the health thresholds.

        Raises ``ValueError`` on invalid values; nothing changes then.
        """
        cfg = self._tracker.update_config(partial)
        self._event_bus.publish(
            ThresholdsUpdated(
                timestamp=self._clock(),
                source_id=self._source_id,
                thresholds=cfg.to_dict(),
            )
        )
        return cfg

    # -- publishing helpers --------------------------------------------------

    def _publish_state(self) -> None:
        self._event_bus.publish(
            SimulationStateChanged(
                timestamp=self._clock(),
                source_id=self._source_id,
                state=self.simulation_state(),
            )
        )

    def _publish_health(self, ts: float) -> None:
        self._event_bus.publish(
            HealthUpdated(timestamp=ts, source_id=self._source_id, health=tuple(self.get_health()))
        )