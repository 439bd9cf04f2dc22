#!/usr/bin/env python3
"""Example 01: Degrade a processor and watch traffic drain and return.

Demonstrates:
- Building a seeded SimulationEngine and warming it with synthetic history
- Relaying engine events as JSON-ready messages
- Degrading a processor, then restoring it
- Inspecting health, routing weights and aggregate metrics

Run:
    PYTHONPATH=src python examples/01_degrade_and_recover.py
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter

from smart_payment_router.domain.events import DomainEvent, ProcessorDegraded, ProcessorRestored
from smart_payment_router.infrastructure.config import SimulationConfig
from smart_payment_router.infrastructure.serialization import event_to_message
from smart_payment_router.services.engine import SimulationEngine


def print_health(engine: SimulationEngine) -> None:
    for entry in engine.get_routing_info():
        h = entry.health
        print(
            f"  {h.processor_id:<10} {h.status.value:<9} score={h.score:>3} "
            f"weight={entry.weight:>3} requests={h.total_requests}"
        )


def print_share(engine: SimulationEngine, label: str) -> None:
    recent = engine.get_recent_transactions(limit=50)
    share = Counter(tx.processor_id for tx in recent)
    print(f"  last {len(recent)} transactions ({label}): {dict(share)}")


async def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    engine = SimulationEngine(config=SimulationConfig(seed=2024, tick_interval_ms=40))

    # -- Observer -------------------------------------------------------------
    def relay(event: DomainEvent) -> None:
        msg = event_to_message(event)
        print(f"  -> {msg['type']}: {msg['payload']}")

    engine.event_bus.subscribe(ProcessorDegraded, relay)
    engine.event_bus.subscribe(ProcessorRestored, relay)

    # -- Warm start -----------------------------------------------------------
    seeded = engine.seed_history()
    print(f"Seeded {seeded} historical transactions")
    print_health(engine)

    # -- Live traffic ---------------------------------------------------------
    engine.start()
    await asyncio.sleep(3.0)
    print("\nSteady state:")
    print_health(engine)
    print_share(engine, "steady")

    print("\nDegrading veloce...")
    engine.degrade_processor("veloce")
    await asyncio.sleep(4.0)
    print_health(engine)
    print_share(engine, "degraded")

    print("\nRestoring veloce...")
    engine.restore_processor("veloce")
    window_s = engine.get_thresholds().window_size_ms / 1000.0
    await asyncio.sleep(window_s + 2.0)
    print_health(engine)
    print_share(engine, "recovered")

    await engine.shutdown()

    # -- Summary --------------------------------------------------------------
    m = engine.get_metrics()
    print("\nMetrics:")
    print(f"  Transactions:   {m.total_transactions}")
    print(f"  Auth rate:      {m.auth_rate:.1%}")
    print(f"  Avg latency:    {m.avg_latency_ms:.0f} ms")
    print(f"  Throughput:     {m.transactions_per_second} tx/s")
    print(f"  Cost saved:     ${m.total_cost_saved_usd:,.2f}")
    for pid, pm in m.per_processor.items():
        print(f"  {pid:<10} count={pm.transaction_count} auth={pm.auth_rate:.1%} fees=${pm.fees_usd:,.2f}")


if __name__ == "__main__":
    asyncio.run(main())
