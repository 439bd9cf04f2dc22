"""Synthetic transaction history for a warm start.

Observers that connect before the live loop has produced much traffic
should still see populated feeds.  :func:`generate_history` fabricates
records spread uniformly over the preceding time span, drawn from a
realistic outcome mix.
"""

from __future__ import annotations

import numpy as np

from smart_payment_router.domain.enums import OutcomeKind
from smart_payment_router.domain.values import TransactionRecord
from smart_payment_router.infrastructure.registry import ProcessorRegistry
from smart_payment_router.services.behavior import JITTER_FRACTION, TIMEOUT_CEILING_MS
from smart_payment_router.services.health import round_half_up
from smart_payment_router.services.metrics import fee_usd

HISTORY_OUTCOME_MIX: tuple[tuple[OutcomeKind, float], ...] = (
    (OutcomeKind.SUCCESS, 0.82),
    (OutcomeKind.DECLINED, 0.10),
    (OutcomeKind.ERROR, 0.05),
    (OutcomeKind.TIMEOUT, 0.03),
)


def generate_history(
    registry: ProcessorRegistry,
    count: int,
    span_ms: int,
    now: float,
    rng: np.random.Generator,
    min_amount: int = 1_000,
    max_amount: int = 30_000,
) -> list[TransactionRecord]:
    """Return *count* aged records over ``[now - span_ms, now]``, oldest first."""
    if count <= 0:
        return []

    processors = registry.all()
    max_fee = registry.max_fee_basis_points()
    kinds = [kind for kind, _ in HISTORY_OUTCOME_MIX]
    probs = np.array([p for _, p in HISTORY_OUTCOME_MIX], dtype=np.float64)
    probs = probs / probs.sum()

    offsets = np.sort(rng.uniform(0.0, span_ms, size=count))[::-1]
    proc_idx = rng.integers(len(processors), size=count)
    kind_idx = rng.choice(len(kinds), size=count, p=probs)
    amounts = rng.integers(min_amount, max_amount + 1, size=count)
    jitters = rng.random(size=count)

    records: list[TransactionRecord] = []
    for offset, p_i, k_i, amount, jitter in zip(offsets, proc_idx, kind_idx, amounts, jitters):
        processor = processors[int(p_i)]
        outcome = kinds[int(k_i)]
        if outcome is OutcomeKind.TIMEOUT:
            latency = TIMEOUT_CEILING_MS
        else:
            base = processor.base_latency_ms
            latency = round_half_up(base + float(jitter) * base * JITTER_FRACTION)
        saved_bps = max_fee - processor.fee_basis_points
        amount = int(amount)
        records.append(
            TransactionRecord(
                processor_id=processor.id,
                amount=amount,
                outcome=outcome,
                latency_ms=latency,
                timestamp=now - float(offset),
                fee_basis_points=processor.fee_basis_points,
                cost_saved_basis_points=saved_bps,
                cost_saved_usd=(
                    fee_usd(amount, saved_bps) if outcome is OutcomeKind.SUCCESS else 0.0
                ),
            )
        )
    return records
