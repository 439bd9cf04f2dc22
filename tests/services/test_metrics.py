"""Tests for MetricsAccumulator and fee helpers."""

from __future__ import annotations

import pytest

from smart_payment_router.domain.enums import OutcomeKind
from smart_payment_router.domain.values import TransactionRecord
from smart_payment_router.services.metrics import MetricsAccumulator, auth_rate_from, fee_usd


def _tx(outcome: OutcomeKind, latency: int = 100, pid: str = "stripe", amount: int = 10_000,
        fee: int = 290, saved_bps: int = 10, timestamp: float = 0.0) -> TransactionRecord:
    return TransactionRecord(
        processor_id=pid,
        amount=amount,
        outcome=outcome,
        latency_ms=latency,
        timestamp=timestamp,
        fee_basis_points=fee,
        cost_saved_basis_points=saved_bps,
        cost_saved_usd=fee_usd(amount, saved_bps) if outcome is OutcomeKind.SUCCESS else 0.0,
    )


class TestFees:
    def test_fee_usd(self) -> None:
        # 2.9% of $100.00
        assert fee_usd(10_000, 290) == pytest.approx(2.90)

    def test_zero_basis_points(self) -> None:
        assert fee_usd(10_000, 0) == 0.0


class TestCounters:
    def test_initial_snapshot_is_empty(self, clock) -> None:
        m = MetricsAccumulator(clock=clock).snapshot()
        assert m.total_transactions == 0
        assert m.auth_rate == 0.0
        assert m.per_processor == {}

    def test_outcome_buckets_partition_total(self, clock) -> None:
        acc = MetricsAccumulator(clock=clock)
        for kind in [OutcomeKind.SUCCESS] * 5 + [OutcomeKind.DECLINED] * 3 + [
            OutcomeKind.ERROR, OutcomeKind.TIMEOUT
        ]:
            acc.record(_tx(kind))
        m = acc.snapshot()
        assert m.total_transactions == 10
        assert m.successful_transactions == 5
        assert m.declined_transactions == 3
        assert m.failed_transactions == 2
        assert (
            m.successful_transactions + m.declined_transactions + m.failed_transactions
            == m.total_transactions
        )
        assert m.auth_rate == pytest.approx(0.5)

    def test_cost_saved_only_counts_successes(self, clock) -> None:
        acc = MetricsAccumulator(clock=clock)
        acc.record(_tx(OutcomeKind.SUCCESS, amount=10_000, saved_bps=50))
        acc.record(_tx(OutcomeKind.DECLINED, amount=10_000, saved_bps=50))
        assert acc.snapshot().total_cost_saved_usd == pytest.approx(0.50)

    def test_auth_rate_matches_recomputation(self, clock) -> None:
        acc = MetricsAccumulator(clock=clock)
        history = []
        for i in range(37):
            kind = OutcomeKind.SUCCESS if i % 3 else OutcomeKind.ERROR
            tx = _tx(kind)
            history.append(tx)
            acc.record(tx)
        assert acc.snapshot().auth_rate == pytest.approx(auth_rate_from(history))
        assert auth_rate_from([]) == 0.0

    def test_snapshot_is_detached(self, clock) -> None:
        acc = MetricsAccumulator(clock=clock)
        acc.record(_tx(OutcomeKind.SUCCESS))
        before = acc.snapshot()
        acc.record(_tx(OutcomeKind.ERROR))
        assert before.total_transactions == 1
        assert before.per_processor["stripe"].transaction_count == 1


class TestLatencyAverage:
    def test_first_sample_seeds_average(self, clock) -> None:
        acc = MetricsAccumulator(clock=clock)
        acc.record(_tx(OutcomeKind.SUCCESS, latency=400))
        assert acc.snapshot().avg_latency_ms == 400.0

    def test_exponential_smoothing(self, clock) -> None:
        acc = MetricsAccumulator(alpha=0.1, clock=clock)
        acc.record(_tx(OutcomeKind.SUCCESS, latency=100))
        acc.record(_tx(OutcomeKind.SUCCESS, latency=200))
        assert acc.snapshot().avg_latency_ms == pytest.approx(110.0)


class TestThroughput:
    def test_rate_published_once_window_elapses(self, clock) -> None:
        acc = MetricsAccumulator(tps_window_ms=1000, clock=clock)
        for _ in range(4):
            acc.record(_tx(OutcomeKind.SUCCESS))
            clock.advance(200)
        # 800 ms in: window not closed yet
        assert acc.snapshot().transactions_per_second == 0.0
        clock.advance(200)
        acc.record(_tx(OutcomeKind.SUCCESS))
        assert acc.snapshot().transactions_per_second == pytest.approx(5.0)

    def test_untracked_records_skip_window(self, clock) -> None:
        acc = MetricsAccumulator(tps_window_ms=1000, clock=clock)
        clock.advance(5000)
        acc.record(_tx(OutcomeKind.SUCCESS), track_rate=False)
        assert acc.snapshot().transactions_per_second == 0.0
        assert acc.snapshot().total_transactions == 1

    def test_set_rate_rounds(self, clock) -> None:
        acc = MetricsAccumulator(clock=clock)
        acc.set_rate(1.6667)
        assert acc.snapshot().transactions_per_second == 1.7


class TestPerProcessor:
    def test_breakdown(self, clock) -> None:
        acc = MetricsAccumulator(clock=clock)
        acc.record(_tx(OutcomeKind.SUCCESS, pid="veloce", amount=10_000, fee=300, latency=100))
        acc.record(_tx(OutcomeKind.DECLINED, pid="veloce", amount=5_000, fee=300, latency=300))
        acc.record(_tx(OutcomeKind.SUCCESS, pid="braintree", amount=2_000, fee=250))
        per = acc.snapshot().per_processor
        veloce = per["veloce"]
        assert veloce.transaction_count == 2
        assert veloce.successful_transactions == 1
        assert veloce.auth_rate == pytest.approx(0.5)
        assert veloce.volume == 15_000
        # fees are only charged on the approved payment
        assert veloce.fees_usd == pytest.approx(3.00)
        assert veloce.avg_latency_ms == pytest.approx(200.0)
        assert per["braintree"].fees_usd == pytest.approx(0.50)
