"""Running aggregate metrics for completed transactions.

:class:`MetricsAccumulator` is updated exactly once per completed
transaction and hands out frozen :class:`AggregateMetrics` snapshots.

Design notes
~~~~~~~~~~~~
* ``avg_latency_ms`` is an exponential moving average; the first sample
  seeds it directly.
* ``transactions_per_second`` is a step function: completions are counted
  inside a fixed window and the rate is published once the window elapses.
* A per-processor breakdown (volume, fees, auth rate, mean latency) is kept
  alongside the global counters.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from smart_payment_router.domain.enums import OutcomeKind
from smart_payment_router.domain.values import (
    AggregateMetrics,
    ProcessorMetrics,
    TransactionRecord,
)
from smart_payment_router.services.health import now_ms


def fee_usd(amount: int, basis_points: int) -> float:
    """USD value of *basis_points* applied to *amount* minor units."""
    return (basis_points / 10_000) * (amount / 100)


def auth_rate_from(transactions: Iterable[TransactionRecord]) -> float:
    """Recompute the authorization rate from scratch."""
    total = 0
    successful = 0
    for tx in transactions:
        total += 1
        if tx.outcome is OutcomeKind.SUCCESS:
            successful += 1
    return successful / total if total else 0.0


@dataclass
class _ProcessorTally:
    transaction_count: int = 0
    successful_transactions: int = 0
    volume: int = 0
    fees_usd: float = 0.0
    latency_sum: float = 0.0

    def freeze(self, processor_id: str) -> ProcessorMetrics:
        count = self.transaction_count
        return ProcessorMetrics(
            processor_id=processor_id,
            transaction_count=count,
            successful_transactions=self.successful_transactions,
            auth_rate=self.successful_transactions / count if count else 0.0,
            volume=self.volume,
            fees_usd=self.fees_usd,
            avg_latency_ms=self.latency_sum / count if count else 0.0,
        )


class MetricsAccumulator:
    """Incrementally maintained aggregate metrics.

    Parameters
    ----------
    alpha:
        Smoothing factor of the latency moving average.
    tps_window_ms:
        Length of the fixed throughput window.
    clock:
        Callable returning the current time in epoch milliseconds.
    """

    def __init__(
        self,
        alpha: float = 0.1,
        tps_window_ms: int = 5_000,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._alpha = alpha
        self._tps_window_ms = tps_window_ms
        self._clock = clock or now_ms

        self.total_transactions = 0
        self.successful_transactions = 0
        self.declined_transactions = 0
        self.failed_transactions = 0
        self.auth_rate = 0.0
        self.total_cost_saved_usd = 0.0
        self.avg_latency_ms = 0.0
        self.transactions_per_second = 0.0

        self._tps_window_start = self._clock()
        self._tps_window_count = 0
        self._per_processor: dict[str, _ProcessorTally] = {}

    def record(self, tx: TransactionRecord, track_rate: bool = True) -> None:
        """Account for one completed transaction.

        Pass ``track_rate=False`` for historical records so they do not
        count toward the live throughput window.
        """
        self.total_transactions += 1
        if tx.outcome is OutcomeKind.SUCCESS:
            self.successful_transactions += 1
            self.total_cost_saved_usd += tx.cost_saved_usd
        elif tx.outcome is OutcomeKind.DECLINED:
            self.declined_transactions += 1
        else:
            self.failed_transactions += 1

        self.auth_rate = self.successful_transactions / self.total_transactions

        if self.total_transactions == 1:
            self.avg_latency_ms = float(tx.latency_ms)
        else:
            self.avg_latency_ms = (
                self.avg_latency_ms * (1 - self._alpha) + tx.latency_ms * self._alpha
            )

        if track_rate:
            self._tick_tps()

        tally = self._per_processor.setdefault(tx.processor_id, _ProcessorTally())
        tally.transaction_count += 1
        tally.volume += tx.amount
        tally.latency_sum += tx.latency_ms
        if tx.outcome is OutcomeKind.SUCCESS:
            tally.successful_transactions += 1
            tally.fees_usd += fee_usd(tx.amount, tx.fee_basis_points)

    def _tick_tps(self) -> None:
        now = self._clock()
        self._tps_window_count += 1
        elapsed = now - self._tps_window_start
        if elapsed >= self._tps_window_ms:
            self.transactions_per_second = round(
                self._tps_window_count / (self._tps_window_ms / 1000.0), 1
            )
            self._tps_window_count = 0
            self._tps_window_start = now

    def set_rate(self, transactions_per_second: float) -> None:
        """Publish an externally measured rate (used after seeding history)."""
        self.transactions_per_second = round(transactions_per_second, 1)

    def snapshot(self) -> AggregateMetrics:
        """Return a frozen copy of the current metrics."""
        return AggregateMetrics(
            total_transactions=self.total_transactions,
            successful_transactions=self.successful_transactions,
            declined_transactions=self.declined_transactions,
            failed_transactions=self.failed_transactions,
            auth_rate=self.auth_rate,
            total_cost_saved_usd=self.total_cost_saved_usd,
            avg_latency_ms=self.avg_latency_ms,
            transactions_per_second=self.transactions_per_second,
            per_processor={
                pid: tally.freeze(pid) for pid, tally in self._per_processor.items()
            },
        )
