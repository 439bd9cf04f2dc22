"""Tests for the stochastic processor behavior model."""

from __future__ import annotations

from collections import Counter

import pytest

from smart_payment_router.domain.enums import OutcomeKind
from smart_payment_router.domain.exceptions import UnknownProcessorError
from smart_payment_router.domain.values import DEGRADED_PROFILE, NORMAL_PROFILE, FailureProfile
from smart_payment_router.services.behavior import (
    JITTER_FRACTION,
    TIMEOUT_CEILING_MS,
    ProcessorBehaviorModel,
)

N = 10_000


def _sample(model: ProcessorBehaviorModel, pid: str, n: int = N) -> Counter:
    return Counter(model.sample_outcome(pid, 5000).outcome for _ in range(n))


class TestProfiles:
    def test_starts_normal(self, behavior, registry) -> None:
        for pid in registry.ids():
            assert behavior.get_profile(pid) == NORMAL_PROFILE
            assert behavior.is_degraded(pid) is False

    def test_degrade_and_restore(self, behavior) -> None:
        assert behavior.degrade("stripe") is True
        assert behavior.is_degraded("stripe")
        assert behavior.get_profile("stripe") == DEGRADED_PROFILE
        assert behavior.restore("stripe") is True
        assert not behavior.is_degraded("stripe")

    def test_unknown_processor_controls_are_noops(self, behavior) -> None:
        assert behavior.degrade("ghost") is False
        assert behavior.restore("ghost") is False
        assert behavior.is_degraded("ghost") is False
        assert behavior.get_profile("ghost") is None

    def test_invalid_profile_rejected(self) -> None:
        with pytest.raises(ValueError):
            FailureProfile(error_rate=0.6, timeout_rate=0.6, decline_rate=0.0, latency_multiplier=1)
        with pytest.raises(ValueError):
            FailureProfile(error_rate=0.1, timeout_rate=0.1, decline_rate=0.1, latency_multiplier=0)


class TestSampling:
    def test_normal_outcome_mix(self, behavior) -> None:
        counts = _sample(behavior, "stripe")
        decline = counts[OutcomeKind.DECLINED] / N
        technical = (counts[OutcomeKind.ERROR] + counts[OutcomeKind.TIMEOUT]) / N
        assert decline == pytest.approx(0.08, abs=0.015)
        assert technical == pytest.approx(0.01, abs=0.006)

    def test_degraded_outcome_mix(self, behavior) -> None:
        behavior.degrade("veloce")
        counts = _sample(behavior, "veloce")
        technical = (counts[OutcomeKind.ERROR] + counts[OutcomeKind.TIMEOUT]) / N
        assert technical == pytest.approx(0.75, abs=0.03)
        assert counts[OutcomeKind.TIMEOUT] / N == pytest.approx(0.35, abs=0.03)

    def test_timeouts_report_the_ceiling(self, behavior) -> None:
        behavior.degrade("braintree")
        results = [behavior.sample_outcome("braintree", 100) for _ in range(500)]
        timeouts = [r for r in results if r.outcome is OutcomeKind.TIMEOUT]
        assert timeouts
        assert all(r.latency_ms == TIMEOUT_CEILING_MS for r in timeouts)

    @pytest.mark.parametrize("degraded", [False, True])
    def test_latency_within_jitter_band(self, behavior, registry, degraded: bool) -> None:
        processor = registry.get("stripe")
        if degraded:
            behavior.degrade("stripe")
        base = processor.base_latency_ms * behavior.get_profile("stripe").latency_multiplier
        for _ in range(1000):
            result = behavior.sample_outcome("stripe", 100)
            if result.outcome is OutcomeKind.TIMEOUT:
                continue
            assert base <= result.latency_ms <= round(base * (1 + JITTER_FRACTION))

    def test_unknown_processor_raises(self, behavior) -> None:
        with pytest.raises(UnknownProcessorError) as exc_info:
            behavior.sample_outcome("ghost", 100)
        assert exc_info.value.processor_id == "ghost"

    def test_seeded_models_agree(self, registry) -> None:
        first = ProcessorBehaviorModel(registry, seed=5)
        second = ProcessorBehaviorModel(registry, seed=5)
        assert [first.sample_outcome("veloce", 1) for _ in range(100)] == [
            second.sample_outcome("veloce", 1) for _ in range(100)
        ]


def _recording_model(
    registry, profile: FailureProfile
) -> tuple[ProcessorBehaviorModel, list[float]]:
    waits: list[float] = []

    async def record_sleep(seconds: float) -> None:
        waits.append(seconds)

    model = ProcessorBehaviorModel(registry, seed=1, sleep=record_sleep, normal_profile=profile)
    return model, waits


class TestProcessTransaction:
    @pytest.mark.asyncio
    async def test_waits_out_latency(self, registry) -> None:
        reliable = FailureProfile(
            error_rate=0.0, timeout_rate=0.0, decline_rate=0.0, latency_multiplier=1.0
        )
        model, waits = _recording_model(registry, reliable)
        result = await model.process_transaction("veloce", 2500)
        assert result.outcome is OutcomeKind.SUCCESS
        assert waits == [pytest.approx(result.latency_ms / 1000)]

    @pytest.mark.asyncio
    async def test_timeout_waits_computed_latency(self, registry) -> None:
        timeouts_only = FailureProfile(
            error_rate=0.0, timeout_rate=1.0, decline_rate=0.0, latency_multiplier=1.0
        )
        model, waits = _recording_model(registry, timeouts_only)
        base = registry.get("veloce").base_latency_ms
        for _ in range(20):
            result = await model.process_transaction("veloce", 2500)
            assert result.outcome is OutcomeKind.TIMEOUT
            assert result.latency_ms == TIMEOUT_CEILING_MS
        assert len(waits) == 20
        upper = (base * (1 + JITTER_FRACTION) + 1) / 1000
        assert all(base / 1000 <= w <= upper for w in waits)

    @pytest.mark.asyncio
    async def test_timeout_wait_is_capped_at_ceiling(self, registry) -> None:
        slow_timeouts = FailureProfile(
            error_rate=0.0, timeout_rate=1.0, decline_rate=0.0, latency_multiplier=50.0
        )
        model, waits = _recording_model(registry, slow_timeouts)
        result = await model.process_transaction("veloce", 2500)
        assert result.outcome is OutcomeKind.TIMEOUT
        assert waits == [pytest.approx(TIMEOUT_CEILING_MS / 1000)]

    @pytest.mark.asyncio
    async def test_slow_success_waits_full_latency(self, registry) -> None:
        slow = FailureProfile(
            error_rate=0.0, timeout_rate=0.0, decline_rate=0.0, latency_multiplier=50.0
        )
        model, waits = _recording_model(registry, slow)
        result = await model.process_transaction("veloce", 2500)
        assert result.outcome is OutcomeKind.SUCCESS
        assert result.latency_ms > TIMEOUT_CEILING_MS
        assert waits == [pytest.approx(result.latency_ms / 1000)]
