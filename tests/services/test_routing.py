"""Tests for SmartRouter selection and overrides."""

from __future__ import annotations

from collections import Counter

import pytest

from smart_payment_router.domain.enums import OutcomeKind, OverrideState, ProcessorStatus
from smart_payment_router.domain.values import Processor
from smart_payment_router.infrastructure.registry import ProcessorRegistry
from smart_payment_router.services.health import HealthTracker
from smart_payment_router.services.routing import MAX_COST_BONUS, SmartRouter


def _fail(tracker: HealthTracker, pid: str, n: int = 10, kind: OutcomeKind = OutcomeKind.ERROR,
          latency: float = 100) -> None:
    for _ in range(n):
        tracker.record_event(pid, kind, latency)


def _draw(router: SmartRouter, n: int) -> Counter:
    return Counter(router.select_processor() for _ in range(n))


@pytest.fixture
def twin_tracker(twin_registry, clock) -> HealthTracker:
    return HealthTracker(twin_registry.ids(), clock=clock)


@pytest.fixture
def twin_router(twin_tracker, twin_registry) -> SmartRouter:
    return SmartRouter(twin_tracker, twin_registry, seed=42)


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------


class TestEligibility:
    def test_all_healthy_always_selects(self, router: SmartRouter, registry) -> None:
        picks = _draw(router, 300)
        assert None not in picks
        assert set(picks) <= set(registry.ids())

    def test_none_when_every_processor_is_down(self, router, tracker, registry) -> None:
        for pid in registry.ids():
            _fail(tracker, pid)
        assert all(h.status is ProcessorStatus.DOWN for h in tracker.get_all_health())
        assert router.select_processor() is None

    def test_down_processor_is_never_selected(self, router, tracker) -> None:
        _fail(tracker, "veloce")
        picks = _draw(router, 500)
        assert picks["veloce"] == 0
        assert picks["stripe"] > 0
        assert picks["braintree"] > 0

    def test_single_candidate_is_returned(self, router, tracker) -> None:
        _fail(tracker, "veloce")
        _fail(tracker, "stripe")
        assert _draw(router, 50) == Counter({"braintree": 50})

    def test_force_off_excludes_healthy(self, router) -> None:
        router.set_override("stripe", OverrideState.FORCE_OFF)
        assert _draw(router, 300)["stripe"] == 0

    def test_force_off_everything_drops(self, router, registry) -> None:
        for pid in registry.ids():
            router.set_override(pid, "force_off")
        assert router.select_processor() is None

    def test_force_on_includes_down(self, router, tracker, registry) -> None:
        for pid in registry.ids():
            _fail(tracker, pid)
        router.set_override("braintree", OverrideState.FORCE_ON)
        assert router.select_processor() == "braintree"

    def test_zero_total_weight_falls_back_to_uniform(self, twin_router, twin_tracker) -> None:
        # all timeouts at the ceiling latency score exactly zero
        for pid in ("a", "b"):
            _fail(twin_tracker, pid, kind=OutcomeKind.TIMEOUT, latency=3000)
            twin_router.set_override(pid, OverrideState.FORCE_ON)
        assert all(h.score == 0 for h in twin_tracker.get_all_health())
        picks = _draw(twin_router, 400)
        assert picks["a"] > 100
        assert picks["b"] > 100


# ---------------------------------------------------------------------------
# Weighting
# ---------------------------------------------------------------------------


class TestWeighting:
    def test_identical_processors_split_evenly(self, twin_router) -> None:
        n = 4000
        picks = _draw(twin_router, n)
        assert picks["a"] / n == pytest.approx(0.5, abs=0.05)
        assert picks["b"] / n == pytest.approx(0.5, abs=0.05)

    def test_cost_bonus_favors_cheaper(self, priced_registry, clock) -> None:
        tracker = HealthTracker(priced_registry.ids(), clock=clock)
        router = SmartRouter(tracker, priced_registry, seed=3)
        assert router.cost_bonus("pricey") == 0
        assert router.cost_bonus("cheap") == 3
        weights = {e.processor_id: e.weight for e in router.get_routing_info()}
        assert weights["cheap"] > weights["pricey"]

    def test_cheaper_processor_wins_more_often(self, clock) -> None:
        registry = ProcessorRegistry([
            Processor(id="free", name="Free", fee_basis_points=0, base_latency_ms=100),
            Processor(id="full", name="Full", fee_basis_points=300, base_latency_ms=100),
        ])
        router = SmartRouter(HealthTracker(registry.ids(), clock=clock), registry, seed=21)
        assert router.cost_bonus("free") == MAX_COST_BONUS
        picks = _draw(router, 40_000)
        assert picks["free"] > picks["full"]

    def test_cost_bonus_half_rounds_up(self, clock) -> None:
        registry = ProcessorRegistry([
            Processor(id="half", name="Half", fee_basis_points=100, base_latency_ms=100),
            Processor(id="full", name="Full", fee_basis_points=200, base_latency_ms=100),
        ])
        router = SmartRouter(HealthTracker(registry.ids(), clock=clock), registry, seed=1)
        # 100 / 200 * 5 == 2.5
        assert router.cost_bonus("half") == 3
        weights = {e.processor_id: e.weight for e in router.get_routing_info()}
        assert weights == {"half": 103, "full": 100}

    def test_cost_bonus_bounds(self, router, registry) -> None:
        for pid in registry.ids():
            assert 0 <= router.cost_bonus(pid) <= MAX_COST_BONUS
        assert router.cost_bonus("ghost") == 0

    def test_lower_score_gets_less_traffic(self, twin_router, twin_tracker) -> None:
        # 10% errors spread evenly: degraded, not down
        for i in range(100):
            kind = OutcomeKind.ERROR if i % 10 == 5 else OutcomeKind.SUCCESS
            twin_tracker.record_event("a", kind, 100)
            twin_tracker.record_event("b", OutcomeKind.SUCCESS, 100)
        health = {h.processor_id: h for h in twin_tracker.get_all_health()}
        assert health["a"].status is ProcessorStatus.DEGRADED
        assert health["a"].score < health["b"].score
        picks = _draw(twin_router, 4000)
        assert 0 < picks["a"] < picks["b"]

    def test_seeded_routers_agree(self, twin_registry, clock) -> None:
        tracker = HealthTracker(twin_registry.ids(), clock=clock)
        first = SmartRouter(tracker, twin_registry, seed=99)
        second = SmartRouter(tracker, twin_registry, seed=99)
        assert [first.select_processor() for _ in range(50)] == [
            second.select_processor() for _ in range(50)
        ]


# ---------------------------------------------------------------------------
# Overrides
# ---------------------------------------------------------------------------


class TestOverrides:
    def test_set_and_get(self, router) -> None:
        assert router.get_override("stripe") is None
        assert router.set_override("stripe", "force_on") is True
        assert router.get_override("stripe") is OverrideState.FORCE_ON

    def test_clear_returns_to_automatic(self, router) -> None:
        router.set_override("stripe", OverrideState.FORCE_OFF)
        router.set_override("stripe", OverrideState.CLEAR)
        assert router.get_override("stripe") is None

    def test_unknown_processor_is_ignored(self, router) -> None:
        assert router.set_override("ghost", OverrideState.FORCE_ON) is False
        assert router.get_override("ghost") is None

    def test_invalid_state_raises(self, router) -> None:
        with pytest.raises(ValueError):
            router.set_override("stripe", "sometimes")

    def test_routing_info_reflects_overrides(self, router, registry) -> None:
        router.set_override("veloce", OverrideState.FORCE_OFF)
        info = router.get_routing_info()
        assert [e.processor_id for e in info] == registry.ids()
        by_id = {e.processor_id: e for e in info}
        assert by_id["veloce"].override is OverrideState.FORCE_OFF
        assert by_id["veloce"].eligible is False
        assert by_id["stripe"].eligible is True
        assert by_id["stripe"].weight == by_id["stripe"].health.score + router.cost_bonus("stripe")
