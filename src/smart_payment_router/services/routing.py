"""Weighted-random processor selection.

:class:`SmartRouter` picks the processor for the next transaction from the
current health snapshots and the operator override map.  Candidates are drawn
with probability proportional to ``score + cost_bonus``.  Traffic therefore
drains away from a degrading processor in proportion to how far its score
falls, with no hard cutoff until it is marked ``down``, and healthy
runners-up still receive their share.
"""

from __future__ import annotations

import logging

import numpy as np

from smart_payment_router.domain.enums import OverrideState, ProcessorStatus
from smart_payment_router.domain.values import HealthSnapshot, RoutingEntry
from smart_payment_router.infrastructure.registry import ProcessorRegistry
from smart_payment_router.services.health import HealthTracker, round_half_up

logger = logging.getLogger(__name__)

# Points awarded to the cheapest processor relative to the priciest one.
MAX_COST_BONUS = 5


class SmartRouter:
    """Select processors by weighted-random sampling over health and cost.

    Parameters
    ----------
    tracker:
        Source of health snapshots.
    registry:
        The processor pool; defines candidate order and fees.
    seed:
        Random seed for reproducibility.  Ignored when *rng* is given.
    rng:
        Explicit numpy generator to draw from.
    """

    def __init__(
        self,
        tracker: HealthTracker,
        registry: ProcessorRegistry,
        seed: int | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        self._tracker = tracker
        self._registry = registry
        self._rng = rng if rng is not None else np.random.default_rng(seed)
        self._overrides: dict[str, OverrideState] = {}

    # -- selection -----------------------------------------------------------

    def select_processor(self) -> str | None:
        """Return the id of the processor for the next transaction.

        Returns ``None`` only when every processor is excluded, either by a
        ``down`` status or a ``force_off`` override, and none is forced on.
        """
        health = self._tracker.get_all_health(self._registry.ids())
        candidates = [h for h in health if self._is_eligible(h)]

        if not candidates:
            return None
        if len(candidates) == 1:
            return candidates[0].processor_id
        return self._weighted_random_select(candidates)

    def _is_eligible(self, health: HealthSnapshot) -> bool:
        override = self._overrides.get(health.processor_id)
        if override is OverrideState.FORCE_OFF:
            return False
        if override is OverrideState.FORCE_ON:
            return True
        return health.status is not ProcessorStatus.DOWN

    def cost_bonus(self, processor_id: str) -> int:
        """Bonus (0..5) favoring cheaper processors over the priciest one."""
        processor = self._registry.get_or_none(processor_id)
        max_fee = self._registry.max_fee_basis_points()
        if processor is None or max_fee == 0:
            return 0
        return round_half_up(
            (max_fee - processor.fee_basis_points) / max_fee * MAX_COST_BONUS
        )

    def _weight(self, health: HealthSnapshot) -> int:
        return health.score + self.cost_bonus(health.processor_id)

    def _weighted_random_select(self, candidates: list[HealthSnapshot]) -> str:
        weights = [self._weight(h) for h in candidates]
        total_weight = sum(weights)

        if total_weight <= 0:
            idx = int(self._rng.integers(len(candidates)))
            return candidates[idx].processor_id

        cursor = float(self._rng.random()) * total_weight
        for candidate, weight in zip(candidates, weights):
            cursor -= weight
            if cursor <= 0:
                return candidate.processor_id
        # floating-point safety
        return candidates[-1].processor_id

    # -- overrides -----------------------------------------------------------

    def set_override(self, processor_id: str, state: OverrideState | str) -> bool:
        """Force a processor on, off, or back to automatic (``clear``).

        Returns ``False`` (and changes nothing) for unknown processors.
        Raises ``ValueError`` for an unrecognized *state*.
        """
        state = OverrideState(state)
        if not self._registry.has(processor_id):
            logger.debug("Ignoring override for unknown processor %r", processor_id)
            return False
        if state is OverrideState.CLEAR:
            self._overrides.pop(processor_id, None)
        else:
            self._overrides[processor_id] = state
        logger.info("Override for %s set to %s", processor_id, state.value)
        return True

    def get_override(self, processor_id: str) -> OverrideState | None:
        """Current override for *processor_id*, or ``None`` when automatic."""
        return self._overrides.get(processor_id)

    def get_routing_info(self) -> list[RoutingEntry]:
        """Override, health, eligibility and weight for every processor."""
        entries = []
        for health in self._tracker.get_all_health(self._registry.ids()):
            entries.append(
                RoutingEntry(
                    processor_id=health.processor_id,
                    health=health,
                    override=self.get_override(health.processor_id),
                    eligible=self._is_eligible(health),
                    weight=self._weight(health),
                )
            )
        return entries
