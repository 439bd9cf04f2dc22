"""Stochastic stand-in for a real payment network call.

Each processor carries a mutable :class:`FailureProfile` that operators flip
between the normal and degraded presets.  A transaction's outcome is decided
by one uniform draw bucketed against cumulative thresholds (timeout, then
error, then decline, with everything else a success).  Latency is the
processor's base latency scaled by the profile multiplier plus up to 40%
jitter.  Timeouts report the client-side ceiling as their latency, but the
call itself only takes the computed latency (capped at the ceiling).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import numpy as np

from smart_payment_router.domain.enums import OutcomeKind
from smart_payment_router.domain.values import (
    DEGRADED_PROFILE,
    NORMAL_PROFILE,
    FailureProfile,
    TransactionResult,
)
from smart_payment_router.infrastructure.registry import ProcessorRegistry
from smart_payment_router.services.health import round_half_up

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

TIMEOUT_CEILING_MS = 3000
JITTER_FRACTION = 0.4


class ProcessorBehaviorModel:
    """Simulates processor responses from per-processor failure profiles.

    Parameters
    ----------
    registry:
        The processor pool.  Every registered processor starts on
        ``normal_profile``.
    seed:
        Random seed for reproducibility.  Ignored when *rng* is given.
    rng:
        Explicit numpy generator to draw from.
    sleep:
        Coroutine function awaited with the simulated latency in seconds.
        Tests inject a no-op to run transactions instantly.
    normal_profile / degraded_profile:
        Presets applied by :meth:`restore` and :meth:`degrade`.
    """

    def __init__(
        self,
        registry: ProcessorRegistry,
        seed: int | None = None,
        rng: np.random.Generator | None = None,
        sleep: Sleep | None = None,
        normal_profile: FailureProfile = NORMAL_PROFILE,
        degraded_profile: FailureProfile = DEGRADED_PROFILE,
        timeout_ceiling_ms: int = TIMEOUT_CEILING_MS,
        jitter_fraction: float = JITTER_FRACTION,
    ) -> None:
        self._registry = registry
        self._rng = rng if rng is not None else np.random.default_rng(seed)
        self._sleep = sleep or asyncio.sleep
        self._normal = normal_profile
        self._degraded = degraded_profile
        self._timeout_ceiling_ms = timeout_ceiling_ms
        self._jitter_fraction = jitter_fraction
        self._profiles: dict[str, FailureProfile] = {
            pid: normal_profile for pid in registry.ids()
        }

    # -- operator controls ---------------------------------------------------

    def degrade(self, processor_id: str) -> bool:
        """Switch *processor_id* to the degraded preset.  ``False`` if unknown."""
        return self._set_profile(processor_id, self._degraded)

    def restore(self, processor_id: str) -> bool:
        """Switch *processor_id* back to the normal preset.  ``False`` if unknown."""
        return self._set_profile(processor_id, self._normal)

    def is_degraded(self, processor_id: str) -> bool:
        profile = self._profiles.get(processor_id)
        return profile.degraded if profile is not None else False

    def get_profile(self, processor_id: str) -> FailureProfile | None:
        return self._profiles.get(processor_id)

    def _set_profile(self, processor_id: str, profile: FailureProfile) -> bool:
        if processor_id not in self._profiles:
            logger.debug("Ignoring profile change for unknown processor %r", processor_id)
            return False
        self._profiles[processor_id] = profile
        logger.info(
            "Processor %s now %s", processor_id,
            "degraded" if profile.degraded else "normal",
        )
        return True

    # -- simulation ----------------------------------------------------------

    def sample_outcome(self, processor_id: str, amount: int) -> TransactionResult:
        """Draw an outcome and latency for one transaction without waiting.

        *amount* is accepted for realism; it does not influence the outcome.
        Raises :class:`UnknownProcessorError` for unregistered processors.
        """
        return self._draw(processor_id)[0]

    def _draw(self, processor_id: str) -> tuple[TransactionResult, int]:
        """Return the result and the computed latency to wait out."""
        processor = self._registry.get(processor_id)
        profile = self._profiles[processor_id]

        base_latency = processor.base_latency_ms * profile.latency_multiplier
        jitter = float(self._rng.random()) * base_latency * self._jitter_fraction
        latency_ms = round_half_up(base_latency + jitter)

        rand = float(self._rng.random())
        if rand < profile.timeout_rate:
            result = TransactionResult(OutcomeKind.TIMEOUT, self._timeout_ceiling_ms)
            return result, min(latency_ms, self._timeout_ceiling_ms)
        if rand < profile.timeout_rate + profile.error_rate:
            return TransactionResult(OutcomeKind.ERROR, latency_ms), latency_ms
        if rand < profile.timeout_rate + profile.error_rate + profile.decline_rate:
            return TransactionResult(OutcomeKind.DECLINED, latency_ms), latency_ms
        return TransactionResult(OutcomeKind.SUCCESS, latency_ms), latency_ms

    async def process_transaction(self, processor_id: str, amount: int) -> TransactionResult:
        """Simulate the call: sample an outcome, then wait out its latency.

        A timeout waits only for the computed latency, capped at the
        ceiling, even though it reports the ceiling.
        """
        result, wait_ms = self._draw(processor_id)
        await self._sleep(wait_ms / 1000.0)
        return result
