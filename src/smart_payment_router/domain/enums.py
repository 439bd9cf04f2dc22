"""Domain enumerations for the smart payment router.

These enums capture the fixed vocabularies shared by every layer: transaction
outcomes, processor health statuses, manual routing overrides, and the
simulation engine lifecycle.
"""

from enum import Enum


class OutcomeKind(Enum):
    """Terminal result of a single simulated transaction."""

    SUCCESS = "success"
    DECLINED = "declined"  # valid issuer response, not a technical fault
    ERROR = "error"
    TIMEOUT = "timeout"

    @property
    def is_technical_failure(self) -> bool:
        """True for outcomes that count against technical availability."""
        return self in (OutcomeKind.ERROR, OutcomeKind.TIMEOUT)


class ProcessorStatus(Enum):
    """Health classification derived from a processor's event window."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DOWN = "down"


class OverrideState(Enum):
    """Operator override applied on top of computed health."""

    FORCE_ON = "force_on"
    FORCE_OFF = "force_off"
    CLEAR = "clear"  # request only; never stored


class EngineState(Enum):
    """Lifecycle states of the simulation engine."""

    STOPPED = "stopped"
    RUNNING = "running"
