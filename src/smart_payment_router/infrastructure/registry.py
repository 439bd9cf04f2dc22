"""Processor registry for the smart payment router.

Holds the fixed, ordered pool of :class:`Processor` definitions that every
other component reads.  The registry is built once at startup and never
mutated afterwards; lookups for unknown ids either raise
:class:`UnknownProcessorError` (``get``) or return ``None``
(``get_or_none``) so that health and routing paths can treat stale ids as
no-ops.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from smart_payment_router.domain.exceptions import UnknownProcessorError
from smart_payment_router.domain.values import Processor

logger = logging.getLogger(__name__)


DEFAULT_PROCESSORS: tuple[Processor, ...] = (
    Processor(id="veloce", name="Veloce Pay", fee_basis_points=300, base_latency_ms=120),
    Processor(id="stripe", name="Stripe", fee_basis_points=290, base_latency_ms=180),
    Processor(id="braintree", name="Braintree", fee_basis_points=250, base_latency_ms=240),
)


class ProcessorRegistry:
    """Read-only, insertion-ordered collection of processors keyed by id.

    Usage::

        registry = ProcessorRegistry(DEFAULT_PROCESSORS)
        registry.get("stripe").fee_basis_points
        registry.ids()  # ["veloce", "stripe", "braintree"]
    """

    def __init__(self, processors: Iterable[Processor]) -> None:
        self._processors: dict[str, Processor] = {}
        for processor in processors:
            if processor.id in self._processors:
                raise ValueError(
                    f"Processor '{processor.id}' is already registered as "
                    f"{self._processors[processor.id]!r}."
                )
            self._processors[processor.id] = processor
            logger.debug("Registered processor %s: %r", processor.id, processor)
        if not self._processors:
            raise ValueError("ProcessorRegistry requires at least one processor")
        self._max_fee = max(p.fee_basis_points for p in self._processors.values())

    # ------------------------------------------------------------------ #
    #  Lookup                                                              #
    # ------------------------------------------------------------------ #

    def get(self, processor_id: str) -> Processor:
        """Return the processor registered under *processor_id*.

        Raises :class:`UnknownProcessorError` if not found.
        """
        try:
            return self._processors[processor_id]
        except KeyError:
            raise UnknownProcessorError(
                processor_id,
                details={"available": self.ids()},
            ) from None

    def get_or_none(self, processor_id: str) -> Processor | None:
        """Return the processor or ``None`` if not found."""
        return self._processors.get(processor_id)

    def has(self, processor_id: str) -> bool:
        """Return ``True`` if *processor_id* is registered."""
        return processor_id in self._processors

    # ------------------------------------------------------------------ #
    #  Introspection                                                       #
    # ------------------------------------------------------------------ #

    def ids(self) -> list[str]:
        """Return processor ids in registration order."""
        return list(self._processors.keys())

    def all(self) -> list[Processor]:
        """Return all processors in registration order."""
        return list(self._processors.values())

    def max_fee_basis_points(self) -> int:
        """Fee of the most expensive processor in the pool."""
        return self._max_fee

    def cost_saved_basis_points(self, processor_id: str) -> int:
        """Fee saved by routing to *processor_id* instead of the priciest one."""
        return self._max_fee - self.get(processor_id).fee_basis_points

    # ------------------------------------------------------------------ #
    #  Dunder helpers                                                      #
    # ------------------------------------------------------------------ #

    def __len__(self) -> int:
        return len(self._processors)

    def __iter__(self) -> Iterator[Processor]:
        return iter(self._processors.values())

    def __contains__(self, processor_id: object) -> bool:
        return processor_id in self._processors

    def __repr__(self) -> str:
        return f"<ProcessorRegistry [{', '.join(self._processors)}]>"


def default_registry() -> ProcessorRegistry:
    """Build a registry holding the three default processors."""
    return ProcessorRegistry(DEFAULT_PROCESSORS)
