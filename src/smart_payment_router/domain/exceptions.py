"""Domain exceptions for the smart payment router.

All domain-specific exceptions inherit from ``SmartRouterError`` so callers
can catch the full family with a single ``except`` clause when needed.
"""

from __future__ import annotations

from typing import Any


class SmartRouterError(Exception):
    """Base exception for all smart payment router errors."""

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = details or {}


class UnknownProcessorError(SmartRouterError, KeyError):
    """Raised when a processor id is not present in the registry.

    Health and routing paths treat unknown ids as no-ops; this exception is
    reserved for lookups where a missing processor is a programming error
    (e.g. asking the behavior model to process a transaction for it).
    """

    def __init__(
        self,
        processor_id: str = "",
        message: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message or f"Unknown processor: {processor_id!r}", details)
        self.processor_id = processor_id

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0]) if self.args else ""
