"""Configuration dataclasses for the smart payment router.

Two sections: ``HealthConfig`` (window and status thresholds read by the
health tracker) and ``SimulationConfig`` (tick cadence, buffer size, amount
range and seeding for the engine).  ``validate()`` raises ``ValueError`` on
out-of-range values.

Configs are **frozen** so a component can hand out its current config without
risking silent mutation; runtime changes go through :meth:`HealthConfig.merged`,
which builds and validates a replacement.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields, replace
from typing import Any


# ===================================================================== #
#  Health Configuration                                                  #
# ===================================================================== #

@dataclass(frozen=True)
class HealthConfig:
    """Thresholds governing the per-processor health estimator.

    Attributes
    ----------
    window_size_ms:
        Length of the sliding event window.
    degraded_threshold:
        Technical availability below this marks a processor ``degraded``.
    down_threshold:
        Technical availability below this marks a processor ``down``.
    recent_sample_size:
        Number of most recent events checked for fast detection.
    min_samples:
        Minimum window size before status thresholds are applied.
    """

    window_size_ms: int = 15_000
    degraded_threshold: float = 0.92
    down_threshold: float = 0.75
    recent_sample_size: int = 8
    min_samples: int = 6

    def validate(self) -> None:
        """Raise ``ValueError`` if any field is out of valid range."""
        if self.window_size_ms <= 0:
            raise ValueError(
                f"window_size_ms must be > 0, got {self.window_size_ms}"
            )
        if not (0.0 <= self.degraded_threshold <= 1.0):
            raise ValueError(
                f"degraded_threshold must be in [0, 1], got {self.degraded_threshold}"
            )
        if not (0.0 <= self.down_threshold <= 1.0):
            raise ValueError(
                f"down_threshold must be in [0, 1], got {self.down_threshold}"
            )
        if self.down_threshold > self.degraded_threshold:
            raise ValueError(
                f"down_threshold ({self.down_threshold}) must not exceed "
                f"degraded_threshold ({self.degraded_threshold})"
            )
        if self.recent_sample_size < 1:
            raise ValueError(
                f"recent_sample_size must be >= 1, got {self.recent_sample_size}"
            )
        if self.min_samples < 0:
            raise ValueError(f"min_samples must be >= 0, got {self.min_samples}")

    def merged(self, partial: dict[str, Any]) -> HealthConfig:
        """Return a validated copy with *partial* applied over this config."""
        valid_keys = {f.name for f in fields(self)}
        unknown = sorted(set(partial) - valid_keys)
        if unknown:
            raise ValueError(f"Unknown health config keys: {unknown}")
        cfg = replace(self, **partial)
        cfg.validate()
        return cfg

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HealthConfig:
        valid_keys = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        cfg = cls(**filtered)
        cfg.validate()
        return cfg


# ===================================================================== #
#  Simulation Configuration                                              #
# ===================================================================== #

@dataclass(frozen=True)
class SimulationConfig:
    """Parameters for the simulation engine's tick loop and bookkeeping.

    Attributes
    ----------
    tick_interval_ms:
        Fixed cadence at which new transactions are issued.
    max_stored_transactions:
        Capacity of the most-recent-first transaction buffer.
    tps_window_ms:
        Length of the fixed window used for the throughput counter.
    min_amount / max_amount:
        Inclusive range of transaction amounts, in minor currency units.
    latency_ema_alpha:
        Smoothing factor of the aggregate latency moving average.
    history_count / history_span_ms:
        Size and time span of the synthetic history seeded at startup.
    seed:
        Random seed for reproducible runs.  ``None`` draws fresh entropy.
    """

    tick_interval_ms: int = 350
    max_stored_transactions: int = 100
    tps_window_ms: int = 5_000
    min_amount: int = 1_000
    max_amount: int = 30_000
    latency_ema_alpha: float = 0.1
    history_count: int = 500
    history_span_ms: int = 300_000
    seed: int | None = None

    def validate(self) -> None:
        if self.tick_interval_ms < 1:
            raise ValueError(
                f"tick_interval_ms must be >= 1, got {self.tick_interval_ms}"
            )
        if self.max_stored_transactions < 1:
            raise ValueError(
                "max_stored_transactions must be >= 1, "
                f"got {self.max_stored_transactions}"
            )
        if self.tps_window_ms < 1:
            raise ValueError(f"tps_window_ms must be >= 1, got {self.tps_window_ms}")
        if self.min_amount < 0 or self.max_amount < self.min_amount:
            raise ValueError(
                f"amount range [{self.min_amount}, {self.max_amount}] is invalid"
            )
        if not (0.0 < self.latency_ema_alpha <= 1.0):
            raise ValueError(
                f"latency_ema_alpha must be in (0, 1], got {self.latency_ema_alpha}"
            )
        if self.history_count < 0:
            raise ValueError(f"history_count must be >= 0, got {self.history_count}")
        if self.history_span_ms < 1:
            raise ValueError(
                f"history_span_ms must be >= 1, got {self.history_span_ms}"
            )
        if self.seed is not None and self.seed < 0:
            raise ValueError(f"seed must be >= 0, got {self.seed}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SimulationConfig:
        valid_keys = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        cfg = cls(**filtered)
        cfg.validate()
        return cfg


# ===================================================================== #
#  Unified config loader                                                 #
# ===================================================================== #

_CONFIG_MAP: dict[str, type] = {
    "health": HealthConfig,
    "simulation": SimulationConfig,
}


def load_config_from_json(json_str: str) -> dict[str, Any]:
    """Parse a JSON string into a dict of typed config objects.

    The JSON is expected to be an object whose top-level keys correspond to
    config section names (``health``, ``simulation``).  Unknown sections are
    preserved as raw dicts.

    Returns a dict mapping section name -> config instance (or raw dict).
    """
    raw = json.loads(json_str)
    if not isinstance(raw, dict):
        raise ValueError("Top-level JSON must be an object")
    result: dict[str, Any] = {}
    for section, data in raw.items():
        cls = _CONFIG_MAP.get(section)
        if cls is not None and isinstance(data, dict):
            result[section] = cls.from_dict(data)
        else:
            result[section] = data
    return result
