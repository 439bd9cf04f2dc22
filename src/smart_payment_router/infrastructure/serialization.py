"""Serialization utilities for the smart payment router.

Provides ``to_dict`` / ``from_dict`` conversion for the value objects, events
and configs that a transport layer relays to clients.  The core never picks a
wire format; these helpers only produce JSON-ready structures.

Design goals:
- Zero third-party deps (stdlib ``json`` only).
- Every ``to_dict`` output is JSON-serializable (no enums, tuples or numpy
  scalars).
- ``from_dict`` reconstructors accept permissive input and raise
  ``ValueError`` for truly unrecoverable data.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, is_dataclass
from typing import Any

from smart_payment_router.domain.enums import OutcomeKind, OverrideState, ProcessorStatus
from smart_payment_router.domain.events import (
    DomainEvent,
    HealthUpdated,
    MetricsUpdated,
    OverrideChanged,
    ProcessorDegraded,
    ProcessorRestored,
    SimulationStateChanged,
    ThresholdsUpdated,
    TransactionCompleted,
)
from smart_payment_router.domain.values import (
    AggregateMetrics,
    FailureProfile,
    HealthSnapshot,
    Processor,
    ProcessorMetrics,
    RoutingEntry,
    SimulationState,
    TransactionRecord,
)
from smart_payment_router.infrastructure.config import HealthConfig, SimulationConfig

logger = logging.getLogger(__name__)


# =========================================================================== #
#  Generic helpers                                                             #
# =========================================================================== #

def _enum_val(v: Any) -> Any:
    """Return the ``.value`` if *v* is an enum member, else *v* unchanged."""
    if hasattr(v, "value"):
        return v.value
    return v


def _require(data: dict[str, Any], key: str) -> Any:
    try:
        return data[key]
    except KeyError:
        raise ValueError(f"missing required field '{key}'") from None


# =========================================================================== #
#  Value objects                                                               #
# =========================================================================== #

def processor_to_dict(p: Processor) -> dict[str, Any]:
    return asdict(p)


def processor_from_dict(data: dict[str, Any]) -> Processor:
    return Processor(
        id=str(_require(data, "id")),
        name=str(data.get("name", data["id"])),
        fee_basis_points=int(_require(data, "fee_basis_points")),
        base_latency_ms=int(_require(data, "base_latency_ms")),
    )


def health_snapshot_to_dict(h: HealthSnapshot) -> dict[str, Any]:
    return {
        "processor_id": h.processor_id,
        "success_rate": h.success_rate,
        "decline_rate": h.decline_rate,
        "error_rate": h.error_rate,
        "timeout_rate": h.timeout_rate,
        "avg_latency_ms": h.avg_latency_ms,
        "total_requests": h.total_requests,
        "status": _enum_val(h.status),
        "score": h.score,
        "last_updated": h.last_updated,
    }


def health_snapshot_from_dict(data: dict[str, Any]) -> HealthSnapshot:
    return HealthSnapshot(
        processor_id=str(_require(data, "processor_id")),
        success_rate=float(data.get("success_rate", 1.0)),
        decline_rate=float(data.get("decline_rate", 0.0)),
        error_rate=float(data.get("error_rate", 0.0)),
        timeout_rate=float(data.get("timeout_rate", 0.0)),
        avg_latency_ms=float(data.get("avg_latency_ms", 0.0)),
        total_requests=int(data.get("total_requests", 0)),
        status=ProcessorStatus(data.get("status", "healthy")),
        score=int(data.get("score", 100)),
        last_updated=float(data.get("last_updated", 0.0)),
    )


def transaction_record_to_dict(tx: TransactionRecord) -> dict[str, Any]:
    return {
        "id": tx.id,
        "processor_id": tx.processor_id,
        "amount": tx.amount,
        "outcome": _enum_val(tx.outcome),
        "latency_ms": tx.latency_ms,
        "timestamp": tx.timestamp,
        "fee_basis_points": tx.fee_basis_points,
        "cost_saved_basis_points": tx.cost_saved_basis_points,
        "cost_saved_usd": tx.cost_saved_usd,
    }


def transaction_record_from_dict(data: dict[str, Any]) -> TransactionRecord:
    kwargs: dict[str, Any] = {}
    if "id" in data:
        kwargs["id"] = str(data["id"])
    return TransactionRecord(
        processor_id=str(_require(data, "processor_id")),
        amount=int(_require(data, "amount")),
        outcome=OutcomeKind(_require(data, "outcome")),
        latency_ms=int(data.get("latency_ms", 0)),
        timestamp=float(_require(data, "timestamp")),
        fee_basis_points=int(data.get("fee_basis_points", 0)),
        cost_saved_basis_points=int(data.get("cost_saved_basis_points", 0)),
        cost_saved_usd=float(data.get("cost_saved_usd", 0.0)),
        **kwargs,
    )


def processor_metrics_to_dict(pm: ProcessorMetrics) -> dict[str, Any]:
    return asdict(pm)


def aggregate_metrics_to_dict(m: AggregateMetrics) -> dict[str, Any]:
    return {
        "total_transactions": m.total_transactions,
        "successful_transactions": m.successful_transactions,
        "declined_transactions": m.declined_transactions,
        "failed_transactions": m.failed_transactions,
        "auth_rate": m.auth_rate,
        "total_cost_saved_usd": m.total_cost_saved_usd,
        "avg_latency_ms": m.avg_latency_ms,
        "transactions_per_second": m.transactions_per_second,
        "per_processor": {
            pid: processor_metrics_to_dict(pm) for pid, pm in m.per_processor.items()
        },
    }


def failure_profile_to_dict(fp: FailureProfile) -> dict[str, Any]:
    return asdict(fp)


def simulation_state_to_dict(s: SimulationState) -> dict[str, Any]:
    return {"running": s.running, "start_time": s.start_time}


def routing_entry_to_dict(r: RoutingEntry) -> dict[str, Any]:
    return {
        "processor_id": r.processor_id,
        "health": health_snapshot_to_dict(r.health),
        "override": _enum_val(r.override) if r.override is not None else None,
        "eligible": r.eligible,
        "weight": r.weight,
    }


def config_to_dict(cfg: HealthConfig | SimulationConfig) -> dict[str, Any]:
    return cfg.to_dict()


# =========================================================================== #
#  Events                                                                      #
# =========================================================================== #

# Message type names a transport uses to tag relayed events.
_EVENT_TYPES: dict[type, str] = {
    TransactionCompleted: "transaction",
    HealthUpdated: "health",
    MetricsUpdated: "metrics",
    SimulationStateChanged: "simulation",
    ProcessorDegraded: "processor_degraded",
    ProcessorRestored: "processor_restored",
    OverrideChanged: "override",
    ThresholdsUpdated: "thresholds",
}


def event_payload(event: DomainEvent) -> Any:
    """Return the JSON-ready payload carried by *event*."""
    if isinstance(event, TransactionCompleted):
        return transaction_record_to_dict(event.transaction) if event.transaction else None
    if isinstance(event, HealthUpdated):
        return [health_snapshot_to_dict(h) for h in event.health]
    if isinstance(event, MetricsUpdated):
        return aggregate_metrics_to_dict(event.metrics) if event.metrics else None
    if isinstance(event, SimulationStateChanged):
        return simulation_state_to_dict(event.state)
    if isinstance(event, (ProcessorDegraded, ProcessorRestored)):
        return {"processor_id": event.processor_id}
    if isinstance(event, OverrideChanged):
        return {
            "processor_id": event.processor_id,
            "override": _enum_val(event.override) if event.override else None,
        }
    if isinstance(event, ThresholdsUpdated):
        return dict(event.thresholds)
    raise TypeError(f"No payload mapping for {type(event).__name__}")


def event_to_message(event: DomainEvent) -> dict[str, Any]:
    """Wrap *event* as a ``{"type", "payload", "timestamp"}`` message."""
    try:
        type_name = _EVENT_TYPES[type(event)]
    except KeyError:
        raise TypeError(f"Unsupported event type {type(event).__name__}") from None
    return {
        "type": type_name,
        "payload": event_payload(event),
        "timestamp": event.timestamp,
    }


# =========================================================================== #
#  Dispatch                                                                    #
# =========================================================================== #

_SERIALIZERS: dict[type, tuple[Any, Any]] = {
    Processor: (processor_to_dict, processor_from_dict),
    HealthSnapshot: (health_snapshot_to_dict, health_snapshot_from_dict),
    TransactionRecord: (transaction_record_to_dict, transaction_record_from_dict),
    ProcessorMetrics: (processor_metrics_to_dict, None),
    AggregateMetrics: (aggregate_metrics_to_dict, None),
    FailureProfile: (failure_profile_to_dict, None),
    SimulationState: (simulation_state_to_dict, None),
    RoutingEntry: (routing_entry_to_dict, None),
    HealthConfig: (config_to_dict, None),
    SimulationConfig: (config_to_dict, None),
}


def serialize(obj: Any) -> Any:
    """Serialize a known domain/infrastructure object to JSON-ready data.

    Events become messages; lists and tuples are serialized element-wise.
    Raises ``TypeError`` for unsupported types.
    """
    if isinstance(obj, DomainEvent):
        return event_to_message(obj)
    if isinstance(obj, (list, tuple)):
        return [serialize(item) for item in obj]
    if isinstance(obj, OverrideState):
        return obj.value
    ser = _SERIALIZERS.get(type(obj))
    if ser is not None:
        to_fn, _ = ser
        return to_fn(obj)
    if is_dataclass(obj) and not isinstance(obj, type):
        logger.debug("Falling back to asdict() for %s", type(obj).__name__)
        return asdict(obj)
    raise TypeError(f"Cannot serialize object of type {type(obj).__name__}")


def deserialize(data: dict[str, Any], target_type: type) -> Any:
    """Deserialize a dict into *target_type*.

    Configs go through their ``from_dict`` classmethod.
    """
    ser = _SERIALIZERS.get(target_type)
    if ser is not None:
        _, from_fn = ser
        if from_fn is not None:
            return from_fn(data)
        if hasattr(target_type, "from_dict"):
            return target_type.from_dict(data)
    raise TypeError(f"No deserializer registered for {target_type.__name__}")


# =========================================================================== #
#  JSON helpers                                                                #
# =========================================================================== #

def to_json(obj: Any, *, indent: int | None = None) -> str:
    """Serialize a domain/infra object to a JSON string."""
    return json.dumps(serialize(obj), indent=indent, default=str)


def from_json(json_str: str, target_type: type) -> Any:
    """Deserialize a JSON string into *target_type*."""
    data = json.loads(json_str)
    return deserialize(data, target_type)
