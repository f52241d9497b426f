"""
Metrics Collector for the fan-out service.

Process-local counters for observability, exposed through the detailed
health check and the Prometheus endpoint. Counters are never used for
delivery decisions.
"""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass
from typing import Any


@dataclass
class LifecycleMetrics:
    """Metrics for lifecycle notifications."""
    connects: int = 0
    disconnects: int = 0
    ignored: int = 0


@dataclass
class EventMetrics:
    """Metrics for stream event processing."""
    batches: int = 0
    received: int = 0
    malformed: int = 0
    broadcast: int = 0
    snapshots: int = 0


@dataclass
class PushMetrics:
    """Metrics for per-connection pushes."""
    delivered: int = 0
    stale_pruned: int = 0
    transient_failed: int = 0


class MetricsCollector:
    """
    Thread-safe metrics collector.

    Usage:
        metrics = MetricsCollector()
        metrics.increment("push", "delivered")
        stats = metrics.get_snapshot()
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._lifecycle = LifecycleMetrics()
        self._event = EventMetrics()
        self._push = PushMetrics()
        self._unrecognized_triggers = 0
        self._registry_unavailable = 0

    def _group(self, group: str) -> Any:
        groups = {
            "lifecycle": self._lifecycle,
            "event": self._event,
            "push": self._push,
        }
        if group not in groups:
            raise KeyError(f"Unknown metrics group: {group}")
        return groups[group]

    def increment(self, group: str, name: str, amount: int = 1) -> None:
        """Increment ``group.name`` by ``amount``."""
        with self._lock:
            target = self._group(group)
            setattr(target, name, getattr(target, name) + amount)

    def increment_unrecognized(self) -> None:
        with self._lock:
            self._unrecognized_triggers += 1

    def increment_registry_unavailable(self) -> None:
        with self._lock:
            self._registry_unavailable += 1

    def get_snapshot(self) -> dict[str, Any]:
        """Get a point-in-time copy of every counter."""
        with self._lock:
            return {
                "lifecycle": asdict(self._lifecycle),
                "events": asdict(self._event),
                "pushes": asdict(self._push),
                "unrecognized_triggers": self._unrecognized_triggers,
                "registry_unavailable": self._registry_unavailable,
            }

    def reset(self) -> None:
        """Reset all metrics (for testing)."""
        with self._lock:
            self._lifecycle = LifecycleMetrics()
            self._event = EventMetrics()
            self._push = PushMetrics()
            self._unrecognized_triggers = 0
            self._registry_unavailable = 0


def generate_prometheus_metrics(
    metrics: MetricsCollector,
    registry_size: int | None = None,
    prefix: str = "fanout",
) -> str:
    """
    Format the collector in Prometheus exposition format.

    Every counter becomes ``{prefix}_{group}_{name}_total``; the registry
    size, when known, is exported as a gauge.
    """
    snapshot = metrics.get_snapshot()
    lines: list[str] = []

    def counter(name: str, value: int, help_text: str) -> None:
        lines.append(f"# HELP {name} {help_text}")
        lines.append(f"# TYPE {name} counter")
        lines.append(f"{name} {value}")

    for group in ("lifecycle", "events", "pushes"):
        for name, value in snapshot[group].items():
            counter(
                f"{prefix}_{group}_{name}_total",
                value,
                f"{group.capitalize()} {name.replace('_', ' ')}",
            )

    counter(
        f"{prefix}_unrecognized_triggers_total",
        snapshot["unrecognized_triggers"],
        "Invocations with an unrecognized trigger shape",
    )
    counter(
        f"{prefix}_registry_unavailable_total",
        snapshot["registry_unavailable"],
        "Invocations aborted because the registry was unreachable",
    )

    if registry_size is not None:
        lines.append(f"# HELP {prefix}_registry_connections Connections currently registered")
        lines.append(f"# TYPE {prefix}_registry_connections gauge")
        lines.append(f"{prefix}_registry_connections {registry_size}")

    return "\n".join(lines) + "\n"
