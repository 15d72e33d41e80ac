"""Observability Module - Logging, Tracing, and Metrics

This module provides:
1. Structured logging configuration shared by every module
2. Event tracing for the three things the engine reacts to: inbound
   messages, reminder deliveries and idle sweeps
3. Per-event counters (handled, failed, latency) and the identities whose
   events failed most recently
"""
import logging
from collections import deque
from typing import Any, Deque, Dict, Optional
from dataclasses import dataclass, field
from datetime import datetime

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(name)s | %(levelname)s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger("aliya")

RECENT_FAILURES = 20


@dataclass
class EventTrace:
    """One handled event, optionally tied to a user."""
    event_name: str
    identity: Optional[str] = None
    start_time: datetime = field(default_factory=datetime.now)
    duration_ms: Optional[float] = None
    input_summary: str = ""
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def complete(self):
        self.duration_ms = (datetime.now() - self.start_time).total_seconds() * 1000


@dataclass
class EventStats:
    """Counters for one event name."""
    handled: int = 0
    failed: int = 0
    total_latency_ms: float = 0

    @property
    def avg_latency_ms(self) -> float:
        return self.total_latency_ms / self.handled if self.handled else 0.0


@dataclass
class EngineMetrics:
    """Aggregated metrics for the engine, broken down by event name."""
    events: Dict[str, EventStats] = field(default_factory=dict)
    recent_failures: Deque[Dict[str, Any]] = field(
        default_factory=lambda: deque(maxlen=RECENT_FAILURES))

    @property
    def total_events(self) -> int:
        return sum(stats.handled for stats in self.events.values())

    @property
    def failed_events(self) -> int:
        return sum(stats.failed for stats in self.events.values())

    @property
    def success_rate(self) -> float:
        if self.total_events == 0:
            return 0.0
        return 1 - self.failed_events / self.total_events

    def record(self, trace: EventTrace):
        stats = self.events.setdefault(trace.event_name, EventStats())
        stats.handled += 1
        if trace.duration_ms is not None:
            stats.total_latency_ms += trace.duration_ms
        if trace.failed:
            stats.failed += 1
            self.recent_failures.append({
                "event": trace.event_name,
                "identity": trace.identity,
                "error": trace.error,
                "at": trace.start_time.isoformat(),
            })

    def summary(self) -> Dict[str, Any]:
        return {
            "total_events": self.total_events,
            "failed_events": self.failed_events,
            "success_rate": f"{self.success_rate:.1%}",
            "events": {
                name: {
                    "handled": stats.handled,
                    "failed": stats.failed,
                    "avg_latency_ms": round(stats.avg_latency_ms, 1),
                }
                for name, stats in self.events.items()
            },
            "recent_failures": list(self.recent_failures),
        }


# Global metrics instance
metrics = EngineMetrics()


class Tracer:
    """Context manager for tracing one event.

    Handlers that recover from an error set ``trace.error`` themselves so
    the event still counts as failed.
    """

    def __init__(self, event_name: str, identity: str = None, input_data: Any = None):
        self.trace = EventTrace(event_name=event_name, identity=identity)
        if input_data:
            self.trace.input_summary = str(input_data)[:200]

    def __enter__(self):
        logger.debug(f"▶ {self.trace.event_name} started for {self.trace.identity or '-'}")
        return self.trace

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            self.trace.error = str(exc_val)
        self.trace.complete()

        if self.trace.failed:
            logger.error(f"✖ {self.trace.event_name} failed for {self.trace.identity or '-'}: {self.trace.error}")
        else:
            logger.debug(f"✔ {self.trace.event_name} completed in {self.trace.duration_ms:.0f}ms")

        metrics.record(self.trace)
        return False  # Don't suppress exceptions


def get_metrics_summary() -> Dict[str, Any]:
    """Get current metrics summary."""
    return metrics.summary()
