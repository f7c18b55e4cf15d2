"""
Metrics Collection for the reconciliation engine

Collects and exposes, per engine operation:
- Run lifecycle (started, completed, rejected, failed, in progress)
- Run durations (average, p95) over a bounded window of samples
- Result counts of the most recent successful run

Metrics live in memory for the lifetime of the process.
"""

import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, List, Optional


MAX_TIMING_SAMPLES = 1000


# =============================================================================
# Metric Data Classes
# =============================================================================

def _zero_counts() -> Dict[str, int]:
    return {"started": 0, "completed": 0, "rejected": 0, "failed": 0}


@dataclass
class RunMetrics:
    """Lifecycle counters for engine runs."""
    started: int = 0
    completed: int = 0
    rejected: int = 0
    failed: int = 0
    in_progress: int = 0

    by_operation: Dict[str, Dict[str, int]] = field(default_factory=lambda: defaultdict(_zero_counts))


@dataclass
class TimingMetrics:
    """Run duration samples, overall and per operation."""
    samples: List[float] = field(default_factory=list)
    max_samples: int = MAX_TIMING_SAMPLES
    by_operation: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))

    def add_sample(self, duration_ms: float, operation: Optional[str] = None):
        self.samples.append(duration_ms)
        if len(self.samples) > self.max_samples:
            self.samples = self.samples[-self.max_samples:]

        if operation:
            bucket = self.by_operation[operation]
            bucket.append(duration_ms)
            if len(bucket) > self.max_samples:
                self.by_operation[operation] = bucket[-self.max_samples:]

    def _samples_for(self, operation: Optional[str]) -> List[float]:
        return self.by_operation.get(operation, []) if operation else self.samples

    def get_average(self, operation: Optional[str] = None) -> float:
        samples = self._samples_for(operation)
        return statistics.mean(samples) if samples else 0.0

    def get_p95(self, operation: Optional[str] = None) -> float:
        samples = self._samples_for(operation)
        if not samples:
            return 0.0
        ordered = sorted(samples)
        idx = int(len(ordered) * 0.95)
        return ordered[min(idx, len(ordered) - 1)]


# =============================================================================
# Metrics Collector (Singleton)
# =============================================================================

class MetricsCollector:
    """
    Thread-safe metrics collector for engine runs.

    Usage:
        metrics = MetricsCollector.instance()
        metrics.record_run_started("validate_section")
        metrics.record_run_completed("validate_section", duration_ms=12.5, counts={"issues": 3})
    """

    _instance: Optional["MetricsCollector"] = None
    _instance_lock = Lock()

    def __init__(self):
        self._lock = Lock()
        self.reset()

    @classmethod
    def instance(cls) -> "MetricsCollector":
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def reset(self):
        """Drop everything collected so far."""
        with self._lock:
            self.runs = RunMetrics()
            self.timings = TimingMetrics()
            self.last_results: Dict[str, Dict[str, Any]] = {}

    # =========================================================================
    # Run Lifecycle
    # =========================================================================

    def record_run_started(self, operation: str):
        with self._lock:
            self.runs.started += 1
            self.runs.in_progress += 1
            self.runs.by_operation[operation]["started"] += 1

    def record_run_completed(
        self,
        operation: str,
        duration_ms: Optional[float] = None,
        counts: Optional[Dict[str, int]] = None,
    ):
        """Record a successful run and remember its result counts."""
        with self._lock:
            self.runs.completed += 1
            self.runs.in_progress = max(0, self.runs.in_progress - 1)
            self.runs.by_operation[operation]["completed"] += 1

            if duration_ms is not None:
                self.timings.add_sample(duration_ms, operation)
            if counts is not None:
                self.last_results[operation] = {
                    "recorded_at": datetime.now(timezone.utc).isoformat(),
                    **counts,
                }

    def record_run_rejected(self, operation: str):
        """Record a run refused for invalid input (never started)."""
        with self._lock:
            self.runs.rejected += 1
            self.runs.by_operation[operation]["rejected"] += 1

    def record_run_failed(self, operation: str, duration_ms: Optional[float] = None):
        with self._lock:
            self.runs.failed += 1
            self.runs.in_progress = max(0, self.runs.in_progress - 1)
            self.runs.by_operation[operation]["failed"] += 1
            if duration_ms is not None:
                self.timings.add_sample(duration_ms, operation)

    # =========================================================================
    # Summary
    # =========================================================================

    def get_timing_stats(self, operation: Optional[str] = None) -> Dict[str, float]:
        with self._lock:
            return {
                "average_ms": self.timings.get_average(operation),
                "p95_ms": self.timings.get_p95(operation),
                "sample_count": len(self.timings._samples_for(operation)),
            }

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        with self._lock:
            return {
                "runs": {
                    "started": self.runs.started,
                    "completed": self.runs.completed,
                    "rejected": self.runs.rejected,
                    "failed": self.runs.failed,
                    "in_progress": self.runs.in_progress,
                    "by_operation": {k: dict(v) for k, v in self.runs.by_operation.items()},
                },
                "timings": {
                    "overall": {
                        "average_ms": self.timings.get_average(),
                        "p95_ms": self.timings.get_p95(),
                    },
                    "by_operation": {
                        operation: {
                            "average_ms": self.timings.get_average(operation),
                            "p95_ms": self.timings.get_p95(operation),
                        }
                        for operation in self.timings.by_operation.keys()
                    },
                },
                "last_results": {k: dict(v) for k, v in self.last_results.items()},
            }


# =============================================================================
# Module-level convenience functions
# =============================================================================

def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    return MetricsCollector.instance()


def record_run_started(operation: str):
    get_metrics().record_run_started(operation)


def record_run_completed(operation: str, duration_ms: float = None, counts: Dict[str, int] = None):
    get_metrics().record_run_completed(operation, duration_ms, counts)


def record_run_rejected(operation: str):
    get_metrics().record_run_rejected(operation)


def record_run_failed(operation: str, duration_ms: float = None):
    get_metrics().record_run_failed(operation, duration_ms)
