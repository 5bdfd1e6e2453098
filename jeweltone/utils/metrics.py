"""
JewelTone Pipeline Metrics
In-process counters and stage timings for the transform pipeline.
"""
from collections import Counter, defaultdict
from threading import Lock
from typing import Any, Dict, List, Optional


class MetricsCollector:
    """Thread-safe tallies of what the pipeline did and how long it took."""

    def __init__(self):
        self._lock = Lock()
        self._counters: Counter = Counter()
        self._stage_ms: Dict[str, List[float]] = defaultdict(list)
        self._mask_ratios: List[float] = []

    def increment(self, name: str, label: Optional[str] = None) -> None:
        """Count one event. `label` splits a counter, e.g. by finish or stage."""
        key = f"{name}.{label}" if label else name
        with self._lock:
            self._counters[key] += 1

    def record_stage(self, stage: str, duration_ms: float) -> None:
        with self._lock:
            self._stage_ms[stage].append(duration_ms)

    def record_mask_ratio(self, ratio: float) -> None:
        with self._lock:
            self._mask_ratios.append(ratio)

    def get_counters(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counters)

    def snapshot(self) -> Dict[str, Any]:
        """
        Current state for the metrics endpoint.

        Returns:
            Dict with `counters`, per-stage `count`/`mean_ms`/`max_ms` under
            `stages`, and `mask_area_ratio_mean` (None before any detection)
        """
        with self._lock:
            stages = {
                stage: {
                    "count": len(durations),
                    "mean_ms": sum(durations) / len(durations),
                    "max_ms": max(durations),
                }
                for stage, durations in self._stage_ms.items()
            }
            mask_mean = (
                sum(self._mask_ratios) / len(self._mask_ratios) if self._mask_ratios else None
            )
            return {
                "counters": dict(self._counters),
                "stages": stages,
                "mask_area_ratio_mean": mask_mean,
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._stage_ms.clear()
            self._mask_ratios.clear()


# Process-wide collector shared by the pipeline and the API
_metrics = MetricsCollector()


def get_metrics() -> MetricsCollector:
    return _metrics


def reset_metrics():
    """Clear the process-wide collector (used between tests)."""
    _metrics.reset()
