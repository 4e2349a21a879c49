import threading

from .models import PerformanceStats

class PerformanceTelemetry:
    """Running translation aggregates, owned by one dispatcher"""

    def __init__(self):
        self._lock = threading.Lock()
        self._total = 0
        self._cache_hits = 0
        self._avg_latency = 0.0
        self._last_init_duration = 0.0

    def record_translation(self, latency_ms: float, cached: bool = False):
        with self._lock:
            self._total += 1
            if cached:
                self._cache_hits += 1
            # Incremental approximation, not a true moving average
            self._avg_latency = (self._avg_latency + latency_ms) / self._total

    def record_init(self, duration_ms: float):
        with self._lock:
            self._last_init_duration = duration_ms

    def snapshot(self) -> PerformanceStats:
        with self._lock:
            return PerformanceStats(
                total_translations=self._total,
                cache_hits=self._cache_hits,
                rolling_avg_latency_ms=self._avg_latency,
                last_init_duration_ms=self._last_init_duration,
            )

    def reset_cache_hits(self):
        with self._lock:
            self._cache_hits = 0

    def reset(self):
        with self._lock:
            self._total = 0
            self._cache_hits = 0
            self._avg_latency = 0.0
            self._last_init_duration = 0.0
