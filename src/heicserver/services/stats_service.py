"""Conversion statistics collection."""

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class StatsCounters:
    """Raw counters behind the statistics snapshot."""
    conversions: int = 0
    errors: int = 0
    total_size: int = 0
    total_converted_size: int = 0
    total_time: float = 0.0
    start_time: float = field(default_factory=time.time)


class ConversionStats:
    """
    Process-wide conversion statistics.

    Every attempt (success or failure) counts as a conversion; failures also
    count as errors. ``averageSize`` is computed from original sizes only.
    Converted sizes are tracked separately as ``averageConvertedSize``.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.counters = StatsCounters()

    @property
    def conversions(self) -> int:
        return self.counters.conversions

    @property
    def errors(self) -> int:
        return self.counters.errors

    def add_conversion(
        self,
        original_size: int,
        converted_size: int,
        time_ms: float,
        success: bool = True,
    ):
        """Record one conversion attempt."""
        with self._lock:
            self.counters.conversions += 1
            self.counters.total_size += original_size or 0
            self.counters.total_converted_size += converted_size or 0
            self.counters.total_time += time_ms or 0

            if not success:
                self.counters.errors += 1

    def get_stats(self) -> Dict[str, Any]:
        """Get a read-only snapshot of the statistics."""
        with self._lock:
            counters = StatsCounters(**vars(self.counters))

        uptime_ms = int((time.time() - counters.start_time) * 1000)
        conversions = counters.conversions

        if conversions > 0:
            average_size = round(counters.total_size / conversions)
            average_converted_size = round(counters.total_converted_size / conversions)
            average_time = round(counters.total_time / conversions)
            success_rate = round((conversions - counters.errors) / conversions * 100, 1)
        else:
            average_size = 0
            average_converted_size = 0
            average_time = 0
            success_rate = 100

        return {
            "conversions": conversions,
            "errors": counters.errors,
            "averageSize": average_size,
            "averageConvertedSize": average_converted_size,
            "averageTime": average_time,
            "successRate": success_rate,
            "uptimeMs": uptime_ms,
        }

    def reset(self):
        """Reset all counters and restart the uptime clock."""
        with self._lock:
            self.counters = StatsCounters()


def get_server_load(stats: Dict[str, Any]) -> str:
    """Classify server load from a statistics snapshot."""
    conversions = stats.get("conversions", 0)
    if conversions == 0:
        return "low"

    average_time = stats.get("averageTime", 0)
    error_rate = stats.get("errors", 0) / conversions * 100

    if average_time > 3000 or error_rate > 10:
        return "high"
    if average_time > 1500 or error_rate > 5:
        return "medium"
    return "low"


# Global stats instance
_conversion_stats: Optional[ConversionStats] = None


def get_conversion_stats() -> ConversionStats:
    """Get global conversion statistics instance."""
    global _conversion_stats
    if _conversion_stats is None:
        _conversion_stats = ConversionStats()
    return _conversion_stats
