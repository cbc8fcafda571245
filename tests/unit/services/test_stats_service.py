"""Tests for conversion statistics."""

import threading

import pytest

from src.heicserver.services.stats_service import (
    ConversionStats,
    get_conversion_stats,
    get_server_load,
)


class TestConversionStats:
    """Test cases for ConversionStats."""

    def test_initial_snapshot(self, stats):
        snapshot = stats.get_stats()

        assert snapshot["conversions"] == 0
        assert snapshot["errors"] == 0
        assert snapshot["averageSize"] == 0
        assert snapshot["averageConvertedSize"] == 0
        assert snapshot["averageTime"] == 0
        assert snapshot["successRate"] == 100
        assert snapshot["uptimeMs"] >= 0

    def test_successes_and_failures(self, stats):
        for _ in range(3):
            stats.add_conversion(1000, 400, 100, True)
        stats.add_conversion(2000, 0, 300, False)

        snapshot = stats.get_stats()

        assert snapshot["conversions"] == 4
        assert snapshot["errors"] == 1
        assert snapshot["successRate"] == 75.0
        assert snapshot["averageTime"] == 150

    def test_average_size_uses_original_sizes_only(self, stats):
        stats.add_conversion(1000, 100, 10)
        stats.add_conversion(3000, 300, 10)

        snapshot = stats.get_stats()

        assert snapshot["averageSize"] == 2000
        assert snapshot["averageConvertedSize"] == 200

    def test_success_rate_rounded(self, stats):
        stats.add_conversion(1, 1, 1, True)
        stats.add_conversion(1, 1, 1, True)
        stats.add_conversion(1, 0, 1, False)

        assert stats.get_stats()["successRate"] == 66.7

    def test_snapshot_is_detached(self, stats):
        snapshot = stats.get_stats()
        stats.add_conversion(10, 5, 1)

        assert snapshot["conversions"] == 0
        assert stats.conversions == 1

    def test_reset(self, stats):
        stats.add_conversion(100, 50, 10, False)
        started = stats.counters.start_time

        stats.reset()
        snapshot = stats.get_stats()

        assert snapshot["conversions"] == 0
        assert snapshot["errors"] == 0
        assert snapshot["successRate"] == 100
        assert stats.counters.start_time >= started

    def test_concurrent_updates(self, stats):
        def record():
            for _ in range(500):
                stats.add_conversion(10, 5, 1, True)

        threads = [threading.Thread(target=record) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert stats.conversions == 4000
        assert stats.get_stats()["averageSize"] == 10

    def test_missing_values_treated_as_zero(self, stats):
        stats.add_conversion(None, None, None, False)

        snapshot = stats.get_stats()
        assert snapshot["conversions"] == 1
        assert snapshot["averageSize"] == 0


class TestServerLoad:
    """Test cases for load classification."""

    @pytest.mark.parametrize(
        "snapshot,expected",
        [
            ({"conversions": 0}, "low"),
            ({"conversions": 10, "errors": 0, "averageTime": 500}, "low"),
            ({"conversions": 10, "errors": 0, "averageTime": 2000}, "medium"),
            ({"conversions": 100, "errors": 6, "averageTime": 100}, "medium"),
            ({"conversions": 10, "errors": 0, "averageTime": 3500}, "high"),
            ({"conversions": 10, "errors": 2, "averageTime": 100}, "high"),
        ],
    )
    def test_classification(self, snapshot, expected):
        assert get_server_load(snapshot) == expected


def test_global_stats_singleton():
    assert get_conversion_stats() is get_conversion_stats()
    assert isinstance(get_conversion_stats(), ConversionStats)
