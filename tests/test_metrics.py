"""Tests for metric formatting and psutil readers."""

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from servermon.core import metrics
from servermon.utils.datetime import format_long_date, humanize_duration


class TestFormatting:
    """Pure formatting helpers."""

    def test_fifty_megabytes(self):
        assert metrics.format_megabytes(52428800) == "50.00 MB"

    def test_fractional_megabytes(self):
        assert metrics.format_megabytes(1572864) == "1.50 MB"

    def test_memory_usage_keys_preserved(self):
        formatted = metrics.format_memory_usage({"rss": 52428800, "external": 0})

        assert formatted == {"rss": "50.00 MB", "external": "0.00 MB"}

    def test_cpu_breakdown(self):
        usage = metrics.cpu_usage_breakdown({"user": 50, "nice": 0, "sys": 30, "idle": 20, "irq": 0})

        assert usage == {
            "user": "50.00%",
            "nice": "0.00%",
            "sys": "30.00%",
            "idle": "20.00%",
            "irq": "0.00%",
        }
        total = sum(float(value.rstrip("%")) for value in usage.values())
        assert total == pytest.approx(100.0, abs=0.05)

    def test_cpu_breakdown_zero_total(self):
        usage = metrics.cpu_usage_breakdown({})

        assert set(usage.values()) == {"0.00%"}

    def test_describe_cpus_numbers_from_one(self):
        cores = [
            {"model": "Test CPU", "speed": 2400, "times": {"user": 1, "idle": 3}},
            {"model": "Test CPU", "speed": 2400, "times": {"user": 2, "idle": 2}},
        ]

        described = metrics.describe_cpus(cores)

        assert [core["cpu"] for core in described] == [1, 2]
        assert described[0]["usage"]["user"] == "25.00%"
        assert described[1]["usage"]["idle"] == "50.00%"


class TestReaders:
    """psutil-backed readers with fake processes."""

    def test_read_memory_usage(self):
        info = SimpleNamespace(rss=52428800, vms=104857600, data=20971520, shared=1048576)
        process = SimpleNamespace(memory_info=lambda: info)

        counters = metrics.read_memory_usage(process)

        assert counters == {
            "rss": 52428800,
            "heapTotal": 104857600,
            "heapUsed": 20971520,
            "external": 1048576,
        }

    def test_read_memory_usage_without_linux_fields(self):
        info = SimpleNamespace(rss=2048, vms=4096)
        process = SimpleNamespace(memory_info=lambda: info)

        counters = metrics.read_memory_usage(process)

        assert counters["heapUsed"] == 2048
        assert counters["external"] == 0

    def test_process_uptime(self):
        process = SimpleNamespace(create_time=lambda: 1000.0)

        with patch("servermon.core.metrics.time.time", return_value=1060.0):
            assert metrics.process_uptime_seconds(process) == 60.0

    def test_read_cpu_cores_maps_system_to_sys(self):
        times = [SimpleNamespace(user=5.0, nice=1.0, system=2.0, idle=10.0, irq=0.5)]

        with patch("servermon.core.metrics.psutil.cpu_times", return_value=times), patch(
            "servermon.core.metrics._cpu_models", return_value=["Test CPU"]
        ), patch("servermon.core.metrics._cpu_speeds", return_value=[3000]):
            cores = metrics.read_cpu_cores()

        assert cores == [
            {
                "model": "Test CPU",
                "speed": 3000,
                "times": {"user": 5.0, "nice": 1.0, "sys": 2.0, "idle": 10.0, "irq": 0.5},
            }
        ]


class TestHumanizeDuration:
    """Duration wording in the largest fitting unit."""

    @pytest.mark.parametrize(
        "seconds, expected",
        [
            (0, "0 seconds"),
            (30, "30 seconds"),
            (60, "1 minute"),
            (180, "3 minutes"),
            (2 * 3600, "2 hours"),
            (10 * 3600, "10 hours"),
            (3 * 86400, "3 days"),
            (14 * 86400, "2 weeks"),
            (90 * 86400, "3 months"),
            (365 * 86400, "1 year"),
            (3 * 365 * 86400, "3 years"),
        ],
    )
    def test_units(self, seconds, expected):
        assert humanize_duration(seconds) == expected

    def test_grows_with_uptime(self):
        words = [humanize_duration(s) for s in (10, 70, 4000, 90000)]

        assert words == ["10 seconds", "1 minute", "1 hour", "1 day"]


class TestLongDate:
    def test_format(self):
        from datetime import datetime

        assert format_long_date(datetime(2026, 10, 7, 15, 30)) == "October 7, 2026"
