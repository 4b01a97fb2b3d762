"""
Process and OS readings behind the diagnostic endpoints.

Readers use psutil; formatters are pure so they can be tested with fixed
numbers. psutil failures surface as ServerError.
"""

import os
import platform
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import psutil

from servermon.core.errors import ServerError

BYTES_PER_MEGABYTE = 1024 * 1024
CPU_BUCKETS = ("user", "nice", "sys", "idle", "irq")
CPUINFO_PATH = Path("/proc/cpuinfo")


def format_megabytes(num_bytes: float) -> str:
    """52428800 -> "50.00 MB"."""
    return f"{num_bytes / BYTES_PER_MEGABYTE:.2f} MB"


def format_percent(part: float, total: float) -> str:
    if not total:
        return "0.00%"
    return f"{part / total * 100:.2f}%"


def format_memory_usage(counters: Mapping[str, float]) -> dict[str, str]:
    """Format every raw byte counter as megabytes."""
    return {name: format_megabytes(value) for name, value in counters.items()}


def cpu_usage_breakdown(times: Mapping[str, float]) -> dict[str, str]:
    """Share of each time bucket in the core's total time since boot."""
    total = sum(times.get(bucket, 0.0) for bucket in CPU_BUCKETS)
    return {bucket: format_percent(times.get(bucket, 0.0), total) for bucket in CPU_BUCKETS}


def describe_cpus(cores: list[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Number cores from 1 and attach their usage breakdown."""
    return [
        {
            "cpu": index,
            "model": core["model"],
            "speed": core["speed"],
            "usage": cpu_usage_breakdown(core["times"]),
        }
        for index, core in enumerate(cores, start=1)
    ]


def process_uptime_seconds(process: psutil.Process | None = None) -> float:
    """Seconds since this process was created."""
    process = process or psutil.Process(os.getpid())
    try:
        return max(0.0, time.time() - process.create_time())
    except psutil.Error as exc:
        raise ServerError("Unable to read process uptime", data={"error": type(exc).__name__}) from exc


def read_memory_usage(process: psutil.Process | None = None) -> dict[str, int]:
    """
    Raw memory counters of this process, in bytes.

    rss: resident set size
    heapTotal: virtual memory size
    heapUsed: data segment (falls back to rss where the OS does not report it)
    external: shared memory
    """
    process = process or psutil.Process(os.getpid())
    try:
        info = process.memory_info()
    except psutil.Error as exc:
        raise ServerError("Unable to read memory usage", data={"error": type(exc).__name__}) from exc
    return {
        "rss": info.rss,
        "heapTotal": info.vms,
        "heapUsed": getattr(info, "data", info.rss),
        "external": getattr(info, "shared", 0),
    }


def _cpu_models() -> list[str]:
    if CPUINFO_PATH.exists():
        models = [
            line.split(":", 1)[1].strip()
            for line in CPUINFO_PATH.read_text().splitlines()
            if line.startswith("model name")
        ]
        if models:
            return models
    return [platform.processor() or "unknown"]


def _cpu_speeds(count: int) -> list[int]:
    try:
        freqs = psutil.cpu_freq(percpu=True) or []
    except (AttributeError, NotImplementedError, OSError):
        freqs = []
    if len(freqs) == count:
        return [int(freq.current) for freq in freqs]
    overall = freqs[0] if len(freqs) == 1 else None
    return [int(overall.current) if overall else 0] * count


def read_cpu_cores() -> list[dict[str, Any]]:
    """Model, speed (MHz) and cumulative time buckets of every logical core."""
    try:
        per_cpu = psutil.cpu_times(percpu=True)
    except psutil.Error as exc:
        raise ServerError("Unable to read CPU times", data={"error": type(exc).__name__}) from exc

    models = _cpu_models()
    speeds = _cpu_speeds(len(per_cpu))
    cores = []
    for index, times in enumerate(per_cpu):
        cores.append(
            {
                "model": models[index] if index < len(models) else models[-1],
                "speed": speeds[index],
                "times": {
                    "user": times.user,
                    "nice": getattr(times, "nice", 0.0),
                    "sys": times.system,
                    "idle": times.idle,
                    "irq": getattr(times, "irq", getattr(times, "interrupt", 0.0)),
                },
            }
        )
    return cores
