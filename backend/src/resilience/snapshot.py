"""
System, network and runtime snapshots attached to error reports.

Collection never raises: anything psutil cannot read is reported as zero or
"unknown".
"""
import locale
import logging
import os
import platform
import socket
import time
from dataclasses import asdict, dataclass, field
from typing import Optional

import psutil

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemoryState:
    used: int = 0  # bytes, resident set of this process
    total: int = 0  # bytes, physical memory
    percentage: float = 0.0


@dataclass(frozen=True)
class PerformanceState:
    uptime: float = 0.0  # seconds since process start
    cpu_time: float = 0.0  # user + system seconds
    cpu_percent: float = 0.0


@dataclass(frozen=True)
class StorageState:
    """Sizes of the handler's own in-memory stores."""
    cache_entries: int = 0
    user_actions: int = 0
    reports: int = 0


@dataclass(frozen=True)
class SystemState:
    memory: MemoryState = field(default_factory=MemoryState)
    storage: StorageState = field(default_factory=StorageState)
    performance: Optional[PerformanceState] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class NetworkCondition:
    online: bool = False
    interfaces_up: tuple[str, ...] = ()
    bytes_sent: int = 0
    bytes_recv: int = 0
    effective_type: str = "unknown"

    def to_dict(self) -> dict:
        data = asdict(self)
        data["interfaces_up"] = list(self.interfaces_up)
        return data


@dataclass(frozen=True)
class RuntimeInfo:
    python_version: str = "unknown"
    implementation: str = "unknown"
    platform: str = "unknown"
    system: str = "unknown"
    machine: str = "unknown"
    hostname: str = "unknown"
    language: str = "unknown"
    pid: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def collect_memory_state() -> MemoryState:
    try:
        used = psutil.Process().memory_info().rss
        total = psutil.virtual_memory().total
    except (psutil.Error, OSError) as e:
        logger.debug(f"Memory state unavailable: {e}")
        return MemoryState()

    percentage = round(used / total * 100, 2) if total else 0.0
    return MemoryState(used=used, total=total, percentage=percentage)


def collect_performance_state() -> PerformanceState:
    try:
        process = psutil.Process()
        cpu_times = process.cpu_times()
        return PerformanceState(
            uptime=max(time.time() - process.create_time(), 0.0),
            cpu_time=cpu_times.user + cpu_times.system,
            cpu_percent=process.cpu_percent(interval=None),
        )
    except (psutil.Error, OSError) as e:
        logger.debug(f"Performance state unavailable: {e}")
        return PerformanceState()


def collect_system_state(
    storage: Optional[StorageState] = None,
    include_performance: bool = True
) -> SystemState:
    """Snapshot memory, the handler's store sizes and optionally CPU usage."""
    return SystemState(
        memory=collect_memory_state(),
        storage=storage or StorageState(),
        performance=collect_performance_state() if include_performance else None,
    )


def _is_loopback(name: str) -> bool:
    return name == "lo" or name.lower().startswith("loopback")


def collect_network_condition() -> NetworkCondition:
    """Report which non-loopback interfaces are up and total traffic."""
    try:
        stats = psutil.net_if_stats()
    except (psutil.Error, OSError) as e:
        logger.debug(f"Network interfaces unavailable: {e}")
        return NetworkCondition()

    up = tuple(sorted(name for name, st in stats.items() if st.isup and not _is_loopback(name)))
    speeds = [stats[name].speed for name in up if stats[name].speed > 0]
    effective_type = f"{max(speeds)}Mbps" if speeds else "unknown"

    bytes_sent = bytes_recv = 0
    try:
        counters = psutil.net_io_counters()
        if counters is not None:
            bytes_sent, bytes_recv = counters.bytes_sent, counters.bytes_recv
    except (psutil.Error, OSError) as e:
        logger.debug(f"Network counters unavailable: {e}")

    return NetworkCondition(
        online=bool(up),
        interfaces_up=up,
        bytes_sent=bytes_sent,
        bytes_recv=bytes_recv,
        effective_type=effective_type,
    )


def collect_runtime_info() -> RuntimeInfo:
    """Describe the interpreter and host."""
    try:
        hostname = socket.gethostname()
    except OSError:
        hostname = "unknown"

    try:
        language = locale.getlocale()[0] or "unknown"
    except ValueError:
        language = "unknown"

    return RuntimeInfo(
        python_version=platform.python_version(),
        implementation=platform.python_implementation(),
        platform=platform.platform(),
        system=platform.system() or "unknown",
        machine=platform.machine() or "unknown",
        hostname=hostname,
        language=language,
        pid=os.getpid(),
    )
