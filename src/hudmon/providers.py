"""Host metrics and process capabilities backed by psutil."""

import logging
import sys
from abc import ABC, abstractmethod

import psutil

from hudmon.models import ProcessRecord, TerminateResult

logger = logging.getLogger(__name__)

GIB = 1024**3


def _clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, value))


class HostMetricsProvider(ABC):
    """
    Source of instantaneous CPU and RAM figures.

    Implementations may keep the previous CPU observation between calls;
    nothing else is retained.
    """

    @abstractmethod
    def sample_cpu_busy_delta(self) -> float:
        """Return CPU load in [0, 100] since the previous call."""

    def sample_memory(self) -> tuple[float, float]:
        """
        Return (used, total) physical memory in GiB.

        Used memory is total minus available. Returns (0.0, 0.0) when the
        operating system does not report memory.
        """
        try:
            mem = psutil.virtual_memory()
        except (OSError, psutil.Error) as exc:
            logger.debug("virtual_memory() failed: %s", exc)
            return 0.0, 0.0
        total = mem.total / GIB
        used = max(0.0, (mem.total - mem.available) / GIB)
        return min(used, total), total


class CpuTimesHostMetrics(HostMetricsProvider):
    """CPU load from the delta of cumulative busy/idle time counters."""

    def __init__(self) -> None:
        self._last_total: float | None = None
        self._last_idle: float | None = None

    def sample_cpu_busy_delta(self) -> float:
        try:
            times = psutil.cpu_times()
        except (OSError, psutil.Error) as exc:
            logger.debug("cpu_times() failed: %s", exc)
            return 0.0

        # iowait is Linux only; guest time is already counted in user/nice
        idle = times.idle + getattr(times, "iowait", 0.0)
        total = sum(times) - getattr(times, "guest", 0.0) - getattr(times, "guest_nice", 0.0)

        last_total, last_idle = self._last_total, self._last_idle
        self._last_total, self._last_idle = total, idle

        # First observation has no baseline
        if last_total is None or last_idle is None:
            return 0.0

        total_delta = total - last_total
        if total_delta <= 0:
            return 0.0
        idle_delta = idle - last_idle
        return _clamp_percent(100.0 * (total_delta - idle_delta) / total_delta)


class LoadAverageHostMetrics(HostMetricsProvider):
    """CPU load approximated by the 1-minute load average per logical core."""

    def sample_cpu_busy_delta(self) -> float:
        try:
            load_1m = psutil.getloadavg()[0]
        except (OSError, AttributeError, psutil.Error) as exc:
            logger.debug("getloadavg() failed: %s", exc)
            return 0.0
        cores = psutil.cpu_count() or 1
        return _clamp_percent(load_1m / cores * 100.0)


def create_host_metrics(platform: str = sys.platform) -> HostMetricsProvider:
    """
    Pick the host metrics implementation for a platform.

    macOS exposes no cheap system-wide tick counters, so load average is used
    there; every other platform uses CPU time counters.
    """
    if platform == "darwin":
        return LoadAverageHostMetrics()
    return CpuTimesHostMetrics()


class ProcessEnumerator(ABC):
    """Lists running processes and sends terminate requests."""

    @abstractmethod
    def list_processes(self) -> list[ProcessRecord]:
        """Return every visible process as a (pid, name) record."""

    @abstractmethod
    def terminate(self, pid: int) -> TerminateResult:
        """Ask the process to exit gracefully. Must not raise."""


class PsutilProcessEnumerator(ProcessEnumerator):
    """
    Process enumerator using psutil.

    Processes that vanish or deny access mid-listing are skipped.
    """

    def list_processes(self) -> list[ProcessRecord]:
        records: list[ProcessRecord] = []
        for proc in psutil.process_iter(attrs=["pid", "name"]):
            try:
                info = proc.info
                records.append(
                    ProcessRecord(pid=info["pid"], name=info.get("name") or "unknown")
                )
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
        return records

    def terminate(self, pid: int) -> TerminateResult:
        if pid <= 0:
            return TerminateResult(pid, False, f"invalid pid {pid}")
        try:
            psutil.Process(pid).terminate()
        except psutil.NoSuchProcess:
            return TerminateResult(pid, False, f"process {pid} not found")
        except psutil.AccessDenied:
            return TerminateResult(pid, False, f"access denied for process {pid}")
        except (OSError, psutil.Error) as exc:
            return TerminateResult(pid, False, f"signal delivery failed: {exc}")
        return TerminateResult(pid, True)
