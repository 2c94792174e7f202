"""Data models for hudmon."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True, frozen=True)
class HardwareSnapshot:
    """Immutable snapshot of CPU load and RAM usage."""

    cpu_load_percent: float = 0.0  # 0.0 - 100.0
    ram_used_gb: float = 0.0
    ram_total_gb: float = 0.0

    @property
    def ram_percent(self) -> float:
        """RAM usage as a percentage of total, 0.0 when total is unknown."""
        if self.ram_total_gb <= 0:
            return 0.0
        return min(100.0, self.ram_used_gb / self.ram_total_gb * 100.0)


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable (pid, name) pair from one process listing."""

    pid: int
    name: str

    def matches(self, needle: str) -> bool:
        """
        Check whether the name or decimal pid contains ``needle``.

        Matching is case-insensitive; an empty needle matches every record.
        """
        if not needle:
            return True
        folded = needle.casefold()
        return folded in self.name.casefold() or folded in str(self.pid)


@dataclass(slots=True, frozen=True)
class WeatherReading:
    """Immutable current-weather reading."""

    summary: str  # "Code N"
    temperature_c: float
    wind_kph: float
    observed_at: datetime  # UTC


@dataclass(slots=True, frozen=True)
class TerminateResult:
    """Outcome of a terminate request. Truthy when the signal was delivered."""

    pid: int
    ok: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.ok
