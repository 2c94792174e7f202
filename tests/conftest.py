"""Shared fakes for hudmon tests."""

import threading
import time
from datetime import datetime, timezone

import pytest

from hudmon.config import MonitorConfig, WeatherConfig
from hudmon.models import ProcessRecord, TerminateResult, WeatherReading
from hudmon.monitor import MonitorCore
from hudmon.providers import HostMetricsProvider, ProcessEnumerator


class FakeHostMetrics(HostMetricsProvider):
    """Returns 0, 1, 2, ... as CPU load and a fixed memory figure."""

    def __init__(self, used: float = 4.0, total: float = 16.0) -> None:
        self.calls = 0
        self.used = used
        self.total = total

    def sample_cpu_busy_delta(self) -> float:
        value = float(self.calls)
        self.calls += 1
        return value

    def sample_memory(self) -> tuple[float, float]:
        return self.used, self.total


class FakeProcessEnumerator(ProcessEnumerator):
    """Serves a settable listing and records terminate requests."""

    def __init__(self, processes: list[ProcessRecord] | None = None) -> None:
        self.processes = list(processes or [])
        self.terminated: list[int] = []

    def list_processes(self) -> list[ProcessRecord]:
        return list(self.processes)

    def terminate(self, pid: int) -> TerminateResult:
        self.terminated.append(pid)
        if pid not in {proc.pid for proc in self.processes}:
            return TerminateResult(pid, False, f"process {pid} not found")
        return TerminateResult(pid, True)


class FakeWeatherFetcher:
    """
    Counts fetches and returns queued outcomes.

    When ``gate`` is set up with hold(), each fetch blocks until release().
    """

    def __init__(self, results: list[WeatherReading | None] | None = None) -> None:
        self.results = list(results or [])
        self.calls = 0
        self.started = threading.Event()
        self._gate: threading.Event | None = None

    def hold(self) -> None:
        self._gate = threading.Event()

    def release(self) -> None:
        if self._gate is not None:
            self._gate.set()

    def fetch(self) -> WeatherReading | None:
        self.calls += 1
        self.started.set()
        if self._gate is not None:
            self._gate.wait(timeout=5.0)
        return self.results.pop(0) if self.results else None


def make_reading(summary: str = "Code 3", temperature: float = 21.5) -> WeatherReading:
    return WeatherReading(
        summary=summary,
        temperature_c=temperature,
        wind_kph=7.2,
        observed_at=datetime(2024, 6, 1, 12, 30, 0, tzinfo=timezone.utc),
    )


FAST_CONFIG = MonitorConfig(history_size=8, weather=WeatherConfig(poll_interval=0.01))


@pytest.fixture
def host_metrics() -> FakeHostMetrics:
    return FakeHostMetrics()


@pytest.fixture
def enumerator() -> FakeProcessEnumerator:
    return FakeProcessEnumerator([ProcessRecord(123, "Chrome"), ProcessRecord(456, "bash")])


@pytest.fixture
def fetcher() -> FakeWeatherFetcher:
    return FakeWeatherFetcher()


@pytest.fixture
def core(host_metrics, enumerator, fetcher):
    monitor = MonitorCore(
        FAST_CONFIG,
        host_metrics=host_metrics,
        process_enumerator=enumerator,
        weather_fetcher=fetcher,
    )
    yield monitor
    fetcher.release()
    monitor.close(timeout=5.0)


def wait_until(predicate, timeout: float = 2.0) -> bool:
    """Poll ``predicate`` until it is true or ``timeout`` elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()
