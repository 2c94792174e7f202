"""Monitor core: shared hardware, process and weather state for hudmon."""

import logging
import threading
from collections import deque

from hudmon.config import MonitorConfig
from hudmon.models import HardwareSnapshot, ProcessRecord, TerminateResult, WeatherReading
from hudmon.providers import (
    HostMetricsProvider,
    ProcessEnumerator,
    PsutilProcessEnumerator,
    create_host_metrics,
)
from hudmon.weather import WeatherFetcher

logger = logging.getLogger(__name__)


class MonitorCore:
    """
    Owner of all state shared between the sampling driver, the weather thread
    and readers.

    A driver calls update() once per tick. A background thread, started here,
    performs weather fetches on request. Accessors may be called from any
    thread at any time and always return copies.

    Locking: one lock for the hardware snapshot and CPU history, one for the
    process cache, one for the weather reading. No lock is held across a
    provider call or the network request.
    """

    def __init__(
        self,
        config: MonitorConfig | None = None,
        *,
        host_metrics: HostMetricsProvider | None = None,
        process_enumerator: ProcessEnumerator | None = None,
        weather_fetcher: WeatherFetcher | None = None,
    ) -> None:
        """
        Initialize the MonitorCore and start the weather thread.

        Args:
            config: Monitor settings. Defaults to MonitorConfig().
            host_metrics: CPU/RAM source. Defaults to the platform's provider.
            process_enumerator: Process source. Defaults to psutil.
            weather_fetcher: Anything with a ``fetch()`` returning an optional
                reading. Defaults to a WeatherFetcher for ``config.weather``.
        """
        self._config = config or MonitorConfig()
        self._host_metrics = host_metrics or create_host_metrics()
        self._processes_source = process_enumerator or PsutilProcessEnumerator()
        self._weather_fetcher = weather_fetcher or WeatherFetcher(self._config.weather)

        self._hw_lock = threading.Lock()
        self._hw_stats = HardwareSnapshot()
        self._cpu_history: deque[float] = deque(maxlen=self._config.history_size)
        self._ticks = 0

        self._proc_lock = threading.Lock()
        self._processes: tuple[ProcessRecord, ...] = ()

        self._weather_lock = threading.Lock()
        self._weather: WeatherReading | None = None

        # Set while a refresh is pending or in flight
        self._weather_requested = threading.Event()
        self._request_lock = threading.Lock()
        self._stop_event = threading.Event()

        # Prime the CPU baseline so the first tick reports a real delta
        self._host_metrics.sample_cpu_busy_delta()

        self._thread: threading.Thread | None = threading.Thread(
            target=self._weather_loop,
            daemon=True,
            name="WeatherRefresh",
        )
        self._thread.start()

    def __enter__(self) -> "MonitorCore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def config(self) -> MonitorConfig:
        """Get the monitor configuration."""
        return self._config

    @property
    def is_running(self) -> bool:
        """Check if the weather thread is running."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def tick_count(self) -> int:
        """Number of completed update() calls."""
        with self._hw_lock:
            return self._ticks

    # -- sampling -------------------------------------------------------

    def update(self) -> None:
        """Sample CPU and RAM, then replace the process cache."""
        self._update_hardware()

        processes = tuple(self._list_processes())
        with self._proc_lock:
            self._processes = processes

    def _update_hardware(self) -> None:
        cpu = self._host_metrics.sample_cpu_busy_delta()
        ram_used, ram_total = self._host_metrics.sample_memory()
        stats = HardwareSnapshot(
            cpu_load_percent=cpu,
            ram_used_gb=ram_used,
            ram_total_gb=ram_total,
        )

        with self._hw_lock:
            self._hw_stats = stats
            self._cpu_history.append(cpu)
            self._ticks += 1

    def _list_processes(self) -> list[ProcessRecord]:
        try:
            return self._processes_source.list_processes()
        except Exception:
            # Keep the tick alive; an empty listing is replaced next tick
            logger.exception("Process enumeration failed")
            return []

    # -- hardware and process accessors -----------------------------------

    def get_hardware_stats(self) -> HardwareSnapshot:
        """Get the latest hardware snapshot."""
        with self._hw_lock:
            return self._hw_stats

    def get_cpu_history(self) -> list[float]:
        """Get the CPU load history, oldest sample first."""
        with self._hw_lock:
            return list(self._cpu_history)

    def get_processes(self, filter: str = "") -> list[ProcessRecord]:
        """
        Get cached processes whose name or pid contains ``filter``.

        Name matching is case-insensitive. An empty filter returns the whole
        cache. Filtering runs outside the lock on the immutable cache tuple.
        """
        with self._proc_lock:
            processes = self._processes
        return [proc for proc in processes if proc.matches(filter)]

    def terminate_process(self, pid: int) -> TerminateResult:
        """
        Ask process ``pid`` to exit.

        The cache is left as is; the process disappears on a later update().
        """
        try:
            result = self._processes_source.terminate(pid)
        except Exception as exc:
            logger.exception("Terminate request for pid %s raised", pid)
            result = TerminateResult(pid, False, f"signal delivery failed: {exc}")

        if result.ok:
            logger.info("Sent terminate request to pid %s", pid)
        else:
            logger.warning("Failed to terminate pid %s: %s", pid, result.reason)
        return result

    # -- weather --------------------------------------------------------

    def request_weather_refresh(self) -> bool:
        """
        Mark a weather refresh as pending.

        Returns True if this call queued the refresh, False if one was already
        pending or in flight (the request is coalesced) or the monitor is closed.
        """
        with self._request_lock:
            if self._stop_event.is_set():
                return False
            if self._weather_requested.is_set():
                return False
            self._weather_requested.set()
        logger.debug("Weather refresh requested")
        return True

    def is_weather_loading(self) -> bool:
        """Check if a weather refresh is pending or in flight."""
        return self._weather_requested.is_set()

    def get_weather(self) -> WeatherReading | None:
        """Get the last weather reading, or None if there is none."""
        with self._weather_lock:
            return self._weather

    def _weather_loop(self) -> None:
        """Main polling loop running in the background thread."""
        poll_interval = self._config.weather.poll_interval
        while not self._stop_event.is_set():
            if self._weather_requested.is_set():
                try:
                    self._refresh_weather()
                finally:
                    self._weather_requested.clear()

            self._stop_event.wait(timeout=poll_interval)

        # A request accepted just before stop is never fetched; drop it
        with self._request_lock:
            self._weather_requested.clear()

    def _refresh_weather(self) -> None:
        try:
            reading = self._weather_fetcher.fetch()
        except Exception:
            logger.exception("Weather fetch raised")
            reading = None

        with self._weather_lock:
            if reading is not None or not self._config.weather.keep_last_good:
                self._weather = reading

    # -- teardown -------------------------------------------------------

    def close(self, timeout: float | None = None) -> None:
        """
        Stop the weather thread and wait for it to exit.

        An in-flight fetch is never interrupted, so this can block for up to
        the poll interval plus the fetch timeout.

        Args:
            timeout: How long to wait for the thread (seconds). None waits
                until it exits.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is None:
            return
        thread.join(timeout=timeout)
        if thread.is_alive():
            logger.warning("Weather thread still running after %.1fs", timeout)
            return
        self._thread = None
        logger.debug("Weather thread stopped")
