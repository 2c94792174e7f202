"""hudmon - Textual HUD driving the monitor core."""

import argparse
import logging
from dataclasses import replace

from textual.app import App, ComposeResult
from textual.containers import Vertical
from textual.css.query import NoMatches
from textual.widgets import DataTable, Footer, Input, Sparkline, Static, TabbedContent, TabPane
from textual.widgets.data_table import CellDoesNotExist, DuplicateKey, RowDoesNotExist
from textual.worker import Worker, WorkerState

from hudmon.config import MonitorConfig, WeatherConfig
from hudmon.models import HardwareSnapshot, ProcessRecord, TerminateResult, WeatherReading
from hudmon.monitor import MonitorCore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def format_hardware(stats: HardwareSnapshot) -> str:
    """Format CPU load and RAM usage for the hardware tab."""
    bar_len = min(int(stats.ram_percent / 5), 20)
    bar = "[cyan]█[/cyan]" * bar_len + "[dim]░[/dim]" * (20 - bar_len)
    return (
        f"CPU Load: {stats.cpu_load_percent:.1f}%\n"
        f"RAM \\[{bar}] {stats.ram_used_gb:.2f} / {stats.ram_total_gb:.2f} GB"
    )


def format_weather(reading: WeatherReading | None, loading: bool) -> str:
    """Format the weather tab body."""
    if loading:
        return "Loading..."
    if reading is None:
        return "No data (yet)."
    return (
        f"Summary: {reading.summary}\n"
        f"Temperature: {reading.temperature_c:.1f} C\n"
        f"Wind: {reading.wind_kph:.1f} km/h\n"
        f"Updated: {reading.observed_at:%H:%M:%S} UTC"
    )


def format_terminate(result: TerminateResult) -> str:
    """Format the outcome of a terminate request."""
    if result.ok:
        return f"Sent terminate to PID {result.pid}"
    return f"Failed to terminate PID {result.pid}: {result.reason}"


class HardwarePanel(Vertical):
    """CPU load, CPU history sparkline and RAM usage."""

    DEFAULT_CSS = """
    HardwarePanel {
        height: auto;
        padding: 1;
    }

    #cpu-history {
        height: 8;
        margin: 1 0;
    }
    """

    def compose(self) -> ComposeResult:
        """Compose the hardware layout."""
        yield Static("Loading CPU info...", id="hw-stats")
        yield Sparkline([], summary_function=max, id="cpu-history")

    def update_stats(self, stats: HardwareSnapshot, history: list[float]) -> None:
        """Show a new snapshot and history."""
        self.query_one("#hw-stats", Static).update(format_hardware(stats))
        self.query_one("#cpu-history", Sparkline).data = history


class ProcessPanel(Vertical):
    """Filterable process table."""

    DEFAULT_CSS = """
    ProcessPanel {
        height: 1fr;
    }

    #process-table {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessPanel."""
        super().__init__(*args, **kwargs)
        self._current_pids: set[int] = set()

    @property
    def filter_text(self) -> str:
        """Get the current filter text."""
        return self.query_one("#proc-filter", Input).value

    def compose(self) -> ComposeResult:
        """Compose the process panel."""
        yield Input(placeholder="Search by name or PID", id="proc-filter")
        yield Static("Total: 0", id="proc-total")
        yield DataTable(id="process-table")
        yield Static("", id="proc-message")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"
        table.add_column("PID", key="pid", width=8)
        table.add_column("Name", key="name")

    def update_processes(self, processes: list[ProcessRecord]) -> None:
        """
        Update the table with a new process listing.

        Existing rows are updated in place; only vanished rows are removed.
        Rows are kept in pid order.
        """
        table = self.query_one("#process-table", DataTable)
        new_pids = {proc.pid for proc in processes}

        for pid in self._current_pids - new_pids:
            try:
                table.remove_row(str(pid))
            except RowDoesNotExist:
                pass

        added = False
        for proc in processes:
            row_key = str(proc.pid)
            if proc.pid in self._current_pids:
                try:
                    table.update_cell(row_key, "name", proc.name)
                except CellDoesNotExist:
                    pass
            else:
                try:
                    table.add_row(proc.pid, proc.name, key=row_key)
                    added = True
                except DuplicateKey:
                    pass

        # New rows land at the bottom
        if added:
            table.sort("pid")

        self._current_pids = new_pids
        self.query_one("#proc-total", Static).update(f"Total: {len(new_pids)}")

    @property
    def selected_pid(self) -> int | None:
        """Get the pid of the highlighted row, if any."""
        table = self.query_one("#process-table", DataTable)
        if table.row_count == 0:
            return None
        try:
            row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        except CellDoesNotExist:
            return None
        return int(row_key.value)

    def show_message(self, message: str) -> None:
        """Show the result of the last action below the table."""
        self.query_one("#proc-message", Static).update(message)


class WeatherPanel(Vertical):
    """Latest weather reading."""

    DEFAULT_CSS = """
    WeatherPanel {
        height: auto;
        padding: 1;
    }
    """

    def __init__(self, config: WeatherConfig, *args, **kwargs) -> None:
        """Initialize WeatherPanel."""
        super().__init__(*args, **kwargs)
        self._config = config

    def compose(self) -> ComposeResult:
        """Compose the weather panel."""
        yield Static(
            f"Weather - {self._config.latitude:g}, {self._config.longitude:g} (Open-Meteo)",
            id="weather-location",
        )
        yield Static("No data (yet).", id="weather-info")

    def update_weather(self, reading: WeatherReading | None, loading: bool) -> None:
        """Show the current weather state."""
        self.query_one("#weather-info", Static).update(format_weather(reading, loading))


class HudApp(App):
    """Main hudmon application."""

    TITLE = "hudmon"
    SUB_TITLE = "Hardware HUD"

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh_weather", "Weather"),
        ("k", "terminate", "Terminate"),
        ("slash", "search", "Search"),
    ]

    def __init__(
        self,
        config: MonitorConfig | None = None,
        monitor: MonitorCore | None = None,
    ) -> None:
        """
        Initialize the HudApp.

        Args:
            config: Monitor settings; ignored when ``monitor`` is given.
            monitor: An existing monitor core to drive. The app closes it on exit.
        """
        super().__init__()
        self._monitor = monitor or MonitorCore(config)
        self._config = self._monitor.config
        self._sampler: Worker | None = None

    @property
    def monitor(self) -> MonitorCore:
        """Get the monitor core driven by this app."""
        return self._monitor

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        with TabbedContent(initial="hardware"):
            with TabPane("Hardware", id="hardware"):
                yield HardwarePanel(id="hardware-panel")
            with TabPane("Processes", id="processes"):
                yield ProcessPanel(id="process-panel")
            with TabPane("Weather", id="weather"):
                yield WeatherPanel(self._config.weather, id="weather-panel")
        yield Footer()

    def on_mount(self) -> None:
        """Take the first sample once panels are mounted and start the tick timer."""
        self.call_after_refresh(self._tick)
        self.set_interval(self._config.tick_interval, self._tick)

    def on_unmount(self) -> None:
        """Stop the weather thread however the app exits."""
        self._monitor.close()

    def _tick(self) -> None:
        """
        Sample once in a worker thread; panels refresh when it finishes.

        A psutil pass over every process is too slow for the event loop.
        Ticks that fire while a sample is still running are skipped.
        """
        if self._sampler is not None and not self._sampler.is_finished:
            return
        self._sampler = self.run_worker(
            self._monitor.update,
            name="sample",
            group="sample",
            thread=True,
            exit_on_error=False,
        )

    def on_worker_state_changed(self, event: Worker.StateChanged) -> None:
        """Refresh the panels after a sample completes."""
        if event.worker.group != "sample":
            return
        if event.state == WorkerState.SUCCESS:
            self._refresh_ui()
        elif event.state == WorkerState.ERROR:
            logger.error("Sampling failed: %s", event.worker.error)

    def _refresh_ui(self) -> None:
        try:
            self.query_one(HardwarePanel).update_stats(
                self._monitor.get_hardware_stats(), self._monitor.get_cpu_history()
            )
            self._refresh_processes()
            self._refresh_weather()
        except NoMatches:
            pass  # Widgets not mounted yet

    def _refresh_processes(self) -> None:
        panel = self.query_one(ProcessPanel)
        panel.update_processes(self._monitor.get_processes(panel.filter_text))

    def _refresh_weather(self) -> None:
        self.query_one(WeatherPanel).update_weather(
            self._monitor.get_weather(), self._monitor.is_weather_loading()
        )

    def on_input_changed(self, event: Input.Changed) -> None:
        """Re-filter the process table as the user types."""
        if event.input.id == "proc-filter":
            self._refresh_processes()

    def action_refresh_weather(self) -> None:
        """Request a weather refresh."""
        if not self._monitor.request_weather_refresh():
            self.notify("Weather refresh already in progress")
        self._refresh_weather()

    def action_terminate(self) -> None:
        """Send a terminate request to the highlighted process."""
        panel = self.query_one(ProcessPanel)
        pid = panel.selected_pid
        if pid is None:
            self.notify("No process selected")
            return
        panel.show_message(format_terminate(self._monitor.terminate_process(pid)))

    def action_search(self) -> None:
        """Switch to the process tab and focus the filter."""
        self.query_one(TabbedContent).active = "processes"
        self.query_one("#proc-filter", Input).focus()

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.close()
        self.exit()


def configure_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """
    Configure the ``hudmon`` logger.

    Without a log file, records are dropped: writing to stderr would corrupt
    the terminal UI.
    """
    root = logging.getLogger("hudmon")
    root.setLevel(level.upper())
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()
    if log_file:
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    else:
        handler = logging.NullHandler()
    root.addHandler(handler)


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    defaults = MonitorConfig()
    parser = argparse.ArgumentParser(prog="hudmon", description="Hardware HUD for the terminal.")
    parser.add_argument(
        "--interval",
        type=float,
        default=defaults.tick_interval,
        help="Seconds between samples (default: %(default)s)",
    )
    parser.add_argument("--latitude", type=float, default=defaults.weather.latitude)
    parser.add_argument("--longitude", type=float, default=defaults.weather.longitude)
    parser.add_argument(
        "--keep-last-weather",
        action="store_true",
        help="Keep the previous weather reading when a refresh fails",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    parser.add_argument("--log-file", default=None, help="Write logs to this file")
    return parser


def config_from_args(args: argparse.Namespace) -> MonitorConfig:
    """Turn parsed arguments into a MonitorConfig."""
    defaults = MonitorConfig()
    weather = replace(
        defaults.weather,
        latitude=args.latitude,
        longitude=args.longitude,
        keep_last_good=args.keep_last_weather,
    )
    return replace(defaults, tick_interval=args.interval, weather=weather)


def main(argv: list[str] | None = None) -> None:
    """Entry point for hudmon application."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level, args.log_file)
    try:
        config = config_from_args(args)
    except ValueError as exc:
        parser.error(str(exc))
    logger.info("Starting hudmon with %s", config)
    app = HudApp(config)
    app.run()


if __name__ == "__main__":
    main()
