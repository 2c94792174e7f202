"""Configuration values for hudmon."""

from dataclasses import dataclass, field

OPEN_METEO_FORECAST_URL = "https://api.open-meteo.com/v1/forecast"


@dataclass(slots=True, frozen=True)
class WeatherConfig:
    """Forecast endpoint and background refresh settings."""

    base_url: str = OPEN_METEO_FORECAST_URL
    latitude: float = 41.29  # Tashkent
    longitude: float = 69.23
    timeout: float = 10.0  # seconds, per request
    poll_interval: float = 0.2  # seconds between request-flag checks
    keep_last_good: bool = False  # keep the previous reading when a refresh fails

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ValueError("base_url must not be empty")
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {self.poll_interval}")

    @property
    def params(self) -> dict[str, str]:
        """Query parameters for the current-weather request."""
        return {
            "latitude": f"{self.latitude:g}",
            "longitude": f"{self.longitude:g}",
            "current_weather": "true",
        }

    @property
    def url(self) -> str:
        """Full request URL, query string included."""
        query = "&".join(f"{key}={value}" for key, value in self.params.items())
        return f"{self.base_url}?{query}"


@dataclass(slots=True, frozen=True)
class MonitorConfig:
    """Settings for the monitor core and its driver."""

    history_size: int = 256  # CPU samples kept in the ring buffer
    tick_interval: float = 1.0  # seconds between update() calls made by the HUD
    weather: WeatherConfig = field(default_factory=WeatherConfig)

    def __post_init__(self) -> None:
        if self.history_size <= 0:
            raise ValueError(f"history_size must be positive, got {self.history_size}")
        if self.tick_interval <= 0:
            raise ValueError(f"tick_interval must be positive, got {self.tick_interval}")


DEFAULT_CONFIG = MonitorConfig()
