"""Current-weather fetcher for the Open-Meteo forecast API."""

import logging
import math
from datetime import datetime, timezone
from numbers import Real
from typing import Any

import requests

from hudmon.config import WeatherConfig
from hudmon.models import WeatherReading

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = ("temperature", "windspeed", "weathercode")


def parse_current_weather(
    payload: Any, observed_at: datetime | None = None
) -> WeatherReading | None:
    """
    Build a reading from a decoded forecast response.

    Requires a ``current_weather`` object with finite numeric ``temperature``,
    ``windspeed`` and ``weathercode``. Returns None when any of them is
    missing or malformed; partial readings are never produced.
    """
    if not isinstance(payload, dict):
        return None
    current = payload.get("current_weather")
    if not isinstance(current, dict):
        return None

    values = {}
    for name in _REQUIRED_FIELDS:
        value = current.get(name)
        # bool is a Real subclass but never a valid measurement
        if not isinstance(value, Real) or isinstance(value, bool):
            return None
        # json accepts NaN and Infinity literals
        if not math.isfinite(value):
            return None
        values[name] = value

    return WeatherReading(
        summary=f"Code {int(values['weathercode'])}",
        temperature_c=float(values["temperature"]),
        wind_kph=float(values["windspeed"]),
        observed_at=observed_at or datetime.now(timezone.utc),
    )


class WeatherFetcher:
    """
    Blocking fetcher for the current weather at fixed coordinates.

    Every failure (network, timeout, HTTP status, JSON, missing fields) is
    logged and reported as None.
    """

    def __init__(self, config: WeatherConfig | None = None) -> None:
        """
        Initialize the WeatherFetcher.

        Args:
            config: Endpoint, coordinates and timeout. Defaults to WeatherConfig().
        """
        self._config = config or WeatherConfig()

    @property
    def config(self) -> WeatherConfig:
        """Get the fetcher configuration."""
        return self._config

    def fetch(self) -> WeatherReading | None:
        """Perform one GET and parse the response."""
        config = self._config
        try:
            response = requests.get(
                config.base_url,
                params=config.params,
                timeout=config.timeout,
                allow_redirects=True,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            logger.warning("Weather request to %s failed: %s", config.base_url, exc)
            return None
        except ValueError as exc:
            logger.warning("Weather response is not valid JSON: %s", exc)
            return None

        reading = parse_current_weather(payload)
        if reading is None:
            logger.warning("Weather response lacks a complete current_weather object")
        else:
            logger.debug("Weather reading: %s", reading)
        return reading
