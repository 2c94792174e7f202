"""Tests for the weather fetcher."""

import json
from datetime import datetime, timezone
from unittest.mock import Mock, patch

import pytest
import requests

from hudmon.config import WeatherConfig
from hudmon.weather import WeatherFetcher, parse_current_weather

PAYLOAD = {
    "latitude": 41.3,
    "longitude": 69.25,
    "current_weather": {
        "temperature": 21.5,
        "windspeed": 7.2,
        "winddirection": 180,
        "weathercode": 3,
        "time": "2024-06-01T12:30",
    },
}


def make_response(payload=None, status=200, json_error=None):
    response = Mock()
    response.status_code = status
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status} Error")
    else:
        response.raise_for_status.return_value = None
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


class TestParseCurrentWeather:
    """Tests for parse_current_weather."""

    def test_complete_payload(self):
        observed = datetime(2024, 6, 1, tzinfo=timezone.utc)

        reading = parse_current_weather(PAYLOAD, observed_at=observed)

        assert reading is not None
        assert reading.summary == "Code 3"
        assert reading.temperature_c == 21.5
        assert reading.wind_kph == 7.2
        assert reading.observed_at == observed

    def test_observed_at_defaults_to_now_utc(self):
        reading = parse_current_weather(PAYLOAD)

        assert reading is not None
        assert reading.observed_at.tzinfo is timezone.utc

    def test_missing_current_weather(self):
        assert parse_current_weather({"latitude": 41.3}) is None

    @pytest.mark.parametrize("field", ["temperature", "windspeed", "weathercode"])
    def test_missing_field(self, field):
        current = dict(PAYLOAD["current_weather"])
        del current[field]

        assert parse_current_weather({"current_weather": current}) is None

    @pytest.mark.parametrize("field", ["temperature", "windspeed", "weathercode"])
    @pytest.mark.parametrize(
        "value", ["21.5", None, True, [21.5], float("nan"), float("inf"), float("-inf")]
    )
    def test_non_numeric_field(self, field, value):
        current = dict(PAYLOAD["current_weather"], **{field: value})

        assert parse_current_weather({"current_weather": current}) is None

    @pytest.mark.parametrize("payload", [None, [], "text", {"current_weather": "sunny"}])
    def test_wrong_shapes(self, payload):
        assert parse_current_weather(payload) is None


class TestWeatherFetcher:
    """Tests for WeatherFetcher.fetch with requests mocked out."""

    def test_default_config(self):
        assert WeatherFetcher().config == WeatherConfig()

    def test_successful_fetch(self):
        config = WeatherConfig(latitude=52.52, longitude=13.41, timeout=3.0)
        with patch("hudmon.weather.requests.get", return_value=make_response(PAYLOAD)) as get:
            reading = WeatherFetcher(config).fetch()

        assert reading is not None
        assert reading.summary == "Code 3"
        get.assert_called_once_with(
            config.base_url,
            params={"latitude": "52.52", "longitude": "13.41", "current_weather": "true"},
            timeout=3.0,
            allow_redirects=True,
        )

    def test_network_error(self):
        with patch("hudmon.weather.requests.get", side_effect=requests.ConnectionError("down")):
            assert WeatherFetcher().fetch() is None

    def test_timeout(self):
        with patch("hudmon.weather.requests.get", side_effect=requests.Timeout("slow")):
            assert WeatherFetcher().fetch() is None

    def test_http_error_status(self):
        with patch("hudmon.weather.requests.get", return_value=make_response(PAYLOAD, status=503)):
            assert WeatherFetcher().fetch() is None

    def test_malformed_json(self):
        response = make_response(json_error=ValueError("Expecting value"))
        with patch("hudmon.weather.requests.get", return_value=response):
            assert WeatherFetcher().fetch() is None

    @pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
    def test_non_finite_json_literal(self, literal):
        body = (
            '{"current_weather": {"temperature": 1, "windspeed": 2, "weathercode": '
            + literal
            + "}}"
        )
        response = make_response(json.loads(body))
        with patch("hudmon.weather.requests.get", return_value=response):
            assert WeatherFetcher().fetch() is None

    def test_missing_current_weather(self):
        with patch("hudmon.weather.requests.get", return_value=make_response({"error": True})):
            assert WeatherFetcher().fetch() is None

    def test_failures_are_logged(self, caplog):
        with patch("hudmon.weather.requests.get", side_effect=requests.ConnectionError("down")):
            with caplog.at_level("WARNING", logger="hudmon.weather"):
                WeatherFetcher().fetch()

        assert "Weather request" in caplog.text
