"""
Test fixtures and configuration for Weather MCP Server tests.
"""

import json
import tempfile
from typing import Any, Optional
import pytest
import httpx
import yaml
from mcp.types import TextContent

from weather_mcp_server import WeatherServer


@pytest.fixture
def sample_config():
    """Sample configuration for testing."""
    return {
        "nws": {
            "api_base": "https://nws.example.com/",
            "user_agent": "weather-tests/0.1 (tests@example.com)"
        },
        "logging": {
            "level": "DEBUG"
        }
    }


@pytest.fixture
def temp_config_file(sample_config):
    """Create a temporary config file."""
    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
        yaml.dump(sample_config, f)
        return f.name


@pytest.fixture
def mock_alerts_response():
    """Mock NWS alerts API response with two alerts."""
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "id": "https://api.weather.gov/alerts/urn:oid:2.49.0.1.840.0.1a2b3c",
                "type": "Feature",
                "properties": {
                    "event": "Red Flag Warning",
                    "areaDesc": "Los Angeles County Mountains; Ventura County Mountains",
                    "severity": "Severe",
                    "status": "Actual",
                    "urgency": "Expected",
                    "headline": "Red Flag Warning issued October 18 at 3:12AM PDT until October 19 at 6:00PM PDT by NWS Los Angeles/Oxnard CA",
                    "sent": "2026-10-18T03:12:00-07:00"
                }
            },
            {
                "id": "https://api.weather.gov/alerts/urn:oid:2.49.0.1.840.0.4d5e6f",
                "type": "Feature",
                "properties": {
                    "event": "Wind Advisory",
                    "areaDesc": "Santa Clarita Valley",
                    "severity": "Moderate",
                    "status": "Actual",
                    "headline": "Wind Advisory issued October 18 at 2:45AM PDT by NWS Los Angeles/Oxnard CA"
                }
            }
        ],
        "title": "Current watches, warnings, and advisories for California",
        "updated": "2026-10-18T10:00:00+00:00"
    }


@pytest.fixture
def mock_alerts_empty_response():
    """Mock NWS alerts API response with no active alerts."""
    return {
        "type": "FeatureCollection",
        "features": [],
        "title": "Current watches, warnings, and advisories for Vermont"
    }


@pytest.fixture
def mock_points_response():
    """Mock NWS points API response."""
    return {
        "id": "https://api.weather.gov/points/37.7749,-122.4194",
        "type": "Feature",
        "properties": {
            "gridId": "MTR",
            "gridX": 85,
            "gridY": 105,
            "forecast": "https://api.weather.gov/gridpoints/MTR/85,105/forecast",
            "forecastHourly": "https://api.weather.gov/gridpoints/MTR/85,105/forecast/hourly",
            "relativeLocation": {
                "properties": {"city": "San Francisco", "state": "CA"}
            }
        }
    }


@pytest.fixture
def mock_points_no_forecast_response():
    """Mock NWS points API response without a forecast URL."""
    return {
        "id": "https://api.weather.gov/points/37.7749,-122.4194",
        "type": "Feature",
        "properties": {
            "gridId": "MTR",
            "gridX": 85,
            "gridY": 105
        }
    }


@pytest.fixture
def mock_forecast_response():
    """Mock NWS gridpoint forecast API response."""
    return {
        "type": "Feature",
        "properties": {
            "units": "us",
            "generatedAt": "2026-10-18T09:41:12+00:00",
            "periods": [
                {
                    "number": 1,
                    "name": "Today",
                    "isDaytime": True,
                    "temperature": 68,
                    "temperatureUnit": "F",
                    "windSpeed": "10 to 15 mph",
                    "windDirection": "W",
                    "shortForecast": "Mostly Sunny",
                    "detailedForecast": "Mostly sunny, with a high near 68."
                },
                {
                    "number": 2,
                    "name": "Tonight",
                    "isDaytime": False,
                    "temperature": 54,
                    "temperatureUnit": "F",
                    "windSpeed": "5 mph",
                    "windDirection": "SW",
                    "shortForecast": "Patchy Fog",
                    "detailedForecast": "Patchy fog after 11pm. Low around 54."
                }
            ]
        }
    }


@pytest.fixture
def mock_forecast_empty_response():
    """Mock NWS forecast response with no periods."""
    return {
        "type": "Feature",
        "properties": {
            "units": "us",
            "periods": []
        }
    }


class MockResponse:
    """Mock HTTP response for testing."""

    def __init__(self, json_data: Any = None, status_code: int = 200, json_error: Optional[Exception] = None):
        self.json_data = json_data
        self.status_code = status_code
        self.json_error = json_error
        self.headers = {'content-type': 'application/geo+json'}

    def json(self):
        if self.json_error is not None:
            raise self.json_error
        return self.json_data

    def raise_for_status(self):
        if self.status_code >= 400:
            raise httpx.HTTPStatusError(
                message=f"HTTP {self.status_code}",
                request=None,
                response=self
            )


def invalid_json_error() -> json.JSONDecodeError:
    return json.JSONDecodeError("Expecting value", "<html>Service Unavailable</html>", 0)


@pytest.fixture
async def weather_server(temp_config_file):
    """Create a weather server instance for testing."""
    server = WeatherServer(temp_config_file)
    yield server
    await server.http_client.aclose()


@pytest.fixture
async def weather_server_default():
    """Create a weather server instance with default config."""
    server = WeatherServer("/nonexistent/config.yaml")
    yield server
    await server.http_client.aclose()


def assert_textcontent_result(result, expected_content_contains=None, expected_count=1):
    """Helper function to assert TextContent results."""
    assert isinstance(result, list)
    assert len(result) == expected_count

    for item in result:
        assert isinstance(item, TextContent)
        assert item.type == "text"
        assert isinstance(item.text, str)

        if expected_content_contains:
            if isinstance(expected_content_contains, str):
                assert expected_content_contains in item.text
            elif isinstance(expected_content_contains, list):
                for content in expected_content_contains:
                    assert content in item.text
