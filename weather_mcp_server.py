#!/usr/bin/env python3
"""
Weather MCP Server

Weather alerts and forecasts from the National Weather Service API, plus a
small catalog of weather prompt templates, served over the Model Context
Protocol.
"""

import asyncio
import json
import logging
import math
import os
import re
import sys
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

import httpx
import yaml
from mcp.server import Server
from mcp.types import (
    GetPromptResult,
    Prompt,
    PromptArgument,
    PromptMessage,
    TextContent,
    Tool,
)
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


logger = logging.getLogger("weather_mcp_server")

NWS_API_BASE = "https://api.weather.gov"
USER_AGENT = "weather-app/1.0"

DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    "nws": {
        "api_base": NWS_API_BASE,
        "user_agent": USER_AGENT,
    },
    "logging": {
        "level": "INFO",
    },
}


class InvalidArgumentError(ValueError):
    """Raised when an invocation's arguments do not match its schema."""


# ─── Upstream Records ────────────────────────────────────────────────────────

def _format_number(value: Union[int, float]) -> str:
    """Shortest plain text for a number: 40.0 -> "40", 1e-05 -> "0.00001"."""
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"

    text = repr(value)
    mantissa, _, exponent = text.partition("e")
    if not exponent:
        return text[:-2] if text.endswith(".0") else text

    power = int(exponent)
    if -7 < power < 21:
        return format(Decimal(text), "f")
    return f"{mantissa}e{'+' if power > 0 else '-'}{abs(power)}"


def _scalar_text(value: Any) -> Optional[str]:
    # Upstream occasionally sends numbers or booleans where text is expected
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return _format_number(value)
    return None


class AlertRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    event: Optional[str] = None
    area_desc: Optional[str] = Field(default=None, alias="areaDesc")
    severity: Optional[str] = None
    status: Optional[str] = None
    headline: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        return _scalar_text(value)


class AlertFeature(BaseModel):
    properties: Optional[AlertRecord] = None


class AlertsResponse(BaseModel):
    features: Optional[List[AlertFeature]] = None


class GridPoint(BaseModel):
    """Resolution of a coordinate to the URL serving its forecast."""

    model_config = ConfigDict(populate_by_name=True)

    forecast_url: Optional[str] = Field(default=None, alias="forecast")

    @field_validator("forecast_url", mode="before")
    @classmethod
    def _only_text_urls(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) else None


class PointsResponse(BaseModel):
    properties: Optional[GridPoint] = None


class ForecastPeriod(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    temperature: Optional[Union[int, float, str]] = None
    temperature_unit: Optional[str] = Field(default=None, alias="temperatureUnit")
    wind_speed: Optional[str] = Field(default=None, alias="windSpeed")
    wind_direction: Optional[str] = Field(default=None, alias="windDirection")
    short_forecast: Optional[str] = Field(default=None, alias="shortForecast")

    @field_validator("temperature", mode="before")
    @classmethod
    def _coerce_temperature(cls, value: Any) -> Optional[Union[int, float, str]]:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return _scalar_text(value)
        return value

    @field_validator(
        "name", "temperature_unit", "wind_speed", "wind_direction", "short_forecast",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        return _scalar_text(value)


class ForecastProperties(BaseModel):
    periods: Optional[List[ForecastPeriod]] = None


class ForecastResponse(BaseModel):
    properties: Optional[ForecastProperties] = None


ModelT = TypeVar("ModelT", bound=BaseModel)


# ─── Formatters ──────────────────────────────────────────────────────────────

def _or_default(value: Any, default: str) -> Any:
    """Return ``value`` unless it is missing (None or an empty string)."""
    if value is None or value == "":
        return default
    return value


def format_alert(alert: AlertRecord) -> str:
    """Format an alert into a six-line block."""
    return "\n".join([
        f"Event: {_or_default(alert.event, 'Unknown')}",
        f"Area: {_or_default(alert.area_desc, 'Unknown')}",
        f"Severity: {_or_default(alert.severity, 'Unknown')}",
        f"Status: {_or_default(alert.status, 'Unknown')}",
        f"Headline: {_or_default(alert.headline, 'No headline')}",
        "---",
    ])


def format_forecast_period(period: ForecastPeriod) -> str:
    """Format a single forecast period into a readable block."""
    temperature = _or_default(_scalar_text(period.temperature), "Unknown")
    unit = _or_default(period.temperature_unit, "F")
    wind = f"{_or_default(period.wind_speed, 'Unknown')} {_or_default(period.wind_direction, '')}"
    return "\n".join([
        f"{_or_default(period.name, 'Unknown')}:",
        f"Temperature: {temperature}°{unit}",
        f"Wind: {wind}".rstrip(),
        f"{_or_default(period.short_forecast, 'No forecast available')}",
        "---",
    ])


# ─── Template Renderer ───────────────────────────────────────────────────────

TOKEN_PATTERN = re.compile(r"\{([^}]+)\}")


def _stringify(value: Any) -> str:
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    if isinstance(value, (bool, int, float)):
        return _scalar_text(value)
    return str(value)


def render_template(template: str, variables: Optional[Dict[str, Any]] = None) -> str:
    """Replace ``{token}`` placeholders in ``template`` with values from ``variables``.

    Tokens without a value (missing key or ``None``) are left as-is. Structured
    values are written as compact JSON. Substitution is a single left-to-right
    pass, so substituted text is never expanded again.
    """
    if variables is None:
        return template

    def _substitute(match: "re.Match[str]") -> str:
        value = variables.get(match.group(1))
        if value is None:
            return match.group(0)
        return _stringify(value)

    return TOKEN_PATTERN.sub(_substitute, template)


# ─── Argument Schemas ────────────────────────────────────────────────────────

class InvocationArguments(BaseModel):
    model_config = ConfigDict(strict=True, populate_by_name=True)


class GetAlertsArguments(InvocationArguments):
    state: str = Field(
        min_length=2,
        max_length=2,
        description="Two-letter state code (e.g. CA, NY)",
    )


class GetForecastArguments(InvocationArguments):
    latitude: float = Field(ge=-90, le=90, description="Latitude of the location")
    longitude: float = Field(ge=-180, le=180, description="Longitude of the location")


class ListPromptsArguments(InvocationArguments):
    pass


class RenderPromptArguments(InvocationArguments):
    prompt_id: str = Field(
        alias="promptId",
        description="ID of the prompt to render (see list-prompts)",
    )
    variables: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Optional map of variables to substitute into the prompt",
    )


class ForecastSummaryArguments(InvocationArguments):
    location: str = Field(description="The location name")
    latitude: str = Field(description="Latitude of the location")
    longitude: str = Field(description="Longitude of the location")


class SevereWeatherAlertsArguments(InvocationArguments):
    state: str = Field(description="Two-letter state code")


class HeatSafetyTipsArguments(InvocationArguments):
    location: str = Field(description="The location name")


class TravelAdvisoryArguments(InvocationArguments):
    location: str = Field(description="The location name")
    start_time: str = Field(description="Start time for travel")
    end_time: str = Field(description="End time for travel")


def _validate_arguments(model: Type[ModelT], arguments: Optional[Dict[str, Any]]) -> ModelT:
    try:
        return model.model_validate(arguments or {})
    except ValidationError as e:
        raise InvalidArgumentError(str(e)) from e


# ─── Prompt Catalog ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PromptDefinition:
    id: str
    title: str
    description: str
    template: str
    arguments: Type[InvocationArguments]


PROMPTS = (
    PromptDefinition(
        id="forecast-summary",
        title="3-day Forecast Summary",
        description="Summarize the next 3 days of weather for a given location.",
        template=(
            "Summarize the weather forecast for the next 3 days for {location} "
            "(lat: {latitude}, lon: {longitude}). Include high/low temperatures, "
            "chance of precipitation, and any notable hazards."
        ),
        arguments=ForecastSummaryArguments,
    ),
    PromptDefinition(
        id="severe-weather-alerts",
        title="Severe Weather Alerts Summary",
        description="Summarize active severe weather alerts for a state and recommended actions.",
        template=(
            "Check for active severe weather alerts in {state}. Summarize the event, "
            "affected areas, severity, expected timing, and recommended actions for residents."
        ),
        arguments=SevereWeatherAlertsArguments,
    ),
    PromptDefinition(
        id="heat-safety-tips",
        title="Heat Safety Tips",
        description="Provide short, actionable heat safety tips for vulnerable populations.",
        template=(
            "Provide concise heat safety tips for outdoor workers and vulnerable populations "
            "during an extreme heat event in {location}. Include hydration guidance, cooling "
            "strategies, and when to seek medical attention."
        ),
        arguments=HeatSafetyTipsArguments,
    ),
    PromptDefinition(
        id="travel-advisory",
        title="Travel Advisory",
        description=(
            "Generate travel advisories and safety recommendations based on current "
            "and forecasted weather."
        ),
        template=(
            "Given current and forecasted weather conditions for {location}, provide travel "
            "advisories and road safety recommendations for drivers traveling between "
            "{start_time} and {end_time}."
        ),
        arguments=TravelAdvisoryArguments,
    ),
)

PROMPTS_BY_ID: Dict[str, PromptDefinition] = {prompt.id: prompt for prompt in PROMPTS}


# ─── Tool Catalog ────────────────────────────────────────────────────────────

TOOLS: Dict[str, tuple] = {
    "get-alerts": ("Get weather alerts for a state", GetAlertsArguments),
    "get-forecast": ("Get weather forecast for a location", GetForecastArguments),
    "list-prompts": ("List example prompts that this server can provide", ListPromptsArguments),
    "render-prompt": (
        "Render one of the example prompts with optional variable substitution",
        RenderPromptArguments,
    ),
}


def _text(text: str) -> List[TextContent]:
    return [TextContent(type="text", text=text)]


# ─── Configuration ───────────────────────────────────────────────────────────

def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file, merged over the defaults."""
    if not config_path:
        config_path = os.environ.get("WEATHER_CONFIG", "config.yaml")

    try:
        with open(config_path, 'r') as f:
            loaded = yaml.safe_load(f) or {}
    except FileNotFoundError:
        loaded = {}

    if not isinstance(loaded, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")

    config = dict(loaded)
    for section, defaults in DEFAULT_CONFIG.items():
        config[section] = {**defaults, **(loaded.get(section) or {})}
    return config


def configure_logging(level: str = "INFO") -> None:
    """Send diagnostics to stderr; stdout carries the protocol stream."""
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


# ─── Server ──────────────────────────────────────────────────────────────────

class WeatherServer:
    def __init__(self, config_path: Optional[str] = None):
        self.server = Server("weather")
        self.config = load_config(config_path)
        self.api_base = self.config["nws"]["api_base"].rstrip("/")
        self.user_agent = self.config["nws"]["user_agent"]
        self.http_client = httpx.AsyncClient(follow_redirects=True)

        self._register_handlers()

    def _register_handlers(self):
        """Register MCP tool and prompt handlers."""

        @self.server.list_tools()
        async def list_tools() -> List[Tool]:
            return [
                Tool(name=name, description=description, inputSchema=model.model_json_schema())
                for name, (description, model) in TOOLS.items()
            ]

        @self.server.call_tool()
        async def call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
            return await self.dispatch(name, arguments)

        @self.server.list_prompts()
        async def list_prompts() -> List[Prompt]:
            return [
                Prompt(
                    name=prompt.id,
                    description=prompt.description,
                    arguments=[
                        PromptArgument(
                            name=field_name,
                            description=field.description,
                            required=field.is_required(),
                        )
                        for field_name, field in prompt.arguments.model_fields.items()
                    ],
                )
                for prompt in PROMPTS
            ]

        @self.server.get_prompt()
        async def get_prompt(name: str, arguments: Optional[Dict[str, str]]) -> GetPromptResult:
            return self.get_prompt(name, arguments)

    async def dispatch(self, name: str, arguments: Optional[Dict[str, Any]]) -> List[TextContent]:
        """Validate ``arguments`` against the tool's schema and run the tool."""
        if name not in TOOLS:
            raise InvalidArgumentError(f"Unknown tool: {name}")

        _, model = TOOLS[name]
        params = _validate_arguments(model, arguments)
        logger.debug("Calling %s with %s", name, params.model_dump())

        if name == "get-alerts":
            return await self._get_alerts(params.state)
        elif name == "get-forecast":
            return await self._get_forecast(params.latitude, params.longitude)
        elif name == "list-prompts":
            return self._list_prompts()
        else:
            return self._render_prompt(params.prompt_id, params.variables)

    # ─── Upstream Client ─────────────────────────────────────────────────

    async def make_nws_request(self, url: str, model: Type[ModelT]) -> Optional[ModelT]:
        """GET ``url`` once and parse the body into ``model``; None on any failure."""
        headers = {"User-Agent": self.user_agent, "Accept": "application/geo+json"}
        try:
            response = await self.http_client.get(url, headers=headers)
            response.raise_for_status()
            return model.model_validate(response.json())
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error("Error making NWS request to %s: %s", url, e)
        except ValueError as e:
            # Covers both JSON decoding and schema validation errors
            logger.error("Malformed NWS response from %s: %s", url, e)
        return None

    # ─── Alerts ──────────────────────────────────────────────────────────

    async def _get_alerts(self, state: str) -> List[TextContent]:
        state_code = state.upper()
        alerts_data = await self.make_nws_request(
            f"{self.api_base}/alerts?area={state_code}", AlertsResponse
        )

        if alerts_data is None:
            return _text("Failed to retrieve alerts data")

        features = alerts_data.features or []
        if not features:
            return _text(f"No active alerts for {state_code}")

        alerts = [format_alert(feature.properties or AlertRecord()) for feature in features]
        return _text(f"Active alerts for {state_code}:\n\n" + "\n\n".join(alerts))

    # ─── Forecast ────────────────────────────────────────────────────────

    async def _get_forecast(self, latitude: float, longitude: float) -> List[TextContent]:
        lat_text = _format_number(latitude)
        lon_text = _format_number(longitude)

        points_url = f"{self.api_base}/points/{latitude:.4f},{longitude:.4f}"
        points_data = await self.make_nws_request(points_url, PointsResponse)

        if points_data is None:
            return _text(
                f"Failed to retrieve grid point data for coordinates: {lat_text}, {lon_text}. "
                "This location may not be supported by the NWS API (only US locations are supported)."
            )

        forecast_url = points_data.properties.forecast_url if points_data.properties else None
        if not forecast_url:
            return _text("Failed to get forecast URL from grid point data")

        forecast_data = await self.make_nws_request(forecast_url, ForecastResponse)
        if forecast_data is None:
            return _text("Failed to retrieve forecast data")

        periods = (forecast_data.properties.periods if forecast_data.properties else None) or []
        if not periods:
            return _text("No forecast periods available")

        forecast = "\n\n".join(format_forecast_period(period) for period in periods)
        return _text(f"Forecast for {lat_text}, {lon_text}:\n\n{forecast}")

    # ─── Prompts ─────────────────────────────────────────────────────────

    def _list_prompts(self) -> List[TextContent]:
        entries = "\n\n".join(
            f"{p.id} - {p.title}: {p.description}\nTemplate: {p.template}" for p in PROMPTS
        )
        return _text(f"Available prompts ({len(PROMPTS)}):\n\n{entries}")

    def _render_prompt(self, prompt_id: str, variables: Optional[Dict[str, Any]] = None) -> List[TextContent]:
        prompt = PROMPTS_BY_ID.get(prompt_id)
        if prompt is None:
            return _text(f"Prompt not found: {prompt_id}")

        rendered = render_template(prompt.template, variables)
        return _text(f"Prompt: {prompt.title}\n\n{rendered}")

    def get_prompt(self, name: str, arguments: Optional[Dict[str, str]] = None) -> GetPromptResult:
        """Fill a catalog prompt from its typed arguments."""
        prompt = PROMPTS_BY_ID.get(name)
        if prompt is None:
            raise InvalidArgumentError(f"Unknown prompt: {name}")

        params = _validate_arguments(prompt.arguments, arguments)
        text = prompt.template.format(**params.model_dump())
        return GetPromptResult(
            description=prompt.description,
            messages=[
                PromptMessage(role="user", content=TextContent(type="text", text=text)),
            ],
        )

    # ─── Server Lifecycle ────────────────────────────────────────────────

    async def run(self):
        """Run the MCP server over stdio."""
        from mcp.server.stdio import stdio_server

        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream, write_stream, self.server.create_initialization_options()
            )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.http_client.aclose()


async def serve(config_path: Optional[str] = None):
    async with WeatherServer(config_path) as server:
        configure_logging(server.config["logging"]["level"])
        logger.info("Weather MCP Server running on stdio")
        await server.run()


def main():
    """Main entry point."""
    config_path = sys.argv[1] if len(sys.argv) > 1 else None

    try:
        asyncio.run(serve(config_path))
    except Exception:
        logger.exception("Fatal error in main()")
        sys.exit(1)


if __name__ == "__main__":
    main()
