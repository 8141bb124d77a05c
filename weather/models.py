"""Shared weather data types: coordinates, observations, forecasts, alerts."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from enum import Enum

# Provider names, highest merge priority first
WUNDERGROUND = "wunderground"
OPENWEATHERMAP = "openweathermap"
OPEN_METEO = "open_meteo"
MET_NORWAY = "met_norway"


class UnitSystem(Enum):
    METRIC = "Metric"
    IMPERIAL = "Imperial"
    UK = "UK"  # display-only: mph wind, °C and hPa otherwise

    @classmethod
    def parse(cls, value: str | UnitSystem | None) -> UnitSystem:
        """Map a settings string onto a unit system, defaulting to metric."""
        if isinstance(value, UnitSystem):
            return value
        if not value:
            return cls.METRIC
        lowered = value.strip().lower()
        for member in cls:
            if member.value.lower() == lowered:
                return member
        return cls.METRIC

    @property
    def request_units(self) -> str:
        """Unit string understood by OpenWeatherMap."""
        return "metric" if self is UnitSystem.METRIC else "imperial"


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.latitude) and math.isfinite(self.longitude)):
            raise ValueError(f"coordinate must be finite: {self.latitude}, {self.longitude}")
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")

    def cache_key(self) -> str:
        return f"{self.latitude:.2f},{self.longitude:.2f}"


@dataclass(frozen=True)
class ProviderCredentials:
    """Secrets for the keyed providers. Open-Meteo needs none."""

    wu_api_key: str | None = None
    wu_station_id: str | None = None
    owm_api_key: str | None = None

    @property
    def station_eligible(self) -> bool:
        return _present(self.wu_api_key) and _present(self.wu_station_id)

    @property
    def owm_eligible(self) -> bool:
        return _present(self.owm_api_key)


def _present(value: str | None) -> bool:
    return value is not None and value.strip() != ""


@dataclass(frozen=True)
class RawObservation:
    """One provider's sparse current conditions, always in metric units.

    temperature / feels_like / temp_high / temp_low / dew_point: °C
    humidity / cloud_cover: %
    pressure: hPa
    wind_speed / wind_gust: km/h
    solar_radiation: W/m²
    """

    provider: str
    temperature: float | None = None
    feels_like: float | None = None
    temp_high: float | None = None
    temp_low: float | None = None
    humidity: float | None = None
    dew_point: float | None = None
    pressure: float | None = None
    wind_speed: float | None = None
    wind_gust: float | None = None
    uv_index: float | None = None
    solar_radiation: float | None = None
    cloud_cover: float | None = None


# Physical fields shared by raw and aggregated observations
OBSERVATION_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(RawObservation) if f.name != "provider")


@dataclass(frozen=True)
class AggregatedObservation:
    """Merged observation plus derived metrics, expressed in `unit_system`."""

    created_at: datetime
    unit_system: UnitSystem = UnitSystem.METRIC
    temperature: float | None = None
    feels_like: float | None = None
    temp_high: float | None = None
    temp_low: float | None = None
    humidity: float | None = None
    dew_point: float | None = None
    pressure: float | None = None
    wind_speed: float | None = None
    wind_gust: float | None = None
    uv_index: float | None = None
    solar_radiation: float | None = None
    cloud_cover: float | None = None
    condition: str = "default"
    # field name → provider that supplied it
    field_sources: dict[str, str] = field(default_factory=dict, compare=False)

    @property
    def has_data(self) -> bool:
        return any(getattr(self, name) is not None for name in OBSERVATION_FIELDS)

    @property
    def providers(self) -> list[str]:
        return sorted(set(self.field_sources.values()))


@dataclass(frozen=True)
class ForecastSample:
    """A raw precipitation sample as returned by a forecast provider."""

    time: str
    precipitation: float | None = None  # mm/h
    probability: float | None = None  # 0-100, None for amount-only series


@dataclass(frozen=True)
class DailyForecast:
    date: date
    temp_max: float | None
    temp_min: float | None
    precipitation: float = 0.0
    precipitation_probability: float = 0.0
    weather_code: int | None = None
    condition: str = "default"
    wind_speed: float | None = None
    wind_direction: float | None = None
    humidity: float | None = None
    pressure: float | None = None
    uv_index: float | None = None
    sunrise: datetime | None = None
    sunset: datetime | None = None


@dataclass(frozen=True)
class HourlyForecast:
    time: datetime
    temperature: float | None
    weather_code: int | None = None
    condition: str = "default"
    wind_speed: float | None = None
    wind_gust: float | None = None


class AlertSeverity(Enum):
    INFORMATION = "Information"
    ADVISORY = "Advisory"
    WARNING = "Warning"
    SEVERE = "Severe Warning"

    @classmethod
    def from_title(cls, title: str) -> AlertSeverity:
        """MET Norway RSS titles carry the awareness colour in plain text."""
        lower = title.lower()
        if "yellow" in lower:
            return cls.ADVISORY
        if "orange" in lower:
            return cls.WARNING
        if "red" in lower:
            return cls.SEVERE
        return cls.INFORMATION


@dataclass(frozen=True)
class WeatherAlert:
    id: str
    type: str
    severity: AlertSeverity
    description: str
    effective: datetime
