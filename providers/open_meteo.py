"""FALLBACK + NOWCAST: Open-Meteo forecast API, no auth required.

Serves three roles:
  1. Current conditions when no keyed provider is eligible.
  2. The 15-minute precipitation series feeding the timeline builder.
  3. The multi-day daily forecast.
  4. The next-24-hours hourly forecast.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any

from providers.base import HttpProvider, to_float
from utils.logging import get_logger
from utils.time_utils import parse_iso_timestamp
from weather.errors import DecodeError
from weather.models import (
    OPEN_METEO,
    Coordinate,
    DailyForecast,
    ForecastSample,
    HourlyForecast,
    ProviderCredentials,
    RawObservation,
    UnitSystem,
)

log = get_logger("open_meteo")

BASE_URL = "https://api.open-meteo.com/v1/forecast"

CURRENT_FIELDS = (
    "temperature_2m",
    "relative_humidity_2m",
    "apparent_temperature",
    "precipitation",
    "wind_speed_10m",
    "wind_gusts_10m",
    "pressure_msl",
    "cloud_cover",
    "uv_index",
)
DAILY_FIELDS = (
    "temperature_2m_max",
    "temperature_2m_min",
    "precipitation_sum",
    "precipitation_probability_max",
    "weather_code",
    "wind_speed_10m_max",
    "wind_direction_10m_dominant",
    "relative_humidity_2m_max",
    "pressure_msl_max",
    "uv_index_max",
    "sunrise",
    "sunset",
)
HOURLY_FIELDS = ("temperature_2m", "weather_code", "wind_speed_10m", "wind_gusts_10m")
NOWCAST_MINUTELY_FIELDS = ("precipitation",)
NOWCAST_HOURLY_FIELDS = ("precipitation", "precipitation_probability")

# WMO weather interpretation codes → coarse condition label
_WEATHER_CODE_CONDITIONS: dict[int, str] = {}
for _codes, _label in (
    ((0, 1), "sunny"),
    ((2, 3), "cloudy"),
    ((45, 48), "foggy"),
    ((51, 53, 55, 56, 57, 61, 63, 65, 66, 67, 80, 81, 82), "rainy"),
    ((71, 73, 75, 77, 85, 86), "snowy"),
    ((95, 96, 99), "thunder"),
):
    for _code in _codes:
        _WEATHER_CODE_CONDITIONS[_code] = _label


def condition_for_weather_code(code: int | None) -> str:
    if code is None:
        return "default"
    return _WEATHER_CODE_CONDITIONS.get(code, "default")


def _at(values: Any, index: int) -> Any:
    """Safe list indexing for ragged daily arrays."""
    if isinstance(values, list) and 0 <= index < len(values):
        return values[index]
    return None


class OpenMeteoClient(HttpProvider):
    """Free forecast API: no auth required."""

    name = OPEN_METEO

    def __init__(self, base_url: str = BASE_URL, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._base_url = base_url

    async def fetch(
        self,
        coordinate: Coordinate,
        credentials: ProviderCredentials | None = None,
        unit_system: UnitSystem = UnitSystem.METRIC,
    ) -> RawObservation:
        """Current conditions plus today's min/max, in metric units."""
        params = {
            "latitude": coordinate.latitude,
            "longitude": coordinate.longitude,
            "current": ",".join(CURRENT_FIELDS),
            "daily": "temperature_2m_max,temperature_2m_min",
            "forecast_days": 1,
            "timezone": "UTC",
        }
        data = await self._get_json(self._base_url, params)
        return self.parse_current(data)

    def parse_current(self, data: Any) -> RawObservation:
        current = self._require(data, "current")
        if not isinstance(current, dict):
            raise DecodeError("'current' block is not an object", self.name)
        daily = data.get("daily") or {}
        if not isinstance(daily, dict):
            raise DecodeError("'daily' block is not an object", self.name)

        return RawObservation(
            provider=self.name,
            temperature=to_float(current.get("temperature_2m")),
            feels_like=to_float(current.get("apparent_temperature")),
            temp_high=to_float(_at(daily.get("temperature_2m_max"), 0)),
            temp_low=to_float(_at(daily.get("temperature_2m_min"), 0)),
            humidity=to_float(current.get("relative_humidity_2m")),
            pressure=to_float(current.get("pressure_msl")),
            wind_speed=to_float(current.get("wind_speed_10m")),
            wind_gust=to_float(current.get("wind_gusts_10m")),
            uv_index=to_float(current.get("uv_index")),
            cloud_cover=to_float(current.get("cloud_cover")),
        )

    async def fetch_series(self, coordinate: Coordinate, horizon_minutes: int = 120) -> list[ForecastSample]:
        """Precipitation nowcast at 15-minute granularity.

        Probability comes from the hourly block; 15-minute slots inherit the
        probability of the hour they fall in. When the minutely block is
        missing the hourly series is used instead.
        """
        slots = horizon_minutes // 15 + 2
        params = {
            "latitude": coordinate.latitude,
            "longitude": coordinate.longitude,
            "minutely_15": ",".join(NOWCAST_MINUTELY_FIELDS),
            "hourly": ",".join(NOWCAST_HOURLY_FIELDS),
            "past_minutely_15": 1,
            "forecast_minutely_15": slots,
            "forecast_hours": horizon_minutes // 60 + 2,
            "timezone": "UTC",
        }
        data = await self._get_json(self._base_url, params)
        samples = self.parse_series(data)
        log.debug("open_meteo_series_fetched", lat=coordinate.latitude, lon=coordinate.longitude, samples=len(samples))
        return samples

    def parse_series(self, data: Any) -> list[ForecastSample]:
        if not isinstance(data, dict):
            raise DecodeError("payload is not an object", self.name)
        minutely = data.get("minutely_15") or {}
        hourly = data.get("hourly") or {}
        if not isinstance(minutely, dict) or not isinstance(hourly, dict):
            raise DecodeError("'minutely_15'/'hourly' block is not an object", self.name)

        hourly_times = hourly.get("time") or []
        hourly_probability = hourly.get("precipitation_probability") or []
        probability_by_hour: dict[str, float | None] = {}
        for i, t in enumerate(hourly_times):
            if isinstance(t, str):
                probability_by_hour[t[:13]] = to_float(_at(hourly_probability, i))

        minutely_times = minutely.get("time") or []
        if minutely_times:
            amounts = minutely.get("precipitation") or []
            return [
                ForecastSample(
                    time=t,
                    # 15-minute accumulation scaled to an hourly rate
                    precipitation=_rate(to_float(_at(amounts, i)), 4.0),
                    probability=probability_by_hour.get(t[:13]) if isinstance(t, str) else None,
                )
                for i, t in enumerate(minutely_times)
            ]

        amounts = hourly.get("precipitation") or []
        return [
            ForecastSample(
                time=t,
                precipitation=to_float(_at(amounts, i)),
                probability=to_float(_at(hourly_probability, i)),
            )
            for i, t in enumerate(hourly_times)
        ]

    async def fetch_daily(self, coordinate: Coordinate, days: int = 7) -> list[DailyForecast]:
        params = {
            "latitude": coordinate.latitude,
            "longitude": coordinate.longitude,
            "daily": ",".join(DAILY_FIELDS),
            "forecast_days": days if days > 0 else 7,
            "timezone": "auto",
        }
        data = await self._get_json(self._base_url, params)
        return self.parse_daily(data)

    def parse_daily(self, data: Any) -> list[DailyForecast]:
        daily = self._require(data, "daily")
        if not isinstance(daily, dict):
            raise DecodeError("'daily' block is not an object", self.name)

        offset = timedelta(seconds=to_float(data.get("utc_offset_seconds")) or 0.0)
        forecasts: list[DailyForecast] = []
        for i, day in enumerate(daily.get("time") or []):
            try:
                forecast_date = date.fromisoformat(day)
            except (TypeError, ValueError):
                log.debug("open_meteo_daily_bad_date", value=day)
                continue
            code = to_float(_at(daily.get("weather_code"), i))
            weather_code = int(code) if code is not None else None
            forecasts.append(
                DailyForecast(
                    date=forecast_date,
                    temp_max=to_float(_at(daily.get("temperature_2m_max"), i)),
                    temp_min=to_float(_at(daily.get("temperature_2m_min"), i)),
                    precipitation=to_float(_at(daily.get("precipitation_sum"), i)) or 0.0,
                    precipitation_probability=to_float(_at(daily.get("precipitation_probability_max"), i)) or 0.0,
                    weather_code=weather_code,
                    condition=condition_for_weather_code(weather_code),
                    wind_speed=to_float(_at(daily.get("wind_speed_10m_max"), i)),
                    wind_direction=to_float(_at(daily.get("wind_direction_10m_dominant"), i)),
                    humidity=to_float(_at(daily.get("relative_humidity_2m_max"), i)),
                    pressure=to_float(_at(daily.get("pressure_msl_max"), i)),
                    uv_index=to_float(_at(daily.get("uv_index_max"), i)),
                    sunrise=_local_to_utc(_at(daily.get("sunrise"), i), offset),
                    sunset=_local_to_utc(_at(daily.get("sunset"), i), offset),
                )
            )
        return forecasts

    async def fetch_hourly(self, coordinate: Coordinate, hours: int = 24) -> list[HourlyForecast]:
        params = {
            "latitude": coordinate.latitude,
            "longitude": coordinate.longitude,
            "hourly": ",".join(HOURLY_FIELDS),
            "forecast_hours": hours if hours > 0 else 24,
            "timezone": "UTC",
        }
        data = await self._get_json(self._base_url, params)
        return self.parse_hourly(data)

    def parse_hourly(self, data: Any) -> list[HourlyForecast]:
        """Hourly temperature, condition and wind; times are UTC."""
        hourly = self._require(data, "hourly")
        if not isinstance(hourly, dict):
            raise DecodeError("'hourly' block is not an object", self.name)

        forecasts: list[HourlyForecast] = []
        for i, value in enumerate(hourly.get("time") or []):
            time = parse_iso_timestamp(value)
            if time is None:
                log.debug("open_meteo_hourly_bad_time", value=value)
                continue
            code = to_float(_at(hourly.get("weather_code"), i))
            weather_code = int(code) if code is not None else None
            forecasts.append(
                HourlyForecast(
                    time=time,
                    temperature=to_float(_at(hourly.get("temperature_2m"), i)),
                    weather_code=weather_code,
                    condition=condition_for_weather_code(weather_code),
                    wind_speed=to_float(_at(hourly.get("wind_speed_10m"), i)),
                    wind_gust=to_float(_at(hourly.get("wind_gusts_10m"), i)),
                )
            )
        return forecasts


def _local_to_utc(value: Any, offset: timedelta) -> datetime | None:
    """Daily times come back in local wall-clock time without an offset."""
    parsed = parse_iso_timestamp(value)
    if parsed is None:
        return None
    return parsed - offset


def _rate(amount: float | None, factor: float) -> float | None:
    return None if amount is None else amount * factor
