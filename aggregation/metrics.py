"""Derived meteorological metrics and unit-system conversion.

All formulas run in metric (°C, %, m/s). Conversion is applied only at the
display boundary and recomputes feels-like from the converted inputs, so a
Metric → Imperial → Metric round trip does not reproduce feels-like
bit-for-bit.
"""

from __future__ import annotations

import math
from dataclasses import replace
from datetime import datetime

from aggregation.merger import MergedFields
from utils.logging import get_logger
from weather import units
from weather.models import AggregatedObservation, DailyForecast, HourlyForecast, UnitSystem

log = get_logger("metrics")

# Magnus-Tetens coefficients
MAGNUS_A = 17.27
MAGNUS_B = 237.7

# Condition thresholds (metric). Coarse heuristic, not a provider taxonomy.
SUNNY_TEMP_C = 30.0
SUNNY_UV = 5.0
SNOWY_TEMP_C = 0.0
WINDY_KMH = 20.0
RAINY_HUMIDITY = 80.0

_TEMPERATURE_FIELDS = ("temperature", "feels_like", "temp_high", "temp_low", "dew_point")
_SPEED_FIELDS = ("wind_speed", "wind_gust")
_PRESSURE_FIELDS = ("pressure",)


def dew_point(temp_c: float | None, humidity: float | None) -> float | None:
    """Magnus-Tetens dew point in °C; None unless both inputs are usable."""
    if temp_c is None or humidity is None or humidity <= 0:
        return None
    alpha = (MAGNUS_A * temp_c) / (MAGNUS_B + temp_c) + math.log(humidity / 100.0)
    return (MAGNUS_B * alpha) / (MAGNUS_A - alpha)


def vapor_pressure(temp_c: float, humidity: float) -> float:
    """Actual vapour pressure in hPa from saturation pressure and RH."""
    saturation = 6.11 * math.pow(10, (7.5 * temp_c) / (237.3 + temp_c))
    return saturation * (humidity / 100.0)


def apparent_temperature(temp_c: float, humidity: float, wind_ms: float) -> float:
    """AT = Ta + 0.33E - 0.70WS - 4.00 (°C, hPa, m/s)."""
    return temp_c + 0.33 * vapor_pressure(temp_c, humidity) - 0.70 * wind_ms - 4.00


def feels_like(
    temperature: float | None,
    humidity: float | None,
    wind_speed: float | None,
    unit_system: UnitSystem = UnitSystem.METRIC,
) -> float | None:
    """Apparent temperature with inputs and result in `unit_system` display units."""
    if temperature is None or humidity is None or wind_speed is None:
        return None
    temp_c = _temp_to_c(temperature, unit_system)
    if _speed_is_mph(unit_system):
        wind_ms = units.mph_to_ms(wind_speed)
    else:
        wind_ms = units.kmh_to_ms(wind_speed)
    result_c = apparent_temperature(temp_c, humidity, wind_ms)
    return units.c_to_f(result_c) if _temp_is_f(unit_system) else result_c


def classify_condition(
    temperature: float | None,
    uv_index: float | None,
    wind_speed: float | None,
    humidity: float | None,
) -> str:
    """Coarse condition label from metric inputs. Missing inputs count as 0."""
    temp = temperature or 0.0
    uv = uv_index or 0.0
    wind = wind_speed or 0.0
    hum = humidity or 0.0

    if temp > SUNNY_TEMP_C or uv > SUNNY_UV:
        return "sunny"
    if temp < SNOWY_TEMP_C:
        return "snowy"
    if wind > WINDY_KMH:
        return "windy"
    if hum > RAINY_HUMIDITY:
        return "rainy"
    return "default"


def derive_observation(merged: MergedFields, created_at: datetime) -> AggregatedObservation:
    """Build a metric AggregatedObservation from merged fields plus derived metrics.

    Derived dew point / feels-like take precedence; provider-reported values
    are the fallback when the formula inputs are incomplete.
    """
    values = dict(merged.values)
    sources = dict(merged.sources)

    derived_dew = dew_point(values.get("temperature"), values.get("humidity"))
    if derived_dew is not None:
        values["dew_point"] = derived_dew
        sources["dew_point"] = sources.get("temperature", "derived")

    derived_feels = feels_like(values.get("temperature"), values.get("humidity"), values.get("wind_speed"))
    if derived_feels is not None:
        values["feels_like"] = derived_feels
        sources["feels_like"] = sources.get("temperature", "derived")

    condition = classify_condition(
        values.get("temperature"),
        values.get("uv_index"),
        values.get("wind_speed"),
        values.get("humidity"),
    )

    return AggregatedObservation(
        created_at=created_at,
        unit_system=UnitSystem.METRIC,
        condition=condition,
        field_sources=sources,
        **values,
    )


def convert_observation(obs: AggregatedObservation, target: UnitSystem) -> AggregatedObservation:
    """Return a copy of `obs` expressed in `target` units.

    Linear conversion for every physical field, then feels-like is
    recomputed from the converted temperature/humidity/wind when all three
    are present.
    """
    source = obs.unit_system
    if source is target:
        return obs

    changes: dict[str, float | None] = {}
    for name in _TEMPERATURE_FIELDS:
        value = getattr(obs, name)
        if value is not None:
            changes[name] = _temp_from_c(_temp_to_c(value, source), target)
    for name in _SPEED_FIELDS:
        value = getattr(obs, name)
        if value is not None:
            changes[name] = _speed_from_kmh(_speed_to_kmh(value, source), target)
    for name in _PRESSURE_FIELDS:
        value = getattr(obs, name)
        if value is not None:
            changes[name] = _pressure_from_hpa(_pressure_to_hpa(value, source), target)

    recomputed = feels_like(
        changes.get("temperature", obs.temperature),
        obs.humidity,
        changes.get("wind_speed", obs.wind_speed),
        target,
    )
    if recomputed is not None:
        changes["feels_like"] = recomputed

    log.debug("observation_converted", source=source.value, target=target.value)
    return replace(obs, unit_system=target, **changes)


def convert_daily(forecast: DailyForecast, target: UnitSystem) -> DailyForecast:
    """Convert a metric daily forecast to `target` display units."""
    if target is UnitSystem.METRIC:
        return forecast

    def temp(value: float | None) -> float | None:
        return None if value is None else _temp_from_c(value, target)

    return replace(
        forecast,
        temp_max=temp(forecast.temp_max),
        temp_min=temp(forecast.temp_min),
        wind_speed=None if forecast.wind_speed is None else _speed_from_kmh(forecast.wind_speed, target),
        pressure=None if forecast.pressure is None else _pressure_from_hpa(forecast.pressure, target),
    )


def convert_hourly(forecast: HourlyForecast, target: UnitSystem) -> HourlyForecast:
    if target is UnitSystem.METRIC:
        return forecast

    def speed(value: float | None) -> float | None:
        return None if value is None else _speed_from_kmh(value, target)

    return replace(
        forecast,
        temperature=None if forecast.temperature is None else _temp_from_c(forecast.temperature, target),
        wind_speed=speed(forecast.wind_speed),
        wind_gust=speed(forecast.wind_gust),
    )


def _temp_is_f(system: UnitSystem) -> bool:
    return system is UnitSystem.IMPERIAL


def _speed_is_mph(system: UnitSystem) -> bool:
    return system in (UnitSystem.IMPERIAL, UnitSystem.UK)


def _pressure_is_inhg(system: UnitSystem) -> bool:
    return system is UnitSystem.IMPERIAL


def _temp_to_c(value: float, system: UnitSystem) -> float:
    return units.f_to_c(value) if _temp_is_f(system) else value


def _temp_from_c(value: float, system: UnitSystem) -> float:
    return units.c_to_f(value) if _temp_is_f(system) else value


def _speed_to_kmh(value: float, system: UnitSystem) -> float:
    return units.mph_to_kmh(value) if _speed_is_mph(system) else value


def _speed_from_kmh(value: float, system: UnitSystem) -> float:
    return units.kmh_to_mph(value) if _speed_is_mph(system) else value


def _pressure_to_hpa(value: float, system: UnitSystem) -> float:
    return units.inhg_to_hpa(value) if _pressure_is_inhg(system) else value


def _pressure_from_hpa(value: float, system: UnitSystem) -> float:
    return units.hpa_to_inhg(value) if _pressure_is_inhg(system) else value
