"""Derived metrics, condition classification and unit conversion."""

from __future__ import annotations

import math
from datetime import datetime

import pytest
import pytz

from aggregation.merger import MergedFields
from aggregation.metrics import (
    apparent_temperature,
    classify_condition,
    convert_daily,
    convert_hourly,
    convert_observation,
    derive_observation,
    dew_point,
    feels_like,
)
from weather import units
from weather.models import AggregatedObservation, DailyForecast, HourlyForecast, UnitSystem

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=pytz.utc)


def _reference_apparent(temp_c: float, humidity: float, wind_ms: float) -> float:
    e = 6.11 * math.pow(10, 7.5 * temp_c / (237.3 + temp_c)) * humidity / 100.0
    return temp_c + 0.33 * e - 0.70 * wind_ms - 4.0


# ---------------------------------------------------------------------------
# Formulas
# ---------------------------------------------------------------------------


class TestDewPoint:
    def test_reference_value(self):
        assert dew_point(25.0, 60.0) == pytest.approx(16.7, abs=0.1)

    def test_missing_inputs(self):
        assert dew_point(None, 60.0) is None
        assert dew_point(25.0, None) is None

    def test_zero_humidity(self):
        assert dew_point(25.0, 0.0) is None


class TestFeelsLike:
    def test_metric_reference(self):
        expected = _reference_apparent(30.0, 70.0, 10.0 / 3.6)
        assert feels_like(30.0, 70.0, 10.0) == pytest.approx(expected, abs=0.2)
        assert apparent_temperature(30.0, 70.0, 10.0 / 3.6) == pytest.approx(expected, abs=0.2)

    def test_imperial_inputs_and_output(self):
        metric = feels_like(30.0, 70.0, 10.0)
        imperial = feels_like(units.c_to_f(30.0), 70.0, units.kmh_to_mph(10.0), UnitSystem.IMPERIAL)
        assert imperial == pytest.approx(units.c_to_f(metric), abs=0.1)

    def test_uk_wind_in_mph(self):
        metric = feels_like(30.0, 70.0, 10.0)
        uk = feels_like(30.0, 70.0, units.kmh_to_mph(10.0), UnitSystem.UK)
        assert uk == pytest.approx(metric, abs=0.05)

    def test_missing_input(self):
        assert feels_like(30.0, None, 10.0) is None


class TestConditionClassification:
    @pytest.mark.parametrize(
        "temp, uv, wind, humidity, expected",
        [
            (31.0, 0.0, 0.0, 0.0, "sunny"),
            (20.0, 6.0, 0.0, 0.0, "sunny"),
            (-1.0, 0.0, 30.0, 90.0, "snowy"),
            (10.0, 0.0, 25.0, 90.0, "windy"),
            (10.0, 0.0, 5.0, 85.0, "rainy"),
            (10.0, 0.0, 5.0, 50.0, "default"),
            (None, None, None, None, "default"),
        ],
    )
    def test_table(self, temp, uv, wind, humidity, expected):
        assert classify_condition(temp, uv, wind, humidity) == expected


# ---------------------------------------------------------------------------
# Deriving an aggregated observation
# ---------------------------------------------------------------------------


class TestDeriveObservation:
    def test_derived_values_override_provider(self):
        merged = MergedFields(
            values={"temperature": 25.0, "humidity": 60.0, "wind_speed": 10.0, "dew_point": 99.0, "feels_like": 99.0},
            sources={"temperature": "wunderground", "humidity": "openweathermap"},
        )
        obs = derive_observation(merged, created_at=NOW)
        assert obs.unit_system is UnitSystem.METRIC
        assert obs.dew_point == pytest.approx(16.7, abs=0.1)
        assert obs.feels_like != 99.0
        assert obs.field_sources["dew_point"] == "wunderground"

    def test_provider_value_kept_when_inputs_incomplete(self):
        merged = MergedFields(values={"temperature": 25.0, "dew_point": 12.0, "feels_like": 24.0}, sources={})
        obs = derive_observation(merged, created_at=NOW)
        assert obs.dew_point == 12.0
        assert obs.feels_like == 24.0

    def test_condition_assigned(self):
        merged = MergedFields(values={"temperature": -3.0}, sources={})
        assert derive_observation(merged, created_at=NOW).condition == "snowy"


# ---------------------------------------------------------------------------
# Unit conversion
# ---------------------------------------------------------------------------


def _metric_obs() -> AggregatedObservation:
    return AggregatedObservation(
        created_at=NOW,
        temperature=20.0,
        feels_like=19.0,
        temp_high=24.0,
        temp_low=12.0,
        humidity=65.0,
        dew_point=13.2,
        pressure=1013.0,
        wind_speed=10.0,
        wind_gust=18.0,
        uv_index=4.0,
    )


class TestConvertObservation:
    def test_imperial(self):
        obs = convert_observation(_metric_obs(), UnitSystem.IMPERIAL)
        assert obs.unit_system is UnitSystem.IMPERIAL
        assert obs.temperature == pytest.approx(68.0)
        assert obs.wind_speed == pytest.approx(6.21371)
        assert obs.pressure == pytest.approx(1013.0 * 0.02953)
        assert obs.humidity == 65.0
        assert obs.uv_index == 4.0

    def test_uk_converts_wind_only(self):
        obs = convert_observation(_metric_obs(), UnitSystem.UK)
        assert obs.temperature == 20.0
        assert obs.pressure == 1013.0
        assert obs.wind_speed == pytest.approx(6.21371)

    def test_same_system_is_identity(self):
        obs = _metric_obs()
        assert convert_observation(obs, UnitSystem.METRIC) is obs

    def test_feels_like_recomputed(self):
        obs = convert_observation(_metric_obs(), UnitSystem.IMPERIAL)
        expected = units.c_to_f(_reference_apparent(20.0, 65.0, 10.0 / 3.6))
        assert obs.feels_like == pytest.approx(expected, abs=0.2)

    def test_round_trip(self):
        original = _metric_obs()
        back = convert_observation(convert_observation(original, UnitSystem.IMPERIAL), UnitSystem.METRIC)
        for name in ("temperature", "temp_high", "temp_low", "dew_point", "wind_speed", "wind_gust", "pressure"):
            assert getattr(back, name) == pytest.approx(getattr(original, name), rel=1e-3), name
        assert back.humidity == original.humidity


class TestConvertDaily:
    def test_imperial(self):
        day = DailyForecast(date=NOW.date(), temp_max=20.0, temp_min=10.0, wind_speed=10.0, pressure=1000.0)
        out = convert_daily(day, UnitSystem.IMPERIAL)
        assert out.temp_max == pytest.approx(68.0)
        assert out.temp_min == pytest.approx(50.0)
        assert out.wind_speed == pytest.approx(6.21371)
        assert out.pressure == pytest.approx(29.53)

    def test_metric_untouched(self):
        day = DailyForecast(date=NOW.date(), temp_max=20.0, temp_min=None)
        assert convert_daily(day, UnitSystem.METRIC) is day


class TestConvertHourly:
    def test_uk_converts_wind_only(self):
        hour = HourlyForecast(time=NOW, temperature=12.0, wind_speed=16.0934, wind_gust=None)
        out = convert_hourly(hour, UnitSystem.UK)
        assert out.temperature == 12.0
        assert out.wind_speed == pytest.approx(10.0, rel=1e-4)
        assert out.wind_gust is None

    def test_imperial_temperature(self):
        out = convert_hourly(HourlyForecast(time=NOW, temperature=0.0), UnitSystem.IMPERIAL)
        assert out.temperature == pytest.approx(32.0)
