"""AggregationCoordinator: eligibility, fan-out, merge, failure surfacing, caching."""

from __future__ import annotations

import asyncio
from datetime import date, datetime
from unittest.mock import AsyncMock

import pytest
import pytz

from adapters.credentials import OWM_SERVICE, WU_SERVICE, WU_STATION_SERVICE
from adapters.location import StaticLocationProvider
from aggregation.coordinator import AggregationCoordinator, CycleState
from config import Config
from weather.errors import InvalidCredentials, NetworkError, NoData
from weather.models import (
    OPEN_METEO,
    OPENWEATHERMAP,
    WUNDERGROUND,
    Coordinate,
    DailyForecast,
    HourlyForecast,
    ProviderCredentials,
    RawObservation,
    UnitSystem,
)

OSLO = Coordinate(59.91, 10.75)
NOW = datetime(2026, 10, 17, 12, 0, tzinfo=pytz.utc)


def _seed_station(store) -> None:
    store.set(WU_SERVICE, "wu-key")
    store.set(WU_STATION_SERVICE, "IOSLO123")


@pytest.fixture
def providers(provider_factory):
    return {
        WUNDERGROUND: provider_factory(
            WUNDERGROUND, RawObservation(provider=WUNDERGROUND, temperature=20.0, wind_speed=10.0)
        ),
        OPENWEATHERMAP: provider_factory(
            OPENWEATHERMAP,
            RawObservation(provider=OPENWEATHERMAP, temperature=21.0, humidity=50.0, temp_high=25.0, temp_low=11.0),
        ),
        OPEN_METEO: provider_factory(
            OPEN_METEO, RawObservation(provider=OPEN_METEO, temperature=22.0, humidity=70.0, uv_index=2.0)
        ),
    }


def _coordinator(config, store, cache, providers, **kwargs) -> AggregationCoordinator:
    return AggregationCoordinator(
        config,
        store,
        cache,
        station=providers[WUNDERGROUND],
        owm=providers[OPENWEATHERMAP],
        open_meteo=providers[OPEN_METEO],
        clock=lambda: NOW,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------


class TestEligibility:
    def test_keyed_providers_exclude_open_meteo(self, config, store, cache, providers):
        coord = _coordinator(config, store, cache, providers)
        creds = ProviderCredentials(wu_api_key="k", wu_station_id="S", owm_api_key="o")
        assert coord.eligible_providers(creds, OSLO) == [WUNDERGROUND, OPENWEATHERMAP]

    def test_open_meteo_when_no_keys(self, config, store, cache, providers):
        coord = _coordinator(config, store, cache, providers)
        assert coord.eligible_providers(ProviderCredentials(), OSLO) == [OPEN_METEO]

    def test_station_needs_no_coordinate(self, config, store, cache, providers):
        coord = _coordinator(config, store, cache, providers)
        creds = ProviderCredentials(wu_api_key="k", wu_station_id="S", owm_api_key="o")
        assert coord.eligible_providers(creds, None) == [WUNDERGROUND]

    def test_blank_station_id_not_eligible(self, config, store, cache, providers):
        coord = _coordinator(config, store, cache, providers)
        creds = ProviderCredentials(wu_api_key="k", wu_station_id="  ")
        assert coord.eligible_providers(creds, None) == []

    def test_coordinate_resolution_order(self, store, cache, providers):
        config = Config(latitude=51.5, longitude=-0.12)
        location = StaticLocationProvider(OSLO)
        coord = _coordinator(config, store, cache, providers, location=location)
        explicit = Coordinate(40.0, -74.0)
        assert coord.resolve_coordinate(explicit) == explicit
        assert coord.resolve_coordinate() == OSLO
        location.update(None)
        assert coord.resolve_coordinate() == Coordinate(51.5, -0.12)

    def test_cache_key_by_station_or_coordinate(self, config, store, cache, providers):
        coord = _coordinator(config, store, cache, providers)
        creds = ProviderCredentials(wu_api_key="k", wu_station_id=" IOSLO123 ")
        assert coord._cache_key(creds, None, [WUNDERGROUND]) == "station:IOSLO123"
        assert coord._cache_key(ProviderCredentials(), OSLO, [OPEN_METEO]) == OSLO.cache_key()
        with pytest.raises(NoData):
            coord._cache_key(ProviderCredentials(), None, [OPEN_METEO])


# ---------------------------------------------------------------------------
# Refresh cycle
# ---------------------------------------------------------------------------


class TestRefresh:
    @pytest.mark.asyncio
    async def test_priority_merge_across_providers(self, config, store, cache, providers):
        _seed_station(store)
        store.set(OWM_SERVICE, "owm-key")
        coord = _coordinator(config, store, cache, providers)

        obs = await coord.refresh(OSLO)

        assert obs.temperature == 20.0
        assert obs.humidity == 50.0
        assert obs.temp_high == 25.0
        assert obs.field_sources["temperature"] == WUNDERGROUND
        assert obs.field_sources["humidity"] == OPENWEATHERMAP
        assert providers[OPEN_METEO].calls == 0
        assert coord.state is CycleState.MERGED

    @pytest.mark.asyncio
    async def test_open_meteo_fallback(self, config, store, cache, providers):
        coord = _coordinator(config, store, cache, providers)
        obs = await coord.refresh(OSLO)
        assert obs.temperature == 22.0
        assert obs.providers == [OPEN_METEO]
        assert providers[WUNDERGROUND].calls == 0

    @pytest.mark.asyncio
    async def test_no_sources_raises_no_data(self, config, store, cache, providers):
        coord = _coordinator(config, store, cache, providers)
        with pytest.raises(NoData):
            await coord.refresh()
        assert coord.state is CycleState.FAILED

    @pytest.mark.asyncio
    async def test_sole_provider_error_surfaced(self, config, store, cache, providers):
        _seed_station(store)
        providers[WUNDERGROUND].error = InvalidCredentials("rejected with status 401", WUNDERGROUND)
        coord = _coordinator(config, store, cache, providers)

        with pytest.raises(InvalidCredentials):
            await coord.refresh()
        assert coord.state is CycleState.FAILED
        assert isinstance(coord.last_error, InvalidCredentials)

    @pytest.mark.asyncio
    async def test_all_failed_raises_no_data(self, config, store, cache, providers):
        _seed_station(store)
        store.set(OWM_SERVICE, "owm-key")
        providers[WUNDERGROUND].error = NetworkError("down", WUNDERGROUND)
        providers[OPENWEATHERMAP].error = NetworkError("down", OPENWEATHERMAP)
        coord = _coordinator(config, store, cache, providers)

        with pytest.raises(NoData):
            await coord.refresh(OSLO)

    @pytest.mark.asyncio
    async def test_partial_failure_still_merges(self, config, store, cache, providers):
        _seed_station(store)
        store.set(OWM_SERVICE, "owm-key")
        providers[WUNDERGROUND].error = NetworkError("down", WUNDERGROUND)
        coord = _coordinator(config, store, cache, providers)

        obs = await coord.refresh(OSLO)
        assert obs.temperature == 21.0
        assert obs.providers == [OPENWEATHERMAP]

    @pytest.mark.asyncio
    async def test_unexpected_exception_treated_as_failure(self, config, store, cache, providers):
        _seed_station(store)
        store.set(OWM_SERVICE, "owm-key")
        providers[WUNDERGROUND].error = RuntimeError("boom")
        coord = _coordinator(config, store, cache, providers)

        obs = await coord.refresh(OSLO)
        assert obs.temperature == 21.0

    @pytest.mark.asyncio
    async def test_per_call_timeout(self, store, cache, providers):
        _seed_station(store)
        providers[WUNDERGROUND].delay = 1.0
        coord = _coordinator(Config(request_timeout=0.05), store, cache, providers)

        with pytest.raises(NetworkError):
            await coord.refresh()

    @pytest.mark.asyncio
    async def test_result_converted_to_requested_units(self, config, store, cache, providers):
        _seed_station(store)
        coord = _coordinator(config, store, cache, providers)

        obs = await coord.refresh(unit_system="Imperial")
        assert obs.unit_system is UnitSystem.IMPERIAL
        assert obs.temperature == pytest.approx(68.0)
        assert obs.wind_speed == pytest.approx(6.21371)


# ---------------------------------------------------------------------------
# Cache and in-flight dedupe
# ---------------------------------------------------------------------------


class TestCaching:
    @pytest.mark.asyncio
    async def test_cache_hit_skips_fetch(self, config, store, cache, providers):
        _seed_station(store)
        coord = _coordinator(config, store, cache, providers)

        first = await coord.refresh()
        second = await coord.refresh()
        assert first == second
        assert providers[WUNDERGROUND].calls == 1

    @pytest.mark.asyncio
    async def test_cache_stores_metric(self, config, store, cache, providers):
        _seed_station(store)
        coord = _coordinator(config, store, cache, providers)

        await coord.refresh(unit_system="Imperial")
        metric = await coord.refresh(unit_system="Metric")
        assert metric.temperature == 20.0
        assert providers[WUNDERGROUND].calls == 1

    @pytest.mark.asyncio
    async def test_expired_entry_refetches(self, config, store, cache, clock, providers):
        _seed_station(store)
        coord = _coordinator(config, store, cache, providers)

        await coord.refresh()
        clock.advance(301)
        await coord.refresh()
        assert providers[WUNDERGROUND].calls == 2

    @pytest.mark.asyncio
    async def test_force_bypasses_cache(self, config, store, cache, providers):
        _seed_station(store)
        coord = _coordinator(config, store, cache, providers)

        await coord.refresh()
        await coord.refresh(force=True)
        assert providers[WUNDERGROUND].calls == 2

    @pytest.mark.asyncio
    async def test_concurrent_refreshes_share_one_cycle(self, config, store, cache, providers):
        _seed_station(store)
        providers[WUNDERGROUND].delay = 0.05
        coord = _coordinator(config, store, cache, providers)

        a, b = await asyncio.gather(coord.refresh(), coord.refresh(unit_system="UK"))
        assert providers[WUNDERGROUND].calls == 1
        assert a.temperature == b.temperature == 20.0
        assert b.unit_system is UnitSystem.UK


# ---------------------------------------------------------------------------
# Daily forecast
# ---------------------------------------------------------------------------


class TestDailyForecast:
    @pytest.mark.asyncio
    async def test_fetched_once_and_converted(self, config, store, cache, providers):
        day = DailyForecast(date=date(2026, 10, 17), temp_max=20.0, temp_min=10.0)
        providers[OPEN_METEO].fetch_daily = AsyncMock(return_value=[day])
        coord = _coordinator(config, store, cache, providers)

        metric = await coord.daily_forecast(OSLO, days=3)
        imperial = await coord.daily_forecast(OSLO, days=3, unit_system="Imperial")

        assert metric == [day]
        assert imperial[0].temp_max == pytest.approx(68.0)
        providers[OPEN_METEO].fetch_daily.assert_awaited_once_with(OSLO, 3)

    @pytest.mark.asyncio
    async def test_no_location(self, config, store, cache, providers):
        coord = _coordinator(config, store, cache, providers)
        with pytest.raises(NoData):
            await coord.daily_forecast()

    @pytest.mark.asyncio
    async def test_empty_response(self, config, store, cache, providers):
        providers[OPEN_METEO].fetch_daily = AsyncMock(return_value=[])
        coord = _coordinator(config, store, cache, providers)
        with pytest.raises(NoData):
            await coord.daily_forecast(OSLO)


# ---------------------------------------------------------------------------
# Hourly forecast
# ---------------------------------------------------------------------------


class TestHourlyForecast:
    @pytest.mark.asyncio
    async def test_cached_and_converted(self, config, store, cache, providers):
        hour = HourlyForecast(time=NOW, temperature=10.0, wind_speed=20.0)
        providers[OPEN_METEO].fetch_hourly = AsyncMock(return_value=[hour])
        coord = _coordinator(config, store, cache, providers)

        metric = await coord.hourly_forecast(OSLO)
        imperial = await coord.hourly_forecast(OSLO, unit_system=UnitSystem.IMPERIAL)

        assert metric == [hour]
        assert imperial[0].temperature == pytest.approx(50.0)
        assert imperial[0].wind_speed == pytest.approx(12.4274)
        providers[OPEN_METEO].fetch_hourly.assert_awaited_once_with(OSLO, 24)

    @pytest.mark.asyncio
    async def test_no_location(self, config, store, cache, providers):
        coord = _coordinator(config, store, cache, providers)
        with pytest.raises(NoData):
            await coord.hourly_forecast()

    @pytest.mark.asyncio
    async def test_empty_response(self, config, store, cache, providers):
        providers[OPEN_METEO].fetch_hourly = AsyncMock(return_value=[])
        coord = _coordinator(config, store, cache, providers)
        with pytest.raises(NoData):
            await coord.hourly_forecast(OSLO, hours=12)
