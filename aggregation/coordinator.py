"""Refresh-cycle orchestration: eligible providers → concurrent fetch → merge → derive → cache."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Protocol

from adapters.credentials import CredentialStore, load_credentials
from adapters.location import LocationProvider
from aggregation.cache import ObservationCache
from aggregation.merger import merge_observations
from aggregation.metrics import convert_daily, convert_hourly, convert_observation, derive_observation
from config import Config
from utils.logging import get_logger
from utils.time_utils import utc_now
from weather.errors import NetworkError, NoData, WeatherError
from weather.models import (
    OPEN_METEO,
    OPENWEATHERMAP,
    WUNDERGROUND,
    AggregatedObservation,
    Coordinate,
    DailyForecast,
    HourlyForecast,
    ProviderCredentials,
    RawObservation,
    UnitSystem,
)

log = get_logger("coordinator")


class CurrentConditionsProvider(Protocol):
    name: str

    async def fetch(
        self,
        coordinate: Coordinate | None,
        credentials: ProviderCredentials,
        unit_system: UnitSystem,
    ) -> RawObservation: ...


class CycleState(Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    MERGED = "merged"
    FAILED = "failed"


@dataclass
class ProviderResult:
    """Outcome of one provider call. Absent and errored both mean 'no fields'."""

    provider: str
    observation: RawObservation | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.observation is not None


class AggregationCoordinator:
    """Owns the observation refresh cycle.

    State per cycle: IDLE → FETCHING → {MERGED, FAILED}. At most one cycle
    runs per cache key; concurrent callers await the same result.
    """

    def __init__(
        self,
        config: Config,
        credential_store: CredentialStore,
        cache: ObservationCache,
        location: LocationProvider | None = None,
        station: CurrentConditionsProvider | None = None,
        owm: CurrentConditionsProvider | None = None,
        open_meteo: Any | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._config = config
        self._credentials = credential_store
        self._cache = cache
        self._location = location
        self._clock = clock
        self._providers: dict[str, CurrentConditionsProvider] = {}
        for name, client in ((WUNDERGROUND, station), (OPENWEATHERMAP, owm), (OPEN_METEO, open_meteo)):
            if client is not None:
                self._providers[name] = client
        self._open_meteo = open_meteo
        self._state = CycleState.IDLE
        self._last_error: WeatherError | None = None
        # cache key → running cycle
        self._inflight: dict[str, asyncio.Task] = {}

    @property
    def state(self) -> CycleState:
        return self._state

    @property
    def last_error(self) -> WeatherError | None:
        return self._last_error

    # Eligibility -------------------------------------------------------

    def eligible_providers(self, credentials: ProviderCredentials, coordinate: Coordinate | None) -> list[str]:
        """Providers to query this cycle, in merge priority order.

        Open-Meteo is consulted only when no keyed provider is eligible.
        """
        eligible: list[str] = []
        if credentials.station_eligible and WUNDERGROUND in self._providers:
            eligible.append(WUNDERGROUND)
        if credentials.owm_eligible and coordinate is not None and OPENWEATHERMAP in self._providers:
            eligible.append(OPENWEATHERMAP)
        if not eligible and coordinate is not None and OPEN_METEO in self._providers:
            eligible.append(OPEN_METEO)
        return eligible

    def resolve_coordinate(self, coordinate: Coordinate | None = None) -> Coordinate | None:
        """Explicit coordinate, else the location provider's fix, else manual settings."""
        if coordinate is not None:
            return coordinate
        if self._location is not None:
            current = self._location.current_coordinate()
            if current is not None:
                return current
        if self._config.has_manual_location:
            try:
                return Coordinate(self._config.latitude, self._config.longitude)
            except ValueError as e:
                log.warning("manual_location_invalid", error=str(e))
        return None

    # Public API ---------------------------------------------------------

    async def refresh(
        self,
        coordinate: Coordinate | None = None,
        unit_system: UnitSystem | str | None = None,
        force: bool = False,
    ) -> AggregatedObservation:
        """Return the current aggregated observation in `unit_system`.

        Raises NoData when nothing could be merged, or the sole queried
        provider's own error when exactly one provider was eligible.
        """
        target = UnitSystem.parse(unit_system if unit_system is not None else self._config.unit_system)
        coordinate = self.resolve_coordinate(coordinate)
        credentials = load_credentials(self._credentials)
        providers = self.eligible_providers(credentials, coordinate)

        if not providers:
            self._state = CycleState.FAILED
            self._last_error = NoData("no location and no station configured")
            log.warning("refresh_no_sources")
            raise self._last_error

        key = self._cache_key(credentials, coordinate, providers)
        if not force:
            cached = self._cache.get_observation(key)
            if cached is not None:
                log.debug("observation_cache_hit", key=key)
                return convert_observation(cached, target)

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run_cycle(key, coordinate, credentials, providers, target))
            self._inflight[key] = task
            task.add_done_callback(lambda _t, k=key: self._inflight.pop(k, None))
        else:
            log.debug("refresh_joined_inflight", key=key)

        metric = await asyncio.shield(task)
        return convert_observation(metric, target)

    async def daily_forecast(
        self,
        coordinate: Coordinate | None = None,
        days: int | None = None,
        unit_system: UnitSystem | str | None = None,
    ) -> list[DailyForecast]:
        """Multi-day forecast from the open provider, cached in the forecast slot."""
        target = UnitSystem.parse(unit_system if unit_system is not None else self._config.unit_system)
        coordinate = self.resolve_coordinate(coordinate)
        if coordinate is None or self._open_meteo is None:
            raise NoData("no location available for forecast")

        days = days or self._config.forecast_days
        key = f"daily:{coordinate.cache_key()}:{days}"
        forecasts = self._cache.get_forecast(key)
        if forecasts is None:
            forecasts = await self._open_meteo.fetch_daily(coordinate, days)
            if not forecasts:
                raise NoData("forecast provider returned no days", OPEN_METEO)
            self._cache.set_forecast(key, forecasts)
            log.info("daily_forecast_updated", key=key, days=len(forecasts))
        return [convert_daily(f, target) for f in forecasts]

    async def hourly_forecast(
        self,
        coordinate: Coordinate | None = None,
        hours: int | None = None,
        unit_system: UnitSystem | str | None = None,
    ) -> list[HourlyForecast]:
        """Next `hours` hours from the open provider, cached like the daily forecast."""
        target = UnitSystem.parse(unit_system if unit_system is not None else self._config.unit_system)
        coordinate = self.resolve_coordinate(coordinate)
        if coordinate is None or self._open_meteo is None:
            raise NoData("no location available for forecast")

        hours = hours or self._config.forecast_hours
        key = f"hourly:{coordinate.cache_key()}:{hours}"
        forecasts = self._cache.get_forecast(key)
        if forecasts is None:
            forecasts = await self._open_meteo.fetch_hourly(coordinate, hours)
            if not forecasts:
                raise NoData("forecast provider returned no hours", OPEN_METEO)
            self._cache.set_forecast(key, forecasts)
            log.info("hourly_forecast_updated", key=key, hours=len(forecasts))
        return [convert_hourly(f, target) for f in forecasts]

    # Cycle ------------------------------------------------------------

    async def _run_cycle(
        self,
        key: str,
        coordinate: Coordinate | None,
        credentials: ProviderCredentials,
        providers: list[str],
        unit_system: UnitSystem,
    ) -> AggregatedObservation:
        self._state = CycleState.FETCHING
        log.info("refresh_started", key=key, providers=providers)

        settled = await asyncio.gather(
            *(self._fetch_one(name, coordinate, credentials, unit_system) for name in providers),
            return_exceptions=True,
        )
        results = [
            r if isinstance(r, ProviderResult) else ProviderResult(provider=name, error=r)
            for name, r in zip(providers, settled)
        ]

        for result in results:
            if result.error is not None:
                log.warning("provider_failed", provider=result.provider, error=str(result.error))

        observations = [r.observation for r in results if r.observation is not None]
        merged = merge_observations(observations)
        observation = derive_observation(merged, created_at=self._clock())

        if not observation.has_data:
            self._state = CycleState.FAILED
            if len(results) == 1 and results[0].error is not None:
                self._last_error = _as_weather_error(results[0])
            else:
                self._last_error = NoData()
            log.error("refresh_failed", key=key, error=str(self._last_error))
            raise self._last_error

        self._cache.set_observation(key, observation)
        self._state = CycleState.MERGED
        self._last_error = None
        log.info(
            "refresh_merged",
            key=key,
            providers=observation.providers,
            failed=[r.provider for r in results if not r.ok],
            condition=observation.condition,
        )
        return observation

    async def _fetch_one(
        self,
        name: str,
        coordinate: Coordinate | None,
        credentials: ProviderCredentials,
        unit_system: UnitSystem,
    ) -> ProviderResult:
        """Run one provider call under the per-call timeout; never raises."""
        client = self._providers[name]
        try:
            observation = await asyncio.wait_for(
                client.fetch(coordinate, credentials, unit_system),
                timeout=self._config.request_timeout,
            )
        except asyncio.TimeoutError:
            return ProviderResult(
                provider=name,
                error=NetworkError(f"timed out after {self._config.request_timeout:.0f}s", name),
            )
        except WeatherError as e:
            return ProviderResult(provider=name, error=e)
        except Exception as e:
            log.exception("provider_unexpected_error", provider=name)
            return ProviderResult(provider=name, error=e)
        return ProviderResult(provider=name, observation=observation)

    def _cache_key(
        self,
        credentials: ProviderCredentials,
        coordinate: Coordinate | None,
        providers: list[str],
    ) -> str:
        if WUNDERGROUND in providers:
            return f"station:{(credentials.wu_station_id or '').strip()}"
        if coordinate is None:
            raise NoData("no location available")
        return coordinate.cache_key()


def _as_weather_error(result: ProviderResult) -> WeatherError:
    if isinstance(result.error, WeatherError):
        return result.error
    return NetworkError(str(result.error), result.provider)

