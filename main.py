"""Async event loop orchestrator for the weather engine."""

from __future__ import annotations

import argparse
import asyncio
import signal

from adapters.credentials import InMemoryCredentialStore
from adapters.location import StaticLocationProvider
from adapters.notifications import LoggingNotificationScheduler
from aggregation.cache import ObservationCache
from aggregation.coordinator import AggregationCoordinator
from config import Config
from precipitation.alerts import AlertScheduler
from precipitation.nowcast import NowcastService
from providers.met_norway import MetNorwayClient
from providers.open_meteo import OpenMeteoClient
from providers.openweathermap import OpenWeatherMapClient
from providers.wunderground import WundergroundClient
from utils.logging import get_logger, setup_logging
from weather.errors import WeatherError
from weather.models import Coordinate

log = get_logger("main")


class WeatherEngine:
    """Main application: wires providers, cache, adapters and services."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self._running = False

        http = {"timeout": config.request_timeout, "retries": config.http_retries}

        # Provider clients
        self.wunderground = WundergroundClient(**http)
        self.owm = OpenWeatherMapClient(**http)
        self.open_meteo = OpenMeteoClient(**http)
        self.met_norway = MetNorwayClient(user_agent=config.user_agent, **http)

        # Collaborators
        self.cache = ObservationCache(ttl=config.cache_ttl)
        self.credentials = InMemoryCredentialStore.from_config(config)
        self.location = StaticLocationProvider.from_config(config)
        if config.use_gps:
            log.warning("gps_location_unavailable", fallback="manual")
        self.notifier = LoggingNotificationScheduler()

        # Services
        self.coordinator = AggregationCoordinator(
            config,
            self.credentials,
            self.cache,
            location=self.location,
            station=self.wunderground,
            owm=self.owm,
            open_meteo=self.open_meteo,
        )
        source = self.met_norway if config.nowcast_source == "met_norway" else self.open_meteo
        self.nowcast = NowcastService(
            source=source,
            scheduler=AlertScheduler(config, self.notifier),
            cache=self.cache,
            resolve_coordinate=self.coordinator.resolve_coordinate,
            alert_source=self.met_norway if config.alerts_enabled else None,
            horizon_minutes=config.nowcast_horizon_minutes,
        )

    async def start(self, once: bool = False) -> None:
        """Start all loops, or run a single cycle of each when `once` is set."""
        log.info(
            "starting",
            unit_system=self.config.unit_system,
            nowcast_source=self.config.nowcast_source,
            alerts_enabled=self.config.alerts_enabled,
            once=once,
        )
        self._running = True

        try:
            if once:
                await asyncio.gather(self._refresh_observation(), self._refresh_nowcast())
                await self._refresh_forecast()
                return
            await asyncio.gather(
                self._observation_loop(),
                self._nowcast_loop(),
                self._forecast_loop(),
            )
        except asyncio.CancelledError:
            log.info("loops_cancelled")
        finally:
            await self._shutdown()

    async def _observation_loop(self) -> None:
        """Refresh the aggregated observation every refresh interval."""
        while self._running:
            try:
                await self._refresh_observation()
                self.cache.clear_expired()
            except asyncio.CancelledError:
                return
            except Exception as e:
                log.error("observation_loop_error", error=str(e))

            await asyncio.sleep(self.config.refresh_interval)

    async def _nowcast_loop(self) -> None:
        """Rebuild the precipitation timeline and reschedule notifications."""
        while self._running:
            try:
                await self._refresh_nowcast()
            except asyncio.CancelledError:
                return
            except Exception as e:
                log.error("nowcast_loop_error", error=str(e))

            await asyncio.sleep(self.config.refresh_interval)

    async def _forecast_loop(self) -> None:
        """Log the daily and hourly forecasts; refetched once the cache entry expires."""
        while self._running:
            try:
                await self._refresh_forecast()
            except asyncio.CancelledError:
                return
            except Exception as e:
                log.error("forecast_loop_error", error=str(e))

            await asyncio.sleep(self.config.refresh_interval)

    async def _refresh_observation(self) -> None:
        try:
            obs = await self.coordinator.refresh()
        except WeatherError as e:
            log.warning("observation_unavailable", error=str(e), provider=e.provider)
            return
        log.info(
            "observation",
            unit_system=obs.unit_system.value,
            temperature=_rounded(obs.temperature),
            feels_like=_rounded(obs.feels_like),
            humidity=_rounded(obs.humidity),
            wind_speed=_rounded(obs.wind_speed),
            pressure=_rounded(obs.pressure),
            condition=obs.condition,
            providers=obs.providers,
        )

    async def _refresh_nowcast(self) -> None:
        try:
            await self.nowcast.refresh()
        except WeatherError as e:
            log.warning("nowcast_unavailable", error=str(e))
            return
        for request in self.notifier.pending():
            log.info("notification_pending", id=request.id, fire_at=request.fire_at.isoformat(), title=request.title)

    async def _refresh_forecast(self) -> None:
        try:
            days = await self.coordinator.daily_forecast()
        except WeatherError as e:
            log.warning("forecast_unavailable", error=str(e))
            days = []
        for day in days:
            log.info(
                "daily_forecast",
                date=day.date.isoformat(),
                condition=day.condition,
                temp_max=_rounded(day.temp_max),
                temp_min=_rounded(day.temp_min),
                precipitation_probability=day.precipitation_probability,
            )

        try:
            hours = await self.coordinator.hourly_forecast()
        except WeatherError as e:
            log.warning("hourly_forecast_unavailable", error=str(e))
            return
        for hour in hours:
            log.info(
                "hourly_forecast",
                time=hour.time.isoformat(),
                condition=hour.condition,
                temperature=_rounded(hour.temperature),
                wind_speed=_rounded(hour.wind_speed),
                wind_gust=_rounded(hour.wind_gust),
            )

    async def _shutdown(self) -> None:
        """Graceful shutdown: close HTTP connections."""
        log.info("shutting_down")
        self._running = False

        await self.wunderground.close()
        await self.owm.close()
        await self.open_meteo.close()
        await self.met_norway.close()

        log.info("shutdown_complete")

    def stop(self) -> None:
        """Signal the engine to stop."""
        self._running = False


def _rounded(value: float | None) -> float | None:
    return None if value is None else round(value, 1)


def main() -> None:
    parser = argparse.ArgumentParser(description="Multi-provider weather aggregation and rain nowcast engine")
    parser.add_argument("--once", action="store_true", help="Run one refresh cycle and exit")
    parser.add_argument("--units", choices=["Metric", "Imperial", "UK"], default=None)
    parser.add_argument("--lat", type=float, default=None, help="Manual latitude")
    parser.add_argument("--lon", type=float, default=None, help="Manual longitude")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args()

    setup_logging(args.log_level)

    config = Config.from_env()
    if args.units is not None:
        config.unit_system = args.units
    if args.lat is not None and args.lon is not None:
        try:
            Coordinate(args.lat, args.lon)
        except ValueError as e:
            parser.error(str(e))
        config.latitude = args.lat
        config.longitude = args.lon

    engine = WeatherEngine(config)

    # Handle graceful shutdown
    loop = asyncio.new_event_loop()

    def handle_signal(sig: int, frame) -> None:
        log.info("signal_received", signal=sig)
        engine.stop()
        for task in asyncio.all_tasks(loop):
            task.cancel()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        loop.run_until_complete(engine.start(once=args.once))
    except KeyboardInterrupt:
        log.info("keyboard_interrupt")
    finally:
        loop.close()


if __name__ == "__main__":
    main()
