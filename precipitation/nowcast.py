"""Nowcast service: forecast source → timeline → alert scheduling."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Protocol

from adapters.notifications import NotificationRequest
from aggregation.cache import ObservationCache
from precipitation.alerts import AlertScheduler
from precipitation.timeline import PrecipitationTimeline, build_timeline
from utils.logging import get_logger
from utils.time_utils import ensure_utc, utc_now
from weather.errors import NetworkError, NoData, WeatherError
from weather.models import Coordinate, ForecastSample, WeatherAlert

log = get_logger("nowcast")


class ForecastSource(Protocol):
    name: str

    async def fetch_series(self, coordinate: Coordinate, horizon_minutes: int = 120) -> list[ForecastSample]: ...


class AlertSource(Protocol):
    name: str

    async def fetch_alerts(self, coordinate: Coordinate) -> list[WeatherAlert]: ...


@dataclass
class NowcastResult:
    timeline: PrecipitationTimeline
    alerts: list[WeatherAlert] = field(default_factory=list)
    notifications: list[NotificationRequest] = field(default_factory=list)
    error: WeatherError | None = None


class NowcastService:
    """Refreshes the precipitation timeline and reschedules notifications.

    A forecast-source failure yields an empty timeline so stale rain
    notifications get cleared; an alert-feed failure yields no alerts.
    """

    def __init__(
        self,
        source: ForecastSource,
        scheduler: AlertScheduler,
        cache: ObservationCache,
        resolve_coordinate: Callable[[], Coordinate | None],
        alert_source: AlertSource | None = None,
        horizon_minutes: int = 120,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._source = source
        self._scheduler = scheduler
        self._cache = cache
        self._resolve_coordinate = resolve_coordinate
        self._alert_source = alert_source
        self._horizon_minutes = horizon_minutes
        self._clock = clock
        self._last: NowcastResult | None = None

    @property
    def last_result(self) -> NowcastResult | None:
        return self._last

    async def refresh(self, coordinate: Coordinate | None = None, now: datetime | None = None) -> NowcastResult:
        coordinate = coordinate or self._resolve_coordinate()
        if coordinate is None:
            raise NoData("no location available for nowcast")
        now = ensure_utc(now) if now is not None else self._clock()

        timeline, error = await self._timeline(coordinate, now)
        alerts = await self._alerts(coordinate)
        notifications = self._scheduler.reschedule(timeline, alerts, now)

        result = NowcastResult(timeline=timeline, alerts=alerts, notifications=notifications, error=error)
        self._last = result
        log.info(
            "nowcast_refreshed",
            source=self._source.name,
            raining_now=timeline.is_raining_now,
            rain_start_in=timeline.minutes_until_rain_starts(now),
            rain_stop_in=timeline.minutes_until_rain_stops(now),
            alerts=len(alerts),
            notifications=len(notifications),
        )
        return result

    async def _timeline(self, coordinate: Coordinate, now: datetime) -> tuple[PrecipitationTimeline, WeatherError | None]:
        key = f"nowcast:{self._source.name}:{coordinate.cache_key()}"
        samples = self._cache.get_forecast(key)
        if samples is None:
            try:
                samples = await self._source.fetch_series(coordinate, self._horizon_minutes)
            except WeatherError as e:
                log.warning("nowcast_source_failed", source=self._source.name, error=str(e))
                return PrecipitationTimeline(), e
            except Exception as e:
                log.exception("nowcast_source_unexpected_error", source=self._source.name)
                return PrecipitationTimeline(), NetworkError(str(e), self._source.name)
            self._cache.set_forecast(key, samples)
        return build_timeline(samples, now, timedelta(minutes=self._horizon_minutes)), None

    async def _alerts(self, coordinate: Coordinate) -> list[WeatherAlert]:
        if self._alert_source is None:
            return []
        try:
            return await self._alert_source.fetch_alerts(coordinate)
        except WeatherError as e:
            log.warning("alert_feed_failed", source=self._alert_source.name, error=str(e))
            return []
        except Exception:
            log.exception("alert_feed_unexpected_error", source=self._alert_source.name)
            return []
