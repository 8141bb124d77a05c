"""Turns a precipitation timeline and weather alerts into local notification requests."""

from __future__ import annotations

from datetime import datetime, timedelta

from adapters.notifications import NotificationRequest, NotificationScheduler
from config import Config
from precipitation.timeline import PrecipitationTimeline
from utils.logging import get_logger
from utils.time_utils import ensure_utc
from weather.models import AlertSeverity, WeatherAlert

log = get_logger("alert_scheduler")

RAIN_PREFIX = "rain_"
ALERT_PREFIX = "alert_"
RAIN_START_ID = "rain_start"
RAIN_END_ID = "rain_end"


class AlertScheduler:
    """Clear-then-recreate scheduling of rain and weather-alert notifications.

    Every call replaces the previous set for each prefix, so pending
    notifications always reflect the latest timeline and alert list.
    """

    def __init__(self, config: Config, notifier: NotificationScheduler) -> None:
        self._notifier = notifier
        self._rain_window = timedelta(minutes=config.rain_notify_window_minutes)
        self._rain_lead = timedelta(minutes=config.rain_start_lead_minutes)
        self._rain_stop_delay = timedelta(minutes=config.rain_stop_delay_minutes)
        self._alert_window = timedelta(hours=config.alert_window_hours)
        self._alert_lead = timedelta(hours=config.alert_lead_hours)

    def reschedule(
        self,
        timeline: PrecipitationTimeline,
        alerts: list[WeatherAlert],
        now: datetime,
    ) -> list[NotificationRequest]:
        """Replace all pending notifications. Returns what was scheduled."""
        if not self._notifier.authorized:
            log.info("notifications_not_authorized")
            return []
        now = ensure_utc(now)
        return self.schedule_rain(timeline, now) + self.schedule_alerts(alerts, now)

    def schedule_rain(self, timeline: PrecipitationTimeline, now: datetime) -> list[NotificationRequest]:
        if not self._notifier.authorized:
            return []
        self._notifier.cancel_all(RAIN_PREFIX)
        requests: list[NotificationRequest] = []

        start = timeline.rain_start_time
        if start is not None and now < start <= now + self._rain_window:
            minutes = max(1, timeline.minutes_until_rain_starts(now))
            requests.append(
                NotificationRequest(
                    id=RAIN_START_ID,
                    fire_at=max(start - self._rain_lead, now),
                    title="Rain Starting Soon",
                    body=f"Rain expected to start in about {minutes} minutes",
                )
            )

        end = timeline.rain_end_time
        if end is not None and now < end <= now + self._rain_window:
            minutes = max(1, timeline.minutes_until_rain_stops(now))
            requests.append(
                NotificationRequest(
                    id=RAIN_END_ID,
                    fire_at=now + self._rain_stop_delay,
                    title="Rain Stopping Soon",
                    body=f"Rain expected to stop in about {minutes} minutes",
                )
            )

        for request in requests:
            self._notifier.schedule(request.id, request.fire_at, request.title, request.body)
        return requests

    def schedule_alerts(self, alerts: list[WeatherAlert], now: datetime) -> list[NotificationRequest]:
        if not self._notifier.authorized:
            return []
        self._notifier.cancel_all(ALERT_PREFIX)
        requests: list[NotificationRequest] = []
        for alert in alerts:
            if alert.severity is AlertSeverity.INFORMATION:
                continue
            effective = ensure_utc(alert.effective)
            if not (now < effective <= now + self._alert_window):
                continue
            request = NotificationRequest(
                id=f"{ALERT_PREFIX}{alert.id}",
                fire_at=max(effective - self._alert_lead, now),
                title=f"{alert.severity.value}: {alert.type}",
                body=alert.description,
            )
            self._notifier.schedule(request.id, request.fire_at, request.title, request.body)
            requests.append(request)

        if requests:
            log.info("weather_alerts_scheduled", count=len(requests), skipped=len(alerts) - len(requests))
        return requests

