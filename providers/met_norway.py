"""MET Norway: MetAlerts 2.0 RSS feed and Locationforecast 2.0 precipitation series."""

from __future__ import annotations

import uuid
import xml.etree.ElementTree as ET
from typing import Any

from providers.base import HttpProvider, to_float
from utils.logging import get_logger
from utils.time_utils import parse_rfc822_timestamp, utc_now
from weather.errors import DecodeError
from weather.models import MET_NORWAY, AlertSeverity, Coordinate, ForecastSample, WeatherAlert

log = get_logger("met_norway")

MET_ALERTS_URL = "https://api.met.no/weatherapi/metalerts/2.0/current.rss"
MET_FORECAST_URL = "https://api.met.no/weatherapi/locationforecast/2.0/compact"
DEFAULT_USER_AGENT = "rainwatch/1.0 (weather-aggregation)"

# Locationforecast steps hourly for the first ~2.5 days; 4 days covers any horizon we use
MAX_FORECAST_ENTRIES = 24 * 4


class MetNorwayClient(HttpProvider):
    """MET Norway requires an identifying User-Agent on every request."""

    name = MET_NORWAY

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        alerts_url: str = MET_ALERTS_URL,
        forecast_url: str = MET_FORECAST_URL,
        **kwargs: Any,
    ) -> None:
        super().__init__(headers={"User-Agent": user_agent}, **kwargs)
        self._alerts_url = alerts_url
        self._forecast_url = forecast_url

    async def fetch_alerts(self, coordinate: Coordinate) -> list[WeatherAlert]:
        params = {"lat": coordinate.latitude, "lon": coordinate.longitude, "lang": "en"}
        resp = await self._get(self._alerts_url, params)
        alerts = self.parse_alerts(resp.content)
        log.debug("met_alerts_fetched", lat=coordinate.latitude, lon=coordinate.longitude, count=len(alerts))
        return alerts

    def parse_alerts(self, raw_xml: bytes | str) -> list[WeatherAlert]:
        """Parse the RSS channel into alerts.

        Severity is inferred from the awareness colour in the item title.
        """
        try:
            root = ET.fromstring(raw_xml)
        except ET.ParseError as e:
            raise DecodeError(f"invalid RSS: {e}", self.name) from e

        channel = root.find("channel")
        if channel is None:
            raise DecodeError("RSS has no channel", self.name)

        alerts: list[WeatherAlert] = []
        for item in channel.findall("item"):
            title = (item.findtext("title") or "").strip()
            event = title or "Unknown"
            description = (item.findtext("description") or "").strip() or event
            effective = parse_rfc822_timestamp(item.findtext("pubDate")) or utc_now()
            alert_id = (item.findtext("guid") or "").strip() or str(uuid.uuid4())
            alerts.append(
                WeatherAlert(
                    id=alert_id,
                    type=event,
                    severity=AlertSeverity.from_title(title),
                    description=description,
                    effective=effective,
                )
            )
        return alerts

    async def fetch_series(self, coordinate: Coordinate, horizon_minutes: int = 120) -> list[ForecastSample]:
        params = {
            "lat": round(coordinate.latitude, 4),
            "lon": round(coordinate.longitude, 4),
        }
        data = await self._get_json(self._forecast_url, params)
        samples = self.parse_series(data)
        log.debug("met_series_fetched", lat=coordinate.latitude, lon=coordinate.longitude, samples=len(samples))
        return samples

    def parse_series(self, data: Any) -> list[ForecastSample]:
        """Hourly samples; probability is 100 when the symbol mentions rain, else 0."""
        properties = self._require(data, "properties")
        timeseries = self._require(properties, "timeseries")
        if not isinstance(timeseries, list):
            raise DecodeError("'timeseries' is not a list", self.name)

        samples: list[ForecastSample] = []
        for entry in timeseries[:MAX_FORECAST_ENTRIES]:
            if not isinstance(entry, dict):
                continue
            next_hour = _dict_at(entry.get("data"), "next_1_hours")
            details = _dict_at(next_hour, "details")
            symbol = _dict_at(next_hour, "summary").get("symbol_code")
            if not isinstance(symbol, str):
                symbol = ""
            samples.append(
                ForecastSample(
                    time=entry.get("time"),
                    precipitation=to_float(details.get("precipitation_amount")),
                    probability=100.0 if "rain" in symbol else 0.0,
                )
            )
        return samples


def _dict_at(parent: Any, key: str) -> dict:
    """`parent[key]` when both are dicts, else an empty dict."""
    if not isinstance(parent, dict):
        return {}
    value = parent.get(key)
    return value if isinstance(value, dict) else {}
