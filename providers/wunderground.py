"""PRIMARY: Weather Underground personal weather station (PWS) current observations."""

from __future__ import annotations

from typing import Any

from providers.base import HttpProvider, to_float
from utils.logging import get_logger
from weather.errors import DecodeError, InvalidCredentials
from weather.models import WUNDERGROUND, Coordinate, ProviderCredentials, RawObservation, UnitSystem

log = get_logger("wunderground")

WU_CURRENT_URL = "https://api.weather.com/v2/pws/observations/current"


class WundergroundClient(HttpProvider):
    """Fetches the latest observation of one PWS.

    Metric units are always requested from the wire; conversion to the
    display system happens after merging.
    """

    name = WUNDERGROUND

    def __init__(self, base_url: str = WU_CURRENT_URL, **kwargs: Any) -> None:
        super().__init__(headers={"Accept": "application/json"}, **kwargs)
        self._base_url = base_url

    async def fetch(
        self,
        coordinate: Coordinate | None,
        credentials: ProviderCredentials,
        unit_system: UnitSystem = UnitSystem.METRIC,
    ) -> RawObservation:
        """Fetch current conditions for the configured station.

        The coordinate is unused: a station is identified by its ID alone.
        """
        api_key = (credentials.wu_api_key or "").strip()
        station_id = (credentials.wu_station_id or "").strip()
        if not api_key or not station_id:
            raise InvalidCredentials("empty API key or station ID", self.name)

        params = {
            "stationId": station_id,
            "format": "json",
            "units": "m",
            "numericPrecision": "decimal",
            "apiKey": api_key,
        }
        data = await self._get_json(self._base_url, params)
        observation = self.parse(data)
        log.debug("wu_observation_fetched", station=station_id, temp_c=observation.temperature)
        return observation

    def parse(self, data: Any) -> RawObservation:
        """Map a `/v2/pws/observations/current` payload to a RawObservation."""
        observations = self._require(data, "observations")
        if not isinstance(observations, list) or not observations:
            raise DecodeError("no observations in payload", self.name)

        obs = observations[0]
        if not isinstance(obs, dict):
            raise DecodeError("observation is not an object", self.name)
        metric = obs.get("metric") or {}
        if not isinstance(metric, dict):
            raise DecodeError("'metric' block is not an object", self.name)

        return RawObservation(
            provider=self.name,
            temperature=to_float(metric.get("temp")),
            feels_like=to_float(metric.get("heatIndex")),
            humidity=to_float(obs.get("humidity")),
            dew_point=to_float(metric.get("dewpt")),
            pressure=to_float(metric.get("pressure")),
            wind_speed=to_float(metric.get("windSpeed")),
            wind_gust=to_float(metric.get("windGust")),
            uv_index=to_float(obs.get("uv")),
            solar_radiation=to_float(obs.get("solarRadiation")),
        )
