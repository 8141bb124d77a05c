"""SECONDARY: OpenWeatherMap current conditions with the day's min/max."""

from __future__ import annotations

from typing import Any

from providers.base import HttpProvider, to_float
from utils.logging import get_logger
from weather import units
from weather.errors import DecodeError, InvalidCredentials
from weather.models import OPENWEATHERMAP, Coordinate, ProviderCredentials, RawObservation, UnitSystem

log = get_logger("openweathermap")

OWM_CURRENT_URL = "https://api.openweathermap.org/data/2.5/weather"


class OpenWeatherMapClient(HttpProvider):
    """Queries the flat current-weather endpoint keyed by lat/lon.

    The wire unit string follows the display system, but the parsed
    observation is always normalised back to metric (°C, km/h, hPa).
    """

    name = OPENWEATHERMAP

    def __init__(self, base_url: str = OWM_CURRENT_URL, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._base_url = base_url

    async def fetch(
        self,
        coordinate: Coordinate,
        credentials: ProviderCredentials,
        unit_system: UnitSystem = UnitSystem.METRIC,
    ) -> RawObservation:
        api_key = (credentials.owm_api_key or "").strip()
        if not api_key:
            raise InvalidCredentials("empty API key", self.name)

        params = {
            "lat": coordinate.latitude,
            "lon": coordinate.longitude,
            "units": unit_system.request_units,
            "appid": api_key,
        }
        data = await self._get_json(self._base_url, params)
        observation = self.parse(data, imperial=unit_system.request_units == "imperial")
        log.debug(
            "owm_observation_fetched",
            lat=coordinate.latitude,
            lon=coordinate.longitude,
            temp_c=observation.temperature,
        )
        return observation

    def parse(self, data: Any, imperial: bool = False) -> RawObservation:
        main = self._require(data, "main")
        if not isinstance(main, dict):
            raise DecodeError("'main' block is not an object", self.name)
        wind = data.get("wind") or {}
        clouds = data.get("clouds") or {}
        if not isinstance(wind, dict) or not isinstance(clouds, dict):
            raise DecodeError("'wind'/'clouds' block is not an object", self.name)

        def temp(value: Any) -> float | None:
            t = to_float(value)
            if t is None:
                return None
            return units.f_to_c(t) if imperial else t

        def speed(value: Any) -> float | None:
            s = to_float(value)
            if s is None:
                return None
            # imperial → mph, metric → m/s
            return units.mph_to_kmh(s) if imperial else units.ms_to_kmh(s)

        return RawObservation(
            provider=self.name,
            temperature=temp(main.get("temp")),
            feels_like=temp(main.get("feels_like")),
            temp_high=temp(main.get("temp_max")),
            temp_low=temp(main.get("temp_min")),
            humidity=to_float(main.get("humidity")),
            pressure=to_float(main.get("pressure")),
            wind_speed=speed(wind.get("speed")),
            wind_gust=speed(wind.get("gust")),
            cloud_cover=to_float(clouds.get("all")),
        )
