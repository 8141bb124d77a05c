"""Location provider interface: best-effort current coordinate."""

from __future__ import annotations

from typing import Protocol

from config import Config
from utils.logging import get_logger
from weather.models import Coordinate

log = get_logger("location")


class LocationProvider(Protocol):
    def current_coordinate(self) -> Coordinate | None: ...


class StaticLocationProvider:
    """Returns a fixed coordinate (manual settings or the last known fix)."""

    def __init__(self, coordinate: Coordinate | None = None) -> None:
        self._coordinate = coordinate

    def current_coordinate(self) -> Coordinate | None:
        return self._coordinate

    def update(self, coordinate: Coordinate | None) -> None:
        self._coordinate = coordinate

    @classmethod
    def from_config(cls, config: Config) -> StaticLocationProvider:
        if not config.has_manual_location:
            return cls(None)
        try:
            return cls(Coordinate(config.latitude, config.longitude))
        except ValueError as e:
            log.warning("manual_location_invalid", error=str(e))
            return cls(None)
