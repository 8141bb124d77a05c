"""All settings loaded from env vars."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_float(name: str) -> float | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


@dataclass
class Config:
    # Provider credentials (normally seeded into the credential store)
    wu_api_key: str = ""
    wu_station_id: str = ""
    owm_api_key: str = ""

    # Location
    latitude: float | None = None
    longitude: float | None = None
    use_gps: bool = False

    # Display
    unit_system: str = "Metric"  # "Metric", "Imperial" or "UK"

    # HTTP
    request_timeout: float = 15.0
    http_retries: int = 2
    user_agent: str = "rainwatch/1.0 (weather-aggregation)"

    # Cache
    cache_ttl: float = 300.0  # 5 min

    # Nowcast
    nowcast_source: str = "open_meteo"  # "open_meteo" or "met_norway"
    nowcast_horizon_minutes: int = 120
    alerts_enabled: bool = True
    forecast_days: int = 7
    forecast_hours: int = 24

    # Notification timing
    rain_start_lead_minutes: int = 5
    rain_stop_delay_minutes: int = 1
    rain_notify_window_minutes: int = 120
    alert_window_hours: int = 24
    alert_lead_hours: int = 3

    # Timing (seconds)
    refresh_interval: int = 300  # 5 min

    @classmethod
    def from_env(cls) -> Config:
        cfg = cls()
        cfg.wu_api_key = os.getenv("WU_API_KEY", "")
        cfg.wu_station_id = os.getenv("WU_STATION_ID", "")
        cfg.owm_api_key = os.getenv("OWM_API_KEY", "")
        cfg.latitude = _env_float("LATITUDE")
        cfg.longitude = _env_float("LONGITUDE")
        cfg.use_gps = _env_bool("USE_GPS", "false")
        cfg.unit_system = os.getenv("UNIT_SYSTEM", "Metric")
        cfg.request_timeout = float(os.getenv("REQUEST_TIMEOUT", "15.0"))
        cfg.http_retries = int(os.getenv("HTTP_RETRIES", "2"))
        cfg.user_agent = os.getenv("USER_AGENT", cfg.user_agent)
        cfg.cache_ttl = float(os.getenv("CACHE_TTL", "300"))
        cfg.nowcast_source = os.getenv("NOWCAST_SOURCE", "open_meteo").lower()
        cfg.nowcast_horizon_minutes = int(os.getenv("NOWCAST_HORIZON_MINUTES", "120"))
        cfg.alerts_enabled = _env_bool("ALERTS_ENABLED", "true")
        cfg.forecast_days = int(os.getenv("FORECAST_DAYS", "7"))
        cfg.forecast_hours = int(os.getenv("FORECAST_HOURS", "24"))
        cfg.refresh_interval = int(os.getenv("REFRESH_INTERVAL", "300"))
        return cfg

    @property
    def has_manual_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None
