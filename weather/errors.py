"""Error taxonomy for provider fetches and aggregation cycles."""

from __future__ import annotations


class WeatherError(Exception):
    """Base class for every failure surfaced by the weather engine."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.message = message
        self.provider = provider
        super().__init__(f"{provider}: {message}" if provider else message)


class InvalidCredentials(WeatherError):
    """A required secret is missing or rejected by the provider."""


class InvalidURL(WeatherError):
    """The request could not be constructed (configuration error)."""


class NetworkError(WeatherError):
    """Transport failure, non-success HTTP status, or timeout."""


class DecodeError(WeatherError):
    """The payload did not have the expected shape."""


class NoData(WeatherError):
    """Aggregation finished without a single populated field."""

    def __init__(self, message: str = "No weather data available", provider: str | None = None) -> None:
        super().__init__(message, provider)
