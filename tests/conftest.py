"""Shared fixtures: config, fake clocks, scripted providers and in-memory collaborators."""

from __future__ import annotations

import asyncio

import pytest

from adapters.credentials import InMemoryCredentialStore
from adapters.notifications import LoggingNotificationScheduler
from aggregation.cache import ObservationCache
from config import Config
from weather.models import RawObservation


class FakeMonotonic:
    """Manually advanced stand-in for time.monotonic."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedProvider:
    """Current-conditions provider returning a fixed observation or raising a fixed error."""

    def __init__(
        self,
        name: str,
        observation: RawObservation | None = None,
        error: BaseException | None = None,
        delay: float = 0.0,
    ) -> None:
        self.name = name
        self.observation = observation
        self.error = error
        self.delay = delay
        self.calls = 0

    async def fetch(self, coordinate, credentials, unit_system) -> RawObservation:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.observation


@pytest.fixture
def config():
    """Minimal config for testing."""
    return Config(request_timeout=1.0)


@pytest.fixture
def clock():
    return FakeMonotonic()


@pytest.fixture
def cache(clock):
    return ObservationCache(ttl=300.0, clock=clock)


@pytest.fixture
def store():
    return InMemoryCredentialStore(prefix="test.")


@pytest.fixture
def notifier():
    return LoggingNotificationScheduler()


@pytest.fixture
def provider_factory():
    """ScriptedProvider class, so tests can build as many as they need."""
    return ScriptedProvider

