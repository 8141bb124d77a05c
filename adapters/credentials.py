"""Credential store interface and an in-process implementation."""

from __future__ import annotations

from threading import Lock
from typing import Protocol

from config import Config
from weather.models import ProviderCredentials

# Service names used by the engine
WU_SERVICE = "wu"
OWM_SERVICE = "owm"
WU_STATION_SERVICE = "wu_station"


class CredentialStore(Protocol):
    def get(self, service: str) -> str | None: ...

    def set(self, service: str, secret: str) -> bool: ...

    def delete(self, service: str) -> bool: ...


class InMemoryCredentialStore:
    """Secrets namespaced under a prefix, mirroring keychain-style storage."""

    def __init__(self, prefix: str = "rainwatch.") -> None:
        self._prefix = prefix
        self._secrets: dict[str, str] = {}
        self._lock = Lock()

    def get(self, service: str) -> str | None:
        with self._lock:
            return self._secrets.get(self._prefix + service)

    def set(self, service: str, secret: str) -> bool:
        if not service:
            return False
        with self._lock:
            self._secrets[self._prefix + service] = secret
        return True

    def delete(self, service: str) -> bool:
        with self._lock:
            return self._secrets.pop(self._prefix + service, None) is not None

    @classmethod
    def from_config(cls, config: Config) -> InMemoryCredentialStore:
        """Seed a store from env-provided keys; blank values are skipped."""
        store = cls()
        for service, secret in (
            (WU_SERVICE, config.wu_api_key),
            (WU_STATION_SERVICE, config.wu_station_id),
            (OWM_SERVICE, config.owm_api_key),
        ):
            if secret:
                store.set(service, secret)
        return store


def load_credentials(store: CredentialStore) -> ProviderCredentials:
    return ProviderCredentials(
        wu_api_key=store.get(WU_SERVICE),
        wu_station_id=store.get(WU_STATION_SERVICE),
        owm_api_key=store.get(OWM_SERVICE),
    )
