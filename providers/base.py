"""Shared httpx plumbing for provider clients: one client per provider, errors mapped to the taxonomy."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from utils.logging import get_logger
from weather.errors import DecodeError, InvalidCredentials, InvalidURL, NetworkError

log = get_logger("providers")

DEFAULT_TIMEOUT = 15.0


def to_float(value: Any) -> float | None:
    """Coerce a payload value to float; None for missing or non-numeric values."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class HttpProvider:
    """Base for provider clients.

    Subclasses set `name` and call `_get()`; every transport or parsing
    failure surfaces as one of InvalidCredentials / InvalidURL /
    NetworkError / DecodeError carrying the provider name.
    """

    name = "provider"

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = 2,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._timeout = timeout
        if client is None:
            transport = httpx.AsyncHTTPTransport(retries=retries)
            client = httpx.AsyncClient(timeout=timeout, transport=transport, headers=headers)
        elif headers:
            client.headers.update(headers)
        self._client = client

    async def _get(self, url: str, params: dict[str, Any] | None = None) -> httpx.Response:
        try:
            resp = await asyncio.wait_for(self._client.get(url, params=params), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise NetworkError(f"request timed out after {self._timeout:.0f}s", self.name) from e
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise InvalidURL(str(e), self.name) from e
        except httpx.TimeoutException as e:
            raise NetworkError(f"request timed out: {e}", self.name) from e
        except httpx.HTTPError as e:
            raise NetworkError(str(e), self.name) from e

        if resp.status_code in (401, 403):
            raise InvalidCredentials(f"rejected with status {resp.status_code}", self.name)
        if resp.status_code != 200:
            raise NetworkError(f"unexpected status code {resp.status_code}", self.name)
        return resp

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        resp = await self._get(url, params)
        try:
            return resp.json()
        except ValueError as e:
            raise DecodeError(f"invalid JSON: {e}", self.name) from e

    def _require(self, payload: Any, key: str) -> Any:
        """Fetch a mandatory key from a JSON object or raise DecodeError."""
        if not isinstance(payload, dict) or key not in payload:
            raise DecodeError(f"payload missing '{key}'", self.name)
        return payload[key]

    async def close(self) -> None:
        await self._client.aclose()
