"""Local notification scheduler interface and a logging implementation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from utils.logging import get_logger

log = get_logger("notifications")


@dataclass(frozen=True)
class NotificationRequest:
    id: str
    fire_at: datetime
    title: str
    body: str


class NotificationScheduler(Protocol):
    @property
    def authorized(self) -> bool: ...

    def schedule(self, id: str, fire_at: datetime, title: str, body: str) -> None: ...

    def cancel_all(self, matching: str) -> None: ...


class LoggingNotificationScheduler:
    """Keeps pending notifications in memory and logs every change."""

    def __init__(self, authorized: bool = True) -> None:
        self._authorized = authorized
        # notification id → request
        self._pending: dict[str, NotificationRequest] = {}

    @property
    def authorized(self) -> bool:
        return self._authorized

    def set_authorized(self, authorized: bool) -> None:
        self._authorized = authorized

    def schedule(self, id: str, fire_at: datetime, title: str, body: str) -> None:
        self._pending[id] = NotificationRequest(id=id, fire_at=fire_at, title=title, body=body)
        log.info("notification_scheduled", id=id, fire_at=fire_at.isoformat(), title=title)

    def cancel_all(self, matching: str) -> None:
        removed = [nid for nid in self._pending if nid.startswith(matching)]
        for nid in removed:
            del self._pending[nid]
        if removed:
            log.info("notifications_cancelled", prefix=matching, count=len(removed))

    def pending(self) -> list[NotificationRequest]:
        return sorted(self._pending.values(), key=lambda r: r.fire_at)
