"""Notifier adapters for role-room broadcasts."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Broadcast:
    rooms: tuple[str, ...]
    event: str
    payload: dict[str, Any]


class LoggingNotifier:
    """Writes each broadcast to the log. Used when no real-time transport is attached."""

    def notify(self, rooms: list[str], event: str, payload: dict[str, Any]) -> None:
        logger.info("broadcast %s to %s: %s", event, ",".join(rooms), payload)


class InMemoryNotifier:
    """Keeps broadcasts per room; readers drain them with `drain`."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.sent: list[Broadcast] = []

    def notify(self, rooms: list[str], event: str, payload: dict[str, Any]) -> None:
        with self._lock:
            self.sent.append(Broadcast(rooms=tuple(rooms), event=event, payload=dict(payload)))

    def for_room(self, room: str) -> list[Broadcast]:
        with self._lock:
            return [b for b in self.sent if room in b.rooms]

    def drain(self) -> list[Broadcast]:
        with self._lock:
            out, self.sent = self.sent, []
            return out
