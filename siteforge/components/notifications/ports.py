"""Notifications component port definitions."""

from typing import Any, Protocol


class NotifierPort(Protocol):
    """Real-time transport that broadcasts to role rooms."""

    def notify(self, rooms: list[str], event: str, payload: dict[str, Any]) -> None:
        ...
