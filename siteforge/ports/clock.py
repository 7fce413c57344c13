from datetime import datetime
from typing import Protocol


class TimePort(Protocol):
    def now_utc(self) -> datetime:
        """Return the current timezone-aware UTC time."""
        ...
