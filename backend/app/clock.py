"""Injectable time source shared by the services."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def current_time(clock: Optional[Clock]) -> datetime:
    """Return an aware UTC ``datetime`` from ``clock`` or the system time."""

    if clock is None:
        return datetime.now(timezone.utc)
    value = clock()
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
