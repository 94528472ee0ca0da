"""Date manipulation utilities"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Naive UTC timestamp; the ledger stores all instants as naive UTC"""
    return datetime.now(timezone.utc).replace(tzinfo=None)

