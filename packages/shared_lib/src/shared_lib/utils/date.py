import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Clock(Protocol):
    """Callable returning seconds since the UNIX epoch."""

    def __call__(self) -> float: ...


def default_clock() -> float:
    """Wall clock used whenever no clock is injected."""
    return time.time()


def is_unix_timestamp_older_than(
    timestamp: int | float,
    *,
    seconds: int | None = None,
    minutes: int | None = None,
    milliseconds: bool = True,
    now: float | None = None,
) -> bool:
    """
    Check if a Unix timestamp is older than a specified duration.

    ## Parameters
    - `timestamp`: Unix timestamp (e.g., 1700000000 or 1770069888028)
    - `seconds`: Number of seconds to check against (optional)
    - `minutes`: Number of minutes to check against (optional)
    - `milliseconds`: True if timestamp is in ms (13 digits), False if in seconds (10 digits)
    - `now`: Reference time in epoch seconds; defaults to the wall clock

    ## Returns
    - `True` if timestamp is older than specified duration
    - `False` otherwise or if parsing fails

    ## Notes
    Gracefully handles malformed timestamps by logging and returning False.
    """

    if seconds is None and minutes is None:
        raise ValueError("Must specify either seconds or minutes")

    try:
        ts_seconds = timestamp / 1000 if milliseconds else timestamp

        dt = datetime.fromtimestamp(ts_seconds, tz=timezone.utc)
        reference = datetime.fromtimestamp(
            default_clock() if now is None else now, tz=timezone.utc
        )

        if seconds is not None:
            return reference - dt > timedelta(seconds=seconds)

        if minutes is not None:
            return reference - dt > timedelta(minutes=minutes)

        return False

    except (ValueError, OSError, TypeError, OverflowError) as e:
        logger.error(f"Failed to parse unix timestamp '{timestamp}': {e}")
        return False
