"""Duration parsing for configuration values."""

import re

from optisync.types import Duration

_DURATION_PATTERN = re.compile(r"^(\d+)(ms|s|m|h)$")
_UNITS: dict[str, int] = {
    "ms": 1,
    "s": 1000,
    "m": 60_000,
    "h": 3_600_000,
}


def parse_duration(duration: Duration) -> int:
    """Parse "250ms", "10s", "1m" or "1h" to milliseconds. Ints pass through."""
    if isinstance(duration, bool):
        raise ValueError(f"Invalid duration: {duration!r}")
    if isinstance(duration, int):
        if duration < 0:
            raise ValueError(f"Invalid duration: {duration!r}")
        return duration

    match = _DURATION_PATTERN.match(duration)
    if not match:
        raise ValueError(f"Invalid duration: {duration!r}")

    value, unit = match.groups()
    return int(value) * _UNITS[unit]


def to_seconds(duration: Duration) -> float:
    """Convert a duration to float seconds, the unit httpx timeouts use."""
    return parse_duration(duration) / 1000
