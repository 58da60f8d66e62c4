"""Duration parsing utilities."""

import re

Duration = str | int | float  # "500ms", "2s", "1.5m" or milliseconds

_DURATION_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)(ms|s|m|h)$")
_UNITS: dict[str, int] = {
    "ms": 1,
    "s": 1000,
    "m": 60_000,
    "h": 3_600_000,
}


def parse_duration(duration: Duration) -> int:
    """Parse a duration to whole milliseconds. Numbers pass through."""
    if isinstance(duration, bool):
        raise ValueError(f"Invalid duration: {duration!r}")
    if isinstance(duration, (int, float)):
        if duration < 0:
            raise ValueError(f"Duration must not be negative: {duration!r}")
        return int(duration)

    match = _DURATION_PATTERN.match(duration.strip())
    if not match:
        raise ValueError(f"Invalid duration: {duration!r}")

    value, unit = match.groups()
    return int(float(value) * _UNITS[unit])


def to_seconds(milliseconds: int) -> float:
    """Convert milliseconds to the seconds asyncio timers expect."""
    return milliseconds / 1000
