"""
Utilities for parsing and formatting the short duration strings used in the config.
"""
import re

_DURATION_PATTERN = re.compile(r"^(\d+)([a-zA-Z]+)$")

_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 60 * 60 * 24,
    "w": 60 * 60 * 24 * 7,
}


def parse_duration(duration: str) -> int:
    """
    Converts a duration such as '5m' or '12h' into seconds.

    :param duration: Number followed by one of s, m, h, d, w.
    :return: The duration in seconds.
    :raises ValueError: If the format or unit is not recognised.
    """
    match = _DURATION_PATTERN.match(str(duration).strip())
    if not match:
        raise ValueError(f"Invalid duration format: {duration}")

    value = int(match.group(1))
    unit = match.group(2)
    if unit not in _UNIT_SECONDS:
        raise ValueError(f"Invalid time unit: {unit}")
    return value * _UNIT_SECONDS[unit]


def format_duration(seconds: float) -> str:
    """
    Formats a number of seconds for log lines, e.g. '1h 5m'.
    """
    remaining = int(seconds)
    if remaining <= 0:
        return "0s"

    parts = []
    for unit in ("w", "d", "h", "m", "s"):
        size = _UNIT_SECONDS[unit]
        count, remaining = divmod(remaining, size)
        if count:
            parts.append(f"{count}{unit}")
    return " ".join(parts)
