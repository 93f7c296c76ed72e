"""
Unit tests for duration parsing.
"""
import pytest

from mqdockerup.UTILS.durations import format_duration, parse_duration


@pytest.mark.parametrize(
    "value, seconds",
    [("30s", 30), ("5m", 300), ("1h", 3600), ("2d", 172800), ("1w", 604800), (" 10m ", 600)],
)
def test_parse_duration(value, seconds):
    assert parse_duration(value) == seconds


@pytest.mark.parametrize("value", ["", "5", "m5", "5x", "1.5h", "-1m"])
def test_parse_duration_invalid(value):
    with pytest.raises(ValueError):
        parse_duration(value)


def test_format_duration():
    assert format_duration(0) == "0s"
    assert format_duration(59) == "59s"
    assert format_duration(3900) == "1h 5m"
    assert format_duration(8 * 86400) == "1w 1d"
