import pytest

from automod.util.format_utils import (
    PERMANENT_DURATION,
    format_duration,
    humanize_timestamp,
    parse_duration_seconds,
)


@pytest.mark.parametrize("value, expected", [
    ("30s", 30),
    ("10m", 600),
    ("1h", 3600),
    ("7d", 604_800),
    ("2w", 1_209_600),
    (" 5M ", 300),
    (90, 90),
    (0, None),
    (None, None),
    ("", None),
    ("soon", None),
    ("1y", None),
])
def test_parse_duration_seconds(value, expected):
    assert parse_duration_seconds(value) == expected


@pytest.mark.parametrize("seconds, expected", [
    (None, PERMANENT_DURATION),
    (0, PERMANENT_DURATION),
    (45, "45 secs"),
    (600, "10 mins"),
    (3600, "1 hour"),
    (7200, "2 hours"),
    (86400, "1 day"),
    (3 * 86400, "3 days"),
])
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


def test_humanize_timestamp():
    assert humanize_timestamp(0) == "1970-01-01 00:00:00 UTC"
