"""
Tests for timestamp utilities.
"""

from datetime import datetime, timedelta, timezone

import pytest

from oci_metrics_query.domain.models import TimeRange
from oci_metrics_query.domain.utils.timestamps import (
    parse_timestamp,
    to_epoch_millis,
    whole_days_between,
)


def test_parse_timestamp_iso8601_with_z():
    """Test parsing ISO8601 timestamp with Z suffix."""
    result = parse_timestamp("2025-10-15T12:00:00Z")
    assert result == datetime(2025, 10, 15, 12, tzinfo=timezone.utc)


def test_parse_timestamp_iso8601_without_timezone():
    """Naive ISO8601 strings default to UTC."""
    result = parse_timestamp("2025-10-15T12:00:00")
    assert result is not None
    assert result.tzinfo == timezone.utc


def test_parse_timestamp_unix_seconds():
    """Test parsing Unix timestamp in seconds."""
    result = parse_timestamp(1697385600)
    assert result == datetime(2023, 10, 15, 16, tzinfo=timezone.utc)


def test_parse_timestamp_unix_milliseconds():
    """Test parsing Unix timestamp in milliseconds."""
    result = parse_timestamp(1697385600000)
    assert result == datetime(2023, 10, 15, 16, tzinfo=timezone.utc)


def test_parse_timestamp_numeric_string():
    """Epoch-millisecond strings as sent on the wire."""
    assert parse_timestamp("1697385600000") == parse_timestamp(1697385600000)


def test_parse_timestamp_naive_datetime():
    result = parse_timestamp(datetime(2025, 1, 1))
    assert result.tzinfo == timezone.utc


def test_parse_timestamp_invalid():
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(None) is None


def test_to_epoch_millis():
    dt = datetime(2023, 10, 15, 16, tzinfo=timezone.utc)
    assert to_epoch_millis(dt) == 1697385600000


@pytest.mark.parametrize(
    "span,expected",
    [
        (timedelta(hours=6), 0),
        (timedelta(days=1), 1),
        (timedelta(days=6, hours=23), 6),
        (timedelta(days=7, hours=5), 7),
        (timedelta(days=90), 90),
    ],
)
def test_whole_days_between_truncates(span, expected):
    start = datetime(2025, 10, 1, tzinfo=timezone.utc)
    assert whole_days_between(start, start + span) == expected


def test_time_range_accepts_wire_strings():
    rng = TimeRange.model_validate({"from": "1697385600000", "to": "1698000000000"})
    assert rng.days == 7
    assert rng.to_wire() == {"from": "1697385600000", "to": "1698000000000"}


def test_time_range_rejects_reversed_and_invalid():
    with pytest.raises(ValueError):
        TimeRange.model_validate(
            {"from": "2025-10-02T00:00:00Z", "to": "2025-10-01T00:00:00Z"}
        )
    with pytest.raises(ValueError):
        TimeRange.model_validate({"from": "yesterday", "to": "2025-10-01T00:00:00Z"})


def test_time_range_last():
    rng = TimeRange.last(hours=6)
    assert rng.to - rng.from_ == timedelta(hours=6)
    assert rng.days == 0
