"""Tests for duration parsing."""

import pytest

from swrcache import parse_duration
from swrcache.duration import to_seconds


class TestParseDuration:
    """Tests for parse_duration function."""

    def test_milliseconds(self) -> None:
        """Test parsing milliseconds."""
        assert parse_duration("100ms") == 100
        assert parse_duration("1ms") == 1
        assert parse_duration("0ms") == 0

    def test_seconds(self) -> None:
        """Test parsing seconds."""
        assert parse_duration("2s") == 2000
        assert parse_duration("0.5s") == 500
        assert parse_duration("0s") == 0

    def test_minutes_and_hours(self) -> None:
        """Test parsing minutes and hours."""
        assert parse_duration("1m") == 60_000
        assert parse_duration("1.5m") == 90_000
        assert parse_duration("2h") == 7_200_000

    def test_number_passthrough(self) -> None:
        """Test that numbers are taken as milliseconds."""
        assert parse_duration(1000) == 1000
        assert parse_duration(0) == 0
        assert parse_duration(12.7) == 12

    def test_negative_rejected(self) -> None:
        """Test that negative numbers raise ValueError."""
        with pytest.raises(ValueError, match="negative"):
            parse_duration(-1)

    def test_invalid_format(self) -> None:
        """Test that invalid formats raise ValueError."""
        for value in ("invalid", "10x", "s10", "", "10", "1d"):
            with pytest.raises(ValueError, match="Invalid duration"):
                parse_duration(value)

        with pytest.raises(ValueError, match="Invalid duration"):
            parse_duration(True)


def test_to_seconds() -> None:
    """Test millisecond to second conversion."""
    assert to_seconds(2000) == 2.0
    assert to_seconds(5) == 0.005
