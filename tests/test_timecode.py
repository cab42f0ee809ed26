"""Tests for timecode.py."""

import pytest

from lectern.timecode import format_time, parse_time


class TestFormatTime:
    def test_zero(self):
        assert format_time(0) == "00:00:00"

    def test_hours(self):
        assert format_time(3661000) == "01:01:01"

    def test_truncates_millis(self):
        assert format_time(90700) == "00:01:30"

    def test_show_millis(self):
        assert format_time(1050042, show_millis=True) == "00:17:30.042"


class TestParseTime:
    def test_whole_seconds(self):
        assert parse_time("01:02:03") == 3723000

    def test_fraction_right_padded(self):
        assert parse_time("00:00:01.5") == 1500
        assert parse_time("00:00:01.05") == 1050
        assert parse_time("00:00:01.123") == 1123

    def test_roundtrip_with_millis(self):
        assert parse_time(format_time(1050042, True)) == 1050042

    @pytest.mark.parametrize("text", ["1:30", "aa:bb:cc", "00:00:01.1234", "00:00:01.x", ""])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_time(text)
