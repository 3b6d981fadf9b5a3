"""Shift duration in fractional hours."""

from datetime import datetime, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from ndis_kernel.domain.shift_type import compute_shift_hours
from ndis_kernel.exceptions import InvalidDurationError

SYDNEY = ZoneInfo("Australia/Sydney")
START = datetime(2025, 7, 1, 9, 0)


class TestComputeShiftHours:
    def test_whole_hours(self):
        assert compute_shift_hours("s1", START, START + timedelta(hours=2), SYDNEY) == Decimal("2")

    def test_fractional_hours(self):
        end = START + timedelta(hours=1, minutes=20)
        assert compute_shift_hours("s1", START, end, SYDNEY) == Decimal("1.3333")

    def test_exactly_max_is_allowed(self):
        end = START + timedelta(hours=24)
        assert compute_shift_hours("s1", START, end, SYDNEY) == Decimal("24")

    def test_over_max_rejected(self):
        end = START + timedelta(hours=24, minutes=1)
        with pytest.raises(InvalidDurationError) as exc_info:
            compute_shift_hours("s1", START, end, SYDNEY)
        assert exc_info.value.code == "INVALID_DURATION"

    def test_configurable_max(self):
        end = START + timedelta(hours=13)
        with pytest.raises(InvalidDurationError):
            compute_shift_hours("s1", START, end, SYDNEY, max_hours=Decimal("12"))

    @pytest.mark.parametrize("delta", [timedelta(0), timedelta(hours=-1)])
    def test_non_positive_rejected(self, delta):
        with pytest.raises(InvalidDurationError):
            compute_shift_hours("s1", START, START + delta, SYDNEY)

    def test_daylight_saving_start_counts_worked_hours(self):
        # Clocks jump 02:00 -> 03:00 on 5 Oct 2025 in Sydney
        start = datetime(2025, 10, 4, 22, 0)
        end = datetime(2025, 10, 5, 6, 0)
        assert compute_shift_hours("s1", start, end, SYDNEY) == Decimal("7")
