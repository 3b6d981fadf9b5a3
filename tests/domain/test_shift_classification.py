"""
Shift classification by local start hour.

The four shift types partition the day: every hour 0-23 maps to exactly
one type, with boundaries at 06, 14, 20 and 22.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest
from hypothesis import given
from hypothesis import strategies as st

from ndis_kernel.domain.shift_type import classify_shift_type, classify_start, local_hour
from ndis_kernel.domain.values import ShiftType

SYDNEY = ZoneInfo("Australia/Sydney")


class TestClassifyShiftType:
    @pytest.mark.parametrize(
        "hour,expected",
        [
            (5, ShiftType.ACTIVE_NIGHT),
            (6, ShiftType.AM),
            (13, ShiftType.AM),
            (14, ShiftType.PM),
            (19, ShiftType.PM),
            (20, ShiftType.SLEEPOVER),
            (21, ShiftType.SLEEPOVER),
            (22, ShiftType.ACTIVE_NIGHT),
            (23, ShiftType.ACTIVE_NIGHT),
            (0, ShiftType.ACTIVE_NIGHT),
        ],
    )
    def test_boundaries(self, hour, expected):
        assert classify_shift_type(hour) == expected

    def test_every_hour_has_exactly_one_type(self):
        counts = {t: 0 for t in ShiftType}
        for hour in range(24):
            counts[classify_shift_type(hour)] += 1
        assert counts == {
            ShiftType.AM: 8,
            ShiftType.PM: 6,
            ShiftType.SLEEPOVER: 2,
            ShiftType.ACTIVE_NIGHT: 8,
        }

    @pytest.mark.parametrize("hour", [-1, 24, 100])
    def test_out_of_range_hour_rejected(self, hour):
        with pytest.raises(ValueError):
            classify_shift_type(hour)

    @given(st.integers(min_value=0, max_value=23))
    def test_classification_is_total(self, hour):
        assert classify_shift_type(hour) in set(ShiftType)

    @given(st.integers(min_value=0, max_value=23))
    def test_type_is_stable_within_band(self, hour):
        bands = [(6, 14), (14, 20), (20, 22)]
        for lo, hi in bands:
            if lo <= hour < hi:
                assert classify_shift_type(hour) == classify_shift_type(lo)
                return
        assert classify_shift_type(hour) == ShiftType.ACTIVE_NIGHT


class TestClassifyStart:
    def test_naive_start_is_local_wall_clock(self):
        assert classify_start(datetime(2025, 7, 1, 9, 0), SYDNEY) == ShiftType.AM

    def test_aware_start_is_converted_to_tenant_zone(self):
        # 23:00 UTC on 30 June is 09:00 on 1 July in Sydney (AEST, UTC+10)
        start = datetime(2025, 6, 30, 23, 0, tzinfo=timezone.utc)
        assert local_hour(start, SYDNEY) == 9
        assert classify_start(start, SYDNEY) == ShiftType.AM

    def test_same_instant_classifies_per_tenant_zone(self):
        start = datetime(2025, 7, 1, 12, 0, tzinfo=timezone.utc)
        assert classify_start(start, ZoneInfo("UTC")) == ShiftType.AM
        assert classify_start(start, SYDNEY) == ShiftType.ACTIVE_NIGHT
