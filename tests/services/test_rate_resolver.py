"""
Rate precedence: budget override, then pricing table.  A rate derived
from the tenant's 1:1 row is opt-in.  Nothing resolvable is an error,
never zero.
"""

from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from ndis_kernel.domain.policy import LedgerPolicy
from ndis_kernel.domain.values import RateSource, ShiftType
from ndis_kernel.exceptions import NoRateFoundError
from ndis_kernel.services.rate_resolver import RateResolver

SYDNEY = ZoneInfo("Australia/Sydney")
AM_START = datetime(2025, 7, 1, 9, 0)
PM_START = datetime(2025, 7, 1, 15, 0)


class TestRatePrecedence:
    def test_pricing_table_rate(self, session, make_tenant, make_rate):
        tenant = make_tenant()
        make_rate(tenant, "AM", "1:1", "29.07")

        result = RateResolver(session).resolve_rate(AM_START, "1:1", tenant.id, None, SYDNEY)

        assert result.shift_type == ShiftType.AM
        assert result.rate == Decimal("29.07")
        assert result.source == RateSource.PRICING_TABLE

    def test_override_beats_pricing_table(self, session, make_tenant, make_rate):
        tenant = make_tenant()
        make_rate(tenant, "AM", "1:1", "29.07")

        result = RateResolver(session).resolve_rate(
            AM_START, "1:1", tenant.id, {"AM": "35.00"}, SYDNEY
        )

        assert result.rate == Decimal("35.00")
        assert result.source == RateSource.OVERRIDE

    def test_override_is_not_multiplied_by_ratio(self, session, make_tenant):
        tenant = make_tenant()

        result = RateResolver(session).resolve_rate(
            AM_START, "2:1", tenant.id, {"AM": 40}, SYDNEY
        )

        assert result.rate == Decimal("40.00")
        assert result.ratio == "2:1"

    def test_override_for_other_shift_type_is_ignored(self, session, make_tenant, make_rate):
        tenant = make_tenant()
        make_rate(tenant, "PM", "1:1", "31.50")

        result = RateResolver(session).resolve_rate(
            PM_START, "1:1", tenant.id, {"AM": "99.00"}, SYDNEY
        )

        assert result.shift_type == ShiftType.PM
        assert result.rate == Decimal("31.50")

    @pytest.mark.parametrize("bad", ["0", "-5", "0.004", "abc", None, True])
    def test_unusable_override_falls_through(self, session, make_tenant, make_rate, bad):
        tenant = make_tenant()
        make_rate(tenant, "AM", "1:1", "29.07")

        result = RateResolver(session).resolve_rate(
            AM_START, "1:1", tenant.id, {"AM": bad}, SYDNEY
        )

        assert result.source == RateSource.PRICING_TABLE
        assert result.rate == Decimal("29.07")

    def test_exact_ratio_row_preferred_over_derived(self, session, make_tenant, make_rate):
        tenant = make_tenant()
        make_rate(tenant, "AM", "1:1", "29.07")
        make_rate(tenant, "AM", "1:2", "16.00")
        resolver = RateResolver(session, LedgerPolicy(derived_rate_enabled=True))

        result = resolver.resolve_rate(AM_START, "1:2", tenant.id, None, SYDNEY)

        assert result.rate == Decimal("16.00")
        assert result.source == RateSource.PRICING_TABLE

    def test_one_to_one_row_does_not_price_other_ratio_by_default(
        self, session, make_tenant, make_rate
    ):
        tenant = make_tenant()
        make_rate(tenant, "AM", "1:1", "29.07")

        with pytest.raises(NoRateFoundError) as exc_info:
            RateResolver(session).resolve_rate(AM_START, "1:2", tenant.id, None, SYDNEY)

        assert exc_info.value.ratio == "1:2"

    def test_derived_from_one_to_one_row_when_enabled(self, session, make_tenant, make_rate):
        tenant = make_tenant()
        make_rate(tenant, "AM", "1:1", "30.00")
        resolver = RateResolver(session, LedgerPolicy(derived_rate_enabled=True))

        result = resolver.resolve_rate(AM_START, "1:2", tenant.id, None, SYDNEY)

        assert result.rate == Decimal("15.00")
        assert result.source == RateSource.DERIVED

    def test_sub_cent_override_is_not_charged(self, session, make_tenant, captured_logs):
        tenant = make_tenant()

        with pytest.raises(NoRateFoundError):
            RateResolver(session).resolve_rate(
                AM_START, "1:1", tenant.id, {"AM": "0.004"}, SYDNEY
            )

        assert any(r["message"] == "price_override_ignored" for r in captured_logs())

    def test_sub_cent_pricing_row_is_skipped(self, session, make_tenant, make_rate):
        tenant = make_tenant()
        make_rate(tenant, "AM", "1:1", "0.004")

        with pytest.raises(NoRateFoundError):
            RateResolver(session).resolve_rate(AM_START, "1:1", tenant.id, None, SYDNEY)

    def test_half_cent_override_rounds_up(self, session, make_tenant):
        tenant = make_tenant()

        result = RateResolver(session).resolve_rate(
            AM_START, "1:1", tenant.id, {"AM": "0.005"}, SYDNEY
        )

        assert result.rate == Decimal("0.01")
        assert result.source == RateSource.OVERRIDE

    def test_missing_ratio_uses_default(self, session, make_tenant, make_rate):
        tenant = make_tenant()
        make_rate(tenant, "AM", "1:1", "29.07")

        result = RateResolver(session).resolve_rate(AM_START, None, tenant.id, None, SYDNEY)

        assert result.ratio == "1:1"
        assert result.rate == Decimal("29.07")

    def test_inactive_rate_is_not_used(self, session, make_tenant, make_rate):
        tenant = make_tenant()
        make_rate(tenant, "AM", "1:1", "29.07", is_active=False)

        with pytest.raises(NoRateFoundError):
            RateResolver(session).resolve_rate(AM_START, "1:1", tenant.id, None, SYDNEY)

    def test_no_rate_raises_not_zero(self, session, make_tenant, captured_logs):
        tenant = make_tenant()

        with pytest.raises(NoRateFoundError) as exc_info:
            RateResolver(session).resolve_rate(AM_START, "1:1", tenant.id, None, SYDNEY)

        assert exc_info.value.code == "NO_RATE_FOUND"
        assert any(r["message"] == "no_rate_found" for r in captured_logs())

    def test_other_tenant_pricing_is_invisible(self, session, make_tenant, make_rate):
        tenant_a = make_tenant("A")
        tenant_b = make_tenant("B")
        make_rate(tenant_b, "AM", "1:1", "29.07")

        with pytest.raises(NoRateFoundError):
            RateResolver(session).resolve_rate(AM_START, "1:1", tenant_a.id, None, SYDNEY)
