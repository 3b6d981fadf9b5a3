"""
RateResolver -- shift start and ratio to an hourly rate.

Responsibility:
    Classify the shift by its local start hour and pick the hourly rate
    through the precedence chain:

        1. budget.price_overrides[shift_type]      (used as-is)
        2. pricing table (shift_type, ratio, tenant)
        3. pricing table (shift_type, "1:1", tenant) x ratio multiplier
           (only when LedgerPolicy.derived_rate_enabled is set; off by
           default, so a missing ratio row is NoRateFound)

    If nothing resolves, NoRateFoundError is raised.  A zero or guessed
    rate is never returned.

Architecture position:
    Kernel > Services.  Reads the pricing table through PricingSelector.

Invariants enforced:
    - An override is never re-multiplied by the ratio.
    - Override and table rates are rounded to cents before the positivity
      check.  Values that are non-numeric or round to zero or below are
      skipped (with a warning) and resolution continues down the chain.
"""

from collections.abc import Mapping
from datetime import datetime, tzinfo
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from ndis_kernel.db.types import RATE_DECIMAL_PLACES, round_money, to_decimal
from ndis_kernel.domain.dtos import RateResolution
from ndis_kernel.domain.policy import LedgerPolicy
from ndis_kernel.domain.ratio import DEFAULT_RATIO, calculate_ratio_multiplier, normalize_ratio
from ndis_kernel.domain.shift_type import classify_start
from ndis_kernel.domain.values import RateSource, ShiftType
from ndis_kernel.exceptions import NoRateFoundError
from ndis_kernel.logging_config import get_logger
from ndis_kernel.selectors.pricing_selector import PricingSelector

logger = get_logger("services.rate_resolver")


def _usable_rate(raw: Any) -> Decimal | None:
    rate = to_decimal(raw)
    if rate is None:
        return None
    rate = round_money(rate, RATE_DECIMAL_PLACES)
    return rate if rate > 0 else None


class RateResolver:
    """Resolves (shift_type, rate) for one shift within one tenant."""

    def __init__(self, session: Session, policy: LedgerPolicy | None = None):
        self._pricing = PricingSelector(session)
        self._policy = policy or LedgerPolicy()

    def _override_rate(
        self,
        price_overrides: Mapping[str, Any] | None,
        shift_type: ShiftType,
        tenant_id: UUID,
    ) -> Decimal | None:
        if not price_overrides or shift_type.value not in price_overrides:
            return None
        raw = price_overrides[shift_type.value]
        rate = _usable_rate(raw)
        if rate is None:
            logger.warning(
                "price_override_ignored",
                extra={
                    "tenant_id": str(tenant_id),
                    "shift_type": shift_type.value,
                    "raw_rate": str(raw),
                },
            )
        return rate

    def _table_rate(self, shift_type: ShiftType, ratio: str, tenant_id: UUID) -> Decimal | None:
        raw = self._pricing.get_pricing_rate(shift_type.value, ratio, tenant_id)
        if raw is None:
            return None
        rate = _usable_rate(raw)
        if rate is None:
            logger.warning(
                "pricing_rate_ignored",
                extra={
                    "tenant_id": str(tenant_id),
                    "shift_type": shift_type.value,
                    "ratio": ratio,
                    "raw_rate": str(raw),
                },
            )
        return rate

    def resolve_for_type(
        self,
        shift_type: ShiftType,
        ratio: str | None,
        tenant_id: UUID,
        price_overrides: Mapping[str, Any] | None = None,
    ) -> RateResolution:
        """
        Apply the precedence chain for an already-classified shift.

        Raises:
            NoRateFoundError: If no source yields a positive rate.
        """
        ratio_key = normalize_ratio(ratio, self._policy.default_ratio)

        rate = self._override_rate(price_overrides, shift_type, tenant_id)
        if rate is not None:
            return RateResolution(shift_type, ratio_key, rate, RateSource.OVERRIDE)

        rate = self._table_rate(shift_type, ratio_key, tenant_id)
        if rate is not None:
            return RateResolution(shift_type, ratio_key, rate, RateSource.PRICING_TABLE)

        if self._policy.derived_rate_enabled and ratio_key != DEFAULT_RATIO:
            base = self._table_rate(shift_type, DEFAULT_RATIO, tenant_id)
            if base is not None:
                multiplier = calculate_ratio_multiplier(ratio_key)
                derived = round_money(base * multiplier, RATE_DECIMAL_PLACES)
                if derived > 0:
                    logger.info(
                        "rate_derived_from_base",
                        extra={
                            "tenant_id": str(tenant_id),
                            "shift_type": shift_type.value,
                            "ratio": ratio_key,
                            "base_rate": base,
                            "multiplier": multiplier,
                        },
                    )
                    return RateResolution(shift_type, ratio_key, derived, RateSource.DERIVED)

        logger.warning(
            "no_rate_found",
            extra={
                "tenant_id": str(tenant_id),
                "shift_type": shift_type.value,
                "ratio": ratio_key,
            },
        )
        raise NoRateFoundError(shift_type.value, ratio_key, str(tenant_id))

    def resolve_rate(
        self,
        start_time: datetime,
        ratio: str | None,
        tenant_id: UUID,
        price_overrides: Mapping[str, Any] | None,
        tz: tzinfo,
    ) -> RateResolution:
        """Classify the start time in tz, then resolve the rate."""
        shift_type = classify_start(start_time, tz)
        return self.resolve_for_type(shift_type, ratio, tenant_id, price_overrides)
