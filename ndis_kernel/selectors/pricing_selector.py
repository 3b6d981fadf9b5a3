"""Pricing table lookups."""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ndis_kernel.models.pricing import PricingRate
from ndis_kernel.selectors.base import BaseSelector


class PricingSelector(BaseSelector):

    def get_pricing_rate(
        self,
        shift_type: str,
        ratio: str,
        tenant_id: UUID,
    ) -> Decimal | None:
        """Active hourly rate for (shift_type, ratio) in the tenant, if any."""
        return self.session.execute(
            select(PricingRate.rate).where(
                PricingRate.tenant_id == tenant_id,
                PricingRate.shift_type == shift_type,
                PricingRate.ratio == ratio,
                PricingRate.is_active.is_(True),
            )
        ).scalar_one_or_none()
