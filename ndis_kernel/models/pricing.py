"""
Module: ndis_kernel.models.pricing
Responsibility: ORM persistence for the tenant pricing table
    (shift type x staffing ratio -> hourly rate).
Architecture position: Kernel > Models.  May import from db/ only.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ndis_kernel.db.base import Base, UUIDString
from ndis_kernel.db.tenancy import tenant_unique


class PricingRate(Base):
    """One hourly rate for a (shift_type, ratio) pair within a tenant."""

    __tablename__ = "ndis_pricing"

    __table_args__ = (
        tenant_unique("ndis_pricing"),
        UniqueConstraint(
            "tenant_id", "shift_type", "ratio", name="uq_ndis_pricing_type_ratio"
        ),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    shift_type: Mapped[str] = mapped_column(String(50), nullable=False)

    ratio: Mapped[str] = mapped_column(String(10), nullable=False)

    rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<PricingRate {self.shift_type} {self.ratio} {self.rate}>"
