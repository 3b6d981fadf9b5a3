"""
Module: ndis_kernel.models.budget
Responsibility: ORM persistence for participant budgets: three category
    balances with their funded amounts, per-tenant price overrides and
    optional per-category ratio restrictions.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One budget per (client_id, tenant_id), and (client_id, tenant_id)
      references clients(id, tenant_id).
    - Every *_remaining column is >= 0 (CHECK constraint).  Deductions are
      rejected, never clamped.
    - remaining = funded - sum(transaction amounts for the category).
      Only LedgerService.apply_transaction / reverse_transaction move the
      remaining columns; the ORM listeners in db/immutability.py block any
      other attribute-level change to them.

Failure modes:
    - ImmutabilityViolationError on ORM updates to tenant_id, client_id or
      any balance column.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Numeric,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ndis_kernel.db.base import TrackedBase, UUIDString
from ndis_kernel.db.tenancy import tenant_fk, tenant_unique

# FundingCategory value -> (funded column, remaining column)
CATEGORY_COLUMNS: dict[str, tuple[str, str]] = {
    "CommunityAccess": ("community_access_funded", "community_access_remaining"),
    "SIL": ("sil_funded", "sil_remaining"),
    "CapacityBuilding": ("capacity_building_funded", "capacity_building_remaining"),
}

BALANCE_FIELDS: frozenset[str] = frozenset(
    col for pair in CATEGORY_COLUMNS.values() for col in pair
)


class Budget(TrackedBase):
    """
    Per-participant support budget.

    Contract:
        price_overrides maps a shift type label ("AM", "PM", "ActiveNight",
        "Sleepover") to an hourly rate that wins over the pricing table.
        allowed_ratios maps a category label to the ratio strings permitted
        for it; an absent or empty list permits every ratio.
    """

    __tablename__ = "budgets"

    __table_args__ = (
        tenant_unique("budgets"),
        UniqueConstraint("client_id", "tenant_id", name="uq_budgets_client_tenant"),
        tenant_fk("client_id", "clients"),
        CheckConstraint("community_access_remaining >= 0", name="ck_budgets_ca_nonneg"),
        CheckConstraint("sil_remaining >= 0", name="ck_budgets_sil_nonneg"),
        CheckConstraint(
            "capacity_building_remaining >= 0", name="ck_budgets_cb_nonneg"
        ),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    client_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    community_access_funded: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    community_access_remaining: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )

    sil_funded: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    sil_remaining: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )

    capacity_building_funded: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    capacity_building_remaining: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )

    price_overrides: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    allowed_ratios: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def funded_for(self, category: str) -> Decimal:
        return getattr(self, CATEGORY_COLUMNS[category][0])

    def remaining_for(self, category: str) -> Decimal:
        return getattr(self, CATEGORY_COLUMNS[category][1])

    def __repr__(self) -> str:
        return f"<Budget {self.id} client={self.client_id}>"
