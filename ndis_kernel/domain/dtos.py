"""
Immutable value objects passed between selectors, services and callers.

These never carry ORM instances, so they stay valid after the session that
produced them is closed.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from ndis_kernel.domain.values import (
    FundingCategory,
    RateSource,
    ShiftType,
    TransactionType,
)


@dataclass(frozen=True)
class TenantRecord:
    id: UUID
    name: str
    company_id: str | None
    timezone: str
    is_active: bool


@dataclass(frozen=True)
class ShiftRecord:
    """A shift as read from the rostering tables."""

    id: UUID
    tenant_id: UUID
    client_id: UUID | None
    user_id: UUID | None
    start_time: datetime | None
    end_time: datetime | None
    status: str
    staff_ratio: str | None = None
    funding_category: str | None = None
    title: str | None = None


@dataclass(frozen=True)
class RateResolution:
    """Outcome of rate resolution for one shift."""

    shift_type: ShiftType
    ratio: str
    rate: Decimal
    source: RateSource


@dataclass(frozen=True)
class TransactionRequest:
    """
    Everything LedgerService needs to write one transaction.

    amount is signed: positive for a deduction, negative for a reversal.
    """

    budget_id: UUID
    tenant_id: UUID
    category: FundingCategory
    shift_type: ShiftType
    ratio: str
    hours: Decimal
    rate: Decimal
    amount: Decimal
    rate_source: RateSource
    created_by_user_id: UUID
    description: str
    shift_id: UUID | None = None
    company_id: str | None = None
    transaction_type: TransactionType = TransactionType.DEDUCTION
    reversal_of_id: UUID | None = None


@dataclass(frozen=True)
class TransactionView:
    """Read-only projection of a persisted budget transaction."""

    id: UUID
    budget_id: UUID
    tenant_id: UUID
    transaction_type: str
    category: str
    shift_type: str
    ratio: str
    hours: Decimal
    rate: Decimal
    amount: Decimal
    rate_source: str
    shift_id: UUID | None
    reversal_of_id: UUID | None
    company_id: str | None
    created_by_user_id: UUID
    description: str
    created_at: datetime


@dataclass(frozen=True)
class CategoryBalance:
    category: FundingCategory
    funded: Decimal
    remaining: Decimal
    spent: Decimal


@dataclass(frozen=True)
class BudgetSummary:
    budget_id: UUID
    tenant_id: UUID
    client_id: UUID
    is_active: bool
    categories: tuple[CategoryBalance, ...]
    transaction_count: int

    def balance(self, category: FundingCategory) -> CategoryBalance:
        for entry in self.categories:
            if entry.category == category:
                return entry
        raise KeyError(category)


@dataclass(frozen=True)
class CategoryDrift:
    """A category whose stored remaining disagrees with its transactions."""

    category: FundingCategory
    expected_remaining: Decimal
    stored_remaining: Decimal

    @property
    def difference(self) -> Decimal:
        return self.stored_remaining - self.expected_remaining


@dataclass(frozen=True)
class BudgetVerification:
    """Result of recomputing remaining = funded - sum(amounts)."""

    budget_id: UUID
    tenant_id: UUID
    drift: tuple[CategoryDrift, ...] = field(default_factory=tuple)

    @property
    def is_consistent(self) -> bool:
        return not self.drift
