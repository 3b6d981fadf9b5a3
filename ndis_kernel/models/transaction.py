"""
Module: ndis_kernel.models.transaction
Responsibility: ORM persistence for budget transactions, the immutable
    ledger of every charge and correction against a budget.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - At most one transaction per shift_id (UNIQUE).  This constraint is
      the sole idempotency authority for deductions.
    - At most one reversal per original transaction (UNIQUE reversal_of_id).
    - (budget_id, tenant_id), (shift_id, tenant_id) and
      (reversal_of_id, tenant_id) are composite references.
    - Rows are append-only: no UPDATE, no DELETE (ORM listener + trigger).
    - amount = round_money(rate * hours) for deductions; reversals carry
      the negated amount of the transaction they offset.

Failure modes:
    - IntegrityError on duplicate shift_id (translated to
      DuplicateTransactionError) or cross-tenant reference (translated to
      TenantMismatchError).
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ndis_kernel.db.base import Base, UUIDString
from ndis_kernel.db.tenancy import tenant_fk, tenant_unique


class BudgetTransaction(Base):
    """One ledger entry against one budget category."""

    __tablename__ = "budget_transactions"

    __table_args__ = (
        tenant_unique("budget_transactions"),
        UniqueConstraint("shift_id", name="uq_budget_transactions_shift_id"),
        UniqueConstraint("reversal_of_id", name="uq_budget_transactions_reversal_of_id"),
        tenant_fk("budget_id", "budgets"),
        tenant_fk("shift_id", "shifts"),
        tenant_fk("reversal_of_id", "budget_transactions"),
        Index("idx_budget_transactions_budget", "tenant_id", "budget_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    budget_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # TransactionType value
    transaction_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="deduction"
    )

    # FundingCategory value
    category: Mapped[str] = mapped_column(String(50), nullable=False)

    # ShiftType value
    shift_type: Mapped[str] = mapped_column(String(50), nullable=False)

    ratio: Mapped[str] = mapped_column(String(10), nullable=False)

    hours: Mapped[Decimal] = mapped_column(Numeric(9, 4), nullable=False)

    rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    # RateSource value
    rate_source: Mapped[str] = mapped_column(String(20), nullable=False)

    shift_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    reversal_of_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    company_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    created_by_user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    description: Mapped[str] = mapped_column(String(1000), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @property
    def is_reversal(self) -> bool:
        return self.transaction_type == "reversal"

    def __repr__(self) -> str:
        return f"<BudgetTransaction {self.transaction_type} {self.category} {self.amount}>"
