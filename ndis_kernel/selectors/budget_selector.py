"""
Module: ndis_kernel.selectors.budget_selector
Responsibility: Read budgets and their transaction logs: listings, per-category
    totals and lookups by shift.
Architecture position: Kernel > Selectors.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from ndis_kernel.db.types import ZERO, round_money, to_decimal
from ndis_kernel.domain.dtos import TransactionView
from ndis_kernel.models.budget import Budget
from ndis_kernel.models.transaction import BudgetTransaction
from ndis_kernel.selectors.base import BaseSelector


def to_view(txn: BudgetTransaction) -> TransactionView:
    return TransactionView(
        id=txn.id,
        budget_id=txn.budget_id,
        tenant_id=txn.tenant_id,
        transaction_type=txn.transaction_type,
        category=txn.category,
        shift_type=txn.shift_type,
        ratio=txn.ratio,
        hours=txn.hours,
        rate=txn.rate,
        amount=txn.amount,
        rate_source=txn.rate_source,
        shift_id=txn.shift_id,
        reversal_of_id=txn.reversal_of_id,
        company_id=txn.company_id,
        created_by_user_id=txn.created_by_user_id,
        description=txn.description,
        created_at=txn.created_at,
    )


class BudgetSelector(BaseSelector):
    """Tenant-scoped queries over budget_transactions."""

    def list_transactions(self, budget_id: UUID, tenant_id: UUID) -> list[TransactionView]:
        """All transactions of a budget, oldest first."""
        rows = self.session.execute(
            select(BudgetTransaction)
            .where(
                BudgetTransaction.budget_id == budget_id,
                BudgetTransaction.tenant_id == tenant_id,
            )
            .order_by(BudgetTransaction.created_at, BudgetTransaction.id)
        ).scalars()
        return [to_view(txn) for txn in rows]

    def find_transaction_for_shift(
        self,
        shift_id: UUID,
        tenant_id: UUID,
    ) -> TransactionView | None:
        txn = self.session.execute(
            select(BudgetTransaction).where(
                BudgetTransaction.shift_id == shift_id,
                BudgetTransaction.tenant_id == tenant_id,
            )
        ).scalar_one_or_none()
        return to_view(txn) if txn is not None else None

    def find_reversal_of(self, transaction_id: UUID, tenant_id: UUID) -> TransactionView | None:
        txn = self.session.execute(
            select(BudgetTransaction).where(
                BudgetTransaction.reversal_of_id == transaction_id,
                BudgetTransaction.tenant_id == tenant_id,
            )
        ).scalar_one_or_none()
        return to_view(txn) if txn is not None else None

    def spent_by_category(self, budget_id: UUID, tenant_id: UUID) -> dict[str, Decimal]:
        """Net amount charged per category (reversals are negative)."""
        rows = self.session.execute(
            select(BudgetTransaction.category, func.sum(BudgetTransaction.amount))
            .where(
                BudgetTransaction.budget_id == budget_id,
                BudgetTransaction.tenant_id == tenant_id,
            )
            .group_by(BudgetTransaction.category)
        ).all()
        return {
            category: round_money(to_decimal(total)) if total is not None else ZERO
            for category, total in rows
        }

    def transaction_count(self, budget_id: UUID, tenant_id: UUID) -> int:
        return self.session.execute(
            select(func.count(BudgetTransaction.id)).where(
                BudgetTransaction.budget_id == budget_id,
                BudgetTransaction.tenant_id == tenant_id,
            )
        ).scalar_one()

    def list_budget_ids(self, tenant_id: UUID) -> list[UUID]:
        rows = self.session.execute(
            select(Budget.id).where(Budget.tenant_id == tenant_id).order_by(Budget.id)
        ).scalars()
        return list(rows)
