"""
Module: ndis_kernel.selectors.shift_selector
Responsibility: Read completed shifts from the rostering tables.
Architecture position: Kernel > Selectors.

The backfill worklist query is the anti-join:

    shifts s
    WHERE s.tenant_id = :tenant
      AND s.status = 'completed'
      AND s.start_time IS NOT NULL AND s.end_time IS NOT NULL
      AND NOT EXISTS (SELECT 1 FROM budget_transactions t
                      WHERE t.shift_id = s.id AND t.tenant_id = s.tenant_id)

Both sides of the anti-join are tenant-scoped so one tenant's transaction
can never hide another tenant's uncharged shift.
"""

from uuid import UUID

from sqlalchemy import exists, select

from ndis_kernel.domain.dtos import ShiftRecord
from ndis_kernel.domain.values import ShiftStatus
from ndis_kernel.exceptions import ShiftNotEligibleError, ShiftNotFoundError
from ndis_kernel.models.shift import Shift
from ndis_kernel.models.transaction import BudgetTransaction
from ndis_kernel.selectors.base import BaseSelector


def _to_record(shift: Shift) -> ShiftRecord:
    return ShiftRecord(
        id=shift.id,
        tenant_id=shift.tenant_id,
        client_id=shift.client_id,
        user_id=shift.user_id,
        start_time=shift.start_time,
        end_time=shift.end_time,
        status=shift.status,
        staff_ratio=shift.staff_ratio,
        funding_category=shift.funding_category,
        title=shift.title,
    )


class ShiftSelector(BaseSelector):
    """Tenant-scoped shift queries."""

    def get_shift(self, shift_id: UUID, tenant_id: UUID) -> ShiftRecord | None:
        shift = self.session.execute(
            select(Shift).where(Shift.id == shift_id, Shift.tenant_id == tenant_id)
        ).scalar_one_or_none()
        return _to_record(shift) if shift is not None else None

    def get_completed_shift(self, shift_id: UUID, tenant_id: UUID) -> ShiftRecord:
        """
        Load a shift that is eligible for charging.

        Raises:
            ShiftNotFoundError: No such shift in this tenant.
            ShiftNotEligibleError: The shift is not completed.
        """
        record = self.get_shift(shift_id, tenant_id)
        if record is None:
            raise ShiftNotFoundError(str(shift_id), str(tenant_id))
        if record.status != ShiftStatus.COMPLETED.value:
            raise ShiftNotEligibleError(str(shift_id), record.status)
        return record

    def list_completed_shifts_without_transaction(
        self,
        tenant_id: UUID,
    ) -> list[ShiftRecord]:
        """Completed, timed shifts with no ledger entry, oldest first."""
        charged = exists().where(
            BudgetTransaction.shift_id == Shift.id,
            BudgetTransaction.tenant_id == Shift.tenant_id,
        )
        rows = self.session.execute(
            select(Shift)
            .where(
                Shift.tenant_id == tenant_id,
                Shift.status == ShiftStatus.COMPLETED.value,
                Shift.start_time.is_not(None),
                Shift.end_time.is_not(None),
                ~charged,
            )
            .order_by(Shift.start_time, Shift.id)
        ).scalars()
        return [_to_record(shift) for shift in rows]
