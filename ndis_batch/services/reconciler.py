"""
BackfillReconciler -- charge every completed shift that has no transaction.

Contract:
    For each active tenant (or the one requested) enumerate completed
    shifts with no matching BudgetTransaction and run DeductionService on
    each, one database transaction per shift.  Returns a BackfillReport.

Architecture: ndis_batch/services.  Imports kernel selectors and services.

Invariants enforced:
    - Per-shift isolation: each shift commits or rolls back on its own; a
      failure is recorded and the run continues.
    - Idempotent: the worklist excludes charged shifts and the unique
      shift_id constraint turns any race into ALREADY_DEDUCTED (skipped).
    - TenantMismatchError aborts the run.
    - One ``backfill_completed`` audit event per tenant sweep.

Non-goals:
    - No scheduling or background threads; callers decide when to run.
"""

from __future__ import annotations

import time
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from ndis_kernel.domain.clock import Clock, SystemClock
from ndis_kernel.domain.dtos import ShiftRecord
from ndis_kernel.domain.policy import LedgerPolicy
from ndis_kernel.exceptions import TenantIsolationError
from ndis_kernel.logging_config import LogContext, get_logger
from ndis_kernel.selectors.shift_selector import ShiftSelector
from ndis_kernel.selectors.tenant_selector import TenantSelector
from ndis_kernel.services.auditor_service import AuditorService
from ndis_kernel.services.deduction_service import (
    DeductionResult,
    DeductionService,
    DeductionStatus,
)

from ndis_batch.domain.types import (
    BackfillItemResult,
    BackfillItemStatus,
    BackfillReport,
)

logger = get_logger("batch.reconciler")

BACKFILL_DESCRIPTION_PREFIX = "Backfill"
UNHANDLED_EXCEPTION = "UNHANDLED_EXCEPTION"


class BackfillReconciler:
    """Backfill engine with a transaction per shift.

    Contract:
        - ``run()`` sweeps one tenant or all active tenants.
        - Sessions come from ``session_factory``; the reconciler commits
          its own per-shift units of work.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        policy: LedgerPolicy | None = None,
        actor_id: UUID | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._policy = policy or LedgerPolicy()
        self._actor_id = actor_id

    def _load_worklist(self, tenant_id: UUID | None) -> dict[UUID, list[ShiftRecord]]:
        # Closed before any deduction starts: on SQLite an open session
        # holds the single writer lock.
        with self._session_factory() as session:
            tenants = TenantSelector(session)
            if tenant_id is not None:
                tenant_ids = [tenants.get_tenant(tenant_id).id]
            else:
                tenant_ids = tenants.list_active_tenant_ids()
            shifts = ShiftSelector(session)
            worklist = {
                tid: shifts.list_completed_shifts_without_transaction(tid)
                for tid in tenant_ids
            }
            session.rollback()
        return worklist

    def run(self, tenant_id: UUID | None = None) -> BackfillReport:
        """Sweep uncharged completed shifts.

        Raises:
            TenantNotFoundError: ``tenant_id`` was given and does not exist.
            TenantMismatchError: A cross-tenant reference was rejected by
                the database.
        """
        run_id = uuid4()
        started_at = self._clock.now()
        start = time.monotonic()

        with LogContext.bind(run_id=run_id):
            worklist = self._load_worklist(tenant_id)
            logger.info(
                "backfill_started",
                extra={
                    "tenant_count": len(worklist),
                    "shift_count": sum(len(s) for s in worklist.values()),
                },
            )

            items: list[BackfillItemResult] = []
            for tid, shifts in worklist.items():
                with LogContext.bind(tenant_id=tid):
                    tenant_items = [self._process_shift(shift) for shift in shifts]
                    items.extend(tenant_items)
                    self._record_tenant_sweep(run_id, tid, tenant_items)

            report = BackfillReport(
                run_id=run_id,
                tenant_ids=tuple(worklist),
                items=tuple(items),
                started_at=started_at,
                completed_at=self._clock.now(),
                duration_ms=int((time.monotonic() - start) * 1000),
            )
            logger.info(
                "backfill_completed",
                extra={
                    "processed": report.processed,
                    "skipped": report.skipped,
                    "error_count": len(report.errors),
                    "errors_by_code": report.errors_by_code(),
                    "duration_ms": report.duration_ms,
                },
            )
        return report

    def _process_shift(self, shift: ShiftRecord) -> BackfillItemResult:
        item_start = time.monotonic()
        session = self._session_factory()
        try:
            result = DeductionService(session, self._clock, self._policy).deduct_for_shift(
                shift,
                actor_id=self._actor_id,
                description_prefix=BACKFILL_DESCRIPTION_PREFIX,
            )
            if result.status == DeductionStatus.DEDUCTED:
                session.commit()
            else:
                session.rollback()
        except TenantIsolationError:
            session.rollback()
            logger.error("backfill_aborted_tenant_isolation", extra={"shift_id": str(shift.id)})
            raise
        except Exception as exc:
            session.rollback()
            logger.exception("backfill_item_failed", extra={"shift_id": str(shift.id)})
            return BackfillItemResult(
                shift_id=shift.id,
                tenant_id=shift.tenant_id,
                status=BackfillItemStatus.FAILED,
                error_code=UNHANDLED_EXCEPTION,
                error_message=str(exc),
                duration_ms=int((time.monotonic() - item_start) * 1000),
            )
        finally:
            session.close()

        return _item_from_result(result, int((time.monotonic() - item_start) * 1000))

    def _record_tenant_sweep(
        self,
        run_id: UUID,
        tenant_id: UUID,
        items: list[BackfillItemResult],
    ) -> None:
        processed = sum(1 for i in items if i.status == BackfillItemStatus.PROCESSED)
        skipped = sum(1 for i in items if i.status == BackfillItemStatus.SKIPPED)
        errors = sum(1 for i in items if i.is_error)
        with self._session_factory() as session:
            AuditorService(session, self._clock).record_backfill_completed(
                run_id=run_id,
                tenant_id=tenant_id,
                processed=processed,
                skipped=skipped,
                errors=errors,
                actor_id=self._actor_id or self._policy.system_actor_id,
            )
            session.commit()


def _item_from_result(result: DeductionResult, duration_ms: int) -> BackfillItemResult:
    if result.status == DeductionStatus.DEDUCTED:
        return BackfillItemResult(
            shift_id=result.shift_id,
            tenant_id=result.tenant_id,
            status=BackfillItemStatus.PROCESSED,
            transaction_id=result.transaction.id,
            amount=result.transaction.amount,
            duration_ms=duration_ms,
        )
    if result.status == DeductionStatus.ALREADY_DEDUCTED:
        return BackfillItemResult(
            shift_id=result.shift_id,
            tenant_id=result.tenant_id,
            status=BackfillItemStatus.SKIPPED,
            error_code=result.error_code,
            error_message=result.message,
            duration_ms=duration_ms,
        )
    return BackfillItemResult(
        shift_id=result.shift_id,
        tenant_id=result.tenant_id,
        status=BackfillItemStatus.FAILED,
        error_code=result.error_code,
        error_message=result.message,
        duration_ms=duration_ms,
    )


def run_backfill(
    tenant_id: UUID | None = None,
    session_factory: sessionmaker[Session] | None = None,
    clock: Clock | None = None,
    policy: LedgerPolicy | None = None,
    actor_id: UUID | None = None,
) -> BackfillReport:
    """Run one backfill sweep against the initialized engine."""
    if session_factory is None:
        from ndis_kernel.db.engine import get_session_factory

        session_factory = get_session_factory()
    return BackfillReconciler(session_factory, clock, policy, actor_id).run(tenant_id)
