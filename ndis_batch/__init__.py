"""
ndis_batch -- backfill of completed shifts that were never charged.

Sits above ``ndis_kernel``: enumerates the worklist through kernel
selectors and charges each shift through ``DeductionService`` in its own
database transaction.
"""

from ndis_batch.domain.types import (
    BackfillItemResult,
    BackfillItemStatus,
    BackfillReport,
)
from ndis_batch.services.reconciler import BackfillReconciler, run_backfill

__all__ = [
    "BackfillItemResult",
    "BackfillItemStatus",
    "BackfillReconciler",
    "BackfillReport",
    "run_backfill",
]
