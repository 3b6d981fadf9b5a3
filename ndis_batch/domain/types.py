"""
ndis_batch.domain.types -- Pure frozen dataclasses for the backfill run.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.

Invariants enforced:
    - The report is a value: built once at the end of a run, never mutated.
    - processed + skipped + len(errors) == len(items).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class BackfillItemStatus(str, Enum):
    """Per-shift outcome within a backfill run."""

    PROCESSED = "processed"  # Deducted in this run
    SKIPPED = "skipped"  # Already charged (benign duplicate)
    FAILED = "failed"  # Needs operator attention


@dataclass(frozen=True)
class BackfillItemResult:
    """Immutable outcome of one shift in a backfill run."""

    shift_id: UUID
    tenant_id: UUID
    status: BackfillItemStatus
    transaction_id: UUID | None = None
    amount: Decimal | None = None
    error_code: str | None = None
    error_message: str | None = None
    duration_ms: int = 0

    @property
    def is_error(self) -> bool:
        return self.status == BackfillItemStatus.FAILED


@dataclass(frozen=True)
class BackfillReport:
    """Immutable result of ``BackfillReconciler.run()``.

    ``errors`` is the worklist: the shifts that remain uncharged, each with
    the code that explains why.
    """

    run_id: UUID
    tenant_ids: tuple[UUID, ...]
    items: tuple[BackfillItemResult, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0

    @property
    def processed(self) -> int:
        return sum(1 for i in self.items if i.status == BackfillItemStatus.PROCESSED)

    @property
    def skipped(self) -> int:
        return sum(1 for i in self.items if i.status == BackfillItemStatus.SKIPPED)

    @property
    def errors(self) -> tuple[BackfillItemResult, ...]:
        return tuple(i for i in self.items if i.is_error)

    @property
    def worklist(self) -> tuple[UUID, ...]:
        """Shift ids still needing attention, in processing order."""
        return tuple(i.shift_id for i in self.errors)

    def errors_by_code(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for item in self.errors:
            key = item.error_code or "UNKNOWN"
            counts[key] = counts.get(key, 0) + 1
        return counts

    def for_tenant(self, tenant_id: UUID) -> tuple[BackfillItemResult, ...]:
        return tuple(i for i in self.items if i.tenant_id == tenant_id)

    def to_dict(self) -> dict:
        """JSON-friendly summary used by the operator CLI."""
        return {
            "run_id": str(self.run_id),
            "tenants": [str(t) for t in self.tenant_ids],
            "processed": self.processed,
            "skipped": self.skipped,
            "errors": [
                {
                    "shift_id": str(i.shift_id),
                    "tenant_id": str(i.tenant_id),
                    "code": i.error_code,
                    "message": i.error_message,
                }
                for i in self.errors
            ],
            "duration_ms": self.duration_ms,
        }
