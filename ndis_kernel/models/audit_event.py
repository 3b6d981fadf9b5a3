"""
Module: ndis_kernel.models.audit_event
Responsibility: ORM persistence for the per-tenant tamper-evident audit
    hash chain.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Audit records are append-only; no UPDATE or DELETE (ORM + DB trigger).
    - Hash chain integrity: hash = H(entity_type | entity_id | action |
      payload_hash | prev_hash).  Validated by AuditorService.
    - seq is unique and monotonically increasing within a tenant, allocated
      by SequenceService.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - AuditChainBrokenError when chain validation detects a hash mismatch.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ndis_kernel.db.base import Base, UUIDString
from ndis_kernel.db.tenancy import tenant_unique


class AuditAction(str, Enum):
    """Types of auditable ledger actions."""

    BUDGET_OPENED = "budget_opened"
    BUDGET_DEDUCTED = "budget_deducted"
    TRANSACTION_REVERSED = "transaction_reversed"
    BACKFILL_COMPLETED = "backfill_completed"


class AuditEvent(Base):
    """
    Audit event with hash chain for tamper evidence.

    Contract:
        AuditEvent rows are append-only, never updated or deleted.  Each
        row's hash includes the previous row's hash in the same tenant,
        creating a tamper-evident chain per tenant.

    Guarantees:
        - (tenant_id, seq) is unique.
        - prev_hash is None only for a tenant's genesis event.
    """

    __tablename__ = "audit_events"

    __table_args__ = (
        tenant_unique("audit_events"),
        UniqueConstraint("tenant_id", "seq", name="uq_audit_events_tenant_seq"),
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_action", "action"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # e.g. "Budget", "BudgetTransaction", "BackfillRun"
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)

    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # AuditAction value
    action: Mapped[str] = mapped_column(String(50), nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditEvent {self.action} on {self.entity_type}:{self.entity_id}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None
