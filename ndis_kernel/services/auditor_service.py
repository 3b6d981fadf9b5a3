"""
AuditorService -- tamper-evident audit trail, one hash chain per tenant.

Responsibility:
    Creates immutable, hash-chained audit events for every ledger state
    change (budget opened, shift deducted, transaction reversed, backfill
    sweep completed) and validates a tenant's chain on demand.

Architecture position:
    Kernel > Services.  Called by LedgerService, DeductionService and the
    backfill reconciler.

Invariants enforced:
    - Sequence numbers come from SequenceService (locked counter row per
      tenant), never from max(seq) + 1.
    - hash = H(entity_type | entity_id | action | payload_hash | prev_hash);
      prev_hash links to the previous event of the same tenant.
    - Audit events are append-only (ORM listener + DB trigger).

Failure modes:
    - AuditChainBrokenError from validate_chain() on any hash or linkage
      mismatch.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ndis_kernel.domain.clock import Clock, SystemClock
from ndis_kernel.exceptions import AuditChainBrokenError
from ndis_kernel.logging_config import get_logger
from ndis_kernel.models.audit_event import AuditAction, AuditEvent
from ndis_kernel.services.sequence_service import SequenceService
from ndis_kernel.utils.hashing import hash_audit_event, hash_payload, to_json_safe

logger = get_logger("services.auditor")


@dataclass(frozen=True)
class AuditTraceEntry:
    """A single entry in an audit trace."""

    seq: int
    action: str
    occurred_at: datetime
    actor_id: UUID
    payload: dict[str, Any]
    hash: str


@dataclass(frozen=True)
class AuditTrace:
    """All audit events of one entity, in chain order."""

    entity_type: str
    entity_id: UUID
    entries: tuple[AuditTraceEntry, ...]

    @property
    def actions(self) -> tuple[str, ...]:
        return tuple(entry.action for entry in self.entries)


class AuditorService:
    """
    Service for creating and validating per-tenant audit chains.

    Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self, tenant_id: UUID) -> str | None:
        return self._session.execute(
            select(AuditEvent.hash)
            .where(AuditEvent.tenant_id == tenant_id)
            .order_by(AuditEvent.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

    def _create_audit_event(
        self,
        tenant_id: UUID,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """
        Append one event to the tenant's chain.

        The sequence row is locked first, so the prev_hash read below sees
        the latest committed event of the tenant.
        """
        seq = self._sequence_service.next_value(
            SequenceService.audit_sequence_name(tenant_id)
        )
        prev_hash = self._get_last_hash(tenant_id)

        payload_data = to_json_safe(payload or {})
        payload_hash = hash_payload(payload_data)

        event_hash = hash_audit_event(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action.value,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        audit_event = AuditEvent(
            tenant_id=tenant_id,
            seq=seq,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action.value,
            actor_id=actor_id,
            occurred_at=self._clock.now(),
            payload=payload_data,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=event_hash,
        )
        self._session.add(audit_event)
        self._session.flush()

        logger.info(
            "audit_event_created",
            extra={
                "tenant_id": str(tenant_id),
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action.value,
                "seq": seq,
            },
        )
        return audit_event

    # Domain-specific recording methods

    def record_budget_opened(
        self,
        budget_id: UUID,
        tenant_id: UUID,
        client_id: UUID,
        funded: dict[str, Decimal],
        actor_id: UUID,
    ) -> AuditEvent:
        return self._create_audit_event(
            tenant_id=tenant_id,
            entity_type="Budget",
            entity_id=budget_id,
            action=AuditAction.BUDGET_OPENED,
            actor_id=actor_id,
            payload={"client_id": client_id, "funded": funded},
        )

    def record_deduction(
        self,
        transaction_id: UUID,
        tenant_id: UUID,
        budget_id: UUID,
        shift_id: UUID | None,
        category: str,
        amount: Decimal,
        actor_id: UUID,
    ) -> AuditEvent:
        return self._create_audit_event(
            tenant_id=tenant_id,
            entity_type="BudgetTransaction",
            entity_id=transaction_id,
            action=AuditAction.BUDGET_DEDUCTED,
            actor_id=actor_id,
            payload={
                "budget_id": budget_id,
                "shift_id": shift_id,
                "category": category,
                "amount": amount,
            },
        )

    def record_reversal(
        self,
        reversal_id: UUID,
        original_id: UUID,
        tenant_id: UUID,
        amount: Decimal,
        reason: str,
        actor_id: UUID,
    ) -> AuditEvent:
        return self._create_audit_event(
            tenant_id=tenant_id,
            entity_type="BudgetTransaction",
            entity_id=reversal_id,
            action=AuditAction.TRANSACTION_REVERSED,
            actor_id=actor_id,
            payload={
                "original_transaction_id": original_id,
                "amount": amount,
                "reason": reason,
            },
        )

    def record_backfill_completed(
        self,
        run_id: UUID,
        tenant_id: UUID,
        processed: int,
        skipped: int,
        errors: int,
        actor_id: UUID,
    ) -> AuditEvent:
        return self._create_audit_event(
            tenant_id=tenant_id,
            entity_type="BackfillRun",
            entity_id=run_id,
            action=AuditAction.BACKFILL_COMPLETED,
            actor_id=actor_id,
            payload={"processed": processed, "skipped": skipped, "errors": errors},
        )

    # Validation and queries

    def validate_chain(self, tenant_id: UUID) -> bool:
        """
        Validate one tenant's audit chain.

        Raises:
            AuditChainBrokenError: On the first event whose payload hash,
                chain hash or prev_hash linkage does not match.
        """
        events = self._session.execute(
            select(AuditEvent)
            .where(AuditEvent.tenant_id == tenant_id)
            .order_by(AuditEvent.seq)
        ).scalars().all()

        prev: AuditEvent | None = None
        for event in events:
            expected_prev = prev.hash if prev is not None else None
            if event.prev_hash != expected_prev:
                logger.critical(
                    "audit_chain_broken",
                    extra={"tenant_id": str(tenant_id), "seq": event.seq, "check": "linkage"},
                )
                raise AuditChainBrokenError(
                    str(tenant_id), event.seq, expected_prev or "None", event.prev_hash or "None"
                )

            recomputed_payload_hash = hash_payload(event.payload or {})
            if recomputed_payload_hash != event.payload_hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"tenant_id": str(tenant_id), "seq": event.seq, "check": "payload"},
                )
                raise AuditChainBrokenError(
                    str(tenant_id), event.seq, recomputed_payload_hash, event.payload_hash
                )

            expected_hash = hash_audit_event(
                entity_type=event.entity_type,
                entity_id=str(event.entity_id),
                action=event.action,
                payload_hash=event.payload_hash,
                prev_hash=event.prev_hash,
            )
            if event.hash != expected_hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"tenant_id": str(tenant_id), "seq": event.seq, "check": "hash"},
                )
                raise AuditChainBrokenError(str(tenant_id), event.seq, expected_hash, event.hash)

            prev = event

        logger.info(
            "audit_chain_valid",
            extra={"tenant_id": str(tenant_id), "event_count": len(events)},
        )
        return True

    def get_trace(self, entity_type: str, entity_id: UUID, tenant_id: UUID) -> AuditTrace:
        events = self._session.execute(
            select(AuditEvent)
            .where(
                AuditEvent.tenant_id == tenant_id,
                AuditEvent.entity_type == entity_type,
                AuditEvent.entity_id == entity_id,
            )
            .order_by(AuditEvent.seq)
        ).scalars().all()

        return AuditTrace(
            entity_type=entity_type,
            entity_id=entity_id,
            entries=tuple(
                AuditTraceEntry(
                    seq=e.seq,
                    action=e.action,
                    occurred_at=e.occurred_at,
                    actor_id=e.actor_id,
                    payload=e.payload or {},
                    hash=e.hash,
                )
                for e in events
            ),
        )

    def list_actions(self, tenant_id: UUID) -> list[str]:
        """Actions of the tenant's chain in seq order."""
        return list(
            self._session.execute(
                select(AuditEvent.action)
                .where(AuditEvent.tenant_id == tenant_id)
                .order_by(AuditEvent.seq)
            ).scalars()
        )
