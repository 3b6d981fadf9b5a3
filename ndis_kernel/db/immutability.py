"""
ORM-Level Immutability Enforcement (Layer 1 of 2).

===============================================================================
WHY THIS EXISTS
===============================================================================

Budget transactions are money movements against a participant's approved
NDIS funding.  Once written they must never change: a wrong charge is
corrected by an offsetting reversal, which leaves a visible trail.

  Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications through Python/SQLAlchemy code
    - Fires BEFORE the SQL is sent to the database

  Layer 2: db/sql/<dialect>/*.sql (database triggers)
    - Catches raw SQL, bulk UPDATE statements, direct console access
    - Fires AT the database level, independent of application code

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity             | When Immutable            | Fields
-------------------|---------------------------|-----------------------------------
BudgetTransaction  | ALWAYS (from creation)    | every field; no DELETE
AuditEvent         | ALWAYS (from creation)    | every field; no DELETE
Budget             | ALWAYS                    | tenant_id, client_id, *_funded,
                   |                           | *_remaining; no DELETE

Budget balances DO move, but only through LedgerService's conditional
UPDATE statement, which is a Core-level statement and never loads the row
into the unit of work.  Any attempt to assign a balance attribute on a
loaded Budget instance is a bypass of the ledger and is blocked here.

===============================================================================
USAGE
===============================================================================

    from ndis_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect

from ndis_kernel.exceptions import ImmutabilityViolationError
from ndis_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Audit metadata that may change on otherwise frozen rows
_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})


def _blocked(entity_type: str, entity_id: str, operation: str, reason: str, field: str | None = None):
    extra = {
        "entity_type": entity_type,
        "entity_id": entity_id,
        "operation": operation,
    }
    if field is not None:
        extra["field"] = field
    logger.error("immutability_violation_blocked", extra=extra)
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
    )


# =============================================================================
# BudgetTransaction
# =============================================================================


def _check_transaction_immutability(mapper, connection, target):
    """Budget transactions can never be modified."""
    from ndis_kernel.models.transaction import BudgetTransaction

    if not isinstance(target, BudgetTransaction):
        return

    raise _blocked(
        "BudgetTransaction",
        str(target.id),
        "UPDATE",
        "Budget transactions are immutable; write a reversal instead",
    )


def _check_transaction_delete(mapper, connection, target):
    """Budget transactions can never be deleted."""
    from ndis_kernel.models.transaction import BudgetTransaction

    if not isinstance(target, BudgetTransaction):
        return

    raise _blocked(
        "BudgetTransaction",
        str(target.id),
        "DELETE",
        "Budget transactions cannot be deleted",
    )


# =============================================================================
# AuditEvent
# =============================================================================


def _check_audit_event_immutability(mapper, connection, target):
    """Prevent any updates to AuditEvent records."""
    from ndis_kernel.models.audit_event import AuditEvent

    if not isinstance(target, AuditEvent):
        return

    raise _blocked(
        "AuditEvent",
        str(target.id),
        "UPDATE",
        "Audit events are immutable and cannot be modified",
    )


def _check_audit_event_delete(mapper, connection, target):
    """Prevent deletion of AuditEvent records."""
    from ndis_kernel.models.audit_event import AuditEvent

    if not isinstance(target, AuditEvent):
        return

    raise _blocked(
        "AuditEvent",
        str(target.id),
        "DELETE",
        "Audit events cannot be deleted",
    )


# =============================================================================
# Budget structural and balance fields
# =============================================================================


def _check_budget_immutability(mapper, connection, target):
    """
    Block attribute-level changes to a budget's identity and balances.

    price_overrides, allowed_ratios and is_active remain editable by the
    budget-administration collaborator.
    """
    from ndis_kernel.models.budget import BALANCE_FIELDS, Budget

    if not isinstance(target, Budget):
        return

    frozen = BALANCE_FIELDS | {"tenant_id", "client_id"}
    insp = inspect(target)
    for attr in insp.attrs:
        if attr.key in _AUDIT_FIELDS or attr.key not in frozen:
            continue
        if attr.history.has_changes():
            raise _blocked(
                "Budget",
                str(target.id),
                "UPDATE",
                f"Cannot modify field '{attr.key}' outside the ledger",
                field=attr.key,
            )


def _check_budget_delete(mapper, connection, target):
    """Budgets are never deleted; deactivate instead."""
    from ndis_kernel.models.budget import Budget

    if not isinstance(target, Budget):
        return

    raise _blocked(
        "Budget",
        str(target.id),
        "DELETE",
        "Budgets cannot be deleted; set is_active = False",
    )


# =============================================================================
# Registration
# =============================================================================


def _listeners():
    from ndis_kernel.models.audit_event import AuditEvent
    from ndis_kernel.models.budget import Budget
    from ndis_kernel.models.transaction import BudgetTransaction

    return [
        (BudgetTransaction, "before_update", _check_transaction_immutability),
        (BudgetTransaction, "before_delete", _check_transaction_delete),
        (AuditEvent, "before_update", _check_audit_event_immutability),
        (AuditEvent, "before_delete", _check_audit_event_delete),
        (Budget, "before_update", _check_budget_immutability),
        (Budget, "before_delete", _check_budget_delete),
    ]


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Call this after all models are imported but before any database
    operations begin.  Safe to call more than once.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify the database triggers.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
