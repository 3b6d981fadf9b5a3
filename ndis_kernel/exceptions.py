"""
Typed Exception Hierarchy for the NDIS budget ledger.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every ledger failure has a TYPED exception class, a machine-readable CODE
class attribute, and structured attributes instead of a message that callers
have to parse.  The deduction processor maps these onto a typed result and
the backfill reconciler copies the code into its per-shift report.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerError (base)
    |
    +-- ShiftError
    |   +-- ShiftNotFoundError
    |   +-- ShiftNotEligibleError
    |   +-- InvalidShiftDataError
    |   +-- InvalidDurationError
    |
    +-- BudgetError
    |   +-- NoBudgetFoundError
    |   +-- BudgetAlreadyExistsError
    |   +-- InsufficientFundsError
    |   +-- RatioNotAllowedError
    |   +-- InvalidFundingCategoryError
    |
    +-- PricingError
    |   +-- NoRateFoundError
    |
    +-- TransactionError
    |   +-- DuplicateTransactionError
    |   +-- TransactionNotFoundError
    |   +-- TransactionAlreadyReversedError
    |
    +-- TenantIsolationError
    |   +-- TenantNotFoundError
    |   +-- TenantMismatchError
    |   +-- TenantIsolationSchemaError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- AuditError
        +-- AuditChainBrokenError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category   | Code                         | When Raised
-----------|------------------------------|-------------------------------------
Shift      | SHIFT_NOT_FOUND              | No shift with that id in the tenant
           | SHIFT_NOT_ELIGIBLE           | Shift is not completed
           | INVALID_SHIFT_DATA           | Missing start/end/client, bad category
           | INVALID_DURATION             | hours <= 0 or above the maximum
-----------|------------------------------|-------------------------------------
Budget     | NO_BUDGET_FOUND              | Participant has no active budget
           | BUDGET_ALREADY_EXISTS        | Second budget for the same client
           | INSUFFICIENT_FUNDS           | Deduction would go below zero
           | RATIO_NOT_ALLOWED            | Ratio not permitted for the category
           | INVALID_FUNDING_CATEGORY     | Unknown category label
-----------|------------------------------|-------------------------------------
Pricing    | NO_RATE_FOUND                | No override and no pricing row
-----------|------------------------------|-------------------------------------
Ledger     | DUPLICATE_TRANSACTION        | Shift already charged (benign)
           | TRANSACTION_NOT_FOUND        | Transaction id unknown in tenant
           | TRANSACTION_ALREADY_REVERSED | Second reversal attempt
-----------|------------------------------|-------------------------------------
Tenancy    | TENANT_NOT_FOUND             | Tenant id unknown
           | TENANT_MISMATCH              | Composite key rejected (FATAL)
           | TENANT_ISOLATION_SCHEMA      | Schema has a non-composite tenant FK
-----------|------------------------------|-------------------------------------
Integrity  | IMMUTABILITY_VIOLATION       | UPDATE/DELETE of an immutable row
           | AUDIT_CHAIN_BROKEN           | Audit hash chain validation failed

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        ledger.apply_transaction(request)
    except DuplicateTransactionError as e:
        # Already charged -- idempotent success
        return e.existing_transaction_id
    except InsufficientFundsError as e:
        worklist.add(e.budget_id, e.category, e.available, e.required)

TenantMismatchError indicates a data-integrity bug upstream.  It is never
caught and turned into a result.
"""

from decimal import Decimal


class LedgerError(Exception):
    """
    Base exception for all ledger errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_ERROR"


# Shift-related exceptions


class ShiftError(LedgerError):
    """Base exception for problems with the shift being charged."""

    code: str = "SHIFT_ERROR"


class ShiftNotFoundError(ShiftError):
    """No shift with the given id exists in the tenant."""

    code: str = "SHIFT_NOT_FOUND"

    def __init__(self, shift_id: str, tenant_id: str):
        self.shift_id = shift_id
        self.tenant_id = tenant_id
        super().__init__(f"Shift {shift_id} not found in tenant {tenant_id}")


class ShiftNotEligibleError(ShiftError):
    """Shift exists but is not in a chargeable status."""

    code: str = "SHIFT_NOT_ELIGIBLE"

    def __init__(self, shift_id: str, status: str):
        self.shift_id = shift_id
        self.status = status
        super().__init__(
            f"Shift {shift_id} has status '{status}'; only completed shifts are charged"
        )


class InvalidShiftDataError(ShiftError):
    """Shift is missing data needed to compute its cost."""

    code: str = "INVALID_SHIFT_DATA"

    def __init__(self, shift_id: str, reason: str):
        self.shift_id = shift_id
        self.reason = reason
        super().__init__(f"Invalid data on shift {shift_id}: {reason}")


class InvalidDurationError(ShiftError):
    """Shift duration is non-positive or longer than the maximum."""

    code: str = "INVALID_DURATION"

    def __init__(self, shift_id: str, hours: Decimal, max_hours: Decimal):
        self.shift_id = shift_id
        self.hours = hours
        self.max_hours = max_hours
        super().__init__(
            f"Invalid duration for shift {shift_id}: {hours} hours "
            f"(must be > 0 and <= {max_hours})"
        )


# Budget-related exceptions


class BudgetError(LedgerError):
    """Base exception for budget-related errors."""

    code: str = "BUDGET_ERROR"


class NoBudgetFoundError(BudgetError):
    """Participant has no active budget in the tenant."""

    code: str = "NO_BUDGET_FOUND"

    def __init__(self, client_id: str | None, tenant_id: str, budget_id: str | None = None):
        self.client_id = client_id
        self.tenant_id = tenant_id
        self.budget_id = budget_id
        if budget_id is not None:
            super().__init__(f"Budget {budget_id} not found in tenant {tenant_id}")
        else:
            super().__init__(f"No budget found for client {client_id} in tenant {tenant_id}")


class BudgetAlreadyExistsError(BudgetError):
    """A budget already exists for this participant."""

    code: str = "BUDGET_ALREADY_EXISTS"

    def __init__(self, client_id: str, tenant_id: str, budget_id: str):
        self.client_id = client_id
        self.tenant_id = tenant_id
        self.budget_id = budget_id
        super().__init__(
            f"Client {client_id} in tenant {tenant_id} already has budget {budget_id}"
        )


class InsufficientFundsError(BudgetError):
    """Deduction would drive the category balance negative."""

    code: str = "INSUFFICIENT_FUNDS"

    def __init__(
        self,
        budget_id: str,
        category: str,
        available: Decimal,
        required: Decimal,
    ):
        self.budget_id = budget_id
        self.category = category
        self.available = available
        self.required = required
        super().__init__(
            f"Insufficient {category} funds on budget {budget_id}: "
            f"available {available}, required {required}"
        )


class RatioNotAllowedError(BudgetError):
    """Budget restricts the category to other staffing ratios."""

    code: str = "RATIO_NOT_ALLOWED"

    def __init__(self, budget_id: str, category: str, ratio: str, allowed: tuple[str, ...]):
        self.budget_id = budget_id
        self.category = category
        self.ratio = ratio
        self.allowed = allowed
        super().__init__(
            f"Ratio {ratio} is not allowed for {category} on budget {budget_id} "
            f"(allowed: {', '.join(allowed)})"
        )


class InvalidFundingCategoryError(BudgetError):
    """Unknown funding category label."""

    code: str = "INVALID_FUNDING_CATEGORY"

    def __init__(self, category: str):
        self.category = category
        super().__init__(f"Unknown funding category: '{category}'")


# Pricing-related exceptions


class PricingError(LedgerError):
    """Base exception for rate resolution errors."""

    code: str = "PRICING_ERROR"


class NoRateFoundError(PricingError):
    """Neither a budget override nor a pricing row yields a rate."""

    code: str = "NO_RATE_FOUND"

    def __init__(self, shift_type: str, ratio: str, tenant_id: str):
        self.shift_type = shift_type
        self.ratio = ratio
        self.tenant_id = tenant_id
        super().__init__(
            f"No rate found for {shift_type} at ratio {ratio} in tenant {tenant_id}"
        )


# Transaction-related exceptions


class TransactionError(LedgerError):
    """Base exception for ledger transaction errors."""

    code: str = "TRANSACTION_ERROR"


class DuplicateTransactionError(TransactionError):
    """
    Shift already has a transaction.

    This is the idempotency signal.  Callers treat it as success.
    """

    code: str = "DUPLICATE_TRANSACTION"

    def __init__(self, shift_id: str, existing_transaction_id: str | None = None):
        self.shift_id = shift_id
        self.existing_transaction_id = existing_transaction_id
        super().__init__(
            f"Shift {shift_id} already has transaction {existing_transaction_id}"
        )


class TransactionNotFoundError(TransactionError):
    """Transaction id not found in the tenant."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str, tenant_id: str):
        self.transaction_id = transaction_id
        self.tenant_id = tenant_id
        super().__init__(f"Transaction {transaction_id} not found in tenant {tenant_id}")


class TransactionAlreadyReversedError(TransactionError):
    """Transaction has already been offset, or is itself a reversal."""

    code: str = "TRANSACTION_ALREADY_REVERSED"

    def __init__(self, transaction_id: str, reversal_id: str | None = None):
        self.transaction_id = transaction_id
        self.reversal_id = reversal_id
        super().__init__(
            f"Transaction {transaction_id} cannot be reversed "
            f"(existing reversal: {reversal_id})"
        )


# Tenant isolation exceptions


class TenantIsolationError(LedgerError):
    """Base exception for tenant isolation errors."""

    code: str = "TENANT_ISOLATION_ERROR"


class TenantNotFoundError(TenantIsolationError):
    """Tenant id unknown."""

    code: str = "TENANT_NOT_FOUND"

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"Tenant not found: {tenant_id}")


class TenantMismatchError(TenantIsolationError):
    """
    Storage layer rejected a write that associates records of two tenants.

    FATAL: indicates a data-integrity bug upstream.  Never swallow.
    """

    code: str = "TENANT_MISMATCH"

    def __init__(self, entity_type: str, tenant_id: str, detail: str):
        self.entity_type = entity_type
        self.tenant_id = tenant_id
        self.detail = detail
        super().__init__(
            f"Tenant mismatch writing {entity_type} for tenant {tenant_id}: {detail}"
        )


class TenantIsolationSchemaError(TenantIsolationError):
    """Schema declares a tenant-scoped reference without tenant_id."""

    code: str = "TENANT_ISOLATION_SCHEMA"

    def __init__(self, violations: list[str]):
        self.violations = violations
        super().__init__(
            "Tenant isolation schema violations: " + "; ".join(violations)
        )


# Immutability exceptions


class ImmutabilityError(LedgerError):
    """Base exception for immutability errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Audit exceptions


class AuditError(LedgerError):
    """Base exception for audit trail errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, tenant_id: str, seq: int, expected_hash: str, actual_hash: str):
        self.tenant_id = tenant_id
        self.seq = seq
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken for tenant {tenant_id} at seq {seq}: "
            f"expected {expected_hash}, got {actual_hash}"
        )
