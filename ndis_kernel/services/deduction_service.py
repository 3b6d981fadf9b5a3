"""
DeductionService -- exactly-once charging of one completed shift.

Responsibility:
    Turns a completed shift into one budget transaction:

        1. start_time, end_time, client_id present,
           tenant timezone known                    -> else INVALID_SHIFT_DATA
        2. hours in (0, max]                        -> else INVALID_DURATION
        3. participant budget                       -> else NO_BUDGET
        4. shift type and hourly rate               -> else NO_RATE
        5. funding category (explicit or by type),
           ratio permitted for that category        -> else RATIO_NOT_ALLOWED
        6. amount = round_money(rate x hours)
        7. LedgerService.apply_transaction          -> DEDUCTED,
                                                       ALREADY_DEDUCTED or
                                                       INSUFFICIENT_FUNDS

    Domain failures become a typed DeductionResult.  Any failure leaves
    the ledger untouched.

Architecture position:
    Kernel > Services.  Entry point for shift completion and the engine
    behind the backfill reconciler.

Invariants enforced:
    - Exactly one transaction and one audit event per successful call.
    - TenantMismatchError is never turned into a result; it propagates.
    - Actor attribution: explicit acting user, else shift assignee, else
      the configured system actor.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID
from zoneinfo import ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from ndis_kernel.db.types import round_money
from ndis_kernel.domain.clock import Clock
from ndis_kernel.domain.dtos import ShiftRecord, TransactionRequest, TransactionView
from ndis_kernel.domain.policy import LedgerPolicy
from ndis_kernel.domain.shift_type import compute_shift_hours
from ndis_kernel.domain.values import (
    DEFAULT_CATEGORY_BY_SHIFT_TYPE,
    FundingCategory,
    TransactionType,
)
from ndis_kernel.exceptions import (
    DuplicateTransactionError,
    InsufficientFundsError,
    InvalidDurationError,
    InvalidFundingCategoryError,
    InvalidShiftDataError,
    LedgerError,
    NoBudgetFoundError,
    NoRateFoundError,
    RatioNotAllowedError,
    ShiftNotEligibleError,
    ShiftNotFoundError,
    TenantIsolationError,
)
from ndis_kernel.logging_config import LogContext, get_logger
from ndis_kernel.selectors.budget_selector import to_view
from ndis_kernel.selectors.shift_selector import ShiftSelector
from ndis_kernel.selectors.tenant_selector import TenantSelector
from ndis_kernel.services.base import BaseService
from ndis_kernel.services.ledger_service import LedgerService, parse_category
from ndis_kernel.services.rate_resolver import RateResolver

logger = get_logger("services.deduction")

SHIFT_COMPLETION_PREFIX = "Shift completion"


class DeductionStatus(str, Enum):
    """Outcome of one deduction attempt."""

    DEDUCTED = "deducted"
    ALREADY_DEDUCTED = "already_deducted"
    INVALID_SHIFT_DATA = "invalid_shift_data"
    INVALID_DURATION = "invalid_duration"
    NO_BUDGET = "no_budget"
    NO_RATE = "no_rate"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    RATIO_NOT_ALLOWED = "ratio_not_allowed"
    INVALID_FUNDING_CATEGORY = "invalid_funding_category"
    SHIFT_NOT_FOUND = "shift_not_found"
    SHIFT_NOT_ELIGIBLE = "shift_not_eligible"


_STATUS_BY_ERROR: dict[type[LedgerError], DeductionStatus] = {
    InvalidShiftDataError: DeductionStatus.INVALID_SHIFT_DATA,
    InvalidDurationError: DeductionStatus.INVALID_DURATION,
    NoBudgetFoundError: DeductionStatus.NO_BUDGET,
    NoRateFoundError: DeductionStatus.NO_RATE,
    InsufficientFundsError: DeductionStatus.INSUFFICIENT_FUNDS,
    RatioNotAllowedError: DeductionStatus.RATIO_NOT_ALLOWED,
    InvalidFundingCategoryError: DeductionStatus.INVALID_FUNDING_CATEGORY,
    ShiftNotFoundError: DeductionStatus.SHIFT_NOT_FOUND,
    ShiftNotEligibleError: DeductionStatus.SHIFT_NOT_ELIGIBLE,
}


@dataclass(frozen=True)
class DeductionResult:
    """
    Result of a deduction attempt.

    transaction is set only for DEDUCTED.  existing_transaction_id is set
    for ALREADY_DEDUCTED when the prior transaction is known.
    """

    status: DeductionStatus
    shift_id: UUID
    tenant_id: UUID
    transaction: TransactionView | None = None
    existing_transaction_id: str | None = None
    error_code: str | None = None
    message: str | None = None

    @classmethod
    def deducted(cls, shift: ShiftRecord, transaction: TransactionView) -> "DeductionResult":
        return cls(
            status=DeductionStatus.DEDUCTED,
            shift_id=shift.id,
            tenant_id=shift.tenant_id,
            transaction=transaction,
        )

    @classmethod
    def already_deducted(cls, shift_id: UUID, tenant_id: UUID, exc: DuplicateTransactionError) -> "DeductionResult":
        return cls(
            status=DeductionStatus.ALREADY_DEDUCTED,
            shift_id=shift_id,
            tenant_id=tenant_id,
            existing_transaction_id=exc.existing_transaction_id,
            error_code=exc.code,
            message=str(exc),
        )

    @classmethod
    def failed(cls, shift_id: UUID, tenant_id: UUID, exc: LedgerError) -> "DeductionResult":
        return cls(
            status=_STATUS_BY_ERROR[type(exc)],
            shift_id=shift_id,
            tenant_id=tenant_id,
            error_code=exc.code,
            message=str(exc),
        )

    @property
    def is_success(self) -> bool:
        """True when the shift is charged, now or previously."""
        return self.status in (DeductionStatus.DEDUCTED, DeductionStatus.ALREADY_DEDUCTED)

    @property
    def amount(self) -> Decimal | None:
        return self.transaction.amount if self.transaction is not None else None


class DeductionService(BaseService):
    """
    Charges completed shifts against participant budgets.

    Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: LedgerPolicy | None = None,
        ledger: LedgerService | None = None,
    ):
        super().__init__(session, clock)
        self._policy = policy or LedgerPolicy()
        self._ledger = ledger or LedgerService(session, self.clock)
        self._resolver = RateResolver(session, self._policy)
        self._shifts = ShiftSelector(session)
        self._tenants = TenantSelector(session)

    def deduct_for_shift_id(
        self,
        shift_id: UUID,
        tenant_id: UUID,
        actor_id: UUID | None = None,
    ) -> DeductionResult:
        """Load a completed shift in the tenant and charge it."""
        with LogContext.bind(shift_id=shift_id, tenant_id=tenant_id):
            try:
                shift = self._shifts.get_completed_shift(shift_id, tenant_id)
            except (ShiftNotFoundError, ShiftNotEligibleError) as exc:
                logger.info("deduction_rejected", extra={"code": exc.code})
                return DeductionResult.failed(shift_id, tenant_id, exc)
        return self.deduct_for_shift(shift, actor_id=actor_id)

    def deduct_for_shift(
        self,
        shift: ShiftRecord,
        actor_id: UUID | None = None,
        description_prefix: str = SHIFT_COMPLETION_PREFIX,
    ) -> DeductionResult:
        """
        Charge one shift.

        Raises:
            TenantMismatchError: The storage layer rejected a cross-tenant
                reference.  Never converted into a result.
        """
        with LogContext.bind(shift_id=shift.id, tenant_id=shift.tenant_id):
            try:
                txn = self._deduct(shift, actor_id, description_prefix)
            except DuplicateTransactionError as exc:
                return DeductionResult.already_deducted(shift.id, shift.tenant_id, exc)
            except TenantIsolationError:
                raise
            except LedgerError as exc:
                if type(exc) not in _STATUS_BY_ERROR:
                    raise
                logger.info(
                    "deduction_rejected",
                    extra={"code": exc.code, "reason": str(exc)},
                )
                return DeductionResult.failed(shift.id, shift.tenant_id, exc)

            logger.info(
                "shift_deducted",
                extra={
                    "transaction_id": str(txn.id),
                    "amount": txn.amount,
                    "category": txn.category,
                },
            )
            return DeductionResult.deducted(shift, to_view(txn))

    def _resolve_category(self, shift: ShiftRecord, shift_type) -> FundingCategory:
        if shift.funding_category and shift.funding_category.strip():
            return parse_category(shift.funding_category)
        return DEFAULT_CATEGORY_BY_SHIFT_TYPE[shift_type]

    def _deduct(self, shift: ShiftRecord, actor_id: UUID | None, description_prefix: str):
        shift_key = str(shift.id)
        if shift.start_time is None:
            raise InvalidShiftDataError(shift_key, "missing start_time")
        if shift.end_time is None:
            raise InvalidShiftDataError(shift_key, "missing end_time")
        if shift.client_id is None:
            raise InvalidShiftDataError(shift_key, "missing client_id")

        tenant = self._tenants.get_tenant(shift.tenant_id)
        try:
            tz = self._policy.tzinfo_for(tenant.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise InvalidShiftDataError(
                shift_key, f"unknown tenant timezone {tenant.timezone!r}"
            ) from exc

        hours = compute_shift_hours(
            shift_key, shift.start_time, shift.end_time, tz, self._policy.max_shift_hours
        )

        budget = self._ledger.get_budget(shift.client_id, shift.tenant_id)

        resolution = self._resolver.resolve_rate(
            shift.start_time,
            shift.staff_ratio,
            shift.tenant_id,
            budget.price_overrides,
            tz,
        )

        category = self._resolve_category(shift, resolution.shift_type)

        allowed = tuple((budget.allowed_ratios or {}).get(category.value) or ())
        if allowed and resolution.ratio not in allowed:
            raise RatioNotAllowedError(str(budget.id), category.value, resolution.ratio, allowed)

        amount = round_money(resolution.rate * hours)

        acting_user = actor_id or shift.user_id or self._policy.system_actor_id
        label = shift.title.strip() if shift.title and shift.title.strip() else f"shift {shift.id}"

        request = TransactionRequest(
            budget_id=budget.id,
            tenant_id=shift.tenant_id,
            category=category,
            shift_type=resolution.shift_type,
            ratio=resolution.ratio,
            hours=hours,
            rate=resolution.rate,
            amount=amount,
            rate_source=resolution.source,
            created_by_user_id=acting_user,
            description=f"{description_prefix}: {label}",
            shift_id=shift.id,
            company_id=tenant.company_id or self._policy.default_company_id,
            transaction_type=TransactionType.DEDUCTION,
        )
        return self._ledger.apply_transaction(request)
