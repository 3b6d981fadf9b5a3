"""
LedgerService -- the only path that moves budget balances.

Responsibility:
    Opens budgets, applies transactions (deductions and reversals) and
    answers balance queries.  Every balance change is paired with exactly
    one immutable BudgetTransaction row written in the same SAVEPOINT.

Architecture position:
    Kernel > Services.  Called by DeductionService, the backfill reconciler
    and the operator CLI.

Invariants enforced:
    - At most one transaction per shift_id.  The UNIQUE constraint is the
      authority; the preflight lookup only gives a friendlier error.
    - A category balance never goes negative.  The decrement is a
      conditional UPDATE (... WHERE remaining >= amount); if it matches no
      row the SAVEPOINT is rolled back and InsufficientFundsError raised.
      Deductions are rejected, never clamped.
    - The budget row is locked (SELECT ... FOR UPDATE) before any check, so
      concurrent writers on one budget serialize.
    - remaining = funded - sum(amounts) per category; verify_budget()
      recomputes it.

Failure modes:
    - NoBudgetFoundError, InsufficientFundsError, DuplicateTransactionError,
      TransactionNotFoundError, TransactionAlreadyReversedError,
      BudgetAlreadyExistsError, InvalidFundingCategoryError.
    - TenantMismatchError when the database rejects a composite reference.
      Never caught here.
"""

from collections.abc import Mapping
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import Numeric, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ndis_kernel.db.tenancy import translate_integrity_error
from ndis_kernel.db.types import ZERO, round_money, to_decimal
from ndis_kernel.domain.clock import Clock
from ndis_kernel.domain.dtos import (
    BudgetSummary,
    BudgetVerification,
    CategoryBalance,
    CategoryDrift,
    TransactionRequest,
    TransactionView,
)
from ndis_kernel.domain.values import FundingCategory, RateSource, ShiftType, TransactionType
from ndis_kernel.exceptions import (
    BudgetAlreadyExistsError,
    DuplicateTransactionError,
    InsufficientFundsError,
    InvalidFundingCategoryError,
    NoBudgetFoundError,
    TransactionAlreadyReversedError,
    TransactionNotFoundError,
)
from ndis_kernel.logging_config import LogContext, get_logger
from ndis_kernel.models.budget import CATEGORY_COLUMNS, Budget
from ndis_kernel.models.transaction import BudgetTransaction
from ndis_kernel.selectors.budget_selector import BudgetSelector
from ndis_kernel.services.auditor_service import AuditorService
from ndis_kernel.services.base import BaseService

logger = get_logger("services.ledger")

_MONEY = Numeric(14, 2)


def parse_category(label: FundingCategory | str) -> FundingCategory:
    """
    Raises:
        InvalidFundingCategoryError: If the label is not a known category.
    """
    if isinstance(label, FundingCategory):
        return label
    try:
        return FundingCategory.parse(label)
    except ValueError as exc:
        raise InvalidFundingCategoryError(str(label)) from exc


class LedgerService(BaseService):
    """
    Budget balances and the transaction log.

    Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auditor: AuditorService | None = None,
    ):
        super().__init__(session, clock)
        self._auditor = auditor or AuditorService(session, self.clock)
        self._selector = BudgetSelector(session)

    # ------------------------------------------------------------------
    # Budget lookups
    # ------------------------------------------------------------------

    def get_budget(self, client_id: UUID, tenant_id: UUID) -> Budget:
        """
        The participant's active budget.

        Raises:
            NoBudgetFoundError: If the client has no active budget in the tenant.
        """
        budget = self.session.execute(
            select(Budget).where(
                Budget.client_id == client_id,
                Budget.tenant_id == tenant_id,
                Budget.is_active.is_(True),
            )
        ).scalar_one_or_none()
        if budget is None:
            raise NoBudgetFoundError(str(client_id), str(tenant_id))
        return budget

    def get_budget_by_id(self, budget_id: UUID, tenant_id: UUID) -> Budget:
        budget = self.session.execute(
            select(Budget).where(Budget.id == budget_id, Budget.tenant_id == tenant_id)
        ).scalar_one_or_none()
        if budget is None:
            raise NoBudgetFoundError(None, str(tenant_id), budget_id=str(budget_id))
        return budget

    def _lock_budget(self, budget_id: UUID, tenant_id: UUID) -> Budget:
        budget = self.session.execute(
            select(Budget)
            .where(Budget.id == budget_id, Budget.tenant_id == tenant_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if budget is None:
            raise NoBudgetFoundError(None, str(tenant_id), budget_id=str(budget_id))
        return budget

    def get_remaining(
        self,
        budget_id: UUID,
        tenant_id: UUID,
        category: FundingCategory | str,
    ) -> Decimal:
        """Current remaining balance of one category, read from the database."""
        cat = parse_category(category)
        column = getattr(Budget, CATEGORY_COLUMNS[cat.value][1])
        remaining = self.session.execute(
            select(column).where(Budget.id == budget_id, Budget.tenant_id == tenant_id)
        ).scalar_one_or_none()
        if remaining is None:
            raise NoBudgetFoundError(None, str(tenant_id), budget_id=str(budget_id))
        return round_money(to_decimal(remaining))

    def get_remaining_balance(
        self,
        client_id: UUID,
        tenant_id: UUID,
        category: FundingCategory | str,
    ) -> Decimal:
        """Remaining balance of a participant's category."""
        budget = self.get_budget(client_id, tenant_id)
        return self.get_remaining(budget.id, tenant_id, category)

    # ------------------------------------------------------------------
    # Budget creation
    # ------------------------------------------------------------------

    def open_budget(
        self,
        tenant_id: UUID,
        client_id: UUID,
        funded: Mapping[FundingCategory | str, Decimal],
        actor_id: UUID,
        price_overrides: Mapping[str, Any] | None = None,
        allowed_ratios: Mapping[str, list[str]] | None = None,
    ) -> Budget:
        """
        Create the participant's budget with remaining = funded.

        Raises:
            BudgetAlreadyExistsError: The client already has a budget.
            InvalidFundingCategoryError: Unknown category in funded.
            ValueError: A funded amount is negative or not a number.
            TenantMismatchError: The client belongs to another tenant.
        """
        existing = self.session.execute(
            select(Budget.id).where(Budget.client_id == client_id, Budget.tenant_id == tenant_id)
        ).scalar_one_or_none()
        if existing is not None:
            raise BudgetAlreadyExistsError(str(client_id), str(tenant_id), str(existing))

        amounts: dict[FundingCategory, Decimal] = {cat: ZERO for cat in FundingCategory}
        for label, raw in funded.items():
            cat = parse_category(label)
            value = to_decimal(raw)
            if value is None or value < 0:
                raise ValueError(f"Funded amount for {cat.value} must be >= 0, got {raw!r}")
            amounts[cat] = round_money(value)

        if price_overrides:
            for key in price_overrides:
                ShiftType(key)
        if allowed_ratios:
            for key in allowed_ratios:
                parse_category(key)

        columns: dict[str, Any] = {}
        for cat, value in amounts.items():
            funded_col, remaining_col = CATEGORY_COLUMNS[cat.value]
            columns[funded_col] = value
            columns[remaining_col] = value

        budget = Budget(
            tenant_id=tenant_id,
            client_id=client_id,
            price_overrides=(
                {k: str(v) for k, v in price_overrides.items()} if price_overrides else None
            ),
            allowed_ratios=(
                {k: list(v) for k, v in allowed_ratios.items()} if allowed_ratios else None
            ),
            is_active=True,
            created_by_id=actor_id,
            **columns,
        )

        try:
            with self.session.begin_nested():
                self.session.add(budget)
                self.session.flush()
        except IntegrityError as exc:
            message = str(exc.orig).lower()
            if "client_id" in message and ("unique" in message or "duplicate key" in message):
                winner = self.session.execute(
                    select(Budget.id).where(
                        Budget.client_id == client_id, Budget.tenant_id == tenant_id
                    )
                ).scalar_one_or_none()
                raise BudgetAlreadyExistsError(
                    str(client_id), str(tenant_id), str(winner)
                ) from exc
            translated = translate_integrity_error(
                exc, entity_type="Budget", tenant_id=str(tenant_id)
            )
            if translated is None:
                raise
            raise translated from exc

        self._auditor.record_budget_opened(
            budget_id=budget.id,
            tenant_id=tenant_id,
            client_id=client_id,
            funded={cat.value: value for cat, value in amounts.items()},
            actor_id=actor_id,
        )

        logger.info(
            "budget_opened",
            extra={
                "tenant_id": str(tenant_id),
                "budget_id": str(budget.id),
                "client_id": str(client_id),
            },
        )
        return budget

    # ------------------------------------------------------------------
    # The balance mutation path
    # ------------------------------------------------------------------

    def apply_transaction(self, request: TransactionRequest) -> BudgetTransaction:
        """
        Write one transaction and move the category balance by its amount.

        Preconditions:
            - Deductions carry amount >= 0; reversals carry amount <= 0.
            - amount is already rounded to cents.

        Postconditions:
            Either the transaction row exists and the balance moved by
            exactly amount, or nothing was written.

        Raises:
            NoBudgetFoundError, DuplicateTransactionError,
            InsufficientFundsError, TransactionAlreadyReversedError,
            TenantMismatchError.
        """
        category = parse_category(request.category)
        amount = request.amount
        if amount != round_money(amount):
            raise ValueError(f"amount must be rounded to cents, got {amount}")
        if request.transaction_type == TransactionType.DEDUCTION and amount < 0:
            raise ValueError(f"deduction amount must be >= 0, got {amount}")
        if request.transaction_type == TransactionType.REVERSAL and amount > 0:
            raise ValueError(f"reversal amount must be <= 0, got {amount}")

        tenant_id = request.tenant_id
        remaining_col = CATEGORY_COLUMNS[category.value][1]

        with LogContext.bind(budget_id=request.budget_id, tenant_id=tenant_id):
            budget = self._lock_budget(request.budget_id, tenant_id)

            if request.shift_id is not None:
                existing = self._selector.find_transaction_for_shift(request.shift_id, tenant_id)
                if existing is not None:
                    existing_id = existing.id
                    logger.info(
                        "duplicate_transaction_skipped",
                        extra={
                            "shift_id": str(request.shift_id),
                            "existing_transaction_id": str(existing_id),
                        },
                    )
                    raise DuplicateTransactionError(str(request.shift_id), str(existing_id))

            available = round_money(to_decimal(getattr(budget, remaining_col)))
            if available < amount:
                logger.warning(
                    "insufficient_funds",
                    extra={
                        "category": category.value,
                        "available": available,
                        "required": amount,
                    },
                )
                raise InsufficientFundsError(str(budget.id), category.value, available, amount)

            txn = BudgetTransaction(
                tenant_id=tenant_id,
                budget_id=budget.id,
                transaction_type=TransactionType(request.transaction_type).value,
                category=category.value,
                shift_type=ShiftType(request.shift_type).value,
                ratio=request.ratio,
                hours=request.hours,
                rate=request.rate,
                amount=amount,
                rate_source=RateSource(request.rate_source).value,
                shift_id=request.shift_id,
                reversal_of_id=request.reversal_of_id,
                company_id=request.company_id,
                created_by_user_id=request.created_by_user_id,
                description=request.description,
                created_at=self.clock.now(),
            )

            column = getattr(Budget, remaining_col)
            try:
                with self.session.begin_nested():
                    self.session.add(txn)
                    self.session.flush()

                    result = self.session.execute(
                        update(Budget)
                        .where(
                            Budget.id == budget.id,
                            Budget.tenant_id == tenant_id,
                            func.round(column, 2, type_=_MONEY) >= amount,
                        )
                        .values(
                            {
                                remaining_col: func.round(column - amount, 2, type_=_MONEY),
                                "updated_at": func.now(),
                                "updated_by_id": request.created_by_user_id,
                            }
                        )
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount != 1:
                        raise InsufficientFundsError(
                            str(budget.id), category.value, available, amount
                        )

                    if request.transaction_type == TransactionType.DEDUCTION:
                        self._auditor.record_deduction(
                            transaction_id=txn.id,
                            tenant_id=tenant_id,
                            budget_id=budget.id,
                            shift_id=request.shift_id,
                            category=category.value,
                            amount=amount,
                            actor_id=request.created_by_user_id,
                        )
            except IntegrityError as exc:
                translated = translate_integrity_error(
                    exc,
                    entity_type="BudgetTransaction",
                    tenant_id=str(tenant_id),
                    shift_id=str(request.shift_id) if request.shift_id else None,
                    reversal_of_id=(
                        str(request.reversal_of_id) if request.reversal_of_id else None
                    ),
                )
                if translated is None:
                    raise
                raise translated from exc

            self.session.expire(budget, [remaining_col, "updated_at", "updated_by_id"])

            logger.info(
                "budget_transaction_applied",
                extra={
                    "transaction_id": str(txn.id),
                    "transaction_type": txn.transaction_type,
                    "shift_id": str(request.shift_id) if request.shift_id else None,
                    "category": category.value,
                    "amount": amount,
                    "rate_source": txn.rate_source,
                },
            )
            return txn

    # ------------------------------------------------------------------
    # Corrections
    # ------------------------------------------------------------------

    def reverse_transaction(
        self,
        transaction_id: UUID,
        tenant_id: UUID,
        reason: str,
        actor_id: UUID,
    ) -> BudgetTransaction:
        """
        Offset a deduction with a new reversal transaction.

        The original row is untouched; the category balance is restored by
        the reversal's negative amount.

        Raises:
            TransactionNotFoundError: Unknown transaction in this tenant.
            TransactionAlreadyReversedError: Already reversed, or is itself
                a reversal.
        """
        original = self.session.execute(
            select(BudgetTransaction).where(
                BudgetTransaction.id == transaction_id,
                BudgetTransaction.tenant_id == tenant_id,
            )
        ).scalar_one_or_none()
        if original is None:
            raise TransactionNotFoundError(str(transaction_id), str(tenant_id))
        if original.is_reversal:
            raise TransactionAlreadyReversedError(str(transaction_id))

        existing = self._selector.find_reversal_of(transaction_id, tenant_id)
        if existing is not None:
            raise TransactionAlreadyReversedError(str(transaction_id), str(existing.id))

        request = TransactionRequest(
            budget_id=original.budget_id,
            tenant_id=tenant_id,
            category=FundingCategory(original.category),
            shift_type=ShiftType(original.shift_type),
            ratio=original.ratio,
            hours=original.hours,
            rate=original.rate,
            amount=-round_money(to_decimal(original.amount)),
            rate_source=RateSource(original.rate_source),
            created_by_user_id=actor_id,
            description=f"Reversal of {original.id}: {reason}",
            company_id=original.company_id,
            transaction_type=TransactionType.REVERSAL,
            reversal_of_id=original.id,
        )
        reversal = self.apply_transaction(request)

        self._auditor.record_reversal(
            reversal_id=reversal.id,
            original_id=original.id,
            tenant_id=tenant_id,
            amount=reversal.amount,
            reason=reason,
            actor_id=actor_id,
        )
        logger.info(
            "transaction_reversed",
            extra={
                "tenant_id": str(tenant_id),
                "transaction_id": str(original.id),
                "reversal_id": str(reversal.id),
            },
        )
        return reversal

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def list_transactions(self, budget_id: UUID, tenant_id: UUID) -> list[TransactionView]:
        return self._selector.list_transactions(budget_id, tenant_id)

    def budget_summary(self, budget_id: UUID, tenant_id: UUID) -> BudgetSummary:
        budget = self.get_budget_by_id(budget_id, tenant_id)
        self.session.refresh(budget)
        spent = self._selector.spent_by_category(budget_id, tenant_id)
        categories = tuple(
            CategoryBalance(
                category=cat,
                funded=round_money(to_decimal(budget.funded_for(cat.value))),
                remaining=round_money(to_decimal(budget.remaining_for(cat.value))),
                spent=spent.get(cat.value, ZERO),
            )
            for cat in FundingCategory
        )
        return BudgetSummary(
            budget_id=budget.id,
            tenant_id=budget.tenant_id,
            client_id=budget.client_id,
            is_active=budget.is_active,
            categories=categories,
            transaction_count=self._selector.transaction_count(budget_id, tenant_id),
        )

    def verify_budget(self, budget_id: UUID, tenant_id: UUID) -> BudgetVerification:
        """Recompute remaining = funded - sum(amounts) for every category."""
        summary = self.budget_summary(budget_id, tenant_id)
        drift = tuple(
            CategoryDrift(
                category=entry.category,
                expected_remaining=entry.funded - entry.spent,
                stored_remaining=entry.remaining,
            )
            for entry in summary.categories
            if entry.funded - entry.spent != entry.remaining
        )
        if drift:
            logger.error(
                "budget_balance_drift",
                extra={
                    "tenant_id": str(tenant_id),
                    "budget_id": str(budget_id),
                    "categories": [d.category.value for d in drift],
                },
            )
        return BudgetVerification(budget_id=budget_id, tenant_id=tenant_id, drift=drift)
