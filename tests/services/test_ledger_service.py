"""
LedgerService: opening budgets, the balance mutation path and reporting.
"""

from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from ndis_kernel.domain.dtos import TransactionRequest
from ndis_kernel.domain.values import FundingCategory, RateSource, ShiftType, TransactionType
from ndis_kernel.exceptions import (
    BudgetAlreadyExistsError,
    DuplicateTransactionError,
    InsufficientFundsError,
    InvalidFundingCategoryError,
    NoBudgetFoundError,
)
from ndis_kernel.models import BudgetTransaction
from ndis_kernel.services.auditor_service import AuditorService
from ndis_kernel.services.ledger_service import LedgerService

from tests.conftest import SHIFT_DAY, TEST_ACTOR_ID


def _request(budget, amount, shift_id=None, category=FundingCategory.COMMUNITY_ACCESS):
    return TransactionRequest(
        budget_id=budget.id,
        tenant_id=budget.tenant_id,
        category=category,
        shift_type=ShiftType.AM,
        ratio="1:1",
        hours=Decimal("1"),
        rate=Decimal(amount),
        amount=Decimal(amount),
        rate_source=RateSource.PRICING_TABLE,
        created_by_user_id=TEST_ACTOR_ID,
        description="test charge",
        shift_id=shift_id,
    )


class TestOpenBudget:
    def test_remaining_starts_at_funded(self, session, clock, make_tenant, make_client, make_budget):
        tenant = make_tenant()
        client = make_client(tenant)
        budget = make_budget(tenant, client, community_access="100.00", sil="2500.50")

        ledger = LedgerService(session, clock)
        assert ledger.get_remaining(budget.id, tenant.id, "CommunityAccess") == Decimal("100.00")
        assert ledger.get_remaining(budget.id, tenant.id, FundingCategory.SIL) == Decimal("2500.50")
        assert ledger.get_remaining(budget.id, tenant.id, "CapacityBuilding") == Decimal("0.00")

    def test_one_budget_per_client(self, session, make_tenant, make_client, make_budget):
        tenant = make_tenant()
        client = make_client(tenant)
        first = make_budget(tenant, client, community_access="10")

        with pytest.raises(BudgetAlreadyExistsError) as exc_info:
            make_budget(tenant, client, community_access="20")
        assert exc_info.value.budget_id == str(first.id)

    def test_negative_funding_rejected(self, session, clock, make_tenant, make_client):
        tenant = make_tenant()
        client = make_client(tenant)

        with pytest.raises(ValueError):
            LedgerService(session, clock).open_budget(
                tenant.id, client.id, {"SIL": Decimal("-1")}, TEST_ACTOR_ID
            )

    def test_unknown_category_rejected(self, session, clock, make_tenant, make_client):
        tenant = make_tenant()
        client = make_client(tenant)

        with pytest.raises(InvalidFundingCategoryError):
            LedgerService(session, clock).open_budget(
                tenant.id, client.id, {"Transport": Decimal("5")}, TEST_ACTOR_ID
            )

    def test_opening_is_audited(self, session, clock, make_tenant, make_client, make_budget):
        tenant = make_tenant()
        budget = make_budget(tenant, make_client(tenant), community_access="100")

        trace = AuditorService(session, clock).get_trace("Budget", budget.id, tenant.id)
        assert trace.actions == ("budget_opened",)


class TestGetBudget:
    def test_no_budget(self, session, make_tenant, make_client):
        tenant = make_tenant()
        client = make_client(tenant)

        with pytest.raises(NoBudgetFoundError) as exc_info:
            LedgerService(session).get_budget(client.id, tenant.id)
        assert exc_info.value.code == "NO_BUDGET_FOUND"

    def test_budget_is_tenant_scoped(self, session, make_tenant, make_client, make_budget):
        tenant = make_tenant("A")
        other = make_tenant("B")
        client = make_client(tenant)
        make_budget(tenant, client, community_access="5")

        with pytest.raises(NoBudgetFoundError):
            LedgerService(session).get_budget(client.id, other.id)

    def test_inactive_budget_is_not_returned(self, session, make_tenant, make_client, make_budget):
        tenant = make_tenant()
        client = make_client(tenant)
        budget = make_budget(tenant, client, community_access="5")
        budget.is_active = False
        session.flush()

        with pytest.raises(NoBudgetFoundError):
            LedgerService(session).get_budget(client.id, tenant.id)

    def test_get_remaining_balance_by_client(self, session, make_tenant, make_client, make_budget):
        tenant = make_tenant()
        client = make_client(tenant)
        make_budget(tenant, client, capacity_building="75.25")

        remaining = LedgerService(session).get_remaining_balance(
            client.id, tenant.id, "CapacityBuilding"
        )
        assert remaining == Decimal("75.25")


class TestApplyTransaction:
    def test_deduction_moves_balance(self, session, clock, make_tenant, make_client, make_budget, make_shift):
        tenant = make_tenant()
        client = make_client(tenant)
        budget = make_budget(tenant, client, community_access="100.00")
        shift = make_shift(tenant, client, SHIFT_DAY.replace(hour=9), SHIFT_DAY.replace(hour=10))
        ledger = LedgerService(session, clock)

        txn = ledger.apply_transaction(_request(budget, "58.14", shift.id))

        assert txn.amount == Decimal("58.14")
        assert txn.transaction_type == "deduction"
        assert ledger.get_remaining(budget.id, tenant.id, "CommunityAccess") == Decimal("41.86")

    def test_exact_balance_can_be_spent(self, session, clock, make_tenant, make_client, make_budget):
        tenant = make_tenant()
        budget = make_budget(tenant, make_client(tenant), community_access="10.00")
        ledger = LedgerService(session, clock)

        ledger.apply_transaction(_request(budget, "10.00"))

        assert ledger.get_remaining(budget.id, tenant.id, "CommunityAccess") == Decimal("0.00")

    def test_insufficient_funds_writes_nothing(self, session, clock, make_tenant, make_client, make_budget):
        tenant = make_tenant()
        budget = make_budget(tenant, make_client(tenant), community_access="10.00")
        ledger = LedgerService(session, clock)

        with pytest.raises(InsufficientFundsError) as exc_info:
            ledger.apply_transaction(_request(budget, "10.01"))

        assert exc_info.value.available == Decimal("10.00")
        assert exc_info.value.required == Decimal("10.01")
        assert ledger.get_remaining(budget.id, tenant.id, "CommunityAccess") == Decimal("10.00")
        assert ledger.list_transactions(budget.id, tenant.id) == []

    def test_categories_are_independent(self, session, clock, make_tenant, make_client, make_budget):
        tenant = make_tenant()
        budget = make_budget(tenant, make_client(tenant), community_access="5.00", sil="500.00")
        ledger = LedgerService(session, clock)

        with pytest.raises(InsufficientFundsError):
            ledger.apply_transaction(_request(budget, "6.00", category=FundingCategory.COMMUNITY_ACCESS))
        ledger.apply_transaction(_request(budget, "6.00", category=FundingCategory.SIL))

        assert ledger.get_remaining(budget.id, tenant.id, "SIL") == Decimal("494.00")

    def test_second_transaction_for_shift_is_duplicate(
        self, session, clock, make_tenant, make_client, make_budget, make_shift
    ):
        tenant = make_tenant()
        client = make_client(tenant)
        budget = make_budget(tenant, client, community_access="100.00")
        shift = make_shift(tenant, client, SHIFT_DAY.replace(hour=9), SHIFT_DAY.replace(hour=10))
        ledger = LedgerService(session, clock)
        first = ledger.apply_transaction(_request(budget, "20.00", shift.id))

        with pytest.raises(DuplicateTransactionError) as exc_info:
            ledger.apply_transaction(_request(budget, "20.00", shift.id))

        assert exc_info.value.existing_transaction_id == str(first.id)
        assert ledger.get_remaining(budget.id, tenant.id, "CommunityAccess") == Decimal("80.00")

    def test_unrounded_amount_rejected(self, session, clock, make_tenant, make_client, make_budget):
        tenant = make_tenant()
        budget = make_budget(tenant, make_client(tenant), community_access="100.00")

        with pytest.raises(ValueError):
            LedgerService(session, clock).apply_transaction(_request(budget, "1.005"))

    def test_unknown_budget(self, session, clock, make_tenant, make_client, make_budget):
        tenant = make_tenant()
        budget = make_budget(tenant, make_client(tenant), community_access="100.00")
        request = replace(_request(budget, "1.00"), budget_id=uuid4())

        with pytest.raises(NoBudgetFoundError):
            LedgerService(session, clock).apply_transaction(request)

    def test_deduction_is_audited(self, session, clock, make_tenant, make_client, make_budget):
        tenant = make_tenant()
        budget = make_budget(tenant, make_client(tenant), community_access="100.00")

        txn = LedgerService(session, clock).apply_transaction(_request(budget, "12.00"))

        trace = AuditorService(session, clock).get_trace("BudgetTransaction", txn.id, tenant.id)
        assert trace.actions == ("budget_deducted",)


class TestReporting:
    def test_summary_and_verify(self, session, clock, make_tenant, make_client, make_budget):
        tenant = make_tenant()
        budget = make_budget(tenant, make_client(tenant), community_access="100.00", sil="50.00")
        ledger = LedgerService(session, clock)
        ledger.apply_transaction(_request(budget, "30.00"))
        ledger.apply_transaction(_request(budget, "5.50", category=FundingCategory.SIL))

        summary = ledger.budget_summary(budget.id, tenant.id)
        ca = summary.balance(FundingCategory.COMMUNITY_ACCESS)
        assert (ca.funded, ca.remaining, ca.spent) == (
            Decimal("100.00"), Decimal("70.00"), Decimal("30.00"),
        )
        assert summary.balance(FundingCategory.SIL).remaining == Decimal("44.50")
        assert summary.transaction_count == 2

        assert ledger.verify_budget(budget.id, tenant.id).is_consistent

    def test_transactions_listed_oldest_first(self, session, clock, make_tenant, make_client, make_budget):
        tenant = make_tenant()
        budget = make_budget(tenant, make_client(tenant), community_access="100.00")
        ledger = LedgerService(session, clock)
        ledger.apply_transaction(_request(budget, "1.00"))
        clock.advance(60)
        ledger.apply_transaction(_request(budget, "2.00"))

        amounts = [t.amount for t in ledger.list_transactions(budget.id, tenant.id)]
        assert amounts == [Decimal("1.00"), Decimal("2.00")]

    def test_verify_detects_drift(self, session, clock, make_tenant, make_client, make_budget):
        tenant = make_tenant()
        budget = make_budget(tenant, make_client(tenant), community_access="100.00")
        ledger = LedgerService(session, clock)
        ledger.apply_transaction(_request(budget, "10.00"))

        # A transaction row inserted behind the ledger's back
        session.add(
            BudgetTransaction(
                tenant_id=tenant.id,
                budget_id=budget.id,
                transaction_type=TransactionType.DEDUCTION.value,
                category="CommunityAccess",
                shift_type="AM",
                ratio="1:1",
                hours=Decimal("1"),
                rate=Decimal("5.00"),
                amount=Decimal("5.00"),
                rate_source="pricing_table",
                created_by_user_id=TEST_ACTOR_ID,
                description="rogue",
                created_at=datetime(2025, 7, 1, 12, 0),
            )
        )
        session.flush()

        result = ledger.verify_budget(budget.id, tenant.id)
        assert not result.is_consistent
        (drift,) = result.drift
        assert drift.expected_remaining == Decimal("85.00")
        assert drift.stored_remaining == Decimal("90.00")
        assert drift.difference == Decimal("5.00")
