"""
Pytest fixtures for the NDIS ledger test suite.

Provides:
- A file-backed SQLite database per test (foreign keys on, immutability
  triggers installed, ORM listeners registered)
- Seed helpers for tenants, participants, staff, pricing, budgets, shifts
- Structured-log capture

No external database server is needed.  SQLite serializes writers
(BEGIN IMMEDIATE), so a test that hands work to other sessions must
commit its own session first.
"""

import json
import logging
from datetime import datetime
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from ndis_kernel.db.engine import (
    create_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from ndis_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from ndis_kernel.domain.clock import DeterministicClock
from ndis_kernel.domain.policy import LedgerPolicy
from ndis_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ndis_kernel.models import Client, PricingRate, Shift, StaffUser, Tenant
from ndis_kernel.services.ledger_service import LedgerService

# Test actor ID for all test operations
TEST_ACTOR_ID = UUID("11111111-1111-1111-1111-111111111111")

# A Tuesday, local wall-clock time
SHIFT_DAY = datetime(2025, 7, 1)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ndis_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ...):
            ...
            assert any(r["message"] == "shift_deducted" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ndis_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine(tmp_path):
    eng = init_engine_from_url(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        statement_timeout_ms=15000,
    )
    create_tables(install_triggers=True)
    register_immutability_listeners()
    yield eng
    reset_engine()


@pytest.fixture
def session_factory(engine):
    return get_session_factory()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    sess = get_session()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def without_listeners():
    """Disable the ORM immutability listeners to reach the triggers."""
    unregister_immutability_listeners()
    yield
    register_immutability_listeners()


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


@pytest.fixture
def policy() -> LedgerPolicy:
    return LedgerPolicy()


@pytest.fixture
def test_actor_id() -> UUID:
    return TEST_ACTOR_ID


# =============================================================================
# Seed helpers
# =============================================================================


@pytest.fixture
def make_tenant(session):
    def _make(name: str = "Acme Care", timezone: str = "Australia/Sydney", **kwargs) -> Tenant:
        tenant = Tenant(name=name, timezone=timezone, company_id=kwargs.pop("company_id", "acme"), **kwargs)
        session.add(tenant)
        session.flush()
        return tenant

    return _make


@pytest.fixture
def make_client(session):
    def _make(tenant: Tenant, first_name: str = "Sam", last_name: str = "Taylor") -> Client:
        client = Client(
            tenant_id=tenant.id,
            first_name=first_name,
            last_name=last_name,
            ndis_number=str(uuid4().int)[:9],
        )
        session.add(client)
        session.flush()
        return client

    return _make


@pytest.fixture
def make_user(session):
    def _make(tenant: Tenant, email: str | None = None) -> StaffUser:
        user = StaffUser(
            tenant_id=tenant.id,
            email=email or f"{uuid4().hex[:8]}@example.org",
            display_name="Support Worker",
        )
        session.add(user)
        session.flush()
        return user

    return _make


@pytest.fixture
def make_rate(session):
    def _make(tenant: Tenant, shift_type: str, ratio: str, rate, is_active: bool = True) -> PricingRate:
        row = PricingRate(
            tenant_id=tenant.id,
            shift_type=shift_type,
            ratio=ratio,
            rate=Decimal(str(rate)),
            is_active=is_active,
        )
        session.add(row)
        session.flush()
        return row

    return _make


@pytest.fixture
def make_budget(session, clock):
    def _make(
        tenant: Tenant,
        client: Client,
        community_access="0",
        sil="0",
        capacity_building="0",
        price_overrides=None,
        allowed_ratios=None,
    ):
        return LedgerService(session, clock).open_budget(
            tenant_id=tenant.id,
            client_id=client.id,
            funded={
                "CommunityAccess": Decimal(str(community_access)),
                "SIL": Decimal(str(sil)),
                "CapacityBuilding": Decimal(str(capacity_building)),
            },
            actor_id=TEST_ACTOR_ID,
            price_overrides=price_overrides,
            allowed_ratios=allowed_ratios,
        )

    return _make


@pytest.fixture
def make_shift(session):
    def _make(
        tenant: Tenant,
        client: Client | None,
        start: datetime | None,
        end: datetime | None,
        user: StaffUser | None = None,
        status: str = "completed",
        staff_ratio: str | None = "1:1",
        funding_category: str | None = None,
        title: str | None = None,
    ) -> Shift:
        shift = Shift(
            tenant_id=tenant.id,
            client_id=client.id if client is not None else None,
            user_id=user.id if user is not None else None,
            title=title,
            start_time=start,
            end_time=end,
            status=status,
            staff_ratio=staff_ratio,
            funding_category=funding_category,
        )
        session.add(shift)
        session.flush()
        return shift

    return _make


@pytest.fixture
def funded_participant(make_tenant, make_client, make_rate, make_budget):
    """Tenant with AM 1:1 at $29.07/h and a $100 CommunityAccess budget."""
    tenant = make_tenant()
    client = make_client(tenant)
    make_rate(tenant, "AM", "1:1", "29.07")
    budget = make_budget(tenant, client, community_access="100.00")
    return tenant, client, budget
