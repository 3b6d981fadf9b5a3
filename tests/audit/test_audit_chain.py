"""
Per-tenant audit hash chain: ordering, linkage and tamper detection.

Tampering tests remove the database triggers, rewrite rows with raw SQL
and expect validate_chain() to point at the first damaged event.
"""

import hashlib
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select, text

from ndis_kernel.db.triggers import install_immutability_triggers, uninstall_immutability_triggers
from ndis_kernel.exceptions import AuditChainBrokenError
from ndis_kernel.models import AuditEvent
from ndis_kernel.services.auditor_service import AuditorService
from ndis_kernel.services.sequence_service import SequenceService
from ndis_kernel.utils.hashing import GENESIS_MARKER, hash_audit_event, hash_payload

from tests.conftest import TEST_ACTOR_ID


def _record_three(auditor, tenant_id):
    auditor.record_budget_opened(uuid4(), tenant_id, uuid4(), {"SIL": Decimal("100.00")}, TEST_ACTOR_ID)
    auditor.record_deduction(uuid4(), tenant_id, uuid4(), uuid4(), "SIL", Decimal("29.07"), TEST_ACTOR_ID)
    auditor.record_reversal(uuid4(), uuid4(), tenant_id, Decimal("-29.07"), "duplicate", TEST_ACTOR_ID)


def _events(session, tenant_id):
    return session.execute(
        select(AuditEvent).where(AuditEvent.tenant_id == tenant_id).order_by(AuditEvent.seq)
    ).scalars().all()


@pytest.fixture
def chain(session, clock, make_tenant):
    tenant = make_tenant()
    auditor = AuditorService(session, clock)
    _record_three(auditor, tenant.id)
    session.commit()
    return tenant, auditor


@pytest.fixture
def tamperable(engine, session, chain):
    uninstall_immutability_triggers(engine)
    yield chain
    session.rollback()
    install_immutability_triggers(engine)


def _tamper(session, statement, **params):
    session.execute(text(statement), params)
    session.commit()
    session.expire_all()


class TestChainStructure:
    def test_sequence_and_linkage(self, session, chain):
        tenant, auditor = chain
        events = _events(session, tenant.id)

        assert [e.seq for e in events] == [1, 2, 3]
        assert events[0].is_genesis
        assert [e.prev_hash for e in events[1:]] == [e.hash for e in events[:-1]]
        assert auditor.validate_chain(tenant.id)

    def test_first_event_chains_from_genesis(self, session, chain):
        tenant, _ = chain
        first = _events(session, tenant.id)[0]

        material = "|".join(
            [first.entity_type, str(first.entity_id), first.action, first.payload_hash, GENESIS_MARKER]
        )
        assert first.hash == hashlib.sha256(material.encode("utf-8")).hexdigest()
        assert first.hash == hash_audit_event(
            first.entity_type, str(first.entity_id), first.action, first.payload_hash, None
        )

    def test_tenants_have_independent_chains(self, session, chain, make_tenant):
        tenant, auditor = chain
        other = make_tenant("Other")
        auditor.record_budget_opened(uuid4(), other.id, uuid4(), {}, TEST_ACTOR_ID)

        assert [e.seq for e in _events(session, other.id)] == [1]
        assert _events(session, other.id)[0].prev_hash is None
        assert auditor.validate_chain(other.id)
        assert auditor.validate_chain(tenant.id)

    def test_empty_chain_is_valid(self, session, clock, make_tenant):
        assert AuditorService(session, clock).validate_chain(make_tenant().id)

    def test_actions_listed_in_order(self, chain):
        tenant, auditor = chain

        assert auditor.list_actions(tenant.id) == [
            "budget_opened", "budget_deducted", "transaction_reversed",
        ]


class TestTamperDetection:
    def test_payload_edit_detected(self, session, tamperable):
        tenant, auditor = tamperable
        _tamper(
            session,
            "UPDATE audit_events SET payload = :payload WHERE tenant_id = :t AND seq = 2",
            payload='{"amount": "0.01"}', t=str(tenant.id),
        )

        with pytest.raises(AuditChainBrokenError) as exc_info:
            auditor.validate_chain(tenant.id)
        assert exc_info.value.seq == 2

    def test_rewritten_hash_detected(self, session, tamperable):
        tenant, auditor = tamperable
        _tamper(
            session,
            "UPDATE audit_events SET hash = :h WHERE tenant_id = :t AND seq = 1",
            h="0" * 64, t=str(tenant.id),
        )

        with pytest.raises(AuditChainBrokenError) as exc_info:
            auditor.validate_chain(tenant.id)
        assert exc_info.value.seq == 1

    def test_deleted_event_detected(self, session, tamperable):
        tenant, auditor = tamperable
        _tamper(
            session,
            "DELETE FROM audit_events WHERE tenant_id = :t AND seq = 2",
            t=str(tenant.id),
        )

        with pytest.raises(AuditChainBrokenError) as exc_info:
            auditor.validate_chain(tenant.id)
        assert exc_info.value.seq == 3

    def test_broken_chain_is_logged(self, session, tamperable, captured_logs):
        tenant, auditor = tamperable
        _tamper(
            session,
            "UPDATE audit_events SET action = 'budget_opened' WHERE tenant_id = :t AND seq = 3",
            t=str(tenant.id),
        )

        with pytest.raises(AuditChainBrokenError):
            auditor.validate_chain(tenant.id)

        broken = [r for r in captured_logs() if r["message"] == "audit_chain_broken"]
        assert broken[0]["level"] == "CRITICAL"
        assert broken[0]["check"] == "hash"


class TestSequence:
    def test_values_strictly_increase(self, session):
        sequences = SequenceService(session)

        assert [sequences.next_value("demo") for _ in range(3)] == [1, 2, 3]
        assert sequences.current_value("demo") == 3
        assert sequences.current_value("unused") is None

    def test_rollback_returns_the_value(self, session):
        sequences = SequenceService(session)
        sequences.next_value("demo")
        session.commit()
        sequences.next_value("demo")
        session.rollback()

        assert sequences.next_value("demo") == 2


class TestPayloadHashing:
    def test_decimal_scale_does_not_change_hash(self):
        assert hash_payload({"amount": Decimal("58.140")}) == hash_payload({"amount": Decimal("58.14")})

    def test_key_order_does_not_change_hash(self):
        assert hash_payload({"a": 1, "b": 2}) == hash_payload({"b": 2, "a": 1})
