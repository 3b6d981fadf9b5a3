"""ORM models for the NDIS budget ledger."""

from ndis_kernel.models.audit_event import AuditAction, AuditEvent
from ndis_kernel.models.budget import BALANCE_FIELDS, CATEGORY_COLUMNS, Budget
from ndis_kernel.models.client import Client, StaffUser
from ndis_kernel.models.pricing import PricingRate
from ndis_kernel.models.sequence import SequenceCounter
from ndis_kernel.models.shift import Shift
from ndis_kernel.models.tenant import Tenant
from ndis_kernel.models.transaction import BudgetTransaction

__all__ = [
    "AuditAction",
    "AuditEvent",
    "BALANCE_FIELDS",
    "Budget",
    "BudgetTransaction",
    "CATEGORY_COLUMNS",
    "Client",
    "PricingRate",
    "SequenceCounter",
    "Shift",
    "StaffUser",
    "Tenant",
]
