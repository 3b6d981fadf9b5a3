"""Write services of the ledger kernel."""

from ndis_kernel.services.auditor_service import AuditorService, AuditTrace
from ndis_kernel.services.deduction_service import (
    DeductionResult,
    DeductionService,
    DeductionStatus,
)
from ndis_kernel.services.ledger_service import LedgerService
from ndis_kernel.services.rate_resolver import RateResolver
from ndis_kernel.services.sequence_service import SequenceService

__all__ = [
    "AuditTrace",
    "AuditorService",
    "DeductionResult",
    "DeductionService",
    "DeductionStatus",
    "LedgerService",
    "RateResolver",
    "SequenceService",
]
