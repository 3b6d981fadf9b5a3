"""
BaseService -- abstract base for all ledger services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write service.  Services use ``session.flush()`` and never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or roll back themselves.  The caller
      (``session_scope()``, the backfill reconciler, the CLI, a test)
      owns commit/rollback.
"""

from abc import ABC

from sqlalchemy.orm import Session

from ndis_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for all ledger services.

    Guarantees:
        The service never calls ``session.commit()`` or
        ``session.rollback()``.  SAVEPOINTs opened with
        ``session.begin_nested()`` are the only nested boundaries.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
