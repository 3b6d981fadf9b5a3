"""
Module: ndis_kernel.models.shift
Responsibility: ORM persistence for scheduled shifts.  Shifts are written
    by the rostering collaborator; the ledger reads completed shifts and
    charges each one exactly once.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - (client_id, tenant_id) and (user_id, tenant_id) are composite
      references: a shift can never point at another tenant's participant
      or staff member.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ndis_kernel.db.base import Base, UUIDString
from ndis_kernel.db.tenancy import tenant_fk, tenant_unique


class Shift(Base):
    """
    A unit of support work.

    Only rows with status 'completed' and both timestamps set are eligible
    for deduction.  start_time/end_time without tzinfo are local wall-clock
    times in the tenant's timezone.
    """

    __tablename__ = "shifts"

    __table_args__ = (
        tenant_unique("shifts"),
        tenant_fk("client_id", "clients"),
        tenant_fk("user_id", "users"),
        Index("idx_shifts_tenant_status", "tenant_id", "status"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    client_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    user_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    title: Mapped[str | None] = mapped_column(String(200), nullable=True)

    start_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    end_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ShiftStatus value
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="scheduled")

    # "W:P" workers to participants, e.g. "1:1", "1:2"
    staff_ratio: Mapped[str | None] = mapped_column(String(10), nullable=True)

    # FundingCategory value; None means derive from shift type
    funding_category: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<Shift {self.id} {self.status}>"
