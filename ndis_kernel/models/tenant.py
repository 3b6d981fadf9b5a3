"""
Module: ndis_kernel.models.tenant
Responsibility: ORM persistence for tenants, the root of the isolation
    hierarchy.  Owned by the tenant-administration collaborator; the ledger
    only reads it.
Architecture position: Kernel > Models.  May import from db/ only.
"""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from ndis_kernel.db.base import Base


class Tenant(Base):
    """
    A care-provider organisation.

    The tenant id is the isolation boundary for every other table.
    company_id is the accounting company used for transaction attribution;
    timezone is the IANA zone in which shift hours are classified.
    """

    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    company_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    timezone: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="Australia/Sydney",
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Tenant {self.name} ({self.id})>"
