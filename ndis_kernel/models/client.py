"""
Module: ndis_kernel.models.client
Responsibility: ORM persistence for participants (clients) and staff users.
    Both are owned by external collaborators and exist here so composite
    tenant references can be enforced.
Architecture position: Kernel > Models.  May import from db/ only.
"""

from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ndis_kernel.db.base import Base, UUIDString
from ndis_kernel.db.tenancy import tenant_unique


class Client(Base):
    """An NDIS participant receiving supports."""

    __tablename__ = "clients"

    __table_args__ = (
        tenant_unique("clients"),
        Index("idx_clients_tenant", "tenant_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)

    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    ndis_number: Mapped[str | None] = mapped_column(String(20), nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<Client {self.full_name} ({self.id})>"


class StaffUser(Base):
    """A support worker or coordinator who can be assigned to shifts."""

    __tablename__ = "users"

    __table_args__ = (
        tenant_unique("users"),
        Index("idx_users_tenant", "tenant_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    email: Mapped[str] = mapped_column(String(255), nullable=False)

    display_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    def __repr__(self) -> str:
        return f"<StaffUser {self.email}>"
