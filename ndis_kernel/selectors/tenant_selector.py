"""Tenant lookups."""

from uuid import UUID

from sqlalchemy import select

from ndis_kernel.domain.dtos import TenantRecord
from ndis_kernel.exceptions import TenantNotFoundError
from ndis_kernel.models.tenant import Tenant
from ndis_kernel.selectors.base import BaseSelector


def _to_record(tenant: Tenant) -> TenantRecord:
    return TenantRecord(
        id=tenant.id,
        name=tenant.name,
        company_id=tenant.company_id,
        timezone=tenant.timezone,
        is_active=tenant.is_active,
    )


class TenantSelector(BaseSelector):

    def get_tenant(self, tenant_id: UUID) -> TenantRecord:
        """
        Raises:
            TenantNotFoundError: If no tenant has this id.
        """
        tenant = self.session.get(Tenant, tenant_id)
        if tenant is None:
            raise TenantNotFoundError(str(tenant_id))
        return _to_record(tenant)

    def list_active_tenant_ids(self) -> list[UUID]:
        """Active tenants in a stable order (by id)."""
        return list(
            self.session.execute(
                select(Tenant.id).where(Tenant.is_active.is_(True)).order_by(Tenant.id)
            ).scalars()
        )
