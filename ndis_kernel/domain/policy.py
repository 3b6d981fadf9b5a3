"""
LedgerPolicy -- kernel-side runtime settings.

The kernel never reads configuration files.  ``ndis_config.bridges``
translates the loaded configuration into this frozen value, and services
receive it by constructor injection.  The defaults are the production
values, so a service built without a policy behaves correctly.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID
from zoneinfo import ZoneInfo

from ndis_kernel.domain.ratio import DEFAULT_RATIO
from ndis_kernel.domain.shift_type import DEFAULT_MAX_SHIFT_HOURS

# Attributed when neither an acting user nor a shift assignee is known
DEFAULT_SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")


@dataclass(frozen=True)
class LedgerPolicy:
    max_shift_hours: Decimal = DEFAULT_MAX_SHIFT_HOURS
    default_ratio: str = DEFAULT_RATIO
    default_timezone: str = "Australia/Sydney"
    system_actor_id: UUID = DEFAULT_SYSTEM_ACTOR_ID
    derived_rate_enabled: bool = False
    default_company_id: str = "default-company"

    def tzinfo_for(self, timezone_name: str | None) -> ZoneInfo:
        """Tenant timezone, falling back to the default zone."""
        return ZoneInfo(timezone_name or self.default_timezone)
