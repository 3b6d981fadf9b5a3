"""Read-only query selectors."""

from ndis_kernel.selectors.budget_selector import BudgetSelector
from ndis_kernel.selectors.pricing_selector import PricingSelector
from ndis_kernel.selectors.shift_selector import ShiftSelector
from ndis_kernel.selectors.tenant_selector import TenantSelector

__all__ = [
    "BudgetSelector",
    "PricingSelector",
    "ShiftSelector",
    "TenantSelector",
]
