"""Pure domain layer: value enums, DTOs, classification and ratio math."""

from ndis_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ndis_kernel.domain.ratio import (
    DEFAULT_RATIO,
    calculate_ratio_multiplier,
    normalize_ratio,
    parse_ratio,
)
from ndis_kernel.domain.shift_type import (
    classify_shift_type,
    classify_start,
    compute_shift_hours,
)
from ndis_kernel.domain.values import (
    DEFAULT_CATEGORY_BY_SHIFT_TYPE,
    FundingCategory,
    RateSource,
    ShiftStatus,
    ShiftType,
    TransactionType,
)

__all__ = [
    "Clock",
    "DEFAULT_CATEGORY_BY_SHIFT_TYPE",
    "DEFAULT_RATIO",
    "DeterministicClock",
    "FundingCategory",
    "RateSource",
    "ShiftStatus",
    "ShiftType",
    "SystemClock",
    "TransactionType",
    "calculate_ratio_multiplier",
    "classify_shift_type",
    "classify_start",
    "compute_shift_hours",
    "normalize_ratio",
    "parse_ratio",
]
