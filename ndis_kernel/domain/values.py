"""
Value enums for the budget ledger.

All enums are ``str`` subclasses so that values compare equal to the plain
strings stored in the database and in JSON budget fields.
"""

from enum import Enum


class ShiftType(str, Enum):
    """Time-of-day classification of a shift's start."""

    AM = "AM"
    PM = "PM"
    ACTIVE_NIGHT = "ActiveNight"
    SLEEPOVER = "Sleepover"


class FundingCategory(str, Enum):
    """NDIS support category a budget balance is held in."""

    COMMUNITY_ACCESS = "CommunityAccess"
    SIL = "SIL"
    CAPACITY_BUILDING = "CapacityBuilding"

    @classmethod
    def parse(cls, label: str) -> "FundingCategory":
        """
        Parse a category label.

        Raises:
            ValueError: If the label is not a known category.
        """
        return cls(label.strip())


class ShiftStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TransactionType(str, Enum):
    DEDUCTION = "deduction"
    REVERSAL = "reversal"


class RateSource(str, Enum):
    """Where a transaction's hourly rate came from."""

    OVERRIDE = "override"
    PRICING_TABLE = "pricing_table"
    DERIVED = "derived"


# Category charged when the shift does not name one
DEFAULT_CATEGORY_BY_SHIFT_TYPE: dict[ShiftType, FundingCategory] = {
    ShiftType.AM: FundingCategory.COMMUNITY_ACCESS,
    ShiftType.PM: FundingCategory.COMMUNITY_ACCESS,
    ShiftType.ACTIVE_NIGHT: FundingCategory.SIL,
    ShiftType.SLEEPOVER: FundingCategory.SIL,
}
