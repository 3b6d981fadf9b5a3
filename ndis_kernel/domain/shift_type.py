"""
Shift classification and duration -- pure functions.

Responsibility:
    Map a shift's local start hour onto a ShiftType and compute its exact
    duration in fractional hours.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Classification partitions the 24 hours with no gaps or overlaps:
          AM          [06, 14)
          PM          [14, 20)
          Sleepover   [20, 22)
          ActiveNight [22, 06)
    - Durations are computed on UTC instants, so a shift spanning a
      daylight-saving transition is charged for the hours actually worked.
    - A duration <= 0 or above the configured maximum is rejected.
"""

from datetime import datetime, timedelta, timezone, tzinfo
from decimal import Decimal

from ndis_kernel.db.types import round_hours
from ndis_kernel.domain.values import ShiftType
from ndis_kernel.exceptions import InvalidDurationError

DEFAULT_MAX_SHIFT_HOURS = Decimal("24")

_MICROSECONDS_PER_HOUR = Decimal(3_600_000_000)


def classify_shift_type(hour: int) -> ShiftType:
    """
    Classify a local hour-of-day (0-23).

    Raises:
        ValueError: If hour is outside 0..23.
    """
    if not 0 <= hour <= 23:
        raise ValueError(f"hour must be in 0..23, got {hour}")
    if 6 <= hour < 14:
        return ShiftType.AM
    if 14 <= hour < 20:
        return ShiftType.PM
    if 20 <= hour < 22:
        return ShiftType.SLEEPOVER
    return ShiftType.ACTIVE_NIGHT


def to_local(moment: datetime, tz: tzinfo) -> datetime:
    """
    Express a timestamp in the tenant's wall-clock time.

    Naive timestamps are already local wall-clock time and are returned
    with tz attached.
    """
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone(tz)


def local_hour(moment: datetime, tz: tzinfo) -> int:
    return to_local(moment, tz).hour


def classify_start(start_time: datetime, tz: tzinfo) -> ShiftType:
    """Classify a shift by its start time in the tenant's timezone."""
    return classify_shift_type(local_hour(start_time, tz))


def shift_duration(start_time: datetime, end_time: datetime, tz: tzinfo) -> timedelta:
    start_utc = to_local(start_time, tz).astimezone(timezone.utc)
    end_utc = to_local(end_time, tz).astimezone(timezone.utc)
    return end_utc - start_utc


def compute_shift_hours(
    shift_id: str,
    start_time: datetime,
    end_time: datetime,
    tz: tzinfo,
    max_hours: Decimal = DEFAULT_MAX_SHIFT_HOURS,
) -> Decimal:
    """
    Exact shift duration in hours, rounded to 4 decimal places.

    Raises:
        InvalidDurationError: If the duration is <= 0 or > max_hours.
    """
    delta = shift_duration(start_time, end_time, tz)
    microseconds = delta // timedelta(microseconds=1)
    hours = round_hours(Decimal(microseconds) / _MICROSECONDS_PER_HOUR)

    if hours <= 0 or hours > max_hours:
        raise InvalidDurationError(shift_id, hours, max_hours)

    return hours
