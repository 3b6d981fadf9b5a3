"""
Staffing ratio parsing.

A ratio "W:P" means W workers supporting P participants.  Its multiplier
W / P scales a 1:1 hourly rate.  Anything that does not parse as two
positive numbers has multiplier 1.
"""

from decimal import Decimal, DecimalException, InvalidOperation

DEFAULT_RATIO = "1:1"

ONE = Decimal("1")


def _positive(part: str) -> Decimal | None:
    try:
        value = Decimal(part.strip())
    except InvalidOperation:
        return None
    if not value.is_finite() or value <= 0:
        return None
    return value


def parse_ratio(ratio: str | None) -> tuple[Decimal, Decimal] | None:
    """Return (workers, participants), or None if malformed."""
    if not ratio:
        return None
    parts = ratio.split(":")
    if len(parts) != 2:
        return None
    workers = _positive(parts[0])
    participants = _positive(parts[1])
    if workers is None or participants is None:
        return None
    return workers, participants


def calculate_ratio_multiplier(ratio: str | None) -> Decimal:
    """
    Multiplier W / P for ratio "W:P".

    >>> calculate_ratio_multiplier("1:2")
    Decimal('0.5')
    >>> calculate_ratio_multiplier("abc")
    Decimal('1')
    """
    parsed = parse_ratio(ratio)
    if parsed is None:
        return ONE
    workers, participants = parsed
    try:
        multiplier = workers / participants
    except DecimalException:
        # exponent overflow on inputs such as "1E+999999:1E-999999"
        return ONE
    return multiplier if multiplier > 0 else ONE


def normalize_ratio(ratio: str | None, default: str = DEFAULT_RATIO) -> str:
    """Trimmed ratio string used as the pricing lookup key."""
    if ratio is None or not ratio.strip():
        return default
    return ratio.strip()
