"""
Module: ndis_kernel.db.types
Responsibility: Precision constants and rounding helpers for ledger
    columns.  Centralizes precision and rounding so that every model and
    service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/ and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Money is stored with 2 decimal places (cents).  round_money() is the
      ONLY sanctioned rounding function for amounts.
    - Shift hours are stored with 4 decimal places.  round_hours() is the
      ONLY sanctioned rounding function for durations.
    - No floats anywhere in the ledger.
"""

from decimal import Decimal, ROUND_HALF_UP


MONEY_DECIMAL_PLACES = 2
RATE_DECIMAL_PLACES = 2
HOURS_DECIMAL_PLACES = 4
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def _quantizer(decimal_places: int) -> Decimal:
    return Decimal(1).scaleb(-decimal_places)


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to cents.

    This is the ONLY sanctioned rounding function for ledger amounts.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    return value.quantize(_quantizer(decimal_places), rounding=rounding)


def round_hours(value: Decimal) -> Decimal:
    """Round a shift duration to HOURS_DECIMAL_PLACES."""
    return value.quantize(_quantizer(HOURS_DECIMAL_PLACES), rounding=DEFAULT_ROUNDING)


def to_decimal(value: object) -> Decimal | None:
    """
    Convert a loosely-typed numeric value (JSON number, string) to Decimal.

    Returns None when the value cannot be interpreted as a finite number.
    Floats go through str() so that 29.07 becomes Decimal("29.07"), not its
    binary expansion.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except ArithmeticError:
            return None
    else:
        return None
    if not result.is_finite():
        return None
    return result
