"""
Values -- Decimal money helpers.

Responsibility:
    The one place where raw input (str, int, Decimal) becomes a monetary
    Decimal, and where rounding and tolerance comparisons are defined.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Money is Decimal, NEVER float.  A float argument is rejected.
    - Amounts are rounded half-up to PRECISION places at the posting
      boundary; balances are compared within TOLERANCE.

Failure modes:
    - TypeError for float input.
    - ValueError for input that is not a number.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

PRECISION = 2
ZERO = Decimal("0")
TOLERANCE = Decimal("0.01")

_QUANTUM = Decimal(1).scaleb(-PRECISION)


def to_decimal(value: Decimal | str | int | None) -> Decimal:
    """Convert ``value`` to Decimal. None becomes zero."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        raise TypeError("monetary amounts must not be float; pass str or Decimal")
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {value!r}") from e


def round_money(value: Decimal | str | int | None, places: int = PRECISION) -> Decimal:
    """Round half-up to ``places`` decimal places."""
    quantum = _QUANTUM if places == PRECISION else Decimal(1).scaleb(-places)
    return to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)


def within_tolerance(a: Decimal, b: Decimal, tolerance: Decimal = TOLERANCE) -> bool:
    """True when ``a`` and ``b`` differ by no more than ``tolerance``."""
    return abs(a - b) <= tolerance


def money_sum(values) -> Decimal:
    """Sum an iterable of amounts and round the result."""
    total = ZERO
    for value in values:
        total += to_decimal(value)
    return round_money(total)
