"""
Values -- Decimal-safe rounding and coercion helpers.

Responsibility:
    Provides the single rounding primitive (``round2``) used by every
    settlement, divergence, and DRE calculation, plus the coercion helpers
    that turn loosely-typed store values (None, str, int, float) into
    ``Decimal`` before any arithmetic happens.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by DTOs and every engine. No outward dependencies.

Invariants enforced:
    - ``round2`` is applied after every multiplication or summation that
      feeds a displayed or persisted total, never only at the end.
    - Rounding follows the reference system: half rounds toward positive
      infinity (``floor(x * 10^d + 0.5) / 10^d``).  Because the computation
      is done in ``Decimal`` there is no binary floating-point drift.
    - ``round2`` is idempotent: ``round2(round2(x)) == round2(x)``.
    - ``round2`` is total over finite inputs: the working precision grows
      with the magnitude of the value, so no digit is lost before the floor.
    - Percentages with a zero or negative denominator are 0, never an error.

Failure modes:
    - ValueError from ``to_decimal`` for unparseable strings or booleans.
    - ValueError from ``round2`` for NaN / infinite inputs.
"""

from __future__ import annotations

from decimal import MAX_EMAX, MIN_EMIN, ROUND_FLOOR, Decimal, InvalidOperation, localcontext

MONEY_PLACES = 2

ZERO = Decimal("0.00")
HUNDRED = Decimal("100")
_HALF = Decimal("0.5")


def to_decimal(value: Decimal | int | float | str | None) -> Decimal:
    """
    Coerce a store value to ``Decimal``.

    Absent values (``None`` or an empty string) are treated as zero, which
    matches how malformed rows are aggregated.  Floats go through ``str`` so
    that ``0.1`` becomes ``Decimal("0.1")`` rather than its binary expansion.
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, bool):
        raise ValueError(f"Boolean is not a numeric amount: {value!r}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    text = str(value).strip()
    if not text:
        return Decimal("0")
    try:
        return Decimal(text)
    except InvalidOperation as e:
        raise ValueError(f"Invalid numeric amount: {value!r}") from e


def _exact_digits(amount: Decimal, decimals: int) -> int:
    """Digits needed to hold ``amount * 10**decimals + 0.5`` without rounding."""
    highest = max(amount.adjusted() + decimals, 0)
    lowest = min(amount.as_tuple().exponent + decimals, -1)
    return highest - lowest + 2


def round2(value: Decimal | int | float | str | None, decimals: int = MONEY_PLACES) -> Decimal:
    """
    Round to ``decimals`` places, half toward positive infinity.

    Preconditions:
        - ``value`` is finite once coerced; ``decimals`` >= 0.

    Postconditions:
        - Returns a ``Decimal`` with exactly ``decimals`` fractional digits.
        - ``round2(round2(x, d), d) == round2(x, d)``.

    Raises:
        ValueError: If the value is NaN or infinite.
    """
    amount = to_decimal(value)
    if not amount.is_finite():
        raise ValueError(f"Cannot round non-finite value: {amount}")
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, _exact_digits(amount, decimals))
        ctx.Emax = MAX_EMAX
        ctx.Emin = MIN_EMIN
        factor = Decimal(10) ** decimals
        scaled = (amount * factor + _HALF).to_integral_value(rounding=ROUND_FLOOR)
        return (scaled / factor).quantize(Decimal(1).scaleb(-decimals))


def safe_percent(
    numerator: Decimal | int | str,
    denominator: Decimal | int | str,
) -> Decimal:
    """``round2(numerator / denominator * 100)``, or 0 when denominator <= 0."""
    den = to_decimal(denominator)
    if den <= 0:
        return ZERO
    return round2(to_decimal(numerator) / den * HUNDRED)


def to_quantity(value: int | str | Decimal | None) -> int:
    """Coerce a store quantity to ``int``; absent quantities are 0."""
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValueError(f"Boolean is not a quantity: {value!r}")
    if isinstance(value, int):
        return value
    amount = to_decimal(value)
    if amount != amount.to_integral_value():
        raise ValueError(f"Quantity must be a whole number: {value!r}")
    return int(amount)
