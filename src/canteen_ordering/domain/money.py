"""Currency helpers working in integer minor units (centavos)."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

MINOR_UNITS_PER_MAJOR = 100
_CENT = Decimal("0.01")


def to_minor_units(value: object) -> int:
    """Convert a stored decimal amount (e.g. ``"12.50"``) to minor units.

    Floats are routed through ``str`` so ``0.1`` becomes 10, not 10.000000001.
    """
    if isinstance(value, bool):
        raise ValueError("Boolean is not a currency amount")
    if isinstance(value, int):
        return value * MINOR_UNITS_PER_MAJOR
    try:
        amount = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid currency amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Invalid currency amount: {value!r}")
    quantized = amount.quantize(_CENT, rounding=ROUND_HALF_UP)
    return int(quantized * MINOR_UNITS_PER_MAJOR)


def to_decimal(minor_units: int) -> Decimal:
    """Convert minor units back to a two-place decimal."""
    return (Decimal(minor_units) / MINOR_UNITS_PER_MAJOR).quantize(_CENT)


def format_amount(minor_units: int, symbol: str = "PHP") -> str:
    """Render an amount for human-readable error details."""
    sign = "-" if minor_units < 0 else ""
    return f"{sign}{symbol} {to_decimal(abs(minor_units))}"
