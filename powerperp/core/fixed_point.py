"""18-decimal fixed-point arithmetic on plain Python ints.

A fixed-point value ``v`` represents ``v / 10**18``. Values are unsigned.

Rounding: every conversion and product truncates toward zero (``//`` on
non-negative operands). Conversions back to raw token units go through
``to_fixed`` and never round up, so repeated rescaling can only lose dust,
never mint it.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, InvalidOperation, localcontext

DECIMAL_PLACES: int = 18
ONE: int = 10**DECIMAL_PLACES

# Working precision for decimal parsing and logarithms.
_POW_PRECISION: int = 60

# ``dec_pow`` cuts ln(base) and the exponent to this many places.
POW_PLACES: int = 9
_POW_QUANTUM: int = 10 ** (DECIMAL_PLACES - POW_PLACES)

_E_10: int = 22_026_465_794_806_716_516_957  # e ** 10
_EXP_TERMS: int = 2 * DECIMAL_PLACES


# -- Basic helpers -----------------------------------------------------------

def _require_unsigned(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0:
        raise ValueError(f"{name} must be non-negative: {value}")


def _scale(decimals: int) -> int:
    if not (0 <= decimals <= DECIMAL_PLACES):
        raise ValueError(f"decimals must be in [0, {DECIMAL_PLACES}]: {decimals}")
    return 10 ** (DECIMAL_PLACES - decimals)


# -- Construction ------------------------------------------------------------

def from_int(n: int) -> int:
    """Whole number *n* as fixed point."""
    _require_unsigned("n", n)
    return n * ONE


def from_atomics(amount: int, decimals: int) -> int:
    """Raw token *amount* with *decimals* places as fixed point (exact)."""
    _require_unsigned("amount", amount)
    return amount * _scale(decimals)


def from_ratio(numerator: int, denominator: int) -> int:
    """``numerator / denominator`` truncated to 18 places."""
    _require_unsigned("numerator", numerator)
    _require_unsigned("denominator", denominator)
    if denominator == 0:
        raise ZeroDivisionError("from_ratio: zero denominator")
    return numerator * ONE // denominator


def percent(p: int) -> int:
    """``p / 100`` as fixed point."""
    return from_ratio(p, 100)


def parse(text: str) -> int:
    """Parse a decimal string such as ``"0.005"`` into fixed point.

    Raises ValueError on negative values, more than 18 fractional digits,
    or anything that is not a plain decimal number.
    """
    try:
        value = Decimal(text.strip())
    except (InvalidOperation, AttributeError) as exc:
        raise ValueError(f"invalid decimal: {text!r}") from exc
    if not value.is_finite() or value < 0:
        raise ValueError(f"invalid decimal: {text!r}")
    with localcontext() as dctx:
        dctx.prec = _POW_PRECISION
        scaled = value.scaleb(DECIMAL_PLACES)
        if scaled != scaled.to_integral_value():
            raise ValueError(f"too many fractional digits: {text!r}")
        return int(scaled)


def to_str(value: int) -> str:
    """Render fixed point without trailing zeros (``1500000000000000000 -> "1.5"``)."""
    _require_unsigned("value", value)
    whole, frac = divmod(value, ONE)
    if frac == 0:
        return str(whole)
    digits = str(frac).rjust(DECIMAL_PLACES, "0").rstrip("0")
    return f"{whole}.{digits}"


# -- Arithmetic --------------------------------------------------------------

def mul(a: int, b: int) -> int:
    """``a * b`` truncated."""
    return a * b // ONE


def div(a: int, b: int) -> int:
    """``a / b`` truncated. Raises ZeroDivisionError when ``b == 0``."""
    if b == 0:
        raise ZeroDivisionError("fixed-point division by zero")
    return a * ONE // b


def sub(a: int, b: int) -> int:
    """``a - b``; unsigned, so a negative result raises ValueError."""
    if b > a:
        raise ValueError(f"fixed-point underflow: {a} - {b}")
    return a - b


def _ln(value: int) -> int:
    """Natural log of fixed-point *value* as signed fixed point, cut to ``POW_PLACES``."""
    with localcontext() as dctx:
        dctx.prec = _POW_PRECISION
        log = Decimal(value).scaleb(-DECIMAL_PLACES).ln()
        cut = log.quantize(Decimal(1).scaleb(-POW_PLACES), rounding=ROUND_DOWN)
        return int(cut.scaleb(DECIMAL_PLACES))


def _exp(x: int) -> int:
    """``e ** x`` for signed fixed-point *x*.

    Taylor series on ``|x|`` after pulling out factors of ``e ** 10``; a
    negative *x* takes the reciprocal. Every step truncates.
    """
    magnitude = abs(x)
    scale = ONE
    while magnitude >= 10 * ONE:
        magnitude -= 10 * ONE
        scale = mul(scale, _E_10)
    term = total = ONE
    for i in range(1, _EXP_TERMS + 1):
        term = term * magnitude // (ONE * i)
        total += term
    value = mul(total, scale)
    return ONE * ONE // value if x < 0 else value


def dec_pow(base: int, exponent: int) -> int:
    """``base ** exponent`` with a real (fixed-point) exponent.

    Evaluated as ``exp(ln(base) * exponent)`` where ``ln(base)`` and the
    exponent are both cut to ``POW_PLACES`` decimals (toward zero) first.
    Funding factors depend on that cut to the last digit.
    """
    _require_unsigned("base", base)
    _require_unsigned("exponent", exponent)
    if exponent == 0:
        return ONE
    if base == 0:
        return 0
    if exponent == ONE:
        return base
    log = _ln(base)
    product = abs(log) * (exponent // _POW_QUANTUM * _POW_QUANTUM) // ONE
    return _exp(-product if log < 0 else product)


# -- Conversion back to raw units --------------------------------------------

def to_fixed(value: int, decimals: int) -> int:
    """Fixed-point *value* as raw token units with *decimals* places (truncate)."""
    _require_unsigned("value", value)
    return value // _scale(decimals)
