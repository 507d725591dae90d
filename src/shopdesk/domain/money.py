from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

# largest magnitude still quantizable to cents
MAX_AMOUNT = Decimal("1e15")


def to_decimal(value: object) -> Decimal:
    """Convert JSON/form input to a finite Decimal without float artifacts.

    NaN, infinities and magnitudes beyond ``MAX_AMOUNT`` raise ``ValueError``.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, Decimal):
        d = value
    else:
        try:
            # str() first so 0.1 stays 0.1 instead of its binary expansion
            d = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Not a number: {value!r}") from exc
    if not d.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    if abs(d) >= MAX_AMOUNT:
        raise ValueError(f"Out of range: {value!r}")
    return d


def round2(value: object) -> Decimal:
    d = value if isinstance(value, Decimal) and value.is_finite() else to_decimal(value)
    with localcontext() as ctx:
        ctx.prec = 40
        return d.quantize(CENT, rounding=ROUND_HALF_UP)


def percent(part: Decimal, whole: Decimal) -> Decimal:
    if whole == 0:
        return ZERO
    return round2(part / whole * HUNDRED)
