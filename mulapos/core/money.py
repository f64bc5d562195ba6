from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def money(v) -> Decimal:
    """Cuantiza a 2 decimales (ROUND_HALF_UP). Acepta Decimal, int, float o str."""
    if not isinstance(v, Decimal):
        v = Decimal(str(v))
    return v.quantize(CENT, rounding=ROUND_HALF_UP)


def money_sum(values: Iterable) -> Decimal:
    return money(sum((money(v) for v in values), ZERO))
