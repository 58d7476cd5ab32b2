import random
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from shared.config.database import utcnow
from shared.schemas import CENT

TAX_RATE = Decimal("0.10")
FREE_SHIPPING_THRESHOLD = Decimal("100")
FLAT_SHIPPING = Decimal("10.00")


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    discount: Decimal
    total: Decimal


def _cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_totals(line_totals: Iterable[Decimal], discount: Decimal = Decimal("0")) -> OrderTotals:
    """Subtotal, 10% tax, flat shipping below the free-shipping threshold."""
    subtotal = _cents(sum(line_totals, Decimal("0")))
    tax = _cents(subtotal * TAX_RATE)
    shipping = Decimal("0.00") if subtotal > FREE_SHIPPING_THRESHOLD else FLAT_SHIPPING
    discount = _cents(discount)
    return OrderTotals(
        subtotal=subtotal,
        tax=tax,
        shipping=shipping,
        discount=discount,
        total=_cents(subtotal + tax + shipping - discount),
    )


def generate_order_number(today: Optional[date] = None, rng: random.Random = random) -> str:
    """``ORD-YYYYMMDD-NNNNNN``; uniqueness is checked by the caller."""
    today = today or utcnow().date()
    return f"ORD-{today:%Y%m%d}-{rng.randint(0, 999_999):06d}"
