# storefront/utils/money.py
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from functools import total_ordering
from typing import Union
from ..exceptions import InvalidAmount

CENT = Decimal("0.01")

Amount = Union[Decimal, int, str, float]


def _to_decimal(value: Amount, field: str = None) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise InvalidAmount(f"Invalid amount: {value!r}", field=field)
    try:
        # floats go through str so 0.1 stays 0.1
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmount(f"Invalid amount: {value!r}", field=field)
    if not amount.is_finite():
        raise InvalidAmount(f"Amount must be finite: {value!r}", field=field)
    if amount < 0:
        raise InvalidAmount(f"Amount must not be negative: {value!r}", field=field)
    return amount


def round2(value: Amount) -> Decimal:
    """Round half-up to 2 decimal places"""
    return _to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@total_ordering
class Money:
    """Non-negative currency amount held as integer cents"""

    __slots__ = ("cents",)

    def __init__(self, cents: int = 0):
        if isinstance(cents, bool) or not isinstance(cents, int) or cents < 0:
            raise InvalidAmount(f"Invalid cents value: {cents!r}")
        self.cents = cents

    @classmethod
    def from_value(cls, value: Amount, field: str = None) -> "Money":
        amount = _to_decimal(value, field=field).quantize(CENT, rounding=ROUND_HALF_UP)
        return cls(int(amount * 100))

    @classmethod
    def exact(cls, value: Amount, field: str = None) -> "Money":
        """Like from_value, but sub-cent amounts are refused instead of rounded"""
        amount = _to_decimal(value, field=field)
        if amount != amount.quantize(CENT, rounding=ROUND_HALF_UP):
            raise InvalidAmount(f"Amount has more than 2 decimal places: {value!r}", field=field)
        return cls(int(amount.quantize(CENT) * 100))

    @classmethod
    def zero(cls) -> "Money":
        return cls(0)

    def add(self, other: "Money") -> "Money":
        return Money(self.cents + other.cents)

    def multiply(self, quantity: int) -> "Money":
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            raise InvalidAmount(f"Invalid quantity: {quantity!r}")
        return Money(self.cents * quantity)

    def to_decimal(self) -> Decimal:
        return (Decimal(self.cents) / 100).quantize(CENT)

    def __add__(self, other: "Money") -> "Money":
        return self.add(other)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.cents == other.cents

    def __lt__(self, other: "Money") -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.cents < other.cents

    def __hash__(self) -> int:
        return hash(self.cents)

    def __repr__(self) -> str:
        return f"Money({self.to_decimal()})"

    def __str__(self) -> str:
        return str(self.to_decimal())
