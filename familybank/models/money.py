"""
Money - fixed-precision currency value.

Amounts are held as an integer number of cents. Anything coming in from the
outside (strings, Decimals, floats) is rounded to two decimal places exactly
once, on ingress, with ROUND_HALF_UP (half away from zero for Decimal):

    Money.parse("10.005")  -> 10.01
    Money.parse("-10.005") -> -10.01

After that every operation is integer arithmetic, so there is no binary
floating-point drift no matter how many times values are added up.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Union

from pydantic_core import core_schema

from familybank.exceptions import InvalidAmount


CENT = Decimal("0.01")

RawAmount = Union["Money", Decimal, int, float, str]


def round2(value: Union[Decimal, int, float, str]) -> Decimal:
    """
    Round a finite value to cents with ROUND_HALF_UP.

    Idempotent: round2(round2(x)) == round2(x).

    Raises:
        InvalidAmount: If the value is not a finite number
    """
    decimal_value = _to_decimal(value)
    try:
        return decimal_value.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidAmount(f"Amount is out of range: {value!r}")


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise InvalidAmount(f"Invalid amount: {value!r}")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        # str() gives the shortest repr, so 0.1 becomes Decimal("0.1")
        result = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = value.strip().replace(",", "")
        if cleaned.startswith("-$"):
            cleaned = "-" + cleaned[2:]
        elif cleaned.startswith("$"):
            cleaned = cleaned[1:]
        if not cleaned:
            raise InvalidAmount("Amount is required")
        try:
            result = Decimal(cleaned)
        except InvalidOperation:
            raise InvalidAmount(f"Invalid amount: {value!r}")
    else:
        raise InvalidAmount(f"Invalid amount: {value!r}")

    if not result.is_finite():
        raise InvalidAmount(f"Amount must be a finite number, got {value!r}")
    return result


@dataclass(frozen=True, order=True)
class Money:
    """
    Currency amount in whole cents.

    Immutable and hashable. Ordering compares the cent values.
    Serializes to JSON (and to storage rows) as the display string.
    """

    cents: int

    def __post_init__(self) -> None:
        if isinstance(self.cents, bool) or not isinstance(self.cents, int):
            raise TypeError(f"Money.cents must be int, got {type(self.cents).__name__}")

    @classmethod
    def zero(cls) -> "Money":
        return cls(0)

    @classmethod
    def parse(cls, raw: RawAmount, require_positive: bool = False) -> "Money":
        """
        Parse an external amount into Money.

        Accepts Money, int, Decimal, float, strings such as " $1,234.50 ",
        and the ``{"cents": n}`` mapping a python-mode model dump produces.

        Args:
            raw: The amount to parse
            require_positive: Reject amounts that are <= 0 after rounding

        Raises:
            InvalidAmount: If the amount is unparseable, non-finite, or
                not positive when positivity is required
        """
        if isinstance(raw, Money):
            money = raw
        elif isinstance(raw, Mapping):
            cents = raw.get("cents")
            if isinstance(cents, bool) or not isinstance(cents, int) or len(raw) != 1:
                raise InvalidAmount(f"Invalid amount: {raw!r}")
            money = cls(cents)
        else:
            money = cls(int(round2(raw) * 100))

        if require_positive and money.cents <= 0:
            raise InvalidAmount(
                f"Amount must be greater than zero, got {money.to_display_string()}"
            )
        return money

    @property
    def is_positive(self) -> bool:
        return self.cents > 0

    @property
    def is_negative(self) -> bool:
        return self.cents < 0

    @property
    def is_zero(self) -> bool:
        return self.cents == 0

    def add(self, other: "Money") -> "Money":
        return Money(self.cents + other.cents)

    def subtract(self, other: "Money") -> "Money":
        return Money(self.cents - other.cents)

    def negate(self) -> "Money":
        return Money(-self.cents)

    def to_decimal(self) -> Decimal:
        return (Decimal(self.cents) / 100).quantize(CENT)

    def to_display_string(self) -> str:
        """Format with exactly two decimal digits, e.g. "-12.05"."""
        sign = "-" if self.cents < 0 else ""
        whole, fraction = divmod(abs(self.cents), 100)
        return f"{sign}{whole}.{fraction:02d}"

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return self.add(other)

    def __sub__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return self.subtract(other)

    def __neg__(self) -> "Money":
        return self.negate()

    def __abs__(self) -> "Money":
        return Money(abs(self.cents))

    def __mul__(self, factor: int) -> "Money":
        if isinstance(factor, bool) or not isinstance(factor, int):
            return NotImplemented
        return Money(self.cents * factor)

    __rmul__ = __mul__

    def __str__(self) -> str:
        return self.to_display_string()

    def __repr__(self) -> str:
        return f"Money({self.to_display_string()!r})"

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls.parse,
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda value: value.to_display_string(),
                when_used="json",
            ),
        )


def total(amounts) -> Money:
    """Sum an iterable of Money, starting from zero."""
    return Money(sum(amount.cents for amount in amounts))
