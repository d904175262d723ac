"""
Money Module

Exact decimal money type used for every monetary quantity in the ledger.
NEVER uses float for monetary values. Arithmetic keeps full precision; rounding
to two places only happens when a value is formatted for display.
"""

from decimal import Decimal, ROUND_HALF_UP, ROUND_FLOOR, InvalidOperation, getcontext
from dataclasses import dataclass
from fractions import Fraction
from typing import Union
import re

from .errors import InvalidAmount

# Set global decimal context for financial precision
getcontext().prec = 28  # High precision for financial calculations

DISPLAY_PRECISION = 2

Factor = Union[int, Decimal, Fraction]


def _to_decimal(value: Factor) -> Decimal:
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Binary floating point is not allowed for money: {value!r}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, Fraction):
        return Decimal(value.numerator) / Decimal(value.denominator)
    raise TypeError(f"Unsupported factor type: {type(value).__name__}")


@dataclass(frozen=True)
class Money:
    """
    Immutable money representation.
    All monetary values MUST use this class.
    """
    amount: Decimal

    def __post_init__(self):
        if isinstance(self.amount, (float, bool)):
            raise TypeError(f"Binary floating point is not allowed for money: {self.amount!r}")
        if not isinstance(self.amount, Decimal):
            if isinstance(self.amount, int):
                object.__setattr__(self, 'amount', Decimal(self.amount))
            elif isinstance(self.amount, str):
                object.__setattr__(self, 'amount', decimal_from_string(self.amount))
            else:
                raise TypeError(f"Unsupported amount type: {type(self.amount).__name__}")
        if not self.amount.is_finite():
            raise InvalidAmount("Amount must be a finite number", details={"value": str(self.amount)})

    @classmethod
    def zero(cls) -> 'Money':
        return cls(Decimal('0'))

    @classmethod
    def parse(cls, value: str) -> 'Money':
        """Parse a decimal string such as '1,250.50'; raises InvalidAmount"""
        return cls(decimal_from_string(value))

    def __add__(self, other: 'Money') -> 'Money':
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.amount + other.amount)

    def __sub__(self, other: 'Money') -> 'Money':
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.amount - other.amount)

    def __mul__(self, multiplier: Factor) -> 'Money':
        return Money(self.amount * _to_decimal(multiplier))

    __rmul__ = __mul__

    def __truediv__(self, divisor: Factor) -> 'Money':
        divisor = _to_decimal(divisor)
        if divisor == 0:
            raise ZeroDivisionError("Cannot divide money by zero")
        return Money(self.amount / divisor)

    def __neg__(self) -> 'Money':
        return Money(-self.amount)

    def __abs__(self) -> 'Money':
        return Money(abs(self.amount))

    def __eq__(self, other) -> bool:
        if not isinstance(other, Money):
            return False
        return self.amount == other.amount

    def __hash__(self) -> int:
        return hash(self.amount)

    def __lt__(self, other: 'Money') -> bool:
        return self.amount < other.amount

    def __le__(self, other: 'Money') -> bool:
        return self.amount <= other.amount

    def __gt__(self, other: 'Money') -> bool:
        return self.amount > other.amount

    def __ge__(self, other: 'Money') -> bool:
        return self.amount >= other.amount

    def floor_div(self, other: 'Money') -> int:
        """Number of whole `other` amounts contained in this amount (rounds toward floor)"""
        if other.amount <= 0:
            raise ZeroDivisionError("Divisor must be a positive amount")
        return int((self.amount / other.amount).to_integral_value(rounding=ROUND_FLOOR))

    def clamp_to_zero(self) -> 'Money':
        """Return this amount, or zero if it is negative"""
        if self.amount < 0:
            return Money.zero()
        return self

    def is_zero(self) -> bool:
        """Check if amount is exactly zero"""
        return self.amount == Decimal('0')

    def is_positive(self) -> bool:
        """Check if amount is positive"""
        return self.amount > Decimal('0')

    def is_negative(self) -> bool:
        """Check if amount is negative"""
        return self.amount < Decimal('0')

    def quantized(self) -> Decimal:
        """Display value rounded half-up to two places"""
        return self.amount.quantize(Decimal('0.1') ** DISPLAY_PRECISION, rounding=ROUND_HALF_UP)

    def to_string(self) -> str:
        """Format for display"""
        return f"{self.quantized():,.{DISPLAY_PRECISION}f}"

    def to_storage(self) -> str:
        """Full precision string for persistence"""
        return str(self.amount)

    def __str__(self) -> str:
        return self.to_string()


def decimal_from_string(value: str) -> Decimal:
    """
    Safely convert string to Decimal, handling common formats

    Args:
        value: String representation of number

    Returns:
        Decimal value

    Raises:
        InvalidAmount: If string cannot be converted to valid Decimal
    """
    if not value or not isinstance(value, str):
        raise InvalidAmount("Amount must be a non-empty number", details={"value": repr(value)})

    stripped = value.strip()
    # Remove currency symbols and whitespace
    clean_value = re.sub(r'[\s$€£¥₹]', '', stripped)
    if not clean_value or not re.search(r'\d', clean_value):
        raise InvalidAmount(f"'{value}' is not a valid amount", details={"value": value})

    # Handle comma as decimal separator (European format)
    if ',' in clean_value and '.' in clean_value:
        # Both comma and dot - assume comma is thousands separator
        clean_value = clean_value.replace(',', '')
    elif ',' in clean_value and clean_value.count(',') == 1:
        # Single comma - could be decimal separator
        parts = clean_value.split(',')
        if len(parts[1]) <= 2:  # Likely decimal separator
            clean_value = clean_value.replace(',', '.')
        else:  # Likely thousands separator
            clean_value = clean_value.replace(',', '')
    elif ',' in clean_value:
        clean_value = clean_value.replace(',', '')

    try:
        result = Decimal(clean_value)
    except InvalidOperation:
        raise InvalidAmount(f"'{value}' is not a valid amount", details={"value": value})
    if not result.is_finite():
        raise InvalidAmount(f"'{value}' is not a valid amount", details={"value": value})
    return result


def parse_positive_amount(value, label: str = "Payment amount") -> Money:
    """Coerce user input into Money and require it to be greater than zero"""
    if isinstance(value, Money):
        money = value
    elif isinstance(value, str):
        money = Money.parse(value)
    elif isinstance(value, (Decimal, int)) and not isinstance(value, bool):
        money = Money(Decimal(value))
    else:
        raise InvalidAmount(f"{label} must be a decimal number", details={"value": repr(value)})
    if not money.is_positive():
        raise InvalidAmount(f"{label} must be greater than zero",
                            details={"value": money.to_storage()})
    return money


def parse_non_negative_amount(value, label: str = "Amount") -> Money:
    """Coerce user input into Money, allowing zero; None counts as zero"""
    if value is None:
        return Money.zero()
    if isinstance(value, Money):
        money = value
    elif isinstance(value, str):
        money = Money.parse(value)
    elif isinstance(value, (Decimal, int)) and not isinstance(value, bool):
        money = Money(Decimal(value))
    else:
        raise InvalidAmount(f"{label} must be a decimal number", details={"value": repr(value)})
    if money.is_negative():
        raise InvalidAmount(f"{label} cannot be negative", details={"value": money.to_storage()})
    return money
