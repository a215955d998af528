"""
Numeric comparison support for the `range`, `min`, `max` and `digits` options.

Values of every numeric field kind (int32, int64, float, double) and bounds
parsed from option text are wrapped into ComparableNumber, so that a single
interval implementation serves them all.
"""

import enum
import functools
import math
import re
import struct
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Tuple, Union

from .errors import RangeFormatError

Number = Union[int, float, Decimal]

_RANGE_BODY = re.compile(r'^\s*(?P<lower>[^,.\s][^,]*?)\s*(?:\.\.|,)\s*(?P<upper>[^,\s].*?)\s*$')
_FLOAT32 = struct.Struct('<f')


@functools.total_ordering
class ComparableNumber:
    """
    An order-comparable wrapper around a number of any numeric field kind.

    NaN is kept as such and compares unequal and unordered with everything;
    callers test is_nan before comparing.
    """

    __slots__ = ('_value', '_decimal')

    def __init__(self, value: Number):
        if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
            raise TypeError(f'Expected a number, got {type(value).__name__}.')
        self._value = value
        self._decimal = _to_decimal(value)

    @classmethod
    def parse(cls, text: Union[str, Number]) -> 'ComparableNumber':
        """
        Parse a bound written in an option.

        Args:
            text: A number, or its decimal text such as '10', '-0.5' or '1e3'

        Raises:
            RangeFormatError: If the text is not a number
        """
        if not isinstance(text, str):
            return cls(text)
        stripped = text.strip()
        try:
            if re.fullmatch(r'[+-]?\d+', stripped):
                return cls(int(stripped))
            return cls(Decimal(stripped))
        except InvalidOperation:
            raise RangeFormatError(f'`{text}` is not a number.') from None

    @classmethod
    def float32(cls, value: float) -> 'ComparableNumber':
        """
        Wrap a value read from a `float` field.

        The runtime hands float32 values out widened to double, so 0.1 reads
        as 0.10000000149011612. Such a value is compared by the shortest
        decimal text that round-trips through float32 instead.
        """
        number = cls(value)
        if math.isfinite(value):
            number._decimal = Decimal(_float32_text(value))
        return number

    @property
    def value(self) -> Number:
        return self._value

    @property
    def is_nan(self) -> bool:
        return self._decimal.is_nan()

    def as_decimal(self) -> Decimal:
        return self._decimal

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, ComparableNumber):
            return NotImplemented
        if self.is_nan or other.is_nan:
            return False
        return self._decimal == other._decimal

    def __lt__(self, other: Any) -> bool:
        if not isinstance(other, ComparableNumber):
            return NotImplemented
        if self.is_nan or other.is_nan:
            return False
        return self._decimal < other._decimal

    def __hash__(self) -> int:
        return hash(self._decimal)

    def __str__(self) -> str:
        return str(self._value)

    def __repr__(self) -> str:
        return f'ComparableNumber({self._value!r})'


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, float):
        if math.isnan(value):
            return Decimal('NaN')
        if math.isinf(value):
            return Decimal('Infinity') if value > 0 else Decimal('-Infinity')
        # repr() gives the shortest text that round-trips, so 0.1 stays 0.1.
        return Decimal(repr(value))
    return Decimal(value)


def _narrow(value: float) -> float:
    return _FLOAT32.unpack(_FLOAT32.pack(value))[0]


def _float32_text(value: float) -> str:
    narrowed = _narrow(value)
    for precision in range(1, 10):
        text = f'{narrowed:.{precision}g}'
        if _narrow(float(text)) == narrowed:
            return text
    return repr(narrowed)

class RangeType(enum.Enum):
    """
    The kind of an interval, selected by its bracket pair.

    A square bracket includes the edge value, a parenthesis excludes it.
    """
    CLOSED = '[]'
    OPEN = '()'
    OPEN_CLOSED = '(]'
    CLOSED_OPEN = '[)'

    @classmethod
    def parse(cls, value: str) -> 'RangeType':
        """
        Obtain the range type from the first and last characters of `value`.

        Raises:
            RangeFormatError: If the value is blank or the bracket pair is unknown
        """
        if value is None or not value.strip():
            raise RangeFormatError('Range definition must not be empty or blank.')
        trimmed = value.strip()
        edges = trimmed[0] + trimmed[-1]
        for range_type in cls:
            if range_type.value == edges:
                return range_type
        raise RangeFormatError(f'Could not create a range for edges `{edges}` in `{value}`.')

    @property
    def lower_closed(self) -> bool:
        return self.value[0] == '['

    @property
    def upper_closed(self) -> bool:
        return self.value[1] == ']'


@dataclass(frozen=True)
class Bound:
    """One edge of an interval."""
    value: ComparableNumber
    closed: bool

    def admits_from_below(self, number: ComparableNumber) -> bool:
        """True if `number` is above this lower bound."""
        return number >= self.value if self.closed else number > self.value

    def admits_from_above(self, number: ComparableNumber) -> bool:
        """True if `number` is below this upper bound."""
        return number <= self.value if self.closed else number < self.value


@dataclass(frozen=True)
class NumberRange:
    """
    An interval between two numbers.

    Example:
        >>> hours = NumberRange.parse('[0..23]')
        >>> hours.contains(ComparableNumber(24))
        False
    """
    lower: Bound
    upper: Bound

    @classmethod
    def parse(cls, definition: str) -> 'NumberRange':
        """
        Parse a range definition such as '[0..23]', '(0, 1]' or '[0,59]'.

        Both '..' and ',' separate the edge values.

        Raises:
            RangeFormatError: If the definition is malformed or the lower edge
                              is greater than the upper one
        """
        range_type = RangeType.parse(definition)
        body = definition.strip()[1:-1]
        match = _RANGE_BODY.match(body)
        if match is None:
            raise RangeFormatError(f'Range `{definition}` must have two edge values.')
        lower = ComparableNumber.parse(match.group('lower'))
        upper = ComparableNumber.parse(match.group('upper'))
        if lower.is_nan or upper.is_nan or upper < lower:
            raise RangeFormatError(
                f'Range `{definition}` has a lower edge greater than its upper edge.'
            )
        return cls(Bound(lower, range_type.lower_closed), Bound(upper, range_type.upper_closed))

    def contains(self, number: ComparableNumber) -> bool:
        if number.is_nan:
            return False
        return self.lower.admits_from_below(number) and self.upper.admits_from_above(number)

    def __str__(self) -> str:
        left = '[' if self.lower.closed else '('
        right = ']' if self.upper.closed else ')'
        return f'{left}{self.lower.value}..{self.upper.value}{right}'


def digit_counts(number: ComparableNumber) -> Tuple[int, int]:
    """
    Count the integral and fractional digits of a number.

    Example:
        >>> digit_counts(ComparableNumber(123.45))
        (3, 2)
    """
    decimal = number.as_decimal()
    if not decimal.is_finite():
        raise ValueError(f'Cannot count digits of {number}.')
    # Trailing zeros carry no digits: 1.50 has one fractional digit.
    _, digits, exponent = decimal.normalize().as_tuple()
    if exponent >= 0:
        integral = len(digits) + exponent
        fraction = 0
    else:
        fraction = -exponent
        integral = max(len(digits) - fraction, 0)
    return integral, fraction
