#!/usr/bin/env python3
# kate: replace-tabs on; indent-width 4;

"""
Validating options.

A ValidatingOption describes one kind of constraint that schema authors attach
to a field, such as `required`, `pattern` or `range`. Evaluating an option
against a field value always follows the same three steps, implemented once in
ValidatingOption.validate_against():

1. If the option is not declared on the field, there is nothing to check.
2. If it is declared on a field of a kind it cannot validate (a `pattern` on
   an int32 field, `distinct` on a singular field), the schema itself is
   wrong and OptionInapplicableError is raised.
3. Otherwise the option's rule produces zero or more ConstraintViolations.

Option Values
-------------
Options are declared in FieldDeclaration.options as plain Python values. Simple
options take scalars; richer ones also accept a mapping (or the matching option
value class below):

    {'required': True, 'if_missing': 'Name must be given.'}
    {'pattern': '^[a-z]+$'}
    {'pattern': {'regex': '^[a-z]+$', 'case_insensitive': True}}
    {'range': '[0..23]'}
    {'min': 0}
    {'max': {'value': '1.5', 'exclusive': True}}
    {'digits': {'integer_max': 3, 'fraction_max': 2}}
    {'distinct': True}
"""

import abc
import logging
import re
from collections.abc import Mapping as MappingABC
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from .errors import ConfigurationError, OptionInapplicableError
from .field_value import FieldValue
from .number_range import ComparableNumber, NumberRange, digit_counts
from .schema import FieldKind
from .violations import (MSG_DIGITS, MSG_DISTINCT, MSG_MAX, MSG_MIN, MSG_PATTERN,
                         MSG_RANGE, MSG_REQUIRED, OR_EQUAL_TO, ConstraintViolation,
                         message_format)

logger = logging.getLogger(__name__)

# =============================================================================
# OPTION NAMES
# =============================================================================

OPTION_REQUIRED = 'required'
OPTION_IF_MISSING = 'if_missing'
OPTION_DISTINCT = 'distinct'
OPTION_PATTERN = 'pattern'
OPTION_RANGE = 'range'
OPTION_MIN = 'min'
OPTION_MAX = 'max'
OPTION_DIGITS = 'digits'


# =============================================================================
# OPTION VALUES
# =============================================================================

def _from_mapping(cls: Any, raw: Any, option_name: str) -> Any:
    try:
        return cls(**raw)
    except TypeError as e:
        raise ConfigurationError(f'Malformed value of the `{option_name}` option: {e}') from e


@dataclass(frozen=True)
class PatternOption:
    """
    Value of the `pattern` option.

    Attributes:
        regex: The regular expression a string must match
        msg_format: Custom violation message; receives the regex as `%s`
        case_insensitive: Match ignoring case
        multiline: `^` and `$` match at line boundaries
        dot_all: `.` matches newlines too
        partial_match: Search for the pattern instead of matching the whole string
    """
    regex: str
    msg_format: str = ''
    case_insensitive: bool = False
    multiline: bool = False
    dot_all: bool = False
    partial_match: bool = False

    @classmethod
    def coerce(cls, raw: Any) -> 'PatternOption':
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, str):
            return cls(regex=raw)
        if isinstance(raw, MappingABC):
            return _from_mapping(cls, raw, OPTION_PATTERN)
        raise ConfigurationError(f'Unsupported `pattern` option value: {raw!r}')

    @property
    def flags(self) -> int:
        flags = 0
        if self.case_insensitive:
            flags |= re.IGNORECASE
        if self.multiline:
            flags |= re.MULTILINE
        if self.dot_all:
            flags |= re.DOTALL
        return flags

    def compile(self) -> 're.Pattern':
        try:
            return re.compile(self.regex, self.flags)
        except re.error as e:
            raise ConfigurationError(f'Invalid regular expression `{self.regex}`: {e}') from e

    def matches(self, text: str) -> bool:
        pattern = self.compile()
        if self.partial_match:
            return pattern.search(text) is not None
        return pattern.fullmatch(text) is not None


@dataclass(frozen=True)
class BoundOption:
    """
    Value of the `min` and `max` options.

    Attributes:
        value: The bound, as decimal text
        exclusive: Exclude the bound itself from the admitted values
        msg_format: Custom violation message
    """
    value: str
    exclusive: bool = False
    msg_format: str = ''

    @classmethod
    def coerce(cls, raw: Any, option_name: str) -> 'BoundOption':
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, MappingABC):
            option = _from_mapping(cls, raw, option_name)
            return cls(str(option.value), option.exclusive, option.msg_format)
        if isinstance(raw, bool):
            raise ConfigurationError(f'Unsupported `{option_name}` option value: {raw!r}')
        if isinstance(raw, (str, int, float)):
            return cls(value=str(raw))
        raise ConfigurationError(f'Unsupported `{option_name}` option value: {raw!r}')

    def bound(self) -> ComparableNumber:
        return ComparableNumber.parse(self.value)


@dataclass(frozen=True)
class DigitsOption:
    """
    Value of the `digits` option.

    A bound below one leaves that part of the number unchecked.
    """
    integer_max: int = 0
    fraction_max: int = 0
    msg_format: str = ''

    @classmethod
    def coerce(cls, raw: Any) -> 'DigitsOption':
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, MappingABC):
            return _from_mapping(cls, raw, OPTION_DIGITS)
        raise ConfigurationError(f'Unsupported `digits` option value: {raw!r}')


# =============================================================================
# OPTION FRAMEWORK
# =============================================================================

class ValidatingOption(abc.ABC):
    """
    One kind of validation constraint.

    Subclasses set `name` to the key under which the option is declared and
    implement applicable_to() and apply(). Instances hold no per-validation
    state, so one instance can serve any number of concurrent validations.
    """

    name: str = ''

    def value_from(self, value: FieldValue) -> Optional[Any]:
        """Return the declared option value, or None if it is not declared."""
        return value.option(self.name)

    def present_at(self, value: FieldValue) -> bool:
        return self.value_from(value) is not None

    @abc.abstractmethod
    def applicable_to(self, value: FieldValue) -> bool:
        """Tell whether the option can validate fields of this kind and cardinality."""

    def on_inapplicable(self, value: FieldValue) -> OptionInapplicableError:
        return OptionInapplicableError(self.name, value.declaration.full_name, value.kind)

    @abc.abstractmethod
    def apply(self, value: FieldValue) -> List[ConstraintViolation]:
        """Check a value the option is present at and applicable to."""

    def validate_against(self, value: FieldValue) -> List[ConstraintViolation]:
        """
        Evaluate the option against a field value.

        Raises:
            OptionInapplicableError: If the option is declared on a field it
                                     cannot be applied to
        """
        if not self.present_at(value):
            return []
        if not self.applicable_to(value):
            logger.debug('Option `%s` declared on `%s` of kind %s', self.name,
                         value.declaration.full_name, value.kind)
            raise self.on_inapplicable(value)
        return self.apply(value)

    def __repr__(self) -> str:
        return f'{type(self).__name__}()'


def _violation(value: FieldValue, msg_format: str, params: Sequence[Any] = (),
               field_value: Any = None) -> ConstraintViolation:
    return ConstraintViolation(msg_format, tuple(params), value.field_path, field_value)


# =============================================================================
# BUILT-IN OPTIONS
# =============================================================================

class Required(ValidatingOption):
    """
    The field must be set.

    What "set" means depends on the field kind: a non-empty string or byte
    sequence, a non-default message, a non-zero enum number, a non-empty
    collection. Numeric and bool fields cannot tell zero from "not set", so
    the option never fires on them.

    Args:
        assume_required: Treat the field as required even without the option
    """

    name = OPTION_REQUIRED

    def __init__(self, assume_required: bool = False):
        self._assume_required = assume_required

    @property
    def assume_required(self) -> bool:
        return self._assume_required

    def present_at(self, value: FieldValue) -> bool:
        return self._assume_required or bool(self.value_from(value))

    def applicable_to(self, value: FieldValue) -> bool:
        return True

    def apply(self, value: FieldValue) -> List[ConstraintViolation]:
        if not value.is_default():
            return []
        msg = message_format(value.option(OPTION_IF_MISSING), MSG_REQUIRED)
        return [_violation(value, msg)]

    def __repr__(self) -> str:
        return f'Required(assume_required={self._assume_required})'


class Distinct(ValidatingOption):
    """A repeated or map field must not contain duplicate elements."""

    name = OPTION_DISTINCT

    def present_at(self, value: FieldValue) -> bool:
        return bool(self.value_from(value))

    def applicable_to(self, value: FieldValue) -> bool:
        return value.declaration.is_collection

    def apply(self, value: FieldValue) -> List[ConstraintViolation]:
        duplicates = find_duplicates(value.values)
        if not duplicates:
            return []
        return [_violation(value, MSG_DISTINCT, field_value=tuple(duplicates))]


def find_duplicates(values: Sequence[Any]) -> List[Any]:
    """
    Return each element that occurs more than once, in first-repeat order.

    Elements are compared with ==, since protobuf messages are not hashable.
    """
    seen: List[Any] = []
    duplicates: List[Any] = []
    for element in values:
        if element in seen:
            if element not in duplicates:
                duplicates.append(element)
        else:
            seen.append(element)
    return duplicates


class Pattern(ValidatingOption):
    """A string field must match a regular expression."""

    name = OPTION_PATTERN

    def applicable_to(self, value: FieldValue) -> bool:
        return value.kind is FieldKind.STRING

    def apply(self, value: FieldValue) -> List[ConstraintViolation]:
        option = PatternOption.coerce(self.value_from(value))
        msg = message_format(option, MSG_PATTERN)
        return [_violation(value, msg, (option.regex,), element)
                for element in value.values
                if not option.matches(element)]


class NumberOption(ValidatingOption):
    """Base for options that apply to every numeric field kind."""

    def applicable_to(self, value: FieldValue) -> bool:
        return value.kind.is_numeric


def _comparable(value: FieldValue, element: Any) -> ComparableNumber:
    if value.kind is FieldKind.FLOAT:
        return ComparableNumber.float32(element)
    return ComparableNumber(element)

class Range(NumberOption):
    """A number must lie within an interval such as '[0..23]' or '(0, 1]'."""

    name = OPTION_RANGE

    def apply(self, value: FieldValue) -> List[ConstraintViolation]:
        definition = self.value_from(value)
        if not isinstance(definition, str):
            raise ConfigurationError(f'Unsupported `range` option value: {definition!r}')
        number_range = NumberRange.parse(definition)
        return [_violation(value, MSG_RANGE, (definition.strip(),), element)
                for element in value.values
                if not number_range.contains(_comparable(value, element))]


class _BoundCheck(NumberOption):

    default_format = ''

    @abc.abstractmethod
    def admits(self, number: ComparableNumber, bound: ComparableNumber, exclusive: bool) -> bool:
        """Tell whether `number` satisfies the bound."""

    def apply(self, value: FieldValue) -> List[ConstraintViolation]:
        option = BoundOption.coerce(self.value_from(value), self.name)
        bound = option.bound()
        msg = message_format(option, self.default_format)
        params = ('' if option.exclusive else OR_EQUAL_TO, option.value)
        violations = []
        for element in value.values:
            number = _comparable(value, element)
            if number.is_nan or not self.admits(number, bound, option.exclusive):
                violations.append(_violation(value, msg, params, element))
        return violations


class Min(_BoundCheck):
    """A number must not be less than a bound (or not less than or equal, if exclusive)."""

    name = OPTION_MIN
    default_format = MSG_MIN

    def admits(self, number, bound, exclusive):
        return number > bound if exclusive else number >= bound


class Max(_BoundCheck):
    """A number must not be greater than a bound."""

    name = OPTION_MAX
    default_format = MSG_MAX

    def admits(self, number, bound, exclusive):
        return number < bound if exclusive else number <= bound


class Digits(NumberOption):
    """Bounds the count of integral and fractional digits of a number."""

    name = OPTION_DIGITS

    def apply(self, value: FieldValue) -> List[ConstraintViolation]:
        option = DigitsOption.coerce(self.value_from(value))
        msg = message_format(option, MSG_DIGITS)
        params = (option.integer_max, option.fraction_max)
        violations = []
        for element in value.values:
            number = _comparable(value, element)
            if not number.as_decimal().is_finite():
                violations.append(_violation(value, msg, params, element))
                continue
            integral, fraction = digit_counts(number)
            too_long = option.integer_max >= 1 and integral > option.integer_max
            too_precise = option.fraction_max >= 1 and fraction > option.fraction_max
            if too_long or too_precise:
                violations.append(_violation(value, msg, params, element))
        return violations
