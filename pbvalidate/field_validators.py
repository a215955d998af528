#!/usr/bin/env python3
# kate: replace-tabs on; indent-width 4;

"""
Per-kind field validators.

Every FieldKind has exactly one FieldValidator subclass. A validator knows
what "not set" means for its kind and runs the checks of a single field in a
fixed order:

1. Identifier conventions. An entity identifier (unless `required` is
   explicitly False) and a command identifier must be set and must not be
   repeated.
2. The kind's own rules. Message fields validate their nested messages;
   numeric and bool fields warn about an ineffective `required`.
3. The common options (Distinct, Required) and the options registered for
   the kind. An option registered only for other kinds and declared on the
   field raises OptionInapplicableError.

The returned list is the concatenation of the three steps. Data problems are
returned as violations; only configuration problems raise.
"""

import logging
from types import MappingProxyType
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple, Type

from .errors import UnsupportedFieldKindError
from .field_value import FieldValue
from .options import OPTION_IF_MISSING, OPTION_REQUIRED, Distinct, Required, ValidatingOption
from .schema import FieldDeclaration, FieldKind
from .violations import (MSG_ENTITY_ID_REPEATED, MSG_REQUIRED, ConstraintViolation,
                         message_format, prefix_all)

logger = logging.getLogger(__name__)

# Validates one nested message reached through a field and returns the
# violations with paths relative to that nested message.
NestedValidator = Callable[[Any, FieldValue], List[ConstraintViolation]]

KindOptions = Mapping[FieldKind, Sequence[ValidatingOption]]

_DISTINCT = Distinct()
_REQUIRED = Required()
_ASSUMED_REQUIRED = Required(assume_required=True)


def _split_options(kind: FieldKind, options: KindOptions
                   ) -> Tuple[Tuple[ValidatingOption, ...], Tuple[ValidatingOption, ...]]:
    """Separate the options of `kind` from those registered only for other kinds."""
    own = tuple(options.get(kind, ()))
    names = {option.name for option in own}
    foreign = []
    for kind_options in options.values():
        for option in kind_options:
            if option.name not in names:
                names.add(option.name)
                foreign.append(option)
    return own, tuple(foreign)


class FieldValidator:
    """
    Validates the value of a single field.

    Args:
        value: The field value to validate
        options: Options per field kind, usually an OptionRegistry snapshot.
                 Options registered only for other kinds must not be
                 declared on the field.
        assume_required: Treat the field as required even without the option
    """

    def __init__(self, value: FieldValue, options: Optional[KindOptions] = None,
                 assume_required: bool = False):
        if value is None:
            raise TypeError('Field value must not be None.')
        self.value = value
        self._options, self._foreign_options = _split_options(value.kind, options or {})
        self._assume_required = assume_required

    @property
    def declaration(self) -> FieldDeclaration:
        return self.value.declaration

    # -------------------------------------------------------------------------
    # "Not set" semantics
    # -------------------------------------------------------------------------

    @classmethod
    def is_not_set(cls, element: Any) -> bool:
        """Tell whether a single element holds the "not set" value of the kind."""
        raise NotImplementedError

    @classmethod
    def field_value_not_set(cls, value: FieldValue) -> bool:
        """
        Tell whether a whole field is not set.

        A collection is not set when it is empty. A singular field is not set
        when its element is.
        """
        if value.declaration.is_collection:
            return not value.values
        return all(cls.is_not_set(element) for element in value.values)

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate(self) -> List[ConstraintViolation]:
        violations: List[ConstraintViolation] = []
        required_id = self.is_required_id()
        if required_id:
            violations.extend(self._validate_id())
        violations.extend(self.validate_own_rules())
        violations.extend(self._validate_options(skip_required=required_id))
        return violations

    def validate_own_rules(self) -> List[ConstraintViolation]:
        """Checks specific to the field kind. None by default."""
        return []

    def is_required_id(self) -> bool:
        declaration = self.declaration
        if declaration.is_command_id:
            return True
        return declaration.is_entity_id and self.value.option(OPTION_REQUIRED) is not False

    def _validate_id(self) -> List[ConstraintViolation]:
        declaration = self.declaration
        if declaration.is_collection:
            return [ConstraintViolation(MSG_ENTITY_ID_REPEATED, (declaration.full_name,),
                                        self.value.field_path)]
        if self.field_value_not_set(self.value):
            msg = message_format(self.value.option(OPTION_IF_MISSING), MSG_REQUIRED)
            return [ConstraintViolation(msg, (), self.value.field_path)]
        return []

    def _validate_options(self, skip_required: bool) -> List[ConstraintViolation]:
        for option in self._foreign_options:
            if option.present_at(self.value):
                raise option.on_inapplicable(self.value)

        options: List[ValidatingOption] = [_DISTINCT]
        if not skip_required:
            options.append(_ASSUMED_REQUIRED if self._assume_required else _REQUIRED)
        options.extend(self._options)

        violations: List[ConstraintViolation] = []
        for option in options:
            violations.extend(option.validate_against(self.value))
        return violations

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.declaration.full_name})'


class MessageFieldValidator(FieldValidator):
    """
    Validates message-typed fields by validating the nested messages.

    Nested violations are prefixed with the path of this field. Types under
    the `google.protobuf` package are treated as primitives. Elements holding
    the default instance are skipped unless `recurse_into_defaults` is set.
    """

    def __init__(self, value: FieldValue, options: Optional[KindOptions] = None,
                 assume_required: bool = False,
                 validate_nested: Optional[NestedValidator] = None,
                 recurse_into_defaults: bool = False):
        super().__init__(value, options, assume_required)
        self._validate_nested = validate_nested
        self._recurse_into_defaults = recurse_into_defaults

    @classmethod
    def is_not_set(cls, element: Any) -> bool:
        return element.ByteSize() == 0

    def validate_own_rules(self) -> List[ConstraintViolation]:
        declaration = self.declaration
        element_declaration = declaration.value if declaration.is_map else declaration
        if self._validate_nested is None or element_declaration.is_well_known:
            return []

        violations: List[ConstraintViolation] = []
        for element in self.value.values:
            if not self._recurse_into_defaults and self.is_not_set(element):
                continue
            nested = self._validate_nested(element, self.value)
            violations.extend(prefix_all(nested, self.value.field_path))
        return violations


class _UnsettableFieldValidator(FieldValidator):
    """Base for kinds whose zero value cannot be told apart from "not set"."""

    @classmethod
    def is_not_set(cls, element: Any) -> bool:
        return False

    def validate_own_rules(self) -> List[ConstraintViolation]:
        if self.value.option(OPTION_REQUIRED) and not self.declaration.is_collection:
            logger.warning('The `required` option has no effect on the %s field `%s`',
                           self.value.kind, self.declaration.full_name)
        return []


class NumberFieldValidator(_UnsettableFieldValidator):
    """Base for the numeric kinds. Numeric options come from the option registry."""


class IntegerFieldValidator(NumberFieldValidator):
    """int32, uint32, sint32, fixed32 and sfixed32 fields."""


class LongFieldValidator(NumberFieldValidator):
    """int64, uint64, sint64, fixed64 and sfixed64 fields."""


class FloatFieldValidator(NumberFieldValidator):
    pass


class DoubleFieldValidator(NumberFieldValidator):
    pass


class BooleanFieldValidator(_UnsettableFieldValidator):
    pass


class StringFieldValidator(FieldValidator):

    @classmethod
    def is_not_set(cls, element: Any) -> bool:
        return len(element) == 0


class BytesFieldValidator(FieldValidator):

    @classmethod
    def is_not_set(cls, element: Any) -> bool:
        return len(element) == 0


class EnumFieldValidator(FieldValidator):
    """Enum values arrive as numbers; number zero means "not set"."""

    @classmethod
    def is_not_set(cls, element: Any) -> bool:
        return element == 0


# =============================================================================
# DISPATCH
# =============================================================================

VALIDATORS: Mapping[FieldKind, Type[FieldValidator]] = MappingProxyType({
    FieldKind.MESSAGE: MessageFieldValidator,
    FieldKind.INT32: IntegerFieldValidator,
    FieldKind.INT64: LongFieldValidator,
    FieldKind.FLOAT: FloatFieldValidator,
    FieldKind.DOUBLE: DoubleFieldValidator,
    FieldKind.STRING: StringFieldValidator,
    FieldKind.BYTES: BytesFieldValidator,
    FieldKind.BOOL: BooleanFieldValidator,
    FieldKind.ENUM: EnumFieldValidator,
})


def validator_class(kind: FieldKind) -> Type[FieldValidator]:
    """
    Look up the validator for a field kind.

    Raises:
        UnsupportedFieldKindError: If no validator handles `kind`
    """
    try:
        return VALIDATORS[kind]
    except KeyError:
        raise UnsupportedFieldKindError(f'No validator for the field kind {kind!r}.') from None


def not_set_checker(kind: FieldKind) -> Type[FieldValidator]:
    """Return the class whose field_value_not_set() defines "not set" for `kind`."""
    return validator_class(kind)


def create_validator(value: FieldValue,
                     options: Optional[KindOptions] = None,
                     assume_required: bool = False,
                     validate_nested: Optional[NestedValidator] = None,
                     recurse_into_defaults: bool = False) -> FieldValidator:
    """
    Create the validator for a field value.

    Args:
        value: The value to validate
        options: Options per field kind, usually an OptionRegistry snapshot
        assume_required: Treat the field as required even without the option
        validate_nested: Callback validating nested messages of message fields
        recurse_into_defaults: Also validate nested messages holding defaults

    Raises:
        UnsupportedFieldKindError: If the value's kind has no validator
    """
    cls = validator_class(value.kind)
    if issubclass(cls, MessageFieldValidator):
        return cls(value, options, assume_required,
                   validate_nested=validate_nested,
                   recurse_into_defaults=recurse_into_defaults)
    return cls(value, options, assume_required)
