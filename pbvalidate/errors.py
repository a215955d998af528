"""
Error types raised by pbvalidate.

Two kinds of problems exist. Data problems (a field value fails a rule) are
never raised; they are returned as ConstraintViolation values. Everything in
this module signals a problem with the schema or its options, i.e. something
that retrying with the same input cannot fix.
"""

from typing import Any, Optional, Sequence


class PbValidateError(Exception):
    """Root of all pbvalidate exceptions."""


class ConfigurationError(PbValidateError):
    """The schema or its validation options are malformed."""


class UnknownTypeError(ConfigurationError):
    """A message type could not be found in the type registry."""

    def __init__(self, type_name: str):
        super().__init__(f'Message type `{type_name}` is not known to the registry.')
        self.type_name = type_name


class UnsupportedFieldKindError(ConfigurationError):
    """A field kind has no validator."""


class OptionInapplicableError(ConfigurationError):
    """
    An option is declared on a field whose kind it cannot validate.

    For example, a `pattern` on an int32 field or `distinct` on a singular
    field.
    """

    def __init__(self, option_name: str, field_name: str, kind: Any):
        super().__init__(
            f'The option `{option_name}` is not applicable to the field '
            f'`{field_name}` of kind {kind}.'
        )
        self.option_name = option_name
        self.field_name = field_name
        self.kind = kind


class RangeFormatError(ConfigurationError, ValueError):
    """A `range` option value could not be parsed."""


class FieldReferenceError(ConfigurationError, ValueError):
    """Base class for field reference parsing and resolution failures."""


class EmptyReferenceError(FieldReferenceError):
    """A field reference (or a type reference) is empty or blank."""


class MalformedReferenceError(FieldReferenceError):
    """A field reference has an empty segment or an illegal character."""


class WildcardSuffixError(FieldReferenceError):
    """A wildcard is used in a suffix form such as `*Event.user_id`."""


class ReferenceTypeMismatchError(FieldReferenceError):
    """A typed reference is resolved against a message of another type."""


class ExternalConstraintError(ConfigurationError):
    """An external constraint cannot be bound to its target fields."""


class RequiredFieldError(ConfigurationError):
    """A `required_field` message option refers to fields incorrectly."""


class MaxDepthExceededError(ConfigurationError):
    """Nested message validation went deeper than the configured maximum."""

    def __init__(self, max_depth: int, field_path: Sequence[str]):
        path = '.'.join(field_path)
        super().__init__(
            f'Nested message validation exceeded the maximum depth of {max_depth} '
            f'at `{path}`. The schema may be recursive.'
        )
        self.max_depth = max_depth
        self.field_path = tuple(field_path)


class InvalidMessageError(PbValidateError):
    """
    Raised by MessageValidator.check_valid() when a message has violations.

    Attributes:
        violations: The ConstraintViolation list that made the message invalid
    """

    def __init__(self, violations: Sequence[Any], type_name: Optional[str] = None):
        count = len(violations)
        subject = f'Message `{type_name}`' if type_name else 'Message'
        super().__init__(f'{subject} has {count} constraint violation(s).')
        self.violations = list(violations)
