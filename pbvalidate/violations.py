"""
Constraint violations and their default message formats.

A ConstraintViolation is immutable. Violations found in a nested message are
lifted to the enclosing message with prefixed(), so the list returned for a
message is the concatenation of its own violations and those of every child,
each carrying the full path from the validated root.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Sequence, Tuple

# =============================================================================
# DEFAULT MESSAGE FORMATS
# =============================================================================
# Formats use printf-style placeholders filled from ConstraintViolation.params.

MSG_REQUIRED = 'A value must be set.'
MSG_ENTITY_ID_REPEATED = 'Entity ID field `%s` must not be a repeated field.'
MSG_PATTERN = 'The string must match the regular expression `%s`.'
MSG_DISTINCT = 'Values must be distinct.'
MSG_RANGE = 'The number must be within the range %s.'
MSG_MIN = 'The number must be greater than %s%s.'
MSG_MAX = 'The number must be less than %s%s.'
MSG_DIGITS = 'The number is out of bounds, expected: <%s max digits>.<%s max digits>.'
MSG_REQUIRED_FIELD = 'None of the fields match the `required_field` definition: %s.'

OR_EQUAL_TO = 'or equal to '


@dataclass(frozen=True)
class ConstraintViolation:
    """
    A single failed constraint.

    Attributes:
        msg_format: printf-style message template
        params: Ordered template parameters, rendered as strings
        field_path: Field names from the validated message down to the offending field
        field_value: The offending value, when there is a single one. Not
                     part of equality, since protobuf messages are not hashable.
    """
    msg_format: str
    params: Tuple[str, ...] = ()
    field_path: Tuple[str, ...] = ()
    field_value: Any = field(default=None, compare=False, hash=False)

    def __post_init__(self):
        object.__setattr__(self, 'params', tuple(str(p) for p in self.params))
        object.__setattr__(self, 'field_path', tuple(self.field_path))

    @property
    def message(self) -> str:
        """The message format with its parameters substituted."""
        if not self.params:
            return self.msg_format
        try:
            return self.msg_format % self.params
        except (TypeError, ValueError):
            # Custom formats may carry fewer placeholders than parameters.
            return self.msg_format

    @property
    def path(self) -> str:
        return '.'.join(self.field_path)

    def prefixed(self, prefix: Sequence[str]) -> 'ConstraintViolation':
        """Return a copy whose field path starts with `prefix`."""
        if not prefix:
            return self
        return ConstraintViolation(
            msg_format=self.msg_format,
            params=self.params,
            field_path=tuple(prefix) + self.field_path,
            field_value=self.field_value,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'msg_format': self.msg_format,
            'params': list(self.params),
            'field_path': list(self.field_path),
            'message': self.message,
        }

    def __str__(self) -> str:
        if self.field_path:
            return f'{self.path}: {self.message}'
        return self.message


def prefix_all(violations: Iterable[ConstraintViolation],
               prefix: Sequence[str]) -> List[ConstraintViolation]:
    return [v.prefixed(prefix) for v in violations]


def message_format(custom: Any, default: str) -> str:
    """
    Choose between a user-defined message format and the default one.

    Args:
        custom: A custom format, or an option value carrying `msg_format`
        default: The format used when no custom one is given
    """
    if isinstance(custom, str):
        text = custom
    else:
        text = getattr(custom, 'msg_format', None)
        if text is None and isinstance(custom, dict):
            text = custom.get('msg_format')
    return text or default
