#!/usr/bin/env python3
# kate: replace-tabs on; indent-width 4;

"""
Field reference mini-language.

Options that bind a rule to fields by name use short textual references:

    user_id                   inner reference, a field of the same message
    *.user_id                 wildcard reference, a field of any type
    context.user_id           context reference, a field of the enclosing group
    UserCreated.user_id       typed reference
    acme.UserCreated.user_id  typed reference with a qualified type name

Several alternatives can be combined with a pipe:

    *.user_id | context.user_id

Parsing is strict. Empty segments, a bare `*`, and the suffix wildcard form
(`*Event.user_id`) are rejected with a FieldReferenceError subclass.
"""

import enum
import re
from dataclasses import dataclass
from typing import List, Optional

from .errors import (EmptyReferenceError, MalformedReferenceError,
                     ReferenceTypeMismatchError, WildcardSuffixError)
from .schema import FieldDeclaration, MessageSchema

# =============================================================================
# MODULE CONSTANTS
# =============================================================================

WILDCARD = '*'
CONTEXT = 'context'
TYPE_SEPARATOR = '.'
PIPE_SEPARATOR = '|'

_IDENTIFIER = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


class ReferenceKind(enum.Enum):
    WILDCARD = 'wildcard'
    INNER = 'inner'
    CONTEXT = 'context'
    TYPED = 'typed'


def _check_text(value: str, what: str) -> str:
    if value is None:
        raise TypeError(f'{what} must not be None.')
    if not isinstance(value, str):
        raise TypeError(f'{what} must be a string, got {type(value).__name__}.')
    if not value.strip():
        raise EmptyReferenceError(f'{what} must not be empty or blank.')
    return value.strip()


@dataclass(frozen=True)
class FieldReference:
    """
    A parsed reference to a field.

    Two references are equal when they were parsed into the same kind, type
    name and field name; surrounding whitespace in the source text is not
    significant.

    Attributes:
        kind: What the reference points at
        type_name: '*' for wildcards, 'context' for context references, the
                   referenced type for typed references, '' for inner ones
        field_name: The name of the referenced field
    """
    kind: ReferenceKind
    type_name: str
    field_name: str

    # -------------------------------------------------------------------------
    # Parsing
    # -------------------------------------------------------------------------

    @classmethod
    def parse(cls, value: str) -> 'FieldReference':
        """
        Parse a single reference.

        Args:
            value: Reference text such as 'UserCreated.user_id'

        Returns:
            The parsed reference

        Raises:
            TypeError: If value is None or not a string
            EmptyReferenceError: If value is empty or blank
            MalformedReferenceError: If a segment is empty or not an identifier
            WildcardSuffixError: If the type part is a suffix wildcard
        """
        text = _check_text(value, 'Field reference')
        if TYPE_SEPARATOR not in text:
            return cls(ReferenceKind.INNER, '', _field_name(text, text))

        segments = text.split(TYPE_SEPARATOR)
        if any(not segment.strip() for segment in segments):
            raise MalformedReferenceError(
                f'Field reference `{text}` has an empty type or field segment.'
            )
        type_name, field_name = text.rsplit(TYPE_SEPARATOR, 1)
        field_name = _field_name(field_name, text)

        if cls.is_wildcard_type(type_name):
            return cls(ReferenceKind.WILDCARD, WILDCARD, field_name)
        for segment in segments[:-1]:
            if not _IDENTIFIER.match(segment):
                raise MalformedReferenceError(
                    f'`{segment}` is not a valid type name segment in `{text}`.'
                )
        if type_name == CONTEXT:
            return cls(ReferenceKind.CONTEXT, CONTEXT, field_name)
        return cls(ReferenceKind.TYPED, type_name, field_name)

    @classmethod
    def all_from(cls, value: str) -> List['FieldReference']:
        """
        Parse pipe-separated alternatives, keeping their order.

        Example:
            >>> [str(r) for r in FieldReference.all_from('*.id | context.id')]
            ['*.id', 'context.id']
        """
        text = _check_text(value, 'Field reference list')
        return [cls.parse(part) for part in text.split(PIPE_SEPARATOR)]

    @staticmethod
    def is_wildcard_type(type_reference: str) -> bool:
        """
        Tell whether a type reference stands for all types.

        Only the single symbol '*' is a wildcard. A suffix form such as
        '*Event' is rejected rather than treated as a pattern.

        Raises:
            EmptyReferenceError: If the type reference is empty or blank
            WildcardSuffixError: If the type reference is a suffix wildcard
        """
        text = _check_text(type_reference, 'Type reference')
        if text == WILDCARD:
            return True
        if WILDCARD in text:
            raise WildcardSuffixError(
                f'Type reference `{text}` uses an unsupported wildcard form. '
                f'Only `{WILDCARD}` may be used to refer to all types.'
            )
        return False

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def is_wildcard(self) -> bool:
        return self.kind is ReferenceKind.WILDCARD

    @property
    def is_inner(self) -> bool:
        return self.kind is ReferenceKind.INNER

    @property
    def is_context(self) -> bool:
        return self.kind is ReferenceKind.CONTEXT

    @property
    def is_typed(self) -> bool:
        return self.kind is ReferenceKind.TYPED

    def matches_type(self, schema: MessageSchema) -> bool:
        """
        Tell whether a typed reference names the type of `schema`.

        Both the full type name and any dotted suffix of it match, so
        'Timestamp' and 'google.protobuf.Timestamp' refer to the same type.
        References of other kinds match any type.
        """
        if not self.is_typed:
            return True
        full_name = schema.full_name
        return (full_name == self.type_name
                or full_name.endswith(TYPE_SEPARATOR + self.type_name))

    def find(self, schema: MessageSchema) -> Optional[FieldDeclaration]:
        """
        Resolve the reference against a message schema.

        Returns:
            The referenced field declaration, or None if the message has no
            field with the referenced name

        Raises:
            TypeError: If schema is None
            ReferenceTypeMismatchError: If a typed reference names another type
        """
        if schema is None:
            raise TypeError('Message schema must not be None.')
        if not self.matches_type(schema):
            raise ReferenceTypeMismatchError(
                f'Field reference `{self}` cannot be resolved against '
                f'the message type `{schema.full_name}`.'
            )
        return schema.field(self.field_name)

    def __str__(self) -> str:
        if self.is_inner:
            return self.field_name
        return f'{self.type_name}{TYPE_SEPARATOR}{self.field_name}'


def _field_name(value: str, text: str) -> str:
    name = value.strip()
    if WILDCARD in name:
        raise MalformedReferenceError(
            f'Field reference `{text}` must name a field; a wildcard is only '
            f'allowed as a type reference followed by `{TYPE_SEPARATOR}`.'
        )
    if not _IDENTIFIER.match(name):
        raise MalformedReferenceError(f'`{name}` is not a valid field name in `{text}`.')
    return name
