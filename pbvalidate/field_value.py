"""
Normalized view of one field's value.

Singular, repeated and map fields are validated through the same shape: an
ordered tuple of element values. Map fields contribute their values only; map
keys are primitives and are never validated.
"""

from dataclasses import dataclass
from typing import Any, Optional, Tuple

from .schema import FieldDeclaration, FieldKind


@dataclass(frozen=True)
class FieldContext:
    """
    Where a field sits relative to the message being validated.

    Attributes:
        field_path: Field names from the message root to this field
        declaration: The declaration of the field itself
    """
    field_path: Tuple[str, ...] = ()
    declaration: Optional[FieldDeclaration] = None

    @classmethod
    def root(cls) -> 'FieldContext':
        return cls()

    def for_field(self, declaration: FieldDeclaration) -> 'FieldContext':
        return FieldContext(self.field_path + (declaration.name,), declaration)


class FieldValue:
    """
    A field value to validate, along with its declaration and context.

    Use FieldValue.of() to create instances.
    """

    def __init__(self, value: Any, context: FieldContext, declaration: FieldDeclaration):
        self._value = value
        self._context = context
        self._declaration = declaration
        self._values = _as_tuple(value, declaration)

    @classmethod
    def of(cls, raw_value: Any, context: FieldContext) -> 'FieldValue':
        """
        Create a value for the field described by `context`.

        Args:
            raw_value: The value read from the message, e.g. getattr(msg, name)
            context: The context carrying the field declaration and path

        Raises:
            TypeError: If either argument is None or the context has no declaration
        """
        if raw_value is None:
            raise TypeError('Field value must not be None.')
        if context is None or context.declaration is None:
            raise TypeError('Field context with a declaration is required.')
        return cls(raw_value, context, context.declaration)

    @property
    def raw(self) -> Any:
        return self._value

    @property
    def declaration(self) -> FieldDeclaration:
        return self._declaration

    @property
    def context(self) -> FieldContext:
        return self._context

    @property
    def field_path(self) -> Tuple[str, ...]:
        return self._context.field_path

    @property
    def kind(self) -> FieldKind:
        """
        The kind of the elements of values.

        Map fields report the kind of their values.
        """
        if self._declaration.is_map:
            return self._declaration.value.kind
        return self._declaration.kind

    @property
    def values(self) -> Tuple[Any, ...]:
        return self._values

    def option(self, name: str, default: Any = None) -> Any:
        """Return the value of an explicitly declared option, or `default`."""
        return self._declaration.options.get(name, default)

    def has_option(self, name: str) -> bool:
        return name in self._declaration.options

    def is_default(self) -> bool:
        """
        Tell whether the field is not set, without producing violations.

        The check is the one the validator for this field kind uses for
        `required`: empty strings and bytes, default message instances, enum
        number zero and empty collections count as not set.
        """
        from .field_validators import not_set_checker
        return not_set_checker(self.kind).field_value_not_set(self)

    def __repr__(self) -> str:
        return f'FieldValue({self._declaration.full_name}={self._values!r})'


def _as_tuple(value: Any, declaration: FieldDeclaration) -> Tuple[Any, ...]:
    if declaration.is_map:
        return tuple(value[key] for key in value)
    if declaration.is_repeated:
        return tuple(value)
    return (value,)
