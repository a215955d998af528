"""
Alternative-required constraint.

The message option `required_field` names fields of which at least one must
be set:

    registry.register(Contact.DESCRIPTOR, options={'required_field': 'email | phone'})

When none of them is set the message gets exactly one violation, reported at
the path of the message itself.
"""

import logging
from typing import Any, List, Optional, Tuple

from .errors import RequiredFieldError
from .field_reference import FieldReference
from .field_value import FieldContext, FieldValue
from .schema import OPTION_REQUIRED_FIELD, FieldDeclaration, MessageSchema
from .violations import MSG_REQUIRED_FIELD, ConstraintViolation

logger = logging.getLogger(__name__)


class RequiredField:
    """
    The `required_field` option of one message type.

    Args:
        schema: The schema declaring the option
        definition: The option text; read from the schema when omitted

    Raises:
        TypeError: If schema is None
        FieldReferenceError: If an alternative cannot be parsed
        RequiredFieldError: If an alternative is not a plain field name of
                            the message or names a field it does not have
    """

    def __init__(self, schema: MessageSchema, definition: Optional[str] = None):
        if schema is None:
            raise TypeError('Message schema must not be None.')
        if definition is None:
            definition = schema.option(OPTION_REQUIRED_FIELD)
        if definition is None:
            raise RequiredFieldError(
                f'`{schema.full_name}` does not declare the `{OPTION_REQUIRED_FIELD}` option.'
            )
        self.schema = schema
        self.definition = definition.strip()
        self.fields = self._resolve(schema, FieldReference.all_from(definition))

    @classmethod
    def of(cls, schema: MessageSchema) -> Optional['RequiredField']:
        """Return the constraint declared by `schema`, or None if it declares none."""
        if schema.option(OPTION_REQUIRED_FIELD) is None:
            return None
        return cls(schema)

    @staticmethod
    def _resolve(schema: MessageSchema,
                 references: List[FieldReference]) -> Tuple[FieldDeclaration, ...]:
        fields = []
        for reference in references:
            if not reference.is_inner:
                raise RequiredFieldError(
                    f'`{reference}` in `{OPTION_REQUIRED_FIELD}` of `{schema.full_name}` '
                    f'must name a field of the same message.'
                )
            declaration = reference.find(schema)
            if declaration is None:
                raise RequiredFieldError(
                    f'`{schema.full_name}` has no field `{reference.field_name}` '
                    f'named in `{OPTION_REQUIRED_FIELD}`.'
                )
            fields.append(declaration)
        return tuple(fields)

    def validate(self, message: Any) -> List[ConstraintViolation]:
        """Check that at least one of the alternatives is set in `message`."""
        root = FieldContext.root()
        for declaration in self.fields:
            value = FieldValue.of(getattr(message, declaration.name), root.for_field(declaration))
            if not value.is_default():
                return []
        logger.debug('No alternative of `%s` is set in `%s`', self.definition, self.schema.full_name)
        return [ConstraintViolation(MSG_REQUIRED_FIELD, (self.definition,), ())]
