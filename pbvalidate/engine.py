#!/usr/bin/env python3
# kate: replace-tabs on; indent-width 4;

"""
Message validation entry point.

    registry = TypeRegistry()
    registry.register(Time.DESCRIPTOR, fields={'hour': {'range': '[0..23]'}})
    validator = MessageValidator(registry)

    for violation in validator.validate(Time(hour=24)):
        print(violation)        # hour: The number must be within the range [0..23].

validate() returns the violations of a message and of every set nested
message, each with the path of the offending field from the validated
message. It raises only for problems with the schema or its options, never
for invalid data.
"""

import functools
import logging
from typing import Any, List, Optional, Tuple

from .alternative import RequiredField
from .config import ValidatorConfig
from .errors import ConfigurationError, InvalidMessageError, MaxDepthExceededError
from .field_validators import create_validator
from .field_value import FieldContext, FieldValue
from .option_registry import OptionRegistry
from .registry import TypeRegistry
from .schema import MessageSchema
from .violations import ConstraintViolation

logger = logging.getLogger(__name__)


class MessageValidator:
    """
    Validates protobuf messages against the schemas of a TypeRegistry.

    The options of `options` (the built-in ones when omitted) are copied
    when the validator is created; registering more options afterwards does
    not affect it. A validator holds no per-call state and can be shared.

    Args:
        registry: The registry holding the schemas
        config: Validation settings, defaults when omitted
        options: The option registry to take options from
    """

    def __init__(self, registry: TypeRegistry, config: Optional[ValidatorConfig] = None,
                 options: Optional[OptionRegistry] = None):
        if registry is None:
            raise TypeError('Type registry must not be None.')
        self._registry = registry
        self._config = config or ValidatorConfig()
        self._options = (options or OptionRegistry.default()).snapshot()

    @property
    def config(self) -> ValidatorConfig:
        return self._config

    @property
    def registry(self) -> TypeRegistry:
        return self._registry

    def validate(self, message: Any) -> List[ConstraintViolation]:
        """
        Validate a message.

        Args:
            message: A google.protobuf message instance

        Returns:
            All violations, own fields first, then message-level constraints

        Raises:
            TypeError: If message is None
            ConfigurationError: If the schema or its options are malformed
        """
        if message is None:
            raise TypeError('Message must not be None.')
        type_name = message.DESCRIPTOR.full_name
        try:
            violations = self._validate_message(message, self._registry.schema_of(message), 0, ())
        except ConfigurationError as e:
            if self._config.log_configuration_errors:
                logger.error('Cannot validate `%s`: %s', type_name, e)
            raise
        logger.debug('Validated `%s`: %d violation(s)', type_name, len(violations))
        return violations

    def is_valid(self, message: Any) -> bool:
        return not self.validate(message)

    def check_valid(self, message: Any) -> None:
        """
        Raises:
            InvalidMessageError: If the message has violations
        """
        violations = self.validate(message)
        if violations:
            raise InvalidMessageError(violations, message.DESCRIPTOR.full_name)

    # -------------------------------------------------------------------------
    # Recursion
    # -------------------------------------------------------------------------

    def _validate_message(self, message: Any, schema: MessageSchema, depth: int,
                          path: Tuple[str, ...]) -> List[ConstraintViolation]:
        validate_nested = functools.partial(self._validate_nested, depth=depth, path=path)
        root = FieldContext.root()

        violations: List[ConstraintViolation] = []
        for declaration in schema.fields:
            value = FieldValue.of(getattr(message, declaration.name), root.for_field(declaration))
            validator = create_validator(
                value,
                self._options,
                validate_nested=validate_nested,
                recurse_into_defaults=self._config.recurse_into_defaults,
            )
            violations.extend(validator.validate())

        required_field = RequiredField.of(schema)
        if required_field is not None:
            violations.extend(required_field.validate(message))
        return violations

    def _validate_nested(self, nested: Any, field_value: FieldValue, depth: int,
                         path: Tuple[str, ...]) -> List[ConstraintViolation]:
        field_path = path + field_value.field_path
        if depth + 1 > self._config.max_depth:
            raise MaxDepthExceededError(self._config.max_depth, field_path)

        schema = self._registry.schema_of(nested)
        constraint = self._registry.external_constraint_for(field_value.declaration.full_name)
        if constraint is not None:
            schema = constraint.apply_to(schema)
        return self._validate_message(nested, schema, depth + 1, field_path)
