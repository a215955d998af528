#!/usr/bin/env python3
# kate: replace-tabs on; indent-width 4;

"""
Type registry.

The registry maps fully-qualified message type names to MessageSchema objects.
Schemas are derived from google.protobuf descriptors, with validation options
given as plain mappings:

    registry = TypeRegistry()
    registry.register(
        Time.DESCRIPTOR,
        fields={'hour': {'range': '[0..23]'}, 'minute': {'range': '[0..59]'}},
    )

Message types referenced by a registered type are derived without options so
that nested messages can be validated; registering such a type explicitly
later replaces the derived schema.

Rules can also be loaded in bulk from a mapping, typically read from JSON:

    {
        "acme.clock.Time": {
            "fields": {"hour": {"range": "[0..23]"}},
            "options": {"required_field": "hour | minute"}
        }
    }
"""

import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional, Set, Tuple

from .errors import ConfigurationError, ExternalConstraintError, UnknownTypeError
from .external import ExternalConstraint, split_paths
from .schema import OPTION_CONSTRAINT_FOR, MessageSchema

logger = logging.getLogger(__name__)

RULE_FIELDS = 'fields'
RULE_OPTIONS = 'options'


def _referenced_types(descriptor: Any) -> Iterator[Any]:
    """Yield the message types of the fields of `descriptor`, looking through map entries."""
    for field_descriptor in descriptor.fields:
        message_type = field_descriptor.message_type
        if message_type is None:
            continue
        if message_type.GetOptions().map_entry:
            message_type = message_type.fields_by_name['value'].message_type
            if message_type is None:
                continue
        yield message_type


class TypeRegistry:
    """Known message schemas and the external constraints bound to their fields."""

    def __init__(self):
        self._schemas: Dict[str, MessageSchema] = {}
        self._derived: Set[str] = set()
        self._constraints: Dict[str, ExternalConstraint] = {}

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register(self, descriptor: Any,
                 fields: Optional[Mapping[str, Mapping[str, Any]]] = None,
                 options: Optional[Mapping[str, Any]] = None) -> MessageSchema:
        """
        Derive a schema from a message descriptor and add it.

        Args:
            descriptor: A google.protobuf Descriptor
            fields: Validation options per field name
            options: Message-level options

        Returns:
            The registered schema

        Raises:
            TypeError: If descriptor is None
            ConfigurationError: If `fields` names unknown fields, or the
                                `constraint_for` option cannot be bound
        """
        if descriptor is None:
            raise TypeError('Message descriptor must not be None.')
        try:
            schema = MessageSchema.from_descriptor(descriptor, fields, options)
        except KeyError as e:
            raise ConfigurationError(e.args[0]) from None
        self.add(schema)
        return schema

    def add(self, schema: MessageSchema) -> None:
        """Add a schema, replacing any schema of the same type."""
        constraint = None
        constraint_for = schema.option(OPTION_CONSTRAINT_FOR)
        if constraint_for is not None:
            # A constraint that cannot be bound leaves the registry unchanged.
            constraint = ExternalConstraint(schema, constraint_for, self)
            self._check_conflicts(constraint)

        name = schema.full_name
        if name in self._schemas and name not in self._derived:
            logger.debug('Replacing the schema of `%s`', name)
        self._schemas[name] = schema
        self._derived.discard(name)
        if schema.descriptor is not None:
            self._derive_referenced(schema.descriptor)
        if constraint is not None:
            self._bind(constraint)

    def _derive_referenced(self, descriptor: Any) -> None:
        pending = list(_referenced_types(descriptor))
        while pending:
            message_type = pending.pop()
            if message_type.full_name in self._schemas:
                continue
            self._schemas[message_type.full_name] = MessageSchema.from_descriptor(message_type)
            self._derived.add(message_type.full_name)
            pending.extend(_referenced_types(message_type))

    def add_constraint(self, constraint: ExternalConstraint) -> None:
        """
        Bind an external constraint to its target fields.

        Raises:
            ExternalConstraintError: If another constraint is already bound to
                                     one of the targets
        """
        self._check_conflicts(constraint)
        self._bind(constraint)

    def _check_conflicts(self, constraint: ExternalConstraint) -> None:
        for target in constraint.targets:
            existing = self._constraints.get(target)
            if existing is not None and existing != constraint:
                raise ExternalConstraintError(
                    f'Field `{target}` is already constrained by '
                    f'`{existing.schema.full_name}`; `{constraint.schema.full_name}` '
                    f'cannot constrain it too.'
                )

    def _bind(self, constraint: ExternalConstraint) -> None:
        for target in constraint.targets:
            self._constraints[target] = constraint

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def find(self, type_name: str) -> Optional[MessageSchema]:
        return self._schemas.get(type_name)

    def get(self, type_name: str) -> MessageSchema:
        """
        Raises:
            UnknownTypeError: If the type is not registered
        """
        schema = self.find(type_name)
        if schema is None:
            raise UnknownTypeError(type_name)
        return schema

    def is_derived(self, type_name: str) -> bool:
        """Tell whether the schema of a type was derived rather than registered."""
        return type_name in self._derived

    def schema_of(self, message: Any) -> MessageSchema:
        """
        Return the schema of a message instance.

        Types that are not registered get a schema derived from the message's
        descriptor, without options. Such schemas are not stored.
        """
        if message is None:
            raise TypeError('Message must not be None.')
        descriptor = message.DESCRIPTOR
        schema = self.find(descriptor.full_name)
        if schema is None:
            return MessageSchema.from_descriptor(descriptor)
        return schema

    def external_constraint_for(self, field_full_name: str) -> Optional[ExternalConstraint]:
        return self._constraints.get(field_full_name)

    def external_constraints(self) -> Tuple[ExternalConstraint, ...]:
        return tuple(dict.fromkeys(self._constraints.values()))

    def __contains__(self, type_name: str) -> bool:
        return type_name in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)

    # -------------------------------------------------------------------------
    # Bulk loading
    # -------------------------------------------------------------------------

    def load_rules(self, pool: Any, rules: Mapping[str, Mapping[str, Any]]) -> List[MessageSchema]:
        """
        Register every type named in a rules mapping.

        Types declaring `constraint_for` are registered last so that their
        targets are known when the constraints are bound. Target types that
        have no rules of their own are derived from the pool.

        Args:
            pool: A google.protobuf DescriptorPool holding the types
            rules: Rules by full type name, see the module documentation

        Returns:
            The registered schemas, in registration order

        Raises:
            UnknownTypeError: If the pool does not hold a named type
            ConfigurationError: If a rule entry is malformed
        """
        plain: List[Tuple[str, Mapping[str, Any]]] = []
        constraints: List[Tuple[str, Mapping[str, Any]]] = []
        for type_name, rule in rules.items():
            unknown = set(rule) - {RULE_FIELDS, RULE_OPTIONS}
            if unknown:
                raise ConfigurationError(
                    f'Unknown key(s) in the rules of `{type_name}`: {", ".join(sorted(unknown))}'
                )
            if OPTION_CONSTRAINT_FOR in rule.get(RULE_OPTIONS, {}):
                constraints.append((type_name, rule))
            else:
                plain.append((type_name, rule))

        registered = []
        for type_name, rule in plain:
            registered.append(self._register_rule(pool, type_name, rule))
        for type_name, rule in constraints:
            for path in split_paths(rule[RULE_OPTIONS][OPTION_CONSTRAINT_FOR]):
                owner = path.rsplit('.', 1)[0] if '.' in path else ''
                if owner and owner not in self:
                    self.register(_find_message_type(pool, owner))
            registered.append(self._register_rule(pool, type_name, rule))
        logger.debug('Loaded rules for %d type(s)', len(registered))
        return registered

    def _register_rule(self, pool: Any, type_name: str, rule: Mapping[str, Any]) -> MessageSchema:
        return self.register(
            _find_message_type(pool, type_name),
            fields=rule.get(RULE_FIELDS),
            options=rule.get(RULE_OPTIONS),
        )


def _find_message_type(pool: Any, type_name: str) -> Any:
    try:
        return pool.FindMessageTypeByName(type_name)
    except KeyError:
        raise UnknownTypeError(type_name) from None
