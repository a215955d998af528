"""
External constraints.

A rule type declares field options against its own shape and binds them, with
the message option `constraint_for`, to message fields of other types:

    message PhoneRules {
        string number = 1;   // options: {'pattern': '^\\+[0-9]+$'}
    }
    // options: {'constraint_for': 'acme.Contact.phone, acme.Company.phone'}

When a Contact is validated, its `phone` field holds a message whose type has
a `number` field. The options declared on PhoneRules.number then override,
option by option, those of the nested message's `number` field. Messages of
the same type reached through other fields are validated with their own
options.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, Tuple, Union

from .errors import ExternalConstraintError
from .schema import FieldKind, MessageSchema

logger = logging.getLogger(__name__)

PATH_SEPARATOR = ','


def split_paths(paths: Union[str, Iterable[str]]) -> Tuple[str, ...]:
    """Split a `constraint_for` value into its target paths."""
    if isinstance(paths, str):
        paths = paths.split(PATH_SEPARATOR)
    return tuple(path.strip() for path in paths)


class ExternalConstraint:
    """
    A rule type bound to one or more target fields.

    Args:
        schema: The schema of the rule type
        target_paths: Target field paths such as 'acme.Contact.phone', either
                      as a sequence or as one comma-separated string
        registry: The TypeRegistry holding the target types

    Raises:
        TypeError: If schema or target_paths is None
        ExternalConstraintError: If a path cannot be resolved to a message
                                 field whose type has every field of the rule type
    """

    def __init__(self, schema: MessageSchema, target_paths: Union[str, Iterable[str]],
                 registry: Any):
        if schema is None:
            raise TypeError('Rule type schema must not be None.')
        if target_paths is None:
            raise TypeError('Target paths must not be None.')
        self.schema = schema
        self.target_paths = split_paths(target_paths)
        if not self.target_paths:
            raise ExternalConstraintError(f'`{schema.full_name}` declares no target fields.')
        self._targets = tuple(self._resolve(path, registry) for path in self.target_paths)
        logger.debug('Bound rule type `%s` to %s', schema.full_name, ', '.join(self._targets))

    def _resolve(self, path: str, registry: Any) -> str:
        if not path:
            raise ExternalConstraintError(
                f'`{self.schema.full_name}` declares an empty constraint target.'
            )
        if '.' not in path:
            raise ExternalConstraintError(
                f'Constraint target `{path}` must have the form `package.Type.field`.'
            )
        type_name, field_name = path.rsplit('.', 1)
        owner = registry.find(type_name)
        if owner is None:
            raise ExternalConstraintError(f'Constraint target type `{type_name}` is not registered.')
        target = owner.field(field_name)
        if target is None:
            raise ExternalConstraintError(f'`{type_name}` has no field `{field_name}`.')
        if target.kind is not FieldKind.MESSAGE or target.is_map:
            raise ExternalConstraintError(
                f'Constraint target `{path}` must be a message field, not {target.kind}.'
            )

        target_type = registry.find(target.type_name)
        if target_type is None:
            raise ExternalConstraintError(f'Type `{target.type_name}` of `{path}` is not registered.')
        missing = [d.name for d in self.schema.fields if target_type.field(d.name) is None]
        if missing:
            raise ExternalConstraintError(
                f'`{target.type_name}` lacks field(s) {", ".join(missing)} '
                f'of the rule type `{self.schema.full_name}`.'
            )
        return target.full_name

    @property
    def targets(self) -> Tuple[str, ...]:
        """Full names of the target fields."""
        return self._targets

    def apply_to(self, schema: MessageSchema) -> MessageSchema:
        """
        Return `schema` with the rule type's field options applied.

        Options are overridden one by one; options the rule type does not
        declare keep their value from `schema`.
        """
        overrides: Dict[str, Any] = {d.name: d.options for d in self.schema.fields if d.options}
        fields = tuple(
            declaration.with_options(overrides[declaration.name])
            if declaration.name in overrides else declaration
            for declaration in schema.fields
        )
        return replace(schema, fields=fields)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, ExternalConstraint):
            return NotImplemented
        return (self.schema.full_name, self.target_paths) == (other.schema.full_name, other.target_paths)

    def __hash__(self) -> int:
        return hash((self.schema.full_name, self.target_paths))

    def __repr__(self) -> str:
        return f'ExternalConstraint({self.schema.full_name} -> {", ".join(self.target_paths)})'
