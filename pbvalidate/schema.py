#!/usr/bin/env python3
# kate: replace-tabs on; indent-width 4;

"""
Static schema model used by the validators.

A FieldDeclaration is the immutable, validation-oriented view of a single
protobuf field: its name, value kind, cardinality, identifier conventions and
the validation options attached to it. A MessageSchema is the ordered list of
declarations for one message type plus the message-level options.

Both are normally derived from google.protobuf descriptors through
FieldDeclaration.from_descriptor() / MessageSchema.from_descriptor(), with the
options supplied as plain mappings:

    schema = MessageSchema.from_descriptor(
        Time.DESCRIPTOR,
        fields={'hour': {'range': '[0..23]'}},
    )
"""

import enum
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple

from google.protobuf.descriptor import FieldDescriptor

# =============================================================================
# MODULE CONSTANTS
# =============================================================================

# Types under this package are treated as primitives and never recursed into.
WELL_KNOWN_PACKAGE = 'google.protobuf.'

# Files whose name ends like this hold command messages.
COMMANDS_FILE_SUFFIX = 'commands.proto'

# Message options recognised on MessageSchema.options.
OPTION_ENTITY = 'entity'
OPTION_COMMAND = 'command'
OPTION_REQUIRED_FIELD = 'required_field'
OPTION_CONSTRAINT_FOR = 'constraint_for'

_EMPTY: Mapping[str, Any] = MappingProxyType({})


class FieldKind(enum.Enum):
    """The closed set of value categories a field may have."""
    MESSAGE = 'message'
    INT32 = 'int32'
    INT64 = 'int64'
    FLOAT = 'float'
    DOUBLE = 'double'
    STRING = 'string'
    BYTES = 'bytes'
    BOOL = 'bool'
    ENUM = 'enum'

    @property
    def is_numeric(self) -> bool:
        return self in NUMERIC_KINDS

    def __str__(self) -> str:
        return self.value


NUMERIC_KINDS = frozenset({FieldKind.INT32, FieldKind.INT64, FieldKind.FLOAT, FieldKind.DOUBLE})


class Cardinality(enum.Enum):
    SINGULAR = 'singular'
    REPEATED = 'repeated'
    MAP = 'map'


_CPP_TYPE_KINDS = {
    FieldDescriptor.CPPTYPE_INT32: FieldKind.INT32,
    FieldDescriptor.CPPTYPE_UINT32: FieldKind.INT32,
    FieldDescriptor.CPPTYPE_INT64: FieldKind.INT64,
    FieldDescriptor.CPPTYPE_UINT64: FieldKind.INT64,
    FieldDescriptor.CPPTYPE_FLOAT: FieldKind.FLOAT,
    FieldDescriptor.CPPTYPE_DOUBLE: FieldKind.DOUBLE,
    FieldDescriptor.CPPTYPE_BOOL: FieldKind.BOOL,
    FieldDescriptor.CPPTYPE_ENUM: FieldKind.ENUM,
    FieldDescriptor.CPPTYPE_STRING: FieldKind.STRING,
    FieldDescriptor.CPPTYPE_MESSAGE: FieldKind.MESSAGE,
}


def _freeze(options: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    if not options:
        return _EMPTY
    return MappingProxyType(dict(options))


def kind_of(field_descriptor: Any) -> FieldKind:
    """
    Map a protobuf FieldDescriptor to its FieldKind.

    Args:
        field_descriptor: A google.protobuf.descriptor.FieldDescriptor

    Returns:
        The FieldKind of the declared type. Bytes fields share the string C++
        type in protobuf and are told apart by their wire type.
    """
    if field_descriptor.type == FieldDescriptor.TYPE_BYTES:
        return FieldKind.BYTES
    return _CPP_TYPE_KINDS[field_descriptor.cpp_type]


def is_map_field(field_descriptor: Any) -> bool:
    entry = field_descriptor.message_type
    return (field_descriptor.is_repeated
            and entry is not None
            and entry.GetOptions().map_entry)


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass(frozen=True)
class FieldDeclaration:
    """
    Validation-oriented metadata of one message field.

    Attributes:
        name: The short field name, e.g. 'user_id'
        full_name: The field name qualified by its message, e.g. 'acme.User.user_id'
        kind: The declared value kind. For map fields this is MESSAGE (the
              synthetic entry type); the effective kind is value.kind.
        cardinality: Singular, repeated or map
        type_name: Full name of the message or enum type, if any
        is_entity_id: The field is the identifier of an entity state
        is_command_id: The field is the identifier of a command
        options: Validation options attached to the field, by option name
        key: Declaration of the map key (map fields only)
        value: Declaration of the map value (map fields only)
    """
    name: str
    full_name: str
    kind: FieldKind
    cardinality: Cardinality = Cardinality.SINGULAR
    type_name: Optional[str] = None
    is_entity_id: bool = False
    is_command_id: bool = False
    options: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)
    key: Optional['FieldDeclaration'] = None
    value: Optional['FieldDeclaration'] = None

    def __post_init__(self):
        object.__setattr__(self, 'options', _freeze(self.options))

    @property
    def is_map(self) -> bool:
        return self.cardinality is Cardinality.MAP

    @property
    def is_repeated(self) -> bool:
        """True for repeated fields that are not maps."""
        return self.cardinality is Cardinality.REPEATED

    @property
    def is_collection(self) -> bool:
        return self.cardinality is not Cardinality.SINGULAR

    @property
    def is_well_known(self) -> bool:
        return bool(self.type_name) and self.type_name.startswith(WELL_KNOWN_PACKAGE)

    def with_options(self, options: Mapping[str, Any]) -> 'FieldDeclaration':
        """Return a copy whose options are overridden, per option, by `options`."""
        merged = dict(self.options)
        merged.update(options)
        return replace(self, options=merged)

    @classmethod
    def from_descriptor(cls, field_descriptor: Any,
                        options: Optional[Mapping[str, Any]] = None,
                        is_entity_id: bool = False,
                        is_command_id: bool = False) -> 'FieldDeclaration':
        """
        Derive a declaration from a protobuf FieldDescriptor.

        Args:
            field_descriptor: The protobuf field descriptor
            options: Validation options declared for the field
            is_entity_id: Mark the field as an entity identifier
            is_command_id: Mark the field as a command identifier
        """
        kind = kind_of(field_descriptor)
        key = value = None
        type_name = None
        if is_map_field(field_descriptor):
            cardinality = Cardinality.MAP
            entry = field_descriptor.message_type
            key = cls.from_descriptor(entry.fields_by_name['key'])
            value = cls.from_descriptor(entry.fields_by_name['value'])
        elif field_descriptor.is_repeated:
            cardinality = Cardinality.REPEATED
        else:
            cardinality = Cardinality.SINGULAR

        if cardinality is not Cardinality.MAP:
            if field_descriptor.message_type is not None:
                type_name = field_descriptor.message_type.full_name
            elif field_descriptor.enum_type is not None:
                type_name = field_descriptor.enum_type.full_name

        return cls(
            name=field_descriptor.name,
            full_name=field_descriptor.full_name,
            kind=kind,
            cardinality=cardinality,
            type_name=type_name,
            is_entity_id=is_entity_id,
            is_command_id=is_command_id,
            options=options or {},
            key=key,
            value=value,
        )


@dataclass(frozen=True)
class MessageSchema:
    """
    Validation-oriented metadata of one message type.

    Attributes:
        full_name: Fully-qualified type name, e.g. 'acme.clock.Time'
        fields: Field declarations in declaration order
        options: Message-level options (required_field, constraint_for, ...)
        descriptor: The protobuf Descriptor this schema was derived from
    """
    full_name: str
    fields: Tuple[FieldDeclaration, ...] = ()
    options: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)
    descriptor: Any = field(default=None, compare=False, hash=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'fields', tuple(self.fields))
        object.__setattr__(self, 'options', _freeze(self.options))

    @property
    def name(self) -> str:
        """The simple name of the type, without package or outer types."""
        return self.full_name.rsplit('.', 1)[-1]

    def field(self, name: str) -> Optional[FieldDeclaration]:
        for declaration in self.fields:
            if declaration.name == name:
                return declaration
        return None

    def option(self, name: str, default: Any = None) -> Any:
        return self.options.get(name, default)

    @classmethod
    def from_descriptor(cls, descriptor: Any,
                        fields: Optional[Mapping[str, Mapping[str, Any]]] = None,
                        options: Optional[Mapping[str, Any]] = None) -> 'MessageSchema':
        """
        Derive a schema from a protobuf message Descriptor.

        The first field of a message is its identifier by convention: an
        entity identifier when the message option `entity` is set, a command
        identifier when the option `command` is set or the type lives in a
        file whose name ends with 'commands.proto'.

        Args:
            descriptor: The protobuf message descriptor
            fields: Validation options per field name
            options: Message-level options

        Raises:
            KeyError: If `fields` names a field the message does not have
        """
        fields = fields or {}
        options = options or {}
        unknown = set(fields) - set(descriptor.fields_by_name)
        if unknown:
            raise KeyError(
                f'Options declared for unknown field(s) of `{descriptor.full_name}`: '
                f'{", ".join(sorted(unknown))}'
            )

        entity = bool(options.get(OPTION_ENTITY))
        file_name = descriptor.file.name if descriptor.file is not None else ''
        command = bool(options.get(OPTION_COMMAND)) or file_name.endswith(COMMANDS_FILE_SUFFIX)

        declarations = []
        for index, field_descriptor in enumerate(descriptor.fields):
            first = index == 0
            declarations.append(FieldDeclaration.from_descriptor(
                field_descriptor,
                options=fields.get(field_descriptor.name),
                is_entity_id=first and entity,
                is_command_id=first and command,
            ))
        return cls(
            full_name=descriptor.full_name,
            fields=tuple(declarations),
            options=options,
            descriptor=descriptor,
        )

