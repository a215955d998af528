"""
Pytest configuration and shared fixtures for pbvalidate tests.

Message types are not generated by protoc. They are described with
descriptor_pb2 protos, added to a private DescriptorPool, and turned into
message classes by the protobuf runtime, so the tests need no build step.

Key concepts:
    - `model` exposes the test message classes by simple name: model.Time
    - `registry` is a fresh TypeRegistry for every test
    - `make_value` builds a FieldValue for one field with the given options
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pytest
import structlog
from google.protobuf import (descriptor_pb2, descriptor_pool, message_factory,
                             struct_pb2, timestamp_pb2, wrappers_pb2)

from pbvalidate.config import LOGGER_NAME
from pbvalidate.engine import MessageValidator
from pbvalidate.field_value import FieldContext, FieldValue
from pbvalidate.registry import TypeRegistry
from pbvalidate.schema import FieldDeclaration, MessageSchema


# =============================================================================
# Test Schema Constants
# =============================================================================

PACKAGE = "acme.test"

MODEL_FILE = "acme/test/model.proto"
COMMANDS_FILE = "acme/test/commands.proto"

FDP = descriptor_pb2.FieldDescriptorProto

# Field specs are (name, number, type, label, type_name).
FieldSpec = Tuple[str, int, int, int, Optional[str]]


def _scalar(name: str, number: int, type_: int, repeated: bool = False) -> FieldSpec:
    label = FDP.LABEL_REPEATED if repeated else FDP.LABEL_OPTIONAL
    return (name, number, type_, label, None)


def _message(name: str, number: int, type_name: str, repeated: bool = False) -> FieldSpec:
    label = FDP.LABEL_REPEATED if repeated else FDP.LABEL_OPTIONAL
    return (name, number, FDP.TYPE_MESSAGE, label, type_name)


def _enum(name: str, number: int, type_name: str) -> FieldSpec:
    return (name, number, FDP.TYPE_ENUM, FDP.LABEL_OPTIONAL, type_name)


# =============================================================================
# Descriptor Building Helpers
# =============================================================================

def add_fields(message_proto: Any, fields: List[FieldSpec]) -> None:
    """Append field descriptors to a DescriptorProto."""
    for name, number, type_, label, type_name in fields:
        field_proto = message_proto.field.add()
        field_proto.name = name
        field_proto.number = number
        field_proto.type = type_
        field_proto.label = label
        if type_name:
            field_proto.type_name = type_name


def add_map(message_proto: Any, name: str, number: int, key_type: int,
            value_type: int, value_type_name: Optional[str] = None) -> None:
    """Add a map field together with its synthetic entry type."""
    entry_name = "".join(part.capitalize() for part in name.split("_")) + "Entry"
    entry = message_proto.nested_type.add()
    entry.name = entry_name
    entry.options.map_entry = True
    add_fields(entry, [
        ("key", 1, key_type, FDP.LABEL_OPTIONAL, None),
        ("value", 2, value_type, FDP.LABEL_OPTIONAL, value_type_name),
    ])
    add_fields(message_proto, [(
        name, number, FDP.TYPE_MESSAGE, FDP.LABEL_REPEATED,
        f".{PACKAGE}.{message_proto.name}.{entry_name}",
    )])


def add_message(file_proto: Any, name: str, fields: List[FieldSpec]) -> Any:
    message_proto = file_proto.message_type.add()
    message_proto.name = name
    add_fields(message_proto, fields)
    return message_proto


def _type(name: str) -> str:
    return f".{PACKAGE}.{name}"


def build_model_file() -> descriptor_pb2.FileDescriptorProto:
    """Describe the message types shared by the tests."""
    fp = descriptor_pb2.FileDescriptorProto()
    fp.name = MODEL_FILE
    fp.package = PACKAGE
    fp.syntax = "proto3"
    fp.dependency.append("google/protobuf/wrappers.proto")
    fp.dependency.append("google/protobuf/timestamp.proto")
    fp.dependency.append("google/protobuf/struct.proto")

    color = fp.enum_type.add()
    color.name = "Color"
    for number, value_name in enumerate(["COLOR_UNKNOWN", "RED", "GREEN"]):
        value = color.value.add()
        value.name = value_name
        value.number = number

    add_message(fp, "Time", [
        _scalar("hour", 1, FDP.TYPE_INT32),
        _scalar("minute", 2, FDP.TYPE_INT64),
    ])
    add_message(fp, "Scalars", [
        _scalar("i32", 1, FDP.TYPE_INT32),
        _scalar("i64", 2, FDP.TYPE_INT64),
        _scalar("f", 3, FDP.TYPE_FLOAT),
        _scalar("d", 4, FDP.TYPE_DOUBLE),
        _scalar("s", 5, FDP.TYPE_STRING),
        _scalar("b", 6, FDP.TYPE_BYTES),
        _scalar("flag", 7, FDP.TYPE_BOOL),
        _enum("color", 8, _type("Color")),
        _scalar("u32", 9, FDP.TYPE_UINT32),
        _scalar("s64", 10, FDP.TYPE_SINT64),
    ])
    collections = add_message(fp, "Collections", [
        _scalar("tags", 1, FDP.TYPE_STRING, repeated=True),
        _scalar("numbers", 3, FDP.TYPE_INT32, repeated=True),
        _message("times", 4, _type("Time"), repeated=True),
    ])
    add_map(collections, "scores", 2, FDP.TYPE_STRING, FDP.TYPE_INT32)
    add_map(collections, "schedule", 5, FDP.TYPE_STRING, FDP.TYPE_MESSAGE, _type("Time"))
    add_message(fp, "Meeting", [
        _scalar("title", 1, FDP.TYPE_STRING),
        _message("start", 2, _type("Time")),
        _message("end", 3, _type("Time")),
        _message("note", 4, ".google.protobuf.StringValue"),
        _message("created", 5, ".google.protobuf.Timestamp"),
    ])
    add_message(fp, "Document", [
        _scalar("title", 1, FDP.TYPE_STRING),
        _message("meta", 2, ".google.protobuf.Struct"),
    ])
    add_message(fp, "Contact", [
        _scalar("email", 1, FDP.TYPE_STRING),
        _scalar("phone", 2, FDP.TYPE_STRING),
        _scalar("age", 3, FDP.TYPE_INT32),
        _message("address", 4, _type("Address")),
    ])
    add_message(fp, "Address", [
        _scalar("city", 1, FDP.TYPE_STRING),
        _scalar("zip", 2, FDP.TYPE_STRING),
    ])
    add_message(fp, "Node", [
        _scalar("name", 1, FDP.TYPE_STRING),
        _message("child", 2, _type("Node")),
    ])
    add_message(fp, "User", [
        _scalar("id", 1, FDP.TYPE_STRING),
        _scalar("name", 2, FDP.TYPE_STRING),
    ])
    add_message(fp, "Tagged", [
        _scalar("ids", 1, FDP.TYPE_STRING, repeated=True),
    ])
    add_message(fp, "Phone", [
        _scalar("number", 1, FDP.TYPE_STRING),
        _scalar("extension", 2, FDP.TYPE_STRING),
    ])
    add_message(fp, "Company", [
        _scalar("name", 1, FDP.TYPE_STRING),
        _message("phone", 2, _type("Phone")),
        _message("fax", 3, _type("Phone")),
    ])
    add_message(fp, "PhoneRules", [
        _scalar("number", 1, FDP.TYPE_STRING),
    ])
    add_message(fp, "FaxRules", [
        _scalar("number", 1, FDP.TYPE_STRING),
    ])
    add_message(fp, "BadRules", [
        _scalar("digits", 1, FDP.TYPE_STRING),
    ])
    return fp


def build_commands_file() -> descriptor_pb2.FileDescriptorProto:
    fp = descriptor_pb2.FileDescriptorProto()
    fp.name = COMMANDS_FILE
    fp.package = PACKAGE
    fp.syntax = "proto3"
    add_message(fp, "CreateUser", [
        _scalar("user_id", 1, FDP.TYPE_STRING),
        _scalar("name", 2, FDP.TYPE_STRING),
    ])
    return fp


def build_file_set() -> descriptor_pb2.FileDescriptorSet:
    """
    Return every test file with its dependencies first, as written by
    `protoc --include_imports --descriptor_set_out`.
    """
    file_set = descriptor_pb2.FileDescriptorSet()
    for well_known in (wrappers_pb2, timestamp_pb2, struct_pb2):
        file_set.file.add().ParseFromString(well_known.DESCRIPTOR.serialized_pb)
    file_set.file.add().CopyFrom(build_model_file())
    file_set.file.add().CopyFrom(build_commands_file())
    return file_set


def build_pool() -> descriptor_pool.DescriptorPool:
    pool = descriptor_pool.DescriptorPool()
    for file_proto in build_file_set().file:
        pool.AddSerializedFile(file_proto.SerializeToString())
    return pool


class ProtoModel:
    """
    Message classes of the test pool, looked up by simple or full name.

    Example:
        >>> model.Time(hour=1).hour
        1
    """

    def __init__(self, pool: descriptor_pool.DescriptorPool):
        self.pool = pool
        self._classes: Dict[str, Any] = {}

    def descriptor(self, name: str) -> Any:
        full_name = name if "." in name else f"{PACKAGE}.{name}"
        return self.pool.FindMessageTypeByName(full_name)

    def message_class(self, name: str) -> Any:
        if name not in self._classes:
            self._classes[name] = message_factory.GetMessageClass(self.descriptor(name))
        return self._classes[name]

    def schema(self, name: str, fields: Optional[Mapping[str, Mapping[str, Any]]] = None,
               options: Optional[Mapping[str, Any]] = None) -> MessageSchema:
        return MessageSchema.from_descriptor(self.descriptor(name), fields, options)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self.message_class(name)
        except KeyError:
            raise AttributeError(name) from None


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def pool() -> descriptor_pool.DescriptorPool:
    """Return the descriptor pool holding the test message types."""
    return build_pool()


@pytest.fixture(scope="session")
def model(pool) -> ProtoModel:
    return ProtoModel(pool)


@pytest.fixture
def registry() -> TypeRegistry:
    """Provide an empty type registry."""
    return TypeRegistry()


@pytest.fixture
def validator(registry) -> MessageValidator:
    """
    Provide a validator with default settings over `registry`.

    Types must be registered before validating; the validator reads the
    registry on every call.
    """
    return MessageValidator(registry)


@pytest.fixture
def make_value(model):
    """
    Build a FieldValue for one field of a test message.

    Usage:
        value = make_value("Scalars", "s", "abc", {"pattern": "^a"})
    """
    def _make(type_name: str, field_name: str, raw: Any,
              options: Optional[Mapping[str, Any]] = None, **flags: bool) -> FieldValue:
        field_descriptor = model.descriptor(type_name).fields_by_name[field_name]
        declaration = FieldDeclaration.from_descriptor(field_descriptor, options, **flags)
        return FieldValue.of(raw, FieldContext.root().for_field(declaration))
    return _make


@pytest.fixture
def restore_logging():
    """Undo configure_logging() so later tests see the default setup."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    package_level = logging.getLogger(LOGGER_NAME).level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger(LOGGER_NAME).setLevel(package_level)
    structlog.reset_defaults()


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "options: marks tests of individual validating options"
    )
    config.addinivalue_line(
        "markers", "references: marks tests of the field reference language"
    )
    config.addinivalue_line(
        "markers", "integration: marks end-to-end validation tests"
    )
    config.addinivalue_line(
        "markers", "cli: marks tests of the command line front end"
    )
