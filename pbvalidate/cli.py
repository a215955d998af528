#!/usr/bin/env python3
# kate: replace-tabs on; indent-width 4;

"""
Command line front end.

Validates one message against rules given as JSON:

    protoc --include_imports --descriptor_set_out=clock.pb clock.proto
    pbvalidate --descriptor-set clock.pb --type acme.clock.Time \\
               --rules rules.json --json time.json

The descriptor set must contain every file the message type depends on,
which `--include_imports` takes care of. Exit status is 0 when the message
is valid, 1 when violations were printed and 2 when the input or the rules
could not be used.
"""

import argparse
import json
import logging
import sys
from typing import Any, List, Optional

from google.protobuf import descriptor_pb2, descriptor_pool, json_format, message_factory
from google.protobuf.message import DecodeError

from .config import ValidatorConfig, configure_logging
from .engine import MessageValidator
from .errors import PbValidateError, UnknownTypeError
from .registry import TypeRegistry

logger = logging.getLogger(__name__)

EXIT_VALID = 0
EXIT_VIOLATIONS = 1
EXIT_ERROR = 2


def load_descriptor_pool(path: str) -> Any:
    """
    Build a DescriptorPool from a serialized FileDescriptorSet.

    Raises:
        OSError: If the file cannot be read
        DecodeError: If the file is not a FileDescriptorSet
        TypeError: If a file's dependencies are missing from the set
    """
    with open(path, 'rb') as f:
        file_set = descriptor_pb2.FileDescriptorSet.FromString(f.read())
    pool = descriptor_pool.DescriptorPool()
    for file_proto in file_set.file:
        logger.debug('Adding `%s` to the descriptor pool', file_proto.name)
        pool.AddSerializedFile(file_proto.SerializeToString())
    return pool


def load_message(pool: Any, type_name: str, json_path: Optional[str] = None,
                 binary_path: Optional[str] = None) -> Any:
    """Decode a message of `type_name` from a JSON or a binary file."""
    try:
        descriptor = pool.FindMessageTypeByName(type_name)
    except KeyError:
        raise UnknownTypeError(type_name) from None
    message = message_factory.GetMessageClass(descriptor)()
    if json_path is not None:
        with open(json_path, 'r') as f:
            json_format.Parse(f.read(), message, descriptor_pool=pool)
    else:
        with open(binary_path, 'rb') as f:
            message.ParseFromString(f.read())
    return message


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='pbvalidate',
        description='Validate a protobuf message against declarative field rules'
    )
    parser.add_argument('--descriptor-set', required=True,
                        help='Serialized FileDescriptorSet holding the message type')
    parser.add_argument('--type', dest='type_name', required=True,
                        help='Fully-qualified message type, e.g. acme.clock.Time')
    parser.add_argument('--rules', help='JSON file with validation rules by type name')
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('--json', dest='json_path', help='Message in protobuf JSON format')
    source.add_argument('--binary', dest='binary_path', help='Message in binary wire format')
    parser.add_argument('--max-depth', type=int, default=None,
                        help='Maximum depth of nested message validation')
    parser.add_argument('--format', choices=['text', 'json'], default='text',
                        help='Output format of the violations')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    parser.add_argument('--log-json', action='store_true', help='Log JSON lines to stderr')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose, log_json=args.log_json)

    try:
        config = ValidatorConfig() if args.max_depth is None else ValidatorConfig(max_depth=args.max_depth)
        pool = load_descriptor_pool(args.descriptor_set)
        registry = TypeRegistry()
        if args.rules:
            with open(args.rules, 'r') as f:
                registry.load_rules(pool, json.load(f))
        message = load_message(pool, args.type_name, args.json_path, args.binary_path)
        violations = MessageValidator(registry, config).validate(message)
    except (PbValidateError, OSError, ValueError, TypeError,
            DecodeError, json_format.ParseError) as e:
        # json.JSONDecodeError and pydantic's ValidationError are ValueErrors.
        print(f'Error: {e}', file=sys.stderr)
        return EXIT_ERROR

    if args.format == 'json':
        print(json.dumps([v.to_dict() for v in violations], indent=2))
    else:
        for violation in violations:
            print(violation)

    return EXIT_VIOLATIONS if violations else EXIT_VALID


if __name__ == '__main__':
    sys.exit(main())
