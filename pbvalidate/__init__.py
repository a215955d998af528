"""
pbvalidate - declarative validation of protobuf messages.

Field and message options declared next to a schema are checked against
message instances, producing a list of constraint violations.
"""

from .config import ValidatorConfig, configure_logging
from .engine import MessageValidator
from .errors import (ConfigurationError, InvalidMessageError, MaxDepthExceededError,
                     OptionInapplicableError, PbValidateError)
from .field_reference import FieldReference, ReferenceKind
from .option_registry import OptionProvider, OptionRegistry
from .options import ValidatingOption
from .registry import TypeRegistry
from .schema import Cardinality, FieldDeclaration, FieldKind, MessageSchema
from .violations import ConstraintViolation

__version__ = '0.1.0'

__all__ = [
    'Cardinality',
    'ConfigurationError',
    'ConstraintViolation',
    'FieldDeclaration',
    'FieldKind',
    'FieldReference',
    'InvalidMessageError',
    'MaxDepthExceededError',
    'MessageSchema',
    'MessageValidator',
    'OptionInapplicableError',
    'OptionProvider',
    'OptionRegistry',
    'PbValidateError',
    'ReferenceKind',
    'TypeRegistry',
    'ValidatingOption',
    'ValidatorConfig',
    'configure_logging',
]
