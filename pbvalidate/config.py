"""
Validator configuration and logging setup.

ValidatorConfig holds the knobs of a MessageValidator. configure_logging()
routes the `pbvalidate` loggers through structlog; library code only calls
logging.getLogger(__name__) and leaves configuration to the application.
"""

import logging
import sys
from typing import List

import structlog
from pydantic import BaseModel, Field

LOGGER_NAME = 'pbvalidate'

DEFAULT_MAX_DEPTH = 64


class ValidatorConfig(BaseModel):
    """
    Settings of a MessageValidator, frozen after construction.

    Attributes:
        max_depth: How many levels of nested messages may be validated before
                   MaxDepthExceededError is raised
        recurse_into_defaults: Also validate nested messages that hold the
                               default instance
        log_configuration_errors: Log configuration errors before they propagate
    """

    model_config = {'frozen': True}

    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=1)
    recurse_into_defaults: bool = False
    log_configuration_errors: bool = True


def configure_logging(*, verbose: bool = False, log_json: bool = False) -> None:
    """
    Configure structlog processors and route log output to stderr.

    Args:
        verbose: Enable DEBUG output of the pbvalidate loggers. When False,
                 only WARNING and above.
        log_json: Use the JSON renderer instead of the console renderer
    """
    level = logging.DEBUG if verbose else logging.WARNING

    shared_processors: List[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt='iso'),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.WARNING)

    logging.getLogger(LOGGER_NAME).setLevel(level)
