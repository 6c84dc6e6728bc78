import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

_HANDLER_NAME = "batchfetch-console"


def setup_logging(level: int = logging.DEBUG) -> None:
    """Route structlog through stdlib logging with a console renderer."""
    logger = logging.getLogger("batchfetch")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            logger.removeHandler(handler)
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,  # Critical for context vars
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(colors=True),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


@contextmanager
def logging_context(**required_context) -> Iterator[None]:
    """Bind context vars for the block, leaving already-bound keys untouched."""
    current = structlog.contextvars.get_contextvars()
    to_bind = {k: v for k, v in required_context.items() if k not in current}

    if to_bind:
        with structlog.contextvars.bound_contextvars(**to_bind):
            yield
    else:
        yield
