"""Structured logging for nginx router.

The package is embedded in a control-plane process, so setup only touches
the ``nginx_router`` stdlib logger and never the host's root handlers.
"""

import logging
import sys

import structlog
from structlog.typing import Processor

PACKAGE_LOGGER = "nginx_router"

# Handlers added here carry this name prefix so re-running setup replaces them
_HANDLER_PREFIX = f"{PACKAGE_LOGGER}."


def _processors(json_format: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    log_file: str | None = None,
) -> None:
    """Configure structured logging for the nginx_router logger tree.

    Handlers from an earlier call are replaced; handlers installed by the
    host application, on this logger or the root logger, are kept.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: If True, output JSON formatted logs
        log_file: Optional file path that also receives router logs
    """
    log_level = getattr(logging, level.upper())

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in package_logger.handlers[:]:
        if (handler.get_name() or "").startswith(_HANDLER_PREFIX):
            package_logger.removeHandler(handler)
            handler.close()
    package_logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.set_name(f"{_HANDLER_PREFIX}console")
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.set_name(f"{_HANDLER_PREFIX}file")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        package_logger.addHandler(file_handler)

    # Router events are rendered by our handlers; do not print them twice
    package_logger.propagate = False

    structlog.configure(
        processors=_processors(json_format),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger, usually with ``__name__`` under nginx_router."""
    return structlog.get_logger(name)  # type: ignore[no-any-return]
