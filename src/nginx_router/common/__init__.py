"""Common utilities and shared functionality."""

from .logging import get_logger, setup_logging
from .utils import (
    validate_directive_value,
    validate_network,
    validate_non_empty_string,
)

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # Utils
    "validate_non_empty_string",
    "validate_network",
    "validate_directive_value",
]
