"""Persist rendered nginx configuration."""

import os
import tempfile
from pathlib import Path

from ..common.logging import get_logger
from ..config import RouterConfig
from ..exceptions import ConfigWriteError
from .render import render

logger = get_logger(__name__)


def write_config(config: RouterConfig, file_path: str | os.PathLike[str]) -> str:
    """Render config and atomically replace file_path with the result.

    The document is rendered before anything touches disk, so a model error
    leaves the previous configuration in force.

    Args:
        config: Router model to render
        file_path: Destination nginx.conf path

    Returns:
        The destination path

    Raises:
        ConfigurationError: If the model cannot be rendered
        ConfigWriteError: If the file cannot be written or replaced
    """
    document = render(config)
    target = Path(file_path)

    try:
        fd, temp_path = tempfile.mkstemp(
            dir=target.parent, prefix=f".{target.name}.", suffix=".tmp"
        )
    except OSError as e:
        logger.error("Cannot create configuration file", path=str(target), error=str(e))
        raise ConfigWriteError(target, "Cannot create configuration file") from e

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            os.fchmod(f.fileno(), 0o644)
            f.write(document)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, target)
    except OSError as e:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        logger.error("Cannot write configuration file", path=str(target), error=str(e))
        raise ConfigWriteError(target, "Cannot write configuration file") from e

    logger.info("nginx configuration written", path=str(target), bytes=len(document))
    return str(target)
