"""Test logging configuration."""

import logging
from pathlib import Path

import structlog
from structlog.testing import LogCapture

from nginx_router.common.logging import PACKAGE_LOGGER, get_logger, setup_logging


class TestLogging:
    """Test logging functionality."""

    def setup_method(self) -> None:
        """Setup before each test - reset logging configuration."""
        structlog.reset_defaults()
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        for handler in package_logger.handlers[:]:
            package_logger.removeHandler(handler)
            handler.close()

    def test_setup_logging_default(self) -> None:
        """Test default logging setup."""
        setup_logging()
        logger = get_logger("nginx_router.test")
        assert logger is not None
        assert hasattr(logger, "info")
        assert hasattr(logger, "error")

    def test_setup_logging_with_level(self) -> None:
        """Test logging setup with custom level."""
        setup_logging(level="DEBUG")
        assert logging.getLogger(PACKAGE_LOGGER).level == logging.DEBUG

    def test_root_handlers_untouched(self) -> None:
        """Test setup leaves the host application's root handlers in place."""
        root_logger = logging.getLogger()
        host_handler = logging.NullHandler()
        root_logger.addHandler(host_handler)
        root_level = root_logger.level

        try:
            setup_logging(level="DEBUG")

            assert host_handler in root_logger.handlers
            assert root_logger.level == root_level
            assert logging.getLogger(PACKAGE_LOGGER).propagate is False
        finally:
            root_logger.removeHandler(host_handler)

    def test_setup_logging_replaces_own_handlers(self, tmp_path: Path) -> None:
        """Test repeated setup does not stack handlers but keeps foreign ones."""
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        foreign = logging.NullHandler()
        package_logger.addHandler(foreign)

        setup_logging(log_file=str(tmp_path / "first.log"))
        setup_logging()

        names = [handler.get_name() for handler in package_logger.handlers]
        assert names.count("nginx_router.console") == 1
        assert "nginx_router.file" not in names
        assert foreign in package_logger.handlers

    def test_setup_logging_json_format(self) -> None:
        """Test logging setup with JSON format."""
        setup_logging(json_format=True)
        logger = get_logger("nginx_router.test")

        cap = LogCapture()
        structlog.configure(processors=[cap])

        logger.info("configuration rendered", servers=3)

        assert len(cap.entries) == 1
        assert cap.entries[0]["event"] == "configuration rendered"
        assert cap.entries[0]["servers"] == 3

    def test_setup_logging_with_file(self, tmp_path: Path) -> None:
        """Test logging setup with file output."""
        log_file = tmp_path / "router.log"
        setup_logging(log_file=str(log_file))

        python_logger = logging.getLogger("nginx_router.test_file")
        python_logger.info("test message")

        for handler in logging.getLogger(PACKAGE_LOGGER).handlers:
            handler.flush()

        assert log_file.exists()
        assert "test message" in log_file.read_text()
