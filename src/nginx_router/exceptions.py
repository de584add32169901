"""Custom exceptions for nginx router."""

import os


class RouterError(Exception):
    """Base exception for all nginx router errors."""
    pass


class ConfigurationError(RouterError):
    """Raised when the router model cannot be rendered as given."""
    pass


class RenderError(RouterError):
    """Raised when a rendering rule produces a malformed fragment."""
    pass


class PathError(RouterError):
    """Raised when a filesystem operation on a specific path fails."""

    def __init__(self, path: str | os.PathLike[str], message: str) -> None:
        self.path = os.fspath(path)
        super().__init__(f"{message}: {self.path}")


class CertificateWriteError(PathError):
    """Raised when writing or removing certificate material fails."""

    def __init__(
        self, path: str | os.PathLike[str], step: str, message: str | None = None
    ) -> None:
        self.step = step
        super().__init__(path, message or f"Certificate {step} failed")


class ConfigWriteError(PathError):
    """Raised when the rendered configuration cannot be persisted."""
    pass
