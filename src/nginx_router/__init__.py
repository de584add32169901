"""nginx router - renders multi-tenant nginx configuration from a routing model."""

import structlog

from .common.logging import get_logger, setup_logging
from .config import (
    AppConfig,
    ErrorLogLevel,
    GzipConfig,
    PassthroughConfig,
    PlatformCertificate,
    RouterConfig,
    RouterConfigBuilder,
)
from .exceptions import (
    CertificateWriteError,
    ConfigurationError,
    ConfigWriteError,
    PathError,
    RenderError,
    RouterError,
)
from .nginx import (
    CertificateStatus,
    CertificateWriter,
    HostMatch,
    HostMatchKind,
    apply_certificate,
    match_host,
    render,
    write_config,
)

# Leave a host application's structlog configuration alone
if not structlog.is_configured():
    setup_logging(level="INFO")

__version__ = "0.1.0"


__all__ = [
    # Model
    "RouterConfig",
    "RouterConfigBuilder",
    "AppConfig",
    "GzipConfig",
    "PassthroughConfig",
    "PlatformCertificate",
    "ErrorLogLevel",
    # Rendering
    "render",
    "write_config",
    "match_host",
    "HostMatch",
    "HostMatchKind",
    # Certificates
    "apply_certificate",
    "CertificateWriter",
    "CertificateStatus",
    # Exceptions
    "RouterError",
    "ConfigurationError",
    "RenderError",
    "PathError",
    "CertificateWriteError",
    "ConfigWriteError",
    # Logging
    "get_logger",
    "setup_logging",
]
