"""nginx configuration rendering and file materialization."""

from .certs import (
    CERT_FILENAME,
    KEY_FILENAME,
    CertificateStatus,
    CertificateWriter,
    apply_certificate,
)
from .hosts import HostMatch, HostMatchKind, is_fully_qualified, match_host
from .render import render
from .writer import write_config

__all__ = [
    "render",
    "write_config",
    "apply_certificate",
    "CertificateWriter",
    "CertificateStatus",
    "CERT_FILENAME",
    "KEY_FILENAME",
    "match_host",
    "is_fully_qualified",
    "HostMatch",
    "HostMatchKind",
]
