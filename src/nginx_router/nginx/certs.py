"""Platform certificate materialization.

nginx reads the platform certificate from two fixed files in the SSL
directory. This module writes them from a PlatformCertificate, or removes
them when there is none.

Both files are first written to temporary files next to their targets and
only renamed into place once both writes succeeded, so readers never see
truncated PEM data and a failed write leaves the previous pair untouched.
Before the renames, a digest of the new pair is committed to a hidden marker
file; get_certificate_status() compares it with the files on disk, which
exposes a pair left half replaced by a failed rename.
Concurrent calls for the same directory must be serialized by the caller.
"""

import hashlib
import os
import tempfile
from enum import Enum
from pathlib import Path

from ..common.logging import get_logger
from ..config import PlatformCertificate
from ..exceptions import CertificateWriteError

logger = get_logger(__name__)

CERT_FILENAME = "server.crt"
KEY_FILENAME = "server.key"
PAIR_FILENAME = ".server.pair"
CERT_MODE = 0o644
KEY_MODE = 0o600


class CertificateStatus(str, Enum):
    """State of the certificate files on disk."""

    PRESENT = "present"
    MISSING = "missing"
    PARTIAL = "partial"
    MISMATCHED = "mismatched"


def pair_digest(cert: bytes, key: bytes) -> str:
    """sha256 identifying a certificate/key pair."""
    digest = hashlib.sha256(cert)
    digest.update(b"\0")
    digest.update(key)
    return digest.hexdigest()


class CertificateWriter:
    """Writes and removes the platform certificate pair in an SSL directory."""

    def __init__(self, ssl_dir: str | os.PathLike[str]):
        """Initialize writer for ssl_dir.

        Args:
            ssl_dir: Directory nginx reads server.crt and server.key from
        """
        self.ssl_dir = Path(ssl_dir)

    @property
    def cert_path(self) -> Path:
        """Get certificate file path"""
        return self.ssl_dir / CERT_FILENAME

    @property
    def key_path(self) -> Path:
        """Get private key file path"""
        return self.ssl_dir / KEY_FILENAME

    @property
    def pair_path(self) -> Path:
        """Get path of the digest of the last requested pair"""
        return self.ssl_dir / PAIR_FILENAME

    def apply(self, cert: PlatformCertificate | None) -> None:
        """Write cert when given, otherwise remove any existing files.

        Raises:
            CertificateWriteError: If a filesystem operation fails
        """
        if cert is None:
            self.remove()
        else:
            self.write(cert)

    def write(self, cert: PlatformCertificate) -> None:
        """Replace server.crt and server.key with cert.

        Raises:
            CertificateWriteError: Naming the path and step that failed. A
                failed "rename" step may leave one new and one old file;
                get_certificate_status() then reports MISMATCHED or PARTIAL
                and TLS must not be enabled.
        """
        try:
            self.ssl_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Cannot create SSL directory", path=str(self.ssl_dir), error=str(e))
            raise CertificateWriteError(self.ssl_dir, "mkdir") from e

        cert_text = cert.cert
        key_text = cert.key.get_secret_value()
        digest = pair_digest(cert_text.encode("utf-8"), key_text.encode("utf-8"))

        staged: list[str] = []
        try:
            cert_tmp = self._stage(self.cert_path, cert_text, CERT_MODE)
            staged.append(cert_tmp)
            key_tmp = self._stage(self.key_path, key_text, KEY_MODE)
            staged.append(key_tmp)
            pair_tmp = self._stage(self.pair_path, digest + "\n", KEY_MODE)
            staged.append(pair_tmp)

            # The marker goes first so any later failure reads as a mismatch
            for temp_path, target in (
                (pair_tmp, self.pair_path),
                (key_tmp, self.key_path),
                (cert_tmp, self.cert_path),
            ):
                self._commit(temp_path, target)
                staged.remove(temp_path)
        finally:
            for tmp in staged:
                self._discard(tmp)

        logger.info("Platform certificate written", ssl_dir=str(self.ssl_dir))

    def remove(self) -> None:
        """Remove server.crt, server.key and the pair marker; missing files are fine.

        Raises:
            CertificateWriteError: If an existing file cannot be removed
        """
        removed = 0
        for path in (self.cert_path, self.key_path, self.pair_path):
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.error("Cannot remove certificate file", path=str(path), error=str(e))
                raise CertificateWriteError(path, "remove") from e

        if removed:
            logger.info("Platform certificate removed", ssl_dir=str(self.ssl_dir))

    def get_certificate_status(self) -> CertificateStatus:
        """Report the state of the certificate pair on disk.

        Returns:
            MISSING when neither file exists, PARTIAL when only one does,
            MISMATCHED when both exist but differ from the pair last
            written here, PRESENT otherwise. A pair placed without a
            marker counts as PRESENT.
        """
        existing = [path.exists() for path in (self.cert_path, self.key_path)]
        if not any(existing):
            return CertificateStatus.MISSING
        if not all(existing):
            return CertificateStatus.PARTIAL

        try:
            expected = self.pair_path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return CertificateStatus.PRESENT

        actual = pair_digest(self.cert_path.read_bytes(), self.key_path.read_bytes())
        if actual != expected:
            return CertificateStatus.MISMATCHED
        return CertificateStatus.PRESENT

    def _stage(self, target: Path, content: str, mode: int) -> str:
        """Write content to a temporary file beside target and return its path."""
        try:
            fd, temp_path = tempfile.mkstemp(
                dir=self.ssl_dir, prefix=f".{target.name}.", suffix=".tmp"
            )
        except OSError as e:
            logger.error("Cannot create certificate file", path=str(target), error=str(e))
            raise CertificateWriteError(target, "write") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                os.fchmod(f.fileno(), mode)
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            self._discard(temp_path)
            logger.error("Cannot write certificate file", path=str(target), error=str(e))
            raise CertificateWriteError(target, "write") from e

        return temp_path

    def _commit(self, temp_path: str, target: Path) -> None:
        try:
            os.replace(temp_path, target)
        except OSError as e:
            logger.error("Cannot replace certificate file", path=str(target), error=str(e))
            raise CertificateWriteError(target, "rename") from e

    @staticmethod
    def _discard(temp_path: str) -> None:
        try:
            os.unlink(temp_path)
        except OSError:
            pass


def apply_certificate(
    cert: PlatformCertificate | None, ssl_dir: str | os.PathLike[str]
) -> None:
    """Materialize cert into ssl_dir, or remove the files when cert is None.

    Raises:
        CertificateWriteError: If a filesystem operation fails
    """
    CertificateWriter(ssl_dir).apply(cert)
