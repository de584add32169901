"""Configuration models for the nginx router."""

import re
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from .common.logging import get_logger
from .common.utils import (
    validate_directive_value,
    validate_network,
    validate_non_empty_string,
)

logger = get_logger(__name__)

DEFAULT_GZIP_TYPES = (
    "application/atom+xml application/javascript application/json "
    "application/rss+xml application/vnd.ms-fontobject application/x-font-ttf "
    "application/x-web-app-manifest+json application/xhtml+xml application/xml "
    "font/opentype image/svg+xml image/x-icon text/css text/plain text/x-component"
)

_DOMAIN_LABEL = re.compile(r"^[A-Za-z0-9]([A-Za-z0-9-]*[A-Za-z0-9])?$")


def validate_host_name(domain: str) -> str:
    """Validate an app domain as plain DNS labels.

    A leading "*." label is allowed for nginx wildcard names. Anything else
    would be emitted into server_name, where "~" starts a regex.

    Raises:
        ValueError: If a label is empty or has characters outside [A-Za-z0-9-]
    """
    labels = domain.split(".")
    if len(labels) > 1 and labels[0] == "*":
        labels = labels[1:]
    for label in labels:
        if not _DOMAIN_LABEL.match(label):
            raise ValueError(f"Invalid domain label {label!r} in {domain!r}")
    return domain


class ErrorLogLevel(str, Enum):
    """nginx error_log severity levels."""

    DEBUG = "debug"
    INFO = "info"
    NOTICE = "notice"
    WARN = "warn"
    ERROR = "error"
    CRIT = "crit"
    ALERT = "alert"
    EMERG = "emerg"


class GzipConfig(BaseModel):
    """Response compression settings."""

    model_config = ConfigDict(
        str_strip_whitespace=True, validate_assignment=True, extra="forbid"
    )

    comp_level: int = Field(default=5, ge=1, le=9, description="Compression level")
    disable: str = Field(default="msie6", min_length=1, description="User agents to skip")
    http_version: str = Field(
        default="1.1", pattern=r"^\d\.\d$", description="Minimum HTTP version"
    )
    min_length: int = Field(default=256, ge=0, description="Minimum response length")
    types: str = Field(default=DEFAULT_GZIP_TYPES, min_length=1, description="MIME types")
    proxied: str | None = Field(
        default="any", description="Compression of proxied responses"
    )
    vary: bool = Field(default=True, description="Emit Vary: Accept-Encoding")

    @field_validator("disable", "types", "proxied")
    @classmethod
    def validate_no_terminators(cls, v: str | None) -> str | None:
        """Reject values that would terminate the directive early."""
        if v is not None and any(c in v for c in ";{}"):
            raise ValueError("Value must not contain ';', '{' or '}'")
        return v


class PlatformCertificate(BaseModel):
    """PEM encoded certificate and private key for TLS termination."""

    # PEM text is kept byte for byte, no whitespace stripping
    model_config = ConfigDict(frozen=True, extra="forbid")

    cert: str = Field(..., description="PEM certificate chain")
    key: SecretStr = Field(..., description="PEM private key")

    @field_validator("cert")
    @classmethod
    def validate_cert(cls, v: str) -> str:
        validate_non_empty_string(v, "Certificate")
        return v

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: SecretStr) -> SecretStr:
        validate_non_empty_string(v.get_secret_value(), "Private key")
        return v


class AppConfig(BaseModel):
    """A hosted application and the domains routed to it."""

    model_config = ConfigDict(
        str_strip_whitespace=True, validate_assignment=True, extra="forbid"
    )

    name: str | None = Field(default=None, description="Application name for logs")
    domains: list[str] = Field(..., min_length=1, description="Routed domains")
    service_ip: str = Field(..., description="Backend service address")
    connect_timeout: int = Field(default=30, ge=1, description="Connect timeout seconds")
    tcp_timeout: int = Field(
        default=1200, ge=1, description="Read and write timeout seconds"
    )
    enforce_whitelist: bool = Field(default=False, description="Restrict source networks")
    whitelist: list[str] = Field(default_factory=list, description="Allowed IPs or CIDRs")

    @field_validator("domains")
    @classmethod
    def validate_domains(cls, v: list[str]) -> list[str]:
        """Validate each domain and drop duplicates, keeping first occurrence."""
        seen: list[str] = []
        for domain in v:
            domain = validate_host_name(validate_directive_value(domain, "Domain"))
            if domain not in seen:
                seen.append(domain)
        return seen

    @field_validator("service_ip")
    @classmethod
    def validate_service_ip(cls, v: str) -> str:
        return validate_directive_value(v, "Service address")

    @field_validator("whitelist")
    @classmethod
    def validate_whitelist(cls, v: list[str]) -> list[str]:
        return [validate_network(entry, "Whitelist entry") for entry in v]

    @property
    def label(self) -> str:
        """Name used when logging about this app."""
        return self.name or self.domains[0]


class PassthroughConfig(BaseModel):
    """Raw TCP backend reached without HTTP processing."""

    model_config = ConfigDict(
        str_strip_whitespace=True, validate_assignment=True, extra="forbid"
    )

    service_ip: str = Field(..., description="Target service address")
    port: int = Field(default=2222, ge=1, le=65535, description="Target port")
    connect_timeout: int = Field(default=10, ge=1, description="Connect timeout seconds")
    tcp_timeout: int = Field(default=1200, ge=1, description="Idle timeout seconds")

    @field_validator("service_ip")
    @classmethod
    def validate_service_ip(cls, v: str) -> str:
        return validate_directive_value(v, "Passthrough address")


class RouterConfig(BaseModel):
    """Pydantic model for the complete routing domain."""

    model_config = ConfigDict(
        str_strip_whitespace=True, validate_assignment=True, extra="forbid"
    )

    # Worker tuning
    worker_processes: int | Literal["auto"] = Field(
        default="auto", description="Worker process count or 'auto'"
    )
    max_worker_connections: int = Field(
        default=768, ge=1, description="Connections per worker"
    )

    # HTTP settings
    default_timeout: int = Field(
        default=1300, ge=1, description="Keepalive timeout seconds"
    )
    server_name_hash_max_size: int = Field(default=512, ge=1)
    server_name_hash_bucket_size: int = Field(default=64, ge=1)
    body_size: int = Field(default=1, ge=0, description="Max request body megabytes")
    gzip: GzipConfig | None = Field(default=None, description="Compression policy")

    # Logging
    error_log_level: ErrorLogLevel = Field(default=ErrorLogLevel.ERROR)
    log_dir: str = Field(default="/opt/nginx/logs", description="Access/error log dir")

    # TLS
    platform_certificate: PlatformCertificate | None = Field(default=None)
    ssl_dir: str = Field(default="/opt/nginx/ssl", description="Certificate directory")

    # Proxy protocol
    use_proxy_protocol: bool = Field(default=False)
    proxy_real_ip_cidr: str = Field(
        default="10.0.0.0/8", description="Trusted proxy protocol sources"
    )

    # Routing
    domain: str | None = Field(default=None, description="Base domain suffix")
    app_configs: list[AppConfig] = Field(default_factory=list)
    passthrough: PassthroughConfig | None = Field(default=None)

    @field_validator("worker_processes")
    @classmethod
    def validate_worker_processes(cls, v: int | str) -> int | str:
        if isinstance(v, int) and v < 1:
            raise ValueError("Worker processes must be at least 1")
        return v

    @field_validator("proxy_real_ip_cidr")
    @classmethod
    def validate_real_ip_cidr(cls, v: str) -> str:
        return validate_network(v, "Proxy real IP CIDR")

    @field_validator("log_dir", "ssl_dir")
    @classmethod
    def validate_dir(cls, v: str) -> str:
        return validate_directive_value(v, "Directory")

    @field_validator("domain")
    @classmethod
    def validate_domain(cls, v: str | None) -> str | None:
        """Validate base domain format."""
        if v is not None:
            if not v:
                return None
            for part in v.split("."):
                if not _DOMAIN_LABEL.match(part):
                    raise ValueError(f"Invalid domain part: {part!r}")
        return v


class RouterConfigBuilder:
    """ConfigBuilder pattern for RouterConfig.

    Every step re-validates the whole model, so an invalid value fails at
    the call that introduced it.
    """

    def __init__(self) -> None:
        """Initialize RouterConfigBuilder with default settings."""
        self._config = RouterConfig()

    def _update(self, **changes: object) -> "RouterConfigBuilder":
        current_dict = self._config.model_dump()
        current_dict.update(changes)
        self._config = RouterConfig(**current_dict)
        return self

    def configure_workers(
        self, processes: int | Literal["auto"] = "auto", connections: int = 768
    ) -> "RouterConfigBuilder":
        """Configure worker processes and connections per worker."""
        return self._update(
            worker_processes=processes, max_worker_connections=connections
        )

    def configure_http(
        self,
        default_timeout: int = 1300,
        body_size: int = 1,
        server_name_hash_max_size: int = 512,
        server_name_hash_bucket_size: int = 64,
    ) -> "RouterConfigBuilder":
        """Configure global HTTP tuning."""
        return self._update(
            default_timeout=default_timeout,
            body_size=body_size,
            server_name_hash_max_size=server_name_hash_max_size,
            server_name_hash_bucket_size=server_name_hash_bucket_size,
        )

    def configure_logging(
        self,
        level: ErrorLogLevel = ErrorLogLevel.ERROR,
        log_dir: str = "/opt/nginx/logs",
    ) -> "RouterConfigBuilder":
        """Configure error log level and log directory."""
        return self._update(error_log_level=level, log_dir=log_dir)

    def enable_gzip(self, **settings: object) -> "RouterConfigBuilder":
        """Enable compression, overriding GzipConfig defaults with settings."""
        return self._update(gzip=GzipConfig(**settings))  # type: ignore[arg-type]

    def disable_gzip(self) -> "RouterConfigBuilder":
        """Remove the compression policy."""
        return self._update(gzip=None)

    def enable_proxy_protocol(self, cidr: str = "10.0.0.0/8") -> "RouterConfigBuilder":
        """Trust proxy protocol headers from cidr."""
        return self._update(use_proxy_protocol=True, proxy_real_ip_cidr=cidr)

    def set_domain(self, domain: str | None) -> "RouterConfigBuilder":
        """Set the base domain appended to single-label app domains."""
        return self._update(domain=domain)

    def set_platform_certificate(
        self, cert: str | None, key: str | None, ssl_dir: str | None = None
    ) -> "RouterConfigBuilder":
        """Set or clear (both None) the platform certificate."""
        if (cert is None) != (key is None):
            raise ValueError("Certificate and key must be given together")

        changes: dict[str, object] = {
            "platform_certificate": (
                PlatformCertificate(cert=cert, key=key) if cert is not None else None  # type: ignore[arg-type]
            )
        }
        if ssl_dir is not None:
            changes["ssl_dir"] = ssl_dir
        return self._update(**changes)

    def add_app(
        self,
        domains: list[str],
        service_ip: str,
        *,
        name: str | None = None,
        connect_timeout: int = 30,
        tcp_timeout: int = 1200,
        enforce_whitelist: bool = False,
        whitelist: list[str] | None = None,
    ) -> "RouterConfigBuilder":
        """Add an application routed by domains to service_ip."""
        app = AppConfig(
            name=name,
            domains=domains,
            service_ip=service_ip,
            connect_timeout=connect_timeout,
            tcp_timeout=tcp_timeout,
            enforce_whitelist=enforce_whitelist,
            whitelist=whitelist or [],
        )
        logger.debug("App added", app=app.label, domains=app.domains)
        return self._update(app_configs=[*self._config.app_configs, app])

    def set_passthrough(
        self,
        service_ip: str | None,
        port: int = 2222,
        connect_timeout: int = 10,
        tcp_timeout: int = 1200,
    ) -> "RouterConfigBuilder":
        """Set or clear (service_ip None) the raw TCP passthrough target."""
        if service_ip is None:
            return self._update(passthrough=None)

        return self._update(
            passthrough=PassthroughConfig(
                service_ip=service_ip,
                port=port,
                connect_timeout=connect_timeout,
                tcp_timeout=tcp_timeout,
            )
        )

    def build(self) -> RouterConfig:
        """Return the assembled configuration."""
        return self._config
