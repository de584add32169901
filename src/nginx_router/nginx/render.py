"""Render a RouterConfig into an nginx configuration document.

Each rendering rule is a small function returning a list of lines. Blocks are
composed with :func:`block`, which indents its body with one tab, and the
top-level :func:`render` joins everything into the final document.
"""

import posixpath
from collections.abc import Iterable

from ..common.logging import get_logger
from ..config import AppConfig, GzipConfig, PassthroughConfig, RouterConfig
from ..exceptions import ConfigurationError, RenderError
from .certs import CERT_FILENAME, KEY_FILENAME
from .hosts import match_host

logger = get_logger(__name__)

INDENT = "\t"
HEADER = "# Generated by nginx-router. Changes will be overwritten."

HTTP_PORT = 80
HTTPS_PORT = 443
HEALTHCHECK_PORT = 9090
PASSTHROUGH_PORT = 2222
BACKEND_PORT = 80
HEALTHCHECK_LOCATION = r"~ ^/healthz/?$"
SSL_PROTOCOLS = "TLSv1.2 TLSv1.3"

PROXY_PROTOCOL_ADDR = "$proxy_protocol_addr"


def block(header: str, body: Iterable[str]) -> list[str]:
    """Wrap body lines in a ``header { ... }`` block."""
    lines = [f"{header} {{"]
    lines.extend(f"{INDENT}{line}" if line else "" for line in body)
    lines.append("}")
    return lines


def sections(*parts: list[str]) -> list[str]:
    """Join non-empty sections with a blank line between them."""
    lines: list[str] = []
    for part in parts:
        if not part:
            continue
        if lines:
            lines.append("")
        lines.extend(part)
    return lines


def client_address(config: RouterConfig) -> str:
    """Variable holding the client address for logs and access checks."""
    return PROXY_PROTOCOL_ADDR if config.use_proxy_protocol else "$remote_addr"


def forwarded_for(config: RouterConfig) -> str:
    """Value of the X-Forwarded-For header sent upstream."""
    if config.use_proxy_protocol:
        return PROXY_PROTOCOL_ADDR
    return "$proxy_add_x_forwarded_for"


def listen(config: RouterConfig, port: int, *flags: str) -> str:
    """listen directive, carrying proxy_protocol when enabled."""
    args = [str(port), *flags]
    if config.use_proxy_protocol:
        args.append("proxy_protocol")
    return f"listen {' '.join(args)};"


def render_main(config: RouterConfig) -> list[str]:
    """Top-level process settings and the events block."""
    return [
        "user nginx;",
        "daemon off;",
        "pid /run/nginx.pid;",
        f"worker_processes {config.worker_processes};",
        "",
        *block("events", [f"worker_connections {config.max_worker_connections};"]),
    ]


def render_http_settings(config: RouterConfig) -> list[str]:
    """http-level tuning: keepalive, hash sizes and body limit."""
    return [
        "sendfile on;",
        "tcp_nopush on;",
        "tcp_nodelay on;",
        f"keepalive_timeout {config.default_timeout}s;",
        "types_hash_max_size 2048;",
        f"server_names_hash_max_size {config.server_name_hash_max_size};",
        f"server_names_hash_bucket_size {config.server_name_hash_bucket_size};",
        f"client_max_body_size {config.body_size}m;",
    ]


def render_gzip(gzip: GzipConfig | None) -> list[str]:
    """Compression directives, or nothing at all without a policy."""
    if gzip is None:
        return []

    lines = [
        "gzip on;",
        f"gzip_comp_level {gzip.comp_level};",
        f"gzip_disable {gzip.disable};",
        f"gzip_http_version {gzip.http_version};",
        f"gzip_min_length {gzip.min_length};",
        f"gzip_types {gzip.types};",
    ]
    if gzip.proxied:
        lines.append(f"gzip_proxied {gzip.proxied};")
    lines.append(f"gzip_vary {'on' if gzip.vary else 'off'};")
    return lines


def render_real_ip(config: RouterConfig) -> list[str]:
    """Trust proxy protocol addresses from the configured CIDR.

    With real_ip_header set, allow/deny rules evaluate the same address
    that client_address() reports.
    """
    if not config.use_proxy_protocol:
        return []
    return [
        f"set_real_ip_from {config.proxy_real_ip_cidr};",
        "real_ip_header proxy_protocol;",
    ]


def render_logging(config: RouterConfig) -> list[str]:
    """Access log format, log destinations and the connection upgrade map."""
    log_format = (
        f"'[$time_local] - {client_address(config)} - $remote_user - $status"
        ' - "$request" - $bytes_sent - "$http_referer" - "$http_user_agent"'
        ' - "$server_name" - $upstream_addr - $http_host'
        " - $upstream_response_time - $request_time'"
    )
    access_log = posixpath.join(config.log_dir, "access.log")
    error_log = posixpath.join(config.log_dir, "error.log")
    return [
        f"log_format upstreaminfo {log_format};",
        "",
        f"access_log {access_log} upstreaminfo;",
        f"error_log {error_log} {config.error_log_level.value};",
        "",
        *block(
            "map $http_upgrade $connection_upgrade",
            ["default upgrade;", "'' close;"],
        ),
    ]


def render_tls(config: RouterConfig) -> list[str]:
    """TLS directives pointing at the materialized certificate pair."""
    return [
        f"ssl_protocols {SSL_PROTOCOLS};",
        f"ssl_certificate {posixpath.join(config.ssl_dir, CERT_FILENAME)};",
        f"ssl_certificate_key {posixpath.join(config.ssl_dir, KEY_FILENAME)};",
    ]


def render_health_locations() -> list[str]:
    """/healthz answers 200, everything else 404."""
    return [
        *block(
            f"location {HEALTHCHECK_LOCATION}",
            ["access_log off;", "default_type 'text/plain';", "return 200;"],
        ),
        *block("location /", ["return 404;"]),
    ]


def render_default_server(config: RouterConfig) -> list[str]:
    """Catch-all server for unmapped host names and load balancer checks."""
    body = [listen(config, HTTP_PORT, "default_server", "reuseport")]
    if config.platform_certificate is not None:
        body.append(listen(config, HTTPS_PORT, "default_server", "ssl"))
        body.extend(render_tls(config))
    body.append("server_name _;")
    body.extend(render_health_locations())
    return block("server", body)


def render_healthcheck_server() -> list[str]:
    """Plain HTTP health check listener, never proxy protocol wrapped."""
    body = [
        f"listen {HEALTHCHECK_PORT} default_server;",
        "server_name _;",
        *render_health_locations(),
    ]
    return block("server", body)


def render_access_control(app: AppConfig) -> list[str]:
    """allow/deny rules for an app.

    An enforced whitelist with no entries denies everyone.
    """
    if not app.enforce_whitelist:
        return []
    return [*(f"allow {entry};" for entry in app.whitelist), "deny all;"]


def render_proxy_location(config: RouterConfig, app: AppConfig) -> list[str]:
    """Streaming, upgrade-aware proxy to the app backend."""
    return block(
        "location /",
        [
            "proxy_buffering off;",
            "proxy_set_header Host $host;",
            f"proxy_set_header X-Forwarded-For {forwarded_for(config)};",
            "proxy_redirect off;",
            f"proxy_connect_timeout {app.connect_timeout}s;",
            f"proxy_send_timeout {app.tcp_timeout}s;",
            f"proxy_read_timeout {app.tcp_timeout}s;",
            "proxy_http_version 1.1;",
            "proxy_set_header Upgrade $http_upgrade;",
            "proxy_set_header Connection $connection_upgrade;",
            f"proxy_pass http://{app.service_ip}:{BACKEND_PORT};",
        ],
    )


def render_server(config: RouterConfig, app: AppConfig, domain: str) -> list[str]:
    """Virtual host for one domain of an app."""
    host = match_host(domain, config.domain)

    body = [
        listen(config, HTTP_PORT),
        f"server_name {host.server_name};",
        "server_name_in_redirect off;",
        "port_in_redirect off;",
    ]
    if config.platform_certificate is not None and host.terminates_tls:
        body.append(listen(config, HTTPS_PORT, "ssl"))
        body.extend(render_tls(config))

    return block(
        "server",
        sections(body, render_access_control(app), render_proxy_location(config, app)),
    )


def render_http(config: RouterConfig) -> list[str]:
    """The http block with global settings and every server."""
    servers = [
        render_server(config, app, domain)
        for app in config.app_configs
        for domain in app.domains
    ]
    return block(
        "http",
        sections(
            render_http_settings(config),
            render_gzip(config.gzip),
            render_real_ip(config),
            render_logging(config),
            render_default_server(config),
            render_healthcheck_server(),
            *servers,
        ),
    )


def render_passthrough(passthrough: PassthroughConfig | None) -> list[str]:
    """Raw TCP forwarding listener for non-HTTP traffic."""
    if passthrough is None:
        return []
    return block(
        "stream",
        block(
            "server",
            [
                f"listen {PASSTHROUGH_PORT};",
                f"proxy_connect_timeout {passthrough.connect_timeout}s;",
                f"proxy_timeout {passthrough.tcp_timeout}s;",
                f"proxy_pass {passthrough.service_ip}:{passthrough.port};",
            ],
        ),
    )


def check_model(config: RouterConfig) -> None:
    """Fail fast on model shapes that would render a wrong document.

    Validation on construction normally rules these out, but models built
    with ``model_construct`` or mutated lists bypass it.

    Raises:
        ConfigurationError: If an app is missing required data
    """
    for index, app in enumerate(config.app_configs):
        label = app.name or f"#{index}"
        if not app.domains:
            raise ConfigurationError(f"App {label} has no domains")
        if any(not domain or not domain.strip() for domain in app.domains):
            raise ConfigurationError(f"App {label} has an empty domain")
        if not app.service_ip:
            raise ConfigurationError(f"App {label} has no service address")


def check_balanced(lines: list[str]) -> None:
    """Verify every opened block is closed.

    Raises:
        RenderError: If braces do not balance
    """
    depth = 0
    for number, line in enumerate(lines, start=1):
        depth += line.count("{") - line.count("}")
        if depth < 0:
            raise RenderError(f"Unexpected '}}' on line {number}")
    if depth != 0:
        raise RenderError(f"{depth} unclosed block(s) in rendered configuration")


def render(config: RouterConfig) -> str:
    """Render the complete nginx configuration for config.

    Args:
        config: Fully populated router model, not modified

    Returns:
        nginx configuration document

    Raises:
        ConfigurationError: If the model cannot be rendered
        RenderError: If the rendered document is structurally broken
    """
    check_model(config)

    lines = sections(
        [HEADER],
        render_main(config),
        render_http(config),
        render_passthrough(config.passthrough),
    )
    check_balanced(lines)

    logger.debug(
        "Rendered nginx configuration",
        apps=len(config.app_configs),
        servers=sum(len(app.domains) for app in config.app_configs),
        tls=config.platform_certificate is not None,
        proxy_protocol=config.use_proxy_protocol,
        passthrough=config.passthrough is not None,
    )
    return "\n".join(lines) + "\n"
