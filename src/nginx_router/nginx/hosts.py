"""Virtual host name matching."""

from dataclasses import dataclass
from enum import Enum


class HostMatchKind(str, Enum):
    """How a virtual host selects requests."""

    EXACT = "exact"
    SUFFIXED = "suffixed"
    WILDCARD = "wildcard"


@dataclass(frozen=True)
class HostMatch:
    """Resolved server_name for one app domain."""

    kind: HostMatchKind
    server_name: str

    @property
    def terminates_tls(self) -> bool:
        """Whether this host may carry a TLS listener.

        Fully-qualified domains terminate TLS in front of the router.
        """
        return self.kind is not HostMatchKind.EXACT


def is_fully_qualified(domain: str) -> bool:
    """Return True when domain is used verbatim (contains a dot)."""
    return "." in domain


def match_host(domain: str, base_domain: str | None = None) -> HostMatch:
    """Resolve the server_name for an app domain.

    Order matters: a dotted domain always wins over the base domain, and the
    regex wildcard is only used when there is no base domain at all.

    Args:
        domain: App domain, a single label or a fully-qualified name
        base_domain: Platform domain appended to single labels

    Returns:
        HostMatch with the server_name argument to emit
    """
    if is_fully_qualified(domain):
        return HostMatch(HostMatchKind.EXACT, domain)
    if base_domain:
        return HostMatch(HostMatchKind.SUFFIXED, f"{domain}.{base_domain}")
    return HostMatch(HostMatchKind.WILDCARD, rf"~^{domain}\.(?<domain>.+)$")
