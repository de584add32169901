"""Validation helpers shared by the router model and builder."""

import ipaddress


def validate_non_empty_string(value: str, field_name: str) -> str:
    """Validate that a string is not empty or only whitespace.

    Args:
        value: String value to validate
        field_name: Name of the field for error messages

    Returns:
        Stripped string value

    Raises:
        ValueError: If string is empty or only whitespace
    """
    if not value or not value.strip():
        raise ValueError(f"{field_name} cannot be empty")
    return value.strip()


def validate_network(value: str, field_name: str = "Network") -> str:
    """Validate an IP address or CIDR block as accepted by nginx.

    Host bits are allowed (``10.1.2.3/8``), nginx masks them itself.

    Raises:
        ValueError: If the value is neither an address nor a network
    """
    value = validate_non_empty_string(value, field_name)
    try:
        ipaddress.ip_network(value, strict=False)
    except ValueError as e:
        raise ValueError(f"{field_name} is not a valid IP or CIDR: {value}") from e
    return value


# Characters that would end or open an nginx directive or block
_DIRECTIVE_BREAKERS = frozenset(";{}\"'#")


def validate_directive_value(value: str, field_name: str) -> str:
    """Validate a value that is emitted verbatim as an nginx directive argument.

    Raises:
        ValueError: If the value is empty or would break the directive
    """
    value = validate_non_empty_string(value, field_name)
    if any(c.isspace() or c in _DIRECTIVE_BREAKERS for c in value):
        raise ValueError(f"{field_name} contains characters not allowed in nginx: {value!r}")
    return value
