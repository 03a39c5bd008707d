from __future__ import annotations
import uuid
from typing import Tuple

# ========================================
#           INPUT VALIDATION HELPERS
# ========================================

def generate_client_identity() -> str:
    """Generate a new UUID v4 used as the client identity on the link flow"""
    return str(uuid.uuid4())


def is_hostport(s: str) -> bool:
    """
    Accepts 'hostname:port' or 'A.B.C.D:port'.

    Validates that:
    - String contains at least one colon (the last one splits host and port)
    - Port is a valid integer between 1 and 65535
    - Hostname is non-empty

    Examples: "localhost:25575", "192.168.1.5:8080", "example.com:443"
    """
    try:
        parse_address(s)
        return True
    except ValueError:
        return False


def parse_address(s: str) -> Tuple[str, int]:
    """
    Split 'host:port' into its parts.

    IPv6 literals may be bracketed: '[::1]:25575'.

    Raises:
        ValueError: if the string is not a usable host:port pair
    """
    if ':' not in s:
        raise ValueError(f"Expected host:port, got {s!r}")
    host, port_s = s.rsplit(':', 1)
    if host.startswith('[') and host.endswith(']'):
        host = host[1:-1]
    if not host:
        raise ValueError(f"Missing host in {s!r}")
    if not port_s.isdigit():
        raise ValueError(f"Invalid port in {s!r}")
    port = int(port_s)
    if not 0 < port <= 65535:
        raise ValueError(f"Port out of range in {s!r}")
    return host, port
