"""
Secret naming convention.

Secrets are named "{prefix}-{normalized server}-{username}". Username and
server are also stored as columns next to the secret, so parse_username()
is only needed for secrets written without that metadata.
"""

import re
from typing import Optional

DEFAULT_PREFIX = "VCenter"

_DISALLOWED = re.compile(r"[^A-Za-z0-9.-]")


def normalize_server(server: str) -> str:
    """Strip every character outside [A-Za-z0-9.-]."""
    return _DISALLOWED.sub("", server or "")


def server_prefix(server: str, prefix: str = DEFAULT_PREFIX) -> str:
    """Name prefix shared by all secrets of one server (trailing '-')."""
    return f"{prefix}-{normalize_server(server)}-"


def secret_name(server: str, username: str, prefix: str = DEFAULT_PREFIX) -> str:
    return f"{server_prefix(server, prefix)}{username}"


def parse_username(name: str, server: Optional[str] = None, prefix: str = DEFAULT_PREFIX) -> str:
    """
    Recover the username from a secret name.

    With the server known, the server prefix is stripped, which is exact
    even when the hostname contains '-'. Without it, the name is split on
    '-' into at most three parts and the third is returned.
    """
    if server is not None:
        head = server_prefix(server, prefix)
        if name.startswith(head):
            return name[len(head):]

    parts = name.split("-", 2)
    return parts[2] if len(parts) == 3 else ""
