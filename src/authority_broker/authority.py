"""Authority endpoint resolution.

The authority URL for a request is the configured authority host URL joined
with the host component of the target resource URI:

    https://login.microsoftonline.com/common + dev.azure.com
        -> https://login.microsoftonline.com/common/dev.azure.com

Two host extraction modes exist because different acquisition paths have
historically addressed the authority differently:
- DNS_SAFE: host usable for DNS resolution (IPv6 brackets removed)
- PLAIN: host as written in the URI authority (IPv6 brackets kept)

Both modes are kept as explicit, named choices. See DESIGN.md.
"""

from __future__ import annotations

__all__ = [
    "HostMode",
    "host_component",
    "require_absolute_uri",
    "resolve_authority_url",
]

from enum import Enum
from urllib.parse import SplitResult, urlsplit

from authority_broker.exceptions import PreconditionError


class HostMode(str, Enum):
    """How the host component is extracted from a target URI."""

    DNS_SAFE = "dns_safe"
    PLAIN = "plain"


def require_absolute_uri(uri: str, name: str = "target_uri") -> SplitResult:
    """Parse a URI and require it to be absolute.

    Args:
        uri: URI to check.
        name: Parameter name used in the error message.

    Returns:
        The split URI.

    Raises:
        PreconditionError: If the URI is missing, relative or has no host.
    """
    if not isinstance(uri, str) or not uri.strip():
        raise PreconditionError(f"The {name} parameter is null or empty")

    try:
        parts = urlsplit(uri.strip())
    except ValueError as e:
        raise PreconditionError(f"The {name} parameter is not a valid URI: {uri!r}") from e
    if not parts.scheme or not parts.netloc or not parts.hostname:
        raise PreconditionError(f"The {name} parameter is not an absolute URI: {uri!r}")
    return parts


def host_component(target_uri: str, mode: HostMode = HostMode.DNS_SAFE) -> str:
    """Extract the host of an absolute URI.

    Args:
        target_uri: Absolute URI of the target resource.
        mode: Extraction mode.

    Returns:
        Lower-cased host without userinfo or port.

    Raises:
        PreconditionError: If target_uri is not absolute.
    """
    parts = require_absolute_uri(target_uri)

    if mode is HostMode.DNS_SAFE:
        # hostname drops userinfo, port and IPv6 brackets, and lower-cases
        return parts.hostname or ""

    host = parts.netloc.rpartition("@")[2]
    if host.startswith("["):
        host = host[: host.index("]") + 1] if "]" in host else host
    else:
        host = host.split(":", 1)[0]
    return host.lower()


def resolve_authority_url(
    authority_host_url: str,
    target_uri: str,
    mode: HostMode = HostMode.DNS_SAFE,
) -> str:
    """Build the authority URL for a target resource.

    Args:
        authority_host_url: Configured authority host URL.
        target_uri: Absolute URI of the target resource.
        mode: Host extraction mode selected by the call site.

    Returns:
        ``authority_host_url + "/" + host`` with exactly one separator.

    Raises:
        PreconditionError: If target_uri is not absolute or the host URL is empty.
    """
    if not authority_host_url or not authority_host_url.strip():
        raise PreconditionError("The authority_host_url parameter is null or empty")

    host = host_component(target_uri, mode)
    return f"{authority_host_url.strip().rstrip('/')}/{host}"
