import logging
import socket
from urllib.parse import urlparse

from imagegen.oci.errors import ResolutionError
from imagegen.oci.options import Options

logger = logging.getLogger(__name__)


def _hostname(endpoint: str) -> str:
    """Strip scheme, port and path from a registry endpoint"""
    if "://" not in endpoint:
        endpoint = f"//{endpoint}"
    return urlparse(endpoint).hostname or ""


def resolve(endpoint: str) -> list[str]:
    """Resolve `endpoint` and log the alias chain down to its address

    Equivalent of `dig +short hostname`.
    """
    hostname = _hostname(endpoint)
    if not hostname:
        raise ResolutionError("hostname required")

    try:
        canonical, aliases, addresses = socket.gethostbyname_ex(hostname)
    except OSError as e:
        raise ResolutionError(f"failed to resolve {hostname}: {e}") from e

    path = [hostname]
    for name in [*aliases, canonical]:
        if name not in path:
            path.append(name)
    if addresses:
        path.append(addresses[0])

    logger.info("DNS:  %s", " -> ".join(path))
    return path


def resolve_all(options: Options) -> dict[str, list[str]]:
    endpoints = [options.login_server]
    if options.data_endpoint:
        endpoints.append(options.data_endpoint)
    return {endpoint: resolve(endpoint) for endpoint in endpoints}
