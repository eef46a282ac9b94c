"""
Producer property keys.

The property bundle is opaque to the committer; only the keys below are
read directly, for diagnostics and for locating the cluster.
"""

from typing import Any, Mapping

BOOTSTRAP_SERVERS_CONFIG = "bootstrap.servers"
TRANSACTIONAL_ID_CONFIG = "transactional.id"
TRANSACTION_TIMEOUT_CONFIG = "transaction.timeout.ms"

DEFAULT_TRANSACTION_TIMEOUT_MS = 60000  # 1 minute


def get_transaction_timeout(properties: Mapping[str, Any]) -> int:
    """
    Get the configured transaction timeout.

    Args:
        properties: Producer properties

    Returns:
        Transaction timeout in milliseconds

    Raises:
        ValueError: If the configured value is not a positive integer
    """
    value = properties.get(TRANSACTION_TIMEOUT_CONFIG, DEFAULT_TRANSACTION_TIMEOUT_MS)

    try:
        timeout_ms = int(value)
    except (TypeError, ValueError):
        raise ValueError(
            f"Invalid {TRANSACTION_TIMEOUT_CONFIG}: {value!r}"
        ) from None

    if timeout_ms <= 0:
        raise ValueError(f"{TRANSACTION_TIMEOUT_CONFIG} must be positive, got {timeout_ms}")

    return timeout_ms


def get_bootstrap_servers(properties: Mapping[str, Any]) -> str:
    """
    Get the bootstrap servers as a normalized comma-separated string.

    Args:
        properties: Producer properties

    Returns:
        Bootstrap servers

    Raises:
        ValueError: If no bootstrap servers are configured
    """
    servers = properties.get(BOOTSTRAP_SERVERS_CONFIG)

    if isinstance(servers, (list, tuple)):
        servers = ",".join(servers)

    if not servers:
        raise ValueError(f"{BOOTSTRAP_SERVERS_CONFIG} must be configured")

    return ",".join(s.strip() for s in str(servers).split(","))
