"""
Address registry for in-process brokers.

Producers locate their broker through the bootstrap.servers property, the
same way they would dial a remote cluster.
"""

import threading
from typing import Dict, List

from txnsink.broker.broker import TransactionBroker
from txnsink.errors import BrokerNotAvailableError
from txnsink.utils.logging import get_logger

logger = get_logger(__name__)

_clusters: Dict[str, TransactionBroker] = {}
_lock = threading.Lock()


def _addresses(bootstrap_servers: str) -> List[str]:
    return [s.strip() for s in bootstrap_servers.split(",") if s.strip()]


def register_cluster(bootstrap_servers: str, broker: TransactionBroker) -> None:
    """
    Make a broker reachable under one or more addresses.

    Args:
        bootstrap_servers: Comma-separated addresses
        broker: Broker to register
    """
    with _lock:
        for address in _addresses(bootstrap_servers):
            _clusters[address] = broker

    logger.info(
        "Cluster registered",
        cluster_id=broker.cluster_id,
        bootstrap_servers=bootstrap_servers,
    )


def unregister_cluster(bootstrap_servers: str) -> None:
    """
    Remove addresses from the registry.

    Args:
        bootstrap_servers: Comma-separated addresses
    """
    with _lock:
        for address in _addresses(bootstrap_servers):
            _clusters.pop(address, None)


def connect(bootstrap_servers: str) -> TransactionBroker:
    """
    Resolve the broker behind the first reachable address.

    Args:
        bootstrap_servers: Comma-separated addresses

    Returns:
        Broker

    Raises:
        BrokerNotAvailableError: If no address is registered
    """
    with _lock:
        for address in _addresses(bootstrap_servers):
            broker = _clusters.get(address)
            if broker is not None:
                return broker

    raise BrokerNotAvailableError(f"No broker reachable at {bootstrap_servers}")
