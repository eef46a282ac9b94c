"""Transactional producer client for the sink."""

from txnsink.producer.config import (
    BOOTSTRAP_SERVERS_CONFIG,
    DEFAULT_TRANSACTION_TIMEOUT_MS,
    TRANSACTION_TIMEOUT_CONFIG,
    TRANSACTIONAL_ID_CONFIG,
    get_transaction_timeout,
)
from txnsink.producer.internal_producer import InternalTransactionalProducer
from txnsink.producer.recyclable import ProducerPool, Recyclable

__all__ = [
    "InternalTransactionalProducer",
    "ProducerPool",
    "Recyclable",
    # Properties
    "BOOTSTRAP_SERVERS_CONFIG",
    "TRANSACTIONAL_ID_CONFIG",
    "TRANSACTION_TIMEOUT_CONFIG",
    "DEFAULT_TRANSACTION_TIMEOUT_MS",
    "get_transaction_timeout",
]
