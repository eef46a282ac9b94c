"""
In-process transaction broker.

Used as the broker behind the internal producer for local runs and tests.
"""

from txnsink.broker.broker import TransactionBroker
from txnsink.broker.registry import connect, register_cluster, unregister_cluster
from txnsink.broker.state import ProducerSlot, TransactionState

__all__ = [
    "TransactionBroker",
    "TransactionState",
    "ProducerSlot",
    # Registry
    "register_cluster",
    "unregister_cluster",
    "connect",
]
