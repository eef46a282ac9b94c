"""
Internal transactional producer.

Broker client that can be rebound to another transactional id and can
resume a transaction begun by a different process, which is what the
committer needs to finish transactions after a restart.
"""

from typing import Any, Mapping, Optional

from txnsink.broker.registry import connect
from txnsink.errors import InvalidTxnStateError
from txnsink.producer.config import (
    TRANSACTIONAL_ID_CONFIG,
    get_bootstrap_servers,
    get_transaction_timeout,
)
from txnsink.utils.logging import get_logger

logger = get_logger(__name__)


class InternalTransactionalProducer:
    """
    Transactional broker client.

    Lifecycle for a producing task:
    ```
    producer.init_transactions()
    producer.begin_transaction()
    ...
    producer.pre_commit()
    producer.commit_transaction()
    ```

    Lifecycle for recovery:
    ```
    producer.set_transactional_id(committable.transactional_id)
    producer.resume_transaction(committable.producer_id, committable.epoch)
    producer.commit_transaction()
    ```
    """

    def __init__(
        self,
        properties: Mapping[str, Any],
        transactional_id: Optional[str] = None,
    ):
        """
        Initialize producer and connect to the cluster.

        Args:
            properties: Producer properties (passed through from configuration)
            transactional_id: Transactional ID; defaults to the
                transactional.id property

        Raises:
            BrokerNotAvailableError: If the cluster cannot be reached
            ValueError: If no transactional id is available
        """
        self.properties = dict(properties)
        self.transaction_timeout_ms = get_transaction_timeout(self.properties)

        transactional_id = transactional_id or self.properties.get(TRANSACTIONAL_ID_CONFIG)
        if not transactional_id:
            raise ValueError("Transactional producer requires a transactional id")

        self._broker = connect(get_bootstrap_servers(self.properties))
        self._transactional_id: str = transactional_id
        self._producer_id: Optional[int] = None
        self._epoch: Optional[int] = None
        self._in_transaction = False
        self._closed = False

        logger.info(
            "InternalTransactionalProducer initialized",
            transactional_id=transactional_id,
            cluster_id=self._broker.cluster_id,
        )

    @property
    def transactional_id(self) -> str:
        return self._transactional_id

    @property
    def producer_id(self) -> Optional[int]:
        return self._producer_id

    @property
    def epoch(self) -> Optional[int]:
        return self._epoch

    def init_transactions(self) -> None:
        """
        Register this instance with the broker.

        Fences every older instance using the same transactional id.
        """
        self._ensure_open()

        self._producer_id, self._epoch = self._broker.init_producer_id(
            self._transactional_id
        )
        self._in_transaction = False

    def begin_transaction(self) -> None:
        """Begin a new transaction."""
        self._ensure_open()
        self._ensure_initialized()

        if self._in_transaction:
            raise InvalidTxnStateError("Transaction already active")

        self._broker.begin_transaction(
            self._transactional_id, self._producer_id, self._epoch
        )
        self._in_transaction = True

        logger.debug(
            "Transaction began",
            transactional_id=self._transactional_id,
        )

    def pre_commit(self) -> None:
        """
        Flush the transaction and hand it over to the commit phase.

        The transaction stays open on the broker until it is committed,
        possibly by another producer instance that resumes it.
        """
        self._ensure_open()
        self._ensure_in_transaction()

        self._broker.prepare_transaction(
            self._transactional_id, self._producer_id, self._epoch
        )

    def commit_transaction(self) -> None:
        """
        Commit the current (begun or resumed) transaction.

        Raises:
            InvalidTxnStateError: If the transaction cannot be committed
            ProducerFencedError: If a newer instance owns the transactional id
        """
        self._ensure_open()
        self._ensure_in_transaction()

        self._broker.commit_transaction(
            self._transactional_id, self._producer_id, self._epoch
        )
        self._in_transaction = False

        logger.debug(
            "Transaction committed",
            transactional_id=self._transactional_id,
            producer_id=self._producer_id,
            producer_epoch=self._epoch,
        )

    def abort_transaction(self) -> None:
        """Abort the current transaction."""
        self._ensure_open()
        self._ensure_in_transaction()

        self._broker.abort_transaction(
            self._transactional_id, self._producer_id, self._epoch
        )
        self._in_transaction = False

    def set_transactional_id(self, transactional_id: str) -> None:
        """
        Rebind this client to another transactional id.

        The previously resumed producer generation is forgotten; call
        resume_transaction() before committing.

        Args:
            transactional_id: New transactional ID
        """
        self._ensure_open()

        logger.debug(
            "Rebinding producer",
            old_transactional_id=self._transactional_id,
            new_transactional_id=transactional_id,
        )

        self._transactional_id = transactional_id
        self._producer_id = None
        self._epoch = None
        self._in_transaction = False

    def resume_transaction(self, producer_id: int, epoch: int) -> None:
        """
        Adopt an in-flight transaction without beginning a new one.

        Args:
            producer_id: Producer ID of the transaction to resume
            epoch: Producer epoch of the transaction to resume
        """
        self._ensure_open()

        self._producer_id = producer_id
        self._epoch = epoch
        self._in_transaction = True

        logger.info(
            "Transaction resumed",
            transactional_id=self._transactional_id,
            producer_id=producer_id,
            producer_epoch=epoch,
        )

    def is_in_transaction(self) -> bool:
        return self._in_transaction

    def is_closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Close the producer and release its broker connection."""
        if self._closed:
            return

        self._closed = True
        self._broker = None

        logger.info(
            "Producer closed",
            transactional_id=self._transactional_id,
        )

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def __repr__(self) -> str:
        return (
            f"InternalTransactionalProducer(transactional_id={self._transactional_id!r}, "
            f"producer_id={self._producer_id}, epoch={self._epoch})"
        )

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("Producer is closed")

    def _ensure_initialized(self) -> None:
        if self._producer_id is None or self._epoch is None:
            raise InvalidTxnStateError("Producer ID not initialized")

    def _ensure_in_transaction(self) -> None:
        if not self._in_transaction:
            raise InvalidTxnStateError(
                f"No transaction in flight for {self._transactional_id}"
            )
