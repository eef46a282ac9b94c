"""
In-process transaction broker.

Tracks, per transactional id, the producer id, the current epoch and the
state of the current transaction. It is the far side of the internal
producer for local runs and tests; it does not write transaction markers
or coordinate partitions.
"""

import threading
from typing import Dict, Optional, Tuple

from txnsink.broker.state import ProducerSlot, TransactionState, current_time_ms
from txnsink.errors import (
    BrokerError,
    BrokerNotAvailableError,
    InvalidTxnStateError,
    ProducerFencedError,
)
from txnsink.producer.config import DEFAULT_TRANSACTION_TIMEOUT_MS
from txnsink.utils.logging import get_logger

logger = get_logger(__name__)


class TransactionBroker:
    """
    Transaction coordinator side of the broker.

    Fencing rules:
    - init_producer_id() bumps the epoch of an existing transactional id and
      aborts any transaction left open by the older epoch
    - requests carrying an older epoch (or another producer id) raise
      ProducerFencedError
    - operations not allowed in the current state raise InvalidTxnStateError
    """

    def __init__(
        self,
        cluster_id: str = "local",
        transaction_timeout_ms: int = DEFAULT_TRANSACTION_TIMEOUT_MS,
        start_producer_id: int = 1000,
    ):
        """
        Initialize transaction broker.

        Args:
            cluster_id: Cluster identifier
            transaction_timeout_ms: Broker-side transaction timeout
            start_producer_id: First producer ID handed out
        """
        self.cluster_id = cluster_id
        self.transaction_timeout_ms = transaction_timeout_ms

        self._next_producer_id = start_producer_id
        self._slots: Dict[str, ProducerSlot] = {}
        self._available = True
        self._injected: Dict[str, BrokerError] = {}
        self._lock = threading.Lock()

        logger.info(
            "TransactionBroker initialized",
            cluster_id=cluster_id,
            timeout_ms=transaction_timeout_ms,
        )

    def init_producer_id(self, transactional_id: str) -> Tuple[int, int]:
        """
        Register a producer instance for a transactional id.

        Args:
            transactional_id: Transactional ID

        Returns:
            (producer_id, epoch) for the new instance
        """
        with self._lock:
            self._check_available(transactional_id)
            now = current_time_ms()

            slot = self._slots.get(transactional_id)

            if slot is None:
                slot = ProducerSlot(
                    transactional_id=transactional_id,
                    producer_id=self._next_producer_id,
                    producer_epoch=0,
                    last_update_time=now,
                )
                self._next_producer_id += 1
                self._slots[transactional_id] = slot
            else:
                if slot.state.is_open():
                    slot.transition(TransactionState.ABORTED, now)

                    logger.info(
                        "Aborted transaction of fenced epoch",
                        transactional_id=transactional_id,
                        producer_epoch=slot.producer_epoch,
                    )

                slot.producer_epoch += 1

            logger.info(
                "Producer ID initialized",
                transactional_id=transactional_id,
                producer_id=slot.producer_id,
                producer_epoch=slot.producer_epoch,
            )

            return slot.producer_id, slot.producer_epoch

    def begin_transaction(
        self,
        transactional_id: str,
        producer_id: int,
        epoch: int,
    ) -> None:
        """
        Begin a transaction for the given producer generation.

        Args:
            transactional_id: Transactional ID
            producer_id: Producer ID
            epoch: Producer epoch
        """
        with self._lock:
            slot = self._checked_slot(transactional_id, producer_id, epoch)

            if slot.state.is_open():
                raise InvalidTxnStateError(
                    f"Transaction for {transactional_id} already in state {slot.state.value}"
                )

            slot.transition(TransactionState.ONGOING, current_time_ms())

    def prepare_transaction(
        self,
        transactional_id: str,
        producer_id: int,
        epoch: int,
    ) -> None:
        """
        Mark the transaction as flushed and ready for the commit decision.

        Args:
            transactional_id: Transactional ID
            producer_id: Producer ID
            epoch: Producer epoch
        """
        with self._lock:
            slot = self._checked_slot(transactional_id, producer_id, epoch)
            self._transition_or_raise(slot, TransactionState.PREPARE_COMMIT)

    def commit_transaction(
        self,
        transactional_id: str,
        producer_id: int,
        epoch: int,
    ) -> None:
        """
        Commit the transaction of the given producer generation.

        Committing an already committed transaction is a no-op. A transaction
        that ran past the timeout is aborted and reported as invalid.

        Args:
            transactional_id: Transactional ID
            producer_id: Producer ID
            epoch: Producer epoch
        """
        with self._lock:
            slot = self._checked_slot(transactional_id, producer_id, epoch)
            now = current_time_ms()

            if slot.state == TransactionState.COMMITTED:
                logger.debug(
                    "Transaction already committed",
                    transactional_id=transactional_id,
                )
                return

            if slot.is_timed_out(now, self.transaction_timeout_ms):
                slot.transition(TransactionState.ABORTED, now)

                logger.warning(
                    "Transaction timed out, aborted",
                    transactional_id=transactional_id,
                    producer_epoch=epoch,
                )

            self._transition_or_raise(slot, TransactionState.COMMITTED)

            logger.info(
                "Transaction committed",
                transactional_id=transactional_id,
                producer_id=producer_id,
                producer_epoch=epoch,
            )

    def abort_transaction(
        self,
        transactional_id: str,
        producer_id: int,
        epoch: int,
    ) -> None:
        """
        Abort the transaction of the given producer generation.

        Args:
            transactional_id: Transactional ID
            producer_id: Producer ID
            epoch: Producer epoch
        """
        with self._lock:
            slot = self._checked_slot(transactional_id, producer_id, epoch)

            if slot.state == TransactionState.ABORTED:
                return

            self._transition_or_raise(slot, TransactionState.ABORTED)

            logger.info(
                "Transaction aborted",
                transactional_id=transactional_id,
                producer_epoch=epoch,
            )

    def expire_transactions(self, now_ms: Optional[int] = None) -> int:
        """
        Abort open transactions older than the transaction timeout.

        Args:
            now_ms: Current time (ms); defaults to wall-clock time

        Returns:
            Number of aborted transactions
        """
        now = current_time_ms() if now_ms is None else now_ms
        expired = 0

        with self._lock:
            for slot in self._slots.values():
                if slot.is_timed_out(now, self.transaction_timeout_ms):
                    slot.transition(TransactionState.ABORTED, now)
                    expired += 1

        if expired:
            logger.info("Expired transactions", count=expired)

        return expired

    def get_transaction_state(self, transactional_id: str) -> Optional[TransactionState]:
        """
        Get the state of the current transaction for a transactional id.

        Args:
            transactional_id: Transactional ID

        Returns:
            Transaction state, or None for unknown ids
        """
        with self._lock:
            slot = self._slots.get(transactional_id)
            return slot.state if slot else None

    def set_available(self, available: bool) -> None:
        """
        Simulate broker availability.

        Args:
            available: False makes every request fail with BrokerNotAvailableError
        """
        with self._lock:
            self._available = available

        logger.info(
            "Broker availability changed",
            cluster_id=self.cluster_id,
            available=available,
        )

    def inject_failure(self, transactional_id: str, error: BrokerError) -> None:
        """
        Fail the next request for a transactional id.

        Args:
            transactional_id: Transactional ID
            error: Error raised by the next request
        """
        with self._lock:
            self._injected[transactional_id] = error

    def get_stats(self) -> Dict:
        """
        Get broker statistics.

        Returns:
            Statistics dict
        """
        state_counts: Dict[str, int] = {}

        with self._lock:
            for slot in self._slots.values():
                state = slot.state.value
                state_counts[state] = state_counts.get(state, 0) + 1

            return {
                "cluster_id": self.cluster_id,
                "transactional_ids": len(self._slots),
                "state_counts": state_counts,
                "available": self._available,
            }

    def _check_available(self, transactional_id: str) -> None:
        if not self._available:
            raise BrokerNotAvailableError(f"Broker {self.cluster_id} is not available")

        injected = self._injected.pop(transactional_id, None)
        if injected is not None:
            raise injected

    def _checked_slot(
        self,
        transactional_id: str,
        producer_id: int,
        epoch: int,
    ) -> ProducerSlot:
        """Look up the slot and reject stale producer generations."""
        self._check_available(transactional_id)

        slot = self._slots.get(transactional_id)

        if slot is None:
            raise InvalidTxnStateError(
                f"Unknown transactional id {transactional_id}"
            )

        if producer_id != slot.producer_id or epoch < slot.producer_epoch:
            raise ProducerFencedError(
                f"Producer {producer_id} epoch {epoch} fenced for {transactional_id}; "
                f"current is {slot.producer_id} epoch {slot.producer_epoch}"
            )

        if epoch > slot.producer_epoch:
            raise InvalidTxnStateError(
                f"Epoch {epoch} was never assigned for {transactional_id}"
            )

        return slot

    def _transition_or_raise(self, slot: ProducerSlot, new_state: TransactionState) -> None:
        if not slot.state.can_transition_to(new_state):
            raise InvalidTxnStateError(
                f"Cannot move transaction for {slot.transactional_id} "
                f"from {slot.state.value} to {new_state.value}"
            )

        slot.transition(new_state, current_time_ms())
