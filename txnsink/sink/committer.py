"""
Committer for the transactional sink.

Finalizes transactions that were prepared by the producing tasks, either
through the producer still held in-process or through a recovery producer
rebuilt from the persisted transaction generation.
"""

from typing import Any, Callable, List, Mapping, Optional, Sequence

from txnsink.committable import Committable, LiveHandle, NeedsRecovery, ProducerHandle
from txnsink.errors import (
    CommitOutcome,
    ErrorKind,
    RecoveryProducerError,
    classify_error,
    outcome_for,
)
from txnsink.producer.config import (
    TRANSACTION_TIMEOUT_CONFIG,
    TRANSACTIONAL_ID_CONFIG,
    get_transaction_timeout,
)
from txnsink.producer.internal_producer import InternalTransactionalProducer
from txnsink.utils.logging import get_logger

logger = get_logger(__name__)

RecoveryProducerFactory = Callable[[Mapping[str, Any], str], InternalTransactionalProducer]


class TransactionCommitter:
    """
    Commits prepared transactions, one commit cycle at a time.

    Outcomes per committable:
    - COMMITTED: live producer handed back to its pool
    - ABANDONED (invalid state, fenced): warning logged, live producer
      handed back, never retried
    - RETRYABLE (anything else): warning logged, committable returned to the
      caller unchanged, live producer kept

    Not thread-safe: commit cycles of one committer must not overlap. The
    recovery producer is bound to one transactional id at a time.
    """

    def __init__(
        self,
        producer_config: Mapping[str, Any],
        producer_factory: Optional[RecoveryProducerFactory] = None,
    ):
        """
        Initialize committer.

        Args:
            producer_config: Producer properties used to build the recovery
                producer
            producer_factory: Builds the recovery producer from
                (properties, transactional_id)

        Raises:
            ValueError: If transaction.timeout.ms is not a positive integer;
                it is read up front for the fencing diagnostics
        """
        self.producer_config = dict(producer_config)
        self.transaction_timeout_ms = get_transaction_timeout(self.producer_config)

        self._producer_factory = producer_factory or InternalTransactionalProducer
        self._recovery_producer: Optional[InternalTransactionalProducer] = None
        self._closed = False

    def commit(self, committables: Sequence[Committable]) -> List[Committable]:
        """
        Commit a batch of prepared transactions.

        Every committable is attempted, whatever happened to the others.

        Args:
            committables: Committables of this commit cycle

        Returns:
            Committables to resubmit in a later cycle

        Raises:
            RecoveryProducerError: If the recovery producer cannot be built
            RuntimeError: If the committer is closed
        """
        if self._closed:
            raise RuntimeError("Committer is closed")

        retryable: List[Committable] = []
        counts = {outcome: 0 for outcome in CommitOutcome}

        for committable in committables:
            logger.debug(
                "Committing transaction",
                transactional_id=committable.transactional_id,
            )

            outcome = self._commit_one(committable, committable.resolve())
            counts[outcome] += 1

            if outcome is CommitOutcome.RETRYABLE:
                retryable.append(committable)

        if committables:
            logger.info(
                "Commit cycle finished",
                committed=counts[CommitOutcome.COMMITTED],
                abandoned=counts[CommitOutcome.ABANDONED],
                retryable=counts[CommitOutcome.RETRYABLE],
            )

        return retryable

    def _commit_one(self, committable: Committable, handle: ProducerHandle) -> CommitOutcome:
        """Commit one transaction and classify the result."""
        if isinstance(handle, NeedsRecovery) and self._recovery_producer is None:
            self._recovery_producer = self._create_recovery_producer(handle.transactional_id)

        try:
            if isinstance(handle, LiveHandle):
                producer = handle.producer
            else:
                producer = self._resume_recovery_producer(handle)

            producer.commit_transaction()
        except Exception as error:
            kind = classify_error(error)
            outcome = outcome_for(kind)
            self._log_failure(committable, kind, error)
        else:
            outcome = CommitOutcome.COMMITTED

        if outcome is not CommitOutcome.RETRYABLE and isinstance(handle, LiveHandle):
            self._release(committable, handle)

        return outcome

    def _release(self, committable: Committable, handle: LiveHandle) -> None:
        """Hand a live producer back to its pool; the outcome stands either way."""
        try:
            handle.recyclable.close()
        except Exception as error:
            logger.warning(
                "Failed to return producer to its pool",
                committable=repr(committable),
                error=str(error),
                exc_info=error,
            )

    def _log_failure(self, committable: Committable, kind: ErrorKind, error: Exception) -> None:
        if kind is ErrorKind.INVALID_STATE:
            logger.warning(
                "Unable to commit recovered transaction because it is in an invalid state. "
                "Most likely the transaction has been aborted, check the broker logs for details",
                committable=repr(committable),
                error=str(error),
            )
        elif kind is ErrorKind.FENCED:
            logger.warning(
                "Unable to commit recovered transaction because its producer is already fenced. "
                "Either another producer uses the same transactional id or recovery took longer "
                "than the transaction timeout. Both most likely signal data loss",
                committable=repr(committable),
                transactional_id_key=TRANSACTIONAL_ID_CONFIG,
                transaction_timeout_key=TRANSACTION_TIMEOUT_CONFIG,
                transaction_timeout_ms=self.transaction_timeout_ms,
                error=str(error),
            )
        else:
            logger.warning(
                "Cannot commit transaction, retrying",
                committable=repr(committable),
                error_kind=kind.value,
                error=str(error),
                exc_info=error,
            )

    def _create_recovery_producer(self, transactional_id: str) -> InternalTransactionalProducer:
        """
        Build the recovery producer on first need.

        Raises:
            RecoveryProducerError: If the producer cannot be constructed
        """
        try:
            producer = self._producer_factory(self.producer_config, transactional_id)
        except Exception as e:
            raise RecoveryProducerError(
                f"Cannot create recovery producer for {transactional_id}: {e}"
            ) from e

        logger.info(
            "Recovery producer created",
            transactional_id=transactional_id,
        )

        return producer

    def _resume_recovery_producer(self, handle: NeedsRecovery) -> InternalTransactionalProducer:
        """
        Bind the recovery producer to the committable's transaction.

        Creates a producer that can commit into the same transaction as the
        upstream producer that prepared it.
        """
        producer = self._recovery_producer

        if producer.transactional_id != handle.transactional_id:
            producer.set_transactional_id(handle.transactional_id)

        producer.resume_transaction(handle.producer_id, handle.epoch)

        return producer

    def close(self) -> None:
        """Close the recovery producer, if one was ever created."""
        self._closed = True

        if self._recovery_producer is None:
            return

        producer = self._recovery_producer
        self._recovery_producer = None
        producer.close()

        logger.info("Recovery producer closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
