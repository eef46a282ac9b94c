"""
Committable: a prepared transaction waiting for the commit decision.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

from txnsink.producer.internal_producer import InternalTransactionalProducer
from txnsink.producer.recyclable import Recyclable


@dataclass(frozen=True)
class LiveHandle:
    """The producer that prepared the transaction is still in this process."""
    recyclable: Recyclable[InternalTransactionalProducer]

    @property
    def producer(self) -> InternalTransactionalProducer:
        return self.recyclable.get_object()


@dataclass(frozen=True)
class NeedsRecovery:
    """Only the persisted transaction generation is known."""
    transactional_id: str
    producer_id: int
    epoch: int


ProducerHandle = Union[LiveHandle, NeedsRecovery]


@dataclass(frozen=True)
class Committable:
    """
    Immutable record of one prepared transaction.

    Attributes:
        transactional_id: Transactional ID, stable across restarts
        producer_id: Producer ID of the prepared transaction
        epoch: Producer epoch of the prepared transaction
        producer: Live producer handle, absent after recovery from
            persisted state
    """
    transactional_id: str
    producer_id: int
    epoch: int
    producer: Optional[Recyclable[InternalTransactionalProducer]] = field(
        default=None, compare=False, repr=False,
    )

    @classmethod
    def of(cls, producer: Recyclable[InternalTransactionalProducer]) -> "Committable":
        """
        Build a committable from a checked-out producer.

        Args:
            producer: Recyclable holding the producer that prepared the
                transaction

        Returns:
            Committable carrying the live handle
        """
        obj = producer.get_object()

        if obj.producer_id is None or obj.epoch is None:
            raise ValueError("Producer has no producer ID; call init_transactions() first")

        return cls(
            transactional_id=obj.transactional_id,
            producer_id=obj.producer_id,
            epoch=obj.epoch,
            producer=producer,
        )

    @classmethod
    def recovered(cls, transactional_id: str, producer_id: int, epoch: int) -> "Committable":
        """Build a committable from persisted transaction metadata."""
        return cls(
            transactional_id=transactional_id,
            producer_id=producer_id,
            epoch=epoch,
        )

    def resolve(self) -> ProducerHandle:
        """
        Decide how the transaction will be reached.

        Returns:
            LiveHandle if the in-process producer is still checked out,
            NeedsRecovery otherwise
        """
        if self.producer is not None and not self.producer.is_recycled():
            return LiveHandle(self.producer)

        return NeedsRecovery(
            transactional_id=self.transactional_id,
            producer_id=self.producer_id,
            epoch=self.epoch,
        )
