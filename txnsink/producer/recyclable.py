"""
Scoped ownership of pooled producers.

A producing task checks a producer out of the pool, and whoever finishes
the transaction hands it back by closing the Recyclable. Returning twice
is impossible: the second close() is a no-op.
"""

import threading
from collections import deque
from typing import Callable, Deque, Generic, Optional, TypeVar

from txnsink.producer.internal_producer import InternalTransactionalProducer
from txnsink.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class Recyclable(Generic[T]):
    """
    Checked-out object that returns to its owner when closed.

    Attributes:
        recycler: Callback receiving the object on close
    """

    def __init__(self, obj: T, recycler: Callable[[T], None]):
        """
        Initialize recyclable.

        Args:
            obj: Pooled object
            recycler: Callback invoked once with the object on close
        """
        self._object: Optional[T] = obj
        self.recycler = recycler
        self._lock = threading.Lock()

    def get_object(self) -> T:
        """
        Get the pooled object.

        Raises:
            RuntimeError: If the object was already recycled
        """
        if self._object is None:
            raise RuntimeError("Object already recycled")
        return self._object

    def is_recycled(self) -> bool:
        return self._object is None

    def close(self) -> None:
        """Return the object to its owner (only the first call does anything)."""
        with self._lock:
            obj = self._object
            self._object = None

        if obj is not None:
            self.recycler(obj)

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit (auto-recycle)."""
        self.close()

    def __repr__(self) -> str:
        return f"Recyclable({self._object!r})"


ProducerFactory = Callable[[str], InternalTransactionalProducer]


class ProducerPool:
    """
    Pool of transactional producers.

    Producers are expensive to build (connection setup), so finished ones
    are kept idle and rebound to the next transactional id that needs one.
    """

    def __init__(
        self,
        factory: ProducerFactory,
        max_idle: int = 8,
    ):
        """
        Initialize producer pool.

        Args:
            factory: Builds a producer for a transactional id
            max_idle: Maximum idle producers kept for reuse
        """
        self.factory = factory
        self.max_idle = max_idle

        self._idle: Deque[InternalTransactionalProducer] = deque()
        self._lock = threading.Lock()
        self._closed = False

        # Statistics
        self._created = 0
        self._in_use = 0
        self._recycled = 0

    def acquire(self, transactional_id: str) -> Recyclable[InternalTransactionalProducer]:
        """
        Check out a producer registered for a transactional id.

        Args:
            transactional_id: Transactional ID

        Returns:
            Recyclable wrapping the producer
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("Producer pool is closed")

            producer = self._idle.popleft() if self._idle else None
            self._in_use += 1

        try:
            if producer is None:
                producer = self.factory(transactional_id)
                with self._lock:
                    self._created += 1
            else:
                producer.set_transactional_id(transactional_id)

            producer.init_transactions()
        except Exception:
            with self._lock:
                self._in_use -= 1
            if producer is not None:
                producer.close()
            raise

        logger.debug(
            "Producer acquired",
            transactional_id=transactional_id,
            producer_id=producer.producer_id,
            producer_epoch=producer.epoch,
        )

        return Recyclable(producer, self._recycle)

    def _recycle(self, producer: InternalTransactionalProducer) -> None:
        """Return a producer to the idle queue or close it."""
        with self._lock:
            self._in_use -= 1
            self._recycled += 1

            if not self._closed and len(self._idle) < self.max_idle:
                self._idle.append(producer)
                return

        producer.close()

    def close(self) -> None:
        """Close all idle producers. Checked-out producers close on recycle."""
        with self._lock:
            self._closed = True
            idle = list(self._idle)
            self._idle.clear()

        for producer in idle:
            producer.close()

        logger.info("Producer pool closed", closed=len(idle))

    def get_stats(self) -> dict:
        """
        Get pool statistics.

        Returns:
            Statistics dict
        """
        with self._lock:
            return {
                "created": self._created,
                "idle": len(self._idle),
                "in_use": self._in_use,
                "recycled": self._recycled,
            }
