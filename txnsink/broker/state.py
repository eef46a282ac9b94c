"""
Transaction state tracked by the broker per transactional id.
"""

import time
from dataclasses import dataclass
from enum import Enum


class TransactionState(Enum):
    """
    Broker-side transaction states.

    State transitions:
    EMPTY → ONGOING → PREPARE_COMMIT → COMMITTED
                   ↘        ↓
                      ABORTED
    COMMITTED and ABORTED may begin a new transaction (→ ONGOING).
    """

    EMPTY = "EMPTY"  # No transaction started for this epoch
    ONGOING = "ONGOING"
    PREPARE_COMMIT = "PREPARE_COMMIT"  # Flushed, waiting for the commit decision
    COMMITTED = "COMMITTED"
    ABORTED = "ABORTED"

    def is_terminal(self) -> bool:
        """Check if state is terminal (done)."""
        return self in (TransactionState.COMMITTED, TransactionState.ABORTED)

    def is_open(self) -> bool:
        """Check if a transaction is in flight."""
        return self in (TransactionState.ONGOING, TransactionState.PREPARE_COMMIT)

    def can_transition_to(self, new_state: 'TransactionState') -> bool:
        """
        Check if transition to new state is valid.

        Args:
            new_state: Target state

        Returns:
            True if transition is valid
        """
        valid_transitions = {
            TransactionState.EMPTY: {TransactionState.ONGOING},
            TransactionState.ONGOING: {
                TransactionState.PREPARE_COMMIT,
                TransactionState.COMMITTED,
                TransactionState.ABORTED,
            },
            TransactionState.PREPARE_COMMIT: {
                TransactionState.COMMITTED,
                TransactionState.ABORTED,
            },
            TransactionState.COMMITTED: {TransactionState.ONGOING},
            TransactionState.ABORTED: {TransactionState.ONGOING},
        }

        return new_state in valid_transitions.get(self, set())


@dataclass
class ProducerSlot:
    """
    Broker view of one transactional id.

    Attributes:
        transactional_id: Transactional ID
        producer_id: Producer ID assigned to this transactional id
        producer_epoch: Current epoch; requests from older epochs are fenced
        state: State of the current transaction
        start_time: Start of the current transaction (ms)
        last_update_time: Last state update (ms)
    """
    transactional_id: str
    producer_id: int
    producer_epoch: int
    state: TransactionState = TransactionState.EMPTY
    start_time: int = 0
    last_update_time: int = 0

    def is_timed_out(self, current_time: int, timeout_ms: int) -> bool:
        """
        Check if the open transaction has exceeded the timeout.

        Args:
            current_time: Current timestamp (ms)
            timeout_ms: Transaction timeout

        Returns:
            True if timed out
        """
        if not self.state.is_open():
            return False

        return current_time - self.start_time > timeout_ms

    def transition(self, new_state: TransactionState, update_time: int) -> None:
        """
        Move to a new state.

        Args:
            new_state: Target state
            update_time: Update timestamp (ms)

        Raises:
            ValueError: If the transition is not allowed
        """
        if not self.state.can_transition_to(new_state):
            raise ValueError(
                f"Invalid state transition: {self.state} → {new_state}"
            )

        if new_state == TransactionState.ONGOING:
            self.start_time = update_time

        self.state = new_state
        self.last_update_time = update_time


def current_time_ms() -> int:
    """Get the current wall-clock time in milliseconds."""
    return int(time.time() * 1000)
