"""
Commit driver with exponential backoff between cycles.

The committer itself never retries; it hands back the committables that
need another attempt. This driver feeds them back for a bounded number of
cycles when no host framework does it.
"""

import random
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from txnsink.committable import Committable
from txnsink.sink.committer import TransactionCommitter
from txnsink.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CommitRetryConfig:
    """
    Configuration for commit cycles.

    Attributes:
        max_cycles: Maximum number of commit cycles per run
        retry_backoff_ms: Initial backoff between cycles in milliseconds
        retry_backoff_max_ms: Maximum backoff in milliseconds
        retry_jitter_ms: Random jitter added to the backoff
    """
    max_cycles: int = 10
    retry_backoff_ms: int = 100
    retry_backoff_max_ms: int = 32000
    retry_jitter_ms: int = 20

    def __post_init__(self):
        if self.max_cycles < 1:
            raise ValueError("max_cycles must be at least 1")


class CommitDriver:
    """
    Runs commit cycles until every committable is resolved.

    Implements:
    - Exponential backoff: delay doubles each cycle
    - Maximum backoff: caps delay at maximum
    - Random jitter: prevents thundering herd
    """

    def __init__(
        self,
        committer: TransactionCommitter,
        config: Optional[CommitRetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize commit driver.

        Args:
            committer: Committer to drive
            config: Retry configuration
            sleep: Sleep function (seconds)
        """
        self.committer = committer
        self.config = config or CommitRetryConfig()
        self._sleep = sleep

        self._cycles = 0
        self._submitted = 0
        self._last_retry_count = 0

    def run(self, committables: Sequence[Committable]) -> List[Committable]:
        """
        Commit committables, resubmitting retryable ones.

        Args:
            committables: Committables to commit

        Returns:
            Committables still pending after max_cycles (empty when all
            were committed or abandoned)

        Raises:
            CommitFatalError: If a cycle fails at coordinator level
        """
        pending = list(committables)

        for cycle in range(self.config.max_cycles):
            if not pending:
                break

            if cycle > 0:
                backoff_ms = self._calculate_backoff(cycle - 1)

                logger.warning(
                    "Commit cycle left pending transactions, retrying",
                    cycle=cycle,
                    pending=len(pending),
                    backoff_ms=backoff_ms,
                )

                self._sleep(backoff_ms / 1000.0)

            self._cycles += 1
            self._submitted += len(pending)

            pending = self.committer.commit(pending)
            self._last_retry_count = len(pending)

        if pending:
            logger.error(
                "Transactions still pending after all commit cycles",
                cycles=self.config.max_cycles,
                pending=len(pending),
                transactional_ids=[c.transactional_id for c in pending],
            )

        return pending

    def _calculate_backoff(self, attempt: int) -> int:
        """
        Calculate backoff delay with exponential growth and jitter.

        Formula: min(base * 2^attempt, max) + jitter

        Args:
            attempt: Retry attempt number (0-indexed)

        Returns:
            Backoff delay in milliseconds
        """
        exponential_backoff = self.config.retry_backoff_ms * (2 ** attempt)

        backoff = min(exponential_backoff, self.config.retry_backoff_max_ms)

        jitter = random.randint(0, self.config.retry_jitter_ms)

        return backoff + jitter

    def get_stats(self) -> Dict:
        """
        Get driver statistics.

        Returns:
            Statistics dict
        """
        return {
            "cycles": self._cycles,
            "submitted": self._submitted,
            "last_retry_count": self._last_retry_count,
        }
