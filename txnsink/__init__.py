"""
txnsink - commit coordinator for an exactly-once transactional sink.

Finalizes broker transactions prepared by a streaming job's producing tasks
during the checkpoint-commit phase:
- Commits through the in-process producer when it is still alive
- Rebuilds a recovery producer to resume transactions after a restart
- Abandons transactions that were aborted or fenced, retries the rest
"""

__version__ = "0.1.0"

from txnsink.committable import Committable, LiveHandle, NeedsRecovery
from txnsink.errors import CommitFatalError, CommitOutcome, RecoveryProducerError
from txnsink.sink import CommitDriver, CommitRetryConfig, TransactionCommitter

__all__ = [
    "Committable",
    "LiveHandle",
    "NeedsRecovery",
    "TransactionCommitter",
    "CommitDriver",
    "CommitRetryConfig",
    "CommitOutcome",
    "CommitFatalError",
    "RecoveryProducerError",
]
