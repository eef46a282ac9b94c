"""
Commit phase of the exactly-once sink.
"""

from txnsink.sink.committer import TransactionCommitter
from txnsink.sink.retry import CommitDriver, CommitRetryConfig

__all__ = [
    "TransactionCommitter",
    "CommitDriver",
    "CommitRetryConfig",
]
