"""Tests for the commit driver."""

import pytest

from txnsink.committable import Committable
from txnsink.errors import RecoveryProducerError
from txnsink.sink.retry import CommitDriver, CommitRetryConfig


class ScriptedCommitter:
    """Committer double returning a scripted retry set per cycle."""

    def __init__(self, script):
        self.script = list(script)
        self.batches = []

    def commit(self, committables):
        self.batches.append(list(committables))
        result = self.script.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class TestCommitDriver:
    """Test CommitDriver."""

    def test_single_cycle(self):
        """Test no retry when the first cycle resolves everything."""
        committable = Committable.recovered("t1", 1, 0)
        committer = ScriptedCommitter([[]])
        sleeps = []
        driver = CommitDriver(committer, sleep=sleeps.append)

        assert driver.run([committable]) == []
        assert committer.batches == [[committable]]
        assert sleeps == []
        assert driver.get_stats() == {"cycles": 1, "submitted": 1, "last_retry_count": 0}

    def test_resubmits_retry_set(self):
        """Test retryable committables are fed back with backoff."""
        a = Committable.recovered("a", 1, 0)
        b = Committable.recovered("b", 2, 0)
        committer = ScriptedCommitter([[b], [b], []])
        sleeps = []
        config = CommitRetryConfig(retry_backoff_ms=100, retry_jitter_ms=0)
        driver = CommitDriver(committer, config, sleep=sleeps.append)

        assert driver.run([a, b]) == []
        assert committer.batches == [[a, b], [b], [b]]
        assert sleeps == [0.1, 0.2]
        assert driver.get_stats()["cycles"] == 3

    def test_gives_up_after_max_cycles(self):
        """Test pending committables are returned after max_cycles."""
        a = Committable.recovered("a", 1, 0)
        committer = ScriptedCommitter([[a], [a]])
        config = CommitRetryConfig(max_cycles=2, retry_backoff_ms=1, retry_jitter_ms=0)
        driver = CommitDriver(committer, config, sleep=lambda s: None)

        assert driver.run([a]) == [a]
        assert len(committer.batches) == 2

    def test_backoff_capped(self):
        """Test backoff never exceeds the maximum."""
        config = CommitRetryConfig(
            retry_backoff_ms=1000,
            retry_backoff_max_ms=3000,
            retry_jitter_ms=0,
        )
        driver = CommitDriver(ScriptedCommitter([]), config)

        assert driver._calculate_backoff(0) == 1000
        assert driver._calculate_backoff(1) == 2000
        assert driver._calculate_backoff(5) == 3000

    def test_empty_input(self):
        """Test empty input runs no cycle."""
        committer = ScriptedCommitter([])
        driver = CommitDriver(committer)

        assert driver.run([]) == []
        assert committer.batches == []

    def test_fatal_error_propagates(self):
        """Test coordinator-level failures stop the run."""
        committer = ScriptedCommitter([RecoveryProducerError("no broker")])
        driver = CommitDriver(committer, sleep=lambda s: None)

        with pytest.raises(RecoveryProducerError):
            driver.run([Committable.recovered("a", 1, 0)])

    def test_invalid_config(self):
        """Test max_cycles must be positive."""
        with pytest.raises(ValueError):
            CommitRetryConfig(max_cycles=0)
