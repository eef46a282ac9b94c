"""
Broker error categories and commit outcome classification.

The broker reports failures as one exception class per category. The
committer never relies on except-clause ordering to decide what a failure
means; it asks classify_error() and switches on the returned kind.
"""

from enum import Enum


class BrokerError(Exception):
    """Base class for errors reported by the broker or the broker client."""
    pass


class InvalidTxnStateError(BrokerError):
    """Transaction is not in a state that allows the requested operation."""
    pass


class ProducerFencedError(BrokerError):
    """A newer producer instance owns this transactional id."""
    pass


class BrokerNotAvailableError(BrokerError):
    """Broker cannot be reached."""
    pass


class NetworkError(BrokerError):
    """Connection to the broker failed mid-request."""
    pass


class RequestTimeoutError(BrokerError):
    """Broker did not answer within the request timeout."""
    pass


class CoordinatorLoadInProgressError(BrokerError):
    """Transaction coordinator is still loading its state."""
    pass


class CommitFatalError(Exception):
    """Coordinator-level failure that aborts the whole commit cycle."""
    pass


class RecoveryProducerError(CommitFatalError):
    """The recovery producer could not be constructed."""
    pass


class ErrorKind(Enum):
    """Broker-reported error category."""

    INVALID_STATE = "INVALID_STATE"
    FENCED = "FENCED"
    TRANSIENT = "TRANSIENT"  # Known transient broker or transport failure
    UNKNOWN = "UNKNOWN"  # Anything else


class CommitOutcome(Enum):
    """Result of one commit attempt."""

    COMMITTED = "COMMITTED"
    ABANDONED = "ABANDONED"  # Permanent, never retried
    RETRYABLE = "RETRYABLE"  # Resubmitted in a later cycle


TRANSIENT_ERRORS = (
    BrokerNotAvailableError,
    NetworkError,
    RequestTimeoutError,
    CoordinatorLoadInProgressError,
    ConnectionError,
    TimeoutError,
)


def classify_error(error: BaseException) -> ErrorKind:
    """
    Determine the broker error category of a failure.

    Args:
        error: Exception raised by the broker client

    Returns:
        Error kind
    """
    if isinstance(error, InvalidTxnStateError):
        return ErrorKind.INVALID_STATE

    if isinstance(error, ProducerFencedError):
        return ErrorKind.FENCED

    if isinstance(error, TRANSIENT_ERRORS):
        return ErrorKind.TRANSIENT

    return ErrorKind.UNKNOWN


def outcome_for(kind: ErrorKind) -> CommitOutcome:
    """
    Map an error kind to the commit outcome.

    Invalid state and fencing can never succeed on retry. Every other
    failure, including unknown ones, is retried in a later cycle.

    Args:
        kind: Error kind

    Returns:
        Commit outcome
    """
    if kind in (ErrorKind.INVALID_STATE, ErrorKind.FENCED):
        return CommitOutcome.ABANDONED

    return CommitOutcome.RETRYABLE
