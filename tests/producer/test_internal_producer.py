"""
Tests for the internal transactional producer.
"""

import uuid

import pytest

from txnsink.broker import TransactionBroker, TransactionState, register_cluster, unregister_cluster
from txnsink.errors import BrokerNotAvailableError, InvalidTxnStateError, ProducerFencedError
from txnsink.producer import InternalTransactionalProducer


@pytest.fixture
def broker():
    address = f"broker-{uuid.uuid4().hex[:8]}:9092"
    broker = TransactionBroker(cluster_id=address)
    register_cluster(address, broker)
    yield broker
    unregister_cluster(address)


@pytest.fixture
def properties(broker):
    return {"bootstrap.servers": broker.cluster_id}


class TestInternalTransactionalProducer:
    """Test InternalTransactionalProducer."""

    def test_transaction_lifecycle(self, broker, properties):
        """Test begin, pre-commit and commit."""
        producer = InternalTransactionalProducer(properties, "sink-0")
        producer.init_transactions()

        producer.begin_transaction()
        assert producer.is_in_transaction()
        producer.pre_commit()
        assert broker.get_transaction_state("sink-0") == TransactionState.PREPARE_COMMIT

        producer.commit_transaction()
        assert not producer.is_in_transaction()
        assert broker.get_transaction_state("sink-0") == TransactionState.COMMITTED

    def test_abort(self, broker, properties):
        """Test aborting a transaction."""
        producer = InternalTransactionalProducer(properties, "sink-0")
        producer.init_transactions()
        producer.begin_transaction()

        producer.abort_transaction()

        assert broker.get_transaction_state("sink-0") == TransactionState.ABORTED

    def test_transactional_id_from_properties(self, properties):
        """Test transactional id falls back to the transactional.id property."""
        producer = InternalTransactionalProducer({**properties, "transactional.id": "sink-7"})

        assert producer.transactional_id == "sink-7"

    def test_missing_transactional_id(self, properties):
        """Test a transactional id is required."""
        with pytest.raises(ValueError):
            InternalTransactionalProducer(properties)

    def test_unknown_cluster(self):
        """Test connecting to an unknown address fails."""
        with pytest.raises(BrokerNotAvailableError):
            InternalTransactionalProducer({"bootstrap.servers": "nowhere:1"}, "sink-0")

    def test_begin_requires_init(self, properties):
        """Test begin without a producer id is rejected."""
        producer = InternalTransactionalProducer(properties, "sink-0")

        with pytest.raises(InvalidTxnStateError):
            producer.begin_transaction()

    def test_commit_without_transaction(self, properties):
        """Test commit with nothing begun or resumed is rejected."""
        producer = InternalTransactionalProducer(properties, "sink-0")
        producer.init_transactions()

        with pytest.raises(InvalidTxnStateError):
            producer.commit_transaction()

    def test_resume_from_another_instance(self, broker, properties):
        """Test a second instance commits a transaction it did not begin."""
        original = InternalTransactionalProducer(properties, "sink-0")
        original.init_transactions()
        original.begin_transaction()
        original.pre_commit()

        recovery = InternalTransactionalProducer(properties, "sink-0")
        recovery.resume_transaction(original.producer_id, original.epoch)
        recovery.commit_transaction()

        assert broker.get_transaction_state("sink-0") == TransactionState.COMMITTED

    def test_rebind_forgets_resumed_generation(self, properties):
        """Test set_transactional_id clears the resumed transaction."""
        producer = InternalTransactionalProducer(properties, "sink-0")
        producer.resume_transaction(1000, 0)

        producer.set_transactional_id("sink-1")

        assert producer.transactional_id == "sink-1"
        assert producer.producer_id is None
        assert producer.epoch is None
        assert not producer.is_in_transaction()

    def test_fenced_by_newer_instance(self, properties):
        """Test an older instance is fenced once a newer one initializes."""
        old = InternalTransactionalProducer(properties, "sink-0")
        old.init_transactions()
        old.begin_transaction()

        newer = InternalTransactionalProducer(properties, "sink-0")
        newer.init_transactions()

        assert newer.epoch == old.epoch + 1
        with pytest.raises(ProducerFencedError):
            old.commit_transaction()

    def test_close_is_idempotent(self, properties):
        """Test close twice and use after close."""
        producer = InternalTransactionalProducer(properties, "sink-0")

        producer.close()
        producer.close()

        assert producer.is_closed()
        with pytest.raises(RuntimeError):
            producer.init_transactions()
