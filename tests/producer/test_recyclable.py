"""
Tests for pooled producer ownership.
"""

import threading

import pytest

from txnsink.producer.recyclable import ProducerPool, Recyclable


class StubProducer:
    """Producer double for pool tests."""

    def __init__(self, transactional_id):
        self.transactional_id = transactional_id
        self.producer_id = 1
        self.epoch = 0
        self.init_count = 0
        self.closed = False

    def set_transactional_id(self, transactional_id):
        self.transactional_id = transactional_id

    def init_transactions(self):
        self.init_count += 1

    def close(self):
        self.closed = True


class TestRecyclable:
    """Test Recyclable."""

    def test_close_recycles_once(self):
        """Test the recycler runs exactly once."""
        recycled = []
        recyclable = Recyclable("obj", recycled.append)

        recyclable.close()
        recyclable.close()

        assert recycled == ["obj"]
        assert recyclable.is_recycled()

    def test_get_object_after_close(self):
        """Test recycled objects cannot be used."""
        recyclable = Recyclable("obj", lambda o: None)
        assert recyclable.get_object() == "obj"

        recyclable.close()

        with pytest.raises(RuntimeError):
            recyclable.get_object()

    def test_concurrent_close_recycles_once(self):
        """Test closing from many threads hands the object back once."""
        recycled = []
        barrier = threading.Barrier(8)

        for _ in range(50):
            recyclable = Recyclable("obj", recycled.append)

            def close():
                barrier.wait()
                recyclable.close()

            threads = [threading.Thread(target=close) for _ in range(8)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        assert recycled == ["obj"] * 50

    def test_context_manager(self):
        """Test recyclable closes on context exit."""
        recycled = []

        with Recyclable("obj", recycled.append) as recyclable:
            assert not recyclable.is_recycled()

        assert recycled == ["obj"]


class TestProducerPool:
    """Test ProducerPool."""

    def test_acquire_creates_producer(self):
        """Test first acquire builds and initializes a producer."""
        pool = ProducerPool(StubProducer)

        recyclable = pool.acquire("sink-0")
        producer = recyclable.get_object()

        assert producer.transactional_id == "sink-0"
        assert producer.init_count == 1
        assert pool.get_stats() == {"created": 1, "idle": 0, "in_use": 1, "recycled": 0}

    def test_recycled_producer_reused(self):
        """Test a returned producer is rebound for the next transactional id."""
        pool = ProducerPool(StubProducer)

        first = pool.acquire("sink-0")
        producer = first.get_object()
        first.close()

        second = pool.acquire("sink-1")

        assert second.get_object() is producer
        assert producer.transactional_id == "sink-1"
        assert producer.init_count == 2
        assert pool.get_stats()["created"] == 1

    def test_full_pool_closes_producer(self):
        """Test producers beyond max_idle are closed on recycle."""
        pool = ProducerPool(StubProducer, max_idle=1)

        first = pool.acquire("sink-0")
        second = pool.acquire("sink-1")
        first_producer = first.get_object()
        second_producer = second.get_object()
        first.close()
        second.close()

        assert not first_producer.closed
        assert second_producer.closed
        assert pool.get_stats()["idle"] == 1

    def test_close_pool(self):
        """Test closing the pool closes idle producers and rejects acquires."""
        pool = ProducerPool(StubProducer)
        recyclable = pool.acquire("sink-0")
        producer = recyclable.get_object()
        recyclable.close()

        pool.close()

        assert producer.closed
        with pytest.raises(RuntimeError):
            pool.acquire("sink-1")

    def test_recycle_after_pool_close(self):
        """Test producers returned after close are closed."""
        pool = ProducerPool(StubProducer)
        recyclable = pool.acquire("sink-0")
        producer = recyclable.get_object()

        pool.close()
        recyclable.close()

        assert producer.closed
        assert pool.get_stats()["idle"] == 0

    def test_failed_init_releases_slot(self):
        """Test a producer failing to initialize is closed and not counted."""
        class FailingProducer(StubProducer):
            def init_transactions(self):
                raise ConnectionError("broker down")

        built = []

        def factory(transactional_id):
            producer = FailingProducer(transactional_id)
            built.append(producer)
            return producer

        pool = ProducerPool(factory)

        with pytest.raises(ConnectionError):
            pool.acquire("sink-0")

        assert built[0].closed
        assert pool.get_stats()["in_use"] == 0
