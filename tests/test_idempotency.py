"""Тесты кэша идемпотентности."""

from datetime import timedelta

import pytest

from conftest import T0, wire
from dart_taskmaster_sync.models import Envelope
from dart_taskmaster_sync.services import IdempotencyCache
from dart_taskmaster_sync.services.idempotency import CACHE_CAPACITY


def _envelope(index: int) -> Envelope:
    return Envelope.from_wire(wire(task_id=f"T{index}", timestamp=T0 + timedelta(seconds=index)))


class TestIdempotencyCache:
    """Ограниченное множество отпечатков с вытеснением FIFO"""

    def test_first_sighting_is_new(self):
        cache = IdempotencyCache()
        envelope = _envelope(1)
        assert cache.seen(envelope) is False
        assert cache.seen(envelope) is True
        assert len(cache) == 1

    def test_default_capacity(self):
        assert IdempotencyCache().capacity == CACHE_CAPACITY == 1000

    def test_1001_insertions_evict_exactly_the_first(self):
        cache = IdempotencyCache()
        envelopes = [_envelope(i) for i in range(1001)]
        for envelope in envelopes:
            assert cache.seen(envelope) is False

        assert len(cache) == 1000
        assert envelopes[0].fingerprint not in cache
        assert all(item.fingerprint in cache for item in envelopes[1:])
        assert cache.seen(envelopes[0]) is False

    def test_eviction_follows_insertion_order_not_timestamp(self):
        cache = IdempotencyCache(capacity=2)
        late, early, newest = _envelope(9), _envelope(1), _envelope(5)
        cache.seen(late)
        cache.seen(early)
        cache.seen(newest)
        assert late.fingerprint not in cache
        assert early.fingerprint in cache

    def test_forget(self):
        cache = IdempotencyCache()
        envelope = _envelope(1)
        cache.seen(envelope)
        cache.forget(envelope)
        assert cache.seen(envelope) is False

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            IdempotencyCache(capacity=0)
