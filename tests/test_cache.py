"""Tests for the generation result cache."""

import pytest

from mcq_service.cache import (
    FIFOEvictionPolicy,
    LRUEvictionPolicy,
    ResultCache,
    compute_fingerprint,
    get_eviction_policy,
)
from mcq_service.models import MCQ, DifficultyCounts


def _records(n: int = 1):
    return [
        MCQ(
            question=f"Q{i}",
            options={"A": "1", "B": "2", "C": "3", "D": "4"},
            correct_answer="A",
        )
        for i in range(n)
    ]


class TestComputeFingerprint:
    """Tests for request fingerprints."""

    def test_deterministic(self):
        counts = DifficultyCounts(easy=2, medium=1)
        assert compute_fingerprint("text", counts, True) == compute_fingerprint(
            "text", counts, True
        )

    @pytest.mark.parametrize(
        "material,counts,explain",
        [
            ("other text", DifficultyCounts(easy=2, medium=1), True),
            ("text", DifficultyCounts(easy=1, medium=2), True),
            ("text", DifficultyCounts(easy=2, hard=1), True),
            ("text", DifficultyCounts(easy=2, medium=1), False),
        ],
    )
    def test_any_field_change_changes_key(self, material, counts, explain):
        """Test that every request field takes part in the key."""
        base = compute_fingerprint("text", DifficultyCounts(easy=2, medium=1), True)
        assert compute_fingerprint(material, counts, explain) != base

    def test_sha256_hex(self):
        key = compute_fingerprint("text", DifficultyCounts(easy=1), False)
        assert len(key) == 64
        int(key, 16)


class TestResultCache:
    """Tests for ResultCache."""

    def test_miss_then_hit(self):
        cache = ResultCache(max_size=10)
        assert cache.get("k") is None

        records = _records(2)
        cache.put("k", records)

        assert cache.get("k") == records
        assert "k" in cache
        assert len(cache) == 1

    def test_get_returns_copy(self):
        """Test that callers cannot mutate cached lists."""
        cache = ResultCache(max_size=10)
        cache.put("k", _records(2))

        cache.get("k").clear()

        assert len(cache.get("k")) == 2

    def test_empty_results_are_not_cached(self):
        cache = ResultCache(max_size=10)
        cache.put("k", [])
        assert "k" not in cache
        assert len(cache) == 0

    def test_overflow_evicts_exactly_oldest_entry(self):
        """Test that the 501st insert evicts only the first key."""
        cache = ResultCache(max_size=500)
        for i in range(500):
            cache.put(f"key-{i}", _records())

        cache.put("key-500", _records())

        assert len(cache) == 500
        assert "key-0" not in cache
        assert "key-1" in cache
        assert "key-500" in cache
        assert cache.get_stats()["evictions"] == 1

    def test_fifo_reads_do_not_refresh(self):
        """Test that a read does not protect an entry under FIFO."""
        cache = ResultCache(max_size=2, policy=FIFOEvictionPolicy())
        cache.put("first", _records())
        cache.put("second", _records())
        cache.get("first")

        cache.put("third", _records())

        assert "first" not in cache
        assert "second" in cache

    def test_lru_reads_refresh(self):
        """Test that a read moves the entry to most recently used under LRU."""
        cache = ResultCache(max_size=2, policy=LRUEvictionPolicy())
        cache.put("first", _records())
        cache.put("second", _records())
        cache.get("first")

        cache.put("third", _records())

        assert "first" in cache
        assert "second" not in cache

    def test_stats(self):
        cache = ResultCache(max_size=5)
        cache.put("k", _records())
        cache.get("k")
        cache.get("missing")

        stats = cache.get_stats()

        assert stats["policy"] == "fifo"
        assert stats["size"] == 1
        assert stats["max_size"] == 5
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 0.5

    def test_clear(self):
        cache = ResultCache(max_size=5)
        cache.put("k", _records())
        cache.get("k")

        cache.clear()

        assert len(cache) == 0
        assert cache.get_stats()["hits"] == 0

    def test_invalid_max_size(self):
        with pytest.raises(ValueError):
            ResultCache(max_size=0)


class TestGetEvictionPolicy:
    """Tests for policy lookup by name."""

    def test_known_policies(self):
        assert isinstance(get_eviction_policy("fifo"), FIFOEvictionPolicy)
        assert isinstance(get_eviction_policy("LRU"), LRUEvictionPolicy)

    def test_unknown_policy(self):
        with pytest.raises(ValueError, match="Unknown eviction policy"):
            get_eviction_policy("random")
