"""
Tests for the provider result cache.
"""
from collections import OrderedDict

import pytest
from hypothesis import given, settings, strategies as st

from klever_sdk.cache import ResultCache


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class TestResultCache:
    """Test TTL expiry and insertion-order eviction."""

    def test_get_returns_stored_value(self):
        cache = ResultCache()
        cache.set("account:a", {"balance": 1})
        assert cache.get("account:a") == {"balance": 1}
        assert "account:a" in cache
        assert len(cache) == 1

    def test_missing_key_returns_default(self):
        cache = ResultCache()
        assert cache.get("nope") is None
        assert cache.get("nope", 5) == 5
        assert "nope" not in cache

    def test_entry_expires_at_ttl_boundary(self):
        clock = FakeClock()
        cache = ResultCache(ttl=15.0, timer=clock)
        cache.set("k", "v")

        clock.advance(14.999)
        assert cache.get("k") == "v"

        clock.advance(0.001)
        assert cache.get("k") is None
        # Expired entries are evicted on access
        assert len(cache) == 0

    def test_oldest_inserted_entry_is_evicted_at_capacity(self):
        cache = ResultCache(maxsize=3)
        for key in ("a", "b", "c"):
            cache.set(key, key.upper())

        cache.get("a")  # reads do not refresh position
        cache.set("d", "D")

        assert "a" not in cache
        assert [cache.get(k) for k in ("b", "c", "d")] == ["B", "C", "D"]

    def test_updating_existing_key_never_evicts(self):
        cache = ResultCache(maxsize=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)

        assert len(cache) == 2
        assert cache.get("a") == 10
        assert cache.get("b") == 2

    def test_update_keeps_insertion_position(self):
        cache = ResultCache(maxsize=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)
        cache.set("c", 3)

        assert "a" not in cache
        assert cache.get("b") == 2
        assert cache.get("c") == 3

    def test_update_refreshes_ttl(self):
        clock = FakeClock()
        cache = ResultCache(ttl=10, timer=clock)
        cache.set("k", 1)
        clock.advance(8)
        cache.set("k", 2)
        clock.advance(8)
        assert cache.get("k") == 2

    def test_delete_and_clear(self):
        cache = ResultCache()
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.delete("a") is True
        assert cache.delete("a") is False

        cache.clear()
        assert len(cache) == 0

    def test_falsy_values_are_cached(self):
        cache = ResultCache()
        cache.set("zero", 0)
        assert "zero" in cache
        assert cache.get("zero", "missing") == 0

    @pytest.mark.parametrize("kwargs", [{"ttl": 0}, {"ttl": -1}, {"maxsize": 0}])
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(ValueError):
            ResultCache(**kwargs)


operations = st.lists(
    st.one_of(
        st.tuples(st.just("set"), st.integers(0, 6), st.integers()),
        st.tuples(st.just("get"), st.integers(0, 6), st.none()),
        st.tuples(st.just("tick"), st.integers(0, 20), st.none()),
    ),
    max_size=60,
)


@settings(max_examples=100)
@given(ops=operations, maxsize=st.integers(1, 5))
def test_cache_matches_reference_model(ops, maxsize):
    """The cache never exceeds maxsize and agrees with a simple ordered model."""
    clock = FakeClock(0.0)
    ttl = 10.0
    cache = ResultCache(ttl=ttl, maxsize=maxsize, timer=clock)
    model = OrderedDict()  # key -> (value, expires_at)

    for op, key, value in ops:
        if op == "tick":
            clock.advance(key)
        elif op == "set":
            if key not in model and len(model) >= maxsize:
                model.popitem(last=False)
            model[key] = (value, clock.now + ttl)
            cache.set(key, value)
        else:
            expected = None
            if key in model:
                stored, expires_at = model[key]
                if clock.now >= expires_at:
                    del model[key]
                else:
                    expected = stored
            assert cache.get(key) == expected

        assert len(cache) <= maxsize
