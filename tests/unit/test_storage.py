"""
Unit tests for the query cache and the preferences file.
"""

import pytest

from apex.core.cache import QueryCache, optimistic
from apex.core.preferences import Preferences


class TestQueryCache:
    def test_get_returns_copy(self):
        cache = QueryCache()
        cache.set(("bikes",), [{"id": "b1"}])
        rows = cache.get(("bikes",))
        rows.append({"id": "b2"})
        assert cache.get(("bikes",)) == [{"id": "b1"}]
        assert cache.get(("rides",)) is None

    def test_update(self):
        cache = QueryCache()
        cache.update(("fuelLogs", "b1"), lambda rows: rows + [{"id": "f1"}])
        assert ("fuelLogs", "b1") in cache
        assert cache.get(("fuelLogs", "b1")) == [{"id": "f1"}]

    def test_fresh_until_stale(self):
        now = [1000.0]
        cache = QueryCache(stale_after=300, clock=lambda: now[0])
        cache.set(("bikes", "u1"), [{"id": "b1"}])
        now[0] += 299
        assert cache.get_fresh(("bikes", "u1")) == [{"id": "b1"}]
        now[0] += 2
        assert cache.get_fresh(("bikes", "u1")) is None
        assert cache.get(("bikes", "u1")) == [{"id": "b1"}]
        assert cache.get_fresh(("rides", "u1")) is None

    def test_invalidate_by_prefix(self):
        cache = QueryCache()
        cache.set(("rides", "b1"), [])
        cache.set(("rides", None), [])
        cache.set(("bikes",), [])
        cache.invalidate("rides")
        assert ("rides", "b1") not in cache
        assert ("bikes",) in cache
        cache.invalidate()
        assert ("bikes",) not in cache


class TestOptimistic:
    """Optimistic updates roll back when the backend call fails."""

    def test_kept_on_success(self):
        cache = QueryCache()
        key = ("fuelLogs", "b1")
        with optimistic(cache, [key], lambda: cache.update(key, lambda rows: rows + [{"id": "tmp"}])):
            pass
        assert cache.get(key) == [{"id": "tmp"}]

    def test_restored_on_failure(self):
        cache = QueryCache()
        key = ("fuelLogs", "b1")
        cache.set(key, [{"id": "f1", "litres": 10}])

        def apply():
            cache.update(key, lambda rows: [dict(r, litres=99) for r in rows])

        with pytest.raises(RuntimeError):
            with optimistic(cache, [key], apply):
                raise RuntimeError("network down")
        assert cache.get(key) == [{"id": "f1", "litres": 10}]

    def test_absent_key_removed_on_failure(self):
        cache = QueryCache()
        key = ("notifications",)
        with pytest.raises(RuntimeError):
            with optimistic(cache, [key], lambda: cache.set(key, [{"id": "n1"}])):
                raise RuntimeError("boom")
        assert key not in cache

    def test_mixed_keys_restored_on_failure(self):
        cache = QueryCache()
        present, absent = ("fuelLogs", "b1"), ("fuelLogs", "b2")
        cache.set(present, [{"id": "f1"}])

        def apply():
            cache.update(present, lambda rows: rows + [{"id": "tmp"}])
            cache.set(absent, [{"id": "tmp"}])

        with pytest.raises(RuntimeError):
            with optimistic(cache, [present, absent], apply):
                raise RuntimeError("network down")
        assert cache.get(present) == [{"id": "f1"}]
        assert absent not in cache


class TestPreferences:
    def test_in_memory(self):
        prefs = Preferences()
        prefs.set("lean_calibration_offset", 2.5)
        assert prefs.get("lean_calibration_offset") == "2.5"
        assert prefs.get_float("lean_calibration_offset") == 2.5
        assert prefs.keys() == ["lean_calibration_offset"]

    def test_persisted(self, tmp_path):
        path = tmp_path / "state" / "preferences.json"
        Preferences(path).set("app_update_last_version", "1.2.0")
        assert Preferences(path).get("app_update_last_version") == "1.2.0"

    def test_remove_and_clear(self, tmp_path):
        prefs = Preferences(tmp_path / "p.json")
        prefs.set("a", 1)
        prefs.set("b", 2)
        prefs.remove("a")
        assert prefs.get("a") is None
        prefs.clear()
        assert Preferences(tmp_path / "p.json").keys() == []

    def test_bad_float_uses_default(self):
        prefs = Preferences()
        prefs.set("offset", "sideways")
        assert prefs.get_float("offset", 1.0) == 1.0
        assert prefs.get_float("missing", 3.0) == 3.0

    @pytest.mark.parametrize("content", ["not json", "[1, 2]"])
    def test_unreadable_file_starts_empty(self, tmp_path, content):
        path = tmp_path / "p.json"
        path.write_text(content)
        assert Preferences(path).keys() == []
