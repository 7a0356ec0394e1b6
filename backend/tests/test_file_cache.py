"""Local file cache used between upload and transcription"""
import pytest

from clipdesk.utils.file_cache import FileCache, delete_evicted_file


@pytest.mark.high
class TestFileCache:
    def test_least_recently_used_entry_is_evicted(self, tmp_path):
        evicted = []
        cache = FileCache(2, on_evict=lambda key, path: evicted.append(key))
        for name in ("a", "b", "c"):
            path = tmp_path / f"{name}.mp4"
            path.write_bytes(b"x")
            if name == "c":
                cache.get("a")
            cache.put(name, path)

        assert evicted == ["b"]
        assert "a" in cache and "c" in cache
        assert len(cache) == 2

    def test_missing_file_is_dropped_on_get(self, tmp_path):
        cache = FileCache(4)
        cache.put("gone", tmp_path / "gone.mp4")
        assert cache.get("gone") is None
        assert "gone" not in cache

    def test_evicted_files_are_deleted(self, tmp_path):
        cache = FileCache(1, on_evict=delete_evicted_file)
        first = tmp_path / "first.mp4"
        first.write_bytes(b"x")
        cache.put("first", first)
        cache.put("second", tmp_path / "second.mp4")
        assert not first.exists()

    def test_pop_forgets_without_evicting(self, tmp_path):
        evicted = []
        cache = FileCache(1, on_evict=lambda key, path: evicted.append(key))
        cache.put("a", tmp_path / "a.mp4")
        assert cache.pop("a") == tmp_path / "a.mp4"
        assert evicted == []

    def test_size_must_be_positive(self):
        with pytest.raises(ValueError):
            FileCache(0)
