"""Bounded LRU cache of local video files keyed by video id"""
import logging
import threading
from collections import OrderedDict
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def delete_evicted_file(video_id: str, path: Path) -> None:
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove cached file {path} for video {video_id}: {e}")


class FileCache:
    """Keeps just-uploaded files around so transcription can skip a download

    Entries beyond ``max_entries`` are evicted least-recently-used first and
    handed to ``on_evict``.
    """

    def __init__(self, max_entries: int, on_evict: Optional[Callable[[str, Path], None]] = None):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._on_evict = on_evict
        self._entries: "OrderedDict[str, Path]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._entries)

    def __contains__(self, video_id):
        return video_id in self._entries

    def put(self, video_id: str, path: Path) -> None:
        evicted = []
        with self._lock:
            if video_id in self._entries:
                self._entries.move_to_end(video_id)
            self._entries[video_id] = Path(path)
            while len(self._entries) > self.max_entries:
                evicted.append(self._entries.popitem(last=False))
        for key, old_path in evicted:
            logger.debug(f"Evicting cached file for video {key}")
            if self._on_evict:
                self._on_evict(key, old_path)

    def get(self, video_id: str) -> Optional[Path]:
        """Cached path if present and still on disk"""
        with self._lock:
            path = self._entries.get(video_id)
            if path is None:
                return None
            if not path.exists():
                del self._entries[video_id]
                return None
            self._entries.move_to_end(video_id)
            return path

    def pop(self, video_id: str) -> Optional[Path]:
        with self._lock:
            return self._entries.pop(video_id, None)
