"""Video ingestion: probe, upload, thumbnail, record creation and transcription"""
import logging
import mimetypes
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from clipdesk.core.config import settings
from clipdesk.core.exceptions import AssetNotFoundError
from clipdesk.core.metrics import ingest_counter
from clipdesk.db.store import DocumentStore
from clipdesk.models.base import generate_id
from clipdesk.models.video import VideoStatus
from clipdesk.services.project_service import recompute_project_stats
from clipdesk.services.storage.r2_service import get_r2_service
from clipdesk.services.video.config import default_post_types
from clipdesk.services.video.eligibility import aspect_ratio, detect_format
from clipdesk.utils.file_cache import FileCache, delete_evicted_file
from clipdesk.utils.media import MediaProbe, MediaToolError, extract_audio, extract_thumbnail, probe_video

ingest_logger = logging.getLogger("ingest")


class IngestService:
    """Turns an uploaded local file into a video record

    Owns the cache of local copies so transcription right after upload does
    not download the file again.
    """

    def __init__(self, store: DocumentStore, storage_factory=None, generator=None,
                 file_cache: Optional[FileCache] = None):
        self.store = store
        self.storage_factory = storage_factory or get_r2_service
        self.generator = generator
        self.file_cache = file_cache or FileCache(settings.FILE_CACHE_MAX_ENTRIES, on_evict=delete_evicted_file)

    def _probe(self, local_path: Path) -> MediaProbe:
        try:
            return probe_video(local_path)
        except MediaToolError as e:
            ingest_logger.warning(f"Could not probe {local_path}: {e}")
            return MediaProbe()

    def _upload_thumbnail(self, video_id: str, local_path: Path, duration: Optional[float]) -> Optional[str]:
        object_key = f"thumbnails/{video_id}.webp"
        with tempfile.TemporaryDirectory() as tmp:
            thumb_path = Path(tmp) / f"{video_id}.webp"
            try:
                extract_thumbnail(local_path, thumb_path, duration)
            except MediaToolError as e:
                ingest_logger.warning(f"Thumbnail extraction failed for video {video_id}: {e}")
                ingest_counter.labels(step="thumbnail", status="failure").inc()
                return None
            if not self.storage_factory().upload_file(thumb_path, object_key, content_type="image/webp"):
                ingest_logger.warning(f"Thumbnail upload failed for video {video_id}")
                ingest_counter.labels(step="thumbnail", status="failure").inc()
                return None
        return object_key

    def _public_url(self, object_key: Optional[str]) -> Optional[str]:
        if not object_key:
            return None
        try:
            return self.storage_factory().public_url(object_key)
        except ValueError as e:
            ingest_logger.warning(f"No public URL for {object_key}: {e}")
            return None

    async def ingest_video(self, user_id: str, local_path: Path, filename: str,
                           project_id: Optional[str] = None, title: Optional[str] = None) -> Dict[str, Any]:
        """Create a ready video from a local upload, then try to transcribe it

        Raises:
            ValueError: If the file cannot be stored
        """
        local_path = Path(local_path)
        video_id = generate_id()
        probe = self._probe(local_path)
        video_format = detect_format(probe.width, probe.height)

        suffix = Path(filename).suffix.lower() or ".mp4"
        object_key = f"videos/{user_id}/{video_id}{suffix}"
        content_type = mimetypes.guess_type(filename)[0] or "video/mp4"
        if not self.storage_factory().upload_file(local_path, object_key, content_type=content_type):
            ingest_counter.labels(step="upload", status="failure").inc()
            raise ValueError(f"Failed to store {filename}")

        thumbnail_path = self._upload_thumbnail(video_id, local_path, probe.duration)

        self.store.create("videos", {
            "id": video_id,
            "user_id": user_id,
            "project_id": project_id,
            "title": title or Path(filename).stem,
            "storage_path": object_key,
            "url": self._public_url(object_key),
            "thumbnail_path": thumbnail_path,
            "thumbnail_url": self._public_url(thumbnail_path),
            "file_size": local_path.stat().st_size,
            "format": video_format,
            "width": probe.width,
            "height": probe.height,
            "duration_seconds": probe.duration,
            "status": VideoStatus.READY.value,
            "platforms": [],
            "post_types": default_post_types(
                video_format, aspect_ratio(probe.width, probe.height), probe.duration
            ),
            "distribution_config": [],
        })
        self.file_cache.put(video_id, local_path)
        ingest_counter.labels(step="upload", status="success").inc()
        ingest_logger.info(
            f"Ingested video {video_id} for user {user_id}: {filename} "
            f"({probe.width}x{probe.height}, {probe.duration}s, {video_format})",
            extra={"video_id": video_id, "user_id": user_id, "project_id": project_id}
        )

        if project_id:
            try:
                recompute_project_stats(self.store, project_id)
            except Exception as e:
                ingest_logger.error(f"Stats recomputation failed for project {project_id}: {e}", exc_info=True)

        if self.generator is not None:
            await self.transcribe_video(video_id)
        return self.store.get("videos", video_id)

    def discard_local_copy(self, video_id: str) -> None:
        """Drop a deleted video's cached upload from the cache and the disk"""
        path = self.file_cache.pop(video_id)
        if path is not None:
            delete_evicted_file(video_id, path)
            ingest_logger.info(f"Removed cached upload for deleted video {video_id}")

    def _local_copy(self, video: Dict[str, Any], workdir: Path) -> Path:
        cached = self.file_cache.get(video["id"])
        if cached is not None:
            return cached
        target = workdir / (Path(video.get("storage_path") or "video.mp4").name)
        if not video.get("storage_path") or not self.storage_factory().download_file(video["storage_path"], target):
            raise ValueError(f"Could not download video {video['id']} from storage")
        return target

    async def transcribe_video(self, video_id: str, raise_errors: bool = False) -> Optional[str]:
        """Transcribe a stored video and move it to pending review

        Failures are logged and return None unless ``raise_errors`` is set.
        """
        video = self.store.get("videos", video_id)
        if video is None:
            raise AssetNotFoundError("videos", video_id)
        if self.generator is None:
            raise ValueError("No content generator configured")

        try:
            with tempfile.TemporaryDirectory() as tmp:
                workdir = Path(tmp)
                source = self._local_copy(video, workdir)
                audio_path = workdir / f"{video_id}.wav"
                try:
                    extract_audio(source, audio_path)
                    transcript = await self.generator.transcribe(audio_path, mime_type="audio/wav")
                except MediaToolError as e:
                    ingest_logger.warning(f"Audio extraction failed for video {video_id}, sending full video: {e}")
                    mime_type = mimetypes.guess_type(source.name)[0] or "video/mp4"
                    transcript = await self.generator.transcribe(source, mime_type=mime_type)
        except Exception as e:
            ingest_logger.error(f"Transcription failed for video {video_id}: {e}", exc_info=True)
            ingest_counter.labels(step="transcribe", status="failure").inc()
            if raise_errors:
                raise
            return None

        fields = {"transcription": transcript}
        if video["status"] == VideoStatus.READY.value:
            fields["status"] = VideoStatus.PENDING.value
        self.store.update("videos", video_id, fields)
        ingest_counter.labels(step="transcribe", status="success").inc()
        ingest_logger.info(f"Transcribed video {video_id} ({len(transcript)} chars)")

        if "status" in fields and video.get("project_id"):
            try:
                recompute_project_stats(self.store, video["project_id"])
            except Exception as e:
                ingest_logger.error(f"Stats recomputation failed for project {video['project_id']}: {e}", exc_info=True)
        return transcript
