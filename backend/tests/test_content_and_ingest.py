"""Content generation (Gemini) and the ingestion pipeline"""
import base64
import json
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from clipdesk.core.exceptions import ValidationError
from clipdesk.services.content_service import (
    ContentGenerationError, GeminiContentGenerator, generate_platform_content
)
from clipdesk.services.ingest_service import IngestService
from clipdesk.utils.file_cache import FileCache
from clipdesk.utils.media import MediaProbe, MediaToolError


def gemini_transport(text, seen, status=200):
    def handler(request: httpx.Request):
        seen.append(request)
        if status != 200:
            return httpx.Response(status, json={"error": {"message": "quota"}})
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})
    return httpx.MockTransport(handler)


@pytest.mark.high
class TestGeminiContentGenerator:
    @pytest.mark.asyncio
    async def test_youtube_suggestion_is_structured(self):
        seen = []
        payload = json.dumps({"title": "Big launch", "description": "All about it", "tags": "launch, product,"})
        generator = GeminiContentGenerator(api_key="test-key", transport=gemini_transport(payload, seen))

        result = await generator.generate("we launched", "youtube", "shorts", "Acme")

        assert result == {"title": "Big launch", "description": "All about it", "tags": ["launch", "product"]}
        request = seen[0]
        assert request.url.path == "/v1beta/models/gemini-2.5-flash:generateContent"
        assert request.url.params["key"] == "test-key"
        body = json.loads(request.content)
        assert body["generationConfig"]["responseMimeType"] == "application/json"
        assert "Acme" in body["contents"][0]["parts"][0]["text"]
        assert "Shorts" in body["contents"][0]["parts"][0]["text"]

    @pytest.mark.asyncio
    async def test_caption_suggestion_is_plain_text(self):
        seen = []
        generator = GeminiContentGenerator(api_key="k", transport=gemini_transport("  New drop! #launch \n", seen))
        result = await generator.generate("we launched", "instagram", "story", "Acme")
        assert result == {"caption": "New drop! #launch"}
        assert "generationConfig" not in json.loads(seen[0].content)

    @pytest.mark.asyncio
    async def test_transcribe_sends_inline_audio(self, tmp_path):
        seen = []
        audio = tmp_path / "a.wav"
        audio.write_bytes(b"RIFFdata")
        generator = GeminiContentGenerator(api_key="k", transport=gemini_transport("hello there", seen))

        assert await generator.transcribe(audio) == "hello there"
        inline = json.loads(seen[0].content)["contents"][0]["parts"][0]["inline_data"]
        assert inline == {"mime_type": "audio/wav", "data": base64.b64encode(b"RIFFdata").decode()}

    @pytest.mark.asyncio
    async def test_http_error_is_raised(self):
        generator = GeminiContentGenerator(api_key="k", transport=gemini_transport("", [], status=429))
        with pytest.raises(ContentGenerationError):
            await generator.generate("t", "tiktok", "reel", "")

    @pytest.mark.asyncio
    async def test_missing_api_key_is_raised(self):
        with pytest.raises(ContentGenerationError):
            await GeminiContentGenerator(api_key="").generate("t", "tiktok", "reel", "")


@pytest.mark.critical
class TestGeneratePlatformContent:
    @pytest.mark.asyncio
    async def test_suggestion_is_saved_to_every_entry(self, workflow, store, video_factory, project):
        video = video_factory(
            project_id=project["id"],
            transcription="we launched a thing",
            platforms=["youtube"],
            distribution_config=[
                {"platform": "youtube", "account_id": "yt-a", "post_type": "shorts", "metadata": {}, "external_id": None},
                {"platform": "youtube", "account_id": "yt-b", "post_type": "shorts", "metadata": {}, "external_id": None},
            ],
        )
        generator = Mock()
        generator.generate = AsyncMock(return_value={"title": "T" * 120, "description": "D", "tags": ["x"]})

        content = await generate_platform_content(workflow, generator, video["id"], "youtube")

        generator.generate.assert_awaited_once_with("we launched a thing", "youtube", "shorts", "Acme")
        assert len(content["title"]) == 100
        stored = store.get("videos", video["id"])
        assert stored["youtube_metadata"]["description"] == "D"
        assert {e["metadata"]["caption"] for e in stored["distribution_config"]} == {"D"}

    @pytest.mark.asyncio
    async def test_requires_a_transcript(self, workflow, video_factory):
        video = video_factory(transcription="")
        with pytest.raises(ValidationError) as exc_info:
            await generate_platform_content(workflow, Mock(), video["id"], "tiktok")
        assert exc_info.value.field == "transcription"


@pytest.fixture
def generator():
    content_generator = Mock()
    content_generator.transcribe = AsyncMock(return_value="hello world")
    return content_generator


@pytest.fixture
def media_tools():
    """ffmpeg/ffprobe replaced with file-writing fakes"""
    def fake_thumbnail(video_path, output_path, duration=None):
        output_path.write_bytes(b"webp")
        return output_path

    def fake_audio(video_path, output_path):
        output_path.write_bytes(b"wav")
        return output_path

    with patch("clipdesk.services.ingest_service.probe_video", return_value=MediaProbe(1080, 1920, 30.0)) as inspect, \
            patch("clipdesk.services.ingest_service.extract_thumbnail", side_effect=fake_thumbnail), \
            patch("clipdesk.services.ingest_service.extract_audio", side_effect=fake_audio) as audio:
        yield {"inspect": inspect, "audio": audio}


@pytest.fixture
def upload(tmp_path):
    path = tmp_path / "upload.mp4"
    path.write_bytes(b"video-bytes")
    return path


@pytest.fixture
def ingest(store, storage, generator):
    return IngestService(store, storage_factory=lambda: storage, generator=generator, file_cache=FileCache(4))


@pytest.mark.critical
class TestIngestVideo:
    @pytest.mark.asyncio
    async def test_creates_transcribed_video(self, ingest, store, storage, project, upload, media_tools):
        video = await ingest.ingest_video("user-1", upload, "My Clip.mp4", project_id=project["id"])

        assert video["status"] == "pending"
        assert video["transcription"] == "hello world"
        assert video["title"] == "My Clip"
        assert (video["width"], video["height"], video["duration_seconds"]) == (1080, 1920, 30.0)
        assert video["format"] == "vertical"
        assert video["post_types"] == {"youtube": "shorts", "instagram": "reel", "tiktok": "reel"}
        assert video["platforms"] == [] and video["distribution_config"] == []
        assert video["storage_path"] == f"videos/user-1/{video['id']}.mp4"
        assert video["thumbnail_path"] == f"thumbnails/{video['id']}.webp"
        assert video["url"] == f"https://media.example.com/videos/user-1/{video['id']}.mp4"

        content_types = [c.kwargs["content_type"] for c in storage.upload_file.call_args_list]
        assert content_types == ["video/mp4", "image/webp"]
        assert store.get("projects", project["id"])["stats"]["pending_review"] == 1

    @pytest.mark.asyncio
    async def test_transcription_failure_leaves_ready_video(self, ingest, generator, upload, media_tools):
        generator.transcribe.side_effect = ContentGenerationError("quota")
        video = await ingest.ingest_video("user-1", upload, "clip.mp4")
        assert video["status"] == "ready"
        assert not video["transcription"]

    @pytest.mark.asyncio
    async def test_media_inspection_failure_is_not_fatal(self, ingest, upload, media_tools):
        media_tools["inspect"].side_effect = MediaToolError("ffprobe not found")
        video = await ingest.ingest_video("user-1", upload, "clip.mov")
        assert video["width"] is None and video["format"] is None
        assert video["post_types"]["youtube"] == "video"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("measured,expected", [
        (MediaProbe(1080, 1920, 120.0), "video"),
        (MediaProbe(1080, 1080, 20.0), "shorts"),
    ])
    async def test_youtube_type_uses_measured_duration(self, ingest, upload, media_tools, measured, expected):
        media_tools["inspect"].return_value = measured
        video = await ingest.ingest_video("user-1", upload, "clip.mp4")
        assert video["post_types"]["youtube"] == expected

    @pytest.mark.asyncio
    async def test_deleted_video_releases_cached_upload(self, ingest, upload, media_tools):
        video = await ingest.ingest_video("user-1", upload, "clip.mp4")
        assert video["id"] in ingest.file_cache

        ingest.discard_local_copy(video["id"])

        assert video["id"] not in ingest.file_cache
        assert not upload.exists()

    @pytest.mark.asyncio
    async def test_storage_failure_raises(self, ingest, store, storage, upload, media_tools):
        storage.upload_file.return_value = False
        with pytest.raises(ValueError):
            await ingest.ingest_video("user-1", upload, "clip.mp4")
        assert store.query("videos") == []


@pytest.mark.high
class TestTranscribeVideo:
    @pytest.mark.asyncio
    async def test_cached_file_skips_download(self, ingest, storage, upload, media_tools):
        video = await ingest.ingest_video("user-1", upload, "clip.mp4")
        await ingest.transcribe_video(video["id"])
        storage.download_file.assert_not_called()

    @pytest.mark.asyncio
    async def test_downloads_when_not_cached(self, ingest, storage, generator, video_factory, media_tools):
        storage.download_file.side_effect = lambda key, path: path.write_bytes(b"video") > 0
        video = video_factory(status="ready")

        assert await ingest.transcribe_video(video["id"]) == "hello world"
        storage.download_file.assert_called_once()

    @pytest.mark.asyncio
    async def test_audio_failure_sends_whole_video(self, ingest, generator, upload, media_tools):
        video = await ingest.ingest_video("user-1", upload, "clip.mp4")
        media_tools["audio"].side_effect = MediaToolError("no audio stream")

        await ingest.transcribe_video(video["id"])

        assert generator.transcribe.await_args.kwargs["mime_type"] == "video/mp4"

    @pytest.mark.asyncio
    async def test_errors_can_be_raised(self, ingest, generator, video_factory, media_tools):
        generator.transcribe.side_effect = ContentGenerationError("quota")
        video = video_factory(status="ready")
        with pytest.raises(ContentGenerationError):
            await ingest.transcribe_video(video["id"], raise_errors=True)
