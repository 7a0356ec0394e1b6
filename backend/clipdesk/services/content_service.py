"""Transcription and per-platform metadata generation (Gemini)"""
import base64
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from clipdesk.core.config import settings
from clipdesk.core.exceptions import AssetNotFoundError, ValidationError
from clipdesk.core.metrics import content_generation_counter
from clipdesk.services.project_service import client_label
from clipdesk.services.video.config import INSTAGRAM, TIKTOK, YOUTUBE, get_platform_rules
from clipdesk.services.video.content import parse_tags

logger = logging.getLogger(__name__)

TRANSCRIBE_PROMPT = (
    "Listen carefully to the audio and return a complete, accurate transcription "
    "in the spoken language.\n"
    "Rules:\n"
    "1. Do not include timestamps.\n"
    "2. Do not include scene descriptions (e.g. [music]).\n"
    "3. Return ONLY the spoken text, continuous and correctly punctuated."
)

YOUTUBE_GUIDELINES = {
    "shorts": "Optimise for YouTube Shorts: short punchy title (max 60 characters) with viral potential, "
              "brief description with the main hashtags (#Shorts).",
    "video": "Optimise for long-form video: search-optimised title up to 100 characters, detailed "
             "description with a summary and topic structure where possible.",
}

CAPTION_GUIDELINES = {
    (INSTAGRAM, "story"): "This is an Instagram Story. Keep the caption very short: one hook line or a poll question.",
    (INSTAGRAM, "reel"): "This is an Instagram Reel. The caption should drive comments and saves, "
                         "with clean formatting and emojis.",
    (INSTAGRAM, "feed"): "This is a feed post. Detailed, valuable caption.",
    (TIKTOK, "reel"): "This is a TikTok video. Short, trend-aware caption with viral hashtags.",
}

YOUTUBE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "title": {"type": "STRING"},
        "description": {"type": "STRING"},
        "tags": {"type": "STRING"},
    },
    "required": ["title", "description", "tags"],
}


class ContentGenerationError(Exception):
    """The generation backend failed or returned something unusable"""


class GeminiContentGenerator:
    """Content Generator backed by the Gemini generateContent REST API"""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 base_url: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL
        self.base_url = (base_url or settings.GEMINI_API_BASE).rstrip('/')
        self._transport = transport

    async def _generate(self, operation: str, parts, response_schema: Optional[Dict[str, Any]] = None) -> str:
        try:
            text = await self._request(parts, response_schema)
        except ContentGenerationError:
            content_generation_counter.labels(operation=operation, status="failure").inc()
            raise
        content_generation_counter.labels(operation=operation, status="success").inc()
        return text

    async def _request(self, parts, response_schema: Optional[Dict[str, Any]] = None) -> str:
        if not self.api_key:
            raise ContentGenerationError("GEMINI_API_KEY is not configured")
        body: Dict[str, Any] = {"contents": [{"parts": parts}]}
        if response_schema:
            body["generationConfig"] = {
                "responseMimeType": "application/json",
                "responseSchema": response_schema,
            }
        url = f"{self.base_url}/models/{self.model}:generateContent"
        try:
            async with httpx.AsyncClient(timeout=300.0, transport=self._transport) as client:
                response = await client.post(url, params={"key": self.api_key}, json=body)
        except httpx.RequestError as e:
            raise ContentGenerationError(f"Gemini request failed: {e}") from e

        if response.status_code != 200:
            raise ContentGenerationError(f"Gemini returned HTTP {response.status_code}: {response.text[:300]}")
        try:
            candidate = response.json()["candidates"][0]
            text = "".join(part.get("text", "") for part in candidate["content"]["parts"])
        except (KeyError, IndexError, ValueError) as e:
            raise ContentGenerationError(f"Unexpected Gemini response: {e}") from e
        return text.strip()

    async def transcribe(self, media_path: Path, mime_type: str = "audio/wav") -> str:
        data = base64.b64encode(Path(media_path).read_bytes()).decode()
        return await self._generate("transcribe", [
            {"inline_data": {"mime_type": mime_type, "data": data}},
            {"text": TRANSCRIBE_PROMPT},
        ])

    async def generate(self, transcript: str, platform: str, post_type: str, client_name: str) -> Dict[str, Any]:
        """Metadata suggestion for one platform

        Returns ``{title, description, tags}`` for YouTube and ``{caption}``
        for caption-only platforms.
        """
        get_platform_rules(platform)
        if platform == YOUTUBE:
            return await self._generate_youtube(transcript, post_type, client_name)
        return await self._generate_caption(transcript, platform, post_type, client_name)

    async def _generate_youtube(self, transcript: str, post_type: str, client_name: str) -> Dict[str, Any]:
        prompt = (
            "You are a YouTube SEO specialist.\n"
            f"Task: write optimised metadata for a YouTube video from client \"{client_name}\" "
            "based on the transcript below.\n"
            f"Content type: {'YouTube Shorts' if post_type == 'shorts' else 'standard YouTube video'}.\n"
            f"Guidelines: {YOUTUBE_GUIDELINES.get(post_type, YOUTUBE_GUIDELINES['video'])}\n\n"
            f"TRANSCRIPT:\n\"\"\"\n{transcript}\n\"\"\"\n\n"
            "JSON fields:\n"
            "1. title: a highly clickable title.\n"
            "2. description: a complete, optimised description.\n"
            "3. tags: 10-15 relevant tags as one comma-separated string."
        )
        text = await self._generate("youtube", [{"text": prompt}], response_schema=YOUTUBE_SCHEMA)
        try:
            data = json.loads(text or "{}")
        except ValueError as e:
            raise ContentGenerationError(f"Gemini returned invalid JSON: {e}") from e
        return {
            "title": data.get("title") or "",
            "description": data.get("description") or "",
            "tags": parse_tags(data.get("tags")),
        }

    async def _generate_caption(self, transcript: str, platform: str, post_type: str, client_name: str) -> Dict[str, Any]:
        guidelines = CAPTION_GUIDELINES.get((platform, post_type), "Engaging short-form video caption.")
        prompt = (
            f"You are a social media specialist ({platform}).\n"
            f"Task: write a caption for a {platform} post from client \"{client_name}\".\n"
            f"Post type: {post_type or 'video'}.\n"
            f"Guidelines: {guidelines}\n\n"
            f"TRANSCRIPT:\n\"\"\"\n{transcript}\n\"\"\"\n\n"
            "RULES:\n"
            "1. Return ONLY the caption text.\n"
            "2. Use an engaging tone and emojis.\n"
            "3. Include 3-5 relevant hashtags."
        )
        return {"caption": await self._generate(platform, [{"text": prompt}])}


async def generate_platform_content(workflow, generator, video_id: str, platform: str) -> Dict[str, Any]:
    """Generate a platform suggestion from the transcript and save it on every target

    Returns the platform's updated shared content.
    """
    video = workflow.store.get("videos", video_id)
    if video is None:
        raise AssetNotFoundError("videos", video_id)
    if not (video.get("transcription") or "").strip():
        raise ValidationError("transcription", "Transcribe the video before generating content")

    rules = get_platform_rules(platform)
    post_type = (video.get("post_types") or {}).get(platform) or rules.default_post_type(video.get("format"))
    label = client_label(workflow.store, video.get("project_id"))
    suggestion = await generator.generate(video["transcription"], platform, post_type, label)
    logger.info(f"Generated {platform} content for video {video_id} ({post_type})")

    with workflow.editing(video_id) as editor:
        editor.apply_generated_content(platform, suggestion)
        return editor.content_for(platform).model_dump()
