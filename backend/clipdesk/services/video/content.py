"""Shared per-platform content value objects

One content object per (video, platform) is the source of truth for the
metadata every DistributionConfig entry of that platform carries. Entries
are materialized from it at persistence time.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from clipdesk.core.config import settings


def parse_tags(value) -> List[str]:
    """Comma-separated string or list -> stripped, non-empty tags"""
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(',')
    return [str(tag).strip() for tag in value if str(tag).strip()]


class YouTubeContent(BaseModel):
    title: str = ""
    description: str = ""
    tags: List[str] = Field(default_factory=list)
    category_id: str = Field(default_factory=lambda: settings.YOUTUBE_DEFAULT_CATEGORY_ID)
    playlist_id: Optional[str] = None
    privacy_status: str = "public"

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, v):
        return parse_tags(v)

    @field_validator("title", "description", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return v or ""

    @field_validator("category_id", mode="before")
    @classmethod
    def _default_category(cls, v):
        return v or settings.YOUTUBE_DEFAULT_CATEGORY_ID

    @field_validator("playlist_id", mode="before")
    @classmethod
    def _blank_playlist(cls, v):
        return v or None

    @classmethod
    def from_entry_metadata(cls, metadata: Dict[str, Any]) -> "YouTubeContent":
        return cls(
            title=metadata.get("title"),
            description=metadata.get("caption"),
            tags=metadata.get("tags"),
            category_id=metadata.get("category_id"),
            playlist_id=metadata.get("playlist_id"),
        )

    def merged(self, fields: Dict[str, Any]) -> "YouTubeContent":
        data = self.model_dump()
        for key, value in fields.items():
            if key == "caption":
                key = "description"
            if key not in data:
                raise KeyError(key)
            data[key] = value
        return YouTubeContent(**data)

    def entry_metadata(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "caption": self.description,
            "tags": ", ".join(self.tags),
            "playlist_id": self.playlist_id,
            "category_id": self.category_id,
        }


class CaptionContent(BaseModel):
    """Caption-only platforms (Instagram, TikTok)"""
    caption: str = ""

    @field_validator("caption", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return v or ""

    @classmethod
    def from_entry_metadata(cls, metadata: Dict[str, Any]) -> "CaptionContent":
        return cls(caption=metadata.get("caption"))

    def merged(self, fields: Dict[str, Any]) -> "CaptionContent":
        data = self.model_dump()
        for key, value in fields.items():
            if key == "description":
                key = "caption"
            if key not in data:
                raise KeyError(key)
            data[key] = value
        return CaptionContent(**data)

    def entry_metadata(self) -> Dict[str, Any]:
        return {"caption": self.caption}
