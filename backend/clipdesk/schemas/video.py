"""Pydantic schemas for video workflow operations"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class PlatformToggle(BaseModel):
    enabled: bool


class AccountToggle(BaseModel):
    platform: str
    account_id: str = Field(..., min_length=1)


class PostTypeUpdate(BaseModel):
    platform: str
    post_type: str


class ContentUpdate(BaseModel):
    """Partial edit of a platform's shared content

    Only the fields present in the request are applied. Fields the platform
    does not carry are rejected.
    """
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    description: Optional[str] = None
    caption: Optional[str] = None
    tags: Optional[Union[List[str], str]] = None
    playlist_id: Optional[str] = None
    category_id: Optional[str] = None
    privacy_status: Optional[str] = None


class MediaPropertiesUpdate(BaseModel):
    width: Optional[int] = Field(None, ge=0)
    height: Optional[int] = Field(None, ge=0)
    duration: Optional[float] = Field(None, ge=0)


class ApproveRequest(BaseModel):
    """Unsaved content edits per platform, flushed before the readiness check"""
    content: Dict[str, ContentUpdate] = Field(default_factory=dict)


class DistributionTarget(BaseModel):
    model_config = ConfigDict(extra="forbid")

    platform: str
    account_id: str = Field(..., min_length=1)
    post_type: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    external_id: Optional[str] = None


class DistributeRequest(BaseModel):
    configs: List[DistributionTarget] = Field(..., min_length=1)
    scheduled_date: Optional[datetime] = None
