"""Pydantic schemas for connected platform accounts"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class IntegrationCreate(BaseModel):
    """Schema for connecting a platform account"""
    platform: str
    name: str = Field(..., min_length=1, max_length=255)
    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    fallback_access_token: Optional[str] = None
    external_account_id: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)
