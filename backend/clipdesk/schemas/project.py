"""Pydantic schemas for project operations"""
from typing import Optional

from pydantic import BaseModel, Field


class ProjectCreate(BaseModel):
    """Schema for creating a project"""
    name: str = Field(..., min_length=1, max_length=255)
    client_name: Optional[str] = Field(None, max_length=255)
    agency_name: Optional[str] = Field(None, max_length=255)


class ProjectUpdate(BaseModel):
    """Schema for renaming/relabelling a project; only sent fields change"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    client_name: Optional[str] = Field(None, max_length=255)
    agency_name: Optional[str] = Field(None, max_length=255)
