"""SQLAlchemy models package - imports all models so they register with Base.metadata"""
from clipdesk.models.base import Base
from clipdesk.models.project import Project
from clipdesk.models.video import Video, VideoStatus
from clipdesk.models.integration import Integration

__all__ = ["Base", "Project", "Video", "VideoStatus", "Integration"]
