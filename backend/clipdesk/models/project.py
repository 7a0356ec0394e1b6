"""Project model"""
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, JSON, Integer

from clipdesk.models.base import Base, generate_id


class Project(Base):
    """Grouping of videos for a client or campaign"""
    __tablename__ = "projects"

    id = Column(String(32), primary_key=True, default=generate_id)
    user_id = Column(String(128), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    client_name = Column(String(255))
    agency_name = Column(String(255))
    video_count = Column(Integer, default=0, nullable=False)  # legacy duplicate of stats.total
    stats = Column(JSON)  # cached status partition, see project_service.recompute_project_stats
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
