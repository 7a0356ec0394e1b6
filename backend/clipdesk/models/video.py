"""Video model"""
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, JSON, Index, BigInteger, Integer, Float

from clipdesk.models.base import Base, generate_id


class VideoStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"
    PROCESSING = "processing"
    UPLOADING = "uploading"
    TRANSCRIBING = "transcribing"
    ERROR = "error"
    APPROVED = "approved"
    SCHEDULED = "scheduled"
    PUBLISHED = "published"
    DISMISSED = "dismissed"


class Video(Base):
    """Uploaded video asset and its distribution workflow state"""
    __tablename__ = "videos"

    id = Column(String(32), primary_key=True, default=generate_id)
    user_id = Column(String(128), nullable=False, index=True)
    project_id = Column(String(32), ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True)
    title = Column(String(255), nullable=False, default="")
    storage_path = Column(String(512))  # R2 object key (e.g., "user_{user_id}/{uuid}_{filename}")
    url = Column(String(1024))
    thumbnail_path = Column(String(512))
    thumbnail_url = Column(String(1024))
    file_size = Column(BigInteger)
    format = Column(String(20))  # vertical, horizontal, square
    width = Column(Integer)
    height = Column(Integer)
    duration_seconds = Column(Float)
    status = Column(String(50), default=VideoStatus.READY.value, nullable=False)
    transcription = Column(Text, default="")
    description = Column(Text)
    platforms = Column(JSON, default=list)  # enabled platform ids
    post_types = Column(JSON, default=dict)  # shared sub-type per platform
    distribution_config = Column(JSON, default=list)  # flat DistributionConfig entries
    # Legacy single-object metadata, kept for read compatibility
    youtube_metadata = Column(JSON)
    instagram_metadata = Column(JSON)
    tiktok_metadata = Column(JSON)
    scheduled_date = Column(DateTime(timezone=True))  # only while scheduled
    published_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                        onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index('ix_videos_user_status', 'user_id', 'status'),
        Index('ix_videos_status_scheduled_date', 'status', 'scheduled_date'),
    )
