"""Integration model"""
from datetime import datetime, timezone

from sqlalchemy import Column, String, Text, DateTime, JSON, Index

from clipdesk.models.base import Base, generate_id


class Integration(Base):
    """Connected platform account (encrypted credentials + cached profile stats)"""
    __tablename__ = "integrations"

    id = Column(String(32), primary_key=True, default=generate_id)
    user_id = Column(String(128), nullable=False, index=True)
    platform = Column(String(50), nullable=False)  # youtube, instagram, tiktok
    name = Column(String(255), nullable=False)
    external_account_id = Column(String(255))  # channel id / IG business account id / TikTok open_id
    access_token = Column(Text)  # Encrypted
    refresh_token = Column(Text)  # Encrypted
    fallback_access_token = Column(Text)  # Encrypted
    config = Column(JSON, default=dict)
    stats = Column(JSON)  # {followers, posts, views, last_updated}
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    __table_args__ = (
        Index('ix_integrations_user_platform', 'user_id', 'platform'),
    )
