"""Shared pytest fixtures for test suite"""
import os
import sys
from pathlib import Path
from typing import Generator
from unittest.mock import AsyncMock, Mock, patch

import pytest
from cryptography.fernet import Fernet

# Settings are read at import time
os.environ.setdefault("ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("BACKGROUND_TASKS_ENABLED", "false")
os.environ.setdefault("R2_PUBLIC_BASE_URL", "https://media.example.com")

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

import fakeredis
import fakeredis.aioredis
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clipdesk.core.exceptions import PlatformError, PlatformErrorReason
from clipdesk.db import redis as redis_module
from clipdesk.db.store import SqlAlchemyStore, SubscriptionHub
from clipdesk.models import Base
from clipdesk.services.integration_service import create_integration
from clipdesk.services.video.platforms.base import AccountStats, BasePlatformAdapter, PublishResult
from clipdesk.services.video.workflow import VideoWorkflow


# SQLite in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


class FakeAdapter(BasePlatformAdapter):
    """Adapter double whose remote calls are AsyncMocks"""

    def __init__(self, platform: str, publishes_remotely: bool = True, supports_scheduling: bool = True):
        self.platform = platform
        self.publishes_remotely = publishes_remotely
        self.supports_scheduling = supports_scheduling
        self.publish = AsyncMock(side_effect=self._publish)
        self.delete_remote = AsyncMock(return_value=None)
        self.fetch_stats = AsyncMock(return_value=AccountStats(followers=10, posts=3, views=100))
        self.refresh_credentials = AsyncMock(return_value=None)
        self._counter = 0

    async def _publish(self, credentials, media, metadata, schedule_time=None):
        self._counter += 1
        return PublishResult(remote_id=f"{self.platform}-remote-{self._counter}")

    # Shadowed per instance by the AsyncMocks above
    async def publish(self, credentials, media, metadata, schedule_time=None):
        return await self._publish(credentials, media, metadata, schedule_time)

    async def delete_remote(self, credentials, remote_id):
        return None

    async def fetch_stats(self, credentials):
        return AccountStats()


def make_platform_error(platform: str, reason: str = PlatformErrorReason.OTHER) -> PlatformError:
    return PlatformError(platform, reason, f"{reason} from {platform}")


@pytest.fixture
def platform_error():
    """Factory for adapter errors with a given reason"""
    return make_platform_error


@pytest.fixture(scope="function")
def store() -> Generator[SqlAlchemyStore, None, None]:
    """Fresh store over an in-memory SQLite database for each test"""
    Base.metadata.create_all(bind=test_engine)
    try:
        yield SqlAlchemyStore(session_factory=TestSessionLocal, hub=SubscriptionHub())
    finally:
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def mock_redis():
    """Lock client and event channel backed by fakeredis"""
    fake_redis = fakeredis.FakeStrictRedis(decode_responses=True)
    fake_async_redis = fakeredis.aioredis.FakeRedis(decode_responses=True)
    with patch.object(redis_module, "get_redis_client", return_value=fake_redis):
        with patch("clipdesk.services.event_service.get_async_redis_client", return_value=fake_async_redis):
            yield fake_redis


@pytest.fixture
def adapters():
    return {
        "youtube": FakeAdapter("youtube"),
        "instagram": FakeAdapter("instagram", supports_scheduling=False),
        "tiktok": FakeAdapter("tiktok", publishes_remotely=False, supports_scheduling=False),
    }


@pytest.fixture
def storage():
    storage_service = Mock()
    storage_service.upload_file.return_value = True
    storage_service.download_file.return_value = True
    storage_service.delete_object.return_value = True
    storage_service.public_url.side_effect = lambda key: f"https://media.example.com/{key}"
    return storage_service


@pytest.fixture
def workflow(store, mock_redis, adapters, storage) -> VideoWorkflow:
    return VideoWorkflow(store, adapters=adapters, storage_factory=lambda: storage)


@pytest.fixture
def project(store):
    project_id = store.create("projects", {
        "user_id": USER_ID,
        "name": "Spring Launch",
        "client_name": "Acme",
        "video_count": 0,
        "stats": None,
    })
    return store.get("projects", project_id)


@pytest.fixture
def integration_factory(store):
    """Create connected accounts with encrypted credentials"""
    def _create(platform: str, **kwargs):
        kwargs.setdefault("name", f"{platform} account")
        kwargs.setdefault("access_token", f"{platform}-token")
        kwargs.setdefault("external_account_id", f"{platform}-external")
        return create_integration(store, kwargs.pop("user_id", USER_ID), platform, **kwargs)
    return _create


@pytest.fixture
def video_factory(store):
    """Create videos directly in the store; defaults to a vertical 45s clip"""
    def _create(**fields):
        doc = {
            "user_id": USER_ID,
            "title": "Clip",
            "storage_path": "videos/user-1/clip.mp4",
            "url": "https://media.example.com/videos/user-1/clip.mp4",
            "width": 1080,
            "height": 1920,
            "duration_seconds": 45.0,
            "format": "vertical",
            "status": "pending",
            "platforms": [],
            "post_types": {"youtube": "shorts", "instagram": "reel", "tiktok": "reel"},
            "distribution_config": [],
        }
        doc.update(fields)
        video_id = store.create("videos", doc)
        return store.get("videos", video_id)
    return _create


ACCOUNT_PLATFORMS = {"yt": "youtube", "ig": "instagram", "tt": "tiktok"}


@pytest.fixture
def connected_accounts(store):
    """Integrations with readable ids (yt-a, ig-new, ...) for the test user"""
    def _connect(*account_ids, user_id=USER_ID):
        for account_id in account_ids:
            store.create("integrations", {
                "id": account_id,
                "user_id": user_id,
                "platform": ACCOUNT_PLATFORMS[account_id.split("-")[0]],
                "name": account_id,
                "config": {},
            })
    _connect("yt-a", "yt-b", "ig-a", "ig-b", "ig-existing", "ig-new", "tt-a")
    return _connect
