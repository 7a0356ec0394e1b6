"""Abstract base class for platform adapters"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional


@dataclass
class PlatformCredentials:
    """Decrypted credential set for one connected account"""
    account_id: str
    platform: str
    access_token: str
    refresh_token: Optional[str] = None
    external_account_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def with_token(self, access_token: str, refresh_token: Optional[str] = None) -> "PlatformCredentials":
        return replace(
            self,
            access_token=access_token,
            refresh_token=refresh_token or self.refresh_token,
        )


@dataclass
class MediaRef:
    """Where the adapter can read the video from"""
    video_id: str
    storage_path: Optional[str]
    url: Optional[str]
    title: str = ""


@dataclass
class PublishResult:
    remote_id: str
    url: Optional[str] = None


@dataclass
class AccountStats:
    followers: int = 0
    posts: int = 0
    views: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "followers": self.followers,
            "posts": self.posts,
            "views": self.views,
            "last_updated": datetime.now(timezone.utc).isoformat(),
        }


class BasePlatformAdapter(ABC):
    """Interface contract for platform adapters.

    Adapters raise ``PlatformError`` with a machine-readable reason. A
    deletion of something that is already gone must return normally.
    """

    platform: str = ""
    # False when this app records targets for the platform without calling it
    publishes_remotely: bool = True
    supports_scheduling: bool = False

    @abstractmethod
    async def publish(self, credentials: PlatformCredentials, media: MediaRef,
                      metadata: Dict[str, Any], schedule_time: Optional[datetime] = None) -> PublishResult:
        """Push a video live, or schedule it when ``schedule_time`` is given.

        Args:
            credentials: Account credentials
            media: Storage location of the video
            metadata: Entry metadata plus ``post_type``
            schedule_time: Publish time, or None to publish immediately

        Raises:
            PlatformError: On any failure
        """
        pass

    @abstractmethod
    async def delete_remote(self, credentials: PlatformCredentials, remote_id: str) -> None:
        pass

    @abstractmethod
    async def fetch_stats(self, credentials: PlatformCredentials) -> AccountStats:
        pass

    async def refresh_credentials(self, credentials: PlatformCredentials) -> Optional[PlatformCredentials]:
        """Exchange a refresh token for a new access token; None when unsupported"""
        return None
