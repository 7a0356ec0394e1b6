"""Platform adapter registry"""
from typing import Dict

from clipdesk.services.video.config import INSTAGRAM, TIKTOK, YOUTUBE
from clipdesk.services.video.platforms.base import BasePlatformAdapter
from clipdesk.services.video.platforms.instagram import InstagramAdapter
from clipdesk.services.video.platforms.tiktok import TikTokAdapter
from clipdesk.services.video.platforms.youtube import YouTubeAdapter

PLATFORM_ADAPTERS: Dict[str, BasePlatformAdapter] = {
    YOUTUBE: YouTubeAdapter(),
    INSTAGRAM: InstagramAdapter(),
    TIKTOK: TikTokAdapter(),
}


def get_platform_adapters() -> Dict[str, BasePlatformAdapter]:
    """FastAPI dependency returning the adapter registry"""
    return PLATFORM_ADAPTERS
