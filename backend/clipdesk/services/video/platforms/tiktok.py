"""TikTok adapter

Direct publishing is not enabled for this app, so TikTok targets are
recorded on the video without remote calls. Only profile stats are fetched.
"""

import logging
from typing import Optional

import httpx

from clipdesk.core.config import TIKTOK_USER_INFO_URL
from clipdesk.core.exceptions import PlatformError, PlatformErrorReason
from clipdesk.services.video.config import TIKTOK
from clipdesk.services.video.platforms.base import AccountStats, BasePlatformAdapter

tiktok_logger = logging.getLogger("tiktok")

USER_INFO_FIELDS = "display_name,follower_count,video_count,likes_count"


class TikTokAdapter(BasePlatformAdapter):
    platform = TIKTOK
    publishes_remotely = False
    supports_scheduling = False

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport

    async def publish(self, credentials, media, metadata, schedule_time=None):
        raise PlatformError(TIKTOK, PlatformErrorReason.UNSUPPORTED, "Direct publishing is not enabled")

    async def delete_remote(self, credentials, remote_id):
        raise PlatformError(TIKTOK, PlatformErrorReason.UNSUPPORTED, "Remote deletion is not enabled")

    async def fetch_stats(self, credentials):
        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            response = await client.get(
                TIKTOK_USER_INFO_URL,
                params={"fields": USER_INFO_FIELDS},
                headers={"Authorization": f"Bearer {credentials.access_token.strip()}"},
            )

        try:
            data = response.json()
        except ValueError:
            data = {}
        error = data.get("error") or {}
        error_code = error.get("code", "ok")

        if response.status_code == 401 or error_code == "access_token_invalid":
            raise PlatformError(TIKTOK, PlatformErrorReason.AUTH_EXPIRED,
                                error.get("message") or "Access token is invalid", status_code=response.status_code)
        if response.status_code == 429 or error_code == "rate_limit_exceeded":
            raise PlatformError(TIKTOK, PlatformErrorReason.RATE_LIMITED,
                                error.get("message") or "Rate limit exceeded", status_code=response.status_code)
        if response.status_code != 200 or error_code != "ok":
            raise PlatformError(TIKTOK, PlatformErrorReason.OTHER,
                                error.get("message") or f"HTTP {response.status_code}", status_code=response.status_code)

        user = (data.get("data") or {}).get("user") or {}
        tiktok_logger.debug(f"Fetched TikTok stats for {user.get('display_name')}")
        # The profile endpoint has no aggregate view count
        return AccountStats(
            followers=int(user.get("follower_count") or 0),
            posts=int(user.get("video_count") or 0),
        )
