"""Instagram adapter (Graph API, URL-based container publishing)"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from clipdesk.core.config import INSTAGRAM_GRAPH_API_URL
from clipdesk.core.exceptions import PlatformError, PlatformErrorReason
from clipdesk.services.video.config import INSTAGRAM
from clipdesk.services.video.platforms.base import AccountStats, BasePlatformAdapter, PublishResult

instagram_logger = logging.getLogger("instagram")

MEDIA_TYPES = {
    "reel": "REELS",
    "feed": "REELS",
    "story": "STORIES",
}

# Graph API error codes
AUTH_ERROR_CODES = {190, 102}
RATE_LIMIT_ERROR_CODES = {4, 17, 32, 613}


def _graph_error(response: httpx.Response) -> PlatformError:
    try:
        error = response.json().get("error") or {}
    except ValueError:
        error = {}
    code = error.get("code")
    message = error.get("message") or f"HTTP {response.status_code}"
    if code in AUTH_ERROR_CODES or response.status_code == 401:
        reason = PlatformErrorReason.AUTH_EXPIRED
    elif code in RATE_LIMIT_ERROR_CODES or response.status_code == 429:
        reason = PlatformErrorReason.RATE_LIMITED
    elif response.status_code == 404 or (code == 100 and "does not exist" in message):
        reason = PlatformErrorReason.NOT_FOUND
    else:
        reason = PlatformErrorReason.OTHER
    return PlatformError(INSTAGRAM, reason, message, status_code=response.status_code)


class InstagramAdapter(BasePlatformAdapter):
    platform = INSTAGRAM
    publishes_remotely = True
    supports_scheduling = False

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None,
                 poll_interval: float = 10.0, max_polls: int = 30):
        self._transport = transport
        self.poll_interval = poll_interval
        self.max_polls = max_polls

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=300.0, transport=self._transport)

    @staticmethod
    def _headers(credentials) -> Dict[str, str]:
        return {"Authorization": f"Bearer {credentials.access_token.strip()}"}

    @staticmethod
    def _business_account(credentials) -> str:
        if not credentials.external_account_id:
            raise PlatformError(INSTAGRAM, PlatformErrorReason.OTHER,
                                "Integration has no Instagram business account id")
        return credentials.external_account_id

    async def publish(self, credentials, media, metadata, schedule_time=None):
        if schedule_time is not None:
            raise PlatformError(INSTAGRAM, PlatformErrorReason.UNSUPPORTED, "Scheduled publishing is not supported")
        if not media.url:
            raise PlatformError(INSTAGRAM, PlatformErrorReason.OTHER, "Video has no public URL")

        business_account_id = self._business_account(credentials)
        post_type = metadata.get("post_type") or "reel"
        container_params: Dict[str, Any] = {
            "media_type": MEDIA_TYPES.get(post_type, "REELS"),
            "video_url": media.url,
        }
        if post_type != "story":
            container_params["caption"] = metadata.get("caption") or ""
            container_params["share_to_feed"] = True

        async with self._client() as client:
            instagram_logger.info(f"Creating {container_params['media_type']} container for video {media.video_id}")
            response = await client.post(
                f"{INSTAGRAM_GRAPH_API_URL}/{business_account_id}/media",
                json=container_params,
                headers=self._headers(credentials),
            )
            if response.status_code != 200:
                raise _graph_error(response)
            container_id = response.json()["id"]

            await self._wait_for_container(client, credentials, container_id)

            instagram_logger.info(f"Publishing container {container_id}")
            response = await client.post(
                f"{INSTAGRAM_GRAPH_API_URL}/{business_account_id}/media_publish",
                json={"creation_id": container_id},
                headers=self._headers(credentials),
            )
            if response.status_code != 200:
                raise _graph_error(response)
            media_id = response.json()["id"]

        instagram_logger.info(f"Successfully published video {media.video_id} to Instagram, media ID: {media_id}")
        return PublishResult(remote_id=media_id)

    async def _wait_for_container(self, client: httpx.AsyncClient, credentials, container_id: str) -> None:
        for attempt in range(self.max_polls):
            response = await client.get(
                f"{INSTAGRAM_GRAPH_API_URL}/{container_id}",
                params={"fields": "status_code"},
                headers=self._headers(credentials),
            )
            if response.status_code != 200:
                raise _graph_error(response)
            status_code = response.json().get("status_code")
            instagram_logger.debug(f"Container {container_id} status (attempt {attempt + 1}): {status_code}")
            if status_code == "FINISHED":
                return
            if status_code in ("ERROR", "EXPIRED"):
                raise PlatformError(INSTAGRAM, PlatformErrorReason.OTHER, f"Container processing {status_code.lower()}")
            await asyncio.sleep(self.poll_interval)
        raise PlatformError(INSTAGRAM, PlatformErrorReason.OTHER,
                            f"Container {container_id} not ready after {self.max_polls} checks")

    async def delete_remote(self, credentials, remote_id):
        async with self._client() as client:
            response = await client.delete(
                f"{INSTAGRAM_GRAPH_API_URL}/{remote_id}",
                headers=self._headers(credentials),
            )
        if response.status_code == 200:
            instagram_logger.info(f"Deleted Instagram media {remote_id}")
            return
        error = _graph_error(response)
        if error.not_found:
            instagram_logger.info(f"Instagram media {remote_id} already deleted")
            return
        raise error

    async def fetch_stats(self, credentials):
        business_account_id = self._business_account(credentials)
        async with self._client() as client:
            response = await client.get(
                f"{INSTAGRAM_GRAPH_API_URL}/{business_account_id}",
                params={"fields": "followers_count,media_count"},
                headers=self._headers(credentials),
            )
        if response.status_code != 200:
            raise _graph_error(response)
        data = response.json()
        return AccountStats(
            followers=int(data.get("followers_count", 0)),
            posts=int(data.get("media_count", 0)),
        )
