"""YouTube adapter (Data API v3)"""

import logging
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request as GoogleRequest
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaFileUpload

from clipdesk.core.config import settings
from clipdesk.core.exceptions import PlatformError, PlatformErrorReason
from clipdesk.services.storage.r2_service import get_r2_service
from clipdesk.services.video.config import YOUTUBE
from clipdesk.services.video.content import parse_tags
from clipdesk.services.video.platforms.base import (
    AccountStats, BasePlatformAdapter, MediaRef, PlatformCredentials, PublishResult
)

youtube_logger = logging.getLogger("youtube")

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 5000


def _http_error_to_platform_error(error: HttpError) -> PlatformError:
    status = int(getattr(error.resp, "status", 0) or 0)
    if status == 401:
        reason = PlatformErrorReason.AUTH_EXPIRED
    elif status == 404:
        reason = PlatformErrorReason.NOT_FOUND
    elif status == 429:
        reason = PlatformErrorReason.RATE_LIMITED
    else:
        reason = PlatformErrorReason.OTHER
    message = getattr(error, "reason", None) or str(error)
    return PlatformError(YOUTUBE, reason, message, status_code=status or None)


def build_upload_body(media: MediaRef, metadata: Dict[str, Any],
                      schedule_time: Optional[datetime] = None) -> Dict[str, Any]:
    """videos.insert body from an entry's metadata"""
    title = (metadata.get("title") or media.title or "Untitled")[:TITLE_MAX_LENGTH]
    description = (metadata.get("caption") or "")[:DESCRIPTION_MAX_LENGTH]
    snippet = {
        "title": title,
        "description": description,
        "categoryId": metadata.get("category_id") or settings.YOUTUBE_DEFAULT_CATEGORY_ID,
    }
    tags = parse_tags(metadata.get("tags"))
    if tags:
        snippet["tags"] = tags

    status = {"selfDeclaredMadeForKids": False}
    if schedule_time is not None:
        # Scheduled uploads must stay private until publishAt
        publish_at = schedule_time.astimezone(timezone.utc).replace(microsecond=0)
        status["privacyStatus"] = "private"
        status["publishAt"] = publish_at.isoformat().replace("+00:00", "Z")
    else:
        status["privacyStatus"] = metadata.get("privacy_status") or "public"
    return {"snippet": snippet, "status": status}


class YouTubeAdapter(BasePlatformAdapter):
    platform = YOUTUBE
    publishes_remotely = True
    supports_scheduling = True

    def __init__(self, storage_factory=get_r2_service, client_factory=None):
        self._storage_factory = storage_factory
        self._client_factory = client_factory or self._build_client

    @staticmethod
    def _google_credentials(credentials: PlatformCredentials) -> Credentials:
        return Credentials(
            token=credentials.access_token,
            refresh_token=credentials.refresh_token,
            token_uri=settings.GOOGLE_TOKEN_URI,
            client_id=settings.GOOGLE_CLIENT_ID,
            client_secret=settings.GOOGLE_CLIENT_SECRET,
        )

    def _build_client(self, credentials: PlatformCredentials):
        return build('youtube', 'v3', credentials=self._google_credentials(credentials), cache_discovery=False)

    async def publish(self, credentials, media, metadata, schedule_time=None):
        youtube = self._client_factory(credentials)
        body = build_upload_body(media, metadata, schedule_time)

        with tempfile.TemporaryDirectory(prefix="clipdesk_yt_") as tmp_dir:
            local_path = Path(tmp_dir) / Path(media.storage_path or f"{media.video_id}.mp4").name
            if not self._storage_factory().download_file(media.storage_path, local_path):
                raise PlatformError(YOUTUBE, PlatformErrorReason.OTHER,
                                    f"Video file {media.storage_path} could not be read from storage")

            youtube_logger.info(
                f"Starting YouTube upload for video {media.video_id} - Title: {body['snippet']['title'][:50]}, "
                f"privacy: {body['status']['privacyStatus']}",
                extra={"video_id": media.video_id, "account_id": credentials.account_id, "platform": YOUTUBE}
            )
            try:
                request = youtube.videos().insert(
                    part='snippet,status',
                    body=body,
                    media_body=MediaFileUpload(str(local_path), resumable=True)
                )
                response = None
                chunk_count = 0
                while response is None:
                    status, response = request.next_chunk()
                    if status:
                        chunk_count += 1
                        if chunk_count % 10 == 0:
                            youtube_logger.info(f"Upload progress: {int(status.progress() * 100)}%")
            except HttpError as e:
                raise _http_error_to_platform_error(e) from e

        remote_id = response['id']
        youtube_logger.info(f"Successfully uploaded video {media.video_id}, YouTube ID: {remote_id}")

        playlist_id = metadata.get("playlist_id")
        if playlist_id:
            try:
                await self.add_to_playlist(credentials, playlist_id, remote_id)
            except PlatformError as e:
                youtube_logger.warning(
                    f"Failed to add YouTube video {remote_id} to playlist {playlist_id} (continuing): {e}"
                )

        return PublishResult(remote_id=remote_id, url=f"https://www.youtube.com/watch?v={remote_id}")

    async def add_to_playlist(self, credentials: PlatformCredentials, playlist_id: str, remote_id: str) -> None:
        youtube = self._client_factory(credentials)
        try:
            youtube.playlistItems().insert(
                part='snippet',
                body={
                    'snippet': {
                        'playlistId': playlist_id,
                        'resourceId': {'kind': 'youtube#video', 'videoId': remote_id},
                    }
                }
            ).execute()
        except HttpError as e:
            raise _http_error_to_platform_error(e) from e
        youtube_logger.info(f"Added YouTube video {remote_id} to playlist {playlist_id}")

    async def delete_remote(self, credentials, remote_id):
        youtube = self._client_factory(credentials)
        try:
            youtube.videos().delete(id=remote_id).execute()
        except HttpError as e:
            error = _http_error_to_platform_error(e)
            if error.not_found:
                youtube_logger.info(f"YouTube video {remote_id} already deleted")
                return
            raise error from e
        youtube_logger.info(f"Deleted YouTube video {remote_id}")

    async def fetch_stats(self, credentials):
        youtube = self._client_factory(credentials)
        try:
            response = youtube.channels().list(part='statistics', mine=True).execute()
        except HttpError as e:
            raise _http_error_to_platform_error(e) from e

        items = response.get('items') or []
        if not items:
            raise PlatformError(YOUTUBE, PlatformErrorReason.NOT_FOUND, "No channel found for this account")
        statistics = items[0].get('statistics', {})
        return AccountStats(
            followers=int(statistics.get('subscriberCount', 0)),
            posts=int(statistics.get('videoCount', 0)),
            views=int(statistics.get('viewCount', 0)),
        )

    async def refresh_credentials(self, credentials):
        if not credentials.refresh_token:
            return None
        google_creds = self._google_credentials(credentials)
        try:
            google_creds.refresh(GoogleRequest())
        except RefreshError as e:
            youtube_logger.error(f"Failed to refresh YouTube token for account {credentials.account_id}: {e}")
            return None
        if not google_creds.token:
            youtube_logger.error(f"YouTube token refresh returned no access token for account {credentials.account_id}")
            return None
        return credentials.with_token(google_creds.token, google_creds.refresh_token)
