"""Event publishing service for real-time updates via Redis pub/sub"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from clipdesk.db.redis import get_async_redis_client

logger = logging.getLogger(__name__)


async def publish_event(
    user_id: str,
    event_type: str,
    data: Dict[str, Any],
    channel: Optional[str] = None
) -> None:
    """Publish an event to Redis pub/sub

    Args:
        user_id: Owner to send the event to
        event_type: Event type (e.g., 'video_status_changed')
        data: Event payload data
        channel: Optional channel override (defaults to channel based on event type)
    """
    if not channel:
        if event_type.startswith('project_'):
            channel = f"user:{user_id}:projects"
        else:
            channel = f"user:{user_id}:videos"

    event = {
        "type": event_type,
        "data": data,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
    event_json = json.dumps(event, default=str)

    try:
        result = await get_async_redis_client().publish(channel, event_json)
    except Exception as e:
        logger.error(f"Failed to publish event {event_type} for user {user_id}: {e}", exc_info=True)
        raise
    logger.debug(f"Event {event_type} published to {channel}: {result} subscriber(s)")


async def publish_video_status_changed(user_id: str, video_id: str, old_status: str, new_status: str,
                                       project_id: Optional[str] = None) -> None:
    await publish_event(user_id, "video_status_changed", {
        "video_id": video_id,
        "old_status": old_status,
        "new_status": new_status,
        "project_id": project_id,
    })


async def publish_video_deleted(user_id: str, video_id: str, project_id: Optional[str] = None) -> None:
    await publish_event(user_id, "video_deleted", {"video_id": video_id, "project_id": project_id})


async def publish_project_stats_updated(user_id: str, project_id: str, stats: Dict[str, int]) -> None:
    await publish_event(user_id, "project_stats_updated", {"project_id": project_id, "stats": stats})
