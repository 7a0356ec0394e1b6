"""Project management and status aggregation"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from clipdesk.core.exceptions import AssetNotFoundError, ValidationError
from clipdesk.core.metrics import stats_recomputations_counter
from clipdesk.db.store import DocumentStore
from clipdesk.models.video import VideoStatus

stats_logger = logging.getLogger("stats")

EDITABLE_FIELDS = ("name", "client_name", "agency_name")


def status_bucket(status: Optional[str]) -> str:
    """Stats bucket for a video status; anything unrecognised awaits review"""
    if status == VideoStatus.DISMISSED.value:
        return "discarded"
    if status in (VideoStatus.SCHEDULED.value, VideoStatus.PUBLISHED.value):
        return "scheduled_or_published"
    if status == VideoStatus.APPROVED.value:
        return "approved"
    return "pending_review"


def compute_stats(videos: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    stats = {
        "total": 0,
        "pending_review": 0,
        "approved": 0,
        "scheduled_or_published": 0,
        "discarded": 0,
    }
    for video in videos:
        stats["total"] += 1
        stats[status_bucket(video.get("status"))] += 1
    return stats


def recompute_project_stats(store: DocumentStore, project_id: str) -> Dict[str, int]:
    """Full rescan of the project's videos and full rewrite of its stats

    Raises:
        AssetNotFoundError: If the project no longer exists
    """
    try:
        videos = store.query("videos", {"project_id": project_id})
        stats = compute_stats(videos)
        store.update("projects", project_id, {"stats": stats, "video_count": stats["total"]})
    except Exception:
        stats_recomputations_counter.labels(status="failure").inc()
        raise
    stats_recomputations_counter.labels(status="success").inc()
    stats_logger.info(f"Recomputed stats for project {project_id}: {stats}")
    return stats


def is_project_resolved(stats: Optional[Dict[str, int]]) -> bool:
    """Nothing left to review or distribute, and at least one video"""
    if not stats:
        return False
    return stats.get("pending_review", 0) == 0 and stats.get("approved", 0) == 0 and stats.get("total", 0) > 0


def create_project(store: DocumentStore, user_id: str, name: str,
                   client_name: Optional[str] = None, agency_name: Optional[str] = None) -> Dict[str, Any]:
    if not name or not name.strip():
        raise ValidationError("name", "Project name is required")
    project_id = store.create("projects", {
        "user_id": user_id,
        "name": name.strip(),
        "client_name": client_name,
        "agency_name": agency_name,
        "video_count": 0,
        "stats": compute_stats([]),
    })
    stats_logger.info(f"Created project {project_id} for user {user_id}")
    return store.get("projects", project_id)


def get_project(store: DocumentStore, project_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
    project = store.get("projects", project_id)
    if project is None or (user_id is not None and project["user_id"] != user_id):
        raise AssetNotFoundError("projects", project_id)
    return project


def list_projects(store: DocumentStore, user_id: str) -> List[Dict[str, Any]]:
    return store.query("projects", {"user_id": user_id})


def update_project(store: DocumentStore, project_id: str, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    get_project(store, project_id, user_id)
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(sorted(unknown)[0], "Field cannot be edited")
    if "name" in fields and not (fields["name"] or "").strip():
        raise ValidationError("name", "Project name is required")
    if fields:
        store.update("projects", project_id, fields)
    return store.get("projects", project_id)


def client_label(store: DocumentStore, project_id: Optional[str]) -> str:
    """Label passed to the content generator for a video's project"""
    if not project_id:
        return ""
    project = store.get("projects", project_id)
    if project is None:
        return ""
    return project.get("client_name") or project.get("name") or ""
