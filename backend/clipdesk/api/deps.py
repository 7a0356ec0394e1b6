"""Shared FastAPI dependencies and error mapping for the API routers"""
import logging
from typing import Any, Dict, Optional

from fastapi import Depends, Header, HTTPException

from clipdesk.core.exceptions import (
    ApprovalBlockedError, AssetBusyError, AssetNotFoundError, DistributionError,
    InvalidTransitionError, PlatformError, ValidationError, WorkflowError
)
from clipdesk.db.store import DocumentStore, get_store
from clipdesk.services.content_service import ContentGenerationError, GeminiContentGenerator
from clipdesk.services.ingest_service import IngestService
from clipdesk.services.video.registry import get_platform_adapters
from clipdesk.services.video.workflow import VideoWorkflow

logger = logging.getLogger(__name__)

_generator: Optional[GeminiContentGenerator] = None
_ingest_service: Optional[IngestService] = None


def require_user(x_user_id: Optional[str] = Header(None)) -> str:
    """Caller identity as forwarded by the upstream gateway"""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(401, "Not authenticated")
    return x_user_id.strip()


def get_workflow(store: DocumentStore = Depends(get_store),
                 adapters=Depends(get_platform_adapters)) -> VideoWorkflow:
    return VideoWorkflow(store, adapters=adapters)


def get_content_generator() -> GeminiContentGenerator:
    global _generator
    if _generator is None:
        _generator = GeminiContentGenerator()
    return _generator


def get_ingest_service(store: DocumentStore = Depends(get_store),
                       generator: GeminiContentGenerator = Depends(get_content_generator)) -> IngestService:
    """Process-wide ingest service; it owns the local file cache"""
    global _ingest_service
    if _ingest_service is None:
        _ingest_service = IngestService(store, generator=generator)
    return _ingest_service


def get_owned_video(store: DocumentStore, video_id: str, user_id: str) -> Dict[str, Any]:
    """Video owned by the caller; someone else's video is reported as missing"""
    video = store.get("videos", video_id)
    if video is None or video["user_id"] != user_id:
        raise AssetNotFoundError("videos", video_id)
    return video


def http_error(exc: Exception) -> HTTPException:
    """Translate a workflow/platform error into the HTTP error the routers raise"""
    if isinstance(exc, AssetNotFoundError):
        return HTTPException(404, str(exc))
    if isinstance(exc, (InvalidTransitionError, AssetBusyError)):
        return HTTPException(409, str(exc))
    if isinstance(exc, ApprovalBlockedError):
        return HTTPException(422, exc.to_dict())
    if isinstance(exc, DistributionError):
        return HTTPException(502, exc.to_dict())
    if isinstance(exc, ValidationError):
        return HTTPException(400, exc.to_dict())
    if isinstance(exc, PlatformError):
        return HTTPException(502, {"platform": exc.platform, "reason": exc.reason, "message": exc.message})
    if isinstance(exc, ContentGenerationError):
        return HTTPException(502, f"Content generation failed: {exc}")
    if isinstance(exc, WorkflowError):
        return HTTPException(400, str(exc))
    logger.error(f"Unmapped error: {exc}", exc_info=True)
    return HTTPException(500, "Internal server error")
