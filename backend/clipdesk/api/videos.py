"""Videos API routes: upload, targeting, content and workflow transitions"""
import asyncio
import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from clipdesk.api.deps import (
    get_content_generator, get_ingest_service, get_owned_video, get_workflow, http_error, require_user
)
from clipdesk.core.config import settings
from clipdesk.core.exceptions import WorkflowError
from clipdesk.db.store import DocumentStore, get_store
from clipdesk.models.base import generate_id
from clipdesk.schemas.video import (
    AccountToggle, ApproveRequest, ContentUpdate, DistributeRequest, MediaPropertiesUpdate,
    PlatformToggle, PostTypeUpdate
)
from clipdesk.services.content_service import ContentGenerationError, generate_platform_content
from clipdesk.services.ingest_service import IngestService
from clipdesk.services.project_service import get_project
from clipdesk.services.video.config import PLATFORM_RULES
from clipdesk.services.video.distribution import DistributionConfigManager
from clipdesk.services.video.eligibility import aspect_ratio
from clipdesk.services.video.workflow import VideoWorkflow

upload_logger = logging.getLogger("ingest")
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/videos", tags=["videos"])

CHUNK_SIZE = 1024 * 1024


async def _save_upload(file: UploadFile, user_id: str) -> Path:
    """Stream the upload to UPLOAD_DIR, enforcing MAX_FILE_SIZE while reading"""
    settings.UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    suffix = Path(file.filename or "").suffix.lower() or ".mp4"
    path = settings.UPLOAD_DIR / f"{generate_id()}{suffix}"
    file_size = 0
    start_time = asyncio.get_event_loop().time()
    try:
        with open(path, "wb") as f:
            while True:
                chunk = await file.read(CHUNK_SIZE)
                if not chunk:
                    break
                file_size += len(chunk)
                if file_size > settings.MAX_FILE_SIZE:
                    max_mb = settings.MAX_FILE_SIZE / (1024 * 1024)
                    raise HTTPException(413, f"File too large: {file.filename}. Maximum file size is {max_mb:.0f} MB.")
                f.write(chunk)
    except BaseException:
        path.unlink(missing_ok=True)
        raise

    elapsed = asyncio.get_event_loop().time() - start_time
    upload_logger.info(
        f"Received upload for user {user_id}: {file.filename} "
        f"({file_size / (1024 * 1024):.2f} MB in {elapsed:.1f}s)"
    )
    return path


@router.post("", status_code=201)
async def upload_video(
    file: UploadFile = File(...),
    project_id: Optional[str] = Form(None),
    title: Optional[str] = Form(None),
    user_id: str = Depends(require_user),
    store: DocumentStore = Depends(get_store),
    ingest: IngestService = Depends(get_ingest_service)
):
    """Upload a video and run the ingestion pipeline"""
    if project_id:
        try:
            get_project(store, project_id, user_id)
        except WorkflowError as e:
            raise http_error(e)

    path = await _save_upload(file, user_id)
    try:
        return await ingest.ingest_video(user_id, path, file.filename or path.name, project_id=project_id, title=title)
    except ValueError as e:
        path.unlink(missing_ok=True)
        upload_logger.error(f"Ingestion failed for user {user_id}: {file.filename}: {e}")
        raise HTTPException(502, str(e))


@router.get("")
def list_videos(project_id: Optional[str] = Query(None), status: Optional[str] = Query(None),
                user_id: str = Depends(require_user), store: DocumentStore = Depends(get_store)):
    filters = {"user_id": user_id}
    if project_id:
        filters["project_id"] = project_id
    if status:
        filters["status"] = status
    return {"videos": store.query("videos", filters)}


@router.get("/{video_id}")
def get_video(video_id: str, user_id: str = Depends(require_user), store: DocumentStore = Depends(get_store)):
    try:
        return get_owned_video(store, video_id, user_id)
    except WorkflowError as e:
        raise http_error(e)


@router.delete("/{video_id}")
async def delete_video(video_id: str, user_id: str = Depends(require_user),
                       workflow: VideoWorkflow = Depends(get_workflow),
                       ingest: IngestService = Depends(get_ingest_service)):
    try:
        get_owned_video(workflow.store, video_id, user_id)
        await workflow.delete(video_id)
    except WorkflowError as e:
        raise http_error(e)
    ingest.discard_local_copy(video_id)
    return {"ok": True}


@router.get("/{video_id}/readiness")
def get_readiness(video_id: str, user_id: str = Depends(require_user),
                  workflow: VideoWorkflow = Depends(get_workflow)):
    try:
        get_owned_video(workflow.store, video_id, user_id)
        return workflow.readiness(video_id).to_dict()
    except WorkflowError as e:
        raise http_error(e)


@router.get("/{video_id}/eligibility")
def get_eligibility(video_id: str, user_id: str = Depends(require_user), store: DocumentStore = Depends(get_store)):
    try:
        video = get_owned_video(store, video_id, user_id)
    except WorkflowError as e:
        raise http_error(e)
    manager = DistributionConfigManager(store, video)
    return {
        "ratio": aspect_ratio(video.get("width"), video.get("height")),
        "duration": video.get("duration_seconds"),
        "platforms": {platform: manager.eligibility(platform).to_dict() for platform in PLATFORM_RULES},
    }


# --- distribution targeting ---

@router.put("/{video_id}/platforms/{platform}")
def toggle_platform(video_id: str, platform: str, body: PlatformToggle, user_id: str = Depends(require_user),
                    workflow: VideoWorkflow = Depends(get_workflow)):
    try:
        get_owned_video(workflow.store, video_id, user_id)
        with workflow.editing(video_id) as editor:
            platforms = editor.toggle_platform(platform, body.enabled)
            return {"platforms": platforms, "distribution_config": editor.materialize()}
    except WorkflowError as e:
        raise http_error(e)


@router.post("/{video_id}/accounts")
def toggle_account(video_id: str, body: AccountToggle, user_id: str = Depends(require_user),
                   workflow: VideoWorkflow = Depends(get_workflow)):
    """Select the account as a target, or deselect it if already selected"""
    try:
        get_owned_video(workflow.store, video_id, user_id)
        with workflow.editing(video_id) as editor:
            return {"distribution_config": editor.toggle_account(body.platform, body.account_id)}
    except WorkflowError as e:
        raise http_error(e)


@router.put("/{video_id}/post-type")
def set_post_type(video_id: str, body: PostTypeUpdate, user_id: str = Depends(require_user),
                  workflow: VideoWorkflow = Depends(get_workflow)):
    try:
        get_owned_video(workflow.store, video_id, user_id)
        with workflow.editing(video_id) as editor:
            config = editor.set_post_type(body.platform, body.post_type)
            return {"post_types": editor.post_types, "distribution_config": config}
    except WorkflowError as e:
        raise http_error(e)


@router.put("/{video_id}/content/{platform}")
def update_content(video_id: str, platform: str, body: ContentUpdate, user_id: str = Depends(require_user),
                   workflow: VideoWorkflow = Depends(get_workflow)):
    """Edit the platform's shared content and save it to every target of that platform"""
    fields = body.model_dump(exclude_unset=True)
    try:
        get_owned_video(workflow.store, video_id, user_id)
        with workflow.editing(video_id) as editor:
            content = editor.sync_metadata(platform, fields)
            config = editor.save_platform(platform)
            return {"content": content.model_dump(), "distribution_config": config}
    except WorkflowError as e:
        raise http_error(e)


@router.put("/{video_id}/media-properties")
def update_media_properties(video_id: str, body: MediaPropertiesUpdate, user_id: str = Depends(require_user),
                            workflow: VideoWorkflow = Depends(get_workflow)):
    try:
        get_owned_video(workflow.store, video_id, user_id)
        with workflow.editing(video_id) as editor:
            switched = editor.apply_media_properties(body.width, body.height, body.duration)
            return {"youtube_post_type_switched_to": switched, "post_types": editor.post_types}
    except WorkflowError as e:
        raise http_error(e)


# --- content generation ---

@router.post("/{video_id}/transcribe")
async def transcribe(video_id: str, user_id: str = Depends(require_user), store: DocumentStore = Depends(get_store),
                     ingest: IngestService = Depends(get_ingest_service)):
    try:
        get_owned_video(store, video_id, user_id)
        transcript = await ingest.transcribe_video(video_id, raise_errors=True)
    except WorkflowError as e:
        raise http_error(e)
    except (ContentGenerationError, ValueError) as e:
        raise HTTPException(502, f"Transcription failed: {e}")
    return {"video_id": video_id, "transcription": transcript}


@router.post("/{video_id}/generate/{platform}")
async def generate_content(video_id: str, platform: str, user_id: str = Depends(require_user),
                           workflow: VideoWorkflow = Depends(get_workflow),
                           generator=Depends(get_content_generator)):
    try:
        get_owned_video(workflow.store, video_id, user_id)
        content = await generate_platform_content(workflow, generator, video_id, platform)
    except (WorkflowError, ContentGenerationError) as e:
        raise http_error(e)
    return {"platform": platform, "content": content}


# --- workflow transitions ---

@router.post("/{video_id}/approve")
async def approve(video_id: str, body: Optional[ApproveRequest] = None, user_id: str = Depends(require_user),
                  workflow: VideoWorkflow = Depends(get_workflow)):
    """Approve the video; any unsaved content edits in the body are flushed first"""
    try:
        get_owned_video(workflow.store, video_id, user_id)
        edits = {}
        if body is not None:
            edits = {platform: update.model_dump(exclude_unset=True) for platform, update in body.content.items()}
        return await workflow.approve(video_id, content_edits=edits)
    except WorkflowError as e:
        raise http_error(e)


@router.post("/{video_id}/distribute")
async def distribute(video_id: str, body: DistributeRequest, user_id: str = Depends(require_user),
                     workflow: VideoWorkflow = Depends(get_workflow)):
    configs = [target.model_dump() for target in body.configs]
    try:
        get_owned_video(workflow.store, video_id, user_id)
        return await workflow.distribute(video_id, configs, body.scheduled_date)
    except WorkflowError as e:
        raise http_error(e)


@router.post("/{video_id}/cancel-schedule")
async def cancel_schedule(video_id: str, user_id: str = Depends(require_user),
                          workflow: VideoWorkflow = Depends(get_workflow)):
    try:
        get_owned_video(workflow.store, video_id, user_id)
        result = await workflow.cancel_schedule(video_id)
    except WorkflowError as e:
        raise http_error(e)
    return {
        "video": result.video,
        "deleted": result.deleted,
        "skipped": result.skipped,
        "failures": result.failures,
        "clean": result.clean,
    }


@router.post("/{video_id}/unapprove")
async def unapprove(video_id: str, user_id: str = Depends(require_user),
                    workflow: VideoWorkflow = Depends(get_workflow)):
    try:
        get_owned_video(workflow.store, video_id, user_id)
        return await workflow.unapprove(video_id)
    except WorkflowError as e:
        raise http_error(e)


@router.post("/{video_id}/force-unapprove")
async def force_unapprove(video_id: str, user_id: str = Depends(require_user),
                          workflow: VideoWorkflow = Depends(get_workflow)):
    """Revert to pending without touching remote posts (they stay live)"""
    try:
        get_owned_video(workflow.store, video_id, user_id)
        return await workflow.force_unapprove(video_id)
    except WorkflowError as e:
        raise http_error(e)


@router.post("/{video_id}/dismiss")
async def dismiss(video_id: str, user_id: str = Depends(require_user),
                  workflow: VideoWorkflow = Depends(get_workflow)):
    try:
        get_owned_video(workflow.store, video_id, user_id)
        return await workflow.dismiss(video_id)
    except WorkflowError as e:
        raise http_error(e)


@router.post("/{video_id}/restore")
async def restore(video_id: str, user_id: str = Depends(require_user),
                  workflow: VideoWorkflow = Depends(get_workflow)):
    try:
        get_owned_video(workflow.store, video_id, user_id)
        return await workflow.restore(video_id)
    except WorkflowError as e:
        raise http_error(e)
