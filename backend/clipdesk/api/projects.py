"""Projects API routes"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from clipdesk.api.deps import http_error, require_user
from clipdesk.core.exceptions import WorkflowError
from clipdesk.db.store import DocumentStore, get_store
from clipdesk.schemas.project import ProjectCreate, ProjectUpdate
from clipdesk.services.project_service import (
    create_project, get_project, is_project_resolved, list_projects, recompute_project_stats, update_project
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["projects"])


def _project_response(project):
    return {**project, "resolved": is_project_resolved(project.get("stats"))}


@router.post("", status_code=201)
def create(body: ProjectCreate, user_id: str = Depends(require_user), store: DocumentStore = Depends(get_store)):
    try:
        project = create_project(store, user_id, body.name, body.client_name, body.agency_name)
    except WorkflowError as e:
        raise http_error(e)
    return _project_response(project)


@router.get("")
def list_all(user_id: str = Depends(require_user), store: DocumentStore = Depends(get_store)):
    return {"projects": [_project_response(p) for p in list_projects(store, user_id)]}


@router.get("/{project_id}")
def get_one(project_id: str, user_id: str = Depends(require_user), store: DocumentStore = Depends(get_store)):
    try:
        return _project_response(get_project(store, project_id, user_id))
    except WorkflowError as e:
        raise http_error(e)


@router.patch("/{project_id}")
def update(project_id: str, body: ProjectUpdate, user_id: str = Depends(require_user),
           store: DocumentStore = Depends(get_store)):
    fields = body.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(400, "No fields to update")
    try:
        return _project_response(update_project(store, project_id, user_id, fields))
    except WorkflowError as e:
        raise http_error(e)


@router.post("/{project_id}/recompute-stats")
def recompute_stats(project_id: str, user_id: str = Depends(require_user), store: DocumentStore = Depends(get_store)):
    """Manual full rescan of the project's videos"""
    try:
        get_project(store, project_id, user_id)
        stats = recompute_project_stats(store, project_id)
    except WorkflowError as e:
        raise http_error(e)
    return {"project_id": project_id, "stats": stats, "resolved": is_project_resolved(stats)}


@router.get("/{project_id}/videos")
def project_videos(project_id: str, status: Optional[str] = Query(None),
                   user_id: str = Depends(require_user), store: DocumentStore = Depends(get_store)):
    try:
        get_project(store, project_id, user_id)
    except WorkflowError as e:
        raise http_error(e)
    filters = {"project_id": project_id, "user_id": user_id}
    if status:
        filters["status"] = status
    return {"videos": store.query("videos", filters)}
