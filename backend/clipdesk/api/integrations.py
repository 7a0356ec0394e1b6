"""Integrations (connected platform accounts) and analytics API routes"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from clipdesk.api.deps import http_error, require_user
from clipdesk.core.exceptions import PlatformError, WorkflowError
from clipdesk.db.store import DocumentStore, get_store
from clipdesk.schemas.integration import IntegrationCreate
from clipdesk.services.integration_service import (
    analytics_overview, create_integration, delete_integration, get_integration, list_integrations,
    public_view, refresh_integration_stats
)
from clipdesk.services.video.registry import get_platform_adapters

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/integrations", tags=["integrations"])
analytics_router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.post("", status_code=201)
def connect(body: IntegrationCreate, user_id: str = Depends(require_user), store: DocumentStore = Depends(get_store)):
    try:
        integration = create_integration(
            store, user_id, body.platform, body.name, body.access_token,
            refresh_token=body.refresh_token,
            external_account_id=body.external_account_id,
            fallback_access_token=body.fallback_access_token,
            config=body.config,
        )
    except WorkflowError as e:
        raise http_error(e)
    return public_view(integration)


@router.get("")
def list_all(platform: Optional[str] = Query(None), user_id: str = Depends(require_user),
             store: DocumentStore = Depends(get_store)):
    return {"integrations": [public_view(i) for i in list_integrations(store, user_id, platform)]}


@router.delete("/{integration_id}")
def disconnect(integration_id: str, user_id: str = Depends(require_user), store: DocumentStore = Depends(get_store)):
    try:
        delete_integration(store, integration_id, user_id)
    except WorkflowError as e:
        raise http_error(e)
    return {"ok": True}


@router.post("/{integration_id}/refresh-stats")
async def refresh_stats(integration_id: str, user_id: str = Depends(require_user),
                        store: DocumentStore = Depends(get_store), adapters=Depends(get_platform_adapters)):
    try:
        get_integration(store, integration_id, user_id)
        stats = await refresh_integration_stats(store, integration_id, adapters)
    except (WorkflowError, PlatformError) as e:
        raise http_error(e)
    return {"integration_id": integration_id, "stats": stats}


@analytics_router.get("/overview")
def overview(user_id: str = Depends(require_user), store: DocumentStore = Depends(get_store)):
    """Followers/posts/views per platform across the caller's accounts"""
    return analytics_overview(store, user_id)
