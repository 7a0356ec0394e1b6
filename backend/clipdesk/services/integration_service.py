"""Connected platform accounts: credentials, cached stats and analytics"""
import logging
from typing import Any, Dict, List, Optional

from clipdesk.core.exceptions import AssetNotFoundError, ValidationError
from clipdesk.db.store import DocumentStore
from clipdesk.services.video.config import PLATFORM_RULES, get_platform_rules
from clipdesk.services.video.platforms.base import BasePlatformAdapter, PlatformCredentials
from clipdesk.utils.encryption import decrypt, encrypt

logger = logging.getLogger(__name__)

SECRET_FIELDS = ("access_token", "refresh_token", "fallback_access_token")


def public_view(integration: Dict[str, Any]) -> Dict[str, Any]:
    """Integration document without credential material"""
    view = {k: v for k, v in integration.items() if k not in SECRET_FIELDS}
    view["has_refresh_token"] = bool(integration.get("refresh_token"))
    view["has_fallback_token"] = bool(integration.get("fallback_access_token"))
    return view


def create_integration(store: DocumentStore, user_id: str, platform: str, name: str, access_token: str,
                       refresh_token: Optional[str] = None, external_account_id: Optional[str] = None,
                       fallback_access_token: Optional[str] = None,
                       config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    get_platform_rules(platform)
    if not access_token:
        raise ValidationError("access_token", "Access token is required")
    integration_id = store.create("integrations", {
        "user_id": user_id,
        "platform": platform,
        "name": name,
        "external_account_id": external_account_id,
        "access_token": encrypt(access_token),
        "refresh_token": encrypt(refresh_token),
        "fallback_access_token": encrypt(fallback_access_token),
        "config": config or {},
        "stats": None,
    })
    logger.info(f"Connected {platform} integration {integration_id} ({name}) for user {user_id}")
    return store.get("integrations", integration_id)


def get_integration(store: DocumentStore, integration_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
    integration = store.get("integrations", integration_id)
    if integration is None or (user_id is not None and integration["user_id"] != user_id):
        raise AssetNotFoundError("integrations", integration_id)
    return integration


def list_integrations(store: DocumentStore, user_id: str, platform: Optional[str] = None) -> List[Dict[str, Any]]:
    filters = {"user_id": user_id}
    if platform:
        filters["platform"] = platform
    return store.query("integrations", filters)


def delete_integration(store: DocumentStore, integration_id: str, user_id: str) -> None:
    get_integration(store, integration_id, user_id)
    store.delete("integrations", integration_id)
    logger.info(f"Deleted integration {integration_id} for user {user_id}")


def to_credentials(integration: Dict[str, Any], use_fallback: bool = False) -> Optional[PlatformCredentials]:
    token_field = "fallback_access_token" if use_fallback else "access_token"
    access_token = decrypt(integration.get(token_field))
    if not access_token:
        return None
    return PlatformCredentials(
        account_id=integration["id"],
        platform=integration["platform"],
        access_token=access_token,
        refresh_token=decrypt(integration.get("refresh_token")),
        external_account_id=integration.get("external_account_id"),
        extra=dict(integration.get("config") or {}),
    )


class IntegrationCredentials:
    """Account id -> credentials lookup used by the distribution workflow"""

    def __init__(self, store: DocumentStore):
        self.store = store

    def get_credentials(self, account_id: str) -> Optional[PlatformCredentials]:
        integration = self.store.get("integrations", account_id)
        if integration is None:
            return None
        return to_credentials(integration)

    def fallback_credentials(self, account_id: str) -> Optional[PlatformCredentials]:
        integration = self.store.get("integrations", account_id)
        if integration is None:
            return None
        return to_credentials(integration, use_fallback=True)

    def save_refreshed(self, credentials: PlatformCredentials) -> None:
        self.store.update("integrations", credentials.account_id, {
            "access_token": encrypt(credentials.access_token),
            "refresh_token": encrypt(credentials.refresh_token),
        })
        logger.info(f"Stored refreshed credentials for integration {credentials.account_id}")


async def refresh_integration_stats(store: DocumentStore, integration_id: str,
                                    adapters: Dict[str, BasePlatformAdapter]) -> Dict[str, Any]:
    """Fetch profile stats through the platform adapter and cache them

    Raises:
        PlatformError: If the platform call fails
    """
    integration = get_integration(store, integration_id)
    credentials = to_credentials(integration)
    if credentials is None:
        raise ValidationError("access_token", f"Integration {integration_id} has no access token")
    adapter = adapters[integration["platform"]]
    stats = (await adapter.fetch_stats(credentials)).to_dict()
    store.update("integrations", integration_id, {"stats": stats})
    logger.info(f"Refreshed stats for {integration['platform']} integration {integration_id}: {stats}")
    return stats


def analytics_overview(store: DocumentStore, user_id: str) -> Dict[str, Any]:
    """Followers/posts/views summed per platform from cached integration stats"""
    empty = {"accounts": 0, "followers": 0, "posts": 0, "views": 0}
    platforms = {platform: dict(empty) for platform in PLATFORM_RULES}
    totals = dict(empty)
    for integration in list_integrations(store, user_id):
        bucket = platforms.setdefault(integration["platform"], dict(empty))
        stats = integration.get("stats") or {}
        for target in (bucket, totals):
            target["accounts"] += 1
            target["followers"] += int(stats.get("followers") or 0)
            target["posts"] += int(stats.get("posts") or 0)
            target["views"] += int(stats.get("views") or 0)
    return {"platforms": platforms, "totals": totals}
