"""Video workflow state machine

Status lifecycle::

    pending/ready --approve--> approved --distribute--> scheduled | published
    approved --unapprove--> pending
    scheduled --cancel_schedule--> approved
    scheduled/published --force_unapprove--> pending   (no remote cleanup)
    pre-approval --dismiss--> dismissed --restore--> pending

Every status change is followed by a full recomputation of the owning
project's stats. A failed recomputation is logged and never undoes the
transition. Mutations hold the per-video Redis lock.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from clipdesk.core.config import settings
from clipdesk.core.exceptions import (
    ApprovalBlockedError, AssetBusyError, AssetNotFoundError, DistributionError,
    InvalidTransitionError, PlatformError, PlatformErrorReason, ValidationError
)
from clipdesk.core.metrics import (
    approval_blocked_counter, remote_deletions_counter, remote_publishes_counter,
    workflow_transitions_counter
)
from clipdesk.core.otel import get_tracer
from clipdesk.db.redis import asset_lock
from clipdesk.db.store import DocumentStore
from clipdesk.models.video import VideoStatus
from clipdesk.services.event_service import (
    publish_project_stats_updated, publish_video_deleted, publish_video_status_changed
)
from clipdesk.services.integration_service import IntegrationCredentials
from clipdesk.services.project_service import recompute_project_stats
from clipdesk.services.storage.r2_service import get_r2_service
from clipdesk.services.video.distribution import DistributionConfigManager, normalize_entry
from clipdesk.services.video.platforms.base import BasePlatformAdapter, MediaRef, PlatformCredentials

workflow_logger = logging.getLogger("workflow")
distribution_logger = logging.getLogger("distribution")
cleanup_logger = logging.getLogger("cleanup")
stats_logger = logging.getLogger("stats")
tracer = get_tracer()

PENDING = VideoStatus.PENDING.value
APPROVED = VideoStatus.APPROVED.value
SCHEDULED = VideoStatus.SCHEDULED.value
PUBLISHED = VideoStatus.PUBLISHED.value
DISMISSED = VideoStatus.DISMISSED.value

APPROVABLE_STATUSES = (PENDING, VideoStatus.READY.value)
PRE_APPROVAL_STATUSES = (
    PENDING,
    VideoStatus.READY.value,
    VideoStatus.PROCESSING.value,
    VideoStatus.UPLOADING.value,
    VideoStatus.TRANSCRIBING.value,
    VideoStatus.ERROR.value,
)
LIVE_STATUSES = (SCHEDULED, PUBLISHED)


@dataclass
class CancelResult:
    """Outcome of cancel_schedule; failures were logged and left remote posts live"""
    video: Dict[str, Any]
    deleted: List[Dict[str, Any]] = field(default_factory=list)
    skipped: List[Dict[str, Any]] = field(default_factory=list)
    failures: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.failures


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class VideoWorkflow:
    def __init__(self, store: DocumentStore, adapters: Optional[Dict[str, BasePlatformAdapter]] = None,
                 credentials: Optional[IntegrationCredentials] = None, storage_factory=None):
        if adapters is None:
            from clipdesk.services.video.registry import PLATFORM_ADAPTERS
            adapters = PLATFORM_ADAPTERS
        self.store = store
        self.adapters = adapters
        self.credentials = credentials or IntegrationCredentials(store)
        self.storage_factory = storage_factory or get_r2_service
        self.lock_timeout = settings.ASSET_LOCK_TIMEOUT

    # --- helpers ---

    def _load(self, video_id: str) -> Dict[str, Any]:
        video = self.store.get("videos", video_id)
        if video is None:
            raise AssetNotFoundError("videos", video_id)
        return video

    @staticmethod
    def _require_status(video: Dict[str, Any], allowed, operation: str) -> None:
        if video["status"] not in allowed:
            raise InvalidTransitionError(video["status"], operation, list(allowed))

    @contextmanager
    def _locked(self, video_id: str):
        with asset_lock(video_id, self.lock_timeout):
            yield

    @contextmanager
    def editing(self, video_id: str):
        """Distribution config editor for one video, held under its lock"""
        with self._locked(video_id):
            yield DistributionConfigManager.load(self.store, video_id)

    def refresh_project_stats(self, project_id: Optional[str]) -> Optional[Dict[str, int]]:
        if not project_id:
            return None
        try:
            return recompute_project_stats(self.store, project_id)
        except Exception as e:
            stats_logger.error(f"Stats recomputation failed for project {project_id}: {e}", exc_info=True)
            return None

    async def _emit_status_change(self, video: Dict[str, Any], old_status: str, new_status: str,
                                  stats: Optional[Dict[str, int]] = None) -> None:
        try:
            await publish_video_status_changed(video["user_id"], video["id"], old_status, new_status,
                                               video.get("project_id"))
            if stats is not None:
                await publish_project_stats_updated(video["user_id"], video["project_id"], stats)
        except Exception as e:
            workflow_logger.warning(f"Could not publish status change for video {video['id']}: {e}")

    async def _transition(self, video: Dict[str, Any], new_status: str, transition: str,
                          extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        old_status = video["status"]
        fields = {"status": new_status, **(extra or {})}
        self.store.update("videos", video["id"], fields)
        video.update(fields)
        workflow_transitions_counter.labels(transition=transition).inc()
        workflow_logger.info(
            f"Video {video['id']} {transition}: {old_status} -> {new_status}",
            extra={"video_id": video["id"], "user_id": video["user_id"], "transition": transition}
        )
        stats = self.refresh_project_stats(video.get("project_id"))
        await self._emit_status_change(video, old_status, new_status, stats)
        return video

    async def _recover_credentials(self, adapter: BasePlatformAdapter,
                                   credentials: PlatformCredentials) -> Optional[PlatformCredentials]:
        """Refreshed credentials, else the configured fallback, else None"""
        try:
            refreshed = await adapter.refresh_credentials(credentials)
        except PlatformError as e:
            distribution_logger.warning(f"Credential refresh failed for account {credentials.account_id}: {e}")
            refreshed = None
        if refreshed is not None:
            self.credentials.save_refreshed(refreshed)
            return refreshed
        fallback = self.credentials.fallback_credentials(credentials.account_id)
        if fallback is not None:
            distribution_logger.warning(f"Using fallback credentials for account {credentials.account_id}")
        return fallback

    async def _call_with_refresh(self, adapter: BasePlatformAdapter, account_id: str,
                                 call: Callable[[PlatformCredentials], Any], operation: str):
        """Run an adapter call, retrying once with recovered credentials on auth expiry"""
        attributes = {"clipdesk.platform": adapter.platform, "clipdesk.account_id": account_id or ""}
        with tracer.start_as_current_span(f"{adapter.platform}.{operation}", attributes=attributes):
            return await self._call_with_recovery(adapter, account_id, call)

    async def _call_with_recovery(self, adapter: BasePlatformAdapter, account_id: str,
                                  call: Callable[[PlatformCredentials], Any]):
        credentials = self.credentials.get_credentials(account_id)
        if credentials is None:
            raise PlatformError(adapter.platform, PlatformErrorReason.OTHER,
                                f"No credentials found for account {account_id}")
        try:
            return await call(credentials)
        except PlatformError as e:
            if not e.auth_expired:
                raise
            distribution_logger.warning(f"{adapter.platform} credentials expired for account {account_id}, retrying")
            recovered = await self._recover_credentials(adapter, credentials)
            if recovered is None:
                raise
            return await call(recovered)

    # --- queries ---

    def readiness(self, video_id: str):
        return DistributionConfigManager.load(self.store, video_id).readiness()

    # --- transitions ---

    async def approve(self, video_id: str,
                      content_edits: Optional[Dict[str, Dict[str, Any]]] = None) -> Dict[str, Any]:
        """Move a reviewed video to approved once every readiness guard passes

        ``content_edits`` (platform -> unsaved content fields) are applied and
        saved under the lock before the readiness check; they stay saved when
        approval is blocked.

        Raises:
            ApprovalBlockedError: With the per-platform readiness report
        """
        with self._locked(video_id):
            video = self._load(video_id)
            self._require_status(video, APPROVABLE_STATUSES, "approve")
            editor = DistributionConfigManager(self.store, video)
            for platform, fields in (content_edits or {}).items():
                editor.sync_metadata(platform, fields)
            if editor.has_pending_changes:
                editor.save_all()

            report = editor.readiness()
            if not report.ready:
                approval_blocked_counter.inc()
                workflow_logger.info(f"Approval blocked for video {video_id}: {report.failures()}")
                raise ApprovalBlockedError(report)

            config = editor.save_all()
            return await self._transition(video, APPROVED, "approve", {"distribution_config": config})

    async def distribute(self, video_id: str, configs: List[Dict[str, Any]],
                         scheduled_date: Optional[datetime] = None) -> Dict[str, Any]:
        """Publish or schedule every target, one remote call at a time

        On the first adapter failure the error propagates and the status stays
        approved. Entries already published keep their external ids, and a retry
        skips any target whose id is stored on the video from an earlier attempt.
        """
        with self._locked(video_id):
            video = self._load(video_id)
            self._require_status(video, (APPROVED,), "distribute")
            if not configs:
                raise ValidationError("distribution_config", "At least one distribution target is required")

            entries = [normalize_entry(c) for c in configs]
            published = {
                (stored.get("platform"), stored.get("account_id")): stored.get("external_id")
                for stored in video.get("distribution_config") or []
                if stored.get("external_id")
            }
            for entry in entries:
                if not entry["external_id"]:
                    entry["external_id"] = published.get((entry["platform"], entry["account_id"]))
            scheduled_date = _utc(scheduled_date)
            media = MediaRef(
                video_id=video_id,
                storage_path=video.get("storage_path"),
                url=video.get("url"),
                title=video.get("title") or "",
            )
            completed: List[Dict[str, Any]] = []

            for entry in entries:
                platform = entry["platform"]
                if entry["external_id"]:
                    distribution_logger.info(f"Skipping {platform}/{entry['account_id']}: already published as {entry['external_id']}")
                    continue
                adapter = self.adapters.get(platform)
                if adapter is None or not adapter.publishes_remotely:
                    distribution_logger.info(f"Recording {platform}/{entry['account_id']} target without remote publish")
                    continue
                if scheduled_date is not None and not adapter.supports_scheduling:
                    distribution_logger.info(f"{platform} has no native scheduling; recording target for {entry['account_id']}")
                    continue

                metadata = {**entry["metadata"], "post_type": entry["post_type"]}
                try:
                    result = await self._call_with_refresh(
                        adapter, entry["account_id"],
                        lambda creds: adapter.publish(creds, media, metadata, scheduled_date),
                        "publish"
                    )
                except PlatformError as e:
                    remote_publishes_counter.labels(platform=platform, outcome="failure").inc()
                    distribution_logger.error(
                        f"Publish to {platform} failed for video {video_id} (account {entry['account_id']}): {e}. "
                        f"{len(completed)} earlier target(s) stay published",
                        extra={"video_id": video_id, "platform": platform, "reason": e.reason}
                    )
                    raise DistributionError(platform, entry["account_id"], e.reason, e.message,
                                            completed=completed) from e

                remote_publishes_counter.labels(platform=platform, outcome="success").inc()
                entry["external_id"] = result.remote_id
                completed.append(dict(entry))
                self.store.update("videos", video_id, {"distribution_config": entries})
                distribution_logger.info(f"Published video {video_id} to {platform} as {result.remote_id}")

            platforms = list(dict.fromkeys(entry["platform"] for entry in entries))
            extra = {"distribution_config": entries, "platforms": platforms}
            if scheduled_date is not None:
                new_status = SCHEDULED
                extra["scheduled_date"] = scheduled_date
            else:
                new_status = PUBLISHED
                extra["scheduled_date"] = None
                extra["published_at"] = datetime.now(timezone.utc)
            return await self._transition(video, new_status, "distribute", extra)

    async def cancel_schedule(self, video_id: str) -> CancelResult:
        """Delete scheduled remote posts and return the video to approved

        Already-deleted posts count as deleted. Any other deletion error is
        logged and reported in ``failures``; local state is cleared anyway.
        """
        with self._locked(video_id):
            video = self._load(video_id)
            self._require_status(video, (SCHEDULED,), "cancel the schedule of")
            entries = video.get("distribution_config") or []
            result = CancelResult(video=video)

            for entry in entries:
                remote_id = entry.get("external_id")
                if not remote_id:
                    continue
                platform = entry.get("platform")
                target = {"platform": platform, "account_id": entry.get("account_id"), "external_id": remote_id}
                adapter = self.adapters.get(platform)
                if adapter is None or not adapter.publishes_remotely:
                    result.skipped.append(target)
                    continue
                try:
                    await self._call_with_refresh(
                        adapter, entry.get("account_id"),
                        lambda creds: adapter.delete_remote(creds, remote_id),
                        "delete_remote"
                    )
                except PlatformError as e:
                    if e.not_found:
                        remote_deletions_counter.labels(platform=platform, outcome="not_found").inc()
                        cleanup_logger.info(f"{platform} post {remote_id} already gone")
                        result.deleted.append(target)
                        continue
                    remote_deletions_counter.labels(platform=platform, outcome="failure").inc()
                    cleanup_logger.error(
                        f"Could not delete {platform} post {remote_id} for video {video_id}; it may still be live: {e}",
                        extra={"video_id": video_id, "platform": platform, "external_id": remote_id}
                    )
                    result.failures.append({**target, "reason": e.reason, "message": e.message})
                    continue
                remote_deletions_counter.labels(platform=platform, outcome="success").inc()
                result.deleted.append(target)

            cleared = [{**entry, "external_id": None} for entry in entries]
            await self._transition(video, APPROVED, "cancel_schedule",
                                   {"distribution_config": cleared, "scheduled_date": None})
            return result

    async def unapprove(self, video_id: str) -> Dict[str, Any]:
        with self._locked(video_id):
            video = self._load(video_id)
            self._require_status(video, (APPROVED,), "unapprove")
            return await self._transition(video, PENDING, "unapprove")

    async def force_unapprove(self, video_id: str) -> Dict[str, Any]:
        """Revert a scheduled or published video to pending WITHOUT remote cleanup

        Remote posts stay live and their external ids are kept on the video.
        Use cancel_schedule to actually withdraw a scheduled post.
        """
        with self._locked(video_id):
            video = self._load(video_id)
            self._require_status(video, LIVE_STATUSES, "force-unapprove")
            live = [
                f"{e.get('platform')}:{e.get('external_id')}"
                for e in (video.get("distribution_config") or []) if e.get("external_id")
            ]
            workflow_logger.warning(
                f"FORCE UNAPPROVE on video {video_id} (was {video['status']}): no remote cleanup performed, "
                f"remote posts left live: {', '.join(live) or 'none'}",
                extra={"video_id": video_id, "user_id": video["user_id"], "live_remote_ids": live}
            )
            return await self._transition(video, PENDING, "force_unapprove")

    async def dismiss(self, video_id: str) -> Dict[str, Any]:
        with self._locked(video_id):
            video = self._load(video_id)
            self._require_status(video, PRE_APPROVAL_STATUSES, "dismiss")
            return await self._transition(video, DISMISSED, "dismiss")

    async def restore(self, video_id: str) -> Dict[str, Any]:
        with self._locked(video_id):
            video = self._load(video_id)
            self._require_status(video, (DISMISSED,), "restore")
            return await self._transition(video, PENDING, "restore")

    async def delete(self, video_id: str) -> None:
        """Remove backing media (best-effort) and the video record"""
        with self._locked(video_id):
            video = self._load(video_id)
            for object_key in (video.get("storage_path"), video.get("thumbnail_path")):
                if not object_key:
                    continue
                try:
                    if not self.storage_factory().delete_object(object_key):
                        cleanup_logger.warning(f"Could not delete {object_key} for video {video_id}")
                except Exception as e:
                    cleanup_logger.warning(f"Could not delete {object_key} for video {video_id}: {e}")

            self.store.delete("videos", video_id)
            workflow_transitions_counter.labels(transition="delete").inc()
            workflow_logger.info(f"Deleted video {video_id}")
            self.refresh_project_stats(video.get("project_id"))
            try:
                await publish_video_deleted(video["user_id"], video_id, video.get("project_id"))
            except Exception as e:
                workflow_logger.warning(f"Could not publish deletion of video {video_id}: {e}")

    async def promote_due(self, now: Optional[datetime] = None) -> List[str]:
        """Mark scheduled videos whose publish time has passed as published"""
        now = _utc(now) or datetime.now(timezone.utc)
        promoted = []
        for video in self.store.query("videos", {"status": SCHEDULED}):
            scheduled_date = _utc(video.get("scheduled_date"))
            if scheduled_date is None or scheduled_date > now:
                continue
            try:
                with self._locked(video["id"]):
                    current = self._load(video["id"])
                    if current["status"] != SCHEDULED:
                        continue
                    await self._transition(current, PUBLISHED, "scheduled_publish", {
                        "published_at": scheduled_date,
                        "scheduled_date": None,
                    })
                promoted.append(video["id"])
            except (AssetBusyError, AssetNotFoundError) as e:
                workflow_logger.info(f"Skipping scheduled promotion of video {video['id']}: {e}")
        return promoted
