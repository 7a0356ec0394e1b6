"""Background tasks: scheduled publish sweep and integration stats refresh"""
import asyncio
import logging

from clipdesk.core.config import settings
from clipdesk.core.exceptions import PlatformError
from clipdesk.core.metrics import scheduler_runs_counter
from clipdesk.db.store import get_store
from clipdesk.services.integration_service import refresh_integration_stats
from clipdesk.services.video.registry import PLATFORM_ADAPTERS
from clipdesk.services.video.workflow import VideoWorkflow

logger = logging.getLogger(__name__)
workflow_logger = logging.getLogger("workflow")
stats_logger = logging.getLogger("stats")


async def run_schedule_sweep(workflow: VideoWorkflow):
    """One pass of the sweep; returns the ids moved to published"""
    promoted = await workflow.promote_due()
    if promoted:
        workflow_logger.info(f"Scheduled sweep published {len(promoted)} video(s): {', '.join(promoted)}")
    return promoted


async def schedule_sweep_task():
    """Background task that marks scheduled videos as published once their time has passed"""
    while True:
        try:
            await asyncio.sleep(settings.SCHEDULE_SWEEP_INTERVAL)
            await run_schedule_sweep(VideoWorkflow(get_store()))
            scheduler_runs_counter.labels(task="schedule_sweep", status="success").inc()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            scheduler_runs_counter.labels(task="schedule_sweep", status="failure").inc()
            logger.error(f"Error in schedule sweep task: {e}", exc_info=True)


async def run_stats_refresh(store, adapters=None) -> int:
    """Refresh cached profile stats for every integration; returns how many succeeded"""
    adapters = adapters or PLATFORM_ADAPTERS
    refreshed = 0
    for integration in store.query("integrations"):
        try:
            await refresh_integration_stats(store, integration["id"], adapters)
            refreshed += 1
        except (PlatformError, ValueError) as e:
            stats_logger.warning(
                f"Could not refresh stats for {integration['platform']} integration {integration['id']}: {e}"
            )
    return refreshed


async def stats_refresh_task():
    """Background task that periodically refreshes integration follower/post/view stats"""
    while True:
        try:
            await asyncio.sleep(settings.STATS_REFRESH_INTERVAL)
            refreshed = await run_stats_refresh(get_store())
            stats_logger.info(f"Refreshed stats for {refreshed} integration(s)")
            scheduler_runs_counter.labels(task="stats_refresh", status="success").inc()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            scheduler_runs_counter.labels(task="stats_refresh", status="failure").inc()
            logger.error(f"Error in stats refresh task: {e}", exc_info=True)
