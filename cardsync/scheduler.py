"""Daily price sync cron with multi-instance coordination through `scheduler_locks`."""

import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from supabase import Client

from cardsync.config import Settings
from cardsync.reconcile import run_sync
from cardsync.utils.errors import CatalogError
from cardsync.utils.logger import scheduler_logger as logger
from cardsync.utils.supabase import get_supabase_client

JOB_NAME = "daily_price_sync"
LOCK_TABLE = "scheduler_locks"


# ==============================================================================
# DISTRIBUTED LOCK
# ==============================================================================


def _get_instance_id() -> str:
    """Unique id for this application instance."""
    # Fly.io machine id when deployed there, otherwise random
    return os.environ.get("FLY_ALLOC_ID", str(uuid.uuid4()))


def _lock_record(job_name: str, instance_id: str, lock_duration_minutes: int) -> dict:
    now = datetime.now(timezone.utc)
    return {
        "job_name": job_name,
        "instance_id": instance_id,
        "locked_at": now.isoformat(),
        "expires_at": (now + timedelta(minutes=lock_duration_minutes)).isoformat(),
        "status": "active",
    }


def acquire_job_lock(
    client: Client, job_name: str, instance_id: str, lock_duration_minutes: int = 120
) -> bool:
    """Insert the lock row; on conflict clear an expired lock once and retry."""
    try:
        result = (
            client.table(LOCK_TABLE)
            .insert(_lock_record(job_name, instance_id, lock_duration_minutes))
            .execute()
        )
        return bool(result.data)
    except Exception as e:
        logger.debug(f"Lock insert for {job_name} rejected: {e}")

    try:
        now = datetime.now(timezone.utc).isoformat()
        client.table(LOCK_TABLE).delete().eq("job_name", job_name).lt("expires_at", now).execute()
        result = (
            client.table(LOCK_TABLE)
            .insert(_lock_record(job_name, instance_id, lock_duration_minutes))
            .execute()
        )
        return bool(result.data)
    except Exception as e:
        logger.debug(f"Lock for {job_name} held elsewhere: {e}")
        return False


def release_job_lock(client: Client, job_name: str, instance_id: str) -> bool:
    try:
        client.table(LOCK_TABLE).delete().eq("job_name", job_name).eq(
            "instance_id", instance_id
        ).execute()
        return True
    except Exception as e:
        logger.warning(f"⚠️ Failed to release lock {job_name} for {instance_id}: {e}")
        return False


# ==============================================================================
# SCHEDULER CLASS
# ==============================================================================


class SyncScheduler:
    """Runs the full price sync once a day on whichever instance takes the lock."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[Client] = None):
        self.settings = settings or Settings.from_env()
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.is_running = False
        self.instance_id = _get_instance_id()
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    async def run_daily_sync(self):
        """Execute one full sync under the distributed lock."""
        if self.is_running:
            logger.warning("Daily sync already running locally, skipping execution")
            return None

        if not acquire_job_lock(self.client, JOB_NAME, self.instance_id):
            logger.info("🔒 Another instance is already running the daily sync, skipping")
            return None

        logger.info(f"🔑 Acquired job lock for instance {self.instance_id}")
        self.is_running = True
        try:
            stats = await run_sync(self.settings, client=self.client)
            return stats
        except CatalogError as e:
            logger.error(f"💥 Daily sync aborted: {e}")
        except Exception as e:
            logger.exception(f"💥 Critical error in daily sync: {e}")
        finally:
            self.is_running = False
            release_job_lock(self.client, JOB_NAME, self.instance_id)
            logger.info(f"🔓 Released job lock for instance {self.instance_id}")
        return None

    def start(self):
        hour = self.settings.sync_cron_hour
        self.scheduler.add_job(
            self.run_daily_sync,
            CronTrigger(hour=hour, minute=0),
            id=JOB_NAME,
            name="Daily Price Sync Job",
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info(f"📅 Price sync scheduler started - runs daily at {hour:02d}:00 UTC")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("⏹️  Price sync scheduler stopped")


# ==============================================================================
# GLOBAL INSTANCE AND PUBLIC API
# ==============================================================================

_scheduler: Optional[SyncScheduler] = None


def start_sync_cronjob():
    global _scheduler
    if _scheduler is None:
        _scheduler = SyncScheduler()
    _scheduler.start()


def stop_sync_cronjob():
    if _scheduler is not None:
        _scheduler.stop()
