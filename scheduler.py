import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from cache import AggregateCache
from config import get_settings


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self, cache: AggregateCache) -> None:
        settings = get_settings()
        self.cache = cache
        self.interval_minutes = max(settings.cache_prune_minutes, 1)
        self.scheduler = BackgroundScheduler(timezone="UTC")

    def _prune_cache(self, source: str = "manual") -> int:
        removed = self.cache.prune_expired()
        logger.info(
            f"cache_prune: source={source} removed={removed} remaining={len(self.cache)}"
        )
        return removed

    def start(self) -> None:
        if not self.cache.enabled:
            logger.info("Aggregate cache disabled; prune job not scheduled")
            return

        trigger = IntervalTrigger(minutes=self.interval_minutes)
        self.scheduler.add_job(
            self._prune_cache,
            trigger,
            args=["interval"],
            id="aggregate_cache_prune",
            replace_existing=True,
            misfire_grace_time=300,
        )

        self.scheduler.start()
        logger.info(
            f"Scheduler started with cache prune every {self.interval_minutes} minutes"
        )

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
