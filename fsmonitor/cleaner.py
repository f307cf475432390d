from apscheduler.schedulers.background import BackgroundScheduler

from fsmonitor.config import CLEANER_INTERVAL_HOURS, DATA_LIFESPAN_DAYS


def start_cleaner(registry, logger, days=DATA_LIFESPAN_DAYS, interval_hours=CLEANER_INTERVAL_HOURS):
    scheduler = BackgroundScheduler(timezone="UTC")

    def _job():
        try:
            removed = registry.clear_older_than(days)
            if removed:
                logger.info("event=cleaner_removed days=%s count=%s", days, removed)
        except Exception as e:
            # keep the scheduler alive; the next run retries
            logger.error("Unexpected error in cleanup job: %s", str(e))

    scheduler.add_job(_job, "interval", hours=interval_hours, id="retention_sweep")
    scheduler.start()
    return scheduler
