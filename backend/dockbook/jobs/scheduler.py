"""
Background jobs (APScheduler).

The only periodic job moves delayed bookings whose slot has passed; it runs
in a worker thread with its own DB session.
"""
import logging

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler

from ..config import settings
from ..database import SessionLocal
from ..services.rescheduler import auto_reschedule_delayed

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler(
    jobstores={"default": MemoryJobStore()},
    executors={"default": ThreadPoolExecutor(2)},
    job_defaults={
        "coalesce": True,  # missed runs collapse into one
        "max_instances": 1,
        "misfire_grace_time": 60,
    },
    timezone=settings.TIMEZONE,
)


def reschedule_delayed_job():
    db = SessionLocal()
    try:
        result = auto_reschedule_delayed(db)
        logger.info(
            f"Job 'reschedule_delayed' completed: {result['rescheduled_count']} moved, "
            f"{len(result['failed_booking_ids'])} failed, skipped={result['skipped']}"
        )
    except Exception as e:
        logger.error(f"Job 'reschedule_delayed' failed: {e}")
    finally:
        db.close()


def start_scheduler():
    if not settings.RESCHEDULER_ENABLED:
        logger.info("Rescheduler disabled (RESCHEDULER_ENABLED=false)")
        return
    if scheduler.running:
        return
    scheduler.add_job(
        reschedule_delayed_job,
        "interval",
        minutes=settings.RESCHEDULER_INTERVAL_MINUTES,
        id="reschedule_delayed",
        name="Reschedule delayed bookings",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(f"Scheduler started: reschedule_delayed every {settings.RESCHEDULER_INTERVAL_MINUTES} min")


def shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
