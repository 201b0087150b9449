"""Background scheduler process.

Runs the daily review tick at the top of every hour and clears the
processed-review cache once a day. Start with ``python -m coach.worker``.
"""

from __future__ import annotations

import logging
import signal
import threading
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from coach.config import get_settings
from coach.db import create_schema
from coach.logging_config import setup_logging
from coach.services.daily_review import DailyReview

logger = logging.getLogger(__name__)


def run_tick(review: DailyReview) -> None:
    try:
        review.run_hourly_tick()
    except Exception:
        logger.exception("Hourly review tick failed")


def build_scheduler(review: Optional[DailyReview] = None) -> BackgroundScheduler:
    settings = get_settings()
    review = review or DailyReview()
    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(
        run_tick,
        trigger=CronTrigger(minute=0, timezone="UTC"),
        args=[review],
        id="daily_review_tick",
        name="Daily review hourly tick",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        review.clear_dedup,
        trigger=CronTrigger(hour=settings.dedup_clear_hour_utc, minute=30, timezone="UTC"),
        id="clear_review_cache",
        name="Clear processed reviews cache",
        replace_existing=True,
    )
    return scheduler


def main() -> None:
    settings = get_settings()
    setup_logging(settings.log_level, service="worker")
    if settings.is_dev:
        create_schema()

    scheduler = build_scheduler()
    stop = threading.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, lambda *_: stop.set())

    scheduler.start()
    logger.info("Scheduler started", extra={"ctx_env": settings.app_env, "ctx_workers": settings.review_workers})
    try:
        stop.wait()
    finally:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")


if __name__ == "__main__":
    main()
