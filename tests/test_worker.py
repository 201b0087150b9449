from __future__ import annotations

import logging

from coach import worker


class StubReview:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.ticks = 0
        self.cleared = 0

    def run_hourly_tick(self, now=None):
        self.ticks += 1
        if self.fail:
            raise RuntimeError("database unreachable")

    def clear_dedup(self):
        self.cleared += 1


def test_scheduler_registers_tick_and_cache_jobs():
    review = StubReview()
    scheduler = worker.build_scheduler(review)
    jobs = {job.id: job for job in scheduler.get_jobs()}
    assert set(jobs) == {"daily_review_tick", "clear_review_cache"}
    assert jobs["daily_review_tick"].max_instances == 1
    assert jobs["daily_review_tick"].args == (review,)


def test_run_tick_logs_and_swallows_errors(caplog):
    review = StubReview(fail=True)
    with caplog.at_level(logging.ERROR, logger="coach.worker"):
        worker.run_tick(review)
    assert review.ticks == 1
    assert "Hourly review tick failed" in caplog.text
