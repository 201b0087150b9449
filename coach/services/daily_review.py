"""Daily review loop for every athlete on an active subscription.

The hourly tick reviews each athlete whose local clock sits in the midnight
or morning window. A review runs six steps in order:

1. resolve yesterday's sessions (missed ones go through the adjuster)
2. act on today's readiness, or ask for a check-in in the morning
3. recompute adherence and apply the escalation policy
4. roll the plan over on Sunday or once the active plan has lapsed
5. maybe send a motivational nudge
6. log the outcome

Each step commits on its own and re-checks persisted state before acting,
so a repeated tick or a restart never duplicates a side effect.
The in-process dedup cache only saves work.

At local Monday 09:00 the tick also sends the weekly digest (see
``coach.services.digest``).
"""

from __future__ import annotations

import datetime as dt
import logging
import random
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import dataclass, field
from typing import Callable, Optional

from sqlalchemy import select

from coach.cache_utils import ReviewDedupCache
from coach.config import Settings, get_settings
from coach.db import session_scope
from coach.errors import AthleteNotFound
from coach.models import Athlete, Subscription, WorkoutPlan, WorkoutSession
from coach.services import plan_adjuster
from coach.services.adherence import consecutive_missed, recompute_week, week_counts
from coach.services.digest import DIGEST, is_digest_window, send_weekly_digest
from coach.services.escalation import raise_escalation_if_needed
from coach.services.messaging import Channel, MessageCategory, Notifier, already_sent, sent_count
from coach.services.plans import active_plan, generate_next_week, plan_starting_from
from coach.services.readiness import HIGH_FATIGUE, LOW_SLEEP, metrics_on, readiness_flags
from coach.services.session_types import SessionStatus
from coach.services.template_catalog import TemplateSource
from coach.services.timezones import MIDNIGHT, MORNING, LocalTime, local_time, review_window, utc_now, week_start

logger = logging.getLogger(__name__)

ACTIVE = "ACTIVE"


@dataclass
class ReviewOutcome:
    athlete_id: int
    window: str
    local_date: dt.date
    missed: int = 0
    completed: int = 0
    adjustments: list[str] = field(default_factory=list)
    escalation_level: Optional[int] = None
    rolled_over: bool = False
    messages: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class TickReport:
    scanned: int = 0
    eligible: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    digests: int = 0
    outcomes: list[ReviewOutcome] = field(default_factory=list)


@dataclass(frozen=True)
class _Athlete:
    id: int
    first_name: str
    timezone: Optional[str]
    plan_tier: Optional[str]


class DailyReview:
    def __init__(
        self,
        notifier: Optional[Notifier] = None,
        catalog: Optional[TemplateSource] = None,
        rng: Optional[random.Random] = None,
        dedup: Optional[ReviewDedupCache] = None,
        clock: Callable[[], dt.datetime] = utc_now,
        settings: Optional[Settings] = None,
        seed: object = None,
    ):
        self.settings = settings or get_settings()
        self.notifier = notifier or Notifier()
        self.catalog = catalog
        self.rng = rng
        self.clock = clock
        self.seed = seed
        self.dedup = dedup or ReviewDedupCache(
            ttl_seconds=self.settings.dedup_cache_ttl_hours * 3600,
            max_entries=self.settings.dedup_cache_max_entries,
        )

    # ── Batch ────────────────────────────────────────────────────────────

    def run_hourly_tick(self, now: Optional[dt.datetime] = None) -> TickReport:
        """Review every athlete currently in a review window. Never raises per athlete."""
        now = now or self.clock()
        report = TickReport()
        with session_scope() as s:
            rows = s.execute(
                select(Athlete.id, Athlete.timezone)
                .join(Subscription, Subscription.athlete_id == Athlete.id)
                .where(Subscription.status == ACTIVE)
                .order_by(Athlete.id)
            ).all()
        report.scanned = len(rows)

        due: list[tuple[int, str, str]] = []
        digests: list[tuple[int, dt.date, str]] = []
        for athlete_id, tz_name in rows:
            try:
                lt = local_time(tz_name, now)
            except Exception:
                report.failed += 1
                logger.exception(
                    "Could not resolve local time for athlete, continuing",
                    extra={"ctx_athlete_id": athlete_id, "ctx_timezone": tz_name},
                )
                continue
            if is_digest_window(lt):
                digests.append((athlete_id, lt.date, ReviewDedupCache.key(athlete_id, lt.date_string, DIGEST)))
            window = review_window(lt)
            if window is None:
                continue
            report.eligible += 1
            key = ReviewDedupCache.key(athlete_id, lt.date_string, window)
            if key in self.dedup:
                report.skipped += 1
                continue
            due.append((athlete_id, window, key))

        if due:
            self._run_pool(due, now, report)
        if digests:
            self._send_digests(digests, report)

        if report.eligible or report.digests:
            logger.info(
                "Daily review tick completed",
                extra={
                    "ctx_scanned": report.scanned,
                    "ctx_eligible": report.eligible,
                    "ctx_processed": report.processed,
                    "ctx_skipped": report.skipped,
                    "ctx_failed": report.failed,
                    "ctx_digests": report.digests,
                },
            )
        return report

    def _run_pool(self, due: list[tuple[int, str, str]], now: dt.datetime, report: TickReport) -> None:
        pool = ThreadPoolExecutor(max_workers=max(1, self.settings.review_workers), thread_name_prefix="review")
        try:
            futures = [(pool.submit(self.review_athlete, aid, window, now), aid, window, key) for aid, window, key in due]
            for future, athlete_id, window, key in futures:
                try:
                    outcome = future.result(timeout=self.settings.review_timeout_seconds)
                except FuturesTimeout:
                    report.failed += 1
                    logger.error(
                        "Daily review timed out for athlete, continuing",
                        extra={"ctx_athlete_id": athlete_id, "ctx_window": window},
                    )
                    continue
                except Exception:
                    report.failed += 1
                    logger.exception(
                        "Daily review failed for athlete, continuing",
                        extra={"ctx_athlete_id": athlete_id, "ctx_window": window},
                    )
                    continue
                report.outcomes.append(outcome)
                if outcome.ok:
                    self.dedup.add(key)
                    report.processed += 1
                else:
                    report.failed += 1
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    def _send_digests(self, digests: list[tuple[int, dt.date, str]], report: TickReport) -> None:
        for athlete_id, today, key in digests:
            if key in self.dedup:
                continue
            try:
                message_id = send_weekly_digest(athlete_id, today, self.notifier)
            except Exception:
                logger.exception("Weekly digest failed for athlete, continuing", extra={"ctx_athlete_id": athlete_id})
                continue
            self.dedup.add(key)
            if message_id is not None:
                report.digests += 1

    def clear_dedup(self) -> None:
        size = len(self.dedup)
        self.dedup.clear()
        logger.info("Cleared processed reviews cache", extra={"ctx_entries": size})

    # ── Single athlete ───────────────────────────────────────────────────

    def review_athlete(
        self, athlete_id: int, window: Optional[str] = None, now: Optional[dt.datetime] = None
    ) -> ReviewOutcome:
        started = time.perf_counter()
        now = now or self.clock()
        athlete = self._load(athlete_id)
        lt = local_time(athlete.timezone, now)
        window = window or review_window(lt) or MIDNIGHT
        today = lt.date
        outcome = ReviewOutcome(athlete_id=athlete_id, window=window, local_date=today)

        self._step(outcome, "yesterday", lambda: self._check_yesterday(athlete, today, outcome))
        self._step(outcome, "readiness", lambda: self._check_readiness(athlete, today, window, outcome))
        self._step(outcome, "escalation", lambda: self._check_escalation(athlete, today, outcome))
        self._step(outcome, "rollover", lambda: self._check_rollover(athlete, lt, outcome))
        self._step(outcome, "motivation", lambda: self._maybe_motivate(athlete, today, outcome))

        outcome.duration_ms = round((time.perf_counter() - started) * 1000, 1)
        logger.info(
            "Daily review completed",
            extra={
                "ctx_athlete_id": athlete_id,
                "ctx_window": window,
                "ctx_local_date": today.isoformat(),
                "ctx_missed": outcome.missed,
                "ctx_completed": outcome.completed,
                "ctx_adjustments": outcome.adjustments,
                "ctx_escalation_level": outcome.escalation_level,
                "ctx_rolled_over": outcome.rolled_over,
                "ctx_messages": outcome.messages,
                "ctx_errors": outcome.errors,
                "ctx_duration_ms": outcome.duration_ms,
            },
        )
        return outcome

    def _load(self, athlete_id: int) -> _Athlete:
        with session_scope() as s:
            athlete = s.get(Athlete, athlete_id)
            if not athlete:
                raise AthleteNotFound(athlete_id)
            tier = s.execute(
                select(Subscription.plan_tier).where(Subscription.athlete_id == athlete_id)
            ).scalar_one_or_none()
            return _Athlete(id=athlete.id, first_name=athlete.first_name, timezone=athlete.timezone, plan_tier=tier)

    @staticmethod
    def _step(outcome: ReviewOutcome, name: str, fn: Callable[[], None]) -> None:
        try:
            fn()
        except Exception:
            outcome.errors.append(name)
            logger.exception(
                "Daily review step failed",
                extra={"ctx_athlete_id": outcome.athlete_id, "ctx_step": name, "ctx_window": outcome.window},
            )

    def _notify(
        self,
        athlete: _Athlete,
        category: MessageCategory,
        today: dt.date,
        outcome: ReviewOutcome,
        channel: Channel = Channel.SMS,
        **context,
    ) -> None:
        try:
            message_id = self.notifier.request_once(
                athlete.id, category, channel, today, {"first_name": athlete.first_name, **context}
            )
        except Exception:
            logger.exception(
                "Failed to request message", extra={"ctx_athlete_id": athlete.id, "ctx_category": category.value}
            )
            return
        if message_id is not None:
            outcome.messages.append(category.value)

    # step 1
    def _check_yesterday(self, athlete: _Athlete, today: dt.date, outcome: ReviewOutcome) -> None:
        yesterday = today - dt.timedelta(days=1)
        with session_scope() as s:
            rows = s.execute(
                select(WorkoutSession.id, WorkoutSession.plan_id, WorkoutSession.status, WorkoutSession.title)
                .join(WorkoutPlan, WorkoutSession.plan_id == WorkoutPlan.id)
                .where(WorkoutPlan.athlete_id == athlete.id, WorkoutSession.scheduled_date == yesterday)
                .order_by(WorkoutSession.scheduled_order, WorkoutSession.id)
            ).all()
        missed = [(r.plan_id, r.id) for r in rows if r.status == SessionStatus.SCHEDULED.value]
        completed = [r.title for r in rows if r.status == SessionStatus.COMPLETED.value]
        outcome.missed = len(missed)
        outcome.completed = len(completed)

        for plan_id, session_id in missed:
            try:
                result = plan_adjuster.adjust_missed_session(plan_id, session_id, today, self.catalog, self.rng)
            except Exception:
                logger.exception(
                    "Workout adjustment failed, marking missed",
                    extra={"ctx_athlete_id": athlete.id, "ctx_session_id": session_id},
                )
                outcome.errors.append(f"adjust:{session_id}")
                result = plan_adjuster.mark_session_missed(plan_id, session_id, today, reason="adjustment failed")
            if result is not None:
                outcome.adjustments.append(f"{result.trigger}:{result.adjustment_type}")

        if missed or completed:
            with session_scope() as s:
                recompute_week(s, athlete.id, yesterday, today)
        if missed:
            self._notify(athlete, MessageCategory.WORKOUT_MISSED, today, outcome)
        if completed:
            self._notify(athlete, MessageCategory.WORKOUT_COMPLETED, today, outcome, workout_title=completed[0])

    # step 2
    def _check_readiness(self, athlete: _Athlete, today: dt.date, window: str, outcome: ReviewOutcome) -> None:
        with session_scope() as s:
            metrics = metrics_on(s, athlete.id, today)
            flags = readiness_flags(metrics)
            plan = active_plan(s, athlete.id)
            plan_id = plan.id if plan else None
            data = {
                "perceived_energy": metrics[0].perceived_energy,
                "perceived_soreness": metrics[0].perceived_soreness,
                "fatigue_score": metrics[0].fatigue_score,
                "sleep_quality": metrics[0].sleep_quality,
                "sleep_duration_min": metrics[0].sleep_duration_min,
                "sleep_score": metrics[0].sleep_score,
            } if metrics else {}
            fatigue_done = plan_id is not None and plan_adjuster.triggered_on(s, athlete.id, plan_adjuster.HIGH_FATIGUE, today)
            sleep_done = plan_id is not None and plan_adjuster.triggered_on(s, athlete.id, plan_adjuster.LOW_SLEEP, today)

        if not metrics:
            if window == MORNING:
                self._notify(
                    athlete,
                    MessageCategory.CHECK_IN,
                    today,
                    outcome,
                    check_in_link=f"{self.settings.frontend_url}/dashboard/checkin",
                )
            return

        if plan_id is not None:
            if HIGH_FATIGUE in flags and not fatigue_done:
                result = plan_adjuster.adjust_high_fatigue(plan_id, today, data, self.catalog, self.rng)
                if result is not None:
                    outcome.adjustments.append(f"{result.trigger}:{result.adjustment_type}")
            if LOW_SLEEP in flags and not sleep_done:
                result = plan_adjuster.adjust_low_sleep(plan_id, today, data, self.catalog, self.rng)
                if result is not None:
                    outcome.adjustments.append(f"{result.trigger}:{result.adjustment_type}")

        if flags:
            self._notify(athlete, MessageCategory.RECOVERY_TIP, today, outcome, flags=flags)

    # step 3
    def _check_escalation(self, athlete: _Athlete, today: dt.date, outcome: ReviewOutcome) -> None:
        with session_scope() as s:
            recompute_week(s, athlete.id, today, today)
            streak = consecutive_missed(s, athlete.id, today)
            adherence = week_counts(s, athlete.id, week_start(today)).adherence_rate

        escalation = raise_escalation_if_needed(
            athlete.id,
            today,
            self.notifier,
            {
                "first_name": athlete.first_name,
                "adherence_rate": round(adherence, 2),
                "booking_link": f"{self.settings.frontend_url}/book-consultation",
            },
        )
        if escalation is not None:
            outcome.escalation_level = escalation.level
            if escalation.message_log_id is not None:
                outcome.messages.append(MessageCategory.ESCALATION.value)
        elif streak == 2:
            self._notify(athlete, MessageCategory.WORKOUT_MISSED, today, outcome, concern=True)

    # step 4
    def _check_rollover(self, athlete: _Athlete, lt: LocalTime, outcome: ReviewOutcome) -> None:
        today = lt.date
        with session_scope() as s:
            plan = active_plan(s, athlete.id)
            if plan is None:
                return
            lapsed = plan.end_date < today
            if not (lt.is_sunday or lapsed):
                return
            target = today + dt.timedelta(days=1) if lt.is_sunday else week_start(today)
            if plan_starting_from(s, athlete.id, target) is not None:
                return

        result = generate_next_week(athlete.id, today=today, start=target, rng=self.rng, catalog=self.catalog)
        outcome.rolled_over = True
        logger.info(
            "Plan rolled over",
            extra={"ctx_athlete_id": athlete.id, "ctx_plan_id": result.plan_id, "ctx_start": target.isoformat()},
        )
        self._notify(athlete, MessageCategory.SYSTEM, today, outcome, event="plan_ready")

    # step 5
    def _maybe_motivate(self, athlete: _Athlete, today: dt.date, outcome: ReviewOutcome) -> None:
        if not athlete.plan_tier:
            return
        # one draw per athlete and day keeps repeated ticks consistent
        draw = random.Random(f"{self.seed}:{athlete.id}:{today.isoformat()}").random()
        if draw >= self.settings.motivation_probability:
            return
        with session_scope() as s:
            if sent_count(s, athlete.id, today) > 1 or already_sent(s, athlete.id, MessageCategory.MOTIVATION, today):
                return
        self._notify(athlete, MessageCategory.MOTIVATION, today, outcome)


def review_athlete(athlete_id: int, window: Optional[str] = None, now: Optional[dt.datetime] = None) -> ReviewOutcome:
    """Review one athlete immediately (admin override); same idempotency as the scheduled path."""
    return DailyReview().review_athlete(athlete_id, window, now)
