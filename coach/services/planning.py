"""Weekly session planning: goal mix, day spacing, and session content.

Pure functions only; persistence lives in ``coach.services.plans``.
"""

from __future__ import annotations

import datetime as dt
import random
from dataclasses import dataclass
from typing import Iterable, Optional

from coach.services.content import CooldownItem, MainExercise, SessionContent, WarmupItem, round_half_up
from coach.services.session_types import SessionType, session_title
from coach.services.template_catalog import TemplateSource, apply_experience_modifiers, default_catalog, scale_volume

MIN_DAYS = 2
MAX_DAYS = 6

GOAL_RATIOS: dict[str, dict[str, float]] = {
    "build-muscle": {"strength": 0.70, "endurance": 0.30, "hiit": 0.00, "mobility": 0.00},
    "lose-fat": {"strength": 0.50, "endurance": 0.30, "hiit": 0.20, "mobility": 0.00},
    "endurance": {"strength": 0.30, "endurance": 0.60, "hiit": 0.00, "mobility": 0.10},
    "recomposition": {"strength": 0.60, "endurance": 0.25, "hiit": 0.15, "mobility": 0.00},
    "well-rounded": {"strength": 0.50, "endurance": 0.30, "hiit": 0.10, "mobility": 0.10},
}
DEFAULT_GOAL = "well-rounded"

STRENGTH_ROTATION: dict[int, tuple[SessionType, ...]] = {
    2: (SessionType.STRENGTH_FULL, SessionType.STRENGTH_FULL),
    3: (SessionType.STRENGTH_FULL, SessionType.STRENGTH_FULL, SessionType.STRENGTH_FULL),
    4: (SessionType.STRENGTH_UPPER, SessionType.STRENGTH_LOWER, SessionType.STRENGTH_FULL, SessionType.STRENGTH_UPPER),
    5: (
        SessionType.STRENGTH_UPPER,
        SessionType.STRENGTH_LOWER,
        SessionType.STRENGTH_FULL,
        SessionType.STRENGTH_PUSH,
        SessionType.STRENGTH_PULL,
    ),
    6: (
        SessionType.STRENGTH_PUSH,
        SessionType.STRENGTH_PULL,
        SessionType.STRENGTH_LOWER,
        SessionType.STRENGTH_FULL,
        SessionType.STRENGTH_UPPER,
        SessionType.STRENGTH_LOWER,
    ),
}

ENDURANCE_ROTATION = (SessionType.ENDURANCE_ZONE2, SessionType.ENDURANCE_TEMPO, SessionType.ENDURANCE_INTERVALS)

FALLBACK_TEMPLATE_ID = "fallback"


@dataclass(frozen=True)
class SessionSpec:
    session_type: SessionType
    title: str


@dataclass(frozen=True)
class DraftSession:
    """A dated session ready to be persisted."""

    scheduled_date: dt.date
    scheduled_order: int
    session_type: SessionType
    title: str
    description: str
    content: SessionContent

    @property
    def prescribed_duration(self) -> int:
        return self.content.estimated_duration

    @property
    def prescribed_tss(self) -> int:
        return self.content.estimated_tss


def clamp_days(training_days: Optional[int]) -> int:
    return min(max(int(training_days or MIN_DAYS), MIN_DAYS), MAX_DAYS)


def build_session_specs(training_days: Optional[int], goal: Optional[str]) -> list[SessionSpec]:
    """Turn a goal and day count into an ordered list of session specs.

    Families fill in priority order strength, endurance, HIIT, mobility; the
    list is padded with Zone 2 when short and cut to the day count when the
    rounded ratios overshoot it.
    """
    days = clamp_days(training_days)
    ratios = GOAL_RATIOS.get(goal or DEFAULT_GOAL, GOAL_RATIOS[DEFAULT_GOAL])

    strength_count = max(1, round_half_up(days * ratios["strength"]))
    endurance_count = max(0, round_half_up(days * ratios["endurance"]))
    hiit_count = max(0, round_half_up(days * ratios["hiit"]))
    mobility_count = max(0, round_half_up(days * ratios["mobility"]))

    types: list[SessionType] = []
    rotation = STRENGTH_ROTATION[days]
    types += [rotation[i % len(rotation)] for i in range(strength_count)]
    types += [
        SessionType.ENDURANCE_ZONE2 if i == 0 else ENDURANCE_ROTATION[i % len(ENDURANCE_ROTATION)]
        for i in range(endurance_count)
    ]
    types += [SessionType.HIIT] * hiit_count
    types += [SessionType.MOBILITY_RECOVERY] * mobility_count

    while len(types) < days:
        types.append(SessionType.ENDURANCE_ZONE2)
    types = types[:days]

    return [SessionSpec(t, session_title(t)) for t in types]


def day_offsets(session_count: int) -> list[int]:
    """Spread sessions from Monday at floor(7/n) day spacing, never past Sunday."""
    if session_count <= 0:
        return []
    gap = 7 // session_count
    return [min(i * gap, 6) for i in range(session_count)]


def fallback_content() -> SessionContent:
    return SessionContent(
        template_id=FALLBACK_TEMPLATE_ID,
        warmup=(WarmupItem("General Warm-up", "5 min", "Light movement"),),
        main=(MainExercise("Bodyweight Circuit", 3, "10-15", "60s", "RPE 6"),),
        cooldown=(CooldownItem("Static Stretch", "5 min"),),
        estimated_duration=30,
        estimated_tss=30,
    )


def build_session_content(
    session_type: SessionType | str,
    equipment: str,
    experience_level: str,
    exclude_ids: Iterable[str] = (),
    volume_multiplier: float = 1.0,
    catalog: Optional[TemplateSource] = None,
    rng: Optional[random.Random] = None,
) -> SessionContent:
    """Pick a template and tailor its main work to the athlete.

    Estimated load follows the change in total sets; duration moves half as much.
    """
    template = (catalog or default_catalog).pick(session_type, equipment, exclude_ids, rng)
    if template is None:
        return fallback_content()

    main = apply_experience_modifiers(template.main, experience_level)
    if volume_multiplier != 1.0:
        main = scale_volume(main, volume_multiplier)

    base_sets = sum(ex.sets for ex in template.main)
    ratio = sum(ex.sets for ex in main) / base_sets if base_sets > 0 else 1.0

    return SessionContent(
        template_id=template.id,
        warmup=template.warmup,
        main=main,
        cooldown=template.cooldown,
        estimated_duration=round_half_up(template.estimated_duration * (0.5 + 0.5 * ratio)),
        estimated_tss=round_half_up(template.estimated_tss * ratio),
    )


def session_description(week_number: int, index: int, title: str, experience_level: str, deload: bool) -> str:
    text = f"Week {week_number}, Session {index} — {title}."
    if week_number == 1:
        cue = (
            "Focus on form and controlled tempo."
            if experience_level == "beginner"
            else "Push with intent. Controlled reps."
        )
        text = f"{text} {cue}"
    if deload:
        text = f"{text} Deload week: reduced volume and intensity."
    return text


def draft_week(
    specs: list[SessionSpec],
    start: dt.date,
    week_number: int,
    equipment: str,
    experience_level: str,
    exclude_ids: Iterable[str] = (),
    volume_multiplier: float = 1.0,
    deload: bool = False,
    catalog: Optional[TemplateSource] = None,
    rng: Optional[random.Random] = None,
) -> list[DraftSession]:
    """Materialize specs into dated sessions, avoiding templates already in use."""
    used = list(exclude_ids)
    offsets = day_offsets(len(specs))
    drafts: list[DraftSession] = []
    for index, (spec, offset) in enumerate(zip(specs, offsets), start=1):
        content = build_session_content(
            spec.session_type, equipment, experience_level, used, volume_multiplier, catalog, rng
        )
        used.append(content.template_id)
        drafts.append(
            DraftSession(
                scheduled_date=start + dt.timedelta(days=offset),
                scheduled_order=index,
                session_type=spec.session_type,
                title=spec.title,
                description=session_description(week_number, index, spec.title, experience_level, deload),
                content=content,
            )
        )
    return drafts
