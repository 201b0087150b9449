"""Exercise template catalog keyed by session type and equipment tier.

Each template specifies:
- warm-up, main work, and cooldown blocks
- the equipment tier it needs
- baseline duration (minutes) and training load (TSS)

Lookups prefer templates the athlete has not seen recently and fall
back to any compatible template; selection randomness comes from the
caller's ``random.Random`` so plans are reproducible under a fixed seed.
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Protocol

from coach.services.content import CooldownItem, MainExercise, WarmupItem, round_half_up
from coach.services.session_types import SessionType

FULL_GYM = "full-gym"
HOME_GYM = "home-gym"
MINIMAL = "minimal"
BODYWEIGHT = "bodyweight-only"


@dataclass(frozen=True)
class Template:
    id: str
    session_type: SessionType
    label: str
    equipment: str
    warmup: tuple[WarmupItem, ...]
    main: tuple[MainExercise, ...]
    cooldown: tuple[CooldownItem, ...]
    estimated_duration: int
    estimated_tss: int

    def serves(self, equipment: str) -> bool:
        if self.equipment == BODYWEIGHT:
            return True
        if equipment in (FULL_GYM, HOME_GYM):
            return True
        if equipment in (MINIMAL, BODYWEIGHT):
            return self.equipment in (BODYWEIGHT, MINIMAL)
        return True


class TemplateSource(Protocol):
    def pick(
        self,
        session_type: SessionType | str,
        equipment: str,
        exclude_ids: Iterable[str] = (),
        rng: Optional[random.Random] = None,
    ) -> Optional[Template]: ...


@dataclass(frozen=True)
class ExperienceModifiers:
    sets_multiplier: float
    rest_multiplier: float
    intensity_label: str
    rep_range: Optional[str]  # None keeps the template's reps


EXPERIENCE_MODIFIERS: dict[str, ExperienceModifiers] = {
    "beginner": ExperienceModifiers(0.75, 1.5, "RPE 6", "10-12"),
    "intermediate": ExperienceModifiers(1.0, 1.0, "RPE 7", None),
    "advanced": ExperienceModifiers(1.25, 0.85, "RPE 8", "6-8"),
    "elite": ExperienceModifiers(1.5, 0.75, "RPE 8-9", "4-6"),
}

_REST_SECONDS = re.compile(r"^(\d+)")


def _adjust_rest(rest: str, multiplier: float) -> str:
    match = _REST_SECONDS.match(rest)
    if not match:
        return rest
    return f"{round_half_up(int(match.group(1)) * multiplier)}s"


def apply_experience_modifiers(main: Iterable[MainExercise], experience_level: str) -> tuple[MainExercise, ...]:
    mods = EXPERIENCE_MODIFIERS.get(experience_level, EXPERIENCE_MODIFIERS["intermediate"])
    return tuple(
        replace(
            ex,
            sets=max(2, round_half_up(ex.sets * mods.sets_multiplier)),
            reps=mods.rep_range or ex.reps,
            rest=_adjust_rest(ex.rest, mods.rest_multiplier),
            intensity=mods.intensity_label,
        )
        for ex in main
    )


def scale_volume(main: Iterable[MainExercise], multiplier: float) -> tuple[MainExercise, ...]:
    return tuple(replace(ex, sets=max(1, round_half_up(ex.sets * multiplier))) for ex in main)


# ── Shared blocks ────────────────────────────────────────────────────────

def _w(*rows: tuple[str, str, str]) -> tuple[WarmupItem, ...]:
    return tuple(WarmupItem(*r) for r in rows)


def _c(*rows: tuple[str, str]) -> tuple[CooldownItem, ...]:
    return tuple(CooldownItem(*r) for r in rows)


def _m(*rows: tuple) -> tuple[MainExercise, ...]:
    return tuple(MainExercise(*r) for r in rows)


UPPER_WARMUP = _w(
    ("Arm Circles", "30 sec each direction", "Progressive range"),
    ("Band Pull-Aparts", "15 reps", "Rear delt activation"),
    ("Scapular Push-ups", "10 reps", "Serratus activation"),
)
LOWER_WARMUP = _w(
    ("Foam Roll - Quads & Glutes", "2 min", "Focus on tight spots"),
    ("Hip 90/90 Transitions", "8 each side", "Hip mobility"),
    ("Glute Bridges", "12 reps", "Glute activation"),
)
FULL_WARMUP = _w(
    ("Foam Roll - Full Body", "3 min", "Focus on tight areas"),
    ("Bodyweight Squats", "10 reps", "Hip and ankle mobility"),
    ("Cat-Cow", "8 reps", "Spinal mobility"),
)
ENDURANCE_WARMUP = _w(
    ("Easy Walk/Jog", "5 min", "Gradually increase pace"),
    ("Leg Swings", "10 each side", "Front-to-back and lateral"),
)
HIIT_WARMUP = _w(
    ("Jumping Jacks", "1 min", "Easy pace"),
    ("High Knees", "30 sec", "Build tempo"),
    ("Inchworms", "5 reps", "Pause at push-up position"),
)
RECOVERY_WARMUP = _w(("Easy Walk", "3 min", "Get blood flowing"))

STRENGTH_COOLDOWN = _c(("Static Stretch - Worked Muscles", "3 min"), ("Deep Breathing", "2 min"))
ENDURANCE_COOLDOWN = _c(("Easy Walk", "3 min"), ("Static Stretch - Lower Body", "3 min"))
HIIT_COOLDOWN = _c(("Walk It Out", "2 min"), ("Full Body Static Stretch", "4 min"))
RECOVERY_COOLDOWN = _c(("Diaphragmatic Breathing", "3 min"),)


# ── Template table ───────────────────────────────────────────────────────

TEMPLATES: dict[str, Template] = {}


def _reg(t: Template) -> Template:
    TEMPLATES[t.id] = t
    return t


_reg(Template(
    id="upper-push-gym-1", session_type=SessionType.STRENGTH_PUSH,
    label="Push Strength A - Horizontal Press", equipment=FULL_GYM, warmup=UPPER_WARMUP,
    main=_m(
        ("Barbell Bench Press", 4, "8-10", "90s", "RPE 7"),
        ("Incline Dumbbell Press", 3, "10-12", "75s", "RPE 7"),
        ("Overhead Press", 3, "8-10", "90s", "RPE 7"),
        ("Tricep Pushdowns", 3, "12-15", "60s", "RPE 7"),
    ),
    cooldown=STRENGTH_COOLDOWN, estimated_duration=50, estimated_tss=65,
))
_reg(Template(
    id="upper-push-bw-1", session_type=SessionType.STRENGTH_PUSH,
    label="Push Strength - Bodyweight", equipment=BODYWEIGHT, warmup=UPPER_WARMUP,
    main=_m(
        ("Push-ups", 4, "12-15", "60s", "RPE 7", "Full range of motion"),
        ("Pike Push-ups", 3, "8-10", "75s", "RPE 7"),
        ("Bench Dips", 3, "12-15", "60s", "RPE 7"),
    ),
    cooldown=STRENGTH_COOLDOWN, estimated_duration=45, estimated_tss=55,
))
_reg(Template(
    id="upper-pull-gym-1", session_type=SessionType.STRENGTH_PULL,
    label="Pull Strength A - Horizontal Pull", equipment=FULL_GYM, warmup=UPPER_WARMUP,
    main=_m(
        ("Barbell Rows", 4, "8-10", "90s", "RPE 7"),
        ("Lat Pulldowns", 3, "10-12", "75s", "RPE 7"),
        ("Face Pulls", 3, "15-20", "45s", "RPE 6"),
        ("Dumbbell Curls", 3, "10-12", "60s", "RPE 7"),
    ),
    cooldown=STRENGTH_COOLDOWN, estimated_duration=50, estimated_tss=60,
))
_reg(Template(
    id="upper-pull-bw-1", session_type=SessionType.STRENGTH_PULL,
    label="Pull Strength - Bodyweight", equipment=BODYWEIGHT, warmup=UPPER_WARMUP,
    main=_m(
        ("Inverted Rows", 4, "10-12", "60s", "RPE 7", "Adjust angle for difficulty"),
        ("Chin-up Negatives", 3, "5-6", "90s", "RPE 8", "5 sec lowering phase"),
        ("Superman Hold", 3, "30 sec", "45s", "RPE 6"),
    ),
    cooldown=STRENGTH_COOLDOWN, estimated_duration=45, estimated_tss=50,
))
_reg(Template(
    id="upper-gym-1", session_type=SessionType.STRENGTH_UPPER,
    label="Upper Body A - Balanced Push/Pull", equipment=FULL_GYM, warmup=UPPER_WARMUP,
    main=_m(
        ("Barbell Bench Press", 4, "8-10", "90s", "RPE 7"),
        ("Barbell Rows", 4, "8-10", "90s", "RPE 7"),
        ("Overhead Press", 3, "8-10", "75s", "RPE 7"),
        ("Lat Pulldowns", 3, "10-12", "60s", "RPE 7"),
    ),
    cooldown=STRENGTH_COOLDOWN, estimated_duration=55, estimated_tss=70,
))
_reg(Template(
    id="upper-gym-2", session_type=SessionType.STRENGTH_UPPER,
    label="Upper Body B - Volume Focus", equipment=FULL_GYM, warmup=UPPER_WARMUP,
    main=_m(
        ("Incline Dumbbell Press", 4, "10-12", "75s", "RPE 7"),
        ("Seated Cable Rows", 4, "10-12", "75s", "RPE 7"),
        ("Lateral Raises", 3, "12-15", "45s", "RPE 7"),
        ("Tricep Pushdowns", 3, "12-15", "45s", "RPE 6"),
    ),
    cooldown=STRENGTH_COOLDOWN, estimated_duration=55, estimated_tss=68,
))
_reg(Template(
    id="upper-bw-1", session_type=SessionType.STRENGTH_UPPER,
    label="Upper Body - Bodyweight", equipment=BODYWEIGHT, warmup=UPPER_WARMUP,
    main=_m(
        ("Push-ups", 4, "12-15", "60s", "RPE 7"),
        ("Inverted Rows", 4, "10-12", "60s", "RPE 7"),
        ("Pike Push-ups", 3, "8-10", "75s", "RPE 7"),
        ("Plank Hold", 3, "45 sec", "45s", "RPE 6"),
    ),
    cooldown=STRENGTH_COOLDOWN, estimated_duration=45, estimated_tss=55,
))
_reg(Template(
    id="lower-gym-1", session_type=SessionType.STRENGTH_LOWER,
    label="Lower Body A - Squat Emphasis", equipment=FULL_GYM, warmup=LOWER_WARMUP,
    main=_m(
        ("Back Squat", 4, "6-8", "120s", "RPE 8"),
        ("Romanian Deadlift", 3, "8-10", "90s", "RPE 7"),
        ("Walking Lunges", 3, "10 each side", "75s", "RPE 7"),
        ("Standing Calf Raises", 3, "12-15", "45s", "RPE 7"),
    ),
    cooldown=STRENGTH_COOLDOWN, estimated_duration=55, estimated_tss=75,
))
_reg(Template(
    id="lower-gym-2", session_type=SessionType.STRENGTH_LOWER,
    label="Lower Body B - Hinge Emphasis", equipment=FULL_GYM, warmup=LOWER_WARMUP,
    main=_m(
        ("Trap Bar Deadlift", 4, "5-6", "150s", "RPE 8"),
        ("Bulgarian Split Squat", 3, "8-10 each", "90s", "RPE 7"),
        ("Hip Thrust", 3, "10-12", "75s", "RPE 7"),
        ("Leg Curl", 3, "12-15", "60s", "RPE 7"),
    ),
    cooldown=STRENGTH_COOLDOWN, estimated_duration=55, estimated_tss=72,
))
_reg(Template(
    id="lower-bw-1", session_type=SessionType.STRENGTH_LOWER,
    label="Lower Body - Bodyweight", equipment=BODYWEIGHT, warmup=LOWER_WARMUP,
    main=_m(
        ("Jump Squats", 4, "12", "60s", "RPE 7"),
        ("Reverse Lunges", 3, "10 each side", "60s", "RPE 7"),
        ("Single-Leg Glute Bridge", 3, "12 each side", "45s", "RPE 7"),
        ("Wall Sit", 3, "45 sec", "60s", "RPE 7"),
    ),
    cooldown=STRENGTH_COOLDOWN, estimated_duration=45, estimated_tss=55,
))
_reg(Template(
    id="full-gym-1", session_type=SessionType.STRENGTH_FULL,
    label="Full Body A - Compound Focus", equipment=FULL_GYM, warmup=FULL_WARMUP,
    main=_m(
        ("Deadlift", 4, "5-6", "150s", "RPE 8"),
        ("Dumbbell Bench Press", 3, "8-10", "90s", "RPE 7"),
        ("Goblet Squat", 3, "10-12", "75s", "RPE 7"),
        ("Pull-ups", 3, "6-8", "90s", "RPE 7"),
    ),
    cooldown=STRENGTH_COOLDOWN, estimated_duration=55, estimated_tss=75,
))
_reg(Template(
    id="full-gym-2", session_type=SessionType.STRENGTH_FULL,
    label="Full Body B - Athletic", equipment=FULL_GYM, warmup=FULL_WARMUP,
    main=_m(
        ("Front Squat", 4, "6-8", "120s", "RPE 7"),
        ("Single-Arm Dumbbell Row", 3, "10 each", "60s", "RPE 7"),
        ("Push Press", 3, "6-8", "90s", "RPE 7"),
        ("Farmer's Carry", 3, "40 m", "60s", "RPE 7"),
    ),
    cooldown=STRENGTH_COOLDOWN, estimated_duration=50, estimated_tss=70,
))
_reg(Template(
    id="full-bw-1", session_type=SessionType.STRENGTH_FULL,
    label="Full Body - Bodyweight", equipment=BODYWEIGHT, warmup=FULL_WARMUP,
    main=_m(
        ("Push-ups", 4, "12-15", "60s", "RPE 7"),
        ("Bodyweight Squats", 4, "20", "60s", "RPE 7"),
        ("Inverted Rows", 3, "10-12", "60s", "RPE 7"),
        ("Reverse Lunges", 3, "10 each side", "60s", "RPE 7"),
    ),
    cooldown=STRENGTH_COOLDOWN, estimated_duration=45, estimated_tss=55,
))
_reg(Template(
    id="zone2-run-1", session_type=SessionType.ENDURANCE_ZONE2,
    label="Zone 2 Run - Steady State", equipment=BODYWEIGHT, warmup=ENDURANCE_WARMUP,
    main=_m(("Zone 2 Run", 1, "30 min", "-", "Zone 2 (conversational pace)", "Hold a conversation the whole way."),),
    cooldown=ENDURANCE_COOLDOWN, estimated_duration=45, estimated_tss=45,
))
_reg(Template(
    id="zone2-run-2", session_type=SessionType.ENDURANCE_ZONE2,
    label="Zone 2 Easy Aerobic Run", equipment=BODYWEIGHT, warmup=ENDURANCE_WARMUP,
    main=_m(("Easy Aerobic Run", 1, "35 min", "-", "Zone 2 (nasal breathing pace)"),),
    cooldown=ENDURANCE_COOLDOWN, estimated_duration=50, estimated_tss=48,
))
_reg(Template(
    id="zone2-cycle-1", session_type=SessionType.ENDURANCE_ZONE2,
    label="Zone 2 Cycle - Base Building", equipment=FULL_GYM, warmup=ENDURANCE_WARMUP,
    main=_m(("Stationary Bike - Zone 2", 1, "35 min", "-", "Zone 2 (60-70% max HR)", "Cadence 80-90 RPM."),),
    cooldown=ENDURANCE_COOLDOWN, estimated_duration=50, estimated_tss=50,
))
_reg(Template(
    id="tempo-run-1", session_type=SessionType.ENDURANCE_TEMPO,
    label="Tempo Run - Sustained Effort", equipment=BODYWEIGHT, warmup=ENDURANCE_WARMUP,
    main=_m(("Tempo Run", 1, "25 min", "-", "Zone 3 (comfortably hard)"),),
    cooldown=ENDURANCE_COOLDOWN, estimated_duration=40, estimated_tss=55,
))
_reg(Template(
    id="interval-run-1", session_type=SessionType.ENDURANCE_INTERVALS,
    label="Run Intervals - 4x4", equipment=BODYWEIGHT, warmup=ENDURANCE_WARMUP,
    main=_m(("4 min Hard Run", 4, "4 min", "3 min jog", "Zone 4 (85-90% max HR)"),),
    cooldown=ENDURANCE_COOLDOWN, estimated_duration=45, estimated_tss=65,
))
_reg(Template(
    id="interval-cycle-1", session_type=SessionType.ENDURANCE_INTERVALS,
    label="Bike Intervals - Tabata Style", equipment=FULL_GYM, warmup=ENDURANCE_WARMUP,
    main=_m(
        ("Bike Sprint Intervals", 8, "30 sec all-out", "30 sec easy spin", "Zone 5 (90-95% max HR)"),
        ("Moderate Steady Ride", 1, "10 min", "-", "Zone 3"),
    ),
    cooldown=ENDURANCE_COOLDOWN, estimated_duration=35, estimated_tss=60,
))
_reg(Template(
    id="hiit-gym-1", session_type=SessionType.HIIT,
    label="HIIT Circuit A - Full Gym", equipment=FULL_GYM, warmup=HIIT_WARMUP,
    main=_m(
        ("Kettlebell Swings", 4, "40 sec", "20s", "RPE 8"),
        ("Box Jumps", 4, "40 sec", "20s", "RPE 8"),
        ("Battle Ropes", 4, "40 sec", "20s", "RPE 8"),
        ("Rowing Sprints", 4, "40 sec", "20s", "RPE 8"),
    ),
    cooldown=HIIT_COOLDOWN, estimated_duration=35, estimated_tss=70,
))
_reg(Template(
    id="hiit-bw-1", session_type=SessionType.HIIT,
    label="HIIT Circuit - Bodyweight", equipment=BODYWEIGHT, warmup=HIIT_WARMUP,
    main=_m(
        ("Burpees", 4, "40 sec", "20s", "RPE 8"),
        ("Mountain Climbers", 4, "40 sec", "20s", "RPE 8"),
        ("Jump Squats", 4, "40 sec", "20s", "RPE 8"),
        ("High Knees", 4, "40 sec", "20s", "RPE 8"),
    ),
    cooldown=HIIT_COOLDOWN, estimated_duration=30, estimated_tss=65,
))
_reg(Template(
    id="mobility-1", session_type=SessionType.MOBILITY_RECOVERY,
    label="Mobility Flow A - Full Body", equipment=BODYWEIGHT, warmup=RECOVERY_WARMUP,
    main=_m(
        ("Foam Roll - Full Body", 1, "8 min", "-", "Low"),
        ("Hip 90/90 Stretch", 2, "45 sec each side", "-", "Low"),
        ("World's Greatest Stretch", 2, "5 each side", "-", "Low"),
        ("Deep Squat Hold", 3, "30 sec", "-", "Low"),
    ),
    cooldown=RECOVERY_COOLDOWN, estimated_duration=30, estimated_tss=15,
))
_reg(Template(
    id="mobility-2", session_type=SessionType.MOBILITY_RECOVERY,
    label="Mobility Flow B - Lower Body Focus", equipment=BODYWEIGHT, warmup=RECOVERY_WARMUP,
    main=_m(
        ("Couch Stretch", 2, "45 sec each side", "-", "Low"),
        ("Cossack Squats", 2, "8 each side", "-", "Low"),
        ("Ankle Mobility Circles", 2, "10 each direction", "-", "Low"),
    ),
    cooldown=RECOVERY_COOLDOWN, estimated_duration=30, estimated_tss=12,
))
_reg(Template(
    id="active-recovery-1", session_type=SessionType.ACTIVE_RECOVERY,
    label="Active Recovery - Light Movement", equipment=BODYWEIGHT, warmup=RECOVERY_WARMUP,
    main=_m(
        ("Walking", 1, "15 min", "-", "Very Low", "Conversational pace, outdoors if possible"),
        ("Foam Roll - Lower Body", 1, "5 min", "-", "Low"),
        ("Child's Pose", 2, "30 sec", "-", "Low"),
    ),
    cooldown=RECOVERY_COOLDOWN, estimated_duration=30, estimated_tss=10,
))


class TemplateCatalog:
    """Lookup over an in-memory template table."""

    def __init__(self, templates: Optional[Iterable[Template]] = None):
        self._templates = list(templates) if templates is not None else list(TEMPLATES.values())

    def candidates(self, session_type: SessionType | str, equipment: str) -> list[Template]:
        wanted = SessionType(session_type)
        return [t for t in self._templates if t.session_type is wanted and t.serves(equipment)]

    def pick(
        self,
        session_type: SessionType | str,
        equipment: str,
        exclude_ids: Iterable[str] = (),
        rng: Optional[random.Random] = None,
    ) -> Optional[Template]:
        rng = rng or random.Random()
        candidates = self.candidates(session_type, equipment)
        excluded = set(exclude_ids)
        fresh = [t for t in candidates if t.id not in excluded]
        if fresh:
            return rng.choice(fresh)
        if candidates:
            return rng.choice(candidates)
        return None


default_catalog = TemplateCatalog()
