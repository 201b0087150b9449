"""Session taxonomy: types, families, statuses, and periodization blocks.

Every component classifies sessions through ``family()`` instead of
inspecting type-name prefixes.
"""

from __future__ import annotations

from enum import Enum

from coach.errors import InvalidTransition


class SessionType(str, Enum):
    STRENGTH_UPPER = "STRENGTH_UPPER"
    STRENGTH_LOWER = "STRENGTH_LOWER"
    STRENGTH_FULL = "STRENGTH_FULL"
    STRENGTH_PUSH = "STRENGTH_PUSH"
    STRENGTH_PULL = "STRENGTH_PULL"
    ENDURANCE_ZONE2 = "ENDURANCE_ZONE2"
    ENDURANCE_TEMPO = "ENDURANCE_TEMPO"
    ENDURANCE_INTERVALS = "ENDURANCE_INTERVALS"
    HIIT = "HIIT"
    MOBILITY_RECOVERY = "MOBILITY_RECOVERY"
    ACTIVE_RECOVERY = "ACTIVE_RECOVERY"
    REST = "REST"


class SessionFamily(str, Enum):
    STRENGTH = "STRENGTH"
    ENDURANCE = "ENDURANCE"
    HIIT = "HIIT"
    MOBILITY = "MOBILITY"


class SessionStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    MISSED = "MISSED"
    SKIPPED = "SKIPPED"


class BlockType(str, Enum):
    BASE = "base"
    BUILD = "build"
    DELOAD = "deload"


_FAMILIES: dict[SessionType, SessionFamily] = {
    SessionType.STRENGTH_UPPER: SessionFamily.STRENGTH,
    SessionType.STRENGTH_LOWER: SessionFamily.STRENGTH,
    SessionType.STRENGTH_FULL: SessionFamily.STRENGTH,
    SessionType.STRENGTH_PUSH: SessionFamily.STRENGTH,
    SessionType.STRENGTH_PULL: SessionFamily.STRENGTH,
    SessionType.ENDURANCE_ZONE2: SessionFamily.ENDURANCE,
    SessionType.ENDURANCE_TEMPO: SessionFamily.ENDURANCE,
    SessionType.ENDURANCE_INTERVALS: SessionFamily.ENDURANCE,
    SessionType.HIIT: SessionFamily.HIIT,
    SessionType.MOBILITY_RECOVERY: SessionFamily.MOBILITY,
    SessionType.ACTIVE_RECOVERY: SessionFamily.MOBILITY,
    SessionType.REST: SessionFamily.MOBILITY,
}

SESSION_TITLES: dict[SessionType, str] = {
    SessionType.STRENGTH_UPPER: "Upper Body Strength",
    SessionType.STRENGTH_LOWER: "Lower Body Strength",
    SessionType.STRENGTH_FULL: "Full Body Strength",
    SessionType.STRENGTH_PUSH: "Push Strength",
    SessionType.STRENGTH_PULL: "Pull Strength",
    SessionType.ENDURANCE_ZONE2: "Zone 2 Cardio",
    SessionType.ENDURANCE_TEMPO: "Tempo Work",
    SessionType.ENDURANCE_INTERVALS: "Interval Training",
    SessionType.HIIT: "HIIT Conditioning",
    SessionType.MOBILITY_RECOVERY: "Mobility & Recovery",
    SessionType.ACTIVE_RECOVERY: "Active Recovery",
    SessionType.REST: "Rest Day",
}


def family(session_type: SessionType | str) -> SessionFamily:
    return _FAMILIES[SessionType(session_type)]


def is_strength(session_type: SessionType | str) -> bool:
    return family(session_type) is SessionFamily.STRENGTH


def is_endurance(session_type: SessionType | str) -> bool:
    return family(session_type) is SessionFamily.ENDURANCE


def session_title(session_type: SessionType | str) -> str:
    return SESSION_TITLES[SessionType(session_type)]


def assert_transition(current: SessionStatus | str, requested: SessionStatus | str) -> None:
    """Only SCHEDULED sessions may change status, and never back to SCHEDULED."""
    current = SessionStatus(current)
    requested = SessionStatus(requested)
    if current is not SessionStatus.SCHEDULED or requested is SessionStatus.SCHEDULED:
        raise InvalidTransition(current.value, requested.value)
