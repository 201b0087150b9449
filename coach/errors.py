from __future__ import annotations


class CoachError(Exception):
    """Base class for scheduler domain errors."""


class NotFoundError(CoachError, LookupError):
    """A caller named a record that does not exist."""

    entity = "record"

    def __init__(self, identifier: object):
        self.identifier = identifier
        super().__init__(f"{self.entity} {identifier} not found")


class AthleteNotFound(NotFoundError):
    entity = "Athlete profile"


class PlanNotFound(NotFoundError):
    entity = "Workout plan"


class SessionNotFound(NotFoundError):
    entity = "Workout session"


class InvalidTransition(CoachError, ValueError):
    """Session status may only move forward from SCHEDULED."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"cannot move session from {current} to {requested}")


class EscalationNotFound(NotFoundError):
    entity = "Escalation event"
