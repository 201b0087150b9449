"""Typed session content: warm-up, main work, cooldown, and the template that produced it.

Sessions persist content as JSON; this module is the only place that
reads or writes that shape.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Optional


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (2.5 -> 3), unlike ``round``."""
    return math.floor(value + 0.5)


@dataclass(frozen=True)
class WarmupItem:
    exercise: str
    duration: str
    notes: str = ""


@dataclass(frozen=True)
class MainExercise:
    exercise: str
    sets: int
    reps: str
    rest: str
    intensity: str
    notes: Optional[str] = None


@dataclass(frozen=True)
class CooldownItem:
    exercise: str
    duration: str


@dataclass(frozen=True)
class SessionContent:
    template_id: str
    warmup: tuple[WarmupItem, ...] = field(default_factory=tuple)
    main: tuple[MainExercise, ...] = field(default_factory=tuple)
    cooldown: tuple[CooldownItem, ...] = field(default_factory=tuple)
    estimated_duration: int = 30
    estimated_tss: int = 30

    @property
    def total_sets(self) -> int:
        return sum(ex.sets for ex in self.main)

    def to_dict(self) -> dict[str, Any]:
        return {
            "template_id": self.template_id,
            "warmup": [vars(w) for w in self.warmup],
            "main": [vars(m) for m in self.main],
            "cooldown": [vars(c) for c in self.cooldown],
            "estimated_duration": self.estimated_duration,
            "estimated_tss": self.estimated_tss,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "SessionContent":
        if not data:
            return cls(template_id="unknown")
        return cls(
            template_id=str(data.get("template_id") or "unknown"),
            warmup=tuple(WarmupItem(**w) for w in data.get("warmup") or []),
            main=tuple(MainExercise(**m) for m in data.get("main") or []),
            cooldown=tuple(CooldownItem(**c) for c in data.get("cooldown") or []),
            estimated_duration=int(data.get("estimated_duration") or 30),
            estimated_tss=int(data.get("estimated_tss") or 30),
        )

    def scale_sets(self, multiplier: float) -> "SessionContent":
        """Scale main-exercise sets (floor 1) and the estimated load with them."""
        return replace(
            self,
            main=tuple(replace(ex, sets=max(1, round_half_up(ex.sets * multiplier))) for ex in self.main),
            estimated_tss=round_half_up(self.estimated_tss * multiplier),
        )

    def with_notes(self, note: str) -> "SessionContent":
        return replace(
            self,
            main=tuple(replace(ex, notes=f"{ex.notes or ''} {note}".strip()) for ex in self.main),
        )

    def with_intensity(self, label: str, note: str) -> "SessionContent":
        return replace(
            self,
            main=tuple(
                replace(ex, intensity=label, notes=f"{ex.notes or ''} {note}".strip()) for ex in self.main
            ),
        )

    def extended(self, minutes: int, load: int) -> "SessionContent":
        return replace(
            self,
            estimated_duration=self.estimated_duration + minutes,
            estimated_tss=self.estimated_tss + load,
        )

    def stretched(self, factor: float) -> "SessionContent":
        return replace(
            self,
            estimated_duration=round_half_up(self.estimated_duration * factor),
            estimated_tss=round_half_up(self.estimated_tss * factor),
        )
