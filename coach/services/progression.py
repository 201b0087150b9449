"""Week-to-week progression: periodization block, volume selection, load safety clamp."""

from __future__ import annotations

from dataclasses import dataclass, field

from coach.services.content import round_half_up
from coach.services.session_types import BlockType

DELOAD_MULTIPLIER = 0.60
OVERLOAD_MULTIPLIER = 1.08
REDUCED_MULTIPLIER = 0.90

MAX_INCREASE = 1.10
MAX_DECREASE = 0.60

HIGH_FATIGUE_SCORE = 70
HIGH_FATIGUE_DAYS = 5


@dataclass(frozen=True)
class ProgressionSignals:
    block_type: BlockType
    adherence_rate: float = 0.0
    average_energy: float = 5.0
    high_fatigue_days: int = 0
    recent_adherence_rates: tuple[float, ...] = field(default_factory=tuple)

    @property
    def two_weeks_low_adherence(self) -> bool:
        return len(self.recent_adherence_rates) >= 2 and all(r < 0.5 for r in self.recent_adherence_rates[:2])


def block_type_for_week(week_number: int) -> BlockType:
    """Every 4th week deloads; weeks 1-4 base, 5-8 build, then the cycle restarts."""
    if week_number % 4 == 0:
        return BlockType.DELOAD
    if week_number <= 4:
        return BlockType.BASE
    if week_number <= 8:
        return BlockType.BUILD
    return BlockType.BASE


def plan_name(week_number: int, block_type: BlockType) -> str:
    if week_number == 1:
        return "Week 1 — Foundation Phase"
    label = {
        BlockType.DELOAD: "Deload",
        BlockType.BUILD: "Build Phase",
        BlockType.BASE: "Base Phase",
    }[block_type]
    return f"Week {week_number} — {label}"


def select_volume_multiplier(signals: ProgressionSignals) -> float:
    if (
        signals.block_type is BlockType.DELOAD
        or signals.high_fatigue_days >= HIGH_FATIGUE_DAYS
        or signals.two_weeks_low_adherence
    ):
        return DELOAD_MULTIPLIER
    if signals.adherence_rate > 0.80 and signals.average_energy > 6:
        return OVERLOAD_MULTIPLIER
    if signals.adherence_rate < 0.60:
        return REDUCED_MULTIPLIER
    return 1.0


def clamp_weekly_load(total: float, previous_total: float) -> int:
    """Keep next week's load within [0.6, 1.1] of the previous week; no bound without history."""
    if previous_total <= 0:
        return round_half_up(total)
    lower = previous_total * MAX_DECREASE
    upper = previous_total * MAX_INCREASE
    clamped = min(max(total, lower), upper)
    # rounding must not step outside the band
    rounded = round_half_up(clamped)
    if rounded > upper:
        rounded = int(upper)
    elif rounded < lower:
        rounded = int(lower) + 1
    return rounded


def distribute_load(loads: list[int], target_total: int) -> list[int]:
    """Rescale per-session loads proportionally so they sum exactly to ``target_total``."""
    current = sum(loads)
    if not loads or current == target_total:
        return list(loads)
    if current <= 0:
        share, extra = divmod(target_total, len(loads))
        return [share + (1 if i < extra else 0) for i in range(len(loads))]
    scaled = [load * target_total / current for load in loads]
    result = [int(v) for v in scaled]
    remainder = target_total - sum(result)
    by_fraction = sorted(range(len(loads)), key=lambda i: scaled[i] - result[i], reverse=True)
    for i in by_fraction[:remainder]:
        result[i] += 1
    return result
