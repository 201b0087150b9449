"""Tests for week-to-week progression rules."""

from __future__ import annotations

from coach.services.progression import (
    DELOAD_MULTIPLIER,
    OVERLOAD_MULTIPLIER,
    REDUCED_MULTIPLIER,
    ProgressionSignals,
    block_type_for_week,
    clamp_weekly_load,
    distribute_load,
    plan_name,
    select_volume_multiplier,
)
from coach.services.session_types import BlockType


def test_block_type_cycle():
    expected = {
        1: BlockType.BASE,
        3: BlockType.BASE,
        4: BlockType.DELOAD,
        5: BlockType.BUILD,
        7: BlockType.BUILD,
        8: BlockType.DELOAD,
        9: BlockType.BASE,
        12: BlockType.DELOAD,
        13: BlockType.BASE,
    }
    for week, block in expected.items():
        assert block_type_for_week(week) is block, week


def test_plan_names():
    assert plan_name(1, BlockType.BASE) == "Week 1 — Foundation Phase"
    assert plan_name(4, BlockType.DELOAD) == "Week 4 — Deload"
    assert plan_name(6, BlockType.BUILD) == "Week 6 — Build Phase"
    assert plan_name(10, BlockType.BASE) == "Week 10 — Base Phase"


def test_deload_block_wins():
    signals = ProgressionSignals(BlockType.DELOAD, adherence_rate=1.0, average_energy=9)
    assert select_volume_multiplier(signals) == DELOAD_MULTIPLIER


def test_fatigue_days_force_deload():
    signals = ProgressionSignals(BlockType.BUILD, adherence_rate=0.9, average_energy=8, high_fatigue_days=5)
    assert select_volume_multiplier(signals) == DELOAD_MULTIPLIER


def test_two_low_adherence_weeks_force_deload():
    signals = ProgressionSignals(BlockType.BASE, adherence_rate=0.7, recent_adherence_rates=(0.4, 0.3, 0.9))
    assert signals.two_weeks_low_adherence is True
    assert select_volume_multiplier(signals) == DELOAD_MULTIPLIER


def test_single_low_week_is_not_a_trend():
    assert ProgressionSignals(BlockType.BASE, recent_adherence_rates=(0.4,)).two_weeks_low_adherence is False


def test_overload_needs_adherence_and_energy():
    assert select_volume_multiplier(ProgressionSignals(BlockType.BASE, 0.85, 6.5)) == OVERLOAD_MULTIPLIER
    assert select_volume_multiplier(ProgressionSignals(BlockType.BASE, 0.85, 6.0)) == 1.0
    assert select_volume_multiplier(ProgressionSignals(BlockType.BASE, 0.80, 8.0)) == 1.0


def test_low_adherence_reduces():
    assert select_volume_multiplier(ProgressionSignals(BlockType.BUILD, 0.5)) == REDUCED_MULTIPLIER
    assert select_volume_multiplier(ProgressionSignals(BlockType.BUILD, 0.6)) == 1.0


def test_clamp_caps_increase_and_decrease():
    assert clamp_weekly_load(200, 100) == 110
    assert clamp_weekly_load(30, 100) == 60
    assert clamp_weekly_load(95, 100) == 95


def test_clamp_without_history_is_unbounded():
    assert clamp_weekly_load(300, 0) == 300
    assert clamp_weekly_load(100.5, 0) == 101


def test_clamp_rounding_stays_inside_band():
    # upper bound 104.5 would round up to 105
    assert clamp_weekly_load(120, 95) == 104
    assert clamp_weekly_load(10, 101) == 61


def test_distribute_load_exact_sum():
    assert distribute_load([50, 50, 20], 60) == [25, 25, 10]
    loads = distribute_load([10, 10, 10], 20)
    assert sum(loads) == 20
    assert max(loads) - min(loads) <= 1


def test_distribute_load_from_zero():
    assert distribute_load([0, 0, 0], 7) == [3, 2, 2]


def test_distribute_load_unchanged_when_on_target():
    assert distribute_load([30, 40], 70) == [30, 40]
