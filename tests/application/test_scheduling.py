"""Tests for wordkeeper.application.scheduling."""

from datetime import date

import pytest

from wordkeeper.application.scheduling import (
    SchedulingConfig,
    SchedulingEngine,
    round_half_away,
)
from wordkeeper.domain.errors import MalformedRecordError
from wordkeeper.domain.models import ReviewRecord


@pytest.fixture
def engine():
    return SchedulingEngine()


def rec(status="usable", quality=0, interval=0, on=None):
    return ReviewRecord(status=status, quality=quality, interval_days=interval, reviewed_on=on)


# ---------- Easiness factor ----------


@pytest.mark.parametrize(
    "quality, expected",
    [
        (5, 2.6),
        (4, 2.5),
        (3, 2.36),
        (2, 2.18),
    ],
)
def test_ef_sm2_formula(engine, quality, expected):
    assert engine.update_easiness_factor(2.5, quality, 0) == pytest.approx(expected)


@pytest.mark.parametrize(
    "streak, expected",
    [
        (0, 1.96),
        (2, 1.96),
        (3, 2.1004),
        (5, 2.1004),
        (6, 2.1976),
        (8, 2.1976),
        (10, 2.3002),
        (12, 2.3002),
    ],
)
def test_ef_forgotten_penalty_scaled_by_streak(engine, streak, expected):
    assert engine.update_easiness_factor(2.5, 1, streak) == pytest.approx(expected)
    assert engine.update_easiness_factor(2.5, 0, streak) == pytest.approx(expected)


def test_ef_zero_reads_as_default(engine):
    assert engine.update_easiness_factor(0, 5, 0) == pytest.approx(2.6)


def test_ef_floor(engine):
    assert engine.update_easiness_factor(1.4, 0, 0) == pytest.approx(1.3)
    assert engine.update_easiness_factor(1.3, 2, 0) == pytest.approx(1.3)


def test_ef_never_below_minimum_for_any_input(engine):
    for ef in (1.3, 1.5, 2.0, 2.5, 3.0):
        for quality in range(6):
            for streak in range(15):
                assert engine.update_easiness_factor(ef, quality, streak) >= 1.3


def test_custom_config_defaults():
    engine = SchedulingEngine(SchedulingConfig(default_ef=2.0, min_ef=1.5))
    assert engine.update_easiness_factor(0, 4, 0) == pytest.approx(2.0)
    assert engine.update_easiness_factor(1.6, 0, 0) == pytest.approx(1.5)


# ---------- Intervals ----------


def test_interval_first_correct_answers(engine):
    assert engine.calculate_next_interval(0, 2.5, 4, 1) == 1
    assert engine.calculate_next_interval(1, 2.5, 4, 2) == 6


def test_interval_grows_with_ef(engine):
    assert engine.calculate_next_interval(6, 2.5, 5, 3) == 15
    assert engine.calculate_next_interval(15, 2.6, 5, 4) == 39


def test_interval_missing_last_uses_fallback(engine):
    assert engine.calculate_next_interval(0, 2.5, 4, 3) == 15


def test_interval_rounds_half_away_from_zero(engine):
    assert engine.calculate_next_interval(5, 2.5, 4, 3) == 13


@pytest.mark.parametrize(
    "last, streak, expected",
    [
        (30, 1, 1),
        (30, 2, 1),
        (30, 5, 15),
        (90, 8, 54),
        (180, 12, 126),
        (1, 3, 1),
    ],
)
def test_interval_after_lapse(engine, last, streak, expected):
    assert engine.calculate_next_interval(last, 2.5, 1, streak) == expected


def test_interval_always_positive(engine):
    for last in (0, 1, 2, 10):
        for quality in range(6):
            for streak in range(15):
                assert engine.calculate_next_interval(last, 1.3, quality, streak) >= 1


def test_round_half_away():
    assert round_half_away(2.5) == 3
    assert round_half_away(3.5) == 4
    assert round_half_away(-2.5) == -3
    assert round_half_away(2.4) == 2


@pytest.mark.parametrize("ef", [1.3, 2.5, 3.0])
@pytest.mark.parametrize("quality", [4, 5])
def test_interval_non_decreasing_along_a_streak(engine, ef, quality):
    last = 0
    previous = 0
    for streak in range(1, 16):
        interval = engine.calculate_next_interval(last, ef, quality, streak)
        assert interval >= previous, (streak, previous, interval)
        previous = last = interval


@pytest.mark.parametrize("ef", [1.3, 2.5, 3.0])
def test_interval_without_stored_last_is_constant_after_second_answer(engine, ef):
    intervals = [engine.calculate_next_interval(0, ef, 4, streak) for streak in range(1, 16)]
    assert intervals == sorted(intervals)
    assert len(set(intervals[2:])) == 1


def test_interval_from_short_stale_interval_can_drop(engine):
    # A stored interval below 6/ef is scaled as is, under the streak-2 value.
    assert engine.calculate_next_interval(1, 1.3, 4, 2) == 6
    assert engine.calculate_next_interval(1, 1.3, 4, 3) == 1


# ---------- Streaks ----------


def test_streak_with_quality(engine):
    logs = [rec(quality=4), rec(quality=3), rec(quality=2), rec(quality=5)]
    assert engine.get_correct_streak(logs) == 2


def test_streak_legacy_statuses(engine):
    logs = [rec("usable"), rec("understood"), rec("misunderstood"), rec("usable")]
    assert engine.get_correct_streak(logs) == 2


def test_streak_legacy_learning_stops(engine):
    logs = [rec("intuitive"), rec(""), rec("usable")]
    assert engine.get_correct_streak(logs) == 1


def test_streak_empty(engine):
    assert engine.get_correct_streak([]) == 0


def test_last_interval(engine):
    assert engine.get_last_interval([]) == 0
    assert engine.get_last_interval([rec(interval=14), rec(interval=6)]) == 14


# ---------- Legacy thresholds ----------


@pytest.mark.parametrize(
    "count, expected",
    [(0, 0), (1, 3), (2, 7), (5, 60), (12, 1095), (13, None)],
)
def test_threshold_days_from_count(count, expected):
    assert SchedulingEngine.threshold_days_from_count(count) == expected


# ---------- Chronology ----------


def test_check_chronology_accepts_newest_first():
    logs = [rec(on=date(2025, 3, 1)), rec(on=date(2025, 3, 1)), rec(on=date(2025, 1, 1))]
    SchedulingEngine.check_chronology(logs)


def test_check_chronology_rejects_oldest_first():
    logs = [rec(on=date(2025, 1, 1)), rec(on=date(2025, 3, 1))]
    with pytest.raises(MalformedRecordError, match="newest-first"):
        SchedulingEngine.check_chronology(logs, "run")
