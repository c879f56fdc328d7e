"""
SM-2 scheduling engine.

This is a pure computation module with no I/O.
"""

import math
from dataclasses import dataclass

from wordkeeper.domain.constants import (
    DEFAULT_EASINESS_FACTOR,
    FORGOTTEN_EF_PENALTY,
    LEGACY_THRESHOLD_DAYS,
    MIGRATION_FALLBACK_INTERVAL,
    MIN_EASINESS_FACTOR,
)
from wordkeeper.domain.errors import MalformedRecordError
from wordkeeper.domain.models import CORRECT_STATUSES, ReviewRecord

# (minimum prior streak, multiplier), checked top-down
_RETENTION_FACTORS = ((10, 0.37), (6, 0.56), (3, 0.74))
_LAPSE_MULTIPLIERS = ((10, 0.7), (6, 0.6), (3, 0.5))


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    if value < 0:
        return -math.floor(-value + 0.5)
    return math.floor(value + 0.5)


@dataclass(frozen=True)
class SchedulingConfig:
    default_ef: float = DEFAULT_EASINESS_FACTOR
    min_ef: float = MIN_EASINESS_FACTOR


class SchedulingEngine:
    """
    Turns quiz grades into easiness factors and review intervals.

    Stateless apart from its configuration; every call is self-contained.
    Logs passed in are newest-first.
    """

    def __init__(self, config: SchedulingConfig | None = None):
        self.config = config or SchedulingConfig()

    def effective_ef(self, ef: float) -> float:
        return ef if ef else self.config.default_ef

    def update_easiness_factor(self, ef: float, quality: int, prior_correct_streak: int) -> float:
        """
        Compute the easiness factor after a review.

        A blank/forgotten answer (quality <= 1) gets a fixed penalty scaled by how
        long the word had been known, instead of the SM-2 formula.
        """
        ef = self.effective_ef(ef)
        if quality >= 2:
            miss = 5 - quality
            delta = 0.1 - miss * (0.08 + miss * 0.02)
        else:
            delta = FORGOTTEN_EF_PENALTY * self._retention_factor(prior_correct_streak)
        return max(ef + delta, self.config.min_ef)

    def calculate_next_interval(
        self, last_interval: int, ef: float, quality: int, correct_streak: int
    ) -> int:
        ef = self.effective_ef(ef)
        if quality >= 2:
            if correct_streak <= 1:
                return 1
            if correct_streak == 2:
                return 6
            base = last_interval or MIGRATION_FALLBACK_INTERVAL
            return round_half_away(base * ef)

        if correct_streak <= 2:
            return 1
        multiplier = next(m for floor, m in _LAPSE_MULTIPLIERS if correct_streak >= floor)
        return max(1, round_half_away(last_interval * multiplier))

    def get_correct_streak(self, logs: list[ReviewRecord]) -> int:
        count = 0
        for log in logs:
            if not self.is_correct(log):
                break
            count += 1
        return count

    def get_last_interval(self, logs: list[ReviewRecord]) -> int:
        if not logs:
            return 0
        return logs[0].interval_days

    @staticmethod
    def is_correct(log: ReviewRecord) -> bool:
        # Legacy records carry no quality; their status decides.
        if log.has_quality:
            return log.quality >= 3
        return log.status in CORRECT_STATUSES

    @staticmethod
    def threshold_days_from_count(count: int) -> int | None:
        """
        Legacy review threshold for a number of correct reviews.

        Returns None when the word never needs review again (count above 12).
        """
        if count > max(LEGACY_THRESHOLD_DAYS):
            return None
        return LEGACY_THRESHOLD_DAYS.get(count, 0)

    @staticmethod
    def check_chronology(logs: list[ReviewRecord], expression: str = "") -> None:
        """
        Raises:
            MalformedRecordError: If dated records are not newest-first.
        """
        dated = [log.reviewed_on for log in logs if log.reviewed_on is not None]
        for index, (newer, older) in enumerate(zip(dated, dated[1:])):
            if newer < older:
                raise MalformedRecordError(
                    "review log is not ordered newest-first",
                    expression=expression,
                    index=index + 1,
                    newer=newer.isoformat(),
                    older=older.isoformat(),
                )

    @staticmethod
    def _retention_factor(prior_correct_streak: int) -> float:
        for floor, factor in _RETENTION_FACTORS:
            if prior_correct_streak >= floor:
                return factor
        return 1.0
