"""
Review filter for building the set of expressions due for study.

Decides, per vocabulary entry:
1. Novel words (no history) are always included
2. A `misunderstood` latest answer is always included
3. Otherwise the scheduling policy decides (spaced or usable-or-not)

In reverse mode only words already answered correctly in the forward direction
are candidates, and the reverse log is scheduled instead. Flashcards are ranked
by learn score so the least-known cards come first.

Included entries are enriched from the dictionary map; notebooks left with no
entries are dropped.
"""

import copy
import logging
from dataclasses import dataclass
from datetime import date
from typing import TypeVar

from wordkeeper.domain.constants import LEARN_SCORE_WEIGHTS
from wordkeeper.domain.errors import MalformedRecordError, OutOfRangeError
from wordkeeper.domain.models import (
    CORRECT_STATUSES,
    USABLE_STATUSES,
    DictionaryResponse,
    Direction,
    ExpressionState,
    FlashcardNotebook,
    LearnedStatus,
    NotebookHistory,
    StoryNotebook,
    VocabularyEntry,
    normalize_key,
)

from .scheduling import SchedulingEngine

logger = logging.getLogger(__name__)

N = TypeVar("N", StoryNotebook, FlashcardNotebook)


@dataclass
class ReviewFilterOptions:
    use_spaced_repetition: bool = True
    include_no_correct_answers: bool = True  # False skips words never answered correctly
    sort_desc: bool = False
    preserve_order: bool = False  # Keep input order verbatim, no sorting
    direction: Direction = Direction.FORWARD


def learn_score(state: ExpressionState | None, notebook_date: date | None, today: date) -> int:
    """
    Review priority of one card; lower means review sooner.

    Each forward record adds its status weight, then the days since the last
    review and since the notebook date are subtracted. Missing dates count from
    `date.min`, so never-reviewed cards sort first.
    """
    logs = state.learned_logs if state is not None else []
    score = sum(LEARN_SCORE_WEIGHTS.get(log.status, 0) for log in logs)
    last_reviewed = logs[0].reviewed_on if logs and logs[0].reviewed_on else date.min
    return score - (today - last_reviewed).days - (today - (notebook_date or date.min)).days


class ReviewFilter:
    """
    Filters notebooks down to the entries that need review today.

    Inputs are never mutated; the returned notebooks are copies.
    """

    def __init__(
        self,
        engine: SchedulingEngine | None = None,
        options: ReviewFilterOptions | None = None,
        today: date | None = None,
    ):
        self._engine = engine or SchedulingEngine()
        self.options = options or ReviewFilterOptions()
        self._today = today

    @property
    def today(self) -> date:
        return self._today or date.today()

    def filter_stories(
        self,
        notebooks: list[StoryNotebook],
        history: list[NotebookHistory],
        dictionary: dict[str, DictionaryResponse],
    ) -> list[StoryNotebook]:
        """
        Raises:
            MalformedRecordError: An entry has an empty expression or a history
                log is not newest-first.
            OutOfRangeError: A dictionary number points past the dictionary results.
        """
        result: list[StoryNotebook] = []
        for notebook in notebooks:
            if not notebook.scenes:
                continue

            scenes = []
            for scene in notebook.scenes:
                kept = []
                for entry in scene.definitions:
                    state = self._find_state(history, notebook.event, scene.title, entry)
                    included = self._evaluate(entry, state, notebook.event, dictionary)
                    if included is not None:
                        kept.append(included)
                if not kept:
                    continue
                filtered_scene = copy.deepcopy(scene)
                filtered_scene.definitions = kept
                scenes.append(filtered_scene)

            if not scenes:
                logger.debug(f"Dropping story '{notebook.event}': nothing to review")
                continue
            filtered = copy.deepcopy(notebook)
            filtered.scenes = scenes
            result.append(filtered)

        return self._order(result)

    def filter_flashcards(
        self,
        notebooks: list[FlashcardNotebook],
        history: list[NotebookHistory],
        dictionary: dict[str, DictionaryResponse],
    ) -> list[FlashcardNotebook]:
        result: list[FlashcardNotebook] = []
        for notebook in notebooks:
            if not notebook.cards:
                continue

            kept = []
            for card in notebook.cards:
                state = self._find_state(history, notebook.title, None, card)
                included = self._evaluate(card, state, notebook.title, dictionary)
                if included is not None:
                    kept.append((included, learn_score(state, notebook.date, self.today)))
            if not self.options.preserve_order:
                kept.sort(key=lambda pair: pair[1])

            if not kept:
                logger.debug(f"Dropping flashcards '{notebook.title}': nothing to review")
                continue
            filtered = copy.deepcopy(notebook)
            filtered.cards = [card for card, _ in kept]
            result.append(filtered)

        return self._order(result)

    def needs_review(self, state: ExpressionState | None) -> bool:
        """Scheduling decision for one expression in the configured direction."""
        if self.options.direction == Direction.REVERSE:
            return self.needs_reverse_review(state)
        if state is None or not state.learned_logs:
            return True

        logs = state.learned_logs
        latest = logs[0]
        if latest.status == LearnedStatus.MISUNDERSTOOD.value:
            return True

        if not self.options.use_spaced_repetition:
            return latest.status not in USABLE_STATUSES

        self._engine.check_chronology(logs, state.expression)
        due_interval = self._due_interval(state)
        if due_interval is None:
            return False
        if latest.reviewed_on is None:
            return True
        return (self.today - latest.reviewed_on).days >= due_interval

    def needs_reverse_review(self, state: ExpressionState | None) -> bool:
        """
        Scheduling decision for the reverse log.

        The stored interval of the newest record is the due interval; records
        without one fall back to the threshold table over the correct answers.
        """
        if state is None or not state.reverse_logs:
            return True

        logs = state.reverse_logs
        latest = logs[0]
        if latest.status == LearnedStatus.MISUNDERSTOOD.value:
            return True

        self._engine.check_chronology(logs, state.expression)
        due_interval = latest.interval_days
        if not due_interval:
            correct = sum(1 for log in logs if log.status in CORRECT_STATUSES)
            due_interval = self._engine.threshold_days_from_count(correct)
        if due_interval is None:
            return False
        if latest.reviewed_on is None:
            return True
        return (self.today - latest.reviewed_on).days >= due_interval

    # ---------- Internals ----------

    def _due_interval(self, state: ExpressionState) -> int | None:
        logs = state.learned_logs
        latest = logs[0]
        if not latest.has_quality:
            if latest.interval_days:
                return latest.interval_days
            correct = sum(1 for log in logs if self._engine.is_correct(log))
            return self._engine.threshold_days_from_count(correct)

        return self._engine.calculate_next_interval(
            self._engine.get_last_interval(logs),
            state.easiness_factor,
            latest.quality,
            self._engine.get_correct_streak(logs),
        )

    def _evaluate(
        self,
        entry: VocabularyEntry,
        state: ExpressionState | None,
        notebook_title: str,
        dictionary: dict[str, DictionaryResponse],
    ) -> VocabularyEntry | None:
        if not entry.expression.strip():
            raise MalformedRecordError("empty expression", notebook=notebook_title)

        # Reverse review starts once the forward direction has a correct answer.
        forward_gate = (
            self.options.direction == Direction.REVERSE
            or not self.options.include_no_correct_answers
        )
        if forward_gate and (state is None or not state.has_any_correct_answer()):
            return None
        if not self.needs_review(state):
            return None

        included = copy.deepcopy(entry)
        self._apply_dictionary(included, dictionary, notebook_title)
        return included

    @staticmethod
    def _find_state(
        history: list[NotebookHistory],
        notebook_title: str,
        scene_title: str | None,
        entry: VocabularyEntry,
    ) -> ExpressionState | None:
        # The canonical-form match governs when both forms are tracked.
        canonical_key = normalize_key(entry.definition) if entry.definition.strip() else None
        expression_key = normalize_key(entry.expression)
        by_expression = None
        for notebook in history:
            if notebook.title != notebook_title:
                continue
            if notebook.is_flashcard or scene_title is None:
                candidates = notebook.expressions
            else:
                candidates = [
                    state
                    for scene in notebook.scenes
                    if scene.title == scene_title
                    for state in scene.expressions
                ]
            for state in candidates:
                key = normalize_key(state.expression)
                if canonical_key is not None and key == canonical_key:
                    return state
                if key == expression_key and by_expression is None:
                    by_expression = state
        return by_expression

    @staticmethod
    def _apply_dictionary(
        entry: VocabularyEntry,
        dictionary: dict[str, DictionaryResponse],
        notebook_title: str,
    ) -> None:
        if entry.dictionary_number == 0:
            return
        response = dictionary.get(normalize_key(entry.canonical))
        if response is None:
            return
        if not 1 <= entry.dictionary_number <= len(response.results):
            raise OutOfRangeError(
                "dictionary number is out of range",
                expression=entry.expression,
                dictionary_number=entry.dictionary_number,
                results=len(response.results),
                notebook=notebook_title,
            )

        result = response.results[entry.dictionary_number - 1]
        entry.meaning = result.definition
        entry.part_of_speech = result.part_of_speech
        entry.synonyms = list(result.synonyms)
        entry.pronunciation = response.pronunciation
        if not entry.examples:
            entry.examples = list(result.examples)

    def _order(self, notebooks: list[N]) -> list[N]:
        if self.options.preserve_order:
            return notebooks
        return sorted(
            notebooks,
            key=lambda n: n.date or date.min,
            reverse=self.options.sort_desc,
        )
