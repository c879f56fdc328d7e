"""
History updater: records quiz outcomes into learning history.

Locates (or creates) the notebook, scene and expression a quiz answer belongs
to and prepends a new ReviewRecord computed by the SchedulingEngine.
"""

import copy
import logging
from dataclasses import dataclass
from datetime import date

from wordkeeper.domain.constants import (
    FLASHCARD_POOL_TITLE,
    HISTORY_KIND_FLASHCARD,
    HISTORY_KIND_STORY,
)
from wordkeeper.domain.errors import MalformedRecordError, OutOfRangeError
from wordkeeper.domain.models import (
    Direction,
    ExpressionState,
    LearnedStatus,
    NotebookHistory,
    QuizKind,
    ReviewRecord,
    SceneHistory,
    normalize_title,
)

from .scheduling import SchedulingEngine

logger = logging.getLogger(__name__)


@dataclass
class QuizOutcome:
    """
    One answered quiz question.

    Attributes:
        is_known_word: For correct answers, record `understood` instead of `usable`.
        apriori_known: The word was known before any tracking started; a brand
            new expression is then not recorded at all.
        flashcard: The answer belongs to a flashcard notebook (flat history).
    """

    notebook_title: str
    expression: str
    is_correct: bool
    quality: int
    scene_title: str = ""
    notebook_id: str = ""
    is_known_word: bool = False
    apriori_known: bool = False
    response_time_ms: int = 0
    quiz_kind: QuizKind = QuizKind.NOTEBOOK
    direction: Direction = Direction.FORWARD
    flashcard: bool = False

    @property
    def is_flashcard_context(self) -> bool:
        if self.flashcard:
            return True
        return self.notebook_title == FLASHCARD_POOL_TITLE and not self.scene_title


class _ExpressionIndex:
    """Keyed view over an expression list; the list stays the source of truth."""

    def __init__(self, expressions: list[ExpressionState]):
        self.expressions = expressions
        self._by_text: dict[str, ExpressionState] = {}
        for state in expressions:
            self._by_text.setdefault(state.expression, state)

    def get(self, text: str) -> ExpressionState | None:
        return self._by_text.get(text)

    def add(self, state: ExpressionState) -> None:
        self.expressions.append(state)
        self._by_text.setdefault(state.expression, state)


class _NotebookIndex:
    def __init__(self, history: NotebookHistory):
        self.history = history
        self.flat = _ExpressionIndex(history.expressions)
        self._scenes: dict[str, _ExpressionIndex] = {}
        self._normalized: dict[str, _ExpressionIndex] = {}
        for scene in history.scenes:
            self._register(scene)

    def _register(self, scene: SceneHistory) -> _ExpressionIndex:
        index = _ExpressionIndex(scene.expressions)
        self._scenes.setdefault(scene.title, index)
        self._normalized.setdefault(normalize_title(scene.title), index)
        return index

    def find_scene(self, title: str, direction: Direction) -> _ExpressionIndex | None:
        if direction == Direction.REVERSE:
            return self._normalized.get(normalize_title(title))
        return self._scenes.get(title)

    def add_scene(self, title: str) -> _ExpressionIndex:
        scene = SceneHistory(title=title)
        self.history.scenes.append(scene)
        return self._register(scene)


class HistoryUpdater:
    """
    Applies quiz outcomes to a private copy of the learning history.

    Callers read the result from `history` and own write-back.
    """

    def __init__(
        self,
        history: list[NotebookHistory],
        engine: SchedulingEngine | None = None,
        today: date | None = None,
    ):
        self._history = copy.deepcopy(history)
        self._engine = engine or SchedulingEngine()
        self._today = today
        self._notebooks: dict[str, _NotebookIndex] = {}
        for notebook in self._history:
            self._notebooks.setdefault(notebook.title, _NotebookIndex(notebook))

    @property
    def history(self) -> list[NotebookHistory]:
        return self._history

    def record(self, outcome: QuizOutcome) -> bool:
        """
        Record a quiz outcome.

        Returns:
            True if an existing expression was updated, False if a new one was
            created (or nothing was recorded for an apriori-known word).

        Raises:
            MalformedRecordError: If the expression is empty or its log is not
                newest-first.
            OutOfRangeError: If the quality grade is outside 0-5.
        """
        if not outcome.expression.strip():
            raise MalformedRecordError(
                "expression is empty", notebook=outcome.notebook_title, scene=outcome.scene_title
            )
        if not 0 <= outcome.quality <= 5:
            raise OutOfRangeError(
                "quality must be between 0 and 5",
                expression=outcome.expression,
                quality=outcome.quality,
            )

        existing = self._find_expression(outcome)
        if existing is not None:
            self._append_record(existing, outcome)
            return True

        if outcome.apriori_known:
            logger.debug(
                f"Skipping apriori-known expression '{outcome.expression}' "
                f"in '{outcome.notebook_title}'"
            )
            return False

        state = ExpressionState(
            expression=outcome.expression,
            easiness_factor=self._engine.config.default_ef,
        )
        if outcome.direction == Direction.REVERSE:
            state.reverse_easiness_factor = self._engine.config.default_ef
        self._append_record(state, outcome)
        self._container_for(outcome).add(state)
        logger.debug(
            f"Created history for '{outcome.expression}' in '{outcome.notebook_title}'"
        )
        return False

    # ---------- Lookup ----------

    def _find_expression(self, outcome: QuizOutcome) -> ExpressionState | None:
        notebook = self._notebooks.get(outcome.notebook_title)
        if notebook is None:
            return None
        if outcome.is_flashcard_context or notebook.history.is_flashcard:
            return notebook.flat.get(outcome.expression)
        scene = notebook.find_scene(outcome.scene_title, outcome.direction)
        if scene is None:
            return None
        return scene.get(outcome.expression)

    def _container_for(self, outcome: QuizOutcome) -> _ExpressionIndex:
        notebook = self._notebooks.get(outcome.notebook_title)
        if notebook is None:
            kind = HISTORY_KIND_FLASHCARD if outcome.is_flashcard_context else HISTORY_KIND_STORY
            created = NotebookHistory(
                title=outcome.notebook_title, notebook_id=outcome.notebook_id, kind=kind
            )
            self._history.append(created)
            notebook = _NotebookIndex(created)
            self._notebooks[created.title] = notebook

        if outcome.is_flashcard_context or notebook.history.is_flashcard:
            return notebook.flat
        scene = notebook.find_scene(outcome.scene_title, outcome.direction)
        if scene is None:
            scene = notebook.add_scene(outcome.scene_title)
        return scene

    # ---------- Scheduling ----------

    def _append_record(self, state: ExpressionState, outcome: QuizOutcome) -> None:
        logs = state.logs_for(outcome.direction)
        self._engine.check_chronology(logs, state.expression)

        streak = self._engine.get_correct_streak(logs)
        last_interval = self._engine.get_last_interval(logs)

        status = LearnedStatus.MISUNDERSTOOD
        if outcome.is_correct:
            status = LearnedStatus.UNDERSTOOD if outcome.is_known_word else LearnedStatus.CAN_BE_USED
            streak += 1

        if outcome.direction == Direction.REVERSE:
            ef = self._engine.update_easiness_factor(
                state.reverse_easiness_factor, outcome.quality, streak
            )
            state.reverse_easiness_factor = ef
            quiz_type = QuizKind.REVERSE.value
        else:
            ef = self._engine.update_easiness_factor(
                state.easiness_factor, outcome.quality, streak
            )
            state.easiness_factor = ef
            quiz_type = outcome.quiz_kind.value

        interval = self._engine.calculate_next_interval(last_interval, ef, outcome.quality, streak)
        record = ReviewRecord(
            status=status.value,
            reviewed_on=self._today or date.today(),
            quality=outcome.quality,
            interval_days=interval,
            quiz_type=quiz_type,
            response_time_ms=outcome.response_time_ms,
        )
        logs.insert(0, record)
