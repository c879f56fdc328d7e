"""
Domain models for notebooks and learning history.

These are pure data structures with no I/O or external dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Generic, TypeVar

from .constants import HISTORY_KIND_FLASHCARD, HISTORY_KIND_STORY

T = TypeVar("T")


class LearnedStatus(str, Enum):
    """Outcome of a single review as stored in the history files."""

    LEARNING = ""
    MISUNDERSTOOD = "misunderstood"
    UNDERSTOOD = "understood"
    CAN_BE_USED = "usable"
    INTUITIVELY_USED = "intuitive"


VALID_STATUSES = frozenset(s.value for s in LearnedStatus)
CORRECT_STATUSES = frozenset(
    {
        LearnedStatus.UNDERSTOOD.value,
        LearnedStatus.CAN_BE_USED.value,
        LearnedStatus.INTUITIVELY_USED.value,
    }
)
USABLE_STATUSES = frozenset(
    {LearnedStatus.CAN_BE_USED.value, LearnedStatus.INTUITIVELY_USED.value}
)


class QuizKind(str, Enum):
    NOTEBOOK = "notebook"
    FREEFORM = "freeform"
    REVERSE = "reverse"


class Direction(str, Enum):
    FORWARD = "forward"
    REVERSE = "reverse"


def normalize_key(text: str) -> str:
    """Case-insensitive identity used to cross-reference expressions."""
    return text.strip().lower()


def normalize_title(text: str) -> str:
    """Trim and collapse internal whitespace runs to a single space."""
    return " ".join(text.split())


# ---------- Learning history ----------


@dataclass
class ReviewRecord:
    """
    A single quiz outcome.

    Attributes:
        status: One of LearnedStatus values (kept as raw text so invalid
            values survive loading and can be reported).
        reviewed_on: Calendar date of the review, None when missing.
        quality: SM-2 grade 0-5; 0 for legacy records.
        interval_days: Interval computed at this review.
        quiz_type: QuizKind value that produced the record.
        response_time_ms: Time taken to answer.
    """

    status: str = LearnedStatus.LEARNING.value
    reviewed_on: date | None = None
    quality: int = 0
    interval_days: int = 0
    quiz_type: str = ""
    response_time_ms: int = 0

    @property
    def has_quality(self) -> bool:
        return self.quality > 0


@dataclass
class ExpressionState:
    """Scheduling state of one expression within one context."""

    expression: str
    learned_logs: list[ReviewRecord] = field(default_factory=list)
    easiness_factor: float = 0.0
    reverse_logs: list[ReviewRecord] = field(default_factory=list)
    reverse_easiness_factor: float = 0.0

    def logs_for(self, direction: Direction) -> list[ReviewRecord]:
        if direction == Direction.REVERSE:
            return self.reverse_logs
        return self.learned_logs

    def latest_status(self) -> str:
        if not self.learned_logs:
            return LearnedStatus.LEARNING.value
        return self.learned_logs[0].status

    def has_any_correct_answer(self) -> bool:
        return any(log.status in CORRECT_STATUSES for log in self.learned_logs)


@dataclass
class SceneHistory:
    title: str
    expressions: list[ExpressionState] = field(default_factory=list)


@dataclass
class NotebookHistory:
    """
    Review state of a story or a flashcard set.

    Story histories are partitioned into scenes; flashcard histories keep a
    flat expression list.
    """

    title: str
    notebook_id: str = ""
    kind: str = HISTORY_KIND_STORY
    scenes: list[SceneHistory] = field(default_factory=list)
    expressions: list[ExpressionState] = field(default_factory=list)

    @property
    def is_flashcard(self) -> bool:
        return self.kind == HISTORY_KIND_FLASHCARD

    def all_expressions(self) -> list[ExpressionState]:
        if self.is_flashcard:
            return list(self.expressions)
        return [expr for scene in self.scenes for expr in scene.expressions]


# ---------- Notebooks ----------


@dataclass
class VocabularyEntry:
    """
    A definition or flashcard.

    Attributes:
        expression: Text as it appears in the source.
        definition: Optional canonical base form (e.g. for inflected forms).
        dictionary_number: 1-based index into dictionary results, 0 for none.
        not_used: Entry is intentionally absent from the scene text.
    """

    expression: str = ""
    definition: str = ""
    meaning: str = ""
    dictionary_number: int = 0
    not_used: bool = False
    level: str = ""
    part_of_speech: str = ""
    pronunciation: str = ""
    examples: list[str] = field(default_factory=list)
    synonyms: list[str] = field(default_factory=list)
    images: list[str] = field(default_factory=list)
    statements: list[str] = field(default_factory=list)
    # Keys this model does not interpret, kept for write-back
    extra: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def canonical(self) -> str:
        """Canonical form if present, else the expression (trimmed)."""
        return self.definition.strip() or self.expression.strip()

    @property
    def identity(self) -> str:
        return normalize_key(self.canonical)

    def identity_keys(self) -> set[str]:
        """All keys a history expression may use to refer to this entry."""
        keys = {normalize_key(self.expression)}
        if self.definition.strip():
            keys.add(normalize_key(self.definition))
        keys.discard("")
        return keys


@dataclass
class Conversation:
    speaker: str = ""
    quote: str = ""


@dataclass
class Scene:
    title: str
    conversations: list[Conversation] = field(default_factory=list)
    statements: list[str] = field(default_factory=list)
    definitions: list[VocabularyEntry] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def texts(self) -> list[str]:
        return [c.quote for c in self.conversations] + list(self.statements)


@dataclass
class StoryMetadata:
    series: str = ""
    season: int = 0
    episode: int = 0
    extra: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)


@dataclass
class StoryNotebook:
    event: str
    date: date | None = None
    metadata: StoryMetadata = field(default_factory=StoryMetadata)
    scenes: list[Scene] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)


@dataclass
class FlashcardNotebook:
    title: str
    date: date | None = None
    description: str = ""
    cards: list[VocabularyEntry] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)


# ---------- Dictionary ----------


@dataclass(frozen=True)
class DictionaryResult:
    definition: str = ""
    part_of_speech: str = ""
    synonyms: tuple[str, ...] = ()
    examples: tuple[str, ...] = ()


@dataclass(frozen=True)
class DictionaryResponse:
    word: str
    pronunciation: str = ""
    results: tuple[DictionaryResult, ...] = ()


# ---------- Loaded files ----------


@dataclass
class CorpusFile(Generic[T]):
    """The parsed contents of one YAML file together with its location."""

    path: Path
    contents: list[T] = field(default_factory=list)
