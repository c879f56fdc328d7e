"""
Consistency validator for learning history, story notebooks and flashcards.

Runs independent checking passes over the pooled corpora and collects every
finding into a ValidationResult; no pass aborts another.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from wordkeeper.domain.diagnostics import ValidationResult
from wordkeeper.domain.models import (
    VALID_STATUSES,
    CorpusFile,
    ExpressionState,
    FlashcardNotebook,
    NotebookHistory,
    ReviewRecord,
    StoryNotebook,
    VocabularyEntry,
    normalize_key,
)
from wordkeeper.domain.ports import DictionaryCache

from .utils.text import MarkerUsage, find_marker_usage

logger = logging.getLogger(__name__)


@dataclass
class Corpus:
    """All loaded files of the three corpora."""

    histories: list[CorpusFile[NotebookHistory]] = field(default_factory=list)
    stories: list[CorpusFile[StoryNotebook]] = field(default_factory=list)
    flashcards: list[CorpusFile[FlashcardNotebook]] = field(default_factory=list)


@dataclass
class VocabularyIndex:
    """Identity keys of every vocabulary entry, pooled across notebooks."""

    keys: set[str] = field(default_factory=set)
    locations: dict[str, list[str]] = field(default_factory=dict)
    # (event, scene title) -> identity keys defined in that story scene
    scene_keys: dict[tuple[str, str], set[str]] = field(default_factory=dict)

    def story_knows(self, key: str) -> bool:
        return any(key in keys for keys in self.scene_keys.values())


def build_vocabulary_index(corpus: Corpus) -> VocabularyIndex:
    index = VocabularyIndex()
    for file in corpus.stories:
        for notebook in file.contents:
            for scene in notebook.scenes:
                scene_keys = index.scene_keys.setdefault((notebook.event, scene.title), set())
                location = f"{file.path.name} ({notebook.event} - {scene.title})"
                for entry in scene.definitions:
                    if not entry.expression.strip():
                        continue
                    for key in entry.identity_keys():
                        index.keys.add(key)
                        scene_keys.add(key)
                        index.locations.setdefault(key, []).append(location)

    for file in corpus.flashcards:
        for notebook in file.contents:
            location = f"{file.path.name} ({notebook.title})"
            for card in notebook.cards:
                for key in card.identity_keys():
                    index.keys.add(key)
                    index.locations.setdefault(key, []).append(location)
    return index


def history_location(index: int, history: NotebookHistory) -> str:
    return f"history[{index}]: {history.title}"


def dictionary_word(canonical: str) -> str:
    return canonical.strip().lower()


class ConsistencyValidator:
    """
    Read-only checks over a Corpus.

    Passes:
        - flashcard notebook structure
        - history structure (statuses, dates, ordering, cross-scene duplicates)
        - cross-reference (orphans, missing notes, duplicates, misplaced scenes)
        - dictionary references
        - `{{ }}` marker usage in scene texts
    """

    def __init__(self, dictionary: DictionaryCache):
        self._dictionary = dictionary

    def validate(self, corpus: Corpus) -> ValidationResult:
        result = ValidationResult()
        index = build_vocabulary_index(corpus)

        self._check_flashcard_notebooks(corpus.flashcards, result)
        self._check_history_structure(corpus.histories, result)
        self._check_cross_references(corpus, index, result)
        self._check_dictionary_references(corpus, result)
        self._check_markers(corpus.stories, result)

        logger.info(
            f"Validation finished: {len(result.errors)} errors, {len(result.warnings)} warnings"
        )
        return result

    # ---------- Flashcards ----------

    def _check_flashcard_notebooks(
        self, files: list[CorpusFile[FlashcardNotebook]], result: ValidationResult
    ) -> None:
        for file in files:
            for nb_idx, notebook in enumerate(file.contents):
                location = f"notebook[{nb_idx}]: {notebook.title}"
                if not notebook.title.strip():
                    result.add_error(
                        str(file.path),
                        location,
                        "title is empty",
                        ["add a title to the flashcard notebook"],
                    )
                for card_idx, card in enumerate(notebook.cards):
                    card_location = f"{location} -> card[{card_idx}]: {card.expression}"
                    if not card.expression.strip():
                        result.add_error(
                            str(file.path),
                            card_location,
                            "expression is empty",
                            ["add an expression to the card"],
                        )
                        continue
                    if not card.meaning and not card.images:
                        result.add_error(
                            str(file.path),
                            card_location,
                            f'card "{card.expression}" has neither meaning nor images',
                            ["add a meaning field to the card", "or add images to the card"],
                        )

    # ---------- History structure ----------

    def _check_history_structure(
        self, files: list[CorpusFile[NotebookHistory]], result: ValidationResult
    ) -> None:
        for file in files:
            for h_idx, history in enumerate(file.contents):
                location = history_location(h_idx, history)
                if history.is_flashcard:
                    seen: set[str] = set()
                    for e_idx, state in enumerate(history.expressions):
                        self._check_expression(
                            file.path,
                            f"{location} -> expression[{e_idx}]: {state.expression}",
                            state,
                            result,
                        )
                        text = state.expression.strip()
                        if text and text in seen:
                            result.add_error(
                                str(file.path),
                                location,
                                f'duplicate expression "{text}" in flashcard format',
                            )
                        seen.add(text)
                    continue

                scenes_by_expression: dict[str, list[str]] = {}
                for s_idx, scene in enumerate(history.scenes):
                    scene_location = f"{location} -> scene[{s_idx}]: {scene.title}"
                    for e_idx, state in enumerate(scene.expressions):
                        self._check_expression(
                            file.path,
                            f"{scene_location} -> expression[{e_idx}]: {state.expression}",
                            state,
                            result,
                        )
                        text = state.expression.strip()
                        if not text:
                            continue
                        titles = scenes_by_expression.setdefault(text, [])
                        if scene.title.strip() not in titles:
                            titles.append(scene.title.strip())

                for text, titles in scenes_by_expression.items():
                    if len(titles) > 1:
                        result.add_error(
                            str(file.path),
                            location,
                            f'expression "{text}" appears in multiple scenes: {titles}',
                            ["run validate --fix to merge duplicate expressions"],
                        )

    def _check_expression(
        self, path: Path, location: str, state: ExpressionState, result: ValidationResult
    ) -> None:
        if not state.expression.strip():
            result.add_error(str(path), location, "expression field is empty")
            return
        self._check_log(path, location, "log", state.learned_logs, result)
        self._check_log(path, location, "reverse_log", state.reverse_logs, result)

    @staticmethod
    def _check_log(
        path: Path, location: str, label: str, logs: list[ReviewRecord], result: ValidationResult
    ) -> None:
        previous = None
        for idx, log in enumerate(logs):
            log_location = f"{location} -> {label}[{idx}]"
            if log.status not in VALID_STATUSES:
                result.add_error(
                    str(path),
                    log_location,
                    f'invalid status: "{log.status}"',
                    ["valid statuses are: '', 'misunderstood', 'understood', 'usable', 'intuitive'"],
                )
            if log.reviewed_on is None:
                result.add_error(
                    str(path),
                    log_location,
                    "learned_at is required but missing or invalid",
                    ["use format YYYY-MM-DD"],
                )
                continue
            if previous is not None and log.reviewed_on > previous:
                result.add_error(
                    str(path),
                    log_location,
                    "learned_logs not in chronological order (newest first): "
                    f"{log.reviewed_on.isoformat()} comes after {previous.isoformat()}",
                    ["sort learned_logs by date in descending order (newest first)"],
                )
            previous = log.reviewed_on

    # ---------- Cross-reference ----------

    def _check_cross_references(
        self, corpus: Corpus, index: VocabularyIndex, result: ValidationResult
    ) -> None:
        for file in corpus.histories:
            for h_idx, history in enumerate(file.contents):
                location = history_location(h_idx, history)
                if history.is_flashcard:
                    for e_idx, state in enumerate(history.expressions):
                        self._check_orphan(
                            file.path,
                            f"{location} -> expression[{e_idx}]: {state.expression}",
                            state,
                            index,
                            result,
                        )
                    continue

                for s_idx, scene in enumerate(history.scenes):
                    scene_location = f"{location} -> scene[{s_idx}]: {scene.title}"
                    scene_key = f"{history.title}::{scene.title}"
                    seen: dict[str, int] = {}
                    for e_idx, state in enumerate(scene.expressions):
                        text = state.expression.strip()
                        if not text:
                            continue
                        expr_location = f"{scene_location} -> expression[{e_idx}]: {text}"
                        if text in seen:
                            result.add_error(
                                str(file.path),
                                scene_location,
                                f'duplicate expression "{text}" found at indices '
                                f"{seen[text]} and {e_idx}",
                            )
                        seen[text] = e_idx

                        if not self._check_orphan(file.path, expr_location, state, index, result):
                            continue
                        key = normalize_key(text)
                        if not index.story_knows(key):
                            continue
                        story_scene = index.scene_keys.get((history.title, scene.title))
                        where = ", ".join(index.locations.get(key, []))
                        if story_scene is None:
                            result.add_error(
                                str(file.path),
                                expr_location,
                                f'scene "{scene_key}" not found in story notebooks',
                                [f'expression "{text}" exists in: {where}'],
                            )
                        elif key not in story_scene:
                            result.add_error(
                                str(file.path),
                                expr_location,
                                f'expression "{text}" not found in expected scene "{scene_key}"',
                                [f"expression exists in: {where}"],
                            )

        self._check_missing_notes(corpus, result)

    @staticmethod
    def _check_orphan(
        path: Path,
        location: str,
        state: ExpressionState,
        index: VocabularyIndex,
        result: ValidationResult,
    ) -> bool:
        text = state.expression.strip()
        if not text:
            return False
        if normalize_key(text) in index.keys:
            return True
        result.add_error(
            str(path),
            location,
            f'orphaned learning note: expression "{text}" not found in any notebook',
            ["remove this learning note or add the expression to a notebook"],
        )
        return False

    @staticmethod
    def _check_missing_notes(corpus: Corpus, result: ValidationResult) -> None:
        tracked: dict[tuple[str, str], set[str]] = {}
        for file in corpus.histories:
            for history in file.contents:
                for scene in history.scenes:
                    keys = tracked.setdefault((history.title, scene.title), set())
                    keys.update(normalize_key(s.expression) for s in scene.expressions)

        for file in corpus.stories:
            for notebook in file.contents:
                for scene in notebook.scenes:
                    known = tracked.get((notebook.event, scene.title), set())
                    for entry in scene.definitions:
                        text = entry.expression.strip()
                        if not text or entry.identity_keys() & known:
                            continue
                        result.add_warning(
                            str(file.path),
                            f"{notebook.event} - {scene.title} -> expression: {text}",
                            f'missing learning note for expression "{text}"',
                            ["consider adding a learning note for this expression"],
                        )

    # ---------- Dictionary ----------

    def _check_dictionary_references(self, corpus: Corpus, result: ValidationResult) -> None:
        for file in corpus.stories:
            for nb_idx, notebook in enumerate(file.contents):
                for s_idx, scene in enumerate(notebook.scenes):
                    for d_idx, entry in enumerate(scene.definitions):
                        location = (
                            f"notebook[{nb_idx}]: {notebook.event} -> scene[{s_idx}]: "
                            f"{scene.title} -> definition[{d_idx}]: {entry.expression}"
                        )
                        self._check_dictionary_entry(file.path, location, entry, result)

        for file in corpus.flashcards:
            for nb_idx, notebook in enumerate(file.contents):
                for c_idx, card in enumerate(notebook.cards):
                    location = (
                        f"notebook[{nb_idx}]: {notebook.title} -> card[{c_idx}]: {card.expression}"
                    )
                    self._check_dictionary_entry(file.path, location, card, result)

    def _check_dictionary_entry(
        self, path: Path, location: str, entry: VocabularyEntry, result: ValidationResult
    ) -> None:
        if entry.dictionary_number <= 0:
            return
        word = dictionary_word(entry.canonical)
        if self._dictionary.has_entry(word):
            return
        result.add_error(
            str(path),
            location,
            f'dictionary file not found for word "{word}" '
            f"(expected: {self._dictionary.path_for(word)})",
            ["run dictionary command to fetch the definition", "or remove dictionary_number field"],
        )

    # ---------- Markers ----------

    @staticmethod
    def _check_markers(files: list[CorpusFile[StoryNotebook]], result: ValidationResult) -> None:
        for file in files:
            for nb_idx, notebook in enumerate(file.contents):
                for s_idx, scene in enumerate(notebook.scenes):
                    texts = scene.texts()
                    for d_idx, entry in enumerate(scene.definitions):
                        expression = entry.expression.strip()
                        if entry.not_used or not expression:
                            continue
                        location = (
                            f"notebook[{nb_idx}]: {notebook.event} -> scene[{s_idx}]: "
                            f"{scene.title} -> definition[{d_idx}]: {expression}"
                        )
                        usage = find_marker_usage([expression, entry.definition], texts)
                        if usage == MarkerUsage.ABSENT:
                            result.add_error(
                                str(file.path),
                                location,
                                f'expression "{expression}" not found in any conversation quote',
                                [
                                    "add the expression to a conversation quote",
                                    "or mark it as not_used: true",
                                ],
                            )
                        elif usage == MarkerUsage.UNMARKED:
                            result.add_error(
                                str(file.path),
                                location,
                                f'expression "{expression}" found in conversation '
                                "but missing {{ }} markers",
                                ["wrap the expression in {{ }} markers"],
                            )
