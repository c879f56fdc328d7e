"""
Auto-fix for cross-corpus consistency problems.

Steps run in order on a private copy of the corpus, each change producing a
warning:
1. Create missing history files, episodes, scenes and expressions
2. Merge duplicate expressions within an episode (and sort logs newest-first)
3. Relocate expressions into the scene the notebook places them in
4. Rename expressions to the notebook's canonical form
5. Drop dictionary numbers that no longer resolve to a cache file
6. Drop orphaned expressions that carry no review history

Running fix on already fixed data produces no warnings.
"""

import copy
import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from wordkeeper.domain.constants import YAML_SUFFIX
from wordkeeper.domain.diagnostics import ValidationResult
from wordkeeper.domain.models import (
    CorpusFile,
    ExpressionState,
    NotebookHistory,
    ReviewRecord,
    SceneHistory,
    StoryNotebook,
    VocabularyEntry,
    normalize_key,
)
from wordkeeper.domain.ports import DictionaryCache

from .utils.text import derive_notebook_id, events_related
from .validator import Corpus, build_vocabulary_index, dictionary_word

logger = logging.getLogger(__name__)


def sort_newest_first(logs: list[ReviewRecord]) -> list[ReviewRecord]:
    """Stable date-descending sort; undated records go last."""
    return sorted(logs, key=lambda r: r.reviewed_on or date.min, reverse=True)


def merge_logs(first: list[ReviewRecord], second: list[ReviewRecord]) -> list[ReviewRecord]:
    merged = list(first)
    for record in second:
        if record not in merged:
            merged.append(record)
    return sort_newest_first(merged)


def merge_states(target: ExpressionState, other: ExpressionState) -> None:
    """Fold `other` into `target`, keeping target's text and easiness factors."""
    target.learned_logs = merge_logs(target.learned_logs, other.learned_logs)
    target.reverse_logs = merge_logs(target.reverse_logs, other.reverse_logs)
    if not target.easiness_factor:
        target.easiness_factor = other.easiness_factor
    if not target.reverse_easiness_factor:
        target.reverse_easiness_factor = other.reverse_easiness_factor


@dataclass
class FixOutcome:
    corpus: Corpus
    result: ValidationResult
    modified: set[Path] = field(default_factory=set)

    def modified_files(self, files: list[CorpusFile]) -> list[CorpusFile]:
        return [f for f in files if f.path in self.modified]


class _FixSession:
    def __init__(self):
        self.result = ValidationResult()
        self.modified: set[Path] = set()

    def changed(self, path: Path, message: str) -> None:
        self.result.add_warning(str(path), "", message)
        self.modified.add(path)


class ConsistencyFixer:
    """
    Best-effort, idempotent repair of a Corpus.

    Returns corrected copies; the caller persists `FixOutcome.modified` files.
    """

    def __init__(self, dictionary: DictionaryCache, learning_notes_dir: Path):
        self._dictionary = dictionary
        self._learning_notes_dir = learning_notes_dir

    def fix(self, corpus: Corpus) -> FixOutcome:
        fixed = copy.deepcopy(corpus)
        session = _FixSession()

        self._create_missing_notes(fixed, session)
        self._merge_duplicates(fixed.histories, session)
        self._relocate_expressions(fixed, session)
        self._rename_to_canonical(fixed, session)
        self._drop_dangling_dictionary_numbers(fixed, session)
        self._drop_empty_orphans(fixed, session)

        logger.info(
            f"Fix finished: {len(session.result.warnings)} changes "
            f"across {len(session.modified)} files"
        )
        return FixOutcome(corpus=fixed, result=session.result, modified=session.modified)

    # ---------- 1. Missing notes ----------

    def _create_missing_notes(self, corpus: Corpus, session: _FixSession) -> None:
        for story_file in corpus.stories:
            for notebook in story_file.contents:
                for scene in notebook.scenes:
                    for entry in scene.definitions:
                        if not entry.expression.strip():
                            continue
                        if self._episode_tracks(corpus.histories, notebook.event, entry):
                            continue
                        self._add_missing_note(corpus, notebook, scene.title, entry, session)

    @staticmethod
    def _episode_tracks(
        files: list[CorpusFile[NotebookHistory]], event: str, entry: VocabularyEntry
    ) -> bool:
        keys = entry.identity_keys()
        for file in files:
            for history in file.contents:
                if history.is_flashcard or history.title != event:
                    continue
                for state in history.all_expressions():
                    if normalize_key(state.expression) in keys:
                        return True
        return False

    def _add_missing_note(
        self,
        corpus: Corpus,
        notebook: StoryNotebook,
        scene_title: str,
        entry: VocabularyEntry,
        session: _FixSession,
    ) -> None:
        event = notebook.event
        target_file, target_history = self._find_episode(corpus.histories, event)

        if target_history is None:
            target_file = self._find_related_file(corpus.histories, event)
            if target_file is None:
                target_file = self._new_history_file(corpus, notebook, session)
                if target_file is None:
                    return

            notebook_id = derive_notebook_id(notebook.metadata.series)
            if target_file.contents:
                notebook_id = target_file.contents[0].notebook_id
            target_history = NotebookHistory(title=event, notebook_id=notebook_id)
            target_file.contents.append(target_history)
            session.changed(target_file.path, f'Created new episode structure for "{event}"')

        scene = next((s for s in target_history.scenes if s.title == scene_title), None)
        if scene is None:
            scene = SceneHistory(title=scene_title)
            target_history.scenes.append(scene)

        scene.expressions.append(ExpressionState(expression=entry.canonical))
        session.changed(
            target_file.path,
            f'Created missing learning note for expression "{entry.canonical}" '
            f"in scene {event}::{scene_title}",
        )

    @staticmethod
    def _find_episode(
        files: list[CorpusFile[NotebookHistory]], event: str
    ) -> tuple[CorpusFile[NotebookHistory] | None, NotebookHistory | None]:
        for file in files:
            for history in file.contents:
                if not history.is_flashcard and history.title == event:
                    return file, history
        return None, None

    @staticmethod
    def _find_related_file(
        files: list[CorpusFile[NotebookHistory]], event: str
    ) -> CorpusFile[NotebookHistory] | None:
        for file in files:
            for history in file.contents:
                if not history.is_flashcard and events_related(history.title, event):
                    return file
        return None

    def _new_history_file(
        self, corpus: Corpus, notebook: StoryNotebook, session: _FixSession
    ) -> CorpusFile[NotebookHistory] | None:
        notebook_id = derive_notebook_id(notebook.metadata.series)
        if not notebook_id:
            logger.warning(
                f"Cannot place learning notes for '{notebook.event}': no series in metadata"
            )
            return None

        path = self._learning_notes_dir / f"{notebook_id}{YAML_SUFFIX}"
        for file in corpus.histories:
            if file.path == path:
                return file

        created: CorpusFile[NotebookHistory] = CorpusFile(path=path, contents=[])
        corpus.histories.append(created)
        session.changed(path, f'Created new learning history file for notebook ID "{notebook_id}"')
        return created

    # ---------- 2. Duplicates ----------

    def _merge_duplicates(
        self, files: list[CorpusFile[NotebookHistory]], session: _FixSession
    ) -> None:
        for file in files:
            for history in file.contents:
                if history.is_flashcard:
                    self._merge_flat(file.path, history, session)
                else:
                    self._merge_scenes(file.path, history, session)
                self._sort_logs(file.path, history, session)

    @staticmethod
    def _merge_flat(path: Path, history: NotebookHistory, session: _FixSession) -> None:
        first_seen: dict[str, ExpressionState] = {}
        kept = []
        for state in history.expressions:
            text = state.expression.strip()
            if text and text in first_seen:
                merge_states(first_seen[text], state)
                session.changed(
                    path, f'Merged duplicate expression "{text}" in flashcard history {history.title}'
                )
                continue
            if text:
                first_seen[text] = state
            kept.append(state)
        history.expressions = kept

    @staticmethod
    def _merge_scenes(path: Path, history: NotebookHistory, session: _FixSession) -> None:
        first_seen: dict[str, tuple[SceneHistory, ExpressionState]] = {}
        for scene in history.scenes:
            kept = []
            for state in scene.expressions:
                text = state.expression.strip()
                if text and text in first_seen:
                    first_scene, first = first_seen[text]
                    merge_states(first, state)
                    if first_scene is scene:
                        message = (
                            f'Merged duplicate expression "{text}" in scene '
                            f"{history.title}::{scene.title}"
                        )
                    else:
                        message = (
                            f'Merged duplicate expression "{text}" from scene {scene.title} '
                            f"into scene {first_scene.title} in episode {history.title}"
                        )
                    session.changed(path, message)
                    continue
                if text:
                    first_seen[text] = (scene, state)
                kept.append(state)
            scene.expressions = kept

    @staticmethod
    def _sort_logs(path: Path, history: NotebookHistory, session: _FixSession) -> None:
        for state in history.all_expressions():
            for attr in ("learned_logs", "reverse_logs"):
                logs = getattr(state, attr)
                ordered = sort_newest_first(logs)
                if ordered != logs:
                    setattr(state, attr, ordered)
                    session.changed(
                        path,
                        f'Sorted {attr} of expression "{state.expression.strip()}" '
                        f"newest-first in {history.title}",
                    )

    # ---------- 3. Relocation ----------

    def _relocate_expressions(self, corpus: Corpus, session: _FixSession) -> None:
        placement = self._placement(corpus)
        for file in corpus.histories:
            for history in file.contents:
                targets = placement.get(history.title)
                if history.is_flashcard or not targets:
                    continue

                moved: list[tuple[str, ExpressionState]] = []
                for scene in history.scenes:
                    kept = []
                    for state in scene.expressions:
                        target = targets.get(normalize_key(state.expression))
                        if target is None or target == scene.title:
                            kept.append(state)
                            continue
                        moved.append((target, state))
                        session.changed(
                            file.path,
                            f'Moved expression "{state.expression.strip()}" from scene '
                            f'"{scene.title}" to correct scene "{target}"',
                        )
                    scene.expressions = kept

                for target, state in moved:
                    scene = next((s for s in history.scenes if s.title == target), None)
                    if scene is None:
                        scene = SceneHistory(title=target)
                        history.scenes.append(scene)
                    existing = self._find_text(scene.expressions, state.expression.strip())
                    if existing is not None:
                        merge_states(existing, state)
                    else:
                        scene.expressions.append(state)

    @staticmethod
    def _placement(corpus: Corpus) -> dict[str, dict[str, str]]:
        """event -> identity key -> title of the first scene defining it."""
        placement: dict[str, dict[str, str]] = {}
        for file in corpus.stories:
            for notebook in file.contents:
                keys = placement.setdefault(notebook.event, {})
                for scene in notebook.scenes:
                    for entry in scene.definitions:
                        for key in entry.identity_keys():
                            keys.setdefault(key, scene.title)
        return placement

    @staticmethod
    def _find_text(states: list[ExpressionState], text: str) -> ExpressionState | None:
        return next((s for s in states if s.expression.strip() == text), None)

    # ---------- 4. Canonical names ----------

    def _rename_to_canonical(self, corpus: Corpus, session: _FixSession) -> None:
        placement = self._placement(corpus)
        canonical_by_scene: dict[tuple[str, str], dict[str, str]] = {}
        for file in corpus.stories:
            for notebook in file.contents:
                for scene in notebook.scenes:
                    mapping = canonical_by_scene.setdefault((notebook.event, scene.title), {})
                    for entry in scene.definitions:
                        if entry.expression.strip() and entry.definition.strip():
                            mapping.setdefault(
                                normalize_key(entry.expression), entry.definition.strip()
                            )

        for file in corpus.histories:
            for history in file.contents:
                if history.is_flashcard:
                    continue
                targets = placement.get(history.title, {})
                for scene in history.scenes:
                    mapping = canonical_by_scene.get((history.title, scene.title))
                    if not mapping:
                        continue
                    for state in list(scene.expressions):
                        current = state.expression.strip()
                        canonical = mapping.get(normalize_key(current))
                        if canonical is None or current == canonical:
                            continue
                        # Only rename where the canonical form itself belongs.
                        if targets.get(normalize_key(canonical), scene.title) != scene.title:
                            continue

                        existing = self._find_text(scene.expressions, canonical)
                        if existing is not None and existing is not state:
                            merge_states(existing, state)
                            scene.expressions.remove(state)
                            session.changed(
                                file.path,
                                f'Merged expression "{current}" into "{canonical}" '
                                f"in scene {history.title}::{scene.title}",
                            )
                            continue

                        state.expression = canonical
                        session.changed(
                            file.path,
                            f'Updated expression "{current}" to use definition "{canonical}" '
                            f"in scene {history.title}::{scene.title}",
                        )

    # ---------- 5. Dictionary ----------

    def _drop_dangling_dictionary_numbers(self, corpus: Corpus, session: _FixSession) -> None:
        for file in corpus.stories:
            for notebook in file.contents:
                for scene in notebook.scenes:
                    for entry in scene.definitions:
                        self._check_dictionary_number(file.path, entry, session)
        for file in corpus.flashcards:
            for notebook in file.contents:
                for card in notebook.cards:
                    self._check_dictionary_number(file.path, card, session)

    def _check_dictionary_number(
        self, path: Path, entry: VocabularyEntry, session: _FixSession
    ) -> None:
        if entry.dictionary_number <= 0:
            return
        word = dictionary_word(entry.canonical)
        if self._dictionary.has_entry(word):
            return
        entry.dictionary_number = 0
        session.changed(
            path,
            f'Removed dictionary_number for word "{word}" '
            f"(dictionary file not found: {self._dictionary.path_for(word)})",
        )

    # ---------- 6. Orphans ----------

    def _drop_empty_orphans(self, corpus: Corpus, session: _FixSession) -> None:
        known = build_vocabulary_index(corpus).keys

        def keep(state: ExpressionState) -> bool:
            text = state.expression.strip()
            if not text or normalize_key(text) in known:
                return True
            return bool(state.learned_logs or state.reverse_logs)

        for file in corpus.histories:
            for history in file.contents:
                if history.is_flashcard:
                    containers = [(history.title, history)]
                else:
                    containers = [(f"{history.title}::{s.title}", s) for s in history.scenes]
                for label, container in containers:
                    kept = []
                    for state in container.expressions:
                        if keep(state):
                            kept.append(state)
                            continue
                        session.changed(
                            file.path,
                            f'Removed orphaned expression "{state.expression.strip()}" '
                            f"with no learned_logs from {label}",
                        )
                    container.expressions = kept
