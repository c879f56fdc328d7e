"""
YAML- and JSON-backed implementations of the domain ports.
"""

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from wordkeeper.domain.constants import (
    DICTIONARY_CACHE_SUFFIX,
    INDEX_FILE_NAME,
    YAML_SUFFIX,
)
from wordkeeper.domain.errors import ReadFailureError, WriteFailureError
from wordkeeper.domain.models import (
    CorpusFile,
    DictionaryResponse,
    FlashcardNotebook,
    NotebookHistory,
    StoryNotebook,
    normalize_key,
)
from wordkeeper.domain.ports import DictionaryCache, HistoryRepository, NotebookRepository

from .codec import (
    dictionary_response_from_dict,
    flashcard_from_dict,
    flashcard_to_dict,
    history_from_dict,
    history_to_dict,
    story_from_dict,
    story_to_dict,
)
from .yaml_store import load_records, load_yaml_file, persist_yaml

logger = logging.getLogger(__name__)

T = TypeVar("T")


class YamlNotebookRepository(NotebookRepository):
    """
    Reads notebooks from directories containing index.yml files.

    Each index lists the notebook files of one notebook, relative to the
    index location:

        id: friends
        name: Friends
        notebooks:
          - ./season1/episode1.yml
    """

    def __init__(self, story_dirs: list[Path], flashcard_dirs: list[Path]):
        self.story_dirs = story_dirs
        self.flashcard_dirs = flashcard_dirs

    def load_story_notebooks(self) -> dict[str, list[CorpusFile[StoryNotebook]]]:
        return self._load_indexed(self.story_dirs, story_from_dict)

    def load_flashcard_notebooks(self) -> dict[str, list[CorpusFile[FlashcardNotebook]]]:
        return self._load_indexed(self.flashcard_dirs, flashcard_from_dict)

    def persist_stories(self, path: Path, notebooks: list[StoryNotebook]) -> None:
        persist_yaml(path, [story_to_dict(n) for n in notebooks])

    def persist_flashcards(self, path: Path, notebooks: list[FlashcardNotebook]) -> None:
        persist_yaml(path, [flashcard_to_dict(n) for n in notebooks])

    def _load_indexed(
        self, roots: list[Path], parse: Callable[[Any], T]
    ) -> dict[str, list[CorpusFile[T]]]:
        result: dict[str, list[CorpusFile[T]]] = {}
        for root in roots:
            if not root.is_dir():
                raise ReadFailureError("notebook directory not found", path=str(root))
            for index_path in sorted(root.rglob(INDEX_FILE_NAME)):
                notebook_id, files = self._read_index(index_path)
                loaded = result.setdefault(notebook_id, [])
                for file_path in files:
                    loaded.append(CorpusFile(path=file_path, contents=load_records(file_path, parse)))
                logger.debug(f"Loaded notebook '{notebook_id}' ({len(files)} files)")
        return result

    @staticmethod
    def _read_index(index_path: Path) -> tuple[str, list[Path]]:
        data = load_yaml_file(index_path)
        if not isinstance(data, dict):
            raise ReadFailureError("index must be a mapping", path=str(index_path))
        notebook_id = str(data.get("id") or index_path.parent.name)
        entries = data.get("notebooks") or []
        if not isinstance(entries, list):
            raise ReadFailureError("index notebooks must be a list", path=str(index_path))
        return notebook_id, [index_path.parent / str(p) for p in entries]


class YamlHistoryRepository(HistoryRepository):
    """Learning-history files: every *.yml file of one directory."""

    def __init__(self, directory: Path):
        self.directory = directory

    def load_learning_history(self, path: Path) -> list[NotebookHistory]:
        if not path.exists():
            return []
        return load_records(path, history_from_dict)

    def load_all(self) -> list[CorpusFile[NotebookHistory]]:
        if not self.directory.is_dir():
            logger.info(f"Learning notes directory {self.directory} does not exist yet")
            return []
        return [
            CorpusFile(path=path, contents=self.load_learning_history(path))
            for path in sorted(self.directory.glob(f"*{YAML_SUFFIX}"))
        ]

    def path_for(self, notebook_id: str) -> Path:
        return self.directory / f"{notebook_id}{YAML_SUFFIX}"

    def persist(self, path: Path, histories: list[NotebookHistory]) -> None:
        persist_yaml(path, [history_to_dict(h) for h in histories])


class FileDictionaryCache(DictionaryCache):
    """One `<lowercase word>.json` file per cached WordsAPI response."""

    def __init__(self, directory: Path):
        self.directory = directory

    def path_for(self, word: str) -> Path:
        return self.directory / f"{normalize_key(word)}{DICTIONARY_CACHE_SUFFIX}"

    def has_entry(self, word: str) -> bool:
        return self.path_for(word).is_file()

    def load(self) -> dict[str, DictionaryResponse]:
        entries: dict[str, DictionaryResponse] = {}
        if not self.directory.is_dir():
            return entries
        for path in sorted(self.directory.glob(f"*{DICTIONARY_CACHE_SUFFIX}")):
            entries[path.stem] = self._read(path)
        return entries

    def load_entry(self, word: str) -> DictionaryResponse | None:
        path = self.path_for(word)
        if not path.is_file():
            return None
        return self._read(path)

    @staticmethod
    def _read(path: Path) -> DictionaryResponse:
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            return dictionary_response_from_dict(payload)
        except (OSError, ValueError) as e:
            raise ReadFailureError(
                "cannot read dictionary entry", path=str(path), error=str(e)
            ) from e

    def store(self, word: str, payload: dict) -> Path:
        path = self.path_for(word)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as e:
            raise WriteFailureError("cannot write dictionary entry", path=str(path), error=str(e)) from e
        logger.info(f"Cached dictionary entry for '{word}' at {path}")
        return path
