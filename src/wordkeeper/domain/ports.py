"""
Ports (interfaces) for loading and persisting the corpora.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
All loaders raise ReadFailureError on I/O or parse failure.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from .models import (
    CorpusFile,
    DictionaryResponse,
    FlashcardNotebook,
    NotebookHistory,
    StoryNotebook,
)


class NotebookRepository(ABC):
    """
    Port for reading story and flashcard notebooks.

    Implementations:
        - YamlNotebookRepository: Reads index.yml-driven directories of YAML files.
    """

    @abstractmethod
    def load_story_notebooks(self) -> dict[str, list[CorpusFile[StoryNotebook]]]:
        """
        Load every story notebook file.

        Returns:
            Mapping of notebook id to the loaded files of that notebook.
        """
        pass

    @abstractmethod
    def load_flashcard_notebooks(self) -> dict[str, list[CorpusFile[FlashcardNotebook]]]:
        pass

    @abstractmethod
    def persist_stories(self, path: Path, notebooks: list[StoryNotebook]) -> None:
        pass

    @abstractmethod
    def persist_flashcards(self, path: Path, notebooks: list[FlashcardNotebook]) -> None:
        pass


class HistoryRepository(ABC):
    """Port for reading and writing learning-history files."""

    @abstractmethod
    def load_learning_history(self, path: Path) -> list[NotebookHistory]:
        pass

    @abstractmethod
    def load_all(self) -> list[CorpusFile[NotebookHistory]]:
        """Load every history file in the configured directory."""
        pass

    @abstractmethod
    def persist(self, path: Path, histories: list[NotebookHistory]) -> None:
        """
        Write histories back to disk.

        Raises:
            WriteFailureError: If the file cannot be written.
        """
        pass


class DictionaryCache(ABC):
    """
    Port for the on-disk dictionary cache.

    One entry per lowercase-normalized key; presence is an existence check.
    """

    @abstractmethod
    def path_for(self, word: str) -> Path:
        pass

    @abstractmethod
    def has_entry(self, word: str) -> bool:
        pass

    @abstractmethod
    def load(self) -> dict[str, DictionaryResponse]:
        """Load every cached entry keyed by its normalized word."""
        pass

    @abstractmethod
    def load_entry(self, word: str) -> DictionaryResponse | None:
        """Load a single cached entry, None when it is not cached."""
        pass

    @abstractmethod
    def store(self, word: str, payload: dict) -> Path:
        pass
