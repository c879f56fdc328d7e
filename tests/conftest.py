from dataclasses import dataclass
from pathlib import Path

import pytest

STORY_INDEX = """\
id: friends
name: Friends
notebooks:
  - ./season1/episode1.yml
"""

STORY_FILE = """\
- event: Friends Season 1 Episode 1
  metadata:
    series: Friends
    season: 1
    episode: 1
  date: 2025-01-10
  scenes:
    - scene: Central Perk
      conversations:
        - speaker: Ross
          quote: "We were on a {{ break }}!"
        - speaker: Rachel
          quote: "They {{ broke up }} last week."
      definitions:
        - expression: break
          meaning: a pause
          dictionary_number: 1
        - expression: broke up
          definition: break up
          mood: dramatic
"""

FLASHCARD_INDEX = """\
id: idioms
name: Idioms
notebooks:
  - ./cards.yml
"""

FLASHCARD_FILE = """\
- title: Common idioms
  date: 2025-02-01
  cards:
    - expression: break a leg
      meaning: good luck
    - expression: spill the beans
      meaning: reveal a secret
"""

HISTORY_FILE = """\
- metadata:
    id: friends
    title: Friends Season 1 Episode 1
  scenes:
    - metadata:
        title: Central Perk
      expressions:
        - expression: break
          learned_logs:
            - status: usable
              learned_at: 2025-03-01
              quality: 4
              interval_days: 6
            - status: usable
              learned_at: "2025-02-20T09:30:00Z"
          easiness_factor: 2.5
"""

DICTIONARY_ENTRY = """\
{
  "word": "break",
  "pronunciation": {"all": "breɪk"},
  "results": [
    {
      "definition": "an interruption in continuity",
      "partOfSpeech": "noun",
      "synonyms": ["pause", "interruption"],
      "examples": ["a break in the action"]
    }
  ]
}
"""


@dataclass
class Workspace:
    root: Path
    stories: Path
    flashcards: Path
    notes: Path
    dictionary: Path

    @property
    def story_file(self) -> Path:
        return self.stories / "friends" / "season1" / "episode1.yml"

    @property
    def history_file(self) -> Path:
        return self.notes / "friends.yml"


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config
    monkeypatch.setenv("HOME", str(home))
    for name in (
        "WORDKEEPER_STORY_DIRS",
        "WORDKEEPER_FLASHCARD_DIRS",
        "WORDKEEPER_LEARNING_NOTES_DIR",
        "WORDKEEPER_DICTIONARY_DIR",
        "WORDKEEPER_WORDSAPI_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    return home


@pytest.fixture
def workspace(tmp_path):
    """Creates story, flashcard, learning-note and dictionary directories."""
    ws = Workspace(
        root=tmp_path,
        stories=tmp_path / "stories",
        flashcards=tmp_path / "flashcards",
        notes=tmp_path / "learning_notes",
        dictionary=tmp_path / "dictionaries",
    )
    (ws.stories / "friends" / "season1").mkdir(parents=True)
    (ws.stories / "friends" / "index.yml").write_text(STORY_INDEX, encoding="utf-8")
    ws.story_file.write_text(STORY_FILE, encoding="utf-8")

    (ws.flashcards / "idioms").mkdir(parents=True)
    (ws.flashcards / "idioms" / "index.yml").write_text(FLASHCARD_INDEX, encoding="utf-8")
    (ws.flashcards / "idioms" / "cards.yml").write_text(FLASHCARD_FILE, encoding="utf-8")

    ws.notes.mkdir()
    ws.history_file.write_text(HISTORY_FILE, encoding="utf-8")

    ws.dictionary.mkdir()
    (ws.dictionary / "break.json").write_text(DICTIONARY_ENTRY, encoding="utf-8")
    return ws
