"""
Mapping between YAML documents and domain models.

Parsers raise ValueError/TypeError on wrongly shaped input; the loaders wrap
those into ReadFailureError. Serializers omit empty optional fields.
"""

from datetime import date, datetime
from typing import Any

from wordkeeper.domain.constants import HISTORY_KIND_FLASHCARD, HISTORY_KIND_STORY
from wordkeeper.domain.models import (
    Conversation,
    DictionaryResponse,
    DictionaryResult,
    ExpressionState,
    FlashcardNotebook,
    NotebookHistory,
    ReviewRecord,
    Scene,
    SceneHistory,
    StoryMetadata,
    StoryNotebook,
    VocabularyEntry,
)

# ---------- Scalars ----------


def _mapping(value: Any, what: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{what} must be a mapping, got {type(value).__name__}")
    return value


def _sequence(value: Any, what: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{what} must be a list, got {type(value).__name__}")
    return value


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _texts(value: Any, what: str) -> list[str]:
    return [_text(v) for v in _sequence(value, what)]


def parse_date(value: Any) -> date | None:
    """
    Accept YYYY-MM-DD dates and legacy RFC3339 timestamps.

    Timestamps are truncated to their calendar date. Unparseable values give
    None so the validator can report them.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def _compact(data: dict) -> dict:
    """Drop empty optional values (None, "", 0, [], False)."""
    return {k: v for k, v in data.items() if v not in (None, "", 0, 0.0, [], {}, False)}


# ---------- Learning history ----------


def record_from_dict(data: Any) -> ReviewRecord:
    data = _mapping(data, "learned log")
    return ReviewRecord(
        status=_text(data.get("status")),
        reviewed_on=parse_date(data.get("learned_at")),
        quality=int(data.get("quality") or 0),
        interval_days=int(data.get("interval_days") or 0),
        quiz_type=_text(data.get("quiz_type")),
        response_time_ms=int(data.get("response_time_ms") or 0),
    )


def record_to_dict(record: ReviewRecord) -> dict:
    return _compact(
        {
            "status": record.status,
            "learned_at": record.reviewed_on,
            "quality": record.quality,
            "response_time_ms": record.response_time_ms,
            "quiz_type": record.quiz_type,
            "interval_days": record.interval_days,
        }
    )


def expression_from_dict(data: Any) -> ExpressionState:
    data = _mapping(data, "expression")
    return ExpressionState(
        expression=_text(data.get("expression")),
        learned_logs=[record_from_dict(r) for r in _sequence(data.get("learned_logs"), "learned_logs")],
        easiness_factor=float(data.get("easiness_factor") or 0.0),
        reverse_logs=[record_from_dict(r) for r in _sequence(data.get("reverse_logs"), "reverse_logs")],
        reverse_easiness_factor=float(data.get("reverse_easiness_factor") or 0.0),
    )


def expression_to_dict(state: ExpressionState) -> dict:
    data: dict[str, Any] = {
        "expression": state.expression,
        "learned_logs": [record_to_dict(r) for r in state.learned_logs],
    }
    data.update(
        _compact(
            {
                "easiness_factor": round(state.easiness_factor, 4),
                "reverse_logs": [record_to_dict(r) for r in state.reverse_logs],
                "reverse_easiness_factor": round(state.reverse_easiness_factor, 4),
            }
        )
    )
    return data


def history_from_dict(data: Any) -> NotebookHistory:
    data = _mapping(data, "learning history")
    metadata = _mapping(data.get("metadata"), "metadata")
    kind = HISTORY_KIND_FLASHCARD if metadata.get("type") == HISTORY_KIND_FLASHCARD else HISTORY_KIND_STORY
    scenes = []
    for raw_scene in _sequence(data.get("scenes"), "scenes"):
        raw_scene = _mapping(raw_scene, "scene")
        scene_meta = _mapping(raw_scene.get("metadata"), "scene metadata")
        scenes.append(
            SceneHistory(
                title=_text(scene_meta.get("title")),
                expressions=[
                    expression_from_dict(e)
                    for e in _sequence(raw_scene.get("expressions"), "expressions")
                ],
            )
        )
    return NotebookHistory(
        title=_text(metadata.get("title")),
        notebook_id=_text(metadata.get("id")),
        kind=kind,
        scenes=scenes,
        expressions=[
            expression_from_dict(e) for e in _sequence(data.get("expressions"), "expressions")
        ],
    )


def history_to_dict(history: NotebookHistory) -> dict:
    metadata: dict[str, Any] = {"id": history.notebook_id, "title": history.title}
    if history.is_flashcard:
        metadata["type"] = HISTORY_KIND_FLASHCARD
    data: dict[str, Any] = {"metadata": metadata}
    if history.scenes:
        data["scenes"] = [
            {
                "metadata": {"title": scene.title},
                "expressions": [expression_to_dict(e) for e in scene.expressions],
            }
            for scene in history.scenes
        ]
    if history.expressions:
        data["expressions"] = [expression_to_dict(e) for e in history.expressions]
    return data


# ---------- Notebooks ----------

_ENTRY_KEYS = (
    "expression",
    "definition",
    "meaning",
    "level",
    "dictionary_number",
    "part_of_speech",
    "pronunciation",
    "synonyms",
    "examples",
    "statements",
    "images",
    "not_used",
)


def entry_from_dict(data: Any) -> VocabularyEntry:
    data = _mapping(data, "definition")
    return VocabularyEntry(
        expression=_text(data.get("expression")),
        definition=_text(data.get("definition")),
        meaning=_text(data.get("meaning")),
        level=_text(data.get("level")),
        dictionary_number=int(data.get("dictionary_number") or 0),
        part_of_speech=_text(data.get("part_of_speech")),
        pronunciation=_text(data.get("pronunciation")),
        synonyms=_texts(data.get("synonyms"), "synonyms"),
        examples=_texts(data.get("examples"), "examples"),
        statements=_texts(data.get("statements"), "statements"),
        images=list(_sequence(data.get("images"), "images")),
        not_used=bool(data.get("not_used", False)),
        extra={k: v for k, v in data.items() if k not in _ENTRY_KEYS},
    )


def entry_to_dict(entry: VocabularyEntry) -> dict:
    data = {"expression": entry.expression}
    data.update(
        _compact(
            {
                "definition": entry.definition,
                "meaning": entry.meaning,
                "level": entry.level,
                "dictionary_number": entry.dictionary_number,
                "part_of_speech": entry.part_of_speech,
                "pronunciation": entry.pronunciation,
                "synonyms": entry.synonyms,
                "examples": entry.examples,
                "statements": entry.statements,
                "images": entry.images,
                "not_used": entry.not_used,
            }
        )
    )
    data.update(entry.extra)
    return data


_SCENE_KEYS = ("scene", "conversations", "statements", "definitions")
_STORY_KEYS = ("event", "metadata", "date", "scenes")
_METADATA_KEYS = ("series", "season", "episode")


def story_from_dict(data: Any) -> StoryNotebook:
    data = _mapping(data, "story notebook")
    metadata = _mapping(data.get("metadata"), "metadata")
    scenes = []
    for raw in _sequence(data.get("scenes"), "scenes"):
        raw = _mapping(raw, "scene")
        scenes.append(
            Scene(
                title=_text(raw.get("scene")),
                conversations=[
                    Conversation(
                        speaker=_text(_mapping(c, "conversation").get("speaker")),
                        quote=_text(_mapping(c, "conversation").get("quote")),
                    )
                    for c in _sequence(raw.get("conversations"), "conversations")
                ],
                statements=_texts(raw.get("statements"), "statements"),
                definitions=[
                    entry_from_dict(d) for d in _sequence(raw.get("definitions"), "definitions")
                ],
                extra={k: v for k, v in raw.items() if k not in _SCENE_KEYS},
            )
        )
    return StoryNotebook(
        event=_text(data.get("event")),
        date=parse_date(data.get("date")),
        metadata=StoryMetadata(
            series=_text(metadata.get("series")),
            season=int(metadata.get("season") or 0),
            episode=int(metadata.get("episode") or 0),
            extra={k: v for k, v in metadata.items() if k not in _METADATA_KEYS},
        ),
        scenes=scenes,
        extra={k: v for k, v in data.items() if k not in _STORY_KEYS},
    )


def story_to_dict(notebook: StoryNotebook) -> dict:
    metadata = _compact(
        {
            "series": notebook.metadata.series,
            "season": notebook.metadata.season,
            "episode": notebook.metadata.episode,
        }
    )
    metadata.update(notebook.metadata.extra)

    data: dict[str, Any] = {"event": notebook.event}
    if metadata:
        data["metadata"] = metadata
    if notebook.date is not None:
        data["date"] = notebook.date
    data.update(notebook.extra)

    scenes = []
    for scene in notebook.scenes:
        raw: dict[str, Any] = {"scene": scene.title}
        if scene.conversations:
            raw["conversations"] = [
                {"speaker": c.speaker, "quote": c.quote} for c in scene.conversations
            ]
        if scene.statements:
            raw["statements"] = list(scene.statements)
        raw.update(scene.extra)
        raw["definitions"] = [entry_to_dict(d) for d in scene.definitions]
        scenes.append(raw)
    data["scenes"] = scenes
    return data


_FLASHCARD_KEYS = ("title", "description", "date", "cards")


def flashcard_from_dict(data: Any) -> FlashcardNotebook:
    data = _mapping(data, "flashcard notebook")
    return FlashcardNotebook(
        title=_text(data.get("title")),
        description=_text(data.get("description")),
        date=parse_date(data.get("date")),
        cards=[entry_from_dict(c) for c in _sequence(data.get("cards"), "cards")],
        extra={k: v for k, v in data.items() if k not in _FLASHCARD_KEYS},
    )


def flashcard_to_dict(notebook: FlashcardNotebook) -> dict:
    data: dict[str, Any] = {"title": notebook.title}
    if notebook.description:
        data["description"] = notebook.description
    if notebook.date is not None:
        data["date"] = notebook.date
    data.update(notebook.extra)
    data["cards"] = [entry_to_dict(c) for c in notebook.cards]
    return data


# ---------- Dictionary ----------


def dictionary_response_from_dict(data: Any) -> DictionaryResponse:
    """Parse a WordsAPI response body."""
    data = _mapping(data, "dictionary response")
    pronunciation = data.get("pronunciation")
    if isinstance(pronunciation, dict):
        pronunciation = pronunciation.get("all", "")
    results = []
    for raw in _sequence(data.get("results"), "results"):
        raw = _mapping(raw, "result")
        results.append(
            DictionaryResult(
                definition=_text(raw.get("definition")),
                part_of_speech=_text(raw.get("partOfSpeech")),
                synonyms=tuple(_texts(raw.get("synonyms"), "synonyms")),
                examples=tuple(_texts(raw.get("examples"), "examples")),
            )
        )
    return DictionaryResponse(
        word=_text(data.get("word")),
        pronunciation=_text(pronunciation),
        results=tuple(results),
    )
