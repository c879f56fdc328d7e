"""Tests for wordkeeper.infrastructure.codec."""

from datetime import date, datetime, timezone

import pytest

from wordkeeper.domain.models import (
    ExpressionState,
    NotebookHistory,
    ReviewRecord,
    SceneHistory,
)
from wordkeeper.infrastructure.codec import (
    dictionary_response_from_dict,
    entry_from_dict,
    entry_to_dict,
    history_from_dict,
    history_to_dict,
    parse_date,
    record_to_dict,
    story_from_dict,
    story_to_dict,
)

# ---------- Dates ----------


@pytest.mark.parametrize(
    "value, expected",
    [
        (date(2025, 3, 1), date(2025, 3, 1)),
        (datetime(2025, 3, 1, 23, 59, tzinfo=timezone.utc), date(2025, 3, 1)),
        ("2025-03-01", date(2025, 3, 1)),
        ("2025-03-01T09:30:00Z", date(2025, 3, 1)),
        ("2025-03-01T09:30:00+09:00", date(2025, 3, 1)),
        ("yesterday", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_date(value, expected):
    assert parse_date(value) == expected


# ---------- History ----------


def test_history_from_dict():
    history = history_from_dict(
        {
            "metadata": {"id": "friends", "title": "Episode 1"},
            "scenes": [
                {
                    "metadata": {"title": "Cafe"},
                    "expressions": [
                        {
                            "expression": "break",
                            "learned_logs": [
                                {"status": "usable", "learned_at": "2025-03-01", "quality": 4}
                            ],
                            "easiness_factor": 2.36,
                        }
                    ],
                }
            ],
        }
    )
    assert history.notebook_id == "friends"
    assert history.kind == "story"
    state = history.scenes[0].expressions[0]
    assert state.easiness_factor == pytest.approx(2.36)
    assert state.learned_logs[0] == ReviewRecord(
        status="usable", reviewed_on=date(2025, 3, 1), quality=4
    )


def test_flashcard_history_kind():
    history = history_from_dict(
        {"metadata": {"title": "flashcards", "type": "flashcard"}, "expressions": [{"expression": "x"}]}
    )
    assert history.is_flashcard
    assert history.expressions[0].expression == "x"


def test_history_to_dict_omits_empty_fields():
    history = NotebookHistory(
        title="Episode 1",
        notebook_id="friends",
        scenes=[
            SceneHistory(
                title="Cafe",
                expressions=[
                    ExpressionState(
                        expression="break",
                        learned_logs=[ReviewRecord(status="", reviewed_on=date(2025, 3, 1))],
                    ),
                    ExpressionState(expression="new"),
                ],
            )
        ],
    )
    data = history_to_dict(history)
    assert data == {
        "metadata": {"id": "friends", "title": "Episode 1"},
        "scenes": [
            {
                "metadata": {"title": "Cafe"},
                "expressions": [
                    {"expression": "break", "learned_logs": [{"learned_at": date(2025, 3, 1)}]},
                    {"expression": "new", "learned_logs": []},
                ],
            }
        ],
    }


def test_flashcard_history_to_dict():
    history = NotebookHistory(
        title="flashcards",
        kind="flashcard",
        expressions=[ExpressionState(expression="x", easiness_factor=2.6)],
    )
    data = history_to_dict(history)
    assert data["metadata"]["type"] == "flashcard"
    assert "scenes" not in data
    assert data["expressions"] == [{"expression": "x", "learned_logs": [], "easiness_factor": 2.6}]


def test_record_to_dict_field_order():
    record = ReviewRecord(
        status="usable",
        reviewed_on=date(2025, 3, 1),
        quality=5,
        interval_days=6,
        quiz_type="reverse",
        response_time_ms=1200,
    )
    assert list(record_to_dict(record)) == [
        "status",
        "learned_at",
        "quality",
        "response_time_ms",
        "quiz_type",
        "interval_days",
    ]


def test_malformed_history_raises_value_error():
    with pytest.raises(ValueError):
        history_from_dict({"metadata": {"title": "x"}, "scenes": "not a list"})


# ---------- Notebooks ----------


def test_entry_unknown_keys_survive_round_trip():
    raw = {"expression": "break", "meaning": "a pause", "mood": "dramatic", "not_used": True}
    entry = entry_from_dict(raw)
    assert entry.extra == {"mood": "dramatic"}
    assert entry.not_used
    assert entry_to_dict(entry) == raw


def test_story_round_trip_keeps_extras():
    raw = {
        "event": "Friends Season 1 Episode 1",
        "metadata": {"series": "Friends", "season": 1, "episode": 1, "network": "NBC"},
        "date": date(2025, 1, 10),
        "scenes": [
            {
                "scene": "Central Perk",
                "conversations": [{"speaker": "Ross", "quote": "{{ break }}"}],
                "definitions": [{"expression": "break", "dictionary_number": 1}],
            }
        ],
    }
    notebook = story_from_dict(raw)
    assert notebook.metadata.extra == {"network": "NBC"}
    assert notebook.scenes[0].definitions[0].dictionary_number == 1
    assert story_to_dict(notebook) == raw


# ---------- Dictionary ----------


def test_dictionary_response_pronunciation_forms():
    nested = dictionary_response_from_dict(
        {
            "word": "break",
            "pronunciation": {"all": "breɪk"},
            "results": [{"definition": "a pause", "partOfSpeech": "noun", "synonyms": ["rest"]}],
        }
    )
    assert nested.pronunciation == "breɪk"
    assert nested.results[0].part_of_speech == "noun"
    assert nested.results[0].synonyms == ("rest",)
    assert nested.results[0].examples == ()

    flat = dictionary_response_from_dict({"word": "a", "pronunciation": "eɪ"})
    assert flat.pronunciation == "eɪ"
    assert flat.results == ()
