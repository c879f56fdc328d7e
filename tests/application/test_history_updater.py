"""Tests for wordkeeper.application.history_updater."""

from datetime import date

import pytest

from wordkeeper.application.history_updater import HistoryUpdater, QuizOutcome
from wordkeeper.domain.errors import MalformedRecordError, OutOfRangeError
from wordkeeper.domain.models import (
    Direction,
    ExpressionState,
    NotebookHistory,
    QuizKind,
    ReviewRecord,
    SceneHistory,
)

TODAY = date(2025, 3, 10)


def story_history():
    return [
        NotebookHistory(
            title="Friends Season 1 Episode 1",
            notebook_id="friends",
            scenes=[
                SceneHistory(
                    title="Central Perk",
                    expressions=[
                        ExpressionState(
                            expression="break up",
                            easiness_factor=2.5,
                            learned_logs=[
                                ReviewRecord(
                                    status="usable",
                                    reviewed_on=date(2025, 3, 4),
                                    quality=4,
                                    interval_days=6,
                                ),
                                ReviewRecord(
                                    status="usable",
                                    reviewed_on=date(2025, 3, 3),
                                    quality=4,
                                    interval_days=1,
                                ),
                            ],
                        )
                    ],
                )
            ],
        )
    ]


def outcome(**kwargs):
    defaults = dict(
        notebook_title="Friends Season 1 Episode 1",
        scene_title="Central Perk",
        expression="break up",
        is_correct=True,
        quality=5,
        notebook_id="friends",
    )
    defaults.update(kwargs)
    return QuizOutcome(**defaults)


# ---------- Existing expressions ----------


def test_correct_answer_prepends_record():
    updater = HistoryUpdater(story_history(), today=TODAY)

    assert updater.record(outcome()) is True

    state = updater.history[0].scenes[0].expressions[0]
    assert len(state.learned_logs) == 3
    newest = state.learned_logs[0]
    assert newest.status == "usable"
    assert newest.reviewed_on == TODAY
    assert newest.quality == 5
    assert newest.quiz_type == "notebook"
    # streak 2 -> 3, last interval 6, ef 2.5 -> 2.6
    assert state.easiness_factor == pytest.approx(2.6)
    assert newest.interval_days == 16


def test_known_word_records_understood():
    updater = HistoryUpdater(story_history(), today=TODAY)
    updater.record(outcome(is_known_word=True))
    assert updater.history[0].scenes[0].expressions[0].learned_logs[0].status == "understood"


def test_wrong_answer_records_misunderstood():
    updater = HistoryUpdater(story_history(), today=TODAY)
    updater.record(outcome(is_correct=False, quality=1))

    state = updater.history[0].scenes[0].expressions[0]
    newest = state.learned_logs[0]
    assert newest.status == "misunderstood"
    assert newest.interval_days == 1
    assert state.easiness_factor == pytest.approx(1.96)


def test_input_is_not_mutated():
    history = story_history()
    updater = HistoryUpdater(history, today=TODAY)
    updater.record(outcome())
    assert len(history[0].scenes[0].expressions[0].learned_logs) == 2


def test_out_of_order_log_is_rejected():
    history = story_history()
    history[0].scenes[0].expressions[0].learned_logs.reverse()
    updater = HistoryUpdater(history, today=TODAY)
    with pytest.raises(MalformedRecordError):
        updater.record(outcome())


# ---------- New expressions ----------


def test_new_expression_in_new_scene():
    updater = HistoryUpdater(story_history(), today=TODAY)

    assert updater.record(outcome(scene_title="Apartment", expression="on a break")) is False

    notebook = updater.history[0]
    assert [s.title for s in notebook.scenes] == ["Central Perk", "Apartment"]
    state = notebook.scenes[1].expressions[0]
    assert state.expression == "on a break"
    assert state.easiness_factor == pytest.approx(2.6)
    assert state.learned_logs[0].interval_days == 1


def test_new_notebook_is_created():
    updater = HistoryUpdater([], today=TODAY)
    updater.record(outcome())

    assert len(updater.history) == 1
    notebook = updater.history[0]
    assert notebook.title == "Friends Season 1 Episode 1"
    assert notebook.notebook_id == "friends"
    assert notebook.kind == "story"
    assert notebook.scenes[0].expressions[0].expression == "break up"


def test_apriori_known_new_expression_is_not_recorded():
    updater = HistoryUpdater([], today=TODAY)
    assert updater.record(outcome(apriori_known=True)) is False
    assert updater.history == []


def test_apriori_known_existing_expression_is_recorded():
    updater = HistoryUpdater(story_history(), today=TODAY)
    assert updater.record(outcome(apriori_known=True)) is True
    assert len(updater.history[0].scenes[0].expressions[0].learned_logs) == 3


def test_apriori_known_leaves_no_new_scene():
    updater = HistoryUpdater(story_history(), today=TODAY)
    updater.record(outcome(scene_title="Apartment", expression="on a break", apriori_known=True))
    assert [s.title for s in updater.history[0].scenes] == ["Central Perk"]


# ---------- Flashcards ----------


def test_flashcard_pool_uses_flat_history():
    updater = HistoryUpdater([], today=TODAY)
    updater.record(outcome(notebook_title="flashcards", scene_title="", expression="serendipity"))

    notebook = updater.history[0]
    assert notebook.is_flashcard
    assert notebook.scenes == []
    assert notebook.expressions[0].expression == "serendipity"


def test_explicit_flashcard_outcome():
    updater = HistoryUpdater([], today=TODAY)
    updater.record(
        outcome(notebook_title="Idioms", scene_title="", expression="spill the beans", flashcard=True)
    )
    assert updater.history[0].is_flashcard
    assert updater.history[0].title == "Idioms"


def test_existing_flashcard_history_is_flat():
    history = [NotebookHistory(title="Idioms", kind="flashcard")]
    updater = HistoryUpdater(history, today=TODAY)
    updater.record(outcome(notebook_title="Idioms", scene_title="", expression="break a leg"))
    updater.record(outcome(notebook_title="Idioms", scene_title="", expression="break a leg"))

    assert len(updater.history[0].expressions) == 1
    assert len(updater.history[0].expressions[0].learned_logs) == 2


# ---------- Reverse direction ----------


def test_reverse_answer_uses_reverse_log():
    updater = HistoryUpdater(story_history(), today=TODAY)
    updater.record(outcome(direction=Direction.REVERSE, quiz_kind=QuizKind.NOTEBOOK))

    state = updater.history[0].scenes[0].expressions[0]
    assert len(state.learned_logs) == 2
    assert len(state.reverse_logs) == 1
    assert state.reverse_logs[0].quiz_type == "reverse"
    assert state.reverse_easiness_factor == pytest.approx(2.6)
    assert state.easiness_factor == pytest.approx(2.5)


def test_reverse_scene_lookup_normalizes_whitespace():
    updater = HistoryUpdater(story_history(), today=TODAY)
    updated = updater.record(
        outcome(scene_title="  Central   Perk ", direction=Direction.REVERSE)
    )
    assert updated is True
    assert len(updater.history[0].scenes) == 1


def test_forward_scene_lookup_is_exact():
    updater = HistoryUpdater(story_history(), today=TODAY)
    assert updater.record(outcome(scene_title="Central  Perk")) is False
    assert len(updater.history[0].scenes) == 2


# ---------- Input errors ----------


def test_empty_expression_is_rejected():
    updater = HistoryUpdater([], today=TODAY)
    with pytest.raises(MalformedRecordError):
        updater.record(outcome(expression="  "))


@pytest.mark.parametrize("quality", [-1, 6])
def test_quality_out_of_range(quality):
    updater = HistoryUpdater([], today=TODAY)
    with pytest.raises(OutOfRangeError):
        updater.record(outcome(quality=quality))
