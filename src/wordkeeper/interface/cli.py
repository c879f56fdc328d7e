"""wordkeeper CLI: validation, review selection, answer recording and dictionary lookups."""

import asyncio
import json
import logging
import sys
from collections.abc import Callable
from datetime import date
from pathlib import Path
from typing import Annotated, Any

import typer

from wordkeeper.application.config import AppConfig, resolve_config
from wordkeeper.application.fixer import ConsistencyFixer
from wordkeeper.application.history_updater import HistoryUpdater, QuizOutcome
from wordkeeper.application.review_filter import ReviewFilter, ReviewFilterOptions
from wordkeeper.application.scheduling import SchedulingConfig, SchedulingEngine
from wordkeeper.application.validator import ConsistencyValidator, Corpus
from wordkeeper.domain.constants import MAX_DISPLAYED_WARNINGS
from wordkeeper.domain.diagnostics import ValidationResult
from wordkeeper.domain.errors import WordkeeperError
from wordkeeper.domain.models import Direction, QuizKind
from wordkeeper.infrastructure.codec import flashcard_to_dict, story_to_dict
from wordkeeper.infrastructure.repositories import (
    FileDictionaryCache,
    YamlHistoryRepository,
    YamlNotebookRepository,
)

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="wordkeeper: spaced-repetition vocabulary notebooks.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

config_app = typer.Typer(help="Manage wordkeeper configuration.")
app.add_typer(config_app, name="config")

dictionary_app = typer.Typer(help="Dictionary cache management.", no_args_is_help=True)
app.add_typer(dictionary_app, name="dictionary")


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    story_dir: Annotated[
        list[Path] | None, typer.Option("--story-dir", help="Story notebook directory.")
    ] = None,
    flashcard_dir: Annotated[
        list[Path] | None, typer.Option("--flashcard-dir", help="Flashcard notebook directory.")
    ] = None,
    notes_dir: Annotated[
        Path | None, typer.Option("--notes-dir", help="Learning history directory.")
    ] = None,
    dictionary_dir: Annotated[
        Path | None, typer.Option("--dictionary-dir", help="Dictionary cache directory.")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging.")] = False,
):
    """Global settings for wordkeeper."""
    if verbose:
        logging.getLogger("wordkeeper").setLevel(logging.DEBUG)
    ctx.ensure_object(dict)
    ctx.obj["overrides"] = {
        "story_dirs": story_dir or None,
        "flashcard_dirs": flashcard_dir or None,
        "learning_notes_dir": notes_dir,
        "dictionary_dir": dictionary_dir,
    }


# ---------------------------------------------------------------------------
# Wiring helpers
# ---------------------------------------------------------------------------


def _config(ctx: typer.Context, **extra: Any) -> AppConfig:
    overrides = dict((ctx.obj or {}).get("overrides", {}))
    overrides.update(extra)
    return resolve_config(overrides)


def _engine(config: AppConfig) -> SchedulingEngine:
    return SchedulingEngine(SchedulingConfig(default_ef=config.default_ef, min_ef=config.min_ef))


def _load_corpus(config: AppConfig) -> Corpus:
    notebooks = YamlNotebookRepository(config.story_dirs, config.flashcard_dirs)
    histories = YamlHistoryRepository(config.learning_notes_dir)
    return Corpus(
        histories=histories.load_all(),
        stories=[f for files in notebooks.load_story_notebooks().values() for f in files],
        flashcards=[f for files in notebooks.load_flashcard_notebooks().values() for f in files],
    )


def _run(action: Callable[[], Any]) -> Any:
    try:
        return action()
    except WordkeeperError as e:
        typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(1)


def _json_default(value: Any) -> str:
    if isinstance(value, (date, Path)):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _print_result(result: ValidationResult, show_all: bool) -> None:
    for diag in result.errors:
        typer.secho(str(diag), fg="red")

    warnings = result.warnings if show_all else result.warnings[:MAX_DISPLAYED_WARNINGS]
    for diag in warnings:
        typer.secho(str(diag), fg="yellow")
    hidden = len(result.warnings) - len(warnings)
    if hidden > 0:
        typer.echo(f"... and {hidden} more warnings (use --all to show them)")


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command()
def validate(
    ctx: typer.Context,
    fix: Annotated[bool, typer.Option("--fix", help="Apply automatic fixes and write them back.")] = False,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
    show_all: Annotated[bool, typer.Option("--all", help="Show every warning.")] = False,
):
    """Check learning history, story and flashcard notebooks for consistency."""
    config = _config(ctx)
    dictionary = FileDictionaryCache(config.dictionary_dir)

    def _validate() -> tuple[ValidationResult, ValidationResult | None]:
        corpus = _load_corpus(config)
        if not fix:
            return ConsistencyValidator(dictionary).validate(corpus), None

        outcome = ConsistencyFixer(dictionary, config.learning_notes_dir).fix(corpus)
        histories = YamlHistoryRepository(config.learning_notes_dir)
        notebooks = YamlNotebookRepository(config.story_dirs, config.flashcard_dirs)
        for hf in outcome.modified_files(outcome.corpus.histories):
            histories.persist(hf.path, hf.contents)
        for sf in outcome.modified_files(outcome.corpus.stories):
            notebooks.persist_stories(sf.path, sf.contents)
        for ff in outcome.modified_files(outcome.corpus.flashcards):
            notebooks.persist_flashcards(ff.path, ff.contents)
        logger.info(f"Wrote {len(outcome.modified)} fixed files")
        return ConsistencyValidator(dictionary).validate(outcome.corpus), outcome.result

    result, fixes = _run(_validate)

    if json_output:
        payload = {"ok": not result.has_errors, **result.to_dict()}
        if fixes is not None:
            payload["fixes"] = [d.to_dict() for d in fixes.warnings]
        typer.echo(json.dumps(payload, indent=2))
    else:
        if fixes is not None:
            for diag in fixes.warnings:
                typer.secho(f"fixed: {diag}", fg="green")
        _print_result(result, show_all)
        if result.has_errors:
            typer.secho(
                f"\n{len(result.errors)} errors, {len(result.warnings)} warnings", fg="red"
            )
        else:
            typer.secho(f"\nOK ({len(result.warnings)} warnings)", fg="green")

    if result.has_errors:
        raise typer.Exit(1)


@app.command()
def review(
    ctx: typer.Context,
    notebook_id: Annotated[str, typer.Argument(help="Notebook id from its index.yml.")],
    flashcards: Annotated[
        bool, typer.Option("--flashcards", help="Review a flashcard notebook.")
    ] = False,
    no_spaced: Annotated[
        bool, typer.Option("--no-spaced", help="Include everything not yet usable.")
    ] = False,
    only_correct: Annotated[
        bool,
        typer.Option("--only-answered", help="Skip words never answered correctly."),
    ] = False,
    desc: Annotated[bool, typer.Option("--desc", help="Newest notebooks first.")] = False,
    reverse: Annotated[
        bool, typer.Option("--reverse", help="Schedule from the reverse-quiz log.")
    ] = False,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List the expressions of a notebook that are due for review."""
    config = _config(ctx)
    options = ReviewFilterOptions(
        use_spaced_repetition=config.use_spaced_repetition and not no_spaced,
        include_no_correct_answers=config.include_no_correct_answers and not only_correct,
        sort_desc=config.sort_desc or desc,
        direction=Direction.REVERSE if reverse else Direction.FORWARD,
    )
    review_filter = ReviewFilter(engine=_engine(config), options=options)
    notebooks_repo = YamlNotebookRepository(config.story_dirs, config.flashcard_dirs)
    history_repo = YamlHistoryRepository(config.learning_notes_dir)

    def _filter() -> list[dict]:
        history = history_repo.load_learning_history(history_repo.path_for(notebook_id))
        dictionary = FileDictionaryCache(config.dictionary_dir).load()
        if flashcards:
            files = notebooks_repo.load_flashcard_notebooks().get(notebook_id, [])
            cards = [n for f in files for n in f.contents]
            return [
                flashcard_to_dict(n)
                for n in review_filter.filter_flashcards(cards, history, dictionary)
            ]
        files = notebooks_repo.load_story_notebooks().get(notebook_id, [])
        stories = [n for f in files for n in f.contents]
        return [story_to_dict(n) for n in review_filter.filter_stories(stories, history, dictionary)]

    due = _run(_filter)

    if json_output:
        typer.echo(json.dumps(due, indent=2, default=_json_default, ensure_ascii=False))
        return

    if not due:
        typer.secho("Nothing to review.", fg="green")
        return

    total = 0
    for notebook in due:
        if flashcards:
            typer.secho(notebook["title"], bold=True)
            groups = [("", notebook["cards"])]
        else:
            typer.secho(notebook["event"], bold=True)
            groups = [(s["scene"], s["definitions"]) for s in notebook["scenes"]]
        for scene_title, entries in groups:
            if scene_title:
                typer.echo(f"  {scene_title}")
            for entry in entries:
                total += 1
                text = entry.get("definition") or entry["expression"]
                meaning = entry.get("meaning", "")
                typer.echo(f"    - {text}" + (f": {meaning}" if meaning else ""))
    typer.secho(f"\n{total} expressions due", fg="yellow")


@app.command()
def answer(
    ctx: typer.Context,
    notebook_id: Annotated[str, typer.Argument(help="Notebook id; names the history file.")],
    expression: Annotated[str, typer.Argument(help="Expression that was quizzed.")],
    title: Annotated[
        str, typer.Option("--title", help="Story event or flashcard notebook title.")
    ],
    quality: Annotated[int, typer.Option("--quality", "-q", min=0, max=5, help="Grade 0-5.")],
    scene: Annotated[str, typer.Option("--scene", help="Scene title (stories).")] = "",
    correct: Annotated[
        bool | None,
        typer.Option("--correct/--wrong", help="Defaults to quality >= 3."),
    ] = None,
    known: Annotated[
        bool, typer.Option("--known", help="Record 'understood' instead of 'usable'.")
    ] = False,
    apriori: Annotated[
        bool, typer.Option("--apriori", help="Word was known before tracking started.")
    ] = False,
    reverse: Annotated[bool, typer.Option("--reverse", help="Reverse-direction quiz.")] = False,
    flashcard: Annotated[bool, typer.Option("--flashcard", help="Flashcard notebook.")] = False,
    freeform: Annotated[bool, typer.Option("--freeform", help="Free-form quiz.")] = False,
    response_ms: Annotated[int, typer.Option("--response-ms", help="Response time.")] = 0,
):
    """Record one quiz answer in the learning history."""
    config = _config(ctx)
    history_repo = YamlHistoryRepository(config.learning_notes_dir)
    path = history_repo.path_for(notebook_id)

    outcome = QuizOutcome(
        notebook_title=title,
        expression=expression,
        is_correct=quality >= 3 if correct is None else correct,
        quality=quality,
        scene_title=scene,
        notebook_id=notebook_id,
        is_known_word=known,
        apriori_known=apriori,
        response_time_ms=response_ms,
        quiz_kind=QuizKind.FREEFORM if freeform else QuizKind.NOTEBOOK,
        direction=Direction.REVERSE if reverse else Direction.FORWARD,
        flashcard=flashcard,
    )

    def _record() -> bool:
        updater = HistoryUpdater(history_repo.load_learning_history(path), engine=_engine(config))
        updated = updater.record(outcome)
        history_repo.persist(path, updater.history)
        return updated

    updated = _run(_record)
    verb = "Updated" if updated else "Recorded"
    typer.secho(f"{verb} '{expression}' in {path}", fg="green")


# ---------------------------------------------------------------------------
# Dictionary subgroup
# ---------------------------------------------------------------------------


@dictionary_app.command("lookup")
def dictionary_lookup(
    ctx: typer.Context,
    word: Annotated[str, typer.Argument(help="Word or phrase to look up.")],
    refresh: Annotated[bool, typer.Option("--refresh", help="Ignore the cached entry.")] = False,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Fetch a WordsAPI entry into the dictionary cache."""
    from wordkeeper.infrastructure.adapters.wordsapi import WordsApiClient

    config = _config(ctx)
    cache = FileDictionaryCache(config.dictionary_dir)
    if not config.wordsapi_key and (refresh or not cache.has_entry(word)):
        typer.secho("WordsAPI key missing: set WORDKEEPER_WORDSAPI_KEY.", fg="red", err=True)
        raise typer.Exit(1)

    client = WordsApiClient(config.wordsapi_key, cache, host=config.wordsapi_host)

    async def _lookup():
        try:
            return await client.lookup(word, refresh=refresh)
        finally:
            await client.close()

    response = _run(lambda: asyncio.run(_lookup()))
    if response is None:
        typer.secho(f"No dictionary entry for '{word}'.", fg="yellow")
        raise typer.Exit(1)

    if json_output:
        typer.echo(
            json.dumps(
                {
                    "word": response.word,
                    "pronunciation": response.pronunciation,
                    "path": str(cache.path_for(word)),
                    "results": [
                        {
                            "definition": r.definition,
                            "part_of_speech": r.part_of_speech,
                            "synonyms": list(r.synonyms),
                            "examples": list(r.examples),
                        }
                        for r in response.results
                    ],
                },
                indent=2,
                ensure_ascii=False,
            )
        )
        return

    typer.secho(response.word or word, bold=True)
    for number, result in enumerate(response.results, start=1):
        pos = f" ({result.part_of_speech})" if result.part_of_speech else ""
        typer.echo(f"  {number}.{pos} {result.definition}")


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _config(ctx)
    d = {}
    for k, v in config.model_dump().items():
        if k == "wordsapi_key":
            v = "***" if v else ""
        elif isinstance(v, Path):
            v = str(v)
        elif isinstance(v, list):
            v = [str(p) for p in v]
        d[k] = v
    typer.echo(json.dumps(d, indent=2))


def main():
    app()


if __name__ == "__main__":
    main()
