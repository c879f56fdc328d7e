from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from wordkeeper.domain.constants import (
    DEFAULT_EASINESS_FACTOR,
    DEFAULT_WORDSAPI_HOST,
    MIN_EASINESS_FACTOR,
)


def config_file() -> Path:
    return Path.home() / ".config/wordkeeper/config.toml"


class AppConfig(BaseSettings):
    """
    Configuration model for wordkeeper.
    Supports loading from:
    1. Config file (~/.config/wordkeeper/config.toml)
    2. Environment variables (WORDKEEPER_*)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="WORDKEEPER_",
        extra="ignore",
    )

    # Paths
    story_dirs: list[Path] = Field(default_factory=list)
    flashcard_dirs: list[Path] = Field(default_factory=list)
    learning_notes_dir: Path = Field(default_factory=lambda: Path.cwd() / "learning_notes")
    dictionary_dir: Path = Field(default_factory=lambda: Path.cwd() / "dictionaries")

    # Scheduling
    default_ef: float = DEFAULT_EASINESS_FACTOR
    min_ef: float = MIN_EASINESS_FACTOR
    use_spaced_repetition: bool = True
    include_no_correct_answers: bool = True
    sort_desc: bool = False

    # Dictionary API
    wordsapi_host: str = DEFAULT_WORDSAPI_HOST
    wordsapi_key: str = ""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # Earlier sources win.
        toml_file = config_file()
        if toml_file.exists():
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("story_dirs", "flashcard_dirs", mode="before")
    @classmethod
    def split_dirs(cls, v: Any) -> Any:
        if isinstance(v, (str, Path)):
            return [Path(p.strip()) for p in str(v).split(",") if p.strip()]
        return v

    @field_validator("learning_notes_dir", "dictionary_dir", mode="before")
    @classmethod
    def expand_dir(cls, v: Any) -> Any:
        if isinstance(v, (str, Path)):
            return Path(v).expanduser()
        return v

    @field_validator("min_ef")
    @classmethod
    def positive_min_ef(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("min_ef must be positive")
        return v


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/wordkeeper/config.toml (if exists)
    3. Environment variables (WORDKEEPER_*)
    4. cli_overrides (passed from Typer)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
