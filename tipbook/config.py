"""Configuration for the book generator.

Settings come from environment variables. The API key is read from the same
variables the Gemini SDK uses (`GEMINI_API_KEY`, then `GOOGLE_API_KEY`); the
other settings use the `TIPBOOK_` prefix.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from tipbook.errors import ConfigError
from tipbook.utils import TextGenerator


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TIPBOOK_",
        extra="ignore",
        populate_by_name=True,
    )

    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    )

    # The outline needs a stronger model than the chapters
    structure_model: str = "models/gemini-3-pro-preview"
    chapter_model: str = "models/gemini-2.5-flash"

    output_root: Path = Field(default_factory=Path.cwd)


def load_settings(**overrides) -> Settings:
    """Loads settings from the environment and checks the API key is present."""
    settings = Settings(**overrides)
    if not settings.api_key:
        raise ConfigError(
            "GEMINI_API_KEY environment variable is not set.\n"
            "Please set your Gemini API key using:\n"
            "export GEMINI_API_KEY='your-api-key'"
        )
    return settings


@dataclass
class RunContext:
    """Everything a single run needs, created once in main()."""

    settings: Settings
    outline_generator: TextGenerator
    chapter_generator: TextGenerator
    ask: Callable[[str], str]

    supports_checkpoint: bool = True
    items_only: bool = False
    input_file: Optional[Path] = None
