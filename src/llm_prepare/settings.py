from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from llm_prepare.config import (
    DEFAULT_MAX_FILE_BYTES,
    DEFAULT_MAX_LAYOUT_BYTES,
    DEFAULT_MAX_TOTAL_BYTES,
    OUTPUT_DIR_ENV,
)
from llm_prepare.exceptions import InvalidParameterError
from llm_prepare.partitioning import DepthSpec, parse_depth_spec
from llm_prepare.prompting import parse_variables
from llm_prepare.truncation import TruncationStrategy, parse_strategy

ENV_FILE = find_dotenv(usecwd=True)


def default_output_dir() -> Path | None:
    """Directory for relative output files, taken from `LLM_PREPARE_OUTPUT_DIR` (`.env` honored)."""
    if ENV_FILE:
        load_dotenv(ENV_FILE, override=False)
    value = os.environ.get(OUTPUT_DIR_ENV, "").strip()
    return Path(value) if value else None


class Settings(BaseModel):
    """Configuration settings for one llm-prepare run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    path: Path | None = Field(default=None, description="Project directory (or single file) to aggregate.")
    input: str | None = Field(default=None, description="Text source: file path, URL, or '-' for stdin.")
    include: list[Path] = Field(default_factory=list, description="Roots from the config file, used without --path.")
    file_pattern: str = Field(default="*", description="Wildcard for file names, '*' matches all.")
    output: Path | None = Field(default=None, description="Output file; stdout when absent.")
    output_dir: Path | None = Field(
        default_factory=default_output_dir,
        description="Base directory for a relative output file.",
    )

    ignore_gitignore: bool = Field(default=False, description="Do not load the root .gitignore.")
    custom_ignore_string: str = Field(default="", description="Comma-separated ignore patterns.")
    custom_ignore_filename: list[Path] = Field(default_factory=list, description="Extra ignore files.")
    default_ignore: Path | None = Field(default=None, description="File replacing the built-in ignore patterns.")
    show_default_ignore: bool = Field(default=False, description="Print the default ignore patterns and exit.")

    include_comments: bool = Field(default=False, description="Keep comments in source files.")
    compress: bool = Field(default=False, description="Aggressive whitespace compression.")
    comment_style: str | None = Field(default=None, description="Force the header comment token.")
    suppress_layout: bool = Field(default=False, description="Omit the layout tree.")

    max_tokens: int | None = Field(default=None, gt=0, description="Token budget of the final text.")
    truncate: TruncationStrategy = Field(default=TruncationStrategy.END, description="Truncation strategy.")
    chunk_size: int | None = Field(default=None, gt=0, description="Chunk size in kilobytes.")
    folder_output_level: DepthSpec | None = Field(default=None, description="Folder depth or 'all'.")

    max_file_bytes: int = Field(default=DEFAULT_MAX_FILE_BYTES, gt=0, description="Per-file size ceiling.")
    max_total_bytes: int = Field(default=DEFAULT_MAX_TOTAL_BYTES, gt=0, description="Total size ceiling.")
    max_layout_bytes: int = Field(default=DEFAULT_MAX_LAYOUT_BYTES, gt=0, description="Layout size ceiling.")

    prompt: Path | None = Field(default=None, description="Prompt template file.")
    variables: dict[str, Any] = Field(default_factory=dict, description="Template variables.")
    system: str | None = Field(default=None, description="System message placed before the text.")
    user: str | None = Field(default=None, description="User message placed after the text.")

    config: Path | None = Field(default=None, description="YAML/JSON configuration file.")
    log_file: Path | None = Field(default=None, description="Log file path.")
    debug: bool = Field(default=False, description="Debug logging.")

    @field_validator("truncate", mode="before")
    @classmethod
    def _check_truncate(cls, value: Any) -> TruncationStrategy:
        return parse_strategy(value)

    @field_validator("folder_output_level", mode="before")
    @classmethod
    def _check_folder_level(cls, value: Any) -> DepthSpec | None:
        return None if value is None else parse_depth_spec(value)

    @field_validator("variables", mode="before")
    @classmethod
    def _check_variables(cls, value: Any) -> dict[str, Any]:
        return parse_variables(value)

    @model_validator(mode="after")
    def _check_modes(self) -> Settings:
        if self.path is not None and self.input is not None:
            raise InvalidParameterError(
                parameter="input",
                value=self.input,
                message="--path and --input are mutually exclusive",
            )
        if self.folder_output_level is not None:
            if self.output is None:
                raise InvalidParameterError(
                    parameter="folder_output_level",
                    value=self.folder_output_level,
                    message="folder output requires --output",
                )
            if self.input is not None:
                raise InvalidParameterError(
                    parameter="folder_output_level",
                    value=self.folder_output_level,
                    message="folder output only applies to --path",
                )
        return self

    @property
    def directory_mode(self) -> bool:
        """True when project roots are aggregated, False for a text source."""
        return self.input is None and (self.path is not None or bool(self.include))

    @property
    def roots(self) -> list[Path]:
        """Roots to aggregate, `--path` winning over config includes."""
        if self.path is not None:
            return [self.path]
        return list(self.include)
