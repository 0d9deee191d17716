from __future__ import annotations

from enum import StrEnum, auto
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, computed_field

_ = Path()

DEFAULT_MAX_FILE_BYTES = 1_048_576
DEFAULT_MAX_TOTAL_BYTES = 52_428_800
DEFAULT_MAX_LAYOUT_BYTES = 131_072
LAYOUT_TRUNCATED_MARKER = "[layout truncated]"
OUTPUT_DIR_ENV = "LLM_PREPARE_OUTPUT_DIR"


class FileType(StrEnum):
    """Categorization of file types, used to pick comment syntax and header delimiters.

    This is a heuristic classification based on file extensions only.
    """

    TEXT = auto()
    PYTHON = auto()
    RUBY = auto()
    PERL = auto()
    SHELL = auto()
    JAVASCRIPT = auto()
    TYPESCRIPT = auto()
    C = auto()
    CPP = auto()
    CSHARP = auto()
    JAVA = auto()
    GO = auto()
    RUST = auto()
    SWIFT = auto()
    KOTLIN = auto()
    SCALA = auto()
    DART = auto()
    PHP = auto()
    HTML = auto()
    XML = auto()
    MARKDOWN = auto()
    CSS = auto()
    SCSS = auto()
    JSON = auto()
    YAML = auto()
    TOML = auto()
    INI = auto()
    SQL = auto()
    LUA = auto()
    R = auto()
    OTHER = auto()


EXT2LANG: dict[str, FileType] = {
    ".bash": FileType.SHELL,
    ".c": FileType.C,
    ".cc": FileType.CPP,
    ".cfg": FileType.INI,
    ".conf": FileType.INI,
    ".cpp": FileType.CPP,
    ".cs": FileType.CSHARP,
    ".css": FileType.CSS,
    ".cxx": FileType.CPP,
    ".dart": FileType.DART,
    ".fish": FileType.SHELL,
    ".go": FileType.GO,
    ".h": FileType.C,
    ".hpp": FileType.CPP,
    ".htm": FileType.HTML,
    ".html": FileType.HTML,
    ".ini": FileType.INI,
    ".java": FileType.JAVA,
    ".js": FileType.JAVASCRIPT,
    ".json": FileType.JSON,
    ".jsx": FileType.JAVASCRIPT,
    ".kt": FileType.KOTLIN,
    ".kts": FileType.KOTLIN,
    ".less": FileType.SCSS,
    ".lua": FileType.LUA,
    ".markdown": FileType.MARKDOWN,
    ".md": FileType.MARKDOWN,
    ".mjs": FileType.JAVASCRIPT,
    ".php": FileType.PHP,
    ".pl": FileType.PERL,
    ".pm": FileType.PERL,
    ".py": FileType.PYTHON,
    ".r": FileType.R,
    ".rb": FileType.RUBY,
    ".rs": FileType.RUST,
    ".scala": FileType.SCALA,
    ".scss": FileType.SCSS,
    ".sh": FileType.SHELL,
    ".sql": FileType.SQL,
    ".svg": FileType.XML,
    ".swift": FileType.SWIFT,
    ".toml": FileType.TOML,
    ".ts": FileType.TYPESCRIPT,
    ".tsx": FileType.TYPESCRIPT,
    ".txt": FileType.TEXT,
    ".xml": FileType.XML,
    ".yaml": FileType.YAML,
    ".yml": FileType.YAML,
    ".zsh": FileType.SHELL,
}


def guess_file_type(path: Path) -> FileType:
    """Heuristic guess of file type based on extension.

    Args:
        path (Path): The file path to guess the type for.

    Returns:
        FileType: The guessed file type, or FileType.OTHER if unknown.
    """
    return EXT2LANG.get(path.suffix.lower(), FileType.OTHER)


class FileRecord(BaseModel):
    """Metadata for a file accepted during traversal.

    Records are created by the directory walk, never mutated, and dropped once
    the file content has been assembled.

    Attributes:
        path: Absolute path to the file on disk.
        rel: Path relative to the traversal root, with POSIX separators.
        size: File size in bytes.
        depth: Number of directories between the root and the file.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    path: Path = Field(..., description="Absolute file path")
    rel: str = Field(..., description="File path relative to the traversal root")
    size: int = Field(..., ge=0, description="File size in bytes")
    depth: int = Field(default=0, ge=0, description="Directory depth below the root")

    @computed_field
    @property
    def file_type(self) -> FileType:
        """Categorize the file type based on extension."""
        return guess_file_type(self.path)


class AssembledUnit(BaseModel):
    """One file's normalized content, ready to be concatenated into the output stream."""

    model_config = ConfigDict(frozen=True)

    header_comment_style: str = Field(..., description="Comment token opening the header line")
    header_comment_end: str = Field(default="", description="Closing token for block-style headers")
    relative_path: str = Field(..., description="Path relative to the project root")
    normalized_content: str = Field(..., description="Content after stripping and whitespace normalization")

    @computed_field
    @property
    def header(self) -> str:
        """Line identifying the file, written in the file's own comment syntax."""
        line = f"{self.header_comment_style} FILE: {self.relative_path}"
        return f"{line} {self.header_comment_end}" if self.header_comment_end else line

    @computed_field
    @property
    def text(self) -> str:
        """Header line followed by the normalized content."""
        return f"{self.header}\n{self.normalized_content}\n"

    @computed_field
    @property
    def size_bytes(self) -> int:
        """UTF-8 size of `text`, the quantity counted against the total ceiling."""
        return len(self.text.encode("utf-8"))


class FolderOutputUnit(BaseModel):
    """Aggregated output scoped to a single directory."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    directory_path: Path = Field(..., description="Absolute directory path")
    relative_directory: str = Field(..., description="Directory relative to the project root ('.' for root)")
    content: str = Field(..., description="Layout and file blocks for this directory")
    output_filename: str = Field(..., description="File name written inside the directory")

    @computed_field
    @property
    def output_path(self) -> Path:
        """Where this unit is written."""
        return self.directory_path / self.output_filename
