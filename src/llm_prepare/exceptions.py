from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class LlmPrepareError(Exception):
    """Base exception for errors in the llm_prepare package."""

    def __str__(self) -> str:
        return getattr(self, "message", self.__class__.__doc__ or self.__class__.__name__)


@dataclass(frozen=True)
class InvalidPathError(LlmPrepareError):
    """Raised when the top-level root or an input file does not exist."""

    path: Path
    message: str = "invalid path"

    def __str__(self) -> str:
        return f"{self.message}: {self.path}"


@dataclass(frozen=True)
class InvalidParameterError(LlmPrepareError):
    """Raised when a user supplied parameter is rejected before any side effect."""

    parameter: str
    value: object
    message: str = "invalid value"

    def __str__(self) -> str:
        return f"{self.message} for {self.parameter}: {self.value!r}"


@dataclass(frozen=True)
class SourceReadError(LlmPrepareError):
    """Raised when an input source (file, stdin, URL, template) cannot be read."""

    source: str
    message: str = "cannot read source"

    def __str__(self) -> str:
        return f"{self.message}: {self.source}"


@dataclass(frozen=True)
class FolderOutputError(LlmPrepareError):
    """Raised when folder partitioning could not write any of its units."""

    attempted: int
    succeeded: int
    message: str = "no folder output could be written"

    def __str__(self) -> str:
        return f"{self.message} ({self.succeeded}/{self.attempted} succeeded)"


@dataclass(frozen=True)
class OutputWriteError(LlmPrepareError):
    """Raised when the single output file (or one of its chunks) cannot be written."""

    path: Path
    message: str = "cannot write output"

    def __str__(self) -> str:
        return f"{self.message}: {self.path}"
