"""Turn accepted files into normalized, header-prefixed units under size ceilings."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from llm_prepare.comments import header_delimiters, strip_comments
from llm_prepare.config import DEFAULT_MAX_FILE_BYTES, DEFAULT_MAX_TOTAL_BYTES, AssembledUnit
from llm_prepare.logging import logger

if TYPE_CHECKING:
    from llm_prepare.config import FileRecord

_HORIZONTAL_WS_RE = re.compile(r"[ \t\f\v]+")
_TRAILING_SPACE_RE = re.compile(r" +\n")
_BLANK_RUN_RE = re.compile(r"\n{3,}")
_ANY_WS_RE = re.compile(r"\s+")
_SENTENCE_END_RE = re.compile(r"([.!?]) ")

# Bytes inspected for a NUL when deciding whether a file is binary.
_BINARY_SNIFF_BYTES = 8192


class AssemblyOptions(BaseModel):
    """How file content is normalized and bounded."""

    model_config = ConfigDict(frozen=True)

    include_comments: bool = Field(default=False, description="Keep comments instead of stripping them.")
    compress: bool = Field(default=False, description="Collapse all whitespace, one sentence per line.")
    comment_style: str | None = Field(default=None, description="Force this token at the start of headers.")
    max_file_bytes: int = Field(default=DEFAULT_MAX_FILE_BYTES, gt=0, description="Per-file size ceiling.")
    max_total_bytes: int = Field(default=DEFAULT_MAX_TOTAL_BYTES, gt=0, description="Cumulative size ceiling.")


@dataclass
class SizeBudget:
    """Running total of assembled bytes, shared by a whole traversal.

    Once a unit would push the total past the ceiling the budget is exhausted
    and every later request is refused. Units accepted before that are kept.
    """

    max_total_bytes: int = DEFAULT_MAX_TOTAL_BYTES
    total_bytes: int = 0
    exhausted: bool = False

    def try_consume(self, size: int) -> bool:
        """Reserve `size` bytes.

        Args:
            size (int): bytes the caller wants to add

        Returns:
            bool: True when the bytes were counted, False when the ceiling is reached
        """
        if self.exhausted:
            return False
        if self.total_bytes + size > self.max_total_bytes:
            self.exhausted = True
            logger.warning(
                "total_size_ceiling_reached",
                total_bytes=self.total_bytes,
                max_total_bytes=self.max_total_bytes,
                rejected_bytes=size,
            )
            return False
        self.total_bytes += size
        return True


def decode_text(raw: bytes) -> str | None:
    """Decode file bytes as UTF-8 text.

    Args:
        raw (bytes): the file content

    Returns:
        str | None: the text, or None when the content looks binary
    """
    if b"\x00" in raw[:_BINARY_SNIFF_BYTES]:
        return None
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        return None
    return text.removeprefix("\ufeff")


def normalize_content(text: str, *, compress: bool = False) -> str:
    """Normalize whitespace.

    Line endings become LF. Runs of horizontal whitespace become one space and
    runs of blank lines become a single blank line. With `compress`, every
    whitespace run (newlines included) becomes one space and a newline follows
    each sentence-ending mark.

    Args:
        text (str): raw file content
        compress (bool): aggressive compression

    Returns:
        str: the normalized text, stripped of leading and trailing whitespace
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    if compress:
        text = _ANY_WS_RE.sub(" ", text)
        return _SENTENCE_END_RE.sub(r"\1\n", text).strip()
    text = _HORIZONTAL_WS_RE.sub(" ", text)
    text = _TRAILING_SPACE_RE.sub("\n", text)
    return _BLANK_RUN_RE.sub("\n\n", text).strip()


class ContentAssembler:
    """Read accepted files and produce `AssembledUnit`s.

    Every produced unit is counted against the shared `SizeBudget`.
    """

    def __init__(self, options: AssemblyOptions | None = None, budget: SizeBudget | None = None) -> None:
        self.options = options or AssemblyOptions()
        self.budget = budget or SizeBudget(max_total_bytes=self.options.max_total_bytes)

    def assemble(self, record: FileRecord) -> AssembledUnit | None:
        """Read, clean and wrap one file.

        Args:
            record (FileRecord): the accepted file

        Returns:
            AssembledUnit | None: the unit, or None when the file is skipped
        """
        if self.budget.exhausted:
            return None
        if record.size > self.options.max_file_bytes:
            logger.warning(
                "file_too_large",
                path=record.rel,
                size=record.size,
                max_file_bytes=self.options.max_file_bytes,
            )
            return None
        try:
            raw = record.path.read_bytes()
        except OSError as e:
            logger.warning("file_unreadable", path=record.rel, error=str(e))
            return None

        text = decode_text(raw)
        if text is None:
            logger.debug("binary_file_skipped", path=record.rel)
            return None
        if not self.options.include_comments:
            text = strip_comments(text, record.path)
        content = normalize_content(text, compress=self.options.compress)
        if not content:
            logger.debug("empty_file_skipped", path=record.rel)
            return None

        delimiters = header_delimiters(record.path, self.options.comment_style)
        unit = AssembledUnit(
            header_comment_style=delimiters.start,
            header_comment_end=delimiters.end,
            relative_path=record.rel,
            normalized_content=content,
        )
        if not self.budget.try_consume(unit.size_bytes):
            return None
        return unit
