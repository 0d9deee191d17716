"""Split an assembled stream into byte-bounded chunks, or into one output per directory.

Chunking never rewrites text: each chunk remembers the boundary text that was
dropped after it, so `join_chunks` gives back the input exactly.
"""

from __future__ import annotations

import numbers
import re
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field

from llm_prepare.aggregator import WalkResult, build_tree_lines
from llm_prepare.config import FolderOutputUnit
from llm_prepare.exceptions import InvalidParameterError
from llm_prepare.logging import logger
from llm_prepare.output_construction import build_document

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from llm_prepare.config import AssembledUnit

ALL_DEPTHS = "all"

_PARAGRAPH_SPLIT_RE = re.compile(r"(\n\s*\n)")
_SENTENCE_SPLIT_RE = re.compile(r"((?<=[.!?])\s+)")

DepthSpec = int | Literal["all"]


class Chunk(BaseModel):
    """A contiguous slice of the stream."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=1, description="Position of the chunk, starting at 1")
    text: str = Field(..., description="Chunk content")
    separator: str = Field(default="", description="Boundary text that followed the chunk in the input")

    @property
    def size_bytes(self) -> int:
        return len(self.text.encode("utf-8"))


def _nbytes(text: str) -> int:
    return len(text.encode("utf-8"))


def validate_max_bytes(max_bytes: object) -> int:
    """Reject chunk sizes that are not positive integers.

    Args:
        max_bytes (object): requested chunk size in bytes

    Raises:
        InvalidParameterError: when the size is not a positive integer

    Returns:
        int: the size
    """
    if isinstance(max_bytes, bool) or not isinstance(max_bytes, numbers.Integral):
        raise InvalidParameterError(parameter="chunk_size", value=max_bytes, message="chunk size must be an integer")
    if max_bytes <= 0:
        raise InvalidParameterError(parameter="chunk_size", value=max_bytes, message="chunk size must be positive")
    return int(max_bytes)


def _split_keeping_separators(text: str, pattern: re.Pattern[str]) -> list[tuple[str, str]]:
    """Split on a capturing pattern into `(piece, separator_after)` pairs."""
    parts = pattern.split(text)
    pairs = [(parts[i], parts[i + 1]) for i in range(0, len(parts) - 1, 2)]
    pairs.append((parts[-1], ""))
    return pairs


def slice_utf8(text: str, max_bytes: int) -> list[str]:
    """Cut text into pieces of at most `max_bytes` UTF-8 bytes, never inside a character.

    A single character wider than `max_bytes` is emitted alone.

    Args:
        text (str): the text to cut
        max_bytes (int): maximum piece size

    Returns:
        list[str]: the pieces, in order
    """
    data = text.encode("utf-8")
    pieces: list[str] = []
    start = 0
    while start < len(data):
        end = min(start + max_bytes, len(data))
        # back off continuation bytes (10xxxxxx) to land on a character start
        while end < len(data) and end > start and (data[end] & 0xC0) == 0x80:
            end -= 1
        if end == start:
            end = start + 1
            while end < len(data) and (data[end] & 0xC0) == 0x80:
                end += 1
        pieces.append(data[start:end].decode("utf-8"))
        start = end
    return pieces


def _units(text: str, max_bytes: int) -> Iterator[tuple[str, str]]:
    """Yield the indivisible `(piece, separator_after)` units of the stream.

    Paragraphs first, sentences for paragraphs that are too large, byte
    slices for sentences that are still too large.
    """
    for paragraph, para_sep in _split_keeping_separators(text, _PARAGRAPH_SPLIT_RE):
        if _nbytes(paragraph) <= max_bytes:
            yield paragraph, para_sep
            continue
        sentences = _split_keeping_separators(paragraph, _SENTENCE_SPLIT_RE)
        for pos, (sentence, sent_sep) in enumerate(sentences):
            sep = para_sep if pos == len(sentences) - 1 else sent_sep
            if _nbytes(sentence) <= max_bytes:
                yield sentence, sep
                continue
            slices = slice_utf8(sentence, max_bytes)
            for piece in slices[:-1]:
                yield piece, ""
            yield slices[-1], sep


def split_into_chunks(text: str, max_bytes: int) -> list[Chunk]:
    """Greedy, boundary-respecting chunking.

    Units are appended to the current chunk while its UTF-8 size stays within
    `max_bytes`; the separator between two units of the same chunk is kept
    inside it, the separator where a chunk ends is stored on the chunk.

    Args:
        text (str): the stream to split
        max_bytes (int): target maximum chunk size in bytes

    Raises:
        InvalidParameterError: when `max_bytes` is not a positive integer

    Returns:
        list[Chunk]: chunks numbered from 1; a single chunk when the text fits
    """
    limit = validate_max_bytes(max_bytes)
    if _nbytes(text) <= limit:
        return [Chunk(index=1, text=text)]

    spans: list[tuple[str, str]] = []
    cur: str | None = None
    cur_bytes = 0
    cur_sep = ""
    for piece, sep in _units(text, limit):
        if cur is None:
            cur, cur_bytes, cur_sep = piece, _nbytes(piece), sep
            continue
        if not piece:
            cur_sep += sep
            continue
        candidate = cur_bytes + _nbytes(cur_sep) + _nbytes(piece)
        if candidate <= limit:
            cur, cur_bytes = cur + cur_sep + piece, candidate
        else:
            # leading blank lines form a chunk of their own
            spans.append((cur, cur_sep) if cur else (cur_sep, ""))
            cur, cur_bytes = piece, _nbytes(piece)
        cur_sep = sep
    if cur is not None:
        spans.append((cur, cur_sep) if cur else (cur_sep, ""))

    chunks = [Chunk(index=i, text=t, separator=s) for i, (t, s) in enumerate(spans, start=1)]
    logger.debug("chunked", chunks=len(chunks), max_bytes=limit, total_bytes=_nbytes(text))
    return chunks


def chunk_text(text: str, max_bytes: int) -> list[str]:
    """Same as `split_into_chunks`, returning only the chunk texts."""
    return [c.text for c in split_into_chunks(text, max_bytes)]


def join_chunks(chunks: Sequence[Chunk]) -> str:
    """Rebuild the original stream from its chunks."""
    return "".join(c.text + c.separator for c in chunks)


def parse_depth_spec(value: object) -> DepthSpec:
    """Validate a folder depth specification.

    Args:
        value (object): a non-negative integer, its string form, or "all"

    Raises:
        InvalidParameterError: for anything else

    Returns:
        DepthSpec: the depth, or "all"
    """
    if isinstance(value, str):
        text = value.strip().lower()
        if text == ALL_DEPTHS:
            return ALL_DEPTHS
        if text.isdigit():
            return int(text)
    elif isinstance(value, numbers.Integral) and not isinstance(value, bool) and value >= 0:
        return int(value)
    raise InvalidParameterError(
        parameter="folder_output_level",
        value=value,
        message="folder output level must be a non-negative integer or 'all'",
    )


def _ancestors(rel: str) -> list[str]:
    parts = rel.split("/")[:-1]
    return [".", *("/".join(parts[: i + 1]) for i in range(len(parts)))]


def select_directories(rel_paths: Sequence[str], depth: DepthSpec) -> list[str]:
    """Directories receiving a folder output, relative to the project root.

    Args:
        rel_paths (Sequence[str]): accepted files, relative to the project root
        depth (DepthSpec): fixed depth, or "all" for every ancestor directory

    Returns:
        list[str]: sorted directories, "." standing for the root
    """
    if depth == ALL_DEPTHS:
        return sorted({anc for rel in rel_paths for anc in _ancestors(rel)})
    if depth == 0:
        return ["."] if rel_paths else []
    selected = {"/".join(parts[:depth]) for parts in (rel.split("/") for rel in rel_paths) if len(parts) > depth}
    return sorted(selected)


def _is_under(rel: str, directory: str) -> bool:
    return directory == "." or rel.startswith(directory + "/")


def partition_by_folder(
    units: Sequence[AssembledUnit],
    project_root: Path,
    depth_spec: object,
    *,
    output_filename: str,
    suppress_layout: bool = False,
) -> list[FolderOutputUnit]:
    """Group assembled units into one output per selected directory.

    Each output holds the layout of the directory's files followed by their
    units. With a fixed depth, a directory gathers every file below it at any
    depth; with "all", every ancestor directory of an accepted file gets one.

    Args:
        units (Sequence[AssembledUnit]): units of one walk over `project_root`
        project_root (Path): the traversal root
        depth_spec (object): non-negative integer or "all"
        output_filename (str): file name written in each directory
        suppress_layout (bool): omit the layout block of each output

    Raises:
        InvalidParameterError: when the depth specification is invalid

    Returns:
        list[FolderOutputUnit]: outputs sorted by directory; empty when nothing is selected
    """
    depth = parse_depth_spec(depth_spec)
    root = project_root.resolve()
    directories = select_directories([u.relative_path for u in units], depth)
    if not directories:
        logger.warning("no_folder_selected", depth=depth, files=len(units))
        return []

    outputs: list[FolderOutputUnit] = []
    for directory in directories:
        members = [u for u in units if _is_under(u.relative_path, directory)]
        dir_path = root if directory == "." else root / directory
        scoped = [u.relative_path if directory == "." else u.relative_path[len(directory) + 1 :] for u in members]
        result = WalkResult(layout="\n".join(build_tree_lines(dir_path.name, scoped)), units=members)
        outputs.append(
            FolderOutputUnit(
                directory_path=dir_path,
                relative_directory=directory,
                content=build_document(result, suppress_layout=suppress_layout),
                output_filename=output_filename,
            ),
        )
    logger.info("folder_partition", depth=depth, directories=len(outputs))
    return outputs
