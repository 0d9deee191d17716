"""Persist prepared text to stdout, a file, chunk files or per-directory files."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from llm_prepare.exceptions import FolderOutputError, OutputWriteError
from llm_prepare.logging import logger
from llm_prepare.partitioning import split_into_chunks

if TYPE_CHECKING:
    from collections.abc import Sequence

    from llm_prepare.config import FolderOutputUnit


class FolderWriteReport(BaseModel):
    """Outcome of writing folder outputs."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    attempted: int = 0
    succeeded: int = 0
    failed: list[str] = Field(default_factory=list, description="Directories whose output could not be written")
    written: list[Path] = Field(default_factory=list, description="Every file written")


def chunk_filename(path: Path, index: int) -> Path:
    """Name of the `index`-th chunk file: `<base>.<index>.<ext>`.

    Args:
        path (Path): the requested output file
        index (int): chunk number, starting at 1

    Returns:
        Path: e.g. `out.2.txt` for `out.txt`
    """
    return path.with_name(f"{path.stem}.{index}{path.suffix}")


def chunk_ignore_pattern(filename: str) -> str:
    """Ignore pattern matching every chunk file `chunk_filename` derives from `filename`.

    Args:
        filename (str): the requested output file name

    Returns:
        str: e.g. `out.[0-9]*.txt` for `out.txt`
    """
    path = Path(filename)
    return f"{path.stem}.[0-9]*{path.suffix}"


def _write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def write_chunked(path: Path, text: str, chunk_size_kb: int | None = None) -> list[Path]:
    """Write text to `path`, or to numbered chunk files when it exceeds the chunk size.

    Args:
        path (Path): the output file
        text (str): what to write
        chunk_size_kb (int | None): chunk size in kilobytes, no chunking when None

    Raises:
        OSError: when a file cannot be written

    Returns:
        list[Path]: written files, in chunk order
    """
    if not chunk_size_kb:
        _write_text(path, text)
        return [path]
    chunks = split_into_chunks(text, chunk_size_kb * 1024)
    if len(chunks) == 1:
        _write_text(path, text)
        return [path]
    written: list[Path] = []
    for chunk in chunks:
        target = chunk_filename(path, chunk.index)
        _write_text(target, chunk.text)
        written.append(target)
    logger.info("chunks_written", path=str(path), chunks=len(written))
    return written


def write_output(
    text: str,
    output: Path | None = None,
    *,
    chunk_size_kb: int | None = None,
    output_dir: Path | None = None,
) -> list[Path]:
    """Send the prepared text to stdout or to file(s).

    Args:
        text (str): the prepared text
        output (Path | None): output file, stdout when None
        chunk_size_kb (int | None): split file output into chunks of this many kilobytes
        output_dir (Path | None): base directory for a relative `output`

    Raises:
        OutputWriteError: when a file cannot be written

    Returns:
        list[Path]: the files written, empty for stdout
    """
    if output is None:
        if chunk_size_kb:
            logger.warning("chunking_ignored", reason="output goes to stdout")
        sys.stdout.write(text)
        sys.stdout.flush()
        return []
    target = output if output.is_absolute() or output_dir is None else output_dir / output
    try:
        written = write_chunked(target, text, chunk_size_kb)
    except OSError as e:
        raise OutputWriteError(path=target, message=f"cannot write output ({e.strerror or e})") from e
    logger.info("output_written", files=[str(p) for p in written])
    return written


def write_folder_outputs(units: Sequence[FolderOutputUnit], *, chunk_size_kb: int | None = None) -> FolderWriteReport:
    """Write every folder output, carrying on past individual failures.

    Args:
        units (Sequence[FolderOutputUnit]): outputs to write
        chunk_size_kb (int | None): per-output chunk size in kilobytes

    Raises:
        FolderOutputError: when outputs were attempted and none was written

    Returns:
        FolderWriteReport: attempted, succeeded and failed counts
    """
    report = FolderWriteReport(attempted=len(units))
    for unit in units:
        try:
            report.written.extend(write_chunked(unit.output_path, unit.content, chunk_size_kb))
        except OSError as e:
            logger.warning("folder_output_failed", directory=unit.relative_directory, error=str(e))
            report.failed.append(unit.relative_directory)
            continue
        report.succeeded += 1

    logger.info("folder_outputs_written", attempted=report.attempted, succeeded=report.succeeded)
    if report.attempted and not report.succeeded:
        raise FolderOutputError(attempted=report.attempted, succeeded=report.succeeded)
    return report
