from __future__ import annotations

from pathlib import Path

import pytest
from structlog.testing import capture_logs

from llm_prepare.config import FolderOutputUnit
from llm_prepare.exceptions import FolderOutputError, OutputWriteError
from llm_prepare.ignore import IgnoreResolver, IgnoreRuleSet
from llm_prepare.output_writer import chunk_filename, chunk_ignore_pattern, write_folder_outputs, write_output

PARAGRAPHS = "\n\n".join(c * 600 for c in "abcd")


@pytest.mark.unit
def test_chunk_filename() -> None:
    assert chunk_filename(Path("out.txt"), 2) == Path("out.2.txt")
    assert chunk_filename(Path("dir/out"), 1) == Path("dir/out.1")


@pytest.mark.unit
def test_write_output_to_stdout(capsys: pytest.CaptureFixture[str]) -> None:
    written = write_output("hello\n")

    assert written == []
    assert capsys.readouterr().out == "hello\n"


@pytest.mark.unit
def test_write_output_to_single_file(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "out.txt"

    written = write_output("hello\n", target)

    assert written == [target]
    assert target.read_text(encoding="utf-8") == "hello\n"


@pytest.mark.unit
def test_write_output_in_chunks(tmp_path: Path) -> None:
    target = tmp_path / "out.txt"

    written = write_output(PARAGRAPHS, target, chunk_size_kb=1)

    assert written == [tmp_path / f"out.{i}.txt" for i in range(1, 5)]
    assert not target.exists()
    assert (tmp_path / "out.3.txt").read_text(encoding="utf-8") == "c" * 600


@pytest.mark.unit
def test_small_text_is_not_chunked(tmp_path: Path) -> None:
    target = tmp_path / "out.txt"

    assert write_output("tiny", target, chunk_size_kb=1) == [target]


@pytest.mark.unit
def test_relative_output_uses_output_dir(tmp_path: Path) -> None:
    written = write_output("x", Path("out.txt"), output_dir=tmp_path / "exports")

    assert written == [tmp_path / "exports" / "out.txt"]


@pytest.mark.unit
def test_stdout_ignores_chunking_with_warning(capsys: pytest.CaptureFixture[str]) -> None:
    with capture_logs() as logs:
        write_output(PARAGRAPHS, None, chunk_size_kb=1)

    assert capsys.readouterr().out == PARAGRAPHS
    assert any(e["event"] == "chunking_ignored" for e in logs)


@pytest.mark.unit
def test_unwritable_output_raises(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")

    with pytest.raises(OutputWriteError):
        write_output("x", blocker / "out.txt")


def _folder_unit(directory: Path, rel: str) -> FolderOutputUnit:
    return FolderOutputUnit(
        directory_path=directory,
        relative_directory=rel,
        content=f"content of {rel}\n",
        output_filename="ctx.txt",
    )


@pytest.mark.unit
def test_folder_outputs_continue_after_a_failure(tmp_path: Path) -> None:
    good = tmp_path / "good"
    good.mkdir()
    blocker = tmp_path / "bad"
    blocker.write_text("not a directory", encoding="utf-8")

    report = write_folder_outputs([_folder_unit(blocker, "bad"), _folder_unit(good, "good")])

    assert report.attempted == 2
    assert report.succeeded == 1
    assert report.failed == ["bad"]
    assert (good / "ctx.txt").read_text(encoding="utf-8") == "content of good\n"


@pytest.mark.unit
def test_folder_outputs_raise_when_nothing_is_written(tmp_path: Path) -> None:
    blocker = tmp_path / "bad"
    blocker.write_text("x", encoding="utf-8")

    with pytest.raises(FolderOutputError) as exc_info:
        write_folder_outputs([_folder_unit(blocker, "bad")])

    assert exc_info.value.attempted == 1
    assert exc_info.value.succeeded == 0


@pytest.mark.unit
def test_folder_outputs_with_nothing_to_write() -> None:
    report = write_folder_outputs([])

    assert report.attempted == 0
    assert report.succeeded == 0


@pytest.mark.unit
def test_folder_output_is_chunked_per_unit(tmp_path: Path) -> None:
    unit = FolderOutputUnit(
        directory_path=tmp_path,
        relative_directory=".",
        content=PARAGRAPHS,
        output_filename="ctx.txt",
    )

    report = write_folder_outputs([unit], chunk_size_kb=1)

    assert report.written == [tmp_path / f"ctx.{i}.txt" for i in range(1, 5)]


@pytest.mark.unit
def test_chunk_ignore_pattern_matches_only_chunk_files(tmp_path: Path) -> None:
    pattern = chunk_ignore_pattern("ctx.txt")
    resolver = IgnoreResolver(tmp_path, [IgnoreRuleSet(source="inline", patterns=(pattern,))])

    assert pattern == "ctx.[0-9]*.txt"
    assert resolver.is_ignored("a/ctx.1.txt")
    assert resolver.is_ignored(chunk_filename(Path("ctx.txt"), 12).name)
    assert not resolver.is_ignored("a/ctx.notes.txt")
    assert not resolver.is_ignored("a/other.1.txt")
