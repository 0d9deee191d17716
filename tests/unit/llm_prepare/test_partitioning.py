from __future__ import annotations

from pathlib import Path

import pytest
from structlog.testing import capture_logs

from llm_prepare.aggregator import DirectoryAggregator
from llm_prepare.config import AssembledUnit
from llm_prepare.exceptions import InvalidParameterError
from llm_prepare.partitioning import (
    chunk_text,
    join_chunks,
    parse_depth_spec,
    partition_by_folder,
    select_directories,
    slice_utf8,
    split_into_chunks,
)

SAMPLES = [
    "A.\n\nB.\n\nC.",
    "First paragraph. It has two sentences!\n\nSecond one? Yes.\n\n\n\nThird after a wide gap.\n",
    "\n\nleading blank lines then text. And more text here.",
    "no boundaries at all just a long run of words without any stop",
    "héllo wörld. ça va? 日本語のテキストです。\n\nfin.",
    " ".join(f"Sentence number {i} ends here." for i in range(40)) + "\n\n" + "x" * 100,
]


def _unit(rel: str, content: str) -> AssembledUnit:
    return AssembledUnit(header_comment_style="//", relative_path=rel, normalized_content=content)


@pytest.mark.unit
def test_paragraph_scenario() -> None:
    text = "A.\n\nB.\n\nC."

    chunks = chunk_text(text, len(b"A.\n\nB."))

    assert chunks == ["A.\n\nB.", "C."]


@pytest.mark.unit
def test_text_that_fits_is_a_single_chunk() -> None:
    chunks = split_into_chunks("small text", 100)

    assert len(chunks) == 1
    assert chunks[0].index == 1
    assert chunks[0].text == "small text"
    assert chunks[0].separator == ""


@pytest.mark.unit
@pytest.mark.parametrize("max_bytes", [1, 3, 7, 16, 64, 500])
def test_chunks_reconstruct_the_input(max_bytes: int) -> None:
    for text in SAMPLES:
        chunks = split_into_chunks(text, max_bytes)

        assert join_chunks(chunks) == text
        assert [c.index for c in chunks] == list(range(1, len(chunks) + 1))


@pytest.mark.unit
@pytest.mark.parametrize("max_bytes", [5, 16, 64])
def test_ascii_chunks_respect_the_bound(max_bytes: int) -> None:
    text = SAMPLES[-1]

    chunks = split_into_chunks(text, max_bytes)

    assert len(chunks) > 1
    assert all(c.size_bytes <= max_bytes for c in chunks)


@pytest.mark.unit
@pytest.mark.parametrize("max_bytes", [4, 5, 9, 17])
def test_multibyte_chunks_respect_the_byte_bound(max_bytes: int) -> None:
    text = "héllo wörld. " * 12 + "日本語のテキストです。" * 6 + "🙂" * 20 + "\n\nçà et là! " * 5

    chunks = split_into_chunks(text, max_bytes)

    assert len(chunks) > 1
    assert all(c.size_bytes <= max_bytes for c in chunks)
    assert join_chunks(chunks) == text


@pytest.mark.unit
def test_oversized_paragraph_is_split_on_sentences() -> None:
    text = "One two. Three four! Five six?"

    assert chunk_text(text, 12) == ["One two.", "Three four!", "Five six?"]


@pytest.mark.unit
def test_slice_utf8_never_splits_a_character() -> None:
    assert slice_utf8("ééé", 3) == ["é", "é", "é"]
    assert slice_utf8("日", 1) == ["日"]
    assert slice_utf8("abcdef", 4) == ["abcd", "ef"]


@pytest.mark.unit
@pytest.mark.parametrize("max_bytes", [0, -1, "10", 2.5, True])
def test_invalid_chunk_size_is_rejected(max_bytes: object) -> None:
    with pytest.raises(InvalidParameterError):
        split_into_chunks("text", max_bytes)  # type: ignore[arg-type]


@pytest.mark.unit
def test_parse_depth_spec() -> None:
    assert parse_depth_spec("all") == "all"
    assert parse_depth_spec(" ALL ") == "all"
    assert parse_depth_spec("2") == 2
    assert parse_depth_spec(0) == 0
    for bad in (-1, "x", "-1", True, 1.5, None):
        with pytest.raises(InvalidParameterError):
            parse_depth_spec(bad)


@pytest.mark.unit
def test_select_directories() -> None:
    rels = ["root.txt", "level1/level1.txt", "level1/level2/level2.txt"]

    assert select_directories(rels, 0) == ["."]
    assert select_directories(rels, 1) == ["level1"]
    assert select_directories(rels, 2) == ["level1/level2"]
    assert select_directories(rels, 5) == []
    assert select_directories(rels, "all") == [".", "level1", "level1/level2"]
    assert select_directories([], 0) == []


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "proj"
    (root / "level1" / "level2").mkdir(parents=True)
    (root / "root.txt").write_text("root content", encoding="utf-8")
    (root / "level1" / "level1.txt").write_text("level one", encoding="utf-8")
    (root / "level1" / "level2" / "level2.txt").write_text("level two", encoding="utf-8")
    return root


@pytest.mark.unit
def test_depth_zero_gives_one_unit_for_the_root(project: Path) -> None:
    units = DirectoryAggregator(project, "*.txt").walk().units

    outputs = partition_by_folder(units, project, 0, output_filename="ctx.txt")

    assert len(outputs) == 1
    assert outputs[0].directory_path == project.resolve()
    assert outputs[0].relative_directory == "."
    assert "root content" in outputs[0].content
    assert outputs[0].output_path == project.resolve() / "ctx.txt"


@pytest.mark.unit
def test_depth_one_gathers_files_below_the_directory(project: Path) -> None:
    units = DirectoryAggregator(project, "*.txt").walk().units

    [output] = partition_by_folder(units, project, 1, output_filename="ctx.txt")

    assert output.relative_directory == "level1"
    assert output.content.splitlines()[0] == "level1/"
    assert "// FILE: level1/level1.txt" in output.content
    assert "// FILE: level1/level2/level2.txt" in output.content
    assert "root content" not in output.content


@pytest.mark.unit
def test_all_covers_every_ancestor_directory(project: Path) -> None:
    units = DirectoryAggregator(project, "*.txt").walk().units

    outputs = partition_by_folder(units, project, "all", output_filename="ctx.txt")

    root = project.resolve()
    assert {o.directory_path for o in outputs} == {root, root / "level1", root / "level1" / "level2"}


@pytest.mark.unit
def test_prefix_matching_respects_segment_boundaries(tmp_path: Path) -> None:
    units = [_unit("lib/a.txt", "a"), _unit("library/b.txt", "b")]

    outputs = partition_by_folder(units, tmp_path, 1, output_filename="out.txt")

    by_dir = {o.relative_directory: o.content for o in outputs}
    assert "FILE: lib/a.txt" in by_dir["lib"]
    assert "FILE: library/b.txt" not in by_dir["lib"]


@pytest.mark.unit
def test_suppress_layout_in_folder_units(tmp_path: Path) -> None:
    [output] = partition_by_folder([_unit("a.txt", "a")], tmp_path, 0, output_filename="o.txt", suppress_layout=True)

    assert output.content == "// FILE: a.txt\na\n"


@pytest.mark.unit
def test_no_selected_directory_is_a_warning(tmp_path: Path) -> None:
    with capture_logs() as logs:
        outputs = partition_by_folder([_unit("a.txt", "a")], tmp_path, 3, output_filename="o.txt")

    assert outputs == []
    assert any(e["event"] == "no_folder_selected" and e["log_level"] == "warning" for e in logs)
