from __future__ import annotations

from pathlib import Path

import pytest

from llm_prepare.comments import (
    C_STYLE,
    DEFAULT_HEADER,
    HeaderDelimiters,
    comment_syntax,
    header_delimiters,
    strip_comments,
)
from llm_prepare.config import FileType


@pytest.mark.unit
def test_strip_c_style_comments_keeps_urls() -> None:
    text = 'int x; // note\nurl = "http://x";\n/* block\n */y;'

    result = strip_comments(text, Path("main.c"))

    assert result == 'int x; \nurl = "http://x";\ny;'


@pytest.mark.unit
def test_strip_hash_comments() -> None:
    result = strip_comments("# heading\nx = 1  # trailing\n", Path("mod.py"))

    assert result == "\nx = 1  \n"


@pytest.mark.unit
def test_strip_markup_comments() -> None:
    result = strip_comments("<p>a</p><!-- gone -->\n<p>b</p>", Path("page.html"))

    assert result == "<p>a</p>\n<p>b</p>"


@pytest.mark.unit
def test_plain_text_is_left_alone() -> None:
    text = "// not a comment in prose\n# nor this"

    assert strip_comments(text, Path("notes.txt")) == text


@pytest.mark.unit
def test_unknown_type_defaults_to_c_style() -> None:
    assert comment_syntax(FileType.OTHER) == C_STYLE
    assert strip_comments("a // b", Path("file.weird")) == "a "


@pytest.mark.unit
def test_header_delimiters_by_extension() -> None:
    assert header_delimiters(Path("a.py")) == HeaderDelimiters("#")
    assert header_delimiters(Path("a.html")) == HeaderDelimiters("<!--", "-->")
    assert header_delimiters(Path("a.css")) == HeaderDelimiters("/*", "*/")
    assert header_delimiters(Path("a.unknownext")) == DEFAULT_HEADER


@pytest.mark.unit
def test_header_delimiters_override() -> None:
    assert header_delimiters(Path("a.py"), "%%") == HeaderDelimiters("%%")
