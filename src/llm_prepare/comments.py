from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from llm_prepare.config import FileType, guess_file_type

if TYPE_CHECKING:
    from pathlib import Path


@dataclass(frozen=True)
class CommentSyntax:
    """Comment markers of a language; `None` means the form does not exist."""

    line: str | None = None
    block: tuple[str, str] | None = None


@dataclass(frozen=True)
class HeaderDelimiters:
    """Tokens wrapping the `FILE:` header line of an assembled unit."""

    start: str
    end: str = ""


C_STYLE = CommentSyntax(line="//", block=("/*", "*/"))
HASH_STYLE = CommentSyntax(line="#")
MARKUP_STYLE = CommentSyntax(block=("<!--", "-->"))
NO_COMMENTS = CommentSyntax()

_COMMENT_SYNTAX: dict[FileType, CommentSyntax] = {
    FileType.TEXT: NO_COMMENTS,
    FileType.PYTHON: CommentSyntax(line="#", block=('"""', '"""')),
    FileType.RUBY: CommentSyntax(line="#", block=("=begin", "=end")),
    FileType.PERL: CommentSyntax(line="#", block=("=pod", "=cut")),
    FileType.SHELL: HASH_STYLE,
    FileType.JAVASCRIPT: C_STYLE,
    FileType.TYPESCRIPT: C_STYLE,
    FileType.C: C_STYLE,
    FileType.CPP: C_STYLE,
    FileType.CSHARP: C_STYLE,
    FileType.JAVA: C_STYLE,
    FileType.GO: C_STYLE,
    FileType.RUST: C_STYLE,
    FileType.SWIFT: C_STYLE,
    FileType.KOTLIN: C_STYLE,
    FileType.SCALA: C_STYLE,
    FileType.DART: C_STYLE,
    FileType.PHP: C_STYLE,
    FileType.SCSS: C_STYLE,
    FileType.HTML: MARKUP_STYLE,
    FileType.XML: MARKUP_STYLE,
    FileType.MARKDOWN: NO_COMMENTS,
    FileType.CSS: CommentSyntax(block=("/*", "*/")),
    FileType.JSON: NO_COMMENTS,
    FileType.YAML: HASH_STYLE,
    FileType.TOML: HASH_STYLE,
    FileType.INI: CommentSyntax(line=";"),
    FileType.SQL: CommentSyntax(line="--", block=("/*", "*/")),
    FileType.LUA: CommentSyntax(line="--", block=("--[[", "]]")),
    FileType.R: HASH_STYLE,
}

_HEADER_DELIMITERS: dict[FileType, HeaderDelimiters] = {
    FileType.PYTHON: HeaderDelimiters("#"),
    FileType.RUBY: HeaderDelimiters("#"),
    FileType.PERL: HeaderDelimiters("#"),
    FileType.SHELL: HeaderDelimiters("#"),
    FileType.YAML: HeaderDelimiters("#"),
    FileType.TOML: HeaderDelimiters("#"),
    FileType.R: HeaderDelimiters("#"),
    FileType.INI: HeaderDelimiters(";"),
    FileType.SQL: HeaderDelimiters("--"),
    FileType.LUA: HeaderDelimiters("--"),
    FileType.HTML: HeaderDelimiters("<!--", "-->"),
    FileType.XML: HeaderDelimiters("<!--", "-->"),
    FileType.MARKDOWN: HeaderDelimiters("<!--", "-->"),
    FileType.CSS: HeaderDelimiters("/*", "*/"),
}

DEFAULT_HEADER = HeaderDelimiters("//")

# `//` preceded by a colon is a URL scheme separator, not a comment.
_URL_SAFE_SLASHES = r"(?<!:)"


def comment_syntax(file_type: FileType) -> CommentSyntax:
    """Get the comment markers for a file type, C-style when unknown.

    Args:
        file_type (FileType): the categorized file type

    Returns:
        CommentSyntax: line and block markers used when stripping comments
    """
    if file_type in _COMMENT_SYNTAX:
        return _COMMENT_SYNTAX[file_type]
    return C_STYLE


def header_delimiters(path: Path, override: str | None = None) -> HeaderDelimiters:
    """Select the comment tokens used for a file's header line.

    Args:
        path (Path): the file the header describes
        override (str | None): explicit start token requested by the caller

    Returns:
        HeaderDelimiters: the header tokens, `//` when the extension is unknown
    """
    if override:
        return HeaderDelimiters(override)
    file_type = guess_file_type(path)
    if file_type in _HEADER_DELIMITERS:
        return _HEADER_DELIMITERS[file_type]
    return DEFAULT_HEADER


def strip_comments(text: str, path: Path) -> str:
    """Remove comments from source text using markers chosen by the file extension.

    Block comments are removed first, then line comments. Runs of three or more
    newlines left behind are reduced to a single blank line.

    Args:
        text (str): the file content
        path (Path): the file path, used only for its extension

    Returns:
        str: the content with comments removed
    """
    syntax = comment_syntax(guess_file_type(path))
    if syntax.line is None and syntax.block is None:
        return text

    result = text
    if syntax.block is not None:
        start, end = syntax.block
        result = re.sub(f"{re.escape(start)}.*?{re.escape(end)}", "", result, flags=re.DOTALL)
    if syntax.line is not None:
        guard = _URL_SAFE_SLASHES if syntax.line == "//" else ""
        result = re.sub(f"{guard}{re.escape(syntax.line)}.*$", "", result, flags=re.MULTILINE)
    return re.sub(r"\n{3,}", "\n\n", result)
