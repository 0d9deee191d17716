"""
llm-prepare: turn a project tree or a text source into LLM-ready text.

Overview
--------
Directory mode (`--path`) walks a project in sorted order, honoring built-in
ignore patterns, `.gitignore`, `*ignore` files and custom patterns, and writes
a layout tree followed by every accepted file behind a `FILE:` header. Text
mode (`--input`) reads a file, a URL or stdin.

Both modes then apply, in order: prompt template, system/user messages, token
truncation, and chunking (or one output per folder with
`--folder-output-level`).

Usage
-----
    - Whole project to stdout:
        llm-prepare --path .
    - Python files only, 8k token budget keeping both ends:
        llm-prepare -p . -f "*.py" -m 8000 -t middle -o context.txt
    - One file per top-level directory:
        llm-prepare -p . --folder-output-level 1 -o context.txt
    - Split a large export into 100 KB chunks:
        llm-prepare -p . -o context.txt --chunk-size 100
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import ValidationError

from llm_prepare import __version__
from llm_prepare.aggregator import WalkResult, aggregate_path
from llm_prepare.assembler import AssemblyOptions, ContentAssembler
from llm_prepare.exceptions import InvalidParameterError, InvalidPathError, LlmPrepareError, SourceReadError
from llm_prepare.ignore import IgnoreOptions, IgnoreResolver, default_ignore_patterns
from llm_prepare.logging import logger, setup_logging
from llm_prepare.output_construction import build_document
from llm_prepare.output_writer import chunk_ignore_pattern, write_folder_outputs, write_output
from llm_prepare.partitioning import partition_by_folder
from llm_prepare.prompting import apply_prompt_template, wrap_messages
from llm_prepare.settings import Settings
from llm_prepare.sources import read_source
from llm_prepare.tokens import estimate_tokens, token_distribution
from llm_prepare.truncation import TruncationStrategy, truncate_text

if TYPE_CHECKING:
    from collections.abc import Sequence


def build_parser() -> argparse.ArgumentParser:
    # Options left out of the command line are absent from the namespace so
    # that config file values can fill them.
    p = argparse.ArgumentParser(
        prog="llm-prepare",
        description="Prepare a project tree or a text source for LLM consumption.",
        argument_default=argparse.SUPPRESS,
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    source = p.add_mutually_exclusive_group()
    source.add_argument("-p", "--path", type=str, help="Project directory (or single file) to aggregate.")
    source.add_argument("-i", "--input", type=str, help="Text source: file, http(s) URL, or '-' for stdin.")

    p.add_argument("-f", "--file-pattern", type=str, help="Wildcard for file names (default: '*').")
    p.add_argument("-o", "--output", type=str, help="Output file (default: stdout).")

    p.add_argument("--ignore-gitignore", action="store_true", help="Do not load the root .gitignore.")
    p.add_argument("--custom-ignore-string", type=str, help="Comma-separated ignore patterns.")
    p.add_argument(
        "--custom-ignore-filename",
        type=str,
        action="append",
        help="Extra ignore file (repeatable).",
    )
    p.add_argument("--default-ignore", type=str, help="File replacing the built-in ignore patterns.")
    p.add_argument(
        "--show-default-ignore",
        action="store_true",
        help="Print the default ignore patterns and exit.",
    )

    p.add_argument("--include-comments", action="store_true", help="Keep comments in source files.")
    p.add_argument(
        "--compress",
        action="store_true",
        help="Collapse all whitespace, one sentence per line.",
    )
    p.add_argument("--comment-style", type=str, help="Force the comment token of file headers.")
    p.add_argument("-s", "--suppress-layout", action="store_true", help="Omit the layout tree.")

    p.add_argument("-m", "--max-tokens", type=int, help="Token budget of the final text.")
    p.add_argument(
        "-t",
        "--truncate",
        type=str,
        choices=[s.value for s in TruncationStrategy],
        help="Which part to drop when over budget (default: end).",
    )
    p.add_argument("--chunk-size", type=int, help="Split file output into chunks of this many KB.")
    p.add_argument(
        "--folder-output-level",
        type=str,
        help="Write one output per directory at this depth, or 'all' (requires --output).",
    )

    p.add_argument("--max-file-bytes", type=int, help="Skip files larger than this.")
    p.add_argument("--max-total-bytes", type=int, help="Stop accepting files past this total.")
    p.add_argument("--max-layout-bytes", type=int, help="Cut the layout tree past this size.")

    p.add_argument("--prompt", type=str, help="Prompt template file ({{ text }} receives the content).")
    p.add_argument("--variables", type=str, help="Template variables as a JSON object.")
    p.add_argument("--system", type=str, help="System message placed before the text.")
    p.add_argument("--user", type=str, help="User message placed after the text.")

    p.add_argument("--config", type=str, help="YAML/JSON file with 'args' and 'include' keys.")
    p.add_argument("--log-file", type=str, help="Log file path.")
    p.add_argument("--debug", action="store_true", help="Debug logging.")
    return p


def load_config(path: Path) -> tuple[dict[str, Any], list[str]]:
    """Read a configuration file.

    Args:
        path (Path): YAML or JSON file shaped as `{"args": {...}, "include": [...]}`

    Raises:
        SourceReadError: when the file cannot be read
        InvalidParameterError: when its content is not a valid configuration

    Returns:
        tuple[dict[str, Any], list[str]]: option values keyed like `Settings` fields, and include roots
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise SourceReadError(source=str(path), message="cannot read config") from e
    except yaml.YAMLError as e:
        raise InvalidParameterError(parameter="config", value=str(path), message=f"invalid config ({e})") from e
    if data is None:
        return {}, []
    if not isinstance(data, dict):
        raise InvalidParameterError(parameter="config", value=str(path), message="config must be a mapping")
    args = data.get("args") or {}
    include = data.get("include") or []
    if not isinstance(args, dict) or not isinstance(include, list):
        raise InvalidParameterError(
            parameter="config",
            value=str(path),
            message="config 'args' must be a mapping and 'include' a list",
        )
    return {str(k).replace("-", "_"): v for k, v in args.items()}, [str(p) for p in include]


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    """Merge command line and config file into `Settings`; the command line wins.

    Args:
        argv (Sequence[str] | None): arguments, `sys.argv[1:]` when None

    Returns:
        Settings: the validated settings
    """
    given = vars(build_parser().parse_args(argv))
    merged: dict[str, Any] = {}
    if "config" in given:
        config_args, include = load_config(Path(given["config"]))
        merged.update(config_args)
        if include:
            merged.setdefault("include", include)
    merged.update(given)
    return Settings(**merged)


def format_validation_error(error: ValidationError) -> str:
    first = error.errors()[0]
    field = ".".join(str(x) for x in first["loc"]) or "settings"
    return f"invalid value for {field}: {first.get('input')!r} ({first['msg']})"


def ignore_options(settings: Settings, root: Path, extra_patterns: Sequence[str] = ()) -> IgnoreOptions:
    inline = ",".join(p for p in [settings.custom_ignore_string, *extra_patterns] if p)
    return IgnoreOptions(
        root=root,
        ignore_gitignore=settings.ignore_gitignore,
        custom_ignore_string=inline,
        custom_ignore_files=settings.custom_ignore_filename,
        default_ignore_file=settings.default_ignore,
    )


def make_assembler(settings: Settings) -> ContentAssembler:
    return ContentAssembler(
        AssemblyOptions(
            include_comments=settings.include_comments,
            compress=settings.compress,
            comment_style=settings.comment_style,
            max_file_bytes=settings.max_file_bytes,
            max_total_bytes=settings.max_total_bytes,
        ),
    )


def aggregate_root(
    root: Path,
    settings: Settings,
    assembler: ContentAssembler,
    extra_patterns: Sequence[str] = (),
) -> WalkResult:
    """Walk one root with the ignore rules and ceilings of `settings`.

    Args:
        root (Path): directory or single file
        settings (Settings): run configuration
        assembler (ContentAssembler): shared across roots so the total ceiling spans the run
        extra_patterns (Sequence[str]): inline ignore patterns added for this run

    Raises:
        InvalidPathError: when the root does not exist

    Returns:
        WalkResult: what the walk gathered
    """
    root = root.resolve()
    if not root.exists():
        raise InvalidPathError(path=root, message="invalid path")
    resolver = None
    if root.is_dir():
        resolver = IgnoreResolver.build(ignore_options(settings, root, extra_patterns))
    return aggregate_path(
        root,
        settings.file_pattern,
        resolver,
        assembler=assembler,
        max_layout_bytes=settings.max_layout_bytes,
    )


def finalize_text(text: str, settings: Settings) -> str:
    """Apply template, messages and token truncation, in that order."""
    if settings.prompt is not None:
        text = apply_prompt_template(text, settings.prompt, settings.variables)
    text = wrap_messages(text, settings.system, settings.user)
    if settings.max_tokens is not None:
        text = truncate_text(text, settings.max_tokens, settings.truncate)
    if settings.debug:
        logger.debug("token_distribution", **token_distribution(text).model_dump())
    logger.info("text_prepared", estimated_tokens=estimate_tokens(text), bytes=len(text.encode("utf-8")))
    return text


def gather_text(settings: Settings) -> str:
    if not settings.directory_mode:
        return read_source(settings.input)
    assembler = make_assembler(settings)
    documents = [
        build_document(aggregate_root(root, settings, assembler), suppress_layout=settings.suppress_layout)
        for root in settings.roots
    ]
    return "\n".join(doc for doc in documents if doc)


def run_folder_mode(settings: Settings) -> int:
    if settings.path is None or settings.output is None or settings.folder_output_level is None:
        raise InvalidParameterError(
            parameter="folder_output_level",
            value=settings.folder_output_level,
            message="folder output requires --path and --output",
        )
    filename = settings.output.name
    root = settings.path.resolve()
    if not root.is_dir():
        raise InvalidPathError(path=root, message="invalid path (folder output needs a directory)")
    # outputs and chunk files of a previous run must not be aggregated again
    result = aggregate_root(
        root,
        settings,
        make_assembler(settings),
        extra_patterns=[filename, chunk_ignore_pattern(filename)],
    )
    units = partition_by_folder(
        result.units,
        root,
        settings.folder_output_level,
        output_filename=filename,
        suppress_layout=settings.suppress_layout,
    )
    units = [u.model_copy(update={"content": finalize_text(u.content, settings)}) for u in units]
    report = write_folder_outputs(units, chunk_size_kb=settings.chunk_size)
    print(f"Wrote {report.succeeded}/{report.attempted} folder outputs as {filename}")
    return 0


def run(settings: Settings) -> int:
    if settings.show_default_ignore:
        sys.stdout.write("\n".join(default_ignore_patterns(settings.default_ignore)) + "\n")
        return 0
    if settings.folder_output_level is not None:
        return run_folder_mode(settings)

    text = finalize_text(gather_text(settings), settings)
    written = write_output(text, settings.output, chunk_size_kb=settings.chunk_size, output_dir=settings.output_dir)
    if written:
        print(f"Wrote {', '.join(str(p) for p in written)}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    try:
        settings = parse_args(argv)
        if settings.log_file or settings.debug:
            setup_logging(
                settings.log_file,
                level=logging.DEBUG if settings.debug else logging.INFO,
                force=True,
            )
        return run(settings)
    except ValidationError as e:
        print(f"error: {format_validation_error(e)}", file=sys.stderr)
    except LlmPrepareError as e:
        print(f"error: {e}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
