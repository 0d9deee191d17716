"""Deterministic directory walk producing a layout tree and assembled units."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from llm_prepare.assembler import ContentAssembler
from llm_prepare.config import DEFAULT_MAX_LAYOUT_BYTES, LAYOUT_TRUNCATED_MARKER, AssembledUnit, FileRecord
from llm_prepare.exceptions import InvalidPathError
from llm_prepare.ignore import IgnoreOptions, IgnoreResolver
from llm_prepare.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence

_MATCH_ALL = re.compile(r".*", re.DOTALL)


class WalkResult(BaseModel):
    """Everything gathered by one traversal."""

    model_config = ConfigDict(frozen=True)

    layout: str = Field(default="", description="ASCII tree of the accepted files")
    units: list[AssembledUnit] = Field(default_factory=list, description="Assembled files, in traversal order")
    records: list[FileRecord] = Field(default_factory=list, description="Every file passing pattern and ignore")
    truncated_layout: bool = Field(default=False, description="Layout cut by its own ceiling")
    stopped_early: bool = Field(default=False, description="Traversal stopped by the total size ceiling")


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root, with POSIX separators.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path, or "." for the root itself
    """
    rel = path.relative_to(root).as_posix()
    return rel or "."


def compile_file_pattern(pattern: str | None) -> re.Pattern[str]:
    """Turn a wildcard file-name pattern into a regular expression.

    `*` stands for any character sequence, everything else is literal. The
    expression is meant for `fullmatch` against a bare file name.

    Args:
        pattern (str | None): e.g. "*.py"; empty, None or "*" match everything

    Returns:
        re.Pattern[str]: the compiled expression
    """
    if not pattern or pattern == "*":
        return _MATCH_ALL
    return re.compile(".*".join(re.escape(part) for part in pattern.split("*")), re.DOTALL)


def build_tree_lines(root_name: str, rel_paths: Sequence[str]) -> list[str]:
    """Build a visual tree representation of file paths.

    Entries of a directory are sorted by name, directories and files mixed,
    the same order as the walk visits them.

    Args:
        root_name (str): the name to use for the root of the tree
        rel_paths (Sequence[str]): file paths relative to the root, POSIX separators (e.g. "src/main.py")

    Returns:
        list[str]: the lines of the tree, the first one being `<root_name>/`
    """
    rels = sorted({p.strip("/").replace("\\", "/") for p in rel_paths if p.strip()})
    tree: dict[str, Any] = {}
    for rp in rels:
        cur = tree
        *dirs, name = rp.split("/")
        for part in dirs:
            cur = cur.setdefault(part, {})
        cur.setdefault(name, None)

    lines: list[str] = [f"{root_name}/"]

    def walk(node: dict[str, Any], prefix: str) -> None:
        names = sorted(node)
        for idx, name in enumerate(names):
            child = node[name]
            last = idx == len(names) - 1
            branch = "└── " if last else "├── "
            lines.append(prefix + branch + name + ("/" if child is not None else ""))
            if child is not None:
                ext = "    " if last else "│   "
                walk(child, prefix + ext)

    walk(tree, "")
    return lines


def limit_layout(lines: Sequence[str], max_bytes: int) -> tuple[list[str], bool]:
    """Apply the layout ceiling.

    Args:
        lines (Sequence[str]): layout lines
        max_bytes (int): maximum UTF-8 size of the layout, one newline per line

    Returns:
        tuple[list[str], bool]: kept lines (ending with the marker when cut) and whether a cut happened
    """
    sizes = [len(line.encode("utf-8")) + 1 for line in lines]
    if sum(sizes) <= max_bytes:
        return list(lines), False
    budget = max_bytes - len(LAYOUT_TRUNCATED_MARKER.encode("utf-8")) - 1
    kept: list[str] = []
    used = 0
    for line, size in zip(lines, sizes, strict=True):
        if used + size > budget:
            break
        kept.append(line)
        used += size
    return [*kept, LAYOUT_TRUNCATED_MARKER], True


class DirectoryAggregator:
    """Walk a root directory in sorted order and assemble every accepted file.

    Directories are descended unless ignored. An ignored directory is still
    visited when a negation pattern names a path inside it. Symlinked
    directories are not followed.
    """

    def __init__(
        self,
        root: Path,
        file_pattern: str | None = "*",
        resolver: IgnoreResolver | None = None,
        *,
        assembler: ContentAssembler | None = None,
        max_layout_bytes: int = DEFAULT_MAX_LAYOUT_BYTES,
    ) -> None:
        self.root = root
        self.pattern = compile_file_pattern(file_pattern)
        self.resolver = resolver or IgnoreResolver.build(IgnoreOptions(root=root))
        self.assembler = assembler or ContentAssembler()
        self.max_layout_bytes = max_layout_bytes

    def walk(self) -> WalkResult:
        """Traverse the root.

        Raises:
            InvalidPathError: when the root is not an existing directory

        Returns:
            WalkResult: layout, units and records of the traversal
        """
        if not self.root.is_dir():
            raise InvalidPathError(path=self.root, message="invalid path")
        units: list[AssembledUnit] = []
        records: list[FileRecord] = []
        self._walk_directory(self.root, self.resolver, units, records)

        stopped_early = self.assembler.budget.exhausted
        lines, truncated = limit_layout(
            build_tree_lines(self.root.name, [u.relative_path for u in units]),
            self.max_layout_bytes,
        )
        if truncated:
            logger.warning("layout_truncated", max_layout_bytes=self.max_layout_bytes)
        logger.info(
            "walk_complete",
            root=str(self.root),
            files=len(records),
            units=len(units),
            total_bytes=self.assembler.budget.total_bytes,
            stopped_early=stopped_early,
        )
        return WalkResult(
            layout="\n".join(lines),
            units=units,
            records=records,
            truncated_layout=truncated,
            stopped_early=stopped_early,
        )

    def _walk_directory(
        self,
        directory: Path,
        resolver: IgnoreResolver,
        units: list[AssembledUnit],
        records: list[FileRecord],
    ) -> None:
        resolver = resolver.for_directory(directory)
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            logger.warning("directory_unreadable", directory=str(directory), error=str(e))
            return

        for entry in entries:
            if self.assembler.budget.exhausted:
                return
            path = Path(entry.path)
            rel = relpath(path, self.root)
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = not is_dir and entry.is_file()
            except OSError as e:
                logger.warning("entry_unreadable", path=rel, error=str(e))
                continue

            if is_dir:
                if resolver.is_ignored(rel, is_dir=True) and not resolver.may_reinclude_under(rel):
                    continue
                self._walk_directory(path, resolver, units, records)
            elif is_file:
                if not self.pattern.fullmatch(entry.name) or resolver.is_ignored(rel):
                    continue
                try:
                    size = entry.stat().st_size
                except OSError as e:
                    logger.warning("entry_unreadable", path=rel, error=str(e))
                    continue
                record = FileRecord(path=path, rel=rel, size=size, depth=rel.count("/"))
                records.append(record)
                unit = self.assembler.assemble(record)
                if unit is not None:
                    units.append(unit)


def aggregate_path(
    path: Path,
    file_pattern: str | None = "*",
    resolver: IgnoreResolver | None = None,
    *,
    assembler: ContentAssembler | None = None,
    max_layout_bytes: int = DEFAULT_MAX_LAYOUT_BYTES,
) -> WalkResult:
    """Aggregate a directory tree, or a single file.

    Args:
        path (Path): the invocation root
        file_pattern (str | None): wildcard applied to file names
        resolver (IgnoreResolver | None): ignore rules, built from defaults when None
        assembler (ContentAssembler | None): content assembler, default options when None
        max_layout_bytes (int): layout ceiling

    Raises:
        InvalidPathError: when `path` does not exist

    Returns:
        WalkResult: the gathered layout and units
    """
    path = path.resolve()
    if path.is_file():
        assembler = assembler or ContentAssembler()
        record = FileRecord(path=path, rel=path.name, size=path.stat().st_size)
        unit = assembler.assemble(record)
        return WalkResult(
            layout=path.name,
            units=[unit] if unit is not None else [],
            records=[record],
            stopped_early=assembler.budget.exhausted,
        )
    if not path.is_dir():
        raise InvalidPathError(path=path, message="invalid path")
    aggregator = DirectoryAggregator(
        path,
        file_pattern,
        resolver,
        assembler=assembler,
        max_layout_bytes=max_layout_bytes,
    )
    return aggregator.walk()
