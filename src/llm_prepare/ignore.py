"""Layered ignore rules: built-in defaults, `.gitignore`, `*ignore` files and custom patterns.

All active rule sets are evaluated together, gitignore style: the last pattern
matching a path decides, so a later `!pattern` re-includes what an earlier,
broader pattern excluded.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING

import pathspec
from pydantic import BaseModel, ConfigDict, Field

from llm_prepare.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from pathspec.pattern import Pattern

DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (
    # version control
    ".git",
    ".svn",
    ".hg",
    ".bzr",
    # dependency caches and virtual environments
    "node_modules",
    "bower_components",
    "__pycache__",
    ".venv",
    "venv",
    ".mypy_cache",
    ".pytest_cache",
    ".ruff_cache",
    ".tox",
    "*.egg-info",
    "*.pyc",
    "npm-debug.log",
    "package-lock.json",
    "yarn.lock",
    "yarn-error.log",
    "poetry.lock",
    # build output
    "dist",
    "build",
    "out",
    "target",
    "coverage",
    # editors
    ".idea",
    ".vscode",
    ".DS_Store",
    "*.swp",
    "*.swo",
    "Thumbs.db",
    # bundled, minified and binary assets
    "*.min.js",
    "*.min.css",
    "*.map",
    "*.bundle.js",
    "*.bundle.css",
    "*.png",
    "*.jpg",
    "*.jpeg",
    "*.gif",
    "*.ico",
    "*.svg",
    "*.webp",
    "*.bmp",
    "*.woff",
    "*.woff2",
    "*.ttf",
    "*.eot",
    "*.pdf",
    "*.zip",
    "*.tar",
    "*.gz",
    "*.rar",
    "*.7z",
    "*.mp3",
    "*.mp4",
    "*.mov",
    "*.exe",
    "*.dll",
    "*.so",
    # logs
    "*.log",
    "logs",
    # secrets
    ".env",
    ".env.*",
    "*.pem",
    "*.key",
)

GITIGNORE = ".gitignore"
_IGNORE_FILE_RE = re.compile(r"\..*ignore$")


class IgnoreOptions(BaseModel):
    """Inputs that decide which ignore sources are loaded."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    root: Path = Field(..., description="Traversal root; patterns are relative to it.")
    ignore_gitignore: bool = Field(default=False, description="Do not load the root .gitignore.")
    custom_ignore_string: str = Field(default="", description="Comma-separated inline patterns.")
    custom_ignore_files: list[Path] = Field(default_factory=list, description="Extra ignore files.")
    default_ignore_file: Path | None = Field(
        default=None,
        description="Replaces the built-in defaults when given.",
    )


class IgnoreRuleSet(BaseModel):
    """An ordered list of patterns from one source, anchored to a directory."""

    model_config = ConfigDict(frozen=True)

    source: str = Field(..., description="Where the patterns came from.")
    base: str = Field(default="", description="Anchor directory relative to the root ('' for root).")
    patterns: tuple[str, ...] = Field(default=())


def filter_ignore_lines(lines: Iterable[str]) -> list[str]:
    """Drop blank lines and `#` comments from ignore-file content.

    Args:
        lines (Iterable[str]): raw lines

    Returns:
        list[str]: the lines that are patterns
    """
    return [ln.rstrip("\r") for ln in lines if ln.strip() and not ln.startswith("#")]


def read_ignore_file(path: Path) -> list[str]:
    """Read patterns from an ignore file.

    An unreadable file is a soft failure: a warning is logged and no pattern is
    returned.

    Args:
        path (Path): the ignore file to read

    Returns:
        list[str]: the patterns it contains
    """
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("ignore_file_unreadable", path=str(path), error=str(e))
        return []
    return filter_ignore_lines(content.splitlines())


def parse_ignore_string(patterns: str) -> list[str]:
    """Split a comma-separated pattern string, trimming each entry.

    Args:
        patterns (str): e.g. "*.md, docs/, !docs/keep.md"

    Returns:
        list[str]: the non-empty patterns
    """
    if not patterns:
        return []
    return [p.strip() for p in patterns.split(",") if p.strip()]


def default_ignore_patterns(override: Path | None = None) -> list[str]:
    """Return the default patterns, or those of an override file.

    Args:
        override (Path | None): file whose patterns fully replace the built-ins

    Returns:
        list[str]: the default ignore patterns
    """
    if override is None:
        return list(DEFAULT_IGNORE_PATTERNS)
    if not override.is_file():
        logger.warning("default_ignore_missing", path=str(override), fallback="built-in defaults")
        return list(DEFAULT_IGNORE_PATTERNS)
    return read_ignore_file(override)


def find_ignore_files(directory: Path) -> list[Path]:
    """List the `*ignore` files directly inside a directory, `.gitignore` excluded.

    Args:
        directory (Path): the directory to scan

    Returns:
        list[Path]: ignore files sorted by name
    """
    try:
        names = sorted(p.name for p in directory.iterdir() if p.is_file())
    except OSError as e:
        logger.warning("ignore_scan_failed", directory=str(directory), error=str(e))
        return []
    return [directory / n for n in names if n != GITIGNORE and _IGNORE_FILE_RE.search(n)]


def _compile(lines: Sequence[str]) -> list[Pattern]:
    return list(pathspec.PathSpec.from_lines("gitwildmatch", lines).patterns)


class IgnoreResolver:
    """Predicate deciding whether a path relative to the root is excluded.

    Instances are immutable; `for_directory` returns a new resolver extended
    with the rules found in a sub-directory.
    """

    def __init__(self, root: Path, rule_sets: Sequence[IgnoreRuleSet] = ()) -> None:
        self.root = root
        self.rule_sets: tuple[IgnoreRuleSet, ...] = tuple(rule_sets)
        self._compiled = [(rs.base, _compile(rs.patterns)) for rs in self.rule_sets]

    @classmethod
    def build(cls, options: IgnoreOptions) -> IgnoreResolver:
        """Load every configured ignore source for a traversal root.

        Order: defaults (or override file), root `.gitignore`, root `*ignore`
        files, inline patterns, custom ignore files.

        Args:
            options (IgnoreOptions): the ignore configuration

        Returns:
            IgnoreResolver: the resolver for `options.root`
        """
        root = options.root
        rule_sets = [
            IgnoreRuleSet(
                source=str(options.default_ignore_file) if options.default_ignore_file else "defaults",
                patterns=tuple(default_ignore_patterns(options.default_ignore_file)),
            ),
        ]
        gitignore = root / GITIGNORE
        if not options.ignore_gitignore and gitignore.is_file():
            rule_sets.append(IgnoreRuleSet(source=str(gitignore), patterns=tuple(read_ignore_file(gitignore))))
        rule_sets.extend(
            IgnoreRuleSet(source=str(p), patterns=tuple(read_ignore_file(p))) for p in find_ignore_files(root)
        )
        inline = parse_ignore_string(options.custom_ignore_string)
        if inline:
            rule_sets.append(IgnoreRuleSet(source="custom-ignore-string", patterns=tuple(inline)))
        for custom in options.custom_ignore_files:
            if not custom.is_file():
                logger.warning("custom_ignore_missing", path=str(custom))
                continue
            rule_sets.append(IgnoreRuleSet(source=str(custom), patterns=tuple(read_ignore_file(custom))))

        resolver = cls(root, [rs for rs in rule_sets if rs.patterns])
        logger.debug("ignore_rules_loaded", sources=[rs.source for rs in resolver.rule_sets])
        return resolver

    def for_directory(self, directory: Path) -> IgnoreResolver:
        """Extend the rules with the `*ignore` files of a sub-directory.

        The root itself is covered by `build`, so it returns `self`. Patterns
        found are anchored to `directory` and only ever add to the rules.

        Args:
            directory (Path): a directory under the root

        Returns:
            IgnoreResolver: a resolver including the directory's rules
        """
        if directory == self.root:
            return self
        base = directory.relative_to(self.root).as_posix()
        extra = [
            IgnoreRuleSet(source=str(p), base=base, patterns=tuple(read_ignore_file(p)))
            for p in find_ignore_files(directory)
        ]
        extra = [rs for rs in extra if rs.patterns]
        if not extra:
            return self
        return IgnoreResolver(self.root, [*self.rule_sets, *extra])

    @property
    def patterns(self) -> list[str]:
        """All active patterns in evaluation order."""
        return [p for rs in self.rule_sets for p in rs.patterns]

    def is_ignored(self, rel_path: str, *, is_dir: bool = False) -> bool:
        """Decide whether a path is excluded.

        Args:
            rel_path (str): path relative to the root, POSIX separators
            is_dir (bool): whether the path is a directory (enables `dir/` patterns)

        Returns:
            bool: True when the path must be skipped
        """
        rel = rel_path.replace("\\", "/").strip("/")
        if not rel or rel == ".":
            return False
        ignored = False
        for base, patterns in self._compiled:
            if base:
                if not rel.startswith(base + "/"):
                    continue
                candidate = rel[len(base) + 1 :]
            else:
                candidate = rel
            if is_dir:
                candidate += "/"
            for pattern in patterns:
                if pattern.include is not None and pattern.match_file(candidate) is not None:
                    ignored = pattern.include
        return ignored

    def may_reinclude_under(self, rel_dir: str) -> bool:
        """Tell whether a negation pattern explicitly names a path below a directory.

        Used to descend into an ignored directory only when one of its entries
        can be re-included, e.g. `node_modules` + `!node_modules/keep.txt`.

        Args:
            rel_dir (str): directory relative to the root

        Returns:
            bool: True when some `!pattern` targets a path under `rel_dir`
        """
        prefix = rel_dir.replace("\\", "/").strip("/") + "/"
        for rs in self.rule_sets:
            for raw in rs.patterns:
                if not raw.startswith("!"):
                    continue
                body = raw[1:].strip().lstrip("/")
                full = f"{rs.base}/{body}" if rs.base else body
                if full.startswith(prefix):
                    return True
        return False

    def __call__(self, rel_path: str) -> bool:
        return self.is_ignored(rel_path)
