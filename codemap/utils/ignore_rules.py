"""Ignore rules — decide whether a repository path is excluded by .gitignore.

Rules come from ``.git/info/exclude`` and every ``.gitignore`` in the work
tree. A nested ``.gitignore`` only applies to paths under its directory and
its patterns are relative to that directory. Deeper files take precedence
over shallower ones, and within one file the last matching pattern wins.

Only the common subset of gitignore behaviour is covered. Git refuses to
re-include a file whose parent directory is excluded; here a later ``!``
pattern re-includes it anyway. ``core.excludesFile`` is not read.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

import pathspec

from codemap.errors import UnreadablePathError

logger = logging.getLogger(__name__)

GITIGNORE = ".gitignore"


@dataclass
class IgnoreLevel:
    """Patterns from one ignore file, scoped to ``base`` ("" is the root)."""

    base: str
    spec: pathspec.PathSpec
    source: str = ""

    @property
    def depth(self) -> int:
        return 0 if not self.base else self.base.count("/") + 1

    def applies_to(self, rel_path: str) -> bool:
        return not self.base or rel_path.startswith(self.base + "/")

    def decide(self, rel_path: str) -> bool | None:
        """Return True (ignored), False (negated) or None (no pattern matched)."""
        local = rel_path[len(self.base) + 1:] if self.base else rel_path
        decision = None
        for pattern in self.spec.patterns:
            if pattern.include is None:
                continue
            if pattern.match_file(local) is not None:
                decision = pattern.include
        return decision


@dataclass
class IgnoreRules:
    """An ordered set of ignore levels evaluated as a pure function of a path."""

    levels: list[IgnoreLevel] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "IgnoreRules":
        """Rule set for a directory with no version control."""
        return cls()

    @classmethod
    def from_lines(cls, lines: Iterable[str], base: str = "") -> "IgnoreRules":
        """Build a rule set from in-memory gitignore lines."""
        rules = cls()
        rules.add_level(base, lines)
        return rules

    @classmethod
    def load(
        cls,
        work_tree: str | Path,
        git_dir: str | Path | None = None,
        scope: str = "",
    ) -> "IgnoreRules":
        """Read ignore files for a work tree.

        Args:
            work_tree: Root of the git work tree.
            git_dir: The repository's git directory, for ``info/exclude``.
            scope: Work-tree-relative directory to restrict nested
                ``.gitignore`` loading to. Ignore files in the ancestors of
                ``scope`` are always read.

        Raises:
            UnreadablePathError: A directory cannot be listed or an ignore
                file cannot be read.
        """
        root = Path(work_tree)
        rules = cls()

        if git_dir is not None:
            exclude = Path(git_dir) / "info" / "exclude"
            if exclude.is_file():
                rules.add_level("", _read_lines(exclude), source=str(exclude))

        scope = scope.strip("/")
        ancestors: list[str] = []
        if scope:
            parts = scope.split("/")
            ancestors = [""] + ["/".join(parts[: i + 1]) for i in range(len(parts) - 1)]
        for rel_dir in ancestors:
            rules._load_dir(root, rel_dir)

        scope_dir = root / scope if scope else root
        for dirpath, dirnames, _filenames in os.walk(
            scope_dir, onerror=raise_unreadable, followlinks=False
        ):
            rel_dir = Path(dirpath).relative_to(root).as_posix()
            rel_dir = "" if rel_dir == "." else rel_dir
            rules._load_dir(root, rel_dir)
            dirnames[:] = sorted(
                d
                for d in dirnames
                if d != ".git" and not rules.is_ignored(_join(rel_dir, d), is_dir=True)
            )

        logger.debug("Loaded %d ignore levels from %s", len(rules.levels), root)
        return rules

    def add_level(self, base: str, lines: Iterable[str], source: str = "") -> None:
        """Add patterns scoped to ``base``, keeping levels ordered by depth.

        Lines git would not understand are skipped with a warning, as git
        itself skips them.
        """
        patterns = []
        for line in lines:
            try:
                patterns.extend(pathspec.PathSpec.from_lines("gitignore", [line]).patterns)
            except ValueError as e:
                logger.warning("Skipping ignore pattern %r in %s: %s", line, source or "<memory>", e)
        spec = pathspec.PathSpec(patterns)
        self.levels.append(IgnoreLevel(base=base.strip("/"), spec=spec, source=source))
        self.levels.sort(key=lambda level: level.depth)

    def is_ignored(self, rel_path: str, is_dir: bool = False) -> bool:
        """Whether a work-tree-relative path is excluded.

        Directories must be passed with ``is_dir=True`` so that
        directory-only patterns (``build/``) apply to them.
        """
        rel_path = rel_path.strip("/")
        if is_dir:
            rel_path += "/"
        ignored = False
        for level in self.levels:
            if not level.applies_to(rel_path):
                continue
            decision = level.decide(rel_path)
            if decision is not None:
                ignored = decision
        return ignored

    def _load_dir(self, root: Path, rel_dir: str) -> None:
        path = root / rel_dir / GITIGNORE if rel_dir else root / GITIGNORE
        if path.is_file():
            self.add_level(rel_dir, _read_lines(path), source=str(path))


def raise_unreadable(error: OSError) -> None:
    """``os.walk`` error hook: fail instead of skipping an unlistable directory."""
    raise UnreadablePathError.from_os_error(error) from error


def _read_lines(path: Path) -> list[str]:
    try:
        return path.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError as e:
        raise UnreadablePathError(path, e.strerror or str(e)) from e


def _join(rel_dir: str, name: str) -> str:
    return f"{rel_dir}/{name}" if rel_dir else name
