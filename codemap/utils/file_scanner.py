"""File scanner — discover in-scope project files.

Patterns are globs relative to the repository root. Files excluded by the
repository's ignore rules are dropped unless an ``include_ignored`` pattern
names them.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Sequence

import pathspec

from codemap.errors import InvalidPatternError, InvalidRootError
from codemap.utils.git_ops import find_repo
from codemap.utils.ignore_rules import IgnoreRules, raise_unreadable

logger = logging.getLogger(__name__)

# Never descended into, never emitted
SKIP_NAMES = {".git"}


def discover_files(
    repo_root: str | Path,
    patterns: Sequence[str],
    include_ignored: Sequence[str] | None = None,
    exclude: Sequence[str] | None = None,
) -> list[str]:
    """Enumerate files under ``repo_root`` matching ``patterns``.

    Args:
        repo_root: Directory to scan. If it is inside a git work tree the
            work tree's ignore rules apply; otherwise nothing is ignored.
        patterns: Globs (``*``, ``**``, ``?``, ``[...]``) relative to
            ``repo_root``. At least one is required.
        include_ignored: Globs naming ignored files to keep anyway.
        exclude: Globs naming files to drop regardless of the above.

    Returns:
        Sorted, deduplicated, forward-slash paths relative to ``repo_root``.
        Symlinked files are followed; symlinked directories are not.

    Raises:
        InvalidRootError: ``repo_root`` is missing or not a directory.
        InvalidPatternError: A pattern is malformed, or ``patterns`` is empty.
        UnreadablePathError: A directory or ignore file cannot be read. No
            partial result is returned.
    """
    root = Path(repo_root)
    if not root.is_dir():
        raise InvalidRootError(repo_root)

    if not patterns:
        raise InvalidPatternError("", "at least one pattern is required")
    match_spec = compile_patterns(patterns)
    include_spec = compile_patterns(include_ignored) if include_ignored else None
    exclude_spec = compile_patterns(exclude) if exclude else None

    repo = find_repo(root)
    if repo is not None:
        scope = repo.relative_scope(root)
        rules = IgnoreRules.load(repo.work_tree, repo.git_dir, scope=scope)
    else:
        scope = ""
        rules = IgnoreRules.empty()

    def in_tree(rel: str) -> str:
        return f"{scope}/{rel}" if scope else rel

    found: set[str] = set()
    ignored = overridden = 0

    for dirpath, dirnames, filenames in os.walk(root, onerror=raise_unreadable, followlinks=False):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        rel_dir = "" if rel_dir == "." else rel_dir

        kept_dirs = []
        for name in sorted(dirnames):
            if name in SKIP_NAMES:
                continue
            rel = _join(rel_dir, name)
            if exclude_spec is not None and exclude_spec.covers_dir(rel):
                continue
            # Without overrides nothing under an ignored directory can survive
            if include_spec is None and rules.is_ignored(in_tree(rel), is_dir=True):
                continue
            kept_dirs.append(name)
        dirnames[:] = kept_dirs

        for name in filenames:
            if name in SKIP_NAMES:
                continue
            if not os.path.isfile(os.path.join(dirpath, name)):
                continue

            rel = _join(rel_dir, name)
            if not match_spec.match_file(rel):
                continue

            if rules.is_ignored(in_tree(rel)):
                if include_spec is None or not include_spec.match_file(rel):
                    ignored += 1
                    continue
                overridden += 1

            if exclude_spec is not None and exclude_spec.match_file(rel):
                continue

            found.add(rel)

    logger.debug(
        "Discovered %d files under %s (%d ignored, %d re-included)",
        len(found), root, ignored, overridden,
    )
    return sorted(found)


class GlobSet:
    """Root-anchored globs matched against whole file paths.

    The regexes come from pathspec's gitignore patterns, which also match
    everything below a matching directory. Here only globs ending in ``**``
    (or ``/``) reach into directories: ``src/**`` matches ``src/a/b.ts``
    while ``*.ts`` does not match ``lib.ts/readme.txt``.
    """

    def __init__(self, patterns: Sequence[pathspec.RegexPattern]):
        self.patterns = list(patterns)
        self._exact: list[re.Pattern] = []
        self._prefix: list[re.Pattern] = []
        for pattern in self.patterns:
            regex = pattern.regex
            # "." is pathspec's match-everything regex for "**" and "**/*"
            if regex.pattern == "." or regex.pattern.endswith("/"):
                self._prefix.append(regex)
            else:
                self._exact.append(regex)

    def match_file(self, rel_path: str) -> bool:
        if any(regex.fullmatch(rel_path) for regex in self._exact):
            return True
        return any(regex.search(rel_path) for regex in self._prefix)

    def covers_dir(self, rel_dir: str) -> bool:
        """Whether every file below ``rel_dir`` matches."""
        rel_dir = rel_dir.strip("/") + "/"
        return any(regex.search(rel_dir) for regex in self._prefix)


def compile_patterns(patterns: Sequence[str]) -> GlobSet:
    """Compile root-anchored globs into a matcher.

    Raises:
        InvalidPatternError: Naming the first pattern that cannot be used.
    """
    compiled = []
    for raw in patterns:
        glob = _anchor(raw)
        try:
            spec = pathspec.PathSpec.from_lines("gitignore", [glob])
        except ValueError as e:
            raise InvalidPatternError(raw, str(e)) from e
        if len(spec.patterns) != 1 or spec.patterns[0].include is not True:
            raise InvalidPatternError(raw, "not a glob pattern")
        compiled.extend(spec.patterns)
    return GlobSet(compiled)


def _anchor(raw: str) -> str:
    """Validate a glob and anchor it to the repository root."""
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidPatternError(str(raw), "empty pattern")

    glob = raw.strip()
    if glob.startswith("!"):
        raise InvalidPatternError(raw, "negated patterns are not supported, use exclude")
    if glob.startswith("#"):
        raise InvalidPatternError(raw, "patterns may not start with '#'")
    if _has_unclosed_bracket(glob):
        raise InvalidPatternError(raw, "unterminated character class")

    while glob.startswith("./"):
        glob = glob[2:]
    glob = glob.lstrip("/")
    if not glob:
        raise InvalidPatternError(raw, "pattern names the repository root")
    return "/" + glob


def _has_unclosed_bracket(glob: str) -> bool:
    i = 0
    while i < len(glob):
        char = glob[i]
        if char == "\\":
            i += 2
            continue
        if char == "[":
            # A ']' directly after '[' or '[!' is a literal member of the class
            j = i + 1
            if j < len(glob) and glob[j] in "!^":
                j += 1
            if j < len(glob) and glob[j] == "]":
                j += 1
            close = glob.find("]", j)
            if close == -1:
                return True
            i = close + 1
            continue
        i += 1
    return False


def _join(rel_dir: str, name: str) -> str:
    return f"{rel_dir}/{name}" if rel_dir else name
