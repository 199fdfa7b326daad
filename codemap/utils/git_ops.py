"""Git operations — locate the repository that owns a directory."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from git import InvalidGitRepositoryError, NoSuchPathError, Repo

logger = logging.getLogger(__name__)


@dataclass
class RepoInfo:
    """Where the git work tree and metadata live for a scanned directory."""

    work_tree: Path
    """Root of the work tree (the directory holding the top-level .gitignore)."""

    git_dir: Path
    """The repository's git directory (usually ``<work_tree>/.git``)."""

    def relative_scope(self, path: Path) -> str:
        """Return ``path`` relative to the work tree, forward-slash separated.

        The empty string means ``path`` is the work tree itself.
        """
        rel = Path(path).resolve().relative_to(self.work_tree).as_posix()
        return "" if rel == "." else rel


def find_repo(path: str | Path) -> RepoInfo | None:
    """Return the git work tree containing ``path``, or None.

    Parent directories are searched, so ``path`` may be anywhere inside the
    work tree. Bare repositories have no work tree and yield None.
    """
    try:
        repo = Repo(path, search_parent_directories=True)
    except (InvalidGitRepositoryError, NoSuchPathError):
        logger.debug("No git repository found for %s", path)
        return None

    try:
        if repo.bare or repo.working_tree_dir is None:
            return None
        return RepoInfo(
            work_tree=Path(repo.working_tree_dir).resolve(),
            git_dir=Path(repo.git_dir).resolve(),
        )
    finally:
        repo.close()
