"""Best-effort git staging of issue files.

Staging is a side channel: :func:`stage_quietly` is the single place
where its failures are caught, logged at DEBUG and dropped. Callers get a
boolean and never an exception.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Iterable, List

from .errors import GitStageError


logger = logging.getLogger("issue_cards.git")

GIT_TIMEOUT_SECONDS = 10


def is_git_available() -> bool:
    """Check whether a git executable is on PATH."""
    return shutil.which("git") is not None


def is_git_repository(cwd: Path) -> bool:
    """Check whether ``cwd`` is inside a git work tree."""
    if not is_git_available():
        return False
    result = subprocess.run(
        ["git", "rev-parse", "--is-inside-work-tree"],
        check=False,
        capture_output=True,
        text=True,
        cwd=str(cwd),
        timeout=GIT_TIMEOUT_SECONDS,
    )
    return result.returncode == 0 and result.stdout.strip() == "true"


def run_git(args: List[str], cwd: Path) -> str:
    """Run one git command and return stdout or raise GitStageError."""
    try:
        result = subprocess.run(
            ["git", *args],
            check=False,
            capture_output=True,
            text=True,
            cwd=str(cwd),
            timeout=GIT_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.SubprocessError) as e:
        raise GitStageError(f"git {' '.join(args)} could not run: {e}") from e
    if result.returncode != 0:
        details = (result.stderr or result.stdout).strip() or "unknown git error"
        raise GitStageError(f"git {' '.join(args)} failed: {details}")
    return result.stdout.strip()


def stage_paths(paths: Iterable[Path], cwd: Path) -> List[Path]:
    """Stage each path, including deletions, and return the staged ones.

    Raises GitStageError when git is missing, ``cwd`` is not a repository,
    or a path cannot be staged.
    """
    if not is_git_available():
        raise GitStageError("git is not available on this system")
    if not is_git_repository(cwd):
        raise GitStageError(f"{cwd} is not inside a git repository")

    staged: List[Path] = []
    errors: List[str] = []
    for path in paths:
        try:
            run_git(["add", "-A", "--", str(path)], cwd)
        except GitStageError as e:
            errors.append(str(e))
            continue
        staged.append(path)
    if errors:
        raise GitStageError("; ".join(errors))
    return staged


class GitStager:
    """Stage changed issue files after the engine has committed its state."""

    def __init__(self, repo_root: Path, enabled: bool = True):
        self.repo_root = Path(repo_root)
        self.enabled = enabled

    def stage_quietly(self, *paths: Path) -> bool:
        """Stage ``paths``; report success without ever raising.

        Staging errors stop here and are only logged at DEBUG.
        """
        if not self.enabled or not paths:
            return False
        try:
            stage_paths(paths, self.repo_root)
        except Exception as e:
            logger.debug(f"Git staging skipped (ignored): {e}")
            return False
        logger.debug(f"Staged {len(paths)} path(s) in git")
        return True
