"""Resolve runtime configuration for Issue Cards from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional


ISSUES_DIR_ENV = "ISSUE_CARDS_DIR"
GIT_STAGE_ENV = "ISSUE_CARDS_GIT_STAGE"
LOG_LEVEL_ENV = "ISSUE_CARDS_LOG_LEVEL"
LOG_FILE_ENV = "ISSUE_CARDS_LOG_FILE"

DEFAULT_ISSUES_DIR_NAME = ".issues"
FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class IssueCardsConfig:
    """Store the paths and switches used by the engine and its adapters."""

    issues_dir: Path
    git_staging: bool = True
    log_level: str = "WARNING"
    log_file: Optional[Path] = None

    @property
    def repo_root(self) -> Path:
        """Directory git commands run in."""
        return self.issues_dir.parent

    @property
    def templates_dir(self) -> Path:
        """Directory holding project tag templates."""
        return self.issues_dir / "config" / "templates" / "tag"


def build_default_config(
    environ: Optional[Mapping[str, str]] = None,
    *,
    cwd: Optional[Path] = None,
    default_log_level: str = "WARNING",
) -> IssueCardsConfig:
    """Build configuration from environment variables and the working directory."""
    env = os.environ if environ is None else environ
    base = Path(cwd) if cwd is not None else Path.cwd()

    issues_dir_value = env.get(ISSUES_DIR_ENV)
    if issues_dir_value:
        issues_dir = Path(issues_dir_value).expanduser()
        if not issues_dir.is_absolute():
            issues_dir = base / issues_dir
    else:
        issues_dir = base / DEFAULT_ISSUES_DIR_NAME

    log_file_value = env.get(LOG_FILE_ENV)
    return IssueCardsConfig(
        issues_dir=issues_dir.resolve(),
        git_staging=env.get(GIT_STAGE_ENV, "1").strip().lower() not in FALSE_VALUES,
        log_level=(env.get(LOG_LEVEL_ENV) or default_log_level).upper(),
        log_file=Path(log_file_value).expanduser() if log_file_value else None,
    )
