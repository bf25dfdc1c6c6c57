"""Filesystem storage for issue documents.

Layout under the issues directory::

    open/issue-0001.md      open collection
    closed/issue-0002.md    closed collection
    config/templates/tag/   project tag templates
    .current                current-issue pointer (one issue number)

An issue lives in exactly one of ``open/`` and ``closed/``. Writes replace
the whole file atomically; there is no locking, so concurrent writers to
the same issue resolve as last write wins.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

from .errors import (
    InvalidIssueNumberError,
    IssueNotFoundError,
    StorageError,
    UninitializedError,
)
from .issuecards_logging import log_error_with_context
from .models import ISSUE_STATUSES, Issue


logger = logging.getLogger("issue_cards.store")

ISSUE_NUMBER_WIDTH = 4
ISSUE_FILE_PATTERN = re.compile(r"^issue-(?P<number>\d+)\.md$")
ISSUE_TITLE_PATTERN = re.compile(r"^#\s+Issue\s+\d+:\s+(?P<title>.+?)\s*$")
HEADING_TITLE_PATTERN = re.compile(r"^#{1,6}\s+(?P<title>.+?)\s*#*\s*$")
UNTITLED_ISSUE = "Untitled Issue"


def normalize_issue_number(issue_number: object) -> str:
    """Return the zero-padded form of a positive issue number.

    Accepts ``1``, ``"1"`` and ``"0001"``; anything else raises
    InvalidIssueNumberError.
    """
    text = str(issue_number).strip()
    if not text.isdigit() or int(text) <= 0:
        raise InvalidIssueNumberError(issue_number)
    return str(int(text)).zfill(ISSUE_NUMBER_WIDTH)


def extract_issue_title(content: str) -> str:
    """Title from the ``# Issue 0001: Title`` line, else the first heading."""
    for line in content.splitlines():
        if not line.strip():
            continue
        match = ISSUE_TITLE_PATTERN.match(line.strip())
        if match:
            return match.group("title")
        break
    for line in content.splitlines():
        match = HEADING_TITLE_PATTERN.match(line.strip())
        if match:
            return match.group("title")
    return UNTITLED_ISSUE


class IssueStore:
    """Read and write issue documents in the open and closed collections."""

    CURRENT_POINTER_FILE = ".current"

    def __init__(self, issues_dir: Path | str):
        self.issues_dir = Path(issues_dir)
        self.open_dir = self.issues_dir / "open"
        self.closed_dir = self.issues_dir / "closed"
        self.templates_dir = self.issues_dir / "config" / "templates" / "tag"
        self.current_pointer_path = self.issues_dir / self.CURRENT_POINTER_FILE

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def is_initialized(self) -> bool:
        """Check whether the tracker directories exist."""
        return self.open_dir.is_dir() and self.closed_dir.is_dir()

    def require_initialized(self) -> None:
        if not self.is_initialized():
            raise UninitializedError()

    def initialize(self) -> bool:
        """Create the directory structure; return False if it already existed."""
        existed = self.is_initialized()
        try:
            for directory in (self.open_dir, self.closed_dir, self.templates_dir):
                directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            log_error_with_context(e, {"operation": "initialize", "issues_dir": str(self.issues_dir)})
            raise StorageError(f"Could not initialize issue tracking at {self.issues_dir}: {e}") from e
        if not existed:
            logger.info(f"Initialized issue tracking at {self.issues_dir}")
        return not existed

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def issue_path(self, issue_number: str, status: str = "open") -> Path:
        """Path of an issue file in the given collection."""
        if status not in ISSUE_STATUSES:
            raise ValueError(f"Invalid issue status: {status}")
        directory = self.open_dir if status == "open" else self.closed_dir
        return directory / f"issue-{normalize_issue_number(issue_number)}.md"

    def issue_exists(self, issue_number: str, status: Optional[str] = None) -> bool:
        """Check whether an issue exists, optionally in one collection only."""
        statuses = ISSUE_STATUSES if status is None else (status,)
        return any(self.issue_path(issue_number, s).is_file() for s in statuses)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def list_issues(self, status: str = "open") -> List[Issue]:
        """List issues in a collection ordered by number ascending."""
        self.require_initialized()
        directory = self.open_dir if status == "open" else self.closed_dir
        try:
            entries = list(directory.iterdir())
        except OSError as e:
            raise StorageError(f"Failed to list issues: {e}") from e

        numbered: List[tuple[int, Path]] = []
        for path in entries:
            match = ISSUE_FILE_PATTERN.match(path.name)
            if match and path.is_file():
                numbered.append((int(match.group("number")), path))
        numbered.sort()

        issues: List[Issue] = []
        for number, path in numbered:
            content = self._read(path)
            issues.append(
                Issue(
                    number=str(number).zfill(ISSUE_NUMBER_WIDTH),
                    title=extract_issue_title(content),
                    content=content,
                    status=status,
                )
            )
        return issues

    def counts(self) -> Dict[str, int]:
        """Number of issues per collection."""
        return {status: len(self.list_issues(status)) for status in ISSUE_STATUSES}

    def get_issue(self, issue_number: str) -> str:
        """Return an issue's content, searching open then closed."""
        return self.get_issue_record(issue_number).content

    def get_issue_record(self, issue_number: str) -> Issue:
        """Return an issue with its status, searching open then closed."""
        self.require_initialized()
        number = normalize_issue_number(issue_number)
        for status in ISSUE_STATUSES:
            path = self.issue_path(number, status)
            if path.is_file():
                content = self._read(path)
                return Issue(number=number, title=extract_issue_title(content), content=content, status=status)
        raise IssueNotFoundError(number)

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def save_issue(self, issue_number: str, content: str) -> Path:
        """Replace an open issue's content atomically."""
        self.require_initialized()
        path = self.issue_path(issue_number, "open")
        try:
            fd, temp_name = tempfile.mkstemp(prefix=".issue-", suffix=".tmp", dir=str(path.parent))
            try:
                with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                    handle.write(content)
                os.replace(temp_name, path)
            except BaseException:
                if os.path.exists(temp_name):
                    os.unlink(temp_name)
                raise
        except OSError as e:
            log_error_with_context(e, {"operation": "save_issue", "issue_number": issue_number, "path": str(path)})
            raise StorageError(f"Failed to save issue #{issue_number}: {e}") from e
        logger.debug(f"Saved issue #{issue_number} to {path}")
        return path

    def close_issue(self, issue_number: str) -> Path:
        """Move an issue from the open to the closed collection."""
        self.require_initialized()
        number = normalize_issue_number(issue_number)
        open_path = self.issue_path(number, "open")
        closed_path = self.issue_path(number, "closed")
        if not open_path.is_file():
            raise IssueNotFoundError(number)
        try:
            os.replace(open_path, closed_path)
        except OSError as e:
            log_error_with_context(e, {"operation": "close_issue", "issue_number": number})
            raise StorageError(f"Failed to close issue #{number}: {e}") from e
        logger.info(f"Closed issue #{number}")
        return closed_path

    # ------------------------------------------------------------------
    # Current-issue pointer
    # ------------------------------------------------------------------

    def get_current_pointer(self) -> Optional[str]:
        """Issue number stored in the pointer file, if any."""
        if not self.current_pointer_path.is_file():
            return None
        value = self._read(self.current_pointer_path).strip()
        if not value:
            return None
        try:
            return normalize_issue_number(value)
        except InvalidIssueNumberError:
            logger.warning(f"Ignoring malformed current-issue pointer: {value!r}")
            return None

    def get_current_issue(self) -> Optional[Issue]:
        """The pointer's issue when it is open, otherwise the oldest open issue."""
        pointer = self.get_current_pointer()
        if pointer is not None:
            path = self.issue_path(pointer, "open")
            if path.is_file():
                content = self._read(path)
                return Issue(number=pointer, title=extract_issue_title(content), content=content)
            logger.warning(f"Current-issue pointer names #{pointer}, which is not open; using the oldest open issue")
        issues = self.list_issues()
        return issues[0] if issues else None

    def set_current_issue(self, issue_number: str) -> str:
        """Point the current-issue marker at an open issue."""
        self.require_initialized()
        number = normalize_issue_number(issue_number)
        if not self.issue_exists(number, "open"):
            raise IssueNotFoundError(number)
        try:
            self.current_pointer_path.write_text(f"{number}\n", encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to set current issue: {e}") from e
        return number

    def clear_current_issue(self) -> None:
        """Remove the current-issue marker."""
        try:
            self.current_pointer_path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to clear current issue: {e}") from e

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _read(self, path: Path) -> str:
        try:
            with path.open("r", encoding="utf-8", newline="") as handle:
                return handle.read()
        except OSError as e:
            raise StorageError(f"Failed to read {path.name}: {e}") from e
