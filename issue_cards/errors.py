"""Typed errors raised by the issue tracking engine.

Every error carries the exit code the command layer should use and an
optional recovery hint telling the user what to do next. The engine never
prints or exits itself; adapters decide how to surface these.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class IssueCardsError(Exception):
    """Base class for all user-facing issue tracking errors."""

    exit_code = 1

    def __init__(self, message: str, *, recovery_hint: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.recovery_hint = recovery_hint or ""

    def with_recovery_hint(self, hint: str) -> "IssueCardsError":
        """Attach a recovery hint and return the error for chaining."""
        self.recovery_hint = hint
        return self

    @property
    def display_message(self) -> str:
        """Message with the recovery hint appended, as shown to users."""
        if self.recovery_hint:
            return f"{self.message} ({self.recovery_hint})"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a structured failure payload."""
        return {
            "success": False,
            "error": self.message,
            "error_type": type(self).__name__,
            "recovery_hint": self.recovery_hint or None,
        }


class UserError(IssueCardsError):
    """Invalid input or a state the user has to resolve."""

    exit_code = 2


class UninitializedError(UserError):
    """Issue tracking has not been set up in this project."""

    def __init__(self) -> None:
        super().__init__(
            "Issue tracking is not initialized",
            recovery_hint="Run `issue-cards init` first",
        )


class NoCurrentIssueError(UserError):
    """There is no open issue to work on."""

    def __init__(self) -> None:
        super().__init__(
            "No open issues found.",
            recovery_hint="Create a new issue, or run `issue-cards list` to review the tracker",
        )


class NoTaskFoundError(UserError):
    """The current issue has nothing left to advance."""

    def __init__(self, issue_number: Optional[str] = None) -> None:
        message = "No tasks found or all tasks are already completed."
        if issue_number:
            message = f"Issue #{issue_number}: {message}"
        super().__init__(
            message,
            recovery_hint="Add a task with `issue-cards add-task` or pick another issue with `issue-cards set-current`",
        )
        self.issue_number = issue_number


class IssueNotFoundError(UserError):
    """The requested issue does not exist in the expected collection."""

    def __init__(self, issue_number: str) -> None:
        super().__init__(f"Issue #{issue_number} not found")
        self.issue_number = issue_number


class InvalidIssueNumberError(UserError):
    """An issue number was not a positive integer."""

    def __init__(self, issue_number: Any) -> None:
        super().__init__(
            f"Invalid issue number: {issue_number}",
            recovery_hint="Must be a positive integer",
        )


class OutOfRangeError(IssueCardsError, IndexError):
    """A task index does not exist in the parsed task list."""

    exit_code = 2

    def __init__(self, task_index: int, task_count: int) -> None:
        super().__init__(
            f"Task index {task_index} out of range (document has {task_count} tasks)"
        )
        self.task_index = task_index
        self.task_count = task_count


class StorageError(IssueCardsError):
    """Unexpected failure reading or writing issue documents."""

    exit_code = 3


class GitStageError(Exception):
    """Staging a file in git failed.

    Only raised inside the staging sidecar and never propagated past it.
    """


class TemplateNotFoundError(UserError):
    """No tag template is registered under the requested name."""

    def __init__(self, template_name: str) -> None:
        super().__init__(
            f"Template not found: {template_name}",
            recovery_hint="Run `issue-cards templates` to list available tag templates",
        )


class SectionNotFoundError(UserError):
    """The issue document has no section with the requested name."""

    def __init__(self, section: str) -> None:
        super().__init__(
            f'Section "{section}" not found in issue',
            recovery_hint=f"Add a '## {section}' heading to the issue or choose another section",
        )
        self.section = section
