"""Issue Cards - markdown issue tracking with a task lifecycle engine."""

from .issue_store import IssueStore
from .lifecycle import IssueLifecycle
from .models import CompletionResult, Issue, Tag, Task
from .tag_templates import StepTemplateRegistry

__all__ = [
    "IssueLifecycle",
    "IssueStore",
    "StepTemplateRegistry",
    "Task",
    "Tag",
    "Issue",
    "CompletionResult",
]
