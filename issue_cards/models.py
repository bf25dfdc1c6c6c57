"""Data models for Issue Cards.

This module contains the records the engine passes around: parsed tasks
and their tags, issues read from the store, and the result of advancing
the current task. Tasks and tags are recomputed from document text on
every read and are never persisted on their own.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


ISSUE_STATUSES = ("open", "closed")


@dataclass(frozen=True, slots=True)
class Tag:
    """An expansion tag such as ``+unit-test`` or ``+unit-test(parser)``."""

    name: str
    argument: Optional[str] = None
    params: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "name": self.name,
            "argument": self.argument,
            "params": dict(self.params),
        }

    def __hash__(self) -> int:
        return hash((self.name, self.argument))


@dataclass(frozen=True, slots=True)
class Task:
    """Representation of a single checklist line of an issue document."""

    index: int
    text: str
    completed: bool
    tags: Tuple[Tag, ...] = ()
    line_number: int = -1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "index": self.index,
            "text": self.text,
            "completed": self.completed,
            "tags": [tag.to_dict() for tag in self.tags],
        }


@dataclass(slots=True)
class Issue:
    """One tracked unit of work, backed by a single markdown document."""

    number: str
    title: str
    content: str
    status: str = "open"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "number": self.number,
            "title": self.title,
            "content": self.content,
            "status": self.status,
        }


@dataclass(slots=True)
class NextTask:
    """The task that became current after a completion."""

    index: int
    text: str
    expanded_steps: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "index": self.index,
            "text": self.text,
            "expanded_steps": list(self.expanded_steps),
        }


@dataclass(slots=True)
class CompletionResult:
    """Outcome of completing the current task of the current issue."""

    issue_number: str
    completed_task_text: str
    closed: bool
    next_task: Optional[NextTask] = None
    current_cleared: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        data: Dict[str, Any] = {
            "issue_number": self.issue_number,
            "closed": self.closed,
            "completed_task_text": self.completed_task_text,
            "current_cleared": self.current_cleared,
        }
        if self.next_task is not None:
            data["next_task"] = self.next_task.to_dict()
        return data
