"""Expand tagged tasks into concrete ordered steps.

Expansion is presentation only: the steps are recomputed whenever a task
is displayed and never written back into the document.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from .models import Task
from .tag_templates import TASK_PLACEHOLDER, StepTemplateRegistry, render_steps
from .task_parser import clean_task_text


def expand_task(task: Task, registry: Optional[StepTemplateRegistry] = None) -> List[str]:
    """Return the ordered steps implied by a task's tags.

    Untagged tasks expand to nothing. Tags missing from the registry are
    skipped. The task placeholder is filled with the task text (tags
    removed) at its first occurrence only, so combining several tags still
    lists the task itself once.
    """
    if not task.tags:
        return []

    active_registry = registry if registry is not None else StepTemplateRegistry()
    steps: List[str] = []
    placeholder_used = False
    for tag in task.tags:
        templates = active_registry.templates_for(tag.name)
        if not templates:
            continue
        for step in render_steps(templates, tag):
            if step == TASK_PLACEHOLDER:
                if placeholder_used:
                    continue
                placeholder_used = True
                step = clean_task_text(task.text)
            steps.append(step)
    return steps


def expand_tasks(
    tasks: Sequence[Task],
    registry: Optional[StepTemplateRegistry] = None,
) -> List[Tuple[Task, List[str]]]:
    """Pair every task with its expanded steps."""
    return [(task, expand_task(task, registry)) for task in tasks]
