"""Checklist parsing for issue documents.

Issue documents are free-form markdown edited by hand or by an agent, so
the parser is a narrow single-line recognizer: any line that looks like a
checklist item is a task, anything else is ignored. Nothing in a document
makes parsing fail. Checklist lines inside fenced code blocks are examples,
not tasks.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .models import Tag, Task
from .sections import TASKS_SECTION, fenced_line_flags, section_bounds


CHECKLIST_LINE_PATTERN = re.compile(
    r"^(?P<indent>[ \t]*)(?P<marker>[-*+])[ \t]+\[(?P<mark>[ xX])\][ \t]+(?P<text>\S.*?)[ \t]*$"
)
TAG_PATTERN = re.compile(
    r"(?<!\S)\+(?P<name>[A-Za-z0-9][A-Za-z0-9_-]*)(?:\((?P<argument>[^)]*)\))?"
)


def iter_checklist_lines(document_text: str) -> Iterator[Tuple[int, int, re.Match]]:
    """Yield ``(line_number, line_offset, match)`` for every task line.

    ``line_offset`` is the character offset of the line start inside
    ``document_text`` so callers can rewrite a single character in place.
    """
    lines = document_text.splitlines(keepends=True)
    section = section_bounds(lines, TASKS_SECTION)
    fenced = fenced_line_flags(lines)
    offset = 0
    for line_number, raw_line in enumerate(lines):
        line_offset = offset
        offset += len(raw_line)
        if section is not None and not section[0] < line_number < section[1]:
            continue
        if fenced[line_number]:
            continue
        match = CHECKLIST_LINE_PATTERN.match(raw_line.rstrip("\r\n"))
        if match is None:
            continue
        yield line_number, line_offset, match


def extract_tasks(document_text: str) -> List[Task]:
    """Extract the ordered task list from an issue document."""
    tasks: List[Task] = []
    for line_number, _, match in iter_checklist_lines(document_text or ""):
        text = match.group("text")
        tasks.append(
            Task(
                index=len(tasks),
                text=text,
                completed=match.group("mark").lower() == "x",
                tags=tuple(extract_tags(text)),
                line_number=line_number,
            )
        )
    return tasks


def find_current_task(tasks: Sequence[Task]) -> Optional[Task]:
    """Return the first incomplete task, or None when everything is done."""
    for task in tasks:
        if not task.completed:
            return task
    return None


def upcoming_tasks(tasks: Sequence[Task], current: Task) -> List[Task]:
    """Tasks positioned after ``current`` in document order."""
    return [task for task in tasks if task.index > current.index]


def parse_tag(tag_string: str) -> Tag:
    """Parse ``name`` or ``name(argument)`` into a Tag.

    An argument made of ``key=value`` pairs separated by commas is also
    exposed as ``params``.
    """
    cleaned = tag_string.strip().lstrip("+")
    match = TAG_PATTERN.fullmatch(f"+{cleaned}")
    if match is None:
        return Tag(name=cleaned)
    argument = match.group("argument")
    if argument is not None:
        argument = argument.strip()
    return Tag(name=match.group("name"), argument=argument, params=_parse_params(argument))


def extract_tags(text: str) -> List[Tag]:
    """Find every expansion tag in a task's text, in appearance order."""
    return [parse_tag(match.group(0)) for match in TAG_PATTERN.finditer(text)]


def clean_task_text(text: str) -> str:
    """Task text with its expansion tags removed."""
    without_tags = TAG_PATTERN.sub("", text)
    return re.sub(r"[ \t]{2,}", " ", without_tags).strip()


def summarize(tasks: Iterable[Task]) -> Dict[str, int]:
    """Count total, completed and remaining tasks."""
    items = list(tasks)
    completed = sum(1 for task in items if task.completed)
    return {"total": len(items), "completed": completed, "remaining": len(items) - completed}


# ------------------------------------------------------------------
# Private helpers
# ------------------------------------------------------------------

def _parse_params(argument: Optional[str]) -> Dict[str, str]:
    if not argument or "=" not in argument:
        return {}
    params: Dict[str, str] = {}
    for pair in argument.split(","):
        key, sep, value = pair.partition("=")
        key = key.strip()
        value = value.strip()
        if sep and key and value:
            params[key] = value
    return params
