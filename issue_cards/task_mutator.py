"""In-place edits of an issue document.

All changes to raw document text go through this module. Task positions
are always taken from a fresh parse of the text being edited.
"""

from __future__ import annotations

from .errors import OutOfRangeError, SectionNotFoundError, UserError
from .sections import (
    FAILED_ATTEMPT_HEADING,
    TASKS_SECTION,
    fenced_line_flags,
    normalize_section_name,
    section_bounds,
)
from .task_parser import iter_checklist_lines


def update_task_status(document_text: str, task_index: int, completed: bool) -> str:
    """Set the completion mark of one task and return the new document.

    Only the character between the brackets changes. Setting a task to the
    state it already has returns the input unchanged.
    """
    located = list(iter_checklist_lines(document_text))
    if task_index < 0 or task_index >= len(located):
        raise OutOfRangeError(task_index, len(located))

    _, line_offset, match = located[task_index]
    current_mark = match.group("mark")
    if (current_mark.lower() == "x") == completed:
        return document_text

    position = line_offset + match.start("mark")
    new_mark = "x" if completed else " "
    return document_text[:position] + new_mark + document_text[position + 1:]


def append_task(document_text: str, description: str) -> str:
    """Add an unchecked task after the last task of the document.

    A fenced or indented block belonging to the last task stays attached
    to it. When the document has no tasks the item goes at the end of its
    ``## Tasks`` section, or a new section is appended.
    """
    description = " ".join(description.split())
    if not description:
        raise UserError("Task description cannot be empty")

    newline = _newline_of(document_text)
    lines = document_text.splitlines(keepends=True)
    new_line = f"- [ ] {description}{newline}"
    bounds = section_bounds(lines, TASKS_SECTION)

    located = list(iter_checklist_lines(document_text))
    if located:
        limit = bounds[1] if bounds is not None else len(lines)
        insert_at = _skip_continuation(lines, located[-1][0] + 1, limit)
    elif bounds is not None:
        insert_at = _section_insert_index(lines, *bounds)
    else:
        body = document_text
        if body and not body.endswith(("\n", "\r")):
            body += newline
        separator = newline if body.strip() else ""
        return f"{body}{separator}## Tasks{newline}{newline}{new_line}"

    return _insert_lines(lines, insert_at, [new_line], newline)


def append_to_section(document_text: str, section: str, content: str, *, list_item: bool = False) -> str:
    """Append a block of text to the end of a ``## `` section.

    List items go straight after the section's last line; prose is kept
    apart from existing content by a blank line. An empty section gets the
    block right after its heading.
    """
    content = content.strip()
    if not content:
        raise UserError("Content cannot be empty")

    newline = _newline_of(document_text)
    lines = document_text.splitlines(keepends=True)
    bounds = section_bounds(lines, section)
    if bounds is None:
        raise SectionNotFoundError(normalize_section_name(section))

    start, end = bounds
    insert_at = _section_insert_index(lines, start, end)
    block = [f"{line.rstrip()}{newline}" for line in content.splitlines()]
    if insert_at > start + 1 and not list_item:
        block.insert(0, newline)
    if insert_at < len(lines) and lines[insert_at].strip():
        block.append(newline)
    return _insert_lines(lines, insert_at, block, newline)


def format_question(question: str) -> str:
    """A question as a list item, ending in a question mark."""
    question = " ".join(question.split()).rstrip("?")
    if not question:
        raise UserError("Question cannot be empty")
    return f"- {question}?"


def format_failed_attempt(approach: str, reason: str | None = None) -> str:
    """A ``### Failed attempt`` note recording an approach and why it failed."""
    approach = approach.strip()
    if not approach:
        raise UserError("Approach description cannot be empty")
    reason = (reason or "").strip() or "Not specified"
    return f"{FAILED_ATTEMPT_HEADING}\n\n{approach}\n\n**Reason:** {reason}"


# ------------------------------------------------------------------
# Private helpers
# ------------------------------------------------------------------

def _newline_of(document_text: str) -> str:
    return "\r\n" if "\r\n" in document_text else "\n"


def _section_insert_index(lines: list[str], start: int, end: int) -> int:
    """Index right after the last non-blank line of a section."""
    insert_at = start + 1
    for index in range(start + 1, end):
        if lines[index].strip():
            insert_at = index + 1
    return insert_at


def _skip_continuation(lines: list[str], index: int, limit: int) -> int:
    """Advance past fenced or indented lines that continue a list item."""
    fenced = fenced_line_flags(lines)
    while index < limit:
        line = lines[index]
        if not (fenced[index] or (line.strip() and line[0] in " \t")):
            break
        index += 1
    return index


def _insert_lines(lines: list[str], insert_at: int, block: list[str], newline: str) -> str:
    if insert_at > 0 and not lines[insert_at - 1].endswith(("\n", "\r")):
        lines[insert_at - 1] += newline
    lines[insert_at:insert_at] = block
    return "".join(lines)
