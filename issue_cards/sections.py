"""Section structure of issue documents.

An issue is split into ``## `` sections such as "Problem to be solved",
"Tasks" and "Instructions". Section lookup accepts short aliases
(``problem``, ``failed``, ``questions`` ...). Lines inside fenced code
blocks are content, never headings.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple


HEADING_PATTERN = re.compile(r"^[ ]{0,3}(?P<level>#{1,6})[ \t]+(?P<title>.*?)[ \t#]*$")
FENCE_PATTERN = re.compile(r"^[ \t]*(?P<fence>`{3,}|~{3,})")
LIST_ITEM_PATTERN = re.compile(r"^[ \t]*[-*+][ \t]+(?:\[[ xX]\][ \t]+)?(?P<text>\S.*?)[ \t]*$")

PROBLEM_SECTION = "Problem to be solved"
APPROACH_SECTION = "Planned approach"
FAILED_SECTION = "Failed approaches"
QUESTIONS_SECTION = "Questions to resolve"
TASKS_SECTION = "Tasks"
INSTRUCTIONS_SECTION = "Instructions"
NEXT_STEPS_SECTION = "Next steps"

FAILED_ATTEMPT_HEADING = "### Failed attempt"
FAILURE_REASON_PATTERN = re.compile(r"^\*\*Reason:\*\*\s*(?P<reason>.*)$")

SECTION_ALIASES = {
    "problem": PROBLEM_SECTION,
    "problemtobesolved": PROBLEM_SECTION,
    "approach": APPROACH_SECTION,
    "plannedapproach": APPROACH_SECTION,
    "failed": FAILED_SECTION,
    "failedapproaches": FAILED_SECTION,
    "questions": QUESTIONS_SECTION,
    "questionstoresolve": QUESTIONS_SECTION,
    "tasks": TASKS_SECTION,
    "instructions": INSTRUCTIONS_SECTION,
    "next": NEXT_STEPS_SECTION,
    "nextsteps": NEXT_STEPS_SECTION,
}


def normalize_section_name(name: str) -> str:
    """Canonical title for a section name or alias.

    Unknown names are returned stripped but otherwise unchanged.
    """
    key = re.sub(r"[\s_-]", "", name).lower()
    return SECTION_ALIASES.get(key, name.strip())


def fenced_line_flags(lines: Sequence[str]) -> List[bool]:
    """Mark every line that is a code fence or sits inside one.

    A fence opened with backticks closes only on backticks of at least
    the same length, likewise for tildes. An unclosed fence runs to the
    end of the document.
    """
    flags: List[bool] = []
    fence: Optional[str] = None
    for line in lines:
        match = FENCE_PATTERN.match(line)
        if fence is None:
            if match:
                fence = match.group("fence")
            flags.append(match is not None)
            continue
        flags.append(True)
        if match and match.group("fence")[0] == fence[0] and len(match.group("fence")) >= len(fence):
            fence = None
    return flags


def iter_headings(lines: Sequence[str]) -> Iterator[Tuple[int, int, str]]:
    """Yield ``(line_index, level, title)`` for headings outside code fences."""
    for index, (line, fenced) in enumerate(zip(lines, fenced_line_flags(lines))):
        if fenced:
            continue
        heading = HEADING_PATTERN.match(line.rstrip("\r\n"))
        if heading:
            yield index, len(heading.group("level")), heading.group("title").strip()


def section_bounds(lines: Sequence[str], name: str) -> Optional[Tuple[int, int]]:
    """Locate the first level-2 section called ``name``.

    Returns ``(heading_index, end_index)`` where ``end_index`` is the next
    level-1 or level-2 heading or the end of the document, or None when
    the section does not exist.
    """
    wanted = normalize_section_name(name).lower()
    start: Optional[int] = None
    for index, level, title in iter_headings(lines):
        if start is None:
            if level == 2 and normalize_section_name(title).lower() == wanted:
                start = index
        elif level <= 2:
            return start, index
    if start is None:
        return None
    return start, len(lines)


def section_content(document_text: str, name: str) -> Optional[str]:
    """Body of a section without its heading, stripped; None if absent."""
    lines = document_text.splitlines()
    bounds = section_bounds(lines, name)
    if bounds is None:
        return None
    start, end = bounds
    return "\n".join(lines[start + 1:end]).strip()


def list_items(section_text: str) -> List[str]:
    """Text of the bullet items in a section body, checkboxes removed."""
    lines = section_text.splitlines()
    items = []
    for line, fenced in zip(lines, fenced_line_flags(lines)):
        if fenced:
            continue
        match = LIST_ITEM_PATTERN.match(line)
        if match:
            items.append(match.group("text"))
    return items


def failed_attempts(section_text: str) -> List[str]:
    """Failed approaches as bullet items plus ``### Failed attempt`` notes."""
    attempts = list_items(section_text)
    lines = section_text.splitlines()
    for index, line in enumerate(lines):
        if line.strip() != FAILED_ATTEMPT_HEADING:
            continue
        description = None
        reason = None
        for following in lines[index + 1:]:
            stripped = following.strip()
            if stripped.startswith("#"):
                break
            if not stripped:
                continue
            reason_match = FAILURE_REASON_PATTERN.match(stripped)
            if reason_match:
                reason = reason_match.group("reason")
            elif description is None:
                description = stripped
        if description:
            attempts.append(f"{description} (Reason: {reason})" if reason else description)
    return attempts


def extract_context(document_text: str) -> Dict[str, Any]:
    """Context shown alongside the current task.

    Missing sections yield empty strings or lists.
    """
    problem = section_content(document_text, PROBLEM_SECTION)
    approach = section_content(document_text, APPROACH_SECTION)
    failed = section_content(document_text, FAILED_SECTION)
    questions = section_content(document_text, QUESTIONS_SECTION)
    instructions = section_content(document_text, INSTRUCTIONS_SECTION)
    return {
        "problem": problem or "",
        "approach": approach or "",
        "failed_approaches": failed_attempts(failed) if failed else [],
        "questions": list_items(questions) if questions else [],
        "instructions": instructions or "",
    }
