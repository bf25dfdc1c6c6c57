"""Step templates for expansion tags.

A tag such as ``+unit-test`` names an ordered list of step templates. The
built-in templates below are always available; projects can add or
override them with markdown files in ``.issues/config/templates/tag``,
where each bullet under a ``## Steps`` heading is one step.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .models import Tag


logger = logging.getLogger("issue_cards.templates")

TASK_PLACEHOLDER = "[ACTUAL TASK GOES HERE]"

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*(?P<double>[A-Za-z_][\w-]*)\s*\}\}|\{(?P<single>[A-Za-z_][\w-]*)\}")
STEPS_HEADING_PATTERN = re.compile(r"^#{1,6}\s+Steps\s*$", re.IGNORECASE)
STEP_LINE_PATTERN = re.compile(r"^\s*[-*+]\s+(?:\[[ xX]\]\s+)?(?P<step>\S.*?)\s*$")

DEFAULT_TAG_TEMPLATES: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "unit-test": (
        "Write failing unit tests for the functionality",
        "Run the unit tests and verify they fail for the expected reason",
        TASK_PLACEHOLDER,
        "Run the unit tests and verify they now pass",
        "Make sure test coverage meets project requirements",
    ),
    "e2e-test": (
        "Write a failing end-to-end test for the user-facing behaviour",
        "Run the end-to-end test and verify it fails for the expected reason",
        TASK_PLACEHOLDER,
        "Run the end-to-end test and verify it now passes",
    ),
    "lint-and-commit": (
        TASK_PLACEHOLDER,
        "Run the linter and fix any reported problems",
        "Commit the changes with a descriptive message",
    ),
    "update-docs": (
        TASK_PLACEHOLDER,
        "Update the documentation to reflect the changes",
        "Check that examples in the documentation still work",
    ),
})


class StepTemplateRegistry:
    """Read-only mapping from tag name to ordered step templates."""

    TEMPLATE_SUFFIX = ".md"

    def __init__(self, templates: Optional[Mapping[str, Sequence[str]]] = None):
        source = DEFAULT_TAG_TEMPLATES if templates is None else templates
        self._templates: Mapping[str, Tuple[str, ...]] = MappingProxyType(
            {name: tuple(steps) for name, steps in source.items()}
        )

    @classmethod
    def load(cls, templates_dir: Optional[Path] = None, *, include_defaults: bool = True) -> "StepTemplateRegistry":
        """Build a registry from the defaults plus a template directory."""
        templates: Dict[str, Tuple[str, ...]] = dict(DEFAULT_TAG_TEMPLATES) if include_defaults else {}
        if templates_dir is not None and Path(templates_dir).is_dir():
            for path in sorted(Path(templates_dir).glob(f"*{cls.TEMPLATE_SUFFIX}")):
                try:
                    content = path.read_text(encoding="utf-8")
                except OSError as e:
                    logger.warning(f"Skipping unreadable tag template {path}: {e}")
                    continue
                steps = parse_template_steps(content)
                if not steps:
                    logger.warning(f"Tag template {path.name} has no steps; ignoring it")
                    continue
                templates[path.stem] = tuple(steps)
        logger.debug(f"Loaded {len(templates)} tag templates")
        return cls(templates)

    def templates_for(self, tag_name: str) -> Optional[Tuple[str, ...]]:
        """Return the step templates for ``tag_name``, or None if unknown."""
        return self._templates.get(tag_name)

    def __contains__(self, tag_name: object) -> bool:
        return tag_name in self._templates

    def __len__(self) -> int:
        return len(self._templates)

    def names(self) -> List[str]:
        """Registered tag names, sorted."""
        return sorted(self._templates)

    def to_dict(self) -> Dict[str, List[str]]:
        """Convert to dictionary representation."""
        return {name: list(self._templates[name]) for name in self.names()}


def parse_template_steps(content: str) -> List[str]:
    """Extract the bullet list under a template's ``## Steps`` heading."""
    steps: List[str] = []
    in_steps = False
    for line in content.splitlines():
        stripped = line.strip()
        if STEPS_HEADING_PATTERN.match(stripped):
            in_steps = True
            continue
        if in_steps and stripped.startswith("#"):
            break
        if not in_steps:
            continue
        match = STEP_LINE_PATTERN.match(line)
        if match:
            steps.append(match.group("step"))
    return steps


def render_step(template: str, tag: Tag) -> str:
    """Substitute a tag's argument and parameters into one step template.

    ``{arg}`` takes the tag argument and ``{key}``/``{{key}}`` take matching
    ``key=value`` parameters. Placeholders without a value stay verbatim.
    """
    values: Dict[str, str] = dict(tag.params)
    if tag.argument:
        values["arg"] = tag.argument

    def substitute(match: re.Match) -> str:
        name = match.group("double") or match.group("single")
        return values.get(name, match.group(0))

    return PLACEHOLDER_PATTERN.sub(substitute, template)


def render_steps(templates: Iterable[str], tag: Tag) -> List[str]:
    """Render a sequence of step templates for one tag."""
    return [render_step(template, tag) for template in templates]
