"""MCP server exposing the Issue Cards task lifecycle as tools."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.resources import TextResource

from issue_cards.config import ISSUES_DIR_ENV, DEFAULT_ISSUES_DIR_NAME, IssueCardsConfig, build_default_config
from issue_cards.errors import IssueCardsError
from issue_cards.issuecards_logging import setup_logging
from issue_cards.lifecycle import IssueLifecycle, build_lifecycle

mcp = FastMCP("issue-cards")


TRANSPORT_ENV = "ISSUE_CARDS_MCP_TRANSPORT"


def _candidate_bases() -> List[Path]:
    cwd = Path.cwd().resolve()
    bases: List[Path] = [cwd]
    bases.extend(cwd.parents)
    return bases


def _locate_issues_dir() -> Optional[Path]:
    for base in _candidate_bases():
        candidate = base / DEFAULT_ISSUES_DIR_NAME
        if candidate.is_dir():
            return candidate
    return None


def _resolve_issues_dir(root: Optional[str]) -> Path:
    if root:
        resolved = Path(root).expanduser().resolve()
        if not resolved.exists():
            raise ValueError(f"Provided root '{root}' does not exist.")
        if resolved.name == DEFAULT_ISSUES_DIR_NAME:
            return resolved
        return resolved / DEFAULT_ISSUES_DIR_NAME

    env_dir = os.getenv(ISSUES_DIR_ENV)
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    detected = _locate_issues_dir()
    if detected:
        return detected

    # Fall back to the working directory; tools then report the tracker as uninitialized
    return Path.cwd().resolve() / DEFAULT_ISSUES_DIR_NAME


def _config(root: Optional[str]) -> IssueCardsConfig:
    defaults = build_default_config(default_log_level="INFO")
    return IssueCardsConfig(
        issues_dir=_resolve_issues_dir(root),
        git_staging=defaults.git_staging,
        log_level=defaults.log_level,
        log_file=defaults.log_file,
    )


def _lifecycle(root: Optional[str]) -> IssueLifecycle:
    return build_lifecycle(_config(root))


def _failure(error: IssueCardsError) -> Dict[str, Any]:
    return error.to_dict()


@mcp.tool()
def list_issues(state: str = "open", root: Optional[str] = None) -> Dict[str, Any]:
    """List issues in the open or closed collection, oldest first."""

    if state not in {"open", "closed"}:
        return {
            "success": False,
            "error": f"Invalid state '{state}'",
            "error_type": "UserError",
            "recovery_hint": "Use 'open' or 'closed'",
        }
    try:
        lifecycle = _lifecycle(root)
        issues = lifecycle.list_issues(state)
        counts = lifecycle.store.counts()
    except IssueCardsError as error:
        return _failure(error)
    return {"success": True, "state": state, "issues": issues, "count": len(issues), "counts": counts}


@mcp.tool()
def show_issue(issue_number: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Show the full content and parsed tasks of one issue."""

    try:
        issue = _lifecycle(root).show_issue(issue_number)
    except IssueCardsError as error:
        return _failure(error)
    return {"success": True, "issue": issue}


@mcp.tool()
def current_task(root: Optional[str] = None) -> Dict[str, Any]:
    """Show the current task of the current issue with its expanded steps and the
    issue context (problem, approach, failed approaches, questions, instructions).
    Work on this task, then call complete_task."""

    try:
        data = _lifecycle(root).current_task()
    except IssueCardsError as error:
        return _failure(error)
    return {
        "success": True,
        **data,
        "workflow_tip": "All tasks are complete" if data["all_completed"]
        else "Work on the current task, then call complete_task",
    }


@mcp.tool()
def complete_task(root: Optional[str] = None) -> Dict[str, Any]:
    """Mark the current task complete. Returns the next task with its expanded steps,
    or reports that the issue was closed when that was the last task."""

    try:
        result = _lifecycle(root).complete_current_task()
    except IssueCardsError as error:
        return _failure(error)

    payload = {"success": True, **result.to_dict()}
    if result.closed:
        payload["workflow_tip"] = "Issue closed. Use list_issues to pick the next issue."
    else:
        payload["workflow_tip"] = (
            "Unless you have explicit instructions to the contrary, start working on next_task now."
        )
    return payload


@mcp.tool()
def set_current_issue(issue_number: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Make an open issue the one being worked on."""

    try:
        number = _lifecycle(root).set_current_issue(issue_number)
    except IssueCardsError as error:
        return _failure(error)
    return {"success": True, "issue_number": number, "message": f"Issue #{number} is now current"}


@mcp.tool()
def add_task(description: str, issue_number: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Append an unchecked task (may include +tags) to an issue; defaults to the current issue."""

    try:
        data = _lifecycle(root).add_task(description, issue_number=issue_number)
    except IssueCardsError as error:
        return _failure(error)
    return {"success": True, **data}


@mcp.tool()
def add_note(note: str, section: str, issue_number: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Add a note to a section of an issue. Section accepts names or aliases:
    problem, approach, failed, questions, tasks, instructions, next."""

    try:
        data = _lifecycle(root).add_note(note, section, issue_number=issue_number)
    except IssueCardsError as error:
        return _failure(error)
    return {"success": True, **data}


@mcp.tool()
def add_question(question: str, issue_number: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Add a question to the issue's "Questions to resolve" section."""

    try:
        data = _lifecycle(root).add_question(question, issue_number=issue_number)
    except IssueCardsError as error:
        return _failure(error)
    return {"success": True, **data}


@mcp.tool()
def log_failure(
    approach: str,
    reason: Optional[str] = None,
    issue_number: Optional[str] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Record an approach that did not work, and why, under "Failed approaches"."""

    try:
        data = _lifecycle(root).log_failure(approach, reason=reason, issue_number=issue_number)
    except IssueCardsError as error:
        return _failure(error)
    return {"success": True, **data}


@mcp.tool()
def preview_task(text: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Expand task text with its +tags into steps without changing any issue."""

    return {"success": True, **_lifecycle(root).preview_task_text(text)}


@mcp.tool()
def list_tag_templates(root: Optional[str] = None) -> Dict[str, Any]:
    """List the tag templates available for task expansion and their steps."""

    registry = _lifecycle(root).registry
    return {"success": True, "templates": registry.to_dict(), "count": len(registry)}


@mcp.tool()
def get_workflow_guide() -> Dict[str, Any]:
    """Get guidance on working through issues task by task."""
    return {
        "workflow_overview": "Work through the current issue one task at a time",
        "steps": [
            {
                "step": 1,
                "tool": "list_issues",
                "description": "See which issues are open",
            },
            {
                "step": 2,
                "tool": "set_current_issue",
                "description": "Optionally pick the issue to work on; the oldest open issue is used otherwise",
            },
            {
                "step": 3,
                "tool": "current_task",
                "description": "Read the current task and its expanded steps",
            },
            {
                "step": 4,
                "tool": "complete_task",
                "description": "Mark the task done and receive the next one; the issue closes after its last task",
            },
        ],
        "tips": [
            "Only work on the current task; upcoming tasks are context",
            "Tasks tagged like +unit-test expand into ordered steps",
            "Use add_task to record follow-up work on the current issue",
            "Record dead ends with log_failure and open questions with add_question",
        ],
    }


@mcp.resource("issue-cards://issues")
def resource_issues():
    """Resource view listing open issues and their progress."""

    try:
        issues = _lifecycle(None).list_issues()
    except IssueCardsError as error:
        return TextResource(
            uri="issue-cards://issues",
            text=error.display_message,
        )

    if not issues:
        return TextResource(uri="issue-cards://issues", text="No open issues found.")

    lines = ["Open Issues"]
    for issue in issues:
        progress = issue["progress"]
        lines.append("")
        lines.append(f"- #{issue['number']}: {issue['title']} ({progress['completed']}/{progress['total']} tasks)")
        if issue.get("current_task"):
            lines.append(f"  Current task: {issue['current_task']}")

    return TextResource(uri="issue-cards://issues", text="\n".join(lines))


def run() -> None:
    """Console entry point for the MCP server."""
    config = build_default_config(default_log_level="INFO")
    setup_logging(config.log_level, config.log_file)
    mcp.run(transport=os.getenv(TRANSPORT_ENV, "stdio"))


if __name__ == "__main__":
    run()
