"""Build and execute the ``issue-cards`` command line."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Callable, Dict, Optional, Sequence

from .config import IssueCardsConfig, build_default_config
from .errors import IssueCardsError, TemplateNotFoundError
from .issuecards_logging import setup_logging
from .lifecycle import IssueLifecycle, build_lifecycle


class IssueCardsArgumentParser(argparse.ArgumentParser):
    """Provide deterministic parser error output and exit code."""

    def error(self, message: str) -> None:
        """Print usage and the error, then exit with the user-error code."""
        self.print_usage(sys.stderr)
        self.exit(2, f"issue-cards error: {message}\n")


def emit_json(payload: Any) -> None:
    """Emit stable JSON output for commands."""
    print(json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True))


# ------------------------------------------------------------------
# Command handlers
# ------------------------------------------------------------------

def _cmd_init(args: argparse.Namespace, lifecycle: IssueLifecycle) -> Dict[str, Any]:
    created = lifecycle.store.initialize()
    return {
        "issues_dir": str(lifecycle.store.issues_dir),
        "created": created,
        "message": "Initialized issue tracking" if created else "Issue tracking is already initialized",
    }


def _cmd_list(args: argparse.Namespace, lifecycle: IssueLifecycle) -> Dict[str, Any]:
    status = "closed" if args.closed else "open"
    return {"status": status, "issues": lifecycle.list_issues(status), "counts": lifecycle.store.counts()}


def _cmd_show(args: argparse.Namespace, lifecycle: IssueLifecycle) -> Dict[str, Any]:
    return lifecycle.show_issue(args.issue)


def _cmd_current(args: argparse.Namespace, lifecycle: IssueLifecycle) -> Dict[str, Any]:
    return lifecycle.current_task()


def _cmd_complete_task(args: argparse.Namespace, lifecycle: IssueLifecycle) -> Dict[str, Any]:
    return lifecycle.complete_current_task().to_dict()


def _cmd_set_current(args: argparse.Namespace, lifecycle: IssueLifecycle) -> Dict[str, Any]:
    number = lifecycle.set_current_issue(args.issue)
    return {"issue_number": number, "message": f"Issue #{number} is now current"}


def _cmd_add_task(args: argparse.Namespace, lifecycle: IssueLifecycle) -> Dict[str, Any]:
    return lifecycle.add_task(args.description, issue_number=args.issue)


def _cmd_add_note(args: argparse.Namespace, lifecycle: IssueLifecycle) -> Dict[str, Any]:
    return lifecycle.add_note(args.note, args.section, issue_number=args.issue)


def _cmd_add_question(args: argparse.Namespace, lifecycle: IssueLifecycle) -> Dict[str, Any]:
    return lifecycle.add_question(args.question, issue_number=args.issue)


def _cmd_log_failure(args: argparse.Namespace, lifecycle: IssueLifecycle) -> Dict[str, Any]:
    return lifecycle.log_failure(args.approach, reason=args.reason, issue_number=args.issue)


def _cmd_templates(args: argparse.Namespace, lifecycle: IssueLifecycle) -> Dict[str, Any]:
    if args.name:
        steps = lifecycle.registry.templates_for(args.name)
        if steps is None:
            raise TemplateNotFoundError(args.name)
        return {"name": args.name, "steps": list(steps)}
    return {"templates": lifecycle.registry.names()}


# ------------------------------------------------------------------
# Text rendering
# ------------------------------------------------------------------

def _render_list(payload: Dict[str, Any]) -> str:
    issues = payload["issues"]
    counts = payload["counts"]
    summary = f"{counts['open']} open, {counts['closed']} closed"
    if not issues:
        return f"No {payload['status']} issues found. ({summary})"
    lines = []
    for issue in issues:
        progress = issue["progress"]
        lines.append(f"#{issue['number']}: {issue['title']} [{progress['completed']}/{progress['total']}]")
    lines.append("")
    lines.append(summary)
    return "\n".join(lines)


def _render_show(payload: Dict[str, Any]) -> str:
    return payload["content"].rstrip("\n")


def _render_current(payload: Dict[str, Any]) -> str:
    if payload["all_completed"]:
        return f"All tasks completed in issue #{payload['issue_number']}!"
    task = payload["task"]
    lines = [f"CURRENT TASK (issue #{payload['issue_number']}: {payload['issue_title']}):", f"  {task['text']}"]
    if task["expanded_steps"]:
        lines.append("")
        lines.append("TASKS:")
        lines.extend(f"  {position}. {step}" for position, step in enumerate(task["expanded_steps"], start=1))
    context = payload["context"]
    context_lines = []
    if context["problem"]:
        context_lines.append("Problem:")
        context_lines.extend(f"  {line}" for line in context["problem"].splitlines())
    if context["approach"]:
        context_lines.append("Planned approach:")
        context_lines.extend(f"  {line}" for line in context["approach"].splitlines())
    if context["failed_approaches"]:
        context_lines.append("Failed approaches:")
        context_lines.extend(f"  - {text}" for text in context["failed_approaches"])
    if context["questions"]:
        context_lines.append("Questions to resolve:")
        context_lines.extend(f"  - {text}" for text in context["questions"])
    if context["instructions"]:
        context_lines.append("Instructions:")
        context_lines.extend(f"  {line}" for line in context["instructions"].splitlines())
    if context_lines:
        lines.append("")
        lines.append("CONTEXT:")
        lines.extend(f"  {line}" for line in context_lines)
    if payload["upcoming_tasks"]:
        lines.append("")
        lines.append("UPCOMING TASKS:")
        lines.extend(f"  - {text}" for text in payload["upcoming_tasks"])
    return "\n".join(lines)


def _render_completion(payload: Dict[str, Any]) -> str:
    lines = [f"Completed: {payload['completed_task_text']}"]
    if payload["closed"]:
        lines.append(f"All tasks complete! Issue #{payload['issue_number']} has been closed.")
        return "\n".join(lines)
    next_task = payload["next_task"]
    lines.append("")
    lines.append(f"NEXT TASK: {next_task['text']}")
    lines.extend(f"  {position}. {step}" for position, step in enumerate(next_task["expanded_steps"], start=1))
    lines.append("")
    lines.append("Unless you have explicit instructions to the contrary, it is now time to work on the task listed above.")
    return "\n".join(lines)


def _render_add_task(payload: Dict[str, Any]) -> str:
    return f"Added task to issue #{payload['issue_number']}: {payload['task']['text']}"


def _render_section_update(payload: Dict[str, Any]) -> str:
    return f"Added to {payload['section']} of issue #{payload['issue_number']}:\n{payload['content']}"


def _render_templates(payload: Dict[str, Any]) -> str:
    if "templates" in payload:
        return "\n".join(payload["templates"]) or "No tag templates available."
    return "\n".join([f"Template: {payload['name']}", *(f"  - {step}" for step in payload["steps"])])


def _render_message(payload: Dict[str, Any]) -> str:
    return payload["message"]


# ------------------------------------------------------------------
# Parser
# ------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """Build the top-level parser with all subcommands."""
    parser = IssueCardsArgumentParser(
        prog="issue-cards",
        description="Markdown issue tracking with step-by-step task execution.",
    )
    parser.add_argument("--json", action="store_true", help="Emit JSON instead of text")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add(name: str, handler: Callable, renderer: Callable, help_text: str) -> argparse.ArgumentParser:
        sub = subparsers.add_parser(name, help=help_text, description=help_text)
        sub.set_defaults(handler=handler, renderer=renderer)
        return sub

    add("init", _cmd_init, _render_message, "Initialize issue tracking in this project")
    list_parser = add("list", _cmd_list, _render_list, "List open issues")
    list_parser.add_argument("--closed", action="store_true", help="List closed issues instead")
    show_parser = add("show", _cmd_show, _render_show, "Show an issue")
    show_parser.add_argument("-i", "--issue", required=True, help="Issue number")
    add("current", _cmd_current, _render_current, "Show the current task with its expanded steps")
    add("complete-task", _cmd_complete_task, _render_completion, "Mark the current task complete and show the next one")
    set_current_parser = add("set-current", _cmd_set_current, _render_message, "Set the current issue")
    set_current_parser.add_argument("-i", "--issue", required=True, help="Issue number to set as current")
    add_task_parser = add("add-task", _cmd_add_task, _render_add_task, "Append a task to an issue")
    add_task_parser.add_argument("description", help="Task text, may include +tags")
    add_task_parser.add_argument("-i", "--issue", default=None, help="Issue number (defaults to the current issue)")
    add_note_parser = add("add-note", _cmd_add_note, _render_section_update, "Add a note to a section of an issue")
    add_note_parser.add_argument("note", help="Note text")
    add_note_parser.add_argument(
        "-s", "--section", required=True,
        help="Section name or alias (problem, approach, failed, questions, tasks, instructions, next)",
    )
    add_note_parser.add_argument("-i", "--issue", default=None, help="Issue number (defaults to the current issue)")
    add_question_parser = add("add-question", _cmd_add_question, _render_section_update, "Add a question to resolve")
    add_question_parser.add_argument("question", help="Question text")
    add_question_parser.add_argument("-i", "--issue", default=None, help="Issue number (defaults to the current issue)")
    log_failure_parser = add("log-failure", _cmd_log_failure, _render_section_update, "Record a failed approach")
    log_failure_parser.add_argument("approach", help="What was tried")
    log_failure_parser.add_argument("-r", "--reason", default=None, help="Why it did not work")
    log_failure_parser.add_argument("-i", "--issue", default=None, help="Issue number (defaults to the current issue)")
    templates_parser = add("templates", _cmd_templates, _render_templates, "List tag templates or show one")
    templates_parser.add_argument("-n", "--name", default=None, help="Tag template name")
    return parser


def main(argv: Optional[Sequence[str]] = None, config: Optional[IssueCardsConfig] = None) -> int:
    """Run command dispatch and return the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    active_config = config or build_default_config()
    setup_logging(active_config.log_level, active_config.log_file)
    lifecycle = build_lifecycle(active_config)
    try:
        payload = args.handler(args, lifecycle)
    except IssueCardsError as error:
        if args.json:
            emit_json(error.to_dict())
        else:
            print(f"Error: {error.display_message}", file=sys.stderr)
        return int(error.exit_code)

    if args.json:
        emit_json(payload)
    else:
        print(args.renderer(payload))
    return 0


if __name__ == "__main__":
    sys.exit(main())
