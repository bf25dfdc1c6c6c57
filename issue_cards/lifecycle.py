"""Issue lifecycle orchestration for Issue Cards.

This module drives the "complete current task" state machine: resolve the
current issue, check off its first incomplete task, persist, and then
either hand back the next task or close the issue and clear the
current-issue pointer. State lives entirely in the issue document, so
every decision is taken from a fresh parse of the text.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .config import IssueCardsConfig
from .errors import IssueCardsError, IssueNotFoundError, NoCurrentIssueError, NoTaskFoundError, UserError
from .git_stage import GitStager
from .issue_store import IssueStore, normalize_issue_number
from .issuecards_logging import (
    log_current_issue_changed,
    log_error_with_context,
    log_issue_closed,
    log_operation,
    log_performance,
    log_section_updated,
    log_task_added,
    log_task_completed,
)
from .models import CompletionResult, Issue, NextTask, Task
from .sections import FAILED_SECTION, QUESTIONS_SECTION, TASKS_SECTION, extract_context, normalize_section_name
from .tag_templates import StepTemplateRegistry
from .task_expander import expand_task, expand_tasks
from .task_mutator import (
    append_task,
    append_to_section,
    format_failed_attempt,
    format_question,
    update_task_status,
)
from .task_parser import extract_tags, extract_tasks, find_current_task, summarize, upcoming_tasks


logger = logging.getLogger("issue_cards.lifecycle")


class IssueLifecycle:
    """Advance tasks and close issues on top of an IssueStore."""

    def __init__(
        self,
        store: IssueStore,
        registry: Optional[StepTemplateRegistry] = None,
        stager: Optional[GitStager] = None,
    ):
        self.store = store
        self.registry = registry if registry is not None else StepTemplateRegistry.load(store.templates_dir)
        self.stager = stager

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def resolve_current_issue(self) -> Issue:
        """The pointer's issue, or the oldest open issue."""
        self.store.require_initialized()
        issue = self.store.get_current_issue()
        if issue is None:
            raise NoCurrentIssueError()
        return issue

    def expand_task(self, task: Task) -> List[str]:
        """Expanded steps for a task; never touches storage."""
        return expand_task(task, self.registry)

    def preview_task_text(self, text: str) -> Dict[str, Any]:
        """Expand free task text as if it were a checklist item."""
        tags = tuple(extract_tags(text))
        task = Task(index=0, text=text.strip(), completed=False, tags=tags)
        return {"text": task.text, "tags": [tag.to_dict() for tag in tags], "expanded_steps": self.expand_task(task)}

    def current_task(self) -> Dict[str, Any]:
        """Describe the current issue's current task with its steps.

        ``context`` carries the issue's problem, planned approach, failed
        approaches, open questions and instructions.
        """
        issue = self.resolve_current_issue()
        tasks = extract_tasks(issue.content)
        current = find_current_task(tasks)
        result: Dict[str, Any] = {
            "issue_number": issue.number,
            "issue_title": issue.title,
            "progress": summarize(tasks),
            "all_completed": current is None,
            "task": None,
            "upcoming_tasks": [],
            "context": extract_context(issue.content),
        }
        if current is not None:
            result["task"] = {**current.to_dict(), "expanded_steps": self.expand_task(current)}
            result["upcoming_tasks"] = [task.text for task in upcoming_tasks(tasks, current)]
        return result

    def list_issues(self, status: str = "open") -> List[Dict[str, Any]]:
        """Issue summaries for one collection."""
        summaries = []
        for issue in self.store.list_issues(status):
            tasks = extract_tasks(issue.content)
            current = find_current_task(tasks)
            summaries.append({
                "number": issue.number,
                "title": issue.title,
                "status": issue.status,
                "progress": summarize(tasks),
                "current_task": current.text if current else None,
            })
        return summaries

    def show_issue(self, issue_number: str) -> Dict[str, Any]:
        """Full issue details including its parsed tasks."""
        issue = self.store.get_issue_record(issue_number)
        tasks = extract_tasks(issue.content)
        return {
            **issue.to_dict(),
            "tasks": [
                {**task.to_dict(), "expanded_steps": steps}
                for task, steps in expand_tasks(tasks, self.registry)
            ],
            "progress": summarize(tasks),
            "is_current": self.store.get_current_pointer() == issue.number,
        }

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @log_performance("complete_current_task")
    def complete_current_task(self) -> CompletionResult:
        """Check off the current task and close the issue when it was the last.

        Nothing is written unless the current issue and task resolve.
        Staging runs last and cannot fail the operation.
        """
        try:
            with log_operation("complete_current_task"):
                issue = self.resolve_current_issue()
                tasks = extract_tasks(issue.content)
                current = find_current_task(tasks)
                if current is None:
                    raise NoTaskFoundError(issue.number)

                updated_content = update_task_status(issue.content, current.index, True)
                open_path = self.store.save_issue(issue.number, updated_content)
                logger.info(f"Completed task {current.index} of issue #{issue.number}: {current.text}")
                log_task_completed(issue.number, current.index, current.text)

                updated_tasks = extract_tasks(updated_content)
                next_task = find_current_task(updated_tasks)

                if next_task is not None:
                    result = CompletionResult(
                        issue_number=issue.number,
                        completed_task_text=current.text,
                        closed=False,
                        next_task=NextTask(
                            index=next_task.index,
                            text=next_task.text,
                            expanded_steps=self.expand_task(next_task),
                        ),
                    )
                    self._stage(open_path)
                    return result

                closed_path = self.store.close_issue(issue.number)
                current_cleared = False
                if self.store.get_current_pointer() == issue.number:
                    self.store.clear_current_issue()
                    current_cleared = True
                    log_current_issue_changed(issue.number, cleared=True)
                log_issue_closed(issue.number, total_tasks=len(updated_tasks))

                self._stage(open_path, closed_path)
                return CompletionResult(
                    issue_number=issue.number,
                    completed_task_text=current.text,
                    closed=True,
                    current_cleared=current_cleared,
                )
        except IssueCardsError:
            raise
        except Exception as e:
            log_error_with_context(e, {"operation": "complete_current_task"})
            raise

    def set_current_issue(self, issue_number: str) -> str:
        """Make an open issue the current one."""
        number = self.store.set_current_issue(issue_number)
        log_current_issue_changed(number)
        return number

    @log_performance("add_task")
    def add_task(self, description: str, issue_number: Optional[str] = None) -> Dict[str, Any]:
        """Append an unchecked task to an open issue (the current one by default)."""
        issue = self._resolve_target_issue(issue_number)

        with log_operation("add_task", issue_number=issue.number):
            updated_content = append_task(issue.content, description)
            path = self.store.save_issue(issue.number, updated_content)
            tasks = extract_tasks(updated_content)
            added = tasks[-1]
            log_task_added(issue.number, added.text)
            self._stage(path)

        return {"issue_number": issue.number, "task": added.to_dict(), "expanded_steps": self.expand_task(added)}

    def add_note(self, note: str, section: str, issue_number: Optional[str] = None) -> Dict[str, Any]:
        """Append a note to a named section of an open issue.

        Notes for the Tasks section become unchecked tasks and notes for the
        Questions section become questions; anything else is added as a
        paragraph.
        """
        section_title = normalize_section_name(section)
        if section_title == TASKS_SECTION:
            data = self.add_task(note, issue_number=issue_number)
            return {
                "issue_number": data["issue_number"],
                "section": TASKS_SECTION,
                "content": f"- [ ] {data['task']['text']}",
            }
        if section_title == QUESTIONS_SECTION:
            return self.add_question(note, issue_number=issue_number)
        if not note.strip():
            raise UserError("Note text cannot be empty")
        return self._append_section(issue_number, section_title, note.strip())

    def add_question(self, question: str, issue_number: Optional[str] = None) -> Dict[str, Any]:
        """Add a question to the "Questions to resolve" section."""
        return self._append_section(issue_number, QUESTIONS_SECTION, format_question(question), list_item=True)

    def log_failure(
        self,
        approach: str,
        reason: Optional[str] = None,
        issue_number: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Record an approach that did not work under "Failed approaches"."""
        return self._append_section(issue_number, FAILED_SECTION, format_failed_attempt(approach, reason))

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _resolve_target_issue(self, issue_number: Optional[str]) -> Issue:
        """The given open issue, or the current one when no number is passed."""
        if issue_number is None:
            return self.resolve_current_issue()
        self.store.require_initialized()
        number = normalize_issue_number(issue_number)
        if not self.store.issue_exists(number, "open"):
            raise IssueNotFoundError(number).with_recovery_hint(
                "Only open issues can be edited; run `issue-cards list` to see them"
            )
        return self.store.get_issue_record(number)

    @log_performance("append_section")
    def _append_section(
        self,
        issue_number: Optional[str],
        section: str,
        content: str,
        list_item: bool = False,
    ) -> Dict[str, Any]:
        issue = self._resolve_target_issue(issue_number)
        with log_operation("append_section", issue_number=issue.number, section=section):
            updated_content = append_to_section(issue.content, section, content, list_item=list_item)
            path = self.store.save_issue(issue.number, updated_content)
            log_section_updated(issue.number, section)
            self._stage(path)
        return {"issue_number": issue.number, "section": section, "content": content}

    def _stage(self, *paths) -> bool:
        if self.stager is None:
            return False
        return self.stager.stage_quietly(*paths)


def build_lifecycle(config: IssueCardsConfig) -> IssueLifecycle:
    """Wire a lifecycle controller from configuration."""
    store = IssueStore(config.issues_dir)
    return IssueLifecycle(
        store,
        registry=StepTemplateRegistry.load(config.templates_dir),
        stager=GitStager(config.repo_root, enabled=config.git_staging),
    )
