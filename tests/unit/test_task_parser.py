"""Unit tests for checklist parsing.

This module tests task extraction, the ``## Tasks`` section rule,
tag parsing, and the current-task queries.
"""

import pytest

from issue_cards.models import Tag
from issue_cards.task_parser import (
    clean_task_text,
    extract_tags,
    extract_tasks,
    find_current_task,
    iter_checklist_lines,
    parse_tag,
    summarize,
    upcoming_tasks,
)


class TestExtractTasks:
    """Test cases for extract_tasks."""

    def test_extracts_tasks_in_source_order(self):
        """Test that every checklist line becomes a task in order."""
        text = "- [ ] A\n- [x] B\n- [X] C\n- [ ] D\n"

        tasks = extract_tasks(text)

        assert [task.text for task in tasks] == ["A", "B", "C", "D"]
        assert [task.completed for task in tasks] == [False, True, True, False]
        assert [task.index for task in tasks] == [0, 1, 2, 3]

    def test_other_lines_are_ignored(self):
        """Test that prose, headings and plain bullets are not tasks."""
        text = "# Issue 0001: Title\n\nSome prose.\n\n- plain bullet\n- [ ] Real task\n[ ] not a list item\n"

        tasks = extract_tasks(text)

        assert len(tasks) == 1
        assert tasks[0].text == "Real task"
        assert tasks[0].line_number == 5

    def test_alternative_markers_and_indentation(self):
        """Test star and plus markers and indented items."""
        text = "* [ ] Star\n  + [x] Plus nested\n"

        tasks = extract_tasks(text)

        assert [task.text for task in tasks] == ["Star", "Plus nested"]
        assert tasks[1].completed is True

    def test_empty_document(self):
        """Test that empty or missing text yields no tasks."""
        assert extract_tasks("") == []
        assert extract_tasks(None) == []

    def test_malformed_brackets_do_not_fail(self):
        """Test that malformed lines are skipped rather than raising."""
        text = "- [y] Not a task\n- [] Not a task\n- [ ]\n- [ ] Valid\n"

        tasks = extract_tasks(text)

        assert [task.text for task in tasks] == ["Valid"]

    def test_crlf_line_endings(self):
        """Test documents with Windows line endings."""
        tasks = extract_tasks("- [ ] A\r\n- [x] B\r\n")

        assert [task.text for task in tasks] == ["A", "B"]
        assert tasks[1].completed is True

    def test_tasks_section_limits_parsing(self):
        """Test that a Tasks heading scopes parsing to its section."""
        text = (
            "# Issue 0001: Title\n"
            "\n"
            "## Problem\n"
            "- [ ] Not a task, part of the problem statement\n"
            "\n"
            "## Tasks\n"
            "- [x] First\n"
            "### Notes inside tasks\n"
            "- [ ] Second\n"
            "\n"
            "## Instructions\n"
            "- [ ] Not a task either\n"
        )

        tasks = extract_tasks(text)

        assert [task.text for task in tasks] == ["First", "Second"]

    def test_comment_in_code_block_does_not_end_tasks_section(self):
        """Test that a shell comment inside a fenced block is not a heading."""
        text = (
            "## Tasks\n"
            "- [ ] Install\n"
            "  ```bash\n"
            "  # install deps\n"
            "  pip install .\n"
            "  ```\n"
            "- [ ] Configure\n"
            "\n"
            "## Notes\n"
        )

        tasks = extract_tasks(text)

        assert [task.text for task in tasks] == ["Install", "Configure"]
        assert tasks[1].line_number == 6

    def test_tilde_fence_and_checklist_inside_fence(self):
        """Test tilde fences and that example checklists inside fences are ignored."""
        text = (
            "## Tasks\n"
            "- [ ] Document the format\n"
            "~~~markdown\n"
            "## Example\n"
            "- [ ] Not a real task\n"
            "~~~\n"
            "- [x] Review\n"
        )

        tasks = extract_tasks(text)

        assert [task.text for task in tasks] == ["Document the format", "Review"]

    def test_tasks_are_parsed_with_tags(self):
        """Test that tags are attached to parsed tasks."""
        tasks = extract_tasks("- [ ] Implement parser +unit-test +update-docs\n")

        assert [tag.name for tag in tasks[0].tags] == ["unit-test", "update-docs"]

    @pytest.mark.parametrize("count", [1, 5, 20])
    def test_round_trip_count(self, count):
        """Test that N generated checklist lines parse as N tasks."""
        flags = [index % 3 == 0 for index in range(count)]
        text = "".join(f"- [{'x' if flag else ' '}] Task {index}\n" for index, flag in enumerate(flags))

        tasks = extract_tasks(text)

        assert len(tasks) == count
        assert [task.completed for task in tasks] == flags


class TestIterChecklistLines:
    """Test cases for the offset-reporting line iterator."""

    def test_offsets_point_at_line_start(self):
        """Test that offsets locate each task line in the document."""
        text = "intro\n- [ ] A\n- [x] B\n"

        located = list(iter_checklist_lines(text))

        assert [line_number for line_number, _, _ in located] == [1, 2]
        for _, offset, match in located:
            position = offset + match.start("mark")
            assert text[position] in (" ", "x")
            assert text[position - 1] == "["


class TestCurrentTaskQueries:
    """Test cases for find_current_task and related helpers."""

    def test_first_incomplete_task_is_current(self):
        """Test that the current task is the first unchecked one."""
        tasks = extract_tasks("- [x] A\n- [ ] B\n- [ ] C\n")

        current = find_current_task(tasks)

        assert current.text == "B"
        assert current.index == 1

    def test_no_current_task_when_all_done(self):
        """Test that a fully completed list has no current task."""
        assert find_current_task(extract_tasks("- [x] A\n- [x] B\n")) is None
        assert find_current_task([]) is None

    def test_upcoming_tasks_follow_current(self):
        """Test that upcoming tasks are those after the current one."""
        tasks = extract_tasks("- [ ] A\n- [ ] B\n- [x] C\n")

        upcoming = upcoming_tasks(tasks, tasks[0])

        assert [task.text for task in upcoming] == ["B", "C"]

    def test_summarize(self):
        """Test progress counts."""
        tasks = extract_tasks("- [x] A\n- [ ] B\n- [x] C\n")

        assert summarize(tasks) == {"total": 3, "completed": 2, "remaining": 1}


class TestTags:
    """Test cases for tag parsing."""

    def test_parse_plain_tag(self):
        """Test a tag without an argument."""
        assert parse_tag("+unit-test") == Tag(name="unit-test")

    def test_parse_tag_with_argument(self):
        """Test a tag with a free-form argument."""
        tag = parse_tag("unit-test(parser module)")

        assert tag.name == "unit-test"
        assert tag.argument == "parser module"
        assert tag.params == {}

    def test_parse_tag_with_params(self):
        """Test key=value arguments exposed as params."""
        tag = parse_tag("+e2e-test(browser=firefox, suite=smoke)")

        assert tag.argument == "browser=firefox, suite=smoke"
        assert tag.params == {"browser": "firefox", "suite": "smoke"}

    def test_extract_tags_in_order(self):
        """Test that tags are found anywhere in the text in order."""
        tags = extract_tags("+lint-and-commit Fix bug +unit-test(api)")

        assert [tag.name for tag in tags] == ["lint-and-commit", "unit-test"]
        assert tags[1].argument == "api"

    def test_plus_inside_words_is_not_a_tag(self):
        """Test that a plus sign inside text is not a tag."""
        assert extract_tags("Support C++ and a+b expressions") == []

    def test_clean_task_text_removes_tags(self):
        """Test that tags are stripped from the task text."""
        assert clean_task_text("+unit-test Implement parser +update-docs") == "Implement parser"
        assert clean_task_text("Implement  +unit-test(x)  parser") == "Implement parser"
