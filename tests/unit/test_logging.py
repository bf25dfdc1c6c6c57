"""Unit tests for Issue Cards logging and observability.

This module tests the logging infrastructure, performance monitoring,
and observability hooks.
"""

import json
import logging
import sys

import pytest
from unittest.mock import MagicMock, patch

from issue_cards.issuecards_logging import (
    ROOT_LOGGER_NAME,
    JsonFormatter,
    ObservabilityHooks,
    PerformanceMonitor,
    log_current_issue_changed,
    log_error_with_context,
    log_operation,
    log_performance,
    log_task_completed,
    observability_hooks,
    performance_monitor,
    setup_logging,
)


@pytest.fixture
def clean_root_logger():
    """The package logger; conftest removes its handlers afterwards."""
    return logging.getLogger(ROOT_LOGGER_NAME)


@pytest.fixture(autouse=True)
def reset_performance_monitor():
    performance_monitor.clear()
    yield
    performance_monitor.clear()


def make_record(level=logging.INFO, msg="Test message", exc_info=None):
    return logging.getLogger("test").makeRecord("test", level, __file__, 10, msg, (), exc_info)


class TestJsonFormatter:
    """Test cases for JsonFormatter."""

    def test_json_formatter_basic(self):
        """Test basic JSON formatting."""
        data = json.loads(JsonFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert "module" in data
        assert "function" in data
        assert data["line"] == 10

    def test_json_formatter_with_exception(self):
        """Test JSON formatting with exception info."""
        try:
            raise ValueError("Test exception")
        except ValueError:
            record = make_record(logging.ERROR, exc_info=sys.exc_info())

        data = json.loads(JsonFormatter().format(record))

        assert data["level"] == "ERROR"
        assert "ValueError" in data["exception"]

    def test_json_formatter_with_extra_fields(self):
        """Test JSON formatting with extra fields."""
        record = make_record()
        record.extra_fields = {"issue_number": "0001"}

        data = json.loads(JsonFormatter().format(record))

        assert data["issue_number"] == "0001"


class TestPerformanceMonitor:
    """Test cases for PerformanceMonitor."""

    def test_record_metric(self):
        """Test recording a performance metric."""
        monitor = PerformanceMonitor()

        monitor.record_metric("test_metric", 42, {"tag": "test"})
        metrics = monitor.get_metrics("test_metric")

        assert metrics["test_metric"][0]["value"] == 42
        assert metrics["test_metric"][0]["tags"]["tag"] == "test"
        assert "timestamp" in metrics["test_metric"][0]

    def test_get_all_metrics_and_clear(self):
        """Test getting and clearing all metrics."""
        monitor = PerformanceMonitor()
        monitor.record_metric("metric1", 1)
        monitor.record_metric("metric2", 2)
        monitor.record_metric("metric1", 3)

        all_metrics = monitor.get_metrics()

        assert [metric["value"] for metric in all_metrics["metric1"]] == [1, 3]
        assert len(all_metrics["metric2"]) == 1

        monitor.clear()
        assert monitor.get_metrics() == {}

    def test_samples_are_capped_per_metric(self):
        """Test that only the newest samples of a metric are kept."""
        monitor = PerformanceMonitor(max_samples=3)
        for value in range(5):
            monitor.record_metric("capped", value)
        monitor.record_metric("other", 99)

        metrics = monitor.get_metrics()

        assert [metric["value"] for metric in metrics["capped"]] == [2, 3, 4]
        assert len(metrics["other"]) == 1
        assert isinstance(monitor.get_metrics("capped")["capped"], list)


class TestLogPerformance:
    """Test cases for log_performance decorator."""

    def test_log_performance_decorator(self):
        """Test that a successful call records a duration metric."""
        @log_performance("test_operation")
        def operation():
            return "test_result"

        assert operation() == "test_result"

        metrics = performance_monitor.get_metrics("test_operation_duration")["test_operation_duration"]
        assert len(metrics) == 1
        assert metrics[0]["value"] >= 0
        assert metrics[0]["tags"]["status"] == "success"

    def test_log_performance_decorator_with_exception(self):
        """Test that a failing call records the error type and re-raises."""
        @log_performance("test_operation")
        def operation():
            raise ValueError("Test error")

        with pytest.raises(ValueError):
            operation()

        metrics = performance_monitor.get_metrics("test_operation_duration")["test_operation_duration"]
        assert metrics[0]["tags"] == {"status": "error", "error_type": "ValueError"}


class TestLogOperation:
    """Test cases for log_operation context manager."""

    def test_log_operation_success(self, caplog):
        """Test successful operation logging."""
        with caplog.at_level(logging.INFO, logger=f"{ROOT_LOGGER_NAME}.operations"):
            with log_operation("test_operation", issue_number="0001"):
                pass

        messages = [record.getMessage() for record in caplog.records]
        assert "Starting operation: test_operation" in messages
        assert any(message.startswith("Completed operation: test_operation") for message in messages)
        assert caplog.records[-1].extra_fields["issue_number"] == "0001"

    def test_log_operation_with_exception(self, caplog):
        """Test operation logging with exception."""
        with caplog.at_level(logging.INFO, logger=f"{ROOT_LOGGER_NAME}.operations"):
            with pytest.raises(ValueError):
                with log_operation("test_operation"):
                    raise ValueError("Test error")

        failed = caplog.records[-1]
        assert failed.levelno == logging.WARNING
        assert "Test error" in failed.getMessage()
        assert failed.extra_fields["status"] == "failed"


class TestObservabilityHooks:
    """Test cases for ObservabilityHooks."""

    def test_register_and_trigger_hooks(self):
        """Test registering and triggering hooks."""
        hooks = ObservabilityHooks()
        callback = MagicMock()

        hooks.register_hook("test_event", callback)
        hooks.trigger_hooks("test_event", test_param="test_value")

        callback.assert_called_once_with(test_param="test_value")

    def test_unregister_hook(self):
        """Test that unregistered hooks are no longer called."""
        hooks = ObservabilityHooks()
        callback = MagicMock()
        hooks.register_hook("test_event", callback)

        hooks.unregister_hook("test_event", callback)
        hooks.trigger_hooks("test_event")

        callback.assert_not_called()

    def test_log_workflow_event_passes_data_to_hooks(self):
        """Test that workflow events reach hooks without the event type."""
        hooks = ObservabilityHooks()
        callback = MagicMock()
        hooks.register_hook("task_completed", callback)

        hooks.log_workflow_event("task_completed", issue_number="0001", task_index=0)

        kwargs = callback.call_args.kwargs
        assert kwargs["issue_number"] == "0001"
        assert kwargs["task_index"] == 0
        assert "event_type" not in kwargs
        assert "timestamp" in kwargs

    def test_hook_failure_handling(self):
        """Test that a failing hook does not stop the others."""
        hooks = ObservabilityHooks()
        second = MagicMock()

        def failing_callback(**data):
            raise ValueError("Hook failed")

        hooks.register_hook("test_event", failing_callback)
        hooks.register_hook("test_event", second)
        hooks.trigger_hooks("test_event", param="value")

        second.assert_called_once_with(param="value")


class TestLoggingFunctions:
    """Test cases for logging convenience functions."""

    def test_log_task_completed(self):
        """Test the task_completed event helper."""
        with patch("issue_cards.issuecards_logging.observability_hooks") as mock_hooks:
            log_task_completed("0001", 2, "Write tests")

        mock_hooks.log_workflow_event.assert_called_once_with(
            "task_completed", issue_number="0001", task_index=2, task_text="Write tests"
        )

    def test_log_current_issue_changed(self):
        """Test the current_issue_changed event helper."""
        with patch("issue_cards.issuecards_logging.observability_hooks") as mock_hooks:
            log_current_issue_changed("0003", cleared=True)

        mock_hooks.log_workflow_event.assert_called_once_with(
            "current_issue_changed", issue_number="0003", cleared=True
        )

    def test_log_error_with_context(self):
        """Test log_error_with_context function."""
        with patch("issue_cards.issuecards_logging.std_logging.getLogger") as mock_logger:
            error = ValueError("Test error")
            context = {"operation": "save_issue", "issue_number": "0001"}

            log_error_with_context(error, context, extra_param="extra_value")

        call_args = mock_logger.return_value.error.call_args
        assert "Error in save_issue: Test error" == call_args.args[0]
        extra_fields = call_args.kwargs["extra"]["extra_fields"]
        assert extra_fields["context"] == context
        assert extra_fields["extra_param"] == "extra_value"
        assert extra_fields["error_type"] == "ValueError"


class TestLoggingIntegration:
    """Integration tests for logging functionality."""

    def test_setup_logging_writes_json_file(self, tmp_path, clean_root_logger):
        """Test that the log file receives JSON lines."""
        log_file = tmp_path / "issue-cards.log"

        setup_logging(log_level=logging.WARNING, log_file=log_file)
        logging.getLogger(f"{ROOT_LOGGER_NAME}.test").debug("Debug message")

        content = log_file.read_text(encoding="utf-8")
        assert "Debug message" in content
        for line in content.strip().splitlines():
            json.loads(line)

    def test_setup_logging_replaces_handlers(self, clean_root_logger):
        """Test that repeated setup does not stack handlers."""
        setup_logging("INFO")
        setup_logging("INFO")

        assert len(clean_root_logger.handlers) == 1
        assert clean_root_logger.level == logging.INFO

    def test_end_to_end_logging_flow(self, tmp_path, clean_root_logger):
        """Test that workflow events end up in the log file."""
        log_file = tmp_path / "issue-cards.log"
        setup_logging(log_level=logging.INFO, log_file=log_file)
        hook = MagicMock()
        observability_hooks.register_hook("task_completed", hook)
        try:
            log_task_completed("0001", 0, "Write tests")
        finally:
            observability_hooks.unregister_hook("task_completed", hook)

        hook.assert_called_once()
        entries = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
        events = [entry for entry in entries if entry.get("event_type") == "task_completed"]
        assert events[0]["task_text"] == "Write tests"
