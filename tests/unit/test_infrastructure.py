"""
Unit Tests for Logging and Monitoring Infrastructure
"""

import json
import logging
import sys

from rag_kernel.infrastructure import (
    JSONFormatter,
    get_system_metrics,
    llm_generation_duration_tracker,
    record_error,
    record_function_invocation,
    setup_prometheus_metrics,
)


class TestJSONFormatter:
    def test_includes_extra_fields(self):
        record = logging.LogRecord(
            name="rag_kernel.test",
            level=logging.INFO,
            pathname=__file__,
            lineno=10,
            msg="Query %s",
            args=("started",),
            exc_info=None,
        )
        record.query_id = "anon_1"

        entry = json.loads(JSONFormatter().format(record))

        assert entry["message"] == "Query started"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "rag_kernel.test"
        assert entry["query_id"] == "anon_1"

    def test_includes_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            exc_info = sys.exc_info()

        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), exc_info)
        entry = json.loads(JSONFormatter().format(record))

        assert "ValueError: boom" in entry["exception"]


class TestMonitoring:
    def test_metrics_summary(self):
        setup_prometheus_metrics()
        setup_prometheus_metrics()

        record_function_invocation("text", "upper", "completed", 0.01)
        record_error("ValueError", "kernel")
        with llm_generation_duration_tracker("stub"):
            pass

        metrics = get_system_metrics()

        assert metrics["initialized"] is True
        assert any(
            name.startswith("rag_kernel_function_invocations")
            for name in metrics["prometheus_metrics"]
        )
