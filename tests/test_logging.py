"""
Structured logging tests.
"""

import logging
import pytest

from advice_rag.util.logging import StructuredLogger, logger


@pytest.fixture
def structured(caplog):
    caplog.set_level(logging.DEBUG, logger="advice_rag")
    return StructuredLogger()


def test_global_logger_is_structured():
    assert isinstance(logger, StructuredLogger)
    assert logger.logger.name == "advice_rag"


def test_single_handler_across_instances():
    StructuredLogger()
    StructuredLogger()
    assert len(logging.getLogger("advice_rag").handlers) == 1


def test_log_operation_levels(structured, caplog):
    structured.log_operation("index.build", "success", {"entries": 3})
    structured.log_operation("cache.load", "invalid")
    structured.log_operation("search.embed_query", "failed", {"error": "boom"})

    levels = [(r.levelno, r.getMessage()) for r in caplog.records]
    assert levels[0] == (logging.INFO, "Operation: index.build, Status: success, Details: {'entries': 3}")
    assert levels[1] == (logging.WARNING, "Operation: cache.load, Status: invalid")
    assert levels[2][0] == logging.ERROR


def test_search_log_truncates_query(structured, caplog):
    structured.log_search("x" * 200, candidates=10, matched=2, threshold=0.3, duration_ms=1.234)

    message = caplog.records[-1].getMessage()
    assert "search.semantic" in message
    assert "x" * 51 not in message
    assert "'duration_ms': 1.23" in message


def test_pipeline_stage_details(structured, caplog):
    structured.log_pipeline_stage(7, "stage1", details={"grounding": 5})

    message = caplog.records[-1].getMessage()
    assert "pipeline.stage" in message
    assert "'message_id': 7" in message
    assert "'state': 'stage1'" in message
    assert "'grounding': 5" in message


def test_cache_event_reason(structured, caplog):
    structured.log_cache_event("load", "/tmp/cache.json", "invalid", reason="model mismatch")

    record = caplog.records[-1]
    assert record.levelno == logging.WARNING
    assert "model mismatch" in record.getMessage()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
