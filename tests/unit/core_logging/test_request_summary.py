import io, json
from contextlib import redirect_stdout

import pytest

from core_logging import (
    bind_request_id,
    emit_request_error_summary,
    emit_request_summary,
    get_logger,
    log_stage,
    record_error,
    reset_request_aggregation,
)


@pytest.fixture(autouse=True)
def _summary_mode(monkeypatch):
    monkeypatch.setenv("LOG_EMIT_MODE", "summary")
    monkeypatch.delenv("SERVICE_NAME", raising=False)
    yield
    bind_request_id(None)


def _lines(buf: io.StringIO):
    return [json.loads(line) for line in buf.getvalue().splitlines() if line.strip()]


def test_breadcrumbs_fold_into_one_summary_line():
    logger = get_logger("summarysvc")
    buf = io.StringIO()
    with redirect_stdout(buf):
        bind_request_id("req-1")
        reset_request_aggregation()
        log_stage(logger, "validating", "envelope.accepted", format="json")
        log_stage(logger, "dispatching", "outbound.received", latency_ms=12.5, target_host="api.example.com")
        log_stage(logger, "dispatching", "outbound.received", latency_ms=7.5)
        emit_request_error_summary(logger)
        emit_request_summary(logger)

    lines = _lines(buf)
    assert [l["event"] for l in lines] == ["request_summary"]
    summary = lines[0]
    assert summary["request_id"] == "req-1"
    assert summary["format"] == "json"
    meta = summary["meta"]
    assert meta["counts"] == {"validating": 1, "dispatching": 2}
    assert meta["target_host"] == "api.example.com"
    assert meta["timers"]["dispatching"]["count"] == 2
    assert meta["timers"]["dispatching"]["max_ms"] == 12.5
    assert meta["error_count"] == 0


def test_failures_are_written_and_rolled_up():
    logger = get_logger("summaryerr")
    buf = io.StringIO()
    with redirect_stdout(buf):
        bind_request_id("req-2")
        reset_request_aggregation()
        log_stage(logger, "dispatching", "outbound.network_failure", error="connect refused")
        record_error("upstream_failure", where="dispatching", message="boom", logger=logger)
        emit_request_error_summary(logger)
        emit_request_summary(logger)

    events = [l["event"] for l in _lines(buf)]
    assert events == ["outbound.network_failure", "error", "request_error_summary", "request_summary"]
    rollup = _lines(buf)[2]
    assert rollup["level"] == "ERROR"
    assert rollup["meta"]["error_count"] == 2
    assert rollup["meta"]["cause"] == "outbound.network_failure"
    assert rollup["meta"]["errors"][1]["code"] == "upstream_failure"
