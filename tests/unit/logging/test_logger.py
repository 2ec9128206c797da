"""Unit tests for RelayLogger."""

import io
import json

from toolrelay_core.logging import RESET, LogConfig, RelayLogger
from toolrelay_core.types import LogFormat, LogLevel


def _json_logger(**overrides) -> tuple[RelayLogger, io.StringIO]:
    output = io.StringIO()
    config = LogConfig(format=LogFormat.JSON, output=output, **overrides)
    return RelayLogger(config), output


def _entries(output: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in output.getvalue().splitlines()]


class TestRelayLogger:
    """Tests for level and component filtering."""

    def test_json_entry(self):
        logger, output = _json_logger()

        logger._log(LogLevel.INFO, "registry", "Connected", {"server": "alpha"})

        (entry,) = _entries(output)
        assert entry["level"] == "INFO"
        assert entry["component"] == "registry"
        assert entry["message"] == "Connected"
        assert entry["server"] == "alpha"
        assert entry["timestamp"].endswith("Z")

    def test_level_filter(self):
        logger, output = _json_logger(level=LogLevel.WARN)

        logger._log(LogLevel.INFO, "registry", "quiet")
        logger._log(LogLevel.ERROR, "registry", "loud")

        assert [e["message"] for e in _entries(output)] == ["loud"]

    def test_component_switch(self):
        logger, output = _json_logger(components={"stream": False, "turn": True})

        logger._log(LogLevel.INFO, "stream", "hidden")
        logger._log(LogLevel.INFO, "turn", "shown")

        assert [e["message"] for e in _entries(output)] == ["shown"]

    def test_scoped_component_follows_root(self):
        logger, output = _json_logger(components={"mcp": False})

        logger._log(LogLevel.INFO, "mcp.alpha", "hidden")
        logger._log(LogLevel.INFO, "catalog", "shown")

        assert [e["message"] for e in _entries(output)] == ["shown"]

    def test_colored_output(self):
        output = io.StringIO()
        logger = RelayLogger(LogConfig(output=output, truncate_at=10))

        logger._log(LogLevel.INFO, "turn", "hello", {"key": "a long context value"})

        line = output.getvalue()
        assert "[TURN]" in line
        assert "hello" in line
        assert RESET in line
        assert "..." in line

    def test_configure(self):
        logger, _ = _json_logger()
        output = io.StringIO()

        logger.configure(LogConfig(level=LogLevel.ERROR, format=LogFormat.JSON, output=output))
        logger._log(LogLevel.INFO, "registry", "dropped")

        assert output.getvalue() == ""


class TestTurnLogger:
    """Tests for turn and tool scoped loggers."""

    def test_turn_lifecycle(self):
        logger, output = _json_logger(level=LogLevel.DEBUG)
        turn = logger.turn("t1")

        turn.started(["@mcp-alpha:echo"])
        turn.pass_started(1, 1)
        turn.completed(1500, 2)

        events = [e["event"] for e in _entries(output)]
        assert events == ["turn_started", "pass_started", "turn_completed"]
        assert all(e["turn_id"] == "t1" for e in _entries(output))

    def test_turn_failed(self):
        logger, output = _json_logger()

        logger.turn("t1").failed(ValueError("bad"), 10)

        (entry,) = _entries(output)
        assert entry["level"] == "ERROR"
        assert entry["error_type"] == "ValueError"

    def test_tool_result_truncated(self):
        logger, output = _json_logger(truncate_at=5)
        tool = logger.turn("t1").tool()

        tool.calling("@mcp-alpha:echo", {"text": "hi"})
        tool.result("@mcp-alpha:echo", "abcdefghij", 12)
        tool.error("@mcp-alpha:echo", "boom", 3)

        calling, result, error = _entries(output)
        assert calling["arguments"] == {"text": "hi"}
        assert result["result"] == "abcde..."
        assert error["error"] == "boom"

    def test_results_hidden(self):
        logger, output = _json_logger(show_results=False)

        logger.turn("t1").tool().result("@mcp-alpha:echo", "secret", 1)

        (entry,) = _entries(output)
        assert "result" not in entry
