import logging

import orjson

from bidmonitor.core.logging import JSONFormatter, get_contextual_logger, get_logger, setup_logging


class TestLogging:
    """Unit tests for logging setup"""

    def test_logger_names(self):
        assert get_logger().name == "bidmonitor"
        assert get_logger("relay").name == "bidmonitor.relay"

    def test_json_formatter_includes_context(self):
        record = logging.LogRecord("bidmonitor.monitor", logging.INFO, __file__, 1, "Checked %s", ("x",), None)
        record.target = "city.example.gov"
        record.generation = 3

        data = orjson.loads(JSONFormatter().format(record))

        assert data["message"] == "Checked x"
        assert data["level"] == "INFO"
        assert data["target"] == "city.example.gov"
        assert data["generation"] == 3
        assert data["timestamp"].endswith("Z")

    def test_contextual_logger_adds_extra(self):
        log = get_contextual_logger("monitor", target="city.example.gov", generation=2)
        msg, kwargs = log.process("hello", {})

        assert msg == "hello"
        assert kwargs["extra"] == {"target": "city.example.gov", "generation": 2}
        assert log.with_context(generation=5).generation == 5

    def test_file_logging_writes_json_lines(self, tmp_path):
        log_file = tmp_path / "logs" / "bidmonitor.log"
        logger = setup_logging(level="DEBUG", log_file=log_file, rich_console=False)
        try:
            get_logger("test").info("written", extra={"url": "https://example.gov"})
        finally:
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)

        line = log_file.read_text(encoding="utf-8").splitlines()[-1]
        assert orjson.loads(line)["url"] == "https://example.gov"
