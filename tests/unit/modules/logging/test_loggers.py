import json
import pytest

from src.modules.logging import ColorfulLogger, JsonLogger, PlainLogger, create_logger


class TestCreateLogger:
    """Test cases for the logger factory."""

    @pytest.mark.parametrize("output_type, expected", [
        ("colorful", ColorfulLogger),
        ("plain", PlainLogger),
        ("json", JsonLogger),
        ("PLAIN", PlainLogger),
    ])
    def test_create_logger(self, output_type, expected):
        assert isinstance(create_logger(output_type), expected)

    def test_invalid_output_type(self):
        with pytest.raises(ValueError, match="Invalid output type: xml"):
            create_logger("xml")

    def test_log_level(self):
        assert create_logger("plain", "DEBUG").log_level == "DEBUG"


class TestPlainLogger:
    """Test cases for PlainLogger output."""

    def test_log_action(self, capsys):
        logger = PlainLogger()
        logger.log_action(1, 3, "close database")
        assert "[1/3] Executing shutdown action: close database" in capsys.readouterr().err

    def test_log_trigger(self, capsys):
        logger = PlainLogger()
        logger.log_trigger("SIGTERM")
        assert "Received SIGTERM, initiating graceful shutdown..." in capsys.readouterr().err

    def test_log_level_filters_debug(self, capsys):
        logger = PlainLogger("INFO")
        logger.log_debug("hidden")
        logger.log_error("shown")
        err = capsys.readouterr().err
        assert "hidden" not in err
        assert "ERROR" in err
        assert "shown" in err


class TestColorfulLogger:
    """Test cases for ColorfulLogger output."""

    def test_log_error(self, capsys):
        logger = ColorfulLogger()
        logger.log_error("cleanup failed")
        assert "cleanup failed" in capsys.readouterr().err


class TestJsonLogger:
    """Test cases for JsonLogger output."""

    def test_output_is_json(self, capsys):
        logger = JsonLogger()
        logger.log_action(2, 2, "release lock")
        lines = [line for line in capsys.readouterr().err.splitlines() if line.strip()]
        assert len(lines) == 1
        record = json.loads(lines[0])["record"]
        assert record["level"]["name"] == "INFO"
