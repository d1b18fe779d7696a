"""Tests for logger module."""

import logging
from logging.handlers import RotatingFileHandler
from unittest.mock import patch

from modfeed.util import logger as logger_module
from modfeed.util.logger import (
    DATE_FORMAT,
    LOG_FORMAT,
    ColorFormatter,
    PromptToolkitHandler,
    get_logger,
    handle_exception,
    should_use_color,
)


def make_record(level, msg="message"):
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
        func="test_func",
    )


class TestShouldUseColor:
    """Tests for should_use_color function."""

    @patch("sys.stderr.isatty")
    def test_should_use_color_tty(self, mock_isatty):
        mock_isatty.return_value = True
        assert should_use_color() is True

    @patch("sys.stderr.isatty")
    def test_should_use_color_exception(self, mock_isatty):
        """Color is disabled when the stream cannot be queried."""
        mock_isatty.side_effect = Exception("Error")
        assert should_use_color() is False


class TestColorFormatter:
    def test_error_is_wrapped_in_red(self):
        formatter = ColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT)

        formatted = formatter.format(make_record(logging.ERROR, "Error message"))

        assert formatted.startswith("\033[31m")
        assert formatted.endswith("\033[0m")
        assert "Error message" in formatted

    def test_unknown_level_is_left_plain(self):
        formatter = ColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT)

        formatted = formatter.format(make_record(5, "Trace message"))

        assert "\033[" not in formatted


class TestGetLogger:
    def test_get_logger_configures_once(self):
        logger1 = get_logger("modfeed_test_logger_1")
        logger2 = get_logger("modfeed_test_logger_1")

        assert logger1 is logger2
        assert logger1.level == logging.DEBUG
        assert logger1.propagate is False
        assert len(logger1.handlers) == 2

    def test_handlers_split_console_and_file(self):
        logger = get_logger("modfeed_test_logger_2")

        console = [h for h in logger.handlers if isinstance(h, PromptToolkitHandler)]
        files = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
        assert console[0].level == logging.INFO
        assert files[0].level == logging.DEBUG

    def test_log_file_is_shared_across_loggers(self):
        first = get_logger("modfeed_test_logger_3")
        second = get_logger("modfeed_test_logger_4")

        paths = {
            h.baseFilename
            for lg in (first, second)
            for h in lg.handlers
            if isinstance(h, RotatingFileHandler)
        }
        assert len(paths) == 1
        assert logger_module.get_log_filepath().name.endswith(".log")


class TestHandleException:
    def test_keyboard_interrupt_goes_to_default_hook(self):
        with patch("sys.__excepthook__") as default_hook:
            handle_exception(KeyboardInterrupt, KeyboardInterrupt(), None)

        default_hook.assert_called_once()

    def test_other_exceptions_are_logged(self):
        error = RuntimeError("boom")
        with patch.object(logging, "error") as log_error:
            handle_exception(RuntimeError, error, None)

        log_error.assert_called_once()
        assert log_error.call_args.kwargs["exc_info"][1] is error
