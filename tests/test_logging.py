"""Tests for logger setup."""

import logging
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent / "src"))

from pattern_matching.utils.logging import configure_package_logging, setup_logger


def test_setup_logger_is_idempotent():
    logger = setup_logger("pattern_matching.tests.idempotent")
    again = setup_logger("pattern_matching.tests.idempotent")

    assert logger is again
    assert len(logger.handlers) == 1
    assert logger.propagate is False


def test_configure_package_logging_updates_existing_loggers(tmp_path):
    logger = setup_logger("pattern_matching.tests.configure")
    other = setup_logger("unrelated.tests.configure")
    log_file = tmp_path / "logs" / "run.log"

    try:
        configure_package_logging(level=logging.DEBUG, log_file=str(log_file))

        assert logger.level == logging.DEBUG
        assert other.level == logging.INFO
        assert any(isinstance(h, logging.FileHandler) for h in logger.handlers)

        logger.debug("written to file")
        for handler in logger.handlers:
            handler.flush()
        assert "written to file" in log_file.read_text()
    finally:
        configure_package_logging(level=logging.INFO)
        for name, obj in list(logging.root.manager.loggerDict.items()):
            if isinstance(obj, logging.Logger) and name.startswith("pattern_matching"):
                for handler in [h for h in obj.handlers if isinstance(h, logging.FileHandler)]:
                    obj.removeHandler(handler)
                    handler.close()


def test_configure_package_logging_reuses_attached_file_handler(tmp_path):
    logger = setup_logger("pattern_matching.tests.reuse")
    log_file = tmp_path / "run.log"

    try:
        configure_package_logging(level=logging.INFO, log_file=str(log_file))
        first = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]

        log_file.unlink()
        configure_package_logging(level=logging.INFO, log_file=str(log_file))
        second = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]

        assert len(first) == 1
        assert second == first
        # No new handler was opened, so the file was not recreated
        assert not log_file.exists()
    finally:
        for name, obj in list(logging.root.manager.loggerDict.items()):
            if isinstance(obj, logging.Logger) and name.startswith("pattern_matching"):
                for handler in [h for h in obj.handlers if isinstance(h, logging.FileHandler)]:
                    obj.removeHandler(handler)
                    handler.close()
