"""Tests for the logging helpers."""

import logging

from app_logging import APP_LOGGER_NAME, get_app_log_content, setup_logger


def _app_handlers():
    return [h for h in logging.getLogger().handlers if getattr(h, "_jsd_handler", False)]


def test_log_file_content_is_readable(tmp_path):
    log_file = tmp_path / "app.log"
    logger = setup_logger(console_logging=False, log_file=str(log_file))
    try:
        assert logger.name == APP_LOGGER_NAME
        logger.info("comparison finished")
        for handler in _app_handlers():
            handler.flush()
        assert "comparison finished" in get_app_log_content(str(log_file))
    finally:
        setup_logger(console_logging=False, file_logging=False)


def test_repeated_setup_does_not_duplicate_handlers(tmp_path):
    setup_logger(console_logging=True, file_logging=False)
    setup_logger(console_logging=True, file_logging=False)
    try:
        assert len(_app_handlers()) == 1
    finally:
        setup_logger(console_logging=False, file_logging=False)


def test_missing_log_file(tmp_path):
    content = get_app_log_content(str(tmp_path / "absent.log"))
    assert content.startswith("Error:")
    assert "not found" in content
