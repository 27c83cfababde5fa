"""
Tests for logging setup
"""

import logging
import logging.handlers

from gymbook.config import settings
from gymbook.core.logging import setup_logging


def gymbook_handlers():
    return logging.getLogger("gymbook").handlers


def test_testing_setup_needs_no_log_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    setup_logging()

    assert not (tmp_path / "logs").exists()
    assert not any(isinstance(h, logging.handlers.RotatingFileHandler) for h in gymbook_handlers())


def test_non_testing_setup_creates_log_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(settings, "APP_ENV", "development")

    try:
        setup_logging()

        assert (tmp_path / "logs").is_dir()
        assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in gymbook_handlers())
    finally:
        monkeypatch.setattr(settings, "APP_ENV", "testing")
        setup_logging()
