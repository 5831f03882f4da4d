"""
Tests for the loguru setup
"""

import logging

from loguru import logger

from arcpp.core.config import settings
from arcpp.core.logging_conf import setup_logging


class TestSetupLogging:
    """Test sink configuration and stdlib forwarding"""

    def test_stdlib_records_forwarded(self, monkeypatch):
        monkeypatch.setattr(settings, "LOG_FILE", "")
        setup_logging()
        messages = []
        sink_id = logger.add(messages.append, format="{message}")
        try:
            logging.getLogger("uvicorn.error").warning("server started")
        finally:
            logger.remove(sink_id)
        assert any("server started" in m for m in messages)

    def test_file_sink(self, monkeypatch, tmp_path):
        log_file = tmp_path / "arcpp.log"
        monkeypatch.setattr(settings, "LOG_FILE", str(log_file))
        setup_logging()
        logger.info("cache populated")
        logger.remove()
        assert "cache populated" in log_file.read_text()
