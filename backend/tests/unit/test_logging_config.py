"""
Unit tests for logging configuration and small request utilities.
"""

import json
import logging
from unittest.mock import MagicMock

import pytest

from backend.src.utils.client_ip import get_client_ip
from backend.src.utils.logging_config import JSONFormatter, get_logger


class TestGetLogger:
    """Tests for get_logger()."""

    @pytest.mark.parametrize("name", ["api", "services", "db"])
    def test_known_loggers(self, name):
        logger = get_logger(name)

        assert logger.name == f"ota_server.{name}"
        assert logger.propagate is False

    def test_unknown_logger(self):
        with pytest.raises(ValueError):
            get_logger("agent")


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_includes_extra_fields(self):
        record = logging.LogRecord(
            "ota_server.services", logging.INFO, __file__, 10, "Update %s", ("1.2.0",), None,
        )
        record.app_id = "com.example.app"

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "Update 1.2.0"
        assert data["level"] == "INFO"
        assert data["logger"] == "ota_server.services"
        assert data["app_id"] == "com.example.app"
        assert data["timestamp"].endswith("Z")


class TestGetClientIp:
    """Tests for get_client_ip()."""

    def test_forwarded_for(self):
        request = MagicMock()
        request.headers = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}

        assert get_client_ip(request) == "203.0.113.7"

    def test_real_ip_header(self):
        request = MagicMock()
        request.headers = {"X-Real-IP": " 192.0.2.40 "}

        assert get_client_ip(request) == "192.0.2.40"

    def test_direct_connection(self):
        request = MagicMock()
        request.headers = {}
        request.client.host = "198.51.100.2"

        assert get_client_ip(request) == "198.51.100.2"

    def test_unknown(self):
        request = MagicMock()
        request.headers = {}
        request.client = None

        assert get_client_ip(request) == "unknown"
