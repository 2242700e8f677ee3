"""Logging, request id and CORS setup."""

from __future__ import annotations

import json
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clipt.config import Settings
from clipt.middleware.cors import setup_cors
from clipt.middleware.logging import build_formatter, setup_logging
from clipt.middleware.request_id import resolve_request_id


def _cors(app: FastAPI):
    return [m for m in app.user_middleware if m.cls is CORSMiddleware]


class TestRequestId:
    """Incoming ids are kept only when well-formed."""

    def test_valid_id_kept(self):
        assert resolve_request_id("abc-123.retry_2") == "abc-123.retry_2"

    def test_missing_id_generated(self):
        assert len(resolve_request_id(None)) == 36

    def test_malformed_id_replaced(self):
        assert resolve_request_id("bad id\r\nX-Injected: 1") != "bad id\r\nX-Injected: 1"
        assert len(resolve_request_id("x" * 65)) == 36
        assert len(resolve_request_id("abc\n")) == 36


class TestLogFormatter:
    """Stdlib records from the services render through structlog."""

    def test_json_rendering(self):
        formatter = build_formatter(Settings(_env_file=None, log_format="json"))
        record = logging.LogRecord("clipt.boosts.service", logging.INFO, __file__, 1, "Boost %s finalized", ("b1",), None)
        data = json.loads(formatter.format(record))
        assert data["event"] == "Boost b1 finalized"
        assert data["level"] == "info"
        assert data["logger"] == "clipt.boosts.service"
        assert "timestamp" in data

    def test_setup_twice_keeps_one_handler(self):
        root = logging.getLogger()
        level = root.level
        foreign = logging.NullHandler()
        root.addHandler(foreign)
        try:
            settings = Settings(_env_file=None, log_format="console", log_level="WARNING")
            setup_logging(settings)
            setup_logging(settings)
            ours = [h for h in root.handlers if h.get_name() == "clipt"]
            assert len(ours) == 1
            assert foreign in root.handlers
            assert root.level == logging.WARNING
        finally:
            root.removeHandler(foreign)
            for handler in [h for h in root.handlers if h.get_name() == "clipt"]:
                root.removeHandler(handler)
            root.setLevel(level)


class TestCors:
    """CORS registration follows the configured origins."""

    def test_explicit_origins_allow_credentials(self):
        app = FastAPI()
        setup_cors(app, Settings(_env_file=None, cors_origins=["https://clipt.gg"]))
        [middleware] = _cors(app)
        assert middleware.kwargs["allow_credentials"] is True
        assert middleware.kwargs["expose_headers"] == ["X-Request-Id"]

    def test_wildcard_without_credentials(self):
        app = FastAPI()
        setup_cors(app, Settings(_env_file=None, cors_origins=["*"]))
        [middleware] = _cors(app)
        assert middleware.kwargs["allow_credentials"] is False

    def test_no_origins_no_middleware(self):
        app = FastAPI()
        setup_cors(app, Settings(_env_file=None, cors_origins=[]))
        assert _cors(app) == []
