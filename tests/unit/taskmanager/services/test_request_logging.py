from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from taskmanager.services import RequestLoggingMiddleware


def _app(logger, **kwargs):
    app = FastAPI()

    @app.get("/ok")
    async def ok():
        return {"ok": True}

    @app.get("/boom")
    async def boom():
        raise RuntimeError("boom")

    app.add_middleware(RequestLoggingMiddleware, service_name="TestService", logger=logger, **kwargs)
    return app


class TestRequestLoggingMiddleware:
    """Tests for per-request structured logging."""

    def test_logs_one_record_per_request(self):
        logger = MagicMock()

        response = TestClient(_app(logger)).get("/ok")

        assert response.status_code == 200
        logger.info.assert_called_once()
        kwargs = logger.info.call_args.kwargs
        assert logger.info.call_args.args[0] == "Request handled"
        assert kwargs["method"] == "GET"
        assert kwargs["path"] == "/ok"
        assert kwargs["status_code"] == 200
        assert kwargs["service"] == "TestService"
        assert kwargs["duration_ms"] >= 0

    def test_generates_request_id_header(self):
        response = TestClient(_app(MagicMock())).get("/ok")

        assert len(response.headers["X-Request-ID"]) == 32

    def test_echoes_incoming_request_id(self):
        response = TestClient(_app(MagicMock())).get("/ok", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    def test_header_can_be_disabled(self):
        response = TestClient(_app(MagicMock(), add_request_id_header=False)).get("/ok")

        assert "X-Request-ID" not in response.headers

    def test_duration_can_be_disabled(self):
        logger = MagicMock()

        TestClient(_app(logger, log_metrics=False)).get("/ok")

        assert "duration_ms" not in logger.info.call_args.kwargs

    def test_unhandled_error_logged_and_reraised(self):
        logger = MagicMock()

        with pytest.raises(RuntimeError):
            TestClient(_app(logger)).get("/boom")

        logger.error.assert_called_once()
        assert logger.error.call_args.kwargs["error"] == "boom"
