from __future__ import annotations

import json
import logging

from fastapi import HTTPException
from fastapi.testclient import TestClient

from app.core import error_reporting
from app.core.logging import REDACTED_VALUE, JsonFormatter, redact_sensitive_data
from app.core.request_context import request_id_scope
from app.main import create_app


def test_redaction_masks_sensitive_keys_and_embedded_secrets():
    payload = {
        "database_url": "postgresql+psycopg://estate:hunter2@db/estate",
        "note": "connect to postgresql://estate:hunter2@db/estate",
        "headers": {"Authorization": "Bearer abc.def"},
        "nested": ["Bearer xyz", 3],
    }

    redacted = redact_sensitive_data(payload)

    assert redacted["database_url"] == REDACTED_VALUE
    assert "hunter2" not in redacted["note"]
    assert redacted["headers"]["Authorization"] == REDACTED_VALUE
    assert redacted["nested"] == [f"Bearer {REDACTED_VALUE}", 3]


def test_json_formatter_emits_event_and_extra_fields():
    record = logging.LogRecord("app.test", logging.INFO, __file__, 1, "upload.stored", None, None)
    record.image_id = "a" * 32
    record.token = "secret"

    with request_id_scope("req-42"):
        from app.core.logging import RequestIDFilter

        RequestIDFilter().filter(record)

    line = json.loads(JsonFormatter().format(record))

    assert line["event"] == "upload.stored"
    assert line["level"] == "INFO"
    assert line["request_id"] == "req-42"
    assert line["image_id"] == "a" * 32
    assert line["token"] == REDACTED_VALUE


def test_request_id_is_echoed_and_logged(client, caplog):
    with caplog.at_level(logging.INFO, logger="app.request"):
        r = client.get("/healthz", headers={"x-request-id": "req-abc"})

    assert r.headers["x-request-id"] == "req-abc"
    end = next(record for record in caplog.records if record.message == "request.end")
    assert end.request_id == "req-abc"
    assert end.status_code == 200


def test_request_id_is_generated_when_missing(client):
    r = client.get("/healthz")
    assert r.headers["x-request-id"]


def test_upload_failure_is_logged_with_context(client, blob_store, monkeypatch, caplog):
    def _broken_put(name, data, content_type):
        raise RuntimeError("disk full")

    monkeypatch.setattr(blob_store, "put", _broken_put)

    with caplog.at_level(logging.INFO, logger="app.services.uploads"):
        client.post("/api/upload", files={"file": ("a.jpg", b"\xff\xd8data", "image/jpeg")})

    failure = next(record for record in caplog.records if record.message == "upload.store_failed")
    assert failure.levelname == "ERROR"
    assert failure.upload_filename == "a.jpg"
    assert failure.error_type == "RuntimeError"


def test_server_errors_log_request_context(database, geocoder, caplog):
    app = create_app(database=database, geocoder=geocoder)

    @app.get("/boom")
    def _boom():
        raise HTTPException(status_code=500, detail="boom")

    with TestClient(app) as local_client:
        with caplog.at_level(logging.INFO, logger="app.main"):
            response = local_client.get("/boom")

    assert response.status_code == 500
    server_error = next(record for record in caplog.records if record.message == "http.exception.server")
    assert server_error.request_id
    assert server_error.path == "/boom"
    assert server_error.internal_error_code == "http_error"


def test_before_send_attaches_request_id_and_redacts():
    with request_id_scope("req-123"):
        event = error_reporting._before_send({"extra": {"password": "pw"}}, {})

    assert event["tags"]["request_id"] == "req-123"
    assert event["extra"]["request_id"] == "req-123"
    assert event["extra"]["password"] == REDACTED_VALUE
