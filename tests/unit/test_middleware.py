"""
Unit tests for middleware helpers.
"""

import json
import logging

from libris.api.middleware.cors import CORS_CONFIGS, get_cors_config
from libris.api.middleware.error_handler import create_error_response
from libris.api.middleware.logging import (
    REDACTED,
    StructuredLogFormatter,
    redact_path,
    redact_sensitive_data,
    request_id_var,
)


class TestRedaction:

    def test_nested_fields_redacted(self):
        data = {
            "email": "alice@example.com",
            "Password": "secret1",
            "nested": [{"token": "abc", "title": "Dune"}],
        }

        redacted = redact_sensitive_data(data, {"password", "token"})

        assert redacted == {
            "email": "alice@example.com",
            "Password": REDACTED,
            "nested": [{"token": REDACTED, "title": "Dune"}],
        }
        assert data["Password"] == "secret1"

    def test_scalars_pass_through(self):
        assert redact_sensitive_data("plain", {"password"}) == "plain"

    def test_reset_token_masked_in_path(self):
        assert redact_path("/api/auth/reset-password/deadbeef") == f"/api/auth/reset-password/{REDACTED}"

    def test_other_paths_untouched(self):
        assert redact_path("/api/books/123") == "/api/books/123"


class TestStructuredFormatter:

    def test_includes_request_id(self):
        token = request_id_var.set("req-1")
        try:
            record = logging.LogRecord("libris.api", logging.INFO, __file__, 1, "GET /api/books", None, None)
            record.duration_ms = 1.5
            payload = json.loads(StructuredLogFormatter().format(record))
        finally:
            request_id_var.reset(token)

        assert payload["message"] == "GET /api/books"
        assert payload["request_id"] == "req-1"
        assert payload["duration_ms"] == 1.5


class TestCorsConfig:

    def test_extra_origins_appended(self, monkeypatch):
        monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://books.example, https://other.example")

        config = get_cors_config("production")

        assert config.allowed_origins == ["https://books.example", "https://other.example"]

    def test_shared_defaults_not_mutated(self, monkeypatch):
        monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://books.example")

        get_cors_config("test")
        get_cors_config("test")

        assert CORS_CONFIGS["test"].allowed_origins == ["http://test"]

    def test_unknown_environment_falls_back_to_production(self, monkeypatch):
        monkeypatch.delenv("CORS_ALLOWED_ORIGINS", raising=False)

        config = get_cors_config("staging")

        assert config.allowed_origins == []
        assert config.max_age == CORS_CONFIGS["production"].max_age


class TestErrorResponse:

    def test_envelope_shape(self):
        response = create_error_response("Book not found", "NOT_FOUND", 404)
        body = json.loads(response.body)

        assert response.status_code == 404
        assert body["success"] is False
        assert body["message"] == "Book not found"
        assert body["code"] == "NOT_FOUND"
        assert "timestamp" in body
        assert "detail" not in body
