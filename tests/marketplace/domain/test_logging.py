"""Log processors and context binding."""

import logging
import logging.handlers

import pytest
import structlog

from marketplace.utils.logging import (
    REDACTED,
    bind_request_context,
    configure_logging,
    get_log_level,
    redact_secrets,
)


@pytest.fixture()
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


class TestRedactSecrets:
    def test_masks_credentials(self):
        event = redact_secrets(None, "info", {"event": "mpesa.token", "access_token": "abc", "Password": "xyz"})
        assert event == {"event": "mpesa.token", "access_token": REDACTED, "Password": REDACTED}

    def test_masks_nested_values(self):
        event = redact_secrets(
            None,
            "warning",
            {"event": "mpesa.request_rejected", "request": {"headers": {"Authorization": "Bearer abc"}, "Amount": 2700}},
        )
        assert event["request"]["headers"]["Authorization"] == REDACTED
        assert event["request"]["Amount"] == 2700

    def test_leaves_ordinary_fields_alone(self):
        event = {"event": "payment.confirmed", "order_id": "ord-1", "receipt_number": "QGH123"}
        assert redact_secrets(None, "info", dict(event)) == event


class TestConfiguration:
    def test_level_follows_environment(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setenv("PROTEAN_ENV", "production")
        assert get_log_level() == "INFO"

    def test_level_override(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert get_log_level() == "DEBUG"

    def test_console_only_without_log_dir(self, monkeypatch, restore_logging):
        monkeypatch.delenv("LOG_DIR", raising=False)
        configure_logging()
        assert not any(
            isinstance(handler, logging.handlers.RotatingFileHandler) for handler in logging.getLogger().handlers
        )

    def test_log_dir_adds_rotating_file(self, monkeypatch, tmp_path, restore_logging):
        monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
        configure_logging()

        file_handlers = [
            handler
            for handler in logging.getLogger().handlers
            if isinstance(handler, logging.handlers.RotatingFileHandler)
        ]
        assert len(file_handlers) == 1
        assert (tmp_path / "logs").is_dir()
        file_handlers[0].close()


def test_request_context_replaces_previous_request(restore_logging):
    bind_request_context("req-1", "/orders", user_id="cust-1")
    bind_request_context("req-2", "/mpesa/callback")

    assert structlog.contextvars.get_contextvars() == {"request_id": "req-2", "path": "/mpesa/callback"}
