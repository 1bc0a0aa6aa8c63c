"""Tests for structured logging setup.

Clinic loggers do not propagate and their stdout handlers are bound at
import time, so these tests attach pytest's ``caplog`` handler to the tagged
logger and render the captured records with ``StructuredFormatter``.
"""

from __future__ import annotations

import pytest

from clinic.common.logging import StructuredFormatter, _redact_secrets, get_logger, short_endpoint


@pytest.fixture
def tagged_output(caplog):
    """Return ``capture(tag)``: a logger for ``tag`` plus a reader of its formatted lines."""
    attached = []

    def capture(tag: str):
        logger = get_logger(tag)
        logger.logger.addHandler(caplog.handler)
        attached.append(logger.logger)

        def lines() -> str:
            formatter = StructuredFormatter()
            return "\n".join(formatter.format(record) for record in caplog.records)

        return logger, lines

    yield capture

    for logger in attached:
        logger.removeHandler(caplog.handler)


class TestGetLogger:
    """Test logger creation and configuration."""

    def test_same_tag_returns_same_logger(self):
        """Calling get_logger twice with same tag returns the same instance."""
        assert get_logger("DISPATCH") is get_logger("DISPATCH")

    def test_different_tags_return_different_loggers(self):
        assert get_logger("DISPATCH") is not get_logger("STORE")

    def test_log_output_contains_module_tag(self, tagged_output):
        logger, lines = tagged_output("NUDGE")
        logger.info("Prompt evaluated")
        output = lines()
        assert "| NUDGE |" in output
        assert "Prompt evaluated" in output

    def test_log_output_contains_level(self, tagged_output):
        logger, lines = tagged_output("WORKER")
        logger.warning("Notification dropped")
        assert "| WARNING |" in lines()

    def test_structured_data_in_output(self, tagged_output):
        logger, lines = tagged_output("DISPATCH")
        logger.info("Dispatch finished", extra={"data": {"sent": 3, "pruned": 1}})
        output = lines()
        assert '"sent": 3' in output
        assert '"pruned": 1' in output


class TestSecretRedaction:
    """Key material never reaches log output."""

    def test_redact_private_key(self):
        redacted = _redact_secrets('{"vapid_private_key": "abc123secret"}')
        assert "abc123secret" not in redacted
        assert "[REDACTED]" in redacted

    def test_redact_subscription_keys(self):
        redacted = _redact_secrets('{"p256dh": "BNcRdre", "auth": "tBHItJ"}')
        assert "BNcRdre" not in redacted
        assert "tBHItJ" not in redacted

    def test_non_secret_fields_preserved(self):
        redacted = _redact_secrets('{"endpoint": "https://push.example/1", "sent": "2"}')
        assert "https://push.example/1" in redacted

    def test_secret_redaction_in_log_output(self, tagged_output):
        logger, lines = tagged_output("STORE")
        logger.info(
            "Subscription upserted",
            extra={"data": {"auth": "real-auth-secret", "user_id": "u-42"}},
        )
        output = lines()
        assert "real-auth-secret" not in output
        assert "u-42" in output


class TestShortEndpoint:
    def test_short_endpoint_unchanged(self):
        assert short_endpoint("https://push.example/a") == "https://push.example/a"

    def test_long_endpoint_truncated(self):
        endpoint = "https://fcm.googleapis.com/fcm/send/" + "x" * 200
        result = short_endpoint(endpoint)
        assert result.endswith("...")
        assert len(result) == 63
