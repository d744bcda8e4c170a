"""
Tests for the structured logging processors.
"""

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.logging import (
    REDACTED,
    add_component_context,
    add_correlation_context,
    clear_context,
    redact_sensitive_fields,
    set_request_id,
    set_user_context,
)


class TestLoggingProcessors:

    def test_component_from_logger_name(self):
        event = add_component_context(None, "info", {"logger": "promo.claim_cache", "event": "x"})

        assert event["service"] == "promo"
        assert event["component"] == "claim_cache"

    def test_correlation_context(self):
        set_request_id("req-1")
        set_user_context("user-9")
        try:
            event = add_correlation_context(None, "info", {"event": "x"})
        finally:
            clear_context()

        assert event["request_id"] == "req-1"
        assert event["user_id"] == "user-9"
        assert "request_id" not in add_correlation_context(None, "info", {"event": "x"})

    def test_generated_request_id(self):
        try:
            assert set_request_id()
        finally:
            clear_context()

    def test_credentials_are_masked(self):
        event = redact_sensitive_fields(None, "info", {
            "event": "x",
            "Authorization": "Bearer abc",
            "apikey": "service-key",
            "token": "abc",
            "user_id": "user-9",
        })

        assert event["Authorization"] == REDACTED
        assert event["apikey"] == REDACTED
        assert event["token"] == REDACTED
        assert event["user_id"] == "user-9"
