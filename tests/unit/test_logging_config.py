"""
Unit tests for logging setup.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
import structlog

from sync_stays.logging_config import add_service_name, resolve_log_format, setup_logging


@pytest.mark.unit
@pytest.mark.parametrize(
    "level,configured,override,expected",
    [
        ("INFO", None, None, "json"),
        ("DEBUG", None, None, "console"),
        ("DEBUG", "json", None, "json"),
        ("INFO", "console", None, "console"),
        ("INFO", "console", "json", "json"),
        ("INFO", "pretty", None, "json"),
    ],
)
def test_resolve_log_format(
    level: str, configured: str | None, override: str | None, expected: str
) -> None:
    """Test renderer choice from LOG_FORMAT, LOG_LEVEL and an explicit override."""
    with patch("sync_stays.logging_config.LOG_LEVEL", level), patch(
        "sync_stays.logging_config.LOG_FORMAT", configured
    ):
        assert resolve_log_format(override) == expected


@pytest.mark.unit
def test_service_name_is_added_once() -> None:
    """Test that every event carries the service name without overwriting one."""
    assert add_service_name(None, "info", {"event": "x"})["service"] == "sync-stays"
    assert add_service_name(None, "info", {"service": "other"})["service"] == "other"


@pytest.mark.unit
def test_setup_logging_json_pipeline() -> None:
    """Test that JSON mode ends with exception formatting and the JSON renderer."""
    setup_logging("json")
    processors = structlog.get_config()["processors"]

    assert isinstance(processors[-1], structlog.processors.JSONRenderer)
    assert add_service_name in processors
    structlog.reset_defaults()
