"""
Unit tests for configuration constants.
"""

import os
from importlib import reload

import pytest

import core.config
from core.config import (
    ACCEPTED_PAYER_STATUS_CODES, DATABASE_URL, MAX_BOOKING_WINDOW_DAYS,
    MIN_BOOKING_NOTICE_HOURS, PRACTICE_TIMEZONE,
)


@pytest.fixture
def reload_config(monkeypatch):
    """Reload core.config after the test's env changes, then restore it."""
    yield lambda: reload(core.config)
    monkeypatch.undo()
    reload(core.config)


class TestConfigConstants:
    """Test cases for configuration constants."""

    def test_default_values(self):
        assert PRACTICE_TIMEZONE == "America/Denver"
        assert ACCEPTED_PAYER_STATUS_CODES == ["approved", "active"]
        assert MIN_BOOKING_NOTICE_HOURS == 24
        assert MAX_BOOKING_WINDOW_DAYS == 90
        # DATABASE_URL is overridden by the test environment
        assert DATABASE_URL.startswith(("postgresql://", "sqlite://"))

    def test_scheduler_disabled_under_tests(self):
        assert core.config.ENABLE_POPULATION_SCHEDULER is False

    def test_environment_override(self, monkeypatch, reload_config):
        monkeypatch.setenv("ACCEPTED_PAYER_STATUS_CODES", " approved , , contracted ")
        monkeypatch.setenv("POPULATION_WINDOW_DAYS", "14")
        monkeypatch.setenv("EMR_MIRROR_URL", "https://emr.example.com/appointments")

        config = reload_config()

        assert config.ACCEPTED_PAYER_STATUS_CODES == ["approved", "contracted"]
        assert config.POPULATION_WINDOW_DAYS == 14
        assert config.EMR_MIRROR_URL == "https://emr.example.com/appointments"

    @pytest.mark.parametrize("raw,expected", [
        ("true", True), ("1", True), (" YES ", True), ("on", True),
        ("false", False), ("0", False), ("", False),
    ])
    def test_boolean_flags(self, monkeypatch, reload_config, raw, expected):
        monkeypatch.setenv("ENABLE_POPULATION_SCHEDULER", raw)

        assert reload_config().ENABLE_POPULATION_SCHEDULER is expected

    def test_types(self):
        assert isinstance(core.config.POPULATION_MAX_WORKERS, int)
        assert isinstance(core.config.EMR_MIRROR_TIMEOUT_SECONDS, float)
        assert os.environ.get("DATABASE_URL") == DATABASE_URL
