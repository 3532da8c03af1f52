"""Tests for settings loading and logging setup."""

import logging

import pytest

from poolbet.config import Settings, settings
from poolbet.logging_config import LOG_FORMAT, setup_logging
from poolbet.odds import odds


class TestSettings:
    """Defaults and environment overrides."""

    def test_defaults(self):
        """Defaults match the documented engine constants."""
        fresh = Settings(_env_file=None)
        assert fresh.COMMISSION_RATE == 0.005
        assert fresh.MIN_WAGER_AMOUNT == 0.01
        assert fresh.PROOF_GRACE_HOURS == 24

    def test_env_prefix(self, monkeypatch):
        """POOLBET_-prefixed environment variables override defaults."""
        monkeypatch.setenv("POOLBET_COMMISSION_RATE", "0.02")
        monkeypatch.setenv("POOLBET_LOG_LEVEL", "DEBUG")
        fresh = Settings(_env_file=None)
        assert fresh.COMMISSION_RATE == 0.02
        assert fresh.LOG_LEVEL == "DEBUG"

    def test_odds_follow_settings(self, monkeypatch):
        """The odds engine reads its floor from settings."""
        monkeypatch.setattr(settings, "ODDS_FLOOR", 1.5)
        assert odds(100.0, 100.0) == 1.5


class TestLogging:
    """setup_logging is safe to call repeatedly."""

    def test_single_handler(self):
        """Repeated setup replaces the handler instead of stacking them."""
        setup_logging("debug")
        logger = setup_logging("warning")
        assert logger.name == "poolbet"
        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1
        assert logger.handlers[0].formatter._fmt == LOG_FORMAT

    def test_child_loggers_propagate(self):
        """Module loggers inherit the package level."""
        setup_logging("info")
        child = logging.getLogger("poolbet.services.wager_service")
        assert child.getEffectiveLevel() == logging.INFO
