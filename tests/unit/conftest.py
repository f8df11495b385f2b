"""
Unit test fixtures and configuration.

Fixtures specific to unit tests (fast, isolated tests).
"""

import logging
import os

import pytest


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep CLOSURECAL_* variables from the outer shell out of config tests."""
    for name in list(os.environ):
        if name.startswith('CLOSURECAL_'):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def package_logger():
    """The package logger, with handlers from configure_logging removed afterwards."""
    logger = logging.getLogger('closurecal')
    level = logger.level
    yield logger
    for handler in list(logger.handlers):
        if getattr(handler, '_closurecal_handler', False):
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
