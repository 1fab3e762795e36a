"""Shared pytest fixtures."""

import logging

import pytest

from blueprints.utils.logging import ROOT_LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_blueprints_logger():
    """Undo setup_logging so caplog keeps seeing records in later tests."""
    yield
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.propagate = True
    root.setLevel(logging.NOTSET)
