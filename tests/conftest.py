"""Shared fixtures for usage-delta tests."""

import logging

import pytest
import structlog
from es_responses import search_response


@pytest.fixture
def acme_response() -> dict:
    return search_response("org-acme", {"conn-1": [100.0, 120.0]})


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo CLI logging setup so later tests do not write to a closed stream."""
    yield
    structlog.reset_defaults()
    for handler in logging.root.handlers[:]:
        if type(handler) is not logging.StreamHandler:
            continue
        logging.root.removeHandler(handler)
