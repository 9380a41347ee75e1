"""Shared test fixtures for the agenda assistant test suite."""

from __future__ import annotations

import os
from unittest.mock import AsyncMock, MagicMock

import pytest


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py won't fail on module load.
    """
    os.environ.setdefault("OPENAI_API_KEY", "test-openai-key-123")
    os.environ["METRICS_ENABLED"] = "false"


@pytest.fixture
def completion_client():
    """Factory fixture: a fake AsyncOpenAI whose ``responses.create`` returns *responses* in order."""

    def _make(*responses):
        client = MagicMock()
        client.responses.create = AsyncMock(side_effect=list(responses))
        return client

    return _make


@pytest.fixture
def calendar_client():
    """A fake GoogleCalendarClient with async methods."""
    client = MagicMock()
    client.insert_event = AsyncMock()
    client.list_events = AsyncMock(return_value=[])
    client.delete_event = AsyncMock(return_value=None)
    return client
