"""Fixtures for workflow tests."""

from unittest.mock import patch

import pytest

from agent_doubles import ScriptedAgent


@pytest.fixture
def agent():
    """Scripted agent patched in for ``run_agent``; sleeping is mocked out."""
    scripted = ScriptedAgent()
    with patch("blueprints.services.workflow_service.run_agent", side_effect=scripted), patch(
        "blueprints.services.workflow_service.time.sleep"
    ) as mock_sleep:
        scripted.sleep = mock_sleep
        yield scripted
