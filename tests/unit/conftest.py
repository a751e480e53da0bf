"""
Pytest configuration and fixtures for agentchat unit tests.

Unit tests MUST be isolated from external dependencies:
- No LLM API calls (pydantic-ai TestModel only)
- No network (httpx.MockTransport, Starlette TestClient)

Real model requests are blocked for the whole unit suite.
"""

import pytest
from pydantic_ai import models


@pytest.fixture(autouse=True)
def block_model_requests():
    """Fail fast if a test reaches a real model provider."""
    previous = models.ALLOW_MODEL_REQUESTS
    models.ALLOW_MODEL_REQUESTS = False
    yield
    models.ALLOW_MODEL_REQUESTS = previous


def pytest_collection_modifyitems(items):
    """Automatically add 'unit' marker to all tests in /unit/."""
    for item in items:
        if "/unit/" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
